"""provkit: provisioning toolkit for operational scripts.

Free port discovery, container lifecycle polling, dry-run aware command
execution and idempotent edits to configuration artifacts.
"""

__version__ = "0.1.0"
