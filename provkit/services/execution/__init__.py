"""Command execution services.

- context.py: ExecutionContext (environment overlay, OS snapshot)
- executor.py: CommandExecutor (dry-run aware command execution)
"""

from .context import ExecutionContext, parse_os_release, read_os_release
from .executor import CommandExecutor

__all__ = [
    "ExecutionContext",
    "CommandExecutor",
    "parse_os_release",
    "read_os_release",
]
