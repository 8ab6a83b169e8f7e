"""Container management services.

This package provides container lifecycle functionality:
- monitor.py: status queries, polling waits and best-effort teardown
"""

from .monitor import LifecycleMonitor

__all__ = [
    "LifecycleMonitor",
]
