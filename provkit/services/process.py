"""Local process lookup and termination."""

import os
from typing import List, NamedTuple, Optional

import psutil
import structlog

from ..models.errors import ErrorDetail, ErrorType, ProvisioningError
from ..utils.filters import FilterSet

logger = structlog.get_logger(__name__)


class ProcessEntry(NamedTuple):
    pid: int
    name: str
    cmdline: str


class SystemProcess:
    """Finds processes by command line and kills them.

    The current process is never matched.
    """

    def _snapshot(self) -> List[ProcessEntry]:
        own_pid = os.getpid()
        entries = []
        for proc in psutil.process_iter(["pid", "name", "cmdline"]):
            info = proc.info
            if info["pid"] == own_pid:
                continue
            entries.append(
                ProcessEntry(
                    pid=info["pid"],
                    name=info["name"] or "",
                    cmdline=" ".join(info["cmdline"] or []),
                )
            )
        return entries

    def find_process(
        self, command_substring: str, filters: Optional[FilterSet] = None
    ) -> List[ProcessEntry]:
        """Processes whose command line contains ``command_substring``.

        Args:
            command_substring: Text to look for in the joined command line
            filters: Optional full-match filters on the process name
        """
        filters = filters or FilterSet()
        return [
            entry
            for entry in self._snapshot()
            if command_substring in entry.cmdline and filters.is_match(entry.name)
        ]

    def kill_process(self, command_substring: str) -> List[int]:
        """SIGKILL every process matching ``command_substring``.

        Processes that exit on their own before being killed are skipped.

        Returns:
            PIDs that were killed

        Raises:
            ProvisioningError: If a matching process cannot be killed
        """
        killed = []
        for entry in self.find_process(command_substring):
            try:
                psutil.Process(entry.pid).kill()
            except psutil.NoSuchProcess:
                continue
            except psutil.Error as e:
                raise ProvisioningError(
                    f"Error while killing the process with PID {entry.pid}: {e}",
                    error_type=ErrorType.EXECUTION_FAILED,
                    details=[ErrorDetail(field="cmdline", message=entry.cmdline)],
                )
            logger.info("Killed process", pid=entry.pid, cmdline=entry.cmdline)
            killed.append(entry.pid)
        return killed
