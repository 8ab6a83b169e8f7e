"""Machine provisioning operations.

Package management, privileged and shell commands, keyring installation
and shell profile edits, all honoring the context's dry-run mode.
"""

import os
from pathlib import Path
from typing import Iterable, Optional

import httpx
import structlog

from ..models.errors import ExecutionFailure, ExternalServiceError, IOFailure
from ..models.execution import Command, CommandOutcome
from ..utils.paths import relative_home_path
from .config.blocks import DEFAULT_PREFIX, MarkedBlock, apply_block
from .execution import CommandExecutor, ExecutionContext

logger = structlog.get_logger(__name__)


class Provisioner:
    """Provisioning steps for one run, bound to a context and executor.

    With ``fail_fast`` (the default) every command is issued with
    ``throw_on_failure``, so a failed step raises ``ExecutionFailure``.
    """

    def __init__(
        self,
        context: ExecutionContext,
        executor: CommandExecutor,
        package_manager: str = "apt",
        shell_binary: str = "bash",
        marker_prefix: str = DEFAULT_PREFIX,
        profile_file: str = ".bashrc",
        keyring_dir: str = "/etc/apt/keyrings",
        keyring_mode: int = 0o644,
        download_timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
        fail_fast: bool = True,
    ):
        self._context = context
        self._executor = executor
        self._package_manager = package_manager
        self._shell_binary = shell_binary
        self._marker_prefix = marker_prefix
        self._profile_file = profile_file
        self._keyring_dir = Path(keyring_dir)
        self._keyring_mode = keyring_mode
        self._download_timeout = download_timeout
        self._http_client = http_client
        self._fail_fast = fail_fast

    @property
    def context(self) -> ExecutionContext:
        return self._context

    async def run(self, command: Command) -> CommandOutcome:
        """Execute a command under this provisioner's context and policy."""
        if self._fail_fast:
            command.throw_on_failure = True
        return await self._executor.execute(self._context, command)

    # ------------------------------------------------------------------
    # Package management
    # ------------------------------------------------------------------

    def _package_command(self, *args: str) -> Command:
        command = self._executor.as_root([self._package_manager, *args])
        return command.env_var("DEBIAN_FRONTEND", "noninteractive")

    async def apt_update(self) -> CommandOutcome:
        return await self.run(self._package_command("update"))

    async def apt_upgrade(self) -> CommandOutcome:
        return await self.run(self._package_command("dist-upgrade"))

    async def apt_install(self, packages: Iterable[str]) -> CommandOutcome:
        return await self.run(self._package_command("install", "-q", "-y", *packages))

    async def apt_remove(self, packages: Iterable[str]) -> CommandOutcome:
        return await self.run(self._package_command("remove", "-q", "-y", *packages))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def as_root(self, argv: Iterable[str]) -> CommandOutcome:
        return await self.run(self._executor.as_root(argv))

    async def shell(self, script: str) -> CommandOutcome:
        """Run a script with ``<shell> -c``."""
        return await self.run(self._executor.build(self._shell_binary, ["-c", script]))

    async def gcloud_copy(
        self, project: str, zone: str, source: str, target: str
    ) -> CommandOutcome:
        """Copy files to or from a compute instance over an IAP tunnel."""
        command = self._executor.build(
            "gcloud",
            [
                "compute",
                "scp",
                "--project",
                project,
                "--zone",
                zone,
                "--tunnel-through-iap",
                source,
                target,
            ],
        )
        return await self.run(command)

    # ------------------------------------------------------------------
    # Keyrings
    # ------------------------------------------------------------------

    async def _download(self, url: str) -> str:
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url)
            else:
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(timeout=self._download_timeout),
                    follow_redirects=True,
                ) as client:
                    response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                url, f"Keyring download failed with status {e.response.status_code}: {url}"
            )
        except httpx.HTTPError as e:
            raise ExternalServiceError(url, f"Keyring download failed: {url}: {e}")
        return response.text

    @staticmethod
    def _discard_partial(target: Path) -> None:
        """Remove what a failed gpg left behind so a later run retries."""
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            raise IOFailure(str(target), e)

    async def install_keyring(self, url: str, name: str) -> bool:
        """Download an armored key and de-armor it into the keyring directory.

        Does nothing if the keyring file already exists.

        Returns:
            True if a keyring was installed. False if it already existed,
            in a dry run, or when gpg failed without fail-fast.

        Raises:
            ExecutionFailure: If gpg fails under fail-fast
        """
        target = self._keyring_dir / name
        if target.exists():
            logger.info("Keyring already installed", path=str(target))
            return False

        dearmor = self._executor.build("gpg", ["--dearmor", "-o", str(target)])
        if not self._context.really_execute:
            logger.info("Dry run, not downloading keyring", url=url, path=str(target))
            await self.run(dearmor)
            return False

        try:
            self._keyring_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailure(str(self._keyring_dir), e)

        logger.info("Downloading keyring", name=name, url=url)
        dearmor.stdin = await self._download(url)
        dearmor.log_output = True
        try:
            outcome = await self.run(dearmor)
        except ExecutionFailure:
            self._discard_partial(target)
            raise
        if not outcome.success:
            logger.warning(
                "Keyring not installed, gpg failed",
                path=str(target),
                exit_code=outcome.exit_code,
            )
            self._discard_partial(target)
            return False

        try:
            os.chmod(target, self._keyring_mode)
        except OSError as e:
            raise IOFailure(str(target), e)
        return True

    # ------------------------------------------------------------------
    # Shell profile
    # ------------------------------------------------------------------

    async def append_profile(self, block_id: str, lines: Iterable[str]) -> bool:
        """Write a marked block into the user's shell profile.

        Returns:
            True if the profile was written

        Raises:
            EnvironmentFailure: If the home directory cannot be determined
            IOFailure: If the profile cannot be read or written
        """
        block = MarkedBlock(block_id=block_id, content=tuple(lines), prefix=self._marker_prefix)
        profile = relative_home_path(self._profile_file)
        if not self._context.really_execute:
            logger.info(
                "Dry run, not updating profile",
                path=str(profile),
                block=block.begin_marker,
                content=list(block.content),
            )
            return False
        return apply_block(profile, block, create=True)
