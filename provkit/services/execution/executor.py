"""External command execution with a dry-run mode.

Uses asyncio subprocesses; output is fully buffered before a call returns.
"""

import asyncio
import os
import signal
from typing import Dict, Iterable, Optional

import structlog

from ...models.errors import ExecutionFailure
from ...models.execution import Command, CommandOutcome, Effect, Necessity
from ...utils.paths import decode_output
from .context import ExecutionContext

logger = structlog.get_logger(__name__)

TIMEOUT_EXIT_CODE = 124
SPAWN_FAILURE_EXIT_CODE = 127


class CommandExecutor:
    """Builds and runs external commands under an execution context.

    ``execute`` honors the context's dry-run flag; ``run`` always spawns and
    is reserved for read-only probes that must observe the real system.
    """

    def __init__(
        self,
        privilege_command: str = "sudo",
        default_timeout: Optional[float] = None,
    ):
        """Initialize the executor.

        Args:
            privilege_command: Program prefixed to "as-root" commands
            default_timeout: Seconds before a child is killed when neither
                the call nor the command sets a timeout. None waits forever.
        """
        self._privilege_command = privilege_command
        self._default_timeout = default_timeout

    @property
    def privilege_command(self) -> str:
        return self._privilege_command

    # ------------------------------------------------------------------
    # Command constructors
    # ------------------------------------------------------------------

    def as_root(self, argv: Iterable[str]) -> Command:
        """A mandatory, imperative command run under privilege elevation."""
        return Command(
            program=self._privilege_command,
            args=list(argv),
            necessity=Necessity.MANDATORY,
            effect=Effect.IMPERATIVE,
        )

    @staticmethod
    def build(program: str, args: Iterable[str] = ()) -> Command:
        """A mandatory, imperative unprivileged command."""
        return Command(
            program=program,
            args=list(args),
            necessity=Necessity.MANDATORY,
            effect=Effect.IMPERATIVE,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        context: ExecutionContext,
        command: Command,
        timeout: Optional[float] = None,
    ) -> CommandOutcome:
        """Execute a command, or describe it when the context is a dry run.

        Dry run never spawns a process and returns a successful outcome of
        the same shape as a real one, so callers need not branch on mode.

        Args:
            context: Execution context supplying environment and mode
            command: Command to execute
            timeout: Seconds before the child is killed

        Returns:
            CommandOutcome for this execution

        Raises:
            ExecutionFailure: If the command exits non-zero and has
                ``throw_on_failure`` set (real execution only)
        """
        if not context.really_execute:
            description = command.describe(context.describe_env(command.env))
            logger.info("Dry run, not executing", command=description)
            return CommandOutcome.fake(True)

        env = context.build_env(command.env)
        return await self.run(command, env=env, timeout=timeout)

    async def run(
        self,
        command: Command,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandOutcome:
        """Spawn the command and wait for it, capturing all output.

        Args:
            command: Command to run
            env: Full child environment; None inherits the current process's
            timeout: Seconds before the child's process group is killed

        Returns:
            CommandOutcome with exit code and decoded output
        """
        if timeout is None:
            timeout = command.timeout if command.timeout is not None else self._default_timeout

        if not command.silent:
            logger.info("Running command", command=command.describe())

        try:
            proc = await asyncio.create_subprocess_exec(
                *command.argv,
                stdin=asyncio.subprocess.PIPE if command.stdin is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                start_new_session=True,  # New process group for clean kill
            )
        except OSError as e:
            logger.error(
                "Failed to spawn command",
                program=command.program,
                error=str(e),
            )
            outcome = CommandOutcome(
                exit_code=SPAWN_FAILURE_EXIT_CODE,
                stderr=f"Failed to spawn {command.program}: {e}",
            )
            return self._finish(command, outcome)

        stdin_data = command.stdin.encode("utf-8") if command.stdin is not None else None
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(input=stdin_data),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            await self._kill(proc)
            logger.warning(
                "Command timed out",
                program=command.program,
                timeout=timeout,
            )
            outcome = CommandOutcome(
                exit_code=TIMEOUT_EXIT_CODE,
                stderr=f"Command timed out after {timeout} seconds",
                timed_out=True,
            )
            return self._finish(command, outcome)

        outcome = CommandOutcome(
            exit_code=proc.returncode,
            stdout=decode_output(stdout_bytes),
            stderr=decode_output(stderr_bytes),
        )
        return self._finish(command, outcome)

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        await proc.wait()

    def _finish(self, command: Command, outcome: CommandOutcome) -> CommandOutcome:
        """Log output as requested and apply the command's failure mode."""
        if command.log_output:
            for line in outcome.stdout.splitlines():
                logger.info("stdout", program=command.program, line=line)
            for line in outcome.stderr.splitlines():
                logger.info("stderr", program=command.program, line=line)

        if not outcome.success:
            if not command.silent:
                logger.warning(
                    "Command failed",
                    program=command.program,
                    exit_code=outcome.exit_code,
                    timed_out=outcome.timed_out,
                )
            if command.throw_on_failure:
                raise ExecutionFailure(command.describe(), outcome)

        return outcome
