"""Container lifecycle monitoring through the runtime CLI.

State is only ever observed by polling the runtime; nothing is pushed.
"""

import asyncio
from typing import Union

import structlog

from ...models.container import CleanupResult, CleanupStep, ContainerHandle, ContainerState
from ...models.errors import ProvisioningError
from ...models.execution import Command, Effect, Necessity
from ..execution import CommandExecutor, ExecutionContext

logger = structlog.get_logger(__name__)

ContainerRef = Union[str, ContainerHandle]


class LifecycleMonitor:
    """Queries, waits on and tears down containers.

    Status queries are read-only and always spawn the runtime CLI, even in
    a dry-run context, so waits observe the real system. Teardown goes
    through the context and is only described in a dry run.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        context: ExecutionContext,
        runtime: str = "docker",
    ):
        """Initialize the monitor.

        Args:
            executor: Executor used for every runtime call
            context: Context supplying environment and dry-run mode
            runtime: Container runtime CLI binary
        """
        self._executor = executor
        self._context = context
        self._runtime = runtime

    def _query(self, *args: str) -> Command:
        return Command(
            program=self._runtime,
            args=list(args),
            necessity=Necessity.OPTIONAL,
            effect=Effect.INTERROGATIVE,
            silent=True,
        )

    async def is_container_running(self, name: ContainerRef) -> bool:
        """Ask the runtime's boolean ``.State.Running`` field."""
        command = self._query("inspect", "-f", "{{.State.Running}}", str(name))
        try:
            outcome = await self._executor.run(command, env=self._context.build_env())
        except ProvisioningError as e:
            logger.debug("Running check failed", container=str(name), error=e.message)
            return False
        return outcome.success and outcome.sanitised_stdout() == "true"

    async def query_state(self, name: ContainerRef) -> ContainerState:
        """Current state from the runtime's ``.State.Status`` string.

        A failed query yields ``UNKNOWN``.
        """
        command = self._query("container", "inspect", "-f", "{{.State.Status}}", str(name))
        try:
            outcome = await self._executor.run(command, env=self._context.build_env())
        except ProvisioningError as e:
            logger.debug("Status query failed", container=str(name), error=e.message)
            return ContainerState.UNKNOWN
        if not outcome.success:
            return ContainerState.UNKNOWN
        return ContainerState.from_status(outcome.sanitised_stdout())

    async def query_running_state(self, name: ContainerRef) -> bool:
        """True exactly when the runtime reports ``running``."""
        state = await self.query_state(name)
        logger.debug("Checked container state", container=str(name), state=state.value)
        return state is ContainerState.RUNNING

    async def wait_until_running(
        self, name: ContainerRef, timeout_ms: int, poll_interval_ms: int
    ) -> bool:
        """Poll until the container runs.

        Returns:
            True as soon as it is running, False once
            ``timeout_ms // poll_interval_ms`` checks have all failed
        """
        return await self._wait_for(name, True, timeout_ms, poll_interval_ms)

    async def wait_until_stopped(
        self, name: ContainerRef, timeout_ms: int, poll_interval_ms: int
    ) -> bool:
        """Poll until the container is not running. See ``wait_until_running``."""
        return await self._wait_for(name, False, timeout_ms, poll_interval_ms)

    async def _wait_for(
        self,
        name: ContainerRef,
        want_running: bool,
        timeout_ms: int,
        poll_interval_ms: int,
    ) -> bool:
        if poll_interval_ms <= 0:
            raise ValueError(f"poll interval must be positive, got {poll_interval_ms}")

        iterations = timeout_ms // poll_interval_ms
        target = "running" if want_running else "stopped"
        for attempt in range(iterations):
            if await self.query_running_state(name) == want_running:
                logger.info(
                    "Container reached target state",
                    container=str(name),
                    target=target,
                    checks=attempt + 1,
                )
                return True
            if attempt + 1 < iterations:
                await asyncio.sleep(poll_interval_ms / 1000)

        logger.warning(
            "Timed out waiting for container",
            container=str(name),
            target=target,
            timeout_ms=timeout_ms,
            checks=iterations,
        )
        return False

    async def kill(self, name: ContainerRef) -> CleanupResult:
        """Stop then remove a container, best effort.

        Never raises; failures of either step are recorded in the result.
        """
        result = CleanupResult(target=str(name))
        for action in ("kill", "rm"):
            command = Command(
                program=self._runtime,
                args=[action, str(name)],
                necessity=Necessity.OPTIONAL,
                effect=Effect.IMPERATIVE,
            )
            try:
                outcome = await self._executor.execute(self._context, command)
                result.steps.append(CleanupStep(action=action, outcome=outcome))
            except (ProvisioningError, OSError) as e:
                result.steps.append(CleanupStep(action=action, error=str(e)))

        for step in result.failures:
            logger.warning(
                "Container cleanup step failed, ignoring",
                container=str(name),
                action=step.action,
                exit_code=step.outcome.exit_code if step.outcome else None,
                error=step.error,
            )
        return result
