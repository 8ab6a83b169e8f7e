"""Unit tests for CommandExecutor."""

import sys

import pytest
from unittest.mock import AsyncMock, patch

from provkit.models.errors import EnvironmentFailure, ExecutionFailure
from provkit.models.execution import Command, CommandOutcome, Effect, Necessity
from provkit.services.execution import CommandExecutor, ExecutionContext


def python_command(code: str, **kwargs) -> Command:
    return Command(program=sys.executable, args=["-c", code], **kwargs)


class TestCommandConstructors:
    """Test the as-root and build helpers."""

    def test_as_root_prefixes_privilege_command(self):
        executor = CommandExecutor(privilege_command="doas")
        command = executor.as_root(["apt", "update"])
        assert command.argv == ["doas", "apt", "update"]
        assert command.necessity is Necessity.MANDATORY
        assert command.effect is Effect.IMPERATIVE

    def test_build_is_unprivileged(self):
        command = CommandExecutor.build("git", ["status"])
        assert command.argv == ["git", "status"]
        assert command.is_mandatory
        assert command.is_imperative

    def test_default_command_is_optional_interrogative(self):
        command = Command(program="ls")
        assert command.necessity is Necessity.OPTIONAL
        assert command.effect is Effect.INTERROGATIVE

    def test_tags_are_fluent(self):
        command = Command(program="ls").mandatory().imperative()
        assert command.is_mandatory and command.is_imperative
        command.optional().interrogative()
        assert not command.is_mandatory and not command.is_imperative

    def test_describe_quotes_arguments(self):
        command = Command(program="bash", args=["-c", "echo hi there"])
        command.env_var("FOO", "a b")
        assert command.describe() == "FOO='a b' bash -c 'echo hi there'"


class TestDryRun:
    """Dry run never spawns and looks like a success."""

    @pytest.mark.asyncio
    async def test_no_process_spawned(self, executor, dry_context):
        with patch(
            "provkit.services.execution.executor.asyncio.create_subprocess_exec",
            new_callable=AsyncMock,
        ) as spawn:
            result = await executor.execute(dry_context, Command(program="rm", args=["-rf", "/"]))
        spawn.assert_not_called()
        assert result.success is True
        assert result.exit_code == 0
        assert result.stdout == ""
        assert result.stderr == ""

    @pytest.mark.asyncio
    async def test_outcome_has_same_shape_as_real(self, executor, dry_context, real_context):
        dry = await executor.execute(dry_context, python_command("pass"))
        real = await executor.execute(real_context, python_command("pass"))
        assert type(dry) is type(real) is CommandOutcome
        assert dry == real

    @pytest.mark.asyncio
    async def test_throw_on_failure_never_raises(self, executor, dry_context):
        command = python_command("import sys; sys.exit(1)", throw_on_failure=True)
        result = await executor.execute(dry_context, command)
        assert result.success

    @pytest.mark.asyncio
    async def test_description_is_logged(self, executor, dry_context):
        dry_context.add_to_env("FOO", "1")
        with patch("provkit.services.execution.executor.logger") as log:
            await executor.execute(dry_context, Command(program="echo", args=["hi"]))
        _, kwargs = log.info.call_args
        assert kwargs["command"] == "FOO=1 echo hi"


class TestRealExecution:
    """Spawning, environment and output capture."""

    @pytest.mark.asyncio
    async def test_captures_stdout(self, executor, real_context):
        result = await executor.execute(real_context, python_command("print('hello')"))
        assert result.success
        assert result.stdout == "hello\n"
        assert result.sanitised_stdout() == "hello"

    @pytest.mark.asyncio
    async def test_captures_stderr_and_exit_code(self, executor, real_context):
        code = "import sys; sys.stderr.write('bad'); sys.exit(3)"
        result = await executor.execute(real_context, python_command(code))
        assert result.exit_code == 3
        assert result.stderr == "bad"
        assert result.success is False

    @pytest.mark.asyncio
    async def test_context_vars_reach_child(self, executor, real_context):
        real_context.add_to_env("PROVKIT_TEST_VALUE", "42")
        code = "import os; print(os.environ['PROVKIT_TEST_VALUE'])"
        result = await executor.execute(real_context, python_command(code))
        assert result.sanitised_stdout() == "42"

    @pytest.mark.asyncio
    async def test_appended_paths_follow_inherited_path(self, executor, real_context):
        real_context.add_to_path("/opt/one")
        real_context.add_to_path("/opt/two")
        code = "import os; print(os.environ['PATH'])"
        result = await executor.execute(real_context, python_command(code))
        inherited = real_context.base_env["PATH"]
        assert result.sanitised_stdout() == f"{inherited}:/opt/one:/opt/two"

    @pytest.mark.asyncio
    async def test_command_env_is_applied(self, executor, real_context):
        command = python_command("import os; print(os.environ['DEBIAN_FRONTEND'])")
        command.env_var("DEBIAN_FRONTEND", "noninteractive")
        result = await executor.execute(real_context, command)
        assert result.sanitised_stdout() == "noninteractive"

    @pytest.mark.asyncio
    async def test_stdin_is_delivered(self, executor, real_context):
        command = python_command("import sys; print(sys.stdin.read().upper())", stdin="abc")
        result = await executor.execute(real_context, command)
        assert result.sanitised_stdout() == "ABC"

    @pytest.mark.asyncio
    async def test_failure_ignored_by_default(self, executor, real_context):
        result = await executor.execute(real_context, python_command("import sys; sys.exit(2)"))
        assert result.exit_code == 2

    @pytest.mark.asyncio
    async def test_throw_on_failure_raises_with_output(self, executor, real_context):
        code = "import sys; print('partial'); sys.stderr.write('boom'); sys.exit(5)"
        command = python_command(code, throw_on_failure=True)
        with pytest.raises(ExecutionFailure) as exc_info:
            await executor.execute(real_context, command)
        failure = exc_info.value
        assert failure.outcome.exit_code == 5
        assert failure.outcome.stderr == "boom"
        details = {d.field: d.message for d in failure.details}
        assert details["stdout"] == "partial\n"
        assert details["stderr"] == "boom"

    @pytest.mark.asyncio
    async def test_missing_program(self, executor, real_context):
        command = Command(program="/nonexistent/provkit-no-such-binary")
        result = await executor.execute(real_context, command)
        assert result.exit_code == 127
        assert "Failed to spawn" in result.stderr

    @pytest.mark.asyncio
    async def test_missing_path_with_appends_raises(self, executor):
        context = ExecutionContext(really_execute=True, base_env={"HOME": "/tmp"})
        context.add_to_path("/opt/bin")
        with pytest.raises(EnvironmentFailure):
            await executor.execute(context, python_command("pass"))


class TestTimeout:
    """Timeouts kill the child and report 124."""

    @pytest.mark.asyncio
    async def test_call_timeout(self, executor, real_context):
        command = python_command("import time; time.sleep(10)")
        result = await executor.execute(real_context, command, timeout=0.2)
        assert result.timed_out is True
        assert result.exit_code == 124
        assert result.success is False

    @pytest.mark.asyncio
    async def test_command_timeout(self, executor, real_context):
        command = python_command("import time; time.sleep(10)", timeout=0.2)
        result = await executor.execute(real_context, command)
        assert result.timed_out is True

    @pytest.mark.asyncio
    async def test_default_timeout(self, real_context):
        executor = CommandExecutor(default_timeout=0.2)
        result = await executor.execute(real_context, python_command("import time; time.sleep(10)"))
        assert result.timed_out is True

    @pytest.mark.asyncio
    async def test_timeout_with_throw_raises(self, executor, real_context):
        command = python_command("import time; time.sleep(10)", timeout=0.2, throw_on_failure=True)
        with pytest.raises(ExecutionFailure) as exc_info:
            await executor.execute(real_context, command)
        assert exc_info.value.outcome.timed_out

    @pytest.mark.asyncio
    async def test_fast_command_unaffected(self, executor, real_context):
        result = await executor.execute(real_context, python_command("print(1)"), timeout=30)
        assert result.success
        assert result.timed_out is False
