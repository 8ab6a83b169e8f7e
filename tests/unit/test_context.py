"""Unit tests for ExecutionContext."""

import pytest

from provkit.models.errors import EnvironmentFailure, ExecutionFailure, IOFailure
from provkit.models.execution import CommandOutcome
from provkit.services.execution import ExecutionContext, parse_os_release, read_os_release


OS_RELEASE = """PRETTY_NAME="Debian GNU/Linux 12 (bookworm)"
NAME="Debian GNU/Linux"
VERSION_ID="12"
ID=debian
HOME_URL="https://www.debian.org/"
EXTRA=a=b

not a pair
"""


class TestOsRelease:
    """Test os-release parsing."""

    def test_parses_pairs(self):
        params = parse_os_release(OS_RELEASE)
        assert params["ID"] == "debian"
        assert params["VERSION_ID"] == '"12"'

    def test_splits_on_first_equals_only(self):
        assert parse_os_release(OS_RELEASE)["EXTRA"] == "a=b"

    def test_ignores_lines_without_equals(self):
        params = parse_os_release(OS_RELEASE)
        assert "not a pair" not in params
        assert "" not in params

    def test_read_missing_file(self, tmp_path):
        with pytest.raises(IOFailure) as exc_info:
            read_os_release(str(tmp_path / "missing"))
        assert exc_info.value.path.endswith("missing")


class TestBuildEnv:
    """Environment overlay precedence."""

    def test_inherits_base_env(self, dry_context, base_env):
        assert dry_context.build_env() == base_env

    def test_vars_override_base(self):
        context = ExecutionContext(base_env={"PATH": "/bin", "LANG": "C"})
        context.add_to_env("LANG", "C.UTF-8")
        assert context.build_env()["LANG"] == "C.UTF-8"

    def test_last_write_wins(self):
        context = ExecutionContext(base_env={"PATH": "/bin"})
        context.add_to_env("FOO", "1")
        context.add_to_env("FOO", "2")
        assert context.build_env()["FOO"] == "2"

    def test_path_rebuilt_in_order(self):
        context = ExecutionContext(base_env={"PATH": "/usr/bin:/bin"})
        context.add_to_path("/opt/a")
        context.add_to_path("/opt/b")
        assert context.build_env()["PATH"] == "/usr/bin:/bin:/opt/a:/opt/b"

    def test_path_untouched_without_appends(self):
        context = ExecutionContext(base_env={"PATH": "/usr/bin"})
        assert context.build_env()["PATH"] == "/usr/bin"

    def test_command_env_below_context_vars(self):
        context = ExecutionContext(base_env={"PATH": "/bin"})
        context.add_to_env("DEBIAN_FRONTEND", "readline")
        env = context.build_env({"DEBIAN_FRONTEND": "noninteractive", "OTHER": "x"})
        assert env["DEBIAN_FRONTEND"] == "readline"
        assert env["OTHER"] == "x"

    def test_missing_path_raises_when_appending(self):
        context = ExecutionContext(base_env={})
        context.add_to_path("/opt/a")
        with pytest.raises(EnvironmentFailure):
            context.build_env()

    def test_build_env_does_not_mutate_base(self):
        context = ExecutionContext(base_env={"PATH": "/bin"})
        context.add_to_path("/opt/a")
        context.build_env()
        assert context.base_env["PATH"] == "/bin"

    def test_describe_env_shows_only_changes(self, dry_context):
        dry_context.add_to_path("/opt/a")
        dry_context.add_to_env("FOO", "1")
        assert dry_context.describe_env() == {"PATH": "$PATH:/opt/a", "FOO": "1"}


class TestSnapshot:
    """OS and architecture snapshot."""

    def test_os_params_are_read_only(self, dry_context):
        with pytest.raises(TypeError):
            dry_context.os_params["ID"] = "ubuntu"

    def test_arch_is_read_only(self, dry_context):
        with pytest.raises(AttributeError):
            dry_context.arch = "arm64"

    @pytest.mark.asyncio
    async def test_create_reads_os_release_and_arch(self, tmp_path, mock_executor):
        os_release = tmp_path / "os-release"
        os_release.write_text(OS_RELEASE)
        mock_executor.run.return_value = CommandOutcome(exit_code=0, stdout="aarch64\n")

        context = await ExecutionContext.create(
            really_execute=True,
            executor=mock_executor,
            os_release_path=str(os_release),
            environ={"PATH": "/bin"},
        )

        assert context.really_execute is True
        assert context.arch == "aarch64"
        assert context.os_params["ID"] == "debian"
        assert context.base_env == {"PATH": "/bin"}
        command = mock_executor.run.call_args.args[0]
        assert command.argv == ["arch"]
        assert command.throw_on_failure is True

    @pytest.mark.asyncio
    async def test_create_snapshots_environment_once(self, tmp_path, mock_executor):
        os_release = tmp_path / "os-release"
        os_release.write_text("ID=debian\n")
        environ = {"PATH": "/bin", "FOO": "1"}
        context = await ExecutionContext.create(
            really_execute=False,
            executor=mock_executor,
            os_release_path=str(os_release),
            environ=environ,
        )
        environ["FOO"] = "2"
        assert context.build_env()["FOO"] == "1"

    @pytest.mark.asyncio
    async def test_create_propagates_arch_failure(self, tmp_path, mock_executor):
        os_release = tmp_path / "os-release"
        os_release.write_text("ID=debian\n")
        failed = CommandOutcome(exit_code=1, stderr="arch: not found")
        mock_executor.run.side_effect = ExecutionFailure("arch", failed)
        with pytest.raises(ExecutionFailure):
            await ExecutionContext.create(
                really_execute=False,
                executor=mock_executor,
                os_release_path=str(os_release),
                environ={"PATH": "/bin"},
            )
