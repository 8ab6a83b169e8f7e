"""
provkit command-line interface.

Usage:
  provkit port                         # First free port in the default window
  provkit ports 3 --start 50000        # First free run of 3 ports
  provkit block ~/.profile path 'export PATH=$PATH:/opt/bin'
  provkit doc-set config.yaml a.b c v  # Set a.b.c = v
  provkit doc-flatten config.yaml
  provkit wait my-container --timeout-ms 10000
  provkit kill my-container
  provkit apt install curl jq
  provkit exec --root -- systemctl restart nginx
  provkit ps node --kill

Commands that change the system only describe what they would do unless
--execute is given (or PROVKIT_REALLY_EXECUTE is set).
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.table import Table

from .config import Settings, settings as default_settings
from .models.errors import ProvisioningError
from .services.config import MarkedBlock, apply_block, dump_document, flatten, insert, load_document
from .services.container import LifecycleMonitor
from .services.execution import CommandExecutor, ExecutionContext
from .services.network import find_available_port, find_available_ports
from .services.process import SystemProcess
from .services.provisioning import Provisioner
from .utils.filters import FilterSet
from .utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)


# ============================================================================
# Argument parsing
# ============================================================================

def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="provkit",
        description="Provision and inspect machines.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        default=settings.execution.really_execute,
        help="Really run commands instead of describing them",
    )
    parser.add_argument("--log-level", default=settings.logging.log_level)
    parser.add_argument("--log-format", default=settings.logging.log_format, choices=["json", "console"])
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.execution.command_timeout,
        help="Seconds before a spawned command is killed",
    )

    lifecycle = settings.lifecycle

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("port", help="Find a free port")
    p.add_argument("--start", type=int, default=lifecycle.port_search_start)
    p.add_argument("--window", type=int, default=lifecycle.port_search_window)

    p = sub.add_parser("ports", help="Find a free contiguous port range")
    p.add_argument("count", type=int)
    p.add_argument("--start", type=int, default=lifecycle.port_search_start)
    p.add_argument("--window", type=int, default=lifecycle.port_search_window)

    p = sub.add_parser("block", help="Apply a marked block to a text file")
    p.add_argument("file", type=Path)
    p.add_argument("block_id")
    p.add_argument("lines", nargs="*")
    p.add_argument("--prefix", default=settings.marker_prefix)
    p.add_argument("--create", action="store_true", help="Create the file if missing")

    p = sub.add_parser("profile", help="Apply a marked block to the shell profile")
    p.add_argument("block_id")
    p.add_argument("lines", nargs="*")

    p = sub.add_parser("doc-set", help="Set a key in a YAML document")
    p.add_argument("file", type=Path)
    p.add_argument("key_path", help="Dotted path to the parent mapping; '' for the root")
    p.add_argument("key")
    p.add_argument("value")

    p = sub.add_parser("doc-flatten", help="Print a YAML document with dotted keys")
    p.add_argument("file", type=Path)

    p = sub.add_parser("wait", help="Wait for a container to start or stop")
    p.add_argument("name")
    p.add_argument("--stopped", action="store_true", help="Wait until stopped instead")
    p.add_argument("--timeout-ms", type=int, default=lifecycle.lifecycle_timeout_ms)
    p.add_argument("--poll-ms", type=int, default=lifecycle.lifecycle_poll_interval_ms)

    p = sub.add_parser("kill", help="Kill and remove a container, best effort")
    p.add_argument("name")

    p = sub.add_parser("apt", help="Package management")
    p.add_argument("action", choices=["update", "upgrade", "install", "remove"])
    p.add_argument("packages", nargs="*")

    p = sub.add_parser("keyring", help="Install a package signing keyring")
    p.add_argument("url")
    p.add_argument("name")

    p = sub.add_parser("exec", help="Run a command")
    p.add_argument("--root", action="store_true", help="Run with privilege elevation")
    p.add_argument("--path", action="append", default=[], help="Append to PATH")
    p.add_argument("--env", action="append", default=[], metavar="NAME=VALUE")
    p.add_argument("argv", nargs=argparse.REMAINDER)

    p = sub.add_parser("ps", help="Find (and kill) local processes")
    p.add_argument("substring")
    p.add_argument("--filter", action="append", default=[], help="Regex on process name")
    p.add_argument("--kill", action="store_true")

    return parser


# ============================================================================
# Command handlers
# ============================================================================

def _split_key_path(key_path: str) -> List[str]:
    return [part for part in key_path.split(".") if part]


async def _context(args, settings: Settings, executor: CommandExecutor) -> ExecutionContext:
    return await ExecutionContext.create(
        really_execute=args.execute,
        executor=executor,
        os_release_path=settings.execution.os_release_path,
    )


def _provisioner(context: ExecutionContext, executor: CommandExecutor, settings: Settings) -> Provisioner:
    return Provisioner(
        context,
        executor,
        package_manager=settings.execution.package_manager,
        shell_binary=settings.execution.shell_binary,
        marker_prefix=settings.marker_prefix,
        profile_file=settings.profile_file,
        keyring_dir=settings.keyring_dir,
        keyring_mode=settings.keyring_mode,
        download_timeout=settings.download_timeout,
    )


async def dispatch(args, settings: Settings) -> int:
    executor = CommandExecutor(
        privilege_command=settings.execution.privilege_command,
        default_timeout=args.timeout,
    )

    if args.command == "port":
        console.print(find_available_port(args.start, args.window))
        return 0

    if args.command == "ports":
        console.print(find_available_ports(args.start, args.window, args.count))
        return 0

    if args.command == "block":
        block = MarkedBlock(block_id=args.block_id, content=tuple(args.lines), prefix=args.prefix)
        changed = apply_block(args.file, block, create=args.create)
        console.print("[green]updated[/green]" if changed else "unchanged")
        return 0

    if args.command == "doc-set":
        document = load_document(args.file) if args.file.exists() else {}
        insert(document, _split_key_path(args.key_path), args.key, args.value)
        dump_document(document, args.file)
        return 0

    if args.command == "doc-flatten":
        flat = flatten(load_document(args.file))
        if not isinstance(flat, dict):
            console.print(flat)
            return 0
        table = Table(box=box.SIMPLE)
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        for key, value in flat.items():
            table.add_row(str(key), str(value))
        console.print(table)
        return 0

    if args.command == "ps":
        finder = SystemProcess()
        if args.kill:
            killed = finder.kill_process(args.substring)
            console.print(f"Killed {len(killed)} process(es)")
            return 0
        table = Table(box=box.SIMPLE)
        table.add_column("PID", justify="right")
        table.add_column("Name", style="cyan")
        table.add_column("Command line")
        for entry in finder.find_process(args.substring, FilterSet(args.filter)):
            table.add_row(str(entry.pid), entry.name, entry.cmdline)
        console.print(table)
        return 0

    context = await _context(args, settings, executor)

    if args.command == "wait":
        monitor = LifecycleMonitor(executor, context, runtime=settings.lifecycle.container_runtime)
        waiter = monitor.wait_until_stopped if args.stopped else monitor.wait_until_running
        reached = await waiter(args.name, args.timeout_ms, args.poll_ms)
        console.print("[green]reached[/green]" if reached else "[red]timed out[/red]")
        return 0 if reached else 2

    if args.command == "kill":
        monitor = LifecycleMonitor(executor, context, runtime=settings.lifecycle.container_runtime)
        result = await monitor.kill(args.name)
        for step in result.failures:
            console.print(f"[yellow]ignored failure:[/yellow] {step.action}")
        return 0

    provisioner = _provisioner(context, executor, settings)

    if args.command == "apt":
        if args.action == "update":
            await provisioner.apt_update()
        elif args.action == "upgrade":
            await provisioner.apt_upgrade()
        elif args.action == "install":
            await provisioner.apt_install(args.packages)
        else:
            await provisioner.apt_remove(args.packages)
        return 0

    if args.command == "keyring":
        await provisioner.install_keyring(args.url, args.name)
        return 0

    if args.command == "profile":
        await provisioner.append_profile(args.block_id, args.lines)
        return 0

    if args.command == "exec":
        argv = args.argv[1:] if args.argv[:1] == ["--"] else args.argv
        if not argv:
            console.print("[red]Error:[/red] nothing to execute")
            return 1
        for path in args.path:
            context.add_to_path(path)
        for assignment in args.env:
            name, _, value = assignment.partition("=")
            context.add_to_env(name, value)
        command = executor.as_root(argv) if args.root else executor.build(argv[0], argv[1:])
        command.log_output = True
        outcome = await executor.execute(context, command)
        return outcome.exit_code

    return 1


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    # .env values also reach spawned commands
    load_dotenv()
    settings = settings or default_settings
    args = build_parser(settings).parse_args(argv)
    log_config = settings.logging
    setup_logging(
        log_level=args.log_level,
        log_format=args.log_format,
        log_file=log_config.log_file,
        max_size_mb=log_config.log_max_size_mb,
        backup_count=log_config.log_backup_count,
    )
    if args.execute:
        logger.warning("Real execution enabled; commands will change this system")

    try:
        return asyncio.run(dispatch(args, settings))
    except ProvisioningError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        console.print_json(e.to_response().model_dump_json())
        return 1
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
