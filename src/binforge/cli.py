"""
Command-line interface for binforge.

This module provides the `binforge` CLI tool for building, staging and
installing the programs of a workspace.
"""

import argparse
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from binforge import __version__
from binforge.build import BuildGraph, BuildOrchestrator, BuildResult
from binforge.cli_utils import (
    EXIT_OK,
    EXIT_USAGE,
    ErrorFormatter,
    PathValidator,
    TargetSelector,
)
from binforge.config import ConfigurationError, Settings, WorkspaceConfig
from binforge.deploy import Installer, InstallResult
from binforge.log_utils import setup_logging

COMMANDS = ("build", "clean", "install", "uninstall", "status", "list")
DEFAULT_COMMAND = "build"

# Options whose value is a separate argument
OPTIONS_WITH_VALUE = {
    "-C",
    "--directory",
    "-j",
    "--jobs",
    "--target",
    "--log-file",
    "--prefix",
    "--destdir",
}


@dataclass
class CommandArgs:
    """Arguments shared by every command."""

    command: str
    workspace_dir: Path
    targets: List[str] = field(default_factory=list)
    jobs: Optional[int] = None
    rust_target: Optional[str] = None
    prefix: Optional[Path] = None
    destdir: Optional[str] = None
    force: bool = False
    log_file: Optional[Path] = None
    verbose: bool = False


@dataclass
class Context:
    """Objects created once per invocation."""

    config: WorkspaceConfig
    settings: Settings
    orchestrator: BuildOrchestrator
    graph: BuildGraph


def create_context(args: CommandArgs) -> Context:
    """Load configuration and wire up the pipeline for one invocation.

    Raises:
        ConfigurationError: If the workspace configuration or an environment
            setting is invalid
    """
    config = WorkspaceConfig.load(args.workspace_dir)
    try:
        env_settings = Settings.from_env()
    except ValueError as e:
        raise ConfigurationError(f"Invalid setting: {e}") from e
    settings = env_settings.with_overrides(
        prefix=args.prefix,
        destdir=args.destdir,
        rust_target=args.rust_target,
        jobs=args.jobs,
    )
    orchestrator = BuildOrchestrator(config, settings, verbose=args.verbose)
    graph = BuildGraph(orchestrator, jobs=settings.jobs, show_progress=not args.verbose)
    return Context(config=config, settings=settings, orchestrator=orchestrator, graph=graph)


def _print_build_result(result: BuildResult) -> None:
    if result.success:
        if result.rebuilt:
            ErrorFormatter.print_success(f"{result.target}: built ({result.build_time:.2f}s)")
        else:
            ErrorFormatter.print_success(f"{result.target}: up to date")
    else:
        ErrorFormatter.print_error(f"{result.target}: {result.error_kind} failed", result.message)


def build_command(args: CommandArgs, ctx: Context) -> int:
    """Build stale targets and stage their binaries.

    Examples:
        binforge                       # Build every target
        binforge build zkas lilith     # Build two targets
        binforge build --force taud    # Rebuild even if up to date
        binforge -j 1                  # Build one target at a time
    """
    targets = TargetSelector.select(ctx.config, args.targets)

    start_time = time.time()
    result = ctx.graph.build(targets, force=args.force)
    for target_result in result.results:
        _print_build_result(target_result)

    if args.verbose:
        print(f"Total time: {time.time() - start_time:.2f}s")
    return result.returncode


def clean_command(args: CommandArgs, ctx: Context) -> int:
    """Remove staged binaries (installed copies are kept)."""
    for target in TargetSelector.select(ctx.config, args.targets):
        if ctx.orchestrator.clean(target):
            print(f"Removed {ctx.config.staged_path(target)}")
        elif args.verbose:
            print(f"{target.name}: nothing to clean")
    return EXIT_OK


def _print_install_result(result: InstallResult, verb: str) -> None:
    if result.success:
        ErrorFormatter.print_success(f"{result.target}: {result.message}")
    else:
        ErrorFormatter.print_error(f"{result.target}: {verb} failed", result.message)


def install_command(args: CommandArgs, ctx: Context) -> int:
    """Build if needed, then copy binaries to <destdir><prefix>/bin.

    Examples:
        binforge install                           # Install to ~/.cargo/bin
        binforge install --prefix /usr/local zkas  # Install one target
        DESTDIR=/tmp/pkg binforge install          # Staged install
    """
    installer = Installer(ctx.orchestrator, ctx.settings)
    targets = TargetSelector.select(ctx.config, args.targets)

    results = ctx.graph.run(targets, installer.install)
    for result in results:
        _print_install_result(result, "install")

    for result in results:
        if not result.success:
            return result.returncode
    return EXIT_OK


def uninstall_command(args: CommandArgs, ctx: Context) -> int:
    """Remove installed binaries from <destdir><prefix>/bin."""
    installer = Installer(ctx.orchestrator, ctx.settings)
    exit_code = EXIT_OK
    for target in TargetSelector.select(ctx.config, args.targets):
        result = installer.uninstall(target)
        if not result.success:
            _print_install_result(result, "uninstall")
            if exit_code == EXIT_OK:
                exit_code = result.returncode
        elif result.removed:
            print(f"Removed {result.installed_path}")
        elif args.verbose:
            print(f"{target.name}: not installed")
    return exit_code


def status_command(args: CommandArgs, ctx: Context) -> int:
    """Show whether each target needs a rebuild."""
    exit_code = EXIT_OK
    for target in TargetSelector.select(ctx.config, args.targets):
        try:
            report = ctx.orchestrator.status(target)
        except ConfigurationError as e:
            print(f"{target.name}: error ({e})")
            exit_code = EXIT_USAGE
            continue
        state = "stale" if report.stale else "fresh"
        print(f"{target.name}: {state} ({report.reason})")
    return exit_code


def list_command(args: CommandArgs, ctx: Context) -> int:
    """List the workspace's targets."""
    for target in TargetSelector.select(ctx.config, args.targets):
        print(TargetSelector.describe(ctx.config, target))
    return EXIT_OK


HANDLERS = {
    "build": build_command,
    "clean": clean_command,
    "install": install_command,
    "uninstall": uninstall_command,
    "status": status_command,
    "list": list_command,
}


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "targets",
        nargs="*",
        metavar="TARGET",
        help="Targets to operate on (default: all targets)",
    )
    parser.add_argument(
        "-C",
        "--directory",
        dest="workspace_dir",
        type=Path,
        default=Path.cwd(),
        help="Workspace root directory (default: current directory)",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Number of targets to process in parallel (default: CPU count)",
    )
    parser.add_argument(
        "--target",
        dest="rust_target",
        default=None,
        help="Target triple to build for (default: RUST_TARGET or the host triple)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Write a debug log to this file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )


def _add_install_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--prefix",
        type=Path,
        default=None,
        help="Installation prefix (default: PREFIX or ~/.cargo)",
    )
    parser.add_argument(
        "--destdir",
        default=None,
        help="Destination root prepended to the prefix (default: DESTDIR)",
    )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="binforge",
        description="binforge - build orchestration for multi-binary workspaces",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"binforge {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    build_parser = subparsers.add_parser("build", help="Build stale targets (default)")
    _add_common_arguments(build_parser)
    build_parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Rebuild even if the staged binary is up to date",
    )

    clean_parser = subparsers.add_parser("clean", help="Remove staged binaries")
    _add_common_arguments(clean_parser)

    install_parser = subparsers.add_parser("install", help="Build and install binaries")
    _add_common_arguments(install_parser)
    _add_install_arguments(install_parser)

    uninstall_parser = subparsers.add_parser("uninstall", help="Remove installed binaries")
    _add_common_arguments(uninstall_parser)
    _add_install_arguments(uninstall_parser)

    status_parser = subparsers.add_parser("status", help="Show which targets are stale")
    _add_common_arguments(status_parser)

    list_parser = subparsers.add_parser("list", help="List workspace targets")
    _add_common_arguments(list_parser)

    return parser


def _with_default_command(argv: List[str]) -> List[str]:
    """Put the command first, inserting the default one when none is given.

    `binforge`, `binforge zkas` and `binforge -j 2` all mean `binforge build ...`.
    Options may precede the command: `binforge -C ws install` is
    `binforge install -C ws`.
    """
    if argv and argv[0] in ("-h", "--help", "--version"):
        return argv

    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg in COMMANDS:
            return [arg, *argv[:i], *argv[i + 1:]]
        if arg == "--" or not arg.startswith("-"):
            # First positional is a target name
            break
        i += 2 if arg in OPTIONS_WITH_VALUE else 1
    return [DEFAULT_COMMAND, *argv]


def main(argv: Optional[List[str]] = None) -> None:
    """binforge - build, stage and install workspace binaries."""
    parser = create_parser()
    parsed_args = parser.parse_args(_with_default_command(list(sys.argv[1:] if argv is None else argv)))

    args = CommandArgs(
        command=parsed_args.command,
        workspace_dir=parsed_args.workspace_dir,
        targets=parsed_args.targets,
        jobs=parsed_args.jobs,
        rust_target=parsed_args.rust_target,
        prefix=getattr(parsed_args, "prefix", None),
        destdir=getattr(parsed_args, "destdir", None),
        force=getattr(parsed_args, "force", False),
        log_file=parsed_args.log_file,
        verbose=parsed_args.verbose,
    )

    if args.jobs is not None and args.jobs < 1:
        parser.error("--jobs must be a positive integer")

    # Validate workspace directory exists
    PathValidator.validate_workspace_dir(args.workspace_dir)

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        ctx = create_context(args)
        exit_code = HANDLERS[args.command](args, ctx)
    except ConfigurationError as e:
        ErrorFormatter.handle_configuration_error(e)
    except PermissionError as e:
        ErrorFormatter.handle_permission_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
