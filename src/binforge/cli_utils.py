"""CLI utility functions for binforge.

Helpers shared by the command handlers: target selection, colored
result and error output, and workspace directory checks.
"""

import sys
import traceback
from pathlib import Path
from typing import List, NoReturn, Sequence

from binforge.config import BuildTarget, ConfigurationError, WorkspaceConfig

# Exit codes
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130  # Standard exit code for SIGINT


class TargetSelector:
    """Resolves target names given on the command line."""

    @staticmethod
    def select(config: WorkspaceConfig, names: Sequence[str]) -> List[BuildTarget]:
        """Select targets by name.

        Args:
            config: Workspace configuration
            names: Names given on the command line (empty selects defaults)

        Returns:
            Targets in declaration order

        Raises:
            ConfigurationError: If a name is not a declared target
        """
        return config.select(names)

    @staticmethod
    def describe(config: WorkspaceConfig, target: BuildTarget) -> str:
        """One-line summary of a target for `binforge list`."""
        shared = ", ".join(target.shared_dirs) or "-"
        output = config.staged_path(target)
        try:
            output_display = str(output.relative_to(config.root))
        except ValueError:
            output_display = str(output)
        return f"{target.name:<16} {target.source_dir:<24} {shared:<28} {output_display}"


class ErrorFormatter:
    """Colored console output for command results and failures."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print a red failure headline followed by its details.

        Args:
            title: Headline (e.g., "zkas: build failed")
            message: Details such as toolchain diagnostics
        """
        print()
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}")
        if message:
            print()
            print(message)
        print()

    @staticmethod
    def print_success(message: str) -> None:
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        print()
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def handle_configuration_error(error: ConfigurationError) -> NoReturn:
        """Handle ConfigurationError with standard formatting."""
        ErrorFormatter.print_error("Configuration error", str(error))
        sys.exit(EXIT_USAGE)

    @staticmethod
    def handle_permission_error(error: PermissionError) -> NoReturn:
        ErrorFormatter.print_error("Error: Permission denied", str(error))
        sys.exit(EXIT_FAILURE)

    @staticmethod
    def handle_keyboard_interrupt() -> NoReturn:
        """Report an interrupted run and exit with the SIGINT status."""
        ErrorFormatter.print_warning("Interrupted")
        sys.exit(EXIT_INTERRUPTED)

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> NoReturn:
        """Report an error no command handler expected.

        The traceback is only shown with --verbose.
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            print("Traceback:")
            print(traceback.format_exc())

        sys.exit(EXIT_FAILURE)


class PathValidator:
    """Validates workspace paths."""

    @staticmethod
    def validate_workspace_dir(workspace_dir: Path) -> None:
        """Validate that the workspace directory exists and is a directory.

        Raises:
            SystemExit: With status 2 when -C names no directory
        """
        if not workspace_dir.exists():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path does not exist: {workspace_dir}{ErrorFormatter.RESET}"
            )
            sys.exit(EXIT_USAGE)
        if not workspace_dir.is_dir():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path is not a directory: {workspace_dir}{ErrorFormatter.RESET}"
            )
            sys.exit(EXIT_USAGE)
