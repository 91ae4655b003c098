"""
Installation of staged binaries into a prefix.

This module copies a target's staged binary to <destdir><prefix>/bin and
removes it again. Installing always runs the build pipeline first, which is
a no-op when the staged binary is up to date.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..build.orchestrator import BuildOrchestrator, BuildResult
from ..build.staging import atomic_copy, remove_if_exists
from ..config.settings import Settings
from ..config.targets import BuildTarget

# Installed binaries are world-readable and executable
INSTALL_MODE = 0o755


@dataclass
class InstallResult:
    """Result of an install or uninstall operation."""

    target: str
    success: bool
    message: str
    installed_path: Optional[Path] = None
    rebuilt: bool = False
    removed: bool = False
    build_result: Optional[BuildResult] = None
    returncode: int = 0


class InstallError(Exception):
    """Raised when a binary cannot be installed or removed."""

    pass


class Installer:
    """Manages installed copies of workspace binaries."""

    def __init__(self, orchestrator: BuildOrchestrator, settings: Optional[Settings] = None):
        """Initialize installer.

        Args:
            orchestrator: Build pipeline used to refresh staged binaries
            settings: Invocation settings providing PREFIX and DESTDIR
        """
        self.orchestrator = orchestrator
        self.settings = settings or orchestrator.settings

    @property
    def bin_dir(self) -> Path:
        """Installation directory (<destdir><prefix>/bin)."""
        return self.settings.bin_dir

    def installed_path(self, target: BuildTarget) -> Path:
        """Path of a target's installed binary."""
        return self.bin_dir / target.installed_name

    def install(self, target: BuildTarget) -> InstallResult:
        """Build a target if needed, then install it.

        Args:
            target: Target to install

        Returns:
            InstallResult; on a failed build, the build's result and exit
            status are carried through unchanged
        """
        build_result = self.orchestrator.build(target)
        if not build_result.success:
            return InstallResult(
                target=target.name,
                success=False,
                message=build_result.message,
                build_result=build_result,
                returncode=build_result.returncode,
            )

        try:
            installed = self._install_file(target, build_result)
        except InstallError as e:
            logging.error(f"{target.name}: {e}")
            return InstallResult(
                target=target.name,
                success=False,
                message=str(e),
                rebuilt=build_result.rebuilt,
                build_result=build_result,
                returncode=1,
            )

        return InstallResult(
            target=target.name,
            success=True,
            message=f"installed {installed}",
            installed_path=installed,
            rebuilt=build_result.rebuilt,
            build_result=build_result,
        )

    def uninstall(self, target: BuildTarget) -> InstallResult:
        """Remove a target's installed binary.

        Nothing installed is not an error.
        """
        path = self.installed_path(target)
        try:
            removed = remove_if_exists(path)
        except OSError as e:
            message = f"Failed to remove {path}: {e}"
            logging.error(f"{target.name}: {message}")
            return InstallResult(
                target=target.name,
                success=False,
                message=message,
                installed_path=path,
                returncode=1,
            )

        if removed:
            logging.info(f"Uninstalled {target.name} from {path}")
        return InstallResult(
            target=target.name,
            success=True,
            message=f"removed {path}" if removed else "not installed",
            installed_path=path,
            removed=removed,
        )

    def _install_file(self, target: BuildTarget, build_result: BuildResult) -> Path:
        staged = build_result.staged_path
        if staged is None or not staged.is_file():
            raise InstallError(f"Staged binary of '{target.name}' not found: {staged}")

        bin_dir = self.bin_dir
        try:
            bin_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InstallError(f"Cannot create {bin_dir}: {e}") from e

        if not os.access(bin_dir, os.W_OK | os.X_OK):
            raise InstallError(f"Permission denied: {bin_dir}")

        destination = bin_dir / target.installed_name
        try:
            atomic_copy(staged, destination, mode=INSTALL_MODE)
        except OSError as e:
            raise InstallError(f"Failed to install {staged} -> {destination}: {e}") from e

        logging.info(f"Installed {target.name} to {destination}")
        return destination
