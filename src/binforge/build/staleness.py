"""Staleness checks for staged build artifacts.

A target is stale when its staged artifact is missing, or when at least one
file of its dependency set was modified strictly after the artifact. Equal
timestamps count as up to date, so a dependency touched in the same
filesystem tick as the artifact never triggers a rebuild.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from ..config.targets import BuildTarget
from ..config.workspace_config import ConfigurationError, WorkspaceConfig
from .source_scanner import DependencyScanner, DependencySet


@dataclass
class StalenessReport:
    """Outcome of a staleness check."""

    target: str
    stale: bool
    reason: str
    output_mtime_ns: Optional[int] = None
    newest: Optional[Path] = None
    newest_mtime_ns: Optional[int] = None


class StalenessOracle:
    """Decides whether a target needs to be rebuilt."""

    def __init__(self, config: WorkspaceConfig, scanner: Optional[DependencyScanner] = None):
        self.config = config
        self.scanner = scanner or DependencyScanner(config)

    def needs_rebuild(self, target: BuildTarget) -> bool:
        """Check whether the target's staged artifact is stale.

        Args:
            target: Target to check

        Returns:
            True if the artifact is missing or older than a dependency

        Raises:
            ConfigurationError: If the dependency set cannot be enumerated
        """
        return self.check(target).stale

    def check(self, target: BuildTarget) -> StalenessReport:
        """Check staleness and report why.

        The dependency set is always enumerated first, so configuration
        errors surface even when the artifact is missing.
        """
        deps = self.scanner.scan(target)
        output = self.config.staged_path(target)

        output_mtime_ns = self._mtime_ns(output)
        if output_mtime_ns is None:
            logging.debug(f"{target.name}: staged artifact missing: {output}")
            return StalenessReport(target.name, True, "output missing")

        newest, newest_mtime_ns = self.newest_dependency(deps)
        stale = newest_mtime_ns > output_mtime_ns
        if stale:
            reason = f"{self._display(newest)} is newer than output"
        else:
            reason = "up to date"
        logging.debug(f"{target.name}: {reason}")

        return StalenessReport(
            target=target.name,
            stale=stale,
            reason=reason,
            output_mtime_ns=output_mtime_ns,
            newest=newest,
            newest_mtime_ns=newest_mtime_ns,
        )

    def explain(self, target: BuildTarget) -> str:
        """Short human-readable staleness reason."""
        return self.check(target).reason

    def newest_dependency(self, deps: DependencySet) -> Tuple[Path, int]:
        """Find the most recently modified dependency.

        Args:
            deps: Dependency set to inspect

        Returns:
            Tuple of (path, mtime in nanoseconds)

        Raises:
            ConfigurationError: If the dependency set is empty
        """
        newest: Optional[Path] = None
        newest_mtime_ns = -1
        for path in deps.all_files():
            mtime_ns = self._mtime_ns(path)
            if mtime_ns is None:
                # Vanished between scan and stat
                continue
            if mtime_ns > newest_mtime_ns:
                newest, newest_mtime_ns = path, mtime_ns

        if newest is None:
            raise ConfigurationError(f"Target '{deps.target}' has an empty dependency set")
        return newest, newest_mtime_ns

    @staticmethod
    def _mtime_ns(path: Path) -> Optional[int]:
        try:
            return path.stat().st_mtime_ns
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ConfigurationError(f"Cannot read {path}: {e.strerror or e}") from e

    def _display(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.config.root))
        except ValueError:
            return str(path)
