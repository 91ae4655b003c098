"""
Build orchestration for a single target.

This module runs the build pipeline for one program:
- Dependency scanning and staleness check
- Target triple resolution (only when a build is needed)
- Toolchain invocation
- Staging of the produced binary

Failures are reported through BuildResult rather than raised, so a failing
target never interrupts the others when several are built together.
"""

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from ..config.settings import Settings
from ..config.targets import BuildTarget
from ..config.workspace_config import ConfigurationError, WorkspaceConfig
from ..packages.toolchain import TargetResolver, ToolchainError
from .cargo_invoker import CargoInvoker
from .compiler import BuildError, IBuildInvoker, StagingError
from .staleness import StalenessOracle, StalenessReport
from .staging import remove_if_exists

# Lock management
_locks_lock = threading.Lock()  # Master lock for the lock dictionary
_target_locks: Dict[str, threading.Lock] = {}  # Per-staged-output locks


def get_target_lock(staged_path: Path) -> threading.Lock:
    """Get or create the lock guarding one staging slot.

    Args:
        staged_path: Absolute staged artifact path

    Returns:
        Threading lock for this staging slot
    """
    key = str(staged_path)
    with _locks_lock:
        if key not in _target_locks:
            _target_locks[key] = threading.Lock()
        return _target_locks[key]


@dataclass
class BuildResult:
    """Result of running the pipeline for one target."""

    target: str
    success: bool
    staged_path: Optional[Path]
    rebuilt: bool
    build_time: float
    message: str
    error_kind: Optional[str] = None  # configuration | toolchain | build | staging
    returncode: int = 0


class BuildOrchestrator:
    """
    Orchestrates the build pipeline for workspace targets.

    Each call to build():
    1. Takes the target's staging lock
    2. Scans dependencies and checks staleness
    3. Resolves the target triple (once per orchestrator)
    4. Invokes the toolchain
    5. Stages the artifact

    Example usage:
        orchestrator = BuildOrchestrator(config, Settings.from_env())
        result = orchestrator.build(config.get_target("zkas"))
        if result.success:
            print(f"Binary: {result.staged_path}")
    """

    def __init__(
        self,
        config: WorkspaceConfig,
        settings: Optional[Settings] = None,
        invoker: Optional[IBuildInvoker] = None,
        resolver: Optional[TargetResolver] = None,
        oracle: Optional[StalenessOracle] = None,
        verbose: bool = False,
    ):
        """
        Initialize build orchestrator.

        Args:
            config: Workspace configuration
            settings: Invocation settings (defaults to the environment)
            invoker: Toolchain invoker (defaults to CargoInvoker)
            resolver: Target triple resolver (defaults to settings-based)
            oracle: Staleness oracle (defaults to the workspace scanner)
            verbose: Enable verbose output
        """
        self.config = config
        self.settings = settings or Settings.from_env()
        self.verbose = verbose
        self.invoker = invoker or CargoInvoker(config, self.settings, verbose=verbose)
        self.resolver = resolver or TargetResolver.from_settings(self.settings)
        self.oracle = oracle or StalenessOracle(config)

    def build(self, target: BuildTarget, force: bool = False) -> BuildResult:
        """
        Build a target if its staged artifact is stale.

        Args:
            target: Target to build
            force: Rebuild even when the artifact is up to date

        Returns:
            BuildResult with status, staged path and whether a rebuild ran
        """
        start_time = time.time()
        staged_path = self.config.staged_path(target)

        # Serialize concurrent builds of the same target; other targets
        # (and the toolchain runs they start) are never blocked by this lock.
        with get_target_lock(staged_path):
            try:
                report = self.oracle.check(target)
                if not report.stale and not force:
                    logging.info(f"{target.name} is up to date")
                    return BuildResult(
                        target=target.name,
                        success=True,
                        staged_path=staged_path,
                        rebuilt=False,
                        build_time=time.time() - start_time,
                        message="up to date",
                    )

                logging.info(f"Rebuilding {target.name}: {'forced' if force else report.reason}")
                toolchain_target = self.resolver.resolve()
                if self.verbose:
                    print(f"[{target.name}] {self.invoker.describe(target, toolchain_target)}")

                staged = self.invoker.build(target, toolchain_target)

            except ConfigurationError as e:
                return self._error_result(target, start_time, "configuration", str(e), 2)
            except ToolchainError as e:
                return self._error_result(target, start_time, "toolchain", str(e), 2)
            except BuildError as e:
                return self._error_result(
                    target, start_time, "build", str(e), self._exit_status(e.returncode)
                )
            except StagingError as e:
                return self._error_result(target, start_time, "staging", str(e), 1)
            except OSError as e:
                # Unreadable workspace files found while checking staleness
                return self._error_result(target, start_time, "configuration", str(e), 2)

        return BuildResult(
            target=target.name,
            success=True,
            staged_path=staged,
            rebuilt=True,
            build_time=time.time() - start_time,
            message="built",
        )

    def clean(self, target: BuildTarget) -> bool:
        """
        Remove a target's staged artifact.

        Only the staged artifact is removed; toolchain output and installed
        copies are left alone.

        Returns:
            True if a file was removed, False if nothing was staged
        """
        staged_path = self.config.staged_path(target)
        with get_target_lock(staged_path):
            removed = remove_if_exists(staged_path)
        if removed:
            logging.info(f"Removed staged artifact {staged_path}")
        return removed

    def status(self, target: BuildTarget) -> StalenessReport:
        """Report staleness without building."""
        return self.oracle.check(target)

    @staticmethod
    def _exit_status(returncode: int) -> int:
        # Signals show up as negative return codes
        return returncode if returncode > 0 else 1

    def _error_result(
        self,
        target: BuildTarget,
        start_time: float,
        kind: str,
        message: str,
        returncode: int,
    ) -> BuildResult:
        logging.error(f"{target.name}: {message}")
        return BuildResult(
            target=target.name,
            success=False,
            staged_path=None,
            rebuilt=False,
            build_time=time.time() - start_time,
            message=message,
            error_kind=kind,
            returncode=returncode,
        )
