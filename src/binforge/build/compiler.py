"""Abstract base classes for toolchain invocation.

This module defines the interface for build invokers so the orchestrator
does not depend on a particular toolchain, and the error types that let a
caller tell "compile failed" apart from "compile succeeded, staging failed".
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..config.targets import BuildTarget
from ..packages.toolchain import ToolchainTarget


@dataclass
class InvokeResult:
    """Result of one toolchain run."""
    success: bool
    returncode: int
    stdout: str
    stderr: str
    command: List[str] = field(default_factory=list)


class BuildError(Exception):
    """Raised when the toolchain exits with a non-zero status.

    Attributes:
        target: Name of the target that failed
        returncode: Toolchain exit status
        stderr: Toolchain diagnostic output
    """

    def __init__(self, target: str, returncode: int, stderr: str = ""):
        self.target = target
        self.returncode = returncode
        self.stderr = stderr
        message = f"Build of '{target}' failed with exit status {returncode}"
        if stderr.strip():
            message += f"\n{stderr.rstrip()}"
        super().__init__(message)


class StagingError(Exception):
    """Raised when a successful build cannot be copied to its staged path.

    Attributes:
        target: Name of the target
        source: Artifact produced by the toolchain
        destination: Staged artifact path
    """

    def __init__(self, target: str, source: Path, destination: Path, reason: str):
        self.target = target
        self.source = source
        self.destination = destination
        super().__init__(
            f"Build of '{target}' succeeded but staging {source} -> {destination} failed: {reason}"
        )


class IBuildInvoker(ABC):
    """Interface for toolchain invokers.

    Implementations are unconditional: callers decide whether a rebuild is
    needed before calling build().
    """

    @abstractmethod
    def build(self, target: BuildTarget, toolchain_target: ToolchainTarget) -> Path:
        """Build a target and stage its artifact.

        Args:
            target: Target to build
            toolchain_target: Resolved compilation target

        Returns:
            Path to the staged artifact

        Raises:
            BuildError: If the toolchain fails (nothing is staged)
            StagingError: If the toolchain succeeds but staging fails
        """
        pass

    @abstractmethod
    def artifact_path(self, target: BuildTarget, toolchain_target: ToolchainTarget) -> Path:
        """Get where the toolchain leaves a freshly built artifact."""
        pass

    @abstractmethod
    def build_command(
        self,
        target: BuildTarget,
        toolchain_target: ToolchainTarget,
    ) -> List[str]:
        """Get the toolchain command line for a target."""
        pass

    def terminate_all(self) -> int:
        """Stop toolchain processes still running; returns how many."""
        return 0

    def describe(self, target: BuildTarget, toolchain_target: Optional[ToolchainTarget] = None) -> str:
        """One-line description of what build() would run."""
        if toolchain_target is None:
            return f"build {target.name}"
        return " ".join(self.build_command(target, toolchain_target))
