"""Compilation target resolution.

This module determines the platform triple the workspace is built for. The
triple is normally taken from the host line of `rustc -Vv`; an explicit
override (RUST_TARGET or --target) skips the query entirely, which is how
cross-compilation is requested.
"""

import logging
import subprocess
import threading
from dataclasses import dataclass
from typing import Optional

from ..config.settings import Settings


class ToolchainError(Exception):
    """Raised when the compilation target cannot be determined."""

    pass


@dataclass(frozen=True)
class ToolchainTarget:
    """Resolved compilation target.

    Attributes:
        triple: Platform/architecture triple (e.g., x86_64-unknown-linux-gnu)
        source: Where the triple came from: 'override' or 'toolchain'
    """

    triple: str
    source: str = "toolchain"

    def __str__(self) -> str:
        return self.triple


class TargetResolver:
    """Resolves the active compilation target once per invocation.

    The result is memoized on the instance only; a new invocation creates a
    new resolver, so a toolchain upgrade between runs is always picked up.
    """

    HOST_PREFIX = "host: "

    def __init__(self, rustc: str = "rustc", override: Optional[str] = None):
        """Initialize resolver.

        Args:
            rustc: Compiler executable to query
            override: Explicit triple; when set the compiler is never queried
        """
        self.rustc = rustc
        self.override = override.strip() if override else None
        self._resolved: Optional[ToolchainTarget] = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "TargetResolver":
        """Create a resolver from invocation settings."""
        return cls(rustc=settings.rustc, override=settings.rust_target)

    def resolve(self) -> ToolchainTarget:
        """Get the compilation target, querying the toolchain on first use.

        Returns:
            ToolchainTarget for this invocation

        Raises:
            ToolchainError: If the compiler cannot be run or reports no host
        """
        with self._lock:
            if self._resolved is None:
                if self.override:
                    logging.info(f"Using target override: {self.override}")
                    self._resolved = ToolchainTarget(self.override, source="override")
                else:
                    self._resolved = ToolchainTarget(self.query_host_triple(), source="toolchain")
            return self._resolved

    def query_host_triple(self) -> str:
        """Ask the compiler for its host triple.

        Returns:
            Host triple from the `host:` line of `rustc -Vv`

        Raises:
            ToolchainError: If the query fails
        """
        cmd = [self.rustc, "-Vv"]
        logging.debug(f"Querying host triple: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except FileNotFoundError as e:
            raise ToolchainError(f"Compiler not found: {self.rustc}") from e
        except OSError as e:
            raise ToolchainError(f"Failed to run {self.rustc}: {e}") from e

        if result.returncode != 0:
            raise ToolchainError(
                f"{self.rustc} -Vv exited with status {result.returncode}: {result.stderr.strip()}"
            )

        triple = self.parse_host_triple(result.stdout)
        if not triple:
            raise ToolchainError(f"No host triple in output of {self.rustc} -Vv")

        logging.info(f"Resolved host triple: {triple}")
        return triple

    @classmethod
    def parse_host_triple(cls, version_output: str) -> Optional[str]:
        """Extract the triple from verbose version output.

        Example:
            "rustc 1.80.0\\nhost: x86_64-unknown-linux-gnu\\n" -> 'x86_64-unknown-linux-gnu'
        """
        for line in version_output.splitlines():
            if line.startswith(cls.HOST_PREFIX):
                triple = line[len(cls.HOST_PREFIX):].strip()
                return triple or None
        return None
