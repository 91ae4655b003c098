"""Environment-driven settings.

Settings are read from the process environment once per invocation. The
variable names match the ones the workspace's build rules have always used
(PREFIX, DESTDIR, RUSTFLAGS, RUST_TARGET, CARGO), so existing packaging
scripts keep working.
"""

import os
import shlex
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import psutil

DEFAULT_CARGO = "cargo +nightly"
DEFAULT_RUSTC = "rustc"


def default_prefix() -> Path:
    """Per-user toolchain directory used as the installation prefix."""
    return Path.home() / ".cargo"


def default_jobs() -> int:
    """Number of worker threads for the build graph."""
    return psutil.cpu_count(logical=True) or 1


@dataclass(frozen=True)
class Settings:
    """Resolved settings for one invocation.

    Attributes:
        prefix: Installation prefix (binaries go to <destdir><prefix>/bin)
        destdir: Destination root for staged/packaged installs
        rustflags: Extra compiler flags forwarded verbatim, if supplied
        rust_target: Explicit target triple, if supplied
        cargo: Toolchain command line
        rustc: Compiler used to query the host triple
        cargo_target_dir: Toolchain output root override, if supplied
        jobs: Worker count for building several targets
        env: Environment passed to the toolchain process
    """

    prefix: Path = field(default_factory=default_prefix)
    destdir: str = ""
    rustflags: Optional[str] = None
    rust_target: Optional[str] = None
    cargo: List[str] = field(default_factory=lambda: shlex.split(DEFAULT_CARGO))
    rustc: str = DEFAULT_RUSTC
    cargo_target_dir: Optional[str] = None
    jobs: int = field(default_factory=default_jobs)
    env: Dict[str, str] = field(default_factory=lambda: dict(os.environ))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables.

        Args:
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Settings populated from the environment

        Raises:
            ValueError: If BINFORGE_JOBS is not a positive integer
        """
        env = dict(os.environ if environ is None else environ)

        prefix = Path(env["PREFIX"]).expanduser() if env.get("PREFIX") else default_prefix()

        jobs = default_jobs()
        if env.get("BINFORGE_JOBS"):
            jobs = int(env["BINFORGE_JOBS"])
            if jobs < 1:
                raise ValueError(f"BINFORGE_JOBS must be a positive integer, got {jobs}")

        return cls(
            prefix=prefix,
            destdir=env.get("DESTDIR", ""),
            # An empty RUSTFLAGS is still forwarded when set
            rustflags=env.get("RUSTFLAGS"),
            rust_target=env.get("RUST_TARGET") or None,
            cargo=shlex.split(env.get("CARGO") or DEFAULT_CARGO),
            rustc=env.get("RUSTC") or DEFAULT_RUSTC,
            cargo_target_dir=env.get("CARGO_TARGET_DIR") or None,
            jobs=jobs,
            env=env,
        )

    def with_overrides(
        self,
        prefix: Optional[Path] = None,
        destdir: Optional[str] = None,
        rust_target: Optional[str] = None,
        jobs: Optional[int] = None,
    ) -> "Settings":
        """Apply command-line overrides on top of the environment."""
        changes: Dict[str, object] = {}
        if prefix is not None:
            changes["prefix"] = Path(prefix).expanduser()
        if destdir is not None:
            changes["destdir"] = destdir
        if rust_target:
            changes["rust_target"] = rust_target
        if jobs is not None:
            changes["jobs"] = jobs
        return replace(self, **changes)

    @property
    def bin_dir(self) -> Path:
        """Installation directory: <destdir><prefix>/bin.

        DESTDIR is prepended textually, the way staged installs expect.
        """
        prefix = str(self.prefix.absolute())
        return Path(f"{self.destdir}{prefix}") / "bin"

    def toolchain_env(self) -> Dict[str, str]:
        """Environment for the toolchain process.

        The whole environment passes through; RUSTFLAGS is only set when it
        was supplied, and is never inspected.
        """
        env = dict(self.env)
        env.pop("RUSTFLAGS", None)
        if self.rustflags is not None:
            env["RUSTFLAGS"] = self.rustflags
        return env
