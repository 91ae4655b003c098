"""
Build target definitions.

A build target is one independently compiled program inside the workspace.
Every target is described by the same handful of fields, so adding a new
program means adding a row to a table rather than copying build rules.
"""

from dataclasses import dataclass, replace
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class BuildTarget:
    """One program built from the workspace.

    Attributes:
        name: Unique target name within the workspace
        source_dir: Target's own source directory (relative to workspace root)
        shared_dirs: Shared source trees the target depends on, in order
        output: Staged artifact path (relative to workspace root)
        installed_name: File name used under <prefix>/bin
        package: Toolchain package name passed to the build command
        manifest: Per-binary manifest file (relative to workspace root)
    """

    name: str
    source_dir: str
    shared_dirs: Tuple[str, ...] = ()
    output: str = ""
    installed_name: str = ""
    package: str = ""
    manifest: str = ""

    def __post_init__(self) -> None:
        # Frozen dataclass: fill derived defaults through object.__setattr__
        if not self.output:
            object.__setattr__(self, "output", self.name)
        if not self.installed_name:
            object.__setattr__(self, "installed_name", self.name)
        if not self.package:
            object.__setattr__(self, "package", self.name)
        if not self.manifest:
            manifest = PurePosixPath(self.source_dir) / "Cargo.toml"
            object.__setattr__(self, "manifest", str(manifest))
        object.__setattr__(self, "shared_dirs", tuple(self.shared_dirs))

    @property
    def source_dirs(self) -> List[str]:
        """Own source directory followed by the shared ones."""
        return [self.source_dir, *self.shared_dirs]

    def with_overrides(self, **changes: Any) -> "BuildTarget":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


# Programs of the workspace and the source trees each one compiles against.
DEFAULT_TARGETS: Dict[str, BuildTarget] = {
    "zkas": BuildTarget(
        name="zkas",
        source_dir="bin/zkas",
        shared_dirs=("src/serial", "src/zkas"),
    ),
    "taud": BuildTarget(
        name="taud",
        source_dir="bin/tau/taud",
        shared_dirs=("src",),
    ),
    "darkfi-mmproxy": BuildTarget(
        name="darkfi-mmproxy",
        source_dir="bin/darkfi-mmproxy",
        shared_dirs=("src",),
    ),
    "lilith": BuildTarget(
        name="lilith",
        source_dir="bin/lilith",
        shared_dirs=("src",),
    ),
    "vanityaddr": BuildTarget(
        name="vanityaddr",
        source_dir="bin/vanityaddr",
        shared_dirs=("src",),
    ),
}


def get_default_targets() -> List[BuildTarget]:
    """Get the built-in targets in declaration order."""
    return list(DEFAULT_TARGETS.values())


def get_default_target(name: str) -> Optional[BuildTarget]:
    """Look up a built-in target by name.

    Args:
        name: Target name (e.g., 'zkas')

    Returns:
        BuildTarget, or None if the name is unknown
    """
    return DEFAULT_TARGETS.get(name)
