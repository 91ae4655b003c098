"""
Workspace configuration parser.

This module loads the list of build targets for a workspace. A workspace may
describe its targets in a binforge.ini file at its root; without one, the
built-in target table is used.

Example binforge.ini:
    [workspace]
    root_manifest = Cargo.toml
    source_extensions = .rs
    default_targets = zkas, lilith

    [target]
    shared_dirs = src

    [target:zkas]
    source_dir = bin/zkas
    shared_dirs =
        src/serial
        src/zkas

    [target:lilith]
    source_dir = bin/lilith
"""

import configparser
import re
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Tuple

from .targets import BuildTarget, get_default_targets

CONFIG_FILENAME = "binforge.ini"


class ConfigurationError(Exception):
    """Exception raised for invalid workspace or target configuration."""

    pass


def split_list(value: str) -> List[str]:
    """Split a multi-valued option on commas, whitespace and newlines.

    Example:
        split_list("src/serial, src/zkas") -> ['src/serial', 'src/zkas']
    """
    return [item for item in re.split(r"[\s,]+", value.strip()) if item]


class WorkspaceConfig:
    """
    Build configuration of one workspace.

    Holds the workspace root, the shared root manifest, the recognized
    source-file extensions, the toolchain output root and the ordered
    target table.

    Usage:
        config = WorkspaceConfig.load(Path("."))
        for target in config.select(["zkas"]):
            print(target.output)
    """

    TARGET_KEYS = {
        "source_dir",
        "shared_dirs",
        "output",
        "installed_name",
        "package",
        "manifest",
    }

    def __init__(
        self,
        root: Path,
        targets: Iterable[BuildTarget],
        root_manifest: str = "Cargo.toml",
        source_extensions: Tuple[str, ...] = (".rs",),
        target_dir: str = "target",
        default_targets: Optional[List[str]] = None,
    ):
        """
        Initialize and validate a workspace configuration.

        Args:
            root: Workspace root directory
            targets: Build targets in declaration order
            root_manifest: Shared top-level manifest (relative to root)
            source_extensions: Suffixes of files that count as sources
            target_dir: Toolchain output root (relative to root, or absolute)
            default_targets: Targets selected when none are named

        Raises:
            ConfigurationError: If the target table is inconsistent
        """
        self.root = Path(root).resolve()
        self.root_manifest = root_manifest
        self.source_extensions = tuple(
            ext if ext.startswith(".") else f".{ext}" for ext in source_extensions
        )
        self.target_dir = target_dir
        self.targets: Dict[str, BuildTarget] = {}

        for target in targets:
            if target.name in self.targets:
                raise ConfigurationError(f"Duplicate target name: {target.name}")
            self.targets[target.name] = target

        self.default_targets = list(default_targets or [])
        self._validate()

    @classmethod
    def load(cls, root: Path) -> "WorkspaceConfig":
        """
        Load the configuration for a workspace root.

        Args:
            root: Workspace root directory

        Returns:
            WorkspaceConfig from binforge.ini, or from the built-in table

        Raises:
            ConfigurationError: If binforge.ini exists but is invalid
        """
        root = Path(root)
        ini_path = root / CONFIG_FILENAME
        if ini_path.exists():
            return cls.from_ini(ini_path)
        return cls(root=root, targets=get_default_targets())

    @classmethod
    def from_ini(cls, ini_path: Path) -> "WorkspaceConfig":
        """
        Parse a binforge.ini file.

        Args:
            ini_path: Path to the configuration file

        Returns:
            WorkspaceConfig rooted at the file's directory

        Raises:
            ConfigurationError: If the file is missing or cannot be parsed
        """
        if not ini_path.exists():
            raise ConfigurationError(f"Configuration file not found: {ini_path}")

        parser = configparser.ConfigParser(
            allow_no_value=True, interpolation=configparser.ExtendedInterpolation()
        )
        try:
            parser.read(ini_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Failed to parse {ini_path}: {e}") from e

        workspace: Dict[str, str] = {}
        if "workspace" in parser:
            workspace = {k: (v or "").strip() for k, v in parser["workspace"].items()}

        # Base [target] section is inherited by every [target:<name>]
        base: Dict[str, str] = {}
        if "target" in parser:
            base = {k: (v or "").strip() for k, v in parser["target"].items()}

        targets = []
        for section in parser.sections():
            if not section.startswith("target:"):
                continue
            name = section.split(":", 1)[1].strip()
            options = {k: (v or "").strip() for k, v in parser[section].items()}
            targets.append(cls._target_from_options(name, {**base, **options}))

        if not targets:
            raise ConfigurationError(f"No [target:<name>] sections found in {ini_path}")

        kwargs = {}
        if workspace.get("root_manifest"):
            kwargs["root_manifest"] = workspace["root_manifest"]
        if workspace.get("source_extensions"):
            kwargs["source_extensions"] = tuple(split_list(workspace["source_extensions"]))
        if workspace.get("target_dir"):
            kwargs["target_dir"] = workspace["target_dir"]

        return cls(
            root=ini_path.parent,
            targets=targets,
            default_targets=split_list(workspace.get("default_targets", "")),
            **kwargs,
        )

    @classmethod
    def _target_from_options(cls, name: str, options: Dict[str, str]) -> BuildTarget:
        if not name:
            raise ConfigurationError("Target section with empty name")

        unknown = set(options) - cls.TARGET_KEYS
        if unknown:
            raise ConfigurationError(
                f"Target '{name}' has unknown keys: {', '.join(sorted(unknown))}"
            )
        if not options.get("source_dir"):
            raise ConfigurationError(f"Target '{name}' is missing required field: source_dir")

        return BuildTarget(
            name=name,
            source_dir=options["source_dir"],
            shared_dirs=tuple(split_list(options.get("shared_dirs", ""))),
            output=options.get("output", ""),
            installed_name=options.get("installed_name", ""),
            package=options.get("package", ""),
            manifest=options.get("manifest", ""),
        )

    def _validate(self) -> None:
        if not self.targets:
            raise ConfigurationError("Workspace declares no build targets")
        if not self.source_extensions:
            raise ConfigurationError("Workspace declares no source file extensions")

        outputs: Dict[str, str] = {}
        installed: Dict[str, str] = {}
        for target in self.targets.values():
            staged = self.staged_path(target)
            try:
                staged.relative_to(self.root)
            except ValueError:
                raise ConfigurationError(
                    f"Output of target '{target.name}' escapes the workspace: {target.output}"
                ) from None

            key = str(staged)
            if key in outputs:
                raise ConfigurationError(
                    f"Targets '{outputs[key]}' and '{target.name}' share output path {target.output}"
                )
            outputs[key] = target.name

            if target.installed_name in installed:
                raise ConfigurationError(
                    f"Targets '{installed[target.installed_name]}' and '{target.name}' "
                    + f"share installed name {target.installed_name}"
                )
            installed[target.installed_name] = target.name

        missing = [name for name in self.default_targets if name not in self.targets]
        if missing:
            raise ConfigurationError(f"Unknown default targets: {', '.join(missing)}")

    def get_target_names(self) -> List[str]:
        """Get target names in declaration order."""
        return list(self.targets)

    def get_target(self, name: str) -> BuildTarget:
        """
        Get a target by name.

        Raises:
            ConfigurationError: If the target is not declared
        """
        if name not in self.targets:
            available = ", ".join(self.targets)
            raise ConfigurationError(
                f"Unknown target '{name}'. Available targets: {available or 'none'}"
            )
        return self.targets[name]

    def select(self, names: Optional[Iterable[str]] = None) -> List[BuildTarget]:
        """
        Select targets to operate on.

        Args:
            names: Requested target names; empty or None selects the default
                targets, or every target when no defaults are configured

        Returns:
            Selected targets in declaration order, without duplicates

        Raises:
            ConfigurationError: If a requested name is unknown
        """
        requested = list(names or [])
        if not requested:
            requested = self.default_targets or self.get_target_names()

        wanted = {self.get_target(name).name for name in requested}
        return [target for name, target in self.targets.items() if name in wanted]

    def resolve(self, relative: str) -> Path:
        """Resolve a workspace-relative path (absolute paths pass through)."""
        path = Path(relative)
        if path.is_absolute():
            return path
        return self.root / PurePosixPath(relative)

    def staged_path(self, target: BuildTarget) -> Path:
        """Absolute path of a target's staged artifact."""
        return self.resolve(target.output).resolve()

    def manifest_paths(self, target: BuildTarget) -> List[Path]:
        """Per-binary manifest followed by the workspace-root manifest."""
        return [self.resolve(target.manifest), self.resolve(self.root_manifest)]

    def output_root(self, override: Optional[str] = None) -> Path:
        """Toolchain output root, honoring an optional override."""
        return self.resolve(override or self.target_dir)
