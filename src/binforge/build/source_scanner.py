"""
Dependency file discovery.

This module handles:
- Collecting the manifest files a target depends on
- Recursively scanning the target's own source directory
- Recursively scanning each shared source directory the target declares
- Building an ordered, de-duplicated dependency set for staleness checks

The dependency set is never stored; it is recomputed from the filesystem on
every invocation.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Set, Tuple

from ..config.targets import BuildTarget
from ..config.workspace_config import ConfigurationError, WorkspaceConfig


@dataclass
class DependencySet:
    """Files whose content affects a target's compiled output."""

    target: str
    manifests: List[Path]                 # Per-binary manifest, then root manifest
    own_sources: List[Path]               # Sources under the target's source_dir
    shared_sources: List[Path] = field(default_factory=list)  # Sources under shared_dirs
    skipped: List[Path] = field(default_factory=list)         # Broken symlinks

    def all_files(self) -> List[Path]:
        """Get every dependency in order, each path listed once."""
        seen: Set[Path] = set()
        ordered = []
        for path in self.manifests + self.own_sources + self.shared_sources:
            if path not in seen:
                seen.add(path)
                ordered.append(path)
        return ordered

    def __len__(self) -> int:
        return len(self.all_files())


class DependencyScanner:
    """
    Enumerates the dependency set of a build target.

    The scanner:
    1. Adds the target manifest and the workspace-root manifest
    2. Walks the target's own source directory (following symlinks)
    3. Walks each shared source directory in declaration order
    4. Keeps files matching the workspace's source extensions
    5. Drops broken symlinks instead of failing
    """

    # Directories never scanned for sources
    EXCLUDED_DIRS = {".git", ".binforge", "__pycache__", "node_modules"}

    def __init__(self, config: WorkspaceConfig):
        """
        Initialize dependency scanner.

        Args:
            config: Workspace configuration (root, extensions, output root)
        """
        self.config = config

    def scan(self, target: BuildTarget) -> DependencySet:
        """
        Scan all dependencies of a target.

        Args:
            target: Target to scan

        Returns:
            DependencySet with every discovered dependency

        Raises:
            ConfigurationError: If a manifest or source directory is missing,
                or the target has no source files of its own
        """
        manifests = []
        for manifest in self.config.manifest_paths(target):
            if not manifest.is_file():
                raise ConfigurationError(
                    f"Manifest of target '{target.name}' not found: {manifest}"
                )
            manifests.append(manifest)

        skipped: List[Path] = []

        own_dir = self._require_dir(target, target.source_dir)
        own_sources = self._scan_dir(own_dir, skipped)
        if not own_sources:
            raise ConfigurationError(
                f"Target '{target.name}' has no source files under {own_dir}"
            )

        shared_sources: List[Path] = []
        for shared in target.shared_dirs:
            shared_dir = self._require_dir(target, shared)
            shared_sources.extend(self._scan_dir(shared_dir, skipped))

        deps = DependencySet(
            target=target.name,
            manifests=manifests,
            own_sources=own_sources,
            shared_sources=shared_sources,
            skipped=skipped,
        )
        logging.debug(
            f"Scanned {target.name}: {len(deps.own_sources)} own, "
            f"{len(deps.shared_sources)} shared, {len(skipped)} skipped"
        )
        return deps

    def is_source_file(self, path: Path) -> bool:
        """Check whether a file counts as a source file."""
        return path.suffix in self.config.source_extensions

    def _require_dir(self, target: BuildTarget, relative: str) -> Path:
        directory = self.config.resolve(relative)
        if not directory.is_dir():
            raise ConfigurationError(
                f"Source directory of target '{target.name}' not found: {directory}"
            )
        if not os.access(directory, os.R_OK | os.X_OK):
            raise ConfigurationError(
                f"Source directory of target '{target.name}' is not readable: {directory}"
            )
        return directory

    def _scan_dir(self, directory: Path, skipped: List[Path]) -> List[Path]:
        """
        Recursively collect source files under a directory.

        Args:
            directory: Directory to walk
            skipped: Receives broken symlinks that were left out

        Returns:
            Sorted list of source file paths
        """
        sources = []
        for path in self._walk(directory):
            if not self.is_source_file(path):
                continue
            if path.is_symlink() and not path.exists():
                logging.debug(f"Ignoring broken symlink: {path}")
                skipped.append(path)
                continue
            sources.append(path)
        return sorted(sources)

    def _walk(self, directory: Path) -> Iterator[Path]:
        output_root = self._real(self.config.output_root())
        visited: Set[Tuple[int, int]] = set()

        for dirpath, dirnames, filenames in os.walk(
            directory, onerror=self._unreadable, followlinks=True
        ):
            stat = os.stat(dirpath)
            key = (stat.st_dev, stat.st_ino)
            if key in visited:
                # Symlink cycle, or a tree reached twice through links
                dirnames[:] = []
                continue
            visited.add(key)

            dirnames[:] = sorted(
                name
                for name in dirnames
                if name not in self.EXCLUDED_DIRS
                and self._real(Path(dirpath) / name) != output_root
            )
            for name in filenames:
                yield Path(dirpath) / name

    @staticmethod
    def _unreadable(err: OSError) -> None:
        # A directory that cannot be listed would hide its sources
        raise ConfigurationError(f"Source directory is not readable: {err.filename}") from err

    @staticmethod
    def _real(path: Path) -> Path:
        return Path(os.path.realpath(path))
