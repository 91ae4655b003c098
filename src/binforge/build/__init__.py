"""
Build system components for binforge.

This module provides the build pipeline implementation including:
- Dependency discovery (own sources, shared source trees, manifests)
- Staleness checks against the staged artifact
- Toolchain invocation and atomic staging
- Per-target orchestration and the parallel build graph
"""

from .build_graph import BuildGraph, GraphResult
from .cargo_invoker import CargoInvoker
from .compiler import BuildError, IBuildInvoker, InvokeResult, StagingError
from .orchestrator import BuildOrchestrator, BuildResult, get_target_lock
from .source_scanner import DependencyScanner, DependencySet
from .staleness import StalenessOracle, StalenessReport
from .staging import atomic_copy, remove_if_exists

__all__ = [
    "DependencyScanner",
    "DependencySet",
    "StalenessOracle",
    "StalenessReport",
    "IBuildInvoker",
    "InvokeResult",
    "BuildError",
    "StagingError",
    "CargoInvoker",
    "atomic_copy",
    "remove_if_exists",
    "BuildOrchestrator",
    "BuildResult",
    "get_target_lock",
    "BuildGraph",
    "GraphResult",
]
