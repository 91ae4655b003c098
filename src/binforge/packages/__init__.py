"""Toolchain handling for binforge.

The toolchain itself is external; this package only determines how to talk
to it (which target triple to build for).
"""

from .toolchain import TargetResolver, ToolchainError, ToolchainTarget

__all__ = [
    "TargetResolver",
    "ToolchainError",
    "ToolchainTarget",
]
