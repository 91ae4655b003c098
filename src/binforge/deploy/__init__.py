"""
Installation functionality for binforge.

This module copies staged binaries into an installation prefix and removes
them again.
"""

from .installer import INSTALL_MODE, InstallError, Installer, InstallResult

__all__ = [
    "Installer",
    "InstallResult",
    "InstallError",
    "INSTALL_MODE",
]
