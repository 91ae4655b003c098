"""Configuration modules for binforge."""

from .settings import Settings
from .targets import DEFAULT_TARGETS, BuildTarget, get_default_target, get_default_targets
from .workspace_config import CONFIG_FILENAME, ConfigurationError, WorkspaceConfig

__all__ = [
    "BuildTarget",
    "DEFAULT_TARGETS",
    "get_default_targets",
    "get_default_target",
    "WorkspaceConfig",
    "ConfigurationError",
    "CONFIG_FILENAME",
    "Settings",
]
