"""binforge - build orchestration for workspaces of several programs.

Decides per program whether a rebuild is needed, drives the external
toolchain for the resolved target triple, stages the produced binary at the
workspace root, and installs or removes it under a prefix.
"""

__version__ = "0.1.0"
