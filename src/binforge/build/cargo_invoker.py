"""
Cargo invoker for building workspace binaries.

This module runs `cargo build` for a single package in release mode for an
explicit target triple, then stages the produced binary at the target's
output path in the workspace root.
"""

import logging
import subprocess
import sys
import threading
from pathlib import Path
from typing import List, Set

from ..config.settings import Settings
from ..config.targets import BuildTarget
from ..config.workspace_config import WorkspaceConfig
from ..interrupt_utils import handle_keyboard_interrupt_properly, kill_process_tree
from ..packages.toolchain import ToolchainTarget
from .compiler import BuildError, IBuildInvoker, InvokeResult, StagingError
from .staging import atomic_copy

# Shell conventions for a toolchain that cannot be started
COMMAND_NOT_FOUND = 127
COMMAND_NOT_EXECUTABLE = 126


class CargoInvoker(IBuildInvoker):
    """
    Wrapper for `cargo build`.

    Builds one package per call:
        <cargo...> build --target=<triple> --release --package <package>

    and copies target/<triple>/release/<package> to the staged path.
    """

    def __init__(self, config: WorkspaceConfig, settings: Settings, verbose: bool = False):
        """
        Initialize invoker.

        Args:
            config: Workspace configuration
            settings: Invocation settings (cargo command, RUSTFLAGS, env)
            verbose: Echo toolchain diagnostics to the console
        """
        self.config = config
        self.settings = settings
        self.verbose = verbose
        self._active: Set[subprocess.Popen] = set()
        self._active_lock = threading.Lock()

    def build_command(self, target: BuildTarget, toolchain_target: ToolchainTarget) -> List[str]:
        return [
            *self.settings.cargo,
            "build",
            f"--target={toolchain_target.triple}",
            "--release",
            "--package",
            target.package,
        ]

    def artifact_path(self, target: BuildTarget, toolchain_target: ToolchainTarget) -> Path:
        output_root = self.config.output_root(self.settings.cargo_target_dir)
        return output_root / toolchain_target.triple / "release" / target.package

    def build(self, target: BuildTarget, toolchain_target: ToolchainTarget) -> Path:
        """
        Compile a target and stage its binary.

        Args:
            target: Target to build
            toolchain_target: Resolved compilation target

        Returns:
            Path to the staged binary

        Raises:
            BuildError: If cargo fails; the previous staged binary is kept
            StagingError: If cargo succeeds but the copy fails
        """
        cmd = self.build_command(target, toolchain_target)
        logging.info(f"Building {target.name}: {' '.join(cmd)}")

        result = self.run(cmd)
        if not result.success:
            logging.error(f"Build of {target.name} failed with exit status {result.returncode}")
            raise BuildError(target.name, result.returncode, result.stderr)

        return self.stage(target, toolchain_target)

    def stage(self, target: BuildTarget, toolchain_target: ToolchainTarget) -> Path:
        """
        Copy the freshly built binary to the target's staged path.

        Raises:
            StagingError: If the artifact is missing or cannot be copied
        """
        source = self.artifact_path(target, toolchain_target)
        destination = self.config.staged_path(target)

        if not source.is_file():
            raise StagingError(target.name, source, destination, "built artifact not found")

        try:
            atomic_copy(source, destination)
        except OSError as e:
            raise StagingError(target.name, source, destination, str(e)) from e

        logging.info(f"Staged {target.name} at {destination}")
        return destination

    def run(self, cmd: List[str]) -> InvokeResult:
        """Execute a toolchain command in the workspace root."""
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=self.config.root,
                env=self.settings.toolchain_env(),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except FileNotFoundError:
            return InvokeResult(
                success=False,
                returncode=COMMAND_NOT_FOUND,
                stdout="",
                stderr=f"Toolchain not found: {cmd[0]}",
                command=cmd,
            )
        except PermissionError:
            return InvokeResult(
                success=False,
                returncode=COMMAND_NOT_EXECUTABLE,
                stdout="",
                stderr=f"Toolchain is not executable: {cmd[0]}",
                command=cmd,
            )

        stdout_lines: List[str] = []
        stderr_lines: List[str] = []

        def _drain_stdout() -> None:
            assert proc.stdout is not None
            for line in proc.stdout:
                stdout_lines.append(line)

        reader_thread = threading.Thread(target=_drain_stdout, daemon=True)

        with self._active_lock:
            self._active.add(proc)
        try:
            reader_thread.start()
            # Cargo reports progress and diagnostics on stderr
            assert proc.stderr is not None
            for line in proc.stderr:
                stderr_lines.append(line)
                logging.debug(f"[{cmd[0]}] {line.rstrip()}")
                if self.verbose:
                    sys.stderr.write(line)
                    sys.stderr.flush()
            proc.wait()
            reader_thread.join()
        except KeyboardInterrupt as ke:
            kill_process_tree(proc.pid)
            handle_keyboard_interrupt_properly(ke)
            raise  # Never reached, but satisfies type checker
        finally:
            with self._active_lock:
                self._active.discard(proc)

        proc.stdout.close()
        proc.stderr.close()

        return InvokeResult(
            success=proc.returncode == 0,
            returncode=proc.returncode,
            stdout="".join(stdout_lines),
            stderr="".join(stderr_lines),
            command=cmd,
        )

    def terminate_all(self) -> int:
        """Kill every toolchain process still running.

        Used when the user interrupts a parallel build: worker threads do
        not receive KeyboardInterrupt themselves.

        Returns:
            Number of processes killed
        """
        with self._active_lock:
            active = list(self._active)
        killed = 0
        for proc in active:
            if proc.poll() is None:
                killed += kill_process_tree(proc.pid)
        return killed
