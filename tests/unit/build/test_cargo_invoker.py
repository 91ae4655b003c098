"""Tests for the cargo invoker."""

import io
from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest

from binforge.build.cargo_invoker import COMMAND_NOT_EXECUTABLE, COMMAND_NOT_FOUND, CargoInvoker
from binforge.build.compiler import BuildError, StagingError
from binforge.packages.toolchain import ToolchainTarget

TRIPLE = ToolchainTarget("x86_64-unknown-linux-gnu")


def mock_process(returncode=0, stdout="", stderr="", on_exit=None):
    proc = MagicMock()
    proc.pid = 4242
    proc.returncode = returncode
    proc.stdout = io.StringIO(stdout)
    proc.stderr = io.StringIO(stderr)

    def wait():
        if on_exit:
            on_exit()
        return returncode

    proc.wait.side_effect = wait
    return proc


class TestCargoInvoker:
    """Test command construction, toolchain runs and staging."""

    @pytest.fixture
    def config(self, workspace):
        return workspace.config()

    @pytest.fixture
    def invoker(self, config, settings):
        return CargoInvoker(config, settings)

    def write_artifact(self, config, package, content="compiled"):
        artifact = config.output_root() / TRIPLE.triple / "release" / package
        artifact.parent.mkdir(parents=True, exist_ok=True)
        artifact.write_text(content)
        return artifact

    def test_build_command(self, invoker, config):
        cmd = invoker.build_command(config.get_target("taud"), TRIPLE)
        assert cmd == [
            "cargo", "+nightly", "build",
            "--target=x86_64-unknown-linux-gnu", "--release", "--package", "taud",
        ]

    def test_describe(self, invoker, config):
        target = config.get_target("zkas")
        assert invoker.describe(target) == "build zkas"
        assert invoker.describe(target, TRIPLE).endswith("--package zkas")

    def test_artifact_path(self, invoker, config):
        path = invoker.artifact_path(config.get_target("lilith"), TRIPLE)
        assert path == config.root / "target" / TRIPLE.triple / "release" / "lilith"

    def test_artifact_path_honors_cargo_target_dir(self, config, settings, tmp_path):
        invoker = CargoInvoker(config, replace(settings, cargo_target_dir=str(tmp_path / "shared-target")))
        path = invoker.artifact_path(config.get_target("lilith"), TRIPLE)
        assert path == tmp_path / "shared-target" / TRIPLE.triple / "release" / "lilith"

    def test_build_stages_artifact(self, invoker, config):
        target = config.get_target("zkas")
        proc = mock_process(on_exit=lambda: self.write_artifact(config, "zkas", "zkas v2"))

        with patch("binforge.build.cargo_invoker.subprocess.Popen", return_value=proc) as popen:
            staged = invoker.build(target, TRIPLE)

        assert staged == config.root / "zkas"
        assert staged.read_text() == "zkas v2"
        _, kwargs = popen.call_args
        assert kwargs["cwd"] == config.root
        assert "RUSTFLAGS" not in kwargs["env"]

    def test_rustflags_passed_to_toolchain(self, config, settings):
        settings = replace(settings, rustflags="-C target-cpu=native")
        invoker = CargoInvoker(config, settings)
        proc = mock_process(on_exit=lambda: self.write_artifact(config, "lilith"))

        with patch("binforge.build.cargo_invoker.subprocess.Popen", return_value=proc) as popen:
            invoker.build(config.get_target("lilith"), TRIPLE)

        assert popen.call_args[1]["env"]["RUSTFLAGS"] == "-C target-cpu=native"

    def test_build_failure_keeps_previous_binary(self, invoker, config, workspace):
        previous = workspace.stage("zkas", content="old binary")
        self.write_artifact(config, "zkas", "stale artifact from an older run")
        proc = mock_process(returncode=101, stderr="error[E0425]: cannot find value `x`\n")

        with patch("binforge.build.cargo_invoker.subprocess.Popen", return_value=proc):
            with pytest.raises(BuildError) as exc_info:
                invoker.build(config.get_target("zkas"), TRIPLE)

        assert exc_info.value.returncode == 101
        assert "cannot find value" in str(exc_info.value)
        assert previous.read_text() == "old binary"

    def test_missing_artifact_is_staging_error(self, invoker, config):
        proc = mock_process()

        with patch("binforge.build.cargo_invoker.subprocess.Popen", return_value=proc):
            with pytest.raises(StagingError, match="built artifact not found"):
                invoker.build(config.get_target("taud"), TRIPLE)

        assert not (config.root / "taud").exists()

    def test_copy_failure_is_staging_error(self, invoker, config):
        self.write_artifact(config, "taud")
        proc = mock_process()

        with patch("binforge.build.cargo_invoker.subprocess.Popen", return_value=proc), \
                patch("binforge.build.cargo_invoker.atomic_copy", side_effect=OSError("disk full")):
            with pytest.raises(StagingError, match="disk full"):
                invoker.build(config.get_target("taud"), TRIPLE)

    def test_output_collected(self, invoker):
        proc = mock_process(stdout="{\"reason\":\"build-finished\"}\n", stderr="   Compiling zkas\n")

        with patch("binforge.build.cargo_invoker.subprocess.Popen", return_value=proc):
            result = invoker.run(["cargo", "build"])

        assert result.success
        assert result.stdout == "{\"reason\":\"build-finished\"}\n"
        assert result.stderr == "   Compiling zkas\n"

    def test_verbose_echoes_stderr_while_running(self, config, settings):
        invoker = CargoInvoker(config, settings, verbose=True)
        echoed_before_exit = []
        with patch("binforge.build.cargo_invoker.sys") as mock_sys:
            proc = mock_process(
                stderr="   Compiling zkas v0.4.1\nwarning: unused import\n",
                on_exit=lambda: echoed_before_exit.extend(
                    call.args[0] for call in mock_sys.stderr.write.call_args_list
                ),
            )
            with patch("binforge.build.cargo_invoker.subprocess.Popen", return_value=proc):
                result = invoker.run(["cargo", "build"])

        assert echoed_before_exit == ["   Compiling zkas v0.4.1\n", "warning: unused import\n"]
        assert result.stderr == "   Compiling zkas v0.4.1\nwarning: unused import\n"

    def test_quiet_does_not_echo(self, invoker):
        proc = mock_process(stderr="   Compiling zkas\n")

        with patch("binforge.build.cargo_invoker.sys") as mock_sys, \
                patch("binforge.build.cargo_invoker.subprocess.Popen", return_value=proc):
            invoker.run(["cargo", "build"])

        mock_sys.stderr.write.assert_not_called()

    def test_toolchain_not_found(self, invoker):
        with patch("binforge.build.cargo_invoker.subprocess.Popen", side_effect=FileNotFoundError()):
            result = invoker.run(["cargo", "build"])

        assert not result.success
        assert result.returncode == COMMAND_NOT_FOUND
        assert "not found" in result.stderr

    def test_toolchain_not_executable(self, invoker):
        with patch("binforge.build.cargo_invoker.subprocess.Popen", side_effect=PermissionError()):
            result = invoker.run(["cargo", "build"])

        assert result.returncode == COMMAND_NOT_EXECUTABLE

    def test_interrupt_kills_toolchain(self, invoker):
        proc = mock_process()
        proc.wait.side_effect = KeyboardInterrupt

        with patch("binforge.build.cargo_invoker.subprocess.Popen", return_value=proc), \
                patch("binforge.build.cargo_invoker.kill_process_tree") as kill, \
                patch("binforge.interrupt_utils._thread.interrupt_main"):
            with pytest.raises(KeyboardInterrupt):
                invoker.run(["cargo", "build"])

        kill.assert_called_once_with(4242)
        assert invoker.terminate_all() == 0

    def test_terminate_all_kills_running(self, invoker):
        running = MagicMock()
        running.pid = 1111
        running.poll.return_value = None
        finished = MagicMock()
        finished.pid = 2222
        finished.poll.return_value = 0
        invoker._active.update({running, finished})

        with patch("binforge.build.cargo_invoker.kill_process_tree", return_value=2) as kill:
            assert invoker.terminate_all() == 2

        kill.assert_called_once_with(1111)
