"""Tests for interrupt handling helpers."""

import subprocess
import sys
import threading
import time
from unittest.mock import patch

import psutil
import pytest

from binforge.interrupt_utils import handle_keyboard_interrupt_properly, kill_process_tree


class TestHandleKeyboardInterrupt:
    def test_main_thread_reraises(self):
        with patch("binforge.interrupt_utils._thread.interrupt_main") as interrupt_main:
            with pytest.raises(KeyboardInterrupt):
                handle_keyboard_interrupt_properly(KeyboardInterrupt())

        interrupt_main.assert_not_called()

    def test_worker_thread_signals_main(self):
        raised = []

        def worker():
            try:
                handle_keyboard_interrupt_properly(KeyboardInterrupt())
            except KeyboardInterrupt:
                raised.append(True)

        with patch("binforge.interrupt_utils._thread.interrupt_main") as interrupt_main:
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()

        interrupt_main.assert_called_once()
        assert raised == [True]


class TestKillProcessTree:
    def test_kills_parent_and_child(self):
        # Parent spawns a sleeping child, then sleeps itself
        script = (
            "import subprocess, sys, time; "
            "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(60)']); "
            "time.sleep(60)"
        )
        proc = subprocess.Popen([sys.executable, "-c", script])
        try:
            parent = psutil.Process(proc.pid)
            for _ in range(100):
                if parent.children():
                    break
                time.sleep(0.05)
            children = parent.children(recursive=True)

            signalled = kill_process_tree(proc.pid, timeout=5)

            assert signalled == len(children) + 1
            proc.wait(timeout=5)
            for child in children:
                assert not child.is_running() or child.status() == psutil.STATUS_ZOMBIE
        finally:
            if proc.poll() is None:
                proc.kill()

    def test_missing_process(self):
        with patch("binforge.interrupt_utils.psutil.Process", side_effect=psutil.NoSuchProcess(999999)):
            assert kill_process_tree(999999) == 0
