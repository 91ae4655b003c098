"""Utilities for handling KeyboardInterrupt and stopping toolchain processes.

KeyboardInterrupt must reach the main thread, and a toolchain run that is
interrupted must not leave compiler processes behind. Staged artifacts are
only replaced by an atomic rename after a complete copy, so killing a build
at any point leaves the last good binary in place.
"""

import _thread
import logging
import threading

import psutil


def handle_keyboard_interrupt_properly(ke: KeyboardInterrupt) -> None:
    """Make sure the main thread sees an interrupt, then re-raise it.

    Called from except blocks that may run on a worker thread, where the
    interrupt would otherwise stop only that thread.

    Raises:
        KeyboardInterrupt: Always
    """
    if threading.current_thread() is not threading.main_thread():
        _thread.interrupt_main()
    raise ke


def kill_process_tree(pid: int, timeout: float = 3.0) -> int:
    """Terminate a process and all of its children.

    Children are terminated before their parents. Processes that ignore
    SIGTERM for `timeout` seconds are killed.

    Args:
        pid: Root process id
        timeout: Seconds to wait for graceful termination

    Returns:
        Number of processes signalled
    """
    try:
        root = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return 0

    try:
        children = root.children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    processes = list(reversed(children)) + [root]
    signalled = []
    for proc in processes:
        try:
            proc.terminate()
            signalled.append(proc)
            logging.debug(f"Terminated process {proc.pid}")
        except psutil.NoSuchProcess:
            pass  # Already dead
        except psutil.AccessDenied as e:
            logging.warning(f"Failed to terminate process {proc.pid}: {e}")

    _gone, alive = psutil.wait_procs(signalled, timeout=timeout)
    for proc in alive:
        try:
            proc.kill()
            logging.warning(f"Force killed stubborn process {proc.pid}")
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as e:
            logging.warning(f"Failed to force kill process {proc.pid}: {e}")

    return len(signalled)
