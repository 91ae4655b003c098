"""Atomic file placement.

Staged and installed artifacts are written to a temporary file next to the
destination and renamed into place, so a reader sees either the previous
file or the complete new one, never a partial copy. An interrupted copy
leaves the previous artifact untouched.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional


def atomic_copy(source: Path, destination: Path, mode: Optional[int] = None) -> Path:
    """Copy a file into place atomically.

    Args:
        source: File to copy
        destination: Final path (overwritten if present)
        mode: Permission bits applied before the rename

    Returns:
        Destination path

    Raises:
        FileNotFoundError: If source does not exist
        OSError: If the copy or rename fails (the temporary file is removed)
    """
    source = Path(source)
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{destination.name}.", suffix=".tmp", dir=destination.parent
    )
    temp_file = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as out, open(source, "rb") as src:
            shutil.copyfileobj(src, out)
            out.flush()
            os.fsync(out.fileno())
        if mode is not None:
            os.chmod(temp_file, mode)
        else:
            shutil.copymode(source, temp_file)

        # Atomic rename
        temp_file.replace(destination)
    except BaseException:
        temp_file.unlink(missing_ok=True)
        raise

    logging.debug(f"Copied {source} -> {destination}")
    return destination


def remove_if_exists(path: Path) -> bool:
    """Remove a file if present.

    Returns:
        True if a file was removed, False if there was nothing to remove
    """
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return False
    logging.debug(f"Removed {path}")
    return True
