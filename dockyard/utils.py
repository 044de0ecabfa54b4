"""Utility functions for dockyard."""

import fcntl
import os
from pathlib import Path


def atomic_file_write(path: Path, content: str, mode: int = 0o600) -> None:
    """Write file atomically using temp file and rename with file locking.

    The temporary file gets ``mode`` before any content is written, so
    secrets never sit in a world-readable file.

    Parameters
    ----------
    path : Path
        Target file path
    content : str
        File content to write
    mode : int
        Permission bits of the written file (default: 0600)

    Raises
    ------
    OSError
        Propagated from the write after the temporary file is removed
    """
    temp_path = path.with_suffix(".tmp")
    lock_path = path.with_suffix(".lock")

    try:
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
                with os.fdopen(fd, "w") as f:
                    f.write(content)
                os.chmod(temp_path, mode)
                temp_path.rename(path)
            except Exception:
                if temp_path.exists():
                    temp_path.unlink()
                raise
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
    finally:
        try:
            lock_path.unlink()
        except OSError:
            pass
