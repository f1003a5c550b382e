"""Exclusive-lock writes for local files.

Uses ``fcntl.flock`` on POSIX systems and ``msvcrt.locking`` on Windows.
"""

import logging
import os
import platform

logger = logging.getLogger(__name__)


class FileLockError(OSError):
    """Raised when a file lock cannot be acquired or released."""
    pass


def acquire_lock(file_handle):
    """Block until an exclusive lock on ``file_handle`` is held."""
    if platform.system() == "Windows":
        import msvcrt

        try:
            file_handle.seek(0)
            msvcrt.locking(file_handle.fileno(), msvcrt.LK_LOCK, 1)
        except OSError as e:
            raise FileLockError(f"msvcrt.locking failed: {e}") from e
    else:
        import fcntl

        try:
            fcntl.flock(file_handle.fileno(), fcntl.LOCK_EX)
        except OSError as e:
            raise FileLockError(f"fcntl.flock failed: {e}") from e

    logger.debug(f"Acquired lock on {file_handle.name}")


def release_lock(file_handle):
    """Release a lock taken with :func:`acquire_lock`."""
    if platform.system() == "Windows":
        import msvcrt

        try:
            file_handle.seek(0)
            msvcrt.locking(file_handle.fileno(), msvcrt.LK_UNLCK, 1)
        except OSError as e:
            raise FileLockError(f"msvcrt.locking unlock failed: {e}") from e
    else:
        import fcntl

        try:
            fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)
        except OSError as e:
            raise FileLockError(f"fcntl.flock unlock failed: {e}") from e

    logger.debug(f"Released lock on {file_handle.name}")


def write_bytes_locked(path: str, data: bytes) -> int:
    """Write ``data`` to ``path`` while holding an exclusive lock.

    The file is created if missing and truncated only once the lock is held.

    Returns:
        Number of bytes written
    """
    flags = os.O_WRONLY | os.O_CREAT | getattr(os, 'O_BINARY', 0)
    fd = os.open(path, flags, 0o666)
    with os.fdopen(fd, 'wb') as handle:
        acquire_lock(handle)
        try:
            handle.truncate(0)
            handle.seek(0)
            written = handle.write(data)
            handle.flush()
        finally:
            release_lock(handle)
    return written
