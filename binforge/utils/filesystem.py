# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Safe filesystem operations for binforge.

Artifacts and their checksum records must never be observed half-written:
a publisher picking up a truncated .bz2 would push a broken release.

Atomic writes work by writing to a temporary file in the same directory as
the target, then renaming. Rename on the same filesystem is atomic on POSIX.
If the process crashes mid-write, you get a leftover temp file instead of a
corrupted target file.
"""

import os
import tempfile
from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """Create a directory (and parents) if it doesn't exist. Returns the path for chaining."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_write(target_path: Path, content: str, encoding: str = "utf-8") -> None:
    """
    Write text to a file atomically.

    Raises:
        OSError: If the write or rename fails.
    """
    atomic_write_bytes(target_path, content.encode(encoding))


def atomic_write_bytes(target_path: Path, data: bytes) -> None:
    """
    Write binary data to a file atomically.

    The temp file lives in the target's directory so the final rename stays
    on one filesystem. os.replace is used instead of rename so an existing
    target (a re-packaged artifact) is overwritten on every platform.

    Raises:
        OSError: If the write or rename fails.
    """
    ensure_directory(target_path.parent)

    temp_fd = tempfile.NamedTemporaryFile(
        mode="wb",
        dir=str(target_path.parent),
        prefix=".binforge_tmp_",
        suffix=".tmp",
        delete=False,
    )
    temp_path = Path(temp_fd.name)

    try:
        temp_fd.write(data)
        temp_fd.flush()
        temp_fd.close()
        os.replace(temp_path, target_path)
    except BaseException:
        temp_fd.close()
        if temp_path.exists():
            temp_path.unlink()
        raise
