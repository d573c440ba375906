# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Hashing utilities for binforge.

Every published artifact ships with a SHA256 checksum of its compressed
bytes. These helpers are intentionally simple — hash a file, hash bytes,
verify a checksum.
"""

import hashlib
from pathlib import Path

HASH_ALGORITHM = "sha256"
HASH_BUFFER_SIZE = 65536  # 64 KiB


def compute_sha256(file_path: Path) -> str:
    """
    Compute the SHA256 hex digest of a file.

    Reads the file in chunks so large release binaries never have to sit in
    memory in one piece.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        OSError: If the file can't be read.
    """
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(HASH_BUFFER_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()


def compute_sha256_bytes(data: bytes) -> str:
    """Compute the SHA256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def verify_checksum(file_path: Path, expected_hash: str) -> bool:
    """Check whether a file's SHA256 matches the expected hash."""
    actual_hash = compute_sha256(file_path)
    return actual_hash == expected_hash.lower()
