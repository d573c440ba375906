# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release packager — turns one raw binary into a published-ready artifact pair.

For a job on platform `ubuntu`, cpu `skylake`, features `safe`, version
`1.2.3`, the output directory ends up with:

    <output_dir>/
    ├─ proj-ubuntu-skylake-safe-1.2.3.bz2
    └─ proj-ubuntu-skylake-safe-1.2.3.bz2.sha256

bzip2 output is a pure function of its input bytes and compression level, so
packaging the same binary twice gives byte-identical artifacts and the same
checksum. Both files are written atomically; a failed run never leaves a
truncated artifact next to a valid-looking checksum.
"""

import bz2
import logging
from dataclasses import dataclass
from pathlib import Path

from binforge.exceptions import PackageError
from binforge.logging.logger import get_logger
from binforge.matrix.models import BuildJob
from binforge.release.checksums.integrity import write_checksum_record
from binforge.release.naming import artifact_filename, is_name_safe_version
from binforge.utils.filesystem import atomic_write_bytes
from binforge.utils.hashing import compute_sha256_bytes

_logger: logging.Logger = get_logger(__name__)

COMPRESSION_LEVEL = 9  # same as the bzip2 command-line default


@dataclass(frozen=True)
class Artifact:
    """A packaged, compressed, checksummed build output."""

    filename: str
    path: Path
    checksum: str
    checksum_path: Path
    size_bytes: int


def package(
    binary: Path,
    job: BuildJob,
    version: str,
    output_dir: Path,
    project: str,
) -> Artifact:
    """
    Compress a binary and write its checksum record.

    Args:
        binary: Path to the raw binary produced by the build executor.
        job: The job that produced it; supplies platform, cpu and features.
        version: Version string shared by every artifact of the run.
        output_dir: Directory the artifact pair is written into.
        project: Project name, first segment of the filename.

    Returns:
        The resulting Artifact.

    Raises:
        PackageError: If the version is empty or not name-safe, or the binary
            can't be read, compressed, or written.
    """
    if not version or not version.strip():
        raise PackageError(f"Cannot package {job.platform}/{job.label}: version is empty")
    if not is_name_safe_version(version.strip()):
        raise PackageError(
            f"Cannot package {job.platform}/{job.label}: version {version.strip()!r} "
            "would make the artifact name ambiguous"
        )

    if not binary.is_file():
        raise PackageError(f"Binary not found for {job.platform}/{job.label}: {binary}")

    filename = artifact_filename(project, job, version.strip())
    artifact_path = output_dir / filename

    try:
        raw = binary.read_bytes()
    except OSError as err:
        raise PackageError(f"Cannot read binary {binary}: {err}") from err

    compressed = bz2.compress(raw, compresslevel=COMPRESSION_LEVEL)
    digest = compute_sha256_bytes(compressed)

    try:
        atomic_write_bytes(artifact_path, compressed)
        checksum_path = write_checksum_record(artifact_path, digest)
    except OSError as err:
        raise PackageError(f"Cannot write artifact {artifact_path}: {err}") from err

    _logger.info(
        "Artifact packaged",
        extra={
            **job.log_context(),
            "artifact": filename,
            "raw_bytes": len(raw),
            "compressed_bytes": len(compressed),
            "sha256": digest[:16] + "...",
        },
    )

    return Artifact(
        filename=filename,
        path=artifact_path,
        checksum=digest,
        checksum_path=checksum_path,
        size_bytes=len(compressed),
    )
