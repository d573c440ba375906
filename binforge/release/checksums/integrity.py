# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Checksum records for release artifacts.

Every compressed artifact gets a companion `<artifact>.sha256` file in the
GNU coreutils sha256sum format:

    <sha256hex>  <filename>

Two spaces between hash and name, one line per file. Downstream users can
check a download with plain `sha256sum -c`.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from binforge.logging.logger import get_logger
from binforge.release.naming import CHECKSUM_SUFFIX
from binforge.utils.filesystem import atomic_write
from binforge.utils.hashing import verify_checksum

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a checksum verification run."""

    is_valid: bool
    checked_count: int
    mismatches: list[str] = field(default_factory=list)
    missing_files: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def format_checksum_line(digest: str, filename: str) -> str:
    return f"{digest}  {filename}\n"


def write_checksum_record(artifact_path: Path, digest: str) -> Path:
    """
    Write `<artifact>.sha256` next to the artifact.

    Returns:
        Path to the written checksum file.
    """
    checksum_path = artifact_path.with_name(artifact_path.name + CHECKSUM_SUFFIX)
    atomic_write(checksum_path, format_checksum_line(digest, artifact_path.name))

    _logger.debug(
        "Checksum record written",
        extra={"path": str(checksum_path), "sha256": digest[:16] + "..."},
    )
    return checksum_path


def parse_checksum_file(checksum_path: Path) -> dict[str, str]:
    """
    Parse a sha256sum-style file into a dict of {filename: sha256_hex}.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ValueError: If file format is invalid.
    """
    if not checksum_path.is_file():
        raise FileNotFoundError(f"Checksum file not found: {checksum_path}")

    checksums: dict[str, str] = {}
    content = checksum_path.read_text(encoding="utf-8")

    for line_num, line in enumerate(content.strip().splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        parts = line.split("  ", maxsplit=1)
        if len(parts) != 2:
            raise ValueError(
                f"Invalid checksum format at line {line_num}: expected "
                f"'<sha256>  <filename>', got: {line!r}"
            )
        sha256_hex, filename = parts
        if len(sha256_hex) != 64:
            raise ValueError(
                f"Invalid SHA256 hash length at line {line_num}: "
                f"expected 64 chars, got {len(sha256_hex)}"
            )
        # sha256sum marks binary mode with a leading '*' on the name.
        checksums[filename.lstrip("*")] = sha256_hex.lower()

    return checksums


def verify_directory(artifact_dir: Path) -> VerificationResult:
    """
    Verify every `*.sha256` record in a directory against the files it names.

    Reports ALL mismatches and missing files, not just the first.
    """
    if not artifact_dir.is_dir():
        return VerificationResult(
            is_valid=False,
            checked_count=0,
            errors=[f"Directory not found: {artifact_dir}"],
        )

    mismatches: list[str] = []
    missing_files: list[str] = []
    errors: list[str] = []
    checked = 0

    for checksum_path in sorted(artifact_dir.glob(f"*{CHECKSUM_SUFFIX}")):
        try:
            expected = parse_checksum_file(checksum_path)
        except ValueError as err:
            errors.append(f"{checksum_path.name}: {err}")
            continue

        for filename, expected_hash in sorted(expected.items()):
            file_path = artifact_dir / filename
            if not file_path.is_file():
                missing_files.append(filename)
                _logger.error("File missing during verification", extra={"file": filename})
                continue

            checked += 1
            if not verify_checksum(file_path, expected_hash):
                mismatches.append(filename)
                _logger.error(
                    "Checksum mismatch",
                    extra={"file": filename, "expected": expected_hash[:16] + "..."},
                )

    is_valid = not mismatches and not missing_files and not errors

    if is_valid:
        _logger.info("All checksums verified", extra={"checked_count": checked})
    else:
        _logger.error(
            "Checksum verification failed",
            extra={
                "mismatches": len(mismatches),
                "missing": len(missing_files),
                "errors": len(errors),
            },
        )

    return VerificationResult(
        is_valid=is_valid,
        checked_count=checked,
        mismatches=mismatches,
        missing_files=missing_files,
        errors=errors,
    )
