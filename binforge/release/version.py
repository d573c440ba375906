# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Version resolution from a key-value project manifest (typically Cargo.toml).

The first `version = "..."` line wins. That is the package version in a
Cargo.toml, because [package] comes first and dependency tables use inline
`{ version = ... }` syntax that never starts a line with the bare key.
"""

import logging
from pathlib import Path

from binforge.exceptions import VersionError
from binforge.logging.logger import get_logger
from binforge.release.naming import is_name_safe_version

_logger: logging.Logger = get_logger(__name__)

_QUOTE_CHARS = "\"'"


def _parse_line(line: str) -> tuple[str, str] | None:
    """Split 'key = value' into its parts, dropping a trailing # comment."""
    stripped = line.strip()
    if not stripped or stripped.startswith("#") or "=" not in stripped:
        return None
    key, _, value = stripped.partition("=")
    value = value.strip()
    if value and value[0] not in _QUOTE_CHARS and "#" in value:
        value = value.split("#", 1)[0].strip()
    elif value and value[0] in _QUOTE_CHARS:
        quote = value[0]
        closing = value.find(quote, 1)
        if closing != -1:
            value = value[: closing + 1]
    return key.strip(), value


def parse_version(text: str) -> str | None:
    """
    Return the version value from manifest text, or None if there isn't one.

    Surrounding quotes and whitespace are stripped. An empty value comes back
    as an empty string so the caller can tell 'absent' from 'empty'.
    """
    for line in text.splitlines():
        parsed = _parse_line(line)
        if parsed is None:
            continue
        key, value = parsed
        if key == "version":
            return value.strip().strip(_QUOTE_CHARS).strip()
    return None


def resolve_version(manifest_path: Path) -> str:
    """
    Read the version field from a manifest.

    Raises:
        VersionError: If the manifest can't be read, has no version field,
            or the field is empty or unusable in an artifact name (a
            pre-release suffix like '-rc1', for instance).
    """
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except OSError as err:
        raise VersionError(f"Cannot read manifest {manifest_path}: {err}") from err

    version = parse_version(text)
    if version is None:
        raise VersionError(f"No version field found in {manifest_path}")
    if not version:
        raise VersionError(f"Version field is empty in {manifest_path}")
    if not is_name_safe_version(version):
        raise VersionError(
            f"Version {version!r} in {manifest_path} cannot be used in artifact names; "
            "only letters, digits, '.', '_' and '+' are allowed"
        )

    _logger.info(
        "Version resolved",
        extra={"manifest": str(manifest_path), "version": version},
    )
    return version
