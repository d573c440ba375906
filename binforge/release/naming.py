# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Canonical artifact names.

    {project}-{platform}-{cpu_target}[-{feature_set}]-{version}

The feature segment is only present on platforms that declare a feature
axis. Platform names and feature values are dash-free (enforced by the config
schema), so the name can always be split back into its parts, which keeps
the mapping injective even for dashed CPU targets like 'x86-64'.

The version closes the name, so it must be dash-free as well: with
'1.2.3-rc1' allowed, cpu 'x86' at version '64-1.2.3' and cpu 'x86-64' at
version '1.2.3' would share a name. Versions are limited to ASCII letters,
digits, '.', '_' and '+', and both the version resolver and the packager
refuse anything else.
"""

import re

from binforge.matrix.models import BuildJob

COMPRESSED_SUFFIX = ".bz2"
CHECKSUM_SUFFIX = ".sha256"

_VERSION_SEGMENT = re.compile(r"[A-Za-z0-9._+]+", re.ASCII)


def is_name_safe_version(version: str) -> bool:
    """True if `version` can end an artifact name without making it ambiguous."""
    return _VERSION_SEGMENT.fullmatch(version) is not None


def artifact_stem(project: str, job: BuildJob, version: str) -> str:
    """Name of the uncompressed binary, without any suffix."""
    parts = [project, job.platform, job.cpu_target]
    if job.feature_set is not None:
        parts.append(job.feature_set)
    parts.append(version)
    return "-".join(parts)


def artifact_filename(project: str, job: BuildJob, version: str) -> str:
    """Name of the compressed artifact, e.g. 'proj-ubuntu-skylake-safe-1.2.3.bz2'."""
    return artifact_stem(project, job, version) + COMPRESSED_SUFFIX


def checksum_filename(artifact_name: str) -> str:
    """Name of the checksum record that accompanies an artifact."""
    return artifact_name + CHECKSUM_SUFFIX
