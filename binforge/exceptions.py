# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Error taxonomy for release runs.

Two families live here and they are handled very differently:

  Structural errors (InvalidMatrixError, VersionError) mean the run's own
  configuration is broken. They abort the run before any build starts.

  Local errors (BuildError, PackageError, PublishError) belong to a single
  job or a single upload. They get recorded in the result model and logged,
  and sibling jobs carry on as if nothing happened.

Config file problems have their own hierarchy in binforge.config.exceptions.
"""

from binforge.matrix.models import BuildJob


class BinforgeError(Exception):
    """Base for every error raised by a release run."""


class InvalidMatrixError(BinforgeError):
    """Raised when a build matrix or its exclusion rules are malformed."""


class VersionError(BinforgeError):
    """Raised when no usable version can be read from the project manifest."""


class BuildError(BinforgeError):
    """
    Raised when the toolchain fails for one job.

    Carries the job and the tail of the compiler's stderr so the failure can
    be reproduced from the log line alone.
    """

    def __init__(self, job: BuildJob, stderr_excerpt: str, exit_code: int | None = None) -> None:
        self.job = job
        self.stderr_excerpt = stderr_excerpt
        self.exit_code = exit_code
        super().__init__(
            f"Build failed for {job.platform}/{job.label} (exit code {exit_code}): "
            f"{stderr_excerpt.strip().splitlines()[-1] if stderr_excerpt.strip() else 'no output'}"
        )


class PackageError(BinforgeError):
    """Raised when a built binary cannot be compressed or checksummed."""


class PublishError(BinforgeError):
    """Raised when a single file cannot be uploaded to its destination."""
