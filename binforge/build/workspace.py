# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Job-scoped build workspaces.

Every job gets a fresh temporary directory. The toolchain writes all of its
output there (CARGO_TARGET_DIR points inside it), so parallel jobs never share
mutable compiler state, and a failed job leaves nothing behind once the
workspace is removed.
"""

import re
import shutil
import tempfile
from pathlib import Path
from types import TracebackType

from binforge.logging.logger import get_logger
from binforge.matrix.models import BuildJob

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.+-]")


def _workspace_prefix(job: BuildJob) -> str:
    parts = [job.platform, job.cpu_target]
    if job.feature_set is not None:
        parts.append(job.feature_set)
    return "binforge_" + "_".join(_UNSAFE_CHARS.sub("_", part) for part in parts) + "_"


def create_workspace(job: BuildJob, base_dir: Path | None = None) -> Path:
    """Create an empty, uniquely named directory for one job."""
    if base_dir is not None:
        base_dir.mkdir(parents=True, exist_ok=True)
    workspace = Path(
        tempfile.mkdtemp(
            prefix=_workspace_prefix(job),
            dir=str(base_dir) if base_dir else None,
        )
    )
    logger.debug("Workspace created", extra={**job.log_context(), "path": str(workspace)})
    return workspace


def cleanup_workspace(workspace: Path) -> None:
    """Remove a workspace directory and everything inside it."""
    if workspace.is_dir():
        shutil.rmtree(workspace, ignore_errors=True)
        logger.debug("Workspace cleaned up", extra={"path": str(workspace)})


class JobWorkspace:
    """
    Context manager that creates a workspace on enter and removes it on exit.

    Usage:
        with JobWorkspace(job, base_dir) as workspace:
            binary = executor.build(job, workspace)
            artifact = package(binary, ...)
        # directory is gone here unless keep=True

    The artifact is written to the platform's output directory, not into
    the workspace, so it survives the cleanup.
    """

    def __init__(self, job: BuildJob, base_dir: Path | None = None, keep: bool = False) -> None:
        self._job = job
        self._base_dir = base_dir
        self._keep = keep
        self._workspace: Path | None = None

    def __enter__(self) -> Path:
        self._workspace = create_workspace(self._job, self._base_dir)
        return self._workspace

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._workspace is None:
            return
        if self._keep:
            logger.info(
                "Keeping workspace",
                extra={**self._job.log_context(), "path": str(self._workspace)},
            )
            return
        cleanup_workspace(self._workspace)
