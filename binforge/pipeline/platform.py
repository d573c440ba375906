# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Platform pipeline — plan, build, and package everything for one platform.

For each platform:
  1. Plan the matrix once (structural errors propagate and abort the run)
  2. Run build → package for every job on a bounded thread pool
  3. Record each job's outcome, success or failure, without letting one
     job's failure touch another
  4. Return the outcomes in planner order, whatever order they finished in

The concurrency bound exists because compilers are memory-hungry; it is
configured per platform as max_parallel_jobs.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from binforge.build.executor import BuildExecutor
from binforge.build.workspace import JobWorkspace
from binforge.config.schema import PlatformConfig
from binforge.exceptions import BuildError, PackageError
from binforge.logging.logger import get_logger
from binforge.matrix.models import BuildJob
from binforge.matrix.planner import plan_jobs
from binforge.release.packaging.packager import Artifact, package

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class JobOutcome:
    """Either Success(artifact) or Failure(error) for one job."""

    job: BuildJob
    artifact: Artifact | None = None
    error: str | None = None
    stderr_excerpt: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.artifact is not None


@dataclass(frozen=True)
class PlatformResult:
    """Every job outcome for one platform, in planner order."""

    platform: str
    outcomes: list[JobOutcome] = field(default_factory=list)

    @property
    def artifacts(self) -> list[Artifact]:
        return [o.artifact for o in self.outcomes if o.artifact is not None]

    @property
    def successes(self) -> list[JobOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failures(self) -> list[JobOutcome]:
        return [o for o in self.outcomes if not o.succeeded]


class PlatformPipeline:
    """Runs one platform's matrix from plan to packaged artifacts."""

    def __init__(
        self,
        platform: PlatformConfig,
        source_dir: Path,
        output_dir: Path,
        project: str,
        workspace_dir: Path | None = None,
        keep_workspaces: bool = False,
        executor: BuildExecutor | None = None,
    ) -> None:
        self.platform = platform
        self._output_dir = output_dir
        self._project = project
        self._workspace_dir = workspace_dir
        self._keep_workspaces = keep_workspaces
        self.executor = executor or BuildExecutor(platform.toolchain, source_dir)

    def plan(self, version: str) -> list[BuildJob]:
        """Plan this platform's jobs. Raises InvalidMatrixError on a bad matrix."""
        return plan_jobs(
            self.platform.name,
            self.platform.matrix_axes(),
            self.platform.exclusion_rules(),
            version,
        )

    def run(self, version: str, jobs: list[BuildJob] | None = None) -> PlatformResult:
        """
        Build and package every job of this platform.

        Args:
            version: Resolved version shared by the whole run.
            jobs: Pre-planned jobs. When omitted, the matrix is planned here.

        Returns:
            PlatformResult with one outcome per job, in planner order.

        Raises:
            InvalidMatrixError: Only when planning happens here and fails.
        """
        if jobs is None:
            jobs = self.plan(version)

        _logger.info(
            "Platform pipeline started",
            extra={
                "platform": self.platform.name,
                "job_count": len(jobs),
                "max_parallel_jobs": self.platform.max_parallel_jobs,
            },
        )

        if not jobs:
            return PlatformResult(platform=self.platform.name)

        with ThreadPoolExecutor(
            max_workers=self.platform.max_parallel_jobs,
            thread_name_prefix=f"binforge-{self.platform.name}",
        ) as pool:
            futures = [pool.submit(self._run_job, job, version) for job in jobs]
            # Collected by submission index, so completion order doesn't matter.
            outcomes = [future.result() for future in futures]

        result = PlatformResult(platform=self.platform.name, outcomes=outcomes)
        _logger.info(
            "Platform pipeline finished",
            extra={
                "platform": self.platform.name,
                "succeeded": len(result.successes),
                "failed": len(result.failures),
            },
        )
        return result

    def cancel(self) -> None:
        self.executor.cancel()

    def _run_job(self, job: BuildJob, version: str) -> JobOutcome:
        """Build and package one job, turning any failure into a Failure outcome."""
        try:
            with JobWorkspace(job, self._workspace_dir, keep=self._keep_workspaces) as workspace:
                binary = self.executor.build(job, workspace)
                artifact = package(
                    binary,
                    job,
                    version,
                    self._output_dir,
                    self._project,
                )
            return JobOutcome(job=job, artifact=artifact)

        except BuildError as err:
            _logger.error(
                "Build failed",
                extra={
                    **job.log_context(),
                    "exit_code": err.exit_code,
                    "stderr_excerpt": err.stderr_excerpt,
                },
            )
            return JobOutcome(job=job, error=str(err), stderr_excerpt=err.stderr_excerpt)

        except PackageError as err:
            _logger.error("Packaging failed", extra={**job.log_context(), "error": str(err)})
            return JobOutcome(job=job, error=str(err))

        except Exception as err:
            # A bug in one job must not take its siblings down with it.
            _logger.error(
                "Job crashed",
                extra={**job.log_context(), "error": str(err)},
                exc_info=True,
            )
            return JobOutcome(job=job, error=f"unexpected error: {err}")
