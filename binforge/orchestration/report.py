# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Run state and the end-of-run report.

The report enumerates every job's outcome on every platform plus every
upload. How the run as a whole is classified:

  ABORTED   — a structural failure stopped the run before any build
  CANCELLED — the run was cancelled while building; nothing was published
  FAILED    — the run finished but not one artifact was produced
  PARTIAL   — some jobs or uploads failed, at least one artifact exists
  SUCCESS   — everything built and everything was uploaded
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from binforge.pipeline.platform import PlatformResult
from binforge.publish.publisher import PublishResult
from binforge.utils.filesystem import atomic_write


class RunState(str, Enum):
    IDLE = "idle"
    TRIGGERED = "triggered"
    PLANNING = "planning"
    BUILDING = "building"
    PUBLISHING = "publishing"
    DONE = "done"
    ABORTED = "aborted"


class RunOutcome(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PlatformReport:
    result: PlatformResult
    publish: PublishResult | None = None

    @property
    def platform(self) -> str:
        return self.result.platform


@dataclass
class RunReport:
    """Everything that happened in one run. Filled in as the run progresses."""

    tag: str
    version: str | None = None
    state: RunState = RunState.IDLE
    abort_reason: str | None = None
    cancelled: bool = False
    platforms: list[PlatformReport] = field(default_factory=list)

    @property
    def artifact_count(self) -> int:
        return sum(len(p.result.successes) for p in self.platforms)

    @property
    def failed_job_count(self) -> int:
        return sum(len(p.result.failures) for p in self.platforms)

    @property
    def failed_upload_count(self) -> int:
        return sum(len(p.publish.failed_uploads) for p in self.platforms if p.publish is not None)

    def failed_configurations(self) -> list[str]:
        """'platform/cpu+features' for every job that failed."""
        return [
            f"{p.platform}/{outcome.job.label}"
            for p in self.platforms
            for outcome in p.result.failures
        ]

    def outcome(self) -> RunOutcome:
        if self.state is RunState.ABORTED:
            return RunOutcome.ABORTED
        if self.cancelled:
            return RunOutcome.CANCELLED
        if self.artifact_count == 0:
            return RunOutcome.FAILED
        if self.failed_job_count or self.failed_upload_count:
            return RunOutcome.PARTIAL
        return RunOutcome.SUCCESS

    def summary(self) -> dict[str, object]:
        """JSON-ready summary: per-platform counts, every job, every upload."""
        platforms: list[dict[str, object]] = []
        for p in self.platforms:
            jobs = [
                {
                    "cpu_target": o.job.cpu_target,
                    "feature_set": o.job.feature_set,
                    "status": "success" if o.succeeded else "failure",
                    "artifact": o.artifact.filename if o.artifact else None,
                    "sha256": o.artifact.checksum if o.artifact else None,
                    "error": o.error,
                }
                for o in p.result.outcomes
            ]
            uploads = []
            if p.publish is not None:
                uploads = [
                    {"key": u.key, "uri": u.uri, "error": u.error} for u in p.publish.uploads
                ]
            platforms.append(
                {
                    "platform": p.platform,
                    "destination": p.publish.destination if p.publish else None,
                    "succeeded": len(p.result.successes),
                    "failed": len(p.result.failures),
                    "jobs": jobs,
                    "uploads": uploads,
                }
            )

        return {
            "tag": self.tag,
            "version": self.version,
            "state": self.state.value,
            "outcome": self.outcome().value,
            "abort_reason": self.abort_reason,
            "cancelled": self.cancelled,
            "artifact_count": self.artifact_count,
            "failed_jobs": self.failed_job_count,
            "failed_uploads": self.failed_upload_count,
            "failed_configurations": self.failed_configurations(),
            "platforms": platforms,
        }


def write_report(report: RunReport, path: Path) -> Path:
    """Write the report summary as pretty-printed JSON, atomically."""
    atomic_write(path, json.dumps(report.summary(), indent=2, sort_keys=True) + "\n")
    return path
