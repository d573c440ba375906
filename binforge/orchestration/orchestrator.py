# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Orchestrator — one release run, from tag to published artifacts.

State machine:

    IDLE → TRIGGERED → PLANNING → BUILDING → PUBLISHING → DONE
                          └──────────┴─────────→ ABORTED

  IDLE → TRIGGERED     a tag matching the release pattern arrives; any other
                       tag is ignored and the orchestrator stays IDLE
  TRIGGERED → PLANNING resolve the version once, plan every platform's
                       matrix, set up the object store
  PLANNING → BUILDING  one thread per platform, nothing shared between them
  BUILDING → PUBLISHING the last platform has finished building. Each platform
                       publishes as soon as its own builds are done and never
                       waits for the others, so `platform_states` is where a
                       single platform's progress shows
  PUBLISHING → DONE    every platform's publish attempt has finished

A cancelled run stops its in-flight builds and publishes nothing, including
artifacts that finished before the cancel. The report is marked `cancelled`.

Only structural failures (bad matrix, unusable version, no storage target)
lead to ABORTED, and they all happen during PLANNING, before a single
compiler is started. Failed builds and uploads are recorded in the report.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from binforge.config.schema import GlobalConfig, ReleaseConfig
from binforge.exceptions import InvalidMatrixError, PublishError, VersionError
from binforge.logging.logger import get_logger
from binforge.matrix.models import BuildJob
from binforge.orchestration.report import (
    PlatformReport,
    RunOutcome,
    RunReport,
    RunState,
    write_report,
)
from binforge.orchestration.trigger import Trigger, parse_trigger
from binforge.pipeline.platform import JobOutcome, PlatformPipeline, PlatformResult
from binforge.publish.publisher import Publisher
from binforge.publish.stores import ObjectStore, build_store
from binforge.release.version import resolve_version

_logger: logging.Logger = get_logger(__name__)

REPORT_FILENAME = "release-report.json"

_ALLOWED_TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.IDLE: frozenset({RunState.TRIGGERED}),
    RunState.TRIGGERED: frozenset({RunState.PLANNING, RunState.ABORTED}),
    RunState.PLANNING: frozenset({RunState.BUILDING, RunState.ABORTED}),
    RunState.BUILDING: frozenset({RunState.PUBLISHING, RunState.ABORTED}),
    RunState.PUBLISHING: frozenset({RunState.DONE, RunState.ABORTED}),
    RunState.DONE: frozenset(),
    RunState.ABORTED: frozenset(),
}


class Orchestrator:
    """
    Drives one release run.

    An Orchestrator instance handles a single run; create a new one for the
    next tag. Nothing survives from one run to the next.
    """

    def __init__(
        self,
        global_config: GlobalConfig,
        release: ReleaseConfig,
        base_dir: Path | None = None,
        store: ObjectStore | None = None,
        platforms: list[str] | None = None,
    ) -> None:
        self._global = global_config
        self._release = release
        self._base_dir = base_dir or Path.cwd()
        self._store = store
        self._state = RunState.IDLE
        self._state_lock = threading.Lock()
        self._pipelines: list[PlatformPipeline] = []
        self._cancelled = threading.Event()
        self._platform_states: dict[str, RunState] = {}
        self._platforms_building = 0
        self._platform_lock = threading.Lock()

        if platforms:
            known = {p.name for p in release.platforms}
            unknown = sorted(set(platforms) - known)
            if unknown:
                raise ValueError(f"Unknown platform(s): {', '.join(unknown)}")
            self._platforms = [p for p in release.platforms if p.name in set(platforms)]
        else:
            self._platforms = list(release.platforms)

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def platform_states(self) -> dict[str, RunState]:
        """Where each platform of the current run is: BUILDING, PUBLISHING or DONE."""
        with self._platform_lock:
            return dict(self._platform_states)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def source_dir(self) -> Path:
        return self._base_dir / self._release.source_dir

    @property
    def output_root(self) -> Path:
        return self._base_dir / self._release.output_dir

    def _transition(self, new_state: RunState) -> None:
        with self._state_lock:
            if new_state is self._state:
                return
            if new_state not in _ALLOWED_TRANSITIONS[self._state]:
                raise RuntimeError(
                    f"Illegal run state transition {self._state.value} → {new_state.value}"
                )
            _logger.debug(
                "Run state changed",
                extra={"from": self._state.value, "to": new_state.value},
            )
            self._state = new_state

    def handle(self, tag: str) -> RunReport | None:
        """
        Entry point for a tag event.

        Returns:
            The run report, or None when the tag isn't a release tag.
        """
        trigger = parse_trigger(tag, self._release.tag_pattern)
        if trigger is None:
            _logger.info(
                "Tag does not match release pattern, ignoring",
                extra={"tag": tag, "pattern": self._release.tag_pattern},
            )
            return None
        return self.run(trigger)

    def _build_pipelines(self) -> list[PlatformPipeline]:
        workspace_dir = (
            self._base_dir / self._release.workspace_dir
            if self._release.workspace_dir
            else None
        )
        return [
            PlatformPipeline(
                platform=platform,
                source_dir=self.source_dir,
                output_dir=self.output_root / platform.name,
                project=self._global.project_name,
                workspace_dir=workspace_dir,
                keep_workspaces=self._release.keep_workspaces,
            )
            for platform in self._platforms
        ]

    def resolve_version(self, trigger: Trigger | None = None) -> str:
        """
        Resolve the run's version once from the manifest.

        Raises:
            VersionError: If the manifest has no usable version, or when
                require_tag_match is set and the tag disagrees with it.
        """
        version = resolve_version(self.source_dir / self._release.manifest_path)
        if (
            trigger is not None
            and self._release.require_tag_match
            and trigger.tag_version != version
        ):
            raise VersionError(
                f"Tag {trigger.tag} does not match manifest version {version}"
            )
        return version

    def plan(self, version: str) -> dict[str, list[BuildJob]]:
        """
        Plan every selected platform. Used by the run itself and by `binforge plan`.

        Raises:
            InvalidMatrixError: If any platform's matrix is malformed.
        """
        if not self._pipelines:
            self._pipelines = self._build_pipelines()
        return {pipeline.platform.name: pipeline.plan(version) for pipeline in self._pipelines}

    def run(self, trigger: Trigger) -> RunReport:
        """Execute a full run for an accepted trigger."""
        self._transition(RunState.TRIGGERED)
        report = RunReport(tag=trigger.tag, state=self._state)
        _logger.info(
            "Release run triggered",
            extra={"tag": trigger.tag, "platforms": [p.name for p in self._platforms]},
        )

        self._transition(RunState.PLANNING)
        report.state = self._state
        try:
            version = self.resolve_version(trigger)
            report.version = version
            plans = self.plan(version)
            publisher = Publisher(self._store or build_store(self._release.storage))
        except (InvalidMatrixError, VersionError, PublishError) as err:
            return self._abort(report, err)

        if self._cancelled.is_set():
            for pipeline in self._pipelines:
                pipeline.cancel()

        with self._platform_lock:
            self._platform_states = {
                pipeline.platform.name: RunState.BUILDING for pipeline in self._pipelines
            }
            self._platforms_building = len(self._pipelines)
        self._transition(RunState.BUILDING)
        report.state = self._state

        with ThreadPoolExecutor(
            max_workers=len(self._pipelines),
            thread_name_prefix="binforge-platform",
        ) as pool:
            futures = [
                pool.submit(
                    self._run_platform,
                    pipeline,
                    plans[pipeline.platform.name],
                    version,
                    publisher,
                )
                for pipeline in self._pipelines
            ]
            report.platforms = [future.result() for future in futures]

        self._transition(RunState.PUBLISHING)
        self._transition(RunState.DONE)
        report.state = self._state
        report.cancelled = self._cancelled.is_set()
        self._finish(report)
        return report

    def cancel(self) -> None:
        """Stop every in-flight build of this run; nothing is published afterwards."""
        self._cancelled.set()
        for pipeline in self._pipelines:
            pipeline.cancel()
        _logger.warning("Release run cancelled", extra={"state": self._state.value})

    def _run_platform(
        self,
        pipeline: PlatformPipeline,
        jobs: list[BuildJob],
        version: str,
        publisher: Publisher,
    ) -> PlatformReport:
        name = pipeline.platform.name
        try:
            result = pipeline.run(version, jobs)
        except Exception as err:
            # Planning already succeeded, so this is an environment problem
            # (disk, permissions). Record it against every job of the platform.
            _logger.error(
                "Platform pipeline crashed",
                extra={"platform": name, "error": str(err)},
                exc_info=True,
            )
            result = PlatformResult(
                platform=name,
                outcomes=[JobOutcome(job=job, error=f"pipeline crashed: {err}") for job in jobs],
            )

        self._platform_built(name)
        if self._cancelled.is_set():
            _logger.warning(
                "Run cancelled, not publishing",
                extra={"platform": name, "artifacts": len(result.successes)},
            )
            publish_result = None
        else:
            publish_result = publisher.publish(result, pipeline.platform.destination)
        with self._platform_lock:
            self._platform_states[name] = RunState.DONE
        return PlatformReport(result=result, publish=publish_result)

    def _platform_built(self, name: str) -> None:
        with self._platform_lock:
            self._platform_states[name] = RunState.PUBLISHING
            self._platforms_building -= 1
            last = self._platforms_building == 0
        if last:
            self._transition(RunState.PUBLISHING)

    def _abort(self, report: RunReport, err: Exception) -> RunReport:
        self._transition(RunState.ABORTED)
        report.state = self._state
        report.abort_reason = str(err)
        _logger.error(
            "Release run aborted",
            extra={"tag": report.tag, "error": str(err), "error_type": type(err).__name__},
        )
        self._write_report(report)
        return report

    def _finish(self, report: RunReport) -> None:
        outcome = report.outcome()
        context = {
            "tag": report.tag,
            "version": report.version,
            "outcome": outcome.value,
            "artifacts": report.artifact_count,
            "failed_jobs": report.failed_job_count,
            "failed_uploads": report.failed_upload_count,
        }
        if outcome is RunOutcome.CANCELLED:
            _logger.warning("Release run cancelled, nothing published", extra=context)
        elif outcome is RunOutcome.FAILED:
            _logger.error("Release run produced no artifacts", extra=context)
        elif outcome is RunOutcome.PARTIAL:
            _logger.warning(
                "Release run partially succeeded",
                extra={**context, "failed_configurations": report.failed_configurations()},
            )
        else:
            _logger.info("Release run complete", extra=context)
        self._write_report(report)

    def _write_report(self, report: RunReport) -> None:
        path = self.output_root / REPORT_FILENAME
        try:
            write_report(report, path)
        except OSError as err:
            _logger.warning(
                "Could not write run report",
                extra={"path": str(path), "error": str(err)},
            )
            return
        _logger.info("Run report written", extra={"path": str(path)})
