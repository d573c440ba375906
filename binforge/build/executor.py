# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

r"""
Build executor — runs the compiler toolchain for one job.

The command line for a job looks like:

    cargo +nightly-2020-06-10 build --release --bin tari_base_node \
        --features safe --target x86_64-apple-darwin

and the environment carries the CPU-target directive:

    RUSTFLAGS="-C target_cpu=skylake"  ROARING_ARCH=skylake  CC=gcc
    CARGO_TARGET_DIR=<job workspace>/target

Everything job-specific goes into an explicit environment dict built from the
platform's ToolchainConfig. Nothing is read from or written to the ambient
process environment beyond a short list of variables the toolchain needs to
find itself (PATH, HOME, rustup/cargo homes).

A failing compile raises BuildError for that job only. It is the pipeline's
job to record it and keep going with the siblings.

No shell=True anywhere: the command is always an argument list.
"""

import os
import subprocess
import threading
import time
from pathlib import Path

from binforge.config.schema import ToolchainConfig
from binforge.exceptions import BuildError
from binforge.logging.logger import get_logger
from binforge.matrix.models import BuildJob

logger = get_logger(__name__)

DEFAULT_STDERR_TAIL_LINES = 40

# Variables the toolchain needs to locate itself and its caches.
_INHERITED_ENV_VARS: tuple[str, ...] = (
    "PATH",
    "HOME",
    "USER",
    "LANG",
    "TMPDIR",
    "TEMP",
    "TMP",
    "SYSTEMROOT",
    "RUSTUP_HOME",
    "RUSTUP_TOOLCHAIN",
    "CARGO_HOME",
    "PKG_CONFIG_PATH",
)


def stderr_tail(stderr: str, max_lines: int = DEFAULT_STDERR_TAIL_LINES) -> str:
    """The last `max_lines` lines of compiler output — where the error usually is."""
    lines = stderr.rstrip().splitlines()
    return "\n".join(lines[-max_lines:])


class BuildExecutor:
    """
    Compiles jobs for one platform.

    One executor is shared by all jobs of a platform and may be called from
    several threads at once. The only shared state is the set of running
    processes, kept so that cancel() can reach them.
    """

    def __init__(
        self,
        toolchain: ToolchainConfig,
        source_dir: Path,
        stderr_tail_lines: int = DEFAULT_STDERR_TAIL_LINES,
    ) -> None:
        self._toolchain = toolchain
        self._source_dir = source_dir
        self._stderr_tail_lines = stderr_tail_lines
        self._lock = threading.Lock()
        self._processes: set[subprocess.Popen[str]] = set()
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def command_for(self, job: BuildJob) -> list[str]:
        """Argument list for compiling `job`."""
        tc = self._toolchain
        command = list(tc.command)
        if tc.channel:
            command.append(f"+{tc.channel}")
        command += ["build", "--release", "--bin", tc.binary]
        if job.feature_set is not None:
            command += ["--features", job.feature_set]
        if tc.target_triple:
            command += ["--target", tc.target_triple]
        if tc.package_manifest:
            command += ["--manifest-path", str(self._source_dir / tc.package_manifest)]
        return command

    def environment_for(self, job: BuildJob, target_dir: Path) -> dict[str, str]:
        """Explicit environment for the toolchain process of `job`."""
        tc = self._toolchain
        env = {name: os.environ[name] for name in _INHERITED_ENV_VARS if name in os.environ}
        rustflags = [f"-C target_cpu={job.cpu_target}", *tc.rustflags]
        env["RUSTFLAGS"] = " ".join(rustflags)
        env["ROARING_ARCH"] = job.cpu_target
        env["CARGO_TARGET_DIR"] = str(target_dir)
        if tc.cc:
            env["CC"] = tc.cc
        env.update(tc.env)
        return env

    def binary_path(self, target_dir: Path) -> Path:
        """Where the toolchain leaves the release binary inside `target_dir`."""
        release_dir = target_dir
        if self._toolchain.target_triple:
            release_dir = release_dir / self._toolchain.target_triple
        binary = release_dir / "release" / self._toolchain.binary
        if not binary.exists():
            windows_binary = binary.with_name(binary.name + ".exe")
            if windows_binary.exists():
                return windows_binary
        return binary

    def build(self, job: BuildJob, workspace: Path) -> Path:
        """
        Compile one job inside its workspace.

        Returns:
            Path to the compiled binary, inside `workspace`.

        Raises:
            BuildError: On nonzero exit, timeout, missing toolchain, missing
                output binary, or cancellation.
        """
        if self._cancelled.is_set():
            raise BuildError(job, "build cancelled before start")

        target_dir = workspace / "target"
        command = self.command_for(job)
        env = self.environment_for(job, target_dir)

        logger.info(
            "Build started",
            extra={**job.log_context(), "command": command, "workspace": str(workspace)},
        )
        start = time.monotonic()

        try:
            process = subprocess.Popen(
                command,
                cwd=str(self._source_dir),
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except (FileNotFoundError, PermissionError) as err:
            raise BuildError(job, f"toolchain not runnable: {command[0]} ({err})") from err

        with self._lock:
            self._processes.add(process)
        if self._cancelled.is_set():
            process.terminate()

        try:
            _, stderr = process.communicate(timeout=self._toolchain.timeout_seconds)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            logger.warning(
                "Build timed out",
                extra={**job.log_context(), "timeout_seconds": self._toolchain.timeout_seconds},
            )
            raise BuildError(
                job, f"build timed out after {self._toolchain.timeout_seconds}s"
            ) from None
        finally:
            with self._lock:
                self._processes.discard(process)

        elapsed = time.monotonic() - start

        if process.returncode != 0:
            if self._cancelled.is_set():
                raise BuildError(job, "build cancelled", exit_code=process.returncode)
            excerpt = stderr_tail(stderr or "", self._stderr_tail_lines)
            raise BuildError(job, excerpt, exit_code=process.returncode)

        binary = self.binary_path(target_dir)
        if not binary.is_file():
            raise BuildError(
                job,
                f"toolchain exited 0 but produced no binary at {binary}",
                exit_code=0,
            )

        logger.info(
            "Build finished",
            extra={
                **job.log_context(),
                "elapsed_seconds": round(elapsed, 3),
                "binary": str(binary),
            },
        )
        return binary

    def cancel(self) -> None:
        """
        Best-effort cancellation of every in-flight and future build.

        Running toolchain processes get SIGTERM; builds that haven't started
        yet fail immediately with BuildError.
        """
        self._cancelled.set()
        with self._lock:
            running = list(self._processes)
        for process in running:
            if process.poll() is None:
                process.terminate()
        if running:
            logger.warning("Cancelled running builds", extra={"count": len(running)})
