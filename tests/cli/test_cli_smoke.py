# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI smoke tests.

CLI tests must verify:
  - commands execute
  - exit codes are correct
  - help text exists

We use subprocess to test the actual CLI entrypoint the way a user would.
This catches issues that unit tests miss, like broken imports or entrypoint
registration. Release runs use the fake cargo script from conftest and a
local mirror directory instead of a bucket.
"""

import json
import signal
import subprocess
import sys
import time
from pathlib import Path

import pytest
import yaml


def _run_cli(*args: str, timeout: int = 10) -> subprocess.CompletedProcess[str]:
    """Run `binforge` with the given arguments and capture output."""
    return subprocess.run(
        [sys.executable, "-m", "binforge.cli.main", *args],
        capture_output=True,
        text=True,
        timeout=timeout,
    )


def _log_lines(output: str) -> list[dict[str, object]]:
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


@pytest.fixture()
def release_config(tmp_path: Path, fake_cargo: list[str], source_tree: Path):  # type: ignore[no-untyped-def]
    """Write a release config wired to the fake toolchain; returns a writer."""

    def _write(
        fail: list[str] | None = None,
        env: dict[str, str] | None = None,
        **release_overrides: object,
    ) -> Path:
        toolchain: dict[str, object] = {
            "command": fake_cargo,
            "binary": "proj",
            "timeout_seconds": 60,
        }
        toolchain_env = dict(env or {})
        if fail:
            toolchain_env["FAKE_FAIL"] = ",".join(fail)
        toolchain["env"] = toolchain_env
        release: dict[str, object] = {
            "manifest_path": "Cargo.toml",
            "source_dir": str(source_tree),
            "output_dir": str(tmp_path / "binaries"),
            "storage": {"backend": "local", "local_root": str(tmp_path / "bucket")},
            "platforms": [
                {
                    "name": "ubuntu",
                    "destination": "linux",
                    "max_parallel_jobs": 2,
                    "axes": [
                        {"name": "features", "values": ["avx2", "safe"]},
                        {"name": "cpu_target", "values": ["x86-64", "ivybridge", "skylake"]},
                    ],
                    "exclude": [
                        {"cpu_target": "x86-64", "features": "avx2"},
                        {"cpu_target": "ivybridge", "features": "avx2"},
                    ],
                    "toolchain": toolchain,
                }
            ],
        }
        release.update(release_overrides)
        content = {
            "global": {"config_version": "1.0.0", "project_name": "proj"},
            "release": release,
        }
        config_file = tmp_path / "release.yaml"
        config_file.write_text(yaml.safe_dump(content), encoding="utf-8")
        return config_file

    return _write


class TestHelpTexts:
    """Every subcommand must have working --help output."""

    @pytest.mark.parametrize("subcommand", ["plan", "release", "package", "verify", "info"])
    def test_subcommand_help_exits_zero(self, subcommand: str) -> None:
        result = _run_cli(subcommand, "--help")
        assert result.returncode == 0
        assert subcommand in result.stdout.lower() or "usage" in result.stdout.lower()

    def test_root_help_exits_with_user_error(self) -> None:
        """Running binforge with no args should show help and exit with USER_ERROR (1)."""
        result = _run_cli()
        assert result.returncode == 1


class TestConfigLoading:
    def test_info_runs_without_config(self) -> None:
        assert _run_cli("info").returncode == 0

    def test_nonexistent_config_returns_config_error(self) -> None:
        result = _run_cli("plan", "--config", "/nonexistent/path.yaml")
        assert result.returncode == 2

    def test_plan_requires_release_section(self, tmp_config_file: Path) -> None:
        result = _run_cli("plan", "--config", str(tmp_config_file))
        assert result.returncode == 2

    def test_info_accepts_minimal_config(self, tmp_config_file: Path) -> None:
        assert _run_cli("info", "--config", str(tmp_config_file)).returncode == 0


class TestPlan:
    def test_plan_lists_jobs(self, release_config) -> None:  # type: ignore[no-untyped-def]
        result = _run_cli("plan", "--config", str(release_config()))
        assert result.returncode == 0
        artifacts = [
            line["artifact"] for line in _log_lines(result.stdout) if line["msg"] == "Planned job"
        ]
        assert artifacts == [
            "proj-ubuntu-x86-64-safe-1.2.3.bz2",
            "proj-ubuntu-ivybridge-safe-1.2.3.bz2",
            "proj-ubuntu-skylake-avx2-1.2.3.bz2",
            "proj-ubuntu-skylake-safe-1.2.3.bz2",
        ]

    def test_invalid_matrix_is_validation_error(self, release_config, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        config_file = release_config()
        content = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        content["release"]["platforms"][0]["exclude"] = [{"cpu_target": "pentium"}]
        config_file.write_text(yaml.safe_dump(content), encoding="utf-8")

        assert _run_cli("plan", "--config", str(config_file)).returncode == 4

    def test_dashed_version_is_validation_error(self, release_config) -> None:  # type: ignore[no-untyped-def]
        result = _run_cli("plan", "--config", str(release_config()), "--version", "64-1.2.3")
        assert result.returncode == 4

    def test_unknown_platform_is_user_error(self, release_config) -> None:  # type: ignore[no-untyped-def]
        result = _run_cli("plan", "--config", str(release_config()), "--platform", "windows")
        assert result.returncode == 1


class TestRelease:
    def test_release_succeeds_and_writes_report(self, release_config, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        result = _run_cli(
            "release", "--config", str(release_config()), "--tag", "v1.2.3", timeout=120
        )
        assert result.returncode == 0, result.stdout + result.stderr

        report = json.loads((tmp_path / "binaries" / "release-report.json").read_text())
        assert report["outcome"] == "success"
        assert len(list((tmp_path / "bucket" / "linux").glob("*.bz2"))) == 4

    def test_partial_release_exit_code_follows_policy(self, release_config) -> None:  # type: ignore[no-untyped-def]
        lenient = release_config(fail=["ivybridge+safe"])
        assert _run_cli("release", "--config", str(lenient), "--tag", "v1.2.3", timeout=120).returncode == 0

        strict = release_config(fail=["ivybridge+safe"], fail_on_partial=True)
        assert _run_cli("release", "--config", str(strict), "--tag", "v1.2.3", timeout=120).returncode == 3

    def test_sigterm_cancels_release_without_publishing(self, release_config, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        counter_dir = tmp_path / "running"
        counter_dir.mkdir()
        config = release_config(env={"FAKE_SLEEP": "30", "FAKE_COUNTER_DIR": str(counter_dir)})
        process = subprocess.Popen(
            [sys.executable, "-m", "binforge.cli.main", "release", "--config", str(config), "--tag", "v1.2.3"],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
        try:
            deadline = time.monotonic() + 30
            while not list(counter_dir.glob("*.running")) and time.monotonic() < deadline:
                time.sleep(0.1)
            assert list(counter_dir.glob("*.running")), "no build started"
            process.send_signal(signal.SIGTERM)
            _, stderr = process.communicate(timeout=30)
        finally:
            if process.poll() is None:
                process.kill()
                process.communicate()

        assert process.returncode == 3, stderr
        report = json.loads((tmp_path / "binaries" / "release-report.json").read_text())
        assert report["outcome"] == "cancelled"
        assert report["cancelled"] is True
        assert not (tmp_path / "bucket").exists()

    def test_non_release_tag_is_ignored(self, release_config, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        result = _run_cli("release", "--config", str(release_config()), "--tag", "v1.2")
        assert result.returncode == 0
        assert not (tmp_path / "binaries").exists()

    def test_missing_tag_is_user_error(self, release_config) -> None:  # type: ignore[no-untyped-def]
        assert _run_cli("release", "--config", str(release_config())).returncode == 1

    def test_dry_run_builds_nothing(self, release_config, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        result = _run_cli(
            "release", "--config", str(release_config()), "--tag", "v1.2.3", "--dry-run"
        )
        assert result.returncode == 0
        assert not (tmp_path / "binaries").exists()
        assert not (tmp_path / "bucket").exists()


class TestPackageAndVerify:
    def test_package_then_verify(self, tmp_path: Path) -> None:
        binary = tmp_path / "tari_base_node"
        binary.write_bytes(b"\x7fELF" + b"\x00" * 128)
        out_dir = tmp_path / "out"

        result = _run_cli(
            "package",
            "--binary", str(binary),
            "--platform", "ubuntu",
            "--cpu-target", "skylake",
            "--features", "safe",
            "--version", "1.2.3",
            "--project", "tari_base_node",
            "--output-dir", str(out_dir),
        )
        assert result.returncode == 0
        artifact = out_dir / "tari_base_node-ubuntu-skylake-safe-1.2.3.bz2"
        assert artifact.is_file()

        assert _run_cli("verify", "--artifact-dir", str(out_dir)).returncode == 0

        artifact.write_bytes(b"tampered")
        assert _run_cli("verify", "--artifact-dir", str(out_dir)).returncode == 4

    def test_package_missing_options_is_user_error(self) -> None:
        assert _run_cli("package", "--cpu-target", "skylake").returncode == 1

    def test_package_missing_binary_is_validation_error(self, tmp_path: Path) -> None:
        result = _run_cli(
            "package",
            "--binary", str(tmp_path / "missing"),
            "--platform", "ubuntu",
            "--cpu-target", "skylake",
            "--version", "1.2.3",
            "--output-dir", str(tmp_path),
        )
        assert result.returncode == 4
