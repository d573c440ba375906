# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for artifact packaging.
"""

import bz2
from pathlib import Path

import pytest

from binforge.exceptions import PackageError
from binforge.matrix.models import BuildJob
from binforge.release.checksums.integrity import parse_checksum_file
from binforge.release.packaging.packager import package
from binforge.utils.hashing import compute_sha256

JOB = BuildJob(platform="ubuntu", cpu_target="skylake", feature_set="safe", version="1.2.3")


@pytest.fixture()
def binary(tmp_path: Path) -> Path:
    path = tmp_path / "build" / "proj"
    path.parent.mkdir()
    path.write_bytes(b"\x7fELF" + bytes(range(256)) * 64)
    return path


def test_scenario_b_artifact_pair(tmp_path: Path, binary: Path):
    """Packaging a skylake/safe build of 1.2.3 yields the .bz2 and its .sha256."""
    out = tmp_path / "binaries" / "ubuntu"
    artifact = package(binary, JOB, "1.2.3", out, "proj")

    assert artifact.filename == "proj-ubuntu-skylake-safe-1.2.3.bz2"
    assert (out / "proj-ubuntu-skylake-safe-1.2.3.bz2").is_file()
    assert (out / "proj-ubuntu-skylake-safe-1.2.3.bz2.sha256").is_file()
    assert artifact.checksum_path == out / "proj-ubuntu-skylake-safe-1.2.3.bz2.sha256"


def test_checksum_record_matches_compressed_bytes(tmp_path: Path, binary: Path):
    artifact = package(binary, JOB, "1.2.3", tmp_path / "out", "proj")

    record = artifact.checksum_path.read_text(encoding="utf-8")
    assert record == f"{artifact.checksum}  {artifact.filename}\n"
    assert compute_sha256(artifact.path) == artifact.checksum
    assert parse_checksum_file(artifact.checksum_path) == {artifact.filename: artifact.checksum}


def test_compressed_content_round_trips(tmp_path: Path, binary: Path):
    artifact = package(binary, JOB, "1.2.3", tmp_path / "out", "proj")
    assert bz2.decompress(artifact.path.read_bytes()) == binary.read_bytes()
    assert artifact.size_bytes == artifact.path.stat().st_size


def test_packaging_is_deterministic(tmp_path: Path, binary: Path):
    """Same binary bytes → same compressed bytes → same checksum, even re-packaged in place."""
    first = package(binary, JOB, "1.2.3", tmp_path / "a", "proj")
    second = package(binary, JOB, "1.2.3", tmp_path / "b", "proj")
    first_bytes = first.path.read_bytes()
    again = package(binary, JOB, "1.2.3", tmp_path / "a", "proj")

    assert first_bytes == second.path.read_bytes()
    assert first.checksum == second.checksum == again.checksum
    assert again.path.read_bytes() == first_bytes


def test_missing_binary_raises(tmp_path: Path):
    with pytest.raises(PackageError, match="not found"):
        package(tmp_path / "missing", JOB, "1.2.3", tmp_path / "out", "proj")


@pytest.mark.parametrize("version", ["", "   "])
def test_empty_version_raises(tmp_path: Path, binary: Path, version: str):
    with pytest.raises(PackageError, match="version is empty"):
        package(binary, JOB, version, tmp_path / "out", "proj")


def test_no_temp_files_left_behind(tmp_path: Path, binary: Path):
    out = tmp_path / "out"
    package(binary, JOB, "1.2.3", out, "proj")
    assert list(out.glob(".binforge_tmp_*")) == []


def test_dashed_version_raises(tmp_path: Path, binary: Path):
    x86 = BuildJob(platform="ubuntu", cpu_target="x86", feature_set="safe", version="64-1.2.3")
    with pytest.raises(PackageError, match="ambiguous"):
        package(binary, x86, "64-1.2.3", tmp_path / "out", "proj")
    assert not (tmp_path / "out").exists()
