# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for binforge tests.

The real toolchain is replaced by a small Python script that behaves like
`cargo build`: it reads the same arguments and environment, and writes a
fake binary where cargo would. Setting FAKE_FAIL in the toolchain env to a
comma-separated list of job labels ('ivybridge+safe') makes those jobs exit
nonzero with a compiler-like error on stderr.

Timing knobs for concurrency tests:

  FAKE_SLEEP        seconds every build takes
  FAKE_SLOW         per-label override, 'skylake=1.5,ivybridge=0.2'
  FAKE_COUNTER_DIR  each running build holds `<label>.running` in this
                    directory and records how many it saw in `<label>.peak`
"""

import sys
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from binforge.config.schema import PlatformConfig

FAKE_CARGO = textwrap.dedent("""\
    import glob
    import os
    import sys
    import time

    args = sys.argv[1:]
    if args and args[0].startswith("+"):
        args = args[1:]

    def option(name):
        return args[args.index(name) + 1] if name in args else None

    binary = option("--bin")
    features = option("--features")
    target = option("--target")
    cpu = os.environ["ROARING_ARCH"]
    label = cpu + ("+" + features if features else "")

    failing = [item for item in os.environ.get("FAKE_FAIL", "").split(",") if item]
    if label in failing:
        sys.stderr.write("   Compiling proj v1.2.3\\n")
        sys.stderr.write("error: could not compile `proj` for " + label + "\\n")
        sys.exit(101)

    counter_dir = os.environ.get("FAKE_COUNTER_DIR")
    if counter_dir:
        marker = os.path.join(counter_dir, label + ".running")
        open(marker, "w").close()
        running = len(glob.glob(os.path.join(counter_dir, "*.running")))
        with open(os.path.join(counter_dir, label + ".peak"), "w") as handle:
            handle.write(str(running))

    delay = float(os.environ.get("FAKE_SLEEP", "0"))
    for item in os.environ.get("FAKE_SLOW", "").split(","):
        if item.startswith(label + "="):
            delay = float(item.split("=", 1)[1])
    time.sleep(delay)

    out_dir = os.environ["CARGO_TARGET_DIR"]
    if target:
        out_dir = os.path.join(out_dir, target)
    out_dir = os.path.join(out_dir, "release")
    os.makedirs(out_dir, exist_ok=True)
    with open(os.path.join(out_dir, binary), "wb") as handle:
        handle.write(("ELF " + label + " " + os.environ["RUSTFLAGS"]).encode("utf-8"))

    if counter_dir:
        os.remove(marker)
""")


@pytest.fixture()
def fake_cargo(tmp_path: Path) -> list[str]:
    """Toolchain command that runs the fake cargo script."""
    script = tmp_path / "fake_cargo.py"
    script.write_text(FAKE_CARGO, encoding="utf-8")
    return [sys.executable, str(script)]


@pytest.fixture()
def source_tree(tmp_path: Path) -> Path:
    """A minimal source tree with a Cargo.toml manifest at version 1.2.3."""
    src = tmp_path / "src"
    src.mkdir()
    (src / "Cargo.toml").write_text(
        textwrap.dedent("""\
            [package]
            name = "proj"
            version = "1.2.3"
            edition = "2018"

            [dependencies]
            serde = { version = "1.0", features = ["derive"] }
        """),
        encoding="utf-8",
    )
    return src


@pytest.fixture()
def make_platform(fake_cargo: list[str]) -> Callable[..., PlatformConfig]:
    """Factory for PlatformConfig objects wired to the fake toolchain."""

    def _make(
        name: str = "ubuntu",
        destination: str = "linux",
        axes: list[dict[str, object]] | None = None,
        exclude: list[dict[str, str]] | None = None,
        fail: list[str] | None = None,
        max_parallel_jobs: int = 2,
        target_triple: str | None = None,
        env: dict[str, str] | None = None,
    ) -> PlatformConfig:
        if axes is None:
            axes = [
                {"name": "features", "values": ["avx2", "safe"]},
                {"name": "cpu_target", "values": ["x86-64", "ivybridge", "skylake"]},
            ]
        if exclude is None:
            exclude = [
                {"cpu_target": "x86-64", "features": "avx2"},
                {"cpu_target": "ivybridge", "features": "avx2"},
            ]
        env = dict(env or {})
        if fail:
            env["FAKE_FAIL"] = ",".join(fail)
        return PlatformConfig.model_validate(
            {
                "name": name,
                "destination": destination,
                "max_parallel_jobs": max_parallel_jobs,
                "axes": axes,
                "exclude": exclude,
                "toolchain": {
                    "command": fake_cargo,
                    "channel": "nightly-2020-06-10",
                    "binary": "proj",
                    "target_triple": target_triple,
                    "cc": "gcc",
                    "env": env,
                    "timeout_seconds": 60,
                },
            }
        )

    return _make


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """
    Create a minimal valid config YAML file in a temp directory.

    This is the smallest config that passes schema validation.
    Tests that need specific config values should write their own files.
    """
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          project_name: "proj"
          log_level: "DEBUG"
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """A config file that's valid YAML but fails schema validation (missing required field)."""
    config_content = textwrap.dedent("""\
        global:
          project_name: "proj"
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file
