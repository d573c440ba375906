# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for binforge.

Each config section gets its own frozen pydantic model. Frozen means once you
create it, you cannot mutate it — a release run must not change its own
configuration halfway through.

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked

Everything that used to live in CI environment variables (compiler choice,
RUSTFLAGS, target triple) is declared here per platform, so each job's
toolchain environment can be built explicitly from config.
"""

import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from binforge.matrix.models import FEATURES_AXIS, ExclusionRule, MatrixAxis

# Platform names and feature values end up as dash-separated segments of the
# artifact filename; keeping dashes out of them keeps the name unambiguous.
_SEGMENT_PATTERN = r"^[A-Za-z0-9_.+]+$"

# ASCII digits only, like the CI tag filter `v[0-9]+.[0-9]+.[0-9]+`.
DEFAULT_TAG_PATTERN = r"^v[0-9]+\.[0-9]+\.[0-9]+$"

# Config files declare the schema version they were written for. A new major
# version means an incompatible layout.
SUPPORTED_CONFIG_MAJOR = 1
_CONFIG_VERSION_PATTERN = re.compile(r"([0-9]+)\.[0-9]+(\.[0-9]+)?", re.ASCII)


class GlobalConfig(BaseModel):
    """
    Cross-cutting settings that apply to the entire run: project identity
    (used as the artifact filename prefix) and observability.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Config schema version, e.g. '1.0.0'; the major version must be supported"
    )
    project_name: str = Field(
        default="binforge",
        min_length=1,
        description="Project identifier, used as the first segment of every artifact filename",
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )

    @field_validator("config_version")
    @classmethod
    def _check_config_version(cls, value: str) -> str:
        match = _CONFIG_VERSION_PATTERN.fullmatch(value.strip())
        if match is None:
            raise ValueError(f"config_version '{value}' is not of the form MAJOR.MINOR[.PATCH]")
        if int(match.group(1)) != SUPPORTED_CONFIG_MAJOR:
            raise ValueError(
                f"config_version '{value}' is not supported; "
                f"this binforge reads {SUPPORTED_CONFIG_MAJOR}.x configs"
            )
        return value.strip()

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level '{value}'")
        return upper


class AxisConfig(BaseModel):
    """One axis of a platform's build matrix."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    name: str = Field(description="Axis name: 'cpu_target' or 'features'")
    values: list[str] = Field(description="Ordered axis values")

    @model_validator(mode="after")
    def _check_feature_values(self) -> "AxisConfig":
        if self.name == FEATURES_AXIS:
            for value in self.values:
                if not re.match(_SEGMENT_PATTERN, value):
                    raise ValueError(
                        f"Feature value '{value}' must match {_SEGMENT_PATTERN} (no dashes)"
                    )
        for value in self.values:
            if not value or "/" in value:
                raise ValueError(f"Axis value '{value}' must be non-empty and contain no '/'")
        return self


class ToolchainConfig(BaseModel):
    """
    How to invoke the compiler for one platform.

    The final command line is:
        <command...> [+<channel>] build --release --bin <binary>
            [--features <f>] [--target <triple>] [--manifest-path <path>]
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    command: list[str] = Field(
        default_factory=lambda: ["cargo"],
        min_length=1,
        description="Toolchain launcher and any leading arguments",
    )
    channel: Optional[str] = Field(
        default=None,
        description="rustup toolchain selector, passed as +<channel> (e.g. 'nightly-2020-06-10')",
    )
    binary: str = Field(min_length=1, description="Name of the binary target to build")
    package_manifest: Optional[str] = Field(
        default=None,
        description="Cargo.toml to build, relative to the source dir; defaults to the workspace root",
    )
    target_triple: Optional[str] = Field(
        default=None,
        description="Cross-compilation target triple, e.g. 'x86_64-apple-darwin'",
    )
    cc: Optional[str] = Field(default=None, description="C compiler for build scripts (CC)")
    rustflags: list[str] = Field(
        default_factory=list,
        description="Extra RUSTFLAGS appended after the target_cpu directive",
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Additional environment variables for the toolchain process",
    )
    timeout_seconds: int = Field(
        default=3600,
        ge=1,
        description="Hard limit for one job's compilation",
    )


class PlatformConfig(BaseModel):
    """Everything needed to build and publish one platform's artifact set."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    name: str = Field(pattern=_SEGMENT_PATTERN, description="Platform name, e.g. 'ubuntu'")
    destination: str = Field(
        min_length=1,
        description="Remote path prefix for this platform's artifacts, e.g. 'linux'",
    )
    max_parallel_jobs: int = Field(
        default=1,
        ge=1,
        le=64,
        description="How many jobs of this platform may compile at the same time",
    )
    axes: list[AxisConfig] = Field(description="Matrix axes, first axis varies slowest")
    exclude: list[dict[str, str]] = Field(
        default_factory=list,
        description="Exclusion rules as partial axis assignments",
    )
    toolchain: ToolchainConfig

    def matrix_axes(self) -> list[MatrixAxis]:
        return [MatrixAxis(name=axis.name, values=tuple(axis.values)) for axis in self.axes]

    def exclusion_rules(self) -> list[ExclusionRule]:
        return [ExclusionRule.from_mapping(rule) for rule in self.exclude]

    @property
    def has_feature_axis(self) -> bool:
        return any(axis.name == FEATURES_AXIS for axis in self.axes)


class StorageConfig(BaseModel):
    """
    Where published artifacts go.

    The s3 backend reads credentials through boto3's standard chain
    (environment, shared config, instance role). Bucket and region fall back
    to AWS_S3_BUCKET and AWS_REGION when left empty here.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    backend: Literal["s3", "local"] = Field(default="s3")
    bucket: Optional[str] = Field(default=None)
    prefix: str = Field(default="", description="Key prefix prepended to every destination")
    region: Optional[str] = Field(default=None)
    local_root: Optional[str] = Field(
        default=None,
        description="Mirror directory for the local backend",
    )
    public_read: bool = Field(default=True, description="Upload with a public-read ACL")

    @model_validator(mode="after")
    def _check_local_root(self) -> "StorageConfig":
        if self.backend == "local" and not self.local_root:
            raise ValueError("storage.local_root is required when backend is 'local'")
        return self


class ReleaseConfig(BaseModel):
    """The release run itself: inputs, outputs, policies, and platforms."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    manifest_path: str = Field(
        description="Key-value manifest holding the version field, relative to source_dir",
    )
    source_dir: str = Field(default=".", description="Root of the source tree to build")
    output_dir: str = Field(
        default="binaries",
        description="Where packaged artifacts are written, one subdirectory per platform",
    )
    workspace_dir: Optional[str] = Field(
        default=None,
        description="Parent for job-scoped build directories; defaults to the system temp dir",
    )
    tag_pattern: str = Field(default=DEFAULT_TAG_PATTERN)
    require_tag_match: bool = Field(
        default=False,
        description="Abort when the tag does not equal 'v' + the manifest version",
    )
    fail_on_partial: bool = Field(
        default=False,
        description="Treat any failed job or upload as a failed run",
    )
    keep_workspaces: bool = Field(default=False)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    platforms: list[PlatformConfig] = Field(min_length=1)

    @field_validator("tag_pattern")
    @classmethod
    def _check_tag_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as err:
            raise ValueError(f"tag_pattern is not a valid regular expression: {err}") from err
        return value

    @model_validator(mode="after")
    def _check_unique_platforms(self) -> "ReleaseConfig":
        names = [platform.name for platform in self.platforms]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate platform names: {', '.join(duplicates)}")
        return self

    def platform(self, name: str) -> PlatformConfig:
        for platform in self.platforms:
            if platform.name == name:
                return platform
        raise KeyError(name)


class BinforgeConfig(BaseModel):
    """
    Top-level config container.

    `global` is always required. `release` is optional so that commands like
    `info` and `verify` can run against a config that only sets logging.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    release: Optional[ReleaseConfig] = Field(default=None)
