# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Value types for the build matrix.

All of these are frozen. A matrix is declared once per platform and never
changes during a run, and a BuildJob is consumed exactly once by the build
executor, so there is no reason for any of them to be mutable.
"""

from collections.abc import Mapping
from dataclasses import dataclass

CPU_TARGET_AXIS = "cpu_target"
FEATURES_AXIS = "features"

# Axis names the rest of the system knows how to turn into toolchain flags
# and artifact filename segments.
KNOWN_AXES: tuple[str, ...] = (CPU_TARGET_AXIS, FEATURES_AXIS)


@dataclass(frozen=True)
class MatrixAxis:
    """A named dimension of build variation with an ordered set of values."""

    name: str
    values: tuple[str, ...]


@dataclass(frozen=True)
class ExclusionRule:
    """
    A partial assignment of axis values.

    Any candidate job whose assignment contains every pair in `match` is
    dropped from the plan.
    """

    match: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> "ExclusionRule":
        """Build a rule from `{axis: value}`. Pair order does not matter."""
        return cls(match=tuple(sorted(mapping.items())))

    def as_dict(self) -> dict[str, str]:
        return dict(self.match)

    def matches(self, assignment: dict[str, str]) -> bool:
        return all(assignment.get(axis) == value for axis, value in self.match)


@dataclass(frozen=True)
class BuildJob:
    """One concrete build unit: a platform plus one point in its matrix."""

    platform: str
    cpu_target: str
    feature_set: str | None
    version: str

    @property
    def label(self) -> str:
        """Short human-readable identity, e.g. 'skylake+safe'."""
        if self.feature_set is None:
            return self.cpu_target
        return f"{self.cpu_target}+{self.feature_set}"

    def log_context(self) -> dict[str, object]:
        """Fields attached to every log line that concerns this job."""
        return {
            "platform": self.platform,
            "cpu_target": self.cpu_target,
            "feature_set": self.feature_set,
            "version": self.version,
        }
