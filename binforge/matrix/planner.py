# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Matrix planner — expands declared axes into the set of valid build jobs.

The expansion is product-then-filter:
  1. Validate the axes and every exclusion rule against the declared domains
  2. Take the Cartesian product of all axes, in declaration order
  3. Drop every candidate that is a superset of some exclusion rule

The first declared axis varies slowest, so the job order only depends on how
the matrix was written down. Two calls with the same input always return the
same list in the same order, which keeps logs and reports comparable across
runs.

Referencing an axis or value that was never declared is a hard error. A typo
in an exclusion rule would otherwise silently build a configuration somebody
meant to skip.
"""

import itertools
import logging

from binforge.exceptions import InvalidMatrixError
from binforge.logging.logger import get_logger
from binforge.matrix.models import (
    CPU_TARGET_AXIS,
    FEATURES_AXIS,
    KNOWN_AXES,
    BuildJob,
    ExclusionRule,
    MatrixAxis,
)

_logger: logging.Logger = get_logger(__name__)


def _validate_axes(axes: list[MatrixAxis]) -> None:
    seen: set[str] = set()
    for axis in axes:
        if axis.name in seen:
            raise InvalidMatrixError(f"Axis '{axis.name}' is declared more than once")
        seen.add(axis.name)

        if not axis.values:
            raise InvalidMatrixError(f"Axis '{axis.name}' has no values")

        duplicates = sorted({v for v in axis.values if axis.values.count(v) > 1})
        if duplicates:
            raise InvalidMatrixError(
                f"Axis '{axis.name}' declares duplicate values: {', '.join(duplicates)}"
            )


def _validate_exclusions(axes: list[MatrixAxis], exclusions: list[ExclusionRule]) -> None:
    domains = {axis.name: set(axis.values) for axis in axes}

    for index, rule in enumerate(exclusions):
        if not rule.match:
            # An empty rule would match every candidate and silently empty the plan.
            raise InvalidMatrixError(f"Exclusion rule #{index} is empty")

        for axis_name, value in rule.match:
            if axis_name not in domains:
                raise InvalidMatrixError(
                    f"Exclusion rule #{index} references undeclared axis '{axis_name}'"
                )
            if value not in domains[axis_name]:
                raise InvalidMatrixError(
                    f"Exclusion rule #{index} references value '{value}' which is not "
                    f"declared on axis '{axis_name}' "
                    f"(declared: {', '.join(sorted(domains[axis_name]))})"
                )


def expand_matrix(
    axes: list[MatrixAxis],
    exclusions: list[ExclusionRule],
) -> list[dict[str, str]]:
    """
    Compute every valid axis assignment.

    Args:
        axes: Declared axes, in the order they should vary (first = slowest).
        exclusions: Partial assignments to drop.

    Returns:
        Deduplicated list of {axis_name: value} dicts in deterministic order.

    Raises:
        InvalidMatrixError: If an axis is empty or duplicated, or if an
            exclusion rule references an undeclared axis or value.
    """
    _validate_axes(axes)
    _validate_exclusions(axes, exclusions)

    if not axes:
        return []

    names = [axis.name for axis in axes]
    assignments: list[dict[str, str]] = []
    for combo in itertools.product(*(axis.values for axis in axes)):
        candidate = dict(zip(names, combo))
        if any(rule.matches(candidate) for rule in exclusions):
            continue
        assignments.append(candidate)

    return assignments


def plan_jobs(
    platform: str,
    axes: list[MatrixAxis],
    exclusions: list[ExclusionRule],
    version: str,
) -> list[BuildJob]:
    """
    Plan the build jobs for one platform.

    Only the `cpu_target` and `features` axes are understood downstream, so
    anything else is rejected here rather than being silently ignored by the
    toolchain. `cpu_target` is mandatory; `features` is optional, and when a
    platform has no feature axis every job's feature_set is None.

    Raises:
        InvalidMatrixError: On any structural problem with the matrix.
    """
    for axis in axes:
        if axis.name not in KNOWN_AXES:
            raise InvalidMatrixError(
                f"Unknown axis '{axis.name}' on platform '{platform}'. "
                f"Supported axes: {', '.join(KNOWN_AXES)}"
            )
    if not any(axis.name == CPU_TARGET_AXIS for axis in axes):
        raise InvalidMatrixError(f"Platform '{platform}' declares no '{CPU_TARGET_AXIS}' axis")

    # Axis values are unique and each axis appears once, so every assignment
    # from the product is already distinct.
    jobs = [
        BuildJob(
            platform=platform,
            cpu_target=assignment[CPU_TARGET_AXIS],
            feature_set=assignment.get(FEATURES_AXIS),
            version=version,
        )
        for assignment in expand_matrix(axes, exclusions)
    ]

    _logger.info(
        "Matrix planned",
        extra={
            "platform": platform,
            "axes": {axis.name: list(axis.values) for axis in axes},
            "exclusions": len(exclusions),
            "job_count": len(jobs),
        },
    )
    return jobs
