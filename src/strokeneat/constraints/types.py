"""
Constraint variants the engine can honor.

Constraints form a closed set of immutable records dispatched with
pattern matching:

* PositionConstraint: a target position only.
* IntersectionConstraint: a crossing with a previously placed curve.
* MirrorPlaneConstraint: a crossing of the mirror plane.
* SurfaceConstraint: a span of the stroke drawn over a surface patch.

The first three carry `new_curve_data`, the point on the beautified curve
where the constraint ended up, once the curve is known.
"""

from dataclasses import dataclass, replace
from typing import Any, Optional, Union

import numpy as np

from strokeneat.curves.curve import PointOnCurve, reparameterize
from strokeneat.models import ConstraintReport


def _as_point(value):
    return np.asarray(value, dtype=float).reshape(3)


@dataclass(frozen=True, eq=False)
class PositionConstraint:
    position: np.ndarray
    new_curve_data: Optional[PointOnCurve] = None

    def __post_init__(self):
        object.__setattr__(self, "position", _as_point(self.position))


@dataclass(frozen=True, eq=False)
class IntersectionConstraint:
    position: np.ndarray
    intersected_stroke: Any
    old_curve_data: PointOnCurve
    is_at_node: bool = False
    new_curve_data: Optional[PointOnCurve] = None

    def __post_init__(self):
        object.__setattr__(self, "position", _as_point(self.position))


@dataclass(frozen=True, eq=False)
class MirrorPlaneConstraint:
    position: np.ndarray
    plane_normal: np.ndarray
    new_curve_data: Optional[PointOnCurve] = None

    def __post_init__(self):
        object.__setattr__(self, "position", _as_point(self.position))
        object.__setattr__(self, "plane_normal", _as_point(self.plane_normal))


Constraint = Union[PositionConstraint, IntersectionConstraint, MirrorPlaneConstraint]


@dataclass(frozen=True, eq=False)
class SurfaceConstraint:
    """A span drawn over surface patch `patch_id`; open-ended until left."""
    patch_id: int
    start_position: np.ndarray
    end_position: Optional[np.ndarray] = None

    def __post_init__(self):
        object.__setattr__(self, "start_position", _as_point(self.start_position))
        if self.end_position is not None:
            object.__setattr__(self, "end_position", _as_point(self.end_position))

    @property
    def left_mid_stroke(self):
        return self.end_position is not None

    def left_at(self, position):
        return replace(self, end_position=position)


def project_on(constraint, curve, anchor=None):
    """Attach the point of `curve` the constraint maps to, at an anchor if given."""
    if anchor is not None:
        data = curve.point_on_anchor(anchor)
    else:
        data = curve.project(constraint.position)
    return replace(constraint, new_curve_data=data)


def reparameterize_on(constraint, r, curve):
    """Update `new_curve_data` after `curve` was cut with outcome `r`."""
    if r is not None and constraint.new_curve_data is not None:
        data = curve.point_on_curve(reparameterize(r, constraint.new_curve_data.t))
    else:
        data = curve.project(constraint.position)
    return replace(constraint, new_curve_data=data)


def reference_tangent(constraint):
    """Direction the new curve should align with at the constraint, if any."""
    match constraint:
        case IntersectionConstraint(old_curve_data=old):
            return old.tangent
        case MirrorPlaneConstraint(plane_normal=normal):
            return normal
        case _:
            return None


def to_report(constraint, at_new_endpoint=False, align_tangents=False):
    match constraint:
        case IntersectionConstraint(is_at_node=at_node):
            is_intersection = True
        case _:
            is_intersection = False
            at_node = False
    return ConstraintReport(
        position=constraint.position.tolist(),
        is_intersection=is_intersection,
        is_at_existing_node=at_node,
        is_at_new_endpoint=at_new_endpoint,
        align_tangents=align_tangents,
    )
