"""
Straight line curves.

Besides the curve queries, lines carry their own constraint handling:
with at most two points to pin, a line is constrained geometrically
rather than through the solver.
"""

from typing import List, NamedTuple

import numpy as np

from strokeneat.constraints.types import (
    IntersectionConstraint, MirrorPlaneConstraint, project_on, to_report,
)
from strokeneat.curves.curve import IDENTITY, Curve, PointOnCurve, Reparameterization, distance, normalize
from strokeneat.curves.plane import snap_direction
from strokeneat.models import ConstraintReport, CurveKind
from strokeneat.tracer import get_tracer

ENDPOINT_EPS = 1e-5


class LineConstraintOutcome(NamedTuple):
    intersections: List[IntersectionConstraint]
    mirror_intersections: List[MirrorPlaneConstraint]
    applied: List[ConstraintReport]
    rejected: List[ConstraintReport]


def _project_on_line(origin, direction, point):
    return origin + direction * float((point - origin) @ direction)


class LineCurve(Curve):
    """Segment from `a` to `b`."""

    kind = CurveKind.LINE

    def __init__(self, a, b, weight_a=1.0, weight_b=1.0):
        super().__init__([weight_a, weight_b])
        self.a = np.asarray(a, dtype=float)
        self.b = np.asarray(b, dtype=float)

    @property
    def direction(self):
        return normalize(self.b - self.a)

    @property
    def control_points(self):
        return np.array([self.a, self.b])

    def get_point(self, t):
        return self.a + (self.b - self.a) * t

    def get_points(self, ts):
        ts = np.asarray(ts, dtype=float)
        return self.a + np.multiply.outer(ts, self.b - self.a)

    def get_tangent(self, t):
        return self.direction

    def project(self, point):
        point = np.asarray(point, dtype=float)
        direction = self.direction
        if (point - self.a) @ direction <= 0:
            proj = self.a
        elif (point - self.b) @ direction >= 0:
            proj = self.b
        else:
            proj = _project_on_line(self.a, direction, point)

        length = distance(self.a, self.b)
        t = min(max(distance(proj, self.a) / length, 0.0), 1.0) if length > 0 else 0.0
        return PointOnCurve(t, proj, direction)

    def point_on_curve(self, t):
        return PointOnCurve(t, self.get_point(t), self.direction)

    def cut_at(self, t, throw_before, snap_threshold):
        p = self.get_point(t)
        if distance(self.a, p) < snap_threshold or distance(self.b, p) < snap_threshold:
            return IDENTITY

        old_length = distance(self.a, self.b)
        if throw_before:
            self.a = p
            r = Reparameterization(t, old_length / distance(self.a, self.b))
        else:
            self.b = p
            r = Reparameterization(0.0, old_length / distance(self.a, self.b))
        self._changed()
        return r

    def length_between(self, t_start, t_end):
        return distance(self.get_point(t_start), self.get_point(t_end))

    def is_valid(self, size_threshold):
        return distance(self.a, self.b) >= size_threshold

    def mirrored(self, plane):
        """Mirror image of the line, with the mean distance to the plane as score."""
        a, b = plane.mirror(self.a), plane.mirror(self.b)
        score = 0.5 * (abs(plane.normal @ (a - self.a)) + abs(plane.normal @ (b - self.b)))
        return LineCurve(a, b, self.weights[0], self.weights[-1]), float(score)

    def projected_on_plane(self, plane):
        a, b = plane.project(self.a), plane.project(self.b)
        score = 0.25 * (abs(plane.normal @ (a - self.a)) + abs(plane.normal @ (b - self.b)))
        return LineCurve(a, b, self.weights[0], self.weights[-1]), float(score)

    def constrain(self, constraints, ortho_directions, angular_threshold, proximity_threshold):
        """
        Pin the line to at most two of the constraints, snapping to axes.

        With no constraint the direction snaps to an ortho direction; with one
        the closest end moves onto it (or the line translates through it); with
        two or more, the first constraint and the one farthest from it pin the
        two ends and all others are rejected.

        Returns:
            LineConstraintOutcome with the intersections and mirror crossings
            that lie on the final line, plus constraint reports.
        """
        tracer = get_tracer()

        applied = []
        rejected = []

        if len(constraints) == 0:
            snapped, new_dir = snap_direction(self.direction, ortho_directions, angular_threshold)
            if snapped:
                new_b = self.a + new_dir * distance(self.a, self.b)
                if distance(new_b, self.b) < proximity_threshold:
                    self.b = new_b

        elif len(constraints) == 1:
            self._constrain_to_one(constraints[0], ortho_directions, angular_threshold, proximity_threshold)
            applied.append(self._report(constraints[0]))

        else:
            first = constraints[0]
            far_idx = max(
                range(1, len(constraints)),
                key=lambda i: distance(first.position, constraints[i].position),
            )
            far = constraints[far_idx]
            kept_a, kept_b = self._constrain_to_two(first, far, ortho_directions, angular_threshold, proximity_threshold)
            (applied if kept_a else rejected).append(self._report(first))
            (applied if kept_b else rejected).append(self._report(far))
            for i, c in enumerate(constraints):
                if i not in (0, far_idx):
                    rejected.append(self._report(c))

        self._changed()

        intersections = []
        mirror_intersections = []
        direction = self.direction
        for c in constraints:
            on_line = distance(c.position, _project_on_line(self.a, direction, c.position)) < proximity_threshold * 0.1
            if not on_line:
                continue
            match c:
                case IntersectionConstraint():
                    intersections.append(project_on(c, self))
                case MirrorPlaneConstraint():
                    mirror_intersections.append(project_on(c, self))

        tracer.event(
            f"Line constrained: {len(applied)} applied, {len(rejected)} rejected",
            level="DEBUG",
        )
        return LineConstraintOutcome(intersections, mirror_intersections, applied, rejected)

    def _constrain_to_two(self, ca, cb, ortho_directions, angular_threshold, proximity_threshold):
        direction = self.direction
        p1, p2 = ca.position, cb.position

        if distance(p1, p2) < proximity_threshold * 0.1:
            # Too close to pin both ends: keep one, preferring an intersection
            if not isinstance(ca, IntersectionConstraint) and isinstance(cb, IntersectionConstraint):
                self._constrain_to_one(cb, ortho_directions, angular_threshold, proximity_threshold)
                return False, True
            self._constrain_to_one(ca, ortho_directions, angular_threshold, proximity_threshold)
            return True, False

        if (p1 - self.a) @ direction < 0 or distance(p1, self.a) < proximity_threshold:
            self.a = p1
        else:
            self.a = _project_on_line(p1, normalize(self.b - p1), self.a)

        if (p2 - self.b) @ direction > 0 or distance(p2, self.b) < proximity_threshold:
            self.b = p2
        else:
            self.b = _project_on_line(self.a, normalize(p2 - self.a), self.b)

        return True, True

    def _constrain_to_one(self, constraint, ortho_directions, angular_threshold, proximity_threshold):
        direction = self.direction
        length = distance(self.a, self.b)
        p = constraint.position

        if (p - self.a) @ direction < 0 or distance(p, self.a) < proximity_threshold:
            self.a = p
            snapped, new_dir = snap_direction(self.direction, ortho_directions, angular_threshold)
            if snapped:
                new_b = self.a + new_dir * length
                if distance(new_b, self.b) < proximity_threshold:
                    self.b = new_b

        elif (p - self.b) @ direction > 0 or distance(p, self.b) < proximity_threshold:
            self.b = p
            snapped, new_dir = snap_direction(self.direction, ortho_directions, angular_threshold)
            if snapped:
                new_a = self.b - new_dir * length
                if distance(new_a, self.a) < proximity_threshold:
                    self.a = new_a

        else:
            translation = (p - self.a) - direction * float((p - self.a) @ direction)
            self.a = self.a + translation
            self.b = self.b + translation
            snapped, new_dir = snap_direction(self.direction, ortho_directions, angular_threshold)
            if snapped:
                new_a = p - new_dir * distance(p, self.a)
                new_b = p + new_dir * distance(p, self.b)
                if distance(new_a, self.a) < proximity_threshold and distance(new_b, self.b) < proximity_threshold:
                    self.a, self.b = new_a, new_b

    def _report(self, constraint):
        at_endpoint = (
            distance(constraint.position, self.a) < ENDPOINT_EPS
            or distance(constraint.position, self.b) < ENDPOINT_EPS
        )
        return to_report(constraint, at_new_endpoint=at_endpoint)

    def summary(self):
        return f"LineCurve(length={distance(self.a, self.b):.4g})"
