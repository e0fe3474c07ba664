"""
Cubic Bezier segments and poly-Bezier curves.

A poly-Bezier with N segments is described by 3N+1 control points where
adjacent segments share their anchor. Segment i covers the global
parameter range [i/N, (i+1)/N].
"""

import math

import numpy as np

from strokeneat.curves.curve import (
    EPS, IDENTITY, Curve, PointOnCurve, Reparameterization, distance, normalize,
)
from strokeneat.models import CurveKind

PROJECT_ITERATIONS = 5
CONSTRAINT_PROJECT_SLICES = 15
CONSTRAINT_PROJECT_ITERATIONS = 10
MIN_PARAMETER_STEP = 1e-5


def _bernstein(u):
    """Cubic Bernstein basis, shape (..., 4)."""
    u = np.asarray(u, dtype=float)
    v = 1.0 - u
    return np.stack([v ** 3, 3 * v ** 2 * u, 3 * v * u ** 2, u ** 3], axis=-1)


class CubicBezier:
    """A single cubic segment with control points p0..p3."""

    def __init__(self, p0, p1, p2, p3):
        self.points = np.array([p0, p1, p2, p3], dtype=float)

    def __getitem__(self, idx):
        return self.points[idx]

    def calculate(self, u):
        return _bernstein(u) @ self.points

    def derivative1(self, u):
        u = np.asarray(u, dtype=float)
        d = np.diff(self.points, axis=0)
        v = 1.0 - u
        basis = np.stack([v ** 2, 2 * v * u, u ** 2], axis=-1)
        return 3.0 * (basis @ d)

    def derivative2(self, u):
        u = np.asarray(u, dtype=float)
        dd = np.diff(self.points, n=2, axis=0)
        basis = np.stack([1.0 - u, u], axis=-1)
        return 6.0 * (basis @ dd)

    def split(self, u):
        """De Casteljau split at u into (left, right) segments."""
        p = self.points
        p01 = (1 - u) * p[0] + u * p[1]
        p12 = (1 - u) * p[1] + u * p[2]
        p23 = (1 - u) * p[2] + u * p[3]
        p012 = (1 - u) * p01 + u * p12
        p123 = (1 - u) * p12 + u * p23
        mid = (1 - u) * p012 + u * p123
        return CubicBezier(p[0], p01, p012, mid), CubicBezier(mid, p123, p23, p[3])

    def is_non_trivial(self):
        return not (np.array_equal(self.points[0], self.points[1])
                    and np.array_equal(self.points[0], self.points[2])
                    and np.array_equal(self.points[0], self.points[3]))

    def is_non_degenerate(self):
        steps = np.linalg.norm(np.diff(self.points, axis=0), axis=1)
        return bool(np.all(steps > EPS))

    def copy(self):
        return CubicBezier(*self.points)

    def __repr__(self):
        return f"CubicBezier({self.points.tolist()})"


class BezierCurve(Curve):
    """Poly-Bezier curve made of connected cubic segments."""

    kind = CurveKind.BEZIER

    def __init__(self, beziers, weights=None):
        if not beziers:
            raise ValueError("a poly-Bezier needs at least one segment")
        super().__init__(weights)
        self.beziers = list(beziers)

    @classmethod
    def from_control_points(cls, points, weights=None):
        points = np.asarray(points, dtype=float)
        n = len(points)
        if n < 4 or (n - 1) % 3 != 0:
            raise ValueError(f"poly-Bezier needs 3k+1 control points (k >= 1), got {n}")
        beziers = [CubicBezier(*points[3 * i:3 * i + 4]) for i in range((n - 1) // 3)]
        return cls(beziers, weights)

    def copy(self):
        return BezierCurve([b.copy() for b in self.beziers], self.weights)

    @property
    def segment_count(self):
        return len(self.beziers)

    @property
    def control_points(self):
        head = [b.points[:3] for b in self.beziers]
        return np.vstack(head + [self.beziers[-1].points[3:]])

    def _segment_parameter(self, t):
        n = len(self.beziers)
        if math.isclose(t, 1.0, abs_tol=1e-9) or t > 1.0:
            return n - 1, 1.0
        t = max(t, 0.0)
        idx = min(int(math.floor(t * n)), n - 1)
        return idx, t * n - idx

    def get_point(self, t):
        idx, u = self._segment_parameter(t)
        return self.beziers[idx].calculate(u)

    def get_points(self, ts):
        ts = np.clip(np.asarray(ts, dtype=float), 0.0, 1.0)
        n = len(self.beziers)
        idx = np.minimum(np.floor(ts * n).astype(int), n - 1)
        u = ts * n - idx
        ctrl = np.stack([b.points for b in self.beziers])
        return np.einsum("ij,ijk->ik", _bernstein(u), ctrl[idx])

    def anchor(self, i):
        if i < len(self.beziers):
            return self.beziers[i].points[0]
        return self.beziers[-1].points[3]

    def anchor_parameter(self, i):
        n = len(self.beziers)
        if i >= n:
            return 1.0
        return i / n

    def anchor_tangent(self, i):
        """Unit handle direction at anchor i, zero when the handle collapsed."""
        if i < len(self.beziers):
            t = self.beziers[i].points[1] - self.beziers[i].points[0]
        else:
            t = self.beziers[-1].points[3] - self.beziers[-1].points[2]
        return normalize(t)

    def point_on_anchor(self, i):
        return PointOnCurve(self.anchor_parameter(i), self.anchor(i).copy(), self.anchor_tangent(i))

    def point_on_curve(self, t):
        return PointOnCurve(t, self.get_point(t), self.get_tangent(t))

    def nearest_anchor_index(self, t):
        idx, u = self._segment_parameter(t)
        p = self.beziers[idx].calculate(u)
        return idx if distance(p, self.anchor(idx)) < distance(p, self.anchor(idx + 1)) else idx + 1

    def bezier_count_between(self, t_start, t_end):
        start, _ = self._segment_parameter(t_start)
        end, _ = self._segment_parameter(t_end)
        return abs(end - start) + 1

    def closest_parameter(self, point, slices, iterations):
        """Parameter of the closest sampled point, refining a shrinking window."""
        point = np.asarray(point, dtype=float)
        start, end = 0.0, 1.0
        t_best = 0.0
        for _ in range(iterations):
            step = (end - start) / slices
            if step < MIN_PARAMETER_STEP:
                break
            ts = np.linspace(start, end, slices + 1)
            dists = np.linalg.norm(self.get_points(ts) - point, axis=1)
            t_best = float(ts[int(np.argmin(dists))])
            start, end = max(t_best - step, 0.0), min(t_best + step, 1.0)
        return t_best

    def project(self, point):
        t = self.closest_parameter(point, 10 * len(self.beziers), PROJECT_ITERATIONS)
        return self.point_on_curve(t)

    def project_constraint(self, position, endpoint_threshold):
        """
        Locate a constraint position on the curve.

        Returns:
            (t, likelihood, close_to_endpoint) with likelihood the inverse
            distance between the position and its projection.
        """
        slices = max(CONSTRAINT_PROJECT_SLICES, 10 * len(self.beziers))
        t = self.closest_parameter(position, slices, CONSTRAINT_PROJECT_ITERATIONS)
        p = self.get_point(t)
        likelihood = 1.0 / (1e-4 + distance(position, p))
        close_to_endpoint = (
            distance(p, self.anchor(0)) < endpoint_threshold
            or distance(p, self.anchor(len(self.beziers))) < endpoint_threshold
        )
        return t, likelihood, close_to_endpoint

    def split_at(self, idx, u):
        """Split segment idx at local parameter u; returns the new anchor index."""
        left, right = self.beziers[idx].split(u)
        self.beziers[idx:idx + 1] = [left, right]
        self._changed()
        return idx + 1

    def cut_at(self, t, throw_before, snap_threshold):
        """
        Cut the curve at t, discarding the part before (or after) it.

        Cuts within snap_threshold of an anchor happen at that anchor and
        return a Reparameterization; cuts that split a segment return None.
        """
        idx, u = self._segment_parameter(t)
        p = self.beziers[idx].calculate(u)
        d_left = distance(self.anchor(idx), p)
        d_right = distance(self.anchor(idx + 1), p)

        if min(d_left, d_right) < snap_threshold:
            cut_idx = idx if d_left <= d_right else idx + 1
            old_count = len(self.beziers)
            if old_count < 2:
                return IDENTITY
            kept = self.beziers[cut_idx:] if throw_before else self.beziers[:cut_idx]
            if not kept:
                return IDENTITY
            self.beziers = kept
            self._changed()
            t0 = cut_idx / old_count if throw_before else 0.0
            return Reparameterization(t0, old_count / len(kept))

        cut_idx = self.split_at(idx, u)
        self.beziers = self.beziers[cut_idx:] if throw_before else self.beziers[:cut_idx]
        self._changed()
        return None

    def split_for_constraints(self, candidates, is_closed, min_distance):
        """
        Insert anchors at the candidates' parameters.

        Candidates must be sorted by ascending t, with t measured on the curve
        before any split. A candidate closer than min_distance to an existing
        anchor binds to that anchor instead of splitting; an anchor keeps only
        its most likely candidate, and on a closed curve the first and last
        anchors count as one.

        Returns:
            dict mapping anchor index to candidate.
        """
        anchor_params = [i / len(self.beziers) for i in range(len(self.beziers))]
        by_anchor = {}

        for candidate in candidates:
            padded = anchor_params + [1.0]
            seg = max(0, next((k for k, x in enumerate(padded) if x >= candidate.t), len(padded)) - 1)
            seg = min(seg, len(self.beziers) - 1)
            span = padded[seg + 1] - padded[seg]
            u = (candidate.t - padded[seg]) / span if span > 0 else 0.0

            p = self.beziers[seg].calculate(u)
            d_left = distance(p, self.anchor(seg))
            d_right = distance(p, self.anchor(seg + 1))

            if min(d_left, d_right) < min_distance:
                closest = seg if d_left < d_right else seg + 1
                last = len(self.beziers)
                twin = None
                if is_closed and closest == 0:
                    twin = last
                elif is_closed and closest == last:
                    twin = 0

                if closest in by_anchor:
                    if by_anchor[closest].likelihood < candidate.likelihood:
                        by_anchor[closest] = candidate
                elif twin is not None and twin in by_anchor:
                    if by_anchor[twin].likelihood < candidate.likelihood:
                        del by_anchor[twin]
                        by_anchor[closest] = candidate
                else:
                    by_anchor[closest] = candidate
            else:
                new_anchor = self.split_at(seg, u)
                anchor_params.insert(new_anchor, candidate.t)
                by_anchor = {(k + 1 if k >= new_anchor else k): c for k, c in by_anchor.items()}
                by_anchor[new_anchor] = candidate

        return by_anchor

    def length_between(self, t_start, t_end):
        samples = 10 * len(self.beziers)
        pts = self.get_points(np.linspace(t_start, t_end, samples + 1))
        return float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))

    def is_valid(self, size_threshold):
        if not all(b.is_non_trivial() for b in self.beziers):
            return False
        return self.get_length() >= size_threshold

    def is_non_degenerate(self):
        return all(b.is_non_degenerate() for b in self.beziers)

    def mirrored(self, plane):
        """Mirror image of the curve, scored by mean distance of control points to the plane."""
        points = self.control_points
        mirrored = plane.mirror(points)
        score = float(np.mean(0.5 * np.abs((mirrored - points) @ plane.normal)))
        return BezierCurve.from_control_points(mirrored, self.weights), score

    def projected_on_plane(self, plane):
        """Curve flattened onto the plane, scored by the largest control point move."""
        points = self.control_points
        projected = plane.project(points)
        score = float(np.max(np.abs((projected - points) @ plane.normal)))
        return BezierCurve.from_control_points(projected, self.weights), score

    def summary(self):
        return f"BezierCurve(segments={len(self.beziers)})"
