"""
Curve abstraction shared by straight lines and poly-Bezier curves.

Every curve is parameterized over t in [0, 1] and supports evaluation,
projection of arbitrary points, cutting and length queries.
"""

from abc import ABC, abstractmethod
from typing import NamedTuple, Optional

import numpy as np

from strokeneat.models import CurveRecord, compute_bbox

EPS = 1e-5
TANGENT_DELTA = 1e-3


def normalize(v):
    """Unit vector along v, or the zero vector when v is too short."""
    v = np.asarray(v, dtype=float)
    norm = np.linalg.norm(v)
    if norm > EPS:
        return v / norm
    return np.zeros_like(v)


def distance(a, b):
    return float(np.linalg.norm(np.asarray(a, dtype=float) - np.asarray(b, dtype=float)))


class PointOnCurve(NamedTuple):
    """Parameter, position and unit tangent of a point on a curve."""
    t: float
    position: np.ndarray
    tangent: np.ndarray


class Reparameterization(NamedTuple):
    """
    Linear parameter remap left behind by a cut that removed whole segments.

    A cut that had to split a segment returns None instead, and dependent
    parameters must be recovered by projecting stored world positions.
    """
    t0: float
    ratio: float


IDENTITY = Reparameterization(0.0, 1.0)


def reparameterize(r, t):
    """Map a parameter of the curve before a cut to the curve after it."""
    if t < r.t0:
        return 0.0
    return (t - r.t0) * r.ratio


class Curve(ABC):
    """Base class for curves produced by the engine."""

    kind = None

    def __init__(self, weights=None):
        self.weights = [float(w) for w in weights] if weights else [1.0]
        self._arc_lengths = None

    @abstractmethod
    def get_point(self, t):
        """Position at parameter t."""

    @abstractmethod
    def project(self, point) -> PointOnCurve:
        """Closest point on the curve."""

    @abstractmethod
    def point_on_curve(self, t) -> PointOnCurve:
        """Point record at parameter t."""

    @property
    @abstractmethod
    def control_points(self) -> np.ndarray:
        """Explicit control points, one row per point."""

    @abstractmethod
    def cut_at(self, t, throw_before, snap_threshold) -> Optional[Reparameterization]:
        """Cut the curve in place, discarding what lies before or after t."""

    @abstractmethod
    def is_valid(self, size_threshold) -> bool:
        """False for curves too small or too degenerate to keep."""

    @abstractmethod
    def length_between(self, t_start, t_end) -> float:
        """Approximate arc length between two parameters."""

    def get_points(self, ts):
        return np.array([self.get_point(t) for t in ts])

    def get_weight(self, t):
        if len(self.weights) > 1:
            return self.weights[0] + (self.weights[-1] - self.weights[0]) * t
        return self.weights[0]

    def get_tangent(self, t):
        t1 = max(t - TANGENT_DELTA, 0.0)
        t2 = min(t + TANGENT_DELTA, 1.0)
        return normalize(self.get_point(t2) - self.get_point(t1))

    def get_length(self, divisions=200):
        """Polyline length of the curve, cached until the curve changes."""
        if self._arc_lengths is None or len(self._arc_lengths) != divisions + 1:
            pts = self.get_points(np.linspace(0.0, 1.0, divisions + 1))
            steps = np.linalg.norm(np.diff(pts, axis=0), axis=1)
            self._arc_lengths = np.concatenate([[0.0], np.cumsum(steps)])
        return float(self._arc_lengths[-1])

    def _changed(self):
        self._arc_lengths = None

    def to_record(self):
        points = self.control_points
        return CurveRecord(
            kind=self.kind,
            control_points=points.tolist(),
            bbox=compute_bbox(points),
        )

    def summary(self):
        return f"{type(self).__name__}(points={len(self.control_points)})"
