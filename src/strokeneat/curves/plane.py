"""Planes: point/plane queries, mirroring, least-squares fitting and axis snapping."""

import math

import numpy as np

from strokeneat.curves.curve import EPS, normalize

ORTHO_DIRECTIONS = np.eye(3)


class Plane:
    """Plane through `point` with unit `normal`."""

    def __init__(self, normal, point):
        self.normal = normalize(normal)
        self.point = np.asarray(point, dtype=float)

    def signed_distance(self, p):
        return (np.asarray(p, dtype=float) - self.point) @ self.normal

    def distance(self, p):
        return np.abs(self.signed_distance(p))

    def project(self, p):
        p = np.asarray(p, dtype=float)
        return p - np.multiply.outer(self.signed_distance(p), self.normal)

    def mirror(self, p):
        p = np.asarray(p, dtype=float)
        return p - 2.0 * np.multiply.outer(self.signed_distance(p), self.normal)

    def snapped_to_ortho(self, ortho_directions, threshold):
        """
        Copy of the plane whose normal snaps to the closest ortho direction.

        The normal is replaced only when |cos| with that direction exceeds
        threshold.
        """
        dots = np.abs(np.asarray(ortho_directions, dtype=float) @ self.normal)
        best = int(np.argmax(dots))
        if dots[best] > threshold:
            return Plane(ortho_directions[best], self.point)
        return Plane(self.normal, self.point)

    @classmethod
    def fit(cls, points):
        """Least-squares plane through points, or None if they span no plane."""
        points = np.asarray(points, dtype=float)
        centroid = points.mean(axis=0)
        _, singular, vt = np.linalg.svd(points - centroid)
        if len(singular) < 2 or singular[1] <= EPS * max(singular[0], EPS):
            return None
        return cls(vt[-1], centroid)

    def __repr__(self):
        return f"Plane(normal={self.normal.tolist()}, point={self.point.tolist()})"


def fit_plane(points):
    """
    Fit a plane to points.

    Returns:
        (plane, max point-to-plane distance), or (None, inf) when fewer than
        three points are given or they are collinear. Collinear control
        points, as on a straight poly-Bezier, are never reported planar.
    """
    if len(points) < 3:
        return None, math.inf

    plane = Plane.fit(points)
    if plane is None:
        return None, math.inf

    return plane, float(np.max(plane.distance(points)))


def snap_direction(direction, ortho_directions, angular_threshold):
    """
    Snap a unit direction to the first ortho direction within the angle.

    Returns:
        (snapped, direction), the ortho direction keeping the orientation
        of the input when snapped.
    """
    threshold = abs(math.cos(angular_threshold))
    for axis in np.asarray(ortho_directions, dtype=float):
        dot = float(direction @ axis)
        if abs(dot) > threshold:
            return True, axis if dot > 0 else -axis
    return False, direction
