"""
Constraint terms of the displacement solve.

Hard terms are linear equations on the displacements, enforced exactly
through Lagrange multiplier rows. Each knows its `row_count` and writes
its rows (and their transpose) into the saddle-point system at a given
row offset.

Soft terms are quadratic penalties. Each adds its Hessian and right-hand
side into the top-left (3N, 3N) block of the system.

Displacement unknowns are laid out per control point: x[3*i + k] is the
k-th coordinate of the displacement of control point i.
"""

import numpy as np

from strokeneat.curves.curve import EPS, normalize


def _set_symmetric(system, row, col, value):
    system[row, col] = value
    system[col, row] = value


class PositionTerm:
    """Control point `index` moves by exactly `offset`."""

    row_count = 3

    def __init__(self, index, offset):
        self.index = index
        self.offset = np.asarray(offset, dtype=float)

    def fill(self, system, rhs, row):
        for k in range(3):
            _set_symmetric(system, row + k, 3 * self.index + k, 1.0)
            rhs[row + k] = self.offset[k]


class SelfIntersectionTerm:
    """
    Control points `index_a` and `index_b` end up at the same place.

    `gap` is the initial vector from a to b, so the row reads
    x_a - x_b = gap.
    """

    row_count = 3

    def __init__(self, index_a, index_b, gap):
        self.index_a = index_a
        self.index_b = index_b
        self.gap = np.asarray(gap, dtype=float)

    def fill(self, system, rhs, row):
        for k in range(3):
            _set_symmetric(system, row + k, 3 * self.index_a + k, 1.0)
            _set_symmetric(system, row + k, 3 * self.index_b + k, -1.0)
            rhs[row + k] = self.gap[k]


class G1Term:
    """
    Keep the joints that are already smooth smooth.

    A joint between two segments is kept when both of its handles are
    longer than EPS and point the same way, with the sine of the angle
    between them under `tolerance`. For handle lengths l (left) and r
    (right) at anchor a, the row reads

        (1/l + 1/r) x_a - x_{a-1} / l - x_{a+1} / r = 0
    """

    def __init__(self, points, tolerance):
        points = np.asarray(points, dtype=float)
        self.joints = []

        segment_count = (len(points) - 1) // 3
        for i in range(segment_count - 1):
            a = 3 * (i + 1)
            left = points[a] - points[a - 1]
            right = points[a + 1] - points[a]
            l, r = np.linalg.norm(left), np.linalg.norm(right)
            if l <= EPS or r <= EPS:
                continue
            sine = np.linalg.norm(np.cross(left, right)) / (l * r)
            if sine < tolerance and float(left @ right) > 0:
                self.joints.append((a, float(l), float(r)))

    @property
    def joint_count(self):
        return len(self.joints)

    @property
    def row_count(self):
        return 3 * len(self.joints)

    def fill(self, system, rhs, row):
        for j, (a, l, r) in enumerate(self.joints):
            for k in range(3):
                line = row + 3 * j + k
                _set_symmetric(system, line, 3 * a + k, 1 / l + 1 / r)
                _set_symmetric(system, line, 3 * (a - 1) + k, -1 / l)
                _set_symmetric(system, line, 3 * (a + 1) + k, -1 / r)
                rhs[line] = 0.0


class TangentTerm:
    """
    Pull the control polygon edge at `index` toward `target`.

    Penalizes the component of the displaced edge orthogonal to the target
    direction, relative to the squared initial edge length. The last point
    uses its incoming edge, every other point its outgoing edge.
    """

    def __init__(self, index, target, points):
        points = np.asarray(points, dtype=float)
        n = len(points)
        if index < n - 1:
            self.index_a, self.index_b = index, index + 1
        else:
            self.index_a, self.index_b = index - 1, index

        t = normalize(target)
        self.projector = np.eye(3) - np.outer(t, t)
        self.edge = points[self.index_b] - points[self.index_a]
        self.factor = 2.0 / max(float(self.edge @ self.edge), EPS)

    def accumulate(self, a, b):
        m = self.factor * self.projector
        ia = slice(3 * self.index_a, 3 * self.index_a + 3)
        ib = slice(3 * self.index_b, 3 * self.index_b + 3)

        a[ia, ia] += m
        a[ib, ib] += m
        a[ia, ib] -= m
        a[ib, ia] -= m

        pull = m @ self.edge
        b[ia] += pull
        b[ib] -= pull


class PlanarityTerm:
    """
    Pull every control polygon edge into the plane with unit `normal`.

    Penalizes the normal component of each displaced edge, relative to its
    squared initial length, averaged over the edges.
    """

    def __init__(self, normal, points):
        points = np.asarray(points, dtype=float)
        self.n = len(points)
        normal = normalize(normal)
        self.nn = np.outer(normal, normal)
        self.edges = np.diff(points, axis=0)
        self.edge_norms2 = np.sum(self.edges ** 2, axis=1)
        self.factor = 2.0 / (self.n - 1)

    def accumulate(self, a, b):
        for k, (edge, norm2) in enumerate(zip(self.edges, self.edge_norms2)):
            if norm2 <= EPS:
                continue
            m = self.factor * self.nn / norm2
            ik = slice(3 * k, 3 * k + 3)
            ik1 = slice(3 * (k + 1), 3 * (k + 1) + 3)

            a[ik, ik] += m
            a[ik1, ik1] += m
            a[ik, ik1] -= m
            a[ik1, ik] -= m

            pull = m @ edge
            b[ik] += pull
            b[ik1] -= pull
