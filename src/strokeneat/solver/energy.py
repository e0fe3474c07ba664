"""
Fidelity energy of a control point displacement.

For control points B0 (N of them) and displacements X, the energy is

    p * sum |x_i|^2 + t * sum |x_i - x_{i+1}|^2 / |B0_i - B0_{i+1}|^2

with p = w_p / N / normalizer^2 and t = w_t / (N - 1). The first term
keeps points where they were, the second keeps the control polygon edges
from changing relative to their own length.
"""

import numpy as np

from strokeneat.curves.curve import EPS


class FidelityEnergy:

    def __init__(self, points, w_p, w_t, normalizer):
        points = np.asarray(points, dtype=float)
        self.n = len(points)
        self.p_factor = w_p / self.n / (normalizer * normalizer)
        self.t_factor = w_t / (self.n - 1) if self.n > 1 else 0.0
        self.edge_norms2 = np.sum(np.diff(points, axis=0) ** 2, axis=1)

    def accumulate(self, a):
        """Add the Hessian of the energy into the (3N, 3N) top-left block of `a`."""
        n = self.n
        idx = np.arange(3 * n)
        a[idx, idx] += 2 * self.p_factor

        for i, norm2 in enumerate(self.edge_norms2):
            if norm2 <= EPS:
                continue
            w = 2 * self.t_factor / norm2
            for k in range(3):
                r, s = 3 * i + k, 3 * (i + 1) + k
                a[r, r] += w
                a[s, s] += w
                a[r, s] -= w
                a[s, r] -= w

    def compute(self, displacements):
        x = np.asarray(displacements, dtype=float).reshape(self.n, 3)
        ep = float(np.sum(x * x))

        valid = self.edge_norms2 > EPS
        edge_delta2 = np.sum(np.diff(x, axis=0) ** 2, axis=1)
        et = float(np.sum(edge_delta2[valid] / self.edge_norms2[valid]))

        return self.p_factor * ep + self.t_factor * et
