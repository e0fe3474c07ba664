"""
Constrained least-squares solve for control point displacements.

The system is assembled in one contiguous (3N + m, 3N + m) buffer:

    [[A, C^T],   [x     ]   [b]
     [C, 0  ]] * [lambda] = [d]

where A is the fidelity Hessian plus the soft terms, and the m rows of C
are the hard terms stacked at increasing row offsets.
"""

import numpy as np
import scipy.linalg

from strokeneat.solver.energy import FidelityEnergy
from strokeneat.tracer import get_tracer


class SolverFailure(RuntimeError):
    """The displacement system is singular or produced non-finite values."""


def solve_displacements(points, hard_terms, soft_terms, w_p, w_t, normalizer):
    """
    Displace control points to satisfy the hard terms at minimal energy.

    Args:
        points: (N, 3) control points
        hard_terms: terms with `row_count` and `fill(system, rhs, row)`
        soft_terms: terms with `accumulate(a, b)`
        w_p, w_t: fidelity weights of positions and edges
        normalizer: distance that scales the position term

    Returns:
        (displaced points, fidelity energy of the displacement)

    Raises:
        SolverFailure: singular system or non-finite solution
    """
    points = np.asarray(points, dtype=float)
    n = len(points)
    size = 3 * n

    fidelity = FidelityEnergy(points, w_p, w_t, normalizer)
    displacements = np.zeros(size)

    if hard_terms or soft_terms:
        m = sum(term.row_count for term in hard_terms)
        system = np.zeros((size + m, size + m))
        rhs = np.zeros(size + m)

        fidelity.accumulate(system[:size, :size])
        for term in soft_terms:
            term.accumulate(system[:size, :size], rhs[:size])

        row = size
        for term in hard_terms:
            term.fill(system, rhs, row)
            row += term.row_count

        try:
            solution = scipy.linalg.solve(system, rhs, assume_a="sym")
        except (scipy.linalg.LinAlgError, ValueError) as e:
            raise SolverFailure(f"displacement system could not be solved: {e}") from e

        displacements = solution[:size]
        if not np.all(np.isfinite(displacements)):
            raise SolverFailure("displacement system produced non-finite values")

        get_tracer().event(
            f"Solved {size + m}x{size + m} system ({m} hard rows, {len(soft_terms)} soft terms)",
            level="DEBUG",
        )

    energy = fidelity.compute(displacements)
    return points + displacements.reshape(n, 3), energy
