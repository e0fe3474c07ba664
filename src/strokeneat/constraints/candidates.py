"""
Constraint candidates for the solver.

A candidate is a constraint located on the curve being fit: its parameter,
how well it matches the curve (likelihood), how much keeping it matters
(score), and whether the curve tangent should be aligned with it.
"""

import math
from dataclasses import dataclass

import numpy as np

from strokeneat.constraints.types import IntersectionConstraint, MirrorPlaneConstraint

NEAR_UNIT = 0.9


@dataclass(frozen=True, eq=False)
class ConstraintCandidate:
    constraint: object
    t: float
    likelihood: float
    score: float
    close_to_endpoint: bool = False
    aligned_tangents: bool = False


def should_align_tangent(constraint, curve_tangent, angular_threshold):
    """
    Decide whether the curve tangent gets pulled toward the constraint's direction.

    Both directions must be close to unit length and within the angular
    threshold, in either orientation. An intersection at a node whose old
    tangent already points the same way as the curve is left alone.
    """
    match constraint:
        case IntersectionConstraint(old_curve_data=old, is_at_node=at_node):
            reference = np.asarray(old.tangent, dtype=float)
            if at_node and float(reference @ curve_tangent) > 0:
                return False
        case MirrorPlaneConstraint(plane_normal=normal):
            reference = normal
        case _:
            return False

    if np.linalg.norm(reference) <= NEAR_UNIT or np.linalg.norm(curve_tangent) <= NEAR_UNIT:
        return False

    return abs(float(reference @ curve_tangent)) > math.cos(angular_threshold)


def score_constraint(constraint, close_to_endpoint, aligned, scoring):
    """Heuristic importance of keeping a constraint, weighted by `scoring` (a ConstraintConfig)."""
    match constraint:
        case IntersectionConstraint(is_at_node=True):
            score = scoring.node_score
        case IntersectionConstraint():
            score = scoring.mid_segment_score
        case _:
            score = scoring.position_score

    if close_to_endpoint:
        score = max(score, scoring.endpoint_score)

    if aligned:
        score += scoring.tangent_bonus

    return score


def build_candidates(curve, constraints, angular_threshold, min_distance_between_anchors, scoring):
    """
    Locate every constraint on a poly-Bezier curve.

    Returns:
        tuple of ConstraintCandidate sorted by ascending t
    """
    candidates = []
    for constraint in constraints:
        t, likelihood, close_to_endpoint = curve.project_constraint(
            constraint.position, min_distance_between_anchors
        )
        aligned = should_align_tangent(constraint, curve.get_tangent(t), angular_threshold)
        candidates.append(ConstraintCandidate(
            constraint=constraint,
            t=t,
            likelihood=likelihood,
            score=score_constraint(constraint, close_to_endpoint, aligned, scoring),
            close_to_endpoint=close_to_endpoint,
            aligned_tangents=aligned,
        ))

    return tuple(sorted(candidates, key=lambda c: c.t))
