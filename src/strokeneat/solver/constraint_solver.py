"""
Constraint solver: choose which constraints to honor and deform the curve.

The solver looks for the subset of constraint candidates that minimizes

    mu * fidelity + (1 - mu) * exp(-(kept score)^2 / (total score)^2)

by greedy backward elimination. Starting from every candidate, it
repeatedly tries dropping each constraint bound in the current best fit,
keeps the cheapest resulting fit if it is strictly better, and stops
otherwise. Each subset is fit by splitting the base curve at the
constraints, building hard and soft terms and solving for displacements.

Active subsets are frozensets of candidate indices; candidates themselves
never change during the search.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from strokeneat.constraints.candidates import build_candidates
from strokeneat.constraints.types import (
    IntersectionConstraint, MirrorPlaneConstraint, project_on, reference_tangent, to_report,
)
from strokeneat.curves.bezier import BezierCurve
from strokeneat.curves.plane import fit_plane
from strokeneat.models import ConstraintReport
from strokeneat.solver.linear import SolverFailure, solve_displacements
from strokeneat.solver.terms import G1Term, PlanarityTerm, PositionTerm, SelfIntersectionTerm, TangentTerm
from strokeneat.tracer import get_tracer, trace

CLOSED_TANGENT_AGREEMENT = 0.5


@dataclass(frozen=True)
class SolverParams:
    mu_fidelity: float = 0.6
    w_p: float = 0.5
    w_t: float = 0.5
    proximity_threshold: float = 0.04
    min_distance_between_anchors: float = 0.02
    angular_threshold: float = math.pi / 6
    planarity_allowed: bool = True
    g1_tolerance: float = 1e-4

    @classmethod
    def from_config(cls, config, thresholds):
        return cls(
            mu_fidelity=config.solver.mu_fidelity,
            w_p=config.solver.w_p,
            w_t=config.solver.w_t,
            proximity_threshold=thresholds.proximity,
            min_distance_between_anchors=thresholds.min_distance_between_anchors,
            angular_threshold=thresholds.small_angle,
            planarity_allowed=config.solver.planarity_allowed,
            g1_tolerance=config.solver.g1_tolerance,
        )


@dataclass(frozen=True, eq=False)
class CurveFitCandidate:
    """Outcome of fitting one constraint subset."""
    control_points: np.ndarray
    energy: float
    anchors: Dict[int, int]  # anchor index -> candidate index
    planar: bool = False
    plane_normal: Optional[np.ndarray] = None
    is_closed: bool = False
    failed: bool = False


@dataclass
class SolverResult:
    curve: BezierCurve
    intersections: List[IntersectionConstraint] = field(default_factory=list)
    mirror_intersections: List[MirrorPlaneConstraint] = field(default_factory=list)
    applied: List[ConstraintReport] = field(default_factory=list)
    rejected: List[ConstraintReport] = field(default_factory=list)
    constrained_anchors: List[int] = field(default_factory=list)
    planar: bool = False
    plane_normal: Optional[np.ndarray] = None
    is_closed: bool = False
    energy_trace: List[float] = field(default_factory=list)


class ConstraintSolver:
    """
    Search over constraint subsets for one poly-Bezier curve.

    Args:
        curve: unconstrained fit, left untouched
        constraints: position, intersection and mirror plane constraints
        ortho_directions: directions plane normals may snap to
        params: SolverParams
        scoring: ConstraintConfig holding the candidate scores
        is_closed: whether the curve should close into a loop
    """

    def __init__(self, curve, constraints, ortho_directions, params, scoring, is_closed=False):
        self.base = curve.copy()
        self.ortho_directions = np.asarray(ortho_directions, dtype=float)
        self.params = params
        self.is_closed = is_closed

        self.candidates = build_candidates(
            self.base, constraints, params.angular_threshold,
            params.min_distance_between_anchors, scoring,
        )
        self.all_score = sum(c.score for c in self.candidates)

    def constraint_energy(self, candidate_indices):
        """Penalty for leaving constraints out, 1 when none is kept and e^-1 when all are."""
        if self.all_score == 0:
            return 0.0
        kept = sum(self.candidates[i].score for i in candidate_indices)
        return math.exp(-(kept * kept) / (self.all_score * self.all_score))

    def fit_for_constraints(self, active):
        """Fit the curve to the candidates whose indices are in `active`."""
        tracer = get_tracer()
        params = self.params

        curve = self.base.copy()
        subset = [self.candidates[i] for i in sorted(active)]
        by_anchor = curve.split_for_constraints(subset, self.is_closed, params.min_distance_between_anchors)
        anchors = {a: self.candidates.index(c) for a, c in by_anchor.items()}

        points = curve.control_points
        last = len(points) - 1
        hard = []
        soft = []

        start_end_tangent = curve.anchor_tangent(0)
        for anchor, candidate in by_anchor.items():
            constraint = candidate.constraint
            index = 3 * anchor
            hard.append(PositionTerm(index, constraint.position - curve.anchor(anchor)))

            if candidate.aligned_tangents:
                target = reference_tangent(constraint)
                if isinstance(constraint, IntersectionConstraint) and index in (0, last):
                    start_end_tangent = target
                soft.append(TangentTerm(index, target, points))

        n = curve.segment_count
        closed = False
        if self.is_closed and n > 1 and not (0 in by_anchor and n in by_anchor):
            hard.append(SelfIntersectionTerm(0, 3 * n, curve.anchor(n) - curve.anchor(0)))
            if abs(float(start_end_tangent @ curve.anchor_tangent(n))) > CLOSED_TANGENT_AGREEMENT:
                soft.append(TangentTerm(3 * n, start_end_tangent, points))
            closed = True

        if len(points) > 4:
            g1 = G1Term(points, params.g1_tolerance)
            if g1.joint_count > 0:
                hard.append(g1)

        planar = False
        plane_normal = None
        if params.planarity_allowed:
            plane, max_distance = fit_plane(points)
            if plane is not None and max_distance < params.proximity_threshold:
                plane = plane.snapped_to_ortho(self.ortho_directions, abs(math.cos(params.angular_threshold)))
                soft.append(PlanarityTerm(plane.normal, points))
                planar = True
                plane_normal = plane.normal

        try:
            fitted, fidelity = solve_displacements(
                points, hard, soft, params.w_p, params.w_t, params.proximity_threshold,
            )
        except SolverFailure as e:
            tracer.event(f"Subset fit failed: {e}", level="ERROR", anchors=len(anchors))
            return CurveFitCandidate(points, math.inf, anchors, planar, plane_normal, closed, failed=True)

        rejection = self.constraint_energy(anchors.values())
        energy = params.mu_fidelity * fidelity + (1 - params.mu_fidelity) * rejection

        tracer.event(
            f"Subset fit: energy={energy:.6g} fidelity={fidelity:.6g} rejection={rejection:.6g}",
            level="DEBUG",
            bound=len(anchors),
            hard=len(hard),
            soft=len(soft),
        )

        return CurveFitCandidate(fitted, energy, anchors, planar, plane_normal, closed)

    def get_best_subset(self, best, active):
        """
        Try dropping each constraint bound in `best`.

        Returns:
            (cheapest fit, index of the dropped candidate), or (None, None)
            when nothing is bound
        """
        best_fit = None
        removed = None
        for index in best.anchors.values():
            fit = self.fit_for_constraints(active - {index})
            if best_fit is None or fit.energy < best_fit.energy:
                best_fit = fit
                removed = index
        return best_fit, removed

    @trace(label="get_best_fit")
    def get_best_fit(self):
        """
        Run the backward elimination search and build the result.

        A search whose final fit failed returns the base curve with every
        constraint rejected.
        """
        tracer = get_tracer()

        active = frozenset(range(len(self.candidates)))
        best = self.fit_for_constraints(active)
        energies = [best.energy]

        while best.anchors:
            fit, removed = self.get_best_subset(best, active)
            if fit is None or not fit.energy < best.energy:
                break
            best = fit
            active = active - {removed}
            energies.append(best.energy)

        tracer.event(
            f"Best subset binds {len(best.anchors)} of {len(self.candidates)} constraints",
            energy=best.energy,
        )

        if best.failed or not np.all(np.isfinite(best.control_points)):
            tracer.event("Constraint solver produced no usable fit, keeping the input curve", level="ERROR")
            return SolverResult(
                curve=self.base.copy(),
                rejected=[to_report(c.constraint, c.close_to_endpoint) for c in self.candidates],
                energy_trace=energies,
            )

        points = best.control_points.copy()
        if best.is_closed:
            points[-1] = points[0]
        curve = BezierCurve.from_control_points(points, self.base.weights)

        intersections = []
        mirror_intersections = []
        for anchor in sorted(best.anchors):
            constraint = self.candidates[best.anchors[anchor]].constraint
            match constraint:
                case IntersectionConstraint():
                    intersections.append(project_on(constraint, curve, anchor))
                case MirrorPlaneConstraint():
                    mirror_intersections.append(project_on(constraint, curve, anchor))

        bound = set(best.anchors.values())
        applied = []
        rejected = []
        for i, candidate in enumerate(self.candidates):
            if i in bound:
                applied.append(to_report(candidate.constraint, candidate.close_to_endpoint, candidate.aligned_tangents))
            else:
                rejected.append(to_report(candidate.constraint, candidate.close_to_endpoint))

        return SolverResult(
            curve=curve,
            intersections=intersections,
            mirror_intersections=mirror_intersections,
            applied=applied,
            rejected=rejected,
            constrained_anchors=sorted(best.anchors),
            planar=best.planar,
            plane_normal=best.plane_normal,
            is_closed=best.is_closed,
            energy_trace=energies,
        )
