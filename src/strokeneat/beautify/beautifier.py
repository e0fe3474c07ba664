"""
Stroke beautification.

The Beautifier turns one input stroke into a clean curve:
1. Validate the stroke
2. Fit a line, or a poly-Bezier over the stroke's G1 sections
3. Re-localize intersections and detect closed loops
4. Trim overlaps with the curves crossed at the stroke ends
5. Solve for the best constraint subset (poly-Bezier) or pin the line
6. Project onto surface patches or the mirror plane when asked
7. Cut dangling ends and check the result
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from strokeneat.beautify.intersections import correct_intersections, trim_dangling_endpoints
from strokeneat.config import BeautifierConfig
from strokeneat.constraints.types import IntersectionConstraint, to_report
from strokeneat.curves.bezier import BezierCurve
from strokeneat.curves.curve import Curve, distance
from strokeneat.curves.line import LineCurve
from strokeneat.curves.plane import ORTHO_DIRECTIONS
from strokeneat.models import BeautifyRecord, ConstraintReport
from strokeneat.solver.constraint_solver import ConstraintSolver, SolverParams
from strokeneat.strokes.bezier_fit import fit_sections
from strokeneat.tracer import get_tracer, trace


@dataclass
class BeautifyResult:
    curve: Curve
    intersections: List[IntersectionConstraint] = field(default_factory=list)
    mirror_intersections: list = field(default_factory=list)
    applied: List[ConstraintReport] = field(default_factory=list)
    rejected: List[ConstraintReport] = field(default_factory=list)
    planar: bool = False
    plane_normal: Optional[np.ndarray] = None
    on_surface: bool = False
    on_mirror: bool = False
    is_closed: bool = False
    mirrored_curve: Optional[Curve] = None

    def to_record(self, stroke_id):
        return BeautifyRecord(
            stroke_id=stroke_id,
            curve=self.curve.to_record(),
            applied_constraints=self.applied,
            rejected_constraints=self.rejected,
            intersection_count=len(self.intersections),
            mirror_intersection_count=len(self.mirror_intersections),
            planar=self.planar,
            plane_normal=None if self.plane_normal is None else [float(x) for x in self.plane_normal],
            on_surface=self.on_surface,
            on_mirror=self.on_mirror,
            is_closed=self.is_closed,
            mirrored_curve=None if self.mirrored_curve is None else self.mirrored_curve.to_record(),
        )


class Beautifier:
    """
    Fit and constrain input strokes.

    Args:
        config: BeautifierConfig, defaults when omitted
        ortho_directions: directions lines and plane normals snap to
        mirror_plane: Plane used when mirroring is requested
        surfaces: SurfacePatches queried for surface projection
    """

    def __init__(self, config=None, ortho_directions=None, mirror_plane=None, surfaces=None):
        self.config = config or BeautifierConfig()
        self.thresholds = self.config.resolve()
        self.ortho_directions = ORTHO_DIRECTIONS if ortho_directions is None else np.asarray(ortho_directions, dtype=float)
        self.mirror_plane = mirror_plane
        self.surfaces = surfaces

    @trace(label="beautify", arg_names=["stroke", "fit_to_constraints", "mirror"])
    def beautify(self, stroke, fit_to_constraints=True, mirror=False):
        """
        Beautify one stroke.

        When mirroring is requested and the curve was not flattened onto the
        mirror plane, the result also carries its mirror image.

        Returns:
            BeautifyResult, or None when the stroke or the produced curve
            is not valid
        """
        tracer = get_tracer()
        th = self.thresholds

        if not stroke.is_valid(th.min_action_time, th.min_stroke_size):
            tracer.event("Invalid stroke, no curve produced", level="WARN", samples=len(stroke))
            return None

        curve = self.fit(stroke)

        if fit_to_constraints:
            result = self._constrain(stroke, curve, mirror)
        else:
            result = BeautifyResult(curve)

        if self.config.projection.trim_dangling_endpoints and not result.is_closed:
            result.intersections, result.mirror_intersections = trim_dangling_endpoints(
                result.curve,
                result.intersections,
                result.mirror_intersections,
                th.max_hook_section_length,
                th.max_hook_section_ratio,
                th.small_distance * 0.1,
                include_mirror=mirror,
            )

        if not result.curve.is_valid(th.min_stroke_size):
            tracer.event("Beautified curve is degenerate, no curve produced", level="WARN", curve=result.curve)
            return None

        if mirror and self.mirror_plane is not None and not result.on_mirror:
            result.mirrored_curve, mean_distance = result.curve.mirrored(self.mirror_plane)
            tracer.event("Built mirrored copy", level="DEBUG", mean_distance=mean_distance)

        tracer.event(
            f"Beautified into {result.curve.summary()}: "
            f"{len(result.applied)} applied, {len(result.rejected)} rejected",
        )
        return result

    def fit(self, stroke):
        """
        Unconstrained fit of a stroke.

        Short strokes, and nearly straight strokes drawn fast, become lines;
        everything else becomes a poly-Bezier.
        """
        th = self.thresholds
        safe = stroke.get_safe_points(th.ablation_duration)

        curve_length = stroke.length
        line_length = distance(safe[0], safe[-1])
        nearly_straight = (
            line_length > 0
            and abs(curve_length - line_length) / line_length < th.line_linearity_tolerance
            and stroke.average_drawing_speed() > th.line_speed
        )

        if curve_length < th.small_distance or nearly_straight:
            return LineCurve(safe[0], safe[-1], 1.0, 1.0)

        sections = stroke.get_g1_sections(
            max_angular_variation=th.max_angular_variation,
            hook_angular_variation=th.small_angle,
            ablation_duration=th.ablation_duration,
            min_section_length=th.min_g1_section_length,
            max_hook_length=th.max_hook_section_length,
            max_hook_ratio=th.max_hook_section_ratio,
        )
        beziers = fit_sections(
            sections,
            th.bezier_fitting_error,
            th.rdp_error,
            self.config.fitting.max_reparameterize_iterations,
        )
        return BezierCurve(beziers, stroke.get_weights())

    def _constrain(self, stroke, curve, mirror):
        tracer = get_tracer()
        th = self.thresholds

        constraints = correct_intersections(
            stroke.constraints,
            curve,
            th.small_distance,
            self.config.constraints.intersection_search_steps,
            th.snap_to_node,
        )

        # closed when the ends meet; end tangents are not compared
        is_closed = (
            isinstance(curve, BezierCurve)
            and curve.segment_count > 1
            and distance(curve.get_point(0.0), curve.get_point(1.0)) < th.proximity
        )

        if not is_closed:
            constraints = self._trim_overlaps(curve, constraints)

        if isinstance(curve, BezierCurve):
            segment_count = curve.bezier_count_between(0.0, 1.0)
            if segment_count > self.config.solver.max_beziers_for_solver:
                tracer.event(f"Curve too long to constrain ({segment_count} segments)", level="WARN")
                return BeautifyResult(curve, rejected=[to_report(c) for c in constraints])

            if not curve.is_non_degenerate():
                tracer.event("Degenerate Bezier curve, constraints not applied", level="ERROR")
                return BeautifyResult(curve, rejected=[to_report(c) for c in constraints])

            solver = ConstraintSolver(
                curve,
                constraints,
                self.ortho_directions,
                SolverParams.from_config(self.config, th),
                self.config.constraints,
                is_closed=is_closed,
            )
            solved = solver.get_best_fit()
            result = BeautifyResult(
                curve=solved.curve,
                intersections=solved.intersections,
                mirror_intersections=solved.mirror_intersections,
                applied=solved.applied,
                rejected=solved.rejected,
                planar=solved.planar,
                plane_normal=solved.plane_normal,
                is_closed=solved.is_closed,
            )

            if (self.config.projection.project_on_surface
                    and stroke.surface_constraints
                    and self.surfaces is not None):
                result.curve, result.on_surface = self.project_on_surfaces(
                    result.curve,
                    stroke.surface_constraints,
                    result.intersections,
                    solved.constrained_anchors,
                    result.is_closed,
                )

        else:
            outcome = curve.constrain(stroke.constraints, self.ortho_directions, th.small_angle, th.proximity)
            result = BeautifyResult(
                curve=curve,
                intersections=outcome.intersections,
                mirror_intersections=outcome.mirror_intersections,
                applied=outcome.applied,
                rejected=outcome.rejected,
            )

        if mirror and not result.on_surface and self.mirror_plane is not None:
            projected = self.project_on_mirror(result.curve, result.intersections)
            if projected is not None:
                result.curve = projected
                result.on_mirror = True

        return result

    def _trim_overlaps(self, curve, constraints):
        """
        Cut the curve where it starts or ends running along a crossed curve.

        Applies to the first and last constraints when they are intersections
        within proximity of the curve's end and tangent-aligned with it.
        """
        th = self.thresholds
        cos_angle = math.cos(th.small_angle)
        constraints = list(constraints)

        for position, index, throw_before in ((0.0, 0, True), (1.0, -1, False)):
            if not constraints or not isinstance(constraints[index], IntersectionConstraint):
                continue
            intersection = constraints[index]
            end = curve.point_on_curve(position)
            aligned = abs(float(np.asarray(intersection.old_curve_data.tangent) @ end.tangent)) > cos_angle
            if distance(intersection.position, end.position) < th.proximity and aligned:
                get_tracer().event("Trimming overlap with crossed curve", level="DEBUG", throw_before=throw_before)
                replacement = intersection.intersected_stroke.get_constraint(intersection.position, th.snap_to_node)
                constraints[index] = replacement
                curve.cut_at(curve.project(replacement.position).t, throw_before, th.small_distance * 0.1)

        return constraints

    def project_on_surfaces(self, curve, surface_constraints, intersections, constrained_anchors, is_closed):
        """
        Project the curve onto the surface patches it was drawn over.

        A span covering the whole curve projects every control point, when
        all constrained anchors already lie on the patch and at most one
        intersection is with a curve bounding it. A span touching only one
        end of the curve projects that end anchor, unless it is constrained.

        Returns:
            (curve, on_surface) with on_surface True when a whole span was
            projected; the input curve when the result is not valid
        """
        tracer = get_tracer()
        th = self.thresholds

        points = curve.control_points.copy()
        last = curve.segment_count
        constrained = set(constrained_anchors)
        on_surface = False
        last_anchor = 0

        for surface in surface_constraints:
            patch = surface.patch_id
            start = curve.project(surface.start_position)
            end = curve.project(surface.end_position) if surface.left_mid_stroke else curve.point_on_curve(1.0)

            start_anchor = max(last_anchor, curve.nearest_anchor_index(start.t))
            end_anchor = max(last_anchor, curve.nearest_anchor_index(end.t))
            last_anchor = end_anchor

            if start_anchor == end_anchor:
                if start_anchor in (0, last) and start_anchor not in constrained:
                    self._project_point(patch, points, 3 * start_anchor)
                continue

            if start_anchor != 0:
                if end_anchor == last and end_anchor not in constrained:
                    self._project_point(patch, points, 3 * end_anchor)
                continue

            if end_anchor != last:
                if start_anchor not in constrained:
                    self._project_point(patch, points, 0)
                continue

            if not all(self._lies_on_patch(patch, points[3 * a]) for a in constrained):
                continue

            bounding = sum(
                1 for inter in intersections
                if self.surfaces.bounds_patch(
                    patch, inter.intersected_stroke.segment_containing(inter.old_curve_data.t)
                )
            )
            if bounding > 1:
                continue

            tracer.event(f"Projecting anchors {start_anchor}..{end_anchor} on patch {patch}", level="DEBUG")
            on_surface = True
            for j in range(3 * start_anchor, 3 * end_anchor + 1):
                self._project_point(patch, points, j)

        if is_closed:
            points[-1] = points[0]

        projected = BezierCurve.from_control_points(points, curve.weights)
        if not projected.is_valid(th.min_stroke_size):
            tracer.event("Surface projection would be degenerate, reverted", level="WARN")
            return curve, False

        return projected, on_surface

    def _try_project(self, patch, position):
        ok, projected = self.surfaces.project_on_patch(patch, position)
        if ok and distance(projected, position) < self.thresholds.project_to_surface_distance:
            return True, np.asarray(projected, dtype=float)
        return False, position

    def _project_point(self, patch, points, j):
        ok, projected = self._try_project(patch, points[j])
        if ok:
            points[j] = projected

    def _lies_on_patch(self, patch, position):
        ok, projected = self._try_project(patch, position)
        return ok and distance(projected, position) <= self.thresholds.small_distance * 0.1

    def project_on_mirror(self, curve, intersections):
        """
        Flatten the curve onto the mirror plane, or None when it should not be.

        Every intersection must already lie on the plane, neither end tangent
        may cross the plane steeply, and the projection must move control
        points less than the mirror projection distance.
        """
        th = self.thresholds
        plane = self.mirror_plane

        if any(plane.distance(inter.position) > th.small_distance * 0.1 for inter in intersections):
            return None

        cos_angle = math.cos(th.small_angle)
        for t in (0.0, 1.0):
            if abs(float(plane.normal @ curve.point_on_curve(t).tangent)) > cos_angle:
                return None

        projected, score = curve.projected_on_plane(plane)
        if score < th.project_to_mirror_distance:
            get_tracer().event(f"Projected on mirror plane, score={score:.4g}", level="DEBUG")
            return projected
        return None
