"""Tests for line and poly-Bezier curves and planes."""

import math

import numpy as np
import pytest

from strokeneat.constraints.candidates import ConstraintCandidate
from strokeneat.constraints.types import PositionConstraint
from strokeneat.curves.bezier import BezierCurve, CubicBezier
from strokeneat.curves.curve import Reparameterization, distance, reparameterize
from strokeneat.curves.line import LineCurve
from strokeneat.curves.plane import ORTHO_DIRECTIONS, Plane, fit_plane, snap_direction
from strokeneat.models import CurveKind


def two_segment_curve():
    return BezierCurve.from_control_points([
        [0, 0, 0], [1, 1, 0], [2, 1, 0], [3, 0, 0],
        [4, -1, 0], [5, -1, 0], [6, 0, 0],
    ])


def candidate(t, likelihood=1.0):
    return ConstraintCandidate(constraint=None, t=t, likelihood=likelihood, score=1.0)


class TestLineCurve:
    """Tests for straight lines."""

    def test_projection_idempotent(self):
        """Test that projecting a point of the line returns it with its parameter."""
        line = LineCurve([0, 0, 0], [1, 2, 3])
        on_line = line.get_point(0.3)

        projected = line.project(on_line)

        assert projected.t == pytest.approx(0.3, abs=1e-9)
        assert distance(projected.position, on_line) < 1e-9

    def test_projection_clamps_to_ends(self):
        """Test that points beyond the ends project onto the end points."""
        line = LineCurve([0, 0, 0], [1, 0, 0])

        assert line.project([-1, 1, 0]).t == 0.0
        assert line.project([2, 1, 0]).t == 1.0

    def test_cut_before(self):
        """Test that cutting keeps the part after t and remaps parameters."""
        line = LineCurve([0, 0, 0], [1, 0, 0])

        r = line.cut_at(0.25, throw_before=True, snap_threshold=1e-3)

        assert np.allclose(line.a, [0.25, 0, 0])
        assert reparameterize(r, 0.625) == pytest.approx(0.5)

    def test_cut_near_end_is_ignored(self):
        """Test that a cut within the snap threshold of an end keeps the line."""
        line = LineCurve([0, 0, 0], [1, 0, 0])

        line.cut_at(0.999, throw_before=False, snap_threshold=0.01)

        assert np.allclose(line.b, [1, 0, 0])

    def test_validity_threshold(self):
        """Test that a line exactly as long as the size threshold is valid."""
        line = LineCurve([0, 0, 0], [0.01, 0, 0])

        assert line.is_valid(0.01)
        assert not line.is_valid(0.02)

    def test_constrain_without_constraints_snaps_to_axis(self):
        """Test that a nearly axis-aligned line snaps when the move is small."""
        line = LineCurve([0, 0, 0], [1, 0.01, 0])

        outcome = line.constrain([], ORTHO_DIRECTIONS, math.pi / 6, 0.04)

        assert np.allclose(line.direction, [1, 0, 0])
        assert outcome.applied == []

    def test_constrain_to_two_constraints(self):
        """Test that two constraints beyond the ends become the new endpoints."""
        line = LineCurve([0, 0, 0], [1, 0, 0])
        first = PositionConstraint([-0.01, 0, 0])
        second = PositionConstraint([1.01, 0.001, 0])

        outcome = line.constrain([first, second], ORTHO_DIRECTIONS, math.pi / 6, 0.04)

        assert np.allclose(line.a, first.position)
        assert np.allclose(line.b, second.position)
        assert len(outcome.applied) == 2
        assert all(report.is_at_new_endpoint for report in outcome.applied)

    def test_constrain_keeps_two_of_three(self):
        """Test that only the first constraint and the farthest from it are kept."""
        line = LineCurve([0, 0, 0], [1, 0, 0])
        constraints = [
            PositionConstraint([0, 0, 0]),
            PositionConstraint([0.5, 0, 0]),
            PositionConstraint([1, 0, 0]),
        ]

        outcome = line.constrain(constraints, ORTHO_DIRECTIONS, math.pi / 6, 0.04)

        assert len(outcome.applied) == 2
        assert len(outcome.rejected) == 1
        assert outcome.rejected[0].position == [0.5, 0.0, 0.0]

    def test_mirrored_line(self):
        """Test mirroring a line across the YZ plane."""
        line = LineCurve([1, 0, 0], [2, 1, 0])

        mirrored, score = line.mirrored(Plane([1, 0, 0], [0, 0, 0]))

        assert np.allclose(mirrored.a, [-1, 0, 0])
        assert np.allclose(mirrored.b, [-2, 1, 0])
        assert score == pytest.approx(3.0)


class TestBezierCurve:
    """Tests for poly-Bezier curves."""

    def test_control_point_count_checked(self):
        """Test that control point counts other than 3k+1 are refused."""
        with pytest.raises(ValueError):
            BezierCurve.from_control_points(np.zeros((5, 3)))

    def test_control_points_shared_anchors(self):
        """Test that adjacent segments share their anchor."""
        curve = two_segment_curve()

        assert curve.segment_count == 2
        assert curve.control_points.shape == (7, 3)
        assert np.allclose(curve.anchor(1), [3, 0, 0])
        assert curve.anchor_parameter(1) == 0.5

    def test_projection_idempotent(self):
        """Test that projecting a point of the curve returns it with its parameter."""
        curve = two_segment_curve()
        on_curve = curve.get_point(0.37)

        projected = curve.project(on_curve)

        assert projected.t == pytest.approx(0.37, abs=1e-3)
        assert distance(projected.position, on_curve) < 1e-3

    def test_projection_of_anchor(self):
        """Test that the end anchors project onto t = 0 and t = 1."""
        curve = two_segment_curve()

        assert curve.project([0, 0, 0]).t == pytest.approx(0.0)
        assert curve.project([6, 0, 0]).t == pytest.approx(1.0)

    def test_nearest_anchor_index(self):
        """Test nearest anchor lookup."""
        curve = two_segment_curve()

        assert curve.nearest_anchor_index(0.05) == 0
        assert curve.nearest_anchor_index(0.45) == 1
        assert curve.nearest_anchor_index(1.0) == 2

    def test_split_keeps_shape(self):
        """Test that splitting a segment inserts an anchor on the curve."""
        curve = two_segment_curve()
        midpoint = curve.get_point(0.25)

        anchor = curve.split_at(0, 0.5)

        assert anchor == 1
        assert curve.segment_count == 3
        assert np.allclose(curve.anchor(1), midpoint)

    def test_cut_at_anchor_returns_reparameterization(self):
        """Test that a cut snapped to an anchor drops whole segments."""
        curve = two_segment_curve()

        r = curve.cut_at(0.5001, throw_before=True, snap_threshold=0.1)

        assert isinstance(r, Reparameterization)
        assert curve.segment_count == 1
        assert np.allclose(curve.anchor(0), [3, 0, 0])
        assert reparameterize(r, 0.75) == pytest.approx(0.5)
        assert reparameterize(r, 0.2) == 0.0

    def test_cut_inside_segment(self):
        """Test that a cut inside a segment splits it and returns no remap."""
        curve = two_segment_curve()
        cut_point = curve.get_point(0.25)

        r = curve.cut_at(0.25, throw_before=False, snap_threshold=1e-6)

        assert r is None
        assert curve.segment_count == 1
        assert np.allclose(curve.get_point(1.0), cut_point)

    def test_split_for_constraints(self):
        """Test that far candidates split and candidates on anchors bind."""
        curve = two_segment_curve()
        old_anchor = curve.anchor(1).copy()
        first, second = candidate(0.25), candidate(0.5)

        by_anchor = curve.split_for_constraints([first, second], False, 0.01)

        assert curve.segment_count == 3
        assert by_anchor == {1: first, 2: second}
        assert np.allclose(curve.anchor(2), old_anchor)

    def test_split_for_constraints_closed_twin(self):
        """Test that the first and last anchors of a closed curve hold one candidate."""
        curve = two_segment_curve()
        start, end = candidate(0.0, likelihood=1.0), candidate(1.0, likelihood=2.0)

        by_anchor = curve.split_for_constraints([start, end], True, 0.01)

        assert by_anchor == {2: end}

    def test_project_constraint_near_endpoint(self):
        """Test that constraints near an end anchor are flagged."""
        curve = two_segment_curve()

        t, likelihood, close = curve.project_constraint([0.001, 0, 0], 0.01)

        assert t == pytest.approx(0.0, abs=1e-3)
        assert close
        assert likelihood > 100

    def test_validity(self):
        """Test validity checks for trivial and short curves."""
        point = [1, 1, 1]
        trivial = BezierCurve([CubicBezier(point, point, point, point)])

        assert not trivial.is_valid(0.0)
        assert two_segment_curve().is_valid(1.0)
        assert not two_segment_curve().is_valid(100.0)

    def test_non_degenerate(self):
        """Test that collapsed handles make a curve degenerate."""
        curve = BezierCurve.from_control_points([[0, 0, 0], [0, 0, 0], [1, 1, 0], [2, 0, 0]])

        assert not curve.is_non_degenerate()
        assert two_segment_curve().is_non_degenerate()

    def test_length_between(self):
        """Test arc length of a straight poly-Bezier."""
        curve = BezierCurve.from_control_points([[0, 0, 0], [1, 0, 0], [2, 0, 0], [3, 0, 0]])

        assert curve.length_between(0.0, 1.0) == pytest.approx(3.0)
        assert curve.get_length() == pytest.approx(3.0)

    def test_projected_on_plane(self):
        """Test flattening onto a plane and its score."""
        curve = BezierCurve.from_control_points([[0, 0, 0.1], [1, 1, 0], [2, 1, -0.2], [3, 0, 0]])

        flat, score = curve.projected_on_plane(Plane([0, 0, 1], [0, 0, 0]))

        assert np.allclose(flat.control_points[:, 2], 0.0)
        assert score == pytest.approx(0.2)

    def test_mirrored(self):
        """Test the mirror image of a poly-Bezier and its distance score."""
        mirrored, score = two_segment_curve().mirrored(Plane([1, 0, 0], [0, 0, 0]))

        assert np.allclose(mirrored.control_points[:, 0], -two_segment_curve().control_points[:, 0])
        assert mirrored.segment_count == 2
        assert score == pytest.approx(3.0)

    def test_to_record(self):
        """Test conversion to a curve record."""
        record = two_segment_curve().to_record()

        assert record.kind == CurveKind.BEZIER
        assert len(record.control_points) == 7
        assert record.bbox == [0.0, -1.0, 0.0, 6.0, 1.0, 0.0]


class TestPlane:
    """Tests for planes."""

    def test_fit_coplanar_points(self):
        """Test that fitting coplanar points recovers their plane."""
        normal = np.array([0.0, 0.6, 0.8])
        u, v = np.array([1.0, 0, 0]), np.array([0, 0.8, -0.6])
        points = [a * u + b * v for a, b in [(0, 0), (1, 1), (2, 1), (3, 0)]]

        plane, max_distance = fit_plane(points)

        assert abs(plane.normal @ normal) == pytest.approx(1.0)
        assert max_distance < 1e-9

    def test_fit_collinear_points(self):
        """Test that collinear points span no plane."""
        plane, max_distance = fit_plane([[0, 0, 0], [1, 1, 1], [2, 2, 2]])

        assert plane is None
        assert max_distance == math.inf

    def test_snap_to_ortho(self):
        """Test that a nearly vertical normal snaps to the Z axis."""
        plane = Plane([0.1, 0, 1], [0, 0, 0])

        snapped = plane.snapped_to_ortho(ORTHO_DIRECTIONS, math.cos(math.pi / 6))

        assert np.allclose(snapped.normal, [0, 0, 1])

    def test_snap_direction(self):
        """Test direction snapping keeps orientation and respects the angle."""
        snapped, direction = snap_direction(np.array([-0.99, 0.141, 0]), ORTHO_DIRECTIONS, math.pi / 6)
        assert snapped
        assert np.allclose(direction, [-1, 0, 0])

        snapped, direction = snap_direction(np.array([0.6, 0.8, 0]), ORTHO_DIRECTIONS, math.pi / 6)
        assert not snapped
        assert np.allclose(direction, [0.6, 0.8, 0])

    def test_mirror_and_distance(self):
        """Test point mirroring and distances."""
        plane = Plane([0, 0, 2], [0, 0, 1])

        assert np.allclose(plane.mirror([1, 1, 3]), [1, 1, -1])
        assert plane.distance([5, 5, -1]) == pytest.approx(2.0)
