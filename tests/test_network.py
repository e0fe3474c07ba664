"""Tests for the reference curve network."""

import numpy as np
import pytest

from strokeneat.constraints.types import IntersectionConstraint, MirrorPlaneConstraint
from strokeneat.curves.bezier import BezierCurve
from strokeneat.curves.line import LineCurve
from strokeneat.curves.plane import Plane
from strokeneat.models import CurveKind, CurveRecord, PlacedCurveRecord
from strokeneat.network import CurveNetwork, curve_from_record, detect_constraints

from conftest import crossing_stroke


class TestCurveRecords:
    """Tests for building curves from records."""

    def test_line_record(self):
        """Test that line records become LineCurves."""
        curve = curve_from_record(CurveRecord(kind=CurveKind.LINE, control_points=[[0, 0, 0], [1, 0, 0]]))

        assert isinstance(curve, LineCurve)

    def test_bezier_record(self):
        """Test that Bezier records become BezierCurves."""
        record = CurveRecord(kind="bezier", control_points=[[0, 0, 0], [1, 1, 0], [2, 1, 0], [3, 0, 0]])

        assert isinstance(curve_from_record(record), BezierCurve)

    def test_line_needs_two_points(self):
        """Test that a line with three points is refused."""
        record = CurveRecord(kind="line", control_points=[[0, 0, 0], [1, 0, 0], [2, 0, 0]])

        with pytest.raises(ValueError):
            curve_from_record(record)


class TestCurveNetwork:
    """Tests for network bookkeeping."""

    def test_add_curve(self):
        """Test that a curve adds two end nodes and one segment."""
        network = CurveNetwork()
        stroke = network.add_curve(LineCurve([0, 0, 0], [1, 0, 0]), "a")

        assert network.graph.number_of_nodes() == 2
        assert network.graph.number_of_edges() == 1
        assert len(stroke.segments) == 1

    def test_duplicate_id_refused(self):
        """Test that curve ids are unique."""
        network = CurveNetwork()
        network.add_curve(LineCurve([0, 0, 0], [1, 0, 0]), "a")

        with pytest.raises(ValueError):
            network.add_curve(LineCurve([0, 1, 0], [1, 1, 0]), "a")

    def test_closed_curve_single_node(self):
        """Test that a curve ending where it starts gets one node."""
        closed = PlacedCurveRecord(curve_id="loop", curve=CurveRecord(
            kind="bezier",
            control_points=[[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 0, 0]],
        ))

        network = CurveNetwork.from_records([closed], [], 0.02)

        assert network.graph.number_of_nodes() == 1
        assert network.incident_count(0) == 2

    def test_intersection_splits_segments(self, crossing_network):
        """Test that a node splits both curves and joins four segments."""
        node = 4

        assert np.allclose(crossing_network.node_position(node), [0.5, 0, 0])
        assert crossing_network.incident_count(node) == 4
        for stroke in crossing_network.strokes.values():
            assert len(stroke.segments) == 2
            assert stroke.segments[0].end_node == node

    def test_segment_containing(self, crossing_network):
        """Test segment lookup by parameter."""
        vertical = crossing_network.strokes["vertical"]

        assert vertical.segment_containing(0.25) is vertical.segments[0]
        assert vertical.segment_containing(0.75) is vertical.segments[1]


class TestGetConstraint:
    """Tests for intersection constraints with placed curves."""

    def test_snaps_to_shared_node(self, crossing_network):
        """Test that a point near a shared node snaps to it and is marked at node."""
        constraint = crossing_network.strokes["vertical"].get_constraint([0.5, 0.01, 0], 0.02)

        assert isinstance(constraint, IntersectionConstraint)
        assert constraint.is_at_node
        assert np.allclose(constraint.position, [0.5, 0, 0])
        assert constraint.old_curve_data.t == pytest.approx(0.5)

    def test_mid_segment(self, crossing_network):
        """Test that a point away from nodes stays where it projects."""
        constraint = crossing_network.strokes["vertical"].get_constraint([0.52, 0.25, 0], 0.02)

        assert not constraint.is_at_node
        assert np.allclose(constraint.position, [0.5, 0.25, 0])

    def test_free_endpoint_not_a_node(self, crossing_network):
        """Test that snapping to an endpoint of a single curve does not count as a node."""
        constraint = crossing_network.strokes["vertical"].get_constraint([0.5, 0.49, 0], 0.02)

        assert np.allclose(constraint.position, [0.5, 0.5, 0])
        assert not constraint.is_at_node


class TestDetectConstraints:
    """Tests for constraint detection from samples."""

    def test_crossing_at_node(self, crossing_network, thresholds):
        """Test that crossing two curves at their node yields one node constraint."""
        stroke = crossing_stroke()

        constraints = detect_constraints(
            stroke, crossing_network, thresholds.proximity, thresholds.snap_to_node, thresholds.merge_constraints,
        )

        assert len(constraints) == 1
        assert constraints[0].is_at_node
        assert np.allclose(constraints[0].position, [0.5, 0, 0])

    def test_mirror_crossing(self, thresholds):
        """Test that crossing the mirror plane yields a mirror constraint at the crossing."""
        stroke = crossing_stroke()
        plane = Plane([1, 0, 0], [0.26, 0, 0])

        constraints = detect_constraints(
            stroke, CurveNetwork(), thresholds.proximity, thresholds.snap_to_node,
            thresholds.merge_constraints, mirror_plane=plane,
        )

        assert len(constraints) == 1
        assert isinstance(constraints[0], MirrorPlaneConstraint)
        assert np.allclose(constraints[0].position, [0.26, 0.003, 0])

    def test_no_curves_no_constraints(self, thresholds):
        """Test that an empty scene gives no constraints."""
        stroke = crossing_stroke()

        constraints = detect_constraints(
            stroke, CurveNetwork(), thresholds.proximity, thresholds.snap_to_node, thresholds.merge_constraints,
        )

        assert constraints == []
