"""
Curve network queried by the beautifier.

The beautifier only needs a few queries from the curves already placed in
the scene: projecting a point onto a placed curve, building an
intersection constraint with node snapping, and finding the network
segment around a parameter. Those are described by the protocols below.

CurveNetwork is an in-memory implementation on a networkx MultiGraph:
nodes are points shared by curves (or curve endpoints), edges are the
segments of each placed curve between consecutive nodes. It also detects
the constraints of an input stroke from its samples, which is what the
command line tool uses in place of interactive collision detection.
"""

from dataclasses import dataclass
from typing import Protocol, Tuple

import networkx as nx
import numpy as np

from strokeneat.constraints.types import IntersectionConstraint, MirrorPlaneConstraint
from strokeneat.curves.bezier import BezierCurve
from strokeneat.curves.curve import EPS, Curve, distance
from strokeneat.curves.line import LineCurve
from strokeneat.models import CurveKind
from strokeneat.tracer import get_tracer, trace


class IntersectedStroke(Protocol):
    curve: Curve

    def get_constraint(self, position, snap_threshold) -> IntersectionConstraint:
        ...

    def segment_containing(self, t):
        ...


class SurfacePatches(Protocol):
    def project_on_patch(self, patch_id, position) -> Tuple[bool, np.ndarray]:
        ...

    def bounds_patch(self, patch_id, segment) -> bool:
        ...


def curve_from_record(record):
    """Build a curve from a CurveRecord."""
    points = np.asarray(record.control_points, dtype=float)
    match record.kind:
        case CurveKind.LINE:
            if len(points) != 2:
                raise ValueError(f"line needs 2 control points, got {len(points)}")
            return LineCurve(points[0], points[1])
        case CurveKind.BEZIER:
            return BezierCurve.from_control_points(points)
        case _:
            raise ValueError(f"unknown curve kind: {record.kind}")


@dataclass
class Segment:
    """Part of a placed curve between two network nodes."""
    key: int
    stroke_id: str
    start_node: int
    end_node: int
    t_start: float
    t_end: float


class PlacedStroke:
    """A curve placed in the network, cut into segments at its nodes."""

    def __init__(self, network, stroke_id, curve):
        self.network = network
        self.stroke_id = stroke_id
        self.curve = curve
        self.segments = []

    def __repr__(self):
        return f"PlacedStroke({self.stroke_id!r}, segments={len(self.segments)})"

    def segment_containing(self, t):
        for segment in self.segments:
            if segment.t_start <= t <= segment.t_end:
                return segment
        return self.segments[-1] if self.segments else None

    def closest_node(self, segment, position):
        """Closer end node of `segment` and its parameter on the curve."""
        start = self.network.node_position(segment.start_node)
        end = self.network.node_position(segment.end_node)
        if distance(start, position) < distance(end, position):
            return segment.start_node, segment.t_start
        return segment.end_node, segment.t_end

    def get_constraint(self, position, snap_threshold):
        """
        Intersection constraint with this stroke near `position`.

        The point snaps to the closest node of the segment it falls on when
        within snap_threshold; it counts as being at a node when that node
        has more than one incident segment.
        """
        on_curve = self.curve.project(position)
        is_at_node = False

        segment = self.segment_containing(on_curve.t)
        if segment is not None:
            node, t = self.closest_node(segment, on_curve.position)
            if distance(self.network.node_position(node), on_curve.position) < snap_threshold:
                on_curve = self.curve.point_on_curve(t)
                is_at_node = self.network.incident_count(node) > 1

        return IntersectionConstraint(
            position=on_curve.position,
            intersected_stroke=self,
            old_curve_data=on_curve,
            is_at_node=is_at_node,
        )


class CurveNetwork:
    """Placed curves and the nodes they share."""

    def __init__(self):
        self.graph = nx.MultiGraph()
        self.strokes = {}
        self._next_node = 0
        self._next_segment = 0

    def node_position(self, node):
        return self.graph.nodes[node]["position"]

    def incident_count(self, node):
        return self.graph.degree(node)

    def new_node(self, position):
        node = self._next_node
        self._next_node += 1
        self.graph.add_node(node, position=np.asarray(position, dtype=float))
        return node

    def add_curve(self, curve, stroke_id=None, closed=False):
        """Place a curve as a single segment between its two end nodes."""
        if stroke_id is None:
            stroke_id = f"curve_{len(self.strokes)}"
        if stroke_id in self.strokes:
            raise ValueError(f"duplicate curve id: {stroke_id}")

        stroke = PlacedStroke(self, stroke_id, curve)
        start = self.new_node(curve.get_point(0.0))
        end = start if closed else self.new_node(curve.get_point(1.0))
        stroke.segments.append(self._add_segment(stroke_id, start, end, 0.0, 1.0))

        self.strokes[stroke_id] = stroke
        return stroke

    def add_intersection(self, position, stroke_ids, snap_threshold):
        """
        Register a point shared by several placed curves.

        Each curve gets a node at its closest point to `position`, reusing the
        closest existing node of the segment within snap_threshold.

        Returns:
            the node id
        """
        node = None
        for stroke_id in stroke_ids:
            stroke = self.strokes[stroke_id]
            on_curve = stroke.curve.project(position)
            segment = stroke.segment_containing(on_curve.t)
            existing, _ = stroke.closest_node(segment, on_curve.position)

            if distance(self.node_position(existing), on_curve.position) < snap_threshold:
                if node is None:
                    node = existing
                elif existing != node:
                    self._merge_nodes(node, existing)
            else:
                if node is None:
                    node = self.new_node(on_curve.position)
                self._split_segment(stroke, segment, node, on_curve.t)

        return node

    def _add_segment(self, stroke_id, start, end, t_start, t_end):
        segment = Segment(self._next_segment, stroke_id, start, end, t_start, t_end)
        self._next_segment += 1
        self.graph.add_edge(start, end, key=segment.key, segment=segment)
        return segment

    def _split_segment(self, stroke, segment, node, t):
        idx = stroke.segments.index(segment)
        self.graph.remove_edge(segment.start_node, segment.end_node, key=segment.key)
        left = self._add_segment(stroke.stroke_id, segment.start_node, node, segment.t_start, t)
        right = self._add_segment(stroke.stroke_id, node, segment.end_node, t, segment.t_end)
        stroke.segments[idx:idx + 1] = [left, right]

    def _merge_nodes(self, keep, drop):
        for u, v, key in list(self.graph.edges(drop, keys=True)):
            segment = self.graph.edges[u, v, key]["segment"]
            self.graph.remove_edge(u, v, key=key)
            if segment.start_node == drop:
                segment.start_node = keep
            if segment.end_node == drop:
                segment.end_node = keep
            self.graph.add_edge(segment.start_node, segment.end_node, key=segment.key, segment=segment)
        self.graph.remove_node(drop)

    @classmethod
    def from_records(cls, curves, nodes, snap_threshold):
        """Build a network from PlacedCurveRecords and NodeRecords."""
        network = cls()
        for placed in curves:
            curve = curve_from_record(placed.curve)
            closed = distance(curve.get_point(0.0), curve.get_point(1.0)) < EPS
            network.add_curve(curve, placed.curve_id, closed=closed)
        for node in nodes:
            network.add_intersection(node.position, node.curve_ids, snap_threshold)
        return network


@trace(label="detect_constraints")
def detect_constraints(stroke, network, proximity, snap_threshold, merge_threshold, mirror_plane=None):
    """
    Collect the constraints of an input stroke from its samples.

    Every run of consecutive samples closer than `proximity` to a placed
    curve yields one intersection constraint at the closest sample of the
    run. Every sign change of the distance to the mirror plane yields a
    mirror plane constraint at the interpolated crossing. Constraints are
    added to the stroke in drawing order.
    """
    tracer = get_tracer()

    positions = stroke.positions
    found = []

    for placed in network.strokes.values():
        best = None
        for i, position in enumerate(positions):
            on_curve = placed.curve.project(position)
            gap = distance(on_curve.position, position)
            if gap < proximity:
                if best is None or gap < best[1]:
                    best = (i, gap, on_curve)
            elif best is not None:
                found.append((best[0], placed.get_constraint(best[2].position, snap_threshold)))
                best = None
        if best is not None:
            found.append((best[0], placed.get_constraint(best[2].position, snap_threshold)))

    if mirror_plane is not None and len(positions) > 1:
        side = mirror_plane.signed_distance(positions)
        for i in np.flatnonzero(side[:-1] * side[1:] < 0):
            ratio = side[i] / (side[i] - side[i + 1])
            crossing = positions[i] + ratio * (positions[i + 1] - positions[i])
            found.append((int(i), MirrorPlaneConstraint(crossing, mirror_plane.normal)))

    found.sort(key=lambda item: item[0])
    for _, constraint in found:
        stroke.add_constraint(constraint, merge_threshold)

    tracer.event(f"Detected {len(found)} constraints, kept {len(stroke.constraints)}")

    return stroke.constraints
