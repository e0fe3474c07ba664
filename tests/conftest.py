"""Pytest fixtures for strokeneat tests."""

import tempfile

import numpy as np
import pytest

from strokeneat.models import Sample
from strokeneat.strokes.input_stroke import InputStroke


def make_samples(positions, dt=0.01, pressure=1.0):
    """Samples at the given positions, dt seconds apart."""
    return [
        Sample(position=[float(c) for c in p], pressure=pressure, time=i * dt)
        for i, p in enumerate(positions)
    ]


def make_stroke(positions, dt=0.01):
    return InputStroke(make_samples(positions, dt))


def arc_positions(radius=1.0, count=30, z=0.0, sweep=np.pi / 2):
    """Points along a circular arc in a plane parallel to XY."""
    angles = np.linspace(0.0, sweep, count)
    return np.column_stack([radius * np.cos(angles), radius * np.sin(angles), np.full(count, z)])


def l_positions(count=20):
    """Points along an L: out along +X, then up along +Y."""
    leg = np.linspace(0.0, 1.0, count)
    out = np.column_stack([leg, np.zeros(count), np.zeros(count)])
    up = np.column_stack([np.ones(count - 1), leg[1:], np.zeros(count - 1)])
    return np.vstack([out, up])


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def default_config():
    """Create default beautifier configuration."""
    from strokeneat.config import BeautifierConfig
    return BeautifierConfig()


@pytest.fixture
def thresholds(default_config):
    """Absolute thresholds of the default configuration."""
    return default_config.resolve()


@pytest.fixture
def arc_stroke():
    """A quarter circle of radius 1 drawn in 0.29 s."""
    return make_stroke(arc_positions())


@pytest.fixture
def l_stroke():
    """An L-shaped stroke with a sharp corner at (1, 0, 0)."""
    return make_stroke(l_positions())


@pytest.fixture
def straight_stroke():
    """A fast straight stroke from the origin to (1, 0, 0)."""
    return make_stroke(np.column_stack([np.linspace(0.0, 1.0, 21), np.zeros(21), np.zeros(21)]), dt=0.02)


def line_record(curve_id, a, b):
    from strokeneat.models import CurveRecord, PlacedCurveRecord
    return PlacedCurveRecord(curve_id=curve_id, curve=CurveRecord(kind="line", control_points=[a, b]))


def crossing_stroke():
    """Straight stroke along X passing 0.003 above the crossing."""
    xs = np.linspace(0.0, 1.0, 21)
    return make_stroke(np.column_stack([xs, np.full(21, 0.003), np.zeros(21)]), dt=0.02)


@pytest.fixture
def crossing_network(thresholds):
    """Two lines crossing at (0.5, 0, 0), joined by a node there."""
    from strokeneat.models import NodeRecord
    from strokeneat.network import CurveNetwork

    curves = [
        line_record("vertical", [0.5, -0.5, 0], [0.5, 0.5, 0]),
        line_record("depth", [0.5, 0, -0.5], [0.5, 0, 0.5]),
    ]
    nodes = [NodeRecord(position=[0.5, 0, 0], curve_ids=["vertical", "depth"])]
    return CurveNetwork.from_records(curves, nodes, thresholds.snap_to_node)
