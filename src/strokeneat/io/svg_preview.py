"""
SVG preview of a beautified stroke.

Draws the raw samples as a thin polyline under the beautified curve,
projected orthographically onto two coordinate axes.
"""

import numpy as np
import svgwrite

from strokeneat.curves.bezier import BezierCurve
from strokeneat.strokes.bezier_fit import bezier_to_svg_path
from strokeneat.tracer import trace

AXES = {"xy": (0, 1), "xz": (0, 2), "yz": (1, 2)}


@trace(label="create_preview_svg", arg_names=["axes"])
def create_preview_svg(samples, curve, axes="xy", size=800, margin=20, placed_curves=()):
    """
    Create an SVG drawing of the input samples and the beautified curve.

    Args:
        samples: (N, 3) sample positions
        curve: beautified Curve, or None when no curve was produced
        axes: "xy", "xz" or "yz"
        size: edge of the square drawing in pixels
        margin: blank border in pixels
        placed_curves: curves already in the scene, drawn in grey

    Returns:
        svgwrite.Drawing
    """
    i, j = AXES[axes]
    samples = np.asarray(samples, dtype=float).reshape(-1, 3)

    extents = [samples]
    if curve is not None:
        extents.append(curve.get_points(np.linspace(0.0, 1.0, 50)))
    extents.extend(c.get_points(np.linspace(0.0, 1.0, 50)) for c in placed_curves)
    everything = np.vstack(extents)[:, [i, j]]

    low = everything.min(axis=0)
    span = float(max(np.ptp(everything, axis=0).max(), 1e-9))
    scale = (size - 2 * margin) / span
    offset = (margin - low[0] * scale, margin - low[1] * scale)

    def to_px(p):
        return (float(p[i] * scale + offset[0]), float(p[j] * scale + offset[1]))

    dwg = svgwrite.Drawing(size=(f"{size}px", f"{size}px"))
    dwg.viewbox(0, 0, size, size)

    scene = dwg.g(id="scene", fill="none", stroke="#bbbbbb", stroke_width=1)
    for placed in placed_curves:
        scene.add(_curve_element(dwg, placed, (i, j), scale, offset, to_px))
    dwg.add(scene)

    if len(samples) > 1:
        dwg.add(dwg.polyline(
            [to_px(p) for p in samples],
            id="samples", fill="none", stroke="#e07a5f", stroke_width=1,
        ))

    if curve is not None:
        group = dwg.g(id="beautified", fill="none", stroke="#1d3557", stroke_width=2)
        group.add(_curve_element(dwg, curve, (i, j), scale, offset, to_px))
        dwg.add(group)

        anchors = dwg.g(id="anchors", fill="#1d3557")
        points = curve.control_points
        step = 3 if isinstance(curve, BezierCurve) else 1
        for p in points[::step]:
            anchors.add(dwg.circle(center=to_px(p), r=3))
        dwg.add(anchors)

    return dwg


def _curve_element(dwg, curve, axes, scale, offset, to_px):
    if isinstance(curve, BezierCurve):
        return dwg.path(d=bezier_to_svg_path(curve.beziers, axes, scale, offset))
    a, b = curve.control_points
    return dwg.line(start=to_px(a), end=to_px(b))
