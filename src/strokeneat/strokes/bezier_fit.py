"""
Bezier curve fitting for strokeneat.

Fits cubic Bezier curves to 3D polylines using a Schneider-style algorithm.
Each G1 section of a stroke is approximated by one or more cubic segments,
and all sections are concatenated into a single poly-Bezier.
"""

import math

import numpy as np

from strokeneat.curves.bezier import CubicBezier
from strokeneat.curves.curve import normalize
from strokeneat.strokes.simplify import rdp_reduce, remove_duplicate_points
from strokeneat.tracer import get_tracer, trace

MAX_REPARAMETERIZE_ITERATIONS = 20


@trace(label="fit_sections", arg_names=["sections", "error"])
def fit_sections(sections, error, rdp_error=0.0, max_iterations=MAX_REPARAMETERIZE_ITERATIONS):
    """
    Fit cubic Beziers to every G1 section and concatenate them.

    Args:
        sections: list of polylines, each an (n, 3) array
        error: maximum allowed distance between a point and the fit
        rdp_error: RDP tolerance applied to each section before fitting
        max_iterations: max Newton reparameterization passes per fit

    Returns:
        list of CubicBezier segments forming one connected poly-Bezier
    """
    tracer = get_tracer()

    beziers = []
    for section in sections:
        beziers.extend(fit_curve(section, error, rdp_error, max_iterations))

    tracer.event(f"Fitted {len(beziers)} Bezier segments for {len(sections)} G1 sections")

    return beziers


def fit_curve(points, error, rdp_error=0.0, max_iterations=MAX_REPARAMETERIZE_ITERATIONS):
    """
    Fit cubic Bezier segments to a single polyline.

    Uses the Schneider algorithm:
    1. Simplify with RDP and estimate the end tangents
    2. Fit a single cubic with least-squares handle lengths
    3. If the error is close to the tolerance, reparameterize with Newton steps
    4. Otherwise split at the point of max error and recurse
    """
    points = remove_duplicate_points(points)
    n = len(points)

    if n == 0:
        return []

    if n == 1:
        return [CubicBezier(points[0], points[0], points[0], points[0])]

    if n == 2:
        return [CubicBezier(points[0], points[0], points[1], points[1])]

    if n == 3:
        return [CubicBezier(points[0], points[1], points[1], points[2])]

    kept, _ = rdp_reduce(points, rdp_error)

    tangent_start = normalize(kept[1] - kept[0])
    tangent_end = normalize(kept[-2] - kept[-1])

    return _fit_cubic(kept, tangent_start, tangent_end, error, max_iterations)


def _fit_cubic(points, tangent_start, tangent_end, error, max_iterations):
    """Recursive cubic Bezier fitting; tangent_end points back into the curve."""
    u = _chord_length_parameterize(points)
    bezier = _generate_bezier(points, u, tangent_start, tangent_end)
    max_error, split_point = _compute_max_error(points, bezier, u)

    if max_error < error:
        return [bezier]

    if max_error < error * 10:
        for _ in range(max_iterations):
            u_prime = _reparameterize(bezier, points, u)
            bezier = _generate_bezier(points, u_prime, tangent_start, tangent_end)
            max_error, split_point = _compute_max_error(points, bezier, u_prime)
            if max_error < error:
                return [bezier]
            u = u_prime

    split_point = min(max(split_point, 1), len(points) - 2)
    tangent_split = normalize(
        normalize(points[split_point - 1] - points[split_point])
        + normalize(points[split_point] - points[split_point + 1])
    )

    left = _fit_cubic(points[:split_point + 1], tangent_start, tangent_split, error, max_iterations)
    right = _fit_cubic(points[split_point:], -tangent_split, tangent_end, error, max_iterations)

    return left + right


def _chord_length_parameterize(points):
    """Compute parameter values based on chord length."""
    steps = np.linalg.norm(np.diff(points, axis=0), axis=1)
    u = np.concatenate([[0.0], np.cumsum(steps)])
    if u[-1] > 0:
        u = u / u[-1]
    return u


def _generate_bezier(points, u, tangent_start, tangent_end):
    """
    Fit one cubic with fixed end tangents to parameterized points.

    Handle lengths solve the 2x2 normal equations of the least-squares
    problem; degenerate or negative solutions fall back to a third of the
    chord.
    """
    p0 = points[0]
    p3 = points[-1]

    a1 = np.outer(3 * (1 - u) ** 2 * u, tangent_start)
    a2 = np.outer(3 * u ** 2 * (1 - u), tangent_end)

    c = np.array([
        [np.sum(a1 * a1), np.sum(a1 * a2)],
        [np.sum(a1 * a2), np.sum(a2 * a2)],
    ])

    base = CubicBezier(p0, p0, p3, p3).calculate(u)
    residual = points - base
    x = np.array([np.sum(a1 * residual), np.sum(a2 * residual)])

    det = c[0, 0] * c[1, 1] - c[1, 0] * c[0, 1]
    if math.isclose(det, 0.0, abs_tol=1e-12):
        alpha_start = alpha_end = 0.0
    else:
        alpha_start = (x[0] * c[1, 1] - x[1] * c[0, 1]) / det
        alpha_end = (c[0, 0] * x[1] - c[1, 0] * x[0]) / det

    seg_length = np.linalg.norm(p3 - p0)
    epsilon = 1e-5 * seg_length
    if alpha_start < epsilon or alpha_end < epsilon:
        alpha_start = alpha_end = seg_length / 3

    return CubicBezier(p0, p0 + tangent_start * alpha_start, p3 + tangent_end * alpha_end, p3)


def _compute_max_error(points, bezier, u):
    """Return the max point-to-fit distance and the index where it is reached."""
    dists = np.linalg.norm(bezier.calculate(u) - points, axis=1)
    split_point = int(np.argmax(dists))
    if dists[split_point] == 0:
        split_point = len(points) // 2
    return float(dists[split_point]), split_point


def _reparameterize(bezier, points, u):
    """One Newton-Raphson step towards each point's closest parameter."""
    d = bezier.calculate(u) - points
    q1 = bezier.derivative1(u)
    q2 = bezier.derivative2(u)

    numerator = np.sum(d * q1, axis=1)
    denominator = np.sum(q1 * q1, axis=1) + np.sum(d * q2, axis=1)

    safe = np.abs(denominator) > 1e-12
    step = np.zeros_like(u)
    step[safe] = numerator[safe] / denominator[safe]
    return np.clip(u - step, 0.0, 1.0)


def bezier_to_svg_path(beziers, axes=(0, 1), scale=1.0, offset=(0.0, 0.0)):
    """
    Convert connected CubicBezier segments to an SVG path d attribute.

    Points are projected orthographically onto the two given axes.
    """
    if not beziers:
        return ""

    i, j = axes

    def fmt(p):
        return f"{p[i] * scale + offset[0]:.2f} {p[j] * scale + offset[1]:.2f}"

    parts = [f"M {fmt(beziers[0][0])}"]
    for bez in beziers:
        parts.append(f"C {fmt(bez[1])} {fmt(bez[2])} {fmt(bez[3])}")

    return " ".join(parts)
