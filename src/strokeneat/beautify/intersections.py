"""
Intersection clean-up around the constraint solve.

Before solving, intersection positions are re-localized on the curves
they belong to, so that they sit where the fitted curve actually passes.
After solving, short tails dangling past the first or last intersection
are cut away.
"""

import numpy as np

from strokeneat.constraints.types import IntersectionConstraint, reparameterize_on
from strokeneat.curves.curve import EPS, distance
from strokeneat.tracer import get_tracer


def correct_intersections(constraints, curve, search_distance, n_steps, snap_threshold):
    """
    Move each intersection to the best matching point of the intersected curve.

    Around the recorded intersection, a window of +/- half the search
    distance along the intersected curve's tangent is sampled at n_steps + 1
    points. The sample closest to its own projection on `curve` wins, and
    the constraint is rebuilt there with node snapping. Intersections at an
    end of the intersected curve, or with a window too small to search,
    keep their point. Other constraints pass through unchanged.
    """
    corrected = []
    for constraint in constraints:
        match constraint:
            case IntersectionConstraint():
                best = _best_point(constraint, curve, search_distance, n_steps)
                corrected.append(constraint.intersected_stroke.get_constraint(best.position, snap_threshold))
            case _:
                corrected.append(constraint)
    return corrected


def _best_point(constraint, curve, search_distance, n_steps):
    best = constraint.old_curve_data
    if best.t in (0.0, 1.0):
        return best

    old_curve = constraint.intersected_stroke.curve
    offset = search_distance * 0.5 * np.asarray(best.tangent, dtype=float)
    zone_start = old_curve.project(constraint.position + offset)
    zone_end = old_curve.project(constraint.position - offset)

    if distance(zone_start.position, zone_end.position) <= search_distance * 0.1:
        return best

    step = (np.clip(zone_end.t, 0.0, 1.0) - np.clip(zone_start.t, 0.0, 1.0)) / n_steps
    min_dist = distance(curve.project(best.position).position, best.position)

    for i in range(n_steps + 1):
        on_old = old_curve.point_on_curve(float(zone_start.t + step * i))
        dist = distance(curve.project(on_old.position).position, on_old.position)
        if dist < min_dist:
            min_dist = dist
            best = on_old

    return best


def trim_dangling_endpoints(curve, intersections, mirror_intersections, max_hook_length, max_hook_ratio,
                            snap_threshold, include_mirror=True):
    """
    Cut the curve at its first and last intersections when the tail is short.

    A tail is cut when it is longer than EPS but shorter than both
    max_hook_length and max_hook_ratio of the curve length. The curve is
    cut in place; every intersection is re-parameterized on the result.

    Returns:
        (intersections, mirror_intersections) updated for the cut curve
    """
    tracer = get_tracer()

    def tracked():
        return intersections + (mirror_intersections if include_mirror else [])

    if not tracked():
        return intersections, mirror_intersections

    def cut(t, throw_before):
        r = curve.cut_at(t, throw_before, snap_threshold)
        return (
            [reparameterize_on(c, r, curve) for c in intersections],
            [reparameterize_on(c, r, curve) for c in mirror_intersections],
        )

    first = min(tracked(), key=lambda c: c.new_curve_data.t)
    head = curve.length_between(0.0, first.new_curve_data.t)
    if EPS < head < max_hook_ratio * curve.get_length() and head < max_hook_length:
        tracer.event(f"Trimming dangling start of length {head:.4g}", level="DEBUG")
        intersections, mirror_intersections = cut(first.new_curve_data.t, True)

    last = max(tracked(), key=lambda c: c.new_curve_data.t)
    tail = curve.length_between(last.new_curve_data.t, 1.0)
    if EPS < tail < max_hook_ratio * curve.get_length() and tail < max_hook_length:
        tracer.event(f"Trimming dangling end of length {tail:.4g}", level="DEBUG")
        intersections, mirror_intersections = cut(last.new_curve_data.t, False)

    return intersections, mirror_intersections
