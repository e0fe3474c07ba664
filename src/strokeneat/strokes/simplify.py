"""
Polyline simplification using the Ramer-Douglas-Peucker algorithm.

Reduces the number of points of a 3D polyline while preserving its shape
within a tolerance.
"""

import numpy as np


def rdp_simplify(points, epsilon):
    """
    Ramer-Douglas-Peucker simplification.

    Args:
        points: sequence of [x, y, z] points
        epsilon: maximum perpendicular distance threshold

    Returns:
        numpy array of the kept points
    """
    kept, _ = rdp_reduce(points, epsilon)
    return kept


def rdp_reduce(points, epsilon):
    """
    Ramer-Douglas-Peucker simplification that also reports what it kept.

    Returns:
        (kept points, indices of the kept points in the input)
    """
    points_arr = np.asarray(points, dtype=float)
    n = len(points_arr)

    if n <= 2 or epsilon <= 0:
        return points_arr.copy(), list(range(n))

    keep = np.zeros(n, dtype=bool)
    keep[0] = keep[-1] = True

    # (first, last) index ranges still to simplify
    stack = [(0, n - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue

        distances = _perpendicular_distances(points_arr[first + 1:last], points_arr[first], points_arr[last])
        max_idx = int(np.argmax(distances))
        if distances[max_idx] > epsilon:
            split = first + 1 + max_idx
            keep[split] = True
            stack.append((first, split))
            stack.append((split, last))

    indices = np.flatnonzero(keep).tolist()
    return points_arr[keep], indices


def _perpendicular_distances(points, start, end):
    """
    Compute distances from each point to the segment from start to end.
    """
    line_vec = end - start
    line_len = np.linalg.norm(line_vec)

    if line_len == 0:
        return np.linalg.norm(points - start, axis=1)

    line_unit = line_vec / line_len
    projections = np.clip((points - start) @ line_unit, 0, line_len)
    nearest = start + np.outer(projections, line_unit)

    return np.linalg.norm(points - nearest, axis=1)


def remove_duplicate_points(points, tolerance=1e-9):
    """
    Remove consecutive duplicate or near-duplicate points.
    """
    points_arr = np.asarray(points, dtype=float)
    if len(points_arr) <= 1:
        return points_arr

    result = [points_arr[0]]
    for point in points_arr[1:]:
        if np.linalg.norm(point - result[-1]) > tolerance:
            result.append(point)

    return np.array(result)
