"""
Raw input strokes.

An InputStroke accumulates samples as they are drawn, along with the
constraints detected while drawing (intersections with placed curves,
mirror plane crossings and spans over surface patches). It knows how to
validate itself and how to cut itself into G1 sections for fitting.
"""

import math

import numpy as np

from strokeneat.constraints.types import IntersectionConstraint, MirrorPlaneConstraint, SurfaceConstraint
from strokeneat.curves.curve import distance, normalize
from strokeneat.models import Sample
from strokeneat.tracer import get_tracer

MIN_SPEED_DURATION = 1e-7


class InputStroke:
    """Samples of one stroke plus the constraints detected while it was drawn."""

    def __init__(self, samples=None):
        self.samples = []
        self.length = 0.0
        self.constraints = []
        self.surface_constraints = []

        for sample in samples or []:
            self.add_sample(sample)

    def __len__(self):
        return len(self.samples)

    def summary(self):
        return f"InputStroke(samples={len(self.samples)},length={self.length:.4g},constraints={len(self.constraints)})"

    @property
    def positions(self):
        return np.array([s.position for s in self.samples], dtype=float).reshape(-1, 3)

    @property
    def duration(self):
        if len(self.samples) < 2:
            return 0.0
        return self.samples[-1].time - self.samples[0].time

    def should_update(self, position, sampling_distance):
        """True if a sample at `position` is far enough from the last one to be recorded."""
        if not self.samples:
            return True
        return distance(self.samples[-1].position, position) > sampling_distance

    def add_sample(self, sample):
        if not isinstance(sample, Sample):
            sample = Sample(**sample)
        if self.samples:
            self.length += distance(sample.position, self.samples[-1].position)
        self.samples.append(sample)

    def add_constraint(self, constraint, merge_threshold):
        """
        Record a constraint, merging it with the previous one when both are close.

        Of two successive constraints closer than merge_threshold, the newer
        one wins unless the older one is an intersection and the newer is not,
        or the older one sits at a node and the newer does not. Two mirror
        crossings within twice the threshold also keep only the newer one.
        """
        if self.constraints:
            old = self.constraints[-1]
            gap = distance(old.position, constraint.position)

            if gap < merge_threshold:
                if isinstance(old, IntersectionConstraint):
                    if not isinstance(constraint, IntersectionConstraint):
                        return
                    if old.is_at_node and not constraint.is_at_node:
                        return
                self.constraints.pop()

            elif (gap < merge_threshold * 2
                  and isinstance(old, MirrorPlaneConstraint)
                  and isinstance(constraint, MirrorPlaneConstraint)):
                self.constraints.pop()

        self.constraints.append(constraint)

    def enter_surface(self, patch_id, position):
        if (self.surface_constraints
                and self.surface_constraints[-1].patch_id == patch_id
                and not self.surface_constraints[-1].left_mid_stroke):
            return
        get_tracer().event(f"Stroke entered surface patch {patch_id}", level="DEBUG")
        self.surface_constraints.append(SurfaceConstraint(patch_id, position))

    def leave_surface(self, patch_id, position):
        if self.surface_constraints and self.surface_constraints[-1].patch_id == patch_id:
            self.surface_constraints[-1] = self.surface_constraints[-1].left_at(position)

    def is_valid(self, min_action_time, min_stroke_size):
        """
        Check that the stroke is worth fitting.

        Rejects strokes with fewer than two samples, mistake clicks (both
        brief and with close ends) and strokes that never get farther than
        min_stroke_size from their first sample.
        """
        tracer = get_tracer()

        if len(self.samples) < 2:
            return False

        positions = self.positions
        if self.duration < min_action_time and distance(positions[-1], positions[0]) < min_stroke_size:
            tracer.event("Stroke rejected: mistake click", level="DEBUG")
            return False

        max_dist = float(np.max(np.linalg.norm(positions[1:] - positions[0], axis=1)))
        if max_dist < min_stroke_size:
            tracer.event("Stroke rejected: too small", level="DEBUG")
            return False

        return True

    def get_safe_points(self, ablation_duration=0.01):
        """
        Positions without the settling noise at both ends of the stroke.

        Samples within ablation_duration of the start or end time are dropped,
        except the very first and last. Short strokes are returned whole.
        """
        start_time = self.samples[0].time
        end_time = self.samples[-1].time

        if start_time + ablation_duration * 2 >= end_time:
            return self.positions

        kept = [
            s.position for s in self.samples
            if s.time == start_time
            or s.time == end_time
            or start_time + ablation_duration < s.time < end_time - ablation_duration
        ]
        return np.array(kept, dtype=float)

    def get_g1_sections(self, max_angular_variation, hook_angular_variation, ablation_duration,
                        min_section_length, max_hook_length, max_hook_ratio):
        """
        Split the stroke into sections without corners.

        Hooks at both ends (shorter than max_hook_length and than
        max_hook_ratio of the stroke, ended by a corner sharper than
        hook_angular_variation) are dropped first. A corner sharper than
        max_angular_variation then ends a section once it holds at least four
        samples and is longer than min_section_length.

        Returns:
            list of (n, 3) arrays
        """
        cos_threshold = math.cos(max_angular_variation)
        cos_threshold_hook = math.cos(hook_angular_variation)

        safe = self.get_safe_points(ablation_duration)
        n = len(safe)

        if n <= 4:
            return [safe]

        hook_budget = min(max_hook_length, self.length * max_hook_ratio)

        start_idx = 0
        current_length = distance(safe[0], safe[1])
        i = 2
        while current_length < hook_budget and i + 2 < n:
            current_length += distance(safe[i], safe[i - 1])
            if _corner_cosine(safe, i) < cos_threshold_hook:
                start_idx = i
            i += 1

        end_idx = n - 1
        current_length = distance(safe[-1], safe[-2])
        i = n - 3
        while current_length < hook_budget and i >= 2:
            current_length += distance(safe[i], safe[i + 1])
            if _corner_cosine(safe, i) < cos_threshold_hook:
                end_idx = i
            i -= 1

        if end_idx - start_idx > 4:
            safe = safe[start_idx:end_idx + 1]
            n = len(safe)

        sections = []
        section = [safe[0], safe[1]]
        section_length = distance(safe[0], safe[1])

        for i in range(2, n - 2):
            section.append(safe[i])
            section_length += distance(safe[i], safe[i - 1])

            if (_corner_cosine(safe, i) < cos_threshold
                    and len(section) >= 4
                    and section_length > min_section_length):
                sections.append(np.array(section))
                section = [safe[i]]
                section_length = 0.0

        section.append(safe[n - 2])
        section.append(safe[n - 1])
        section_length += distance(safe[n - 2], safe[n - 1])

        if not sections or (len(section) >= 4 and section_length > min_section_length):
            sections.append(np.array(section))

        return sections

    def average_drawing_speed(self):
        if len(self.samples) < 2:
            return 0.0
        time = self.duration
        return self.length / time if time > MIN_SPEED_DURATION else 0.0

    def get_weights(self):
        return [s.pressure for s in self.samples]


def _corner_cosine(points, i):
    """Cosine between the smoothed incoming and outgoing directions at sample i."""
    u = 0.5 * (normalize(points[i] - points[i - 2]) + normalize(points[i] - points[i - 1]))
    v = 0.5 * (normalize(points[i + 2] - points[i]) + normalize(points[i + 1] - points[i]))
    return float(u @ v)
