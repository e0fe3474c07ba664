"""
Configuration management for strokeneat.

Loads YAML configuration with defaults for every beautification stage.
Distance thresholds are stored relative to the small distance, so that a
single zoom factor rescales all of them; `BeautifierConfig.resolve()`
turns them into absolute values.
"""

import math
import os
from dataclasses import asdict, dataclass, field, fields

import yaml


@dataclass
class StrokeConfig:
    """Configuration for input stroke validation and segmentation."""
    min_sampling_distance: float = 0.1
    min_stroke_size: float = 0.5
    min_action_time: float = 0.2  # seconds
    ablation_duration: float = 0.02  # seconds
    min_g1_section_length: float = 1.0
    max_hook_section_length: float = 3.0
    max_hook_section_ratio: float = 0.15
    max_angular_variation: float = math.pi / 4  # radians


@dataclass
class FittingConfig:
    """Configuration for line and Bezier fitting."""
    bezier_fitting_error: float = 0.5
    rdp_error: float = 0.1
    line_linearity_tolerance: float = 0.02  # unitless ratio
    line_speed_window: float = 0.05  # seconds
    max_reparameterize_iterations: int = 20


@dataclass
class ConstraintConfig:
    """Configuration for constraint detection and candidate scoring."""
    proximity_threshold: float = 2.0
    merge_constraints_threshold: float = 0.5
    snap_to_existing_node_threshold: float = 1.0
    intersection_search_steps: int = 5
    node_score: float = 2.0
    mid_segment_score: float = 1.5
    position_score: float = 1.0
    endpoint_score: float = 1.25
    tangent_bonus: float = 0.5


@dataclass
class SolverConfig:
    """Configuration for the constraint solver."""
    mu_fidelity: float = 0.6
    w_p: float = 0.5
    w_t: float = 0.5
    min_distance_between_anchors: float = 1.0
    max_beziers_for_solver: int = 15
    planarity_allowed: bool = True
    g1_tolerance: float = 1e-4  # sine of the joint angle


@dataclass
class ProjectionConfig:
    """Configuration for surface and mirror projection."""
    project_on_surface: bool = True
    project_to_surface_distance: float = 2.5
    project_to_mirror_distance: float = 1.25
    trim_dangling_endpoints: bool = True


@dataclass
class TracingConfig:
    """Configuration for runtime tracing."""
    enabled: bool = False
    level: str = "INFO"
    file_path: str = None
    json_output: bool = False


@dataclass(frozen=True)
class Thresholds:
    """Absolute thresholds for one zoom level."""
    small_distance: float
    small_angle: float
    min_sampling_distance: float
    min_stroke_size: float
    min_action_time: float
    ablation_duration: float
    min_g1_section_length: float
    max_hook_section_length: float
    max_hook_section_ratio: float
    max_angular_variation: float
    bezier_fitting_error: float
    rdp_error: float
    line_linearity_tolerance: float
    line_speed: float
    proximity: float
    merge_constraints: float
    snap_to_node: float
    min_distance_between_anchors: float
    project_to_surface_distance: float
    project_to_mirror_distance: float


@dataclass
class BeautifierConfig:
    """Complete engine configuration."""
    default_small_distance: float = 0.02
    small_angle: float = math.pi / 6  # radians
    zoom: float = 1.0
    strokes: StrokeConfig = field(default_factory=StrokeConfig)
    fitting: FittingConfig = field(default_factory=FittingConfig)
    constraints: ConstraintConfig = field(default_factory=ConstraintConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)
    projection: ProjectionConfig = field(default_factory=ProjectionConfig)
    tracing: TracingConfig = field(default_factory=TracingConfig)

    @property
    def small_distance(self):
        return self.default_small_distance / self.zoom

    def resolve(self):
        """Resolve the relative thresholds for the current zoom."""
        small = self.small_distance
        return Thresholds(
            small_distance=small,
            small_angle=self.small_angle,
            min_sampling_distance=self.strokes.min_sampling_distance * small,
            min_stroke_size=self.strokes.min_stroke_size * small,
            min_action_time=self.strokes.min_action_time,
            ablation_duration=self.strokes.ablation_duration,
            min_g1_section_length=self.strokes.min_g1_section_length * small,
            max_hook_section_length=self.strokes.max_hook_section_length * small,
            max_hook_section_ratio=self.strokes.max_hook_section_ratio,
            max_angular_variation=self.strokes.max_angular_variation,
            bezier_fitting_error=self.fitting.bezier_fitting_error * small,
            rdp_error=self.fitting.rdp_error * small,
            line_linearity_tolerance=self.fitting.line_linearity_tolerance,
            line_speed=small / self.fitting.line_speed_window,
            proximity=self.constraints.proximity_threshold * small,
            merge_constraints=self.constraints.merge_constraints_threshold * small,
            snap_to_node=self.constraints.snap_to_existing_node_threshold * small,
            min_distance_between_anchors=self.solver.min_distance_between_anchors * small,
            project_to_surface_distance=self.projection.project_to_surface_distance * small,
            project_to_mirror_distance=self.projection.project_to_mirror_distance * small,
        )


_SECTIONS = ("strokes", "fitting", "constraints", "solver", "projection", "tracing")
_SCALARS = ("default_small_distance", "small_angle", "zoom")


def load_config(config_path=None):
    """
    Load configuration from YAML file.

    Falls back to defaults for any missing values.
    """
    config = BeautifierConfig()

    if config_path and os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        config = _merge_config(config, yaml_data)

    if config.zoom <= 0:
        raise ValueError(f"zoom must be positive, got {config.zoom}")

    return config


def _merge_config(config, yaml_data):
    """Merge YAML data into config dataclass."""
    for name in _SECTIONS:
        if name in yaml_data:
            section = getattr(config, name)
            for key, value in (yaml_data[name] or {}).items():
                if hasattr(section, key):
                    setattr(section, key, value)

    for name in _SCALARS:
        if name in yaml_data:
            setattr(config, name, yaml_data[name])

    return config


def save_default_config(path):
    """Save default configuration to YAML file for reference."""
    config = BeautifierConfig()

    yaml_data = {name: getattr(config, name) for name in _SCALARS}
    for name in _SECTIONS:
        section = getattr(config, name)
        yaml_data[name] = {f.name: getattr(section, f.name) for f in fields(section)}
    yaml_data["tracing"].pop("file_path")

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(yaml_data, f, default_flow_style=False, sort_keys=False)


def config_to_dict(config):
    """Plain-dict view of a configuration, as written to run outputs."""
    return asdict(config)
