"""
Pydantic data models for strokeneat input and output records.

Raw samples come in and beautification results go out through these
validated models. Content-based ID generation keeps outputs deterministic.
"""

import hashlib
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CurveKind(str, Enum):
    """Kinds of curve the engine produces."""
    LINE = "line"
    BEZIER = "bezier"


class Sample(BaseModel):
    """A single recorded input sample."""
    position: List[float] = Field(..., min_length=3, max_length=3)
    pressure: float = 1.0
    time: float = 0.0  # seconds

    model_config = ConfigDict(extra="forbid", frozen=True)


class CurveRecord(BaseModel):
    """A curve with explicit control points."""
    kind: CurveKind
    control_points: List[List[float]] = Field(..., min_length=2)
    bbox: List[float] = Field(default_factory=lambda: [0.0] * 6)

    model_config = ConfigDict(extra="forbid")


class PlacedCurveRecord(BaseModel):
    """A previously placed curve of the network."""
    curve_id: str
    curve: CurveRecord

    model_config = ConfigDict(extra="forbid")


class NodeRecord(BaseModel):
    """A point shared by two or more placed curves."""
    position: List[float] = Field(..., min_length=3, max_length=3)
    curve_ids: List[str] = Field(..., min_length=2)

    model_config = ConfigDict(extra="forbid")


class MirrorPlaneRecord(BaseModel):
    """A symmetry plane."""
    normal: List[float] = Field(..., min_length=3, max_length=3)
    point: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0], min_length=3, max_length=3)

    model_config = ConfigDict(extra="forbid")


class BeautifyRequest(BaseModel):
    """Input file for one beautification call."""
    stroke_id: Optional[str] = None
    samples: List[Sample] = Field(default_factory=list)
    curves: List[PlacedCurveRecord] = Field(default_factory=list)
    nodes: List[NodeRecord] = Field(default_factory=list)
    mirror_plane: Optional[MirrorPlaneRecord] = None
    fit_to_constraints: bool = True
    mirror: bool = False

    model_config = ConfigDict(extra="forbid")


class ConstraintReport(BaseModel):
    """How one constraint was handled, for feedback and logging."""
    position: List[float] = Field(..., min_length=3, max_length=3)
    is_intersection: bool = False
    is_at_existing_node: bool = False
    is_at_new_endpoint: bool = False
    align_tangents: bool = False

    model_config = ConfigDict(extra="forbid", frozen=True)


class BeautifyRecord(BaseModel):
    """Serializable outcome of one beautification call."""
    stroke_id: str
    curve: CurveRecord
    applied_constraints: List[ConstraintReport] = Field(default_factory=list)
    rejected_constraints: List[ConstraintReport] = Field(default_factory=list)
    intersection_count: int = 0
    mirror_intersection_count: int = 0
    planar: bool = False
    plane_normal: Optional[List[float]] = None
    on_surface: bool = False
    on_mirror: bool = False
    is_closed: bool = False
    mirrored_curve: Optional[CurveRecord] = None

    model_config = ConfigDict(extra="forbid")


# ID generation for deterministic outputs

def generate_stroke_id(samples, round_digits=5):
    """
    Generate deterministic stroke ID from sample positions.

    Rounds coordinates to avoid floating point instability.
    """
    if not samples:
        return "stroke_empty"

    rounded = [[round(c, round_digits) for c in s.position] for s in samples]
    h = hashlib.sha256(str(rounded).encode()).hexdigest()[:12]
    return f"stroke_{h}"


def compute_bbox(points):
    """
    Compute axis-aligned bounding box from a list of [x, y, z] points.

    Returns [min_x, min_y, min_z, max_x, max_y, max_z].
    """
    if len(points) == 0:
        return [0.0] * 6

    mins = [min(float(p[k]) for p in points) for k in range(3)]
    maxs = [max(float(p[k]) for p in points) for k in range(3)]
    return mins + maxs
