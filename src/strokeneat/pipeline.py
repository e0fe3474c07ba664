"""
Command line pipeline for strokeneat.

Reads one beautification request (stroke samples plus the curves already
in the scene), rebuilds the curve network, detects the stroke's
constraints, beautifies it and writes the result.
"""

import os

from strokeneat.beautify.beautifier import Beautifier
from strokeneat.config import config_to_dict, load_config
from strokeneat.curves.plane import Plane
from strokeneat.io.save_artifacts import ensure_dir, load_request, save_json, save_svg
from strokeneat.io.svg_preview import create_preview_svg
from strokeneat.models import generate_stroke_id
from strokeneat.network import CurveNetwork, detect_constraints
from strokeneat.strokes.input_stroke import InputStroke
from strokeneat.tracer import get_tracer, trace


def build_stroke(samples, min_sampling_distance):
    """Input stroke from raw samples, dropping samples too close to the previous one."""
    stroke = InputStroke()
    for sample in samples:
        if stroke.should_update(sample.position, min_sampling_distance):
            stroke.add_sample(sample)
    return stroke


def mirror_plane_from_record(record):
    if record is None:
        return None
    return Plane(record.normal, record.point)


@trace(label="run_fit", arg_names=["request_path", "out_dir"])
def run_fit(request_path, out_dir, config=None, config_path=None, fit_to_constraints=None,
            mirror=None, svg=False, svg_axes="xy", include_config=False):
    """
    Beautify the stroke of one request and save the outputs.

    Args:
        request_path: BeautifyRequest JSON file
        out_dir: output directory
        config: BeautifierConfig object (optional)
        config_path: path to YAML config file (optional)
        fit_to_constraints: overrides the request's flag when not None
        mirror: overrides the request's flag when not None
        svg: also write preview.svg
        svg_axes: axes the preview is drawn on
        include_config: embed the configuration in result.json

    Returns:
        BeautifyRecord, or None when no curve was produced

    Outputs:
        result.json, and preview.svg when requested
    """
    tracer = get_tracer()

    if config is None:
        config = load_config(config_path)
    th = config.resolve()

    request = load_request(request_path)
    if fit_to_constraints is None:
        fit_to_constraints = request.fit_to_constraints
    if mirror is None:
        mirror = request.mirror

    ensure_dir(out_dir)

    stroke = build_stroke(request.samples, th.min_sampling_distance)
    stroke_id = request.stroke_id or generate_stroke_id(stroke.samples)
    tracer.event(f"Stroke {stroke_id}: {len(stroke)} of {len(request.samples)} samples kept")

    mirror_plane = mirror_plane_from_record(request.mirror_plane)
    network = CurveNetwork.from_records(request.curves, request.nodes, th.snap_to_node)

    if fit_to_constraints:
        detect_constraints(
            stroke,
            network,
            th.proximity,
            th.snap_to_node,
            th.merge_constraints,
            mirror_plane=mirror_plane if mirror else None,
        )

    beautifier = Beautifier(config, mirror_plane=mirror_plane)
    result = beautifier.beautify(stroke, fit_to_constraints=fit_to_constraints, mirror=mirror)

    record = None if result is None else result.to_record(stroke_id)

    output = {
        "stroke_id": stroke_id,
        "produced": record is not None,
        "result": None if record is None else record.model_dump(mode="json"),
    }
    if include_config:
        output["config"] = config_to_dict(config)
    save_json(output, os.path.join(out_dir, "result.json"))

    if svg:
        drawing = create_preview_svg(
            stroke.positions,
            None if result is None else result.curve,
            axes=svg_axes,
            placed_curves=[placed.curve for placed in network.strokes.values()],
        )
        save_svg(drawing, os.path.join(out_dir, "preview.svg"))

    return record
