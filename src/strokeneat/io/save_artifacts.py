"""
Reading requests and writing run outputs.
"""

import json
import os

from strokeneat.models import BeautifyRequest
from strokeneat.tracer import get_tracer


def ensure_dir(path):
    """Create directory if it does not exist."""
    if path:
        os.makedirs(path, exist_ok=True)


def load_request(path):
    """
    Load a BeautifyRequest from a JSON file.

    Raises:
        FileNotFoundError: missing file
        pydantic.ValidationError: malformed request
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    request = BeautifyRequest.model_validate(data)
    get_tracer().event(
        f"Loaded request: {path}",
        samples=len(request.samples),
        curves=len(request.curves),
    )
    return request


def save_json(data, path, indent=2):
    """Save a dictionary or Pydantic model to JSON."""
    ensure_dir(os.path.dirname(path))

    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, default=str)

    get_tracer().event(f"Saved JSON: {path}")


def save_svg(drawing, path):
    """Save an svgwrite drawing, or SVG text, to file."""
    ensure_dir(os.path.dirname(path))

    content = drawing.tostring() if hasattr(drawing, "tostring") else str(drawing)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)

    get_tracer().event(f"Saved SVG: {path}")
