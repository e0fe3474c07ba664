"""
Command-line interface for strokeneat.

Provides commands for beautifying a recorded stroke and writing a default
configuration.
"""

import argparse
import sys

from strokeneat.config import save_default_config
from strokeneat.tracer import configure_tracer, get_tracer


def build_parser():
    parser = argparse.ArgumentParser(
        prog="strokeneat",
        description="strokeneat: beautify freehand 3D strokes into lines and constrained poly-Bezier curves",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Fit command
    fit_parser = subparsers.add_parser("fit", help="Beautify the stroke of a request file")
    fit_parser.add_argument(
        "--input", "-i",
        required=True,
        help="Request JSON file (samples, placed curves, nodes, mirror plane)",
    )
    fit_parser.add_argument(
        "--out", "-o",
        required=True,
        help="Output directory",
    )
    fit_parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to YAML configuration file",
    )
    fit_parser.add_argument(
        "--no-constraints",
        action="store_true",
        help="Only fit the stroke, ignoring the placed curves",
    )
    fit_parser.add_argument(
        "--mirror",
        action="store_true",
        help="Try to project the result on the mirror plane",
    )
    fit_parser.add_argument(
        "--svg",
        action="store_true",
        help="Write an SVG preview",
    )
    fit_parser.add_argument(
        "--svg-axes",
        default="xy",
        choices=["xy", "xz", "yz"],
        help="Axes the SVG preview is drawn on",
    )
    fit_parser.add_argument(
        "--include-config",
        action="store_true",
        help="Embed the configuration in result.json",
    )
    fit_parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable runtime tracing",
    )
    fit_parser.add_argument(
        "--trace-level",
        default="INFO",
        choices=["ERROR", "WARN", "INFO", "DEBUG"],
        help="Trace log level",
    )
    fit_parser.add_argument(
        "--trace-file",
        default=None,
        help="Path to write trace logs",
    )
    fit_parser.add_argument(
        "--trace-json",
        action="store_true",
        help="Enable JSON trace output",
    )

    # Init config command
    init_parser = subparsers.add_parser("init-config", help="Create default config file")
    init_parser.add_argument(
        "--out", "-o",
        default="strokeneat_config.yaml",
        help="Output path for config file",
    )

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "fit":
        return handle_fit(args)
    elif args.command == "init-config":
        return handle_init_config(args)

    return 0


def handle_fit(args):
    """Handle the fit command."""
    configure_tracer(
        enabled=args.trace,
        level=args.trace_level,
        file_path=args.trace_file,
        json_output=args.trace_json,
    )

    tracer = get_tracer()

    try:
        from strokeneat.pipeline import run_fit

        with tracer.span("cli_fit", module="cli"):
            record = run_fit(
                request_path=args.input,
                out_dir=args.out,
                config_path=args.config,
                fit_to_constraints=False if args.no_constraints else None,
                mirror=True if args.mirror else None,
                svg=args.svg,
                svg_axes=args.svg_axes,
                include_config=args.include_config,
            )

    except Exception as e:
        tracer.event(f"Fit failed: {str(e)}", level="ERROR")
        print(f"\nError: {str(e)}", file=sys.stderr)
        return 1

    finally:
        tracer.config.close()

    if record is None:
        print("\nNo curve produced: the stroke is too small or too short.")
        print(f"\nOutputs saved to: {args.out}/")
        return 1

    print("\nStroke beautified successfully.")
    print(f"  Stroke: {record.stroke_id}")
    print(f"  Curve: {record.curve.kind.value} with {len(record.curve.control_points)} control points")
    print(f"  Constraints applied: {len(record.applied_constraints)}")
    print(f"  Constraints rejected: {len(record.rejected_constraints)}")
    if record.planar:
        print("  Planar: yes")
    if record.is_closed:
        print("  Closed: yes")
    print(f"\nOutputs saved to: {args.out}/")
    print("  - result.json")
    if args.svg:
        print("  - preview.svg")

    return 0


def handle_init_config(args):
    """Handle the init-config command."""
    save_default_config(args.out)
    print(f"Default configuration saved to: {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
