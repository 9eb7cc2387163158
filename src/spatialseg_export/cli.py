"""
Command-line interface for spatialseg-export.

Usage:
    spatialseg-export export --snapshot run.npz --config export.yaml
    spatialseg-export export --snapshot run.npz --output-counts counts.csv.gz \\
        --output-cell-metadata cells.parquet --polygons polygons.csv \\
        --output-cell-polygons cell-polygons.geojson.gz
    spatialseg-export infer-format counts.csv.gz
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from spatialseg_export.core.config import TABLE_ARTIFACTS
from spatialseg_export.export.formats import OutputFormat

logger = logging.getLogger("spatialseg_export")

FORMAT_CHOICES = [f.value for f in OutputFormat]
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Configure logging for CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)


def _option(name: str) -> str:
    return name.replace("_", "-")


def cmd_export(args: argparse.Namespace) -> int:
    """Write configured artifacts from a snapshot archive."""
    import yaml

    from spatialseg_export.core.config import OutputConfig

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            logger.error("Config file not found: %s", config_path)
            return 1
        try:
            config = OutputConfig.from_file(config_path)
        except (KeyError, TypeError, ValueError, yaml.YAMLError) as e:
            logger.error("Invalid config file %s: %s", config_path, e)
            return 1
    else:
        config = OutputConfig()

    # Command-line options override the config file
    for name in TABLE_ARTIFACTS:
        artifact = getattr(config, name)
        path = getattr(args, f"output_{name}")
        fmt = getattr(args, f"output_{name}_fmt")
        if path:
            artifact.path = Path(path)
        if fmt:
            artifact.format = OutputFormat.parse(fmt)
    if args.output_cell_polygons:
        config.cell_polygons = Path(args.output_cell_polygons)
    if args.output_cell_polygon_layers:
        config.cell_polygon_layers = Path(args.output_cell_polygon_layers)
    if args.output_dir:
        config.output_dir = Path(args.output_dir)
    if args.include_holes:
        config.include_holes = True
    if args.keep_going:
        config.fail_fast = False

    try:
        previous_level, handlers = _apply_config_logging(config, args)
    except OSError as e:
        logger.error("Cannot open log file %s: %s", config.log_file, e)
        return 1
    try:
        return _run_export(args, config)
    finally:
        logger.setLevel(previous_level)
        for handler in handlers:
            logger.removeHandler(handler)
            handler.close()


def _apply_config_logging(config, args: argparse.Namespace) -> tuple[int, list[logging.Handler]]:
    """Apply the config file's logging settings where the command line left them unset."""
    previous_level = logger.level
    handlers: list[logging.Handler] = []
    if config.log_file is not None and not args.log_file:
        handler = logging.FileHandler(config.log_file)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        handlers.append(handler)
    if config.verbose and not args.verbose:
        logger.setLevel(logging.DEBUG)
    return previous_level, handlers


def _run_export(args: argparse.Namespace, config) -> int:
    from spatialseg_export.export.results import ExportError
    from spatialseg_export.model.polygons import load_cell_polygons, load_layered_polygons
    from spatialseg_export.model.snapshot import SegmentationSnapshot
    from spatialseg_export.pipeline import ResultExporter

    if not config.enabled_artifacts():
        logger.warning("No outputs configured, nothing to do")
        return 0

    snapshot_path = Path(args.snapshot)
    if not snapshot_path.exists():
        logger.error("Snapshot not found: %s", snapshot_path)
        return 1
    try:
        snapshot = SegmentationSnapshot.from_npz(snapshot_path)
    except (KeyError, ValueError, OSError) as e:
        logger.error("Cannot load snapshot %s: %s", snapshot_path, e)
        return 1

    cell_polygons = None
    layered_polygons = None
    if args.polygons:
        try:
            if config.cell_polygons is not None:
                cell_polygons = load_cell_polygons(args.polygons, ncells=snapshot.ncells)
            if config.cell_polygon_layers is not None:
                layered_polygons = load_layered_polygons(args.polygons, ncells=snapshot.ncells)
        except (KeyError, ValueError, OSError) as e:
            logger.error("Cannot load polygons %s: %s", args.polygons, e)
            return 1

    exporter = ResultExporter(config)
    try:
        report = exporter.export(snapshot, cell_polygons, layered_polygons)
    except ExportError as e:
        logger.error("%s", e)
        return 1

    for result in report.failures:
        logger.error("Failed to write %s to %s: %s", result.artifact, result.path, result.error)
    return 0 if report.success else 1


def cmd_infer_format(args: argparse.Namespace) -> int:
    """Print the output format inferred from a filename."""
    from spatialseg_export.export.formats import infer_format_from_filename
    from spatialseg_export.export.results import FormatInferenceError

    try:
        fmt = infer_format_from_filename(args.filename)
    except FormatInferenceError as e:
        logger.error("%s", e)
        return 1
    print(fmt.value)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="spatialseg-export",
        description="Export spatial transcriptomics segmentation results to tables and GeoJSON",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--log-file", type=str, help="Log file path")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- export ---
    p_exp = subparsers.add_parser("export", help="Write result tables and polygons")
    p_exp.add_argument("--snapshot", "-s", required=True, help="Snapshot .npz archive")
    p_exp.add_argument("--config", "-c", help="Export config (YAML or JSON)")
    p_exp.add_argument("--polygons", "-p", help="Cell polygon table (CSV with WKT geometry)")
    p_exp.add_argument("--output-dir", "-o", help="Base directory for relative output paths")
    for name in TABLE_ARTIFACTS:
        p_exp.add_argument(f"--output-{_option(name)}", help=f"Output file for {name.replace('_', ' ')}")
        p_exp.add_argument(f"--output-{_option(name)}-fmt", choices=FORMAT_CHOICES,
                           help="Output format (default: infer from filename)")
    p_exp.add_argument("--output-cell-polygons", help="Gzipped GeoJSON of cell polygons")
    p_exp.add_argument("--output-cell-polygon-layers", help="Gzipped GeoJSON of per-layer cell polygons")
    p_exp.add_argument("--include-holes", action="store_true", help="Write polygon interior rings")
    p_exp.add_argument("--keep-going", action="store_true",
                       help="Continue with remaining artifacts after a failure")
    p_exp.set_defaults(func=cmd_export)

    # --- infer-format ---
    p_inf = subparsers.add_parser("infer-format", help="Show the format inferred from a filename")
    p_inf.add_argument("filename", help="Output filename")
    p_inf.set_defaults(func=cmd_infer_format)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    _setup_logging(verbose=args.verbose, log_file=args.log_file)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
