"""
linkedexp build command - Load three tables, align them, save a snapshot.

Usage:
    linkedexp build --assay counts.tsv --row-annotation genes.tsv \\
        --column-annotation samples.csv --output experiment.lexp
    linkedexp build --config build.yaml
"""

import argparse
import logging
import sys
from pathlib import Path

from linkedexp.cli._validators import _existing_file, _output_path
from linkedexp.cli.config import BuildConfig, load_config, merge_config_with_args, validate_config
from linkedexp.io.formats import PRESETS
from linkedexp.io.loaders import load_experiment
from linkedexp.io.persistence import save
from linkedexp.io.writers import write_csv_experiment

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the build subcommand."""
    parser = subparsers.add_parser(
        "build",
        help="Align assay, row and column annotations and save a snapshot",
        description="Load a count matrix plus feature and sample annotations, verify "
                    "that their keys line up (reordering annotations when only the "
                    "order differs), and save a validated snapshot.",
    )

    # Configuration file support
    parser.add_argument("--config", "-c", type=_existing_file, default=None,
                        help="Path to YAML/JSON config file (optional, CLI args override config values)")

    parser.add_argument("--assay", "-a", type=_existing_file, default=None,
                        help="Assay table: feature keys in the first column, one column per sample")
    parser.add_argument("--row-annotation", "-r", type=_existing_file, default=None,
                        help="Feature annotation table keyed by feature (optional)")
    parser.add_argument("--column-annotation", "-s", type=_existing_file, default=None,
                        help="Sample annotation table keyed by sample (optional)")
    parser.add_argument("--output", "-o", type=_output_path, default=None,
                        help="Snapshot file to write (e.g. experiment.lexp)")

    parser.add_argument("--assay-format", choices=list(PRESETS.keys()), default=None,
                        help="Format preset for the assay (default: auto-detect)")
    parser.add_argument("--row-format", choices=list(PRESETS.keys()), default=None,
                        help="Format preset for the row annotation (default: auto-detect)")
    parser.add_argument("--column-format", choices=list(PRESETS.keys()), default=None,
                        help="Format preset for the column annotation (default: auto-detect)")

    parser.add_argument("--genomic-ranges", action="store_true", default=None,
                        help="Validate seqname/start/end/strand columns of the row annotation "
                             "and convert them to integer ranges")
    parser.add_argument("--export-csv", type=Path, default=None, metavar="PREFIX",
                        help="Also write PREFIX.assay.csv, PREFIX.rows.csv and PREFIX.columns.csv")

    parser.set_defaults(func=run_build)


def run_build(args: argparse.Namespace) -> int:
    """Execute the build command."""
    config = {}
    if args.config:
        logger.info(f"Loading configuration from: {args.config}")
        try:
            config = load_config(args.config)
            validate_config(config)
        except (FileNotFoundError, ValueError) as e:
            print(f"error: config file {args.config}: {e}", file=sys.stderr)
            return 2
        args = merge_config_with_args(config, args)

    # Validate required arguments (after config merge)
    for name in ('assay', 'output'):
        if getattr(args, name) is None:
            print(f"error: --{name} is required (via CLI or config file)", file=sys.stderr)
            return 2

    build_config = BuildConfig.from_args(args, config)

    experiment = load_experiment(
        build_config.assay.path,
        build_config.row_annotation.path,
        build_config.column_annotation.path,
        assay_format=build_config.assay.table_format(),
        row_format=build_config.row_annotation.table_format(),
        column_format=build_config.column_annotation.table_format(),
        genomic_ranges=build_config.genomic_ranges,
    )

    save(experiment, build_config.output)
    print(f"Wrote {experiment.n_rows:,} rows × {experiment.n_columns:,} columns to {build_config.output}")

    if build_config.export_csv is not None:
        for path in write_csv_experiment(experiment, build_config.export_csv):
            print(f"Wrote {path}")

    return 0
