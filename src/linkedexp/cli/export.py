"""
linkedexp export command - Write a snapshot out as three CSV files.

Usage:
    linkedexp export experiment.lexp --output results/experiment
"""

import argparse
from pathlib import Path

from linkedexp.cli._validators import _existing_file
from linkedexp.io.persistence import load
from linkedexp.io.writers import write_csv_experiment


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the export subcommand."""
    parser = subparsers.add_parser(
        "export",
        help="Export a snapshot as assay/rows/columns CSV files",
    )
    parser.add_argument("snapshot", type=_existing_file,
                        help="Snapshot file written by 'linkedexp build'")
    parser.add_argument("--output", "-o", type=Path, required=True, metavar="PREFIX",
                        help="Output base path (without extension)")
    parser.set_defaults(func=run_export)


def run_export(args: argparse.Namespace) -> int:
    """Execute the export command."""
    experiment = load(args.snapshot)
    for path in write_csv_experiment(experiment, args.output):
        print(f"Wrote {path}")
    return 0
