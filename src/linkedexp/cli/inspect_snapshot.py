"""
linkedexp inspect command - Validate a snapshot and print its summary.

Usage:
    linkedexp inspect experiment.lexp
    linkedexp inspect experiment.lexp --json
"""

import argparse
import json

from linkedexp.cli._validators import _existing_file
from linkedexp.io.persistence import load


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the inspect subcommand."""
    parser = subparsers.add_parser(
        "inspect",
        help="Validate a snapshot and print its summary",
        description="Load a snapshot (re-checking every alignment invariant) and "
                    "report its dimensions and annotation columns.",
    )
    parser.add_argument("snapshot", type=_existing_file,
                        help="Snapshot file written by 'linkedexp build'")
    parser.add_argument("--json", action="store_true",
                        help="Print the summary as JSON")
    parser.set_defaults(func=run_inspect)


def run_inspect(args: argparse.Namespace) -> int:
    """Execute the inspect command."""
    experiment = load(args.snapshot)
    summary = experiment.summary()

    if args.json:
        print(json.dumps(summary, indent=2))
        return 0

    print(f"Snapshot: {args.snapshot}")
    print(f"  Shape: {summary['n_rows']:,} rows × {summary['n_columns']:,} columns ({summary['dtype']})")
    print(f"  Missing values: {summary['missing_values']:,}")
    print(f"  Row keys: {summary['row_keys']}")
    print(f"  Column keys: {summary['column_keys']}")
    print(f"  Row annotation: {', '.join(summary['row_annotation_columns']) or '(no attributes)'}")
    print(f"  Column annotation: {', '.join(summary['column_annotation_columns']) or '(no attributes)'}")
    return 0
