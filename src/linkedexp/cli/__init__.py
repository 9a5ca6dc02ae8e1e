"""
linkedexp CLI - Command-line interface for aligned expression experiments.

Commands:
    linkedexp build    - Load assay + annotations, verify alignment, save a snapshot
    linkedexp inspect  - Validate a snapshot and print its summary
    linkedexp export   - Write a snapshot out as CSV files

Exit status: 0 on success, 1 when data fails validation (alignment,
duplicate keys, malformed input, corrupt snapshot), 2 on usage errors.
"""

import argparse
import logging
import sys
from typing import List, Optional

from linkedexp import __version__
from linkedexp.core.errors import LinkedExperimentError


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for linkedexp."""
    parser = argparse.ArgumentParser(
        prog="linkedexp",
        description="Alignment-safe expression experiments: counts, gene and sample annotations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  build     Load assay + annotations, verify alignment, save a snapshot
  inspect   Validate a snapshot and print its summary
  export    Write a snapshot out as CSV files

Examples:
  linkedexp build --assay counts.tsv --row-annotation genes.tsv \\
      --column-annotation samples.csv --output experiment.lexp
  linkedexp build --config build.yaml --output other.lexp
  linkedexp inspect experiment.lexp --json
  linkedexp export experiment.lexp --output results/experiment
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log alignment decisions (DEBUG level)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Import and register subcommands
    from linkedexp.cli import build, export, inspect_snapshot
    build.register_parser(subparsers)
    inspect_snapshot.register_parser(subparsers)
    export.register_parser(subparsers)

    parsed_args = parser.parse_args(args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )

    # Dispatch to subcommand
    try:
        return parsed_args.func(parsed_args)
    except LinkedExperimentError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
