"""
Configuration file support for the linkedexp CLI.

Supports YAML and JSON config files with CLI argument override.

Example (build.yaml):

    assay:
      path: counts.tsv
      format: counts_tsv
    row_annotation:
      path: genes.tsv
      format: gene_annotation_tsv
      dtype_overrides: {entrez_id: str}
    column_annotation:
      path: samples.csv
      format: sample_annotation_csv
    output: experiment.lexp
    genomic_ranges: true
"""

import json
from argparse import Namespace
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import pandas as pd
import yaml

from linkedexp.core.ranges import RangeColumns
from linkedexp.io.formats import PRESETS, TableFormat, get_format

__all__ = [
    'TableConfig',
    'BuildConfig',
    'load_config',
    'merge_config_with_args',
    'validate_config',
]

TABLE_SECTIONS = ('assay', 'row_annotation', 'column_annotation')
TABLE_KEYS = ('path', 'format', 'dtype_overrides')
TOP_LEVEL_KEYS = TABLE_SECTIONS + ('output', 'genomic_ranges', 'export_csv')


@dataclass
class TableConfig:
    """Source and format of one input table."""
    path: Optional[Path] = None
    format: Optional[str] = None
    dtype_overrides: Dict[str, str] = field(default_factory=dict)

    def table_format(self) -> Optional[TableFormat]:
        """Resolve the preset and layer the dtype overrides on top of it."""
        if self.format is None and not self.dtype_overrides:
            return None
        base = get_format(self.format)
        if not self.dtype_overrides:
            return base
        return base.with_options(
            dtype_overrides={**base.dtype_overrides, **self.dtype_overrides}
        )


@dataclass
class BuildConfig:
    """
    Complete configuration for ``linkedexp build``.

    Mirrors the CLI argument structure for consistency.
    """
    assay: TableConfig = field(default_factory=TableConfig)
    row_annotation: TableConfig = field(default_factory=TableConfig)
    column_annotation: TableConfig = field(default_factory=TableConfig)
    output: Optional[Path] = None
    genomic_ranges: Union[bool, RangeColumns] = False
    export_csv: Optional[Path] = None

    @classmethod
    def from_args(cls, args: Namespace, config: Optional[Dict[str, Any]] = None) -> 'BuildConfig':
        """
        Assemble from merged CLI arguments.

        dtype overrides exist only in config files, so they are read from
        ``config`` directly.
        """
        config = config or {}

        def table(section: str, path: Optional[Path], format: Optional[str]) -> TableConfig:
            overrides = (config.get(section) or {}).get('dtype_overrides') or {}
            return TableConfig(path=path, format=format, dtype_overrides=dict(overrides))

        genomic_ranges = args.genomic_ranges or False
        if isinstance(genomic_ranges, dict):
            genomic_ranges = RangeColumns(**genomic_ranges)

        return cls(
            assay=table('assay', args.assay, args.assay_format),
            row_annotation=table('row_annotation', args.row_annotation, args.row_format),
            column_annotation=table(
                'column_annotation', args.column_annotation, args.column_format
            ),
            output=args.output,
            genomic_ranges=genomic_ranges,
            export_csv=args.export_csv,
        )


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid

    Examples:
        >>> config = load_config(Path("build.yaml"))
        >>> print(config['assay']['format'])
        counts_tsv
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()
    if suffix not in ('.yaml', '.yml', '.json'):
        raise ValueError(
            f"Unsupported config format: {suffix}. "
            f"Use .yaml, .yml, or .json"
        )

    try:
        with open(config_path, 'r') as f:
            if suffix == '.json':
                config = json.load(f)
            else:
                config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}") from e

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def _merge_value(cli_value: Any, config_value: Any) -> Any:
    """
    Merge a single config value with CLI argument.

    Rules:
    - CLI args ALWAYS override config if explicitly set (not None)
    - If CLI arg not set, use config value
    - If neither set, keep None
    """
    if cli_value is not None:
        return cli_value
    return config_value


def merge_config_with_args(config: Dict[str, Any], args: Namespace) -> Namespace:
    """
    Merge config file values with CLI arguments.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments
    2. Config file values
    3. Built-in defaults

    Every ``build`` option defaults to None on the command line, so an
    option counts as explicitly provided exactly when it is not None.

    Parameters:
        config: Configuration dictionary from load_config()
        args: Parsed CLI arguments (argparse.Namespace)

    Returns:
        Updated Namespace with merged values

    Examples:
        >>> config = load_config(Path("build.yaml"))
        >>> args = parser.parse_args(["build", "--output", "other.lexp"])
        >>> merged = merge_config_with_args(config, args)
        >>> # merged.output from CLI, merged.assay from config
    """
    merged = Namespace(**vars(args))

    # === Table sections ===
    for section, format_arg in (
        ('assay', 'assay_format'),
        ('row_annotation', 'row_format'),
        ('column_annotation', 'column_format'),
    ):
        table = config.get(section) or {}
        path = table.get('path')
        setattr(merged, section, _merge_value(
            getattr(merged, section, None),
            Path(path) if path is not None else None,
        ))
        setattr(merged, format_arg, _merge_value(
            getattr(merged, format_arg, None),
            table.get('format'),
        ))

    # === Top-level arguments ===
    for key in ('output', 'export_csv'):
        value = config.get(key)
        setattr(merged, key, _merge_value(
            getattr(merged, key, None),
            Path(value) if value is not None else None,
        ))

    merged.genomic_ranges = _merge_value(
        getattr(merged, 'genomic_ranges', None),
        config.get('genomic_ranges'),
    )

    return merged


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Performs basic validation:
    - Only known sections and keys
    - Format presets exist
    - dtype overrides name valid dtypes
    - genomic_ranges is a bool or a mapping of range column names

    Parameters:
        config: Configuration dictionary

    Raises:
        ValueError: If configuration is invalid
    """
    unknown = sorted(set(config) - set(TOP_LEVEL_KEYS))
    if unknown:
        raise ValueError(
            f"Unknown config keys: {unknown}. "
            f"Valid keys: {', '.join(TOP_LEVEL_KEYS)}"
        )

    for section in TABLE_SECTIONS:
        if section not in config:
            continue
        table = config[section]
        if not isinstance(table, dict):
            raise ValueError(f"Config section '{section}' must be a mapping, got: {table!r}")

        unknown = sorted(set(table) - set(TABLE_KEYS))
        if unknown:
            raise ValueError(f"Unknown keys in '{section}': {unknown}")

        preset = table.get('format')
        if preset is not None and preset not in PRESETS:
            raise ValueError(
                f"Invalid format '{preset}' in '{section}'. "
                f"Choose from: {', '.join(PRESETS)}"
            )

        overrides = table.get('dtype_overrides')
        if overrides is not None:
            if not isinstance(overrides, dict):
                raise ValueError(f"'{section}.dtype_overrides' must be a mapping")
            for column, dtype in overrides.items():
                try:
                    pd.api.types.pandas_dtype(dtype)
                except TypeError as e:
                    raise ValueError(
                        f"Invalid dtype '{dtype}' for column '{column}' in '{section}'"
                    ) from e

    ranges = config.get('genomic_ranges')
    if ranges is not None and not isinstance(ranges, bool):
        if not isinstance(ranges, dict):
            raise ValueError(
                f"genomic_ranges must be true/false or a mapping of column names, got: {ranges!r}"
            )
        valid = {f.name for f in fields(RangeColumns)}
        unknown = sorted(set(ranges) - valid)
        if unknown:
            raise ValueError(
                f"Unknown genomic_ranges columns: {unknown}. Valid: {', '.join(sorted(valid))}"
            )
