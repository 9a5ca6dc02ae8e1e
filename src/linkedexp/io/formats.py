"""
Format configuration for loading experiment tables.

Count matrices, gene annotations and sample sheets arrive as CSV/TSV exports
from many tools. This module captures the few structural facts the loader
needs and nothing about the meaning of the columns.

Design Principles:
    1. Auto-detect only what is unambiguous (delimiter sniffing)
    2. Explicit configuration for everything that can silently corrupt data
       (which column is the key, which columns must stay text)
    3. Presets for the three table roles of an experiment
    4. Keys are read as text by default: Entrez IDs, sample barcodes and
       plate positions look numeric but lose leading zeros or precision
       when parsed as numbers

Examples:
    >>> from linkedexp.io.formats import TableFormat, PRESETS
    >>>
    >>> # Preset for a featureCounts-style TSV
    >>> fmt = PRESETS['counts_tsv']
    >>>
    >>> # Gene table keyed by its 'gene_id' column, Entrez IDs kept as text
    >>> fmt = TableFormat(
    ...     delimiter='\\t',
    ...     key_column='gene_id',
    ...     dtype_overrides={'entrez_id': 'str'},
    ... )
"""

from __future__ import annotations

import csv
from dataclasses import dataclass, field, replace
from typing import Optional, Union

import pandas as pd

__all__ = [
    'TableFormat',
    'PRESETS',
    'get_format',
    'sniff_delimiter',
]

_SNIFF_DELIMITERS = '\t,;|'


@dataclass
class TableFormat:
    """
    Structural configuration for reading one delimited table.

    Attributes:
        name: Human-readable format name (e.g., "Counts TSV")
        delimiter: Field delimiter (None = sniff from content)
        quoting: Honor quote characters; False reads quotes literally
        has_header: First non-skipped row holds column names
        key_column: Column holding the row key, by name or 0-based position
        key_as_text: Read the key column as text regardless of its content
        dtype_overrides: Per-column dtypes, e.g. {'entrez_id': 'str'}
        encoding: File encoding (default: utf-8)
        comment: Character marking comment lines (e.g. '#'), or None
        skip_rows: Number of leading lines to skip before the header
        na_values: Values to treat as missing

    Examples:
        >>> # Headerless two-column mapping file, key in the first column
        >>> fmt = TableFormat(delimiter='\\t', has_header=False, key_column=0)
    """

    name: str = "Unknown Format"

    # Structural
    delimiter: Optional[str] = None
    quoting: bool = True
    has_header: bool = True
    key_column: Union[int, str] = 0
    encoding: str = 'utf-8'
    comment: Optional[str] = None
    skip_rows: int = 0

    # Typing
    key_as_text: bool = True
    dtype_overrides: dict[str, str] = field(default_factory=dict)

    # Missing value handling
    na_values: list[str] = field(default_factory=lambda: ['', 'NA', 'NaN', 'nan', 'NULL', 'null'])

    def __post_init__(self):
        """Validate structural settings."""
        if self.delimiter is not None and len(self.delimiter) != 1:
            raise ValueError(f"delimiter must be a single character, got {self.delimiter!r}")
        if isinstance(self.key_column, bool) or not isinstance(self.key_column, (int, str)):
            raise ValueError(f"key_column must be a column name or position, got {self.key_column!r}")
        if isinstance(self.key_column, int) and self.key_column < 0:
            raise ValueError(f"key_column position must be >= 0, got {self.key_column}")
        if not self.has_header and isinstance(self.key_column, str):
            raise ValueError("key_column must be a position when the table has no header")
        if self.skip_rows < 0:
            raise ValueError(f"skip_rows must be >= 0, got {self.skip_rows}")
        for column, dtype in self.dtype_overrides.items():
            try:
                pd.api.types.pandas_dtype(dtype)
            except TypeError as e:
                raise ValueError(f"Invalid dtype override for '{column}': {dtype!r}") from e

    @property
    def csv_quoting(self) -> int:
        """``csv`` module quoting constant for this format."""
        return csv.QUOTE_MINIMAL if self.quoting else csv.QUOTE_NONE

    def with_options(self, **changes) -> TableFormat:
        """Return a copy with some settings replaced."""
        return replace(self, **changes)


# =============================================================================
# Format Presets
# =============================================================================

PRESETS: dict[str, TableFormat] = {
    # Count matrix: first column gene key, one column per sample
    'counts_tsv': TableFormat(
        name="Counts TSV",
        delimiter='\t',
        comment='#',
    ),
    'counts_csv': TableFormat(
        name="Counts CSV",
        delimiter=',',
    ),

    # Gene annotation: gene key first, then location and descriptive columns.
    # Entrez IDs look numeric but are identifiers.
    'gene_annotation_tsv': TableFormat(
        name="Gene Annotation TSV",
        delimiter='\t',
        dtype_overrides={'entrez_id': 'str', 'seqname': 'str', 'strand': 'str'},
    ),

    # Sample sheet: sample key first. Replicate labels stay text ("01").
    'sample_annotation_csv': TableFormat(
        name="Sample Annotation CSV",
        delimiter=',',
        dtype_overrides={'replicate': 'str'},
    ),

    'generic_csv': TableFormat(
        name="Generic CSV",
        delimiter=',',
    ),
    'generic_tsv': TableFormat(
        name="Generic TSV",
        delimiter='\t',
    ),
}


def get_format(format: Union[str, TableFormat, None]) -> TableFormat:
    """
    Resolve a preset name or TableFormat.

    Args:
        format: Preset name, TableFormat, or None (sniffed delimiter, key in
            the first column)

    Returns:
        TableFormat

    Raises:
        KeyError: If a preset name is not recognized
    """
    if format is None:
        return TableFormat(name="Auto-detected")
    if isinstance(format, TableFormat):
        return format
    if format not in PRESETS:
        raise KeyError(
            f"Unknown format preset: '{format}'. "
            f"Available: {list(PRESETS.keys())}"
        )
    return PRESETS[format]


# =============================================================================
# Utility Functions
# =============================================================================

def sniff_delimiter(sample: str) -> str:
    """
    Auto-detect the field delimiter from a text sample.

    Uses Python's csv.Sniffer with a first-line counting fallback.

    Args:
        sample: Leading text of the table (a few KB is enough)

    Returns:
        Detected delimiter ('\\t', ',', ';' or '|')

    Raises:
        ValueError: If no candidate delimiter occurs in the first line

    Examples:
        >>> sniff_delimiter("gene\\tS1\\tS2\\nGeneA\\t10\\t20\\n")
        '\\t'
    """
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=_SNIFF_DELIMITERS)
        return dialect.delimiter
    except csv.Error:
        pass

    # Fallback: count delimiter occurrences in first line
    first_line = sample.split('\n')[0]
    counts = {d: first_line.count(d) for d in _SNIFF_DELIMITERS}

    if max(counts.values()) == 0:
        raise ValueError(
            "Could not detect delimiter. "
            "Please specify it explicitly with TableFormat.delimiter"
        )

    return max(counts, key=counts.get)
