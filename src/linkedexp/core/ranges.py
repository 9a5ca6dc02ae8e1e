"""
Genomic-range view of a row annotation.

Gene annotation tables usually carry a location per feature (sequence name,
start, end, strand), but as loaded from CSV/TSV those columns are just text
and numbers with no guarantees. ``as_genomic_ranges`` is the explicit,
validated conversion into a range-aware row annotation: 1-based closed
intervals with integer coordinates and a normalized strand.

Strand conventions differ by source (GTF uses "+"/"-"/".", Ensembl BioMart
uses 1/-1); all are mapped to "+", "-" or "*" (unstranded).

Examples:
    >>> genes = load_table("genes.tsv", PRESETS['gene_annotation_tsv'])
    >>> genes = as_genomic_ranges(genes)
    >>> exp = LinkedExperiment.build(counts, genes, samples)
    >>> chr1_window = exp.subset_rows(overlaps('chr1', 1_000_000, 2_000_000))
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np
import pandas as pd

from linkedexp.core.errors import MalformedInput, format_keys

__all__ = ['RangeColumns', 'as_genomic_ranges', 'overlaps', 'normalize_strand']


@dataclass(frozen=True)
class RangeColumns:
    """Names of the location columns in a row annotation."""
    seqname: str = 'seqname'
    start: str = 'start'
    end: str = 'end'
    strand: str = 'strand'


_STRAND_ALIASES = {
    '+': '+',
    '+1': '+',
    '1': '+',
    '-': '-',
    '-1': '-',
    '*': '*',
    '.': '*',
    '0': '*',
    '': '*',
}


def normalize_strand(value: Any) -> Optional[str]:
    """
    Map a strand value to "+", "-" or "*".

    Returns None for values that are not a recognized strand.

    Examples:
        >>> normalize_strand(-1)
        '-'
        >>> normalize_strand('.')
        '*'
        >>> normalize_strand('forward') is None
        True
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return '*'
    if isinstance(value, (int, float, np.integer, np.floating)):
        if not np.isfinite(value) or float(value) != int(value):
            return None
        value = str(int(value))
    return _STRAND_ALIASES.get(str(value).strip())


def _integer_coordinates(values: pd.Series, name: str) -> pd.Series:
    numeric = pd.to_numeric(values, errors='coerce').astype(float)
    bad = numeric.isna() | ~np.isfinite(numeric) | (numeric != np.floor(numeric))
    if bad.any():
        raise MalformedInput(
            f"range column '{name}' has missing or non-integer values for keys "
            f"{format_keys(values.index[bad.to_numpy()].tolist())}"
        )
    return numeric.astype(np.int64)


def as_genomic_ranges(
    annotation: pd.DataFrame,
    columns: RangeColumns = RangeColumns(),
) -> pd.DataFrame:
    """
    Validate and convert a row annotation into genomic-range form.

    Args:
        annotation: Row annotation indexed by feature key
        columns: Names of the seqname/start/end/strand columns

    Returns:
        New DataFrame with integer ``start``/``end`` (int64), normalized
        strand, and an added ``width`` column (end - start + 1). Other
        columns and the key order are unchanged.

    Raises:
        MalformedInput: Missing location columns, missing sequence names,
            non-integer coordinates, end < start - 1, or unknown strand values

    Examples:
        >>> genes = pd.DataFrame({
        ...     'seqname': ['chr1', 'chr2'],
        ...     'start': [100, 500],
        ...     'end': [200, 900],
        ...     'strand': [1, -1],
        ... }, index=['GeneA', 'GeneB'])
        >>> as_genomic_ranges(genes)[['strand', 'width']]
              strand  width
        GeneA      +    101
        GeneB      -    401
    """
    required = [columns.seqname, columns.start, columns.end, columns.strand]
    absent = [c for c in required if c not in annotation.columns]
    if absent:
        raise MalformedInput(
            f"row annotation lacks range columns {absent}; "
            f"available: {list(annotation.columns)}"
        )

    ranges = annotation.copy()

    no_seqname = ranges[columns.seqname].isna()
    if no_seqname.any():
        raise MalformedInput(
            f"missing '{columns.seqname}' for keys "
            f"{format_keys(ranges.index[no_seqname.to_numpy()].tolist())}"
        )

    ranges[columns.start] = _integer_coordinates(ranges[columns.start], columns.start)
    ranges[columns.end] = _integer_coordinates(ranges[columns.end], columns.end)

    # end == start - 1 is a zero-width range (e.g. an insertion point)
    inverted = ranges[columns.end] < ranges[columns.start] - 1
    if inverted.any():
        raise MalformedInput(
            f"'{columns.end}' precedes '{columns.start}' for keys "
            f"{format_keys(ranges.index[inverted.to_numpy()].tolist())}"
        )

    strands = [normalize_strand(v) for v in ranges[columns.strand].tolist()]
    unknown = [key for key, s in zip(ranges.index, strands) if s is None]
    if unknown:
        raise MalformedInput(
            f"unrecognized '{columns.strand}' values for keys {format_keys(unknown)}"
        )
    ranges[columns.strand] = pd.Series(strands, index=ranges.index, dtype=object)

    ranges['width'] = ranges[columns.end] - ranges[columns.start] + 1
    return ranges


def overlaps(
    seqname: str,
    start: int,
    end: int,
    columns: RangeColumns = RangeColumns(),
) -> Callable[[pd.DataFrame], pd.Series]:
    """
    Row selector keeping features whose range overlaps [start, end].

    Args:
        seqname: Sequence (chromosome) name
        start: Window start (1-based, inclusive)
        end: Window end (inclusive)
        columns: Location column names

    Returns:
        Callable suitable for ``LinkedExperiment.subset_rows``
    """
    if end < start:
        raise ValueError(f"window end ({end}) precedes start ({start})")

    def selector(annotation: pd.DataFrame) -> pd.Series:
        feature_start = pd.to_numeric(annotation[columns.start], errors='coerce')
        feature_end = pd.to_numeric(annotation[columns.end], errors='coerce')
        hit = (
            (annotation[columns.seqname] == seqname)
            & (feature_start <= end)
            & (feature_end >= start)
        )
        return hit.fillna(False).astype(bool)

    return selector
