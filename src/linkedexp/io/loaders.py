"""
Delimited-table loaders for the three inputs of an experiment.

Turns bytes (a path, raw bytes or a binary stream) into key-indexed
DataFrames, and the three loaded tables into a LinkedExperiment.

Biological Context:
    A typical bulk RNA-seq experiment ships as three files:
    - counts.tsv:  gene_id, then one integer column per sample
    - genes.tsv:   gene_id, seqname, start, end, strand, entrez_id, ...
    - samples.csv: sample_id, treatment, timepoint, replicate, ...

    Each file is produced by a different tool and none of them agree on row
    order. Loading deliberately does not reconcile anything: duplicate keys
    and mismatched key sets are reported by ``LinkedExperiment.build``.

Engineering Design:
    - Structural failures (ragged rows, failed dtype overrides, missing keys)
      raise MalformedInput with the source and line numbers
    - Key columns are read as text unless configured otherwise
    - gzip-compressed input is detected from its magic bytes
    - NaN counts are kept and reported with a UserWarning

Examples:
    >>> from linkedexp.io.loaders import load_experiment
    >>>
    >>> exp = load_experiment(
    ...     "counts.tsv", "genes.tsv", "samples.csv",
    ...     assay_format='counts_tsv',
    ...     row_format='gene_annotation_tsv',
    ...     column_format='sample_annotation_csv',
    ... )
    >>> print(f"Loaded {exp.n_rows} genes × {exp.n_columns} samples")
"""

from __future__ import annotations

import csv
import gzip
import io
import logging
import warnings
import zlib
from pathlib import Path
from typing import Any, BinaryIO, Optional, Union

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype

from linkedexp.core.alignment import find_duplicates
from linkedexp.core.errors import DuplicateKey, MalformedInput
from linkedexp.core.experiment import LinkedExperiment
from linkedexp.core.ranges import RangeColumns, as_genomic_ranges
from linkedexp.io.formats import TableFormat, get_format, sniff_delimiter

__all__ = ['load_table', 'load_assay', 'load_experiment']

logger = logging.getLogger(__name__)

Source = Union[str, Path, bytes, bytearray, BinaryIO]

_GZIP_MAGIC = b'\x1f\x8b'

# Offending cells/lines listed in error messages
_MAX_EXAMPLES = 5


def _read_source(source: Source) -> tuple[bytes, str]:
    """Read all bytes of ``source`` and return them with a display label."""
    if isinstance(source, (bytes, bytearray)):
        raw, label = bytes(source), "<bytes>"
    elif hasattr(source, 'read'):
        raw = source.read()
        if isinstance(raw, str):
            raise TypeError("stream sources must be opened in binary mode")
        label = str(getattr(source, 'name', '<stream>'))
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Table file not found: {path}")
        if not path.is_file():
            raise MalformedInput("path is not a file", source=str(path))
        raw, label = path.read_bytes(), str(path)

    if raw.startswith(_GZIP_MAGIC):
        try:
            raw = gzip.decompress(raw)
        except (OSError, EOFError, zlib.error) as e:
            raise MalformedInput(f"corrupt gzip data: {e}", source=label) from e
    return raw, label


def _scan_rows(text: str, delimiter: str, fmt: TableFormat, label: str) -> list[str]:
    """
    Return the first row's fields; raise MalformedInput if any later row has a
    different field count.
    """
    reader = csv.reader(
        io.StringIO(text),
        delimiter=delimiter,
        quoting=fmt.csv_quoting,
    )
    first_row: list[str] = []
    expected = None
    ragged = []
    for line_no, fields in enumerate(reader, start=1):
        if line_no <= fmt.skip_rows or not fields:
            continue
        if fmt.comment and fields[0].startswith(fmt.comment):
            continue
        if expected is None:
            first_row = fields
            expected = len(fields)
            continue
        if len(fields) != expected:
            ragged.append(f"line {reader.line_num}: {len(fields)} fields")
            if len(ragged) >= _MAX_EXAMPLES:
                break

    if ragged:
        raise MalformedInput(
            f"ragged rows (expected {expected} fields):\n"
            + "\n".join(f"  - {x}" for x in ragged),
            source=label,
        )
    return first_row


def load_table(source: Source, fmt: Union[str, TableFormat, None] = None) -> pd.DataFrame:
    """
    Load a delimited table into a DataFrame indexed by its key column.

    Args:
        source: File path, raw bytes, or binary stream. gzip is detected
            automatically.
        fmt: TableFormat, preset name, or None (sniffed delimiter, header
            row, key in the first column)

    Returns:
        DataFrame indexed by the key column (index name = key column name).
        Duplicate keys are kept; ``LinkedExperiment.build`` rejects them.

    Raises:
        FileNotFoundError: If a path does not exist
        KeyError: If a preset name is not recognized
        MalformedInput: Empty input, undecodable text, undetectable delimiter,
            ragged rows, unknown key column, missing key values, or a dtype
            override that cannot be applied

    Examples:
        >>> genes = load_table("genes.tsv", 'gene_annotation_tsv')
        >>> genes.loc['ENSG00000141510', 'entrez_id']
        '7157'
    """
    fmt = get_format(fmt)
    raw, label = _read_source(source)

    try:
        text = raw.decode(fmt.encoding)
    except (UnicodeDecodeError, LookupError) as e:
        raise MalformedInput(f"cannot decode as {fmt.encoding}: {e}", source=label) from e

    if not text.strip():
        raise MalformedInput("input is empty", source=label)

    delimiter = fmt.delimiter
    if delimiter is None:
        try:
            delimiter = sniff_delimiter(text[:8192])
        except ValueError as e:
            raise MalformedInput(str(e), source=label) from e
        logger.debug(f"Sniffed delimiter for {label}: {delimiter!r}")

    first_row = _scan_rows(text, delimiter, fmt, label)
    if fmt.has_header:
        # pandas would silently rename repeated names (S1 -> S1.1)
        duplicates = find_duplicates(first_row)
        if duplicates:
            raise DuplicateKey("column", duplicates)

    read_kwargs: dict[str, Any] = dict(
        sep=delimiter,
        quoting=fmt.csv_quoting,
        header=0 if fmt.has_header else None,
        comment=fmt.comment,
        skiprows=fmt.skip_rows,
        na_values=fmt.na_values,
    )

    # Resolve column names before the full read so dtypes can be pinned by name
    try:
        columns = pd.read_csv(io.StringIO(text), nrows=1, **read_kwargs).columns
    except (ValueError, TypeError) as e:
        raise MalformedInput(f"could not parse header: {e}", source=label) from e

    if isinstance(fmt.key_column, int):
        if fmt.key_column >= len(columns):
            raise MalformedInput(
                f"key column position {fmt.key_column} out of range "
                f"({len(columns)} columns)",
                source=label,
            )
        key_name = columns[fmt.key_column]
    else:
        if fmt.key_column not in columns:
            raise MalformedInput(
                f"key column '{fmt.key_column}' not found; columns: {list(columns)}",
                source=label,
            )
        key_name = fmt.key_column

    dtype = {c: t for c, t in fmt.dtype_overrides.items() if c in columns}
    ignored = sorted(set(fmt.dtype_overrides) - set(dtype))
    if ignored:
        logger.debug(f"dtype overrides for absent columns ignored in {label}: {ignored}")
    if fmt.key_as_text:
        dtype[key_name] = str

    try:
        df = pd.read_csv(io.StringIO(text), dtype=dtype or None, **read_kwargs)
    except (ValueError, TypeError, OverflowError) as e:
        raise MalformedInput(f"could not parse table: {e}", source=label) from e

    missing_keys = df[key_name].isna().to_numpy()
    if missing_keys.any():
        positions = np.flatnonzero(missing_keys)[:_MAX_EXAMPLES]
        raise MalformedInput(
            f"{int(missing_keys.sum())} records have no value in key column "
            f"'{key_name}' (data rows {[int(p) + 1 for p in positions]})",
            source=label,
        )

    df = df.set_index(key_name)
    if isinstance(key_name, str) and key_name.startswith('Unnamed: '):
        # Blank key header, as written by R's write.csv
        df.index.name = None
    logger.info(f"Loaded {label}: {df.shape[0]:,} records × {df.shape[1]:,} columns")
    return df


def load_assay(source: Source, fmt: Union[str, TableFormat, None] = None) -> pd.DataFrame:
    """
    Load a numeric assay table (features × samples).

    Expected layout: first column feature keys, remaining columns one per
    sample with numeric values.

    ```
    gene_id	S1	S2
    GeneA	10	20
    GeneB	30	40
    ```

    Args:
        source: File path, raw bytes, or binary stream
        fmt: TableFormat, preset name, or None

    Returns:
        DataFrame with numeric columns, indexed by feature key

    Raises:
        MalformedInput: Anything ``load_table`` rejects, non-numeric cells,
            or infinite values

    Warns:
        UserWarning: If the assay contains NaN values
    """
    df = load_table(source, fmt)
    label = str(source) if isinstance(source, (str, Path)) else "<assay>"

    non_numeric = []
    for column in df.columns:
        values = df[column]
        if is_numeric_dtype(values.dtype):
            continue
        converted = pd.to_numeric(values, errors='coerce')
        bad = converted.isna() & values.notna()
        for key, value in values[bad].items():
            non_numeric.append(f"row '{key}', column '{column}': {value!r}")
            if len(non_numeric) >= _MAX_EXAMPLES:
                break
        if len(non_numeric) >= _MAX_EXAMPLES:
            break
        df[column] = converted

    if non_numeric:
        raise MalformedInput(
            "assay contains non-numeric values:\n"
            + "\n".join(f"  - {x}" for x in non_numeric)
            + ("\n  ..." if len(non_numeric) >= _MAX_EXAMPLES else ""),
            source=label,
        )

    values = df.to_numpy(dtype=np.float64, na_value=np.nan) if df.shape[1] else np.empty((len(df), 0))

    # Check for infinite values
    n_inf = int(np.isinf(values).sum())
    if n_inf:
        raise MalformedInput(
            f"assay contains {n_inf} infinite values. Please clean data before loading.",
            source=label,
        )

    # Check for NaN values
    n_nan = int(np.isnan(values).sum())
    if n_nan:
        warnings.warn(
            f"Found {n_nan:,} NaN values ({100 * n_nan / values.size:.2f}% of assay) "
            f"in {label}. They are kept as missing values.",
            UserWarning,
        )

    return df


def load_experiment(
    assay: Source,
    row_annotation: Optional[Source] = None,
    column_annotation: Optional[Source] = None,
    assay_format: Union[str, TableFormat, None] = None,
    row_format: Union[str, TableFormat, None] = None,
    column_format: Union[str, TableFormat, None] = None,
    genomic_ranges: Union[bool, RangeColumns] = False,
) -> LinkedExperiment:
    """
    Load the three tables of an experiment and build the linked container.

    Args:
        assay: Count/abundance matrix source
        row_annotation: Feature annotation source (None = no attributes)
        column_annotation: Sample annotation source (None = no attributes)
        assay_format: Format for the assay
        row_format: Format for the row annotation
        column_format: Format for the column annotation
        genomic_ranges: Convert the row annotation with ``as_genomic_ranges``
            (True for default column names, or a RangeColumns)

    Returns:
        LinkedExperiment

    Raises:
        MalformedInput: From any of the loaders (propagated unchanged)
        DuplicateKey, RowAlignmentError, ColumnAlignmentError: From ``build``
    """
    assay_df = load_assay(assay, assay_format)
    rows = load_table(row_annotation, row_format) if row_annotation is not None else None
    cols = load_table(column_annotation, column_format) if column_annotation is not None else None

    if genomic_ranges:
        if rows is None:
            raise MalformedInput("genomic ranges requested but no row annotation given")
        columns = genomic_ranges if isinstance(genomic_ranges, RangeColumns) else RangeColumns()
        rows = as_genomic_ranges(rows, columns)

    return LinkedExperiment.build(assay_df, rows, cols)
