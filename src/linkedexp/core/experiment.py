"""
Core data structure binding an assay matrix to its row and column annotations.

LinkedExperiment owns three independently sourced tables and guarantees they
stay aligned through every structural operation:

    - assay:             numeric matrix (features × samples)
    - row_annotation:    one record per feature (location, biotype, ...)
    - column_annotation: one record per sample (treatment, timepoint, ...)

Biological Context:
    Counts, gene annotations and sample sheets usually arrive as separate
    files, each with its own notion of order. Matching row counts says nothing
    about whether row 17 of the gene table describes row 17 of the count
    matrix. Downstream models (design matrices, per-gene filters) silently
    produce wrong answers when the tables drift apart, so alignment is proven
    per key at construction and preserved by construction afterwards.

Engineering Design:
    - Validating constructor: ``build`` aligns annotations to the assay keys
      (order-only differences are permuted, set differences are fatal) and the
      constructor re-verifies every invariant before an instance exists
    - Immutable: subsetting returns new instances; the assay is exposed
      read-only and annotation frames are handed out as copies
    - Atomic: two-axis subsetting resolves both selectors before building

Invariants (checked on every construction):
    - row_annotation.index equals row_keys (same keys, same order)
    - column_annotation.index equals column_keys
    - keys are unique on each axis
    - assay shape is (len(row_keys), len(column_keys)); zero rows or
      zero columns is a valid, degenerate container

Examples:
    >>> import pandas as pd
    >>> from linkedexp.core.experiment import LinkedExperiment
    >>>
    >>> counts = pd.DataFrame([[10, 20], [30, 40]],
    ...                       index=['GeneA', 'GeneB'], columns=['S1', 'S2'])
    >>> genes = pd.DataFrame({'type': ['ncRNA', 'mRNA']}, index=['GeneB', 'GeneA'])
    >>> samples = pd.DataFrame({'sex': ['F', 'M']}, index=['S1', 'S2'])
    >>>
    >>> exp = LinkedExperiment.build(counts, genes, samples)
    >>> list(exp.row_annotation.index)
    ['GeneA', 'GeneB']
    >>>
    >>> coding = exp.subset_rows(lambda g: g['type'] == 'mRNA')
    >>> coding.assay
    array([[10, 20]])
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype

from linkedexp.core import alignment
from linkedexp.core.alignment import AlignmentStatus, as_key_index, detached_copy, find_duplicates
from linkedexp.core.errors import (
    ColumnAlignmentError,
    DuplicateKey,
    InvariantViolation,
    MalformedInput,
    RowAlignmentError,
    format_keys,
)
from linkedexp.core.selection import Selector, resolve_selector

__all__ = ['LinkedExperiment']

logger = logging.getLogger(__name__)

# bool, signed int, unsigned int, float, complex
_NUMERIC_KINDS = 'biufc'


def _assay_values(assay: pd.DataFrame) -> np.ndarray:
    """Extract the assay matrix from a DataFrame, keeping numpy dtypes."""
    non_numeric = [
        str(col) for col, dtype in assay.dtypes.items() if not is_numeric_dtype(dtype)
    ]
    if non_numeric:
        raise MalformedInput(
            f"assay columns must be numeric; non-numeric columns: {format_keys(non_numeric)}"
        )

    if assay.shape[1] == 0:
        return np.empty((assay.shape[0], 0), dtype=np.float64)

    if any(isinstance(dtype, pd.api.extensions.ExtensionDtype) for dtype in assay.dtypes):
        # Nullable numeric columns (Int64, Float64): NA becomes NaN
        return assay.to_numpy(dtype=np.float64, na_value=np.nan)

    return assay.to_numpy()


def _frozen_copy(data: np.ndarray) -> np.ndarray:
    """
    Copy ``data`` into an array backed by an immutable ``bytes`` buffer.

    A read-only flag alone can be switched back on through ``.base``; an
    array over ``bytes`` cannot be made writeable at any level.
    """
    if data.size == 0:
        empty = np.empty(data.shape, dtype=data.dtype)
        empty.flags.writeable = False
        return empty
    return np.frombuffer(data.tobytes(order='C'), dtype=data.dtype).reshape(data.shape)


def _arrays_equal(left: np.ndarray, right: np.ndarray) -> bool:
    if left.shape != right.shape or left.dtype != right.dtype:
        return False
    if left.dtype.kind in 'fc':
        return bool(np.array_equal(left, right, equal_nan=True))
    return bool(np.array_equal(left, right))


class LinkedExperiment:
    """
    Immutable container for an assay matrix plus row and column annotations.

    Construct with ``LinkedExperiment.build`` (DataFrame assay) or
    ``LinkedExperiment.from_arrays`` (ndarray + key sequences). Calling the
    constructor directly is reserved for parts that are already aligned; it
    only verifies, and any misalignment is reported as ``InvariantViolation``.

    Attributes:
        assay: Numeric matrix (features × samples), read-only
        row_keys: Feature keys (row axis)
        column_keys: Sample keys (column axis)
        row_annotation: Feature records indexed by row key (copy)
        column_annotation: Sample records indexed by column key (copy)

    Design Principles:
        1. Immutability: All operations return new instances
        2. Validation: Nothing unaligned can be constructed
        3. Exclusive ownership: inputs are copied, outputs are copies or read-only
    """

    def __init__(
        self,
        data: np.ndarray,
        row_keys: pd.Index,
        column_keys: pd.Index,
        row_annotation: pd.DataFrame,
        column_annotation: pd.DataFrame,
    ):
        """
        Initialize from already-aligned parts, verifying every invariant.

        Args:
            data: Numeric matrix (features × samples)
            row_keys: Feature keys, one per data row
            column_keys: Sample keys, one per data column
            row_annotation: DataFrame indexed by exactly ``row_keys``
            column_annotation: DataFrame indexed by exactly ``column_keys``

        Raises:
            TypeError: If parts have the wrong types
            InvariantViolation: If the parts are not aligned
        """
        # Type validation
        if not isinstance(data, np.ndarray):
            raise TypeError(f"data must be np.ndarray, got {type(data)}")
        if not isinstance(row_keys, pd.Index):
            raise TypeError(f"row_keys must be pd.Index, got {type(row_keys)}")
        if not isinstance(column_keys, pd.Index):
            raise TypeError(f"column_keys must be pd.Index, got {type(column_keys)}")
        if not isinstance(row_annotation, pd.DataFrame):
            raise TypeError(f"row_annotation must be pd.DataFrame, got {type(row_annotation)}")
        if not isinstance(column_annotation, pd.DataFrame):
            raise TypeError(
                f"column_annotation must be pd.DataFrame, got {type(column_annotation)}"
            )
        if data.dtype.kind not in _NUMERIC_KINDS:
            raise TypeError(f"data must be numeric, got dtype {data.dtype}")

        # Take exclusive ownership: nothing the caller holds aliases our state
        self._data = _frozen_copy(data)
        self._row_keys = row_keys.copy(deep=True)
        self._column_keys = column_keys.copy(deep=True)
        self._row_annotation = detached_copy(row_annotation)
        self._column_annotation = detached_copy(column_annotation)

        self._verify_invariants()

    def _verify_invariants(self) -> None:
        """Raise InvariantViolation unless the parts are aligned and well-formed."""
        problems = []

        if self._data.ndim != 2:
            problems.append(f"assay must be 2D, got shape {self._data.shape}")
        else:
            n_rows, n_columns = self._data.shape
            if len(self._row_keys) != n_rows:
                problems.append(
                    f"{len(self._row_keys)} row keys for {n_rows} assay rows"
                )
            if len(self._column_keys) != n_columns:
                problems.append(
                    f"{len(self._column_keys)} column keys for {n_columns} assay columns"
                )

        for axis, keys, annotation in (
            ('row', self._row_keys, self._row_annotation),
            ('column', self._column_keys, self._column_annotation),
        ):
            duplicates = find_duplicates(keys)
            if duplicates:
                problems.append(f"duplicate {axis} keys {format_keys(duplicates)}")
            if len(annotation.index) != len(keys) or not annotation.index.equals(keys):
                problems.append(f"{axis} annotation index does not equal {axis} keys")

        if problems:
            raise InvariantViolation(
                "LinkedExperiment invariants violated: " + "; ".join(problems)
            )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def build(
        cls,
        assay: pd.DataFrame,
        row_annotation: Optional[pd.DataFrame] = None,
        column_annotation: Optional[pd.DataFrame] = None,
    ) -> LinkedExperiment:
        """
        Validate three tables and assemble them into an aligned container.

        Steps:
            1. Assay must be numeric with duplicate-free row and column keys
            2. Row annotation keys are checked against assay row keys:
               identical -> kept, same set in another order -> reordered,
               anything else -> RowAlignmentError
            3. Same for columns (ColumnAlignmentError)
            4. Constructor re-verifies all invariants

        Args:
            assay: DataFrame of numeric columns. Index = feature keys,
                columns = sample keys.
            row_annotation: Feature records indexed by feature key.
                None creates an annotation with no attributes.
            column_annotation: Sample records indexed by sample key.
                None creates an annotation with no attributes.

        Returns:
            New LinkedExperiment

        Raises:
            TypeError: If inputs are not DataFrames
            MalformedInput: If the assay has non-numeric columns
            DuplicateKey: If any axis (assay or annotation) repeats a key
            RowAlignmentError: If row annotation keys differ from assay row keys
            ColumnAlignmentError: If column annotation keys differ from assay column keys
            InvariantViolation: If alignment produced an inconsistent result

        Examples:
            >>> exp = LinkedExperiment.build(counts, genes, samples)
            >>>
            >>> # Missing sample metadata is reported precisely
            >>> LinkedExperiment.build(counts, genes, samples.drop('S2'))
            ColumnAlignmentError: column keys do not match (missing 1: ['S2'])
        """
        if not isinstance(assay, pd.DataFrame):
            raise TypeError(f"assay must be pd.DataFrame, got {type(assay)}")

        data = _assay_values(assay)
        return cls._assemble(
            data,
            pd.Index(assay.index),
            pd.Index(assay.columns),
            row_annotation,
            column_annotation,
        )

    @classmethod
    def from_arrays(
        cls,
        data: np.ndarray,
        row_keys: Iterable[Any],
        column_keys: Iterable[Any],
        row_annotation: Optional[pd.DataFrame] = None,
        column_annotation: Optional[pd.DataFrame] = None,
    ) -> LinkedExperiment:
        """
        Build from a 2D array plus explicit key sequences.

        Same validation and alignment protocol as ``build``.

        Examples:
            >>> exp = LinkedExperiment.from_arrays(
            ...     np.array([[10, 20], [30, 40]]),
            ...     row_keys=['GeneA', 'GeneB'],
            ...     column_keys=['S1', 'S2'],
            ... )
        """
        data = np.asarray(data)
        if data.ndim != 2:
            raise MalformedInput(f"assay must be 2D, got shape {data.shape}")

        row_keys = as_key_index(row_keys)
        column_keys = as_key_index(column_keys)
        if data.shape != (len(row_keys), len(column_keys)):
            raise MalformedInput(
                f"assay shape {data.shape} does not match "
                f"{len(row_keys)} row keys × {len(column_keys)} column keys"
            )
        return cls._assemble(data, row_keys, column_keys, row_annotation, column_annotation)

    @classmethod
    def _assemble(
        cls,
        data: np.ndarray,
        row_keys: pd.Index,
        column_keys: pd.Index,
        row_annotation: Optional[pd.DataFrame],
        column_annotation: Optional[pd.DataFrame],
    ) -> LinkedExperiment:
        if data.dtype.kind not in _NUMERIC_KINDS:
            raise MalformedInput(f"assay must be numeric, got dtype {data.dtype}")

        for axis, keys in (('row', row_keys), ('column', column_keys)):
            duplicates = find_duplicates(keys)
            if duplicates:
                raise DuplicateKey(axis, duplicates)

        row_annotation = _align_annotation(row_keys, row_annotation, 'row', RowAlignmentError)
        column_annotation = _align_annotation(
            column_keys, column_annotation, 'column', ColumnAlignmentError
        )

        experiment = cls(data, row_keys, column_keys, row_annotation, column_annotation)
        logger.info(
            f"Built LinkedExperiment ({experiment.n_rows:,} rows × "
            f"{experiment.n_columns:,} columns)"
        )
        return experiment

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def assay(self) -> np.ndarray:
        """Numeric matrix (features × samples). Read-only view."""
        return self._data.view()

    @property
    def row_keys(self) -> pd.Index:
        """Feature keys, in assay row order (a copy)."""
        return self._row_keys.copy(deep=True)

    @property
    def column_keys(self) -> pd.Index:
        """Sample keys, in assay column order (a copy)."""
        return self._column_keys.copy(deep=True)

    @property
    def row_annotation(self) -> pd.DataFrame:
        """Feature records aligned with assay rows (a copy)."""
        return detached_copy(self._row_annotation)

    @property
    def column_annotation(self) -> pd.DataFrame:
        """Sample records aligned with assay columns (a copy)."""
        return detached_copy(self._column_annotation)

    @property
    def shape(self) -> tuple[int, int]:
        """Matrix dimensions (n_rows, n_columns)."""
        return self._data.shape

    @property
    def n_rows(self) -> int:
        """Number of features."""
        return self._data.shape[0]

    @property
    def n_columns(self) -> int:
        """Number of samples."""
        return self._data.shape[1]

    @property
    def is_empty(self) -> bool:
        """True for a degenerate container (no rows or no columns)."""
        return self.n_rows == 0 or self.n_columns == 0

    def assay_frame(self) -> pd.DataFrame:
        """Assay as a DataFrame labelled by row and column keys (a copy)."""
        return pd.DataFrame(
            self._data.copy(),
            index=self._row_keys.copy(deep=True),
            columns=self._column_keys.copy(deep=True),
        )

    # ------------------------------------------------------------------
    # Alignment-preserving subsetting
    # ------------------------------------------------------------------

    def subset_rows(self, selector: Selector) -> LinkedExperiment:
        """
        Subset features (rows), slicing assay rows and row annotation together.

        Args:
            selector: Predicate over the row annotation, boolean mask, explicit
                list of row keys, positional slice, or None
                (see ``linkedexp.core.selection``)

        Returns:
            New LinkedExperiment; columns and column annotation are unchanged

        Raises:
            UnknownKey: If a key list names absent rows
            DuplicateKey: If a key list repeats a key

        Examples:
            >>> coding = exp.subset_rows(lambda genes: genes['type'] == 'mRNA')
            >>> reordered = exp.subset_rows(['GeneB', 'GeneA'])
        """
        return self.subset(rows=selector)

    def subset_columns(self, selector: Selector) -> LinkedExperiment:
        """
        Subset samples (columns), slicing assay columns and column annotation together.

        Examples:
            >>> females = exp.subset_columns(lambda samples: samples['sex'] == 'F')
        """
        return self.subset(columns=selector)

    def subset(
        self,
        rows: Selector = None,
        columns: Selector = None,
    ) -> LinkedExperiment:
        """
        Subset both axes in one step.

        Both selectors are resolved before any data is sliced, so a failure on
        either axis leaves nothing half-built and no single-axis intermediate
        container is ever created.

        Args:
            rows: Row selector (None keeps all rows)
            columns: Column selector (None keeps all columns)

        Returns:
            New LinkedExperiment
        """
        row_positions = resolve_selector(rows, self._row_keys, self._row_annotation, 'row')
        column_positions = resolve_selector(
            columns, self._column_keys, self._column_annotation, 'column'
        )

        subset = LinkedExperiment(
            self._data[np.ix_(row_positions, column_positions)],
            self._row_keys[row_positions],
            self._column_keys[column_positions],
            self._row_annotation.iloc[row_positions],
            self._column_annotation.iloc[column_positions],
        )
        logger.debug(f"Subset {self.shape} -> {subset.shape}")
        return subset

    # ------------------------------------------------------------------
    # Comparison and reporting
    # ------------------------------------------------------------------

    def equals(self, other: Any) -> bool:
        """
        Value equality: matrix values and dtype, key order, both annotations.

        NaN in the same position compares equal.
        """
        if not isinstance(other, LinkedExperiment):
            return False
        return (
            _arrays_equal(self._data, other._data)
            and self._row_keys.equals(other._row_keys)
            and self._column_keys.equals(other._column_keys)
            and self._row_annotation.equals(other._row_annotation)
            and self._column_annotation.equals(other._column_annotation)
        )

    def copy(self) -> LinkedExperiment:
        """Create an independent copy of this container."""
        return LinkedExperiment(
            self._data,
            self._row_keys,
            self._column_keys,
            self._row_annotation,
            self._column_annotation,
        )

    def summary(self) -> dict[str, Any]:
        """
        Summarize dimensions and annotation contents for reporting.

        Returns:
            JSON-serializable dict
        """
        n_missing = (
            int(np.isnan(self._data).sum()) if self._data.dtype.kind in 'fc' else 0
        )
        return {
            'n_rows': self.n_rows,
            'n_columns': self.n_columns,
            'dtype': str(self._data.dtype),
            'missing_values': n_missing,
            'row_keys': _key_span(self._row_keys),
            'column_keys': _key_span(self._column_keys),
            'row_annotation_columns': [str(c) for c in self._row_annotation.columns],
            'column_annotation_columns': [str(c) for c in self._column_annotation.columns],
        }

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"LinkedExperiment({self.n_rows} rows × {self.n_columns} columns)\n"
            f"  Rows: {_key_span(self._row_keys)}\n"
            f"  Columns: {_key_span(self._column_keys)}\n"
            f"  Row annotation: {list(self._row_annotation.columns)}\n"
            f"  Column annotation: {list(self._column_annotation.columns)}"
        )

    def __str__(self) -> str:
        """Human-readable string representation."""
        return self.__repr__()


def _key_span(keys: pd.Index) -> str:
    if len(keys) == 0:
        return "(none)"
    if len(keys) == 1:
        return str(keys[0])
    return f"{keys[0]}...{keys[-1]}"


def _align_annotation(
    keys: pd.Index,
    annotation: Optional[pd.DataFrame],
    axis: str,
    mismatch_error: type,
) -> pd.DataFrame:
    """Return ``annotation`` aligned to ``keys`` or raise the axis-specific error."""
    if annotation is None:
        return pd.DataFrame(index=keys.copy())
    if not isinstance(annotation, pd.DataFrame):
        raise TypeError(f"{axis}_annotation must be pd.DataFrame, got {type(annotation)}")

    verdict = alignment.check_identical(keys, annotation.index)

    if verdict.status is AlignmentStatus.IDENTICAL:
        aligned = annotation
    elif verdict.status is AlignmentStatus.SAME_SET_DIFFERENT_ORDER:
        logger.debug(
            f"{axis.capitalize()} annotation order differs from assay; "
            f"reordering {len(annotation):,} records"
        )
        aligned = alignment.reorder(annotation, keys, axis=axis)
    elif verdict.duplicates_in_b:
        raise DuplicateKey(f"{axis} annotation", verdict.duplicates_in_b)
    else:
        raise mismatch_error(missing=verdict.only_in_a, extra=verdict.only_in_b)

    # Equal values can differ in dtype (1 vs 1.0): index the annotation by the
    # assay keys themselves. An index that is not equal is left for the
    # constructor to reject.
    if aligned.index.equals(keys):
        aligned = aligned.set_axis(keys, axis=0)
    return aligned
