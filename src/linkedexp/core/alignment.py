"""
Key alignment between tables that share a key domain along one axis.

Row counts matching is not evidence that two tables describe the same
features or samples. This module proves per-key identity, including order,
and returns the result as a value (``AlignmentVerdict``) so callers decide
explicitly what to do with each outcome:

    IDENTICAL                 -> use as-is
    SAME_SET_DIFFERENT_ORDER  -> permute (the only auto-correctable case)
    MISMATCHED                -> halt; report missing/extra/duplicate keys

Examples:
    >>> from linkedexp.core.alignment import check_identical, reorder
    >>> verdict = check_identical(['g1', 'g2', 'g3'], ['g3', 'g1', 'g2'])
    >>> verdict.status
    <AlignmentStatus.SAME_SET_DIFFERENT_ORDER: 2>
    >>> verdict.permutation
    array([1, 2, 0])
    >>>
    >>> genes = reorder(genes, ['g1', 'g2', 'g3'])
    >>> list(genes.index)
    ['g1', 'g2', 'g3']
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Iterable, Optional

import numpy as np
import pandas as pd

from linkedexp.core.errors import DuplicateKeyMismatch, KeySetMismatch

__all__ = [
    'AlignmentStatus',
    'AlignmentVerdict',
    'as_key_index',
    'detached_copy',
    'find_duplicates',
    'check_identical',
    'reorder',
]

logger = logging.getLogger(__name__)


class AlignmentStatus(Enum):
    """Outcome of comparing two key sequences."""
    IDENTICAL = auto()
    SAME_SET_DIFFERENT_ORDER = auto()
    MISMATCHED = auto()


@dataclass(frozen=True)
class AlignmentVerdict:
    """
    Result of ``check_identical(seq_a, seq_b)``.

    Attributes:
        status: Three-way outcome
        permutation: For SAME_SET_DIFFERENT_ORDER, integer positions into
            ``seq_b`` such that ``seq_b[permutation] == seq_a``. None otherwise.
        only_in_a: Keys of ``seq_a`` absent from ``seq_b`` (first-seen order)
        only_in_b: Keys of ``seq_b`` absent from ``seq_a`` (first-seen order)
        duplicates_in_a: Keys repeated within ``seq_a``
        duplicates_in_b: Keys repeated within ``seq_b``
    """
    status: AlignmentStatus
    permutation: Optional[np.ndarray] = field(default=None, compare=False)
    only_in_a: tuple = ()
    only_in_b: tuple = ()
    duplicates_in_a: tuple = ()
    duplicates_in_b: tuple = ()

    @property
    def is_identical(self) -> bool:
        return self.status is AlignmentStatus.IDENTICAL

    @property
    def is_reorderable(self) -> bool:
        """True when the sequences can be made identical by permutation alone."""
        return self.status is not AlignmentStatus.MISMATCHED

    @property
    def symmetric_difference(self) -> tuple:
        """Keys present in exactly one of the two sequences."""
        return self.only_in_a + self.only_in_b


def as_key_index(keys: Iterable[Any]) -> pd.Index:
    """Coerce a key sequence into a ``pd.Index`` without reinterpreting values."""
    if isinstance(keys, pd.Index):
        return keys
    if isinstance(keys, (pd.Series, np.ndarray)):
        return pd.Index(keys)
    return pd.Index(list(keys))


def detached_copy(table: pd.DataFrame) -> pd.DataFrame:
    """
    Deep copy of a table that shares no storage with the original.

    ``DataFrame.copy(deep=True)`` copies the values but keeps the index
    objects, so a write through ``copy.index.values`` would reach the
    original's keys.
    """
    copy = table.copy(deep=True)
    copy.index = table.index.copy(deep=True)
    copy.columns = table.columns.copy(deep=True)
    return copy


def find_duplicates(keys: Iterable[Any]) -> tuple:
    """
    Return keys that occur more than once, in first-seen order.

    Examples:
        >>> find_duplicates(['g1', 'g1', 'g2'])
        ('g1',)
        >>> find_duplicates(['g1', 'g2'])
        ()
    """
    index = as_key_index(keys)
    if index.is_unique:
        return ()
    return tuple(index[index.duplicated()].unique().tolist())


def check_identical(seq_a: Iterable[Any], seq_b: Iterable[Any]) -> AlignmentVerdict:
    """
    Compare two key sequences for exact, order-only, or set-level agreement.

    Pure function: inputs are not modified.

    Args:
        seq_a: Reference key sequence (e.g. assay row keys)
        seq_b: Key sequence to compare (e.g. row annotation index)

    Returns:
        AlignmentVerdict. Duplicates on either side always produce MISMATCHED,
        since a repeated key cannot be placed unambiguously.

    Examples:
        >>> check_identical(['s1', 's2'], ['s1', 's2']).is_identical
        True
        >>> v = check_identical(['s1', 's2'], ['s1', 's3'])
        >>> v.status, v.only_in_a, v.only_in_b
        (<AlignmentStatus.MISMATCHED: 3>, ('s2',), ('s3',))
    """
    a = as_key_index(seq_a)
    b = as_key_index(seq_b)

    duplicates_a = find_duplicates(a)
    duplicates_b = find_duplicates(b)
    only_a = tuple(a.difference(b, sort=False).tolist())
    only_b = tuple(b.difference(a, sort=False).tolist())

    if duplicates_a or duplicates_b or only_a or only_b or len(a) != len(b):
        return AlignmentVerdict(
            status=AlignmentStatus.MISMATCHED,
            only_in_a=only_a,
            only_in_b=only_b,
            duplicates_in_a=duplicates_a,
            duplicates_in_b=duplicates_b,
        )

    if a.equals(b):
        return AlignmentVerdict(status=AlignmentStatus.IDENTICAL)

    permutation = b.get_indexer(a)
    return AlignmentVerdict(
        status=AlignmentStatus.SAME_SET_DIFFERENT_ORDER,
        permutation=permutation,
    )


def reorder(
    table: pd.DataFrame,
    target_keys: Iterable[Any],
    axis: str = 'row',
) -> pd.DataFrame:
    """
    Permute a table's records so its index equals ``target_keys`` exactly.

    Never drops or duplicates records: the target must be a permutation of the
    table's current keys.

    Args:
        table: DataFrame indexed by key
        target_keys: Desired key order
        axis: Axis label used in error messages

    Returns:
        New DataFrame (the input is not modified)

    Raises:
        KeySetMismatch: If the key sets differ or either side repeats a key.
            Repeats raise the subclass DuplicateKeyMismatch (also a
            DuplicateKey). ``missing`` holds target keys the table lacks,
            ``extra`` holds table keys the target lacks.

    Examples:
        >>> genes = pd.DataFrame({'type': ['ncRNA', 'mRNA']}, index=['GeneB', 'GeneA'])
        >>> reorder(genes, ['GeneA', 'GeneB'])['type'].tolist()
        ['mRNA', 'ncRNA']
    """
    target = as_key_index(target_keys)
    verdict = check_identical(target, table.index)

    if verdict.status is AlignmentStatus.IDENTICAL:
        return table.copy()

    if verdict.status is AlignmentStatus.SAME_SET_DIFFERENT_ORDER:
        logger.debug(f"Reordering {len(table)} {axis} records to match target order")
        return table.iloc[verdict.permutation].copy()

    if verdict.duplicates_in_b:
        raise DuplicateKeyMismatch(
            f"{axis} annotation", verdict.duplicates_in_b,
            missing=verdict.only_in_a, extra=verdict.only_in_b,
        )
    if verdict.duplicates_in_a:
        raise DuplicateKeyMismatch(
            axis, verdict.duplicates_in_a,
            missing=verdict.only_in_a, extra=verdict.only_in_b,
        )
    raise KeySetMismatch(axis, missing=verdict.only_in_a, extra=verdict.only_in_b)
