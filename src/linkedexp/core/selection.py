"""
Selector resolution for alignment-preserving subsetting.

A selector names which records of one axis to keep. Every selector form is
resolved to integer positions against the container's key Index *before* any
slicing happens, so a bad selector fails the call without touching data.

Accepted selectors:
    None                      -> keep everything, original order
    slice                     -> positional slice (e.g. slice(0, 100))
    callable(annotation)      -> must return a boolean mask over the records;
                                 use ``records(fn)`` for per-record predicates
    boolean np.ndarray / list -> positional mask of the axis length
    boolean pd.Series         -> mask aligned by key (index must be a
                                 permutation of the axis keys)
    sequence of keys          -> explicit keys, result follows the given order

Examples:
    >>> # Vectorized predicate over the annotation frame
    >>> exp.subset_rows(lambda genes: genes['type'] == 'mRNA')
    >>>
    >>> # Per-record predicate
    >>> exp.subset_rows(records(lambda gene: gene['end'] - gene['start'] > 1000))
    >>>
    >>> # Explicit key order
    >>> exp.subset_columns(['S2', 'S1'])
"""

from __future__ import annotations

from typing import Any, Callable, Union

import numpy as np
import pandas as pd
from pandas.api.types import is_bool_dtype

from linkedexp.core.alignment import (
    AlignmentStatus,
    as_key_index,
    check_identical,
    detached_copy,
    find_duplicates,
)
from linkedexp.core.errors import DuplicateKey, KeySetMismatch, UnknownKey

__all__ = ['Selector', 'records', 'resolve_selector']

Selector = Union[
    None,
    slice,
    Callable[[pd.DataFrame], Any],
    np.ndarray,
    pd.Series,
    pd.Index,
    list,
    tuple,
]


def records(predicate: Callable[[pd.Series], bool]) -> Callable[[pd.DataFrame], pd.Series]:
    """
    Wrap a per-record predicate as a selector.

    Args:
        predicate: Called once per annotation record (a Series named by key)

    Returns:
        Selector callable producing a key-indexed boolean Series

    Examples:
        >>> coding = records(lambda gene: gene['type'] == 'mRNA')
        >>> exp.subset_rows(coding)
    """
    def selector(annotation: pd.DataFrame) -> pd.Series:
        flags = [bool(predicate(record)) for _, record in annotation.iterrows()]
        return pd.Series(flags, index=annotation.index, dtype=bool)

    selector.__name__ = getattr(predicate, '__name__', 'records')
    return selector


def _is_boolean_list(selector: Any) -> bool:
    return (
        isinstance(selector, (list, tuple))
        and len(selector) > 0
        and all(isinstance(v, (bool, np.bool_)) for v in selector)
    )


def _mask_positions(mask: Any, keys: pd.Index, axis: str) -> np.ndarray:
    """Convert a boolean mask (positional array or key-indexed Series) to positions."""
    if isinstance(mask, pd.Series):
        if not is_bool_dtype(mask.dtype):
            raise TypeError(f"{axis} mask must be boolean, got dtype {mask.dtype}")
        verdict = check_identical(keys, mask.index)
        if verdict.status is AlignmentStatus.SAME_SET_DIFFERENT_ORDER:
            mask = mask.iloc[verdict.permutation]
        elif verdict.status is AlignmentStatus.MISMATCHED:
            raise KeySetMismatch(
                f"{axis} mask", missing=verdict.only_in_a, extra=verdict.only_in_b
            )
        # Missing (NA) comparisons select nothing
        values = mask.fillna(False).to_numpy(dtype=bool)
    else:
        values = np.asarray(mask)
        if values.dtype != bool:
            raise TypeError(f"{axis} mask must be boolean, got dtype {values.dtype}")

    if values.ndim != 1:
        raise ValueError(f"{axis} mask must be 1D, got shape {values.shape}")
    if len(values) != len(keys):
        raise ValueError(
            f"{axis} mask length ({len(values)}) must match number of {axis}s ({len(keys)})"
        )
    return np.flatnonzero(values)


def _key_positions(selector: Any, keys: pd.Index, axis: str) -> np.ndarray:
    requested = as_key_index(selector)

    duplicates = find_duplicates(requested)
    if duplicates:
        raise DuplicateKey(f"requested {axis}", duplicates)

    positions = keys.get_indexer(requested)
    unknown = requested[positions < 0]
    if len(unknown):
        raise UnknownKey(axis, unknown.tolist())
    return positions.astype(np.intp)


def resolve_selector(
    selector: Selector,
    keys: pd.Index,
    annotation: pd.DataFrame,
    axis: str,
) -> np.ndarray:
    """
    Resolve a selector to integer positions along one axis.

    Args:
        selector: Any accepted selector form (see module docstring)
        keys: The axis keys (unique, in container order)
        annotation: The axis annotation frame (aligned with ``keys``)
        axis: "row" or "column", used in error messages

    Returns:
        1D array of positions. Masks and predicates keep container order;
        key sequences keep request order.

    Raises:
        DuplicateKey: Key sequence repeats a key
        UnknownKey: Key sequence names keys not on this axis
        KeySetMismatch: Boolean Series indexed by a different key set
        TypeError: Unsupported selector or non-boolean predicate output
        ValueError: Mask of the wrong length or dimensionality
    """
    n = len(keys)

    if selector is None:
        return np.arange(n)

    if isinstance(selector, slice):
        return np.arange(n)[selector]

    if callable(selector):
        # Predicates see a copy so they cannot mutate the container's frame
        mask = selector(detached_copy(annotation))
        return _mask_positions(mask, keys, axis)

    if isinstance(selector, (str, bytes)):
        raise TypeError(
            f"{axis} selector must be a sequence of keys, not a single string; "
            f"use [{selector!r}]"
        )

    if isinstance(selector, pd.Series) and is_bool_dtype(selector.dtype):
        return _mask_positions(selector, keys, axis)

    if isinstance(selector, np.ndarray) and selector.dtype == bool:
        return _mask_positions(selector, keys, axis)

    if _is_boolean_list(selector):
        return _mask_positions(np.asarray(selector, dtype=bool), keys, axis)

    if isinstance(selector, (list, tuple, pd.Index, pd.Series, np.ndarray, range)):
        return _key_positions(selector, keys, axis)

    raise TypeError(f"Unsupported {axis} selector type: {type(selector).__name__}")
