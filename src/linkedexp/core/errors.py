"""
Error taxonomy for linked experiment construction, subsetting and persistence.

Every error raised by this package derives from ``LinkedExperimentError`` so
callers (and the CLI) can catch the whole family at one seam. Errors carry
the offending axis and keys as attributes, so a failed build can be fixed
upstream without re-deriving the key diff by hand.

Hierarchy:
    LinkedExperimentError
    ├── MalformedInput          (also ValueError) - table loader failures
    ├── DuplicateKey            (also ValueError) - repeated key on an axis
    ├── KeySetMismatch          (also ValueError) - key sets differ
    │   ├── DuplicateKeyMismatch (also DuplicateKey) - reorder saw a repeat
    │   ├── RowAlignmentError
    │   └── ColumnAlignmentError
    ├── UnknownKey              (also KeyError)   - selector names absent key
    ├── InvariantViolation      (also RuntimeError) - internal logic fault
    └── PersistenceError                          - unreadable/invalid snapshot

Examples:
    >>> from linkedexp.core.errors import ColumnAlignmentError
    >>> try:
    ...     LinkedExperiment.build(assay, genes, samples)
    ... except ColumnAlignmentError as e:
    ...     print(e.missing, e.extra)
    ('s2',) ('s3',)
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

__all__ = [
    'LinkedExperimentError',
    'MalformedInput',
    'DuplicateKey',
    'KeySetMismatch',
    'DuplicateKeyMismatch',
    'RowAlignmentError',
    'ColumnAlignmentError',
    'UnknownKey',
    'InvariantViolation',
    'PersistenceError',
    'format_keys',
]

# Keys listed in error messages before truncating
_MAX_KEYS_SHOWN = 10


def format_keys(keys: Iterable[Any], limit: int = _MAX_KEYS_SHOWN) -> str:
    """
    Render a key collection for an error message.

    Args:
        keys: Keys to render (order preserved)
        limit: Maximum number of keys printed before summarizing the rest

    Returns:
        String like "['g1', 'g2'] (+3 more)"

    Examples:
        >>> format_keys(['g1', 'g2'])
        "['g1', 'g2']"
        >>> format_keys([f"g{i}" for i in range(12)], limit=2)
        "['g0', 'g1'] (+10 more)"
    """
    keys = list(keys)
    shown = repr(keys[:limit])
    if len(keys) > limit:
        shown += f" (+{len(keys) - limit} more)"
    return shown


class LinkedExperimentError(Exception):
    """Base class for all linkedexp errors."""


class MalformedInput(LinkedExperimentError, ValueError):
    """
    Input table could not be read into a well-formed table or matrix.

    Raised for ragged rows, failed type coercion, missing key values, empty
    input, or a non-numeric assay.

    Attributes:
        source: Description of the offending input (path or "<bytes>"), if known
    """

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        if source is not None:
            message = f"{source}: {message}"
        super().__init__(message)


class DuplicateKey(LinkedExperimentError, ValueError):
    """
    An axis contains a repeated key, so it cannot be aligned.

    Attributes:
        axis: Axis label (e.g. "row", "column", "row annotation")
        keys: The duplicated keys, in first-seen order
    """

    def __init__(self, axis: str, keys: Iterable[Any]):
        self.axis = axis
        self.keys = tuple(keys)
        super().__init__(
            f"duplicate {axis} keys: {format_keys(self.keys)}"
        )


class KeySetMismatch(LinkedExperimentError, ValueError):
    """
    Two key sequences that must hold the same keys do not.

    ``missing`` are keys the reference (target/assay) axis has and the table
    lacks; ``extra`` are keys the table has and the reference lacks.

    Attributes:
        axis: Axis label
        missing: Keys in the reference but not in the table
        extra: Keys in the table but not in the reference
    """

    def __init__(
        self,
        axis: str,
        missing: Iterable[Any] = (),
        extra: Iterable[Any] = (),
    ):
        self.axis = axis
        self.missing = tuple(missing)
        self.extra = tuple(extra)
        parts = []
        if self.missing:
            parts.append(f"missing {len(self.missing)}: {format_keys(self.missing)}")
        if self.extra:
            parts.append(f"extra {len(self.extra)}: {format_keys(self.extra)}")
        super().__init__(
            f"{axis} keys do not match ({'; '.join(parts) or 'order only'})"
        )


class DuplicateKeyMismatch(DuplicateKey, KeySetMismatch):
    """
    A key sequence that must be a permutation of another repeats a key.

    Raised by ``reorder``: catchable both as ``DuplicateKey`` and as
    ``KeySetMismatch``.

    Attributes:
        axis: Axis label
        keys: The duplicated keys, in first-seen order (alias: ``duplicates``)
        missing: Target keys the table lacks
        extra: Table keys the target lacks
    """

    def __init__(
        self,
        axis: str,
        keys: Iterable[Any],
        missing: Iterable[Any] = (),
        extra: Iterable[Any] = (),
    ):
        self.axis = axis
        self.keys = tuple(keys)
        self.missing = tuple(missing)
        self.extra = tuple(extra)
        LinkedExperimentError.__init__(
            self, f"duplicate {axis} keys: {format_keys(self.keys)}"
        )

    @property
    def duplicates(self) -> tuple:
        return self.keys


class RowAlignmentError(KeySetMismatch):
    """Assay row keys and row annotation keys are different sets."""

    def __init__(self, missing: Iterable[Any] = (), extra: Iterable[Any] = ()):
        super().__init__('row', missing=missing, extra=extra)


class ColumnAlignmentError(KeySetMismatch):
    """Assay column keys and column annotation keys are different sets."""

    def __init__(self, missing: Iterable[Any] = (), extra: Iterable[Any] = ()):
        super().__init__('column', missing=missing, extra=extra)


class UnknownKey(LinkedExperimentError, KeyError):
    """
    A selector references keys the container does not have.

    Attributes:
        axis: Axis label
        keys: The unknown keys, in request order
    """

    def __init__(self, axis: str, keys: Iterable[Any]):
        self.axis = axis
        self.keys = tuple(keys)
        super().__init__(f"unknown {axis} keys: {format_keys(self.keys)}")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])


class InvariantViolation(LinkedExperimentError, RuntimeError):
    """
    Post-alignment verification failed.

    Indicates a logic fault (e.g. the aligner returned a permutation that does
    not reproduce the target order), never a user input error.
    """


class PersistenceError(LinkedExperimentError):
    """Snapshot could not be written, read, or failed post-load validation."""
