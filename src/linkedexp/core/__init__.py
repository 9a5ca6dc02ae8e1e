"""
Core data structures for linked expression experiments.

This module provides the foundational types the rest of the package builds on:

1. LinkedExperiment: assay matrix bound to row and column annotations
2. Key alignment: three-way verdicts and safe permutation of annotation tables
3. Selectors: predicates, masks and key lists for alignment-preserving subsets
4. Genomic ranges: validated range-aware conversion of row annotations
5. Errors: structured, inspectable failures for every alignment problem

Design Philosophy:
    - Immutability: All operations return new instances (functional style)
    - Proof over proxies: keys are compared one by one, never by count
    - Explicit outcomes: alignment results are values, not console output

Examples:
    >>> from linkedexp.core import LinkedExperiment, check_identical
    >>>
    >>> verdict = check_identical(counts.index, genes.index)
    >>> exp = LinkedExperiment.build(counts, genes, samples)
"""

from linkedexp.core.alignment import (
    AlignmentStatus,
    AlignmentVerdict,
    check_identical,
    find_duplicates,
    reorder,
)
from linkedexp.core.errors import (
    ColumnAlignmentError,
    DuplicateKey,
    DuplicateKeyMismatch,
    InvariantViolation,
    KeySetMismatch,
    LinkedExperimentError,
    MalformedInput,
    PersistenceError,
    RowAlignmentError,
    UnknownKey,
)
from linkedexp.core.experiment import LinkedExperiment
from linkedexp.core.ranges import RangeColumns, as_genomic_ranges, overlaps
from linkedexp.core.selection import records

__all__ = [
    'LinkedExperiment',
    'AlignmentStatus',
    'AlignmentVerdict',
    'check_identical',
    'find_duplicates',
    'reorder',
    'records',
    'RangeColumns',
    'as_genomic_ranges',
    'overlaps',
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
]
