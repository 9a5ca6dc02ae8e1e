"""
linkedexp - Alignment-safe containers for gene-expression experiments

Loads a count matrix, gene annotations and sample metadata, proves their keys
line up, and binds them into one container that stays aligned through
subsetting and on-disk snapshots.
"""

__version__ = "0.1.0"

from linkedexp.core.experiment import LinkedExperiment
from linkedexp.core.alignment import check_identical, reorder
from linkedexp.core.errors import LinkedExperimentError

__all__ = [
    "LinkedExperiment",
    "check_identical",
    "reorder",
    "LinkedExperimentError",
]
