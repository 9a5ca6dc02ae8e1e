"""
I/O module for loading, exporting and snapshotting linked experiments.

Key Functions:
    - load_table / load_assay: Delimited tables into key-indexed DataFrames
    - load_experiment: Three files into a validated LinkedExperiment
    - write_csv_experiment: Export the three aligned tables as CSV
    - save / load: Deterministic, validated binary snapshots

Design Philosophy:
    - Structural problems in input files are reported with their source
    - Loading never reconciles keys; alignment belongs to the container
    - Snapshots are re-validated on load and never use pickle

Examples:
    >>> from linkedexp.io import load_experiment, save, load
    >>>
    >>> exp = load_experiment("counts.tsv", "genes.tsv", "samples.csv")
    >>> save(exp, "experiment.lexp")
    >>> assert load("experiment.lexp").equals(exp)
"""

from linkedexp.io.formats import PRESETS, TableFormat, get_format
from linkedexp.io.loaders import load_assay, load_experiment, load_table
from linkedexp.io.persistence import deserialize, load, save, serialize
from linkedexp.io.writers import write_annotation, write_csv_experiment

__all__ = [
    'TableFormat',
    'PRESETS',
    'get_format',
    'load_table',
    'load_assay',
    'load_experiment',
    'write_csv_experiment',
    'write_annotation',
    'serialize',
    'deserialize',
    'save',
    'load',
]
