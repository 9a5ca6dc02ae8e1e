"""
CSV export for LinkedExperiment.

Writes the three aligned tables as plain CSV for R, Excel and downstream tools.

Engineering Design:
    - Three-file output: .assay.csv, .rows.csv and .columns.csv
    - Keys are the first column of every file, so each file can be reloaded
      with the default formats (key in the first column)
    - Files are written in container order; reloading and building reproduces
      the same alignment without any reordering
    - Each file is replaced atomically

Examples:
    >>> from linkedexp.io.writers import write_csv_experiment
    >>>
    >>> write_csv_experiment(exp, "results/filtered")
    [PosixPath('results/filtered.assay.csv'),
     PosixPath('results/filtered.rows.csv'),
     PosixPath('results/filtered.columns.csv')]
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import pandas as pd

from linkedexp.core.experiment import LinkedExperiment
from linkedexp.utils.fileio import atomic_write_text

__all__ = ['write_csv_experiment', 'write_annotation']

logger = logging.getLogger(__name__)


def _write_frame(frame: pd.DataFrame, path: Path, what: str) -> Path:
    try:
        atomic_write_text(path, frame.to_csv())
    except OSError as e:
        raise OSError(f"Failed to write {what} file {path}: {e}") from e
    logger.info(f"Wrote {what} to {path}")
    return path


def write_csv_experiment(experiment: LinkedExperiment, prefix: Union[str, Path]) -> list[Path]:
    """
    Write a LinkedExperiment to three CSV files.

    Output Files:
    1. {prefix}.assay.csv   - first column row keys, one column per sample
    2. {prefix}.rows.csv    - first column row keys, then row attributes
    3. {prefix}.columns.csv - first column column keys, then column attributes

    Args:
        experiment: Container to export
        prefix: Base path (without extension). Parent directories are created.

    Returns:
        Paths of the written files, in the order above

    Raises:
        TypeError: If experiment is not a LinkedExperiment
        OSError: If a file cannot be written

    Notes:
        - Degenerate containers (zero rows or zero columns) are written too;
          the files then hold only a header line
        - Overwrites existing files
    """
    if not isinstance(experiment, LinkedExperiment):
        raise TypeError(f"experiment must be LinkedExperiment, got {type(experiment)}")

    prefix = Path(prefix)
    if prefix.parent != Path('.') and not prefix.parent.exists():
        prefix.parent.mkdir(parents=True, exist_ok=True)

    return [
        _write_frame(experiment.assay_frame(), Path(f"{prefix}.assay.csv"), "assay"),
        _write_frame(experiment.row_annotation, Path(f"{prefix}.rows.csv"), "row annotation"),
        _write_frame(
            experiment.column_annotation, Path(f"{prefix}.columns.csv"), "column annotation"
        ),
    ]


def write_annotation(experiment: LinkedExperiment, path: Union[str, Path], axis: str = 'column') -> Path:
    """
    Write one annotation table to ``path`` with keys as the first column.

    Useful for handing a sample sheet to plotting code without the assay.

    Args:
        experiment: Source container
        path: Output file (used exactly as provided)
        axis: 'row' or 'column'

    Raises:
        ValueError: If axis is not 'row' or 'column'
    """
    if axis not in ('row', 'column'):
        raise ValueError(f"axis must be 'row' or 'column', got {axis!r}")

    path = Path(path)
    if path.parent != Path('.') and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)

    frame = experiment.row_annotation if axis == 'row' else experiment.column_annotation
    return _write_frame(frame, path, f"{axis} annotation")
