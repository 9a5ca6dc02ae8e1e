"""
Snapshot persistence for LinkedExperiment.

``serialize`` turns a container into bytes and ``deserialize`` turns them back
into a container that has been re-validated. A snapshot is never trusted
blindly: it may be truncated, tampered with, or written by an incompatible
version of this package.

Snapshot layout (a ZIP archive with fixed timestamps, so identical containers
produce identical bytes):

    manifest.json                 format name/version, shapes, dtypes,
                                  annotation schemas, SHA-256 of every entry,
                                  and JSON-encoded text/object columns
    assay.npy                     the matrix, bit-exact with its dtype
    row_keys.npy, ...             key indexes stored as arrays when numeric
    row_annotation/3.npy, ...     numeric/bool/datetime annotation columns

Object and pandas extension columns (text, nullable integers, string dtype)
are stored as JSON lists in the manifest, categoricals as categories plus
codes. Pickle is never written or read.

Examples:
    >>> from linkedexp.io.persistence import save, load
    >>>
    >>> save(exp, "experiment.lexp")
    >>> restored = load("experiment.lexp")
    >>> assert restored.equals(exp)
"""

from __future__ import annotations

import hashlib
import io
import json
import logging
import zipfile
import zlib
from pathlib import Path
from typing import Any, Union

import numpy as np
import pandas as pd

from linkedexp.core.errors import LinkedExperimentError, PersistenceError
from linkedexp.core.experiment import LinkedExperiment
from linkedexp.utils.fileio import atomic_write_bytes

__all__ = [
    'FORMAT_NAME',
    'FORMAT_VERSION',
    'serialize',
    'deserialize',
    'save',
    'load',
]

logger = logging.getLogger(__name__)

FORMAT_NAME = "linkedexp-snapshot"
FORMAT_VERSION = 1

_MANIFEST = "manifest.json"
# Earliest timestamp ZIP can represent; fixed so output is deterministic
_ZIP_DATE = (1980, 1, 1, 0, 0, 0)


# =============================================================================
# Encoding
# =============================================================================

class _ArchiveWriter:
    """Collects named binary entries in insertion order."""

    def __init__(self) -> None:
        self.entries: dict[str, bytes] = {}

    def add_array(self, name: str, array: np.ndarray) -> str:
        buffer = io.BytesIO()
        np.lib.format.write_array(buffer, np.ascontiguousarray(array), allow_pickle=False)
        self.entries[name] = buffer.getvalue()
        return name

    def digests(self) -> dict[str, str]:
        return {name: hashlib.sha256(data).hexdigest() for name, data in self.entries.items()}

    def to_bytes(self, manifest: dict[str, Any]) -> bytes:
        manifest_bytes = json.dumps(manifest, sort_keys=True, separators=(',', ':')).encode('utf-8')
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w') as archive:
            for name, data in [(_MANIFEST, manifest_bytes), *self.entries.items()]:
                info = zipfile.ZipInfo(name, date_time=_ZIP_DATE)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o644 << 16
                archive.writestr(info, data)
        return buffer.getvalue()


def _json_scalar(value: Any, where: str) -> Any:
    """Convert a cell value to a JSON-native scalar, or fail."""
    if value is None or value is pd.NA:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, (str, bool, int, float)):
        return value
    raise PersistenceError(
        f"{where}: value {value!r} of type {type(value).__name__} cannot be stored"
    )


def _encode_values(values: Union[pd.Series, pd.Index], entry: str, writer: _ArchiveWriter) -> dict:
    """Encode one column or index, returning its manifest spec."""
    dtype = values.dtype

    if isinstance(dtype, pd.CategoricalDtype):
        codes = values.codes if isinstance(values, pd.Index) else values.cat.codes.to_numpy()
        return {
            'kind': 'categorical',
            'ordered': bool(dtype.ordered),
            'categories': _encode_values(pd.Index(dtype.categories), f"{entry}.categories", writer),
            'codes': writer.add_array(f"{entry}.codes.npy", np.asarray(codes)),
        }

    if isinstance(dtype, np.dtype) and dtype.kind != 'O':
        return {'kind': 'array', 'entry': writer.add_array(f"{entry}.npy", values.to_numpy())}

    return {
        'kind': 'object' if dtype == object else 'extension',
        'dtype': str(dtype),
        'values': [_json_scalar(v, entry) for v in values.tolist()],
    }


def _encode_index(index: pd.Index, entry: str, writer: _ArchiveWriter) -> dict:
    if isinstance(index, pd.MultiIndex):
        raise PersistenceError(f"{entry}: MultiIndex cannot be stored")
    spec = _encode_values(index, entry, writer)
    spec['name'] = _json_scalar(index.name, f"{entry} name")
    return spec


def _encode_frame(frame: pd.DataFrame, entry: str, writer: _ArchiveWriter) -> dict:
    return {
        'index': _encode_index(frame.index, f"{entry}/index", writer),
        'columns': _encode_index(frame.columns, f"{entry}/columns", writer),
        'data': [
            _encode_values(frame.iloc[:, i], f"{entry}/{i}", writer)
            for i in range(frame.shape[1])
        ],
    }


def serialize(experiment: LinkedExperiment) -> bytes:
    """
    Encode a LinkedExperiment as a deterministic snapshot.

    Args:
        experiment: Container to encode

    Returns:
        Snapshot bytes. The same container always yields the same bytes.

    Raises:
        TypeError: If ``experiment`` is not a LinkedExperiment
        PersistenceError: If an annotation holds values that cannot be stored
            (e.g. arbitrary Python objects in an object column, MultiIndex)
    """
    if not isinstance(experiment, LinkedExperiment):
        raise TypeError(f"experiment must be LinkedExperiment, got {type(experiment)}")

    writer = _ArchiveWriter()
    assay = experiment.assay
    manifest: dict[str, Any] = {
        'format': FORMAT_NAME,
        'version': FORMAT_VERSION,
        'assay': {
            'entry': writer.add_array('assay.npy', assay),
            'shape': list(assay.shape),
            'dtype': assay.dtype.str,
        },
        'row_keys': _encode_index(experiment.row_keys, 'row_keys', writer),
        'column_keys': _encode_index(experiment.column_keys, 'column_keys', writer),
        'row_annotation': _encode_frame(experiment.row_annotation, 'row_annotation', writer),
        'column_annotation': _encode_frame(
            experiment.column_annotation, 'column_annotation', writer
        ),
    }
    manifest['digests'] = writer.digests()
    return writer.to_bytes(manifest)


# =============================================================================
# Decoding
# =============================================================================

class _ArchiveReader:
    """Reads entries from an open snapshot, checking each against its digest."""

    def __init__(self, archive: zipfile.ZipFile, digests: dict[str, str]) -> None:
        self.archive = archive
        self.digests = digests

    def array(self, name: str) -> np.ndarray:
        if name not in self.digests:
            raise PersistenceError(f"entry '{name}' has no recorded digest")
        data = self.archive.read(name)
        if hashlib.sha256(data).hexdigest() != self.digests[name]:
            raise PersistenceError(f"entry '{name}' failed digest verification")
        return np.lib.format.read_array(io.BytesIO(data), allow_pickle=False)


def _decode_values(spec: dict, reader: _ArchiveReader) -> Any:
    """Decode a column/index spec into an array-like."""
    kind = spec['kind']
    if kind == 'array':
        return reader.array(spec['entry'])
    if kind == 'object':
        values = np.empty(len(spec['values']), dtype=object)
        values[:] = spec['values']
        return values
    if kind == 'extension':
        return pd.array(spec['values'], dtype=pd.api.types.pandas_dtype(spec['dtype']))
    if kind == 'categorical':
        categories = _decode_index(spec['categories'], reader)
        return pd.Categorical.from_codes(
            reader.array(spec['codes']), categories=categories, ordered=spec['ordered']
        )
    raise PersistenceError(f"unknown column encoding '{kind}'")


def _decode_index(spec: dict, reader: _ArchiveReader) -> pd.Index:
    values = _decode_values(spec, reader)
    dtype = object if spec['kind'] == 'object' else None
    return pd.Index(values, dtype=dtype, name=spec.get('name'))


def _decode_frame(spec: dict, reader: _ArchiveReader) -> pd.DataFrame:
    index = _decode_index(spec['index'], reader)
    columns = _decode_index(spec['columns'], reader)
    if len(columns) != len(spec['data']):
        raise PersistenceError(
            f"annotation declares {len(columns)} columns but stores {len(spec['data'])}"
        )

    series = {}
    for position, column_spec in enumerate(spec['data']):
        dtype = object if column_spec['kind'] == 'object' else None
        series[position] = pd.Series(
            _decode_values(column_spec, reader), index=index, dtype=dtype
        )

    frame = pd.DataFrame(series, index=index)
    frame.columns = columns
    return frame


def deserialize(blob: bytes) -> LinkedExperiment:
    """
    Decode a snapshot and re-validate it.

    Args:
        blob: Bytes produced by ``serialize``

    Returns:
        LinkedExperiment equal to the serialized one

    Raises:
        PersistenceError: Not a snapshot, wrong format name or version,
            corrupted or tampered entries, or decoded parts that violate the
            container invariants
    """
    if not isinstance(blob, (bytes, bytearray, memoryview)):
        raise TypeError(f"blob must be bytes, got {type(blob)}")

    try:
        archive = zipfile.ZipFile(io.BytesIO(bytes(blob)))
    except zipfile.BadZipFile as e:
        raise PersistenceError("not a linkedexp snapshot (not a ZIP archive)") from e

    with archive:
        try:
            manifest = json.loads(archive.read(_MANIFEST).decode('utf-8'))
        except KeyError as e:
            raise PersistenceError("not a linkedexp snapshot (no manifest)") from e
        except (zipfile.BadZipFile, zlib.error, EOFError, ValueError) as e:
            raise PersistenceError(f"unreadable snapshot manifest: {e}") from e

        if not isinstance(manifest, dict) or manifest.get('format') != FORMAT_NAME:
            raise PersistenceError("not a linkedexp snapshot (unknown format)")
        if manifest.get('version') != FORMAT_VERSION:
            raise PersistenceError(
                f"unsupported snapshot version {manifest.get('version')!r} "
                f"(this release reads version {FORMAT_VERSION})"
            )

        reader = _ArchiveReader(archive, manifest.get('digests', {}))
        try:
            data = reader.array(manifest['assay']['entry'])
            if list(data.shape) != manifest['assay']['shape'] or data.dtype.str != manifest['assay']['dtype']:
                raise PersistenceError(
                    f"assay entry has shape {data.shape} and dtype {data.dtype.str}; "
                    f"manifest declares {manifest['assay']['shape']} and {manifest['assay']['dtype']}"
                )
            experiment = LinkedExperiment(
                data,
                _decode_index(manifest['row_keys'], reader),
                _decode_index(manifest['column_keys'], reader),
                _decode_frame(manifest['row_annotation'], reader),
                _decode_frame(manifest['column_annotation'], reader),
            )
        except PersistenceError:
            raise
        except LinkedExperimentError as e:
            raise PersistenceError(f"snapshot failed validation: {e}") from e
        except (KeyError, ValueError, TypeError, zipfile.BadZipFile, zlib.error, EOFError) as e:
            raise PersistenceError(f"corrupt snapshot: {e}") from e

    return experiment


# =============================================================================
# File helpers
# =============================================================================

def save(experiment: LinkedExperiment, path: Union[str, Path]) -> Path:
    """
    Write a snapshot file atomically.

    Args:
        experiment: Container to save
        path: Destination file (parent directories are created)

    Returns:
        The destination path

    Raises:
        PersistenceError: If encoding or writing fails
    """
    path = Path(path)
    blob = serialize(experiment)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_bytes(path, blob)
    except OSError as e:
        raise PersistenceError(f"Failed to write snapshot {path}: {e}") from e

    logger.info(f"Saved {experiment.n_rows:,} × {experiment.n_columns:,} snapshot to {path}")
    return path


def load(path: Union[str, Path]) -> LinkedExperiment:
    """
    Read and validate a snapshot file.

    Raises:
        FileNotFoundError: If the file does not exist
        PersistenceError: If the file is not a valid snapshot
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Snapshot not found: {path}")

    try:
        experiment = deserialize(path.read_bytes())
    except PersistenceError as e:
        raise PersistenceError(f"{path}: {e}") from e

    logger.info(f"Loaded {experiment.n_rows:,} × {experiment.n_columns:,} snapshot from {path}")
    return experiment
