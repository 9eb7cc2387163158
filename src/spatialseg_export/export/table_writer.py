"""
Table writer for CSV, gzip-compressed CSV and Parquet output.
"""

from __future__ import annotations

import csv
import gzip
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Sequence, TextIO

import numpy as np
import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from spatialseg_export.export.formats import OutputFormat, resolve_format
from spatialseg_export.export.results import (
    ErrorKind,
    FormatInferenceError,
    WriteResult,
)

logger = logging.getLogger(__name__)

# zlib's default level
GZIP_COMPRESSLEVEL = 6

PARQUET_OPTIONS: dict[str, Any] = {
    "compression": "zstd",
    "use_dictionary": False,
    "write_statistics": True,
    "version": "2.6",
    "data_page_version": "2.0",
}


class DType(Enum):
    """Primitive column types."""

    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    UTF8 = "utf8"

    @property
    def arrow_type(self) -> pa.DataType:
        return _ARROW_TYPES[self]

    @property
    def numpy_dtype(self) -> np.dtype:
        if self is DType.UTF8:
            return np.dtype(object)
        return np.dtype(self.value)


_ARROW_TYPES = {
    DType.UINT8: pa.uint8(),
    DType.UINT16: pa.uint16(),
    DType.UINT32: pa.uint32(),
    DType.UINT64: pa.uint64(),
    DType.FLOAT32: pa.float32(),
    DType.UTF8: pa.string(),
}


@dataclass(frozen=True)
class Field:
    """A named, typed table column."""

    name: str
    dtype: DType
    nullable: bool = False


@dataclass
class Table:
    """A schema plus a column-major batch of values.

    Example:
        >>> table = Table(
        ...     fields=[Field("cell", DType.UINT32), Field("volume", DType.FLOAT32)],
        ...     columns=[np.arange(3, dtype=np.uint32), np.ones(3, dtype=np.float32)],
        ... )
        >>> table.num_rows
        3
    """

    fields: list[Field] = field(default_factory=list)
    columns: list[Sequence[Any]] = field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def num_rows(self) -> int:
        return len(self.columns[0]) if self.columns else 0

    def validate(self) -> None:
        """Check that the schema and batch agree.

        Raises
        ------
        ValueError
            If column counts or lengths disagree.
        """
        if len(self.fields) != len(self.columns):
            raise ValueError(
                f"Schema has {len(self.fields)} fields but batch has {len(self.columns)} columns"
            )
        n_rows = self.num_rows
        for f, column in zip(self.fields, self.columns):
            if len(column) != n_rows:
                raise ValueError(
                    f"Column '{f.name}' has {len(column)} rows, expected {n_rows}"
                )

    def to_arrow(self) -> pa.Table:
        """Convert to a ``pyarrow.Table`` with the declared schema."""
        self.validate()
        arrays = []
        for f, column in zip(self.fields, self.columns):
            if f.dtype is DType.UTF8:
                array = pa.array(list(column), type=pa.string())
            else:
                array = pa.array(np.asarray(column, dtype=f.dtype.numpy_dtype), type=f.dtype.arrow_type)
            if not f.nullable and array.null_count:
                raise ValueError(f"Column '{f.name}' is not nullable but contains nulls")
            arrays.append(array)
        schema = pa.schema([pa.field(f.name, f.dtype.arrow_type, nullable=f.nullable) for f in self.fields])
        return pa.Table.from_arrays(arrays, schema=schema)

    def to_frame(self) -> pd.DataFrame:
        """Convert to a ``pandas.DataFrame`` keeping each column's dtype."""
        self.validate()
        data = {}
        for i, (f, column) in enumerate(zip(self.fields, self.columns)):
            values = np.asarray(column, dtype=f.dtype.numpy_dtype)
            if not f.nullable and f.dtype is DType.UTF8 and any(v is None for v in values):
                raise ValueError(f"Column '{f.name}' is not nullable but contains nulls")
            data[i] = values
        frame = pd.DataFrame(data, index=pd.RangeIndex(self.num_rows))
        # Positional keys first so duplicate names survive
        frame.columns = self.names
        return frame


def _write_csv(handle: TextIO, frame: pd.DataFrame) -> None:
    frame.to_csv(
        handle,
        index=False,
        lineterminator="\n",
        quoting=csv.QUOTE_MINIMAL,
        na_rep="",
    )


class TableWriter:
    """Writes tables as CSV, gzip-compressed CSV or Parquet.

    Example:
        >>> writer = TableWriter("results")
        >>> result = writer.write("cells.parquet", OutputFormat.INFER, table, artifact="cell_metadata")
        >>> result.success
        True
    """

    def __init__(
        self,
        output_dir: Optional[Path | str] = None,
        compresslevel: int = GZIP_COMPRESSLEVEL,
        parquet_options: Optional[dict[str, Any]] = None,
    ):
        self.output_dir = Path(output_dir) if output_dir is not None else None
        if self.output_dir is not None:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        self.compresslevel = compresslevel
        self.parquet_options = {**PARQUET_OPTIONS, **(parquet_options or {})}

    def _resolve(self, path: Path | str) -> Path:
        path = Path(path)
        if self.output_dir is not None and not path.is_absolute():
            return self.output_dir / path
        return path

    def _write_parquet(self, path: Path, table: Table) -> None:
        arrow_table = table.to_arrow()
        with pq.ParquetWriter(path, arrow_table.schema, **self.parquet_options) as writer:
            # One row group for the whole table
            writer.write_table(arrow_table, row_group_size=max(arrow_table.num_rows, 1))

    def write(
        self,
        path: Path | str,
        fmt: OutputFormat | str,
        table: Table,
        artifact: str = "table",
    ) -> WriteResult:
        """Write a table in the requested format.

        The format is resolved before the file is opened, so an unrecognised
        filename leaves nothing on disk.

        Parameters
        ----------
        path : Path or str
            Output file, relative to ``output_dir`` if one is set.
        fmt : OutputFormat or str
            Requested format (``INFER`` uses the filename suffix).
        table : Table
            Schema and columns to write.
        artifact : str
            Artifact name used in results and log messages.

        Returns
        -------
        WriteResult
            ``success`` is False if the format could not be resolved or the
            write failed; the error message names the file.
        """
        path = self._resolve(path)
        try:
            fmt = resolve_format(fmt, path)
        except (FormatInferenceError, ValueError) as e:
            logger.error("%s", e)
            return WriteResult.failure(artifact, path, ErrorKind.CONFIGURATION, str(e))

        try:
            if fmt is OutputFormat.CSV:
                frame = table.to_frame()
                with open(path, "w", newline="", encoding="utf-8") as f:
                    _write_csv(f, frame)
            elif fmt is OutputFormat.CSV_GZ:
                frame = table.to_frame()
                with gzip.open(path, "wt", compresslevel=self.compresslevel,
                               newline="", encoding="utf-8") as f:
                    _write_csv(f, frame)
            elif fmt is OutputFormat.PARQUET:
                self._write_parquet(path, table)
            else:
                raise ValueError(f"Unsupported output format: {fmt}")
        except OSError as e:
            logger.error("Error writing %s file %s: %s", fmt.value, path, e)
            return WriteResult.failure(artifact, path, ErrorKind.IO, str(e), fmt=fmt)
        except (pa.ArrowException, ValueError, TypeError, OverflowError) as e:
            logger.error("Error encoding %s file %s: %s", fmt.value, path, e)
            return WriteResult.failure(artifact, path, ErrorKind.ENCODING, str(e), fmt=fmt)

        logger.info("Wrote %s (%d rows x %d columns, %s) to %s",
                    artifact, table.num_rows, len(table.fields), fmt.value, path)
        return WriteResult(
            artifact=artifact,
            path=path,
            success=True,
            format=fmt,
            n_rows=table.num_rows,
        )


def write_table(
    path: Path | str,
    fmt: OutputFormat | str,
    table: Table,
    artifact: str = "table",
) -> WriteResult:
    """Convenience function to write one table with default settings."""
    return TableWriter().write(path, fmt, table, artifact=artifact)
