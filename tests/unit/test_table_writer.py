"""Tests for the CSV / gzip CSV / Parquet table writer."""

import gzip

import pytest
import numpy as np
import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from spatialseg_export.export.formats import OutputFormat
from spatialseg_export.export.results import ErrorKind, ExportError
from spatialseg_export.export.table_writer import DType, Field, Table, TableWriter, write_table


def _labels(n):
    labels = []
    for i in range(n):
        if i % 7 == 3:
            labels.append(None)
        elif i % 5 == 0:
            labels.append(f"cell,{i}")
        else:
            labels.append(f"t{i}")
    return labels


def make_table(n):
    """Table with every supported column type and ``n`` rows."""
    rng = np.random.default_rng(42)
    return Table(
        fields=[
            Field("u8", DType.UINT8),
            Field("u16", DType.UINT16),
            Field("u32", DType.UINT32),
            Field("u64", DType.UINT64),
            Field("f32", DType.FLOAT32),
            Field("label", DType.UTF8, nullable=True),
        ],
        columns=[
            (np.arange(n) % 256).astype(np.uint8),
            (np.arange(n) * 61).astype(np.uint16),
            (np.arange(n) * 4_000_000).astype(np.uint32),
            (np.arange(n) + 2**40).astype(np.uint64),
            (rng.standard_normal(n) * 1000).astype(np.float32),
            _labels(n),
        ],
    )


CSV_DTYPES = {
    "u8": np.uint8,
    "u16": np.uint16,
    "u32": np.uint32,
    "u64": np.uint64,
    "f32": np.float64,
    "label": object,
}


def read_csv(path):
    return pd.read_csv(path, dtype=CSV_DTYPES, keep_default_na=False, na_values=[""])


def assert_frame_matches(df, table):
    assert list(df.columns) == table.names
    assert len(df) == table.num_rows
    for name, column in zip(table.names[:4], table.columns[:4]):
        np.testing.assert_array_equal(df[name].to_numpy(), column)
    # Shortest float32 text parses back to the same float32
    np.testing.assert_array_equal(df["f32"].to_numpy().astype(np.float32), table.columns[4])
    labels = [None if pd.isna(v) else v for v in df["label"]]
    assert labels == table.columns[5]


class TestTable:
    """Test schema/batch validation."""

    def test_num_rows(self):
        assert make_table(5).num_rows == 5
        assert Table().num_rows == 0

    def test_mismatched_lengths(self):
        table = Table(
            fields=[Field("a", DType.UINT32), Field("b", DType.UINT32)],
            columns=[np.arange(3), np.arange(4)],
        )
        with pytest.raises(ValueError, match="has 4 rows"):
            table.validate()

    def test_field_count_mismatch(self):
        table = Table(fields=[Field("a", DType.UINT32)], columns=[])
        with pytest.raises(ValueError, match="1 fields"):
            table.validate()

    def test_arrow_schema(self):
        arrow = make_table(3).to_arrow()
        assert arrow.schema.field("u8").type == pa.uint8()
        assert arrow.schema.field("u64").type == pa.uint64()
        assert arrow.schema.field("f32").type == pa.float32()
        assert arrow.schema.field("label").type == pa.string()
        assert arrow.schema.field("label").nullable
        assert not arrow.schema.field("u32").nullable

    def test_non_nullable_with_nulls(self):
        table = Table(fields=[Field("gene", DType.UTF8)], columns=[["a", None]])
        with pytest.raises(ValueError, match="not nullable"):
            table.to_arrow()
        with pytest.raises(ValueError, match="not nullable"):
            table.to_frame()


class TestCSV:
    """Test delimited text output."""

    @pytest.mark.parametrize("n", [0, 1, 1000])
    def test_round_trip(self, temp_dir, n):
        table = make_table(n)
        path = temp_dir / "table.csv"

        result = write_table(path, OutputFormat.INFER, table)

        assert result.success
        assert result.format is OutputFormat.CSV
        assert result.n_rows == n
        assert_frame_matches(read_csv(path), table)

    def test_text_layout(self, temp_dir):
        table = Table(
            fields=[
                Field("cell", DType.UINT32),
                Field("volume", DType.FLOAT32),
                Field("fov", DType.UTF8, nullable=True),
            ],
            columns=[
                np.array([0, 1, 2], dtype=np.uint32),
                np.array([0.1, 2.5, 3.0], dtype=np.float32),
                ["a,b", None, "c"],
            ],
        )
        path = temp_dir / "cells.csv"
        write_table(path, "csv", table)

        assert path.read_bytes() == b'cell,volume,fov\n0,0.1,"a,b"\n1,2.5,\n2,3.0,c\n'

    def test_duplicate_names(self, temp_dir):
        table = Table(
            fields=[Field("a", DType.UINT8), Field("a", DType.UINT8)],
            columns=[[1, 2], [3, 4]],
        )
        path = temp_dir / "dup.csv"
        assert write_table(path, OutputFormat.CSV, table).success
        assert path.read_text().splitlines() == ["a,a", "1,3", "2,4"]


class TestCompressedCSV:
    """Test gzip-compressed delimited text output."""

    @pytest.mark.parametrize("n", [0, 1, 1000])
    def test_round_trip(self, temp_dir, n):
        table = make_table(n)
        path = temp_dir / "table.csv.gz"

        result = write_table(path, OutputFormat.INFER, table)

        assert result.success
        assert result.format is OutputFormat.CSV_GZ
        assert_frame_matches(read_csv(path), table)

    def test_matches_plain_csv(self, temp_dir):
        table = make_table(1000)
        write_table(temp_dir / "plain.csv", OutputFormat.INFER, table)
        write_table(temp_dir / "packed.csv.gz", OutputFormat.INFER, table)

        with gzip.open(temp_dir / "packed.csv.gz", "rb") as f:
            decompressed = f.read()
        assert decompressed == (temp_dir / "plain.csv").read_bytes()

    def test_explicit_format_any_name(self, temp_dir):
        path = temp_dir / "table.dat"
        result = write_table(path, OutputFormat.CSV_GZ, make_table(3))
        assert result.success
        assert path.read_bytes()[:2] == b"\x1f\x8b"


class TestParquet:
    """Test Parquet output."""

    @pytest.mark.parametrize("n", [0, 1, 1000])
    def test_round_trip(self, temp_dir, n):
        table = make_table(n)
        path = temp_dir / "table.parquet"

        result = write_table(path, OutputFormat.INFER, table)

        assert result.success
        assert result.format is OutputFormat.PARQUET
        read = pq.read_table(path)
        assert read.num_rows == n
        assert read.column_names == table.names
        for name, column in zip(table.names[:5], table.columns[:5]):
            np.testing.assert_array_equal(read.column(name).to_numpy(), column)
        assert read.column("label").to_pylist() == table.columns[5]

    def test_schema_preserved(self, temp_dir):
        path = temp_dir / "table.parquet"
        write_table(path, OutputFormat.INFER, make_table(10))

        schema = pq.read_schema(path)
        assert schema.field("u16").type == pa.uint16()
        assert schema.field("f32").type == pa.float32()
        assert schema.field("label").nullable
        assert not schema.field("u8").nullable

    def test_file_options(self, temp_dir):
        path = temp_dir / "table.parquet"
        write_table(path, OutputFormat.INFER, make_table(1000))

        metadata = pq.ParquetFile(path).metadata
        assert metadata.num_row_groups == 1
        assert metadata.num_rows == 1000
        row_group = metadata.row_group(0)
        for i in range(row_group.num_columns):
            column = row_group.column(i)
            assert column.compression == "ZSTD"
            assert column.is_stats_set
            assert "PLAIN_DICTIONARY" not in column.encodings
            assert "RLE_DICTIONARY" not in column.encodings
        stats = row_group.column(0).statistics
        assert stats.min == 0
        assert stats.max == 255


class TestWriteFailures:
    """Test failure reporting."""

    def test_uninferable_name_writes_nothing(self, temp_dir):
        path = temp_dir / "table.txt"
        result = write_table(path, OutputFormat.INFER, make_table(3), artifact="counts")

        assert not result.success
        assert result.error_kind is ErrorKind.CONFIGURATION
        assert "table.txt" in result.error
        assert not path.exists()

    def test_missing_directory_is_io_error(self, temp_dir):
        path = temp_dir / "missing" / "table.csv"
        result = write_table(path, OutputFormat.INFER, make_table(3))

        assert not result.success
        assert result.error_kind is ErrorKind.IO

    @pytest.mark.parametrize("filename", ["bad.csv", "bad.csv.gz", "bad.parquet"])
    def test_invalid_batch_is_encoding_error(self, temp_dir, filename):
        table = Table(
            fields=[Field("a", DType.UINT32), Field("b", DType.UINT32)],
            columns=[np.arange(3), np.arange(4)],
        )
        result = write_table(temp_dir / filename, OutputFormat.INFER, table)

        assert not result.success
        assert result.error_kind is ErrorKind.ENCODING
        assert not (temp_dir / filename).exists()

    def test_raise_for_error_names_file(self, temp_dir):
        result = write_table(temp_dir / "table.txt", OutputFormat.INFER, make_table(1), artifact="voxels")
        with pytest.raises(ExportError, match="table.txt") as exc_info:
            result.raise_for_error()
        assert exc_info.value.kind is ErrorKind.CONFIGURATION

    def test_raise_for_error_noop_on_success(self, temp_dir):
        result = write_table(temp_dir / "table.csv", OutputFormat.INFER, make_table(1))
        result.raise_for_error()


class TestTableWriter:
    """Test the writer class settings."""

    def test_relative_paths_use_output_dir(self, temp_dir):
        writer = TableWriter(temp_dir / "out")
        result = writer.write("cells.csv", OutputFormat.INFER, make_table(2), artifact="cell_metadata")

        assert result.success
        assert result.path == temp_dir / "out" / "cells.csv"
        assert result.path.exists()

    def test_absolute_path_ignores_output_dir(self, temp_dir):
        writer = TableWriter(temp_dir / "out")
        result = writer.write(temp_dir / "cells.csv", OutputFormat.INFER, make_table(2))
        assert result.path == temp_dir / "cells.csv"

    def test_parquet_option_override(self, temp_dir):
        writer = TableWriter(parquet_options={"compression": "snappy"})
        path = temp_dir / "table.parquet"
        assert writer.write(path, OutputFormat.INFER, make_table(10)).success

        column = pq.ParquetFile(path).metadata.row_group(0).column(0)
        assert column.compression == "SNAPPY"
        assert "RLE_DICTIONARY" not in column.encodings
