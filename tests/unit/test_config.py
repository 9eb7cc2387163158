"""Tests for export configuration."""

import json

import pytest
import yaml
from pathlib import Path

from spatialseg_export.core.config import (
    POLYGON_ARTIFACTS,
    TABLE_ARTIFACTS,
    ArtifactOutput,
    OutputConfig,
)
from spatialseg_export.export.formats import OutputFormat


class TestArtifactOutput:
    """Test per-artifact output settings."""

    def test_defaults(self):
        output = ArtifactOutput()
        assert output.path is None
        assert output.format is OutputFormat.INFER
        assert not output.enabled

    def test_empty_path_disables(self):
        assert not ArtifactOutput("").enabled

    def test_from_value(self):
        assert ArtifactOutput.from_value("counts.csv").path == Path("counts.csv")
        assert ArtifactOutput.from_value(None).path is None

        output = ArtifactOutput.from_value({"path": "counts.dat", "format": "csv-gz"})
        assert output.path == Path("counts.dat")
        assert output.format is OutputFormat.CSV_GZ

    def test_from_value_rejects_other_types(self):
        with pytest.raises(TypeError):
            ArtifactOutput.from_value(42)

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown output format"):
            ArtifactOutput("counts.csv", format="xlsx")


class TestOutputConfig:
    """Test OutputConfig."""

    def test_default_config(self):
        config = OutputConfig()
        assert config.output_dir is None
        assert config.fail_fast
        assert not config.include_holes
        assert config.enabled_artifacts() == []

    def test_from_dict(self):
        config = OutputConfig.from_dict({
            "output_dir": "results",
            "counts": "counts.csv.gz",
            "cell_metadata": {"path": "cells.out", "format": "parquet"},
            "cell_polygons": "cell-polygons.geojson.gz",
        })

        assert config.output_dir == Path("results")
        assert config.counts.path == Path("counts.csv.gz")
        assert config.cell_metadata.format is OutputFormat.PARQUET
        assert config.cell_polygons == Path("cell-polygons.geojson.gz")
        assert config.enabled_artifacts() == ["counts", "cell_metadata", "cell_polygons"]

    def test_unknown_keys(self):
        with pytest.raises(KeyError, match="cell_polygon_layer"):
            OutputConfig.from_dict({"cell_polygon_layer": "x.geojson.gz"})

    def test_resolve_path(self):
        config = OutputConfig(output_dir="results")
        assert config.resolve_path(Path("counts.csv")) == Path("results/counts.csv")
        assert config.resolve_path(Path("/tmp/counts.csv")) == Path("/tmp/counts.csv")
        assert config.resolve_path(None) is None
        assert OutputConfig().resolve_path(Path("counts.csv")) == Path("counts.csv")

    def test_to_dict(self):
        config = OutputConfig(counts="counts.csv", log_file="export.log")
        d = config.to_dict()

        assert d["counts"] == {"path": "counts.csv", "format": "infer"}
        assert d["rates"] == {"path": None, "format": "infer"}
        assert d["log_file"] == "export.log"
        json.dumps(d)

    def test_json_roundtrip(self, temp_dir):
        config = OutputConfig(
            output_dir=temp_dir,
            counts=ArtifactOutput("counts.bin", OutputFormat.CSV_GZ),
            cell_polygon_layers="layers.geojson.gz",
            include_holes=True,
        )
        path = temp_dir / "config.json"
        config.to_json(path)

        loaded = OutputConfig.from_file(path)
        assert loaded == config

    def test_yaml(self, temp_dir):
        path = temp_dir / "export.yaml"
        path.write_text(yaml.safe_dump({
            "output": {
                "output_dir": "out",
                "gene_metadata": "genes.parquet",
                "voxels": {"path": "voxels.txt", "format": "csv"},
                "fail_fast": False,
            }
        }))

        config = OutputConfig.from_file(path)
        assert config.gene_metadata.path == Path("genes.parquet")
        assert config.voxels.format is OutputFormat.CSV
        assert not config.fail_fast

    def test_empty_yaml(self, temp_dir):
        path = temp_dir / "empty.yml"
        path.write_text("")
        assert OutputConfig.from_yaml(path) == OutputConfig()

    def test_artifact_names(self):
        assert len(TABLE_ARTIFACTS) == 8
        assert set(TABLE_ARTIFACTS).isdisjoint(POLYGON_ARTIFACTS)
