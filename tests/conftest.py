"""Pytest configuration and fixtures."""

import pytest
import numpy as np
from pathlib import Path
import tempfile

from spatialseg_export.model import (
    BACKGROUND_CELL,
    ModelParams,
    SegmentationSnapshot,
    TranscriptState,
    TranscriptTable,
)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def gene_names():
    return ["CD3E", "MS4A1", "EPCAM"]


@pytest.fixture
def fov_names():
    return ["fov_001", "fov_002"]


@pytest.fixture
def sample_params():
    """Parameters for 3 genes, 4 cells, 2 components and 2 layers."""
    return ModelParams(
        rates=np.array([
            [1.0, 2.0, 3.0, 4.0],
            [0.5, 0.5, 1.5, 1.5],
            [0.0, 1.0, 0.0, 1.0],
        ]),
        shape=np.array([
            [2.0, 3.0, 4.0],
            [5.0, 6.0, 7.0],
        ]),
        phi=np.array([
            [0.0, 1.0, 2.0],
            [0.5, 0.5, 0.5],
        ]),
        cluster=np.array([0, 1, 0, 1]),
        cell_volume=np.array([10.0, 12.5, 8.0, 20.0]),
        cell_population=np.array([100, 125, 80, 200]),
        total_gene_counts=np.array([
            [3, 4],
            [1, 1],
            [0, 2],
        ]),
        background_rates=np.array([
            [0.01, 0.02],
            [0.03, 0.04],
            [0.05, 0.06],
        ]),
    )


@pytest.fixture
def sample_transcripts():
    """Six transcripts: four assigned to cells 0 and 1, two in background."""
    return TranscriptTable(
        transcript_id=np.arange(100, 106),
        gene=np.array([0, 1, 2, 0, 1, 2]),
        fov=np.array([0, 0, 1, 1, 1, 0]),
        observed=np.array([
            [1.0, 2.0, 0.5],
            [1.5, 2.5, 0.5],
            [3.0, 4.0, 1.0],
            [3.5, 4.5, 1.0],
            [9.0, 9.0, 2.0],
            [0.0, 0.0, 0.0],
        ]),
        positions=np.array([
            [1.25, 2.0, 0.5],
            [1.5, 2.25, 0.5],
            [3.0, 4.0, 1.0],
            [3.5, 4.5, 1.0],
            [9.0, 9.0, 2.0],
            [0.0, 0.0, 0.0],
        ]),
        assignment=np.array([0, 0, 1, 1, BACKGROUND_CELL, BACKGROUND_CELL]),
        probability=np.array([0.9, 0.8, 0.75, 0.6, 0.5, 0.25]),
        state=np.array([
            TranscriptState.FOREGROUND,
            TranscriptState.FOREGROUND,
            TranscriptState.FOREGROUND,
            TranscriptState.CONFUSION,
            TranscriptState.BACKGROUND,
            TranscriptState.BACKGROUND,
        ]),
    )


@pytest.fixture
def sample_snapshot(gene_names, fov_names, sample_params, sample_transcripts):
    """Snapshot of a four-cell run with two voxels."""
    return SegmentationSnapshot(
        gene_names=gene_names,
        fov_names=fov_names,
        params=sample_params,
        counts=np.array([
            [1, 1, 0, 0],
            [1, 0, 0, 0],
            [0, 1, 0, 0],
        ]),
        expected_counts=np.array([
            [0.9, 0.6, 0.0, 0.0],
            [0.8, 0.0, 0.0, 0.0],
            [0.0, 0.75, 0.0, 0.0],
        ]),
        cell_centroids=np.array([
            [1.25, 2.25, 0.5],
            [3.25, 4.25, 1.0],
            [5.0, 5.0, 1.0],
            [7.0, 7.0, 1.5],
        ]),
        transcripts=sample_transcripts,
        voxel_cells=np.array([0, 1]),
        voxel_bounds=np.array([
            [1.0, 2.0, 0.0, 1.5, 2.5, 1.0],
            [3.0, 4.0, 0.5, 3.5, 4.5, 1.5],
        ]),
    )
