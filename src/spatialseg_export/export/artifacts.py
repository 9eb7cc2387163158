"""
Table artifacts written at the end of a segmentation run.

Each artifact has a ``build_*`` function that flattens model output into a
``Table`` and a ``write_*`` function that writes it. Every ``write_*`` is a
no-op returning None when its output path is unset.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

import numpy as np

from spatialseg_export.export.formats import OutputFormat
from spatialseg_export.export.fov import NO_FOV, cell_fov_vote
from spatialseg_export.export.results import ErrorKind, WriteResult
from spatialseg_export.export.table_writer import DType, Field, Table, write_table
from spatialseg_export.model.params import ModelParams
from spatialseg_export.model.transcripts import TranscriptTable

logger = logging.getLogger(__name__)


def _build_and_write(
    path: Path | str,
    fmt: OutputFormat | str,
    artifact: str,
    build: Callable[[], Table],
) -> WriteResult:
    """Build a table and write it, reporting build errors as failed writes."""
    try:
        table = build()
    except (ValueError, TypeError, IndexError) as e:
        logger.error("Error building %s for %s: %s", artifact, path, e)
        return WriteResult.failure(artifact, path, ErrorKind.ENCODING, str(e))
    return write_table(path, fmt, table, artifact=artifact)


def _per_gene_table(gene_names: Sequence[str], matrix: np.ndarray, dtype: DType) -> Table:
    # matrix is (genes, cells): one column per gene, one row per cell
    matrix = np.atleast_2d(np.asarray(matrix, dtype=dtype.numpy_dtype))
    if matrix.shape[0] != len(gene_names):
        raise ValueError(f"Matrix has {matrix.shape[0]} rows but there are {len(gene_names)} genes")
    return Table(
        fields=[Field(name, dtype) for name in gene_names],
        columns=[row for row in matrix],
    )


def build_counts_table(gene_names: Sequence[str], counts: np.ndarray) -> Table:
    """Observed counts per cell, one ``uint32`` column per gene."""
    return _per_gene_table(gene_names, counts, DType.UINT32)


def write_counts(
    path: Optional[Path | str],
    fmt: OutputFormat | str,
    gene_names: Sequence[str],
    counts: np.ndarray,
) -> Optional[WriteResult]:
    if not path:
        return None
    return _build_and_write(path, fmt, "counts", lambda: build_counts_table(gene_names, counts))


def build_expected_counts_table(gene_names: Sequence[str], expected_counts: np.ndarray) -> Table:
    """Expected counts per cell, one ``float32`` column per gene."""
    return _per_gene_table(gene_names, expected_counts, DType.FLOAT32)


def write_expected_counts(
    path: Optional[Path | str],
    fmt: OutputFormat | str,
    gene_names: Sequence[str],
    expected_counts: np.ndarray,
) -> Optional[WriteResult]:
    if not path:
        return None
    return _build_and_write(
        path, fmt, "expected_counts",
        lambda: build_expected_counts_table(gene_names, expected_counts),
    )


def build_rates_table(params: ModelParams, gene_names: Sequence[str]) -> Table:
    """Fitted expression rates per cell, one ``float32`` column per gene."""
    return _per_gene_table(gene_names, params.rates, DType.FLOAT32)


def write_rates(
    path: Optional[Path | str],
    fmt: OutputFormat | str,
    params: ModelParams,
    gene_names: Sequence[str],
) -> Optional[WriteResult]:
    if not path:
        return None
    return _build_and_write(path, fmt, "rates", lambda: build_rates_table(params, gene_names))


def build_component_params_table(params: ModelParams, gene_names: Sequence[str]) -> Table:
    """One row per gene: ``gene``, then ``α_i``, ``β_i`` for each component."""
    fields = [Field("gene", DType.UTF8)]
    columns: list[Sequence] = [list(gene_names)]
    for i, (alpha, beta) in enumerate(zip(params.shape, params.scale)):
        fields.append(Field(f"α_{i}", DType.FLOAT32))
        fields.append(Field(f"β_{i}", DType.FLOAT32))
        columns.append(alpha)
        columns.append(beta)
    return Table(fields=fields, columns=columns)


def write_component_params(
    path: Optional[Path | str],
    fmt: OutputFormat | str,
    params: ModelParams,
    gene_names: Sequence[str],
) -> Optional[WriteResult]:
    if not path:
        return None
    return _build_and_write(
        path, fmt, "component_params",
        lambda: build_component_params_table(params, gene_names),
    )


def build_cell_metadata_table(
    params: ModelParams,
    cell_centroids: np.ndarray,
    cell_fovs: np.ndarray,
    fov_names: Sequence[str],
) -> Table:
    """One row per cell with centroid, voted fov, cluster, volume and population.

    ``fov`` is null for cells whose vote is ``NO_FOV``.
    """
    centroids = np.asarray(cell_centroids, dtype=np.float32).reshape(-1, 3)
    ncells = centroids.shape[0]
    fovs = [None if fov == NO_FOV else fov_names[fov] for fov in cell_fovs]

    return Table(
        fields=[
            Field("cell", DType.UINT32),
            Field("centroid_x", DType.FLOAT32),
            Field("centroid_y", DType.FLOAT32),
            Field("centroid_z", DType.FLOAT32),
            Field("fov", DType.UTF8, nullable=True),
            Field("cluster", DType.UINT16),
            Field("volume", DType.FLOAT32),
            Field("population", DType.UINT64),
        ],
        columns=[
            np.arange(ncells, dtype=np.uint32),
            centroids[:, 0],
            centroids[:, 1],
            centroids[:, 2],
            fovs,
            params.cluster.astype(np.uint16),
            params.cell_volume,
            params.cell_population,
        ],
    )


def write_cell_metadata(
    path: Optional[Path | str],
    fmt: OutputFormat | str,
    params: ModelParams,
    cell_centroids: np.ndarray,
    cell_assignments: np.ndarray,
    fovs: np.ndarray,
    fov_names: Sequence[str],
) -> Optional[WriteResult]:
    """Write cell metadata, assigning each cell a fov by transcript vote."""
    if not path:
        return None

    def build() -> Table:
        ncells = len(cell_centroids)
        cell_fovs = cell_fov_vote(ncells, len(fov_names), cell_assignments, fovs)
        logger.debug("Voted fovs for %d cells (%d without a vote)",
                     ncells, int(np.count_nonzero(cell_fovs == NO_FOV)))
        return build_cell_metadata_table(params, cell_centroids, cell_fovs, fov_names)

    return _build_and_write(path, fmt, "cell_metadata", build)


def build_transcript_metadata_table(
    transcripts: TranscriptTable,
    gene_names: Sequence[str],
    fov_names: Sequence[str],
) -> Table:
    """One row per transcript: corrected and observed position, gene, fov,
    assignment, assignment probability and background/confusion flags."""
    genes = np.asarray(gene_names, dtype=object)
    fovs = np.asarray(fov_names, dtype=object)
    return Table(
        fields=[
            Field("transcript_id", DType.UINT64),
            Field("x", DType.FLOAT32),
            Field("y", DType.FLOAT32),
            Field("z", DType.FLOAT32),
            Field("observed_x", DType.FLOAT32),
            Field("observed_y", DType.FLOAT32),
            Field("observed_z", DType.FLOAT32),
            Field("gene", DType.UTF8),
            Field("fov", DType.UTF8),
            Field("assignment", DType.UINT32),
            Field("probability", DType.FLOAT32),
            Field("background", DType.UINT8),
            Field("confusion", DType.UINT8),
        ],
        columns=[
            transcripts.transcript_id,
            transcripts.positions[:, 0],
            transcripts.positions[:, 1],
            transcripts.positions[:, 2],
            transcripts.observed[:, 0],
            transcripts.observed[:, 1],
            transcripts.observed[:, 2],
            genes[transcripts.gene],
            fovs[transcripts.fov],
            transcripts.assignment,
            transcripts.probability,
            transcripts.is_background.astype(np.uint8),
            transcripts.is_confusion.astype(np.uint8),
        ],
    )


def write_transcript_metadata(
    path: Optional[Path | str],
    fmt: OutputFormat | str,
    transcripts: TranscriptTable,
    gene_names: Sequence[str],
    fov_names: Sequence[str],
) -> Optional[WriteResult]:
    if not path:
        return None
    logger.debug("Transcript metadata: %d transcripts, %d genes, %d fovs",
                 len(transcripts), len(gene_names), len(fov_names))
    return _build_and_write(
        path, fmt, "transcript_metadata",
        lambda: build_transcript_metadata_table(transcripts, gene_names, fov_names),
    )


def build_gene_metadata_table(
    params: ModelParams,
    gene_names: Sequence[str],
    expected_counts: np.ndarray,
) -> Table:
    """One row per gene.

    Columns: ``gene``, ``total_count`` (observed, summed over layers),
    ``expected_assigned_count`` (summed over cells), ``dispersion_i`` and
    ``λ_i`` (mean rate over the component's cells) per component, and
    ``λ_bg_i`` per layer.
    """
    fields = [
        Field("gene", DType.UTF8),
        Field("total_count", DType.UINT64),
        Field("expected_assigned_count", DType.FLOAT32),
    ]
    columns: list[Sequence] = [
        list(gene_names),
        params.total_gene_counts.sum(axis=1, dtype=np.uint64),
        np.asarray(expected_counts, dtype=np.float32).sum(axis=1, dtype=np.float32),
    ]

    for i in range(params.ncomponents):
        fields.append(Field(f"dispersion_{i}", DType.FLOAT32))
        columns.append(params.shape[i])

    for i, mean_rates in enumerate(params.component_mean_rates()):
        fields.append(Field(f"λ_{i}", DType.FLOAT32))
        columns.append(mean_rates)

    for i in range(params.nlayers):
        fields.append(Field(f"λ_bg_{i}", DType.FLOAT32))
        columns.append(params.background_rates[:, i])

    return Table(fields=fields, columns=columns)


def write_gene_metadata(
    path: Optional[Path | str],
    fmt: OutputFormat | str,
    params: ModelParams,
    gene_names: Sequence[str],
    expected_counts: np.ndarray,
) -> Optional[WriteResult]:
    if not path:
        return None
    return _build_and_write(
        path, fmt, "gene_metadata",
        lambda: build_gene_metadata_table(params, gene_names, expected_counts),
    )


def build_voxels_table(voxels: Iterable[tuple[int, Sequence[float]]]) -> Table:
    """One row per voxel: owning cell and bounding box ``x0 .. z1``."""
    cells = []
    bounds = []
    for cell, box in voxels:
        cells.append(cell)
        bounds.append(box)
    bounds_arr = np.asarray(bounds, dtype=np.float32).reshape(-1, 6)

    names = ["x0", "y0", "z0", "x1", "y1", "z1"]
    return Table(
        fields=[Field("cell", DType.UINT32)] + [Field(name, DType.FLOAT32) for name in names],
        columns=[np.asarray(cells, dtype=np.uint32)] + [bounds_arr[:, i] for i in range(6)],
    )


def write_voxels(
    path: Optional[Path | str],
    fmt: OutputFormat | str,
    voxels: Iterable[tuple[int, Sequence[float]]],
) -> Optional[WriteResult]:
    if not path:
        return None
    return _build_and_write(path, fmt, "voxels", lambda: build_voxels_table(voxels))
