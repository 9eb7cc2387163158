"""
Read-only snapshot of a finished segmentation run.

The snapshot bundles everything the exporters read. It can be stored in a
numpy ``.npz`` archive so export can run separately from the model fit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import numpy as np

from spatialseg_export.model.params import ModelParams
from spatialseg_export.model.transcripts import TranscriptTable

logger = logging.getLogger(__name__)

_PARAM_KEYS = (
    "rates",
    "shape",
    "phi",
    "cluster",
    "cell_volume",
    "cell_population",
    "total_gene_counts",
    "background_rates",
)

_TRANSCRIPT_KEYS = (
    "transcript_id",
    "gene",
    "fov",
    "observed",
    "positions",
    "assignment",
    "probability",
    "state",
)


@dataclass
class SegmentationSnapshot:
    """Final state of a segmentation run.

    Count matrices are (genes, cells); centroids are (cells, 3); voxel
    bounds are (voxels, 6) as ``x0, y0, z0, x1, y1, z1``.
    """

    gene_names: list[str]
    fov_names: list[str]
    params: ModelParams
    counts: np.ndarray
    expected_counts: np.ndarray
    cell_centroids: np.ndarray
    transcripts: TranscriptTable
    voxel_cells: Optional[np.ndarray] = None
    voxel_bounds: Optional[np.ndarray] = None

    def __post_init__(self):
        self.gene_names = [str(g) for g in self.gene_names]
        self.fov_names = [str(f) for f in self.fov_names]
        self.counts = np.atleast_2d(np.asarray(self.counts, dtype=np.uint32))
        self.expected_counts = np.atleast_2d(np.asarray(self.expected_counts, dtype=np.float32))
        self.cell_centroids = np.asarray(self.cell_centroids, dtype=np.float32).reshape(-1, 3)
        if self.voxel_cells is not None:
            self.voxel_cells = np.asarray(self.voxel_cells, dtype=np.uint32)
            self.voxel_bounds = np.asarray(self.voxel_bounds, dtype=np.float32).reshape(-1, 6)

    @property
    def ncells(self) -> int:
        return self.cell_centroids.shape[0]

    @property
    def ngenes(self) -> int:
        return len(self.gene_names)

    def voxels(self) -> Iterator[tuple[int, tuple[float, ...]]]:
        """Yield ``(cell, (x0, y0, z0, x1, y1, z1))`` per voxel."""
        if self.voxel_cells is None:
            return
        for cell, bounds in zip(self.voxel_cells, self.voxel_bounds):
            yield int(cell), tuple(bounds)

    def to_npz(self, path: Path | str) -> Path:
        """Save to a compressed ``.npz`` archive."""
        path = Path(path)
        arrays = {
            "gene_names": np.asarray(self.gene_names, dtype=str),
            "fov_names": np.asarray(self.fov_names, dtype=str),
            "counts": self.counts,
            "expected_counts": self.expected_counts,
            "cell_centroids": self.cell_centroids,
        }
        for key in _PARAM_KEYS:
            arrays[f"params_{key}"] = getattr(self.params, key)
        for key in _TRANSCRIPT_KEYS:
            arrays[f"transcripts_{key}"] = getattr(self.transcripts, key)
        if self.voxel_cells is not None:
            arrays["voxel_cells"] = self.voxel_cells
            arrays["voxel_bounds"] = self.voxel_bounds

        with open(path, "wb") as f:
            np.savez_compressed(f, **arrays)
        return path

    @classmethod
    def from_npz(cls, path: Path | str) -> "SegmentationSnapshot":
        """Load a snapshot saved with ``to_npz``."""
        path = Path(path)
        with np.load(path, allow_pickle=False) as data:
            missing = [
                k for k in ("gene_names", "fov_names", "counts", "expected_counts", "cell_centroids")
                if k not in data
            ]
            if missing:
                raise KeyError(f"Snapshot {path} is missing arrays: {', '.join(missing)}")

            params = ModelParams(**{key: data[f"params_{key}"] for key in _PARAM_KEYS})
            transcripts = TranscriptTable(**{key: data[f"transcripts_{key}"] for key in _TRANSCRIPT_KEYS})
            snapshot = cls(
                gene_names=data["gene_names"].tolist(),
                fov_names=data["fov_names"].tolist(),
                params=params,
                counts=data["counts"],
                expected_counts=data["expected_counts"],
                cell_centroids=data["cell_centroids"],
                transcripts=transcripts,
                voxel_cells=data["voxel_cells"] if "voxel_cells" in data else None,
                voxel_bounds=data["voxel_bounds"] if "voxel_bounds" in data else None,
            )

        logger.info("Loaded snapshot from %s (%d cells, %d genes, %d transcripts)",
                    path, snapshot.ncells, snapshot.ngenes, len(snapshot.transcripts))
        return snapshot
