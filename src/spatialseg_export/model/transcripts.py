"""
Per-transcript data produced by the segmentation model.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

import numpy as np

# Cell index of transcripts not assigned to any cell
BACKGROUND_CELL = np.iinfo(np.uint32).max


class TranscriptState(IntEnum):
    """Discrete per-transcript classification."""

    FOREGROUND = 0
    BACKGROUND = 1
    CONFUSION = 2


@dataclass
class TranscriptTable:
    """Transcript positions, genes, fovs and cell assignments.

    All arrays are indexed by transcript. ``observed`` holds the measured
    (x, y, z) positions and ``positions`` the corrected ones.
    """

    transcript_id: np.ndarray
    gene: np.ndarray
    fov: np.ndarray
    observed: np.ndarray
    positions: np.ndarray
    assignment: np.ndarray
    probability: np.ndarray
    state: np.ndarray

    def __post_init__(self):
        self.transcript_id = np.asarray(self.transcript_id, dtype=np.uint64)
        self.gene = np.asarray(self.gene, dtype=np.uint32)
        self.fov = np.asarray(self.fov, dtype=np.uint32)
        self.observed = np.asarray(self.observed, dtype=np.float32).reshape(-1, 3)
        self.positions = np.asarray(self.positions, dtype=np.float32).reshape(-1, 3)
        self.assignment = np.asarray(self.assignment, dtype=np.uint32)
        self.probability = np.asarray(self.probability, dtype=np.float32)
        self.state = np.asarray(self.state, dtype=np.uint8)

        n = len(self.transcript_id)
        for name in ("gene", "fov", "observed", "positions", "assignment", "probability", "state"):
            if len(getattr(self, name)) != n:
                raise ValueError(f"Transcript array '{name}' has length {len(getattr(self, name))}, expected {n}")

    def __len__(self) -> int:
        return len(self.transcript_id)

    @property
    def is_background(self) -> np.ndarray:
        return self.state == TranscriptState.BACKGROUND

    @property
    def is_confusion(self) -> np.ndarray:
        return self.state == TranscriptState.CONFUSION
