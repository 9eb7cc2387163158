"""
Fitted model parameters consumed by the exporters.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class ModelParams:
    """Snapshot of the expression model's parameters.

    Shapes use G genes, C cells, K mixture components and L layers.
    """

    rates: np.ndarray
    """Per-cell expression rates λ, (G, C)."""

    shape: np.ndarray
    """Negative binomial shape (dispersion) r, (K, G)."""

    phi: np.ndarray
    """Component scale parameter φ, (K, G); β = exp(-φ)."""

    cluster: np.ndarray
    """Component assignment per cell, (C,)."""

    cell_volume: np.ndarray
    """Cell volumes, (C,)."""

    cell_population: np.ndarray
    """Number of voxels per cell, (C,)."""

    total_gene_counts: np.ndarray
    """Observed transcript counts per gene and layer, (G, L)."""

    background_rates: np.ndarray
    """Background rate per gene and layer λ_bg, (G, L)."""

    def __post_init__(self):
        self.rates = np.atleast_2d(np.asarray(self.rates, dtype=np.float32))
        self.shape = np.atleast_2d(np.asarray(self.shape, dtype=np.float32))
        self.phi = np.atleast_2d(np.asarray(self.phi, dtype=np.float32))
        self.cluster = np.asarray(self.cluster, dtype=np.uint32)
        self.cell_volume = np.asarray(self.cell_volume, dtype=np.float32)
        self.cell_population = np.asarray(self.cell_population, dtype=np.uint64)
        self.total_gene_counts = np.atleast_2d(np.asarray(self.total_gene_counts, dtype=np.uint64))
        self.background_rates = np.atleast_2d(np.asarray(self.background_rates, dtype=np.float32))

        if self.shape.shape != self.phi.shape:
            raise ValueError(f"shape {self.shape.shape} and phi {self.phi.shape} disagree")

    @property
    def ngenes(self) -> int:
        return self.rates.shape[0]

    @property
    def ncells(self) -> int:
        return self.rates.shape[1]

    @property
    def ncomponents(self) -> int:
        return self.shape.shape[0]

    @property
    def nlayers(self) -> int:
        return self.background_rates.shape[1]

    @property
    def scale(self) -> np.ndarray:
        """β = exp(-φ), (K, G)."""
        return np.exp(-self.phi)

    def component_mean_rates(self) -> np.ndarray:
        """Mean rate per component over the cells assigned to it, (K, G).

        Components with no cells get NaN.
        """
        means = np.full((self.ncomponents, self.ngenes), np.nan, dtype=np.float32)
        for k in range(self.ncomponents):
            members = self.cluster == k
            if members.any():
                means[k] = self.rates[:, members].mean(axis=1)
        return means
