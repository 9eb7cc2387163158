"""
Export driver that writes every configured artifact of a segmentation run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Sequence
import logging

from spatialseg_export.core.config import OutputConfig
from spatialseg_export.export.artifacts import (
    write_cell_metadata,
    write_component_params,
    write_counts,
    write_expected_counts,
    write_gene_metadata,
    write_rates,
    write_transcript_metadata,
    write_voxels,
)
from spatialseg_export.export.geojson_writer import (
    write_cell_layered_polygons,
    write_cell_polygons,
)
from spatialseg_export.export.results import WriteResult
from spatialseg_export.model.snapshot import SegmentationSnapshot

logger = logging.getLogger(__name__)


@dataclass
class ExportReport:
    """Results of one export run."""

    results: list[WriteResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def failures(self) -> list[WriteResult]:
        return [r for r in self.results if not r.success]

    @property
    def output_paths(self) -> dict[str, Path]:
        return {r.artifact: r.path for r in self.results if r.success}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "results": [r.to_dict() for r in self.results],
        }


class ResultExporter:
    """Writes the configured artifacts for a finished segmentation run.

    Each artifact is written independently. With ``fail_fast`` (the
    default) the first failed artifact raises ``ExportError`` and later
    artifacts are not attempted; otherwise failures are collected in the
    report.

    Example:
        >>> config = OutputConfig(
        ...     counts=ArtifactOutput("counts.csv.gz"),
        ...     cell_polygons="cell-polygons.geojson.gz",
        ... )
        >>> exporter = ResultExporter(config)
        >>> report = exporter.export(snapshot, cell_polygons=polygons)
        >>> report.output_paths
    """

    def __init__(self, config: Optional[OutputConfig] = None):
        self.config = config or OutputConfig()

    def _table_path(self, name: str) -> Optional[Path]:
        return self.config.resolve_path(getattr(self.config, name).path)

    def _table_format(self, name: str):
        return getattr(self.config, name).format

    def _steps(
        self,
        snapshot: SegmentationSnapshot,
        cell_polygons: Optional[Sequence[Any]],
        layered_polygons: Optional[Sequence[Sequence[tuple[int, Any]]]],
    ) -> list[tuple[str, Callable[[], Optional[WriteResult]]]]:
        params = snapshot.params
        transcripts = snapshot.transcripts
        path, fmt = self._table_path, self._table_format
        holes = self.config.include_holes

        return [
            ("counts", lambda: write_counts(
                path("counts"), fmt("counts"), snapshot.gene_names, snapshot.counts)),
            ("expected_counts", lambda: write_expected_counts(
                path("expected_counts"), fmt("expected_counts"),
                snapshot.gene_names, snapshot.expected_counts)),
            ("rates", lambda: write_rates(
                path("rates"), fmt("rates"), params, snapshot.gene_names)),
            ("component_params", lambda: write_component_params(
                path("component_params"), fmt("component_params"), params, snapshot.gene_names)),
            ("cell_metadata", lambda: write_cell_metadata(
                path("cell_metadata"), fmt("cell_metadata"), params, snapshot.cell_centroids,
                transcripts.assignment, transcripts.fov, snapshot.fov_names)),
            ("transcript_metadata", lambda: write_transcript_metadata(
                path("transcript_metadata"), fmt("transcript_metadata"), transcripts,
                snapshot.gene_names, snapshot.fov_names)),
            ("gene_metadata", lambda: write_gene_metadata(
                path("gene_metadata"), fmt("gene_metadata"), params,
                snapshot.gene_names, snapshot.expected_counts)),
            ("voxels", lambda: write_voxels(
                path("voxels"), fmt("voxels"), snapshot.voxels())),
            ("cell_polygons", lambda: write_cell_polygons(
                self.config.resolve_path(self.config.cell_polygons)
                if cell_polygons is not None else None,
                cell_polygons, include_holes=holes)),
            ("cell_polygon_layers", lambda: write_cell_layered_polygons(
                self.config.resolve_path(self.config.cell_polygon_layers)
                if layered_polygons is not None else None,
                layered_polygons, include_holes=holes)),
        ]

    def export(
        self,
        snapshot: SegmentationSnapshot,
        cell_polygons: Optional[Sequence[Any]] = None,
        layered_polygons: Optional[Sequence[Sequence[tuple[int, Any]]]] = None,
    ) -> ExportReport:
        """Write all configured artifacts.

        Parameters
        ----------
        snapshot : SegmentationSnapshot
            Final model state.
        cell_polygons : sequence, optional
            One multipolygon per cell.
        layered_polygons : sequence, optional
            Per cell, ``(layer, multipolygon)`` pairs.

        Returns
        -------
        ExportReport
            One result per artifact that was attempted.

        Raises
        ------
        ExportError
            On the first failed artifact when ``fail_fast`` is set.
        """
        if self.config.output_dir is not None:
            self.config.output_dir.mkdir(parents=True, exist_ok=True)

        if self.config.cell_polygons is not None and cell_polygons is None:
            logger.warning("cell_polygons output configured but no polygons given, skipping")
        if self.config.cell_polygon_layers is not None and layered_polygons is None:
            logger.warning("cell_polygon_layers output configured but no polygons given, skipping")

        report = ExportReport()
        for name, step in self._steps(snapshot, cell_polygons, layered_polygons):
            result = step()
            if result is None:
                logger.debug("No output configured for %s", name)
                continue

            report.results.append(result)
            if not result.success and self.config.fail_fast:
                result.raise_for_error()

        logger.info("Export finished: %d written, %d failed",
                    len(report.results) - len(report.failures), len(report.failures))
        return report


def export_results(
    snapshot: SegmentationSnapshot,
    config: OutputConfig,
    cell_polygons: Optional[Sequence[Any]] = None,
    layered_polygons: Optional[Sequence[Sequence[tuple[int, Any]]]] = None,
) -> ExportReport:
    """Convenience function to run a ``ResultExporter``."""
    return ResultExporter(config).export(snapshot, cell_polygons, layered_polygons)
