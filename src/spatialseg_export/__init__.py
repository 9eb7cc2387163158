"""
spatialseg-export - Result export for spatial transcriptomics segmentation.

This package writes the final state of a segmentation run to disk:
- Count, expected count and rate matrices
- Component parameters and gene metadata
- Cell, transcript and voxel metadata
- Cell boundary polygons as gzip-compressed GeoJSON

Tables are written as CSV, gzip-compressed CSV or Parquet, with the format
inferred from the filename unless given explicitly.

Example:
    >>> from spatialseg_export import OutputConfig, ResultExporter, SegmentationSnapshot
    >>>
    >>> snapshot = SegmentationSnapshot.from_npz("run.npz")
    >>> config = OutputConfig.from_yaml("export.yaml")
    >>> report = ResultExporter(config).export(snapshot)
"""

__version__ = "0.1.0"

from spatialseg_export.core.config import ArtifactOutput, OutputConfig
from spatialseg_export.export.formats import OutputFormat
from spatialseg_export.export.results import ExportError, WriteResult
from spatialseg_export.model.snapshot import SegmentationSnapshot

# Main exporter
from spatialseg_export.pipeline import ExportReport, ResultExporter, export_results

__all__ = [
    # Version
    "__version__",
    # Exporter
    "ResultExporter",
    "ExportReport",
    "export_results",
    # Core
    "ArtifactOutput",
    "OutputConfig",
    "OutputFormat",
    "ExportError",
    "WriteResult",
    "SegmentationSnapshot",
]
