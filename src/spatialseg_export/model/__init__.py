"""
Read-only inputs to the exporters.

Provides:
- Fitted model parameters
- Transcript assignments and states
- Snapshot archives (.npz)
- Cell polygon tables (WKT)
"""

from spatialseg_export.model.params import ModelParams
from spatialseg_export.model.transcripts import (
    BACKGROUND_CELL,
    TranscriptState,
    TranscriptTable,
)
from spatialseg_export.model.snapshot import SegmentationSnapshot
from spatialseg_export.model.polygons import (
    load_cell_polygons,
    load_layered_polygons,
    read_polygon_table,
)

__all__ = [
    "ModelParams",
    "BACKGROUND_CELL",
    "TranscriptState",
    "TranscriptTable",
    "SegmentationSnapshot",
    "load_cell_polygons",
    "load_layered_polygons",
    "read_polygon_table",
]
