"""
Output generation.

Writers for CSV, gzip-compressed CSV and Parquet tables, and streaming
gzip-compressed GeoJSON for cell polygons.
"""

from spatialseg_export.export.formats import (
    OutputFormat,
    infer_format_from_filename,
    resolve_format,
)
from spatialseg_export.export.results import (
    ErrorKind,
    ExportError,
    FormatInferenceError,
    WriteResult,
)
from spatialseg_export.export.table_writer import (
    DType,
    Field,
    Table,
    TableWriter,
    write_table,
)
from spatialseg_export.export.geojson_writer import (
    GeoJSONWriter,
    PolygonFeature,
    write_cell_layered_polygons,
    write_cell_polygons,
    write_feature_collection,
)
from spatialseg_export.export.fov import NO_FOV, cell_fov_vote
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

__all__ = [
    "OutputFormat",
    "infer_format_from_filename",
    "resolve_format",
    "ErrorKind",
    "ExportError",
    "FormatInferenceError",
    "WriteResult",
    "DType",
    "Field",
    "Table",
    "TableWriter",
    "write_table",
    "GeoJSONWriter",
    "PolygonFeature",
    "write_cell_polygons",
    "write_cell_layered_polygons",
    "write_feature_collection",
    "NO_FOV",
    "cell_fov_vote",
    "write_counts",
    "write_expected_counts",
    "write_rates",
    "write_component_params",
    "write_cell_metadata",
    "write_transcript_metadata",
    "write_gene_metadata",
    "write_voxels",
]
