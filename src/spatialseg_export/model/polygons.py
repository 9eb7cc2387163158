"""
Load cell polygons from a WKT table.

The table is a CSV with a ``cell`` column, an optional ``layer`` column and a
``geometry`` column holding WKT ``Polygon`` or ``MultiPolygon`` text.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import pandas as pd
import shapely.wkt
from shapely.geometry import MultiPolygon, Polygon

logger = logging.getLogger(__name__)


def _as_multipolygon(geometry) -> MultiPolygon:
    if isinstance(geometry, MultiPolygon):
        return geometry
    if isinstance(geometry, Polygon):
        return MultiPolygon([geometry]) if not geometry.is_empty else MultiPolygon()
    raise ValueError(f"Expected Polygon or MultiPolygon, got {geometry.geom_type}")


def read_polygon_table(path: Path | str) -> pd.DataFrame:
    """Read a polygon table, parsing the WKT geometry column."""
    path = Path(path)
    df = pd.read_csv(path)
    for col in ("cell", "geometry"):
        if col not in df.columns:
            raise KeyError(f"Polygon table {path} has no '{col}' column")
    df["geometry"] = [_as_multipolygon(shapely.wkt.loads(text)) for text in df["geometry"]]
    logger.info("Read %d polygons from %s", len(df), path)
    return df


def _cell_count(df: pd.DataFrame, path: Path | str, ncells: Optional[int]) -> int:
    if not len(df):
        return ncells or 0
    lo, hi = int(df["cell"].min()), int(df["cell"].max())
    if ncells is None:
        ncells = hi + 1
    if lo < 0 or hi >= ncells:
        raise ValueError(f"Polygon table {path} has cell ids {lo}..{hi} outside 0..{ncells - 1}")
    return ncells


def load_cell_polygons(path: Path | str, ncells: Optional[int] = None) -> list[MultiPolygon]:
    """Load one multipolygon per cell, indexed by cell.

    Cells without a row get an empty multipolygon. Multiple rows for the
    same cell are merged into one multipolygon.
    """
    df = read_polygon_table(path)
    ncells = _cell_count(df, path, ncells)

    parts: list[list[Polygon]] = [[] for _ in range(ncells)]
    for cell, geometry in zip(df["cell"], df["geometry"]):
        parts[int(cell)].extend(geometry.geoms)
    return [MultiPolygon(p) for p in parts]


def load_layered_polygons(
    path: Path | str, ncells: Optional[int] = None
) -> list[list[tuple[int, MultiPolygon]]]:
    """Load per-layer multipolygons: for each cell, ``(layer, multipolygon)`` pairs.

    Pairs are ordered by layer within each cell.
    """
    df = read_polygon_table(path)
    if "layer" not in df.columns:
        raise KeyError(f"Polygon table {path} has no 'layer' column")
    ncells = _cell_count(df, path, ncells)

    layered: list[list[tuple[int, MultiPolygon]]] = [[] for _ in range(ncells)]
    for (cell, layer), group in df.groupby(["cell", "layer"], sort=True):
        polys = [p for geometry in group["geometry"] for p in geometry.geoms]
        layered[int(cell)].append((int(layer), MultiPolygon(polys)))
    return layered
