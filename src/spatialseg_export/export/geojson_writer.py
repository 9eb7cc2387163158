"""
Streaming GeoJSON writer for cell boundary polygons.

Cell polygons are written as a single FeatureCollection, one ``MultiPolygon``
feature per cell (or per cell and layer), directly into a gzip stream. Only
the feature being written is held in memory.

Geometries may be shapely ``MultiPolygon``/``Polygon`` objects or plain
nested sequences (a list of rings, each a list of ``(x, y)`` pairs).
"""

from __future__ import annotations

import gzip
import logging
import math
from functools import partial
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, NamedTuple, Optional, Sequence, TextIO

import numpy as np

from spatialseg_export.export.results import ErrorKind, WriteResult

logger = logging.getLogger(__name__)

INDENT = 2
GZIP_COMPRESSLEVEL = 6


class PolygonFeature(NamedTuple):
    """One output feature: a cell's multipolygon, optionally for one layer."""

    cell: int
    geometry: Any
    layer: Optional[int] = None


def _write_array(
    sink: TextIO,
    items: Iterable[Any],
    render: Callable[[TextIO, Any, int], None],
    indent: int,
) -> int:
    """Write ``items`` as a JSON array, one item per line.

    A separator is written before every item but the first, so the item
    count need not be known in advance. Returns the number of items.
    """
    sink.write("[")
    count = 0
    for item in items:
        sink.write(",\n" if count else "\n")
        sink.write(" " * (indent + INDENT))
        render(sink, item, indent + INDENT)
        count += 1
    if count:
        sink.write("\n" + " " * indent)
    sink.write("]")
    return count


def _format_ordinate(value: Any) -> str:
    if not math.isfinite(value):
        raise ValueError(f"Non-finite ordinate {value} cannot be written as JSON")
    # numpy scalars print their shortest form at native precision
    if isinstance(value, np.floating):
        return str(value)
    return repr(float(value))


def _polygons(geometry: Any) -> Iterable[Any]:
    if hasattr(geometry, "geoms"):
        return geometry.geoms
    if hasattr(geometry, "exterior"):
        return [geometry]
    return geometry


def _rings(polygon: Any, include_holes: bool) -> list[Any]:
    if not hasattr(polygon, "exterior"):
        return [polygon]
    rings = [polygon.exterior.coords]
    if include_holes:
        rings.extend(interior.coords for interior in polygon.interiors)
    return rings


def _write_coordinate(sink: TextIO, coord: Sequence[Any], indent: int) -> None:
    sink.write(f"[{_format_ordinate(coord[0])}, {_format_ordinate(coord[1])}]")


def _write_ring(sink: TextIO, ring: Iterable[Sequence[Any]], indent: int) -> None:
    _write_array(sink, ring, _write_coordinate, indent)


def _write_polygon(sink: TextIO, polygon: Any, indent: int, include_holes: bool = False) -> None:
    _write_array(sink, _rings(polygon, include_holes), _write_ring, indent)


def _write_feature(sink: TextIO, feature: PolygonFeature, indent: int, include_holes: bool = False) -> None:
    pad = " " * indent
    inner = pad + " " * INDENT
    props = [f'"cell": {int(feature.cell)}']
    if feature.layer is not None:
        props.append(f'"layer": {int(feature.layer)}')

    sink.write("{\n")
    sink.write(f'{inner}"type": "Feature",\n')
    sink.write(f'{inner}"properties": {{\n')
    sink.write(",\n".join(f"{inner}{' ' * INDENT}{p}" for p in props))
    sink.write(f"\n{inner}}},\n")
    sink.write(f'{inner}"geometry": {{\n')
    sink.write(f'{inner}{" " * INDENT}"type": "MultiPolygon",\n')
    sink.write(f'{inner}{" " * INDENT}"coordinates": ')
    _write_array(
        sink,
        _polygons(feature.geometry),
        partial(_write_polygon, include_holes=include_holes),
        indent + 2 * INDENT,
    )
    sink.write(f"\n{inner}}}\n{pad}}}")


def write_feature_collection(
    sink: TextIO,
    features: Iterable[PolygonFeature],
    include_holes: bool = False,
) -> int:
    """Stream a GeoJSON FeatureCollection into ``sink``.

    Parameters
    ----------
    sink : TextIO
        Writable text stream; never rewound.
    features : Iterable[PolygonFeature]
        Features in output order, consumed once.
    include_holes : bool
        Also write interior rings. By default only exterior rings are
        written.

    Returns
    -------
    int
        Number of features written.
    """
    sink.write('{\n  "type": "FeatureCollection",\n  "features": ')
    count = _write_array(
        sink,
        features,
        partial(_write_feature, include_holes=include_holes),
        INDENT,
    )
    sink.write("\n}\n")
    return count


def iter_cell_features(polygons: Iterable[Any]) -> Iterator[PolygonFeature]:
    """One feature per cell, numbered by position."""
    for cell, geometry in enumerate(polygons):
        yield PolygonFeature(cell, geometry)


def iter_layered_features(
    polygons: Iterable[Iterable[tuple[int, Any]]],
) -> Iterator[PolygonFeature]:
    """One feature per (cell, layer) pair, in cell order."""
    for cell, cell_polygons in enumerate(polygons):
        for layer, geometry in cell_polygons:
            yield PolygonFeature(cell, geometry, layer)


class GeoJSONWriter:
    """Writes cell polygons as gzip-compressed GeoJSON FeatureCollections."""

    def __init__(
        self,
        output_dir: Optional[Path | str] = None,
        include_holes: bool = False,
        compresslevel: int = GZIP_COMPRESSLEVEL,
    ):
        self.output_dir = Path(output_dir) if output_dir is not None else None
        if self.output_dir is not None:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        self.include_holes = include_holes
        self.compresslevel = compresslevel

    def _resolve(self, path: Path | str) -> Path:
        path = Path(path)
        if self.output_dir is not None and not path.is_absolute():
            return self.output_dir / path
        return path

    def write(
        self,
        path: Path | str,
        features: Iterable[PolygonFeature],
        artifact: str = "polygons",
    ) -> WriteResult:
        """Stream ``features`` into a gzip file.

        Returns
        -------
        WriteResult
            ``n_rows`` is the number of features written.
        """
        path = self._resolve(path)
        try:
            with gzip.open(path, "wt", compresslevel=self.compresslevel, encoding="utf-8") as sink:
                count = write_feature_collection(sink, features, include_holes=self.include_holes)
        except OSError as e:
            logger.error("Error writing GeoJSON file %s: %s", path, e)
            return WriteResult.failure(artifact, path, ErrorKind.IO, str(e))
        except (ValueError, TypeError, IndexError) as e:
            logger.error("Error encoding GeoJSON file %s: %s", path, e)
            return WriteResult.failure(artifact, path, ErrorKind.ENCODING, str(e))

        logger.info("Wrote %s (%d features) to %s", artifact, count, path)
        return WriteResult(artifact=artifact, path=path, success=True, n_rows=count)

    def write_cells(self, path: Path | str, polygons: Iterable[Any]) -> WriteResult:
        """One multipolygon feature per cell."""
        return self.write(path, iter_cell_features(polygons), "cell_polygons")

    def write_layers(
        self,
        path: Path | str,
        polygons: Iterable[Iterable[tuple[int, Any]]],
    ) -> WriteResult:
        """One multipolygon feature per (cell, layer) pair."""
        return self.write(path, iter_layered_features(polygons), "cell_polygon_layers")


def write_cell_polygons(
    path: Optional[Path | str],
    polygons: Iterable[Any],
    include_holes: bool = False,
) -> Optional[WriteResult]:
    """Write one multipolygon per cell to a gzip-compressed GeoJSON file.

    Returns None without touching the filesystem if ``path`` is unset.
    """
    if not path:
        return None
    return GeoJSONWriter(include_holes=include_holes).write_cells(path, polygons)


def write_cell_layered_polygons(
    path: Optional[Path | str],
    polygons: Iterable[Iterable[tuple[int, Any]]],
    include_holes: bool = False,
) -> Optional[WriteResult]:
    """Write per-layer multipolygons, one feature per (cell, layer) pair."""
    if not path:
        return None
    return GeoJSONWriter(include_holes=include_holes).write_layers(path, polygons)
