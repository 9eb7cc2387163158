"""
Export configuration management.

Provides dataclass-based configuration with JSON/YAML serialization.
"""

from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Optional, Any
import json

import yaml

from spatialseg_export.export.formats import OutputFormat

TABLE_ARTIFACTS = (
    "counts",
    "expected_counts",
    "rates",
    "component_params",
    "cell_metadata",
    "transcript_metadata",
    "gene_metadata",
    "voxels",
)

POLYGON_ARTIFACTS = ("cell_polygons", "cell_polygon_layers")


@dataclass
class ArtifactOutput:
    """Output location and format for one table artifact."""

    path: Optional[Path] = None
    """Output file; unset (None or empty) skips the artifact."""

    format: OutputFormat = OutputFormat.INFER
    """Output format; ``INFER`` uses the filename suffix."""

    def __post_init__(self):
        if self.path is not None and str(self.path) != "":
            self.path = Path(self.path)
        else:
            self.path = None
        self.format = OutputFormat.parse(self.format)

    @property
    def enabled(self) -> bool:
        return self.path is not None

    @classmethod
    def from_value(cls, value: Any) -> "ArtifactOutput":
        """Build from a path string, a ``{"path", "format"}`` dict or None."""
        if isinstance(value, ArtifactOutput):
            return value
        if value is None or isinstance(value, (str, Path)):
            return cls(path=value)
        if isinstance(value, dict):
            return cls(**value)
        raise TypeError(f"Cannot build artifact output from {type(value).__name__}")


@dataclass
class OutputConfig:
    """
    Export configuration.

    Example:
        >>> config = OutputConfig(
        ...     output_dir="results",
        ...     counts=ArtifactOutput("counts.csv.gz"),
        ...     cell_metadata=ArtifactOutput("cells.parquet"),
        ...     cell_polygons="cell-polygons.geojson.gz",
        ... )
        >>> exporter = ResultExporter(config)
    """

    output_dir: Optional[Path] = None
    """Base directory for relative output paths."""

    # Table artifacts
    counts: ArtifactOutput = field(default_factory=ArtifactOutput)
    expected_counts: ArtifactOutput = field(default_factory=ArtifactOutput)
    rates: ArtifactOutput = field(default_factory=ArtifactOutput)
    component_params: ArtifactOutput = field(default_factory=ArtifactOutput)
    cell_metadata: ArtifactOutput = field(default_factory=ArtifactOutput)
    transcript_metadata: ArtifactOutput = field(default_factory=ArtifactOutput)
    gene_metadata: ArtifactOutput = field(default_factory=ArtifactOutput)
    voxels: ArtifactOutput = field(default_factory=ArtifactOutput)

    # Polygon artifacts (always gzip-compressed GeoJSON)
    cell_polygons: Optional[Path] = None
    """One MultiPolygon feature per cell."""

    cell_polygon_layers: Optional[Path] = None
    """One MultiPolygon feature per cell and layer."""

    include_holes: bool = False
    """Write polygon interior rings as well as exterior rings."""

    fail_fast: bool = True
    """Abort the export at the first failed artifact."""

    # Logging
    verbose: bool = False
    """Enable verbose logging."""

    log_file: Optional[Path] = None
    """Log file path."""

    def __post_init__(self):
        """Normalize paths and artifact entries."""
        for name in TABLE_ARTIFACTS:
            setattr(self, name, ArtifactOutput.from_value(getattr(self, name)))
        for name in POLYGON_ARTIFACTS + ("output_dir", "log_file"):
            value = getattr(self, name)
            setattr(self, name, Path(value) if value is not None and str(value) != "" else None)

    def resolve_path(self, path: Optional[Path]) -> Optional[Path]:
        """Resolve a relative output path against ``output_dir``."""
        if path is None:
            return None
        if self.output_dir is not None and not path.is_absolute():
            return self.output_dir / path
        return path

    def enabled_artifacts(self) -> list[str]:
        """Names of artifacts with an output path."""
        names = [n for n in TABLE_ARTIFACTS if getattr(self, n).enabled]
        names += [n for n in POLYGON_ARTIFACTS if getattr(self, n) is not None]
        return names

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        d = asdict(self)
        for key, value in d.items():
            if isinstance(value, Path):
                d[key] = str(value)
            elif isinstance(value, dict):
                for k, v in value.items():
                    if isinstance(v, Path):
                        d[key][k] = str(v)
                    elif isinstance(v, OutputFormat):
                        d[key][k] = v.value
        return d

    def to_json(self, path: Path | str) -> None:
        """Save configuration to JSON file."""
        path = Path(path)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "OutputConfig":
        """Create from dictionary, rejecting keys that are not config fields."""
        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            raise KeyError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        return cls(**d)

    @classmethod
    def from_json(cls, path: Path | str) -> "OutputConfig":
        """Load configuration from JSON file."""
        path = Path(path)
        with open(path) as f:
            d = json.load(f)
        return cls.from_dict(d)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "OutputConfig":
        """Load configuration from YAML file.

        The file may hold the configuration at the top level or under an
        ``output`` key.
        """
        path = Path(path)
        with open(path) as f:
            d = yaml.safe_load(f) or {}
        if "output" in d and isinstance(d["output"], dict):
            d = d["output"]
        return cls.from_dict(d)

    @classmethod
    def from_file(cls, path: Path | str) -> "OutputConfig":
        """Load configuration from a ``.json`` or ``.yaml``/``.yml`` file."""
        path = Path(path)
        if path.suffix == ".json":
            return cls.from_json(path)
        return cls.from_yaml(path)
