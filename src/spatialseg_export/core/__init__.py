"""
Core infrastructure for spatialseg-export.

Provides:
- Configuration management
"""

from spatialseg_export.core.config import (
    ArtifactOutput,
    OutputConfig,
    POLYGON_ARTIFACTS,
    TABLE_ARTIFACTS,
)

__all__ = [
    "ArtifactOutput",
    "OutputConfig",
    "POLYGON_ARTIFACTS",
    "TABLE_ARTIFACTS",
]
