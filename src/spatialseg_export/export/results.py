"""
Write results and export errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from spatialseg_export.export.formats import OutputFormat


class ErrorKind(Enum):
    """Failure categories for a single artifact write."""

    CONFIGURATION = "configuration"
    IO = "io"
    ENCODING = "encoding"


class ExportError(Exception):
    """Raised when an artifact cannot be written."""

    def __init__(
        self,
        message: str,
        path: Optional[Path | str] = None,
        kind: Optional[ErrorKind] = None,
    ):
        super().__init__(message)
        self.path = Path(path) if path is not None else None
        self.kind = kind


class FormatInferenceError(ExportError):
    """Raised when an output format cannot be inferred from a filename."""

    def __init__(self, filename: Path | str):
        super().__init__(
            f"Cannot infer output format for filename: {filename}",
            path=filename,
            kind=ErrorKind.CONFIGURATION,
        )


@dataclass
class WriteResult:
    """Outcome of writing one artifact."""

    artifact: str
    path: Path
    success: bool
    format: Optional[OutputFormat] = None
    n_rows: int = 0
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def failure(
        cls,
        artifact: str,
        path: Path | str,
        kind: ErrorKind,
        message: str,
        fmt: Optional[OutputFormat] = None,
    ) -> "WriteResult":
        return cls(
            artifact=artifact,
            path=Path(path),
            success=False,
            format=fmt,
            error=message,
            error_kind=kind,
        )

    def raise_for_error(self) -> None:
        """Raise ``ExportError`` if this write failed."""
        if not self.success:
            raise ExportError(
                f"Error writing {self.artifact} to {self.path}: {self.error}",
                path=self.path,
                kind=self.error_kind,
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "artifact": self.artifact,
            "path": str(self.path),
            "success": self.success,
            "format": self.format.value if self.format is not None else None,
            "n_rows": self.n_rows,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind is not None else None,
        }
