"""
Output format selection.

Table artifacts can be written as CSV, gzip-compressed CSV or Parquet. The
format is either given explicitly or inferred from the output filename.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from spatialseg_export.export.results import FormatInferenceError


class OutputFormat(Enum):
    """Requested output format for a table artifact."""

    INFER = "infer"
    CSV = "csv"
    CSV_GZ = "csv-gz"
    PARQUET = "parquet"

    @classmethod
    def parse(cls, value: "OutputFormat | str") -> "OutputFormat":
        """Parse a format name such as ``"csv.gz"`` or ``"parquet"``."""
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower().replace(".", "-").replace("_", "-")
        try:
            return cls(name)
        except ValueError:
            choices = ", ".join(f.value for f in cls)
            raise ValueError(f"Unknown output format '{value}' (choose from {choices})") from None


# Checked in order; ".csv.gz" must precede ".csv".
SUFFIX_FORMATS: tuple[tuple[str, OutputFormat], ...] = (
    (".csv.gz", OutputFormat.CSV_GZ),
    (".csv", OutputFormat.CSV),
    (".parquet", OutputFormat.PARQUET),
)


def infer_format_from_filename(filename: Path | str) -> OutputFormat:
    """Infer the output format from a filename suffix.

    Raises
    ------
    FormatInferenceError
        If the suffix is not recognised.
    """
    name = str(filename)
    for suffix, fmt in SUFFIX_FORMATS:
        if name.endswith(suffix):
            return fmt
    raise FormatInferenceError(filename)


def resolve_format(requested: OutputFormat | str, filename: Path | str) -> OutputFormat:
    """Resolve a requested format into a concrete one.

    Parameters
    ----------
    requested : OutputFormat or str
        Requested format; ``INFER`` defers to the filename.
    filename : Path or str
        Output filename.

    Returns
    -------
    OutputFormat
        One of ``CSV``, ``CSV_GZ`` or ``PARQUET``.
    """
    requested = OutputFormat.parse(requested)
    if requested is OutputFormat.INFER:
        return infer_format_from_filename(filename)
    return requested
