"""
Assign cells to fields of view by majority vote over their transcripts.
"""

from __future__ import annotations

import numpy as np

from spatialseg_export.model.transcripts import BACKGROUND_CELL

# Marks cells with no assigned transcripts
NO_FOV = np.iinfo(np.uint32).max


def cell_fov_vote(
    ncells: int,
    nfovs: int,
    cell_assignments: np.ndarray,
    transcript_fovs: np.ndarray,
) -> np.ndarray:
    """Pick each cell's most common transcript fov.

    Ties go to the lowest fov index. Cells with no non-background
    transcripts get ``NO_FOV``.

    Parameters
    ----------
    ncells : int
        Number of cells.
    nfovs : int
        Number of fields of view.
    cell_assignments : np.ndarray
        Cell index per transcript, ``BACKGROUND_CELL`` if unassigned.
    transcript_fovs : np.ndarray
        Fov index per transcript.

    Returns
    -------
    np.ndarray
        ``uint32`` fov index per cell.
    """
    cells = np.asarray(cell_assignments, dtype=np.uint32)
    fovs = np.asarray(transcript_fovs, dtype=np.intp)
    if cells.shape != fovs.shape:
        raise ValueError(
            f"Got {cells.shape[0]} cell assignments but {fovs.shape[0]} transcript fovs"
        )

    winners = np.full(ncells, NO_FOV, dtype=np.uint32)
    if ncells == 0 or nfovs == 0:
        return winners

    mask = cells != BACKGROUND_CELL
    votes = np.zeros((ncells, nfovs), dtype=np.uint32)
    np.add.at(votes, (cells[mask].astype(np.intp), fovs[mask]), 1)

    # argmax returns the first maximum, i.e. the lowest fov index
    best = votes.argmax(axis=1).astype(np.uint32)
    voted = votes.max(axis=1) > 0
    winners[voted] = best[voted]
    return winners
