"""Tests for per-cell fov voting."""

import pytest
import numpy as np

from spatialseg_export.export.fov import NO_FOV, cell_fov_vote
from spatialseg_export.model.transcripts import BACKGROUND_CELL


class TestCellFovVote:
    """Test majority vote over transcript fovs."""

    def test_majority_and_unassigned_cells(self):
        fovs = cell_fov_vote(3, 8, np.array([0, 0, 1]), np.array([5, 5, 7]))

        assert fovs.dtype == np.uint32
        assert fovs.tolist() == [5, 7, NO_FOV]

    def test_majority_wins(self):
        cells = np.array([0, 0, 0, 0, 0])
        transcript_fovs = np.array([2, 1, 2, 0, 2])
        assert cell_fov_vote(1, 3, cells, transcript_fovs).tolist() == [2]

    def test_tie_goes_to_lowest_fov(self):
        cells = np.zeros(6, dtype=np.uint32)
        transcript_fovs = np.array([2, 2, 2, 1, 1, 1])
        assert cell_fov_vote(1, 3, cells, transcript_fovs).tolist() == [1]

    def test_background_transcripts_ignored(self):
        cells = np.array([BACKGROUND_CELL, BACKGROUND_CELL, 1, BACKGROUND_CELL])
        transcript_fovs = np.array([0, 0, 1, 0])

        fovs = cell_fov_vote(2, 2, cells, transcript_fovs)

        assert fovs.tolist() == [NO_FOV, 1]

    def test_no_transcripts(self):
        fovs = cell_fov_vote(4, 2, np.array([], dtype=np.uint32), np.array([], dtype=np.uint32))
        assert fovs.tolist() == [NO_FOV] * 4

    def test_no_fovs(self):
        fovs = cell_fov_vote(2, 0, np.array([], dtype=np.uint32), np.array([], dtype=np.uint32))
        assert fovs.tolist() == [NO_FOV, NO_FOV]

    def test_no_cells(self):
        fovs = cell_fov_vote(0, 3, np.array([BACKGROUND_CELL]), np.array([1]))
        assert len(fovs) == 0

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="cell assignments"):
            cell_fov_vote(2, 2, np.array([0, 1]), np.array([0]))

    def test_sample_transcripts(self, sample_transcripts):
        fovs = cell_fov_vote(4, 2, sample_transcripts.assignment, sample_transcripts.fov)
        assert fovs.tolist() == [0, 1, NO_FOV, NO_FOV]
