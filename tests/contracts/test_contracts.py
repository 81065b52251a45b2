"""Tests for pipeline contracts.

These tests verify that contracts are enforced at stage boundaries.
Each contract is called directly with valid and broken stage outputs.
"""

import pytest
import xarray as xr
import pandas as pd
import numpy as np

pytestmark = pytest.mark.unit

from echos.contracts import (
    ContractViolation,
    PIPELINE_INVARIANTS,
    STAGE_REQUIREMENTS,
    require,
    assert_enriched_track,
    assert_preprocessed_frame,
    assert_frames_match_mappings,
    assert_volume_finalized,
)
from echos.core.types import PreprocessedFrame
from echos.gps.enricher import enrich_trackpoints
from echos.sonar.volume import make_volume_dataset
from helpers.synthetic import make_track


class TestRequire:

    def test_passes_silently(self):
        require(True, "never raised")

    def test_raises_with_message(self):
        with pytest.raises(ContractViolation, match="boom"):
            require(False, "boom")


class TestTrackContract:
    """Test track enrichment contract."""

    @pytest.fixture
    def enriched(self):
        return enrich_trackpoints(make_track(n_points=5))

    def test_passes_with_enriched_track(self, enriched):
        assert_enriched_track(enriched, 5)

    def test_fails_without_distance_column(self, enriched):
        with pytest.raises(ContractViolation, match="missing 'cumulative_distance_m'"):
            assert_enriched_track(enriched.drop(columns="cumulative_distance_m"), 5)

    def test_fails_on_row_count(self, enriched):
        with pytest.raises(ContractViolation, match="4 inputs"):
            assert_enriched_track(enriched, 4)

    def test_fails_on_decreasing_distance(self, enriched):
        broken = enriched.copy()
        broken.loc[3, "cumulative_distance_m"] = 0.5
        with pytest.raises(ContractViolation, match="distance decreases"):
            assert_enriched_track(broken, 5)

    def test_fails_on_negative_speed(self, enriched):
        broken = enriched.copy()
        broken.loc[2, "speed_ms"] = -1.0
        with pytest.raises(ContractViolation, match="negative speed"):
            assert_enriched_track(broken, 5)


class TestFrameContract:
    """Test preprocessing stage contract."""

    def test_passes_with_valid_frame(self):
        frame = PreprocessedFrame(0, 0.0, np.full((4, 3), 0.5, dtype=np.float32))
        assert_preprocessed_frame(frame)

    def test_fails_on_wrong_dtype(self):
        frame = PreprocessedFrame(0, 0.0, np.full((4, 3), 0.5, dtype=np.float64))
        with pytest.raises(ContractViolation, match="float32"):
            assert_preprocessed_frame(frame)

    def test_fails_on_three_dims(self):
        frame = PreprocessedFrame(0, 0.0, np.zeros((4, 3, 1), dtype=np.float32))
        with pytest.raises(ContractViolation, match="3 dims"):
            assert_preprocessed_frame(frame)

    def test_fails_outside_unit_range(self):
        frame = PreprocessedFrame(7, 0.0, np.full((4, 3), 1.5, dtype=np.float32))
        with pytest.raises(ContractViolation, match="frame 7"):
            assert_preprocessed_frame(frame)

    def test_frames_match_mappings(self):
        assert_frames_match_mappings([0, 1, 2], [0, 1, 2])

    def test_missing_frame(self):
        with pytest.raises(ContractViolation, match=r"mapped indices \[1\]"):
            assert_frames_match_mappings([0, 2], [0, 1, 2])

    def test_unmapped_frame(self):
        with pytest.raises(ContractViolation, match="have no mapping"):
            assert_frames_match_mappings([0, 1, 5], [0, 1])


class TestVolumeContract:
    """Test normalization stage contract."""

    def make(self, data):
        return make_volume_dataset(data, extent=(1.0, 1.0, 1.0))

    def test_passes_with_valid_volume(self):
        assert_volume_finalized(self.make(np.full((2, 3, 4), 0.25, dtype=np.float32)))

    def test_fails_without_intensity(self):
        with pytest.raises(ContractViolation, match="missing 'intensity'"):
            assert_volume_finalized(xr.Dataset(attrs={"dimensions": (1, 1, 1)}))

    def test_fails_on_nan(self):
        data = np.zeros((2, 2, 2), dtype=np.float32)
        data[1, 1, 1] = np.nan
        with pytest.raises(ContractViolation, match="NaN"):
            assert_volume_finalized(self.make(data))

    def test_fails_outside_unit_range(self):
        with pytest.raises(ContractViolation, match="outside"):
            assert_volume_finalized(self.make(np.full((2, 2, 2), 2.0, dtype=np.float32)))

    def test_fails_on_dimension_mismatch(self):
        volume = self.make(np.zeros((2, 3, 4), dtype=np.float32))
        volume.attrs["dimensions"] = (4, 3, 5)
        with pytest.raises(ContractViolation, match="does not match"):
            assert_volume_finalized(volume)

    def test_fails_on_wrong_dim_order(self):
        volume = self.make(np.zeros((2, 3, 4), dtype=np.float32))
        swapped = volume.transpose("lateral", "depth", "track")
        with pytest.raises(ContractViolation, match="dims are"):
            assert_volume_finalized(swapped)


class TestInvariantRegistry:

    def test_every_stage_documented_and_required(self):
        assert set(PIPELINE_INVARIANTS) == set(STAGE_REQUIREMENTS)
        for stage, rules in PIPELINE_INVARIANTS.items():
            assert rules, stage
            assert STAGE_REQUIREMENTS[stage] in ("REQUIRED", "OPTIONAL")
