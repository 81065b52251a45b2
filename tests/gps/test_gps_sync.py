"""Tests for frame-to-track synchronization."""

import pytest

from echos.contracts import InputError
from echos.gps.enricher import enrich_trackpoints
from echos.gps.sync import (
    create_sync_context,
    map_frame_to_position,
    map_all_frames,
    mappings_to_dataframe,
    estimate_video_duration_for_distance,
)
from echos.schemas.param import SyncSettings
from helpers.synthetic import make_track

pytestmark = pytest.mark.unit


@pytest.fixture
def track():
    # 100 m over 100 s
    return make_track(n_points=11, step_m=10.0, dt_s=10.0)


class TestSyncContext:

    def test_time_scale_stretches_video_onto_track(self, track):
        ctx = create_sync_context(track, 50.0, SyncSettings())
        assert ctx.gpx_duration_s == pytest.approx(100.0)
        assert ctx.time_scale == pytest.approx(2.0)
        assert ctx.total_distance_m == pytest.approx(100.0, rel=1e-6)

    def test_trims_shorten_gps_window(self, track):
        ctx = create_sync_context(track, 60.0, SyncSettings(trim_start_s=20.0, trim_end_s=20.0))
        assert ctx.gpx_duration_s == pytest.approx(60.0)
        assert ctx.time_scale == pytest.approx(1.0)

    def test_effective_window_never_below_one_second(self, track):
        ctx = create_sync_context(track, 10.0, SyncSettings(trim_start_s=80.0, trim_end_s=50.0))
        assert ctx.gpx_duration_s == 1.0

    def test_non_positive_video_duration_rejected(self, track):
        with pytest.raises(InputError, match="Video duration"):
            create_sync_context(track, 0.0, SyncSettings())

    def test_enriched_track_reused(self, track):
        enriched = enrich_trackpoints(track)
        ctx = create_sync_context(enriched, 100.0, SyncSettings())
        assert ctx.enriched is enriched


class TestFrameMapping:

    def test_frame_scaled_into_track_time(self, track):
        ctx = create_sync_context(track, 50.0, SyncSettings())
        mapping = map_frame_to_position(ctx, 3, 10.0)
        assert mapping.frame_index == 3
        assert mapping.time_s == 10.0
        assert mapping.distance_m == pytest.approx(20.0, rel=1e-6)

    def test_offset_shifts_mapping(self, track):
        ctx = create_sync_context(track, 100.0, SyncSettings(offset_s=5.0))
        assert map_frame_to_position(ctx, 0, 5.0).distance_m == 0.0
        assert map_frame_to_position(ctx, 1, 15.0).distance_m == pytest.approx(10.0, rel=1e-6)

    def test_trim_start_offsets_track_time(self, track):
        ctx = create_sync_context(track, 60.0, SyncSettings(trim_start_s=20.0, trim_end_s=20.0))
        assert map_frame_to_position(ctx, 0, 0.0).distance_m == pytest.approx(20.0, rel=1e-6)

    def test_frames_past_the_end_clamp_to_total(self, track):
        ctx = create_sync_context(track, 100.0, SyncSettings())
        assert map_frame_to_position(ctx, 0, 500.0).distance_m == pytest.approx(ctx.total_distance_m)

    def test_map_all_frames_sorted_by_index(self, track):
        ctx = create_sync_context(track, 100.0, SyncSettings())
        mappings = map_all_frames(ctx, [(2, 20.0), (0, 0.0), (1, 10.0)])
        assert [m.frame_index for m in mappings] == [0, 1, 2]
        distances = [m.distance_m for m in mappings]
        assert distances == sorted(distances)

    def test_mappings_to_dataframe(self, track):
        ctx = create_sync_context(track, 100.0, SyncSettings())
        df = mappings_to_dataframe(map_all_frames(ctx, [(0, 0.0), (1, 50.0)]))
        assert list(df.columns) == ["frame_index", "time_s", "distance_m", "lat", "lon"]
        assert len(df) == 2


class TestDurationEstimate:

    def test_half_distance_needs_half_video(self, track):
        ctx = create_sync_context(track, 80.0, SyncSettings())
        assert estimate_video_duration_for_distance(ctx, 50.0) == pytest.approx(40.0, rel=1e-6)

    def test_capped_at_full_video(self, track):
        ctx = create_sync_context(track, 80.0, SyncSettings())
        assert estimate_video_duration_for_distance(ctx, 1000.0) == pytest.approx(80.0)
