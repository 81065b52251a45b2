"""Tests for track loading, enrichment and interpolation."""

from datetime import timedelta

import numpy as np
import pandas as pd
import pytest

from echos.contracts import InputError
from echos.core.types import TrackPoint
from echos.gps.enricher import (
    track_from_points,
    track_from_dataframe,
    load_track_csv,
    enrich_trackpoints,
    interpolate_distance,
    interpolate_position,
    track_total_distance,
    track_duration,
)
from helpers.synthetic import make_track, START

pytestmark = pytest.mark.unit


@pytest.fixture
def enriched():
    # 10 segments of 10 m every 10 s -> 100 m over 100 s at 1 m/s
    return enrich_trackpoints(make_track(n_points=11, step_m=10.0, dt_s=10.0))


class TestTrackLoading:

    def test_missing_column_rejected(self):
        df = pd.DataFrame({"lat": [1.0, 2.0], "time": [START, START]})
        with pytest.raises(InputError, match="lon"):
            track_from_dataframe(df)

    def test_single_point_rejected(self):
        with pytest.raises(InputError, match="at least 2 points"):
            track_from_dataframe(make_track(n_points=1))

    def test_sorted_by_time(self):
        track = make_track(n_points=5).iloc[::-1].reset_index(drop=True)
        result = track_from_dataframe(track)
        assert result["time"].is_monotonic_increasing
        assert list(result.columns) == ["lat", "lon", "ele", "time"]

    def test_string_times_parsed_as_utc(self):
        df = pd.DataFrame({
            "lat": [45.0, 45.001],
            "lon": [6.0, 6.0],
            "time": ["2024-06-01T08:00:00Z", "2024-06-01T08:00:10Z"],
        })
        result = track_from_dataframe(df)
        assert str(result["time"].dt.tz) == "UTC"
        assert result["ele"].isna().all()

    def test_load_csv(self, temp_dir):
        path = temp_dir / "track.csv"
        make_track(n_points=4).to_csv(path, index=False)
        track = load_track_csv(path)
        assert len(track) == 4

    def test_from_points(self):
        points = [
            TrackPoint(lat=45.0, lon=6.0, time=START),
            TrackPoint(lat=45.001, lon=6.0, time=START + timedelta(seconds=5), ele=12.0),
        ]
        track = track_from_points(points)
        assert len(track) == 2
        assert np.isnan(track["ele"].iloc[0])
        assert track["ele"].iloc[1] == 12.0


class TestEnrichTrackpoints:

    def test_same_length_and_first_point_zero(self, enriched):
        assert len(enriched) == 11
        first = enriched.iloc[0]
        assert first["cumulative_distance_m"] == 0.0
        assert first["elapsed_s"] == 0.0
        assert first["speed_ms"] == 0.0

    def test_monotonic_distance_and_time(self, enriched):
        assert np.all(np.diff(enriched["cumulative_distance_m"]) >= 0)
        assert np.all(np.diff(enriched["elapsed_s"]) >= 0)

    def test_total_distance_and_duration(self, enriched):
        assert track_total_distance(enriched) == pytest.approx(100.0, rel=1e-6)
        assert track_duration(enriched) == pytest.approx(100.0)

    def test_constant_speed_away_from_start(self, enriched):
        # Windows touching point 0 average in its zero speed.
        speeds = enriched["speed_ms"].to_numpy()
        np.testing.assert_allclose(speeds[3:], 1.0, rtol=1e-6)
        assert 0.0 < speeds[1] < 1.0

    def test_slow_track_reported_immobile(self):
        slow = enrich_trackpoints(make_track(n_points=6, step_m=1.0, dt_s=10.0))
        assert (slow["speed_ms"] == 0.0).all()

    def test_stop_in_middle_zeroes_only_the_stop(self):
        moving = make_track(n_points=5, step_m=10.0, dt_s=10.0)
        parked = moving.iloc[[-1] * 4].copy()
        parked["time"] = [moving["time"].iloc[-1] + timedelta(seconds=10 * (i + 1)) for i in range(4)]
        track = pd.concat([moving, parked], ignore_index=True)

        speeds = enrich_trackpoints(track, smoothing_window=1)["speed_ms"].to_numpy()
        assert speeds[0] == 0.0
        np.testing.assert_allclose(speeds[1:5], 1.0, rtol=1e-6)
        assert (speeds[5:] == 0.0).all()

    def test_accepts_trackpoints(self):
        points = [
            TrackPoint(lat=45.0, lon=6.0, time=START),
            TrackPoint(lat=45.001, lon=6.0, time=START + timedelta(seconds=10)),
        ]
        result = enrich_trackpoints(points)
        assert result["cumulative_distance_m"].iloc[1] > 100

    def test_single_point_rejected(self):
        with pytest.raises(InputError, match="at least 2 points"):
            enrich_trackpoints(make_track(n_points=1))

    def test_unordered_rejected(self):
        track = make_track(n_points=4).iloc[::-1].reset_index(drop=True)
        with pytest.raises(InputError, match="ordered"):
            enrich_trackpoints(track)

    def test_input_not_modified(self):
        track = make_track(n_points=4)
        enrich_trackpoints(track)
        assert "cumulative_distance_m" not in track.columns


class TestInterpolation:

    def test_before_start_is_zero(self, enriched):
        assert interpolate_distance(enriched, -5.0) == 0.0
        assert interpolate_distance(enriched, 0.0) == 0.0

    def test_after_end_is_total(self, enriched):
        total = track_total_distance(enriched)
        assert interpolate_distance(enriched, 100.0) == total
        assert interpolate_distance(enriched, 1e6) == total

    def test_exact_at_samples(self, enriched):
        for i in range(len(enriched)):
            t = enriched["elapsed_s"].iloc[i]
            expected = enriched["cumulative_distance_m"].iloc[i]
            assert interpolate_distance(enriched, t) == pytest.approx(expected)

    def test_linear_between_samples(self, enriched):
        assert interpolate_distance(enriched, 25.0) == pytest.approx(25.0, rel=1e-6)

    def test_monotonic(self, enriched):
        times = np.linspace(-10, 110, 241)
        values = [interpolate_distance(enriched, t) for t in times]
        assert np.all(np.diff(values) >= 0)

    def test_position_blends_coordinates(self, enriched):
        distance, lat, lon = interpolate_position(enriched, 5.0)
        lat0, lat1 = enriched["lat"].iloc[0], enriched["lat"].iloc[1]
        assert lat == pytest.approx((lat0 + lat1) / 2)
        assert lon == pytest.approx(6.0)
        assert distance == pytest.approx(5.0, rel=1e-6)
