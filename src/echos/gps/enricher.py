"""Track enrichment and temporal interpolation along a GPS track.

A track is carried as a pandas DataFrame with one row per fix and columns
``lat``, ``lon``, ``ele`` and ``time`` (tz-aware UTC). Enrichment adds
``cumulative_distance_m``, ``elapsed_s`` and ``speed_ms``.
"""

import logging
from pathlib import Path
from typing import Sequence, Union

import numpy as np
import pandas as pd

from echos.contracts import InputError, assert_enriched_track
from echos.core.types import TrackPoint
from echos.gps.geodesy import cumulative_distances

__all__ = [
    'track_from_points',
    'track_from_dataframe',
    'load_track_csv',
    'enrich_trackpoints',
    'interpolate_distance',
    'interpolate_position',
    'track_total_distance',
    'track_duration',
]

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("lat", "lon", "time")


def track_from_points(points: Sequence[TrackPoint]) -> pd.DataFrame:
    """Build a track DataFrame from parsed fixes, keeping their order."""
    frame = pd.DataFrame(
        {
            "lat": [p.lat for p in points],
            "lon": [p.lon for p in points],
            "ele": [np.nan if p.ele is None else p.ele for p in points],
            "time": [p.time for p in points],
        }
    )
    if len(frame):
        frame["time"] = pd.to_datetime(frame["time"], utc=True)
    return frame


def track_from_dataframe(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize an arbitrary table of fixes into a track.

    Times are parsed as UTC, rows are stably sorted by time and rows with
    missing coordinates are dropped.

    Raises
    ------
    InputError
        If a required column is missing or fewer than two fixes remain.
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise InputError(f"Track is missing required columns: {missing}")

    track = df.loc[:, [c for c in ("lat", "lon", "ele", "time") if c in df.columns]].copy()
    if "ele" not in track.columns:
        track["ele"] = np.nan
    track["time"] = pd.to_datetime(track["time"], utc=True)
    track = track.dropna(subset=["lat", "lon", "time"])
    track = track.sort_values("time", kind="stable").reset_index(drop=True)

    if len(track) < 2:
        raise InputError(f"Track must contain at least 2 points, got {len(track)}.")
    return track[["lat", "lon", "ele", "time"]]


def load_track_csv(path: Union[str, Path]) -> pd.DataFrame:
    """Read a CSV of fixes (columns lat, lon, time and optionally ele)."""
    df = pd.read_csv(path)
    track = track_from_dataframe(df)
    logger.info("Loaded track %s: %d points", Path(path).name, len(track))
    return track


def enrich_trackpoints(
    track: Union[pd.DataFrame, Sequence[TrackPoint]],
    smoothing_window: int = 5,
    immobility_threshold_ms: float = 0.3,
) -> pd.DataFrame:
    """Add cumulative distance, elapsed time and smoothed speed to a track.

    Parameters
    ----------
    track : pd.DataFrame or sequence of TrackPoint
        Fixes ordered by time.
    smoothing_window : int, optional
        Width of the centred moving average applied to raw speeds. Near the
        ends the window shrinks to the available neighbours.
    immobility_threshold_ms : float, optional
        Smoothed speeds below this value (m/s) are reported as 0.

    Returns
    -------
    pd.DataFrame
        Same rows and order as the input plus ``cumulative_distance_m``,
        ``elapsed_s`` and ``speed_ms``. The first point has all three at 0.

    Raises
    ------
    InputError
        If the track has fewer than two points or is not ordered by time.
    """
    if not isinstance(track, pd.DataFrame):
        track = track_from_points(track)
    if len(track) < 2:
        raise InputError(f"Track must contain at least 2 points, got {len(track)}.")

    enriched = track.reset_index(drop=True).copy()
    times = pd.to_datetime(enriched["time"], utc=True)
    elapsed = (times - times.iloc[0]).dt.total_seconds().to_numpy()
    if np.any(np.diff(elapsed) < 0):
        raise InputError("Trackpoints must be ordered by time.")

    distances = cumulative_distances(enriched["lat"].to_numpy(), enriched["lon"].to_numpy())

    dd = np.diff(distances)
    dt = np.diff(elapsed)
    raw_speed = np.zeros(len(enriched), dtype=np.float64)
    moving = dt > 0
    raw_speed[1:][moving] = dd[moving] / dt[moving]

    smoothed = (
        pd.Series(raw_speed)
        .rolling(window=smoothing_window, center=True, min_periods=1)
        .mean()
        .to_numpy(dtype=np.float64, copy=True)
    )
    smoothed[smoothed < immobility_threshold_ms] = 0.0
    smoothed[0] = 0.0

    enriched["time"] = times
    enriched["cumulative_distance_m"] = distances
    enriched["elapsed_s"] = elapsed
    enriched["speed_ms"] = smoothed

    assert_enriched_track(enriched, len(track))
    logger.debug(
        "Enriched %d points: %.1f m over %.1f s",
        len(enriched), distances[-1], elapsed[-1],
    )
    return enriched


def _bracket(enriched: pd.DataFrame, elapsed_s: float):
    """Return (lo, hi, t) such that the sample lies between rows lo and hi."""
    elapsed = enriched["elapsed_s"].to_numpy()
    lo = int(np.searchsorted(elapsed, elapsed_s, side="right")) - 1
    lo = min(max(lo, 0), len(elapsed) - 2)
    hi = lo + 1
    dt = elapsed[hi] - elapsed[lo]
    t = (elapsed_s - elapsed[lo]) / dt if dt > 0 else 0.0
    return lo, hi, t


def interpolate_position(enriched: pd.DataFrame, elapsed_s: float):
    """Distance, latitude and longitude at an arbitrary elapsed time.

    Times at or before the start give the first point; times at or after the
    end give the last point. In between, the two bracketing fixes are
    blended linearly by elapsed time.

    Returns
    -------
    tuple of float
        ``(distance_m, lat, lon)``
    """
    if elapsed_s <= 0:
        row = enriched.iloc[0]
        return float(row["cumulative_distance_m"]), float(row["lat"]), float(row["lon"])

    last = enriched.iloc[-1]
    if elapsed_s >= last["elapsed_s"]:
        return float(last["cumulative_distance_m"]), float(last["lat"]), float(last["lon"])

    lo, hi, t = _bracket(enriched, elapsed_s)
    p0 = enriched.iloc[lo]
    p1 = enriched.iloc[hi]
    distance = p0["cumulative_distance_m"] + t * (p1["cumulative_distance_m"] - p0["cumulative_distance_m"])
    lat = p0["lat"] + t * (p1["lat"] - p0["lat"])
    lon = p0["lon"] + t * (p1["lon"] - p0["lon"])
    return float(distance), float(lat), float(lon)


def interpolate_distance(enriched: pd.DataFrame, elapsed_s: float) -> float:
    """Distance along the track in meters at ``elapsed_s`` seconds from its start.

    Returns 0 for ``elapsed_s <= 0`` and the total distance at or after the
    last fix. Monotonic in ``elapsed_s`` and exact at sample times.
    """
    return interpolate_position(enriched, elapsed_s)[0]


def track_total_distance(enriched: pd.DataFrame) -> float:
    """Total along-track distance in meters."""
    return float(enriched["cumulative_distance_m"].iloc[-1])


def track_duration(enriched: pd.DataFrame) -> float:
    """Seconds between the first and last fix."""
    return float(enriched["elapsed_s"].iloc[-1])
