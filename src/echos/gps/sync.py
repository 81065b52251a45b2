"""Frame-to-track synchronization.

Video start and end are aligned to the (optionally trimmed) GPS window,
with a manual offset. A frame captured ``t`` seconds into the video lands
at GPS elapsed time::

    gpx_elapsed = trim_start + (t - offset) * (gpx_duration / video_duration)

where ``gpx_duration`` is the track duration minus both trims (at least
one second).
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Tuple

import pandas as pd

from echos.contracts import InputError
from echos.core.types import FrameMapping
from echos.gps.enricher import (
    enrich_trackpoints,
    interpolate_position,
    track_duration,
    track_total_distance,
)
from echos.schemas.param import SyncSettings

__all__ = [
    'SyncContext',
    'create_sync_context',
    'map_frame_to_position',
    'map_all_frames',
    'mappings_to_dataframe',
    'estimate_video_duration_for_distance',
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncContext:
    """Everything needed to place frames on the track for one run."""
    enriched: pd.DataFrame
    gpx_duration_s: float
    video_duration_s: float
    offset_s: float
    trim_start_s: float
    trim_end_s: float

    @property
    def time_scale(self) -> float:
        return self.gpx_duration_s / self.video_duration_s

    @property
    def total_distance_m(self) -> float:
        return track_total_distance(self.enriched)


def create_sync_context(
    track: pd.DataFrame,
    video_duration_s: float,
    sync: SyncSettings,
    smoothing_window: int = 5,
    immobility_threshold_ms: float = 0.3,
) -> SyncContext:
    """Enrich the track (if needed) and capture the time alignment.

    Parameters
    ----------
    track : pd.DataFrame
        Raw or already enriched track.
    video_duration_s : float
        Length of the source video in seconds.
    sync : SyncSettings
        Offset and trims.

    Raises
    ------
    InputError
        If the video duration is not positive or the track is unusable.
    """
    if video_duration_s <= 0:
        raise InputError(f"Video duration must be positive, got {video_duration_s}.")

    if "cumulative_distance_m" in track.columns:
        enriched = track
    else:
        enriched = enrich_trackpoints(
            track,
            smoothing_window=smoothing_window,
            immobility_threshold_ms=immobility_threshold_ms,
        )

    effective = max(1.0, track_duration(enriched) - sync.trim_start_s - sync.trim_end_s)
    ctx = SyncContext(
        enriched=enriched,
        gpx_duration_s=effective,
        video_duration_s=float(video_duration_s),
        offset_s=sync.offset_s,
        trim_start_s=sync.trim_start_s,
        trim_end_s=sync.trim_end_s,
    )
    logger.info(
        "Sync: video %.1f s -> GPS window %.1f s (offset %.2f s, scale %.4f)",
        ctx.video_duration_s, ctx.gpx_duration_s, ctx.offset_s, ctx.time_scale,
    )
    return ctx


def map_frame_to_position(ctx: SyncContext, frame_index: int, frame_time_s: float) -> FrameMapping:
    """Place one frame on the track."""
    gpx_elapsed = ctx.trim_start_s + (frame_time_s - ctx.offset_s) * ctx.time_scale
    distance, lat, lon = interpolate_position(ctx.enriched, gpx_elapsed)
    return FrameMapping(
        frame_index=int(frame_index),
        time_s=float(frame_time_s),
        distance_m=distance,
        lat=lat,
        lon=lon,
    )


def map_all_frames(ctx: SyncContext, frame_times: Iterable[Tuple[int, float]]) -> List[FrameMapping]:
    """Place every ``(index, time_s)`` frame, returned in frame-index order."""
    mappings = [map_frame_to_position(ctx, index, time_s) for index, time_s in frame_times]
    mappings.sort(key=lambda m: m.frame_index)
    return mappings


def mappings_to_dataframe(mappings: Iterable[FrameMapping]) -> pd.DataFrame:
    """Tabulate mappings, one row per frame."""
    return pd.DataFrame(
        [m.to_dict() for m in mappings],
        columns=["frame_index", "time_s", "distance_m", "lat", "lon"],
    )


def estimate_video_duration_for_distance(ctx: SyncContext, target_distance_m: float) -> float:
    """Seconds of video needed to cover ``target_distance_m`` of track."""
    total = ctx.total_distance_m
    if total <= 0:
        return ctx.video_duration_s
    return min(1.0, target_distance_m / total) * ctx.video_duration_s
