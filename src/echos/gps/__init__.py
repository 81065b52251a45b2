"""GPS track enrichment and frame synchronization."""

from echos.gps.geodesy import haversine_distance, cumulative_distances
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
from echos.gps.sync import (
    SyncContext,
    create_sync_context,
    map_frame_to_position,
    map_all_frames,
    mappings_to_dataframe,
    estimate_video_duration_for_distance,
)

__all__ = [
    'haversine_distance',
    'cumulative_distances',
    'track_from_points',
    'track_from_dataframe',
    'load_track_csv',
    'enrich_trackpoints',
    'interpolate_distance',
    'interpolate_position',
    'track_total_distance',
    'track_duration',
    'SyncContext',
    'create_sync_context',
    'map_frame_to_position',
    'map_all_frames',
    'mappings_to_dataframe',
    'estimate_video_duration_for_distance',
]
