"""Core data types for the ECHOS reconstruction pipeline."""

from echos.core.types import (
    TrackPoint,
    FrameMapping,
    PreprocessedFrame,
    VolumeStats,
    VOLUME_DIMS,
    ViewMode,
)

__all__ = ['TrackPoint', 'FrameMapping', 'PreprocessedFrame', 'VolumeStats', 'VOLUME_DIMS', 'ViewMode']
