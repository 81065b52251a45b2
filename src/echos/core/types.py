"""Shared data types passed between the reconstruction stages.

Tracks and mapping tables travel as pandas DataFrames and the finished
volume as an ``xarray.Dataset``; the types here cover the per-item records
that flow through the streaming pipeline.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Optional

import numpy as np

__all__ = [
    'TrackPoint',
    'FrameMapping',
    'PreprocessedFrame',
    'VolumeStats',
    'VOLUME_DIMS',
    'ViewMode',
]

# Array axis order of every volume (slowest to fastest). The matching
# ``dimensions`` attribute is listed fastest first: (lateral, depth, track).
VOLUME_DIMS = ("track", "depth", "lateral")


@dataclass(frozen=True)
class TrackPoint:
    """One parsed GPS fix."""
    lat: float
    lon: float
    time: datetime
    ele: Optional[float] = None


@dataclass(frozen=True)
class FrameMapping:
    """Spatial placement of one video frame along the track."""
    frame_index: int
    time_s: float
    distance_m: float
    lat: float
    lon: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PreprocessedFrame:
    """Cleaned single-channel frame.

    ``intensity`` is a row-major ``(height, width)`` float32 array in [0, 1].
    Row 0 is the water surface, the last row is the maximum depth.
    """
    index: int
    time_s: float
    intensity: np.ndarray

    @property
    def width(self) -> int:
        return int(self.intensity.shape[1])

    @property
    def height(self) -> int:
        return int(self.intensity.shape[0])

    @classmethod
    def from_pixels(cls, index: int, time_s: float, pixels: np.ndarray) -> "PreprocessedFrame":
        """Wrap an already single-channel 8-bit or float image without cleaning it."""
        pixels = np.asarray(pixels)
        if pixels.dtype == np.uint8:
            intensity = pixels.astype(np.float32) / 255.0
        else:
            intensity = np.clip(pixels.astype(np.float32), 0.0, 1.0)
        return cls(index=int(index), time_s=float(time_s), intensity=intensity)


@dataclass(frozen=True)
class VolumeStats:
    """Percentile statistics over the non-empty voxels of a finalized volume."""
    min: float = 0.0
    max: float = 0.0
    mean: float = 0.0
    median: float = 0.0
    p25: float = 0.0
    p75: float = 0.0
    p95: float = 0.0
    non_zero_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class ViewMode(str, Enum):
    """Accumulation strategy, chosen once per run."""
    INSTRUMENT = "instrument"
    SPATIAL = "spatial"
