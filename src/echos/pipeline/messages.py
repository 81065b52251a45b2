"""Messages exchanged with the reconstruction coordinator.

The producer side sends exactly one ``InitMessage``, any number of
``FrameMessage`` objects and a closing ``DoneMessage``. The coordinator
answers with events on its outbox queue. Pixel buffers handed over in a
``FrameMessage`` are marked read-only; the sender must not touch them again.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import xarray as xr

from echos.core.types import FrameMapping, PreprocessedFrame
from echos.schemas.param import (
    PreprocessingSettings,
    BeamSettings,
    VolumeGridSettings,
    CalibrationSettings,
)
from echos.sonar.normalizer import DEFAULT_WEIGHT_EPSILON

__all__ = [
    'InitMessage',
    'FrameMessage',
    'DoneMessage',
    'PreprocessedEvent',
    'StageEvent',
    'ProjectionProgressEvent',
    'CompleteEvent',
    'ErrorEvent',
]


# =============================================================================
# Inbound
# =============================================================================

@dataclass(frozen=True)
class InitMessage:
    """Starts a new run and discards whatever the previous run left behind."""
    preprocessing: PreprocessingSettings
    beam: BeamSettings
    grid: VolumeGridSettings
    calibration: CalibrationSettings
    view_mode: str
    track_total_distance_m: float
    mappings: Tuple[FrameMapping, ...]
    weight_epsilon: float = DEFAULT_WEIGHT_EPSILON
    type: str = field(default="init", init=False)


@dataclass(frozen=True)
class FrameMessage:
    """One raw frame. ``pixels`` is (H, W) grayscale or (H, W, 3|4) color."""
    index: int
    time_s: float
    pixels: np.ndarray
    type: str = field(default="frame", init=False)

    @classmethod
    def handoff(cls, index: int, time_s: float, pixels: np.ndarray) -> "FrameMessage":
        """Wrap ``pixels`` and freeze the buffer so the sender cannot reuse it."""
        pixels = np.asarray(pixels)
        pixels.flags.writeable = False
        return cls(index=int(index), time_s=float(time_s), pixels=pixels)


@dataclass(frozen=True)
class DoneMessage:
    """No more frames for the current run."""
    type: str = field(default="done", init=False)


# =============================================================================
# Outbound
# =============================================================================

@dataclass(frozen=True)
class PreprocessedEvent:
    index: int
    count: int
    type: str = field(default="preprocessed", init=False)


@dataclass(frozen=True)
class StageEvent:
    name: str
    type: str = field(default="stage", init=False)


@dataclass(frozen=True)
class ProjectionProgressEvent:
    current: int
    total: int
    type: str = field(default="projection-progress", init=False)


@dataclass(frozen=True)
class CompleteEvent:
    """Finished run: the normalized volume and the preprocessed frames in index order."""
    volume: xr.Dataset
    frames: List[PreprocessedFrame]
    type: str = field(default="complete", init=False)

    @property
    def data(self) -> np.ndarray:
        return self.volume["intensity"].values

    @property
    def dimensions(self) -> Tuple[int, int, int]:
        return tuple(int(v) for v in self.volume.attrs["dimensions"])

    @property
    def extent(self) -> Tuple[float, float, float]:
        return tuple(float(v) for v in self.volume.attrs["extent"])


@dataclass(frozen=True)
class ErrorEvent:
    message: str
    error_type: Optional[str] = None
    type: str = field(default="error", init=False)
