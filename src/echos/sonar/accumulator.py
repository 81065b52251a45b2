"""Volume accumulation from preprocessed frames and their track mappings.

Two strategies, selected once per run by ``ViewMode``:

**instrument**
    Direct resample. Frames are ordered by mapped distance and blended
    linearly onto a regular track grid of ``y_step_m`` slices. Every voxel is
    written exactly once and no weights are kept.

**spatial**
    Probabilistic conic projection. Each frame row is a depth sample under
    a cone of half-angle ``beam_angle_deg / 2``; each column is a lateral
    offset within the cone radius at that depth. Intensities are spread
    with a Gaussian lateral falloff and accumulated as weighted sums, so the
    result does not depend on frame order.

Both return finalized volumes (see :mod:`echos.sonar.volume`) whose array
axes are (track, depth, lateral).
"""

import logging
import math
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import xarray as xr

from echos.contracts import InputError
from echos.core.types import FrameMapping, PreprocessedFrame, ViewMode
from echos.schemas.param import BeamSettings, CalibrationSettings, VolumeGridSettings
from echos.sonar.normalizer import DEFAULT_WEIGHT_EPSILON, normalize_volume
from echos.sonar.volume import ProbabilisticVolume, make_volume_dataset

__all__ = [
    'LARGE_VOLUME_MB',
    'MIN_PROJECTED_INTENSITY',
    'num_track_slices',
    'estimate_volume',
    'estimate_volume_memory_mb',
    'build_instrument_volume',
    'create_spatial_volume',
    'project_frame',
    'build_spatial_volume',
    'build_volume',
]

logger = logging.getLogger(__name__)

LARGE_VOLUME_MB = 1024
MIN_PROJECTED_INTENSITY = 0.001
LATERAL_MARGIN = 2.5
SLICE_RATIO_TOLERANCE = 1e-9

ProgressCallback = Callable[[int, int], None]


def _check_inputs(frames: Sequence[PreprocessedFrame], mappings: Sequence[FrameMapping]) -> None:
    if len(frames) == 0:
        raise InputError("No frames to build volume from.")
    if len(frames) != len(mappings):
        raise InputError(
            f"Frame count ({len(frames)}) does not match mapping count ({len(mappings)})."
        )


# =============================================================================
# Instrument mode
# =============================================================================

def num_track_slices(total_distance_m: float, y_step_m: float) -> int:
    """Number of resampled track slices covering ``total_distance_m``.

    Ratios within ``SLICE_RATIO_TOLERANCE`` of a whole number count as that
    number, so float noise in the track distance cannot add a slice.
    """
    if total_distance_m <= 0:
        return 1
    ratio = total_distance_m / y_step_m
    return max(math.ceil(ratio - SLICE_RATIO_TOLERANCE), 0) + 1


def estimate_volume(crop_width: int, crop_height: int, total_distance_m: float,
                    y_step_m: float, downscale_factor: float = 1.0) -> dict:
    """Instrument-mode dimensions and float32 size before building.

    Returns
    -------
    dict
        ``dimensions`` as (lateral, depth, track) and ``estimated_mb``.
    """
    dim_x = round(crop_width * downscale_factor)
    dim_y = round(crop_height * downscale_factor)
    dim_z = num_track_slices(total_distance_m, y_step_m)
    estimated_mb = dim_x * dim_y * dim_z * 4 / (1024 * 1024)
    return {"dimensions": (dim_x, dim_y, dim_z), "estimated_mb": estimated_mb}


def build_instrument_volume(
    frames: Sequence[PreprocessedFrame],
    mappings: Sequence[FrameMapping],
    calibration: CalibrationSettings,
) -> xr.Dataset:
    """Resample frames onto a regular distance grid.

    Frames and mappings are paired by position. The pairs are ordered by
    mapped distance; slice ``i`` sits at ``min_distance + i * y_step_m`` and
    blends the two frames bracketing it, with the blend factor clamped to
    [0, 1]. When all frames share one distance a single slice is produced
    from the first of them.

    Raises
    ------
    InputError
        On an empty frame set, a count mismatch, or frames of differing size.
    """
    _check_inputs(frames, mappings)

    shapes = {f.intensity.shape for f in frames}
    if len(shapes) != 1:
        raise InputError(f"All frames must share one size, got {sorted(shapes)}")
    height, width = next(iter(shapes))

    order = sorted(range(len(frames)), key=lambda i: mappings[i].distance_m)
    distances = np.array([mappings[i].distance_m for i in order], dtype=np.float64)
    stack = np.stack([frames[i].intensity for i in order]).astype(np.float32)

    min_dist = float(distances[0])
    total = float(distances[-1] - distances[0])
    n_slices = num_track_slices(total, calibration.y_step_m)

    estimated_mb = width * height * n_slices * 4 / (1024 * 1024)
    if estimated_mb > LARGE_VOLUME_MB:
        logger.warning(
            "Volume size will be ~%.0f MB. Consider reducing resolution.", estimated_mb
        )
    logger.info(
        "Building instrument volume: %dx%dx%d (%.1f MB) from %d frames",
        width, height, n_slices, estimated_mb, len(frames),
    )

    if total <= 0 or len(frames) == 1:
        data = stack[:1].copy()
    else:
        targets = min_dist + np.arange(n_slices) * calibration.y_step_m
        lo = np.searchsorted(distances, targets, side="right") - 1
        lo = np.clip(lo, 0, len(distances) - 2)
        hi = lo + 1
        span = distances[hi] - distances[lo]
        with np.errstate(divide="ignore", invalid="ignore"):
            t = np.where(span > 0, (targets - distances[lo]) / span, 0.0)
        t = np.clip(t, 0.0, 1.0).astype(np.float32)[:, None, None]
        data = stack[lo] * (1.0 - t) + stack[hi] * t

    spacing_lateral = calibration.depth_max_m / height
    extent = (
        width * spacing_lateral,
        calibration.depth_max_m,
        data.shape[0] * calibration.y_step_m,
    )
    return make_volume_dataset(
        np.clip(data, 0.0, 1.0),
        extent=extent,
        origin=(0.0, 0.0, 0.0),
        view_mode=ViewMode.INSTRUMENT.value,
        total_distance_m=total,
        depth_max_m=calibration.depth_max_m,
        source_frame_count=len(frames),
        resampled_slice_count=data.shape[0],
    )


# =============================================================================
# Spatial (conic) mode
# =============================================================================

def _half_angle(beam: BeamSettings) -> float:
    return math.radians(beam.beam_angle_deg / 2)


def estimate_volume_memory_mb(grid: VolumeGridSettings) -> float:
    """Float32 data plus weights for a spatial grid, in MB."""
    return grid.res_x * grid.res_y * grid.res_z * 8 / (1024 * 1024)


def create_spatial_volume(beam: BeamSettings, grid: VolumeGridSettings,
                          track_total_distance_m: float) -> ProbabilisticVolume:
    """Empty accumulation grid sized by the cone and the track length.

    Dimensions are (res_x lateral, res_z depth, res_y track); the lateral
    axis spans 2.5 times the cone radius at maximum depth, centred on the
    beam axis.
    """
    max_radius = beam.depth_max_m * math.tan(_half_angle(beam))
    extent_x = max_radius * LATERAL_MARGIN
    return ProbabilisticVolume.empty(
        dimensions=(grid.res_x, grid.res_z, grid.res_y),
        extent=(extent_x, beam.depth_max_m, max(track_total_distance_m, 0.0)),
        origin=(-extent_x / 2, 0.0, 0.0),
    )


def _cone_footprint(height: int, width: int, volume: ProbabilisticVolume,
                    beam: BeamSettings) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Per-pixel (depth index, lateral index, weight) for a frame size.

    Pixels outside the near-field..max-depth window or the grid get index -1.
    """
    res_x, res_depth, _ = volume.dimensions
    extent_x, extent_depth, _ = volume.extent
    origin_x = volume.origin[0]
    half_angle = _half_angle(beam)

    rows = np.arange(height, dtype=np.float64)
    depth = rows / height * beam.depth_max_m
    radius = depth * math.tan(half_angle)
    sigma = beam.lateral_falloff_sigma * radius

    di = np.floor(depth / extent_depth * res_depth).astype(np.int64)
    di[(depth < beam.near_field_m) | (di < 0) | (di >= res_depth)] = -1

    cols = np.arange(width, dtype=np.float64)
    normalized_col = (cols / width - 0.5) * 2
    lateral = normalized_col[None, :] * radius[:, None]

    two_sigma_sq = (2 * sigma * sigma)[:, None]
    with np.errstate(divide="ignore", invalid="ignore"):
        weight = np.where(two_sigma_sq > 0, np.exp(-(lateral ** 2) / two_sigma_sq), 1.0)

    xi = np.floor((lateral - origin_x) / extent_x * res_x).astype(np.int64)
    xi[(xi < 0) | (xi >= res_x)] = -1

    di_full = np.broadcast_to(di[:, None], (height, width))
    return di_full, xi, weight


def project_frame(volume: ProbabilisticVolume, frame: PreprocessedFrame, distance_m: float,
                  beam: BeamSettings, _footprints: Optional[Dict] = None) -> None:
    """Accumulate one frame into ``volume`` at ``distance_m`` along the track."""
    res_x, res_depth, res_track = volume.dimensions
    extent_track = volume.extent[2]

    ti = math.floor(distance_m / extent_track * (res_track - 1)) if extent_track > 0 else 0
    if ti < 0 or ti >= res_track:
        logger.debug("Frame %d at %.2f m falls outside the track grid", frame.index, distance_m)
        return

    key = frame.intensity.shape
    if _footprints is not None and key in _footprints:
        di, xi, weight = _footprints[key]
    else:
        di, xi, weight = _cone_footprint(frame.height, frame.width, volume, beam)
        if _footprints is not None:
            _footprints[key] = (di, xi, weight)

    intensity = frame.intensity.astype(np.float64)
    mask = (intensity >= MIN_PROJECTED_INTENSITY) & (di >= 0) & (xi >= 0)
    if not mask.any():
        return

    flat = di[mask] * res_x + xi[mask]
    w = weight[mask]
    plane = res_depth * res_x
    volume.data[ti] += np.bincount(flat, weights=intensity[mask] * w, minlength=plane).reshape(res_depth, res_x)
    volume.weights[ti] += np.bincount(flat, weights=w, minlength=plane).reshape(res_depth, res_x)


def build_spatial_volume(
    frames: Sequence[PreprocessedFrame],
    mappings: Sequence[FrameMapping],
    beam: BeamSettings,
    grid: VolumeGridSettings,
    track_total_distance_m: float,
    on_progress: Optional[ProgressCallback] = None,
) -> ProbabilisticVolume:
    """Project every frame through the beam cone into a fresh grid.

    ``on_progress(frames_processed, total_frames)`` is called after each
    frame. Frames and mappings are paired by position.

    Raises
    ------
    InputError
        On an empty frame set or a count mismatch.
    """
    _check_inputs(frames, mappings)

    volume = create_spatial_volume(beam, grid, track_total_distance_m)
    logger.info(
        "Projecting %d frames into %dx%dx%d grid (%.1f MB)",
        len(frames), *volume.dimensions, estimate_volume_memory_mb(grid),
    )

    footprints: Dict = {}
    total = len(frames)
    for i, (frame, mapping) in enumerate(zip(frames, mappings)):
        project_frame(volume, frame, mapping.distance_m, beam, footprints)
        if on_progress is not None:
            on_progress(i + 1, total)

    return volume


# =============================================================================
# Dispatch
# =============================================================================

def build_volume(
    view_mode,
    frames: Sequence[PreprocessedFrame],
    mappings: Sequence[FrameMapping],
    calibration: CalibrationSettings,
    beam: BeamSettings,
    grid: VolumeGridSettings,
    track_total_distance_m: float,
    on_progress: Optional[ProgressCallback] = None,
    weight_epsilon: float = DEFAULT_WEIGHT_EPSILON,
) -> xr.Dataset:
    """Build and finalize a volume with the strategy named by ``view_mode``.

    ``on_progress`` is only used by the spatial strategy.
    """
    mode = ViewMode(view_mode)

    if mode is ViewMode.INSTRUMENT:
        return build_instrument_volume(frames, mappings, calibration)

    accumulated = build_spatial_volume(
        frames, mappings, beam, grid, track_total_distance_m, on_progress=on_progress
    )
    normalized = normalize_volume(accumulated, epsilon=weight_epsilon)
    volume = make_volume_dataset(
        normalized,
        extent=accumulated.extent,
        origin=accumulated.origin,
        view_mode=mode.value,
        total_distance_m=track_total_distance_m,
        depth_max_m=beam.depth_max_m,
        source_frame_count=len(frames),
        resampled_slice_count=grid.res_y,
    )
    accumulated.release()
    return volume
