"""Volume normalization and percentile statistics.

Numeric edge cases are resolved here with fixed defaults: voxels without
weight normalize to 0, and an empty sample set gives the fallback
threshold or all-zero statistics. NaN and infinity never leave this module.
"""

import logging

import numpy as np

from echos.core.types import VolumeStats
from echos.sonar.volume import ProbabilisticVolume

__all__ = [
    'DEFAULT_WEIGHT_EPSILON',
    'NOISE_FLOOR',
    'FALLBACK_THRESHOLD',
    'normalize_volume',
    'compute_auto_threshold',
    'compute_volume_stats',
]

logger = logging.getLogger(__name__)

DEFAULT_WEIGHT_EPSILON = 1e-6
NOISE_FLOOR = 1e-4
FALLBACK_THRESHOLD = 0.02
THRESHOLD_SAMPLE_CAP = 100_000
STATS_SAMPLE_CAP = 200_000


def normalize_volume(volume: ProbabilisticVolume, epsilon: float = DEFAULT_WEIGHT_EPSILON) -> np.ndarray:
    """Weighted average per voxel, clamped to [0, 1].

    Parameters
    ----------
    volume : ProbabilisticVolume
        Accumulated sums.
    epsilon : float
        Voxels whose weight is not above this are set to exactly 0.

    Returns
    -------
    np.ndarray
        float32 array with the shape of ``volume.data``.
    """
    out = np.zeros(volume.data.shape, dtype=np.float64)
    covered = volume.weights > epsilon
    np.divide(volume.data, volume.weights, out=out, where=covered)
    np.clip(out, 0.0, 1.0, out=out)

    logger.debug(
        "Normalized volume: %d/%d voxels covered", int(covered.sum()), covered.size
    )
    return out.astype(np.float32)


def _strided_samples(data: np.ndarray, cap: int) -> np.ndarray:
    """Every ``step``-th voxel so that at most about ``cap`` are read."""
    flat = np.asarray(data).ravel()
    if flat.size == 0:
        return flat
    step = max(1, flat.size // min(flat.size, cap))
    samples = flat[::step]
    return samples[samples > NOISE_FLOOR]


def compute_auto_threshold(data: np.ndarray, percentile: float = 85) -> float:
    """Percentile-based noise floor of a finalized volume.

    Up to 100,000 voxels are sampled at a fixed stride, values at or below
    1e-4 are discarded and the sorted sample at ``percentile`` is returned.

    Returns
    -------
    float
        The threshold, or 0.02 when no sample exceeds the noise floor.
    """
    samples = np.sort(_strided_samples(data, THRESHOLD_SAMPLE_CAP))
    if samples.size == 0:
        return FALLBACK_THRESHOLD

    idx = int(np.floor(percentile / 100 * (samples.size - 1)))
    return float(samples[idx])


def compute_volume_stats(data: np.ndarray) -> VolumeStats:
    """Sampled statistics over voxels above the noise floor (max 200,000 samples)."""
    samples = np.sort(_strided_samples(data, STATS_SAMPLE_CAP).astype(np.float64))
    n = samples.size
    if n == 0:
        return VolumeStats()

    return VolumeStats(
        min=float(samples[0]),
        max=float(samples[-1]),
        mean=float(samples.mean()),
        median=float(samples[int(n * 0.5)]),
        p25=float(samples[int(n * 0.25)]),
        p75=float(samples[int(n * 0.75)]),
        p95=float(samples[int(n * 0.95)]),
        non_zero_count=int(n),
    )
