"""Per-frame cleaning of sonar screen captures.

Stages, in fixed order:

1. Upscale (nearest or bicubic) when ``upscale_factor > 1``
2. Luminance extraction (ITU-R BT.709) to a single [0, 1] channel
3. Bilateral edge-preserving denoise
4. Gamma correction, ``out = in ** gamma``
5. Separable Gaussian blur
6. Block artifact suppression (3x3 median blend)

Each stage is a no-op at its neutral setting. All border handling clamps to
the nearest edge pixel.
"""

import logging
import math
from typing import Callable, Iterable, List, Optional, Tuple

import numpy as np
from scipy.ndimage import gaussian_filter, median_filter
from skimage.restoration import denoise_bilateral
from skimage.transform import resize

from echos.contracts import InputError, assert_preprocessed_frame
from echos.core.types import PreprocessedFrame
from echos.schemas.param import CropRect, PreprocessingSettings

__all__ = [
    'SonarFramePreprocessor',
    'preprocess_frame',
    'preprocess_frames',
    'extract_intensity',
    'crop_frame',
    'auto_detect_crop_region',
]

logger = logging.getLogger(__name__)

# ITU-R BT.709 luma weights
LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722])

BILATERAL_SPATIAL_SIGMA = 2.0
BILATERAL_RADIUS = math.ceil(BILATERAL_SPATIAL_SIGMA * 2)


def _to_unit_float(pixels: np.ndarray) -> np.ndarray:
    """Scale 8/16-bit or float pixels to float64 in [0, 1]."""
    if pixels.dtype == np.uint8:
        return pixels.astype(np.float64) / 255.0
    if pixels.dtype == np.uint16:
        return pixels.astype(np.float64) / 65535.0
    return np.clip(pixels.astype(np.float64), 0.0, 1.0)


def extract_intensity(pixels: np.ndarray) -> np.ndarray:
    """Single-channel [0, 1] intensity from a gray, RGB or RGBA image.

    Color images use BT.709 luminance; alpha is ignored.
    """
    pixels = np.asarray(pixels)
    values = _to_unit_float(pixels)

    if values.ndim == 2:
        return values
    if values.ndim == 3 and values.shape[2] == 1:
        return values[:, :, 0]
    if values.ndim == 3 and values.shape[2] >= 3:
        return values[:, :, :3] @ LUMA_WEIGHTS
    raise InputError(f"Unsupported frame shape {pixels.shape}; expected (H, W), (H, W, 3) or (H, W, 4)")


def crop_frame(pixels: np.ndarray, crop: CropRect) -> np.ndarray:
    """Cut the sonar display region out of a full video frame.

    Raises
    ------
    InputError
        If the crop rectangle does not fit inside the frame.
    """
    height, width = pixels.shape[:2]
    if crop.x + crop.width > width or crop.y + crop.height > height:
        raise InputError(
            f"Crop {crop.width}x{crop.height}+{crop.x}+{crop.y} exceeds frame {width}x{height}"
        )
    return pixels[crop.y:crop.y + crop.height, crop.x:crop.x + crop.width]


class SonarFramePreprocessor:
    """Settings-driven frame cleaner used by the streaming coordinator."""

    def __init__(self, settings: PreprocessingSettings):
        self.settings = settings
        logger.debug(
            "SonarFramePreprocessor initialized: upscale=%s (%s), denoise=%s, gamma=%s, "
            "sigma=%s, deblock=%s",
            settings.upscale_factor, settings.upscale_method, settings.denoise_strength,
            settings.gamma, settings.gaussian_sigma, settings.deblock_strength,
        )

    def preprocess(self, pixels: np.ndarray) -> np.ndarray:
        """Run every stage and return a float32 ``(height, width)`` array in [0, 1]."""
        pixels = np.asarray(pixels)
        if pixels.ndim not in (2, 3) or pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise InputError(f"Cannot preprocess frame with shape {pixels.shape}")

        values = self._upscale(_to_unit_float(pixels))
        intensity = extract_intensity(values)
        intensity = self._denoise(intensity)
        intensity = self._gamma(intensity)
        intensity = self._blur(intensity)
        intensity = self._deblock(intensity)

        return np.clip(intensity, 0.0, 1.0).astype(np.float32)

    def _upscale(self, values: np.ndarray) -> np.ndarray:
        factor = self.settings.upscale_factor
        if factor <= 1:
            return values

        height, width = values.shape[:2]
        out_shape = (round(height * factor), round(width * factor)) + values.shape[2:]
        order = 0 if self.settings.upscale_method == "nearest" else 3
        scaled = resize(
            values,
            out_shape,
            order=order,
            mode="edge",
            anti_aliasing=False,
            preserve_range=True,
        )
        return np.clip(scaled, 0.0, 1.0)

    def _denoise(self, intensity: np.ndarray) -> np.ndarray:
        strength = self.settings.denoise_strength
        if strength <= 0:
            return intensity

        return denoise_bilateral(
            intensity,
            win_size=2 * BILATERAL_RADIUS + 1,
            sigma_color=0.1 + strength * 0.3,
            sigma_spatial=BILATERAL_SPATIAL_SIGMA,
            mode="edge",
        )

    def _gamma(self, intensity: np.ndarray) -> np.ndarray:
        gamma = self.settings.gamma
        if gamma == 1.0:
            return intensity
        return np.power(np.clip(intensity, 0.0, 1.0), gamma)

    def _blur(self, intensity: np.ndarray) -> np.ndarray:
        sigma = self.settings.gaussian_sigma
        if sigma <= 0:
            return intensity
        return gaussian_filter(intensity, sigma, mode="nearest", radius=math.ceil(sigma * 3))

    def _deblock(self, intensity: np.ndarray) -> np.ndarray:
        strength = self.settings.deblock_strength
        if strength <= 0:
            return intensity
        median = median_filter(intensity, size=3, mode="nearest")
        return intensity + strength * (median - intensity)


def preprocess_frame(pixels: np.ndarray, settings: PreprocessingSettings) -> np.ndarray:
    """Clean one raw frame; see :class:`SonarFramePreprocessor`."""
    return SonarFramePreprocessor(settings).preprocess(pixels)


def preprocess_frames(
    frames: Iterable[Tuple[int, float, np.ndarray]],
    settings: PreprocessingSettings,
    on_progress: Optional[Callable[[int, int], None]] = None,
) -> List[PreprocessedFrame]:
    """Batch-clean ``(index, time_s, pixels)`` frames in the given order.

    ``on_progress(current, total)`` is called after each frame.
    """
    frames = list(frames)
    preprocessor = SonarFramePreprocessor(settings)
    results = []

    for i, (index, time_s, pixels) in enumerate(frames):
        frame = PreprocessedFrame(
            index=int(index),
            time_s=float(time_s),
            intensity=preprocessor.preprocess(pixels),
        )
        assert_preprocessed_frame(frame)
        results.append(frame)
        if on_progress is not None:
            on_progress(i + 1, len(frames))

    return results


def auto_detect_crop_region(pixels: np.ndarray, block_size: int = 16) -> CropRect:
    """Guess the sonar echo region of a phone screen capture.

    The top 7% (status bar) and bottom 4% (navigation bar) are skipped. The
    remaining area is split into blocks; echo regions have high brightness
    variance, so the bounding box of high-variance blocks is taken and then
    shrunk while its edge rows/columns are less than 30% high-variance (UI
    panels). Falls back to the full frame minus the bars when the result
    covers less than 30% of either dimension.
    """
    pixels = np.asarray(pixels)
    height, width = pixels.shape[:2]
    if pixels.ndim == 3:
        brightness = pixels[:, :, :3].astype(np.float64).mean(axis=2)
    else:
        brightness = pixels.astype(np.float64)
    if pixels.dtype != np.uint8:
        brightness = np.clip(brightness, 0.0, 1.0) * 255.0

    status_bar = math.ceil(height * 0.07)
    bottom_nav = math.ceil(height * 0.04)
    safe_top = status_bar
    safe_bottom = height - bottom_nav
    fallback = CropRect(x=0, y=status_bar, width=width, height=max(1, safe_bottom - status_bar))

    blocks_w = width // block_size
    blocks_h = (safe_bottom - safe_top) // block_size
    if blocks_w == 0 or blocks_h == 0:
        return fallback

    area = brightness[safe_top:safe_top + blocks_h * block_size, :blocks_w * block_size]
    blocks = area.reshape(blocks_h, block_size, blocks_w, block_size)
    mean = blocks.mean(axis=(1, 3))
    variance = (blocks ** 2).mean(axis=(1, 3)) - mean ** 2

    ranked = np.sort(variance, axis=None)
    threshold = max(ranked[int(len(ranked) * 0.4)], 100.0)
    high = variance >= threshold
    if not high.any():
        return fallback

    rows = np.flatnonzero(high.any(axis=1))
    cols = np.flatnonzero(high.any(axis=0))
    top, bottom = int(rows[0]), int(rows[-1])
    left, right = int(cols[0]), int(cols[-1])

    col_share = high[top:bottom + 1].mean(axis=0)
    while left < right and col_share[left] < 0.3:
        left += 1
    while right > left and col_share[right] < 0.3:
        right -= 1

    row_share = high[:, left:right + 1].mean(axis=1)
    while top < bottom and row_share[top] < 0.3:
        top += 1
    while bottom > top and row_share[bottom] < 0.3:
        bottom -= 1

    crop_x = left * block_size
    crop_y = safe_top + top * block_size
    crop_w = min(width - crop_x, (right - left + 1) * block_size)
    crop_h = min(height - crop_y, (bottom - top + 1) * block_size)

    if crop_w < int(width * 0.3) or crop_h < int(height * 0.3):
        return fallback

    logger.debug("Auto-detected crop %dx%d+%d+%d", crop_w, crop_h, crop_x, crop_y)
    return CropRect(x=crop_x, y=crop_y, width=crop_w, height=crop_h)
