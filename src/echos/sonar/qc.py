"""Quality-control report for a finished reconstruction."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

import xarray as xr
from pydantic import Field

from echos.schemas.base import EchosBaseModel
from echos.schemas.param import CalibrationSettings, CropRect
from echos.sonar.normalizer import compute_auto_threshold, compute_volume_stats, NOISE_FLOOR
from echos.sonar.accumulator import LARGE_VOLUME_MB

__all__ = ['QcReport', 'generate_qc_report', 'write_qc_report']

logger = logging.getLogger(__name__)

QC_VERSION = "1.0.0"
DURATION_MISMATCH_RATIO = 0.10
SHORT_TRACK_M = 10.0


class QcReport(EchosBaseModel):
    """Run summary with derived diagnostics and warnings."""
    version: str = QC_VERSION
    generated_at: str
    video_file: str
    gpx_file: str
    video_duration_s: float
    gpx_duration_s: float
    gpx_total_distance_m: float
    extracted_frames: int
    fps_extraction: float
    downscale_factor: float
    crop_rect: CropRect
    depth_max_m: float
    y_step_m: float
    view_mode: str
    volume_dimensions: tuple[int, int, int]
    volume_spacing: tuple[float, float, float]
    volume_size_bytes: int
    mean_intensity: float
    max_intensity: float
    auto_threshold: float
    stats: dict = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)


def generate_qc_report(
    volume: xr.Dataset,
    video_file: str,
    gpx_file: str,
    video_duration_s: float,
    gpx_duration_s: float,
    gpx_total_distance_m: float,
    extracted_frames: int,
    calibration: CalibrationSettings,
    crop: CropRect,
) -> QcReport:
    """Summarize a finalized volume and flag suspicious inputs.

    Warnings are raised for: video and GPS durations differing by more than
    10%, a track shorter than 10 m, fewer than two frames, a volume above
    1024 MB, and a volume with no voxel above the noise floor.
    """
    data = volume["intensity"].values
    stats = compute_volume_stats(data)
    size_bytes = int(data.size * 4)
    warnings = []

    longest = max(video_duration_s, gpx_duration_s)
    if longest > 0 and abs(video_duration_s - gpx_duration_s) / longest > DURATION_MISMATCH_RATIO:
        warnings.append(
            f"Video duration ({video_duration_s:.1f} s) and GPS duration "
            f"({gpx_duration_s:.1f} s) differ by more than {DURATION_MISMATCH_RATIO:.0%}."
        )
    if gpx_total_distance_m < SHORT_TRACK_M:
        warnings.append(f"GPS track covers only {gpx_total_distance_m:.1f} m.")
    if extracted_frames < 2:
        warnings.append(f"Only {extracted_frames} frame(s) extracted.")
    if size_bytes / (1024 * 1024) > LARGE_VOLUME_MB:
        warnings.append(f"Volume is {size_bytes / (1024 * 1024):.0f} MB; consider reducing resolution.")
    if stats.max <= NOISE_FLOOR:
        warnings.append("Volume is empty: no voxel above the noise floor.")

    for warning in warnings:
        logger.warning("QC: %s", warning)

    return QcReport(
        generated_at=datetime.now(timezone.utc).isoformat(),
        video_file=video_file,
        gpx_file=gpx_file,
        video_duration_s=video_duration_s,
        gpx_duration_s=gpx_duration_s,
        gpx_total_distance_m=gpx_total_distance_m,
        extracted_frames=extracted_frames,
        fps_extraction=calibration.fps_extraction,
        downscale_factor=calibration.downscale_factor,
        crop_rect=crop,
        depth_max_m=calibration.depth_max_m,
        y_step_m=calibration.y_step_m,
        view_mode=volume.attrs["view_mode"],
        volume_dimensions=tuple(volume.attrs["dimensions"]),
        volume_spacing=tuple(volume.attrs["spacing"]),
        volume_size_bytes=size_bytes,
        mean_intensity=float(data.mean()) if data.size else 0.0,
        max_intensity=float(data.max()) if data.size else 0.0,
        auto_threshold=compute_auto_threshold(data),
        stats=stats.to_dict(),
        warnings=warnings,
    )


def write_qc_report(report: QcReport, path: Union[str, Path]) -> Path:
    """Write the report as indented JSON."""
    path = Path(path)
    path.write_text(report.model_dump_json(indent=2))
    logger.info("QC report saved: %s", path)
    return path
