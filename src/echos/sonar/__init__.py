"""Sonar frame preprocessing, volume accumulation and statistics."""

from echos.sonar.preprocessor import (
    SonarFramePreprocessor,
    preprocess_frame,
    preprocess_frames,
    extract_intensity,
    crop_frame,
    auto_detect_crop_region,
)
from echos.sonar.volume import ProbabilisticVolume, make_volume_dataset, volume_metadata, flat_data
from echos.sonar.normalizer import normalize_volume, compute_auto_threshold, compute_volume_stats
from echos.sonar.accumulator import (
    estimate_volume,
    estimate_volume_memory_mb,
    build_instrument_volume,
    build_spatial_volume,
    build_volume,
)
from echos.sonar.qc import QcReport, generate_qc_report, write_qc_report

__all__ = [
    'SonarFramePreprocessor',
    'preprocess_frame',
    'preprocess_frames',
    'extract_intensity',
    'crop_frame',
    'auto_detect_crop_region',
    'ProbabilisticVolume',
    'make_volume_dataset',
    'volume_metadata',
    'flat_data',
    'normalize_volume',
    'compute_auto_threshold',
    'compute_volume_stats',
    'estimate_volume',
    'estimate_volume_memory_mb',
    'build_instrument_volume',
    'build_spatial_volume',
    'build_volume',
    'QcReport',
    'generate_qc_report',
    'write_qc_report',
]
