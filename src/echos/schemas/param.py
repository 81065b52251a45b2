"""ParamConfig: Expert defaults for the ECHOS reconstruction pipeline.

This module defines the complete default configuration. ALL pipeline
parameters must have defaults here. No runtime code should define fallback
values - this is the single source of truth for defaults.

The settings sections (preprocessing, beam, grid, calibration, crop, sync)
are also the typed settings objects the processing stages receive, so the
same validation applies whether a value comes from a config file or from
code.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator, model_validator
from echos.schemas.base import EchosBaseModel, EchosSettingsModel


# =============================================================================
# Scan settings (shared with runtime)
# =============================================================================

class PreprocessingSettings(EchosSettingsModel):
    """Per-frame cleaning applied before accumulation.

    Every stage is disabled by its neutral value: upscale 1, strengths 0,
    gamma 1.0, sigma 0.
    """
    upscale_factor: float = Field(1.0, ge=1.0, le=8.0, description="1 = no upscale")
    upscale_method: Literal["nearest", "bicubic"] = "bicubic"
    denoise_strength: float = Field(0.2, ge=0.0, le=1.0, description="Bilateral denoise, 0 = off")
    gamma: float = Field(0.85, gt=0.0, description="out = in ** gamma, 1.0 = linear")
    gaussian_sigma: float = Field(0.8, ge=0.0, description="Gaussian sigma in pixels, 0 = off")
    deblock_strength: float = Field(0.3, ge=0.0, le=1.0, description="Median blend, 0 = off")

    @field_validator("upscale_method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        """Normalize method names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class BeamSettings(EchosSettingsModel):
    """Acoustic cone model used by the spatial projection."""
    beam_angle_deg: float = Field(20.0, gt=0.0, lt=180.0, description="Full cone angle")
    lateral_falloff_sigma: float = Field(0.5, gt=0.0, description="Fraction of cone radius")
    depth_max_m: float = Field(30.0, gt=0.0)
    near_field_m: float = Field(0.3, ge=0.0, description="Truncated cone start depth")

    @model_validator(mode="after")
    def near_field_inside_beam(self):
        """Near field must start above the maximum depth."""
        if self.near_field_m >= self.depth_max_m:
            raise ValueError(
                f"near_field_m ({self.near_field_m}) must be smaller than "
                f"depth_max_m ({self.depth_max_m})"
            )
        return self


class VolumeGridSettings(EchosSettingsModel):
    """Target grid resolution for the spatial projection."""
    res_x: int = Field(96, ge=1, description="Lateral voxels")
    res_y: int = Field(128, ge=1, description="Track voxels")
    res_z: int = Field(96, ge=1, description="Depth voxels")


class CalibrationSettings(EchosSettingsModel):
    """Scan calibration entered by the operator."""
    depth_max_m: float = Field(10.0, gt=0.0)
    fps_extraction: float = Field(2.0, gt=0.0)
    downscale_factor: float = Field(1.0, gt=0.0, le=1.0)
    y_step_m: float = Field(0.1, gt=0.0)


class CropRect(EchosSettingsModel):
    """Sonar display region inside the video frame, in pixels."""
    x: int = Field(0, ge=0)
    y: int = Field(0, ge=0)
    width: int = Field(640, ge=1)
    height: int = Field(480, ge=1)


class SyncSettings(EchosSettingsModel):
    """Video to GPS time alignment."""
    offset_s: float = Field(0.0, description="Positive = GPS starts after video")
    video_start_epoch_ms: int = 0
    video_end_epoch_ms: int = 0
    trim_start_s: float = Field(0.0, ge=0.0)
    trim_end_s: float = Field(0.0, ge=0.0)


# =============================================================================
# Operational sections
# =============================================================================

class TrackConfig(EchosBaseModel):
    """GPS enrichment parameters."""
    smoothing_window: int = Field(5, ge=1, description="Speed moving-average window")
    immobility_threshold_ms: float = Field(0.3, ge=0.0, description="Speeds below are 0")


class PipelineConfig(EchosBaseModel):
    """Streaming coordinator settings."""
    view_mode: Literal["instrument", "spatial"] = "spatial"
    max_queue_size: int = Field(64, ge=1, description="Producer -> coordinator backpressure")
    weight_epsilon: float = Field(1e-6, gt=0.0, description="Minimum voxel weight to normalize")
    event_timeout_s: float = Field(1.0, gt=0.0, description="Poll interval on queues")

    @field_validator("view_mode", mode="before")
    @classmethod
    def normalize_view_mode(cls, v):
        """Normalize mode names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class VisualizationConfig(EchosBaseModel):
    """Slice plot settings."""
    enabled: bool = True
    dpi: int = Field(150, ge=50)
    figsize: tuple[float, float] = (15.0, 5.0)
    output_format: Literal["png", "pdf", "jpeg"] = "png"
    cmap: str = "magma"
    vmin: float = Field(0.0, ge=0.0, le=1.0)
    vmax: float = Field(1.0, ge=0.0, le=1.0)


class OutputConfig(EchosBaseModel):
    """Which artifacts a run writes."""
    write_nrrd: bool = True
    write_snapshot: bool = True
    write_session: bool = True
    write_qc_report: bool = True


class LoggingConfig(EchosBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(EchosBaseModel):
    """Complete expert configuration with all defaults.

    This is the single source of truth for all pipeline parameters.
    Every tunable parameter MUST have a default here.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    base_dir: Optional[str] = None
    video_file_name: str = ""
    gpx_file_name: str = ""
    preprocessing: PreprocessingSettings = Field(default_factory=PreprocessingSettings)
    beam: BeamSettings = Field(default_factory=BeamSettings)
    grid: VolumeGridSettings = Field(default_factory=VolumeGridSettings)
    calibration: CalibrationSettings = Field(default_factory=CalibrationSettings)
    crop: CropRect = Field(default_factory=CropRect)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    track: TrackConfig = Field(default_factory=TrackConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    visualization: VisualizationConfig = Field(default_factory=VisualizationConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
