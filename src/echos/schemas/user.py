"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs with aliases for common naming patterns
(e.g., VIEW_MODE -> pipeline.view_mode, Y_STEP_M -> calibration.y_step_m).

UserConfig is intentionally minimal - users only specify what they want
to override from the expert defaults.
"""

from typing import Literal, Optional, Any
from pydantic import Field, field_validator
from echos.schemas.base import EchosBaseModel


class UserPreprocessingConfig(EchosBaseModel):
    """User-facing preprocessing config."""
    upscale_factor: Optional[float] = None
    upscale_method: Optional[str] = None
    denoise_strength: Optional[float] = None
    gamma: Optional[float] = None
    gaussian_sigma: Optional[float] = None
    deblock_strength: Optional[float] = None

    @field_validator("upscale_method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        """Normalize method names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class UserBeamConfig(EchosBaseModel):
    """User-facing beam config."""
    beam_angle_deg: Optional[float] = None
    lateral_falloff_sigma: Optional[float] = None
    depth_max_m: Optional[float] = None
    near_field_m: Optional[float] = None


class UserSyncConfig(EchosBaseModel):
    """User-facing sync config."""
    offset_s: Optional[float] = None
    video_start_epoch_ms: Optional[int] = None
    video_end_epoch_ms: Optional[int] = None
    trim_start_s: Optional[float] = None
    trim_end_s: Optional[float] = None


class UserConfig(EchosBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Users only specify
    what they want to override from ParamConfig defaults.

    Usage
    -----
        user_cfg = UserConfig(
            VIEW_MODE="instrument",
            DEPTH_MAX_M=12,
            Y_STEP_M=0.05,
            CROP=(120, 80, 640, 480),
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Top-level operational settings
    view_mode: Optional[Literal["instrument", "spatial"]] = Field(None, alias="VIEW_MODE")
    base_dir: Optional[str] = Field(None, alias="BASE_DIR")
    video_file_name: Optional[str] = Field(None, alias="VIDEO_FILE")
    gpx_file_name: Optional[str] = Field(None, alias="GPX_FILE")
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = Field(None, alias="LOG_LEVEL")

    # Calibration (flat aliases)
    depth_max_m: Optional[float] = Field(None, alias="DEPTH_MAX_M")
    y_step_m: Optional[float] = Field(None, alias="Y_STEP_M")
    fps_extraction: Optional[float] = Field(None, alias="FPS_EXTRACTION")
    downscale_factor: Optional[float] = Field(None, alias="DOWNSCALE_FACTOR")
    crop: Optional[tuple[int, int, int, int]] = Field(None, alias="CROP")

    # Sync (flat aliases)
    sync_offset_s: Optional[float] = Field(None, alias="SYNC_OFFSET_S")
    trim_start_s: Optional[float] = Field(None, alias="TRIM_START_S")
    trim_end_s: Optional[float] = Field(None, alias="TRIM_END_S")

    # Beam and grid (flat aliases)
    beam_angle_deg: Optional[float] = Field(None, alias="BEAM_ANGLE_DEG")
    near_field_m: Optional[float] = Field(None, alias="NEAR_FIELD_M")
    lateral_falloff_sigma: Optional[float] = Field(None, alias="LATERAL_FALLOFF_SIGMA")
    grid_resolution: Optional[tuple[int, int, int]] = Field(None, alias="GRID_RESOLUTION")

    # Preprocessing (flat aliases)
    gamma: Optional[float] = Field(None, alias="GAMMA")
    denoise_strength: Optional[float] = Field(None, alias="DENOISE_STRENGTH")
    gaussian_sigma: Optional[float] = Field(None, alias="GAUSSIAN_SIGMA")
    deblock_strength: Optional[float] = Field(None, alias="DEBLOCK_STRENGTH")
    upscale_factor: Optional[float] = Field(None, alias="UPSCALE_FACTOR")

    # Nested overrides (advanced users)
    preprocessing: Optional[UserPreprocessingConfig] = None
    beam: Optional[UserBeamConfig] = None
    sync: Optional[UserSyncConfig] = None
    track: Optional[dict[str, Any]] = None
    pipeline: Optional[dict[str, Any]] = None
    visualization: Optional[dict[str, Any]] = None
    output: Optional[dict[str, Any]] = None

    model_config = EchosBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("view_mode", mode="before")
    @classmethod
    def normalize_view_mode(cls, v):
        """Normalize mode names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)
        if self.video_file_name is not None:
            overrides["video_file_name"] = self.video_file_name
        if self.gpx_file_name is not None:
            overrides["gpx_file_name"] = self.gpx_file_name

        # Calibration section; depth also bounds the beam model
        calibration = {}
        beam = {}
        if self.depth_max_m is not None:
            calibration["depth_max_m"] = self.depth_max_m
            beam["depth_max_m"] = self.depth_max_m
        if self.y_step_m is not None:
            calibration["y_step_m"] = self.y_step_m
        if self.fps_extraction is not None:
            calibration["fps_extraction"] = self.fps_extraction
        if self.downscale_factor is not None:
            calibration["downscale_factor"] = self.downscale_factor
        if calibration:
            overrides["calibration"] = calibration

        if self.crop is not None:
            x, y, width, height = self.crop
            overrides["crop"] = {"x": x, "y": y, "width": width, "height": height}

        # Sync section
        sync = {}
        if self.sync_offset_s is not None:
            sync["offset_s"] = self.sync_offset_s
        if self.trim_start_s is not None:
            sync["trim_start_s"] = self.trim_start_s
        if self.trim_end_s is not None:
            sync["trim_end_s"] = self.trim_end_s
        if self.sync is not None:
            sync.update(self.sync.model_dump(exclude_none=True))
        if sync:
            overrides["sync"] = sync

        # Beam section
        if self.beam_angle_deg is not None:
            beam["beam_angle_deg"] = self.beam_angle_deg
        if self.near_field_m is not None:
            beam["near_field_m"] = self.near_field_m
        if self.lateral_falloff_sigma is not None:
            beam["lateral_falloff_sigma"] = self.lateral_falloff_sigma
        if self.beam is not None:
            beam.update(self.beam.model_dump(exclude_none=True))
        if beam:
            overrides["beam"] = beam

        if self.grid_resolution is not None:
            res_x, res_y, res_z = self.grid_resolution
            overrides["grid"] = {"res_x": res_x, "res_y": res_y, "res_z": res_z}

        # Preprocessing section
        preprocessing = {}
        for name in ("gamma", "denoise_strength", "gaussian_sigma",
                     "deblock_strength", "upscale_factor"):
            value = getattr(self, name)
            if value is not None:
                preprocessing[name] = value
        if self.preprocessing is not None:
            preprocessing.update(self.preprocessing.model_dump(exclude_none=True))
        if preprocessing:
            overrides["preprocessing"] = preprocessing

        pipeline = dict(self.pipeline or {})
        if self.view_mode is not None:
            pipeline["view_mode"] = self.view_mode
        if pipeline:
            overrides["pipeline"] = pipeline

        for section in ("track", "visualization", "output"):
            value = getattr(self, section)
            if value:
                overrides[section] = dict(value)

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
