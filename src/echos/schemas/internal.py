"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and contains NO optional fields that processing code depends on.

The scan settings sections reuse the frozen settings models from
``echos.schemas.param`` so the stages receive exactly the objects that were
validated here.
"""

from typing import Literal, Optional
from pydantic import ConfigDict
from echos.schemas.base import EchosBaseModel
from echos.schemas.param import (
    PreprocessingSettings,
    BeamSettings,
    VolumeGridSettings,
    CalibrationSettings,
    CropRect,
    SyncSettings,
)


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalTrackConfig(EchosBaseModel):
    """Runtime GPS enrichment configuration."""
    smoothing_window: int
    immobility_threshold_ms: float


class InternalPipelineConfig(EchosBaseModel):
    """Runtime streaming configuration."""
    view_mode: Literal["instrument", "spatial"]
    max_queue_size: int
    weight_epsilon: float
    event_timeout_s: float


class InternalVisualizationConfig(EchosBaseModel):
    """Runtime visualization settings."""
    enabled: bool
    dpi: int
    figsize: tuple[float, float]
    output_format: Literal["png", "pdf", "jpeg"]
    cmap: str
    vmin: float
    vmax: float


class InternalOutputConfig(EchosBaseModel):
    """Runtime output configuration."""
    write_nrrd: bool
    write_snapshot: bool
    write_session: bool
    write_qc_report: bool


class InternalLoggingConfig(EchosBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(EchosBaseModel):
    """Authoritative runtime configuration.

    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.view_mode = config.pipeline.view_mode  # NOT .get()
            self.beam = config.beam

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO validation in runtime code
    """

    base_dir: Optional[str]
    video_file_name: str
    gpx_file_name: str
    preprocessing: PreprocessingSettings
    beam: BeamSettings
    grid: VolumeGridSettings
    calibration: CalibrationSettings
    crop: CropRect
    sync: SyncSettings
    track: InternalTrackConfig
    pipeline: InternalPipelineConfig
    visualization: InternalVisualizationConfig
    output: InternalOutputConfig
    logging: InternalLoggingConfig

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )
