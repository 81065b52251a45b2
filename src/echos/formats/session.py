"""Session interchange files.

A session records everything needed to redo a reconstruction: source file
names, crop rectangle, calibration, sync and (optionally) the metadata of
the volume that was produced. Files are JSON with camelCase keys::

    {
      "version": "1.0.0",
      "createdAt": "...", "updatedAt": "...",
      "videoFileName": "...", "gpxFileName": "...",
      "crop": {"x": 0, "y": 0, "width": 640, "height": 480},
      "calibration": {"depthMaxM": 10, "fpsExtraction": 2, ...},
      "sync": {"offsetS": 0, "videoStartEpochMs": 0, ...},
      "volumeMetadata": {...}
    }

Loading never returns a partially populated session: any problem raises
FormatError naming the offending field.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

import xarray as xr
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from echos.contracts import FormatError
from echos.schemas.param import CalibrationSettings, CropRect, SyncSettings
from echos.sonar.volume import volume_metadata

__all__ = [
    'SESSION_VERSION',
    'EchosSession',
    'create_session',
    'serialize_session',
    'deserialize_session',
    'save_session',
    'load_session',
]

logger = logging.getLogger(__name__)

SESSION_VERSION = "1.0.0"
REQUIRED_FIELDS = ("version", "videoFileName", "gpxFileName")
NESTED_FIELDS = ("crop", "calibration", "sync")


class SessionModel(BaseModel):
    """camelCase on disk, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
        str_strip_whitespace=True,
    )


class SessionCrop(SessionModel):
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class SessionCalibration(SessionModel):
    depth_max_m: float = Field(gt=0)
    fps_extraction: float = Field(gt=0)
    downscale_factor: float = Field(gt=0, le=1)
    y_step_m: float = Field(gt=0)


class SessionSync(SessionModel):
    offset_s: float
    video_start_epoch_ms: int = 0
    video_end_epoch_ms: int = 0
    trim_start_s: float = Field(0.0, ge=0)
    trim_end_s: float = Field(0.0, ge=0)


class VolumeMetadata(SessionModel):
    dimensions: tuple[int, int, int]
    spacing: tuple[float, float, float]
    origin: tuple[float, float, float]
    total_distance_m: float
    depth_max_m: float
    source_frame_count: int
    resampled_slice_count: int


class EchosSession(SessionModel):
    version: str
    created_at: str
    updated_at: str
    video_file_name: str
    gpx_file_name: str
    crop: SessionCrop
    calibration: SessionCalibration
    sync: SessionSync
    volume_metadata: Optional[VolumeMetadata] = None


def create_session(
    video_file_name: str,
    gpx_file_name: str,
    crop: CropRect,
    calibration: CalibrationSettings,
    sync: SyncSettings,
    volume: Optional[xr.Dataset] = None,
) -> EchosSession:
    """New session stamped with the current UTC time."""
    now = datetime.now(timezone.utc).isoformat()
    return EchosSession(
        version=SESSION_VERSION,
        created_at=now,
        updated_at=now,
        video_file_name=video_file_name,
        gpx_file_name=gpx_file_name,
        crop=SessionCrop.model_validate(crop.model_dump()),
        calibration=SessionCalibration.model_validate(calibration.model_dump()),
        sync=SessionSync.model_validate(sync.model_dump()),
        volume_metadata=None if volume is None else VolumeMetadata.model_validate(volume_metadata(volume)),
    )


def serialize_session(session: EchosSession) -> str:
    """JSON text with camelCase keys."""
    return session.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]


def deserialize_session(text: Union[str, bytes]) -> EchosSession:
    """Parse and validate session JSON.

    Raises
    ------
    FormatError
        If the text is not JSON, is not an object, lacks a required field,
        or any nested object fails validation.
    """
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FormatError(f"Session file is not valid JSON: {e}") from None

    if not isinstance(raw, dict):
        raise FormatError("Session file must contain a JSON object")

    missing = [name for name in REQUIRED_FIELDS if name not in raw]
    if missing:
        raise FormatError(f"Missing required fields: {', '.join(missing)}")

    parsed = {}
    models = {"crop": SessionCrop, "calibration": SessionCalibration, "sync": SessionSync}
    for name in NESTED_FIELDS:
        value = raw.get(name)
        if not isinstance(value, dict):
            raise FormatError(f"Invalid {name}: expected an object")
        try:
            parsed[name] = models[name].model_validate(value)
        except ValidationError as e:
            raise FormatError(f"Invalid {name}: {_describe(e)}") from None

    if raw.get("volumeMetadata") is not None:
        try:
            parsed["volume_metadata"] = VolumeMetadata.model_validate(raw["volumeMetadata"])
        except ValidationError as e:
            raise FormatError(f"Invalid volumeMetadata: {_describe(e)}") from None

    now = datetime.now(timezone.utc).isoformat()
    try:
        return EchosSession(
            version=raw["version"],
            created_at=raw.get("createdAt", now),
            updated_at=raw.get("updatedAt", now),
            video_file_name=raw["videoFileName"],
            gpx_file_name=raw["gpxFileName"],
            **parsed,
        )
    except ValidationError as e:
        raise FormatError(f"Invalid session: {_describe(e)}") from None


def save_session(session: EchosSession, path: Union[str, Path]) -> Path:
    """Write a session file."""
    path = Path(path)
    path.write_text(serialize_session(session))
    logger.info("Session saved: %s", path)
    return path


def load_session(path: Union[str, Path]) -> EchosSession:
    """Read and validate a session file."""
    return deserialize_session(Path(path).read_text())
