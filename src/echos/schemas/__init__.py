"""Pydantic configuration schemas for the ECHOS reconstruction pipeline.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
CLIConfig : class
    Command-line operational overrides
"""

from echos.schemas.resolve import resolve_config
from echos.schemas.internal import InternalConfig
from echos.schemas.param import (
    ParamConfig,
    PreprocessingSettings,
    BeamSettings,
    VolumeGridSettings,
    CalibrationSettings,
    CropRect,
    SyncSettings,
)
from echos.schemas.user import UserConfig
from echos.schemas.cli import CLIConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
    'CLIConfig',
    'PreprocessingSettings',
    'BeamSettings',
    'VolumeGridSettings',
    'CalibrationSettings',
    'CropRect',
    'SyncSettings',
]
