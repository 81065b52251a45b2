"""Base Pydantic models with strict defaults for ECHOS configs.

All ECHOS config schemas inherit from this base to ensure consistent
validation behavior across parameter, user, CLI, and internal configs.
"""

from pydantic import BaseModel, ConfigDict


class EchosBaseModel(BaseModel):
    """Base model for all ECHOS configuration schemas.

    Enforces strict validation:
    - No extra fields allowed
    - Validates assignments after initialization
    - Uses Python mode (not JSON mode)
    """

    model_config = ConfigDict(
        extra='forbid',           # Reject unknown fields
        validate_assignment=True, # Validate on field mutation
        use_enum_values=True,     # Convert enums to values
        str_strip_whitespace=True,# Strip whitespace from strings
    )


class EchosSettingsModel(EchosBaseModel):
    """Base for the scan settings handed to the processing stages.

    Settings are frozen: once a reconstruction run starts, the preprocessing,
    beam, grid and calibration values it was started with cannot change.
    """

    model_config = ConfigDict(
        extra='forbid',
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,
    )
