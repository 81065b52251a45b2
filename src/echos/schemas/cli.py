"""CLIConfig: Command-line operational overrides.

Minimal configuration for the parameters that commonly change between
runs: view mode, output directory, sync offset, verbosity.
"""

from typing import Literal, Optional
from pydantic import field_validator
from echos.schemas.base import EchosBaseModel


class CLIConfig(EchosBaseModel):
    """Command-line configuration overrides.

    Highest priority in config resolution.

    Usage
    -----
        cli_cfg = CLIConfig(view_mode="instrument", base_dir="/scratch/echos")
        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    view_mode: Optional[Literal["instrument", "spatial"]] = None
    base_dir: Optional[str] = None
    sync_offset_s: Optional[float] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None
    no_plot: bool = False

    @field_validator("view_mode", mode="before")
    @classmethod
    def normalize_view_mode(cls, v):
        """Normalize mode names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)

        if self.view_mode is not None:
            overrides["pipeline"] = {"view_mode": self.view_mode}

        if self.sync_offset_s is not None:
            overrides["sync"] = {"offset_s": self.sync_offset_s}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        if self.no_plot:
            overrides["visualization"] = {"enabled": False}

        return overrides
