"""Core reconstruction run logic.

This module contains the actual runner, separated from argument parsing.
Scripts are thin wrappers; this is the real implementation.
"""

import argparse
import importlib.util
import json
import logging
import shutil
import sys
from pathlib import Path
from typing import Optional, Dict, Any

from echos.setup_directories import setup_output_directories
from echos.gps.enricher import load_track_csv
from echos.pipeline.producer import load_frame_archive
from echos.pipeline.orchestrator import ReconstructionOrchestrator, ReconstructionResult
from echos.schemas import resolve_config, ParamConfig, UserConfig, CLIConfig

logger = logging.getLogger(__name__)


def load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from Python file.

    Returns the raw dict before Pydantic validation.

    Parameters
    ----------
    config_path : str
        Path to user config Python file containing CONFIG dict.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If no CONFIG dict found in file.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("config_module", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def run_reconstruction(
    user_config_path: str,
    frames_path: str,
    track_path: str,
    cli_args: Optional[Dict[str, Any]] = None,
    video_duration_s: Optional[float] = None,
    rerun: bool = False,
    verbose: bool = False,
) -> ReconstructionResult:
    """Reconstruct one survey.

    1. Loads and resolves configuration (Param < User < CLI)
    2. Sets up output directories, cleaning them first if ``rerun``
    3. Loads the extracted frames and the GPS track
    4. Runs the orchestrator and returns its result

    Parameters
    ----------
    user_config_path : str
        Python file with a CONFIG dict.
    frames_path : str
        ``.npz`` archive with ``pixels`` (N, H, W[, C]) and ``times`` (N,).
        Frames are cropped with the configured crop rectangle.
    track_path : str
        CSV with ``lat``, ``lon``, ``time`` and optional ``ele`` columns.
    cli_args : dict, optional
        Keys: view_mode, base_dir, sync_offset_s, log_level, no_plot.
    video_duration_s : float, optional
        Source video length; derived from the sync clock or frame times
        when omitted.

    Examples
    --------
    ::

        run_reconstruction(
            "scripts/user_config.py",
            "survey_frames.npz",
            "survey_track.csv",
            cli_args={"view_mode": "instrument"},
        )
    """
    param_cfg = ParamConfig()

    user_cfg = UserConfig.model_validate(load_user_config_dict(user_config_path))

    cli_args = dict(cli_args or {})
    if verbose and "log_level" not in cli_args:
        cli_args["log_level"] = "DEBUG"
    cli_dict = {k: v for k, v in cli_args.items() if v is not None}
    cli_cfg = CLIConfig.model_validate(cli_dict) if cli_dict else CLIConfig()

    config = resolve_config(param_cfg, user_cfg, cli_cfg)

    if rerun and config.base_dir:
        base_dir_path = Path(config.base_dir)
        if base_dir_path.exists():
            print(f"Cleaning output directory: {base_dir_path}")
            shutil.rmtree(base_dir_path)

    output_dirs = setup_output_directories(config.base_dir)

    print(f"\n{'='*60}")
    print("ECHOS Sonar Volume Reconstruction")
    print('='*60)
    print(f"Config: {user_config_path}")
    print(f"Frames: {frames_path}")
    print(f"Track:  {track_path}")
    print(f"Mode:   {config.pipeline.view_mode}")
    print(f"Output: {output_dirs['base']}")
    print('='*60)

    if verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(), indent=2))
        print('='*60)

    frames = load_frame_archive(frames_path, crop=config.crop)
    track = load_track_csv(track_path)

    orchestrator = ReconstructionOrchestrator(config, output_dirs)
    return orchestrator.run(frames, track, video_duration_s=video_duration_s)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Reconstruct a 3D sonar volume from frames and a GPS track")
    parser.add_argument("config", help="Path to user config file")
    parser.add_argument("frames", help="Frame archive (.npz with 'pixels' and 'times')")
    parser.add_argument("track", help="GPS track CSV (lat, lon, time[, ele])")
    parser.add_argument("--view-mode", choices=["instrument", "spatial"], help="Override view mode")
    parser.add_argument("--base-dir", help="Output directory")
    parser.add_argument("--sync-offset", type=float, help="Video to GPS offset in seconds")
    parser.add_argument("--video-duration", type=float, help="Source video length in seconds")
    parser.add_argument("--no-plot", action="store_true", help="Skip the volume plot")
    parser.add_argument("--rerun", action="store_true", help="Delete output directory before running")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    cli_args = {
        "view_mode": args.view_mode,
        "base_dir": args.base_dir,
        "sync_offset_s": args.sync_offset,
        "no_plot": args.no_plot or None,
    }

    try:
        result = run_reconstruction(
            args.config,
            args.frames,
            args.track,
            cli_args=cli_args,
            video_duration_s=args.video_duration,
            rerun=args.rerun,
            verbose=args.verbose,
        )
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130

    for kind, path in result.outputs.items():
        print(f"  {kind:10s}: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
