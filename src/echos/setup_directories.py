"""
Directory setup for reconstruction runs.

Flat layout under one base directory, one subdirectory per output kind:
- volumes/: NRRD exports and .echos-vol snapshots
- sessions/: session JSON and QC reports
- plots/: quick-look images
- logs/: run logs

File names start with the run name so several surveys can share a base.
"""

from pathlib import Path
from typing import Dict, Optional, Union

OUTPUT_KINDS = ("volumes", "sessions", "plots", "logs")

_SUFFIXES = {
    "nrrd": ("volumes", ".nrrd"),
    "snapshot": ("volumes", ".echos-vol"),
    "session": ("sessions", ".echos.json"),
    "qc": ("sessions", "_qc.json"),
    "plot": ("plots", "_volume.png"),
    "log": ("logs", ".log"),
}


def setup_output_directories(base_output_dir: Optional[Union[str, Path]] = None) -> Dict[str, Path]:
    """
    Create the output directory structure.

    Parameters
    ----------
    base_output_dir : str or Path, optional
        Base output directory. Defaults to ``./output``.

    Returns
    -------
    dict
        Paths keyed by 'base', 'volumes', 'sessions', 'plots', 'logs'.
    """
    if base_output_dir is None:
        base_output_dir = Path.cwd() / "output"

    base_output_dir = Path(base_output_dir).expanduser().resolve()

    directories = {"base": base_output_dir}
    for kind in OUTPUT_KINDS:
        directories[kind] = base_output_dir / kind

    for path in directories.values():
        path.mkdir(parents=True, exist_ok=True)

    return directories


def run_name_from(video_file_name: str) -> str:
    """Run name derived from the video file, e.g. 'lake_survey.mp4' -> 'lake_survey'."""
    stem = Path(video_file_name).stem
    return stem or "echos_run"


def get_output_path(output_dirs: Dict[str, Path], run_name: str, kind: str) -> Path:
    """
    Path of one run artifact.

    Parameters
    ----------
    output_dirs : dict
        Output directories from setup_output_directories()
    run_name : str
        Prefix shared by every file of the run.
    kind : str
        One of 'nrrd', 'snapshot', 'session', 'qc', 'plot', 'log'.

    Example
    -------
    >>> get_output_path(dirs, 'lake_survey', 'nrrd')
    Path('output/volumes/lake_survey.nrrd')
    """
    if kind not in _SUFFIXES:
        raise ValueError(f"Unknown output kind: {kind}")
    subdir, suffix = _SUFFIXES[kind]
    directory = Path(output_dirs[subdir])
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{run_name}{suffix}"
