"""Tests for the command-line runner."""

import logging

import numpy as np
import pytest

from echos.cli.run_reconstruction import load_user_config_dict, main, run_reconstruction
from helpers.synthetic import make_track

pytestmark = [pytest.mark.unit, pytest.mark.pipeline]


@pytest.fixture(autouse=True)
def restore_root_logging():
    """The runner reconfigures root logging; put pytest's handlers back afterwards."""
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)


@pytest.fixture
def survey(temp_dir):
    """Config file, frame archive and track CSV for a short instrument-mode run."""
    out_dir = temp_dir / "out"
    config_path = temp_dir / "user_config.py"
    config_path.write_text(
        "CONFIG = {\n"
        "    'VIEW_MODE': 'instrument',\n"
        f"    'BASE_DIR': {str(out_dir)!r},\n"
        "    'VIDEO_FILE': 'lake.mp4',\n"
        "    'GPX_FILE': 'lake.gpx',\n"
        "    'DEPTH_MAX_M': 4.0,\n"
        "    'Y_STEP_M': 25.0,\n"
        "    'CROP': (0, 0, 6, 8),\n"
        "    'GRID_RESOLUTION': (6, 5, 4),\n"
        "}\n"
    )

    frames_path = temp_dir / "frames.npz"
    pixels = np.stack([np.full((10, 8), v, dtype=np.uint8) for v in (40, 80, 120)])
    np.savez(frames_path, pixels=pixels, times=np.array([0.0, 30.0, 60.0]))

    track_path = temp_dir / "track.csv"
    make_track().to_csv(track_path, index=False)

    return {"config": config_path, "frames": frames_path, "track": track_path, "out": out_dir}


def test_load_user_config_dict(survey):
    config = load_user_config_dict(str(survey["config"]))
    assert config["VIEW_MODE"] == "instrument"
    assert config["CROP"] == (0, 0, 6, 8)


def test_load_user_config_missing_file(temp_dir):
    with pytest.raises(FileNotFoundError):
        load_user_config_dict(str(temp_dir / "nope.py"))


def test_load_user_config_without_dict(temp_dir):
    path = temp_dir / "empty_config.py"
    path.write_text("VALUE = 1\n")
    with pytest.raises(ValueError, match="No CONFIG dict"):
        load_user_config_dict(str(path))


def test_run_reconstruction_end_to_end(survey):
    result = run_reconstruction(
        str(survey["config"]),
        str(survey["frames"]),
        str(survey["track"]),
        cli_args={"no_plot": True},
        video_duration_s=100.0,
    )

    dim_x, dim_y, _ = result.volume.attrs["dimensions"]
    assert (dim_x, dim_y) == (6, 8)
    assert result.outputs["nrrd"] == survey["out"] / "volumes" / "lake.nrrd"
    assert "plot" not in result.outputs
    assert (survey["out"] / "logs" / "reconstruction_lake.log").exists()


def test_cli_view_mode_override(survey):
    result = run_reconstruction(
        str(survey["config"]),
        str(survey["frames"]),
        str(survey["track"]),
        cli_args={"view_mode": "spatial", "no_plot": True},
        video_duration_s=100.0,
    )
    assert result.volume.attrs["view_mode"] == "spatial"
    assert result.volume.attrs["dimensions"] == (6, 4, 5)


def test_main_returns_zero(survey, capsys):
    code = main([
        str(survey["config"]),
        str(survey["frames"]),
        str(survey["track"]),
        "--no-plot",
        "--video-duration", "100",
    ])

    assert code == 0
    assert "nrrd" in capsys.readouterr().out
    assert (survey["out"] / "sessions" / "lake.echos.json").exists()


def test_main_rerun_cleans_output(survey):
    stale = survey["out"] / "volumes" / "stale.nrrd"
    stale.parent.mkdir(parents=True)
    stale.write_bytes(b"old")

    main([str(survey["config"]), str(survey["frames"]), str(survey["track"]),
          "--no-plot", "--rerun", "--video-duration", "100"])
    assert not stale.exists()
