from pathlib import Path

import pytest

from echos.setup_directories import get_output_path, run_name_from, setup_output_directories


def test_setup_output_directories_creates_all(tmp_path):
    dirs = setup_output_directories(tmp_path)

    expected = {"base", "volumes", "sessions", "plots", "logs"}

    assert set(dirs.keys()) == expected

    for path in dirs.values():
        assert isinstance(path, Path)
        assert path.exists()
        assert path.is_dir()


def test_setup_output_directories_is_idempotent(tmp_path):
    dirs1 = setup_output_directories(tmp_path)
    dirs2 = setup_output_directories(tmp_path)

    assert dirs1 == dirs2


def test_default_base_is_cwd_output(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    dirs = setup_output_directories()
    assert dirs["base"] == (tmp_path / "output").resolve()


def test_run_name_from_video_file():
    assert run_name_from("lake_survey.mp4") == "lake_survey"
    assert run_name_from("/videos/dock.MOV") == "dock"
    assert run_name_from("") == "echos_run"


@pytest.mark.parametrize("kind,subdir,name", [
    ("nrrd", "volumes", "lake.nrrd"),
    ("snapshot", "volumes", "lake.echos-vol"),
    ("session", "sessions", "lake.echos.json"),
    ("qc", "sessions", "lake_qc.json"),
    ("plot", "plots", "lake_volume.png"),
    ("log", "logs", "lake.log"),
])
def test_get_output_path(tmp_path, kind, subdir, name):
    dirs = setup_output_directories(tmp_path)
    assert get_output_path(dirs, "lake", kind) == dirs[subdir] / name


def test_get_output_path_unknown_kind(tmp_path):
    dirs = setup_output_directories(tmp_path)
    with pytest.raises(ValueError, match="Unknown output kind"):
        get_output_path(dirs, "lake", "tiff")
