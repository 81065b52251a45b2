"""Tests for session interchange files."""

import json

import numpy as np
import pytest

from echos.contracts import FormatError
from echos.formats.session import (
    SESSION_VERSION,
    create_session,
    deserialize_session,
    load_session,
    save_session,
    serialize_session,
)
from echos.schemas.param import CalibrationSettings, CropRect, SyncSettings
from echos.sonar.volume import make_volume_dataset

pytestmark = pytest.mark.unit


@pytest.fixture
def session():
    volume = make_volume_dataset(
        np.zeros((4, 3, 2), dtype=np.float32),
        extent=(1.0, 3.0, 8.0),
        view_mode="instrument",
        total_distance_m=7.5,
        depth_max_m=3.0,
        source_frame_count=12,
    )
    return create_session(
        "survey.mp4",
        "survey.gpx",
        CropRect(x=12, y=34, width=320, height=240),
        CalibrationSettings(depth_max_m=3.0, fps_extraction=4.0, downscale_factor=0.5, y_step_m=2.0),
        SyncSettings(offset_s=-1.5, video_start_epoch_ms=1_717_228_800_000, trim_start_s=2.0),
        volume=volume,
    )


def valid_payload():
    return {
        "version": SESSION_VERSION,
        "videoFileName": "a.mp4",
        "gpxFileName": "a.gpx",
        "crop": {"x": 0, "y": 0, "width": 100, "height": 80},
        "calibration": {"depthMaxM": 5, "fpsExtraction": 2, "downscaleFactor": 1, "yStepM": 0.1},
        "sync": {"offsetS": 0},
    }


class TestSerialize:

    def test_camel_case_keys(self, session):
        payload = json.loads(serialize_session(session))
        assert payload["videoFileName"] == "survey.mp4"
        assert payload["calibration"]["depthMaxM"] == 3.0
        assert payload["sync"]["videoStartEpochMs"] == 1_717_228_800_000
        assert payload["volumeMetadata"]["sourceFrameCount"] == 12
        assert "video_file_name" not in payload

    def test_volume_metadata_omitted_without_volume(self):
        session = create_session("a.mp4", "a.gpx", CropRect(), CalibrationSettings(), SyncSettings())
        assert "volumeMetadata" not in json.loads(serialize_session(session))


class TestRoundTrip:

    def test_fields_survive(self, session, temp_dir):
        path = save_session(session, temp_dir / "run.echos.json")
        loaded = load_session(path)

        assert loaded.crop == session.crop
        assert loaded.calibration == session.calibration
        assert loaded.sync == session.sync
        assert loaded.created_at == session.created_at
        assert loaded.volume_metadata.dimensions == (2, 3, 4)
        assert loaded.volume_metadata.total_distance_m == 7.5

    def test_minimal_payload_accepted(self):
        loaded = deserialize_session(json.dumps(valid_payload()))
        assert loaded.sync.offset_s == 0.0
        assert loaded.sync.trim_end_s == 0.0
        assert loaded.volume_metadata is None


class TestRejections:

    def test_not_json(self):
        with pytest.raises(FormatError, match="not valid JSON"):
            deserialize_session("{not json")

    def test_undecodable_bytes(self):
        with pytest.raises(FormatError, match="not valid JSON"):
            deserialize_session(b"\xff\xfe{\"version\":")

    def test_not_an_object(self):
        with pytest.raises(FormatError, match="JSON object"):
            deserialize_session("[1, 2, 3]")

    def test_missing_required_fields(self):
        payload = valid_payload()
        del payload["gpxFileName"]
        with pytest.raises(FormatError, match="Missing required fields: gpxFileName"):
            deserialize_session(json.dumps(payload))

    def test_invalid_crop(self):
        payload = valid_payload()
        payload["crop"]["width"] = 0
        with pytest.raises(FormatError, match="Invalid crop"):
            deserialize_session(json.dumps(payload))

    def test_missing_nested_object(self):
        payload = valid_payload()
        del payload["sync"]
        with pytest.raises(FormatError, match="Invalid sync"):
            deserialize_session(json.dumps(payload))

    def test_invalid_calibration(self):
        payload = valid_payload()
        payload["calibration"]["downscaleFactor"] = 2
        with pytest.raises(FormatError, match="Invalid calibration"):
            deserialize_session(json.dumps(payload))
