"""Tests for the reconstruction coordinator state machine."""

import queue

import numpy as np
import pytest

from echos.pipeline.coordinator import CoordinatorState, PipelineCoordinator
from echos.pipeline.messages import (
    InitMessage,
    FrameMessage,
    DoneMessage,
    PreprocessedEvent,
    StageEvent,
    ProjectionProgressEvent,
    CompleteEvent,
    ErrorEvent,
)
from echos.schemas.param import (
    BeamSettings,
    CalibrationSettings,
    PreprocessingSettings,
    VolumeGridSettings,
)
from helpers.synthetic import uniform_pixels, make_mappings

pytestmark = [pytest.mark.unit, pytest.mark.pipeline]

NEUTRAL = PreprocessingSettings(
    upscale_factor=1.0, denoise_strength=0.0, gamma=1.0, gaussian_sigma=0.0, deblock_strength=0.0
)
VALUES = (0, 128, 255)


def init_message(view_mode="instrument", distances=(0.0, 10.0, 20.0)):
    return InitMessage(
        preprocessing=NEUTRAL,
        beam=BeamSettings(beam_angle_deg=60.0, depth_max_m=4.0, near_field_m=0.0),
        grid=VolumeGridSettings(res_x=6, res_y=5, res_z=4),
        calibration=CalibrationSettings(depth_max_m=4.0, y_step_m=5.0),
        view_mode=view_mode,
        track_total_distance_m=float(max(distances)),
        mappings=tuple(make_mappings(distances)),
    )


def frame_message(index):
    return FrameMessage.handoff(index, float(index), uniform_pixels(VALUES[index]))


def drain(outbox):
    events = []
    while True:
        try:
            events.append(outbox.get_nowait())
        except queue.Empty:
            return events


@pytest.fixture
def coordinator():
    return PipelineCoordinator(queue.Queue(), queue.Queue())


def run_to_completion(coordinator, order=(0, 1, 2), view_mode="instrument"):
    coordinator.handle_message(init_message(view_mode))
    for index in order:
        coordinator.handle_message(frame_message(index))
    coordinator.handle_message(DoneMessage())
    return drain(coordinator.outbox)


class TestStateMachine:

    def test_happy_path_states(self, coordinator):
        assert coordinator.state is CoordinatorState.IDLE

        coordinator.handle_message(init_message())
        assert coordinator.state is CoordinatorState.INITIALIZED

        coordinator.handle_message(frame_message(0))
        assert coordinator.state is CoordinatorState.ACCUMULATING
        assert coordinator.frame_count == 1

        coordinator.handle_message(frame_message(1))
        coordinator.handle_message(frame_message(2))
        coordinator.handle_message(DoneMessage())
        assert coordinator.state is CoordinatorState.COMPLETE
        assert coordinator.frame_count == 0

    def test_events_emitted(self, coordinator):
        events = run_to_completion(coordinator)

        preprocessed = [e for e in events if isinstance(e, PreprocessedEvent)]
        assert [(e.index, e.count) for e in preprocessed] == [(0, 1), (1, 2), (2, 3)]
        assert isinstance(events[-1], CompleteEvent)
        assert events[-1].type == "complete"
        assert events[-1].dimensions == (6, 8, 5)
        assert [f.index for f in events[-1].frames] == [0, 1, 2]

    def test_instrument_mode_has_no_projection_events(self, coordinator):
        events = run_to_completion(coordinator)
        assert not any(isinstance(e, (StageEvent, ProjectionProgressEvent)) for e in events)

    def test_spatial_mode_reports_projection(self, coordinator):
        events = run_to_completion(coordinator, view_mode="spatial")

        stage = [e for e in events if isinstance(e, StageEvent)]
        progress = [e for e in events if isinstance(e, ProjectionProgressEvent)]
        assert [e.name for e in stage] == ["projecting"]
        assert [(e.current, e.total) for e in progress] == [(1, 3), (2, 3), (3, 3)]
        assert progress[0].type == "projection-progress"
        assert isinstance(events[-1], CompleteEvent)
        assert events[-1].dimensions == (6, 4, 5)

    def test_arrival_order_does_not_change_volume(self):
        forward = run_to_completion(PipelineCoordinator(queue.Queue(), queue.Queue()))[-1]
        shuffled = run_to_completion(PipelineCoordinator(queue.Queue(), queue.Queue()), order=(2, 0, 1))[-1]
        np.testing.assert_array_equal(forward.data, shuffled.data)

    def test_reinit_starts_clean(self, coordinator):
        coordinator.handle_message(init_message())
        coordinator.handle_message(frame_message(0))
        coordinator.handle_message(init_message())

        assert coordinator.state is CoordinatorState.INITIALIZED
        assert coordinator.frame_count == 0

    def test_new_run_after_complete(self, coordinator):
        run_to_completion(coordinator)
        events = run_to_completion(coordinator)
        assert isinstance(events[-1], CompleteEvent)


class TestErrors:

    def test_duplicate_frame(self, coordinator):
        coordinator.handle_message(init_message())
        coordinator.handle_message(frame_message(0))
        coordinator.handle_message(frame_message(0))

        error = drain(coordinator.outbox)[-1]
        assert isinstance(error, ErrorEvent)
        assert "received twice" in error.message
        assert error.error_type == "InputError"
        assert coordinator.state is CoordinatorState.ERROR
        assert coordinator.frame_count == 0

    def test_frame_before_init(self, coordinator):
        coordinator.handle_message(frame_message(0))

        error = drain(coordinator.outbox)[-1]
        assert isinstance(error, ErrorEvent)
        assert "without an active run" in error.message
        assert coordinator.state is CoordinatorState.ERROR

    def test_done_without_frames(self, coordinator):
        coordinator.handle_message(init_message())
        coordinator.handle_message(DoneMessage())

        error = drain(coordinator.outbox)[-1]
        assert "No frames" in error.message
        assert coordinator.state is CoordinatorState.ERROR

    def test_missing_frame_at_done(self, coordinator):
        coordinator.handle_message(init_message())
        coordinator.handle_message(frame_message(0))
        coordinator.handle_message(frame_message(1))
        coordinator.handle_message(DoneMessage())

        error = drain(coordinator.outbox)[-1]
        assert "does not match" in error.message
        assert coordinator.state is CoordinatorState.ERROR

    def test_unknown_view_mode(self, coordinator):
        coordinator.handle_message(init_message(view_mode="sideways"))
        assert isinstance(drain(coordinator.outbox)[-1], ErrorEvent)
        assert coordinator.state is CoordinatorState.ERROR

    def test_bad_frame_shape(self, coordinator):
        coordinator.handle_message(init_message())
        coordinator.handle_message(FrameMessage.handoff(0, 0.0, np.zeros((4, 4, 2), dtype=np.uint8)))
        assert isinstance(drain(coordinator.outbox)[-1], ErrorEvent)
        assert coordinator.state is CoordinatorState.ERROR

    def test_stray_message_after_complete_keeps_state(self, coordinator):
        run_to_completion(coordinator)
        coordinator.handle_message(DoneMessage())

        assert isinstance(drain(coordinator.outbox)[-1], ErrorEvent)
        assert coordinator.state is CoordinatorState.COMPLETE

    def test_recovers_with_new_init(self, coordinator):
        coordinator.handle_message(frame_message(0))
        events = run_to_completion(coordinator)
        assert isinstance(events[-1], CompleteEvent)
        assert coordinator.state is CoordinatorState.COMPLETE


class TestThreadLoop:

    def test_run_in_thread_until_sentinel(self):
        inbox, outbox = queue.Queue(), queue.Queue()
        coordinator = PipelineCoordinator(inbox, outbox, poll_timeout_s=0.05)
        coordinator.start()

        inbox.put(init_message())
        for index in range(3):
            inbox.put(frame_message(index))
        inbox.put(DoneMessage())

        event = outbox.get(timeout=10)
        while not isinstance(event, (CompleteEvent, ErrorEvent)):
            event = outbox.get(timeout=10)
        assert isinstance(event, CompleteEvent)

        inbox.put(None)
        coordinator.join(timeout=5)
        assert not coordinator.is_alive()

    def test_stop_ends_idle_loop(self):
        coordinator = PipelineCoordinator(queue.Queue(), queue.Queue(), poll_timeout_s=0.05)
        coordinator.start()
        coordinator.stop()
        coordinator.join(timeout=5)
        assert not coordinator.is_alive()
        assert coordinator.stopped()


class TestFrameHandoff:

    def test_buffer_frozen(self):
        pixels = uniform_pixels(10)
        message = FrameMessage.handoff(3, 1.5, pixels)
        assert message.type == "frame"
        assert not message.pixels.flags.writeable
        with pytest.raises(ValueError):
            message.pixels[0, 0] = 1
