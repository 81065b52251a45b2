"""Reconstruction coordinator.

Single consumer of the frame stream. Frames are cleaned as they arrive and
held until ``done``; the volume is built once the whole set is known.

State machine::

    IDLE --init--> INITIALIZED --frame--> ACCUMULATING --done--> FINALIZING
         --> COMPLETE

Any failure before COMPLETE moves to ERROR. A new ``init`` is accepted in
every state and starts from a clean run context.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from echos.core.types import PreprocessedFrame, ViewMode
from echos.contracts import (
    ContractViolation,
    InputError,
    assert_preprocessed_frame,
    assert_frames_match_mappings,
    assert_volume_finalized,
)
from echos.sonar.preprocessor import SonarFramePreprocessor
from echos.sonar.accumulator import build_volume
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

__all__ = ['CoordinatorState', 'RunContext', 'PipelineCoordinator']

logger = logging.getLogger(__name__)


class CoordinatorState(str, Enum):
    IDLE = "idle"
    INITIALIZED = "initialized"
    ACCUMULATING = "accumulating"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_STATES = (CoordinatorState.COMPLETE, CoordinatorState.ERROR)


@dataclass
class RunContext:
    """Everything one run owns. Dropped as a whole on completion or error."""
    init: InitMessage
    preprocessor: SonarFramePreprocessor
    frames: Dict[int, PreprocessedFrame] = field(default_factory=dict)

    @classmethod
    def from_init(cls, message: InitMessage) -> "RunContext":
        return cls(init=message, preprocessor=SonarFramePreprocessor(message.preprocessing))

    def add_frame(self, frame: PreprocessedFrame) -> None:
        if frame.index in self.frames:
            raise InputError(f"Frame {frame.index} received twice.")
        self.frames[frame.index] = frame

    def sorted_frames(self) -> List[PreprocessedFrame]:
        return [self.frames[i] for i in sorted(self.frames)]

    def sorted_mappings(self):
        return sorted(self.init.mappings, key=lambda m: m.frame_index)


class PipelineCoordinator(threading.Thread):
    """Owns the run state and turns messages into events.

    ``handle_message`` does all the work and can be called directly; the
    thread only pulls messages from ``inbox`` and feeds them to it. Events
    go to ``outbox``.

    Example usage::

        inbox, outbox = queue.Queue(maxsize=64), queue.Queue()
        coordinator = PipelineCoordinator(inbox, outbox)
        coordinator.start()
        inbox.put(init_message)
        ...
        inbox.put(DoneMessage())
        event = outbox.get()
        coordinator.stop()
    """

    def __init__(self, inbox: queue.Queue, outbox: queue.Queue,
                 poll_timeout_s: float = 1.0, name: str = "PipelineCoordinator"):
        super().__init__(daemon=True, name=name)

        self.inbox = inbox
        self.outbox = outbox
        self.poll_timeout_s = poll_timeout_s
        self.state = CoordinatorState.IDLE
        self._context: Optional[RunContext] = None
        self._stop_event = threading.Event()

    def stop(self):
        """Signal coordinator to stop after the current message."""
        self._stop_event.set()

    def stopped(self):
        return self._stop_event.is_set()

    @property
    def frame_count(self) -> int:
        return 0 if self._context is None else len(self._context.frames)

    def _emit(self, event) -> None:
        self.outbox.put(event)

    # -------------------------------------------------------------------------
    # Message handling
    # -------------------------------------------------------------------------

    def handle_message(self, message) -> None:
        """Apply one message to the state machine.

        Errors never escape: they are logged, reported as an ``ErrorEvent``
        and the run context is discarded.
        """
        try:
            if isinstance(message, InitMessage):
                self._on_init(message)
            elif isinstance(message, FrameMessage):
                self._on_frame(message)
            elif isinstance(message, DoneMessage):
                self._on_done()
            else:
                raise InputError(f"Unknown message type: {type(message).__name__}")
        except ContractViolation as e:
            logger.critical("Contract violation: %s", e)
            self._fail(e)
        except Exception as e:
            logger.exception("Reconstruction failed")
            self._fail(e)

    def _fail(self, error: Exception) -> None:
        self._context = None
        if self.state not in TERMINAL_STATES:
            self.state = CoordinatorState.ERROR
        self._emit(ErrorEvent(message=str(error), error_type=type(error).__name__))

    def _require_run(self, what: str) -> RunContext:
        if self.state in TERMINAL_STATES or self._context is None:
            raise InputError(f"Received {what} without an active run (state={self.state.value}).")
        return self._context

    def _on_init(self, message: InitMessage) -> None:
        if self._context is not None:
            logger.warning("Init received mid-run; discarding %d buffered frames", len(self._context.frames))
        self._context = None
        ViewMode(message.view_mode)
        self._context = RunContext.from_init(message)
        self.state = CoordinatorState.INITIALIZED
        logger.info("Run initialized: view_mode=%s, %d mapped frames",
                    message.view_mode, len(message.mappings))

    def _on_frame(self, message: FrameMessage) -> None:
        context = self._require_run("frame")
        frame = PreprocessedFrame(
            index=message.index,
            time_s=message.time_s,
            intensity=context.preprocessor.preprocess(message.pixels),
        )
        assert_preprocessed_frame(frame)
        context.add_frame(frame)
        self.state = CoordinatorState.ACCUMULATING
        logger.debug("Frame %d preprocessed (%d buffered)", frame.index, len(context.frames))
        self._emit(PreprocessedEvent(index=frame.index, count=len(context.frames)))

    def _on_done(self) -> None:
        context = self._require_run("done")
        self.state = CoordinatorState.FINALIZING
        init = context.init

        frames = context.sorted_frames()
        mappings = context.sorted_mappings()
        if len(frames) == 0:
            raise InputError("No frames to build volume from.")
        if len(frames) != len(mappings):
            raise InputError(
                f"Frame count ({len(frames)}) does not match mapping count ({len(mappings)})."
            )
        assert_frames_match_mappings([f.index for f in frames], [m.frame_index for m in mappings])

        on_progress = None
        if ViewMode(init.view_mode) is ViewMode.SPATIAL:
            self._emit(StageEvent(name="projecting"))
            on_progress = self._emit_progress

        logger.info("Building %s volume from %d frames", init.view_mode, len(frames))
        volume = build_volume(
            init.view_mode,
            frames,
            mappings,
            calibration=init.calibration,
            beam=init.beam,
            grid=init.grid,
            track_total_distance_m=init.track_total_distance_m,
            on_progress=on_progress,
            weight_epsilon=init.weight_epsilon,
        )
        assert_volume_finalized(volume)

        self._context = None
        self.state = CoordinatorState.COMPLETE
        logger.info("Volume complete: dimensions=%s", tuple(volume.attrs["dimensions"]))
        self._emit(CompleteEvent(volume=volume, frames=frames))

    def _emit_progress(self, current: int, total: int) -> None:
        self._emit(ProjectionProgressEvent(current=current, total=total))

    # -------------------------------------------------------------------------
    # Thread loop
    # -------------------------------------------------------------------------

    def run(self):
        """Consume the inbox until stopped or a None sentinel arrives."""
        logger.info("Coordinator started, waiting for messages...")

        while not self.stopped():
            try:
                message = self.inbox.get(timeout=self.poll_timeout_s)
            except queue.Empty:
                continue

            try:
                if message is None:
                    logger.info("Coordinator received shutdown signal")
                    break
                self.handle_message(message)
            finally:
                self.inbox.task_done()

        self._context = None
        logger.info("Coordinator stopped")
