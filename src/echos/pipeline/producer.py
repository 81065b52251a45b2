"""Frame producer thread and frame sources.

The producer walks a frame source and pushes ``FrameMessage`` objects into
the coordinator inbox. The inbox is bounded, so a slow coordinator blocks
the producer instead of letting decoded frames pile up in memory.
"""

import logging
import queue
import threading
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple, Union

import numpy as np

from echos.contracts import InputError
from echos.schemas.param import CropRect
from echos.sonar.preprocessor import crop_frame
from echos.pipeline.messages import FrameMessage, DoneMessage

__all__ = ['ArrayFrameSource', 'load_frame_archive', 'FrameProducer']

logger = logging.getLogger(__name__)

RawFrame = Tuple[int, float, np.ndarray]


class ArrayFrameSource:
    """Frames held in memory as a stacked array plus their timestamps.

    Parameters
    ----------
    pixels : np.ndarray
        ``(N, H, W)`` grayscale or ``(N, H, W, C)`` color frames.
    times_s : array-like
        Video timestamp of each frame in seconds.
    crop : CropRect, optional
        Applied to every frame before it is yielded.
    """

    def __init__(self, pixels: np.ndarray, times_s, crop: Optional[CropRect] = None):
        pixels = np.asarray(pixels)
        times_s = np.asarray(times_s, dtype=np.float64)
        if pixels.ndim not in (3, 4):
            raise InputError(f"Expected a stack of frames, got array with shape {pixels.shape}.")
        if len(times_s) != len(pixels):
            raise InputError(
                f"Frame count ({len(pixels)}) does not match timestamp count ({len(times_s)})."
            )
        self.pixels = pixels
        self.times_s = times_s
        self.crop = crop

    def __len__(self) -> int:
        return len(self.pixels)

    def frame_times(self) -> Iterator[Tuple[int, float]]:
        for i, t in enumerate(self.times_s):
            yield i, float(t)

    def __iter__(self) -> Iterator[RawFrame]:
        for i, t in self.frame_times():
            frame = self.pixels[i]
            if self.crop is not None:
                frame = crop_frame(frame, self.crop)
            # Copy so the read-only handoff never freezes the whole stack.
            yield i, t, np.array(frame, copy=True)


def load_frame_archive(path: Union[str, Path], crop: Optional[CropRect] = None) -> ArrayFrameSource:
    """Load extracted frames from an ``.npz`` archive with ``pixels`` and ``times`` arrays."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Frame archive not found: {path}")

    with np.load(path) as archive:
        missing = [key for key in ("pixels", "times") if key not in archive.files]
        if missing:
            raise InputError(f"Frame archive {path.name} is missing arrays: {', '.join(missing)}")
        pixels = archive["pixels"]
        times = archive["times"]

    logger.info("Loaded %d frames from %s (frame shape %s)", len(pixels), path, pixels.shape[1:])
    return ArrayFrameSource(pixels, times, crop=crop)


class FrameProducer(threading.Thread):
    """Streams frames into the coordinator inbox, then sends ``done``.

    Each buffer is handed off read-only and the producer keeps no reference
    to it after the put.
    """

    def __init__(self, frames: Iterable[RawFrame], inbox: queue.Queue,
                 put_timeout_s: float = 1.0, send_done: bool = True,
                 name: str = "FrameProducer"):
        super().__init__(daemon=True, name=name)
        self.frames = frames
        self.inbox = inbox
        self.put_timeout_s = put_timeout_s
        self.send_done = send_done
        self.sent = 0
        self.error: Optional[Exception] = None
        self._stop_event = threading.Event()

    def stop(self):
        self._stop_event.set()

    def stopped(self):
        return self._stop_event.is_set()

    def _put(self, message) -> bool:
        """Blocking put that still notices stop requests."""
        while not self.stopped():
            try:
                self.inbox.put(message, timeout=self.put_timeout_s)
                return True
            except queue.Full:
                continue
        return False

    def run(self):
        logger.info("Producer started")

        try:
            for index, time_s, pixels in self.frames:
                message = FrameMessage.handoff(index, time_s, pixels)
                del pixels
                if not self._put(message):
                    logger.info("Producer stopped after %d frames", self.sent)
                    return
                self.sent += 1
        except Exception as e:
            logger.exception("Producer failed after %d frames", self.sent)
            self.error = e
            return

        if self.send_done and self._put(DoneMessage()):
            logger.info("Producer finished: %d frames sent", self.sent)
