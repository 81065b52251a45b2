"""Reconstruction run orchestration.

Maps frames onto the GPS track, streams them through the producer and
coordinator threads, waits for the finished volume and writes the run
artifacts.
"""

import logging
import queue
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import xarray as xr

from echos.core.types import FrameMapping, PreprocessedFrame, VolumeStats
from echos.contracts import TransportError
from echos.gps.enricher import track_duration
from echos.gps.sync import create_sync_context, map_all_frames
from echos.sonar.normalizer import compute_volume_stats
from echos.sonar.qc import QcReport, generate_qc_report, write_qc_report
from echos.formats.nrrd import write_nrrd
from echos.formats.snapshot import save_snapshot
from echos.formats.session import create_session, save_session
from echos.pipeline.messages import (
    InitMessage,
    PreprocessedEvent,
    StageEvent,
    ProjectionProgressEvent,
    CompleteEvent,
    ErrorEvent,
)
from echos.pipeline.coordinator import PipelineCoordinator
from echos.pipeline.producer import FrameProducer
from echos.setup_directories import get_output_path, run_name_from

__all__ = ['ReconstructionResult', 'ReconstructionOrchestrator']

logger = logging.getLogger(__name__)


@dataclass
class ReconstructionResult:
    """Everything a finished run produced."""
    volume: xr.Dataset
    frames: List[PreprocessedFrame]
    mappings: List[FrameMapping]
    stats: VolumeStats
    qc_report: Optional[QcReport] = None
    outputs: Dict[str, Path] = field(default_factory=dict)
    elapsed_s: float = 0.0


class ReconstructionOrchestrator:
    """Runs one reconstruction end to end.

    Two worker threads share the work:

    1. **FrameProducer**: walks the frame source and pushes read-only frame
       buffers into a bounded inbox. A full inbox blocks the producer.
    2. **PipelineCoordinator**: preprocesses each frame as it arrives, then
       builds and normalizes the volume on ``done``.

    The calling thread sends ``init``, watches the event queue and, once the
    volume is complete, writes the outputs enabled in ``config.output``:

    - ``volumes/<run>.nrrd`` and ``volumes/<run>.echos-vol``
    - ``sessions/<run>.echos.json`` and ``sessions/<run>_qc.json``
    - ``plots/<run>_volume.png`` when visualization is enabled

    All log output goes to the console and ``logs/reconstruction_<run>.log``.

    Example usage::

        orch = ReconstructionOrchestrator(config, output_dirs)
        result = orch.run(load_frame_archive("frames.npz", crop=config.crop),
                          load_track_csv("track.csv"))
    """

    def __init__(self, config, output_dirs: Dict[str, Path], run_name: Optional[str] = None):
        """
        Parameters
        ----------
        config : InternalConfig
            Fully resolved runtime configuration.
        output_dirs : dict
            Paths from ``setup_output_directories``.
        run_name : str, optional
            File name prefix for the artifacts. Defaults to the video file stem.
        """
        self.config = config
        self.output_dirs = output_dirs
        self.run_name = run_name or run_name_from(config.video_file_name)

        self.inbox = queue.Queue(maxsize=config.pipeline.max_queue_size)
        self.outbox = queue.Queue()

        self.coordinator = None
        self.producer = None
        self._start_time = None

    def _setup_logging(self):
        """Send root logging to the console and the run log file."""
        log_level = getattr(logging, self.config.logging.level.upper(), logging.INFO)

        log_dir = Path(self.output_dirs.get("logs", "."))
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / f"reconstruction_{self.run_name}.log"

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)

        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        logger.info("Logging: level=%s, file=%s", logging.getLevelName(log_level), log_path)

    def _video_duration(self, frame_times: List[float], video_duration_s: Optional[float]) -> float:
        """Explicit duration, else the synced clock span, else the frame span."""
        if video_duration_s is not None:
            return float(video_duration_s)
        sync = self.config.sync
        if sync.video_end_epoch_ms > sync.video_start_epoch_ms:
            return (sync.video_end_epoch_ms - sync.video_start_epoch_ms) / 1000.0
        if not frame_times:
            return 0.0
        return max(frame_times) + 1.0 / self.config.calibration.fps_extraction

    def run(self, frames, track: pd.DataFrame, video_duration_s: Optional[float] = None,
            setup_logging: bool = True) -> ReconstructionResult:
        """Reconstruct a volume from ``frames`` placed along ``track``.

        Parameters
        ----------
        frames : ArrayFrameSource
            Anything with ``frame_times()`` yielding ``(index, time_s)`` and
            iteration yielding ``(index, time_s, pixels)``.
        track : pd.DataFrame
            Raw or enriched GPS track.
        video_duration_s : float, optional
            Length of the source video. Derived when omitted.

        Raises
        ------
        InputError
            Unusable track or video duration.
        TransportError
            The coordinator reported a failed run.
        """
        if setup_logging:
            self._setup_logging()

        logger.info("=" * 60)
        logger.info("Starting reconstruction: %s (%s mode)", self.run_name, self.config.pipeline.view_mode)
        logger.info("=" * 60)
        self._start_time = time.time()

        frame_times = list(frames.frame_times())
        duration = self._video_duration([t for _, t in frame_times], video_duration_s)
        ctx = create_sync_context(
            track,
            duration,
            self.config.sync,
            smoothing_window=self.config.track.smoothing_window,
            immobility_threshold_ms=self.config.track.immobility_threshold_ms,
        )
        mappings = map_all_frames(ctx, frame_times)
        logger.info("Mapped %d frames over %.1f m of track", len(mappings), ctx.total_distance_m)

        try:
            complete = self._stream(frames, mappings, ctx.total_distance_m)
        except KeyboardInterrupt:
            logger.info("Shutdown signal received (Ctrl+C)")
            raise
        finally:
            self.stop()

        volume = complete.volume
        stats = compute_volume_stats(volume["intensity"].values)
        logger.info("Volume: dimensions=%s, extent=%s m", complete.dimensions, complete.extent)
        logger.info("Stats: non-zero=%d, mean=%.4f, p95=%.4f, max=%.4f",
                    stats.non_zero_count, stats.mean, stats.p95, stats.max)

        result = ReconstructionResult(
            volume=volume,
            frames=complete.frames,
            mappings=mappings,
            stats=stats,
        )
        self._write_outputs(result, duration, track_duration(ctx.enriched), ctx.total_distance_m)
        result.elapsed_s = time.time() - self._start_time

        logger.info("Reconstruction finished in %.1f s", result.elapsed_s)
        return result

    def _stream(self, frames, mappings: List[FrameMapping], total_distance_m: float) -> CompleteEvent:
        """Start both threads, send init and block until the run ends."""
        config = self.config

        self.coordinator = PipelineCoordinator(
            self.inbox, self.outbox, poll_timeout_s=config.pipeline.event_timeout_s
        )
        self.coordinator.start()
        logger.info("Coordinator started")

        self.inbox.put(InitMessage(
            preprocessing=config.preprocessing,
            beam=config.beam,
            grid=config.grid,
            calibration=config.calibration,
            view_mode=config.pipeline.view_mode,
            track_total_distance_m=total_distance_m,
            mappings=tuple(mappings),
            weight_epsilon=config.pipeline.weight_epsilon,
        ))

        self.producer = FrameProducer(frames, self.inbox, put_timeout_s=config.pipeline.event_timeout_s)
        self.producer.start()
        logger.info("Producer started")

        return self._wait_for_result(len(mappings))

    def _wait_for_result(self, expected_frames: int) -> CompleteEvent:
        last_logged_pct = -1
        while True:
            try:
                event = self.outbox.get(timeout=self.config.pipeline.event_timeout_s)
            except queue.Empty:
                self._check_producer()
                if not self.coordinator.is_alive():
                    raise TransportError("Coordinator stopped before the run completed.")
                continue

            if isinstance(event, PreprocessedEvent):
                if event.count == expected_frames or event.count % 50 == 0:
                    logger.info("Preprocessed %d/%d frames", event.count, expected_frames)
            elif isinstance(event, StageEvent):
                logger.info("Stage: %s", event.name)
            elif isinstance(event, ProjectionProgressEvent):
                pct = int(100 * event.current / max(event.total, 1))
                if pct // 25 > last_logged_pct // 25:
                    logger.info("Projecting: %d/%d frames (%d%%)", event.current, event.total, pct)
                    last_logged_pct = pct
            elif isinstance(event, CompleteEvent):
                return event
            elif isinstance(event, ErrorEvent):
                raise TransportError(f"Reconstruction failed: {event.message}")
            self._check_producer()

    def _check_producer(self) -> None:
        """Raise if the producer died before sending ``done``."""
        producer = self.producer
        if producer is not None and producer.error is not None:
            error = producer.error
            raise TransportError(
                f"Frame producer failed after {producer.sent} frames: "
                f"{type(error).__name__}: {error}"
            ) from error

    def _write_outputs(self, result: ReconstructionResult, video_duration_s: float,
                       gpx_duration_s: float, total_distance_m: float) -> None:
        config = self.config
        volume = result.volume
        outputs = result.outputs

        if config.output.write_nrrd:
            outputs["nrrd"] = write_nrrd(volume, get_output_path(self.output_dirs, self.run_name, "nrrd"))
        if config.output.write_snapshot:
            outputs["snapshot"] = save_snapshot(volume, get_output_path(self.output_dirs, self.run_name, "snapshot"))
        if config.output.write_session:
            session = create_session(
                config.video_file_name,
                config.gpx_file_name,
                config.crop,
                config.calibration,
                config.sync,
                volume=volume,
            )
            outputs["session"] = save_session(session, get_output_path(self.output_dirs, self.run_name, "session"))
        if config.output.write_qc_report:
            result.qc_report = generate_qc_report(
                volume,
                video_file=config.video_file_name,
                gpx_file=config.gpx_file_name,
                video_duration_s=video_duration_s,
                gpx_duration_s=gpx_duration_s,
                gpx_total_distance_m=total_distance_m,
                extracted_frames=len(result.frames),
                calibration=config.calibration,
                crop=config.crop,
            )
            outputs["qc"] = write_qc_report(result.qc_report, get_output_path(self.output_dirs, self.run_name, "qc"))
        if config.visualization.enabled:
            from echos.visualization.plotter import VolumePlotter
            plot_path = VolumePlotter(config.visualization).plot_volume(
                volume, get_output_path(self.output_dirs, self.run_name, "plot")
            )
            if plot_path is not None:
                outputs["plot"] = plot_path

        for kind, path in outputs.items():
            logger.info("✓ %s: %s", kind, path)

    def stop(self):
        """Stop both threads. Safe to call more than once."""
        if self.producer is not None and self.producer.is_alive():
            self.producer.stop()
            self.producer.join(timeout=5)
            if self.producer.is_alive():
                logger.warning("Producer thread did not stop cleanly")

        if self.coordinator is not None and self.coordinator.is_alive():
            self.coordinator.stop()
            self.coordinator.join(timeout=10)
            if self.coordinator.is_alive():
                logger.warning("Coordinator thread did not stop cleanly")
