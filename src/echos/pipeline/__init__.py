"""Streaming reconstruction pipeline: messages, producer, coordinator, orchestrator."""

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
from echos.pipeline.coordinator import CoordinatorState, RunContext, PipelineCoordinator
from echos.pipeline.producer import ArrayFrameSource, load_frame_archive, FrameProducer
from echos.pipeline.orchestrator import ReconstructionResult, ReconstructionOrchestrator

__all__ = [
    'InitMessage',
    'FrameMessage',
    'DoneMessage',
    'PreprocessedEvent',
    'StageEvent',
    'ProjectionProgressEvent',
    'CompleteEvent',
    'ErrorEvent',
    'CoordinatorState',
    'RunContext',
    'PipelineCoordinator',
    'ArrayFrameSource',
    'load_frame_archive',
    'FrameProducer',
    'ReconstructionResult',
    'ReconstructionOrchestrator',
]
