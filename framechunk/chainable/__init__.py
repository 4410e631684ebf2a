"""
Chainable frame pipeline components.

This package provides the streaming chunk pipeline and the interchangeable
per-frame processors it dispatches to. Processors can be linked together so
several strategies run on every decoded frame.
"""

from .basex import (
    StreamDescriptor, RescaledFrame, FrameProcessor, ChunkReporter, LogManager,
    ProcessingError, PipelineError, SourceUnavailable, NoVideoStream, DecodeError,
    RescaleError, ProcessError, RasterConstructionError, EncodeError, WriteError
)
from .openx import ContainerReader, VideoDecoder, probe_video
from .resizex import FrameRescaler, compute_target_resolution
from .edgex import EdgeDetector
from .blurx import FrameBlurrer
from .ppmx import RawFrameExporter
from .selectx import PROCESSORS, create_processor, build_processor_chain
from .chunkx import ChunkPipeline, PipelineStats, compute_frames_per_chunk, run_pipeline

__all__ = [
    # Base classes
    'StreamDescriptor',
    'RescaledFrame',
    'FrameProcessor',
    'ChunkReporter',
    'LogManager',

    # Errors
    'ProcessingError',
    'PipelineError',
    'SourceUnavailable',
    'NoVideoStream',
    'DecodeError',
    'RescaleError',
    'ProcessError',
    'RasterConstructionError',
    'EncodeError',
    'WriteError',

    # Components
    'ContainerReader',
    'VideoDecoder',
    'FrameRescaler',
    'ChunkPipeline',
    'PipelineStats',
    'EdgeDetector',
    'FrameBlurrer',
    'RawFrameExporter',

    # Functions
    'compute_target_resolution',
    'compute_frames_per_chunk',
    'create_processor',
    'build_processor_chain',
    'probe_video',
    'run_pipeline',
    'PROCESSORS'
]
