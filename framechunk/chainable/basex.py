"""
Base architecture for chainable frame processing components.

This module provides the shared data structures, the error hierarchy, the
logging manager and the frame processor base class used by the streaming
chunk pipeline.
"""

import numpy as np
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict, Any, Optional, Tuple, List
from abc import ABC, abstractmethod
from collections import deque
from pathlib import Path
from datetime import datetime
import contextlib
import io
import logging
import time
import traceback


class ProcessingError(Exception):
    """Custom exception for frame processing errors."""
    def __init__(self, message: str, component: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.component = component
        self.details = details or {}


class PipelineError(ProcessingError):
    """Any failure that terminates a pipeline run."""


class SourceUnavailable(PipelineError):
    """The path could not be opened as a media container."""


class NoVideoStream(PipelineError):
    """The container holds no video-typed stream."""


class DecodeError(PipelineError):
    """Malformed or unsupported bitstream data."""


class RescaleError(PipelineError):
    """Pixel format or resolution conversion failed."""


class ProcessError(PipelineError):
    """A frame processor failed to produce its artifact."""


class RasterConstructionError(ProcessError):
    """Buffer size does not match width * height * channels."""


class EncodeError(ProcessError):
    """Output image serialization failed."""


class WriteError(ProcessError):
    """The output file could not be created."""


RGB_CHANNELS = 3


@dataclass(frozen=True)
class StreamDescriptor:
    """The selected video stream and its metadata."""
    index: int
    codec_name: str
    pixel_format: str
    width: int
    height: int
    frame_rate: Optional[Fraction]  # average rate, None when the container has none

    @property
    def resolution(self) -> Tuple[int, int]:
        return self.width, self.height


@dataclass
class RescaledFrame:
    """An RGB24 raster at the pipeline's target resolution."""
    pixels: np.ndarray  # (height, width, 3), uint8
    index: int = -1
    pts: Optional[int] = None
    time: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate the raster after initialization."""
        if self.pixels.ndim != 3 or self.pixels.shape[2] != RGB_CHANNELS:
            raise RasterConstructionError(
                f"Expected (height, width, {RGB_CHANNELS}) raster, got shape {self.pixels.shape}",
                component="RescaledFrame"
            )
        if self.pixels.dtype != np.uint8:
            raise RasterConstructionError(
                f"Expected uint8 raster, got {self.pixels.dtype}",
                component="RescaledFrame"
            )

    @classmethod
    def from_buffer(cls, buffer: bytes, width: int, height: int, **kwargs) -> 'RescaledFrame':
        """Build a frame from a tightly packed RGB24 byte buffer."""
        expected = width * height * RGB_CHANNELS
        if len(buffer) != expected:
            raise RasterConstructionError(
                f"Failed to create image from raw data: got {len(buffer)} bytes, "
                f"expected {width}x{height}x{RGB_CHANNELS} = {expected}",
                component="RescaledFrame",
                details={'width': width, 'height': height, 'buffer_size': len(buffer)}
            )
        pixels = np.frombuffer(buffer, dtype=np.uint8).reshape(height, width, RGB_CHANNELS)
        return cls(pixels=pixels, **kwargs)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def resolution(self) -> Tuple[int, int]:
        """(width, height)"""
        return self.width, self.height


class LogManager:
    """Manages detailed logging for pipeline components with full traceback support."""

    _log_file_path: Optional[Path] = None
    _file_handler: Optional[logging.FileHandler] = None
    _initialized = False

    @classmethod
    def initialize(cls, log_dir: str = "logs"):
        """Initialize the log manager with a clean log file for this processing run."""
        if cls._initialized:
            cls.cleanup()

        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        cls._log_file_path = log_path / f"framechunk_processing_{timestamp}.log"

        cls._file_handler = logging.FileHandler(cls._log_file_path, mode='w', encoding='utf-8')
        cls._file_handler.setLevel(logging.DEBUG)
        cls._file_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(name)s | %(levelname)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))

        cls._initialized = True

        root_logger = logging.getLogger('framechunk')
        root_logger.addHandler(cls._file_handler)
        root_logger.setLevel(logging.DEBUG)

        cls.log_info("LogManager", f"Initialized logging to: {cls._log_file_path}")

    @classmethod
    def cleanup(cls):
        """Detach and close the file handler."""
        if cls._file_handler:
            logging.getLogger('framechunk').removeHandler(cls._file_handler)
            cls._file_handler.close()
            cls._file_handler = None

        cls._initialized = False

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._initialized

    @classmethod
    def log_info(cls, component: str, message: str):
        if cls._initialized:
            logging.getLogger(f'framechunk.{component}').info(message)

    @classmethod
    def log_error(cls, component: str, message: str, exception: Optional[Exception] = None):
        """Log an error message, followed by the full traceback when given an exception."""
        if cls._initialized:
            logger = logging.getLogger(f'framechunk.{component}')
            logger.error(message)

            if exception is not None:
                tb_str = ''.join(traceback.format_exception(type(exception), exception, exception.__traceback__))
                logger.error(f"Full traceback:\n{tb_str}")

    @classmethod
    def log_warning(cls, component: str, message: str):
        if cls._initialized:
            logging.getLogger(f'framechunk.{component}').warning(message)

    @classmethod
    def log_debug(cls, component: str, message: str):
        if cls._initialized:
            logging.getLogger(f'framechunk.{component}').debug(message)

    @classmethod
    def get_log_file_path(cls) -> Optional[Path]:
        return cls._log_file_path


def setup_component_logger(name: str) -> logging.Logger:
    """Set up the console logger for a component."""
    logger = logging.getLogger(f"framechunk.{name}")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(f'[{name}] %(levelname)s: %(message)s'))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


class FrameProcessor(ABC):
    """
    Abstract base class for per-frame processing strategies.

    A processor turns one rescaled frame into one file. Work is split into
    three timed stages (raster construction, filter, encode+write) so every
    strategy reports the same timing breakdown. Processors can be linked with
    ``set_next`` to run several strategies on each frame.
    """

    #: File name template, formatted with the frame index.
    filename_template: str = "frame{index}"

    def __init__(self, output_dir='frames', name: Optional[str] = None, create_dirs: bool = False):
        self.name = name or self.__class__.__name__
        self.output_dir = Path(output_dir)
        self.create_dirs = create_dirs
        self.next_processor: Optional['FrameProcessor'] = None
        self.logger = setup_component_logger(self.name)
        self.timings = deque(maxlen=10)

    def set_next(self, processor: 'FrameProcessor') -> 'FrameProcessor':
        """Set the next processor in the chain."""
        self.next_processor = processor
        return processor

    def chain(self) -> List['FrameProcessor']:
        """All processors from this one to the end of the chain."""
        processors = []
        current = self
        while current is not None:
            processors.append(current)
            current = current.next_processor
        return processors

    def output_path(self, index: int) -> Path:
        return self.output_dir / self.filename_template.format(index=index)

    def build_raster(self, frame: RescaledFrame) -> Any:
        """Build the in-memory image the filter works on."""
        return frame.pixels

    @abstractmethod
    def apply_filter(self, raster: Any) -> Any:
        """Run the strategy's filter on the raster."""

    @abstractmethod
    def encode(self, result: Any, fh) -> None:
        """Serialize the filter result into a binary file object."""

    def prepare(self):
        """Make sure the output directory is usable before the first frame."""
        if self.create_dirs:
            try:
                self.output_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise WriteError(
                    f"Could not create output directory {self.output_dir}: {e}",
                    component=self.name,
                    details={'output_dir': str(self.output_dir)}
                ) from e

    def process(self, frame: RescaledFrame, index: int) -> Path:
        """Process one frame and write its artifact. Returns the written path."""
        self.logger.info(f"Processing frame {index}")
        start_total = time.perf_counter()

        start = time.perf_counter()
        try:
            raster = self.build_raster(frame)
        except RasterConstructionError:
            raise
        except (ValueError, TypeError) as e:
            raise RasterConstructionError(
                f"Failed to create image from raw data: {e}",
                component=self.name,
                details={'index': index}
            ) from e
        raster_time = time.perf_counter() - start
        self.logger.info(f"Time to create source image: {raster_time * 1000:.2f}ms")

        start = time.perf_counter()
        try:
            result = self.apply_filter(raster)
        except ProcessError:
            raise
        except Exception as e:
            raise ProcessError(
                f"{self.name} filter failed on frame {index}: {e}",
                component=self.name,
                details={'index': index, 'original_exception': type(e).__name__}
            ) from e
        filter_time = time.perf_counter() - start
        self.logger.info(f"Time to apply {self.name}: {filter_time * 1000:.2f}ms")

        start = time.perf_counter()
        path = self.output_path(index)
        buffer = io.BytesIO()
        try:
            self.encode(result, buffer)
        except (OSError, ValueError, TypeError, KeyError) as e:
            raise EncodeError(
                f"Could not encode frame {index}: {e}",
                component=self.name,
                details={'path': str(path), 'index': index}
            ) from e
        try:
            path.write_bytes(buffer.getbuffer())
        except OSError as e:
            with contextlib.suppress(OSError):
                path.unlink()
            raise WriteError(
                f"Could not write {path}: {e}",
                component=self.name,
                details={'path': str(path), 'index': index}
            ) from e
        write_time = time.perf_counter() - start
        self.logger.info(f"Time to encode and write file: {write_time * 1000:.2f}ms")

        total_time = time.perf_counter() - start_total
        self.timings.append({
            'raster': raster_time,
            'filter': filter_time,
            'write': write_time,
            'total': total_time,
        })
        self.logger.info(f"Total time for {self.name}: {total_time * 1000:.2f}ms")
        LogManager.log_debug(self.name, f"Wrote {path} in {total_time * 1000:.2f}ms")
        return path

    def execute(self, frame: RescaledFrame, index: int) -> List[Path]:
        """Process the frame here and continue down the chain."""
        written = [self.process(frame, index)]
        if self.next_processor:
            written.extend(self.next_processor.execute(frame, index))
        return written


class ChunkReporter:
    """Reports progress each time a full chunk of frames has been processed."""

    def __init__(self, frames_per_chunk: int, description: str = "Processing"):
        self.frames_per_chunk = frames_per_chunk
        self.description = description
        self.frame_count = 0
        self.chunks_completed = 0
        self.logger = logging.getLogger("framechunk.progress")

    @property
    def chunk_index(self) -> int:
        """Chunk the next frame belongs to."""
        if self.frames_per_chunk <= 0:
            return 0
        return self.frame_count // self.frames_per_chunk

    def update(self, increment: int = 1):
        for _ in range(increment):
            self.frame_count += 1
            if self.frames_per_chunk > 0 and self.frame_count % self.frames_per_chunk == 0:
                self.chunks_completed += 1
                self.logger.info(
                    f"{self.description}: chunk {self.chunks_completed - 1} complete "
                    f"({self.frame_count} frames)"
                )

    def finish(self):
        partial = self.frames_per_chunk > 0 and self.frame_count % self.frames_per_chunk != 0
        self.logger.info(
            f"{self.description}: Complete! {self.frame_count} frames, "
            f"{self.chunks_completed} full chunks{' + 1 partial' if partial else ''}"
        )
