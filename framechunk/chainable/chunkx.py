"""
Streaming chunk pipeline.

Pulls packets from the container in file order, decodes the selected video
stream, rescales every decoded frame to RGB24 at a fixed height and hands it
to a frame processor chain together with a sequential frame index. Frames
are grouped into fixed-duration chunks for progress reporting.
"""

from dataclasses import dataclass, asdict
from fractions import Fraction
from pathlib import Path
from typing import Optional, Union, Iterable, Sequence

from .basex import (
    StreamDescriptor, FrameProcessor, PipelineError,
    DecodeError, RescaleError, ProcessError, ChunkReporter, LogManager,
    setup_component_logger
)
from .openx import ContainerReader, VideoDecoder
from .resizex import FrameRescaler, compute_target_resolution, DEFAULT_DEST_HEIGHT
from .selectx import build_processor_chain

DEFAULT_CHUNK_DURATION = 2
ERROR_POLICIES = ('fail', 'skip')


def compute_frames_per_chunk(frame_rate: Optional[Fraction], chunk_duration: int = DEFAULT_CHUNK_DURATION) -> int:
    """Number of frames spanning ``chunk_duration`` seconds, rounded down."""
    if chunk_duration <= 0:
        raise ValueError(f"Chunk duration must be positive, got {chunk_duration}")
    if not frame_rate:
        return 0
    return int(frame_rate.numerator * chunk_duration // frame_rate.denominator)


@dataclass
class PipelineStats:
    """Counters collected during one run."""
    frames_processed: int = 0
    frames_skipped: int = 0
    packets_decoded: int = 0
    packets_failed: int = 0
    packets_discarded: int = 0
    chunks_completed: int = 0

    def as_dict(self):
        return asdict(self)


class ChunkPipeline:
    """Owns the packet loop, decode drain, rescale and per-frame dispatch."""

    def __init__(self,
                 reader: ContainerReader,
                 chunk_duration: int = DEFAULT_CHUNK_DURATION,
                 dest_height: int = DEFAULT_DEST_HEIGHT,
                 on_error: str = 'fail'):
        """
        Initialize ChunkPipeline.

        Args:
            reader: An opened ContainerReader; the pipeline closes it
            chunk_duration: Seconds of source video per chunk
            dest_height: Height of the rescaled frames
            on_error: 'fail' aborts on the first frame error, 'skip' logs it and continues
        """
        self.name = "ChunkPipeline"
        self.logger = setup_component_logger(self.name)
        self.reader = reader
        self.chunk_duration = chunk_duration
        self.dest_height = dest_height
        self.on_error = on_error
        self.stream: Optional[StreamDescriptor] = None
        self.frame_index = 0
        self.stats = PipelineStats()

        if on_error not in ERROR_POLICIES:
            raise ValueError(f"Unsupported error policy: {on_error}. Use one of {ERROR_POLICIES}")
        if chunk_duration <= 0:
            raise ValueError(f"Chunk duration must be positive, got {chunk_duration}")

    @classmethod
    def open(cls, file_path: Union[str, Path], **options) -> 'ChunkPipeline':
        """Open a media file. Raises SourceUnavailable if it can't be read."""
        reader = ContainerReader(file_path)
        try:
            return cls(reader, **options)
        except Exception:
            reader.close()
            raise

    def select_video_stream(self) -> StreamDescriptor:
        self.stream = self.reader.select_video_stream()
        return self.stream

    @property
    def target_resolution(self):
        if self.stream is None:
            self.select_video_stream()
        return compute_target_resolution(self.stream, self.dest_height)

    @property
    def frames_per_chunk(self) -> int:
        if self.stream is None:
            self.select_video_stream()
        return compute_frames_per_chunk(self.stream.frame_rate, self.chunk_duration)

    def run(self, processor: FrameProcessor) -> int:
        """
        Decode every frame of the video stream and dispatch it to ``processor``.

        Returns the number of frames the processor chain completed.
        """
        descriptor = self.stream or self.select_video_stream()
        target_resolution = compute_target_resolution(descriptor, self.dest_height)
        frames_per_chunk = compute_frames_per_chunk(descriptor.frame_rate, self.chunk_duration)
        if frames_per_chunk == 0:
            self.logger.warning("Stream has no usable frame rate, chunk reporting disabled")

        for step in processor.chain():
            step.prepare()

        self.frame_index = 0
        self.stats = PipelineStats()
        reporter = ChunkReporter(frames_per_chunk, "Chunks")

        self.logger.info(
            f"Rescaling {descriptor.width}x{descriptor.height} -> "
            f"{target_resolution[0]}x{target_resolution[1]}, "
            f"{frames_per_chunk} frames per {self.chunk_duration}s chunk"
        )
        LogManager.log_info(
            self.name,
            f"Run started: stream #{descriptor.index}, target {target_resolution}, "
            f"frames_per_chunk={frames_per_chunk}, on_error={self.on_error}, "
            f"processors={[p.name for p in processor.chain()]}"
        )

        stream = self.reader.stream(descriptor.index)
        with VideoDecoder(stream) as decoder, FrameRescaler(target_resolution) as rescaler:
            for packet in self._packets():
                if packet.stream.index != descriptor.index:
                    self.stats.packets_discarded += 1
                    continue
                if packet.size == 0:
                    # demux flush sentinel, end of stream is signalled below
                    continue
                frames = self._decode(decoder.decode, packet)
                if frames is None:
                    continue
                self.stats.packets_decoded += 1
                self._dispatch(frames, rescaler, processor, reporter)

            self._dispatch(self._decode(decoder.flush) or [], rescaler, processor, reporter)

        reporter.finish()
        self.stats.chunks_completed = reporter.chunks_completed
        LogManager.log_info(self.name, f"Run finished: {self.stats.as_dict()}")
        return self.stats.frames_processed

    def _packets(self):
        """Packets in file order. Under the skip policy a demux failure ends the stream early."""
        try:
            yield from self.reader.packets()
        except DecodeError as e:
            self._handle_error(e, "packets_failed")

    def _decode(self, decode, *args):
        try:
            return decode(*args)
        except DecodeError as e:
            self._handle_error(e, "packets_failed")
            return None

    def _dispatch(self, frames: Iterable, rescaler: FrameRescaler,
                  processor: FrameProcessor, reporter: ChunkReporter):
        """Rescale, index and process every drained frame in order."""
        for raw_frame in frames:
            try:
                frame = rescaler.rescale(raw_frame)
            except (RescaleError, ProcessError) as e:
                self._handle_error(e)
                continue

            index = self.frame_index
            self.frame_index += 1
            frame.index = index
            frame.metadata['chunk'] = reporter.chunk_index

            try:
                processor.execute(frame, index)
            except ProcessError as e:
                self._handle_error(e)
            else:
                self.stats.frames_processed += 1
            reporter.update()

    def _handle_error(self, error: PipelineError, counter: str = "frames_skipped"):
        if self.on_error == 'fail':
            LogManager.log_error(self.name, f"Pipeline failed: {error}", error)
            raise error
        setattr(self.stats, counter, getattr(self.stats, counter) + 1)
        self.logger.warning(f"Skipping after error: {error}")
        LogManager.log_warning(self.name, f"Skipped: {error}")

    def close(self):
        self.reader.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.close()


def run_pipeline(file_path: Union[str, Path],
                 processors: Sequence[str] = ('edge',),
                 output_dir='frames',
                 create_dirs: bool = False,
                 **options) -> PipelineStats:
    """
    Convenience function to run the pipeline on a file.

    Args:
        file_path: Path to the video file
        processors: Names of the processors to run on every frame, in order
        output_dir: Directory the processors write to
        create_dirs: Create output_dir if missing
        **options: Additional arguments for ChunkPipeline

    Returns:
        PipelineStats of the run
    """
    processor = build_processor_chain(processors, output_dir=output_dir, create_dirs=create_dirs)
    with ChunkPipeline.open(file_path, **options) as pipeline:
        pipeline.run(processor)
        return pipeline.stats
