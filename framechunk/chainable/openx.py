"""
Container reading and video decoding components.

These wrap PyAV: ``ContainerReader`` opens the file, selects the video stream
and yields packets in file order, ``VideoDecoder`` turns packets of the
selected stream into decoded frames.
"""

import av
from fractions import Fraction
from pathlib import Path
from typing import Optional, Union, Iterator, List

from .basex import (
    StreamDescriptor, SourceUnavailable, NoVideoStream, DecodeError,
    LogManager, setup_component_logger
)


class ContainerReader:
    """Opens a media container and exposes its streams and packets."""

    SUPPORTED_FORMATS = {
        'mp4', 'avi', 'mov', 'mkv', 'webm', 'flv', 'wmv', 'm4v'
    }

    def __init__(self, file_path: Union[str, Path]):
        self.name = "ContainerReader"
        self.file_path = Path(file_path)
        self.logger = setup_component_logger(self.name)
        self.container = None
        self.packets_read = 0

        self._validate_file()
        self._open()

    def _validate_file(self):
        """Validate the video file exists and is a regular file."""
        if not self.file_path.exists():
            raise SourceUnavailable(
                f"Video file does not exist: {self.file_path}",
                component=self.name,
                details={'file_path': str(self.file_path)}
            )

        if not self.file_path.is_file():
            raise SourceUnavailable(
                f"Path is not a file: {self.file_path}",
                component=self.name,
                details={'file_path': str(self.file_path)}
            )

        file_extension = self.file_path.suffix.lower().lstrip('.')
        if file_extension not in self.SUPPORTED_FORMATS:
            self.logger.warning(
                f"File extension '.{file_extension}' not in supported formats: {sorted(self.SUPPORTED_FORMATS)}. "
                "Attempting to open anyway..."
            )

    def _open(self):
        try:
            self.container = av.open(str(self.file_path))
        except (av.error.FFmpegError, OSError) as av_error:
            error_msg = f"FFmpeg error while opening video: {av_error}"
            LogManager.log_error(self.name, error_msg, av_error)
            raise SourceUnavailable(
                error_msg,
                component=self.name,
                details={'file_path': str(self.file_path), 'av_error': str(av_error)}
            ) from av_error
        LogManager.log_info(self.name, f"Opened container {self.file_path}")

    def select_video_stream(self) -> StreamDescriptor:
        """Describe the first stream whose media type is video."""
        for stream in self.container.streams:
            if stream.type != 'video':
                continue

            codec_context = stream.codec_context
            frame_rate = stream.average_rate or stream.guessed_rate
            descriptor = StreamDescriptor(
                index=stream.index,
                codec_name=codec_context.name or 'unknown',
                pixel_format=str(codec_context.pix_fmt) if codec_context.pix_fmt else 'unknown',
                width=codec_context.width,
                height=codec_context.height,
                frame_rate=Fraction(frame_rate) if frame_rate else None,
            )
            rate = f"{float(descriptor.frame_rate):.2f} fps" if descriptor.frame_rate else "unknown fps"
            self.logger.info(
                f"Video stream #{descriptor.index}: {descriptor.codec_name} "
                f"{descriptor.width}x{descriptor.height} {descriptor.pixel_format}, {rate}"
            )
            LogManager.log_info(self.name, f"Selected stream: {descriptor}")
            return descriptor

        raise NoVideoStream(
            f"No video stream found in {self.file_path}",
            component=self.name,
            details={'file_path': str(self.file_path)}
        )

    def stream(self, index: int):
        """The PyAV stream object with the given index."""
        for stream in self.container.streams:
            if stream.index == index:
                return stream
        raise NoVideoStream(f"Stream #{index} not found", component=self.name)

    def packets(self) -> Iterator:
        """Yield every packet of every stream in file order."""
        try:
            for packet in self.container.demux():
                self.packets_read += 1
                yield packet
        except av.error.FFmpegError as e:
            raise DecodeError(
                f"Demuxing failed after {self.packets_read} packets: {e}",
                component=self.name,
                details={'file_path': str(self.file_path)}
            ) from e

    def close(self):
        if self.container is not None:
            self.container.close()
            self.container = None
            LogManager.log_debug(self.name, f"Closed container {self.file_path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.close()


class VideoDecoder:
    """
    Stateful decoder for one video stream.

    ``decode`` submits a packet and returns all frames the codec can emit at
    that point, which may be none while it buffers. ``flush`` signals end of
    stream and returns whatever was still buffered.
    """

    def __init__(self, stream):
        self.name = "VideoDecoder"
        self.stream_index = stream.index
        self.codec_context = stream.codec_context
        self.packets_decoded = 0
        self.frames_decoded = 0

    def decode(self, packet) -> List:
        if self.codec_context is None:
            raise DecodeError("Decoder already released", component=self.name)
        try:
            frames = self.codec_context.decode(packet)
        except av.error.FFmpegError as e:
            raise DecodeError(
                f"Failed to decode packet {self.packets_decoded} of stream #{self.stream_index}: {e}",
                component=self.name,
                details={'stream_index': self.stream_index, 'packet_number': self.packets_decoded}
            ) from e
        self.packets_decoded += 1
        self.frames_decoded += len(frames)
        return list(frames)

    def flush(self) -> List:
        if self.codec_context is None:
            raise DecodeError("Decoder already released", component=self.name)
        try:
            frames = self.codec_context.decode(None)
        except av.error.FFmpegError as e:
            raise DecodeError(
                f"Failed to flush decoder for stream #{self.stream_index}: {e}",
                component=self.name,
                details={'stream_index': self.stream_index}
            ) from e
        self.frames_decoded += len(frames)
        LogManager.log_debug(self.name, f"Flushed {len(frames)} buffered frames")
        return list(frames)

    def release(self):
        self.codec_context = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.release()


def probe_video(file_path: Union[str, Path]) -> StreamDescriptor:
    """
    Convenience function to describe the video stream of a file.

    Args:
        file_path: Path to the video file

    Returns:
        StreamDescriptor of the first video stream
    """
    with ContainerReader(file_path) as reader:
        return reader.select_video_stream()
