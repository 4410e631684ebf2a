"""
Frame rescaling component.

Converts decoded frames from their native pixel format and resolution to
RGB24 at a fixed height, keeping the source aspect ratio. The conversion is
delegated to PyAV's reformatter (swscale) with bilinear interpolation.
"""

import av
from av.video.reformatter import VideoReformatter
from fractions import Fraction
from typing import Tuple

from .basex import (
    StreamDescriptor, RescaledFrame, RescaleError, RasterConstructionError,
    LogManager, setup_component_logger
)

DEFAULT_DEST_HEIGHT = 720
TARGET_FORMAT = 'rgb24'
INTERPOLATION = 'BILINEAR'


def compute_target_resolution(descriptor: StreamDescriptor,
                              dest_height: int = DEFAULT_DEST_HEIGHT) -> Tuple[int, int]:
    """
    Compute the (width, height) frames are rescaled to.

    The height is fixed and the width follows the source aspect ratio,
    rounded to the nearest integer (halves round up).
    """
    if descriptor.width <= 0 or descriptor.height <= 0:
        raise RescaleError(
            f"Invalid source resolution: {descriptor.width}x{descriptor.height}",
            component="FrameRescaler"
        )
    if dest_height <= 0:
        raise ValueError(f"Invalid target height: {dest_height}")

    exact_width = Fraction(dest_height * descriptor.width, descriptor.height)
    dest_width = int(exact_width + Fraction(1, 2))
    return dest_width, dest_height


class FrameRescaler:
    """Rescales decoded frames to RGB24 at a fixed target resolution."""

    def __init__(self, target_resolution: Tuple[int, int], interpolation: str = INTERPOLATION):
        self.name = "FrameRescaler"
        self.target_resolution = target_resolution
        self.interpolation = interpolation
        self.logger = setup_component_logger(self.name)
        self.frames_rescaled = 0

        if target_resolution[0] <= 0 or target_resolution[1] <= 0:
            raise RescaleError(f"Invalid target resolution: {target_resolution}", component=self.name)

        self.reformatter = VideoReformatter()
        LogManager.log_info(
            self.name,
            f"Rescaler ready: -> {target_resolution[0]}x{target_resolution[1]} {TARGET_FORMAT}, {interpolation}"
        )

    @property
    def width(self) -> int:
        return self.target_resolution[0]

    @property
    def height(self) -> int:
        return self.target_resolution[1]

    def rescale(self, frame) -> RescaledFrame:
        """Convert one decoded frame into a RescaledFrame."""
        if self.reformatter is None:
            raise RescaleError("Rescaler already released", component=self.name)
        try:
            rgb_frame = self.reformatter.reformat(
                frame,
                width=self.width,
                height=self.height,
                format=TARGET_FORMAT,
                interpolation=self.interpolation,
            )
            pixels = rgb_frame.to_ndarray()
        except (av.error.FFmpegError, ValueError) as e:
            raise RescaleError(
                f"Rescale to {self.width}x{self.height} failed: {e}",
                component=self.name,
                details={'target_resolution': self.target_resolution}
            ) from e

        if pixels.shape[:2] != (self.height, self.width):
            raise RasterConstructionError(
                f"Rescaled raster is {pixels.shape[1]}x{pixels.shape[0]}, expected {self.width}x{self.height}",
                component=self.name
            )

        self.frames_rescaled += 1
        return RescaledFrame(
            pixels=pixels,
            pts=getattr(frame, 'pts', None),
            time=getattr(frame, 'time', None),
        )

    def release(self):
        self.reformatter = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.release()
