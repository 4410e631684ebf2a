"""
Raw raster export.

Writes frames untouched as binary PPM files, for debugging and ground-truth
comparisons against the filtered outputs.
"""

import numpy as np
from typing import Optional

from .basex import FrameProcessor, RescaledFrame


def ppm_header(width: int, height: int) -> bytes:
    return f"P6\n{width} {height}\n255\n".encode('ascii')


class RawFrameExporter(FrameProcessor):
    """Writes ``frame{index}.ppm`` with the exact RGB payload of each frame."""

    filename_template = "frame{index}.ppm"

    def __init__(self, output_dir='frames', create_dirs: bool = False, name: Optional[str] = None):
        super().__init__(output_dir, name=name or "RawFrameExporter", create_dirs=create_dirs)

    def build_raster(self, frame: RescaledFrame) -> np.ndarray:
        # swscale output can carry row padding; PPM needs tightly packed rows
        return np.ascontiguousarray(frame.pixels)

    def apply_filter(self, raster: np.ndarray) -> np.ndarray:
        return raster

    def encode(self, result: np.ndarray, fh) -> None:
        height, width = result.shape[:2]
        fh.write(ppm_header(width, height))
        fh.write(result.tobytes())
