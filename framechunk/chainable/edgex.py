"""
Edge detection frame processor.

Converts each rescaled frame to luma, runs Canny edge detection and stores
the edge map as a PNG.
"""

import numpy as np
from PIL import Image
from typing import Optional

from .basex import FrameProcessor, RescaledFrame, LogManager
from ..cpu.luma import rgb_to_luma_cpu
from ..cpu.edge_detect import canny_cpu


class EdgeDetector(FrameProcessor):
    """Writes ``frame{index}.png`` edge maps."""

    filename_template = "frame{index}.png"

    def __init__(self,
                 output_dir='frames',
                 sigma: float = 1.2,
                 strong_threshold: float = 0.2,
                 weak_threshold: float = 0.01,
                 create_dirs: bool = False,
                 name: Optional[str] = None):
        """
        Initialize EdgeDetector.

        Args:
            output_dir: Directory the PNG files are written to
            sigma: Gaussian smoothing applied before gradient computation
            strong_threshold: Strong-edge threshold, relative to the max gradient
            weak_threshold: Weak-edge threshold, relative to the max gradient
            create_dirs: Create output_dir instead of requiring it to exist
        """
        super().__init__(output_dir, name=name or "EdgeDetector", create_dirs=create_dirs)

        if sigma <= 0:
            raise ValueError(f"Sigma must be positive, got {sigma}")
        if not 0 <= weak_threshold <= strong_threshold <= 1:
            raise ValueError(
                f"Thresholds must satisfy 0 <= weak <= strong <= 1, got weak={weak_threshold}, strong={strong_threshold}"
            )

        self.sigma = sigma
        self.strong_threshold = strong_threshold
        self.weak_threshold = weak_threshold

        LogManager.log_info(
            self.name,
            f"Initialized: sigma={sigma}, strong={strong_threshold}, weak={weak_threshold}, output_dir={self.output_dir}"
        )

    def build_raster(self, frame: RescaledFrame) -> np.ndarray:
        return rgb_to_luma_cpu(frame.pixels)

    def apply_filter(self, raster: np.ndarray) -> np.ndarray:
        return canny_cpu(
            raster,
            sigma=self.sigma,
            strong_threshold=self.strong_threshold,
            weak_threshold=self.weak_threshold,
        )

    def encode(self, result: np.ndarray, fh) -> None:
        Image.fromarray(result).save(fh, format='PNG')
