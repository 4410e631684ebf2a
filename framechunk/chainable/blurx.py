"""
Gaussian blur frame processor.
"""

import numpy as np
from PIL import Image
from typing import Optional

from .basex import FrameProcessor, LogManager
from ..cpu.gaussian_blur import gaussian_blur_cpu


class FrameBlurrer(FrameProcessor):
    """Writes ``blurred_frame{index}.png`` blurred copies of each frame."""

    filename_template = "blurred_frame{index}.png"

    def __init__(self, output_dir='frames', sigma: float = 5.0, create_dirs: bool = False,
                 name: Optional[str] = None):
        super().__init__(output_dir, name=name or "FrameBlurrer", create_dirs=create_dirs)

        if sigma <= 0:
            raise ValueError(f"Blur sigma must be positive, got {sigma}")
        self.sigma = sigma

        LogManager.log_info(self.name, f"Initialized: sigma={sigma}, output_dir={self.output_dir}")

    def apply_filter(self, raster: np.ndarray) -> np.ndarray:
        return gaussian_blur_cpu(raster, sigma=self.sigma)

    def encode(self, result: np.ndarray, fh) -> None:
        Image.fromarray(result).save(fh, format='PNG')
