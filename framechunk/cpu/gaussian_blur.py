"""
CPU Gaussian blur backed by Pillow.
"""

import numpy as np
from PIL import Image, ImageFilter


def gaussian_blur_cpu(frame: np.ndarray, sigma: float = 5.0) -> np.ndarray:
    """Blur a (height, width, 3) RGB frame with the given standard deviation."""
    if sigma < 0:
        raise ValueError(f"Blur sigma must be non-negative, got {sigma}")
    image = Image.fromarray(frame)
    blurred = image.filter(ImageFilter.GaussianBlur(radius=sigma))
    return np.asarray(blurred)
