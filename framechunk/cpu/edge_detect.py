"""
CPU Canny edge detection backed by OpenCV.

Thresholds are given as fractions of the strongest gradient in the frame, so
the same parameters work regardless of frame contrast.
"""

import cv2
import numpy as np


def canny_cpu(luma: np.ndarray, sigma: float = 1.2,
              strong_threshold: float = 0.2, weak_threshold: float = 0.01) -> np.ndarray:
    """
    Detect edges in a single-channel image.

    Args:
        luma: (height, width) uint8 image
        sigma: Standard deviation of the Gaussian smoothing
        strong_threshold: Hysteresis upper bound, relative to the max gradient
        weak_threshold: Hysteresis lower bound, relative to the max gradient

    Returns:
        (height, width) uint8 edge map, 255 on edges and 0 elsewhere
    """
    if luma.ndim != 2:
        raise ValueError(f"Edge detection expects a 2D image, got shape {luma.shape}")
    if not 0 <= weak_threshold <= strong_threshold:
        raise ValueError(f"Invalid thresholds: weak={weak_threshold}, strong={strong_threshold}")

    smoothed = cv2.GaussianBlur(luma, (0, 0), sigmaX=sigma, sigmaY=sigma)
    dx = cv2.Sobel(smoothed, cv2.CV_16S, 1, 0, ksize=3)
    dy = cv2.Sobel(smoothed, cv2.CV_16S, 0, 1, ksize=3)

    max_magnitude = float(np.hypot(dx.astype(np.float32), dy.astype(np.float32)).max())
    if max_magnitude == 0:
        return np.zeros_like(luma)

    return cv2.Canny(
        dx, dy,
        weak_threshold * max_magnitude,
        strong_threshold * max_magnitude,
        L2gradient=True,
    )
