"""
CPU RGB to luma conversion.

Rec. 709 weights, compiled with Numba.
"""

import numpy as np
from numba import jit, prange


@jit(nopython=True, parallel=True)
def rgb_to_luma_cpu(frame: np.ndarray) -> np.ndarray:
    """Convert one (height, width, 3) RGB frame to a (height, width) luma plane."""
    height, width = frame.shape[0], frame.shape[1]
    output = np.zeros((height, width), dtype=np.uint8)
    for y in prange(height):
        for x in range(width):
            luma = (0.2126 * frame[y, x, 0] +
                    0.7152 * frame[y, x, 1] +
                    0.0722 * frame[y, x, 2])
            output[y, x] = min(255, max(0, int(luma + 0.5)))
    return output
