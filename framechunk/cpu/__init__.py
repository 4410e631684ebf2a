"""
CPU module for per-frame filters.
"""

from .luma import rgb_to_luma_cpu
from .edge_detect import canny_cpu
from .gaussian_blur import gaussian_blur_cpu


__all__ = ['rgb_to_luma_cpu', 'canny_cpu', 'gaussian_blur_cpu']
