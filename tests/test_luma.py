import numpy as np

from framechunk.cpu import rgb_to_luma_cpu, canny_cpu


def test_luma_weights():
    frame = np.array([[[0, 0, 0], [255, 255, 255], [255, 0, 0], [0, 255, 0]]], dtype=np.uint8)

    luma = rgb_to_luma_cpu(frame)

    assert luma.shape == (1, 4)
    assert luma.dtype == np.uint8
    assert luma.tolist() == [[0, 255, 54, 182]]


def test_canny_flat_image_has_no_edges():
    assert not canny_cpu(np.full((8, 8), 200, dtype=np.uint8)).any()
