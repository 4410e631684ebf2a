from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from framechunk.chainable.basex import (
    RescaledFrame, RasterConstructionError, EncodeError, WriteError
)
from framechunk.chainable.blurx import FrameBlurrer
from framechunk.chainable.edgex import EdgeDetector
from framechunk.chainable.ppmx import RawFrameExporter
from framechunk.chainable.selectx import PROCESSORS, create_processor, build_processor_chain


def test_edge_detector_writes_binary_edge_map(sample_frame, tmp_path):
    detector = EdgeDetector(tmp_path)

    path = detector.process(sample_frame, 4)

    assert path == tmp_path / "frame4.png"
    with Image.open(path) as image:
        assert image.mode == "L"
        assert image.size == (40, 30)
        edges = np.asarray(image)
    assert set(np.unique(edges)) <= {0, 255}
    # the step between the dark and bright halves is an edge, the flat areas are not
    assert edges[:, 18:22].any()
    assert not edges[:, :10].any()
    assert not edges[:, 30:].any()


def test_edge_detector_flat_frame_has_no_edges(tmp_path):
    frame = RescaledFrame(pixels=np.full((16, 16, 3), 90, dtype=np.uint8))

    path = EdgeDetector(tmp_path).process(frame, 0)

    with Image.open(path) as image:
        assert not np.asarray(image).any()


def test_edge_detector_validates_thresholds():
    with pytest.raises(ValueError):
        EdgeDetector(strong_threshold=0.01, weak_threshold=0.2)


def test_blurrer_writes_blurred_rgb(tmp_path):
    pixels = np.zeros((31, 31, 3), dtype=np.uint8)
    pixels[13:18, 13:18] = 255
    frame = RescaledFrame(pixels=pixels)

    path = FrameBlurrer(tmp_path).process(frame, 7)

    assert path == tmp_path / "blurred_frame7.png"
    with Image.open(path) as image:
        assert image.mode == "RGB"
        assert image.size == (31, 31)
        blurred = np.asarray(image)
    assert blurred[15, 15, 0] < 255
    assert blurred[15, 22, 0] > 0


def test_raw_exporter_writes_exact_payload(tmp_path):
    pixels = np.arange(2 * 3 * 3, dtype=np.uint8).reshape(2, 3, 3)
    frame = RescaledFrame(pixels=pixels)

    path = RawFrameExporter(tmp_path).process(frame, 12)

    assert path == tmp_path / "frame12.ppm"
    assert path.read_bytes() == b"P6\n3 2\n255\n" + pixels.tobytes()


def test_raw_exporter_packs_strided_frames(tmp_path):
    padded = np.zeros((2, 4, 3), dtype=np.uint8)
    padded[:, :3] = 9
    frame = RescaledFrame(pixels=padded[:, :3])

    path = RawFrameExporter(tmp_path).process(frame, 0)

    assert path.read_bytes() == b"P6\n3 2\n255\n" + bytes([9] * 18)


def test_missing_output_directory_is_write_error(sample_frame, tmp_path):
    detector = EdgeDetector(tmp_path / "missing")

    with pytest.raises(WriteError):
        detector.process(sample_frame, 0)


def test_create_dirs_prepares_output_directory(sample_frame, tmp_path):
    blurrer = FrameBlurrer(tmp_path / "nested" / "frames", create_dirs=True)

    blurrer.prepare()

    assert blurrer.process(sample_frame, 0).exists()


def test_encode_failure_is_encode_error(sample_frame, tmp_path, monkeypatch):
    blurrer = FrameBlurrer(tmp_path)

    def broken_encode(result, fh):
        raise ValueError("unknown file extension")

    monkeypatch.setattr(blurrer, "encode", broken_encode)

    with pytest.raises(EncodeError):
        blurrer.process(sample_frame, 0)


def test_raster_size_mismatch():
    with pytest.raises(RasterConstructionError):
        RescaledFrame.from_buffer(b"\x00" * 10, width=2, height=2)

    frame = RescaledFrame.from_buffer(bytes(range(12)), width=2, height=2)
    assert frame.resolution == (2, 2)
    assert frame.pixels[1, 1].tolist() == [9, 10, 11]


def test_raster_shape_is_validated():
    with pytest.raises(RasterConstructionError):
        RescaledFrame(pixels=np.zeros((4, 4), dtype=np.uint8))
    with pytest.raises(RasterConstructionError):
        RescaledFrame(pixels=np.zeros((4, 4, 3), dtype=np.float32))


def test_timings_are_recorded(sample_frame, tmp_path):
    exporter = RawFrameExporter(tmp_path)

    exporter.process(sample_frame, 0)

    timing = exporter.timings[-1]
    assert set(timing) == {"raster", "filter", "write", "total"}
    assert timing["total"] >= timing["write"]


def test_chained_processors_all_run(sample_frame, tmp_path):
    head = EdgeDetector(tmp_path)
    head.set_next(FrameBlurrer(tmp_path)).set_next(RawFrameExporter(tmp_path))

    written = head.execute(sample_frame, 3)

    assert [p.name for p in written] == ["frame3.png", "blurred_frame3.png", "frame3.ppm"]
    assert all(p.exists() for p in written)


def test_processor_registry(tmp_path):
    assert set(PROCESSORS) == {"edge", "blur", "raw"}
    assert isinstance(create_processor("BLUR", output_dir=tmp_path), FrameBlurrer)

    with pytest.raises(ValueError):
        create_processor("sharpen")


def test_build_processor_chain_keeps_order(tmp_path):
    head = build_processor_chain(["raw", "edge"], output_dir=tmp_path)

    assert [type(p) for p in head.chain()] == [RawFrameExporter, EdgeDetector]
    assert all(p.output_dir == tmp_path for p in head.chain())

    with pytest.raises(ValueError):
        build_processor_chain([])


def test_failed_encode_leaves_no_file(sample_frame, tmp_path, monkeypatch):
    blurrer = FrameBlurrer(tmp_path)

    def half_written_encode(result, fh):
        fh.write(b"\x89PNG partial")
        raise ValueError("encoder gave up")

    monkeypatch.setattr(blurrer, "encode", half_written_encode)

    with pytest.raises(EncodeError):
        blurrer.process(sample_frame, 0)
    assert not (tmp_path / "blurred_frame0.png").exists()


def test_encoder_oserror_is_encode_error(sample_frame, tmp_path, monkeypatch):
    detector = EdgeDetector(tmp_path)

    def failing_encode(result, fh):
        raise OSError("encoder error -2 when writing image file")

    monkeypatch.setattr(detector, "encode", failing_encode)

    with pytest.raises(EncodeError):
        detector.process(sample_frame, 2)
    assert not (tmp_path / "frame2.png").exists()


def test_failed_write_removes_partial_file(sample_frame, tmp_path, monkeypatch):
    real_write_bytes = Path.write_bytes

    def disk_full(self, data):
        real_write_bytes(self, bytes(data)[:8])
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(Path, "write_bytes", disk_full)

    with pytest.raises(WriteError):
        RawFrameExporter(tmp_path).process(sample_frame, 5)
    assert not (tmp_path / "frame5.ppm").exists()
