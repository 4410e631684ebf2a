import types
from fractions import Fraction

import numpy as np
import pytest

from framechunk.chainable import openx, resizex
from framechunk.chainable.basex import FrameProcessor, RescaledFrame, WriteError


class FakeRawFrame:
    """Stands in for a decoded av.VideoFrame; ``value`` tags it through the pipeline."""

    def __init__(self, value, width=64, height=48, pts=None, fail=False):
        self.value = value
        self.width = width
        self.height = height
        self.pts = pts if pts is not None else value
        self.time = None
        self.fail = fail


class FakeRGBFrame:
    def __init__(self, array):
        self._array = array

    def to_ndarray(self):
        return self._array


class FakeReformatter:
    calls = []

    def reformat(self, frame, width=None, height=None, format=None, interpolation=None):
        FakeReformatter.calls.append((width, height, format, interpolation))
        if frame.fail:
            raise ValueError("unsupported pixel format")
        return FakeRGBFrame(np.full((height, width, 3), frame.value % 256, dtype=np.uint8))


class FakeCodecContext:
    """Decoder that emits a scripted list of frames for each submitted packet."""

    def __init__(self, outputs=(), flush_output=(), width=64, height=48,
                 name="h264", pix_fmt="yuv420p", error_on=None):
        self.outputs = [list(frames) for frames in outputs]
        self.flush_output = list(flush_output)
        self.width = width
        self.height = height
        self.name = name
        self.pix_fmt = pix_fmt
        self.error_on = error_on
        self.submitted = []
        self.flushed = False

    def decode(self, packet=None):
        if packet is None:
            self.flushed = True
            return list(self.flush_output)
        if self.error_on is not None and len(self.submitted) == self.error_on:
            self.submitted.append(packet)
            raise openx.av.error.FFmpegError(-1, "corrupt packet")
        self.submitted.append(packet)
        return self.outputs.pop(0) if self.outputs else []


class FakeStream:
    def __init__(self, index, type="video", codec_context=None,
                 average_rate=Fraction(30, 1), guessed_rate=None):
        self.index = index
        self.type = type
        self.codec_context = codec_context or FakeCodecContext()
        self.average_rate = average_rate
        self.guessed_rate = guessed_rate


class FakePacket:
    def __init__(self, stream, size=128):
        self.stream = stream
        self.size = size


class FakeContainer:
    def __init__(self, streams, packets=()):
        self.streams = list(streams)
        self.packets = list(packets)
        self.closed = False

    def demux(self):
        for packet in self.packets:
            yield packet

    def close(self):
        self.closed = True


class RecordingProcessor(FrameProcessor):
    """Records every (index, tag) it receives instead of writing files."""

    def __init__(self, output_dir='frames', fail_on=()):
        super().__init__(output_dir, name="RecordingProcessor")
        self.received = []
        self.fail_on = set(fail_on)

    def apply_filter(self, raster):
        return raster

    def encode(self, result, fh):
        fh.write(result.tobytes())

    def process(self, frame, index):
        if index in self.fail_on:
            raise WriteError(f"cannot write frame {index}", component=self.name)
        self.received.append((index, int(frame.pixels[0, 0, 0])))
        return self.output_path(index)


@pytest.fixture
def video_path(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"stub")
    return path


@pytest.fixture
def install_container(monkeypatch):
    """Make av.open return the given fake container and swap in the fake reformatter."""
    FakeReformatter.calls = []
    monkeypatch.setattr(resizex, "VideoReformatter", FakeReformatter)

    def install(container):
        monkeypatch.setattr(openx.av, "open", lambda path: container)
        return container

    return install


@pytest.fixture
def fakes():
    return types.SimpleNamespace(
        RawFrame=FakeRawFrame,
        CodecContext=FakeCodecContext,
        Stream=FakeStream,
        Packet=FakePacket,
        Container=FakeContainer,
        Reformatter=FakeReformatter,
        RecordingProcessor=RecordingProcessor,
    )


@pytest.fixture
def sample_frame() -> RescaledFrame:
    """Small RGB frame, dark left half and bright right half."""
    pixels = np.zeros((30, 40, 3), dtype=np.uint8)
    pixels[:, 20:] = 255
    return RescaledFrame(pixels=pixels)
