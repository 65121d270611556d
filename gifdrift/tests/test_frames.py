"""Tests for animated-image decoding."""

import io

import numpy as np
import pytest
from PIL import Image

from gifdrift.content.composite import CompositeBuffer
from gifdrift.content.frames import (
    DEFAULT_FRAME_DURATION_MS,
    DecodeError,
    DisposalMode,
    Frame,
    FrameStore,
    decode,
    decode_file,
)


class TestDecode:
    """decode() on Pillow-encoded GIFs."""

    def test_frame_count_canvas_and_durations(self, gif_bytes):
        store = decode(gif_bytes, source="sample.gif")
        assert store.frame_count == 3
        assert len(store) == 3
        assert (store.width, store.height) == (8, 6)
        assert store.durations == [40, 80, 120]
        assert store.total_duration_ms == 240
        assert store.source == "sample.gif"

    def test_recomposited_frames_match_pillow(self, make_gif):
        """Put-compositing the decoded patches reproduces Pillow's own frames."""
        base = Image.new("RGBA", (8, 6), (255, 0, 0, 255))
        corner = base.copy()
        corner.paste((0, 0, 255, 255), (5, 3, 8, 6))
        stripe = corner.copy()
        stripe.paste((0, 255, 0, 255), (0, 0, 8, 2))
        data = make_gif([base, corner, stripe], durations=(50, 50, 50))

        store = decode(data)
        buffer = CompositeBuffer(store)
        with Image.open(io.BytesIO(data)) as img:
            for index in range(store.frame_count):
                img.seek(index)
                expected = np.asarray(img.convert("RGBA"))
                buffer.apply(index)
                np.testing.assert_array_equal(buffer.pixels, expected)

    def test_patches_fit_inside_canvas(self, gif_bytes):
        store = decode(gif_bytes)
        for frame in store:
            assert frame.left >= 0 and frame.top >= 0
            assert frame.left + frame.width <= store.width
            assert frame.top + frame.height <= store.height
            assert frame.patch.shape == (frame.height, frame.width, 4)

    def test_zero_duration_defaults(self, make_gif):
        store = decode(make_gif(durations=(0, 0)))
        assert store.durations == [DEFAULT_FRAME_DURATION_MS] * 2

    def test_single_still_image(self):
        buf = io.BytesIO()
        Image.new("RGBA", (3, 2), (10, 20, 30, 255)).save(buf, format="PNG")
        store = decode(buf.getvalue())
        assert store.frame_count == 1
        assert store.aspect_ratio == pytest.approx(1.5)

    def test_empty_buffer_raises(self):
        with pytest.raises(DecodeError, match="Empty buffer"):
            decode(b"")

    def test_garbage_raises(self):
        with pytest.raises(DecodeError):
            decode(b"definitely not an image", source="junk.bin")

    def test_decode_file(self, gif_path):
        store = decode_file(gif_path)
        assert store.source == str(gif_path)
        assert store.frame_count == 3

    def test_decode_file_missing(self, tmp_path):
        with pytest.raises(DecodeError, match="Cannot read"):
            decode_file(tmp_path / "missing.gif")


class TestFrameStore:
    def test_empty_store_rejected(self):
        with pytest.raises(DecodeError):
            FrameStore([], 4, 4)

    def test_describe_is_json_friendly(self, make_store):
        store = make_store(durations=(30, 0), disposals=[DisposalMode.BACKGROUND, DisposalMode.NONE])
        info = store.describe()
        assert info["frame_count"] == 2
        assert info["frames"][0] == {"index": 0, "rect": [0, 0, 4, 4], "disposal": "background", "duration_ms": 30}
        assert info["frames"][1]["duration_ms"] == DEFAULT_FRAME_DURATION_MS

    def test_patches_are_read_only(self, make_store):
        store = make_store()
        with pytest.raises(ValueError):
            store[0].patch[0, 0, 0] = 99


class TestFrame:
    def test_shape_mismatch(self):
        with pytest.raises(ValueError, match="shape mismatch"):
            Frame(np.zeros((2, 2, 4), np.uint8), 0, 0, 3, 2)

    def test_dtype(self):
        with pytest.raises(ValueError, match="uint8"):
            Frame(np.zeros((2, 2, 4), np.float32), 0, 0, 2, 2)


class TestDisposalMode:
    @pytest.mark.parametrize("code, mode", [
        (None, DisposalMode.NONE),
        (0, DisposalMode.NONE),
        (1, DisposalMode.NONE),
        (2, DisposalMode.BACKGROUND),
        (3, DisposalMode.PREVIOUS),
    ])
    def test_from_gif(self, code, mode):
        assert DisposalMode.from_gif(code) is mode

    def test_from_apng(self):
        assert DisposalMode.from_apng(0) is DisposalMode.NONE
        assert DisposalMode.from_apng(1) is DisposalMode.BACKGROUND
        assert DisposalMode.from_apng(2) is DisposalMode.PREVIOUS
