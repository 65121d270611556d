"""pytest configuration file."""

import io
import logging
import os

import numpy as np
import pytest

# Qt must never try to open a real display during tests
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PIL import Image  # noqa: E402

from gifdrift.content.frames import DisposalMode, Frame, FrameStore  # noqa: E402
from gifdrift.engine.scheduler import ManualScheduler  # noqa: E402
from gifdrift.logging_utils import LogMode, set_log_mode  # noqa: E402

SOLID_COLORS = [(255, 0, 0, 255), (0, 255, 0, 255), (0, 0, 255, 255), (255, 255, 0, 255)]


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "qt: marks tests that need a QApplication (pytest-qt)"
    )


@pytest.fixture(autouse=True)
def _reset_log_mode():
    yield
    set_log_mode(LogMode.NORMAL)


@pytest.fixture(autouse=True, scope="session")
def _quiet_third_party_logs():
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    yield


@pytest.fixture
def make_gif():
    """Factory returning GIF bytes encoded by Pillow.

    ``make_gif(frames, durations=..., **save_kwargs)`` where *frames* are PIL
    images; defaults to solid colour 8x6 frames.
    """
    def _make(frames=None, durations=(40, 80, 120), **save_kwargs):
        if frames is None:
            frames = [Image.new("RGBA", (8, 6), color) for color in SOLID_COLORS[:len(durations)]]
        buf = io.BytesIO()
        frames[0].save(
            buf,
            format="GIF",
            save_all=True,
            append_images=list(frames[1:]),
            duration=list(durations),
            loop=0,
            **save_kwargs,
        )
        return buf.getvalue()
    return _make


@pytest.fixture
def gif_bytes(make_gif):
    return make_gif()


@pytest.fixture
def gif_path(tmp_path, gif_bytes):
    path = tmp_path / "sample.gif"
    path.write_bytes(gif_bytes)
    return path


@pytest.fixture
def make_store():
    """Factory for hand-built FrameStores.

    Frame *i* is filled with the value ``i + 1`` in every channel, so the
    composited surface shows which frame last touched each pixel.
    """
    def _make(durations=(100, 100, 100), width=4, height=4, rects=None, disposals=None,
              source="<synthetic>"):
        frames = []
        for i, duration in enumerate(durations):
            left, top, w, h = rects[i] if rects else (0, 0, width, height)
            disposal = disposals[i] if disposals else DisposalMode.NONE
            patch = np.full((h, w, 4), i + 1, dtype=np.uint8)
            frames.append(Frame(patch, left, top, w, h, disposal=disposal, duration_ms=duration))
        return FrameStore(frames, width, height, source=source)
    return _make


@pytest.fixture
def scheduler():
    return ManualScheduler()
