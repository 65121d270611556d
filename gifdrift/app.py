"""Qt application bootstrap.

Builds the window (GL scene view + a scroll bar standing in for the page
scroll), wires the engine for the selected mode and runs the Qt event loop.

Modes:
    pool      scroll-gated stream of drifting GIF instances
    showcase  one looping GIF in the middle of the scene
    gallery   still images on wave-distorted planes
"""
import logging
import sys
from typing import Optional

from PyQt6.QtCore import Qt
from PyQt6.QtWidgets import QApplication, QHBoxLayout, QScrollBar, QWidget

from . import __app_name__, __version__
from .config import AppConfig
from .content.frames import FrameStore
from .content.loader import AssetLoader
from .engine.loop import RenderLoop
from .engine.pool import InstancePool
from .engine.scheduler import QtScheduler
from .engine.spawn import SpawnController, scroll_fraction
from .engine.tween import Tweener
from .logging_utils import setup_logging
from .scene.camera import PerspectiveCamera
from .scene.gallery import GalleryLayout, ImageGallery
from .scene.graph import Scene
from .scene.showcase import Showcase
from .scene.view import SceneView

logger = logging.getLogger(__name__)

MODES = ("pool", "showcase", "gallery")


class GifDriftWindow(QWidget):  # pragma: no cover (needs a display + GL)
    def __init__(self, config: AppConfig, parent=None):
        super().__init__(parent)
        if config.mode not in MODES:
            raise ValueError(f"Unknown mode {config.mode!r}; expected one of {MODES}")
        self.config = config
        self.setWindowTitle(f"{__app_name__} {__version__}")
        self.resize(*config.scene.windowed_size)

        gallery_mode = config.mode == "gallery"
        sc = config.scene
        self.scheduler = QtScheduler(self)
        self.tweener = Tweener()
        self.scene = Scene(sc.gallery_background if gallery_mode else sc.pool_background)
        self.camera = PerspectiveCamera(
            sc.fov, sc.windowed_size[0] / sc.windowed_size[1],
            position=(0.0, 0.0, sc.gallery_camera_z if gallery_mode else sc.camera_z),
        )
        self.view = SceneView(self.scene, self.camera, self)

        self.scroll = QScrollBar(Qt.Orientation.Vertical, self)
        self.scroll.setRange(0, 100)
        self.scroll.setPageStep(10)

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        layout.addWidget(self.view, 1)
        layout.addWidget(self.scroll)

        self.pool: Optional[InstancePool] = None
        self.spawn: Optional[SpawnController] = None
        self.showcase: Optional[Showcase] = None
        self.gallery: Optional[ImageGallery] = None
        self.loader = AssetLoader(on_loaded=self._on_asset_loaded)

        if config.mode == "pool":
            self.pool = InstancePool(self.scene, self.scheduler, self.tweener,
                                     config.instance, config.playback)
            self.spawn = SpawnController(self.pool, self.scheduler, config.spawn)
        elif config.mode == "showcase":
            self.showcase = Showcase(self.scene, self.scheduler, playback=config.playback,
                                     plane_extent=config.instance.plane_extent)
        else:
            self.gallery = ImageGallery(self.scene, GalleryLayout())
            self.scroll.hide()

        self.loop = RenderLoop(self.scheduler, self.tweener, self.pool, self.view.render_frame,
                               frame_interval_ms=1000.0 / max(1, sc.fps))
        if self.gallery is not None:
            self.loop.add_hook(self.gallery.advance)

    def start(self) -> None:
        cfg = self.config
        if self.gallery is not None:
            self.gallery.load(cfg.gallery_images)
        elif cfg.asset:
            self.loader.load(cfg.asset)
        else:
            logger.warning("[app] no asset configured for %s mode", cfg.mode)

        if self.spawn is not None:
            self.scroll.valueChanged.connect(self._on_scroll)
            # Evaluate once so a pre-scrolled start spawns immediately
            self._on_scroll(self.scroll.value())
        self.loop.start()

    def _current_fraction(self, value: int) -> float:
        viewport = self.scroll.pageStep()
        document = (self.scroll.maximum() - self.scroll.minimum()) + viewport
        return scroll_fraction(value - self.scroll.minimum(), document, viewport)

    def _on_scroll(self, value: int) -> None:
        self.spawn.evaluate(self._current_fraction(value))

    def _on_asset_loaded(self, store: FrameStore) -> None:
        if self.pool is not None:
            self.pool.load_asset(store)
        elif self.showcase is not None:
            self.showcase.load(store)

    def closeEvent(self, event):
        logger.info("[app] shutting down")
        if self.spawn is not None:
            self.spawn.shutdown()
        if self.pool is not None:
            self.pool.clear_all()
        if self.showcase is not None:
            self.showcase.dispose()
        if self.gallery is not None:
            self.gallery.clear()
        self.loop.stop()
        self.scheduler.cancel_all()
        self.view.release_gl()
        super().closeEvent(event)


def run(config: Optional[AppConfig] = None) -> int:  # pragma: no cover
    """Launch the GUI and block until the window closes. Returns the exit code."""
    if not logging.getLogger().handlers:
        setup_logging(level="WARNING", add_console=True)
    config = config or AppConfig.from_env()

    app = QApplication.instance() or QApplication(sys.argv)
    win = GifDriftWindow(config)
    win.show()
    win.start()
    logger.info("[app] %s %s running in %s mode", __app_name__, __version__, config.mode)
    return app.exec()
