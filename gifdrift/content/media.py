"""Still-image loading for the gallery scene.

Images are decoded to RGBA in RAM here; the GPU upload happens later on the
render thread through the texture manager.
"""

from __future__ import annotations
from dataclasses import dataclass
import logging
from typing import Optional
from pathlib import Path

import numpy as np
from PIL import Image as PILImage, UnidentifiedImageError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ImageData:
    """Image data in RAM (not yet uploaded to GPU).

    Attributes:
        width: Image width in pixels
        height: Image height in pixels
        data: RGBA pixel data as numpy array (height, width, 4) uint8
        path: Source file path
    """
    width: int
    height: int
    data: np.ndarray  # (height, width, 4) RGBA uint8
    path: Path

    def __post_init__(self):
        """Validate image data."""
        if self.data.dtype != np.uint8:
            raise ValueError("Image data must be uint8")
        if self.data.ndim != 3 or self.data.shape[2] != 4:
            raise ValueError("Image data must be (height, width, 4) RGBA")
        if self.data.shape[0] != self.height or self.data.shape[1] != self.width:
            raise ValueError(f"Image shape mismatch: {self.data.shape} vs ({self.height}, {self.width}, 4)")

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


def load_image_sync(path: Path) -> Optional[ImageData]:
    """Load an image file synchronously.

    Args:
        path: Path to image file

    Returns:
        ImageData if successful, None if failed
    """
    path = Path(path)
    try:
        with PILImage.open(path) as img:
            if img.mode != 'RGBA':
                img = img.convert('RGBA')
            data = np.array(img, dtype=np.uint8)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning(f"[media] Failed to load {path}: {e}")
        return None

    height, width = data.shape[:2]
    return ImageData(width=width, height=height, data=data, path=path)
