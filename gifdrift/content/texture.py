"""GPU texture management for GIF surfaces.

CPU side: :class:`CanvasTexture` wraps an RGBA numpy surface and a dirty
flag. GPU side: the helpers below upload those pixels to OpenGL textures and
:class:`TextureManager` keeps the texture objects in sync from the render
thread (the only place a GL context is current).
"""

from __future__ import annotations
from typing import Optional
import itertools
import logging

import numpy as np

try:
    import OpenGL.GL as GL
    _HAS_OPENGL = True
except ImportError:
    _HAS_OPENGL = False


logger = logging.getLogger(__name__)

_texture_ids = itertools.count(1)


class TextureUploadError(Exception):
    """Error during texture upload."""
    pass


class CanvasTexture:
    """Renderable view of an RGBA pixel surface.

    The owner mutates ``pixels`` in place and calls :meth:`mark_dirty`; the
    renderer uploads on its next frame and clears ``needs_update``.
    """

    def __init__(self, pixels: np.ndarray, *, label: str = "", filter_linear: bool = True):
        if pixels.dtype != np.uint8 or pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError("Texture pixels must be (height, width, 4) uint8")
        self.uid = next(_texture_ids)
        self.label = label or f"texture-{self.uid}"
        self.filter_linear = filter_linear
        self._pixels: Optional[np.ndarray] = pixels
        self.needs_update = True
        self.version = 0
        self.disposed = False
        self.gl_id: Optional[int] = None

    @property
    def pixels(self) -> Optional[np.ndarray]:
        return self._pixels

    @property
    def width(self) -> int:
        return 0 if self._pixels is None else int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return 0 if self._pixels is None else int(self._pixels.shape[0])

    def mark_dirty(self) -> None:
        if self.disposed:
            return
        self.needs_update = True
        self.version += 1

    def dispose(self) -> None:
        """Release the CPU pixels; the GL object is deleted by the TextureManager."""
        if self.disposed:
            return
        self.disposed = True
        self.needs_update = False
        self._pixels = None

    def __repr__(self) -> str:
        state = "disposed" if self.disposed else f"{self.width}x{self.height} v{self.version}"
        return f"CanvasTexture({self.label}, {state})"


def upload_rgba_to_gpu(
    pixels: np.ndarray,
    texture_id: Optional[int] = None,
    filter_linear: bool = True
) -> int:
    """Upload RGBA pixels to an OpenGL texture.

    Args:
        pixels: RGBA uint8 array (height, width, 4), row 0 = top of image
        texture_id: Existing texture ID to reuse, or None to generate new
        filter_linear: Use linear filtering (True) or nearest (False)

    Returns:
        OpenGL texture ID

    Raises:
        TextureUploadError: If OpenGL not available or upload fails
    """
    if not _HAS_OPENGL:
        raise TextureUploadError("OpenGL not available")

    try:
        if texture_id is None:
            texture_id = int(GL.glGenTextures(1))

        GL.glBindTexture(GL.GL_TEXTURE_2D, texture_id)

        if filter_linear:
            GL.glTexParameteri(GL.GL_TEXTURE_2D, GL.GL_TEXTURE_MIN_FILTER, GL.GL_LINEAR)
            GL.glTexParameteri(GL.GL_TEXTURE_2D, GL.GL_TEXTURE_MAG_FILTER, GL.GL_LINEAR)
        else:
            GL.glTexParameteri(GL.GL_TEXTURE_2D, GL.GL_TEXTURE_MIN_FILTER, GL.GL_NEAREST)
            GL.glTexParameteri(GL.GL_TEXTURE_2D, GL.GL_TEXTURE_MAG_FILTER, GL.GL_NEAREST)

        GL.glTexParameteri(GL.GL_TEXTURE_2D, GL.GL_TEXTURE_WRAP_S, GL.GL_CLAMP_TO_EDGE)
        GL.glTexParameteri(GL.GL_TEXTURE_2D, GL.GL_TEXTURE_WRAP_T, GL.GL_CLAMP_TO_EDGE)

        height, width = pixels.shape[:2]
        GL.glPixelStorei(GL.GL_UNPACK_ALIGNMENT, 1)
        GL.glTexImage2D(
            GL.GL_TEXTURE_2D,
            0,
            GL.GL_RGBA8,
            width,
            height,
            0,
            GL.GL_RGBA,
            GL.GL_UNSIGNED_BYTE,
            np.ascontiguousarray(pixels)
        )

        GL.glBindTexture(GL.GL_TEXTURE_2D, 0)
        return texture_id

    except Exception as e:
        raise TextureUploadError(f"Failed to upload texture: {e}") from e


def delete_texture(texture_id: int) -> None:
    """Delete OpenGL texture."""
    if not _HAS_OPENGL:
        return

    try:
        GL.glDeleteTextures([texture_id])
        logger.debug(f"Deleted texture {texture_id}")
    except Exception as e:
        logger.warning(f"Failed to delete texture {texture_id}: {e}")


def bind_texture(texture_id: int, texture_unit: int = 0) -> None:
    """Bind texture for rendering.

    Args:
        texture_id: OpenGL texture ID
        texture_unit: Texture unit (0-31, default 0)
    """
    if not _HAS_OPENGL:
        return

    GL.glActiveTexture(GL.GL_TEXTURE0 + texture_unit)
    GL.glBindTexture(GL.GL_TEXTURE_2D, texture_id)


class TextureManager:
    """Keeps GL texture objects in sync with :class:`CanvasTexture` instances.

    Must only be driven while a GL context is current (``paintGL``).
    """

    def __init__(self):
        self._textures: dict[int, CanvasTexture] = {}  # uid -> texture
        self._failures: dict[int, int] = {}  # uid -> failed upload count

    def sync(self, texture: CanvasTexture) -> Optional[int]:
        """Upload *texture* if dirty and return its GL id (None if unusable)."""
        if texture.disposed or texture.pixels is None:
            return None
        self._textures.setdefault(texture.uid, texture)
        if texture.gl_id is not None and not texture.needs_update:
            return texture.gl_id
        try:
            texture.gl_id = upload_rgba_to_gpu(
                texture.pixels, texture.gl_id, filter_linear=texture.filter_linear
            )
        except TextureUploadError as e:
            count = self._failures.get(texture.uid, 0) + 1
            self._failures[texture.uid] = count
            if count == 1:
                logger.warning("[texture] upload failed for %s: %s", texture.label, e)
            return texture.gl_id
        self._failures.pop(texture.uid, None)
        texture.needs_update = False
        return texture.gl_id

    def collect(self) -> int:
        """Delete GL objects of disposed textures. Returns how many were freed."""
        freed = 0
        for uid, texture in list(self._textures.items()):
            if not texture.disposed:
                continue
            self._textures.pop(uid, None)
            self._failures.pop(uid, None)
            if texture.gl_id is not None:
                delete_texture(texture.gl_id)
                texture.gl_id = None
                freed += 1
        if freed:
            logger.debug("[texture] freed %d GL textures", freed)
        return freed

    def clear(self) -> None:
        """Delete all textures."""
        for texture in list(self._textures.values()):
            if texture.gl_id is not None:
                delete_texture(texture.gl_id)
                texture.gl_id = None

        count = len(self._textures)
        self._textures.clear()
        self._failures.clear()
        logger.info(f"Cleared {count} textures")

    def get_stats(self) -> dict:
        return {
            'texture_count': len(self._textures),
            'uploaded': sum(1 for t in self._textures.values() if t.gl_id is not None),
        }
