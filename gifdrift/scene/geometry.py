"""Meshes, materials and transforms for textured planes.

Everything here is CPU-side: vertex arrays live in numpy and are uploaded by
:class:`~gifdrift.scene.view.SceneView` when their ``version`` changes.
"""

from __future__ import annotations

import itertools
import logging
from typing import Iterator, Optional

import numpy as np

from ..content.texture import CanvasTexture

logger = logging.getLogger(__name__)


class Vector3:
    """Mutable xyz triple; attributes are tweenable (``position.x``)."""

    __slots__ = ("x", "y", "z")

    def __init__(self, x: float = 0.0, y: float = 0.0, z: float = 0.0):
        self.x = float(x)
        self.y = float(y)
        self.z = float(z)

    def set(self, x: float, y: float, z: float) -> "Vector3":
        self.x, self.y, self.z = float(x), float(y), float(z)
        return self

    def to_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def __iter__(self) -> Iterator[float]:
        return iter((self.x, self.y, self.z))

    def __eq__(self, other) -> bool:
        if isinstance(other, Vector3):
            return self.to_tuple() == other.to_tuple()
        if isinstance(other, tuple):
            return self.to_tuple() == tuple(float(v) for v in other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Vector3({self.x:.3f}, {self.y:.3f}, {self.z:.3f})"


def plane_size_for_aspect(aspect: float, extent: float = 4.0) -> tuple[float, float]:
    """Fit a plane of the given aspect ratio so its longest side is *extent*."""
    if aspect <= 0:
        raise ValueError(f"Aspect ratio must be positive, got {aspect}")
    if aspect > 1:
        return extent, extent / aspect
    return extent * aspect, extent


class PlaneGeometry:
    """Subdivided plane in the XY plane, centred on the origin.

    Vertices run row by row from the top edge; ``v`` is 1 on the top row and
    0 on the bottom row. Triangles are wound counter-clockwise seen from +Z.

    Args:
        width: Size along X
        height: Size along Y
        w_segments: Columns of quads
        h_segments: Rows of quads
    """

    _ids = itertools.count(1)

    def __init__(self, width: float = 1.0, height: float = 1.0,
                 w_segments: int = 1, h_segments: int = 1):
        if width <= 0 or height <= 0:
            raise ValueError(f"Plane size must be positive, got {width}x{height}")
        if w_segments < 1 or h_segments < 1:
            raise ValueError("Plane needs at least one segment per axis")
        self.uid = next(self._ids)
        self.width = float(width)
        self.height = float(height)
        self.w_segments = int(w_segments)
        self.h_segments = int(h_segments)

        gx, gy = self.w_segments + 1, self.h_segments + 1
        xs = np.linspace(-self.width / 2, self.width / 2, gx, dtype=np.float32)
        ys = np.linspace(self.height / 2, -self.height / 2, gy, dtype=np.float32)
        px, py = np.meshgrid(xs, ys)
        self.positions = np.stack([px.ravel(), py.ravel(), np.zeros(gx * gy, np.float32)], axis=1)

        us = np.linspace(0.0, 1.0, gx, dtype=np.float32)
        vs = np.linspace(1.0, 0.0, gy, dtype=np.float32)
        pu, pv = np.meshgrid(us, vs)
        self.uvs = np.stack([pu.ravel(), pv.ravel()], axis=1).astype(np.float32)

        indices = []
        for iy in range(self.h_segments):
            for ix in range(self.w_segments):
                a = ix + gx * iy
                b = ix + gx * (iy + 1)
                c = (ix + 1) + gx * (iy + 1)
                d = (ix + 1) + gx * iy
                indices.extend((a, b, d, b, c, d))
        self.indices = np.asarray(indices, dtype=np.uint32)

        self.original_positions = self.positions.copy()
        self.original_positions.setflags(write=False)
        self.version = 0
        self.disposed = False

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    def mark_vertices_changed(self) -> None:
        self.version += 1

    def dispose(self) -> None:
        self.disposed = True

    def __repr__(self) -> str:
        return (f"PlaneGeometry({self.width:.2f}x{self.height:.2f}, "
                f"{self.w_segments}x{self.h_segments} segments)")


class Material:
    """Unlit textured material."""

    def __init__(self, texture: Optional[CanvasTexture] = None, *, transparent: bool = False,
                 double_sided: bool = False, alpha_test: float = 0.0, opacity: float = 1.0):
        self.texture = texture
        self.transparent = transparent
        self.double_sided = double_sided
        self.alpha_test = float(alpha_test)
        self.opacity = float(opacity)
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def clone(self, texture: Optional[CanvasTexture] = None) -> "Material":
        """Copy the render state, optionally binding a different texture."""
        return Material(texture if texture is not None else self.texture,
                        transparent=self.transparent, double_sided=self.double_sided,
                        alpha_test=self.alpha_test, opacity=self.opacity)

    def dispose(self) -> None:
        """Mark released. The texture is owned elsewhere and left alone."""
        if self._disposed:
            return
        self._disposed = True
        self.texture = None

    def __repr__(self) -> str:
        return f"Material(texture={self.texture!r}, disposed={self._disposed})"


class Surface:
    """A mesh placed in the scene: shared geometry + a material + transform."""

    _ids = itertools.count(1)

    def __init__(self, geometry: PlaneGeometry, material: Material, *, name: str = ""):
        self.uid = next(self._ids)
        self.geometry = geometry
        self.material = material
        self.name = name or f"surface-{self.uid}"
        self.position = Vector3()
        self.scale = Vector3(1.0, 1.0, 1.0)
        self.visible = True

    def model_matrix(self) -> np.ndarray:
        m = np.diag([self.scale.x, self.scale.y, self.scale.z, 1.0]).astype(np.float32)
        m[0, 3] = self.position.x
        m[1, 3] = self.position.y
        m[2, 3] = self.position.z
        return m

    def __repr__(self) -> str:
        return f"Surface({self.name}, pos={self.position}, scale={self.scale})"


def build_template(aspect: float, extent: float = 4.0) -> tuple[PlaneGeometry, Material]:
    """Geometry shared by every pooled instance plus the material they clone."""
    width, height = plane_size_for_aspect(aspect, extent)
    return PlaneGeometry(width, height), Material(None, transparent=True, double_sided=True)
