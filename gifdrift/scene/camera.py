"""Perspective camera looking down -Z."""

from __future__ import annotations

import math

import numpy as np

from .geometry import Vector3


class PerspectiveCamera:
    def __init__(self, fov: float = 75.0, aspect: float = 1.0,
                 near: float = 0.1, far: float = 1000.0,
                 position: tuple[float, float, float] = (0.0, 0.0, 5.0)):
        if near <= 0 or far <= near:
            raise ValueError(f"Invalid clip planes near={near} far={far}")
        self.fov = float(fov)
        self.aspect = float(aspect) if aspect > 0 else 1.0
        self.near = float(near)
        self.far = float(far)
        self.position = Vector3(*position)

    def set_aspect(self, width: int, height: int) -> None:
        """Follow a viewport resize; a zero height keeps the previous aspect."""
        if width > 0 and height > 0:
            self.aspect = width / height

    def projection_matrix(self) -> np.ndarray:
        f = 1.0 / math.tan(math.radians(self.fov) / 2.0)
        n, fa = self.near, self.far
        return np.array([
            [f / self.aspect, 0.0, 0.0, 0.0],
            [0.0, f, 0.0, 0.0],
            [0.0, 0.0, (fa + n) / (n - fa), (2.0 * fa * n) / (n - fa)],
            [0.0, 0.0, -1.0, 0.0],
        ], dtype=np.float32)

    def view_matrix(self) -> np.ndarray:
        m = np.identity(4, dtype=np.float32)
        m[0, 3] = -self.position.x
        m[1, 3] = -self.position.y
        m[2, 3] = -self.position.z
        return m

    def __repr__(self) -> str:
        return f"PerspectiveCamera(fov={self.fov}, aspect={self.aspect:.3f}, pos={self.position})"
