"""Scene graph, camera and geometry.

The Qt/GL view lives in :mod:`gifdrift.scene.view` and is imported explicitly
by the app so the engine and tests can run without a GL context.
"""

from .geometry import Material, PlaneGeometry, Surface, Vector3, plane_size_for_aspect
from .camera import PerspectiveCamera
from .graph import Scene

__all__ = [
    "Material",
    "PerspectiveCamera",
    "PlaneGeometry",
    "Scene",
    "Surface",
    "Vector3",
    "plane_size_for_aspect",
]
