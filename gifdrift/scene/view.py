"""OpenGL view of a :class:`~gifdrift.scene.graph.Scene`.

A ``QOpenGLWidget`` that draws every visible surface as an unlit textured
mesh. All GL work (texture upload, geometry upload, deletion of released
objects) happens in ``paintGL`` while the context is current; the engine
only flips dirty flags and calls :meth:`SceneView.render_frame`.
"""
import logging
import os
from typing import Optional

import numpy as np
from PyQt6.QtOpenGLWidgets import QOpenGLWidget

from ..content.texture import TextureManager, bind_texture
from .camera import PerspectiveCamera
from .geometry import PlaneGeometry, Surface
from .graph import Scene

logger = logging.getLogger(__name__)

_VERTEX_SHADER = """
#version 330 core
layout(location = 0) in vec3 aPos;
layout(location = 1) in vec2 aTexCoord;
uniform mat4 uMVP;
out vec2 vTexCoord;
void main() {
    gl_Position = uMVP * vec4(aPos, 1.0);
    // Texture rows are stored top-down
    vTexCoord = vec2(aTexCoord.x, 1.0 - aTexCoord.y);
}
"""

_FRAGMENT_SHADER = """
#version 330 core
in vec2 vTexCoord;
out vec4 FragColor;
uniform sampler2D uTexture;
uniform float uOpacity;
uniform float uAlphaTest;
void main() {
    vec4 color = texture(uTexture, vTexCoord);
    color.a *= uOpacity;
    if (color.a <= uAlphaTest) discard;
    FragColor = color;
}
"""


class _MeshBuffers:
    __slots__ = ("vao", "vbo_pos", "vbo_uv", "ebo", "count", "version")

    def __init__(self, vao, vbo_pos, vbo_uv, ebo, count, version):
        self.vao = vao
        self.vbo_pos = vbo_pos
        self.vbo_uv = vbo_uv
        self.ebo = ebo
        self.count = count
        self.version = version


class SceneView(QOpenGLWidget):  # pragma: no cover (needs a GL context)
    """Draws *scene* from *camera*.

    Args:
        scene: Surfaces to draw
        camera: Projection source; its aspect follows the widget size
    """

    def __init__(self, scene: Scene, camera: PerspectiveCamera, parent=None):
        super().__init__(parent)
        self.scene = scene
        self.camera = camera
        self.textures = TextureManager()
        self.available = False
        self._program: Optional[int] = None
        self._uniforms: dict[str, int] = {}
        self._meshes: dict[int, tuple[PlaneGeometry, _MeshBuffers]] = {}
        self._draw_count = 0
        self._trace = bool(os.environ.get("GIFDRIFT_VIEW_TRACE"))

    # ---- engine API ----
    def render_frame(self) -> None:
        """Schedule a repaint on the Qt event loop."""
        if self.available:
            self.update()

    # ---- GL lifecycle ----
    def initializeGL(self):
        from OpenGL import GL

        def _compile(src, stage):
            sid = GL.glCreateShader(stage)
            GL.glShaderSource(sid, src)
            GL.glCompileShader(sid)
            if not GL.glGetShaderiv(sid, GL.GL_COMPILE_STATUS):
                raise RuntimeError(GL.glGetShaderInfoLog(sid).decode("utf-8", "ignore"))
            return sid

        try:
            vs = _compile(_VERTEX_SHADER, GL.GL_VERTEX_SHADER)
            fs = _compile(_FRAGMENT_SHADER, GL.GL_FRAGMENT_SHADER)
            prog = GL.glCreateProgram()
            GL.glAttachShader(prog, vs)
            GL.glAttachShader(prog, fs)
            GL.glLinkProgram(prog)
            if not GL.glGetProgramiv(prog, GL.GL_LINK_STATUS):
                raise RuntimeError(GL.glGetProgramInfoLog(prog).decode("utf-8", "ignore"))
            GL.glDeleteShader(vs)
            GL.glDeleteShader(fs)
        except Exception as e:
            logger.error("[view] shader setup failed: %s", e)
            self.available = False
            return

        self._program = prog
        for name in ("uMVP", "uTexture", "uOpacity", "uAlphaTest"):
            self._uniforms[name] = GL.glGetUniformLocation(prog, name)
        GL.glEnable(GL.GL_DEPTH_TEST)
        GL.glEnable(GL.GL_BLEND)
        GL.glBlendFunc(GL.GL_SRC_ALPHA, GL.GL_ONE_MINUS_SRC_ALPHA)
        self.available = True
        try:
            renderer = GL.glGetString(GL.GL_RENDERER)
            version = GL.glGetString(GL.GL_VERSION)
            logger.info("[view] GL ready renderer=%s version=%s", renderer, version)
        except Exception:
            logger.info("[view] GL ready")

    def resizeGL(self, w, h):
        from OpenGL.GL import glViewport
        glViewport(0, 0, w, h)
        self.camera.set_aspect(w, h)
        logger.debug("[view] resize %dx%d aspect=%.3f", w, h, self.camera.aspect)

    def paintGL(self):
        from OpenGL import GL

        r, g, b = self.scene.background_rgb
        GL.glClearColor(r, g, b, 1.0)
        GL.glClear(GL.GL_COLOR_BUFFER_BIT | GL.GL_DEPTH_BUFFER_BIT)
        self.textures.collect()
        self._collect_meshes()
        if not self.available or self._program is None:
            return

        GL.glUseProgram(self._program)
        GL.glUniform1i(self._uniforms["uTexture"], 0)
        view_proj = self.camera.projection_matrix() @ self.camera.view_matrix()
        drawn = 0
        for surface in self.scene:
            if self._draw_surface(GL, surface, view_proj):
                drawn += 1
        GL.glBindVertexArray(0)
        GL.glUseProgram(0)

        self._draw_count += 1
        if self._trace and self._draw_count % 120 == 0:
            logger.info("[view] frame=%d drawn=%d textures=%s", self._draw_count, drawn,
                        self.textures.get_stats())

    def _draw_surface(self, GL, surface: Surface, view_proj: np.ndarray) -> bool:
        material = surface.material
        if not surface.visible or material.disposed or material.texture is None:
            return False
        tex_id = self.textures.sync(material.texture)
        if tex_id is None:
            return False
        mesh = self._mesh_for(GL, surface.geometry)

        mvp = view_proj @ surface.model_matrix()
        GL.glUniformMatrix4fv(self._uniforms["uMVP"], 1, GL.GL_TRUE, mvp.astype(np.float32))
        GL.glUniform1f(self._uniforms["uOpacity"], material.opacity)
        GL.glUniform1f(self._uniforms["uAlphaTest"], material.alpha_test)
        if material.double_sided:
            GL.glDisable(GL.GL_CULL_FACE)
        else:
            GL.glEnable(GL.GL_CULL_FACE)
            GL.glCullFace(GL.GL_BACK)
        GL.glDepthMask(GL.GL_FALSE if material.transparent else GL.GL_TRUE)

        bind_texture(tex_id, 0)
        GL.glBindVertexArray(mesh.vao)
        GL.glDrawElements(GL.GL_TRIANGLES, mesh.count, GL.GL_UNSIGNED_INT, None)
        GL.glDepthMask(GL.GL_TRUE)
        return True

    def _mesh_for(self, GL, geometry: PlaneGeometry) -> _MeshBuffers:
        cached = self._meshes.get(geometry.uid)
        if cached is not None:
            mesh = cached[1]
            if mesh.version != geometry.version:
                GL.glBindBuffer(GL.GL_ARRAY_BUFFER, mesh.vbo_pos)
                GL.glBufferSubData(GL.GL_ARRAY_BUFFER, 0, geometry.positions.nbytes, geometry.positions)
                GL.glBindBuffer(GL.GL_ARRAY_BUFFER, 0)
                mesh.version = geometry.version
            return mesh

        vao = GL.glGenVertexArrays(1)
        GL.glBindVertexArray(vao)
        vbo_pos, vbo_uv = GL.glGenBuffers(2)
        GL.glBindBuffer(GL.GL_ARRAY_BUFFER, vbo_pos)
        GL.glBufferData(GL.GL_ARRAY_BUFFER, geometry.positions.nbytes, geometry.positions, GL.GL_DYNAMIC_DRAW)
        GL.glEnableVertexAttribArray(0)
        GL.glVertexAttribPointer(0, 3, GL.GL_FLOAT, False, 0, None)
        GL.glBindBuffer(GL.GL_ARRAY_BUFFER, vbo_uv)
        GL.glBufferData(GL.GL_ARRAY_BUFFER, geometry.uvs.nbytes, geometry.uvs, GL.GL_STATIC_DRAW)
        GL.glEnableVertexAttribArray(1)
        GL.glVertexAttribPointer(1, 2, GL.GL_FLOAT, False, 0, None)
        ebo = GL.glGenBuffers(1)
        GL.glBindBuffer(GL.GL_ELEMENT_ARRAY_BUFFER, ebo)
        GL.glBufferData(GL.GL_ELEMENT_ARRAY_BUFFER, geometry.indices.nbytes, geometry.indices, GL.GL_STATIC_DRAW)
        GL.glBindVertexArray(0)

        mesh = _MeshBuffers(vao, vbo_pos, vbo_uv, ebo, len(geometry.indices), geometry.version)
        self._meshes[geometry.uid] = (geometry, mesh)
        logger.debug("[view] uploaded %r", geometry)
        return mesh

    def _collect_meshes(self) -> None:
        from OpenGL import GL

        for uid, (geometry, mesh) in list(self._meshes.items()):
            if not geometry.disposed:
                continue
            del self._meshes[uid]
            try:
                GL.glDeleteBuffers(3, [mesh.vbo_pos, mesh.vbo_uv, mesh.ebo])
                GL.glDeleteVertexArrays(1, [mesh.vao])
            except Exception as e:
                logger.warning("[view] failed to delete buffers of %r: %s", geometry, e)

    def release_gl(self) -> None:
        """Free every GL object; call before the widget is destroyed."""
        if not self.available:
            return
        self.makeCurrent()
        try:
            self.textures.clear()
            for geometry, _ in self._meshes.values():
                geometry.dispose()
            self._collect_meshes()
        finally:
            self.doneCurrent()
        self.available = False
