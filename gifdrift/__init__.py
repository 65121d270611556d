"""GifDrift: animated GIF surfaces drifting through an OpenGL scene."""

__app_name__ = "GifDrift"
__version__ = "0.3.0"

__all__ = ["__app_name__", "__version__"]
