"""Animation content: decoding, compositing, textures and asset loading."""

from .frames import DecodeError, DisposalMode, Frame, FrameStore, decode, decode_file
from .composite import CompositeBuffer
from .loader import AssetLoader, FetchError, fetch_asset

__all__ = [
    "DecodeError", "DisposalMode", "Frame", "FrameStore", "decode", "decode_file",
    "CompositeBuffer", "AssetLoader", "FetchError", "fetch_asset",
]
