"""Core module exports"""

from .mesh import TriangleMesh
from .data_structures import (
    AttributedBuffer,
    Channel,
    ChunkInfo,
    ChunkedMesh,
    NUM_DUPLICATES_KEY,
)
from .device_utils import resolve_device

__all__ = [
    "TriangleMesh",
    "AttributedBuffer",
    "Channel",
    "ChunkInfo",
    "ChunkedMesh",
    "NUM_DUPLICATES_KEY",
    "resolve_device",
]
