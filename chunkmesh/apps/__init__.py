"""Apps module exports"""

from .mesh_chunker import MeshChunker

__all__ = [
    "MeshChunker",
]
