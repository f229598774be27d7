"""
chunkmesh: Chunk Your Triangle Meshes

Splits one attributed triangle mesh into spatially coherent chunks for
out-of-core and streaming pipelines, keeping track of the boundary
vertices a stitching step needs.
"""

__version__ = "0.1.0"
__author__ = "chunkmesh Contributors"

from .core.mesh import TriangleMesh
from .core.data_structures import (
    AttributedBuffer,
    Channel,
    ChunkInfo,
    ChunkedMesh,
    NUM_DUPLICATES_KEY,
)
from .chunking.registry import VertexUsageRegistry
from .chunking.arena import ChunkArena, ChunkingPhase, ChunkingPhaseError
from .chunking.chunk_builder import ChunkBuilder
from .grid.grid_indexer import GridIndexer
from .apps.mesh_chunker import MeshChunker

__all__ = [
    # Core
    "TriangleMesh",
    # Data structures
    "AttributedBuffer",
    "Channel",
    "ChunkInfo",
    "ChunkedMesh",
    "NUM_DUPLICATES_KEY",
    # Chunking
    "VertexUsageRegistry",
    "ChunkArena",
    "ChunkingPhase",
    "ChunkingPhaseError",
    "ChunkBuilder",
    # Grid
    "GridIndexer",
    # Apps
    "MeshChunker",
]
