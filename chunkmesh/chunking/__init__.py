"""Chunking module exports"""

from .registry import VertexUsageRegistry
from .arena import ChunkArena, ChunkingPhase, ChunkingPhaseError
from .chunk_builder import ChunkBuilder

__all__ = [
    "VertexUsageRegistry",
    "ChunkArena",
    "ChunkingPhase",
    "ChunkingPhaseError",
    "ChunkBuilder",
]
