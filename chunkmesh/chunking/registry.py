"""
VertexUsageRegistry: which chunks reference each vertex
"""

from typing import Dict, List, Tuple


class VertexUsageRegistry:
    """
    Shared vertex -> chunk ids mapping of one partitioning pass.

    Each vertex id maps to the ordered list of chunk ids that claimed it,
    in first-claim order. A (vertex, chunk) pair is stored at most once, so
    the list length is the number of distinct chunks using the vertex.

    Chunk ids are plain integers into a ChunkArena, the registry never holds
    builder objects. It does not notify anyone either; reacting to a vertex
    becoming shared is up to the caller.

    Not thread-safe on its own: mutate it only while holding the owning
    arena's writer lock.
    """

    def __init__(self):
        self._usage: Dict[int, List[int]] = {}

    def register(self, vertex_id: int, chunk_id: int) -> int:
        """
        Record that `chunk_id` uses `vertex_id`.

        Returns:
            Number of chunks using the vertex after the call
        """
        users = self._usage.setdefault(vertex_id, [])
        if chunk_id not in users:
            users.append(chunk_id)
        return len(users)

    def contains(self, vertex_id: int, chunk_id: int) -> bool:
        users = self._usage.get(vertex_id)
        return users is not None and chunk_id in users

    def users(self, vertex_id: int) -> Tuple[int, ...]:
        """Chunk ids using the vertex, in first-claim order."""
        return tuple(self._usage.get(vertex_id, ()))

    def usage_count(self, vertex_id: int) -> int:
        return len(self._usage.get(vertex_id, ()))

    def shared_vertices(self) -> List[int]:
        """Vertex ids used by two or more chunks, in registration order."""
        return [v for v, users in self._usage.items() if len(users) > 1]

    def clear(self):
        self._usage.clear()

    def __len__(self) -> int:
        return len(self._usage)

    def __contains__(self, vertex_id: int) -> bool:
        return vertex_id in self._usage

    def __repr__(self) -> str:
        return f"VertexUsageRegistry(num_vertices={len(self._usage)})"
