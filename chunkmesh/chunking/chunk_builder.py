"""
ChunkBuilder: accumulates the faces of one chunk and emits its buffer
"""

import logging
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Sequence, Set, Tuple
import torch

from chunkmesh.core.data_structures import AttributedBuffer, Channel, NUM_DUPLICATES_KEY
from chunkmesh.core.device_utils import index_tensor
from .arena import ChunkArena, ChunkingPhase

if TYPE_CHECKING:
    from chunkmesh.core.mesh import TriangleMesh

logger = logging.getLogger(__name__)


def _storage_ids(
    ids: Sequence[int],
    remap: Optional[Mapping[int, int]],
    device: torch.device
) -> torch.Tensor:
    """Global ids -> attribute storage ids. Ids missing from `remap` map to themselves."""
    if remap:
        ids = [remap.get(i, i) for i in ids]
    return index_tensor(ids, device)


class ChunkBuilder:
    """
    Builder for one chunk of a partitioned mesh.

    Lifecycle:
        accumulating: the partition policy calls add_face for every face of the chunk
        sealed: the arena is sealed, no builder of the arena takes faces anymore
        built: build_mesh produced the chunk buffer, the builder can be released

    Vertices referenced by faces of more than one chunk are "duplicate"
    vertices. They are collected in first-seen order and put at the front of
    the chunk's vertex buffer so a stitching step finds them at local
    indices [0, num_duplicates).

    Args:
        mesh: Mesh the faces belong to (the arena's mesh)
        arena: Arena the builder attaches to, providing chunk id and usage registry
    """

    def __init__(self, mesh: "TriangleMesh", arena: ChunkArena):
        if mesh is not arena.mesh:
            raise ValueError("builder mesh must be the mesh of its arena")
        self._mesh = mesh
        self._arena = arena
        self._faces: List[int] = []
        self._vertex_count = 0
        self._duplicate_vertices: List[int] = []
        self._duplicate_set: Set[int] = set()
        self.built = False
        self.chunk_id = arena.attach(self)

    # ==================== Partitioning ====================

    def add_face(self, face: int):
        """
        Add a face assigned to this chunk.

        Claims each unseen vertex of the face in the shared registry. When a
        claim makes a vertex shared by exactly two chunks, both of them are
        told about the duplicate; a third or later claimer only tells itself.

        The face handle is trusted: it must be valid for the mesh and not
        already added to this builder.
        """
        arena = self._arena
        with arena.writer_lock:
            arena.require_phase(ChunkingPhase.ACCUMULATING, "add a face")
            registry = arena.registry
            self._faces.append(face)

            for vertex in self._mesh.get_vertices_of_face(face):
                if registry.contains(vertex, self.chunk_id):
                    continue

                count = registry.register(vertex, self.chunk_id)
                self._vertex_count += 1

                if count == 2:
                    for chunk_id in registry.users(vertex):
                        peer = arena.get_builder(chunk_id)
                        if peer is not None:
                            peer.add_duplicate_vertex(vertex)
                elif count > 2:
                    self.add_duplicate_vertex(vertex)

    def add_duplicate_vertex(self, vertex: int):
        """Mark a vertex as shared with another chunk (no-op if already marked)."""
        if vertex not in self._duplicate_set:
            self._duplicate_set.add(vertex)
            self._duplicate_vertices.append(vertex)

    # ==================== Accessors ====================

    def num_faces(self) -> int:
        return len(self._faces)

    def num_vertices(self) -> int:
        return self._vertex_count

    @property
    def faces(self) -> Tuple[int, ...]:
        """Face handles in insertion order."""
        return tuple(self._faces)

    @property
    def duplicate_vertices(self) -> List[int]:
        """Shared vertex handles in first-seen order."""
        return list(self._duplicate_vertices)

    @property
    def mesh(self) -> "TriangleMesh":
        return self._mesh

    # ==================== Building ====================

    def _local_layout(self) -> Tuple[List[int], List[int]]:
        """
        Assign local vertex indices.

        Duplicate vertices come first in their stored order, the rest follow
        in order of first appearance while walking the faces.

        Returns:
            vertex_order: global vertex id of each local index
            face_local: flat [3 * num_faces] local vertex indices
        """
        local_index: Dict[int, int] = {}
        vertex_order: List[int] = []

        for vertex in self._duplicate_vertices:
            if vertex not in local_index:
                local_index[vertex] = len(vertex_order)
                vertex_order.append(vertex)

        face_local: List[int] = []
        for face in self._faces:
            for vertex in self._mesh.get_vertices_of_face(face):
                local = local_index.get(vertex)
                if local is None:
                    local = len(vertex_order)
                    local_index[vertex] = local
                    vertex_order.append(vertex)
                face_local.append(local)

        return vertex_order, face_local

    def local_vertex_order(self) -> List[int]:
        """Global vertex id of every local vertex index of the built chunk."""
        return self._local_layout()[0]

    def build_mesh(
        self,
        source: AttributedBuffer,
        vertex_remap: Optional[Mapping[int, int]] = None,
        face_remap: Optional[Mapping[int, int]] = None
    ) -> AttributedBuffer:
        """
        Assemble an independent buffer holding only this chunk.

        Positions come from the mesh; colors and normals are copied from
        `source` for the channels it has. Channel rows are looked up by
        storage index: `vertex_remap`/`face_remap` translate a global id into
        a row of `source`, ids without an entry are used as is.

        Args:
            source: Attributed buffer of the whole mesh
            vertex_remap: global vertex id -> vertex attribute row
            face_remap: global face id -> face attribute row

        Returns:
            chunk: AttributedBuffer with [num_vertices(), 3] vertices,
                [num_faces(), 3] local face indices, the channels present on
                `source`, and atomics["num_duplicates"]
        """
        self._arena.require_phase(ChunkingPhase.SEALED, "build a chunk mesh")

        channels = source.channels
        vertex_order, face_local = self._local_layout()

        mesh_device = self._mesh.device
        global_vertices = index_tensor(vertex_order, mesh_device)
        vertices = self._mesh.get_vertex_positions(global_vertices)
        face_indices = index_tensor(face_local, mesh_device).reshape(-1, 3)

        # Advanced indexing gathers into fresh tensors, nothing aliases `source`
        vertex_colors = vertex_normals = face_colors = face_normals = None
        if channels & (Channel.VERTEX_COLORS | Channel.VERTEX_NORMALS):
            rows = _storage_ids(vertex_order, vertex_remap, source.device)
            if Channel.VERTEX_COLORS in channels:
                vertex_colors = source.vertex_colors[rows]
            if Channel.VERTEX_NORMALS in channels:
                vertex_normals = source.vertex_normals[rows]
        if channels & (Channel.FACE_COLORS | Channel.FACE_NORMALS):
            rows = _storage_ids(self._faces, face_remap, source.device)
            if Channel.FACE_COLORS in channels:
                face_colors = source.face_colors[rows]
            if Channel.FACE_NORMALS in channels:
                face_normals = source.face_normals[rows]

        chunk = AttributedBuffer(
            vertices=vertices,
            face_indices=face_indices,
            vertex_colors=vertex_colors,
            vertex_normals=vertex_normals,
            face_colors=face_colors,
            face_normals=face_normals,
        )
        chunk.add_atomic(NUM_DUPLICATES_KEY, len(self._duplicate_vertices))
        self.built = True

        logger.debug(
            f"Built chunk {self.chunk_id}: {chunk.num_vertices} vertices "
            f"({len(self._duplicate_vertices)} shared), {chunk.num_faces} faces"
        )
        return chunk

    def __repr__(self) -> str:
        return (
            f"ChunkBuilder(chunk_id={self.chunk_id}, num_faces={self.num_faces()}, "
            f"num_vertices={self.num_vertices()}, num_duplicates={len(self._duplicate_vertices)})"
        )
