"""
ChunkArena: flat store of chunk builders indexed by chunk id
"""

import enum
import logging
import threading
from typing import TYPE_CHECKING, List, Optional

from .registry import VertexUsageRegistry

if TYPE_CHECKING:
    from chunkmesh.core.mesh import TriangleMesh
    from .chunk_builder import ChunkBuilder

logger = logging.getLogger(__name__)


class ChunkingPhase(enum.Enum):
    ACCUMULATING = "accumulating"
    SEALED = "sealed"


class ChunkingPhaseError(RuntimeError):
    """Operation not allowed in the arena's current phase"""


class ChunkArena:
    """
    Owner of the builders and the shared vertex usage registry.

    Builders live in a flat list, slot index = chunk id. The registry stores
    chunk ids, so resolving a peer is a list lookup and a released builder
    just leaves an empty slot behind.

    Phases:
        ACCUMULATING: builders are attached and faces routed to them
        SEALED: partitioning is over for every builder, only build_mesh is allowed

    Concurrency contract: the partitioning phase is single-writer per
    vertex id. `writer_lock` must be held around every registry mutation
    together with the peer notifications it triggers; ChunkBuilder.add_face
    takes it itself. After `seal()` nothing is mutated and builds may run in
    parallel without locking.

    Args:
        mesh: Mesh shared by all builders, must outlive them
    """

    def __init__(self, mesh: "TriangleMesh"):
        self.mesh = mesh
        self._registry: Optional[VertexUsageRegistry] = VertexUsageRegistry()
        self._builders: List[Optional["ChunkBuilder"]] = []
        self._phase = ChunkingPhase.ACCUMULATING
        self.writer_lock = threading.RLock()

    # ==================== Phase ====================

    @property
    def phase(self) -> ChunkingPhase:
        return self._phase

    @property
    def sealed(self) -> bool:
        return self._phase is ChunkingPhase.SEALED

    def require_phase(self, phase: ChunkingPhase, action: str):
        if self._phase is not phase:
            raise ChunkingPhaseError(
                f"cannot {action} while arena is {self._phase.value} (requires {phase.value})"
            )

    def seal(self, release_registry: bool = False):
        """
        End the partitioning phase for all builders.

        Args:
            release_registry: Drop the usage registry, build_mesh does not need it
        """
        with self.writer_lock:
            self._phase = ChunkingPhase.SEALED
            if release_registry:
                self._registry = None
        logger.debug(f"Arena sealed with {self.num_chunks} chunks")

    # ==================== Builders ====================

    @property
    def registry(self) -> VertexUsageRegistry:
        if self._registry is None:
            raise ChunkingPhaseError("vertex usage registry was released at seal()")
        return self._registry

    def attach(self, builder: "ChunkBuilder") -> int:
        """Store a builder in the next free slot and return its chunk id."""
        with self.writer_lock:
            self.require_phase(ChunkingPhase.ACCUMULATING, "attach a builder")
            self._builders.append(builder)
            return len(self._builders) - 1

    def get_builder(self, chunk_id: int) -> Optional["ChunkBuilder"]:
        """Builder for a chunk id, or None if released or unknown."""
        if 0 <= chunk_id < len(self._builders):
            return self._builders[chunk_id]
        return None

    def release(self, chunk_id: int):
        """
        Drop a builder from the arena.

        Registry entries naming the chunk stay in place and are skipped when
        resolved.
        """
        if 0 <= chunk_id < len(self._builders):
            self._builders[chunk_id] = None
            logger.debug(f"Released chunk {chunk_id}")

    @property
    def builders(self) -> List["ChunkBuilder"]:
        """Live builders in chunk id order."""
        return [b for b in self._builders if b is not None]

    @property
    def num_chunks(self) -> int:
        """Number of chunk ids handed out (released slots included)."""
        return len(self._builders)

    def __repr__(self) -> str:
        return f"ChunkArena(num_chunks={self.num_chunks}, phase={self._phase.value})"
