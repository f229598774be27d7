"""
Data structures for chunkmesh
"""

import enum
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple, Union
import numpy as np
import torch

from .device_utils import as_tensor


NUM_DUPLICATES_KEY = "num_duplicates"
DEFAULT_COLOR_CHANNELS = 3


class Channel(enum.Flag):
    """Optional per-vertex / per-face channels of an AttributedBuffer"""
    NONE = 0
    VERTEX_COLORS = enum.auto()
    VERTEX_NORMALS = enum.auto()
    FACE_COLORS = enum.auto()
    FACE_NORMALS = enum.auto()


# field name of each optional channel
CHANNEL_FIELDS = {
    Channel.VERTEX_COLORS: "vertex_colors",
    Channel.VERTEX_NORMALS: "vertex_normals",
    Channel.FACE_COLORS: "face_colors",
    Channel.FACE_NORMALS: "face_normals",
}


def _check_rows(name: str, tensor: torch.Tensor, rows: int, width: Optional[int] = None):
    if tensor.dim() != 2 or tensor.shape[0] != rows:
        raise ValueError(f"{name} must be [{rows}, C], got {tuple(tensor.shape)}")
    if width is not None and tensor.shape[1] != width:
        raise ValueError(f"{name} must be [{rows}, {width}], got {tuple(tensor.shape)}")


@dataclass
class AttributedBuffer:
    """
    Mesh geometry plus optional color/normal channels.

    Channel rows are indexed by storage index, which is the global
    vertex/face id unless a remap table says otherwise.
    """
    vertices: torch.Tensor                          # [V, 3] float32
    face_indices: torch.Tensor                      # [F, 3] int64
    vertex_colors: Optional[torch.Tensor] = None    # [V, C] uint8
    vertex_normals: Optional[torch.Tensor] = None   # [V, 3] float32
    face_colors: Optional[torch.Tensor] = None      # [F, C] uint8
    face_normals: Optional[torch.Tensor] = None     # [F, 3] float32
    atomics: Dict[str, Union[int, float]] = field(default_factory=dict)

    def __post_init__(self):
        self.vertices = as_tensor(self.vertices, torch.float32)
        device = self.vertices.device
        self.face_indices = as_tensor(self.face_indices, torch.int64, device)
        if self.face_indices.dim() == 1:
            if self.face_indices.numel() % 3 != 0:
                raise ValueError(
                    f"flat face_indices length must be a multiple of 3, got {self.face_indices.numel()}"
                )
            self.face_indices = self.face_indices.reshape(-1, 3)

        _check_rows("vertices", self.vertices, self.vertices.shape[0], 3)
        _check_rows("face_indices", self.face_indices, self.face_indices.shape[0], 3)

        if self.vertex_colors is not None:
            self.vertex_colors = as_tensor(self.vertex_colors, torch.uint8, device)
            _check_rows("vertex_colors", self.vertex_colors, self.num_vertices)
        if self.vertex_normals is not None:
            self.vertex_normals = as_tensor(self.vertex_normals, torch.float32, device)
            _check_rows("vertex_normals", self.vertex_normals, self.num_vertices, 3)
        if self.face_colors is not None:
            self.face_colors = as_tensor(self.face_colors, torch.uint8, device)
            _check_rows("face_colors", self.face_colors, self.num_faces)
        if self.face_normals is not None:
            self.face_normals = as_tensor(self.face_normals, torch.float32, device)
            _check_rows("face_normals", self.face_normals, self.num_faces, 3)

    # ==================== Properties ====================

    @property
    def num_vertices(self) -> int:
        return self.vertices.shape[0]

    @property
    def num_faces(self) -> int:
        return self.face_indices.shape[0]

    @property
    def device(self) -> torch.device:
        return self.vertices.device

    @property
    def channels(self) -> Channel:
        """Presence flags of the optional channels"""
        present = Channel.NONE
        for channel, name in CHANNEL_FIELDS.items():
            if getattr(self, name) is not None:
                present |= channel
        return present

    def has_channel(self, channel: Channel) -> bool:
        return channel in self.channels

    @property
    def num_duplicates(self) -> int:
        """Leading vertices shared with other chunks (0 for unchunked buffers)"""
        return int(self.atomics.get(NUM_DUPLICATES_KEY, 0))

    # ==================== Channel access ====================

    def get_vertex_colors(self, channels: int = DEFAULT_COLOR_CHANNELS) -> Optional[torch.Tensor]:
        """Vertex colors with `channels` components (RGBA is cut to RGB)."""
        return self._colors("vertex_colors", self.vertex_colors, channels)

    def get_face_colors(self, channels: int = DEFAULT_COLOR_CHANNELS) -> Optional[torch.Tensor]:
        """Face colors with `channels` components (RGBA is cut to RGB)."""
        return self._colors("face_colors", self.face_colors, channels)

    def get_vertex_normals(self) -> Optional[torch.Tensor]:
        return self.vertex_normals

    def get_face_normals(self) -> Optional[torch.Tensor]:
        return self.face_normals

    @staticmethod
    def _colors(name: str, colors: Optional[torch.Tensor], channels: int) -> Optional[torch.Tensor]:
        if colors is None:
            return None
        if channels > colors.shape[1]:
            raise ValueError(f"{name} has {colors.shape[1]} channels, requested {channels}")
        return colors[:, :channels]

    def add_atomic(self, name: str, value: Union[int, float]):
        """Attach a scalar metadata entry."""
        self.atomics[name] = value

    # ==================== Conversion ====================

    def to(self, device: Union[str, torch.device]) -> "AttributedBuffer":
        """Copy of this buffer with every tensor on `device`."""
        def move(t):
            return None if t is None else t.to(device)

        return AttributedBuffer(
            vertices=move(self.vertices),
            face_indices=move(self.face_indices),
            vertex_colors=move(self.vertex_colors),
            vertex_normals=move(self.vertex_normals),
            face_colors=move(self.face_colors),
            face_normals=move(self.face_normals),
            atomics=dict(self.atomics),
        )

    @classmethod
    def from_trimesh(cls, mesh, with_normals: bool = True) -> "AttributedBuffer":
        """
        Build a buffer from a trimesh.Trimesh.

        Colors are taken from the mesh's ColorVisuals (vertex or face kind),
        normals from trimesh's cached normals when `with_normals` is set.
        """
        vertex_colors = None
        face_colors = None
        visual = getattr(mesh, "visual", None)
        kind = getattr(visual, "kind", None)
        if kind == "vertex":
            vertex_colors = torch.from_numpy(np.array(visual.vertex_colors))
        elif kind == "face":
            face_colors = torch.from_numpy(np.array(visual.face_colors))

        vertex_normals = None
        face_normals = None
        if with_normals:
            vertex_normals = torch.from_numpy(np.array(mesh.vertex_normals))
            face_normals = torch.from_numpy(np.array(mesh.face_normals))

        return cls(
            vertices=torch.from_numpy(np.array(mesh.vertices)),
            face_indices=torch.from_numpy(np.array(mesh.faces)),
            vertex_colors=vertex_colors,
            vertex_normals=vertex_normals,
            face_colors=face_colors,
            face_normals=face_normals,
        )


@dataclass
class ChunkInfo:
    """Summary of one chunk"""
    chunk_id: int
    cell: Tuple[int, int, int]   # grid ijk of the chunk's cell
    num_faces: int
    num_vertices: int
    num_duplicates: int


@dataclass
class ChunkedMesh:
    """Per-chunk buffers produced by a partitioning pass"""
    chunks: List[AttributedBuffer]
    infos: List[ChunkInfo]
    duplicate_vertices: List[List[int]]   # global ids of each chunk's shared vertices, stored order

    def __len__(self) -> int:
        return len(self.chunks)

    def __iter__(self) -> Iterator[AttributedBuffer]:
        return iter(self.chunks)

    def total_duplicates(self) -> int:
        """Sum of duplicate vertex counts over all chunks"""
        return sum(info.num_duplicates for info in self.infos)
