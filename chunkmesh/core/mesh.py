"""
TriangleMesh: read-only topology/geometry source for chunking

Supplies face -> vertex adjacency and vertex positions.
"""

from typing import Optional, Tuple, Union
import numpy as np
import torch

from .device_utils import as_tensor, resolve_device


class TriangleMesh:
    """
    Indexed triangle mesh.

    Faces and vertices are addressed by their integer index (handle).
    Nothing here mutates the tensors after construction, so one mesh can be
    shared by every chunk builder of a partitioning pass.

    Args:
        vertices: [V, 3] float32 vertex coordinates
        faces: [F, 3] int64 triangle vertex indices
        device: Compute device (default: device of `vertices`, else 'cpu')
    """

    def __init__(
        self,
        vertices: torch.Tensor,
        faces: torch.Tensor,
        device: Optional[Union[str, torch.device]] = None
    ):
        device = resolve_device(vertices if isinstance(vertices, torch.Tensor) else None, device=device)
        self.vertices = as_tensor(vertices, torch.float32, device)
        self.faces = as_tensor(faces, torch.int64, device)
        self.device = device

        if self.vertices.dim() != 2 or self.vertices.shape[1] != 3:
            raise ValueError(f"vertices must be [V, 3], got {tuple(self.vertices.shape)}")
        if self.faces.dim() != 2 or self.faces.shape[1] != 3:
            raise ValueError(f"faces must be [F, 3], got {tuple(self.faces.shape)}")

        self.num_vertices = self.vertices.shape[0]
        self.num_faces = self.faces.shape[0]

        # Python-side adjacency, read once per face by the builders
        self._face_list = self.faces.tolist()

        if self.num_vertices > 0:
            self._bounds = torch.stack([
                self.vertices.min(dim=0)[0],
                self.vertices.max(dim=0)[0]
            ])
        else:
            self._bounds = torch.zeros(2, 3, dtype=torch.float32, device=device)

    @classmethod
    def from_trimesh(cls, mesh, device: Optional[Union[str, torch.device]] = None) -> "TriangleMesh":
        """Build from a trimesh.Trimesh (vertices and faces only)."""
        return cls(
            torch.from_numpy(np.array(mesh.vertices)),
            torch.from_numpy(np.array(mesh.faces)),
            device=device,
        )

    # ==================== Topology ====================

    def get_vertices_of_face(self, face: int) -> Tuple[int, int, int]:
        """
        Vertex handles of a face, in stored winding order.

        The face handle is not validated; an out-of-range handle raises
        IndexError from the underlying list.
        """
        v0, v1, v2 = self._face_list[face]
        return v0, v1, v2

    def get_vertex_position(self, vertex: int) -> torch.Tensor:
        """Position of a vertex: [3] float32"""
        return self.vertices[vertex]

    def get_vertex_positions(self, vertices: torch.Tensor) -> torch.Tensor:
        """
        Gather positions for many vertices.

        Args:
            vertices: [N] int64 vertex handles

        Returns:
            positions: [N, 3] float32 (a copy, never a view)
        """
        return self.vertices[vertices]

    # ==================== Geometry ====================

    def get_bounds(self) -> torch.Tensor:
        """
        Get mesh bounding box.

        Returns:
            bounds: [2, 3] [[min_xyz], [max_xyz]]
        """
        return self._bounds

    def face_centroids(self) -> torch.Tensor:
        """
        Centroid of every face.

        Returns:
            centroids: [F, 3] float32
        """
        return self.vertices[self.faces].mean(dim=1)

    def __repr__(self) -> str:
        return f"TriangleMesh(num_vertices={self.num_vertices}, num_faces={self.num_faces}, device={self.device})"
