import sys
from pathlib import Path

import pytest
import torch

sys.path.insert(0, str(Path(__file__).parent.parent))

from chunkmesh import AttributedBuffer, ChunkArena, TriangleMesh


def make_grid_mesh(n: int) -> TriangleMesh:
    """Flat n x n quad grid on z=0 spanning [0, n]^2, two triangles per quad."""
    xs = torch.arange(n + 1, dtype=torch.float32)
    yy, xx = torch.meshgrid(xs, xs, indexing="ij")
    vertices = torch.stack([xx.flatten(), yy.flatten(), torch.zeros((n + 1) ** 2)], dim=1)

    faces = []
    for j in range(n):
        for i in range(n):
            a = j * (n + 1) + i
            b = a + 1
            c = a + (n + 1)
            d = c + 1
            faces.append([a, b, d])
            faces.append([a, d, c])
    return TriangleMesh(vertices, torch.tensor(faces, dtype=torch.int64))


def make_attributed(mesh: TriangleMesh, **channels) -> AttributedBuffer:
    return AttributedBuffer(vertices=mesh.vertices, face_indices=mesh.faces, **channels)


@pytest.fixture
def strip_mesh() -> TriangleMesh:
    """4 vertices, f0 = (v0, v1, v2), f1 = (v1, v2, v3)."""
    vertices = torch.tensor(
        [
            [0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [0.0, 1.0, 0.0],
            [1.0, 1.0, 0.0],
        ]
    )
    faces = torch.tensor([[0, 1, 2], [1, 2, 3]])
    return TriangleMesh(vertices, faces)


@pytest.fixture
def fan_mesh() -> TriangleMesh:
    """Fan of 4 triangles around v0: (0,1,2), (0,2,3), (0,3,4), (0,4,5)."""
    vertices = torch.tensor(
        [
            [0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [1.0, 1.0, 0.0],
            [0.0, 1.0, 0.0],
            [-1.0, 1.0, 0.0],
            [-1.0, 0.0, 0.0],
        ]
    )
    faces = torch.tensor([[0, 1, 2], [0, 2, 3], [0, 3, 4], [0, 4, 5]])
    return TriangleMesh(vertices, faces)


@pytest.fixture
def grid_mesh() -> TriangleMesh:
    return make_grid_mesh(4)


@pytest.fixture
def strip_arena(strip_mesh) -> ChunkArena:
    return ChunkArena(strip_mesh)
