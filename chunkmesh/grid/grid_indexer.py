"""
GridIndexer: Uniform grid indexer for chunk partitioning
"""

from typing import Optional, Tuple, Union, TYPE_CHECKING
import torch

from chunkmesh.core.device_utils import resolve_device

if TYPE_CHECKING:
    from chunkmesh.core.mesh import TriangleMesh


# Bounds padding relative to the mesh extent, keeps boundary points inside
DEFAULT_PADDING = 1e-4
MIN_PADDING = 1e-6
# Morton codes interleave 21 bits per axis into an int64
MORTON_BITS = 21


class GridIndexer:
    """
    Uniform grid over an axis-aligned box.

    Responsibilities:
        - grid layout (resolution, bounds)
        - coordinate conversion (world <-> grid)
        - cell ids: linear (ravel) and Morton (Z-order) codes

    Does not decide which chunk a face goes to, see MeshChunker.

    Args:
        resolution: int cells per axis
        bounds: [2, 3] grid bounds [[min_xyz], [max_xyz]]
        device: Compute device
    """

    def __init__(
        self,
        resolution: int,
        bounds: torch.Tensor,
        device: Optional[Union[str, torch.device]] = None
    ):
        if not isinstance(resolution, int) or resolution < 1:
            raise ValueError(f"resolution must be positive int, got {resolution}")
        if resolution > 2 ** MORTON_BITS:
            raise ValueError(f"resolution must be <= 2^{MORTON_BITS}, got {resolution}")

        device = resolve_device(bounds if isinstance(bounds, torch.Tensor) else None, device=device)
        bounds = torch.as_tensor(bounds, dtype=torch.float32, device=device)
        if bounds.shape != (2, 3):
            raise ValueError(f"bounds must be [2,3], got {tuple(bounds.shape)}")
        if not bool((bounds[1] > bounds[0]).all()):
            raise ValueError(f"bounds max must exceed min on every axis, got {bounds.tolist()}")

        self.resolution = resolution
        self.bounds = bounds
        self.device = device
        self.cell_size = (self.bounds[1] - self.bounds[0]) / resolution

    @classmethod
    def from_mesh(
        cls,
        mesh: "TriangleMesh",
        resolution: int,
        padding: float = DEFAULT_PADDING
    ) -> "GridIndexer":
        """
        Grid covering the mesh bounding box.

        The box is padded by `padding` times its extent (at least MIN_PADDING)
        so flat meshes still get a non-degenerate cell size.
        """
        bounds = mesh.get_bounds()
        extent = bounds[1] - bounds[0]
        pad = torch.clamp(extent * padding, min=MIN_PADDING)
        padded = torch.stack([bounds[0] - pad, bounds[1] + pad])
        return cls(resolution, padded, device=mesh.device)

    @property
    def num_cells(self) -> int:
        return self.resolution ** 3

    def world_to_grid(self, world_coords: torch.Tensor) -> torch.Tensor:
        """
        World coordinates -> grid coordinates (continuous)

        Args:
            world_coords: [N, 3]

        Returns:
            grid_coords: [N, 3] float32
        """
        return (world_coords - self.bounds[0]) / self.cell_size

    def grid_to_world(self, grid_coords: torch.Tensor) -> torch.Tensor:
        """
        Grid coordinates -> world coordinates (cell center)

        Args:
            grid_coords: [N, 3] (int or float)

        Returns:
            world_coords: [N, 3] float32
        """
        return (grid_coords.float() + 0.5) * self.cell_size + self.bounds[0]

    def get_cell_aabb(
        self,
        grid_coords: torch.Tensor
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        AABB of grid cells

        Args:
            grid_coords: [N, 3] int cell coordinates

        Returns:
            aabb_min: [N, 3] float32
            aabb_max: [N, 3] float32
        """
        aabb_min = grid_coords.float() * self.cell_size + self.bounds[0]
        aabb_max = (grid_coords.float() + 1) * self.cell_size + self.bounds[0]
        return aabb_min, aabb_max

    def cell_of_points(self, points: torch.Tensor) -> torch.Tensor:
        """
        Cell containing each point, clamped to the grid.

        Args:
            points: [N, 3] world coordinates

        Returns:
            cells: [N, 3] int64 ijk
        """
        cells = self.world_to_grid(points).floor().long()
        return cells.clamp(0, self.resolution - 1)

    def ravel_cells(self, cells: torch.Tensor) -> torch.Tensor:
        """ijk [N, 3] -> linear cell id [N] (x-major)"""
        r = self.resolution
        cells = cells.long()
        return (cells[:, 0] * r + cells[:, 1]) * r + cells[:, 2]

    def unravel_cells(self, linear_idx: torch.Tensor) -> torch.Tensor:
        """linear cell id [N] -> ijk [N, 3]"""
        r = self.resolution
        linear_idx = linear_idx.long()
        z = linear_idx % r
        y = (linear_idx // r) % r
        x = linear_idx // (r * r)
        return torch.stack([x, y, z], dim=-1)

    def morton_codes(self, cells: torch.Tensor) -> torch.Tensor:
        """
        ijk coordinates -> Morton code (bit interleaving).

        Sorting cells by Morton code keeps spatially close cells close in
        the resulting order.

        Args:
            cells: [N, 3] int ijk

        Returns:
            morton: [N] int64
        """
        cells = cells.long()
        x, y, z = cells[:, 0], cells[:, 1], cells[:, 2]

        morton = torch.zeros_like(x)
        for i in range(MORTON_BITS):
            morton |= ((x >> i) & 1) << (3 * i)
            morton |= ((y >> i) & 1) << (3 * i + 1)
            morton |= ((z >> i) & 1) << (3 * i + 2)

        return morton

    def __repr__(self) -> str:
        return f"GridIndexer(resolution={self.resolution}, bounds={self.bounds.tolist()})"
