"""
Device utilities for chunkmesh

Provides unified device resolution for meshes and attributed buffers.
Priority: explicit device arg > input tensors > default ('cpu')
"""

from typing import Optional, Sequence, Union
import torch


DEFAULT_DEVICE = 'cpu'


def resolve_device(
    *tensors: Optional[torch.Tensor],
    device: Optional[Union[str, torch.device]] = None,
    default: str = DEFAULT_DEVICE
) -> torch.device:
    """
    Resolve device with priority: explicit device > input tensors > default.

    Chunking is bookkeeping-heavy, so the default is the CPU. Tensors that
    already live on an accelerator keep their device.

    Args:
        *tensors: Input tensors to infer device from (first non-None wins)
        device: Explicitly specified device (overrides tensor inference if not None)
        default: Default device if no tensors and no explicit device

    Returns:
        torch.device: Resolved device

    Examples:
        >>> t = torch.zeros(3)
        >>> resolve_device(t)
        device(type='cpu')
        >>> resolve_device(None, device='cpu')
        device(type='cpu')
    """
    if device is not None:
        if isinstance(device, torch.device):
            return device
        return torch.device(device)

    for tensor in tensors:
        if tensor is not None and isinstance(tensor, torch.Tensor):
            return tensor.device

    if default == 'cuda' and not torch.cuda.is_available():
        return torch.device('cpu')

    return torch.device(default)


def as_tensor(
    data,
    dtype: torch.dtype,
    device: Optional[Union[str, torch.device]] = None
) -> torch.Tensor:
    """
    Convert array-like data (tensor, numpy array, nested lists) to a tensor.

    Tensors are moved/cast only when needed, everything else goes through
    torch.as_tensor.
    """
    if isinstance(data, torch.Tensor):
        target = resolve_device(data, device=device)
        if data.dtype != dtype or data.device != target:
            return data.to(device=target, dtype=dtype)
        return data
    return torch.as_tensor(data, dtype=dtype, device=resolve_device(device=device))


def index_tensor(
    indices: Sequence[int],
    device: Optional[Union[str, torch.device]] = None
) -> torch.Tensor:
    """Build an int64 index tensor from a Python sequence of ints."""
    return torch.tensor(list(indices), dtype=torch.int64, device=resolve_device(device=device))
