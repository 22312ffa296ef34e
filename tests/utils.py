"""Shared test utilities for the maxreduce test-suite.

Single source of truth for hardware-detection flags, pytest skip markers
and PRNG helpers.
"""

from __future__ import annotations

import random

import numpy as np
import pyopencl as cl
import pytest
import torch

from maxreduce.backends import triton_available
from maxreduce.devices import list_devices

# =====================================================================
#  Hardware detection
# =====================================================================

_OPENCL_DEVICES = [dev for _, dev in list_devices("all")]

# GPUs first so a real accelerator is preferred over a CPU runtime (PoCL)
OPENCL_DEVICE = next(
    (d for d in _OPENCL_DEVICES if d.type & cl.device_type.GPU),
    _OPENCL_DEVICES[0] if _OPENCL_DEVICES else None,
)
CUDA_AND_TRITON: bool = triton_available()

# =====================================================================
#  Pytest skip markers
# =====================================================================

requires_opencl = pytest.mark.skipif(
    OPENCL_DEVICE is None,
    reason="Requires an OpenCL device",
)

requires_cuda_triton = pytest.mark.skipif(
    not CUDA_AND_TRITON,
    reason="Requires CUDA + Triton",
)

# =====================================================================
#  PRNG helpers
# =====================================================================


def seed_all(seed: int = 42):
    """Reset all PRNGs (Python, NumPy, PyTorch) to a known state."""
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)


def random_data(n: int, low: float = -500.0, high: float = 500.0) -> torch.Tensor:
    return torch.rand(n) * (high - low) + low
