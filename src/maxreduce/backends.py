"""Backend interface shared by every pass implementation.

A backend owns device memory and knows how to run *one* reduction pass.
The pass loop itself lives in :mod:`maxreduce.engine` and is identical for
all of them:

    ============  =====================================  ==================
    backend       kernel                                 variants
    ============  =====================================  ==================
    opencl        ``kernels/reduce_max.cl`` (pyopencl)   native, portable
    triton        ``triton_kernel`` (CUDA)               native
    pytorch       ``functional`` emulation (any device)  native, portable
    ============  =====================================  ==================
"""

from __future__ import annotations

import abc
import time
from dataclasses import dataclass
from typing import Any

import torch

from . import functional as F
from .capability import Variant, resolve_variant
from .config import ReductionConfig, is_power_of_two

# Triton back-end is optional (CUDA-only)
try:
    from .triton_kernel import triton_reduce_max_stage

    _TRITON_AVAILABLE = True
except (ImportError, RuntimeError):
    _TRITON_AVAILABLE = False


def triton_available() -> bool:
    return _TRITON_AVAILABLE and torch.cuda.is_available()


# =====================================================================
#  Ping-pong buffers + per-pass descriptor
# =====================================================================

class BufferPair:
    """Two full-size device buffers with a single input/output role token.

    Buffer A starts as the input.  :meth:`swap` flips the roles after every
    pass, so ``input`` always names the buffer holding live data.
    """

    def __init__(self, a: Any, b: Any):
        if a is b:
            raise ValueError("BufferPair needs two distinct buffers")
        self.a = a
        self.b = b
        self._a_is_input = True

    @property
    def input(self) -> Any:
        return self.a if self._a_is_input else self.b

    @property
    def output(self) -> Any:
        return self.b if self._a_is_input else self.a

    def swap(self) -> None:
        self._a_is_input = not self._a_is_input


@dataclass(frozen=True)
class PassDescriptor:
    input_buffer: Any
    output_buffer: Any
    element_count: int
    group_count: int
    global_thread_count: int
    local_group_size: int


# =====================================================================
#  Interface
# =====================================================================

class ReductionBackend(abc.ABC):
    """One implementation of the ``reduce_max_stage`` pass contract."""

    name: str = ""
    variant: Variant

    def validate(self, config: ReductionConfig) -> None:
        """Reject a geometry this backend cannot launch correctly."""
        if self.variant is Variant.PORTABLE and not is_power_of_two(config.local_size):
            raise ValueError(
                f"Portable tree reduction needs a power-of-two local_size, "
                f"got {config.local_size}"
            )

    @abc.abstractmethod
    def allocate(self, data) -> BufferPair:
        """Copy *data* into buffer A and allocate an equally sized buffer B."""

    @abc.abstractmethod
    def dispatch(self, desc: PassDescriptor) -> int:
        """Run one pass to completion; return its device time in ns."""

    @abc.abstractmethod
    def read_scalar(self, buffer: Any) -> float:
        """Read element 0 of *buffer* back to the host."""

    def release(self, buffers: BufferPair) -> None:
        buffers.a = buffers.b = None

    def describe(self) -> str:
        return f"{self.name} ({self.variant.value})"


# =====================================================================
#  torch-based backends
# =====================================================================

class _Timer:
    """CUDA events for GPU, perf_counter for CPU."""

    def __init__(self, device: torch.device):
        self.cuda = device.type == "cuda"
        if self.cuda:
            self.s = torch.cuda.Event(enable_timing=True)
            self.e = torch.cuda.Event(enable_timing=True)

    def __enter__(self):
        if self.cuda:
            self.s.record()
        else:
            self.t0 = time.perf_counter_ns()
        return self

    def __exit__(self, *_):
        if self.cuda:
            self.e.record()
            self.e.synchronize()
            self.elapsed_ns = int(self.s.elapsed_time(self.e) * 1e6)
        else:
            self.elapsed_ns = time.perf_counter_ns() - self.t0


class _TorchBuffersMixin:
    device: torch.device

    def allocate(self, data) -> BufferPair:
        src = torch.as_tensor(data, dtype=torch.float32).reshape(-1)
        # always a private copy: later passes overwrite buffer A
        a = src.to(self.device, copy=True)
        return BufferPair(a, torch.empty_like(a))

    def read_scalar(self, buffer: torch.Tensor) -> float:
        return float(buffer[0].item())


class TorchBackend(_TorchBuffersMixin, ReductionBackend):
    """Runs the pass emulation from :mod:`maxreduce.functional`."""

    name = "pytorch"

    def __init__(self, device: str | torch.device = "cpu", variant: str = "auto"):
        self.device = torch.device(device)
        # both bodies are plain tensor ops, so "auto" takes the cheaper one
        self.variant = resolve_variant(variant, native_supported=True)

    def dispatch(self, desc: PassDescriptor) -> int:
        with _Timer(self.device) as timer:
            F.reduce_max_stage(
                desc.input_buffer,
                desc.output_buffer,
                desc.element_count,
                desc.group_count,
                desc.local_group_size,
                self.variant,
            )
        return timer.elapsed_ns

    def describe(self) -> str:
        return f"pytorch on {self.device} ({self.variant.value})"


class TritonBackend(_TorchBuffersMixin, ReductionBackend):
    """Runs :func:`maxreduce.triton_kernel.triton_reduce_max_stage`."""

    name = "triton"

    def __init__(self, device: str | torch.device = "cuda", variant: str = "auto"):
        if not _TRITON_AVAILABLE:
            raise RuntimeError(
                "Triton is not available. Install with: pip install triton"
            )
        self.device = torch.device(device)
        if self.device.type != "cuda":
            raise ValueError(f"Triton backend requires a CUDA device, got {self.device}")
        self.variant = resolve_variant(variant, native_supported=True)
        if self.variant is not Variant.NATIVE:
            raise ValueError("Triton backend only implements the native variant")

    def validate(self, config: ReductionConfig) -> None:
        if not is_power_of_two(config.local_size):
            raise ValueError(
                f"Triton needs a power-of-two local_size, got {config.local_size}"
            )

    def dispatch(self, desc: PassDescriptor) -> int:
        with _Timer(self.device) as timer:
            triton_reduce_max_stage(
                desc.input_buffer,
                desc.output_buffer,
                desc.element_count,
                desc.group_count,
                desc.local_group_size,
            )
        return timer.elapsed_ns

    def describe(self) -> str:
        return f"triton on {torch.cuda.get_device_name(self.device)} (native)"
