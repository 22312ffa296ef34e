"""Multi-pass max reduction: the pass orchestrator.

Usage::

    from maxreduce import MaxReducer, ReductionConfig

    reducer = MaxReducer(ReductionConfig(local_size=256), backend="opencl")
    result = reducer.reduce(data)
    print(result.value, result.pass_count, result.kernel_time_ms)

Each pass launches ``group_count`` work-groups of ``local_size`` work-items
over the live prefix of the current input buffer and writes one maximum per
group into the other buffer.  The roles of the two buffers swap and the
loop repeats until a single element is left:

    n  →  ceil(n / (L·I)) ∧ groups_max  →  …  →  1

Passes are strictly sequential; each dispatch blocks until the device has
finished before the next geometry is computed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import torch

from .backends import (
    BufferPair,
    PassDescriptor,
    ReductionBackend,
    TorchBackend,
    TritonBackend,
    triton_available,
)
from .capability import Variant
from .config import ReductionConfig
from .devices import select_device
from .exceptions import DeviceNotFoundError
from .opencl_kernel import OpenCLBackend
from .profiler import Profiler

log = logging.getLogger(__name__)

BACKENDS = ("auto", "opencl", "triton", "pytorch")


# =====================================================================
#  Pass geometry  (pure, device-independent)
# =====================================================================

def group_count_for(
    count: int,
    local_size: int,
    items_per_thread: int,
    groups_max: int,
) -> int:
    """Work-groups for a pass over *count* live elements."""
    per_group = local_size * items_per_thread
    groups = (count + per_group - 1) // per_group
    return min(max(groups, 1), groups_max)


def plan_passes(n: int, config: ReductionConfig) -> list[tuple[int, int]]:
    """Return ``[(element_count, group_count), ...]`` for a dataset of *n*."""
    steps = []
    count = n
    while count > 1:
        groups = group_count_for(
            count, config.local_size, config.items_per_thread, config.groups_max,
        )
        steps.append((count, groups))
        count = groups
    return steps


def max_pass_bound(n: int, config: ReductionConfig) -> int:
    """Upper bound ``ceil(log_{L·I}(n))`` on the number of passes."""
    if n <= 1:
        return 0
    base = config.elements_per_group
    # integer search; float log() misrounds exact powers
    passes, reach = 0, 1
    while reach < n:
        reach *= base
        passes += 1
    return passes


# =====================================================================
#  Result
# =====================================================================

@dataclass(frozen=True)
class ReductionResult:
    value: float
    kernel_time_ns: int
    pass_count: int
    variant: Variant
    backend: str

    @property
    def kernel_time_ms(self) -> float:
        return self.kernel_time_ns / 1.0e6


# =====================================================================
#  Backend resolution
# =====================================================================

def _resolve_auto(variant: str, device):
    """Pick ``(backend_name, device)`` for ``backend="auto"``."""
    if device is not None and not isinstance(device, (str, torch.device)):
        return "opencl", device  # already a pyopencl.Device

    if device is None:
        try:
            return "opencl", select_device()
        except DeviceNotFoundError as exc:
            log.warning("%s Falling back to a torch backend.", exc)
        device = "cuda" if torch.cuda.is_available() else "cpu"

    device = torch.device(device)
    if device.type == "cuda" and variant != Variant.PORTABLE and triton_available():
        return "triton", device
    log.warning("Using the PyTorch emulation backend on %s", device)
    return "pytorch", device


def make_backend(
    backend: str = "auto",
    variant: str = "auto",
    device=None,
    kernel_source: str | None = None,
) -> ReductionBackend:
    """Instantiate the backend once for the whole run.

    *auto* tries an OpenCL GPU first, then Triton on CUDA, then the
    PyTorch emulation.  An explicitly requested backend that cannot be
    created raises instead of falling back.
    """
    if backend not in BACKENDS:
        raise ValueError(f"Invalid backend {backend!r}; expected one of {BACKENDS}")

    if backend == "auto":
        backend, device = _resolve_auto(variant, device)

    if backend == "opencl":
        if device is None:
            device = select_device()
        return OpenCLBackend(device, variant=variant, kernel_source=kernel_source)
    if backend == "triton":
        return TritonBackend(device if device is not None else "cuda", variant=variant)
    return TorchBackend(device if device is not None else "cpu", variant=variant)


# =====================================================================
#  Orchestrator
# =====================================================================

class MaxReducer:
    r"""Reduce a float32 array to its maximum in ``O(log n)`` device passes.

    Parameters
    ----------
    config : ReductionConfig, optional
        Pass geometry (defaults: ``local_size=256``, ``groups_max=1024``,
        ``items_per_thread=8``).
    backend : str or ReductionBackend
        ``"auto"`` | ``"opencl"`` | ``"triton"`` | ``"pytorch"``, or a ready
        backend instance.
    variant : str
        ``"auto"`` | ``"native"`` | ``"portable"``.  Fixed for the lifetime
        of the reducer; never re-decided per pass.
    device :
        ``pyopencl.Device`` for OpenCL, a torch device for the others.
    """

    def __init__(
        self,
        config: ReductionConfig | None = None,
        backend: str | ReductionBackend = "auto",
        variant: str = "auto",
        device=None,
        kernel_source: str | None = None,
    ):
        self.config = config if config is not None else ReductionConfig()
        if isinstance(backend, ReductionBackend):
            self.backend = backend
        else:
            self.backend = make_backend(backend, variant, device, kernel_source)
        self.backend.validate(self.config)
        self.profiler = Profiler()

    @property
    def variant(self) -> Variant:
        return self.backend.variant

    def _describe_pass(self, count: int, buffers: BufferPair) -> PassDescriptor:
        cfg = self.config
        groups = group_count_for(
            count, cfg.local_size, cfg.items_per_thread, cfg.groups_max,
        )
        return PassDescriptor(
            input_buffer=buffers.input,
            output_buffer=buffers.output,
            element_count=count,
            group_count=groups,
            global_thread_count=groups * cfg.local_size,
            local_group_size=cfg.local_size,
        )

    def reduce(self, data) -> ReductionResult:
        """Run every pass over *data* and return the final scalar.

        *data* may be a 1-D ``torch.Tensor``, ``numpy.ndarray`` or sequence.
        Raises :class:`ValueError` on an empty or non-1-D dataset and
        :class:`~maxreduce.exceptions.ReductionError` on any device failure;
        no partial result is returned in that case.
        """
        shape = np.shape(data)
        if len(shape) != 1:
            raise ValueError(f"Expected a 1-D dataset, got shape {tuple(shape)}")
        n = shape[0]
        if n == 0:
            raise ValueError("Cannot reduce an empty dataset")

        self.profiler.reset()
        buffers = self.backend.allocate(data)
        try:
            count = n
            while count > 1:
                desc = self._describe_pass(count, buffers)
                log.debug(
                    "pass %d: count=%d groups=%d global=%d local=%d",
                    self.profiler.pass_count + 1, count, desc.group_count,
                    desc.global_thread_count, desc.local_group_size,
                )
                self.profiler.record(self.backend.dispatch(desc))
                count = desc.group_count
                buffers.swap()

            # after the final swap the last-written buffer is the input
            value = self.backend.read_scalar(buffers.input)
        finally:
            self.backend.release(buffers)

        return ReductionResult(
            value=value,
            kernel_time_ns=self.profiler.total_kernel_time_ns,
            pass_count=self.profiler.pass_count,
            variant=self.backend.variant,
            backend=self.backend.name,
        )
