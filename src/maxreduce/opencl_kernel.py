"""Reduction pass on an OpenCL device (pyopencl).

One source, ``kernels/reduce_max.cl``, holds both kernel bodies.  The
capability probe picks the compile flags once per backend instance:

    OpenCL C >= 2.0   ->  -cl-std=CL2.0 -DUSE_WG_REDUCE=1   (native)
    anything else     ->  -cl-std=CL1.2                     (portable)

The portable body takes a fourth ``__local`` argument: one float of scratch
per work-item in the group.

Every pass is enqueued on a profiling-enabled in-order queue and waited on
before returning, so the measured time is exactly that pass's execution.
"""

from __future__ import annotations

import logging
from importlib import resources
from pathlib import Path

import numpy as np
import pyopencl as cl
import torch

from .backends import BufferPair, PassDescriptor, ReductionBackend
from .capability import Capability, Variant, build_options, probe_device, resolve_variant
from .config import ReductionConfig
from .exceptions import DispatchError, KernelBuildError

log = logging.getLogger(__name__)

KERNEL_NAME = "reduce_max_stage"
KERNEL_FILE = "reduce_max.cl"


def load_kernel_source(path: str | Path | None = None) -> str:
    """Return the ``.cl`` source, from *path* or the packaged copy."""
    if path is not None:
        return Path(path).read_text()
    return resources.files("maxreduce").joinpath("kernels").joinpath(KERNEL_FILE).read_text()


def _host_array(data) -> np.ndarray:
    if isinstance(data, torch.Tensor):
        data = data.detach().cpu().numpy()
    return np.ascontiguousarray(data, dtype=np.float32).reshape(-1)


class OpenCLBackend(ReductionBackend):
    """``reduce_max_stage`` compiled for one OpenCL device.

    Parameters
    ----------
    device : pyopencl.Device
        Already-selected target device (see :mod:`maxreduce.devices`).
    variant : str
        ``"auto"`` | ``"native"`` | ``"portable"``.
        *auto* follows the capability probe.
    kernel_source : str, optional
        Override for the packaged ``reduce_max.cl`` text.
    """

    name = "opencl"

    def __init__(self, device: cl.Device, variant: str = "auto", kernel_source: str | None = None):
        self.device = device
        self.capability: Capability = probe_device(device)
        self.variant = resolve_variant(variant, self.capability.native_reduce)
        self.build_options = build_options(self.variant)

        try:
            self.context = cl.Context([device])
            self.queue = cl.CommandQueue(
                self.context,
                device,
                properties=cl.command_queue_properties.PROFILING_ENABLE,
            )
        except cl.Error as exc:
            raise DispatchError(f"OpenCL context/queue creation failed: {exc}") from exc

        source = kernel_source if kernel_source is not None else load_kernel_source()
        self.program = self._build(source)
        try:
            self.kernel = cl.Kernel(self.program, KERNEL_NAME)
        except cl.Error as exc:
            raise DispatchError(f"clCreateKernel({KERNEL_NAME}) failed: {exc}") from exc

        log.info("Built %s with options %r", KERNEL_NAME, self.build_options)

    def _build(self, source: str) -> cl.Program:
        try:
            return cl.Program(self.context, source).build(options=self.build_options)
        except cl.RuntimeError as exc:
            # pyopencl embeds the device build log in the message
            raise KernelBuildError(self.build_options, str(exc)) from exc

    # ------------------------------------------------------------------
    #  Geometry checks
    # ------------------------------------------------------------------

    def work_group_limit(self) -> int:
        kernel_limit = self.kernel.get_work_group_info(
            cl.kernel_work_group_info.WORK_GROUP_SIZE, self.device,
        )
        return min(int(self.device.max_work_group_size), int(kernel_limit))

    def validate(self, config: ReductionConfig) -> None:
        super().validate(config)
        limit = self.work_group_limit()
        if config.local_size > limit:
            raise DispatchError(
                f"local_size {config.local_size} exceeds the work-group limit "
                f"{limit} of {self.device.name}"
            )

    # ------------------------------------------------------------------
    #  Buffers
    # ------------------------------------------------------------------

    def allocate(self, data) -> BufferPair:
        host = _host_array(data)
        mf = cl.mem_flags
        try:
            a = cl.Buffer(self.context, mf.READ_WRITE | mf.COPY_HOST_PTR, hostbuf=host)
        except cl.Error as exc:
            raise DispatchError(f"clCreateBuffer(A) failed: {exc}") from exc
        try:
            b = cl.Buffer(self.context, mf.READ_WRITE, host.nbytes)
        except cl.Error as exc:
            a.release()
            raise DispatchError(f"clCreateBuffer(B) failed: {exc}") from exc
        return BufferPair(a, b)

    def read_scalar(self, buffer: cl.Buffer) -> float:
        out = np.empty(1, dtype=np.float32)
        try:
            cl.enqueue_copy(self.queue, out, buffer, is_blocking=True)
        except cl.Error as exc:
            raise DispatchError(f"clEnqueueReadBuffer(result) failed: {exc}") from exc
        return float(out[0])

    def release(self, buffers: BufferPair) -> None:
        for buf in (buffers.a, buffers.b):
            if buf is not None:
                buf.release()
        super().release(buffers)

    # ------------------------------------------------------------------
    #  One pass
    # ------------------------------------------------------------------

    def dispatch(self, desc: PassDescriptor) -> int:
        args = [desc.input_buffer, desc.output_buffer, np.uint32(desc.element_count)]
        if self.variant is Variant.PORTABLE:
            # local memory scratch: one float per work-item
            args.append(cl.LocalMemory(4 * desc.local_group_size))

        try:
            self.kernel.set_args(*args)
            event = cl.enqueue_nd_range_kernel(
                self.queue,
                self.kernel,
                (desc.global_thread_count,),
                (desc.local_group_size,),
            )
            event.wait()
            start = event.profile.start
            end = event.profile.end
        except cl.Error as exc:
            raise DispatchError(f"Pass over {desc.element_count} elements failed: {exc}") from exc
        return max(end - start, 0)

    def describe(self) -> str:
        return f"{self.device.name.strip()} ({self.device.vendor.strip()})"
