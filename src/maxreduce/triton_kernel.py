"""Reduction pass as a Triton kernel (CUDA only).

One Triton program plays the role of one work-group: its ``BLOCK_SIZE``
lanes are the group's work-items.  Each lane keeps a strided running max,
then ``tl.max`` collapses the lanes with warp shuffles, which makes this the
*native* variant.  There is no portable counterpart: Triton does not expose
explicit local memory and barriers.
"""

from __future__ import annotations

import torch
import triton
import triton.language as tl


@triton.jit
def _reduce_max_stage_kernel(
    in_ptr,
    out_ptr,
    n_elements,
    global_size,
    BLOCK_SIZE: tl.constexpr,
):
    pid = tl.program_id(0)
    lanes = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)

    # ── strided partial max (one accumulator per lane) ───────────────
    acc = tl.full((BLOCK_SIZE,), float("-inf"), tl.float32)
    for start in range(0, n_elements, global_size):
        offsets = start + lanes
        x = tl.load(in_ptr + offsets, mask=offsets < n_elements, other=float("-inf"))
        x = tl.where(x != x, float("-inf"), x)  # fmax skips NaN
        acc = tl.maximum(acc, x)

    # ── group collective ─────────────────────────────────────────────
    tl.store(out_ptr + pid, tl.max(acc, axis=0))


def triton_reduce_max_stage(
    src: torch.Tensor,
    dst: torch.Tensor,
    count: int,
    group_count: int,
    local_size: int,
) -> None:
    """Launch one pass: ``src[:count]`` → ``dst[:group_count]``.

    Asynchronous; the caller synchronises (the backend records CUDA events
    around the launch).
    """
    if not src.is_cuda or not dst.is_cuda:
        raise ValueError("Triton reduction requires CUDA tensors")
    if src.data_ptr() == dst.data_ptr():
        raise ValueError("Input and output buffers must be distinct")

    _reduce_max_stage_kernel[(group_count,)](
        src, dst,
        count,
        group_count * local_size,
        BLOCK_SIZE=local_size,
    )
