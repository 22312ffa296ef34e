"""Pure-PyTorch emulation of the ``reduce_max_stage`` kernel.

Reproduces the device kernel's semantics work-item by work-item:

    strided phase   thread ``t`` folds ``x[t], x[t + G·L], …`` (below ``n``)
          ↓
    group phase     ``native``   — one ``amax`` per group of ``L`` lanes
                    ``portable`` — explicit halving tree over a scratch row

Used as the ``pytorch`` backend (any torch device) and as the reference the
device kernels are tested against.
"""

from __future__ import annotations

import torch
from torch import Tensor

from .capability import Variant

# ---------------------------------------------------------------------------
# Strided partial maximum  (one value per work-item)
# ---------------------------------------------------------------------------

def strided_partial_max(src: Tensor, count: int, global_size: int) -> Tensor:
    """Return the ``global_size`` per-thread partial maxima of ``src[:count]``.

    Threads whose first index is already ``>= count`` hold ``-inf``, exactly
    like the kernel's ``-INFINITY`` initialiser.  NaN inputs are skipped the
    way ``fmax`` skips them.
    """
    rows = -(-count // global_size)  # ceil
    padded = src.new_full((rows * global_size,), float("-inf"))
    padded[:count] = src[:count]
    padded.masked_fill_(padded.isnan(), float("-inf"))
    return padded.view(rows, global_size).amax(dim=0)


# ---------------------------------------------------------------------------
# Group phase
# ---------------------------------------------------------------------------

def group_max_native(partial: Tensor, local_size: int) -> Tensor:
    """Single collective max per group (``work_group_reduce_max``)."""
    return partial.view(-1, local_size).amax(dim=1)


def group_max_tree(partial: Tensor, local_size: int) -> Tensor:
    """Shared-memory halving tree; each loop step is one barrier interval.

    ``local_size`` must be a power of two, otherwise slots past the first
    halving boundary are never folded in.
    """
    scratch = partial.view(-1, local_size).clone()
    stride = local_size >> 1
    while stride > 0:
        scratch[:, :stride] = torch.fmax(
            scratch[:, :stride], scratch[:, stride:2 * stride],
        )
        stride >>= 1
    return scratch[:, 0]


# ===================================================================== #
#  One full pass
# ===================================================================== #

def reduce_max_stage(
    src: Tensor,
    dst: Tensor,
    count: int,
    group_count: int,
    local_size: int,
    variant: Variant,
) -> Tensor:
    """Reduce ``src[:count]`` to ``group_count`` maxima written to ``dst``.

    Modifies ``dst[:group_count]`` **in-place** and returns that view.
    """
    partial = strided_partial_max(src, count, group_count * local_size)
    if Variant(variant) is Variant.NATIVE:
        group_max = group_max_native(partial, local_size)
    else:
        group_max = group_max_tree(partial, local_size)
    out = dst[:group_count]
    out.copy_(group_max)
    return out
