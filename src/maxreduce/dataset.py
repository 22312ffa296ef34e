"""Synthetic benchmark dataset."""

from __future__ import annotations

import torch

from .config import DEFAULT_SEED, PLANTED_VALUE, VALUE_HIGH, VALUE_LOW


def generate_dataset(
    size: int,
    seed: int = DEFAULT_SEED,
    planted: float | None = PLANTED_VALUE,
) -> torch.Tensor:
    """Return *size* float32 values uniform in ``[-500, 500)`` on the CPU.

    A clear maximum *planted* is written at ``size // 2`` so the expected
    answer is known up front.  Draws come from a private, seeded
    ``torch.Generator``: the output depends only on ``(size, seed)``, never
    on the global RNG state.
    """
    if size < 0:
        raise ValueError(f"Invalid dataset size: {size}")
    gen = torch.Generator(device="cpu")
    gen.manual_seed(seed)
    data = torch.rand(size, generator=gen, dtype=torch.float32)
    data.mul_(VALUE_HIGH - VALUE_LOW).add_(VALUE_LOW)
    if size > 0 and planted is not None:
        data[size // 2] = planted
    return data
