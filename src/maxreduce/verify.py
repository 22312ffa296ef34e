"""Host-side correctness oracle for the device result."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import torch

from .config import TOLERANCE


@dataclass(frozen=True)
class Verification:
    device: float
    reference: float
    difference: float
    match: bool


def _host_array(data) -> np.ndarray:
    if isinstance(data, torch.Tensor):
        data = data.detach().to(torch.float32).cpu().numpy()
    return np.asarray(data).astype(np.float32, copy=False)


def reference_max(data) -> float:
    """Sequential scan over a float32 host copy of *data*.

    Folds with ``fmax`` from ``-inf`` like the device kernel, so NaN entries
    are skipped.
    """
    host = _host_array(data)
    if host.size == 0:
        raise ValueError("Cannot take the maximum of an empty dataset")
    return float(np.fmax.reduce(host, axis=None, initial=-np.inf))


def verify(data, device_result: float, tolerance: float = TOLERANCE) -> Verification:
    """Compare *device_result* against :func:`reference_max` of *data*."""
    reference = reference_max(data)
    difference = abs(float(device_result) - reference)
    return Verification(
        device=float(device_result),
        reference=reference,
        difference=difference,
        match=difference <= tolerance,
    )
