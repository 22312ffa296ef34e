"""Launch geometry and run configuration for the max-reduction engine.

Default values are the benchmark defaults and work across Intel, AMD and
NVIDIA OpenCL drivers.  :func:`get_launch_config` refines them for a concrete
device before a run.

The verification tolerance and the synthetic dataset constants also live
here so that *verify.py*, *dataset.py* and the CLI share a single source of
truth.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# =====================================================================
#  Pass geometry defaults
# =====================================================================
DEFAULT_LOCAL_SIZE: int = 256        # work-items per work-group
DEFAULT_GROUPS_MAX: int = 1024       # cap on work-groups per pass
DEFAULT_ITEMS_PER_THREAD: int = 8    # strided elements visited per work-item

# =====================================================================
#  Verification + synthetic dataset
# =====================================================================
TOLERANCE: float = 1e-4
DEFAULT_DATASET_SIZE: int = 1 << 26
DEFAULT_SEED: int = 42
PLANTED_VALUE: float = 123456.0
VALUE_LOW: float = -500.0
VALUE_HIGH: float = 500.0


@dataclass(frozen=True)
class ReductionConfig:
    """Per-run pass geometry.

    Parameters
    ----------
    local_size : int
        Work-items per work-group (default ``256``).  Must be a power of two
        for the portable tree-reduction variant.
    groups_max : int
        Upper bound on work-groups launched by a single pass (default
        ``1024``).
    items_per_thread : int
        Tuning knob: how many input elements each work-item folds in during
        the strided phase (default ``8``).
    """

    local_size: int = DEFAULT_LOCAL_SIZE
    groups_max: int = DEFAULT_GROUPS_MAX
    items_per_thread: int = DEFAULT_ITEMS_PER_THREAD

    def __post_init__(self) -> None:
        if self.local_size < 1:
            raise ValueError(f"Invalid local_size: {self.local_size}")
        if self.groups_max < 1:
            raise ValueError(f"Invalid groups_max: {self.groups_max}")
        if self.items_per_thread < 1:
            raise ValueError(f"Invalid items_per_thread: {self.items_per_thread}")
        # each pass must shrink the element count, or the loop never ends
        if self.elements_per_group <= 1:
            raise ValueError(
                "local_size * items_per_thread must be > 1, got "
                f"{self.local_size} * {self.items_per_thread}"
            )

    @property
    def elements_per_group(self) -> int:
        return self.local_size * self.items_per_thread


def is_power_of_two(value: int) -> bool:
    return value > 0 and value & (value - 1) == 0


def _floor_power_of_two(value: int) -> int:
    return 1 << (value.bit_length() - 1)


def get_launch_config(
    backend: str = "opencl",
    device: Any = None,
    local_size: int = DEFAULT_LOCAL_SIZE,
    groups_max: int = DEFAULT_GROUPS_MAX,
    items_per_thread: int = DEFAULT_ITEMS_PER_THREAD,
) -> ReductionConfig:
    """Return a :class:`ReductionConfig` that the target device can launch.

    Device heuristics
    -----------------
    ==========  ==========================================================
    backend     adjustment
    ==========  ==========================================================
    opencl      ``local_size`` clamped to ``device.max_work_group_size``
                and rounded down to a power of two
    triton      ``local_size`` rounded down to a power of two
                (``tl.arange`` needs one)
    pytorch     unchanged
    ==========  ==========================================================

    The engine itself never rewrites a geometry it was handed; this helper
    is only consulted by the CLI before constructing the engine.
    """
    if backend == "opencl" and device is not None:
        limit = int(getattr(device, "max_work_group_size", local_size))
        if local_size > limit:
            local_size = _floor_power_of_two(limit)
        elif not is_power_of_two(local_size):
            local_size = _floor_power_of_two(local_size)
    elif backend == "triton" and not is_power_of_two(local_size):
        local_size = _floor_power_of_two(local_size)

    return ReductionConfig(
        local_size=local_size,
        groups_max=groups_max,
        items_per_thread=items_per_thread,
    )
