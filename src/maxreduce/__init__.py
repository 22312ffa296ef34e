"""maxreduce — multi-pass parallel max reduction on compute accelerators.

Reduces a float32 array to its maximum in O(log n) device passes, each
pass folding every work-group's slice to one value with either the native
work-group reduction (OpenCL C 2.0+) or a portable local-memory tree.
"""

from importlib.metadata import PackageNotFoundError, version

from maxreduce.capability import Variant, probe_device
from maxreduce.config import ReductionConfig, get_launch_config
from maxreduce.engine import MaxReducer, ReductionResult
from maxreduce.verify import verify

__all__ = [
    "MaxReducer",
    "ReductionConfig",
    "ReductionResult",
    "Variant",
    "get_launch_config",
    "probe_device",
    "verify",
]

try:
    __version__ = version("maxreduce")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"
