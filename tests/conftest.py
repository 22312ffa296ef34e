"""Shared fixtures for the maxreduce test-suite."""

import pytest

from maxreduce.backends import TorchBackend, TritonBackend
from maxreduce.capability import probe_device
from maxreduce.opencl_kernel import OpenCLBackend
from utils import CUDA_AND_TRITON, OPENCL_DEVICE, seed_all


def _available_backends() -> list[tuple[str, str]]:
    """Return every (backend, variant) pair we can test in this environment."""
    combos = [("pytorch", "native"), ("pytorch", "portable")]
    if OPENCL_DEVICE is not None:
        combos += [("opencl", "native"), ("opencl", "portable")]
    if CUDA_AND_TRITON:
        combos.append(("triton", "native"))
    return combos


@pytest.fixture(autouse=True)
def seed_rng():
    """Fix all PRNGs for full reproducibility across all tests."""
    seed_all(42)


@pytest.fixture(scope="session")
def cl_device():
    if OPENCL_DEVICE is None:
        pytest.skip("Requires an OpenCL device")
    return OPENCL_DEVICE


@pytest.fixture(
    scope="session",
    params=_available_backends(),
    ids=lambda combo: "-".join(combo),
)
def backend(request):
    """Parametrised backend fixture — one compiled instance per combo.

    Skips the native OpenCL variant on devices below OpenCL C 2.0.
    """
    name, variant = request.param
    if name == "opencl":
        if variant == "native" and not probe_device(OPENCL_DEVICE).native_reduce:
            pytest.skip("Device lacks OpenCL C 2.0 work-group reduction")
        return OpenCLBackend(OPENCL_DEVICE, variant=variant)
    if name == "triton":
        return TritonBackend("cuda", variant=variant)
    return TorchBackend("cpu", variant=variant)
