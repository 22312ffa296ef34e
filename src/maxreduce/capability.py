"""Device capability probe: native work-group reduction or tree fallback.

OpenCL C 2.0 introduced ``work_group_reduce_max``.  Devices that report an
OpenCL C language level of 2.0 or newer get the *native* kernel body; every
other device (including ones whose version string we cannot parse) gets the
*portable* local-memory tree reduction, so a working path always exists.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass

import pyopencl as cl

log = logging.getLogger(__name__)

# "OpenCL C 2.0 ..." (language query) or "OpenCL 3.0 CUDA ..." (device query)
_VERSION_RE = re.compile(r"^\s*OpenCL(?:\s+C)?\s+(\d+)\.(\d+)")


class Variant(str, enum.Enum):
    """Group-reduction strategy compiled into the pass kernel."""

    NATIVE = "native"
    PORTABLE = "portable"


_BUILD_OPTIONS = {
    Variant.NATIVE: "-cl-std=CL2.0 -DUSE_WG_REDUCE=1",
    Variant.PORTABLE: "-cl-std=CL1.2",
}


@dataclass(frozen=True)
class Capability:
    native_reduce: bool
    version: str | None

    @property
    def variant(self) -> Variant:
        return Variant.NATIVE if self.native_reduce else Variant.PORTABLE

    @property
    def build_options(self) -> str:
        return build_options(self.variant)


def build_options(variant: Variant) -> str:
    """Compiler flags that select *variant*'s body in ``reduce_max.cl``."""
    return _BUILD_OPTIONS[Variant(variant)]


def parse_version(text: str | None) -> tuple[int, int] | None:
    """Return ``(major, minor)`` from an OpenCL version string, or ``None``."""
    if not text:
        return None
    match = _VERSION_RE.match(text)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def supports_native_reduce(version_text: str | None) -> bool:
    version = parse_version(version_text)
    if version is None:
        return False
    return version[0] >= 2


def _query_version(device) -> str | None:
    # Prefer the language level; older ICDs only answer the device version.
    for param in (cl.device_info.OPENCL_C_VERSION, cl.device_info.VERSION):
        try:
            return device.get_info(param)
        except cl.Error as exc:
            log.debug("Device version query %s failed: %s", param, exc)
    return None


def probe_device(device) -> Capability:
    """Inspect *device* and decide whether the native variant is usable.

    Never raises on a failed or unparsable query; the result then simply
    reports ``native_reduce=False``.
    """
    version = _query_version(device)
    native = supports_native_reduce(version)
    if version is not None and parse_version(version) is None:
        log.warning("Unrecognised OpenCL version string %r; using portable kernel", version)
    log.debug("Capability: version=%r native_reduce=%s", version, native)
    return Capability(native_reduce=native, version=version)


def resolve_variant(requested: str | Variant, native_supported: bool) -> Variant:
    """Map a user request (``auto`` / ``native`` / ``portable``) to a variant."""
    if requested == "auto":
        return Variant.NATIVE if native_supported else Variant.PORTABLE
    variant = Variant(requested)
    if variant is Variant.NATIVE and not native_supported:
        raise ValueError(
            "Native work-group reduction is not supported on this device; "
            "use variant='portable' or 'auto'"
        )
    return variant
