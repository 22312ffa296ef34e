"""OpenCL device enumeration and vendor-preferred selection."""

from __future__ import annotations

import logging

import pyopencl as cl

from .exceptions import DeviceNotFoundError

log = logging.getLogger(__name__)

DEVICE_TYPES = {
    "gpu": cl.device_type.GPU,
    "cpu": cl.device_type.CPU,
    "all": cl.device_type.ALL,
}


def list_devices(device_type: str = "gpu") -> list[tuple[cl.Platform, cl.Device]]:
    """Return every ``(platform, device)`` pair of *device_type*.

    Platforms that fail the query (no devices of that type, broken ICD) are
    skipped rather than treated as fatal.
    """
    try:
        dtype = DEVICE_TYPES[device_type]
    except KeyError:
        raise ValueError(
            f"Invalid device_type {device_type!r}; expected one of {sorted(DEVICE_TYPES)}"
        ) from None

    try:
        platforms = cl.get_platforms()
    except cl.Error as exc:
        log.debug("clGetPlatformIDs failed: %s", exc)
        return []

    found = []
    for platform in platforms:
        try:
            devices = platform.get_devices(device_type=dtype)
        except cl.Error as exc:
            log.debug("Platform %s: device query failed: %s", platform.name, exc)
            continue
        found.extend((platform, dev) for dev in devices)
    return found


def select_device(vendor: str | None = "intel", device_type: str = "gpu") -> cl.Device:
    """Pick a device, preferring one whose vendor string contains *vendor*.

    Falls back to the first device of *device_type* anywhere.
    """
    candidates = list_devices(device_type)
    if not candidates:
        raise DeviceNotFoundError(f"No OpenCL {device_type.upper()} device found.")

    if vendor:
        needle = vendor.lower()
        for _, dev in candidates:
            if needle in dev.vendor.lower():
                return dev
        log.info("No %s device from vendor %r; using first available", device_type, vendor)

    return candidates[0][1]
