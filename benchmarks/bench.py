#!/usr/bin/env python3
"""Benchmarks: device kernel time and pass count across dataset sizes."""

from __future__ import annotations

import time

import torch

from maxreduce import MaxReducer, ReductionConfig
from maxreduce.backends import TorchBackend, TritonBackend, triton_available
from maxreduce.capability import Variant
from maxreduce.devices import list_devices
from maxreduce.opencl_kernel import OpenCLBackend
from maxreduce.report import RunReport, csv_line
from maxreduce.verify import verify


# ── helpers ──────────────────────────────────────────────────────────────────


def _backends():
    """Yield every backend this machine can run, one per variant."""
    yield TorchBackend("cpu", variant="native")
    yield TorchBackend("cpu", variant="portable")
    devices = [dev for _, dev in list_devices("all")]
    if devices:
        yield OpenCLBackend(devices[0], variant="portable")
        native = OpenCLBackend(devices[0])
        if native.variant is Variant.NATIVE:
            yield native
    if triton_available():
        yield TritonBackend("cuda")


def _timed_reduce(reducer: MaxReducer, data: torch.Tensor, n_runs: int = 5):
    """Return (result of last run, mean host wall-clock seconds per run)."""
    reducer.reduce(data)  # warm-up
    start = time.perf_counter()
    for _ in range(n_runs):
        result = reducer.reduce(data)
    return result, (time.perf_counter() - start) / n_runs


# ── main ─────────────────────────────────────────────────────────────────────


def main() -> None:
    sizes = [1 << 16, 1 << 20, 1 << 24]
    cfg = ReductionConfig()

    for backend in _backends():
        print(f"\n{'=' * 74}")
        print(f"  {backend.describe()}")
        print(f"{'=' * 74}")
        reducer = MaxReducer(cfg, backend=backend)
        for n in sizes:
            data = torch.rand(n) * 1000.0 - 500.0
            result, wall = _timed_reduce(reducer, data)
            ok = verify(data, result.value).match
            report = RunReport.from_result(n, result, cfg)
            print(
                f"  n={n:>10,}  kernel {result.kernel_time_ms:9.3f} ms  |  "
                f"wall {wall * 1e3:9.3f} ms  |  passes {result.pass_count}  |  "
                f"{'ok' if ok else 'MISMATCH'}"
            )
            print(f"  csv: {csv_line(report, tag_variant=True)}")

    print("\n" + "=" * 74)


if __name__ == "__main__":
    main()
