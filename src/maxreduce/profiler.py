"""Per-pass device time accumulator."""

from __future__ import annotations


class Profiler:
    """Sums device-measured kernel time and counts passes.

    Only execution time of each pass is recorded (profiling-event start to
    end), never queueing or host<->device transfers.
    """

    def __init__(self) -> None:
        self.total_kernel_time_ns = 0
        self.pass_count = 0

    def record(self, elapsed_ns: int) -> None:
        # clocks on some drivers report end < start for tiny kernels
        if elapsed_ns > 0:
            self.total_kernel_time_ns += int(elapsed_ns)
        self.pass_count += 1

    def reset(self) -> None:
        self.total_kernel_time_ns = 0
        self.pass_count = 0

    @property
    def kernel_time_ms(self) -> float:
        return self.total_kernel_time_ns / 1.0e6

    def __repr__(self) -> str:
        return (
            f"Profiler(passes={self.pass_count}, "
            f"kernel_time_ms={self.kernel_time_ms:.6f})"
        )
