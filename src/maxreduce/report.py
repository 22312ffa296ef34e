"""Run summary records and their console / CSV renderings."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from .config import ReductionConfig
from .engine import ReductionResult
from .verify import Verification

CSV_HEADER = "size,kernel_ms,passes,wg,items_per_thread"


@dataclass(frozen=True)
class RunReport:
    dataset_size: int
    kernel_time_ms: float
    pass_count: int
    local_group_size: int
    items_per_group_thread: int
    variant: str | None = None

    @classmethod
    def from_result(
        cls, dataset_size: int, result: ReductionResult, config: ReductionConfig,
    ) -> "RunReport":
        return cls(
            dataset_size=dataset_size,
            kernel_time_ms=result.kernel_time_ms,
            pass_count=result.pass_count,
            local_group_size=config.local_size,
            items_per_group_thread=config.items_per_thread,
            variant=result.variant.value,
        )

    def to_dict(self) -> dict:
        return asdict(self)


def csv_line(report: RunReport, tag_variant: bool = False) -> str:
    """``size,kernel_ms,passes,wg,items_per_thread[,variant]``"""
    line = (
        f"{report.dataset_size},{report.kernel_time_ms:.6f},{report.pass_count},"
        f"{report.local_group_size},{report.items_per_group_thread}"
    )
    if tag_variant and report.variant:
        line += f",{report.variant}"
    return line


def comparison_lines(verification: Verification) -> list[str]:
    return [
        f"GPU max: {verification.device:.6f}",
        f"CPU max: {verification.reference:.6f}",
    ]


def timing_lines(report: RunReport) -> list[str]:
    return [
        f"Kernel passes: {report.pass_count}",
        f"Total kernel time: {report.kernel_time_ms:.6f} ms",
    ]
