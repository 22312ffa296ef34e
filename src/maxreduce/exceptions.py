"""Error taxonomy for a reduction run.

None of these are retried: a run that raises is abandoned and the caller
decides what to do (the CLI maps them to a non-zero exit status).
"""

from __future__ import annotations


class ReductionError(RuntimeError):
    """Base class for non-recoverable failures during a reduction run."""


class DeviceNotFoundError(ReductionError):
    """No compute device matched the requested type / vendor."""


class KernelBuildError(ReductionError):
    """The kernel source failed to compile under the chosen options.

    ``log`` carries the compiler diagnostic verbatim.
    """

    def __init__(self, options: str, log: str):
        self.options = options
        self.log = log
        super().__init__(f"Build failed. Options: {options}\n{log}")


class DispatchError(ReductionError):
    """A compute-API call failed during setup, a pass, or readback."""
