"""Command-line benchmark: generate, reduce on the device, verify, report.

Exit status: ``0`` on a verified result, ``1`` on any fatal error (no
device, build failure, dispatch failure, bad configuration) and ``2`` when
the device result disagrees with the host reference.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import torch
import yaml

from .config import (
    DEFAULT_DATASET_SIZE,
    DEFAULT_GROUPS_MAX,
    DEFAULT_ITEMS_PER_THREAD,
    DEFAULT_LOCAL_SIZE,
    DEFAULT_SEED,
    get_launch_config,
)
from .dataset import generate_dataset
from .devices import DEVICE_TYPES, select_device
from .engine import BACKENDS, MaxReducer
from .exceptions import DeviceNotFoundError
from .opencl_kernel import load_kernel_source
from .report import RunReport, comparison_lines, csv_line, timing_lines
from .verify import verify

LOGGER_NAME = "maxreduce"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_MISMATCH = 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        "maxreduce",
        description="Find the maximum of a large float32 array on an accelerator.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--config", type=str, help="Path to YAML configuration file")
    # dataset
    p.add_argument("--size", "-n", type=int, default=DEFAULT_DATASET_SIZE, help="Number of elements")
    p.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Dataset RNG seed")
    # geometry
    p.add_argument("--wg", type=int, default=DEFAULT_LOCAL_SIZE, help="Work-group size")
    p.add_argument("--groups-max", type=int, default=DEFAULT_GROUPS_MAX, help="Cap on work-groups per pass")
    p.add_argument("--items-per-thread", type=int, default=DEFAULT_ITEMS_PER_THREAD,
                   help="Elements folded per work-item in the strided phase")
    # device
    p.add_argument("--backend", choices=BACKENDS, default="auto", help="Pass implementation")
    p.add_argument("--variant", choices=("auto", "native", "portable"), default="auto",
                   help="Group-reduction strategy (auto follows the device capability)")
    p.add_argument("--vendor", type=str, default="intel", help="Preferred OpenCL vendor substring")
    p.add_argument("--device-type", choices=sorted(DEVICE_TYPES), default="gpu", help="OpenCL device type")
    p.add_argument("--kernel-path", type=str, help="Load the .cl source from this file instead of the packaged one")
    # output
    p.add_argument("--quiet", "-q", action="store_true", help="Only report errors (and CSV if requested)")
    p.add_argument("--csv", action="store_true", help="Emit size,kernel_ms,passes,wg,items_per_thread")
    p.add_argument("--tag-variant", action="store_true", help="Append the kernel variant to the CSV line")
    p.add_argument("--verbose", action="store_true", help="Debug logging on stderr")
    p.add_argument("--log-file", type=str, help="Also write the log to this file")
    return p


# ───────────────────────────────────────────────────────────────────────
# CONFIG FILE  ──────────────────────────────────────────────────────────
def load_config(config_path: str | Path) -> dict:
    """Load a flat YAML mapping of option names to values."""
    with open(config_path) as f:
        config = yaml.safe_load(f)
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"Config {config_path} must be a mapping, got {type(config).__name__}")
    return config


def parse_args(parser: argparse.ArgumentParser, argv: list[str] | None = None) -> argparse.Namespace:
    """Parse *argv*; values from ``--config`` become defaults, so flags win."""
    args = parser.parse_args(argv)
    if not args.config:
        return args

    known = vars(args)
    defaults = {}
    for key, value in load_config(args.config).items():
        dest = key.replace("-", "_")
        if dest == "config" or dest not in known:
            raise ValueError(f"Unknown option {key!r} in {args.config}")
        defaults[dest] = value
    parser.set_defaults(**defaults)
    return parser.parse_args(argv)


def _apply_fallbacks(args: argparse.Namespace) -> None:
    # non-positive geometry silently reverts to the defaults
    if args.wg <= 0:
        args.wg = DEFAULT_LOCAL_SIZE
    if args.groups_max <= 0:
        args.groups_max = DEFAULT_GROUPS_MAX
    if args.items_per_thread <= 0:
        args.items_per_thread = DEFAULT_ITEMS_PER_THREAD


def init_logging(args: argparse.Namespace) -> logging.Logger:
    """Send package logs to stderr (stdout carries results / CSV)."""
    level = logging.DEBUG if args.verbose else logging.WARNING
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if args.log_file:
        handlers.append(logging.FileHandler(args.log_file))

    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    for handler in handlers:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(message)s", datefmt="%Y-%m-%dT%H:%M:%S"))
        logger.addHandler(handler)
    logger.propagate = False
    return logger


# ───────────────────────────────────────────────────────────────────────
# RUN  ──────────────────────────────────────────────────────────────────
def _pick_device(args: argparse.Namespace, log: logging.Logger):
    """Return ``(backend, device)`` with the OpenCL device already chosen."""
    if args.backend not in ("auto", "opencl"):
        return args.backend, None
    try:
        return "opencl", select_device(args.vendor, args.device_type)
    except DeviceNotFoundError as exc:
        if args.backend == "opencl":
            raise
        log.warning("%s Falling back to a torch backend.", exc)
    return "auto", torch.device("cuda" if torch.cuda.is_available() else "cpu")


def run(args: argparse.Namespace, log: logging.Logger) -> int:
    verbose = not args.quiet
    data = generate_dataset(args.size, seed=args.seed)

    backend, device = _pick_device(args, log)
    config = get_launch_config(
        backend, device, args.wg, args.groups_max, args.items_per_thread,
    )
    if config.local_size != args.wg:
        log.warning("Work-group size %d not launchable here; using %d", args.wg, config.local_size)

    kernel_source = load_kernel_source(args.kernel_path) if args.kernel_path else None
    reducer = MaxReducer(
        config, backend=backend, variant=args.variant, device=device, kernel_source=kernel_source,
    )
    if verbose:
        print(f"Using device: {reducer.backend.describe()}")

    result = reducer.reduce(data)
    verification = verify(data, result.value)
    report = RunReport.from_result(len(data), result, config)

    if verbose:
        for line in comparison_lines(verification):
            print(line)
    if not verification.match:
        print(f"Mismatch detected: |GPU-CPU| = {verification.difference:g}", file=sys.stderr)
        return EXIT_MISMATCH
    if verbose:
        print("Match.")

    if args.csv:
        print(csv_line(report, tag_variant=args.tag_variant))
    elif verbose:
        for line in timing_lines(report):
            print(line)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parse_args(parser, argv)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    _apply_fallbacks(args)
    log = init_logging(args)

    try:
        return run(args, log)
    except (ValueError, RuntimeError, OSError) as exc:
        # ReductionError (build / dispatch / no device) is a RuntimeError
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
