"""Command line interface.

  drivesim run   [--config base.yaml] [--scenario s.yaml] [--output-dir D] ...
  drivesim sweep --param1 drive.zygotic_hdr_reduction --values1 0.9 0.99
                 --param2 population.mortality --values2 0 0.1 0.2
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from drivesim import __version__
from drivesim.config import SimulationConfig, config_to_dict, load_config
from drivesim.errors import DriveSimError
from drivesim.logging_config import setup_logging
from drivesim.model import run_simulation, run_sweep
from drivesim.stats import SWEEP_HEADER, StatsWriter

logger = logging.getLogger("drivesim.cli")


def parse_value(text: str) -> Any:
    """Parse a command-line value as a YAML scalar ("500" → 500, "0.9" → 0.9)."""
    return yaml.safe_load(text)


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.seed is not None:
        overrides.setdefault('simulation', {})['seed'] = args.seed
    if args.generations is not None:
        overrides.setdefault('simulation', {})['generations'] = args.generations
    if args.iterations is not None:
        overrides.setdefault('simulation', {})['iterations'] = args.iterations
    if args.output_dir is not None:
        overrides.setdefault('output', {})['directory'] = args.output_dir
    return overrides


def _resolve_config(args: argparse.Namespace) -> SimulationConfig:
    return load_config(args.config, args.scenario, _overrides(args))


def _print_config(config: SimulationConfig) -> None:
    print(yaml.safe_dump(config_to_dict(config), sort_keys=False, default_flow_style=None))


def cmd_run(args: argparse.Namespace) -> int:
    config = _resolve_config(args)
    if args.dry_run:
        _print_config(config)
        return 0

    out_path = Path(config.output.directory) / config.output.filename
    logger.info("Simulation starts")
    with StatsWriter(out_path) as writer:
        result = run_simulation(config, writer=writer, collect_rows=False)
    logger.info(
        "Simulation ends: %d rows written, %d of %d replicates extinct",
        writer.n_rows, int(result.extinct().sum()), result.n_iterations,
    )
    return 0


def cmd_sweep(args: argparse.Namespace) -> int:
    config = _resolve_config(args)
    values1 = [parse_value(v) for v in args.values1]
    values2 = [parse_value(v) for v in args.values2]
    if args.dry_run:
        _print_config(config)
        print(f"{args.param1}: {values1}")
        print(f"{args.param2}: {values2}")
        return 0

    out_path = Path(config.output.directory) / config.output.sweep_filename
    logger.info("Sweep starts: %d grid points", len(values1) * len(values2))
    with StatsWriter(out_path, header=SWEEP_HEADER) as writer:
        run_sweep(config, args.param1, values1, args.param2, values2, writer=writer)
    logger.info("Sweep ends: %d rows written", writer.n_rows)
    return 0


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", type=str, default=None,
        help="Base config YAML (default: built-in defaults)",
    )
    parser.add_argument(
        "--scenario", type=str, default=None,
        help="Scenario YAML merged over the base config",
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Override output directory (default: from config)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Master RNG seed")
    parser.add_argument("--generations", type=int, default=None)
    parser.add_argument("--iterations", type=int, default=None)
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Print the resolved configuration without running",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Debug output")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Warnings only")
    parser.add_argument("--log-file", type=str, default=None, help="Also log to this file")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drivesim",
        description="Individual-based CRISPR gene-drive population simulation.",
        epilog="Example: drivesim run --scenario configs/scenarios/release.yaml",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    run_parser = sub.add_parser("run", help="Run all replicates and write statistics")
    _add_common_arguments(run_parser)
    run_parser.set_defaults(func=cmd_run)

    sweep_parser = sub.add_parser("sweep", help="Two-parameter grid of final population sizes")
    _add_common_arguments(sweep_parser)
    sweep_parser.add_argument("--param1", required=True, help="Dotted config path")
    sweep_parser.add_argument("--values1", nargs="+", required=True)
    sweep_parser.add_argument("--param2", required=True, help="Dotted config path")
    sweep_parser.add_argument("--values2", nargs="+", required=True)
    sweep_parser.set_defaults(func=cmd_sweep)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    setup_logging(level, args.log_file)

    try:
        return args.func(args)
    except (DriveSimError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
