"""Command-line interface for laborsim.

Thin dispatch layer: parses arguments, builds a Simulation, writes the
stacked dataset.

Usage:
    # Simulate the configured regimes and write a CSV (needs pandas)
    laborsim run --output data.csv

    # NumPy-only output, custom config, two processes
    laborsim run --config regimes.yml --workers 2 --output data.npz

    # Print the merged configuration
    laborsim show-config --config regimes.yml

Exit status: 0 on success, 2 on an invalid configuration, 3 when the
Newton iteration fails numerically.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from typing import Any

import yaml

from laborsim.config import ConfigValidator
from laborsim.errors import ConfigurationError, NumericalError
from laborsim.logging import getLogger
from laborsim.results import save_dataset
from laborsim.simulation import Simulation

log = getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_NUMERICAL = 3


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Collect the config overrides given on the command line."""
    out: dict[str, Any] = {}
    if args.seed is not None:
        out["seed"] = args.seed
    if args.n_agents is not None:
        out["n_agents"] = args.n_agents
    if getattr(args, "workers", None) is not None:
        out["n_workers"] = args.workers
    if getattr(args, "tol", None) is not None:
        out["tol"] = args.tol
    if getattr(args, "max_iter", None) is not None:
        out["max_iter"] = args.max_iter
    if getattr(args, "heterogeneous", False):
        out["heterogeneous_beta"] = True
    if args.log_level is not None:
        out["logging"] = {"default_level": args.log_level}
    return out


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="laborsim",
        description="Simulate labor-supply cross-sections",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  laborsim run --output data.csv
  laborsim run --config regimes.yml --heterogeneous --output data.npz
  laborsim run --tol 1e-12 --max-iter 100 --output data.csv
  laborsim show-config --n-agents 5000
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=None, help="YAML config file")
    common.add_argument("--seed", type=int, default=None, help="Root RNG seed")
    common.add_argument(
        "--n-agents", type=int, default=None, help="Agents per regime"
    )
    common.add_argument(
        "--log-level",
        default=None,
        choices=["DEEP_DEBUG", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Package log level (default: from config)",
    )

    run = sub.add_parser(
        "run", parents=[common], help="Simulate and write the stacked dataset"
    )
    run.add_argument(
        "--workers", type=int, default=None, help="Processes used to shard regimes"
    )
    run.add_argument(
        "--tol",
        type=float,
        default=None,
        help="Stop each agent once |relative FOC residual| <= TOL",
    )
    run.add_argument(
        "--max-iter", type=int, default=None, help="Newton iterations (or cap)"
    )
    run.add_argument(
        "--heterogeneous",
        action="store_true",
        help="Draw agent-specific disutility weights",
    )
    run.add_argument(
        "--output", required=True, help="Output file (.csv or .npz)"
    )

    sub.add_parser(
        "show-config", parents=[common], help="Print the merged configuration"
    )
    return parser


def _cmd_run(args: argparse.Namespace) -> int:
    if not args.output.lower().endswith((".csv", ".npz")):
        raise ConfigurationError(
            f"--output must end in .csv or .npz, got '{args.output}'"
        )
    sim = Simulation.init(args.config, **_overrides(args))
    sections = sim.simulate()
    path = save_dataset(sections, args.output)
    for cs in sections:
        s = cs.summary
        print(
            f"{cs.label}: participation {s['participation_rate']:.3f}, "
            f"mean hours (workers) {s['mean_hours_workers']:.4f}, "
            f"max |residual| {s['max_abs_residual']:.2e}"
        )
    print(f"Dataset written to {path}")
    return EXIT_OK


def _cmd_show_config(args: argparse.Namespace) -> int:
    cfg = Simulation.merged_config(args.config, **_overrides(args))
    # Validate so the printed config is one `run` would accept
    ConfigValidator.validate_config(cfg)
    print(yaml.safe_dump(cfg, sort_keys=False), end="")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the laborsim CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "run":
            return _cmd_run(args)
        return _cmd_show_config(args)
    except ConfigurationError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except NumericalError as exc:
        print(
            f"numerical error in regime {exc.regime_id}: {exc} "
            f"(agents {list(exc.agent_ids)[:10]})",
            file=sys.stderr,
        )
        return EXIT_NUMERICAL


if __name__ == "__main__":
    sys.exit(main())
