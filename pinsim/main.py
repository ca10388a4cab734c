# pinsim/main.py
"""
pinsim main entrypoint.

Default subcommand: equilibrate
Usage examples:
    pinsim
    pinsim equilibrate --help
    pinsim equilibrate --config device.yaml --set mui=1e-9 --set ladder.tolerance=0.1
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import argparse
import sys

from .errors import PinSimError
from .io.config import load_params
from .io.results import save_solution_npz, write_metrics, write_stage_history
from .solver.continuation import ContinuationRunner
from .adapters.integrator import RelaxationIntegrator
from .utils import diagnostics as diag
from .utils import logger
from .workflows.equilibrate import DELIVERABLES, equilibrate

__all__ = ["main"]


# --------------------------- equilibrate subcommand --------------------------


@dataclass(slots=True)
class _EqArgs:
    config: Path | None
    overrides: list[str]
    out_dir: Path
    quiet: bool
    no_save: bool


def _add_equilibrate_subparser(
    subparsers: argparse._SubParsersAction,
) -> argparse.ArgumentParser:
    p = subparsers.add_parser(
        "equilibrate", help="Run the equilibration ladder (seven reference solutions)"
    )
    p.add_argument("--config", type=Path, default=None,
                   help="YAML file with 'device:' and 'ladder:' sections")
    p.add_argument("--set", dest="overrides", action="append", default=[],
                   metavar="KEY=VALUE",
                   help="Override a parameter (e.g. mui=1e-9, ladder.tolerance=0.1); repeatable")
    p.add_argument("--out", default="runs/equilibrate", help="Output directory")
    p.add_argument("--quiet", action="store_true", help="Suppress stage progress output")
    p.add_argument("--no-save", action="store_true", help="Do not write results to disk")
    p.set_defaults(cmd="equilibrate")
    return p


def _to_args(ns: argparse.Namespace) -> _EqArgs:
    return _EqArgs(
        config=ns.config,
        overrides=list(ns.overrides),
        out_dir=Path(ns.out),
        quiet=bool(ns.quiet),
        no_save=bool(ns.no_save),
    )


def _run_equilibrate(args: _EqArgs) -> int:
    logger.set_quiet(args.quiet)
    try:
        params, settings = load_params(args.config, args.overrides)
    except PinSimError as exc:
        logger.error(str(exc))
        return 2
    settings.verbose = not args.quiet

    runner = ContinuationRunner(
        integrator=RelaxationIntegrator(),
        tolerance=settings.tolerance,
        window_fraction=settings.window_fraction,
        verbose=settings.verbose,
    )
    try:
        result = equilibrate(params, settings=settings, runner=runner)
    except PinSimError as exc:
        logger.error(str(exc))
        if not args.no_save and runner.history:
            out = write_stage_history(args.out_dir, runner.history)
            logger.info(f"[fail] wrote partial stage lineage to {out}")
        return 1

    if not args.quiet:
        for name, sol in zip(DELIVERABLES, result):
            diag.log_solution_summary(sol, prefix=f"[{name}]")
    if args.no_save:
        return 0

    for name, sol in zip(DELIVERABLES, result):
        save_solution_npz(args.out_dir, name, sol)
    metrics = {
        "stabilization": runner.metrics(),
        "t_final": {name: sol.t_final for name, sol in zip(DELIVERABLES, result)},
        "stages": len(runner.history),
    }
    write_metrics(args.out_dir, metrics)
    write_stage_history(args.out_dir, runner.history)
    logger.info(f"[ok] wrote {len(DELIVERABLES)} solutions to {args.out_dir}")
    return 0


# --------------------------------- main() ------------------------------------


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="pinsim — p-i-n device equilibration")
    sub = parser.add_subparsers(dest="cmd")

    eq_parser = _add_equilibrate_subparser(sub)

    argv = sys.argv[1:] if argv is None else list(argv)
    # If no subcommand given, default to 'equilibrate' with defaults
    if not argv:
        return _run_equilibrate(_to_args(eq_parser.parse_args([])))

    ns = parser.parse_args(argv)
    if ns.cmd == "equilibrate":
        return _run_equilibrate(_to_args(ns))

    parser.error("Unknown command (try: equilibrate)")
    return 2


if __name__ == "__main__":
    sys.exit(main())
