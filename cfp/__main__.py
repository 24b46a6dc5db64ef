"""CLI entry point for CFP."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
import threading

from .engine import ComputedScenario, compute
from .report import render_report, summary_lines, write_report
from .schema import Scenario, ScenarioError, SchemaError, load_scenario
from .simulation import SIMULATION_MODES, run_simulation
from .validate import validate_scenario
from .whatif import WhatIfAdjustments, apply_what_if_adjustments

logger = logging.getLogger("cfp")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Canadian Financial Projector")
    parser.add_argument("scenario", help="Path to scenario JSON file")
    parser.add_argument("-o", "--output", help="Write the computed scenario as JSON to this path")
    parser.add_argument("--what-if", dest="what_if", help="Path to a JSON file of what-if adjustments")
    parser.add_argument("--mode", choices=SIMULATION_MODES, default="deterministic", help="Simulation mode")
    parser.add_argument("--runs", type=int, help="Override Monte Carlo trial count")
    parser.add_argument("--seed", type=int, help="Random seed for reproducibility")
    parser.add_argument("--validate", action="store_true", help="Validate JSON only")
    parser.add_argument("--summary", action="store_true", help="Print text summary to stdout")
    parser.add_argument("--watch", action="store_true", help="Recompute whenever the scenario file changes")
    parser.add_argument("--watch-interval", type=float, default=1.0, help="Scenario file watch interval in seconds (default: 1.0)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v info, -vv debug)")
    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _print_validation(errors: list[str], warnings: list[str]) -> None:
    for warning in warnings:
        print(f"WARNING: {warning}")
    for error in errors:
        print(f"ERROR: {error}", file=sys.stderr)


def _print_year_warnings(computed: ComputedScenario) -> None:
    for item in computed.years:
        for warning in item.warnings:
            prefix = "ERROR" if warning.severity == "error" else "WARNING"
            print(f"{prefix}: {item.year} {warning.field}: {warning.message}")


def _load(args: argparse.Namespace) -> Scenario:
    scenario = load_scenario(args.scenario)
    if args.what_if:
        raw = json.loads(Path(args.what_if).read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise SchemaError("what_if: root must be a JSON object")
        scenario = apply_what_if_adjustments(scenario, WhatIfAdjustments.from_dict(raw))
    return scenario


def _compute_and_write(scenario: Scenario, args: argparse.Namespace, *, print_header: bool = True) -> None:
    computed = compute(scenario)
    simulation = None
    if args.mode == "monte_carlo":
        simulation = run_simulation(scenario, mode=args.mode, runs=args.runs, seed=args.seed)
    _print_year_warnings(computed)

    if args.output:
        write_report(args.output, render_report(scenario, computed, simulation))
        print(f"Wrote results to {Path(args.output)}")
        logger.info("wrote %d years to %s", len(computed.years), args.output)

    if args.summary and print_header:
        for line in summary_lines(computed, simulation):
            print(line)
    if simulation is not None and simulation.seed is not None:
        print(f"Seed: {simulation.seed}")


def _scenario_mtime_ns(scenario_path: str) -> int | None:
    try:
        return Path(scenario_path).stat().st_mtime_ns
    except OSError:
        return None


def _run_watch_mode(args: argparse.Namespace) -> int:
    if args.validate:
        print("--validate cannot be used with --watch", file=sys.stderr)
        return 2
    if args.watch_interval <= 0:
        print("--watch-interval must be > 0", file=sys.stderr)
        return 2

    try:
        scenario = _load(args)
    except (SchemaError, OSError, ValueError) as exc:
        print(f"Failed to load scenario: {exc}", file=sys.stderr)
        return 2

    validation = validate_scenario(scenario)
    _print_validation(validation.errors, validation.warnings)
    if not validation.is_valid:
        return 1
    try:
        _compute_and_write(scenario, args)
    except ScenarioError as exc:
        print(f"Computation failed: {exc}", file=sys.stderr)
        return 1

    stop_event = threading.Event()
    last_mtime_ns = _scenario_mtime_ns(args.scenario)
    print(f"Watching {args.scenario}; press Ctrl+C to stop.")
    try:
        while not stop_event.wait(args.watch_interval):
            current_mtime_ns = _scenario_mtime_ns(args.scenario)
            if current_mtime_ns is None or current_mtime_ns == last_mtime_ns:
                continue
            last_mtime_ns = current_mtime_ns
            print(f"Detected change in {args.scenario}; recomputing...")
            try:
                updated = _load(args)
            except (SchemaError, OSError, ValueError) as exc:
                logger.error("failed to load updated scenario: %s", exc)
                continue
            validation_update = validate_scenario(updated)
            _print_validation(validation_update.errors, validation_update.warnings)
            if not validation_update.is_valid:
                print("Recompute skipped due to validation errors; keeping last successful output.", file=sys.stderr)
                continue
            try:
                _compute_and_write(updated, args, print_header=False)
            except (ScenarioError, OSError) as exc:
                logger.error("recompute failed; keeping last successful output: %s", exc)
    except KeyboardInterrupt:
        pass
    finally:
        stop_event.set()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.runs is not None and args.runs < 1:
        print("--runs must be >= 1", file=sys.stderr)
        return 2
    if args.watch:
        return _run_watch_mode(args)

    try:
        scenario = _load(args)
    except (SchemaError, OSError, ValueError) as exc:
        print(f"Failed to load scenario: {exc}", file=sys.stderr)
        return 2

    validation = validate_scenario(scenario)
    _print_validation(validation.errors, validation.warnings)
    if not validation.is_valid:
        return 1

    if args.validate:
        print("Scenario is valid.")
        return 0

    try:
        _compute_and_write(scenario, args)
    except ScenarioError as exc:
        print(f"Computation failed: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
