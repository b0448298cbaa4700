#!/usr/bin/env python
"""Command-line entry point: optimize, score and refine keyboard layouts on a text corpus."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading

import numpy as np

from corpus import CorpusStats
from errors import ConfigurationError, InputError
from hardware import KeyboardHardware
from layout import DEFAULT_HARDWARE, KeyboardLayout
from model import CostModel
from optim import MultiStart
from report import format_breakdown, format_layout_display, format_result, format_runs
from settings import Settings, load_settings
from solvers.annealing import AnnealingSchedule, calibrate_schedule
from solvers.steepesthill import refine
from weights import PenaltyWeights

logger = logging.getLogger("keyopt")

# letters first, then punctuation to fill the remaining keys
DEFAULT_ALPHABET = "abcdefghijklmnopqrstuvwxyz,./;"

SCHEDULE_FLAGS = {
    "temperature_start": float,
    "temperature_floor": float,
    "cooling_factor": float,
    "steps_per_temperature": int,
    "max_iterations": int,
    "stagnation_limit": int,
    "max_swaps": int,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="keyopt searches for the keyboard layout that minimizes typing discomfort on a text corpus.",
        epilog="Try `keyopt.py run corpus.txt` to anneal from qwerty, or `keyopt.py score corpus.txt` to compare the reference layouts."
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Verbose logging.")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=None, help="Settings file (default: config.toml next to keyopt.py).")
    common.add_argument("--hardware", default=None, help="Keyboard hardware from keebs/ (default: from settings).")
    common.add_argument("--weights", default=None, help="Penalty weights formula, e.g. '10long_jump + 5sfb - 0.5roll_in'; unnamed penalties keep their configured weight.")
    common.add_argument("--no-fold-shift", action="store_true", help="Count the corpus as is, without lowercasing and folding shifted symbols.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", parents=[common], help="Anneal a layout on the corpus.")
    run.add_argument("corpus", help="Text corpus, or a .json file of saved n-gram counts.")
    run.add_argument("--layout", default=None, help="Starting layout from layouts/, or 'random' (default: from settings).")
    run.add_argument("--alphabet", default=None, help="Characters of a random layout, only with --layout random (default: letters then ,./;).")
    run.add_argument("--seed", type=int, default=None, help="Seed of the first run; run k uses seed + k.")
    run.add_argument("--runs", type=int, default=None, help="Number of independent annealing runs.")
    run.add_argument("--processes", type=int, default=None, help="Worker processes for multiple runs.")
    run.add_argument("--calibrate", action="store_true", default=None, help="Derive the temperatures from the cost landscape.")
    run.add_argument("--refine", action="store_true", default=None, help="Finish with steepest descent on the best layout.")
    run.add_argument("--log", dest="logs_dir", default=None, help="Directory for the tsv logs of every iteration and run.")
    for name, kind in SCHEDULE_FLAGS.items():
        run.add_argument("--" + name.replace("_", "-"), dest=name, type=kind, default=None, help=f"Schedule {name}.")

    score = subparsers.add_parser("score", parents=[common], help="Score reference layouts on the corpus.")
    score.add_argument("corpus", help="Text corpus, or a .json file of saved n-gram counts.")
    score.add_argument("layouts", nargs="*", help="Layouts from layouts/ (default: all layouts for the hardware).")
    score.add_argument("--top", type=int, default=5, help="Top n-grams per penalty, for a single layout.")

    refine_parser = subparsers.add_parser("refine", parents=[common], help="Steepest descent from a layout.")
    refine_parser.add_argument("corpus", help="Text corpus, or a .json file of saved n-gram counts.")
    refine_parser.add_argument("layout", help="Layout from layouts/.")

    return parser


def _settings(args: argparse.Namespace) -> Settings:
    settings = load_settings(args.config)
    settings = settings.replace(
        hardware=args.hardware,
        fold_shift=False if args.no_fold_shift else None,
    )
    if args.weights:
        settings = settings.replace(weights=PenaltyWeights.from_formula(args.weights, base=settings.weights))
    return settings


def _load_layout(name: str, hardware: KeyboardHardware) -> KeyboardLayout:
    return KeyboardLayout.from_name(name, hardware)


def _cmd_run(args: argparse.Namespace) -> int:
    settings = _settings(args).replace(
        layout=args.layout,
        seed=args.seed,
        runs=args.runs,
        processes=args.processes,
        calibrate=args.calibrate,
        refine=args.refine,
        logs_dir=args.logs_dir,
    )
    overrides = {name: getattr(args, name) for name in SCHEDULE_FLAGS if getattr(args, name) is not None}
    schedule = AnnealingSchedule.from_dict(overrides, base=settings.schedule)
    if settings.runs < 1 or settings.processes < 1:
        raise ConfigurationError("--runs and --processes must be >= 1")

    hardware = KeyboardHardware.from_name(settings.hardware)
    if settings.layout == "random":
        alphabet = args.alphabet
        if alphabet is None:
            if len(hardware) > len(DEFAULT_ALPHABET):
                raise ConfigurationError(f"{hardware.name} has {len(hardware)} keys, specify the --alphabet")
            alphabet = DEFAULT_ALPHABET[:len(hardware)]
        start = None
    else:
        if args.alphabet is not None:
            raise ConfigurationError(f"--alphabet only applies to a random starting layout, the alphabet of {settings.layout} is fixed")
        start = _load_layout(settings.layout, hardware)
        alphabet = start.chars

    stats = CorpusStats.from_file(args.corpus, alphabet, fold_shift=settings.fold_shift)
    model = CostModel(hardware, settings.weights, stats)

    base_seed = settings.seed if settings.seed is not None else int(np.random.default_rng().integers(2**31))
    seeds = [base_seed + k for k in range(settings.runs)]

    if settings.calibrate:
        reference = start or KeyboardLayout.random(hardware, alphabet, np.random.default_rng(base_seed))
        schedule = calibrate_schedule(model, reference, schedule)

    logger.info(f"annealing {len(seeds)} run(s) with {schedule}")

    # ctrl-c stops the in-process runs cooperatively and keeps the best so far
    cancel = None
    previous_handler = None
    if settings.processes == 1 and threading.current_thread() is threading.main_thread():
        cancel = threading.Event()
        previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())

    multi = MultiStart(model, schedule, settings.processes, logs_dir=settings.logs_dir, run_name=stats.corpus_name)
    try:
        result = multi.run(seeds, layout=start, alphabet=None if start else alphabet, cancel=cancel)
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)
    best = result.best.best_layout
    best.name = f"best_{result.best.seed}"

    if settings.refine:
        best, _ = refine(model, best)
        best.name = f"refined_{result.best.seed}"

    print(format_layout_display(best))
    print()
    print(format_result(result.best))
    if len(result.results) > 1:
        print()
        print(format_runs(result))
    print()
    print(format_breakdown(model, [start, best] if start else [best]))
    return 0


def _cmd_score(args: argparse.Namespace) -> int:
    settings = _settings(args)
    hardware = KeyboardHardware.from_name(settings.hardware)

    names = args.layouts
    if not names:
        names = [
            name for name in KeyboardLayout.available()
            if (KeyboardLayout.hardware_hint(name) or DEFAULT_HARDWARE) == hardware.name
        ]
    layouts = [_load_layout(name, hardware) for name in names]
    if not layouts:
        raise ConfigurationError(f"No layouts to score on {hardware.name}")

    # score on the characters every layout has
    shared = set.intersection(*(set(layout.chars) for layout in layouts))
    alphabet = [c for c in layouts[0].chars if c in shared]

    stats = CorpusStats.from_file(args.corpus, alphabet, fold_shift=settings.fold_shift)
    model = CostModel(hardware, settings.weights, stats)

    ranked = sorted(layouts, key=model.cost)
    print(format_breakdown(model, ranked, show_top_ngrams=True, top_n=args.top))
    return 0


def _cmd_refine(args: argparse.Namespace) -> int:
    settings = _settings(args)
    hardware = KeyboardHardware.from_name(settings.hardware)
    layout = _load_layout(args.layout, hardware)

    stats = CorpusStats.from_file(args.corpus, layout.chars, fold_shift=settings.fold_shift)
    model = CostModel(hardware, settings.weights, stats)

    refined, _ = refine(model, layout)
    refined.name = f"{layout.name}_refined"

    print(format_layout_display(refined))
    print()
    print(format_breakdown(model, [layout, refined]))
    return 0


COMMANDS = {
    "run": _cmd_run,
    "score": _cmd_score,
    "refine": _cmd_refine,
}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return COMMANDS[args.command](args)
    except (InputError, ConfigurationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
