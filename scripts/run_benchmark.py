#!/usr/bin/env python3
"""Batch runner for the timetable engine.

Generates sample schools of each size for a range of seeds, runs every
strategy on them, re-checks the output with the conflict detector,
runs the optimizer over it, and writes one CSV row per run.
"""

from __future__ import annotations

import argparse
import csv
from pathlib import Path
from typing import Any, Dict, List

import sys

# Make project root importable
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(PROJECT_ROOT))

from timetabler.catalog import catalog_from_dict
from timetabler.config import setup_logging
from timetabler.conflicts import check_conflicts
from timetabler.engine import STRATEGIES, GenerationConfig, generate_schedule
from timetabler.models import QUOTA_UNMET, ROOM_DOUBLE_BOOKED, TEACHER_DOUBLE_BOOKED
from timetabler.optimizer import optimize
from timetabler.sample_data import generate_problem


# ---------- Benchmark Runner ----------

def run_benchmark(
    sizes: List[str],
    seed_count: int,
    strategies: List[str],
    time_limit: float,
    output: Path,
) -> None:
    records: List[Dict[str, Any]] = []

    print("Running benchmark (single-threaded, reproducible).")

    for size in sizes:
        for seed in range(seed_count):
            data = generate_problem(size, seed=seed)
            catalog = catalog_from_dict(data)

            meta = {
                "instance": size,
                "seed": seed,
                "n_classes": len(catalog.class_groups),
                "n_teachers": len(catalog.teachers),
                "n_rooms": len(catalog.rooms),
                "teaching_slots": len(catalog.grid.teaching_slots),
                "total_periods": sum(g.total_periods for g in catalog.class_groups),
            }

            for strategy in strategies:
                config = GenerationConfig(
                    strategy=strategy,
                    time_limit_seconds=time_limit,
                    random_seed=seed,
                )
                result = generate_schedule(catalog, config)
                report = check_conflicts(result.assignments, catalog)
                optimized = optimize(result.schedules, report, catalog)

                record = {
                    **meta,
                    "strategy": strategy,
                    "used_strategy": result.strategy,
                    "efficiency": result.efficiency,
                    "optimized_efficiency": optimized.efficiency,
                    "assignments": len(result.assignments),
                    "wall_time_s": result.stats.get("wall_time_s"),
                    "backtracks": result.stats.get("backtracks"),
                    "objective_value": result.stats.get("objective_value"),
                    "teacher_conflicts": len(report.of_type(TEACHER_DOUBLE_BOOKED)),
                    "room_conflicts": len(report.of_type(ROOM_DOUBLE_BOOKED)),
                    "quota_unmet": len(report.of_type(QUOTA_UNMET)),
                    "soft_swaps": optimized.swaps_applied,
                }
                records.append(record)

                print(
                    f"[{size}] seed={seed} strategy={strategy}: "
                    f"efficiency={result.efficiency} -> {optimized.efficiency} "
                    f"unmet={record['quota_unmet']}"
                )

    # ---------- Write CSV ----------

    fieldnames = [
        "instance",
        "seed",
        "strategy",
        "used_strategy",
        "efficiency",
        "optimized_efficiency",
        "assignments",
        "total_periods",
        "wall_time_s",
        "backtracks",
        "objective_value",
        "teacher_conflicts",
        "room_conflicts",
        "quota_unmet",
        "soft_swaps",
        "n_classes",
        "n_teachers",
        "n_rooms",
        "teaching_slots",
    ]

    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=fieldnames)
        writer.writeheader()
        for record in records:
            writer.writerow(record)

    print(f"Wrote benchmark results to {output}")


# ---------- CLI ----------

def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--sizes", nargs="+", default=["small", "medium", "large"])
    parser.add_argument("--seed-count", type=int, default=5)
    parser.add_argument("--strategies", nargs="+", default=list(STRATEGIES), choices=STRATEGIES)
    parser.add_argument("--time-limit", type=float, default=20.0)
    parser.add_argument(
        "--output",
        type=Path,
        default=PROJECT_ROOT / "results.csv",
    )
    return parser.parse_args()


def main() -> None:
    setup_logging()
    args = parse_args()
    run_benchmark(
        sizes=args.sizes,
        seed_count=args.seed_count,
        strategies=args.strategies,
        time_limit=args.time_limit,
        output=args.output,
    )


if __name__ == "__main__":
    main()
