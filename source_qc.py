"""CLI to validate per-package harvest coverage."""

from __future__ import annotations

import argparse
import json
import statistics
import sys
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from config import DeckConfig

MAX_DOMAIN_RATIO = 0.6
MIN_UNIQUE_DOMAINS = 3


def _load_stats(path: Path) -> tuple[Path, dict]:
    target = path
    if target.is_dir():
        target = target / DeckConfig.HARVEST_STATS_FILE
    if not target.exists():
        raise FileNotFoundError(f"{target} does not exist")
    data = json.loads(target.read_text(encoding="utf-8"))
    return target, data


def _lint_stats(stats: dict) -> List[str]:
    issues: List[str] = []
    achieved = int(stats.get("achieved") or 0)
    required = int(stats.get("required") or DeckConfig.MIN_VETTED_SOURCES)
    rigorous = bool(stats.get("rigorous"))
    unique_domains = int(stats.get("unique_domains") or 0)
    dominant_ratio = float(stats.get("dominant_ratio") or 0.0)
    rounds = stats.get("rounds") or []

    if achieved < required:
        level = "ERROR" if rigorous else "WARN"
        issues.append(f"{level}: vetted sources {achieved} < required {required}")
    if achieved and unique_domains < MIN_UNIQUE_DOMAINS:
        issues.append(f"WARN: unique domains {unique_domains} < {MIN_UNIQUE_DOMAINS}")
    if achieved and dominant_ratio > MAX_DOMAIN_RATIO:
        issues.append(f"WARN: dominant domain ratio {dominant_ratio:.2f} exceeds {MAX_DOMAIN_RATIO:.2f}")
    for record in rounds:
        if not isinstance(record, dict):
            continue
        if record.get("queries") and not record.get("added_count"):
            issues.append(f"WARN: round {record.get('round_id')} added no sources")
    if int(stats.get("synthetic_charts") or 0):
        issues.append("WARN: only a synthetic fallback chart was admitted")
    return issues


def _check_path(raw_path: str) -> List[str]:
    path = Path(raw_path)
    try:
        target, stats = _load_stats(path)
    except FileNotFoundError as exc:
        return [f"{raw_path}: ERROR: {exc}"]
    except (OSError, ValueError) as exc:
        return [f"{raw_path}: ERROR: unable to read stats ({exc})"]
    issues = _lint_stats(stats)
    if not issues:
        return [f"{target}: Harvest coverage OK"]
    return [f"{target}: {issue}" for issue in issues]


def _gather_records(paths: Sequence[str]) -> List[Tuple[str, dict]]:
    records: List[Tuple[str, dict]] = []
    for raw in paths:
        try:
            target, stats = _load_stats(Path(raw))
        except (OSError, ValueError):
            continue
        records.append((str(target), stats))
    return records


def _percentile(values: List[float], pct: float) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    if len(ordered) == 1:
        return float(ordered[0])
    rank = pct / 100.0 * (len(ordered) - 1)
    lower = int(rank)
    upper = min(lower + 1, len(ordered) - 1)
    weight = rank - lower
    return ordered[lower] * (1 - weight) + ordered[upper] * weight


def _print_dashboard(records: List[Tuple[str, dict]]) -> None:
    if not records:
        print("\nHarvest dashboard: no packages found.")
        return
    print("\nHarvest dashboard:")
    metrics = [
        ("achieved", [rec[1].get("achieved", 0) for rec in records]),
        ("unique_domains", [rec[1].get("unique_domains", 0) for rec in records]),
        ("rounds_run", [len(rec[1].get("rounds") or []) for rec in records]),
        ("charts_admitted", [rec[1].get("charts_admitted", 0) for rec in records]),
    ]
    for label, values in metrics:
        numeric_values = [float(v) for v in values if isinstance(v, (int, float))]
        if not numeric_values:
            continue
        print(
            f"  {label}: min={min(numeric_values):.1f} "
            f"median={statistics.median(numeric_values):.1f} "
            f"p75={_percentile(numeric_values, 75):.1f} "
            f"p90={_percentile(numeric_values, 90):.1f} "
            f"max={max(numeric_values):.1f}"
        )
    short = [path for path, data in records if int(data.get("achieved") or 0) < int(data.get("required") or 0)]
    if short:
        print(f"  Below floor: {len(short)} (showing up to 5)")
        for entry in short[:5]:
            print(f"    - {entry}")


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate harvest coverage sidecars.")
    parser.add_argument("paths", nargs="+", help="Package directories or harvest_stats.json files.")
    parser.add_argument(
        "--dashboard",
        action="store_true",
        help="After validation, print percentile summaries across all provided packages.",
    )
    args = parser.parse_args(argv)

    exit_code = 0
    for raw_path in args.paths:
        messages = _check_path(raw_path)
        for message in messages:
            print(message)
            if "ERROR:" in message:
                exit_code = 1
    if args.dashboard:
        records = _gather_records(args.paths)
        _print_dashboard(records)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
