#!/usr/bin/env python3
"""
Add Criterion benchmark results to the plot history and re-render it.

If plot-data.json already exists, only the bench files for the current run
are added:
  - the files named in BENCH_FILES (comma-separated, without `.json`), e.g.
        BENCH_FILES=fibonacci-abc1234,fibonacci-def5678
  - otherwise every `*<short-sha>.json` file in the directory, where the
    short SHA is GIT_SHA or `git rev-parse --short=7 HEAD`.
If no plot data exists yet, every `*.json` file in the directory is read.

Usage:
  python3 update_plots.py [bench.json ...] [--dir DIR] [--store plot-data.json]
                          [--out-dir renders] [--no-render]

Outputs:
  plot-data.json
  renders/plots.html
"""
from __future__ import annotations

import argparse
import os
import subprocess
from pathlib import Path
from typing import List, Optional

from bench_types import BenchRecord, c_label, c_value, c_ok, c_warn, die
from parse_bench_json import print_decode_errors, read_bench_file
from plot_data import DEFAULT_PLOT_DATA, Plots, load_plots, print_plots_summary, save_plots
from render_plots_html import write_html_report


BENCH_FILES_ENV = "BENCH_FILES"
GIT_SHA_ENV = "GIT_SHA"
SHORT_SHA_LEN = 7


# ---------------------------------------------------------------------------
# Bench file selection
# ---------------------------------------------------------------------------

def get_json_paths(directory: Path, suffix: str = ".json", exclude: Optional[Path] = None) -> List[Path]:
    """
    Return the files in `directory` whose name ends in `suffix`, sorted by name.
    E.g. a suffix of `abc1234.json` matches "*abc1234.json".
    """
    excluded = exclude.resolve() if exclude is not None else None
    paths: List[Path] = []
    for item in directory.iterdir():
        if not item.is_file() or not item.name.endswith(suffix):
            continue
        if excluded is not None and item.resolve() == excluded:
            continue
        paths.append(item)
    return sorted(paths)


def bench_files_env() -> Optional[List[str]]:
    """Bench file stems from BENCH_FILES, or None if unset or empty."""
    raw = os.environ.get(BENCH_FILES_ENV)
    if not raw:
        return None
    files = [name.strip() for name in raw.split(",") if name.strip()]
    return files or None


def short_git_sha() -> Optional[str]:
    """Short SHA of the current commit: GIT_SHA if set, else asked from git."""
    sha = os.environ.get(GIT_SHA_ENV)
    if not sha:
        try:
            proc = subprocess.run(
                ["git", "rev-parse", f"--short={SHORT_SHA_LEN}", "HEAD"],
                check=True,
                capture_output=True,
                text=True,
            )
        except (subprocess.CalledProcessError, FileNotFoundError):
            return None
        sha = proc.stdout.strip()
    return sha[:SHORT_SHA_LEN] or None


def select_bench_files(directory: Path, store_path: Path, have_plots: bool) -> List[Path]:
    """Pick the bench files to add, following the rules in the module docstring."""
    if not have_plots:
        return get_json_paths(directory, exclude=store_path)

    names = bench_files_env()
    if names is not None:
        return [directory / f"{name}.json" for name in names]

    sha = short_git_sha()
    if sha is None:
        raise RuntimeError(
            f"Cannot pick bench files: {BENCH_FILES_ENV} is unset and the Git commit is unknown"
        )
    return get_json_paths(directory, suffix=f"{sha}.json", exclude=store_path)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def load_existing_plots(store_path: Path) -> tuple[Plots, bool]:
    """Load the plot history; (empty plots, False) if missing or unreadable."""
    if not store_path.exists():
        return Plots(), False
    try:
        return load_plots(store_path), True
    except (OSError, ValueError) as e:
        print(f"{c_warn('WARNING:')} Ignoring unreadable plot data {store_path}: {e}")
        return Plots(), False


def read_bench_files(paths: List[Path]) -> List[BenchRecord]:
    records: List[BenchRecord] = []
    for path in paths:
        if not path.is_file():
            print(f"{c_warn('WARNING:')} Bench file not found: {c_value(str(path))}")
            continue
        file_records, errors = read_bench_file(path)
        print(f"  {path}: {c_value(str(len(file_records)))} records")
        print_decode_errors(path, errors)
        records.extend(file_records)
    return records


def run(
    files: List[Path],
    directory: Path,
    store_path: Path,
    out_dir: Path,
    render: bool = True,
) -> Plots:
    plots, have_plots = load_existing_plots(store_path)
    if have_plots:
        print(f"{c_label('Loaded plot data:')} {c_value(str(store_path))} ({plots.num_points()} points)")

    bench_files = files or select_bench_files(directory, store_path, have_plots)
    print(f"{c_label('Adding bench files to plot:')} {c_value(str(len(bench_files)))}")

    records = read_bench_files(bench_files)
    plots.ingest(records)
    print(f"{c_label('Records added:')} {c_value(str(len(records)))}")

    save_plots(plots, store_path)
    print(f"{c_ok('Done.')} Plot data written to {c_value(str(store_path))}")

    if render:
        out_path = write_html_report(plots, out_dir)
        print(f"{c_ok('Done.')} Wrote HTML report to {c_value(str(out_path))}")
    return plots


def main() -> None:
    ap = argparse.ArgumentParser(
        description="Add Criterion benchmark JSON results to the plot history and render it."
    )
    ap.add_argument("files", nargs="*", help="Bench JSON files to add (default: picked automatically)")
    ap.add_argument("--dir", default=".", help="Directory holding bench JSON files (default: .)")
    ap.add_argument("--store", default=None, help=f"Plot data file (default: <dir>/{DEFAULT_PLOT_DATA})")
    ap.add_argument("--out-dir", default="renders", help="Directory for the HTML report (default: renders)")
    ap.add_argument("--no-render", action="store_true", help="Only update the plot data")
    ap.add_argument("--summary", action="store_true", help="Print a summary of the plots when done")
    args = ap.parse_args()

    directory = Path(args.dir)
    if not directory.is_dir():
        die(f"Not a directory: {directory}")
    store_path = Path(args.store) if args.store else directory / DEFAULT_PLOT_DATA

    try:
        plots = run(
            files=[Path(f) for f in args.files],
            directory=directory,
            store_path=store_path,
            out_dir=Path(args.out_dir),
            render=not args.no_render,
        )
    except (OSError, RuntimeError, ValueError) as e:
        die(str(e))
        return

    if args.summary:
        print()
        print_plots_summary(plots)


if __name__ == "__main__":
    main()
