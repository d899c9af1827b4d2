from __future__ import annotations

from pathlib import Path

import pytest

from plot_data import load_plots
from update_plots import (
    bench_files_env,
    get_json_paths,
    load_existing_plots,
    run,
    select_bench_files,
    short_git_sha,
)


REC_1 = '{"id": "Fibonacci-num=10/abc1234_2024-01-30T19_07_04-05_00/rc=100", "typical": {"estimate": 120.5}}\n'
REC_2 = '{"id": "Fibonacci-num=10/def5678_2024-02-01T10_00_00Z/rc=100", "typical": {"estimate": 110.0}}\n'
NOISE = '{"reason": "group-complete"}\n'


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("BENCH_FILES", raising=False)
    monkeypatch.delenv("GIT_SHA", raising=False)


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_get_json_paths_filters_by_suffix(tmp_path: Path) -> None:
    a = _write(tmp_path / "fib-abc1234.json", REC_1)
    b = _write(tmp_path / "fib-def5678.json", REC_2)
    _write(tmp_path / "notes.txt", "x")
    store = _write(tmp_path / "plot-data.json", "{}")

    assert get_json_paths(tmp_path, exclude=store) == [a, b]
    assert get_json_paths(tmp_path, suffix="def5678.json") == [b]


def test_bench_files_env(monkeypatch: pytest.MonkeyPatch) -> None:
    assert bench_files_env() is None
    monkeypatch.setenv("BENCH_FILES", "fib-abc1234, fib-def5678,")
    assert bench_files_env() == ["fib-abc1234", "fib-def5678"]


def test_short_git_sha_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GIT_SHA", "def5678aa99")
    assert short_git_sha() == "def5678"


def test_select_without_plots_takes_every_file(tmp_path: Path) -> None:
    a = _write(tmp_path / "fib-abc1234.json", REC_1)
    b = _write(tmp_path / "fib-def5678.json", REC_2)
    assert select_bench_files(tmp_path, tmp_path / "plot-data.json", have_plots=False) == [a, b]


def test_select_with_plots_uses_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BENCH_FILES", "fib-def5678")
    assert select_bench_files(tmp_path, tmp_path / "plot-data.json", have_plots=True) == [
        tmp_path / "fib-def5678.json"
    ]


def test_select_with_plots_uses_commit_sha(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write(tmp_path / "fib-abc1234.json", REC_1)
    b = _write(tmp_path / "fib-def5678.json", REC_2)
    monkeypatch.setenv("GIT_SHA", "def5678")
    assert select_bench_files(tmp_path, tmp_path / "plot-data.json", have_plots=True) == [b]


def test_load_existing_plots_tolerates_corrupt_store(tmp_path: Path) -> None:
    plots, have_plots = load_existing_plots(_write(tmp_path / "plot-data.json", "{not json"))
    assert len(plots) == 0
    assert not have_plots

    plots, have_plots = load_existing_plots(tmp_path / "missing.json")
    assert not have_plots


def test_load_existing_plots_tolerates_wrong_container_types(tmp_path: Path) -> None:
    store = _write(
        tmp_path / "plot-data.json",
        '{"G": {"x_axis": {"min": 0, "max": 0}, "y_axis": {"min": 1.0, "max": 1.0}, "lines": []}}',
    )
    plots, have_plots = load_existing_plots(store)
    assert len(plots) == 0
    assert not have_plots


def test_run_builds_then_appends(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write(tmp_path / "fib-abc1234.json", REC_1 + NOISE)
    _write(tmp_path / "fib-def5678.json", REC_2)
    store = tmp_path / "plot-data.json"
    out_dir = tmp_path / "renders"

    # First run: no plot data yet, every bench file is read.
    plots = run(files=[], directory=tmp_path, store_path=store, out_dir=out_dir)
    line = plots["Fibonacci-num=10"].lines["rc=100"]
    assert [p.y for p in line] == [120.5, 110.0]
    assert load_plots(store) == plots
    assert (out_dir / "plots.html").exists()

    # Second run: only the current commit's file is added, and added again.
    monkeypatch.setenv("BENCH_FILES", "fib-def5678")
    plots = run(files=[], directory=tmp_path, store_path=store, out_dir=out_dir, render=False)
    assert [p.y for p in plots["Fibonacci-num=10"].lines["rc=100"]] == [120.5, 110.0, 110.0]
    assert load_plots(store) == plots


def test_run_with_explicit_files(tmp_path: Path) -> None:
    bench = _write(tmp_path / "results.json", REC_2)
    store = tmp_path / "data" / "plot-data.json"
    store.parent.mkdir()

    plots = run(files=[bench], directory=tmp_path, store_path=store, out_dir=tmp_path / "out", render=False)
    assert plots.num_points() == 1
    assert store.exists()
    assert not (tmp_path / "out").exists()


def test_run_skips_missing_files(tmp_path: Path) -> None:
    plots = run(
        files=[tmp_path / "nope.json"],
        directory=tmp_path,
        store_path=tmp_path / "plot-data.json",
        out_dir=tmp_path / "renders",
        render=False,
    )
    assert len(plots) == 0
