from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from bench_types import BenchRecord, parse_bench_id
from plot_data import Plots, point_from_record
from render_plots_html import build_html, line_summary, padded_ranges, safe_key, write_html_report


def rec(group: str, sha: str, ts: str, params: str, value: float) -> BenchRecord:
    return BenchRecord(id=parse_bench_id(f"{group}/{sha}_{ts.replace(':', '_')}/{params}"), value=value)


RECORDS = [
    rec("Fibonacci-num=10", "aaaaaaa", "2024-01-01T00:00:00Z", "rc=100", 1.0),
    rec("Fibonacci-num=10", "bbbbbbb", "2024-01-02T00:00:00Z", "rc=100", 2.0),
    rec("Fibonacci-num=10", "ccccccc", "2024-01-03T00:00:00Z", "rc=100", 4.0),
    rec("Fibonacci-num=10", "ccccccc", "2024-01-03T00:00:00Z", "rc=200", 3.0),
]


def test_padding_applied_at_render_time_only() -> None:
    plots = Plots().ingest(RECORDS)
    plot = plots["Fibonacci-num=10"]
    x_range, y_range = padded_ranges(plot)

    assert x_range == ["2023-12-31T00:00:00Z", "2024-01-04T00:00:00Z"]
    assert y_range == pytest.approx([0.8, 4.2])
    # Stored ranges are unchanged.
    assert plot.x_axis.min == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert (plot.y_axis.min, plot.y_axis.max) == (1.0, 4.0)


def test_line_summary() -> None:
    points = [point_from_record(r) for r in RECORDS[:3]]
    s = line_summary(points)
    assert s["count"] == 3
    assert s["latest"] == 4.0
    assert s["mean"] == pytest.approx(7.0 / 3.0)
    assert s["median"] == 2.0
    assert (s["min"], s["max"]) == (1.0, 4.0)
    assert s["change_pct"] == pytest.approx(100.0)


def test_line_summary_single_point() -> None:
    s = line_summary([point_from_record(RECORDS[0])])
    assert s["count"] == 1
    assert s["change_pct"] is None


def test_safe_key() -> None:
    assert safe_key("Fibonacci-num=10") == "Fibonacci-num_10"


def test_build_html_contains_every_line() -> None:
    page = build_html("Benchmark History", Plots().ingest(RECORDS))
    assert "plotly" in page
    assert "<h2>Fibonacci-num=10</h2>" in page
    assert 'id="plot-Fibonacci-num_10"' in page
    assert '"name":"rc=100"' in page
    assert '"name":"rc=200"' in page
    assert "Commit Date" in page
    assert "+100.00%" in page


def test_build_html_escapes_names() -> None:
    plots = Plots().ingest([rec("<script>", "aaaaaaa", "2024-01-01T00:00:00Z", "p", 1.0)])
    page = build_html("t", plots)
    assert "<h2>&lt;script&gt;</h2>" in page
    assert '"title":"\\u003cscript>"' in page


def test_build_html_without_data() -> None:
    assert "No benchmark data yet." in build_html("t", Plots())


def test_write_html_report(tmp_path: Path) -> None:
    out_path = write_html_report(Plots().ingest(RECORDS), tmp_path / "renders")
    assert out_path == tmp_path / "renders" / "plots.html"
    assert "Fibonacci-num=10" in out_path.read_text(encoding="utf-8")
