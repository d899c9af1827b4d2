#!/usr/bin/env python3
"""
Render an HTML report from plot-data.json.

One chart per bench group, one line (with point markers) per parameter
variant, commit date on the X axis and benchmark time on the Y axis. Each
chart is followed by a summary table of its lines.

Usage:
  python3 render_plots_html.py [plot-data.json] [--out-dir renders]

Outputs:
  renders/plots.html
"""
from __future__ import annotations

import html
import json
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List

import numpy as np

from bench_types import c_label, c_value, c_ok, die
from plot_data import DEFAULT_PLOT_DATA, Plot, Plots, format_rfc3339, load_plots


# Visual padding around the stored axis ranges. Applied here only, never persisted.
X_PADDING = timedelta(days=1)
# Not rigorous, based on a priori knowledge of Y axis units & values (ns).
Y_PADDING = 0.2

REPORT_NAME = "plots.html"


def safe_key(group_name: str) -> str:
    # sanitize for HTML id
    return "".join(ch if ch.isalnum() or ch in ("_", "-") else "_" for ch in group_name)


def to_js(o: Any) -> str:
    # Use separators to reduce size a bit
    return json.dumps(o, ensure_ascii=False, separators=(",", ":")).replace("<", "\\u003c")


def padded_ranges(plot: Plot) -> tuple[list[str], list[float]]:
    """Axis ranges for a chart: the stored min/max widened by the render padding."""
    x0: datetime = plot.x_axis.min - X_PADDING
    x1: datetime = plot.x_axis.max + X_PADDING
    return (
        [format_rfc3339(x0), format_rfc3339(x1)],
        [plot.y_axis.min - Y_PADDING, plot.y_axis.max + Y_PADDING],
    )


# ---------------------------------------------------------------------------
# Summary statistics
# ---------------------------------------------------------------------------

def line_summary(points: List[Any]) -> Dict[str, Any]:
    """
    Summary of one line's values, in commit order:
    count, latest, mean, median, min, max and change of the latest value
    against the previous one (percent, None with fewer than 2 points).
    """
    ys = np.array([p.y for p in points], dtype=float)
    if ys.size == 0:
        return {"count": 0}
    change_pct = None
    if ys.size >= 2 and ys[-2] != 0:
        change_pct = float((ys[-1] - ys[-2]) / ys[-2] * 100.0)
    return {
        "count": int(ys.size),
        "latest": float(ys[-1]),
        "mean": float(np.mean(ys)),
        "median": float(np.median(ys)),
        "min": float(np.min(ys)),
        "max": float(np.max(ys)),
        "change_pct": change_pct,
    }


def _fmt_ns(v: float) -> str:
    return f"{v:,.2f}"


def _render_summary_table(plot: Plot) -> str:
    rows = ""
    for params, line in sorted(plot.lines.items()):
        s = line_summary(line)
        if s["count"] == 0:
            continue
        change = s["change_pct"]
        if change is None:
            change_cell = "<td>-</td>"
        else:
            # Lower times are better.
            cls = "better" if change < 0 else ("worse" if change > 0 else "")
            change_cell = f'<td class="{cls}">{change:+.2f}%</td>'
        rows += (
            f"<tr><td>{html.escape(params)}</td>"
            f"<td>{s['count']}</td>"
            f"<td>{_fmt_ns(s['latest'])}</td>"
            f"<td>{_fmt_ns(s['mean'])}</td>"
            f"<td>{_fmt_ns(s['median'])}</td>"
            f"<td>{_fmt_ns(s['min'])}</td>"
            f"<td>{_fmt_ns(s['max'])}</td>"
            f"{change_cell}</tr>\n"
        )
    return (
        "<table><thead><tr><th>Params</th><th>Points</th><th>Latest (ns)</th>"
        "<th>Mean (ns)</th><th>Median (ns)</th><th>Min (ns)</th><th>Max (ns)</th>"
        "<th>Change</th></tr></thead>\n<tbody>\n" + rows + "</tbody></table>"
    )


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------

def build_html(title: str, plots: Plots) -> str:
    # Prepare JS data blobs for plots: per group, one series per params value
    plots_data: Dict[str, Dict[str, Any]] = {}
    cards = ""
    for group_name, plot in sorted(plots.items()):
        if plot.num_points() == 0:
            continue
        key = safe_key(group_name)
        x_range, y_range = padded_ranges(plot)
        plots_data[key] = {
            "title": group_name,
            "x_range": x_range,
            "y_range": y_range,
            "series": [
                {
                    "name": params,
                    "x": [format_rfc3339(p.x) for p in line],
                    "y": [p.y for p in line],
                }
                for params, line in sorted(plot.lines.items())
            ],
        }
        cards += f"""
  <div class="card">
    <h2>{html.escape(group_name)}</h2>
    <div class="plot" id="plot-{key}"></div>
    {_render_summary_table(plot)}
  </div>
"""

    if not cards:
        cards = '<div class="card" style="color:#6b7280;">No benchmark data yet.</div>'

    return f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{html.escape(title)}</title>
  <script src="https://cdn.plot.ly/plotly-2.26.2.min.js"></script>
  <style>
    body {{
      font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, Oxygen,
                   Ubuntu, Cantarell, "Fira Sans", "Droid Sans", "Helvetica Neue",
                   Arial, sans-serif;
      margin: 0;
      padding: 0 16px 48px 16px;
      color: #1f2937;
      background: #f9fafb;
    }}
    h1 {{
      margin: 16px 0 12px 0;
      font-size: 22px;
    }}
    h2 {{
      margin: 0 0 8px 0;
      font-size: 18px;
    }}
    .card {{
      background: white;
      border-radius: 8px;
      box-shadow: 0 1px 3px rgba(0,0,0,0.08), 0 1px 2px rgba(0,0,0,0.06);
      padding: 16px;
      margin: 16px 0;
    }}
    .plot {{
      width: 100%;
      height: 480px;
    }}
    table {{
      width: 100%;
      border-collapse: collapse;
      font-size: 14px;
      margin-top: 12px;
    }}
    th, td {{
      border-bottom: 1px solid #e5e7eb;
      padding: 8px 10px;
      text-align: right;
      white-space: nowrap;
    }}
    th:first-child, td:first-child {{
      text-align: left;
    }}
    thead th {{
      background: #f3f4f6;
    }}
    .better {{ background: #dcfce7; color: #065f46; font-weight: 600; }}
    .worse {{ background: #fee2e2; color: #991b1b; }}
  </style>
</head>
<body>
  <h1>{html.escape(title)}</h1>
{cards}
<script>
const PLOTS_DATA = {to_js(plots_data)};

for (const [key, item] of Object.entries(PLOTS_DATA)) {{
  const traces = item.series.map(s => ({{
    x: s.x,
    y: s.y,
    name: s.name,
    type: 'scatter',
    mode: 'lines+markers',
    marker: {{ size: 6 }},
  }}));
  const layout = {{
    margin: {{ l: 60, r: 20, t: 10, b: 40 }},
    xaxis: {{ title: 'Commit Date', type: 'date', range: item.x_range, showgrid: false }},
    yaxis: {{ title: 'Time (ns)', range: item.y_range, showgrid: false }},
    legend: {{ orientation: 'h', y: -0.15 }},
  }};
  Plotly.newPlot('plot-' + key, traces, layout, {{ responsive: true }});
}}
</script>
</body>
</html>
"""


def write_html_report(plots: Plots, out_dir: Path, title: str = "Benchmark History") -> Path:
    """Render plots into <out_dir>/plots.html and return the path."""
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / REPORT_NAME
    with open(out_path, "w", encoding="utf-8") as f:
        f.write(build_html(title, plots))
    return out_path


def main() -> None:
    args = sys.argv[1:]
    out_dir = Path("renders")
    if "--out-dir" in args:
        idx = args.index("--out-dir")
        if idx + 1 >= len(args):
            die("--out-dir needs a directory")
        out_dir = Path(args[idx + 1])
        args = args[:idx] + args[idx + 2:]

    path = Path(args[0]) if args else Path(DEFAULT_PLOT_DATA)
    if not path.exists() or not path.is_file():
        die(f"Plot data not found: {path}")
    try:
        plots = load_plots(path)
    except ValueError as e:
        die(f"Failed to read {path}: {e}")

    print(f"{c_label('Plots:')} {c_value(str(len(plots)))}")
    out_path = write_html_report(plots, out_dir)
    print(f"{c_ok('Done.')} Wrote HTML report to {c_value(str(out_path))}")


if __name__ == "__main__":
    main()
