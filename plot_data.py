"""
Benchmark plot history: per-group time series built from bench records.

Plots are separated by benchmark group (e.g. `Fibonacci-num=100`); viewing
different groups on the same chart says little since their results are
expected to differ. Within a group, each set of bench parameters (e.g.
`rc=100`) is one line, so parameter variants can be compared over time.

The history is persistent between runs (plot-data.json) and append-only:
ingesting new records never removes or rewrites existing points, and
ingesting the same records twice stores them twice.

Usage:
    python plot_data.py [plot-data.json]    # Print a summary of the stored plots

Output:
    Groups, lines, point counts and axis ranges on stdout.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar, Union
import json
import math
import re
import sys

from bench_types import (
    BenchRecord,
    DecodeError,
    IncomparableValueError,
    TimestampParseError,
    format_bench_id,
    c_label,
    c_value,
    c_ok,
    c_warn,
    c_dim,
    die,
)
from parse_bench_json import decode_bench_buffer


DEFAULT_PLOT_DATA = "plot-data.json"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_UTC_MIN = datetime.min.replace(tzinfo=timezone.utc)
_UTC_MAX = datetime.max.replace(tzinfo=timezone.utc)

# Length of the `<short-sha>:` prefix in front of the commit date in a bench name.
_SHA_PREFIX_LEN = 8

_RFC3339_RE = re.compile(
    r"(\d{4}-\d{2}-\d{2})[Tt ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})"
)


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

def parse_rfc3339(text: str) -> datetime:
    """
    Parse an RFC3339 timestamp like '2024-01-30T19:07:04-05:00' into an
    aware UTC datetime. Fractional seconds beyond microseconds are trimmed.

    Raises TimestampParseError.
    """
    m = _RFC3339_RE.fullmatch(text)
    if not m:
        raise TimestampParseError(f"Failed to parse string into datetime: {text!r}")
    date_part, time_part, frac, offset = m.groups()
    if frac:
        # datetime supports up to 6 microsecond digits; pad/trim accordingly.
        time_part = f"{time_part}.{(frac + '000000')[:6]}"
    if offset in ("Z", "z"):
        offset = "+00:00"
    try:
        dt = datetime.fromisoformat(f"{date_part}T{time_part}{offset}")
    except ValueError as e:
        raise TimestampParseError(f"Failed to parse string into datetime: {text!r}: {e}") from None
    return dt.astimezone(timezone.utc)


def format_rfc3339(dt: datetime) -> str:
    """Format an aware datetime as RFC3339 in UTC, e.g. '2024-01-31T00:07:04Z'."""
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def str_to_datetime(bench_name: str) -> datetime:
    """
    Convert a <short-sha>:<commit-date> bench name to the commit date,
    discarding the 8-character short-sha prefix.
    """
    if len(bench_name) <= _SHA_PREFIX_LEN:
        raise TimestampParseError(f"Bench name too short to hold a commit date: {bench_name!r}")
    return parse_rfc3339(bench_name[_SHA_PREFIX_LEN:])


def to_epoch_seconds(dt: datetime) -> int:
    return (dt - _EPOCH) // timedelta(seconds=1)


# ---------------------------------------------------------------------------
# Plot data model
# ---------------------------------------------------------------------------

T = TypeVar("T")


@dataclass
class AxisRange(Generic[T]):
    """Min. and max. values seen on one axis of a plot."""
    min: T
    max: T

    def extend(self, value: T) -> None:
        """Set `value` as the new min and/or max if it lies outside the range."""
        if value < self.min:
            self.min = value
        if value > self.max:
            self.max = value


# Both ranges start with flipped min/max so the first value sets both ends.

def time_range() -> AxisRange[datetime]:
    return AxisRange(min=_UTC_MAX, max=_UTC_MIN)


def value_range() -> AxisRange[float]:
    return AxisRange(min=sys.float_info.max, max=-sys.float_info.max)


@dataclass(frozen=True)
class Point:
    x: datetime     # commit date of the benchmarked revision
    y: float        # benchmark time (typical estimate, ns)


def _point_key(p: Point) -> Tuple[datetime, float]:
    return (p.x, p.y)


def point_from_record(rec: BenchRecord) -> Point:
    """
    Build the plot point for a record.

    Raises TimestampParseError for a malformed commit date and
    IncomparableValueError for a value that cannot be ordered.
    """
    commit_date = str_to_datetime(rec.id.bench_name)
    value = rec.value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise IncomparableValueError(f"Non-numeric bench value {value!r} for {format_bench_id(rec.id)}")
    if math.isnan(value):
        raise IncomparableValueError(f"NaN bench value for {format_bench_id(rec.id)}")
    return Point(x=commit_date, y=float(value))


@dataclass
class Plot:
    """
    One chart: the lines for every parameter variant of a bench group.

    A plot only ever exists with at least one point outside of
    Plots.ingest(); the flipped initial ranges are not meaningful before that.
    """
    x_axis: AxisRange[datetime] = field(default_factory=time_range)
    y_axis: AxisRange[float] = field(default_factory=value_range)
    lines: Dict[str, List[Point]] = field(default_factory=dict)

    def add_point(self, params: str, point: Point) -> None:
        self.x_axis.extend(point.x)
        self.y_axis.extend(point.y)
        self.lines.setdefault(params, []).append(point)

    def num_points(self) -> int:
        return sum(len(line) for line in self.lines.values())


@dataclass
class Plots:
    """Plots of benchmark results over Git history, keyed by bench group name."""
    plots: Dict[str, Plot] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.plots)

    def __contains__(self, group_name: object) -> bool:
        return group_name in self.plots

    def __getitem__(self, group_name: str) -> Plot:
        return self.plots[group_name]

    def items(self):
        return self.plots.items()

    def num_points(self) -> int:
        return sum(plot.num_points() for plot in self.plots.values())

    def ingest(self, records: Iterable[BenchRecord]) -> "Plots":
        """
        Add bench records to the plots, then sort every line by (x, y).

        All points are built before anything is added, so a record with a
        malformed commit date or an unorderable value aborts the whole call
        and leaves the plots untouched.
        """
        staged = [(rec.id.group_name, rec.id.params, point_from_record(rec)) for rec in records]

        for group_name, params, point in staged:
            plot = self.plots.get(group_name)
            if plot is None:
                plot = Plot()
                self.plots[group_name] = plot
            plot.add_point(params, point)

        # Every line in the store, including untouched ones loaded from disk.
        for plot in self.plots.values():
            for line in plot.lines.values():
                line.sort(key=_point_key)
        return self

    # -----------------------------------------------------------------------
    # Serialization
    # -----------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the plot-data.json layout."""
        out: Dict[str, Any] = {}
        for group_name, plot in self.plots.items():
            out[group_name] = {
                "x_axis": {
                    "min": to_epoch_seconds(plot.x_axis.min),
                    "max": to_epoch_seconds(plot.x_axis.max),
                },
                "y_axis": {"min": plot.y_axis.min, "max": plot.y_axis.max},
                "lines": {
                    params: [{"x": format_rfc3339(p.x), "y": p.y} for p in line]
                    for params, line in plot.lines.items()
                },
            }
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "Plots":
        """
        Build Plots from the plot-data.json layout.

        Raises ValueError if the data does not have that layout or contains a
        plot without points.
        """
        if not isinstance(data, dict):
            raise ValueError("Plot data must be a JSON object")
        plots: Dict[str, Plot] = {}
        for group_name, raw in data.items():
            try:
                plots[group_name] = _plot_from_dict(raw)
            except (KeyError, TypeError, ValueError, OverflowError) as e:
                raise ValueError(f"Invalid plot {group_name!r}: {e}") from None
        return cls(plots=plots)


def _int_field(d: Dict[str, Any], key: str) -> int:
    v = d[key]
    if isinstance(v, bool) or not isinstance(v, int):
        raise TypeError(f"`{key}` must be an integer")
    return v


def _float_field(d: Dict[str, Any], key: str) -> float:
    v = d[key]
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise TypeError(f"`{key}` must be a number")
    if not math.isfinite(v):
        raise ValueError(f"`{key}` must be finite")
    return float(v)


def _plot_from_dict(raw: Dict[str, Any]) -> Plot:
    if not isinstance(raw, dict) or not isinstance(raw["lines"], dict):
        raise TypeError("plot and its `lines` must be JSON objects")
    # Stored bounds are whole seconds; checked here, then rebuilt from the points.
    _int_field(raw["x_axis"], "min")
    _int_field(raw["x_axis"], "max")
    y_axis = AxisRange(
        min=_float_field(raw["y_axis"], "min"),
        max=_float_field(raw["y_axis"], "max"),
    )
    plot = Plot(y_axis=y_axis)
    for params, raw_points in raw["lines"].items():
        if not isinstance(raw_points, list):
            raise TypeError(f"line {params!r} must be a JSON array")
        line = plot.lines.setdefault(params, [])
        for p in raw_points:
            point = Point(x=parse_rfc3339(p["x"]), y=_float_field(p, "y"))
            line.append(point)
            plot.x_axis.extend(point.x)
    if plot.num_points() == 0:
        raise ValueError("plot has no points")
    return plot


# ---------------------------------------------------------------------------
# Core entry point
# ---------------------------------------------------------------------------

def ingest_buffer(
    buffer: Union[str, bytes],
    plots: Optional[Plots] = None,
) -> Tuple[Plots, List[DecodeError]]:
    """
    Decode a buffer of concatenated bench JSON values and merge the valid
    records into `plots` (a new, empty Plots if None).

    Returns the updated plots and the decode errors, in source order.
    """
    if plots is None:
        plots = Plots()
    records, errors = decode_bench_buffer(buffer)
    plots.ingest(records)
    return plots, errors


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def load_plots(path: Union[str, Path] = DEFAULT_PLOT_DATA) -> Plots:
    """
    Load plots from a plot-data.json file.

    Raises FileNotFoundError if it doesn't exist and ValueError if it is not
    valid plot data.
    """
    text = Path(path).read_text(encoding="utf-8")
    return Plots.from_dict(json.loads(text))


def save_plots(plots: Plots, path: Union[str, Path] = DEFAULT_PLOT_DATA) -> Path:
    """Write plots to a plot-data.json file. Keys are sorted so reruns diff cleanly."""
    out_path = Path(path)
    payload = json.dumps(plots.to_dict(), indent=2, sort_keys=True, allow_nan=False)
    out_path.write_text(payload + "\n", encoding="utf-8")
    return out_path


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def print_plots_summary(plots: Plots) -> None:
    print(f"{c_label('Plots:')} {c_value(str(len(plots)))}")
    for group_name, plot in sorted(plots.items()):
        print(f"\n{c_label('Group:')} {c_value(group_name)}")
        print(
            f"  {c_dim('Commit dates:')} {format_rfc3339(plot.x_axis.min)} .. "
            f"{format_rfc3339(plot.x_axis.max)}"
        )
        print(f"  {c_dim('Times (ns):')} {plot.y_axis.min:g} .. {plot.y_axis.max:g}")
        for params, line in sorted(plot.lines.items()):
            print(f"  {c_dim('Line')} {params}: {len(line)} points")


def main() -> None:
    """Print a summary of a plot-data.json file."""
    args = sys.argv[1:]
    path = Path(args[0]) if args else Path(DEFAULT_PLOT_DATA)

    if not path.exists():
        die(f"Plot data not found: {path}")
    try:
        plots = load_plots(path)
    except ValueError as e:
        die(f"Failed to read {path}: {e}")

    print(f"{c_label('Plot data:')} {c_value(str(path))}")
    print_plots_summary(plots)
    if len(plots) == 0:
        print(f"\n{c_warn('No plots stored yet.')}")
    else:
        print(f"\n{c_ok('Done.')} {c_value(str(plots.num_points()))} points total")


if __name__ == "__main__":
    main()
