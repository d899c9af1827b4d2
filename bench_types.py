"""
Shared types and utilities for the benchmark plotting scripts.

This module contains:
- BenchId / BenchRecord dataclasses for decoded benchmark measurements
- The error types shared by the decoder and the plot store
- Bench ID parsing (<group>/<name>/<params>)
- ANSI color helpers for terminal output
- JSON serialization helpers
"""

from dataclasses import dataclass, asdict
from typing import Any
import os
import sys


# ---------------------------------------------------------------------------
# ANSI color helpers
# ---------------------------------------------------------------------------

def _use_color() -> bool:
    if os.environ.get("NO_COLOR") is not None:
        return False
    try:
        return sys.stdout.isatty()
    except Exception:
        return False


_COLOR = _use_color()


def _c(text: str, code: str) -> str:
    if not _COLOR:
        return text
    return f"\033[{code}m{text}\033[0m"


def c_label(text: str) -> str:
    return _c(text, "1;36")  # bold cyan


def c_value(text: str) -> str:
    return _c(text, "1;37")  # bold white


def c_ok(text: str) -> str:
    return _c(text, "1;32")  # bold green


def c_warn(text: str) -> str:
    return _c(text, "1;33")  # bold yellow


def c_dim(text: str) -> str:
    return _c(text, "2")  # dim


def die(msg: str) -> None:
    prefix = "Error"
    if os.environ.get("NO_COLOR") is None:
        try:
            if sys.stderr.isatty():
                prefix = _c(prefix, "1;31")
        except Exception:
            pass
    print(f"{prefix}: {msg}", file=sys.stderr)
    sys.exit(1)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class IdentityFormatError(ValueError):
    """Bench ID did not split into exactly <group>/<name>/<params>."""


class TimestampParseError(ValueError):
    """The commit timestamp embedded in a bench name could not be parsed."""


class IncomparableValueError(ValueError):
    """A point value cannot be ordered against other points (e.g. NaN)."""


class DecodeError(ValueError):
    """
    Base class for errors reported by the stream decoder.

    `start` and `end` are UTF-8 byte offsets into the decoded buffer covering
    the span the error accounts for.
    """

    def __init__(self, message: str, start: int = 0, end: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.start = start
        self.end = end


class SchemaMismatchError(DecodeError):
    """Valid JSON that does not have the shape of a benchmark record."""

    def __init__(self, reason: str, value: Any, start: int = 0, end: int = 0) -> None:
        super().__init__(reason, start, end)
        self.value = value

    def __str__(self) -> str:
        return f"{self.message}, value: {_short_json(self.value)}"


class JsonSyntaxError(DecodeError):
    """Bytes that are not valid JSON. Decoding of the rest of the buffer is abandoned."""

    def __str__(self) -> str:
        return f"{self.message} (remaining {self.end - self.start} bytes abandoned)"


def _short_json(value: Any, limit: int = 120) -> str:
    text = repr(value)
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


# ---------------------------------------------------------------------------
# Bench records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BenchId:
    group_name: str   # e.g. Fibonacci-num=10
    bench_name: str   # <short-sha>:<commit-date>, colons restored
    params: str       # e.g. rc=100


@dataclass(frozen=True)
class BenchRecord:
    id: BenchId
    value: float      # typical.estimate, in ns


def parse_bench_id(raw: str) -> BenchId:
    """
    Parse a Criterion bench ID of the form <group>/<name>/<params>.

    Criterion replaces ':' with '_' in the bench name when writing its output,
    so underscores in the name segment are turned back into colons:

        Fibonacci-num=10/28db40f_2024-01-30T19_07_04-05_00/rc=100
          -> group_name = "Fibonacci-num=10"
          -> bench_name = "28db40f:2024-01-30T19:07:04-05:00"
          -> params     = "rc=100"

    Raises IdentityFormatError unless exactly three segments are present.
    """
    parts = raw.split("/")
    if len(parts) != 3:
        raise IdentityFormatError(f"Expected 3 bench ID elements, got {len(parts)}: {raw!r}")
    group_name, bench_name, params = parts
    return BenchId(
        group_name=group_name,
        bench_name=bench_name.replace("_", ":"),
        params=params,
    )


def format_bench_id(bench_id: BenchId) -> str:
    """Human-readable form of a parsed bench ID (colons kept)."""
    return f"{bench_id.group_name}/{bench_id.bench_name}/{bench_id.params}"


# ---------------------------------------------------------------------------
# JSON serialization helpers
# ---------------------------------------------------------------------------

def record_to_dict(rec: BenchRecord) -> dict:
    """Convert a BenchRecord to a JSON-serializable dictionary."""
    return asdict(rec)

