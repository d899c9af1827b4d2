"""
Decode Criterion benchmark JSON output into bench records.

Criterion writes one JSON object per measurement, concatenated into a single
file. Some of those objects are not measurements (or were written by a
different Criterion version), and a file may be truncated mid-write, so the
decoder recovers from per-record errors instead of failing the whole file:

  - valid JSON with the wrong shape  -> SchemaMismatchError, skip it, continue
  - invalid JSON                     -> JsonSyntaxError, abandon the rest

Usage:
    python parse_bench_json.py <bench.json> [more.json ...] [--dump]

Output:
    Per-file summary of decoded records and decode errors on stdout.
    With --dump, the decoded records are printed as a JSON list.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple, Union
import json
import math
import re
import sys

from bench_types import (
    BenchRecord,
    DecodeError,
    JsonSyntaxError,
    SchemaMismatchError,
    c_label,
    c_value,
    c_ok,
    c_warn,
    c_dim,
    die,
    parse_bench_id,
    record_to_dict,
)


# Result kinds returned by BenchStreamDecoder.pull()
OK = "ok"
SCHEMA_MISMATCH = "schema_mismatch"
SYNTAX = "syntax"
END = "end"

# JSON insignificant whitespace (RFC 8259), same set json.decoder skips.
_WS_RE = re.compile(r"[ \t\n\r]*")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Invalid JSON literal {name}")


# NaN / Infinity are not JSON.
_JSON = json.JSONDecoder(parse_constant=_reject_constant)


# ---------------------------------------------------------------------------
# Record shape
# ---------------------------------------------------------------------------

def value_to_record(value: Any) -> BenchRecord:
    """
    Convert a decoded JSON value into a BenchRecord.

    Expected shape:
        {"id": "<group>/<name>/<params>", "typical": {"estimate": <number>}}

    Raises ValueError (IdentityFormatError for a bad id) when the value does
    not have that shape. Extra fields are ignored.
    """
    if not isinstance(value, dict):
        raise ValueError(f"Expected a JSON object, got {type(value).__name__}")

    raw_id = value.get("id")
    if not isinstance(raw_id, str):
        raise ValueError("Missing or non-string field `id`")
    bench_id = parse_bench_id(raw_id)

    typical = value.get("typical")
    if not isinstance(typical, dict):
        raise ValueError("Missing or non-object field `typical`")
    estimate = typical.get("estimate")
    # bool is an int subclass, but `true` is not a measurement.
    if isinstance(estimate, bool) or not isinstance(estimate, (int, float)):
        raise ValueError("Missing or non-numeric field `typical.estimate`")
    try:
        time = float(estimate)
    except OverflowError:
        raise ValueError("Field `typical.estimate` is out of range") from None
    if not math.isfinite(time):
        raise ValueError("Field `typical.estimate` is out of range")

    return BenchRecord(id=bench_id, value=time)


# ---------------------------------------------------------------------------
# Stream decoder
# ---------------------------------------------------------------------------

@dataclass
class DecodeResult:
    """
    One step of the stream decoder.

    `start`/`end` are UTF-8 byte offsets of the span this step consumed,
    including any whitespace before the value. Consecutive results tile the
    buffer: each result starts where the previous one ended.
    """
    kind: str                               # OK, SCHEMA_MISMATCH, SYNTAX or END
    start: int
    end: int
    record: Optional[BenchRecord] = None    # set for OK
    error: Optional[DecodeError] = None     # set for SCHEMA_MISMATCH and SYNTAX


class BenchStreamDecoder:
    """
    Pull-based decoder over a buffer of concatenated JSON values.

    State is (text, cursor). Every call to pull() either consumes at least one
    byte or reports END; after a syntax error the cursor jumps to the end of
    the buffer, since a corrupt tail never re-synchronizes, and all later
    pulls report END.

    Bytes are decoded as UTF-8. If they are not valid UTF-8, only the valid
    prefix is parsed and the rest is reported as a syntax error once the
    cursor reaches it.
    """

    def __init__(self, buffer: Union[str, bytes]) -> None:
        if isinstance(buffer, (bytes, bytearray, memoryview)):
            raw = bytes(buffer)
            try:
                text = raw.decode("utf-8")
                bad_utf8_at: Optional[int] = None
            except UnicodeDecodeError as e:
                text = raw[: e.start].decode("utf-8")
                bad_utf8_at = e.start
            total = len(raw)
        else:
            text = buffer
            bad_utf8_at = None
            total = len(text.encode("utf-8", "surrogatepass"))

        self._text = text
        self._pos = 0            # character index into _text
        self._byte_pos = 0       # same position in bytes
        self._total_bytes = total
        self._bad_utf8_at = bad_utf8_at
        self._done = False

    @property
    def byte_offset(self) -> int:
        """Bytes consumed so far (last confirmed position)."""
        return self._byte_pos

    @property
    def total_bytes(self) -> int:
        return self._total_bytes

    @property
    def exhausted(self) -> bool:
        return self._done

    def _advance(self, new_pos: int) -> None:
        self._byte_pos += len(self._text[self._pos:new_pos].encode("utf-8", "surrogatepass"))
        self._pos = new_pos

    def _abandon(self, start: int, message: str) -> DecodeResult:
        self._pos = len(self._text)
        self._byte_pos = self._total_bytes
        self._done = True
        err = JsonSyntaxError(message, start, self._total_bytes)
        return DecodeResult(kind=SYNTAX, start=start, end=self._total_bytes, error=err)

    def pull(self) -> DecodeResult:
        """Decode the next value. Returns a DecodeResult with kind END when finished."""
        start = self._byte_pos
        if self._done:
            return DecodeResult(kind=END, start=start, end=start)

        value_pos = _WS_RE.match(self._text, self._pos).end()
        if value_pos >= len(self._text):
            if self._bad_utf8_at is not None:
                return self._abandon(start, f"Invalid UTF-8 at byte {self._bad_utf8_at}")
            self._advance(value_pos)
            self._done = True
            return DecodeResult(kind=END, start=start, end=self._byte_pos)

        try:
            value, end_pos = _JSON.raw_decode(self._text, value_pos)
        except (ValueError, RecursionError) as e:
            offset = start + len(self._text[self._pos:value_pos].encode("utf-8", "surrogatepass"))
            return self._abandon(start, f"Invalid JSON at byte {offset}: {e}")

        self._advance(end_pos)
        try:
            record = value_to_record(value)
        except ValueError as e:
            err = SchemaMismatchError(str(e), value, start, self._byte_pos)
            return DecodeResult(kind=SCHEMA_MISMATCH, start=start, end=self._byte_pos, error=err)

        return DecodeResult(kind=OK, start=start, end=self._byte_pos, record=record)

    def __iter__(self) -> Iterator[DecodeResult]:
        """Yield results until END (END itself is not yielded)."""
        while True:
            result = self.pull()
            if result.kind == END:
                return
            yield result


# ---------------------------------------------------------------------------
# Buffer / file helpers
# ---------------------------------------------------------------------------

def decode_bench_buffer(buffer: Union[str, bytes]) -> Tuple[List[BenchRecord], List[DecodeError]]:
    """Decode a whole buffer, returning (records, errors) in source order."""
    records: List[BenchRecord] = []
    errors: List[DecodeError] = []
    for result in BenchStreamDecoder(buffer):
        if result.record is not None:
            records.append(result.record)
        elif result.error is not None:
            errors.append(result.error)
    return records, errors


def read_bench_file(path: Union[str, Path]) -> Tuple[List[BenchRecord], List[DecodeError]]:
    """Read a Criterion JSON output file and decode it."""
    return decode_bench_buffer(Path(path).read_bytes())


def print_decode_errors(path: Union[str, Path], errors: List[DecodeError]) -> None:
    for err in errors:
        kind = "syntax" if isinstance(err, JsonSyntaxError) else "skipped"
        print(f"  {c_warn('WARNING:')} {path} [{kind} @ {err.start}..{err.end}] {err}")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main() -> None:
    """Decode bench JSON files and print what was found."""
    args = sys.argv[1:]
    dump = False
    if "--dump" in args:
        dump = True
        args = [arg for arg in args if arg != "--dump"]

    if not args:
        print("Usage: python parse_bench_json.py <bench.json> [more.json ...] [--dump]")
        sys.exit(1)

    all_records: List[BenchRecord] = []
    for arg in args:
        path = Path(arg)
        if not path.is_file():
            die(f"Bench file not found: {path}")
        records, errors = read_bench_file(path)
        if not dump:
            print(f"{c_label('File:')} {c_value(str(path))}")
            print(f"  {c_dim('Records:')} {len(records)}")
            print(f"  {c_dim('Errors:')} {len(errors)}")
            print_decode_errors(path, errors)
        all_records.extend(records)

    if dump:
        print(json.dumps([record_to_dict(r) for r in all_records], indent=2))
    else:
        print(f"\n{c_ok('Done.')} Decoded {c_value(str(len(all_records)))} records")


if __name__ == "__main__":
    main()
