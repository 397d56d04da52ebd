"""Append-only record store over one or more newline-delimited log files.

The log is the system of record for account data. Each line looks like::

    [2025-03-01T12:00:00.000Z] store-status: {"loan_id": "...", ...}

Decoding is decode-or-skip: a line whose JSON object cannot be recovered is
ignored and never aborts a scan.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Sequence

logger = logging.getLogger(__name__)

_EPOCH_FLOOR = datetime.min.replace(tzinfo=timezone.utc)

TRANSACTION_ID_FIELDS = ("transaction_id", "txn_id", "id")


def now_iso() -> str:
    """UTC timestamp in the same shape JavaScript's toISOString() produces."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        ts = datetime.fromisoformat(text)
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass
class DecodedLine:
    record: dict
    timestamp: Optional[datetime]


@dataclass
class LogEntry:
    record: dict
    timestamp: Optional[datetime]
    source: str
    line_no: int
    sequence: int
    sort_timestamp: datetime


def _flatten(obj: dict) -> dict:
    """Lift fields of a nested ``payload`` envelope into the record."""
    record = dict(obj)
    nested = obj.get("payload")
    if isinstance(nested, dict):
        for key, value in nested.items():
            if record.get(key) in (None, ""):
                record[key] = value
    return record


def decode_line(line: str) -> Optional[DecodedLine]:
    """Recover the JSON object and timestamp from one log line, or None."""
    start = line.find("{")
    end = line.rfind("}")
    if start < 0 or end <= start:
        return None
    try:
        obj = json.loads(line[start:end + 1])
    except ValueError:
        return None
    if not isinstance(obj, dict):
        return None

    timestamp = None
    open_b = line.find("[")
    close_b = line.find("]")
    if 0 <= open_b < close_b < start:
        timestamp = parse_timestamp(line[open_b + 1:close_b])
    if timestamp is None:
        timestamp = parse_timestamp(obj.get("t"))

    return DecodedLine(record=_flatten(obj), timestamp=timestamp)


class LogSource:
    """Ordered list of backing files; the first is where appends go."""

    def __init__(self, paths: Sequence[str | Path]):
        seen: list[Path] = []
        for p in paths:
            path = Path(p)
            if path not in seen:
                seen.append(path)
        if not seen:
            raise ValueError("LogSource needs at least one file path")
        self.paths = seen

    def readable_files(self) -> list[Path]:
        return [p for p in self.paths if p.is_file() and p.stat().st_size > 0]

    def iter_lines(self) -> Iterator[tuple[Path, int, str]]:
        for path in self.readable_files():
            try:
                with open(path, "r", encoding="utf-8", errors="replace") as fh:
                    for line_no, line in enumerate(fh, start=1):
                        line = line.rstrip("\r\n")
                        if line.strip():
                            yield path, line_no, line
            except OSError as exc:
                logger.warning("Could not read log file %s: %s", path, exc)


class RecordStore:
    """Query and append interface over a :class:`LogSource`."""

    def __init__(self, source: LogSource):
        self.source = source
        self._append_lock = threading.Lock()

    # ── Reading ──────────────────────────────────────────

    def entries(self) -> list[LogEntry]:
        """All decodable entries in append order (file order, then line order)."""
        out: list[LogEntry] = []
        sequence = 0
        current_file: Optional[Path] = None
        carried = _EPOCH_FLOOR
        for path, line_no, line in self.source.iter_lines():
            if path != current_file:
                current_file = path
                carried = _EPOCH_FLOOR
            decoded = decode_line(line)
            if decoded is None:
                continue
            if decoded.timestamp is not None:
                carried = decoded.timestamp
            out.append(LogEntry(
                record=decoded.record,
                timestamp=decoded.timestamp,
                source=str(path),
                line_no=line_no,
                sequence=sequence,
                sort_timestamp=carried,
            ))
            sequence += 1
        return out

    def entries_newest_first(self) -> list[LogEntry]:
        # Lines without a timestamp inherit the previous line's, so they keep
        # their insertion position relative to their neighbours.
        return sorted(
            self.entries(),
            key=lambda e: (e.sort_timestamp, e.sequence),
            reverse=True,
        )

    def find_latest(self, predicate: Callable[[dict], bool]) -> Optional[dict]:
        for entry in self.entries_newest_first():
            try:
                if predicate(entry.record):
                    return entry.record
            except (TypeError, ValueError, AttributeError):
                continue
        return None

    def find_latest_by_loan_suffix(self, last6: str) -> Optional[dict]:
        """Most recent record whose ``loan_id`` ends with the given digits."""
        suffix = str(last6 or "").strip()
        if not suffix:
            return None
        return self.find_latest(lambda r: str(r.get("loan_id") or "").strip().endswith(suffix))

    def find_latest_by_transaction(self, transaction_id: str) -> Optional[dict]:
        """Latest event for a transaction, skipping ones the status store rejected."""
        txn = str(transaction_id or "").strip()
        if not txn:
            return None
        return self.find_latest(
            lambda r: not r.get("status_ignored")
            and any(str(r.get(f) or "").strip() == txn for f in TRANSACTION_ID_FIELDS)
        )

    # ── Writing ──────────────────────────────────────────

    def append(self, event: str, record: dict) -> bool:
        """Append one timestamped line; falls back through the file list.

        Returns False when no file could be written. Never raises for I/O.
        """
        line = f"[{now_iso()}] {event}: {json.dumps(record, separators=(',', ':'), default=str)}\n"
        with self._append_lock:
            for path in self.source.paths:
                try:
                    path.parent.mkdir(parents=True, exist_ok=True)
                    with open(path, "a", encoding="utf-8") as fh:
                        fh.write(line)
                    return True
                except OSError as exc:
                    logger.error("Failed to append to record log %s: %s", path, exc)
        return False
