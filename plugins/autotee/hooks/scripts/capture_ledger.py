#!/usr/bin/env python3
"""
AutoTee Capture Ledger

Bounded, insertion-ordered, in-memory history of recent captures.

Two update disciplines, chosen at construction:
- atomic (default): every mutation builds a new list and swaps it in under
  a lock, so a reader holding the previous list keeps a consistent snapshot.
- non-atomic: mutations splice the one live list in place.

Usage:
    ledger = CaptureLedger(max_history=10)
    ledger.add_capture('/tmp/autotee-1.log', {'command': 'npm test | tail'})
    last = ledger.get_last_capture()
"""

from __future__ import annotations

import json
import os
import sys
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

Timestamp = Union[datetime, float, int, str]


class CaptureLedgerError(ValueError):
    """Invalid ledger operation (e.g. empty path)."""


class CaptureFileNotFound(CaptureLedgerError, FileNotFoundError):
    """Referenced capture file does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Capture file does not exist: {path}")
        self.path = path


# Metadata keys that bypass the existence check
_TEST_MODE_KEYS = ('test_mode', 'dry_run', 'testMode')
_RECORD_FIELDS = ('command', 'timestamp', 'size')


def to_datetime(value: Timestamp) -> datetime:
    """Accept datetime, epoch seconds or ISO-8601 text; naive values are UTC."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    else:
        raise TypeError(f"Unsupported timestamp: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class CaptureRecord:
    path: str
    command: str = ''
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    size: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'path': self.path,
            'command': self.command,
            'timestamp': self.timestamp.isoformat(),
            'size': self.size,
        }
        if self.metadata:
            data['metadata'] = dict(self.metadata)
        if self.updated_at:
            data['updated_at'] = self.updated_at.isoformat()
        return data


def _resolve(path: str) -> str:
    if not path or not isinstance(path, str):
        raise CaptureLedgerError('Capture file path is required')
    return os.path.abspath(path)


class CaptureLedger:
    """Bounded history of CaptureRecord, oldest evicted first."""

    def __init__(self, max_history: int = 10, atomic: bool = True, verbose: bool = False):
        if max_history < 1:
            raise CaptureLedgerError(f"max_history must be >= 1, got {max_history}")
        self.max_history = max_history
        self.atomic = atomic
        self.verbose = verbose
        self._captures: List[CaptureRecord] = []
        self._lock = threading.Lock()
        self._log('Ledger initialized', {'max_history': max_history, 'atomic': atomic})

    @classmethod
    def from_config(cls, config) -> 'CaptureLedger':
        return cls(
            max_history=int(config.get('ledger.max_history', 10)),
            atomic=bool(config.get('ledger.atomic', True)),
            verbose=bool(config.get('ledger.verbose', False)),
        )

    def _log(self, message: str, data: Optional[Dict] = None):
        if not self.verbose:
            return
        timestamp = datetime.now(timezone.utc).isoformat()
        detail = f" {json.dumps(data, default=str)}" if data else ''
        print(f"[autotee] {timestamp} {message}{detail}", file=sys.stderr)

    # === Mutations ===

    def add_capture(self, path: str, metadata: Optional[Dict[str, Any]] = None) -> CaptureRecord:
        """
        Record a capture file.

        Raises CaptureFileNotFound unless metadata marks test/dry-run mode.
        """
        metadata = dict(metadata or {})
        test_mode = any(metadata.get(key) for key in _TEST_MODE_KEYS)
        absolute = _resolve(path)

        if test_mode:
            size = int(metadata.get('size', 0) or 0)
        else:
            try:
                size = os.path.getsize(absolute)
            except FileNotFoundError:
                raise CaptureFileNotFound(absolute) from None
            except OSError as e:
                self._log('Failed to get file size', {'path': absolute, 'error': str(e)})
                size = 0

        record = CaptureRecord(
            path=absolute,
            command=str(metadata.pop('command', '') or ''),
            timestamp=to_datetime(metadata.pop('timestamp', None) or datetime.now(timezone.utc)),
            size=size,
            metadata={k: v for k, v in metadata.items() if k != 'size'},
        )

        with self._lock:
            if self.atomic:
                history = [*self._captures, record]
                self._captures = history[-self.max_history:]
            else:
                self._captures.append(record)
                while len(self._captures) > self.max_history:
                    self._captures.pop(0)
            length = len(self._captures)

        self._log('Added capture', {'path': absolute, 'history_length': length})
        return record

    def update_capture(self, path: str, updates: Optional[Dict[str, Any]] = None) -> Optional[CaptureRecord]:
        """
        Merge updates into the record for `path`, stamping updated_at.

        command/timestamp/size replace the record fields; other keys merge
        into metadata. Returns the new record, or None if not found.
        """
        absolute = _resolve(path)
        updates = dict(updates or {})
        changes = {k: updates.pop(k) for k in _RECORD_FIELDS if k in updates}
        if changes.get('timestamp') is not None:
            changes['timestamp'] = to_datetime(changes['timestamp'])
        updated = None

        def _apply(record: CaptureRecord) -> CaptureRecord:
            return replace(
                record,
                metadata={**record.metadata, **updates},
                updated_at=datetime.now(timezone.utc),
                **changes,
            )

        with self._lock:
            if self.atomic:
                history = []
                for record in self._captures:
                    if record.path == absolute and updated is None:
                        updated = _apply(record)
                        history.append(updated)
                    else:
                        history.append(record)
                self._captures = history
            else:
                for index, record in enumerate(self._captures):
                    if record.path == absolute:
                        updated = _apply(record)
                        self._captures[index] = updated
                        break

        self._log('Updated capture', {'path': absolute, 'found': updated is not None})
        return updated

    def remove_capture(self, path: str) -> bool:
        """Remove the oldest record for `path`. Returns whether anything was removed."""
        absolute = _resolve(path)

        with self._lock:
            index = next((i for i, r in enumerate(self._captures) if r.path == absolute), None)
            removed = index is not None
            if removed:
                if self.atomic:
                    self._captures = self._captures[:index] + self._captures[index + 1:]
                else:
                    del self._captures[index]

        self._log('Removed capture', {'path': absolute, 'removed': removed})
        return removed

    def clear_history(self):
        with self._lock:
            if self.atomic:
                self._captures = []
            else:
                self._captures.clear()
        self._log('Cleared history')

    # === Queries ===

    def get_last_capture(self) -> Optional[CaptureRecord]:
        captures = self._captures
        return captures[-1] if captures else None

    def get_captures(self) -> List[CaptureRecord]:
        """Copy of the history, oldest first."""
        return list(self._captures)

    def find(self, path: str) -> Optional[CaptureRecord]:
        absolute = _resolve(path)
        for record in self._captures:
            if record.path == absolute:
                return record
        return None

    def live_sequence(self) -> List[CaptureRecord]:
        """The internal list itself, not a copy. Only for identity checks."""
        return self._captures

    def __len__(self) -> int:
        return len(self._captures)


def main():
    """CLI: record the given capture files and print the resulting history."""
    import argparse

    parser = argparse.ArgumentParser(description='AutoTee Capture Ledger')
    parser.add_argument('paths', nargs='+', help='Capture files to record')
    parser.add_argument('--max', type=int, default=10, help='Max history length')
    parser.add_argument('--dry-run', action='store_true', help='Do not require files to exist')
    parser.add_argument('--verbose', '-v', action='store_true')
    args = parser.parse_args()

    ledger = CaptureLedger(max_history=args.max, verbose=args.verbose)
    for path in args.paths:
        try:
            ledger.add_capture(path, {'dry_run': args.dry_run})
        except CaptureFileNotFound as e:
            print(f"[autotee] Warning: {e}", file=sys.stderr)

    print(json.dumps([r.to_dict() for r in ledger.get_captures()], indent=2, ensure_ascii=False))


if __name__ == '__main__':
    main()
