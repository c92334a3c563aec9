#!/usr/bin/env python3
"""
AutoTee Capture Reference Parser

Finds capture files announced in tool output:

    Full output saved to: /tmp/autotee-<uuid>.log
    temp file preserved: /tmp/autotee-<uuid>.log

Each match is cleaned (whitespace, one layer of matching quotes, escaped
quotes, repeated separators), validated as a POSIX, Windows-drive or
relative path, and de-duplicated by resolved absolute path. Text that
does not match yields nothing; only non-string input is an error.

Counters are kept in a ParseStats object supplied by the caller.
"""

from __future__ import annotations

import os
import re
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, List, Optional

# Import AutoTee modules (relative import from same directory)
_script_dir = Path(__file__).parent
if str(_script_dir) not in sys.path:
    sys.path.insert(0, str(_script_dir))

from unicode_paths import UnicodePathError, normalize_path


class MalformedReferenceText(TypeError):
    """Input to the parser was not a string."""


# === Patterns ===
ANNOUNCEMENT_PATTERNS = [
    re.compile(r'Full output saved to:[ \t]*([^\r\n]+?)[ \t]*\r?$', re.MULTILINE),
    re.compile(r'temp file preserved:[ \t]*([^\r\n]+?)[ \t]*\r?$', re.MULTILINE),
]

_UNIX_PATH_RE = re.compile(r'^/[^<>:|?*\x00-\x1f]*$')
_WINDOWS_PATH_RE = re.compile(r'^[A-Za-z]:[^<>|?*\x00-\x1f]*$')
_RELATIVE_PATH_RE = re.compile(
    r'^\.{1,2}[/\\][^<>:|?*\x00-\x1f]*$|^[^/\\<>:|?*\x00-\x1f][^<>:|?*\x00-\x1f]*$'
)


@dataclass(frozen=True)
class CaptureReference:
    path: str
    timestamp: datetime
    raw: str


@dataclass
class ParseStats:
    total_processed: int = 0
    paths_extracted: int = 0
    errors: int = 0
    last_processed: Optional[datetime] = None

    def reset(self):
        self.total_processed = 0
        self.paths_extracted = 0
        self.errors = 0
        self.last_processed = None


def clean_path(raw_path: str) -> str:
    """Trim, strip matching quotes, unescape quotes, collapse repeated separators."""
    cleaned = raw_path.strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in ('"', "'"):
        cleaned = cleaned[1:-1]
    cleaned = cleaned.replace('\\"', '"').replace("\\'", "'")
    cleaned = re.sub(r'/{2,}', '/', cleaned)
    cleaned = re.sub(r'\\{2,}', r'\\', cleaned)
    return cleaned


def is_valid_path(path: str) -> bool:
    if not path or '\x00' in path or '\r' in path or '\n' in path:
        return False
    return bool(
        _UNIX_PATH_RE.match(path)
        or _WINDOWS_PATH_RE.match(path)
        or _RELATIVE_PATH_RE.match(path)
    )


def dedupe_key(path: str) -> str:
    """Resolved absolute path with Unicode spelling differences removed."""
    try:
        path = normalize_path(path)
    except UnicodePathError:
        pass
    return os.path.abspath(path)


def _dedupe(references: Iterable[CaptureReference]) -> List[CaptureReference]:
    seen = set()
    unique = []
    for ref in references:
        key = dedupe_key(ref.path)
        if key in seen:
            continue
        seen.add(key)
        unique.append(ref)
    return unique


def _now() -> datetime:
    return datetime.now(timezone.utc)


def parse(text: str,
          timestamp: Optional[datetime] = None,
          stats: Optional[ParseStats] = None) -> List[CaptureReference]:
    """
    Extract capture references from text, in order of appearance.

    Raises MalformedReferenceText when `text` is not a string.
    """
    timestamp = timestamp or _now()
    if stats is not None:
        stats.total_processed += 1
        stats.last_processed = timestamp

    if not isinstance(text, str):
        if stats is not None:
            stats.errors += 1
        raise MalformedReferenceText(f"text must be a string, got {type(text).__name__}")

    if text == '':
        return []

    found = []
    for pattern in ANNOUNCEMENT_PATTERNS:
        for match in pattern.finditer(text):
            cleaned = clean_path(match.group(1))
            if is_valid_path(cleaned):
                ref = CaptureReference(cleaned, timestamp, match.group(0).strip())
                found.append((match.start(), ref))
    found.sort(key=lambda item: item[0])

    references = _dedupe(ref for _, ref in found)
    if stats is not None:
        stats.paths_extracted += len(references)
    return references


def parse_multiple(texts: List[str],
                   timestamp: Optional[datetime] = None,
                   stats: Optional[ParseStats] = None) -> List[CaptureReference]:
    """
    Parse several outputs; entry N gets timestamp + N*100ms.

    Non-string entries are skipped with a warning.
    """
    if not isinstance(texts, (list, tuple)):
        raise MalformedReferenceText('texts must be a list of strings')

    base = timestamp or _now()
    collected = []
    for index, text in enumerate(texts):
        try:
            collected.extend(parse(text, base + timedelta(milliseconds=100 * index), stats))
        except MalformedReferenceText as e:
            print(f"[autotee] Warning: skipping entry {index}: {e}", file=sys.stderr)
    return _dedupe(collected)


def has_captures(text: str) -> bool:
    if not isinstance(text, str) or not text:
        return False
    return any(p.search(text) for p in ANNOUNCEMENT_PATTERNS)


def extract_paths(text: str) -> List[str]:
    return [ref.path for ref in parse(text)]


def main():
    """CLI: read text from stdin (or files) and print referenced capture paths."""
    import argparse
    import json

    parser = argparse.ArgumentParser(description='AutoTee Capture Reference Parser')
    parser.add_argument('files', nargs='*', help='Files to scan (default: stdin)')
    parser.add_argument('--json', action='store_true', help='Output as JSON')
    args = parser.parse_args()

    texts = []
    if args.files:
        for name in args.files:
            with open(name, 'r', encoding='utf-8', errors='replace') as f:
                texts.append(f.read())
    else:
        texts.append(sys.stdin.read())

    stats = ParseStats()
    references = parse_multiple(texts, stats=stats)

    if args.json:
        print(json.dumps({
            'captures': [
                {'path': r.path, 'timestamp': r.timestamp.isoformat(), 'raw': r.raw}
                for r in references
            ],
            'stats': {
                'total_processed': stats.total_processed,
                'paths_extracted': stats.paths_extracted,
                'errors': stats.errors,
            },
        }, indent=2, ensure_ascii=False))
    else:
        for ref in references:
            print(ref.path)


if __name__ == '__main__':
    main()
