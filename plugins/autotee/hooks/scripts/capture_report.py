#!/usr/bin/env python3
"""
PostToolUse hook: report capture files announced by a Bash command.

Input (stdin): JSON with tool_name, tool_input, tool_response
Output (stdout): JSON with hookSpecificOutput.additionalContext listing each
capture with its size, line count, summary line and error count.

Nothing is printed when the output announces no existing capture file.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# Import AutoTee modules (relative import from same directory)
_script_dir = Path(__file__).parent
if str(_script_dir) not in sys.path:
    sys.path.insert(0, str(_script_dir))

from capture_ledger import CaptureFileNotFound, CaptureLedger, CaptureRecord
from capture_reference_parser import ParseStats, parse_multiple
from capture_summary import extract_semantics, extract_summary, get_cmd_token
from config_loader import get_config, is_disabled

# Only the tail of large captures is read for summaries
TAIL_BYTES = 256 * 1024


def response_texts(tool_response: Any) -> List[str]:
    """stdout/stderr strings from a tool_response (dict or plain string)."""
    if isinstance(tool_response, str):
        return [tool_response]
    if not isinstance(tool_response, dict):
        return []
    texts = []
    for key in ('stdout', 'stderr', 'output'):
        value = tool_response.get(key)
        if isinstance(value, str) and value:
            texts.append(value)
    return texts


def read_tail(path: str, limit: int = TAIL_BYTES) -> str:
    with open(path, 'rb') as f:
        f.seek(0, os.SEEK_END)
        size = f.tell()
        f.seek(max(0, size - limit))
        data = f.read()
    return data.decode('utf-8', errors='replace')


def count_lines(path: str) -> int:
    count = 0
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(65536), b''):
            count += chunk.count(b'\n')
    return count


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    return f"{size / (1024 * 1024):.1f}MB"


def describe_capture(record: CaptureRecord) -> str:
    """One line: path (size, lines) cmd: summary [N errors]."""
    try:
        output = read_tail(record.path)
        lines = count_lines(record.path)
    except OSError as e:
        return f"{record.path} (unreadable: {e})"

    cmd_token = get_cmd_token(record.command)
    summary = extract_summary(output, cmd_token)
    errors = len(extract_semantics(output)['errors'])

    line = f"{record.path} ({_format_size(record.size)}, {lines} lines)"
    if summary:
        line += f" {cmd_token}: {summary}"
    if errors:
        line += f" [{errors} error{'s' if errors != 1 else ''}]"
    return line


def collect_captures(texts: List[str], command: str,
                     ledger: CaptureLedger,
                     stats: Optional[ParseStats] = None) -> List[CaptureRecord]:
    """Record every referenced capture that exists on disk."""
    records = []
    for ref in parse_multiple(texts, stats=stats):
        try:
            records.append(ledger.add_capture(ref.path, {
                'command': command,
                'timestamp': ref.timestamp,
            }))
        except CaptureFileNotFound:
            print(f"[autotee] Warning: skipping missing capture {ref.path}", file=sys.stderr)
    return records


def build_report(records: List[CaptureRecord]) -> str:
    lines = ['[autotee] Full command output was captured:']
    lines.extend(f"- {describe_capture(record)}" for record in records)
    return '\n'.join(lines)


def process_hook_data(data: Dict, ledger: CaptureLedger) -> Optional[Dict]:
    """Hook output for a PostToolUse request, or None if nothing was captured."""
    if data.get('tool_name') != 'Bash':
        return None
    tool_input = data.get('tool_input') or {}
    command = tool_input.get('command', '') if isinstance(tool_input, dict) else ''

    records = collect_captures(response_texts(data.get('tool_response')), command, ledger)
    if not records:
        return None

    return {
        'hookSpecificOutput': {
            'hookEventName': 'PostToolUse',
            'additionalContext': build_report(records),
        }
    }


def main():
    try:
        raw_input = sys.stdin.read()
        if not raw_input.strip():
            sys.exit(0)
        input_data = json.loads(raw_input)
    except json.JSONDecodeError:
        sys.exit(0)

    if not isinstance(input_data, dict):
        sys.exit(0)

    cwd = input_data.get('cwd') or os.getcwd()
    if is_disabled(cwd):
        sys.exit(0)

    try:
        ledger = CaptureLedger.from_config(get_config(cwd))
    except Exception as e:
        print(f"[autotee] Warning: Config loading failed, using defaults: {e}", file=sys.stderr)
        ledger = CaptureLedger()

    output = process_hook_data(input_data, ledger)
    if output is None:
        sys.exit(0)

    print(json.dumps(output))
    sys.exit(0)


if __name__ == '__main__':
    main()
