#!/usr/bin/env python3
"""
AutoTee Capture Summaries

Extract meaning from captured output without using an LLM:
- extract_summary: one status line, using per-tool regex tables
- extract_semantics: errors, successes and metrics with confidences

Only the command token (first real word) is used for matching, never the
full command line.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional

# === Summary extractors ===
# Patterns are applied to the LAST 50 lines of output, first match wins.

SUMMARY_EXTRACTORS: Dict[str, list] = {
    # JavaScript toolchain
    'npm': [
        r'(npm ERR!.*)',
        r'(Tests:\s+\d+.*)',
        r'(added\s+\d+\s+packages?.*)',
        r'(up to date.*)',
    ],
    'yarn': [
        r'(error\s+.*)',
        r'(Tests:\s+\d+.*)',
        r'(Done in.*)',
    ],
    'pnpm': [
        r'(ERR_PNPM_\S+.*)',
        r'(Tests:\s+\d+.*)',
        r'(Done in.*)',
    ],
    'jest': [
        r'(Tests:\s+\d+.*)',
        r'(Test Suites:\s+\d+.*)',
    ],
    'mocha': [
        r'(\d+\s+failing)',
        r'(\d+\s+passing.*)',
    ],
    'tsc': [
        r'(Found\s+\d+\s+errors?.*)',
        r'(error\s+TS\d+:.*)',
    ],
    'eslint': [
        r'(\d+\s+problems?\s+\(\d+\s+errors?,\s+\d+\s+warnings?\))',
    ],
    'webpack': [
        r'(compiled.*successfully.*)',
        r'(ERROR in.*)',
    ],
    'vite': [
        r'(built in.*)',
        r'(error during build.*)',
    ],

    # Other languages
    'pytest': [
        r'(\d+\s+(?:passed|failed|error).*)',
        r'(=+ .+ =+)',
    ],
    'cargo': [
        r'(test result:.*)',
        r'(error\[E\d+\]:.*)',
        r'(Finished\s+.*)',
    ],
    'go': [
        r'(--- FAIL:.*)',
        r'(ok\s+\S+\s+[\d.]+s)',
        r'(FAIL|PASS)',
    ],
    'make': [
        r'(make(?:\[\d+\])?:.*Error\s+\d+)',
    ],

    # Tools
    'git': [
        r'(CONFLICT.*)',
        r'(\d+\s+files?\s+changed.*)',
        r'(Already up to date.*)',
    ],
    'docker': [
        r'(ERROR.*)',
        r'(Successfully built\s+\S+)',
        r'(naming to .*done)',
    ],
    'rg': [
        r'(\d+\s+matches?)',
    ],

    # Applied to any command after the tool-specific patterns
    '__fallback__': [
        r'(error:.*)',
        r'(failed.*)',
        r'(success.*)',
        r'(warning:.*)',
    ],
}

_ANSI_RE = re.compile(r'\x1b\[[0-9;]*[mGKH]')

# === Semantic patterns: (regex, confidence, type[, unit]) ===

ERROR_PATTERNS = [
    (r'^Error:\s*(.+)$', 0.95, 'generic_error'),
    (r'^(\w+)Error:\s*(.+)$', 0.9, 'typed_error'),
    (r'^Failed:\s*(.+)$', 0.9, 'failure'),
    (r'^FAIL\b\s*(.*)$', 0.85, 'test_failure'),
    (r'^\s*\U00002717\s*(.+)$', 0.8, 'failed_check'),
    (r'^Exception:\s*(.+)$', 0.9, 'exception'),
    (r'^\s*at\s+(.+?)\s*\((.+?):(\d+):(\d+)\)', 0.95, 'stack_trace'),
    (r'^npm ERR!\s*(.+)$', 0.9, 'npm_error'),
    (r'^fatal:\s*(.+)$', 0.95, 'fatal_error'),
]

SUCCESS_PATTERNS = [
    (r'^Success:\s*(.+)$', 0.9, 'generic_success'),
    (r'^PASS\b\s*(.*)$', 0.85, 'test_pass'),
    (r'^\s*\U00002713\s*(.+)$', 0.8, 'check_passed'),
    (r'^OK\b\s*(.*)$', 0.75, 'ok_status'),
    (r'^Completed:\s*(.+)$', 0.8, 'completion'),
    (r'^Done\b\s*(.*)$', 0.7, 'done_status'),
    (r'^\s*(\d+)\s+passing', 0.9, 'test_summary_pass'),
    (r'^Build successful', 0.95, 'build_success'),
]

METRIC_PATTERNS = [
    (r'(\d+(?:\.\d+)?)\s*(?:ms|milliseconds?)\b', 0.9, 'time_metric', 'ms'),
    (r'(\d+(?:\.\d+)?)\s*(?:s|secs?|seconds?)\b', 0.85, 'time_metric', 's'),
    (r'(\d+(?:\.\d+)?)\s*(?P<unit>KB|MB|GB)\b', 0.9, 'size_metric', None),
    (r'Coverage:\s*(\d+(?:\.\d+)?)\s*%', 0.95, 'coverage_metric', '%'),
    (r'(\d+(?:\.\d+)?)\s*%', 0.85, 'percentage_metric', '%'),
    (r'\b(\d+)/(\d+)\b', 0.8, 'ratio_metric', None),
]

_COMPILED_ERRORS = [(re.compile(p, re.IGNORECASE), c, t) for p, c, t in ERROR_PATTERNS]
_COMPILED_SUCCESSES = [(re.compile(p, re.IGNORECASE), c, t) for p, c, t in SUCCESS_PATTERNS]
_COMPILED_METRICS = [(re.compile(p, re.IGNORECASE), c, t, u) for p, c, t, u in METRIC_PATTERNS]


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub('', text)


def get_cmd_token(full_command: str) -> str:
    """
    First real command word, without directory.

    Skips VAR=value assignments and wrappers like sudo/env/time.
    """
    if not full_command or not full_command.strip():
        return 'unknown'

    prefixes = {'sudo', 'env', 'nohup', 'nice', 'time', 'command', 'exec'}
    for word in full_command.strip().split():
        if '=' in word and not word.startswith('-'):
            continue
        if word in prefixes:
            continue
        return word.split('/')[-1]

    return 'unknown'


def _truncate(text: str, max_chars: int) -> str:
    if len(text) > max_chars:
        return text[:max_chars - 3] + '...'
    return text


def extract_summary(output: str, cmd_token: str,
                    custom_extractors: Optional[Dict[str, list]] = None,
                    max_chars: int = 120) -> str:
    """
    Best status line from the last 50 lines of output.

    Pattern order: custom > tool-specific > fallback. Without a match,
    the last non-empty line is used. Empty string for empty output.
    """
    if not output:
        return ''

    tail_lines = strip_ansi(output).strip().split('\n')[-50:]
    tail_text = '\n'.join(tail_lines)

    patterns = []
    if custom_extractors and cmd_token in custom_extractors:
        patterns.extend(custom_extractors[cmd_token])
    patterns.extend(SUMMARY_EXTRACTORS.get(cmd_token, []))
    patterns.extend(SUMMARY_EXTRACTORS['__fallback__'])

    for pattern in patterns:
        try:
            match = re.search(pattern, tail_text, re.IGNORECASE | re.MULTILINE)
        except re.error:
            continue
        if match:
            summary = match.group(1) if match.lastindex else match.group(0)
            return _truncate(summary.strip(), max_chars)

    for line in reversed(tail_lines):
        line = line.strip()
        if line:
            return _truncate(line, max_chars)

    return ''


def _scan(lines: List[str], patterns, with_unit: bool = False) -> List[Dict]:
    results = []
    for index, line in enumerate(lines, start=1):
        for entry in patterns:
            regex, confidence, kind = entry[0], entry[1], entry[2]
            for match in regex.finditer(line):
                item = {
                    'type': kind,
                    'content': match.group(0).strip(),
                    'line': index,
                    'confidence': confidence,
                }
                if with_unit:
                    item['unit'] = entry[3] or match.groupdict().get('unit')
                results.append(item)

    seen = set()
    unique = []
    for item in results:
        key = (item['type'], item['content'])
        if key not in seen:
            seen.add(key)
            unique.append(item)
    unique.sort(key=lambda item: item['confidence'], reverse=True)
    return unique


def extract_semantics(output: str) -> Dict:
    """
    Errors, successes and metrics found in output.

    Each item has type, content, line (1-based) and confidence. The overall
    confidence is the mean item confidence plus 0.05 per non-empty
    category (capped at 1.0), or 0.1 when nothing was found.
    """
    if not output or not isinstance(output, str):
        return {'errors': [], 'successes': [], 'metrics': [], 'confidence': 0.1, 'total_lines': 0}

    lines = strip_ansi(output).split('\n')
    extraction = {
        'errors': _scan(lines, _COMPILED_ERRORS),
        'successes': _scan(lines, _COMPILED_SUCCESSES),
        'metrics': _scan(lines, _COMPILED_METRICS, with_unit=True),
    }

    items = [item for category in extraction.values() for item in category]
    if items:
        mean = sum(item['confidence'] for item in items) / len(items)
        bonus = 0.05 * sum(1 for category in extraction.values() if category)
        confidence = min(1.0, mean + bonus)
    else:
        confidence = 0.1

    extraction['confidence'] = confidence
    extraction['total_lines'] = len(lines)
    return extraction


# === CLI for testing ===

def main():
    """CLI for testing summary extraction."""
    import argparse
    import json
    import sys

    parser = argparse.ArgumentParser(description='AutoTee Capture Summary')
    parser.add_argument('--command', '-c', default='', help='Command that produced output')
    parser.add_argument('--file', '-f', help='Read output from file')
    parser.add_argument('--max-chars', type=int, default=120, help='Max summary chars')
    parser.add_argument('--semantics', action='store_true', help='Print semantic extraction as JSON')

    args = parser.parse_args()

    if args.file:
        with open(args.file, 'r', encoding='utf-8', errors='replace') as f:
            output = f.read()
    else:
        output = sys.stdin.read()

    if args.semantics:
        print(json.dumps(extract_semantics(output), indent=2, ensure_ascii=False))
        return

    cmd_token = get_cmd_token(args.command)
    print(f"cmd_token: {cmd_token}")
    print(f"summary: {extract_summary(output, cmd_token, max_chars=args.max_chars)}")


if __name__ == '__main__':
    main()
