#!/usr/bin/env python3
"""
AutoTee Command Rewriter

Inserts a `tee` capture stage at the first top-level pipe of a command:

    npm run build 2>&1 | tail -10

becomes

    AUTOTEE_CAPTURE='/tmp/autotee-<uuid>.log'
    npm run build 2>&1 | tee "$AUTOTEE_CAPTURE" | tail -10
    __autotee_status=$?
    echo ""
    echo "Full output saved to: $AUTOTEE_CAPTURE"
    (exit $__autotee_status)

Everything after the original pipe is kept byte-for-byte, so the
downstream stages see the same input and the final stage still decides
the exit status. Commands without a pipe get a head truncation stage
instead.
"""

from __future__ import annotations

import os
import re
import sys
import tempfile
import uuid
from pathlib import Path
from typing import Optional, Tuple

# Import AutoTee modules (relative import from same directory)
_script_dir = Path(__file__).parent
if str(_script_dir) not in sys.path:
    sys.path.insert(0, str(_script_dir))

from shell_quoter import quote
from shell_structure import find_first_pipe


DEFAULT_PREFIX = 'autotee'
DEFAULT_VARIABLE = 'AUTOTEE_CAPTURE'
DEFAULT_HEAD_LINES = 100
ANNOUNCEMENT = 'Full output saved to: '
STATUS_VARIABLE = '__autotee_status'

_TRAILING_MERGE_RE = re.compile(r'\s2>&1$')
_VARIABLE_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def new_capture_path(prefix: str = DEFAULT_PREFIX, temp_dir: Optional[str] = None) -> str:
    """Fresh absolute capture path: {temp}/{prefix}-{uuid4}.log"""
    base = temp_dir or tempfile.gettempdir()
    return os.path.abspath(os.path.join(base, f"{prefix}-{uuid.uuid4()}.log"))


def _ends_escaped(text: str) -> bool:
    """True if text ends with an odd run of backslashes."""
    return (len(text) - len(text.rstrip('\\'))) % 2 == 1


def trim_trailing_blanks(text: str) -> str:
    """
    rstrip() for shell text.

    Backslash-newline continuations are dropped with the whitespace; an
    escaped trailing space or tab is kept as part of the last word.
    """
    while True:
        stripped = text.rstrip()
        if stripped == text or not _ends_escaped(stripped):
            return stripped
        escaped = text[len(stripped)]
        if escaped != '\n':
            return stripped + escaped
        text = stripped[:-1]


def strip_trailing_merge(before: str) -> str:
    """Drop a trailing 2>&1 word (it is re-added explicitly) and trailing whitespace."""
    before = trim_trailing_blanks(before)
    match = _TRAILING_MERGE_RE.search(before)
    if match and not _ends_escaped(before[:match.start()]):
        before = trim_trailing_blanks(before[:match.start()])
    return before


class CommandRewriter:
    """
    Builds the rewritten command text.

    Usage:
        rewriter = CommandRewriter.from_config(config)
        new_command, capture_path = rewriter.rewrite_with_path(command)
    """

    def __init__(self,
                 prefix: str = DEFAULT_PREFIX,
                 temp_dir: Optional[str] = None,
                 head_lines: int = DEFAULT_HEAD_LINES,
                 variable: str = DEFAULT_VARIABLE):
        if not _VARIABLE_RE.match(variable or ''):
            raise ValueError(f"Invalid shell variable name: {variable!r}")
        self.prefix = prefix or DEFAULT_PREFIX
        self.temp_dir = temp_dir or None
        self.head_lines = max(1, int(head_lines))
        self.variable = variable

    @classmethod
    def from_config(cls, config) -> 'CommandRewriter':
        return cls(
            prefix=config.get('capture.prefix', DEFAULT_PREFIX),
            temp_dir=config.get('capture.temp_dir') or None,
            head_lines=config.get('capture.head_lines', DEFAULT_HEAD_LINES),
            variable=config.get('capture.variable', DEFAULT_VARIABLE),
        )

    def split(self, command: str) -> Tuple[str, Optional[str]]:
        """
        Split at the first top-level pipe.

        Returns (before, after); after is None when there is no pipe.
        """
        pipe = find_first_pipe(command)
        if pipe is None:
            return command, None
        start, end = pipe
        return command[:start], command[end:]

    def rewrite_with_path(self, command: str,
                          capture_path: Optional[str] = None) -> Tuple[str, str]:
        """Rewrite command, returning (new_command, capture_path)."""
        path = capture_path or new_capture_path(self.prefix, self.temp_dir)
        var = f'"${self.variable}"'

        before, after = self.split(command)
        before = strip_trailing_merge(before)

        if after is None:
            # Drain after head so tee is not cut short by SIGPIPE
            tail = f"{{ head -n {self.head_lines}; cat > /dev/null; }}"
            pipeline = f"{before} 2>&1 | tee {var} | {tail}"
        else:
            pipeline = f"{before} 2>&1 | tee {var} |{after}"

        lines = [
            f"{self.variable}={quote(path, 'bash')}",
            pipeline,
            f"{STATUS_VARIABLE}=$?",
            'echo ""',
            f'echo "{ANNOUNCEMENT}${self.variable}"',
            f"(exit ${STATUS_VARIABLE})",
        ]
        return '\n'.join(lines), path

    def rewrite(self, command: str) -> str:
        return self.rewrite_with_path(command)[0]


def rewrite(command: str, **kwargs) -> str:
    """Rewrite with a default-configured CommandRewriter."""
    return CommandRewriter(**kwargs).rewrite(command)


def main():
    """CLI: show the rewritten form of a command."""
    import argparse

    parser = argparse.ArgumentParser(description='AutoTee Command Rewriter')
    parser.add_argument('command', help='Shell command to rewrite')
    parser.add_argument('--temp-dir', help='Directory for the capture file')
    args = parser.parse_args()

    print(CommandRewriter(temp_dir=args.temp_dir).rewrite(args.command))


if __name__ == '__main__':
    main()
