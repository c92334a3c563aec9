#!/usr/bin/env python3
"""
AutoTee Shell Structure Inspector

Derives structural facts about a raw shell command without executing it:
- top-level pipe boundaries (not inside quotes, subshells or substitutions)
- redirections (fd duplications like 2>&1 do not count)
- an existing `tee` capture stage
- long-running / interactive commands
- trivial read-only commands

Two interchangeable scanners produce a ScanResult:
- strict_scan: character scanner tracking quotes, escapes and nesting.
  Raises StructuralParseDegraded on unbalanced input.
- heuristic_scan: regex heuristics over the text with quoted spans masked.
  Never raises.

inspect() tries the scanners in order and never raises.
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Tuple


class StructuralParseDegraded(ValueError):
    """Strict scan could not make sense of the command (unbalanced quoting/nesting)."""

    def __init__(self, message: str, position: int = -1):
        super().__init__(message)
        self.position = position


# === Signatures ===

INTERACTIVE_PATTERNS = [
    r'\b(?:npm|yarn|pnpm|bun)\s+run\s+(?:dev|start|serve)\b',
    r'\b(?:npm|yarn|pnpm|bun)\s+(?:dev|start|serve)\b',
    r'(?:^|[\s;&|(])watch(?:\s|$)',
    r'--watch\b',
    r'\bdocker\s+run\b.*\s-(?:it|ti)\b',
    r'(?:^|[\s;&|(])ssh\s',
    r'\btail\b[^|;&]*\s(?:-[a-zA-Z0-9]*[fF]\b|--follow\b)',
]

TRIVIAL_COMMANDS = ('ls', 'pwd', 'echo', 'cat', 'head', 'tail', 'wc', 'sort')

_TRIVIAL_RE = re.compile(r'^(?:' + '|'.join(TRIVIAL_COMMANDS) + r')(?:\s|$)')
_COMPILED_INTERACTIVE = [re.compile(p) for p in INTERACTIVE_PATTERNS]

# Heuristic scanner patterns (applied to quote-masked text)
_QUOTED_SPAN_RE = re.compile(r"'[^']*'|\"(?:\\.|[^\"\\])*\"")
_HEURISTIC_PIPE_RE = re.compile(r'(?<![|>])\|&?(?!\|)')
_HEURISTIC_OR_RE = re.compile(r'\|\|')
_HEURISTIC_REDIRECT_RE = re.compile(r'&>>?|\d*>>?(?![&(])|\d*>&(?![\d-])|<(?![(&])')
_HEURISTIC_TEE_RE = re.compile(r'(?:^|[\s|;&(`])tee\s')


@dataclass
class ScanResult:
    """Raw scanner output: positions are offsets into the scanned command."""
    pipes: List[Tuple[int, int]] = field(default_factory=list)
    redirections: List[Tuple[int, str]] = field(default_factory=list)
    has_tee: bool = False


@dataclass(frozen=True)
class StructuralFacts:
    has_top_level_pipe: bool
    has_redirection: bool
    has_existing_capture: bool
    is_interactive: bool
    is_trivial: bool
    length: int
    degraded: bool = False


# === Strict scanner ===

def _redirection_at(command: str, i: int) -> Tuple[int, Optional[str]]:
    """
    Classify the redirection operator starting at command[i] ('<' or '>').

    Returns (width, operator) where operator is None for fd duplications
    (N>&M, >&-, <&N) that only rewire descriptors.
    """
    rest = command[i:i + 4]
    if rest.startswith('<<<'):
        return 3, '<<<'
    if rest.startswith('<<'):
        return 2, '<<'
    if rest.startswith('<>'):
        return 2, '<>'
    if rest.startswith('<&'):
        return 2, None
    if rest.startswith('>>'):
        return 2, '>>'
    if rest.startswith('>|'):
        return 2, '>|'
    if rest.startswith('>&'):
        m = re.match(r'>&(?:\d+|-)(?=$|[\s;|&)])', command[i:])
        if m:
            return m.end(), None
        return 2, '>&'
    return 1, command[i]


def strict_scan(command: str) -> ScanResult:
    """
    Quote-aware scan of a command.

    Tracks single/double quotes, $'...' strings, backslash escapes,
    backticks, (...) subshells, $(...) and <(...)/>(...) substitutions,
    ${...} expansions, ((...)) arithmetic and { ...; } groups. A pipe is
    top-level only when none of these are open.
    """
    result = ScanResult()
    stack: List[str] = []
    n = len(command)
    i = 0
    word_start = True

    while i < n:
        ch = command[i]
        top = stack[-1] if stack else None

        if top == 'dquote':
            if ch == '\\':
                i += 2
            elif ch == '"':
                stack.pop()
                i += 1
            elif command.startswith('$((', i):
                stack.append('arith')
                i += 3
            elif command.startswith('$(', i):
                stack.append('cmdsub')
                i += 2
                word_start = True
            elif command.startswith('${', i):
                stack.append('param')
                i += 2
            elif ch == '`':
                stack.append('backtick')
                i += 1
                word_start = True
            else:
                i += 1
            continue

        if top in ('arith', 'aparen'):
            if top == 'arith' and command.startswith('))', i):
                stack.pop()
                i += 2
                word_start = False
            elif ch == '(':
                stack.append('aparen')
                i += 1
            elif ch == ')':
                if top != 'aparen':
                    raise StructuralParseDegraded('stray ) in arithmetic expansion', i)
                stack.pop()
                i += 1
            else:
                i += 1
            continue

        if ch == '\\':
            i += 2
            word_start = False
            continue

        if ch == "'" or command.startswith("$'", i):
            start = i
            i += 1 if ch == "'" else 2
            ansi_c = ch == '$'
            while i < n and command[i] != "'":
                i += 2 if (ansi_c and command[i] == '\\') else 1
            if i >= n:
                raise StructuralParseDegraded('unterminated single quote', start)
            i += 1
            word_start = False
            continue

        if ch == '"':
            stack.append('dquote')
            i += 1
            word_start = False
            continue

        if ch == '`':
            if top == 'backtick':
                stack.pop()
                word_start = False
            else:
                stack.append('backtick')
                word_start = True
            i += 1
            continue

        if ch == '#' and word_start:
            newline = command.find('\n', i)
            i = n if newline == -1 else newline
            continue

        if command.startswith('$((', i):
            stack.append('arith')
            i += 3
            continue
        if command.startswith('$(', i):
            stack.append('cmdsub')
            i += 2
            word_start = True
            continue
        if command.startswith('${', i):
            stack.append('param')
            i += 2
            word_start = False
            continue
        if command.startswith('<(', i) or command.startswith('>(', i):
            stack.append('procsub')
            i += 2
            word_start = True
            continue
        if word_start and command.startswith('((', i):
            stack.append('arith')
            i += 2
            continue

        if ch == '(':
            stack.append('paren')
            i += 1
            word_start = True
            continue
        if ch == ')':
            if top not in ('paren', 'cmdsub', 'procsub'):
                raise StructuralParseDegraded('unbalanced )', i)
            stack.pop()
            i += 1
            word_start = False
            continue

        if ch == '{' and word_start and (i + 1 >= n or command[i + 1] in ' \t\n'):
            stack.append('brace')
            i += 1
            continue
        if ch == '}' and top == 'param':
            stack.pop()
            i += 1
            continue
        if ch == '}' and word_start and top == 'brace':
            stack.pop()
            i += 1
            word_start = False
            continue

        if ch == '|':
            if command.startswith('||', i):
                i += 2
            else:
                width = 2 if command.startswith('|&', i) else 1
                if not stack:
                    result.pipes.append((i, i + width))
                i += width
            word_start = True
            continue

        if ch == '&':
            if command.startswith('&>>', i):
                result.redirections.append((i, '&>>'))
                i += 3
                word_start = False
            elif command.startswith('&>', i):
                result.redirections.append((i, '&>'))
                i += 2
                word_start = False
            else:
                i += 2 if command.startswith('&&', i) else 1
                word_start = True
            continue

        if ch in '<>':
            width, operator = _redirection_at(command, i)
            if operator is not None:
                result.redirections.append((i, operator))
            i += width
            word_start = False
            continue

        if ch in ' \t\n;':
            word_start = True
            i += 1
            continue

        if word_start and command.startswith('tee', i):
            following = command[i + 3:i + 4]
            if following and following in ' \t':
                result.has_tee = True
        word_start = False
        i += 1

    if stack:
        raise StructuralParseDegraded(f'unterminated {stack[-1]}', n)

    return result


# === Heuristic scanner ===

def _mask_quoted(command: str) -> str:
    """Replace quoted spans with same-length filler so offsets are preserved."""
    return _QUOTED_SPAN_RE.sub(lambda m: '_' * len(m.group(0)), command)


def heuristic_scan(command: str) -> ScanResult:
    """Regex-based scan used when strict_scan cannot parse the command."""
    masked = _mask_quoted(command)
    # Hide logical-or so it is never read as two pipes
    masked = _HEURISTIC_OR_RE.sub('__', masked)

    result = ScanResult()
    for m in _HEURISTIC_PIPE_RE.finditer(masked):
        result.pipes.append((m.start(), m.end()))
    for m in _HEURISTIC_REDIRECT_RE.finditer(masked):
        result.redirections.append((m.start(), m.group(0).lstrip('0123456789')))
    result.has_tee = bool(_HEURISTIC_TEE_RE.search(masked))
    return result


# Strategy order for inspect(): first scanner that succeeds wins
SCANNERS: Sequence[Callable[[str], ScanResult]] = (strict_scan, heuristic_scan)


def scan(command: str,
         scanners: Sequence[Callable[[str], ScanResult]] = SCANNERS) -> Tuple[ScanResult, bool]:
    """Run the scanners in order. Returns (result, degraded)."""
    for index, scanner in enumerate(scanners):
        try:
            return scanner(command), index > 0
        except StructuralParseDegraded:
            continue
    return ScanResult(), True


# === Public checks ===

def compile_patterns(patterns: Iterable[str]) -> List[re.Pattern]:
    """Compile user-supplied regexes, warning about and skipping invalid ones."""
    compiled = []
    for pattern in patterns or ():
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            print(f"[autotee] Warning: invalid pattern {pattern!r}: {e}", file=sys.stderr)
    return compiled


def is_interactive(command: str, extra_patterns: Sequence[re.Pattern] = ()) -> bool:
    """True for dev servers, watchers, interactive containers, ssh and tail -f."""
    return any(p.search(command) for p in (*_COMPILED_INTERACTIVE, *extra_patterns))


def first_stage(command: str, pipes: Sequence[Tuple[int, int]]) -> str:
    """Text of the command before its first top-level pipe, stripped."""
    if pipes:
        return command[:pipes[0][0]].strip()
    return command.strip()


def is_trivial(command: str, pipes: Sequence[Tuple[int, int]], max_length: int) -> bool:
    """Cheap read-only utility as first stage AND overall length below max_length."""
    if len(command.strip()) >= max_length:
        return False
    return bool(_TRIVIAL_RE.match(first_stage(command, pipes)))


def find_first_pipe(command: str) -> Optional[Tuple[int, int]]:
    """(start, end) of the first top-level pipe operator, or None."""
    if not isinstance(command, str):
        return None
    result, _ = scan(command)
    return result.pipes[0] if result.pipes else None


def inspect(command: str,
            trivial_max_length: int = 20,
            interactive_patterns: Sequence[re.Pattern] = ()) -> StructuralFacts:
    """
    Derive StructuralFacts for a command. Total: never raises.

    Non-string input is treated as an empty command.
    """
    if not isinstance(command, str):
        command = ''

    result, degraded = scan(command)

    return StructuralFacts(
        has_top_level_pipe=bool(result.pipes),
        has_redirection=bool(result.redirections),
        has_existing_capture=result.has_tee,
        is_interactive=is_interactive(command, interactive_patterns),
        is_trivial=is_trivial(command, result.pipes, trivial_max_length),
        length=len(command.strip()),
        degraded=degraded,
    )


def main():
    """CLI: print structural facts for a command."""
    import argparse
    import json
    from dataclasses import asdict

    parser = argparse.ArgumentParser(description='AutoTee Shell Structure Inspector')
    parser.add_argument('command', help='Shell command to inspect')
    parser.add_argument('--pipes', action='store_true', help='Also show pipe offsets')
    args = parser.parse_args()

    facts = asdict(inspect(args.command))
    if args.pipes:
        result, _ = scan(args.command)
        facts['pipes'] = result.pipes
        facts['redirections'] = result.redirections
    print(json.dumps(facts, indent=2))


if __name__ == '__main__':
    main()
