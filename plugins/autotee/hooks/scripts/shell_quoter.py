#!/usr/bin/env python3
"""
AutoTee Shell Quoter

Renders a path (or any string value) as a single literal token for a target
shell dialect, so it can be embedded in generated commands and export scripts.

Dialects:
- bash / zsh / sh: single quotes, embedded ' written as '"'"'
- fish: single quotes, backslash-escape \\ and '
- cmd: double quotes, "" for embedded ", caret-escape & < > | ^ %
- powershell: single quotes, '' for embedded '

Quoting works on characters, not bytes: CJK, emoji, combining marks and
right-to-left text pass through untouched.
"""

from __future__ import annotations

from enum import Enum
from typing import Union


class QuotingError(ValueError):
    """Base class for quoting failures."""


class InvalidPathError(QuotingError):
    """Raised for empty, non-string or NUL-containing input."""

    def __init__(self, message: str, path: object = None):
        super().__init__(message)
        self.path = path


class InvalidShellDialect(QuotingError):
    """Raised for a dialect name we do not know how to quote for."""

    def __init__(self, message: str, dialect: object = None):
        super().__init__(message)
        self.dialect = dialect


class Dialect(str, Enum):
    BASH = 'bash'
    ZSH = 'zsh'
    SH = 'sh'
    FISH = 'fish'
    CMD = 'cmd'
    POWERSHELL = 'powershell'


POSIX_DIALECTS = frozenset({Dialect.BASH, Dialect.ZSH, Dialect.SH})

_DIALECT_ALIASES = {
    'pwsh': Dialect.POWERSHELL,
    'ps': Dialect.POWERSHELL,
    'cmd.exe': Dialect.CMD,
    'dash': Dialect.SH,
    'posix': Dialect.SH,
}

_CMD_CARET_CHARS = '&<>|^%'


def resolve_dialect(dialect: Union[str, Dialect]) -> Dialect:
    """Normalize a dialect name (case-insensitive, a few aliases) to a Dialect."""
    if isinstance(dialect, Dialect):
        return dialect
    if not isinstance(dialect, str) or not dialect.strip():
        raise InvalidShellDialect('Shell dialect must be a non-empty string', dialect)

    name = dialect.strip().lower()
    if name in _DIALECT_ALIASES:
        return _DIALECT_ALIASES[name]
    try:
        return Dialect(name)
    except ValueError:
        supported = ', '.join(d.value for d in Dialect)
        raise InvalidShellDialect(
            f"Unsupported shell dialect: {dialect}. Supported: {supported}", dialect
        ) from None


def _check_value(value: object) -> str:
    if not isinstance(value, str) or value == '':
        raise InvalidPathError('Path must be a non-empty string', value)
    if '\x00' in value:
        raise InvalidPathError('Path contains a NUL byte', value)
    return value


def quote(path: str, dialect: Union[str, Dialect] = Dialect.BASH) -> str:
    """
    Quote `path` as one literal token for `dialect`.

    Raises InvalidPathError for empty/non-string input and InvalidShellDialect
    for unknown dialects.
    """
    value = _check_value(path)
    target = resolve_dialect(dialect)

    if target in POSIX_DIALECTS:
        return "'" + value.replace("'", "'\"'\"'") + "'"

    if target is Dialect.FISH:
        # Backslash first so the escapes added for quotes are not doubled
        escaped = value.replace('\\', '\\\\').replace("'", "\\'")
        return "'" + escaped + "'"

    if target is Dialect.CMD:
        escaped = value.replace('"', '""')
        escaped = ''.join('^' + ch if ch in _CMD_CARET_CHARS else ch for ch in escaped)
        return '"' + escaped + '"'

    # PowerShell
    return "'" + value.replace("'", "''") + "'"


def unquote(token: str, dialect: Union[str, Dialect] = Dialect.BASH) -> str:
    """
    Inverse of quote() for tokens produced by quote().

    Not a general shell parser: it only understands the exact forms quote() emits.
    """
    if not isinstance(token, str) or len(token) < 2:
        raise InvalidPathError('Token must be a quoted string', token)
    target = resolve_dialect(dialect)

    if target in POSIX_DIALECTS:
        return token[1:-1].replace("'\"'\"'", "'")

    if target is Dialect.FISH:
        body = token[1:-1]
        out = []
        i = 0
        while i < len(body):
            ch = body[i]
            if ch == '\\' and i + 1 < len(body) and body[i + 1] in ('\\', "'"):
                out.append(body[i + 1])
                i += 2
                continue
            out.append(ch)
            i += 1
        return ''.join(out)

    if target is Dialect.CMD:
        body = token[1:-1]
        out = []
        i = 0
        while i < len(body):
            ch = body[i]
            if ch == '^' and i + 1 < len(body) and body[i + 1] in _CMD_CARET_CHARS:
                out.append(body[i + 1])
                i += 2
                continue
            out.append(ch)
            i += 1
        return ''.join(out).replace('""', '"')

    return token[1:-1].replace("''", "'")


def main():
    """CLI: quote a path for one or all dialects."""
    import argparse

    parser = argparse.ArgumentParser(description='AutoTee Shell Quoter')
    parser.add_argument('path', help='Path to quote')
    parser.add_argument('--shell', '-s', help='Target dialect (default: all)')
    args = parser.parse_args()

    if args.shell:
        print(quote(args.path, args.shell))
        return

    for dialect in Dialect:
        print(f"{dialect.value:>10}: {quote(args.path, dialect)}")


if __name__ == '__main__':
    main()
