#!/usr/bin/env python3
"""
AutoTee Environment Exporter

Generates shell statements exposing the capture ledger to the user's shell:
- AUTOTEE_LAST_CAPTURE: path of the most recent capture
- AUTOTEE_CAPTURES: JSON array of {path, timestamp, size}

Supported shells: bash, zsh, sh, fish, powershell. Values are quoted with
shell_quoter; an empty ledger produces unset statements instead.

Usage:
    exporter = EnvExporter(ledger)
    print(exporter.export_script('fish'))
"""

from __future__ import annotations

import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Union

# Import AutoTee modules (relative import from same directory)
_script_dir = Path(__file__).parent
if str(_script_dir) not in sys.path:
    sys.path.insert(0, str(_script_dir))

from capture_ledger import CaptureLedger
from config_loader import get_config
from shell_quoter import POSIX_DIALECTS, Dialect, InvalidShellDialect, quote, resolve_dialect


LAST_CAPTURE_VAR = 'AUTOTEE_LAST_CAPTURE'
CAPTURES_VAR = 'AUTOTEE_CAPTURES'

EXPORT_DIALECTS = (*sorted(POSIX_DIALECTS, key=lambda d: d.value), Dialect.FISH, Dialect.POWERSHELL)


def export_dialect(shell: Union[str, Dialect]) -> Dialect:
    """Resolve a shell name, rejecting dialects we cannot export to (cmd)."""
    dialect = resolve_dialect(shell)
    if dialect not in EXPORT_DIALECTS:
        supported = ', '.join(d.value for d in EXPORT_DIALECTS)
        raise InvalidShellDialect(
            f"Cannot export environment for {dialect.value}. Supported: {supported}", shell
        )
    return dialect


def set_command(name: str, value: str, shell: Union[str, Dialect] = 'bash') -> str:
    dialect = export_dialect(shell)
    quoted = quote(value, dialect)
    if dialect is Dialect.FISH:
        return f"set -gx {name} {quoted}"
    if dialect is Dialect.POWERSHELL:
        return f"$env:{name} = {quoted}"
    return f"export {name}={quoted}"


def unset_command(name: str, shell: Union[str, Dialect] = 'bash') -> str:
    dialect = export_dialect(shell)
    if dialect is Dialect.FISH:
        return f"set -e {name}"
    if dialect is Dialect.POWERSHELL:
        return f"Remove-Item Env:{name} -ErrorAction SilentlyContinue"
    return f"unset {name}"


class EnvExporter:
    """Export statements over a CaptureLedger snapshot."""

    def __init__(self, ledger: CaptureLedger):
        self.ledger = ledger

    def last_capture_export(self, shell: Union[str, Dialect] = 'bash') -> str:
        last = self.ledger.get_last_capture()
        if last is None:
            return unset_command(LAST_CAPTURE_VAR, shell)
        return set_command(LAST_CAPTURE_VAR, last.path, shell)

    def captures_export(self, shell: Union[str, Dialect] = 'bash') -> str:
        captures = self.ledger.get_captures()
        if not captures:
            return unset_command(CAPTURES_VAR, shell)
        payload = json.dumps(
            [
                {'path': r.path, 'timestamp': r.timestamp.isoformat(), 'size': r.size}
                for r in captures
            ],
            ensure_ascii=False,
            separators=(',', ':'),
        )
        return set_command(CAPTURES_VAR, payload, shell)

    def all_exports(self, shell: Union[str, Dialect] = 'bash') -> Dict[str, str]:
        dialect = export_dialect(shell)
        return {
            'last_capture': self.last_capture_export(dialect),
            'captures': self.captures_export(dialect),
            'shell': dialect.value,
        }

    def export_script(self, shell: Union[str, Dialect] = 'bash') -> str:
        exports = self.all_exports(shell)
        interpreter = 'pwsh' if exports['shell'] == Dialect.POWERSHELL.value else exports['shell']
        generated = datetime.now(timezone.utc).isoformat()
        return '\n'.join([
            f"#!/usr/bin/env {interpreter}",
            '# AutoTee environment variables',
            f"# Generated: {generated}",
            '',
            exports['last_capture'],
            exports['captures'],
            '',
        ])


def main():
    """CLI: print an export script for the given capture files."""
    import argparse

    default_shell = get_config(os.getcwd()).get('export.shell', 'bash')

    parser = argparse.ArgumentParser(description='AutoTee Environment Exporter')
    parser.add_argument('paths', nargs='*', help='Capture files, oldest first')
    parser.add_argument('--shell', '-s', default=default_shell, help='Target shell')
    parser.add_argument('--max', type=int, default=10, help='Max captures to export')
    parser.add_argument('--dry-run', action='store_true', help='Do not require files to exist')
    args = parser.parse_args()

    ledger = CaptureLedger(max_history=max(1, args.max))
    for path in args.paths:
        try:
            ledger.add_capture(path, {'dry_run': args.dry_run})
        except FileNotFoundError as e:
            print(f"[autotee] Warning: {e}", file=sys.stderr)

    try:
        print(EnvExporter(ledger).export_script(args.shell), end='')
    except InvalidShellDialect as e:
        print(f"[autotee] Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
