#!/usr/bin/env python3
"""
AutoTee Installer

Registers the tee_bash.py PreToolUse hook in a Claude settings document:
- --local (default): ./.claude/settings.json
- --global: ~/.claude/settings.json
- --uninstall: remove the hook from both locations

Existing AutoTee entries are replaced, every other setting is preserved.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

HOOK_MARKER = 'tee_bash'
HOOK_SCRIPT = Path(__file__).parent / 'tee_bash.py'
HOOK_EVENT = 'PreToolUse'


def settings_path(global_scope: bool = False,
                  home: Optional[str] = None,
                  cwd: Optional[str] = None) -> Path:
    if global_scope:
        base = Path(home) if home else Path.home()
    else:
        base = Path(cwd) if cwd else Path(os.getcwd())
    return base / '.claude' / 'settings.json'


def hook_command() -> str:
    return f"{sys.executable} {HOOK_SCRIPT.resolve()}"


def load_settings(path: Path) -> Dict[str, Any]:
    """Read a settings document. Missing or invalid -> {}."""
    if not path.exists():
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        print(f"[autotee] Warning: Invalid settings in {path}, starting fresh: {e}", file=sys.stderr)
        return {}
    if not isinstance(data, dict):
        print(f"[autotee] Warning: {path} is not a JSON object, starting fresh", file=sys.stderr)
        return {}
    return data


def write_settings(path: Path, settings: Dict[str, Any]):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(settings, f, indent=2)
        f.write('\n')


def is_autotee_entry(entry: Any) -> bool:
    """True if a hook registration runs tee_bash (new or flat entry shape)."""
    if not isinstance(entry, dict):
        return False
    commands = [entry.get('command')]
    for hook in entry.get('hooks') or []:
        if isinstance(hook, dict):
            commands.append(hook.get('command'))
    return any(isinstance(c, str) and HOOK_MARKER in c for c in commands)


def _strip_entries(entries: List[Any]) -> List[Any]:
    return [entry for entry in entries if not is_autotee_entry(entry)]


def install(path: Path, command: Optional[str] = None) -> Dict[str, Any]:
    """Add (or replace) the AutoTee entry in the settings at `path`."""
    settings = load_settings(path)
    hooks = settings.get('hooks')
    if not isinstance(hooks, dict):
        hooks = {}
    entries = hooks.get(HOOK_EVENT)
    if not isinstance(entries, list):
        entries = []

    entries = _strip_entries(entries)
    entries.append({
        'matcher': 'Bash',
        'hooks': [{'type': 'command', 'command': command or hook_command()}],
    })
    hooks[HOOK_EVENT] = entries
    settings['hooks'] = hooks

    write_settings(path, settings)
    return settings


def uninstall(path: Path) -> bool:
    """Remove AutoTee entries from `path`. Returns whether the file changed."""
    if not path.exists():
        return False
    settings = load_settings(path)
    hooks = settings.get('hooks')
    if not isinstance(hooks, dict) or not isinstance(hooks.get(HOOK_EVENT), list):
        return False

    entries = _strip_entries(hooks[HOOK_EVENT])
    if len(entries) == len(hooks[HOOK_EVENT]):
        return False

    if entries:
        hooks[HOOK_EVENT] = entries
    else:
        del hooks[HOOK_EVENT]
    if not hooks:
        del settings['hooks']

    write_settings(path, settings)
    return True


def uninstall_all(home: Optional[str] = None, cwd: Optional[str] = None) -> int:
    """Remove the hook from global and local settings. Returns files changed."""
    locations = [settings_path(True, home=home), settings_path(False, cwd=cwd)]
    removed = 0
    seen = set()
    for path in locations:
        key = str(path.resolve())
        if key in seen:
            continue
        seen.add(key)
        if uninstall(path):
            print(f"Removed hooks from {path}")
            removed += 1
    return removed


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Install the AutoTee PreToolUse hook')
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument('--global', '-g', dest='global_scope', action='store_true',
                       help='Install for all sessions (~/.claude/settings.json)')
    scope.add_argument('--local', '-l', action='store_true',
                       help='Install for this project (./.claude/settings.json, default)')
    scope.add_argument('--uninstall', '-u', action='store_true',
                       help='Remove AutoTee hooks from both locations')
    args = parser.parse_args()

    if args.uninstall:
        removed = uninstall_all()
        if removed:
            print(f"[autotee] Removed hooks from {removed} location(s)")
        else:
            print('[autotee] No AutoTee hooks found to remove')
        return

    path = settings_path(args.global_scope)
    install(path)
    print(f"[autotee] Installed {'globally' if args.global_scope else 'locally'}: {path}")


if __name__ == '__main__':
    main()
