#!/usr/bin/env python3
"""
PreToolUse hook: inject a tee capture stage into Bash commands.

Input (stdin): JSON with tool_name, tool_input, cwd
Output (stdout): JSON with hookSpecificOutput containing updatedInput,
or nothing at all when the command is passed through unchanged.

A command such as

    npm run build 2>&1 | tail -10

becomes

    AUTOTEE_CAPTURE='/tmp/autotee-<uuid>.log'
    npm run build 2>&1 | tee "$AUTOTEE_CAPTURE" | tail -10
    __autotee_status=$?
    echo ""
    echo "Full output saved to: $AUTOTEE_CAPTURE"
    (exit $__autotee_status)

Environment variables (see config_loader.py for full list):
- AUTOTEE_DISABLE: pass every command through unchanged
- AUTOTEE_MIN_LENGTH: shortest command considered (default: 10)
- AUTOTEE_LEGACY_PATTERNS: also capture unpiped expensive commands (default: 0)
"""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

# Import AutoTee modules (relative import from same directory)
_script_dir = Path(__file__).parent
if str(_script_dir) not in sys.path:
    sys.path.insert(0, str(_script_dir))

from activation_policy import ActivationPolicy, RewritePlan
from command_rewriter import CommandRewriter
from config_loader import AutoTeeConfig, get_config, is_disabled
from shell_structure import compile_patterns, inspect

SHELL_TOOL_NAME = 'Bash'


@dataclass(frozen=True)
class RewriteOutcome:
    command: str
    plan: Optional[RewritePlan]
    capture_path: Optional[str] = None
    rewritten: bool = False


def load_config(cwd: str) -> AutoTeeConfig:
    """Effective config for cwd; built-in defaults if loading fails."""
    try:
        return get_config(cwd)
    except Exception as e:
        print(f"[autotee] Warning: Config loading failed, using defaults: {e}", file=sys.stderr)
        return AutoTeeConfig.defaults()


def process_command(command: str, config: Optional[AutoTeeConfig] = None) -> RewriteOutcome:
    """
    Decide and, if activated, rewrite a single command.

    Never raises: any unexpected failure returns the original command.
    """
    if not isinstance(command, str) or not command:
        return RewriteOutcome(command, None)

    if config is None:
        config = AutoTeeConfig.defaults()
    try:
        facts = inspect(
            command,
            trivial_max_length=int(config.get('activation.trivial_max_length', 20)),
            interactive_patterns=compile_patterns(
                config.get('activation.interactive_patterns', []) or []
            ),
        )
        plan = ActivationPolicy.from_config(config).decide(command, facts)
        if not plan.should_rewrite:
            return RewriteOutcome(command, plan)

        rewritten, capture_path = CommandRewriter.from_config(config).rewrite_with_path(command)
        return RewriteOutcome(rewritten, plan, capture_path, True)
    except Exception as e:
        print(f"[autotee] Warning: rewrite failed, passing command through: {e}", file=sys.stderr)
        return RewriteOutcome(command, None)


def _tool_fields(data: Dict) -> tuple:
    """(tool_name, tool_input, legacy) for either request envelope."""
    if 'tool_name' in data or 'tool_input' in data:
        return data.get('tool_name', ''), data.get('tool_input') or {}, False
    tool = data.get('tool')
    if isinstance(tool, dict):
        return tool.get('name', ''), tool.get('input') or {}, True
    return '', {}, False


def process_hook_data(data: Any, config: Optional[AutoTeeConfig] = None) -> Any:
    """
    Return `data` with its command replaced when activation occurs.

    Accepts {"tool_name", "tool_input"} and the older {"tool": {"name", "input"}}
    envelope. Anything else, or a rejected command, returns `data` itself.
    """
    if not isinstance(data, dict):
        return data

    tool_name, tool_input, legacy = _tool_fields(data)
    if tool_name != SHELL_TOOL_NAME or not isinstance(tool_input, dict):
        return data

    command = tool_input.get('command')
    if not isinstance(command, str):
        return data

    outcome = process_command(command, config)
    if not outcome.rewritten:
        return data

    new_input = {**tool_input, 'command': outcome.command}
    if legacy:
        return {**data, 'tool': {**data['tool'], 'input': new_input}}
    return {**data, 'tool_input': new_input}


def main():
    # Read JSON input from stdin
    try:
        raw_input = sys.stdin.read()
        if not raw_input.strip():
            sys.exit(0)
        input_data = json.loads(raw_input)
    except json.JSONDecodeError:
        # Invalid JSON - pass through silently
        sys.exit(0)

    if not isinstance(input_data, dict):
        sys.exit(0)

    # Only process Bash tool
    tool_name, tool_input, _ = _tool_fields(input_data)
    if tool_name != SHELL_TOOL_NAME or not isinstance(tool_input, dict):
        sys.exit(0)

    command = tool_input.get('command')
    cwd = input_data.get('cwd') or os.getcwd()

    # Check escape hatch
    if is_disabled(cwd):
        sys.exit(0)

    outcome = process_command(command, load_config(cwd))
    if not outcome.rewritten:
        sys.exit(0)

    output = {
        'hookSpecificOutput': {
            'hookEventName': 'PreToolUse',
            'permissionDecision': 'allow',
            'updatedInput': {**tool_input, 'command': outcome.command},
        }
    }

    print(json.dumps(output))
    sys.exit(0)


if __name__ == '__main__':
    main()
