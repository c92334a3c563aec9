#!/usr/bin/env python3
"""
AutoTee Activation Policy

Decides whether a command gets a capture stage. Ordered short-circuit:

1. existing tee stage      -> reject ALREADY_CAPTURED
2. redirection             -> reject HAS_REDIRECTION
3. interactive/long-running -> reject INTERACTIVE
4. shorter than min_length -> reject TOO_SHORT
5. top-level pipe          -> accept PIPED (reject TRIVIAL for short cheap commands)
6. otherwise               -> reject NO_PIPE

Pipe presence is the only activation signal by default. The older
"expensive operation" catalog is kept as an opt-in list of predicates
(activation.legacy_patterns) consulted only for commands without a pipe.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

# Import AutoTee modules (relative import from same directory)
_script_dir = Path(__file__).parent
if str(_script_dir) not in sys.path:
    sys.path.insert(0, str(_script_dir))

from shell_structure import StructuralFacts, compile_patterns


class Reason(str, Enum):
    ALREADY_CAPTURED = 'already_captured'
    HAS_REDIRECTION = 'has_redirection'
    INTERACTIVE = 'interactive'
    TOO_SHORT = 'too_short'
    TRIVIAL = 'trivial'
    PIPED = 'piped'
    NO_PIPE = 'no_pipe'
    EXPENSIVE_PATTERN = 'expensive_pattern'


@dataclass(frozen=True)
class RewritePlan:
    should_rewrite: bool
    reason: Reason


Predicate = Callable[[str], bool]

# Legacy catalog of slow commands worth capturing even without a pipe.
LEGACY_EXPENSIVE_PATTERNS = [
    r'\b(?:npm|yarn|pnpm)\s+(?:run\s+)?(?:build|test|lint|typecheck|check)\b',
    r'\btsx\s+\S+\.(?:ts|js)\b',
    r'\bnode\s+\S+\.js\b',
    r'\bnpx\s+\S+',
    r'(?:^|[\s;&|(])find\s',
    r'\bgrep\s+(?:-\S*\s+)*-\S*r',
    r'(?:^|[\s;&|(])rg\s',
    r'(?:^|[\s;&|(])ag\s',
    r'\bgit\s+log\b',
    r'\bgit\s+diff\b.*--stat\b',
    r'\bgit\s+blame\b',
    r'\bmigrate\b',
    r'\bseed\b',
    r'\bprisma\b',
    r'\bdecree\b',
    r'\bcompliance\b',
    r'\baudit\b',
    r'\bdocker\s+(?:build|run)\b',
]


def legacy_predicates(extra_patterns: Sequence[str] = ()) -> List[Predicate]:
    """Build the legacy predicate list from the built-in catalog plus extras."""
    compiled = compile_patterns([*LEGACY_EXPENSIVE_PATTERNS, *extra_patterns])
    return [p.search for p in compiled]


def decide(command: str,
           facts: StructuralFacts,
           min_length: int = 10,
           predicates: Optional[Sequence[Predicate]] = None) -> RewritePlan:
    """
    Pure decision over StructuralFacts.

    `predicates` is the opt-in legacy list; None or empty means pipe-only.
    """
    if facts.has_existing_capture:
        return RewritePlan(False, Reason.ALREADY_CAPTURED)
    if facts.has_redirection:
        return RewritePlan(False, Reason.HAS_REDIRECTION)
    if facts.is_interactive:
        return RewritePlan(False, Reason.INTERACTIVE)
    if facts.length < min_length:
        return RewritePlan(False, Reason.TOO_SHORT)
    if facts.has_top_level_pipe:
        if facts.is_trivial:
            return RewritePlan(False, Reason.TRIVIAL)
        return RewritePlan(True, Reason.PIPED)
    if predicates and any(match(command) for match in predicates):
        return RewritePlan(True, Reason.EXPENSIVE_PATTERN)
    return RewritePlan(False, Reason.NO_PIPE)


class ActivationPolicy:
    """
    Configured decision function.

    Usage:
        policy = ActivationPolicy.from_config(config)
        plan = policy.decide(command, facts)
    """

    def __init__(self, min_length: int = 10, predicates: Optional[Sequence[Predicate]] = None):
        self.min_length = min_length
        self.predicates = list(predicates or [])

    @classmethod
    def from_config(cls, config) -> 'ActivationPolicy':
        predicates = None
        if config.get('activation.legacy_patterns', False):
            predicates = legacy_predicates(config.get('activation.expensive_patterns', []) or [])
        return cls(
            min_length=int(config.get('activation.min_length', 10)),
            predicates=predicates,
        )

    def decide(self, command: str, facts: StructuralFacts) -> RewritePlan:
        return decide(command, facts, self.min_length, self.predicates)
