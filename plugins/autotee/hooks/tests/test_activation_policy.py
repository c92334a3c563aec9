"""Activation policy: ordered short-circuit decision over structural facts.

Tests AP.01-AP.15. P0/P1.
"""

import pytest

from activation_policy import (
    ActivationPolicy,
    Reason,
    RewritePlan,
    decide,
    legacy_predicates,
)
from helpers import FakeConfig
from shell_structure import StructuralFacts, inspect


def _facts(**overrides):
    values = dict(
        has_top_level_pipe=False,
        has_redirection=False,
        has_existing_capture=False,
        is_interactive=False,
        is_trivial=False,
        length=40,
    )
    values.update(overrides)
    return StructuralFacts(**values)


def _decide(command, **kwargs):
    return decide(command, inspect(command), **kwargs)


# ---------------------------------------------------------------------------
# P0 - MUST PASS: concrete scenarios
# ---------------------------------------------------------------------------

@pytest.mark.p0
class TestScenarios:

    def test_ap01_piped_build_accepted(self):
        """AP.01: npm run build 2>&1 | tail -10 is accepted."""
        assert _decide("npm run build 2>&1 | tail -10") == RewritePlan(True, Reason.PIPED)

    def test_ap02_unpiped_build_rejected(self):
        """AP.02: npm run build without a pipe is rejected with NO_PIPE."""
        assert _decide("npm run build") == RewritePlan(False, Reason.NO_PIPE)

    def test_ap03_existing_tee_rejected(self):
        """AP.03: npm run build | tee out.log is already captured."""
        assert _decide("npm run build | tee out.log").reason is Reason.ALREADY_CAPTURED

    def test_ap04_dev_server_rejected(self):
        """AP.04: npm run dev is interactive."""
        assert _decide("npm run dev").reason is Reason.INTERACTIVE

    def test_ap05_redirection_rejected(self):
        """AP.05: commands writing to files are left alone."""
        assert _decide("npm run build > build.log").reason is Reason.HAS_REDIRECTION

    def test_ap06_too_short(self):
        """AP.06: commands shorter than min_length are rejected."""
        assert _decide("ls | wc").reason is Reason.TOO_SHORT

    def test_ap07_trivial_pipe(self):
        """AP.07: a short cheap first stage is rejected even with a pipe."""
        assert _decide("ls -la | wc -l").reason is Reason.TRIVIAL


# ---------------------------------------------------------------------------
# P0 - MUST PASS: ordering
# ---------------------------------------------------------------------------

@pytest.mark.p0
class TestOrdering:

    def test_ap08_capture_beats_everything(self):
        """AP.08: existing capture is checked first."""
        facts = _facts(has_existing_capture=True, has_redirection=True,
                       is_interactive=True, length=1, has_top_level_pipe=True)
        assert decide("x", facts).reason is Reason.ALREADY_CAPTURED

    def test_ap09_redirection_beats_interactive(self):
        """AP.09: redirection is checked before interactive."""
        facts = _facts(has_redirection=True, is_interactive=True)
        assert decide("x", facts).reason is Reason.HAS_REDIRECTION

    def test_ap10_interactive_beats_length(self):
        """AP.10: interactive is checked before length."""
        facts = _facts(is_interactive=True, length=1)
        assert decide("x", facts).reason is Reason.INTERACTIVE

    def test_ap11_min_length_configurable(self):
        """AP.11: min_length is a parameter."""
        facts = _facts(has_top_level_pipe=True, length=12)
        assert decide("x", facts, min_length=20).reason is Reason.TOO_SHORT
        assert decide("x", facts, min_length=5).should_rewrite


# ---------------------------------------------------------------------------
# P1 - SHOULD PASS: legacy catalog is opt-in
# ---------------------------------------------------------------------------

@pytest.mark.p1
class TestLegacyCatalog:

    def test_ap12_disabled_by_default(self):
        """AP.12: default policy never activates on command patterns alone."""
        policy = ActivationPolicy.from_config(FakeConfig())
        command = "npm run test -- --coverage"
        assert policy.decide(command, inspect(command)).reason is Reason.NO_PIPE

    def test_ap13_enabled_matches_expensive_commands(self):
        """AP.13: with legacy_patterns on, unpiped expensive commands activate."""
        policy = ActivationPolicy.from_config(FakeConfig({"activation.legacy_patterns": True}))
        for command in ("npm run test -- --coverage", "git log --oneline -n 50",
                        "find . -name '*.py'", "docker build -t app ."):
            plan = policy.decide(command, inspect(command))
            assert plan == RewritePlan(True, Reason.EXPENSIVE_PATTERN), command

    def test_ap14_extra_patterns_and_custom_predicates(self):
        """AP.14: extra regexes and plain callables act as predicates."""
        predicates = legacy_predicates([r"\bterraform\s+plan\b"])
        command = "terraform plan -out=tfplan"
        assert decide(command, inspect(command), predicates=predicates).should_rewrite

        only_make = [lambda c: c.startswith("make ")]
        assert decide("make everything now", _facts(), predicates=only_make).should_rewrite
        assert not decide("cargo build --release", _facts(), predicates=only_make).should_rewrite

    def test_ap15_predicates_never_override_guards(self):
        """AP.15: predicates are consulted only after every rejection guard."""
        predicates = legacy_predicates()
        command = "npm run build > out.log"
        assert decide(command, inspect(command), predicates=predicates).reason is Reason.HAS_REDIRECTION
