"""Configuration: layered precedence, env mapping, escape hatch.

Tests CF.01-CF.12. P0/P1.
"""

import json

import pytest

import config_loader
from config_loader import AutoTeeConfig, DEFAULTS, get_config, get_value, is_disabled


# ---------------------------------------------------------------------------
# P0 - MUST PASS: precedence
# ---------------------------------------------------------------------------

@pytest.mark.p0
class TestPrecedence:

    def test_cf01_defaults(self, project_dir):
        """CF.01: with no files and no env, built-in defaults apply."""
        config = AutoTeeConfig.load(str(project_dir))
        assert config.get("activation.min_length") == 10
        assert config.get("activation.trivial_max_length") == 20
        assert config.get("activation.legacy_patterns") is False
        assert config.get("capture.prefix") == "autotee"
        assert config.sources == {"base": "defaults"}

    def test_cf02_user_toml(self, isolated_env, project_dir):
        """CF.02: ~/.autoteerc.toml overrides defaults."""
        (isolated_env / ".autoteerc.toml").write_text("[activation]\nmin_length = 25\n")
        config = AutoTeeConfig.load(str(project_dir))
        assert config.get("activation.min_length") == 25
        assert config.get("activation.trivial_max_length") == 20
        assert config.sources["user"].endswith(".autoteerc.toml")

    def test_cf03_repo_overrides_user(self, isolated_env, project_dir):
        """CF.03: repo config wins over user config."""
        (isolated_env / ".autoteerc.toml").write_text('[capture]\nprefix = "user"\n')
        (project_dir / ".autoteerc.json").write_text(json.dumps({"capture": {"prefix": "repo"}}))
        config = AutoTeeConfig.load(str(project_dir))
        assert config.get("capture.prefix") == "repo"
        assert "repo" in config.sources

    def test_cf04_env_overrides_files(self, monkeypatch, project_dir):
        """CF.04: AUTOTEE_* variables win over every file."""
        (project_dir / ".autoteerc.toml").write_text("[ledger]\nmax_history = 3\n")
        monkeypatch.setenv("AUTOTEE_MAX_HISTORY", "7")
        config = AutoTeeConfig.load(str(project_dir))
        assert config.get("ledger.max_history") == 7
        assert "env" in config.sources

    def test_cf05_toml_before_json(self, project_dir):
        """CF.05: within a tier, TOML is read before JSON."""
        (project_dir / ".autoteerc.toml").write_text('[export]\nshell = "fish"\n')
        (project_dir / ".autoteerc.json").write_text(json.dumps({"export": {"shell": "zsh"}}))
        assert AutoTeeConfig.load(str(project_dir)).get("export.shell") == "fish"


# ---------------------------------------------------------------------------
# P1 - SHOULD PASS: env mapping and robustness
# ---------------------------------------------------------------------------

@pytest.mark.p1
class TestEnvironment:

    def test_cf06_env_types(self, monkeypatch, project_dir):
        """CF.06: numeric, boolean and list variables are converted."""
        monkeypatch.setenv("AUTOTEE_LEGACY_PATTERNS", "true")
        monkeypatch.setenv("AUTOTEE_EXPENSIVE_PATTERNS", r"terraform\s+plan | ansible")
        monkeypatch.setenv("AUTOTEE_DECAY_LAMBDA", "0.2")
        monkeypatch.setenv("AUTOTEE_ATOMIC", "0")
        config = AutoTeeConfig.load(str(project_dir))
        assert config.get("activation.legacy_patterns") is True
        assert config.get("activation.expensive_patterns") == [r"terraform\s+plan", "ansible"]
        assert config.get("freshness.decay_lambda") == 0.2
        assert config.get("ledger.atomic") is False

    def test_cf07_invalid_numbers_ignored(self, monkeypatch, project_dir):
        """CF.07: unparsable numeric variables leave the default in place."""
        monkeypatch.setenv("AUTOTEE_MIN_LENGTH", "lots")
        assert AutoTeeConfig.load(str(project_dir)).get("activation.min_length") == 10

    def test_cf08_malformed_file_ignored(self, project_dir, capsys):
        """CF.08: a malformed config file is treated as absent, with a warning."""
        (project_dir / ".autoteerc.toml").write_text("[activation\nmin_length = ")
        config = AutoTeeConfig.load(str(project_dir))
        assert config.get("activation.min_length") == 10
        assert "[autotee] Warning" in capsys.readouterr().err

    def test_cf09_non_object_json_ignored(self, project_dir):
        """CF.09: JSON that is not an object is ignored."""
        (project_dir / ".autoteerc.json").write_text("[1, 2, 3]")
        assert "repo" not in AutoTeeConfig.load(str(project_dir)).sources

    def test_cf10_escape_hatch(self, monkeypatch, project_dir):
        """CF.10: AUTOTEE_DISABLE or .autotee/DISABLE turn the hook off."""
        assert not is_disabled(str(project_dir))
        (project_dir / ".autotee").mkdir()
        (project_dir / ".autotee" / "DISABLE").write_text("")
        assert is_disabled(str(project_dir))

        other = project_dir / "other"
        other.mkdir()
        monkeypatch.setenv("AUTOTEE_DISABLE", "1")
        assert is_disabled(str(other))

    def test_cf11_cached_accessor(self, project_dir, tmp_path):
        """CF.11: get_config caches per cwd and reloads on force_reload."""
        first = get_config(str(project_dir))
        assert get_config(str(project_dir)) is first
        assert get_config(str(project_dir), force_reload=True) is not first
        assert get_value("capture.variable", cwd=str(project_dir)) == "AUTOTEE_CAPTURE"

    def test_cf12_accessors_return_copies(self):
        """CF.12: to_dict is a deep copy; unknown keys give the default."""
        config = AutoTeeConfig.defaults()
        data = config.to_dict()
        data["activation"]["min_length"] = 999
        assert config.get("activation.min_length") == 10
        assert config.get("nope.missing", "fallback") == "fallback"
        assert config.get_section("retention") == DEFAULTS["retention"]
        assert "base: defaults" in config.format_sources()
        assert config_loader.CONFIG_BASENAME == ".autoteerc"
