#!/usr/bin/env python3
"""
AutoTee Configuration Loader

Loads configuration with proper precedence:
1. Environment variables (highest - can hotfix without file edits)
2. Repo config (.autoteerc.toml or .autoteerc.json in project root)
3. User config (~/.autoteerc.toml or ~/.autoteerc.json)
4. Built-in defaults (lowest)

Within same tier: TOML checked before JSON (first found wins).
"""

from __future__ import annotations

import copy
import json
import os
import sys
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


CONFIG_BASENAME = '.autoteerc'

# === Default Configuration ===
DEFAULTS = {
    'activation': {
        'min_length': 10,
        'trivial_max_length': 20,
        'legacy_patterns': False,
        'expensive_patterns': [],
        'interactive_patterns': [],
    },
    'capture': {
        'prefix': 'autotee',
        'temp_dir': '',        # empty = platform temp dir
        'head_lines': 100,     # truncation stage when there is no pipe
        'variable': 'AUTOTEE_CAPTURE',
    },
    'ledger': {
        'max_history': 10,
        'atomic': True,
        'verbose': False,
    },
    'freshness': {
        'decay_lambda': 0.08,
        'file_change_penalty': 5,
        'rerun_penalty': 15,
        'git_change_penalty': 8,
        'package_change_penalty': 12,
        'env_change_penalty': 5,
        'max_compute_ms': 10,
        'cache_enabled': True,
        'probe_timeout': 1.0,
    },
    'retention': {
        'max_age_min': 1440,   # 24h
    },
    'export': {
        'shell': 'bash',
    },
}


def _deep_merge(base: Dict, overlay: Dict) -> Dict:
    """Deep merge overlay into base, returning new dict."""
    result = copy.deepcopy(base)
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_toml(path: Path) -> Optional[Dict]:
    """Load TOML file if it exists."""
    if not path.exists():
        return None
    try:
        with open(path, 'rb') as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        print(f"[autotee] Warning: ignoring {path}: {e}", file=sys.stderr)
        return None


def _load_json(path: Path) -> Optional[Dict]:
    """Load JSON file if it exists."""
    if not path.exists():
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        print(f"[autotee] Warning: ignoring {path}: {e}", file=sys.stderr)
        return None
    if not isinstance(data, dict):
        print(f"[autotee] Warning: ignoring {path}: top level is not an object", file=sys.stderr)
        return None
    return data


def _load_config_file(directory: Path) -> Tuple[Optional[Dict], Optional[Path]]:
    """
    Try to load config from directory.
    TOML checked before JSON (first found wins within tier).

    Returns (config, loaded_path) so sources report the file actually used.
    """
    toml_path = directory / f'{CONFIG_BASENAME}.toml'
    config = _load_toml(toml_path)
    if config is not None:
        return config, toml_path

    json_path = directory / f'{CONFIG_BASENAME}.json'
    config = _load_json(json_path)
    if config is not None:
        return config, json_path

    return None, None


def _env_to_config() -> Dict:
    """
    Convert AUTOTEE_* environment variables to config dict.

    Mapping:
    - AUTOTEE_MIN_LENGTH -> activation.min_length
    - AUTOTEE_TRIVIAL_MAX_LENGTH -> activation.trivial_max_length
    - AUTOTEE_LEGACY_PATTERNS -> activation.legacy_patterns
    - AUTOTEE_EXPENSIVE_PATTERNS -> activation.expensive_patterns (pipe-separated)
    - AUTOTEE_INTERACTIVE_PATTERNS -> activation.interactive_patterns (pipe-separated)
    - AUTOTEE_PREFIX -> capture.prefix
    - AUTOTEE_TEMP_DIR -> capture.temp_dir
    - AUTOTEE_HEAD_LINES -> capture.head_lines
    - AUTOTEE_VARIABLE -> capture.variable
    - AUTOTEE_MAX_HISTORY -> ledger.max_history
    - AUTOTEE_ATOMIC -> ledger.atomic
    - AUTOTEE_VERBOSE -> ledger.verbose
    - AUTOTEE_DECAY_LAMBDA -> freshness.decay_lambda
    - AUTOTEE_MAX_COMPUTE_MS -> freshness.max_compute_ms
    - AUTOTEE_RETENTION_MIN -> retention.max_age_min
    - AUTOTEE_SHELL -> export.shell
    """
    config: Dict[str, Any] = {}

    def _int(key: str) -> Optional[int]:
        val = os.environ.get(key)
        if val is None:
            return None
        try:
            return int(val)
        except ValueError:
            return None

    def _float(key: str) -> Optional[float]:
        val = os.environ.get(key)
        if val is None:
            return None
        try:
            return float(val)
        except ValueError:
            return None

    def _bool(key: str) -> Optional[bool]:
        val = os.environ.get(key)
        if val is None:
            return None
        return val.lower() in ('1', 'true', 'yes', 'on')

    def _str(key: str) -> Optional[str]:
        return os.environ.get(key)

    def _list_pipe(key: str) -> Optional[list]:
        val = os.environ.get(key)
        if val is None:
            return None
        return [x.strip() for x in val.split('|') if x.strip()]

    # Activation
    activation = {}
    if (v := _int('AUTOTEE_MIN_LENGTH')) is not None:
        activation['min_length'] = v
    if (v := _int('AUTOTEE_TRIVIAL_MAX_LENGTH')) is not None:
        activation['trivial_max_length'] = v
    if (v := _bool('AUTOTEE_LEGACY_PATTERNS')) is not None:
        activation['legacy_patterns'] = v
    if (v := _list_pipe('AUTOTEE_EXPENSIVE_PATTERNS')) is not None:
        activation['expensive_patterns'] = v
    if (v := _list_pipe('AUTOTEE_INTERACTIVE_PATTERNS')) is not None:
        activation['interactive_patterns'] = v
    if activation:
        config['activation'] = activation

    # Capture
    capture = {}
    if (v := _str('AUTOTEE_PREFIX')) is not None and v.strip():
        capture['prefix'] = v.strip()
    if (v := _str('AUTOTEE_TEMP_DIR')) is not None:
        capture['temp_dir'] = v
    if (v := _int('AUTOTEE_HEAD_LINES')) is not None:
        capture['head_lines'] = v
    if (v := _str('AUTOTEE_VARIABLE')) is not None and v.strip():
        capture['variable'] = v.strip()
    if capture:
        config['capture'] = capture

    # Ledger
    ledger = {}
    if (v := _int('AUTOTEE_MAX_HISTORY')) is not None:
        ledger['max_history'] = v
    if (v := _bool('AUTOTEE_ATOMIC')) is not None:
        ledger['atomic'] = v
    if (v := _bool('AUTOTEE_VERBOSE')) is not None:
        ledger['verbose'] = v
    if ledger:
        config['ledger'] = ledger

    # Freshness
    freshness = {}
    if (v := _float('AUTOTEE_DECAY_LAMBDA')) is not None:
        freshness['decay_lambda'] = v
    if (v := _float('AUTOTEE_MAX_COMPUTE_MS')) is not None:
        freshness['max_compute_ms'] = v
    if freshness:
        config['freshness'] = freshness

    # Retention
    if (v := _int('AUTOTEE_RETENTION_MIN')) is not None:
        config['retention'] = {'max_age_min': v}

    # Export
    if (v := _str('AUTOTEE_SHELL')) is not None and v.strip():
        config['export'] = {'shell': v.strip()}

    return config


def is_disabled(cwd: Optional[str] = None) -> bool:
    """
    Escape hatch: AUTOTEE_DISABLE env var or .autotee/DISABLE file in cwd.
    """
    if os.environ.get('AUTOTEE_DISABLE'):
        return True
    if cwd and os.path.exists(os.path.join(cwd, '.autotee', 'DISABLE')):
        return True
    return False


class AutoTeeConfig:
    """
    AutoTee configuration with proper precedence.

    Usage:
        config = AutoTeeConfig.load(cwd='/path/to/project')
        min_length = config.get('activation.min_length')
        capture = config.get_section('capture')
    """

    def __init__(self, merged_config: Dict, sources: Dict[str, str]):
        self._config = merged_config
        self._sources = sources  # Track where each value came from

    @classmethod
    def load(cls, cwd: Optional[str] = None) -> 'AutoTeeConfig':
        """
        Load configuration with proper precedence.

        Precedence (higher wins, merges down):
        1. Environment variables
        2. Repo config (.autoteerc.toml/.json in cwd)
        3. User config (~/.autoteerc.toml/.json)
        4. Built-in defaults
        """
        sources = {}

        config = copy.deepcopy(DEFAULTS)
        sources['base'] = 'defaults'

        # Layer 3: User config
        user_config, user_config_path = _load_config_file(Path.home())
        if user_config:
            config = _deep_merge(config, user_config)
            sources['user'] = str(user_config_path)

        # Layer 2: Repo config
        if cwd:
            repo_config, repo_config_path = _load_config_file(Path(cwd))
            if repo_config:
                config = _deep_merge(config, repo_config)
                sources['repo'] = str(repo_config_path)

        # Layer 1: Environment variables (highest priority)
        env_config = _env_to_config()
        if env_config:
            config = _deep_merge(config, env_config)
            sources['env'] = 'AUTOTEE_* environment variables'

        return cls(config, sources)

    @classmethod
    def defaults(cls) -> 'AutoTeeConfig':
        """Config made of built-in defaults only (no files, no env)."""
        return cls(copy.deepcopy(DEFAULTS), {'base': 'defaults'})

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get config value by dot-notation key.

        Examples:
            config.get('activation.min_length')  # -> 10
            config.get('capture.prefix')  # -> 'autotee'
            config.get('ledger.atomic')  # -> True
        """
        parts = key.split('.')
        value = self._config
        for part in parts:
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default
        return value

    def get_section(self, section: str) -> Dict:
        """Get entire config section."""
        return self._config.get(section, {})

    @property
    def sources(self) -> Dict[str, str]:
        """Get mapping of config layers to their sources."""
        return self._sources.copy()

    def to_dict(self) -> Dict:
        """Get full config as dict."""
        return copy.deepcopy(self._config)

    def format_sources(self) -> str:
        """Format sources for display."""
        lines = []
        for layer, source in self._sources.items():
            lines.append(f"  {layer}: {source}")
        return '\n'.join(lines)


# === Convenience functions for direct use ===

_cached_config: Optional[AutoTeeConfig] = None
_cached_cwd: Optional[str] = None


def get_config(cwd: Optional[str] = None, force_reload: bool = False) -> AutoTeeConfig:
    """
    Get cached config, reloading if cwd changed or force_reload=True.

    This is the main entry point for other scripts.
    """
    global _cached_config, _cached_cwd

    if force_reload or _cached_config is None or _cached_cwd != cwd:
        _cached_config = AutoTeeConfig.load(cwd)
        _cached_cwd = cwd

    return _cached_config


def get_value(key: str, default: Any = None, cwd: Optional[str] = None) -> Any:
    """Convenience function to get a single config value."""
    return get_config(cwd).get(key, default)


# === CLI for testing/debugging ===

def main():
    """CLI for debugging config loading."""
    import argparse

    parser = argparse.ArgumentParser(description='AutoTee Config Loader')
    parser.add_argument('--cwd', default=os.getcwd(), help='Working directory')
    parser.add_argument('--json', action='store_true', help='Output as JSON')
    parser.add_argument('--sources', action='store_true', help='Show config sources')
    parser.add_argument('key', nargs='?', help='Config key to get (dot notation)')

    args = parser.parse_args()

    config = AutoTeeConfig.load(args.cwd)

    if args.sources:
        print("Configuration sources:")
        print(config.format_sources())
        print()

    if args.key:
        value = config.get(args.key)
        if args.json:
            print(json.dumps(value, indent=2))
        else:
            print(f"{args.key} = {value}")
    else:
        if not args.json:
            print("Full configuration:")
        print(json.dumps(config.to_dict(), indent=2))


if __name__ == '__main__':
    main()
