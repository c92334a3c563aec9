#!/usr/bin/env python3
"""
AutoTee Freshness Scorer

Estimates how stale a capture is, 0 (stale) to 100 (fresh):

    score = 100 * exp(-lambda * hours_elapsed)

minus additive penalties, each clamped so the score never goes below 0:
- related files modified after the capture (skipped under 1 minute)
- the same command rerun since the capture
- uncommitted git changes (checked only for captures older than 1 hour)
- dependency manifests modified after the capture (older than 1 hour)
- environment hash differs from the one recorded at capture time

Filesystem and git probes are bounded by a timeout and a compute budget;
any failure contributes nothing. Scoring is advisory, so it never raises
for probe errors.
"""

from __future__ import annotations

import copy
import hashlib
import json
import math
import os
import subprocess
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

# Import AutoTee modules (relative import from same directory)
_script_dir = Path(__file__).parent
if str(_script_dir) not in sys.path:
    sys.path.insert(0, str(_script_dir))

from capture_ledger import Timestamp, to_datetime
from config_loader import get_config


DEFAULT_CONFIG = {
    'decay_lambda': 0.08,
    'file_change_penalty': 5,
    'rerun_penalty': 15,
    'git_change_penalty': 8,
    'package_change_penalty': 12,
    'env_change_penalty': 5,
    'base_confidence': 0.95,
    'uncertainty_per_hour': 0.1,
    'max_compute_ms': 10,
    'cache_enabled': True,
    'probe_timeout': 1.0,
}

# Gates, in hours
FILE_CHECK_MIN_HOURS = 1 / 60
WORKDIR_SCAN_MIN_HOURS = 0.5
GIT_CHECK_MIN_HOURS = 1.0
PACKAGE_CHECK_MIN_HOURS = 1.0

# Tolerances, in seconds
OUTPUT_FILE_TOLERANCE = 5
PACKAGE_TOLERANCE = 60

WORKDIR_SCAN_ENTRIES = 5
WORKDIR_MAX_FILES = 2
RELATED_FILES_LIMIT = 3

PACKAGE_MANIFESTS = ('package.json', 'package-lock.json', 'yarn.lock', 'pnpm-lock.yaml')
ENVIRONMENT_KEYS = ('NODE_ENV', 'PATH', 'HOME', 'PWD')


def _md5(text: str) -> str:
    return hashlib.md5(text.encode('utf-8'), usedforsecurity=False).hexdigest()


def hash_environment(env: Dict[str, str]) -> str:
    relevant = {key: env[key] for key in ENVIRONMENT_KEYS if env.get(key)}
    return _md5(json.dumps(relevant, sort_keys=True))


@dataclass
class CaptureMetadata:
    path: str = ''
    command: str = ''
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    size: int = 0
    hash: str = ''
    working_directory: str = field(default_factory=os.getcwd)
    related_files: List[str] = field(default_factory=list)
    system_state: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.timestamp = to_datetime(self.timestamp)

    @classmethod
    def from_record(cls, record, **extra) -> 'CaptureMetadata':
        """Build from a CaptureRecord (capture_ledger)."""
        return cls(
            path=record.path,
            command=record.command,
            timestamp=record.timestamp,
            size=record.size,
            **extra,
        )


@dataclass
class FreshnessResult:
    score: float = 0.0
    confidence: float = 0.0
    factors: Dict[str, float] = field(default_factory=dict)
    reasons: List[str] = field(default_factory=list)
    compute_time: float = 0.0   # milliseconds
    cached: bool = False


class FreshnessScorer:
    """
    Usage:
        scorer = FreshnessScorer.from_config(config)
        result = scorer.score(CaptureMetadata(path=..., command=..., timestamp=...))
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = {**DEFAULT_CONFIG, **(config or {})}
        self._cache: Dict[str, FreshnessResult] = {}

    @classmethod
    def from_config(cls, config) -> 'FreshnessScorer':
        return cls(config.get_section('freshness'))

    # === Public API ===

    def score(self,
              metadata: CaptureMetadata,
              current_state: Optional[Dict[str, Any]] = None,
              now: Optional[Timestamp] = None) -> FreshnessResult:
        started = time.perf_counter()
        current_state = current_state or {}

        key = self.cache_key(metadata, current_state, now)
        if self.config['cache_enabled'] and key in self._cache:
            hit = copy.deepcopy(self._cache[key])
            hit.cached = True
            hit.compute_time = (time.perf_counter() - started) * 1000
            return hit

        now_dt = to_datetime(now) if now is not None else datetime.now(timezone.utc)
        hours = max(0.0, (now_dt - metadata.timestamp).total_seconds() / 3600)
        deadline = started + self.config['max_compute_ms'] / 1000

        result = FreshnessResult()
        self._time_decay(hours, result)
        self._file_changes(metadata, hours, deadline, result)
        self._command_reruns(metadata, current_state, result)
        self._git_changes(metadata, hours, deadline, result)
        self._package_changes(metadata, hours, deadline, result)
        self._environment_changes(metadata, current_state, result)

        result.score = max(0.0, min(100.0, result.score))
        result.confidence = self._confidence(metadata, hours)
        result.compute_time = (time.perf_counter() - started) * 1000

        if self.config['cache_enabled']:
            self._cache[key] = copy.deepcopy(result)
        return result

    def cache_key(self, metadata: CaptureMetadata, current_state: Dict[str, Any],
                  now: Optional[Timestamp] = None) -> str:
        key_data = {
            'path': metadata.path,
            'command': metadata.command,
            'timestamp': metadata.timestamp.isoformat(),
            'size': metadata.size,
            'hash': metadata.hash,
            'working_directory': metadata.working_directory,
            'related_files': list(metadata.related_files),
            'system_state': json.dumps(metadata.system_state, sort_keys=True, default=str),
            'state': json.dumps(current_state, sort_keys=True, default=str),
        }
        if now is not None:
            key_data['now'] = to_datetime(now).isoformat()
        return _md5(json.dumps(key_data, sort_keys=True))

    def clear_cache(self):
        self._cache.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {'cache_size': len(self._cache), 'config': dict(self.config)}

    # === Factors ===

    def _penalize(self, result: FreshnessResult, factor: str, penalty: float, reason: str):
        result.factors[factor] = result.factors.get(factor, 0) - penalty
        result.score = max(0.0, result.score - penalty)
        result.reasons.append(reason)

    def _over_budget(self, deadline: float, check: str, result: FreshnessResult) -> bool:
        if time.perf_counter() > deadline:
            result.reasons.append(f"Skipped {check} check: compute budget exhausted")
            return True
        return False

    def _time_decay(self, hours: float, result: FreshnessResult):
        time_score = max(0.0, 100 * math.exp(-self.config['decay_lambda'] * hours))
        result.factors['time_decay'] = time_score
        result.score = time_score

        if hours >= 1:
            result.reasons.append(f"Capture is {hours:.1f} hours old")
        else:
            result.reasons.append(f"Capture is {hours * 60:.0f} minutes old")
        if time_score < 50:
            result.reasons.append('Significant time decay detected')

    def _file_changes(self, metadata: CaptureMetadata, hours: float, deadline: float,
                      result: FreshnessResult):
        if hours < FILE_CHECK_MIN_HOURS:
            return

        captured_at = metadata.timestamp.timestamp()
        changed: List[str] = []

        if metadata.path:
            try:
                if os.stat(metadata.path).st_mtime - captured_at > OUTPUT_FILE_TOLERANCE:
                    changed.append(metadata.path)
            except OSError:
                pass

        if hours > WORKDIR_SCAN_MIN_HOURS and not self._over_budget(deadline, 'working directory', result):
            changed.extend(
                self._recently_modified(metadata.working_directory, captured_at)[:WORKDIR_MAX_FILES]
            )

        for related in metadata.related_files[:RELATED_FILES_LIMIT]:
            try:
                if os.stat(related).st_mtime > captured_at:
                    changed.append(related)
            except OSError:
                pass

        if changed:
            penalty = len(changed) * self.config['file_change_penalty']
            self._penalize(result, 'file_changes', penalty,
                           f"{len(changed)} file(s) modified since capture: {', '.join(changed[:3])}")
            if len(changed) > 3:
                result.reasons.append(f"... and {len(changed) - 3} more files")

    def _recently_modified(self, directory: str, since: float) -> List[str]:
        found = []
        try:
            entries = sorted(os.listdir(directory))[:WORKDIR_SCAN_ENTRIES]
        except OSError:
            return found
        for name in entries:
            full = os.path.join(directory, name)
            try:
                st = os.stat(full)
            except OSError:
                continue
            if os.path.isfile(full) and st.st_mtime > since:
                found.append(full)
        return found

    def _command_reruns(self, metadata: CaptureMetadata, current_state: Dict[str, Any],
                        result: FreshnessResult):
        command_hash = _md5(metadata.command)
        reruns = 0
        for entry in current_state.get('recent_commands') or []:
            if not isinstance(entry, dict):
                continue
            if _md5(entry.get('command') or '') != command_hash:
                continue
            try:
                if to_datetime(entry.get('timestamp')) > metadata.timestamp:
                    reruns += 1
            except (TypeError, ValueError):
                continue

        if reruns:
            self._penalize(result, 'command_reruns', reruns * self.config['rerun_penalty'],
                           f"Same command run {reruns} time(s) since capture")

    def _run_git(self, args: List[str], cwd: str) -> Optional[subprocess.CompletedProcess]:
        try:
            return subprocess.run(
                ['git', *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.config['probe_timeout'],
                check=False,
            )
        except (OSError, subprocess.SubprocessError):
            return None

    def _git_changes(self, metadata: CaptureMetadata, hours: float, deadline: float,
                     result: FreshnessResult):
        if hours <= GIT_CHECK_MIN_HOURS or not os.path.isdir(metadata.working_directory):
            return
        if self._over_budget(deadline, 'git', result):
            return

        probe = self._run_git(['rev-parse', '--git-dir'], metadata.working_directory)
        if probe is None or probe.returncode != 0:
            return
        status = self._run_git(['status', '--porcelain'], metadata.working_directory)
        if status is None or status.returncode != 0:
            return
        if status.stdout.strip():
            self._penalize(result, 'git_changes', self.config['git_change_penalty'],
                           'Git repository has uncommitted changes')

    def _package_changes(self, metadata: CaptureMetadata, hours: float, deadline: float,
                         result: FreshnessResult):
        if hours < PACKAGE_CHECK_MIN_HOURS:
            return
        if self._over_budget(deadline, 'package', result):
            return

        captured_at = metadata.timestamp.timestamp()
        changed = []
        for name in PACKAGE_MANIFESTS:
            try:
                mtime = os.stat(os.path.join(metadata.working_directory, name)).st_mtime
            except OSError:
                continue
            if mtime - captured_at > PACKAGE_TOLERANCE:
                changed.append(name)

        if changed:
            self._penalize(result, 'package_changes', self.config['package_change_penalty'],
                           f"Dependencies changed since capture: {', '.join(changed)}")

    def _environment_changes(self, metadata: CaptureMetadata, current_state: Dict[str, Any],
                             result: FreshnessResult):
        old_hash = metadata.system_state.get('environment_hash')
        environment = current_state.get('environment')
        if not old_hash or not isinstance(environment, dict):
            return
        if hash_environment(environment) != old_hash:
            self._penalize(result, 'env_changes', self.config['env_change_penalty'],
                           'Environment variables changed')

    def _confidence(self, metadata: CaptureMetadata, hours: float) -> float:
        confidence = self.config['base_confidence'] - hours * self.config['uncertainty_per_hour']
        if not metadata.hash:
            confidence -= 0.1
        if not metadata.size:
            confidence -= 0.05
        if not metadata.related_files:
            confidence -= 0.05
        if hours < 0.5 and metadata.hash and metadata.size:
            confidence += 0.05
        return max(0.1, min(1.0, confidence))


def main():
    """CLI: score a capture file by its mtime."""
    import argparse

    parser = argparse.ArgumentParser(description='AutoTee Freshness Scorer')
    parser.add_argument('path', help='Capture file')
    parser.add_argument('--command', default='', help='Command that produced the capture')
    parser.add_argument('--cwd', default=os.getcwd(), help='Working directory of the command')
    args = parser.parse_args()

    try:
        st = os.stat(args.path)
    except OSError as e:
        print(f"[autotee] Error: {e}", file=sys.stderr)
        sys.exit(1)

    metadata = CaptureMetadata(
        path=args.path,
        command=args.command,
        timestamp=st.st_mtime,
        size=st.st_size,
        working_directory=args.cwd,
    )
    scorer = FreshnessScorer.from_config(get_config(args.cwd))
    result = scorer.score(metadata, {'environment': dict(os.environ)})
    print(json.dumps({
        'score': round(result.score, 1),
        'confidence': round(result.confidence, 2),
        'factors': result.factors,
        'reasons': result.reasons,
        'compute_time_ms': round(result.compute_time, 2),
    }, indent=2))


if __name__ == '__main__':
    main()
