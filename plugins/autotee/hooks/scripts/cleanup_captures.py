#!/usr/bin/env python3
"""
Cleanup script for AutoTee capture files.

Deletes {prefix}-*.log files in the capture directory whose mtime is
older than retention.max_age_min (default 24h). Other files are never
touched, and files that vanish while we look at them are skipped.

Runs on:
- SessionStart (via hooks.json)
- Manually: cleanup_captures.py [--dir DIR] [--max-age-min N] [-v]
"""
from __future__ import annotations

import os
import sys
import tempfile
import time
from pathlib import Path
from typing import Dict, Optional

# Import AutoTee modules (relative import from same directory)
_script_dir = Path(__file__).parent
if str(_script_dir) not in sys.path:
    sys.path.insert(0, str(_script_dir))

from command_rewriter import DEFAULT_PREFIX
from config_loader import get_config

DEFAULT_MAX_AGE_MIN = 1440  # 24h


def is_capture_file(filename: str, prefix: str = DEFAULT_PREFIX) -> bool:
    """Check if file was written by the capture stage ({prefix}-*.log)."""
    head = f"{prefix}-"
    return (
        filename.startswith(head)
        and filename.endswith('.log')
        and len(filename) > len(head) + len('.log')
    )


def capture_dir(temp_dir: Optional[str] = None) -> Path:
    return Path(temp_dir or tempfile.gettempdir())


def cleanup_captures(directory: Optional[str] = None,
                     prefix: str = DEFAULT_PREFIX,
                     max_age_min: float = DEFAULT_MAX_AGE_MIN,
                     now: Optional[float] = None,
                     verbose: bool = False) -> Dict:
    """
    Delete expired capture files.

    Returns {'deleted': count, 'bytes': freed, 'kept': count}.
    """
    now = time.time() if now is None else now
    summary = {'deleted': 0, 'bytes': 0, 'kept': 0}

    root = capture_dir(directory)
    try:
        entries = list(root.iterdir())
    except OSError:
        if verbose:
            print(f"[autotee] No capture directory: {root}")
        return summary

    for filepath in entries:
        if not is_capture_file(filepath.name, prefix):
            continue
        try:
            if not filepath.is_file():
                continue
            stat = filepath.stat()
            age_minutes = (now - stat.st_mtime) / 60
            if age_minutes <= max_age_min:
                summary['kept'] += 1
                continue
            filepath.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            print(f"[autotee] Warning: could not remove {filepath}: {e}", file=sys.stderr)
            continue

        summary['deleted'] += 1
        summary['bytes'] += stat.st_size
        if verbose:
            print(f"[autotee] Deleted (TTL): {filepath.name}")

    return summary


def format_summary(summary: Dict) -> str:
    return (
        f"[autotee] Cleanup: deleted {summary['deleted']} files "
        f"({summary['bytes'] / 1024:.1f}KB), kept {summary['kept']}"
    )


def main():
    """Run cleanup from command line or SessionStart hook."""
    import argparse

    config = get_config(os.getcwd())

    parser = argparse.ArgumentParser(description='AutoTee capture cleanup')
    parser.add_argument('--dir', default=config.get('capture.temp_dir') or None,
                        help='Capture directory (default: platform temp dir)')
    parser.add_argument('--prefix', default=config.get('capture.prefix', DEFAULT_PREFIX))
    parser.add_argument('--max-age-min', type=float,
                        default=config.get('retention.max_age_min', DEFAULT_MAX_AGE_MIN),
                        help='Delete captures older than this many minutes')
    parser.add_argument('--verbose', '-v', action='store_true')
    args = parser.parse_args()

    summary = cleanup_captures(args.dir, args.prefix, args.max_age_min, verbose=args.verbose)
    if args.verbose or summary['deleted'] > 0:
        print(format_summary(summary))


if __name__ == '__main__':
    main()
