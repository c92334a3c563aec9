#!/usr/bin/env python3
"""
AutoTee Unicode Path Helpers

Normalizes capture paths so that visually identical spellings compare equal:
- NFD on macOS (HFS+/APFS convention), NFC elsewhere
- zero-width characters and bidi controls removed
- orphan combining marks at the start dropped

Also classifies paths (CJK, right-to-left, emoji) for diagnostics.
"""

from __future__ import annotations

import re
import sys
import unicodedata
from pathlib import Path
from typing import Dict, Optional

# Import AutoTee modules (relative import from same directory)
_script_dir = Path(__file__).parent
if str(_script_dir) not in sys.path:
    sys.path.insert(0, str(_script_dir))

from shell_quoter import Dialect, quote


class UnicodePathError(ValueError):
    """Path cannot be normalized (empty, NUL bytes, too long)."""

    def __init__(self, message: str, code: str = 'UNICODE_PATH_ERROR', path: object = None):
        super().__init__(message)
        self.code = code
        self.path = path


NORMALIZATION_FORMS = ('NFC', 'NFD', 'NFKC', 'NFKD')

DEFAULT_FORM = 'NFD' if sys.platform == 'darwin' else 'NFC'
MAX_PATH_LENGTH = 260 if sys.platform == 'win32' else 4096

_ZERO_WIDTH_RE = re.compile('[\U0000200b-\U0000200d\U0000feff]')
_BIDI_CONTROL_RE = re.compile('[\U0000202a-\U0000202e\U00002066-\U00002069]')
_LEADING_COMBINING_RE = re.compile(
    '^[\U00000300-\U0000036f\U00001ab0-\U00001aff\U00001dc0-\U00001dff'
    '\U000020d0-\U000020ff\U0000fe20-\U0000fe2f]+'
)

_RTL_RE = re.compile(
    '[\U00000590-\U000005ff\U00000600-\U000006ff\U00000750-\U0000077f'
    '\U000008a0-\U000008ff\U0000fb1d-\U0000fdff\U0000fe70-\U0000feff]'
)
_CJK_RE = re.compile(
    '[\U00002e80-\U00002fdf\U00003040-\U000030ff\U00003100-\U000032ff'
    '\U00003400-\U00004dbf\U00004e00-\U00009fff\U0000ac00-\U0000d7af\U0000f900-\U0000faff]'
)
_EMOJI_RE = re.compile(
    '[\U0001f600-\U0001f64f\U0001f300-\U0001f5ff\U0001f680-\U0001f6ff'
    '\U0001f900-\U0001f9ff\U0001f1e0-\U0001f1ff\U00002600-\U000026ff\U00002700-\U000027bf]'
)


def normalize_path(path: str, form: Optional[str] = None) -> str:
    """
    Unicode-normalize a path and strip invisible characters.

    Raises UnicodePathError for empty/non-string input, NUL bytes,
    unknown normalization forms and paths over MAX_PATH_LENGTH.
    """
    if not isinstance(path, str) or not path:
        raise UnicodePathError('Input path must be a non-empty string', 'INVALID_INPUT', path)
    if '\x00' in path:
        raise UnicodePathError('Path contains null bytes', 'NULL_BYTES', path)

    norm_form = (form or DEFAULT_FORM).upper()
    if norm_form not in NORMALIZATION_FORMS:
        raise UnicodePathError(f"Unknown normalization form: {form}", 'INVALID_FORM', path)

    normalized = unicodedata.normalize(norm_form, path)
    normalized = _ZERO_WIDTH_RE.sub('', normalized)
    normalized = _BIDI_CONTROL_RE.sub('', normalized)
    normalized = _LEADING_COMBINING_RE.sub('', normalized)

    if len(normalized) > MAX_PATH_LENGTH:
        raise UnicodePathError(
            f"Path exceeds maximum length ({MAX_PATH_LENGTH}): {len(normalized)}",
            'PATH_TOO_LONG',
            path,
        )
    return normalized


def contains_rtl(path: str) -> bool:
    return bool(_RTL_RE.search(path))


def contains_cjk(path: str) -> bool:
    return bool(_CJK_RE.search(path))


def contains_emoji(path: str) -> bool:
    return bool(_EMOJI_RE.search(path))


def analyze_path(path: str) -> Dict:
    """Diagnostic breakdown of a path's Unicode properties."""
    normalized = normalize_path(path)
    return {
        'original': path,
        'normalized': normalized,
        'platform': sys.platform,
        'normalization_form': DEFAULT_FORM,
        'nfc': unicodedata.normalize('NFC', path),
        'nfd': unicodedata.normalize('NFD', path),
        'length': len(path),
        'byte_length': len(path.encode('utf-8', errors='surrogatepass')),
        'contains_rtl': contains_rtl(path),
        'contains_cjk': contains_cjk(path),
        'contains_emoji': contains_emoji(path),
        'shell_quoted': {d.value: quote(normalized, d) for d in Dialect},
    }


def main():
    """CLI: normalize or analyze a path."""
    import argparse
    import json

    parser = argparse.ArgumentParser(description='AutoTee Unicode Path Helpers')
    parser.add_argument('action', choices=['normalize', 'analyze'])
    parser.add_argument('path')
    parser.add_argument('--form', choices=NORMALIZATION_FORMS, help='Normalization form')
    args = parser.parse_args()

    try:
        if args.action == 'normalize':
            print(normalize_path(args.path, args.form))
        else:
            print(json.dumps(analyze_path(args.path), indent=2, ensure_ascii=False))
    except UnicodePathError as e:
        print(f"[autotee] Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
