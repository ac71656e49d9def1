"""
Input validation for ROM names and JSON request bodies.

ROM names arrive from the browser and end up in the event log and in
``/roms/<name>`` URLs, so the policy is deliberately narrow: a flat ``.gba``
filename made of letters, digits, whitespace, dots, underscores and hyphens.
"""

import ntpath
import re
from dataclasses import dataclass
from typing import Any, Optional

from .config import MAX_BODY_DEPTH, MAX_ROM_NAME_LENGTH

# Rejection reasons, also used as security event tags
INVALID_LENGTH = 'invalid_length'
PATH_TRAVERSAL = 'path_traversal'
INVALID_CHARACTERS = 'invalid_characters'
INVALID_NAME = 'invalid_name'

REASON_MESSAGES = {
    INVALID_LENGTH: 'ROM name length is invalid.',
    PATH_TRAVERSAL: 'Invalid ROM name format.',
    INVALID_CHARACTERS: 'ROM name contains invalid characters.',
    INVALID_NAME: 'Invalid ROM name.',
}

ROM_NAME_PATTERN = re.compile(r'[A-Za-z0-9 \t\n\r\f\v._-]+\.[gG][bB][aA]')

_TRAVERSAL_TOKENS = ('..', '/', '\\')

_SCRIPT_BLOCK = re.compile(r'<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>', re.IGNORECASE)
_JS_SCHEME = re.compile(r'javascript:', re.IGNORECASE)
_INLINE_HANDLER = re.compile(r'on\w+\s*=', re.IGNORECASE)
_EMBED_TAGS = re.compile(r'<(?:iframe|object|embed)', re.IGNORECASE)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validate_rom_name: either a name or a reason code."""
    ok: bool
    name: Optional[str] = None
    reason: Optional[str] = None

    @property
    def message(self) -> str:
        return REASON_MESSAGES.get(self.reason, '') if self.reason else ''


def _has_traversal(name: str) -> bool:
    return any(token in name for token in _TRAVERSAL_TOKENS)


def _matches_rom_pattern(name: str) -> bool:
    return ROM_NAME_PATTERN.fullmatch(name) is not None


def _is_bare_name(name: str) -> bool:
    # ntpath splits on both separators
    return ntpath.basename(name) == name


def validate_rom_name(value: Any) -> ValidationResult:
    """
    Validate a user-supplied ROM name.

    Rules are applied in order and the first failure wins:
    length, traversal tokens, allowed characters + ``.gba`` extension,
    and finally a basename comparison.

    Args:
        value: Anything decoded from a request; non-strings are rejected.

    Returns:
        ValidationResult with the unchanged name on success.
    """
    if not isinstance(value, str) or not 1 <= len(value) <= MAX_ROM_NAME_LENGTH:
        return ValidationResult(ok=False, reason=INVALID_LENGTH)

    if _has_traversal(value):
        return ValidationResult(ok=False, reason=PATH_TRAVERSAL)

    if not _matches_rom_pattern(value):
        return ValidationResult(ok=False, reason=INVALID_CHARACTERS)

    if not _is_bare_name(value):
        return ValidationResult(ok=False, reason=INVALID_NAME)

    return ValidationResult(ok=True, name=value)


def is_listable_rom_name(name: str) -> bool:
    """Structural check used when listing the ROM directory."""
    return not _has_traversal(name) and _matches_rom_pattern(name)


def body_depth_exceeded(obj: Any, max_depth: int = MAX_BODY_DEPTH, depth: int = 0) -> bool:
    """True when any value in a decoded JSON document sits deeper than max_depth."""
    if depth > max_depth:
        return True
    if isinstance(obj, dict):
        return any(body_depth_exceeded(v, max_depth, depth + 1) for v in obj.values())
    if isinstance(obj, list):
        return any(body_depth_exceeded(v, max_depth, depth + 1) for v in obj)
    return False


def sanitize_text(text: Any, max_length: int = 512) -> Any:
    """Strip markup and script vectors from untrusted text before storing it."""
    if not isinstance(text, str):
        return text
    text = _SCRIPT_BLOCK.sub('', text)
    text = _JS_SCHEME.sub('', text)
    text = _INLINE_HANDLER.sub('', text)
    text = _EMBED_TAGS.sub('', text)
    return text.strip()[:max_length]
