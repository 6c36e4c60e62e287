"""
Brace-counting scanner for JSON literals embedded in JavaScript.

A single linear pass tracks nesting depth, quote state and backslash
escapes, so nested objects and braces inside strings are handled without
a regular expression.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, Iterator, List, Optional, Tuple

_OPENERS = {"{": "}", "[": "]"}
_QUOTES = {'"', "'", "`"}


def scan_balanced(text: str, start: int) -> Optional[str]:
    """
    Return the balanced ``{...}`` or ``[...]`` literal beginning at ``start``.

    Returns None when ``start`` is not an opening bracket, when brackets are
    mismatched, or when the text ends before the literal closes.
    """
    if start < 0 or start >= len(text) or text[start] not in _OPENERS:
        return None

    stack: List[str] = []
    quote: Optional[str] = None
    escaped = False

    for index in range(start, len(text)):
        char = text[index]

        if quote is not None:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue

        if char in _QUOTES:
            quote = char
        elif char in _OPENERS:
            stack.append(_OPENERS[char])
        elif char in ("}", "]"):
            if not stack or stack.pop() != char:
                return None
            if not stack:
                return text[start : index + 1]

    return None


def _assignment_pattern(names: Iterable[str]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(name) for name in names)
    return re.compile(
        rf"(?:\bwindow\.|\b(?:var|let|const)\s+)({alternatives})\s*=\s*(?=\{{)",
    )


def find_assignments(script: str, names: Iterable[str]) -> Iterator[Tuple[str, str]]:
    """
    Yield ``(name, literal)`` for ``window.<name> = {...}`` and
    ``var|let|const <name> = {...}`` assignments in ``script``.
    """
    names = list(names)
    if not names:
        return
    for match in _assignment_pattern(names).finditer(script):
        literal = scan_balanced(script, match.end())
        if literal is not None:
            yield match.group(1), literal


def _object_spans(script: str) -> List[Tuple[int, int]]:
    """
    ``(start, end)`` of every ``{...}`` that closes, found in one pass.

    Quotes are only tracked inside a bracket. A mismatched closer drops the
    brackets still open, and brackets never closed are ignored.
    """
    spans: List[Tuple[int, int]] = []
    open_brackets: List[Tuple[str, int]] = []
    quote: Optional[str] = None
    escaped = False

    for index, char in enumerate(script):
        if quote is not None:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue

        if char in _QUOTES and open_brackets:
            quote = char
        elif char in _OPENERS:
            open_brackets.append((_OPENERS[char], index))
        elif char in ("}", "]"):
            if not open_brackets or open_brackets[-1][0] != char:
                open_brackets.clear()
                continue
            _, start = open_brackets.pop()
            if char == "}":
                spans.append((start, index + 1))
    return spans


def iter_objects(script: str, min_length: int = 100) -> List[str]:
    """
    Every top-level balanced ``{...}`` substring of ``script``, largest first.

    Objects nested in another object are not returned separately. Candidates
    shorter than ``min_length`` are dropped.
    """
    objects: List[str] = []
    covered_until = -1
    for start, end in sorted(_object_spans(script)):
        if start < covered_until:
            continue
        covered_until = end
        if end - start >= min_length:
            objects.append(script[start:end])
    objects.sort(key=len, reverse=True)
    return objects


def find_keyed_arrays(script: str, keys: Iterable[str]) -> Iterator[Tuple[str, str]]:
    """Yield ``(key, literal)`` for ``key: [...]`` and ``"key": [...]`` pairs."""
    for key in keys:
        pattern = re.compile(rf"""(?<![\w$])["']?{re.escape(key)}["']?\s*:\s*(?=\[)""")
        for match in pattern.finditer(script):
            literal = scan_balanced(script, match.end())
            if literal is not None:
                yield key, literal


def loads_lenient(literal: str) -> Any:
    """``json.loads`` that answers None instead of raising on bad input."""
    try:
        return json.loads(literal)
    except (json.JSONDecodeError, RecursionError):
        return None
