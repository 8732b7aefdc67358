"""Decoding of JavaScript numeric and string literal source text."""

from __future__ import annotations

import math
import re

_RADIX_PREFIXES: tuple[tuple[str, int], ...] = (("0x", 16), ("0o", 8), ("0b", 2))

_ESCAPE_RE = re.compile(
    r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|[0-7]{1,3}|\r\n|[\s\S])"
)

_SIMPLE_ESCAPES: dict[str, str] = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
}

_LINE_CONTINUATIONS: frozenset[str] = frozenset({"\n", "\r", "\r\n", "\u2028", "\u2029"})

_SURROGATE_RE = re.compile(r"[\ud800-\udfff]")


class UnpairedSurrogateError(ValueError):
    """A string literal decodes to a UTF-16 surrogate with no partner."""


def has_unpaired_surrogate(text: str) -> bool:
    return _SURROGATE_RE.search(text) is not None


def is_bigint_literal(text: str) -> bool:
    return text.endswith("n")


def parse_number_literal(text: str) -> float:
    """Convert numeric literal text (``42``, ``1e3``, ``0xff``, ``1_000``) to a float.

    Raises ``ValueError`` for text that is not a number literal.
    """
    cleaned = text.replace("_", "")
    lowered = cleaned.lower()
    for prefix, base in _RADIX_PREFIXES:
        if lowered.startswith(prefix):
            return _int_to_float(int(cleaned[2:], base))
    if len(cleaned) > 1 and cleaned.startswith("0") and cleaned.isdigit():
        # Legacy octal (017) unless a digit rules it out (018 is decimal).
        if all(c in "01234567" for c in cleaned):
            return _int_to_float(int(cleaned, 8))
    return float(cleaned)


def _int_to_float(value: int) -> float:
    try:
        return float(value)
    except OverflowError:
        return math.inf


def _replace_escape(match: re.Match) -> str:
    esc = match.group(1)
    if esc.startswith("u{"):
        return chr(int(esc[2:-1], 16))
    if esc[0] in "ux" and len(esc) > 1:
        return chr(int(esc[1:], 16))
    if esc[0] in "01234567":
        return chr(int(esc, 8))
    if esc in _LINE_CONTINUATIONS:
        return ""
    return _SIMPLE_ESCAPES.get(esc, esc)


def decode_string_literal(text: str) -> str:
    """Strip the quotes from string literal text and resolve escape sequences.

    Raises ``ValueError`` for a code point outside the Unicode range, and
    ``UnpairedSurrogateError`` when a ``\\u`` escape leaves a lone surrogate,
    which cannot be written out as UTF-8.
    """
    body = text[1:-1]
    decoded = _ESCAPE_RE.sub(_replace_escape, body)
    # Join UTF-16 surrogate pairs written as two \\u escapes.
    joined = decoded.encode("utf-16-le", "surrogatepass").decode(
        "utf-16-le", "surrogatepass"
    )
    if has_unpaired_surrogate(joined):
        raise UnpairedSurrogateError(f"Unpaired surrogate in {text}")
    return joined
