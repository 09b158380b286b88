"""String escaping for JSON text output."""

from __future__ import annotations

from typing import Final

_CONTROL_LIMIT: Final = 0x20
_ASCII_LIMIT: Final = 0x7F
_BMP_LIMIT: Final = 0xFFFF

_ESCAPES: Final = {'"': '\\"', "\\": "\\\\"}


def _unicode_escape(code: int) -> str:
    """Returns the \\uXXXX escape of a code point, as surrogates if needed."""
    if code <= _BMP_LIMIT:
        return f"\\u{code:04x}"
    code -= 0x10000
    high = 0xD800 | (code >> 10)
    low = 0xDC00 | (code & 0x3FF)
    return f"\\u{high:04x}\\u{low:04x}"


def escape_string(s: str, ensure_ascii: bool = False) -> str:
    """
    Quotes a string for JSON output.

    Double quote and backslash get a leading backslash. Control characters
    below U+0020 are always written as \\u escapes with four hex digits;
    with ensure_ascii, everything above U+007F is escaped as well.
    """
    result = ['"']
    for char in s:
        escaped = _ESCAPES.get(char)
        if escaped is not None:
            result.append(escaped)
            continue

        code = ord(char)
        if code < _CONTROL_LIMIT or (ensure_ascii and code > _ASCII_LIMIT):
            result.append(_unicode_escape(code))
        else:
            result.append(char)
    result.append('"')
    return "".join(result)
