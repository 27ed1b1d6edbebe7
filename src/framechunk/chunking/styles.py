"""
Rule-level splitting of component stylesheets.
"""
from __future__ import annotations

from typing import List, Optional, Tuple


def split_css_rules(css: str) -> List[Tuple[int, str]]:
    """
    Top-level rules and at-rules of ``css`` as ``(offset, text)``.

    Nested blocks (``@media``, ``@supports``) stay inside their parent rule and
    comments stay with the rule that follows them.
    """
    units: List[Tuple[int, str]] = []
    depth = 0
    start = 0
    quote: Optional[str] = None
    cursor = 0
    length = len(css)

    def close_unit(end: int) -> None:
        piece = css[start:end]
        if piece.strip():
            leading = len(piece) - len(piece.lstrip())
            units.append((start + leading, piece.strip()))

    while cursor < length:
        char = css[cursor]
        if quote is not None:
            if char == "\\":
                cursor += 1
            elif char == quote:
                quote = None
        elif css.startswith("/*", cursor):
            close = css.find("*/", cursor + 2)
            cursor = length if close == -1 else close + 2
            continue
        elif char in "\"'":
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth = max(depth - 1, 0)
            if depth == 0:
                close_unit(cursor + 1)
                start = cursor + 1
        elif char == ";" and depth == 0:
            close_unit(cursor + 1)
            start = cursor + 1
        cursor += 1

    close_unit(length)
    return units
