"""
minimatch-style glob matching for relative POSIX paths.

``fnmatch`` lets ``*`` cross directory separators and has no brace
alternation, so patterns such as ``**/*+page.{js,ts}`` are compiled to
regular expressions here instead.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, List


def expand_braces(pattern: str) -> List[str]:
    """Expand ``{a,b}`` alternations (nested braces included)."""
    depth = 0
    open_index = -1
    for index, char in enumerate(pattern):
        if char == "{":
            if depth == 0:
                open_index = index
            depth += 1
        elif char == "}" and depth:
            depth -= 1
            if depth == 0:
                head, body, tail = pattern[:open_index], pattern[open_index + 1 : index], pattern[index + 1 :]
                options = _split_top_level(body)
                if len(options) == 1:
                    return [head + "{" + body + "}" + rest for rest in expand_braces(tail)]
                expanded: List[str] = []
                for option in options:
                    expanded.extend(expand_braces(head + option + tail))
                return expanded
    return [pattern]


def _split_top_level(body: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    current = ""
    for char in body:
        if char == "," and depth == 0:
            parts.append(current)
            current = ""
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        current += char
    parts.append(current)
    return parts


def _translate(pattern: str) -> str:
    out: List[str] = []
    index = 0
    length = len(pattern)
    while index < length:
        char = pattern[index]
        if pattern.startswith("**/", index):
            out.append("(?:.*/)?")
            index += 3
        elif pattern.startswith("**", index):
            out.append(".*")
            index += 2
        elif char == "*":
            out.append("[^/]*")
            index += 1
        elif char == "?":
            out.append("[^/]")
            index += 1
        elif char == "[":
            close = pattern.find("]", index + 1)
            if close == -1:
                out.append(re.escape(char))
                index += 1
            else:
                body = pattern[index + 1 : close]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                index = close + 1
        else:
            out.append(re.escape(char))
            index += 1
    return "".join(out)


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> "re.Pattern[str]":
    alternatives = [_translate(expanded.lstrip("/")) for expanded in expand_braces(pattern)]
    return re.compile(r"\A(?:" + "|".join(alternatives) + r")\Z")


def glob_match(path: str, pattern: str) -> bool:
    """True when the relative POSIX ``path`` matches ``pattern``."""
    if path.startswith("./"):
        path = path[2:]
    return compile_glob(pattern).match(path) is not None


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    return any(glob_match(path, pattern) for pattern in patterns)
