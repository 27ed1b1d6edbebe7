"""
Section splitter for long-form reference documents (framework notes,
prompt knowledge files, markdown guides).
"""
from __future__ import annotations

import re
from typing import List

from .assembler import batch_texts
from .models import estimate_tokens

HEADER_PATTERN = re.compile(r"^#{1,2}\s+\S.*$", re.MULTILINE)
PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")


def _sections(text: str) -> List[str]:
    starts = [match.start() for match in HEADER_PATTERN.finditer(text)]
    if not starts or starts[0] != 0:
        starts.insert(0, 0)
    bounds = starts + [len(text)]
    sections = []
    for begin, end in zip(bounds, bounds[1:]):
        section = text[begin:end].strip("\n").rstrip()
        if section.strip():
            sections.append(section)
    return sections


def _paragraphs(text: str) -> List[str]:
    return [part.strip("\n") for part in PARAGRAPH_BREAK.split(text) if part.strip()]


def split_knowledge(text: str, budget: float) -> List[str]:
    """
    Split ``text`` on ``#``/``##`` headers, falling back to paragraphs.

    A section larger than ``budget`` is paragraph-batched as well, so only a
    single paragraph that alone exceeds the budget is returned oversized.
    """
    sections = _sections(text)
    if len(sections) <= 1:
        return batch_texts(_paragraphs(text), budget)

    units: List[str] = []
    for section in sections:
        if estimate_tokens(section) <= budget:
            units.append(section)
        else:
            units.extend(batch_texts(_paragraphs(section), budget))
    return units
