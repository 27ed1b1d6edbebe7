"""
Recursive, size-bounded splitting of component templates.

A node that fits the budget is emitted whole. A node that does not is
replaced by the candidates of its children; when that yields at most one
candidate the oversized node is kept whole and reported in
:attr:`TemplateSplitter.warnings`. Whitespace-only and very short text
runs between children are not emitted on their own.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..logger import get_logger
from .models import estimate_tokens
from .svelte_markup import (
    AwaitBlock,
    Comment,
    EachBlock,
    Element,
    Fragment,
    IfBlock,
    InlineComponent,
    KeyBlock,
    MustacheTag,
    Node,
    Other,
    Text,
    children_of,
    walk,
)

log = get_logger(__name__)

BLOCK_TYPES = {
    IfBlock: "if",
    EachBlock: "each",
    AwaitBlock: "await",
    KeyBlock: "key",
}


@dataclass
class TemplateCandidate:
    kind: str
    content: str
    size: float
    start: int
    end: int
    metadata: Dict[str, Any] = field(default_factory=dict)
    oversized: bool = False
    reason: Optional[str] = None


def classify(node: Node) -> str:
    if isinstance(node, Fragment):
        return "template"
    if isinstance(node, Element):
        return "element"
    if isinstance(node, InlineComponent):
        return "component"
    if isinstance(node, (IfBlock, EachBlock, AwaitBlock, KeyBlock)):
        return "block"
    if isinstance(node, Text):
        return "text"
    if isinstance(node, (Comment, MustacheTag, Other)):
        return "other"
    raise TypeError(f"Unknown template node: {type(node).__name__}")


def _attribute_map(node: Node) -> Dict[str, Any]:
    if not isinstance(node, (Element, InlineComponent)):
        return {}
    return {attribute.name: attribute.value for attribute in node.attributes}


def _child_components(node: Node) -> List[str]:
    names: List[str] = []
    for descendant in walk(node):
        if isinstance(descendant, InlineComponent) and descendant.name not in names:
            names.append(descendant.name)
    return names


def _describe(node: Node) -> Dict[str, Any]:
    attributes = _attribute_map(node)
    metadata: Dict[str, Any] = {
        "nodeType": type(node).__name__,
        "startOffset": node.start,
        "endOffset": node.end,
        "childComponents": _child_components(node),
    }
    if isinstance(node, (Element, InlineComponent)):
        metadata["tag"] = node.name
        metadata["attributes"] = attributes
    if isinstance(node, InlineComponent):
        metadata["componentName"] = node.name
    metadata["hasSlot"] = (
        "slot" in attributes
        or any(name.startswith("let:") for name in attributes)
        or any(isinstance(child, Element) and child.name == "slot" for child in [node, *walk(node)])
    )
    metadata["hasBinding"] = any(name.startswith("bind:") for name in attributes)
    block_type = BLOCK_TYPES.get(type(node))
    if block_type is not None:
        metadata["blockType"] = block_type
        metadata["expression"] = node.expression  # type: ignore[union-attr]
    if isinstance(node, Other):
        metadata["otherKind"] = node.kind
        metadata["fields"] = dict(node.fields)
    return metadata


class TemplateSplitter:
    """
    Split a template tree into budget-sized candidates.

    One instance walks one tree; it is not safe to share across threads.
    """

    def __init__(self, source: str, budget: float, min_text_tokens: float = 5, label: str = "<template>") -> None:
        if budget <= 0:
            raise ValueError("budget must be positive")
        self.source = source
        self.budget = budget
        self.min_text_tokens = min_text_tokens
        self.label = label
        self.warnings: List[str] = []

    def candidate(self, node: Node) -> Optional[TemplateCandidate]:
        content = self.source[node.start : node.end]
        kind = classify(node)
        if kind == "text" and estimate_tokens(content.strip()) < self.min_text_tokens:
            return None
        return TemplateCandidate(
            kind=kind,
            content=content,
            size=estimate_tokens(content),
            start=node.start,
            end=node.end,
            metadata=_describe(node),
        )

    def split(self, node: Node) -> List[TemplateCandidate]:
        """Candidates covering ``node`` in document order; oversized ones are warned about."""
        candidates = self._split(node)
        for candidate in candidates:
            if candidate.oversized:
                self._warn_oversized(candidate)
        return candidates

    def _split(self, node: Node) -> List[TemplateCandidate]:
        candidate = self.candidate(node)
        if candidate is None:
            return []
        if candidate.size <= self.budget:
            return [candidate]

        children = children_of(node)
        if not children:
            candidate.oversized, candidate.reason = True, "leaf"
            return [candidate]

        collected: List[TemplateCandidate] = []
        for child in children:
            collected.extend(self._split(child))
        if len(collected) > 1:
            return collected

        candidate.oversized, candidate.reason = True, "irreducible"
        return [candidate]

    def _warn_oversized(self, candidate: TemplateCandidate) -> None:
        log.warning(
            "template_chunk_oversized",
            source=self.label,
            kind=candidate.kind,
            size=candidate.size,
            budget=self.budget,
            reason=candidate.reason,
        )
        self.warnings.append(
            f"{self.label}: {candidate.kind} at offset {candidate.start} "
            f"exceeds budget ({candidate.size:.0f} > {self.budget:.0f}, {candidate.reason})"
        )
