"""
Read-only node tree over Svelte component markup.

Components are parsed with the tree-sitter Svelte grammar and converted into
a small tagged union: elements, components, text and the control blocks
(``{#if}``, ``{#each}``, ``{#await}``, ``{#key}``) with exact character
offsets. Expressions are kept as raw text; nothing is evaluated. Unknown
``{#name}`` blocks and ``{@name}`` tags are preserved as :class:`Other`
nodes.

Every child-bearing field is declared in :data:`CHILD_FIELDS`; tree walks go
through :func:`children_of` so a new node variant cannot be added without
saying where its children live.
"""
from __future__ import annotations

import re
import threading
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union, get_args

from tree_sitter import Language, Parser  # type: ignore[import]
from tree_sitter import Node as SyntaxNode  # type: ignore[import]


class MarkupSyntaxError(ValueError):
    """Raised when component markup cannot be read into a tree."""

    def __init__(self, message: str, position: int) -> None:
        super().__init__(f"{message} (offset {position})")
        self.position = position


@dataclass(frozen=True)
class Attribute:
    name: str
    value: Union[str, bool]
    start: int
    end: int


@dataclass(frozen=True)
class Fragment:
    start: int
    end: int
    children: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class Element:
    start: int
    end: int
    name: str
    attributes: Tuple[Attribute, ...] = ()
    children: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class InlineComponent:
    start: int
    end: int
    name: str
    attributes: Tuple[Attribute, ...] = ()
    children: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class Text:
    start: int
    end: int
    data: str


@dataclass(frozen=True)
class Comment:
    start: int
    end: int
    data: str


@dataclass(frozen=True)
class MustacheTag:
    start: int
    end: int
    expression: str


@dataclass(frozen=True)
class IfBlock:
    start: int
    end: int
    expression: str
    consequent: Tuple["Node", ...] = ()
    alternate: Tuple["Node", ...] = ()
    elseif: bool = False


@dataclass(frozen=True)
class EachBlock:
    start: int
    end: int
    expression: str
    context: Optional[str] = None
    index: Optional[str] = None
    key: Optional[str] = None
    body: Tuple["Node", ...] = ()
    fallback: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class AwaitBlock:
    start: int
    end: int
    expression: str
    value: Optional[str] = None
    error: Optional[str] = None
    pending: Tuple["Node", ...] = ()
    then: Tuple["Node", ...] = ()
    catch: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class KeyBlock:
    start: int
    end: int
    expression: str
    body: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class Other:
    """Any construct the reader does not model, with its raw header fields."""

    start: int
    end: int
    kind: str
    fields: Tuple[Tuple[str, str], ...] = ()
    children: Tuple["Node", ...] = ()


Node = Union[
    Fragment,
    Element,
    InlineComponent,
    Text,
    Comment,
    MustacheTag,
    IfBlock,
    EachBlock,
    AwaitBlock,
    KeyBlock,
    Other,
]

CONTROL_BLOCKS = (IfBlock, EachBlock, AwaitBlock, KeyBlock)

CHILD_FIELDS: Dict[type, Tuple[str, ...]] = {
    Fragment: ("children",),
    Element: ("children",),
    InlineComponent: ("children",),
    Text: (),
    Comment: (),
    MustacheTag: (),
    IfBlock: ("consequent", "alternate"),
    EachBlock: ("body", "fallback"),
    AwaitBlock: ("pending", "then", "catch"),
    KeyBlock: ("body",),
    Other: ("children",),
}

_undeclared = set(get_args(Node)) - set(CHILD_FIELDS)
if _undeclared:  # pragma: no cover - guards edits to the union
    raise RuntimeError(f"CHILD_FIELDS is missing node variants: {sorted(t.__name__ for t in _undeclared)}")


def children_of(node: Node) -> Tuple[Node, ...]:
    """All direct children of ``node`` in document order."""
    collected: List[Node] = []
    for field_name in CHILD_FIELDS[type(node)]:
        collected.extend(getattr(node, field_name))
    return tuple(collected)


def walk(node: Node) -> Iterator[Node]:
    """Yield every descendant of ``node`` (excluding itself), depth first."""
    for child in children_of(node):
        yield child
        yield from walk(child)


@dataclass(frozen=True)
class RawSection:
    """A top-level ``<script>`` or ``<style>`` block kept as raw text."""

    kind: str
    attributes: Dict[str, Union[str, bool]]
    start: int
    end: int
    content_start: int
    content: str

    @property
    def is_module(self) -> bool:
        return self.attributes.get("context") == "module" or self.attributes.get("module") is True

    @property
    def lang(self) -> str:
        value = self.attributes.get("lang") or self.attributes.get("type") or "js"
        return str(value).lower()


@dataclass(frozen=True)
class SvelteDocument:
    html: Fragment
    instance: Optional[RawSection] = None
    module: Optional[RawSection] = None
    style: Optional[RawSection] = None


COMPONENT_SPECIALS = frozenset({"svelte:component", "svelte:self", "svelte:element"})

ELEMENT_TYPES = frozenset({"element", "script_element", "style_element"})
RAW_TEXT_TYPES = frozenset({"script_element", "style_element"})
OPEN_TAG_TYPES = frozenset({"start_tag", "self_closing_tag"})
TAG_PART_TYPES = OPEN_TAG_TYPES | {"end_tag"}
TEXT_TYPES = frozenset({"text", "entity"})

_TAG_NAME = re.compile(r"<\s*([^\s/>]+)")
_EACH_HEADER = re.compile(
    r"^(?P<expr>.+?)\s+as\s+(?P<ctx>.+?)(?:\s*,\s*(?P<index>\w+))?(?:\s*\((?P<key>.+)\))?\s*$",
    re.DOTALL,
)
_AWAIT_SHORTHAND = re.compile(r"^(?P<expr>.+?)\s+(?P<branch>then|catch)(?:\s+(?P<name>.+))?$", re.DOTALL)

_LANGUAGE: Optional[Language] = None
_local = threading.local()


def _load_language() -> Language:
    global _LANGUAGE
    if _LANGUAGE is None:
        try:
            import tree_sitter_svelte as grammar  # type: ignore[import]
        except ImportError as exc:  # pragma: no cover - runtime configuration issue
            raise RuntimeError(
                "The Svelte grammar is missing. Install it via `pip install tree-sitter-svelte`."
            ) from exc
        _LANGUAGE = Language(grammar.language())
    return _LANGUAGE


def _get_parser() -> Parser:
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = Parser(_load_language())
        _local.parser = parser
    return parser


def is_component_name(name: str) -> bool:
    return name[:1].isupper() or "." in name or name in COMPONENT_SPECIALS


def _split_header(header: str) -> Tuple[str, str]:
    parts = header.split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1].strip() if len(parts) > 1 else ""


def _closing_brace(text: str, open_index: int) -> int:
    """Index of the ``}`` closing the ``{`` at ``open_index``, or -1."""
    depth = 0
    quote: Optional[str] = None
    cursor = open_index
    while cursor < len(text):
        char = text[cursor]
        if quote is not None:
            if char == "\\":
                cursor += 1
            elif char == quote:
                quote = None
        elif char in "\"'`":
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return cursor
        cursor += 1
    return -1


def _first_error(node: SyntaxNode) -> Optional[SyntaxNode]:
    if node.type == "ERROR" or node.is_missing:
        return node
    for child in node.children:
        if child.has_error or child.is_missing:
            found = _first_error(child)
            if found is not None:
                return found
    return None


class _Offsets:
    """Maps tree-sitter byte offsets back to character offsets."""

    def __init__(self, text: str) -> None:
        self.encoded = text.encode("utf-8")
        self._starts: Optional[List[int]] = None
        if len(self.encoded) != len(text):
            starts: List[int] = []
            position = 0
            for char in text:
                starts.append(position)
                position += len(char.encode("utf-8"))
            starts.append(position)
            self._starts = starts

    def __call__(self, byte_offset: int) -> int:
        if self._starts is None:
            return byte_offset
        return bisect_left(self._starts, byte_offset)


@dataclass
class _Branch:
    keyword: Optional[str]
    rest: str
    start: int
    nodes: List[Node] = field(default_factory=list)


class _TreeBuilder:
    """Converts one tree-sitter parse into :data:`Node` values."""

    def __init__(self, text: str, offsets: _Offsets) -> None:
        self.text = text
        self.offset = offsets

    def span(self, node: SyntaxNode) -> Tuple[int, int]:
        return self.offset(node.start_byte), self.offset(node.end_byte)

    def header(self, start: int) -> Tuple[str, str, int]:
        """Keyword, remainder and end offset of the ``{#...}``/``{:...}``/``{@...}`` tag at ``start``."""
        close = _closing_brace(self.text, start)
        if close < 0:
            raise MarkupSyntaxError("unterminated tag", start)
        keyword, rest = _split_header(self.text[start + 2 : close])
        return keyword, rest, close + 1

    def convert_all(self, nodes: Iterable[SyntaxNode]) -> Tuple[Node, ...]:
        converted = (self.convert(node) for node in nodes)
        return tuple(node for node in converted if node is not None)

    def convert(self, node: SyntaxNode) -> Optional[Node]:
        start, end = self.span(node)
        raw = self.text[start:end]
        if node.type in ELEMENT_TYPES:
            return self.element(node, start, end)
        if node.type in TEXT_TYPES:
            return Text(start, end, raw)
        if node.type == "comment":
            body = raw[4:-3] if raw.startswith("<!--") and raw.endswith("-->") else raw
            return Comment(start, end, body)
        if node.type == "erroneous_end_tag":
            raise MarkupSyntaxError("unexpected closing tag", start)
        if raw.startswith("{#"):
            return self.block(node, start, end)
        if raw.startswith("{@"):
            keyword, rest, _ = self.header(start)
            return Other(start, end, f"{keyword}_tag", (("expression", rest),))
        if raw.startswith("{:") or raw.startswith("{/"):
            raise MarkupSyntaxError("unexpected block continuation", start)
        if raw.startswith("{") and raw.endswith("}"):
            return MustacheTag(start, end, raw[1:-1].strip())
        if node.type == "expression":
            return MustacheTag(start, end, raw.strip())
        return Other(start, end, node.type, (("raw", raw),))

    # -- elements -----------------------------------------------------------

    def element(self, node: SyntaxNode, start: int, end: int) -> Node:
        open_tag = next((child for child in node.named_children if child.type in OPEN_TAG_TYPES), None)
        if open_tag is None:
            raise MarkupSyntaxError("element without a start tag", start)
        tag_start, tag_end = self.span(open_tag)
        match = _TAG_NAME.match(self.text, tag_start, tag_end)
        name = match.group(1) if match else ""
        attributes = tuple(
            self.attribute(child)
            for child in open_tag.named_children
            if child.type not in ("tag_name", "comment")
        )

        if node.type in RAW_TEXT_TYPES:
            end_tag = next((child for child in node.named_children if child.type == "end_tag"), None)
            body_end = self.span(end_tag)[0] if end_tag is not None else end
            children: Tuple[Node, ...] = (Text(tag_end, body_end, self.text[tag_end:body_end]),)
        else:
            children = self.convert_all(child for child in node.named_children if child.type not in TAG_PART_TYPES)

        node_type = InlineComponent if is_component_name(name) else Element
        return node_type(start, end, name, attributes, children)

    def attribute(self, node: SyntaxNode) -> Attribute:
        start, end = self.span(node)
        raw = self.text[start:end]
        if raw.startswith("{"):
            expression = raw[1:-1].strip()
            if expression.startswith("..."):
                return Attribute(expression, True, start, end)
            return Attribute(expression, "{" + expression + "}", start, end)
        name, separator, value = raw.partition("=")
        if not separator:
            return Attribute(name.strip(), True, start, end)
        value = value.strip()
        if len(value) >= 2 and value[0] in "\"'" and value[-1] == value[0]:
            value = value[1:-1]
        return Attribute(name.strip(), value, start, end)

    # -- blocks -------------------------------------------------------------

    def _collect(self, node: SyntaxNode, lower: int, upper: int, branches: List[_Branch]) -> None:
        """Sort the content of ``node`` between ``lower`` and ``upper`` into branches."""
        for child in node.named_children:
            child_start, child_end = self.span(child)
            if child_start < lower or child_end > upper:
                continue
            if self.text.startswith("{:", child_start):
                keyword, rest, marker_end = self.header(child_start)
                branches.append(_Branch(keyword, rest, child_start))
                self._collect(child, marker_end, child_end, branches)
                continue
            converted = self.convert(child)
            if converted is not None:
                branches[-1].nodes.append(converted)

    def block(self, node: SyntaxNode, start: int, end: int) -> Node:
        keyword, rest, header_end = self.header(start)
        footer = self.text.rfind("{/", header_end, end)
        if footer < 0:
            raise MarkupSyntaxError(f"expected {{/{keyword}}}", end)
        branches = [_Branch(None, "", header_end)]
        self._collect(node, header_end, footer, branches)

        if keyword == "if":
            return self._if_chain(start, end, footer, rest, branches, elseif=False)
        if keyword == "each":
            return self._each(start, end, rest, branches)
        if keyword == "await":
            return self._await(start, end, rest, branches)
        if keyword == "key":
            return KeyBlock(start, end, rest, tuple(child for branch in branches for child in branch.nodes))

        fields = (("expression", rest),) + tuple((branch.keyword or "", branch.rest) for branch in branches[1:])
        children = tuple(child for branch in branches for child in branch.nodes)
        return Other(start, end, f"{keyword}_block", fields, children)

    def _if_chain(
        self,
        start: int,
        end: int,
        footer: int,
        expression: str,
        branches: List[_Branch],
        elseif: bool,
    ) -> IfBlock:
        alternate: Tuple[Node, ...] = ()
        if len(branches) > 1:
            branch = branches[1]
            if branch.keyword != "else":
                raise MarkupSyntaxError(f"unexpected {{:{branch.keyword}}} in if block", branch.start)
            if branch.rest == "if" or branch.rest.startswith("if "):
                nested_branches = [_Branch(None, "", branch.start, branch.nodes)] + branches[2:]
                alternate = (
                    self._if_chain(branch.start, footer, footer, branch.rest[2:].strip(), nested_branches, True),
                )
            else:
                alternate = tuple(branch.nodes)
        return IfBlock(start, end, expression, tuple(branches[0].nodes), alternate, elseif)

    @staticmethod
    def _each(start: int, end: int, header: str, branches: List[_Branch]) -> EachBlock:
        match = _EACH_HEADER.match(header)
        if match:
            expression, context = match.group("expr").strip(), match.group("ctx").strip()
            index, key = match.group("index"), match.group("key")
        else:
            expression, context, index, key = header, None, None, None
        fallback = tuple(node for branch in branches[1:] for node in branch.nodes)
        return EachBlock(
            start,
            end,
            expression,
            context,
            index,
            key.strip() if key else None,
            tuple(branches[0].nodes),
            fallback,
        )

    @staticmethod
    def _await(start: int, end: int, header: str, branches: List[_Branch]) -> AwaitBlock:
        slots: Dict[str, List[Node]] = {"pending": [], "then": [], "catch": []}
        names: Dict[str, Optional[str]] = {"then": None, "catch": None}
        expression, current = header, "pending"
        shorthand = _AWAIT_SHORTHAND.match(header)
        if shorthand:
            expression = shorthand.group("expr").strip()
            current = shorthand.group("branch")
            names[current] = shorthand.group("name")

        slots[current].extend(branches[0].nodes)
        for branch in branches[1:]:
            if branch.keyword not in ("then", "catch"):
                raise MarkupSyntaxError(f"unexpected {{:{branch.keyword}}} in await block", branch.start)
            slots[branch.keyword].extend(branch.nodes)
            names[branch.keyword] = branch.rest or None
        return AwaitBlock(
            start,
            end,
            expression,
            names["then"],
            names["catch"],
            tuple(slots["pending"]),
            tuple(slots["then"]),
            tuple(slots["catch"]),
        )


def _section(element: Element, kind: str) -> RawSection:
    attributes = {attribute.name: attribute.value for attribute in element.attributes}
    body = element.children[0] if element.children else None
    content_start = body.start if isinstance(body, Text) else element.end
    return RawSection(
        kind=kind,
        attributes=attributes,
        start=element.start,
        end=element.end,
        content_start=content_start,
        content=body.data if isinstance(body, Text) else "",
    )


def _is_blank(node: Node) -> bool:
    return isinstance(node, Text) and not node.data.strip()


def parse_document(text: str) -> SvelteDocument:
    """Read a whole ``.svelte`` file into its sections and template tree."""
    offsets = _Offsets(text)
    root = _get_parser().parse(offsets.encoded).root_node
    if root.has_error:
        broken = _first_error(root)
        position = offsets(broken.start_byte) if broken is not None else 0
        reason = f"missing {broken.type}" if broken is not None and broken.is_missing else "unreadable markup"
        raise MarkupSyntaxError(reason, position)

    top_level = _TreeBuilder(text, offsets).convert_all(root.named_children)

    instance = module = style = None
    template: List[Node] = []
    for node in top_level:
        if isinstance(node, Element) and node.name.lower() == "script":
            section = _section(node, "script")
            if section.is_module:
                module = section
            else:
                instance = section
        elif isinstance(node, Element) and node.name.lower() == "style":
            style = _section(node, "style")
        else:
            template.append(node)

    while template and _is_blank(template[0]):
        template.pop(0)
    while template and _is_blank(template[-1]):
        template.pop()

    if template:
        html = Fragment(template[0].start, template[-1].end, tuple(template))
    else:
        html = Fragment(0, 0, ())
    return SvelteDocument(html=html, instance=instance, module=module, style=style)
