"""
Tree-sitter based construct extraction for TypeScript and JavaScript.

Only top-level statements are inspected. Each declaration becomes one
:class:`~framechunk.chunking.models.Construct` whose content is the full
source lines the node spans, so chunks built from constructs never start or
end mid-line.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Dict, List, Optional

from tree_sitter import Language, Node, Parser  # type: ignore[import]

from ..logger import get_logger
from .models import Construct, ConstructKind

log = get_logger(__name__)

DIALECTS = ("typescript", "tsx", "javascript")

_LANGUAGE_CACHE: Dict[str, Language] = {}

_SUFFIX_DIALECTS = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}

FUNCTION_VALUE_TYPES = frozenset(
    {"arrow_function", "function_expression", "function", "generator_function"}
)
CLASS_TYPES = frozenset({"class_declaration", "abstract_class_declaration"})
CLASS_VALUE_TYPES = frozenset({"class"})
METHOD_TYPES = frozenset({"method_definition", "abstract_method_signature"})
INTERFACE_TYPES = frozenset({"interface_declaration", "type_alias_declaration"})
VARIABLE_TYPES = frozenset({"lexical_declaration", "variable_declaration"})


def _load_language(dialect: str) -> Language:
    """Lazily load and cache the compiled grammar for ``dialect``."""
    if dialect in _LANGUAGE_CACHE:
        return _LANGUAGE_CACHE[dialect]

    try:
        if dialect == "javascript":
            import tree_sitter_javascript as grammar  # type: ignore[import]

            capsule = grammar.language()
        else:
            import tree_sitter_typescript as grammar  # type: ignore[import]

            capsule = grammar.language_tsx() if dialect == "tsx" else grammar.language_typescript()
    except ImportError as exc:  # pragma: no cover - runtime configuration issue
        raise RuntimeError(
            "tree-sitter grammars are missing. "
            "Install them via `pip install tree-sitter-typescript tree-sitter-javascript`."
        ) from exc

    language = Language(capsule)
    _LANGUAGE_CACHE[dialect] = language
    return language


def dialect_for_path(path: PurePath) -> Optional[str]:
    return _SUFFIX_DIALECTS.get(path.suffix.lower())


def _text(node: Optional[Node]) -> Optional[str]:
    if node is None or node.text is None:
        return None
    return node.text.decode("utf-8", errors="replace")


def _has_token(node: Node, token: str) -> bool:
    return any(child.type == token for child in node.children)


@dataclass
class ExtractionResult:
    constructs: List[Construct] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)
    opaque: bool = False
    warnings: List[str] = field(default_factory=list)


class TypeScriptExtractor:
    """Extract declaration constructs from one module at a time."""

    def __init__(self, include_plain_variables: bool = False) -> None:
        self.include_plain_variables = include_plain_variables
        self._local = threading.local()

    def _get_parser(self, dialect: str) -> Parser:
        parsers: Dict[str, Parser] = getattr(self._local, "parsers", None) or {}
        if dialect not in parsers:
            parsers[dialect] = Parser(_load_language(dialect))
            self._local.parsers = parsers
        return parsers[dialect]

    def extract(
        self,
        text: str,
        dialect: str = "typescript",
        line_offset: int = 0,
        source: str = "<memory>",
    ) -> ExtractionResult:
        """
        Parse ``text`` and return its constructs in source order.

        ``line_offset`` is added to every reported line number, which lets
        callers extract from a script block embedded in a larger file.
        """
        if dialect not in DIALECTS:
            raise ValueError(f"Unsupported dialect for extraction: {dialect}")

        lines = text.split("\n")
        try:
            tree = self._get_parser(dialect).parse(text.encode("utf-8"))
            root = tree.root_node
            if root.has_error:
                raise SyntaxError("grammar reported syntax errors")
            result = ExtractionResult()
            for node in root.named_children:
                if node.type == "import_statement":
                    source_text = _text(node.child_by_field_name("source"))
                    if source_text:
                        result.imports.append(source_text.strip("'\"`"))
                    continue
                constructs = self._extract_node(node, lines)
                if node.type == "export_statement":
                    result.exports.extend(
                        construct.name for construct in constructs if "className" not in construct.metadata
                    )
                result.constructs.extend(constructs)
        except Exception as exc:
            log.warning(
                "typescript_parse_fallback",
                source=source,
                dialect=dialect,
                error=str(exc),
            )
            result = self._opaque_result(text, lines, source, str(exc))

        if line_offset:
            result.constructs = [self._shift(construct, line_offset) for construct in result.constructs]
        return result

    @staticmethod
    def _opaque_result(text: str, lines: List[str], source: str, error: str) -> ExtractionResult:
        construct = Construct(
            kind=ConstructKind.OPAQUE,
            name=PurePath(source).name or "anonymous",
            start_line=1,
            end_line=len(lines),
            content=text,
            metadata={"opaque": True, "parseError": error},
        )
        return ExtractionResult(
            constructs=[construct],
            opaque=True,
            warnings=[f"{source}: unparseable, kept as a single opaque construct ({error})"],
        )

    @staticmethod
    def _shift(construct: Construct, offset: int) -> Construct:
        return Construct(
            kind=construct.kind,
            name=construct.name,
            start_line=construct.start_line + offset,
            end_line=construct.end_line + offset,
            content=construct.content,
            metadata=construct.metadata,
        )

    @staticmethod
    def _make(
        kind: ConstructKind,
        name: Optional[str],
        node: Node,
        lines: List[str],
        **metadata: object,
    ) -> Construct:
        start = node.start_point[0] + 1
        end = node.end_point[0] + 1
        return Construct(
            kind=kind,
            name=name or "anonymous",
            start_line=start,
            end_line=end,
            content="\n".join(lines[start - 1 : end]),
            metadata=dict(metadata),
        )

    def _extract_node(self, node: Node, lines: List[str]) -> List[Construct]:
        node_type = node.type

        if node_type in ("function_declaration", "generator_function_declaration"):
            return [self._function(node, lines)]

        if node_type in INTERFACE_TYPES:
            name = _text(node.child_by_field_name("name"))
            return [
                self._make(
                    ConstructKind.INTERFACE,
                    name,
                    node,
                    lines,
                    isTypeAlias=node_type == "type_alias_declaration",
                )
            ]

        if node_type in CLASS_TYPES:
            return self._class(node, lines)

        if node_type in VARIABLE_TYPES:
            return self._variables(node, lines)

        if node_type == "export_statement":
            return self._export(node, lines)

        return []

    def _function(self, node: Node, lines: List[str], name: Optional[str] = None) -> Construct:
        return self._make(
            ConstructKind.FUNCTION,
            name or _text(node.child_by_field_name("name")),
            node,
            lines,
            isAsync=_has_token(node, "async"),
            isGenerator=node.type.startswith("generator_") or _has_token(node, "*"),
        )

    @staticmethod
    def _superclass(node: Node) -> Optional[str]:
        for child in node.children:
            if child.type != "class_heritage":
                continue
            for clause in child.named_children:
                if clause.type == "extends_clause":
                    return _text(clause.child_by_field_name("value"))
                if clause.type != "implements_clause":
                    return _text(clause)
        return None

    def _class(self, node: Node, lines: List[str], name: Optional[str] = None) -> List[Construct]:
        class_name = name or _text(node.child_by_field_name("name")) or "anonymous"
        constructs = [
            self._make(
                ConstructKind.CLASS,
                class_name,
                node,
                lines,
                isAbstract=node.type == "abstract_class_declaration",
                superClass=self._superclass(node),
            )
        ]
        body = node.child_by_field_name("body")
        if body is None:
            return constructs
        for member in body.named_children:
            if member.type not in METHOD_TYPES:
                continue
            method_name = _text(member.child_by_field_name("name")) or "anonymous"
            accessor = "get" if _has_token(member, "get") else "set" if _has_token(member, "set") else "method"
            constructs.append(
                self._make(
                    ConstructKind.FUNCTION,
                    f"{class_name}.{method_name}",
                    member,
                    lines,
                    isAsync=_has_token(member, "async"),
                    isGenerator=_has_token(member, "*"),
                    isStatic=_has_token(member, "static"),
                    isAbstract=member.type == "abstract_method_signature",
                    accessor=accessor,
                    className=class_name,
                )
            )
        return constructs

    def _variables(self, node: Node, lines: List[str]) -> List[Construct]:
        declarators = [child for child in node.named_children if child.type == "variable_declarator"]
        is_const = _has_token(node, "const")
        constructs: List[Construct] = []
        for declarator in declarators:
            name = _text(declarator.child_by_field_name("name"))
            value = declarator.child_by_field_name("value")
            # lone declarator: slice the whole statement
            span = node if len(declarators) == 1 else declarator
            if value is not None and value.type in FUNCTION_VALUE_TYPES:
                constructs.append(
                    self._make(
                        ConstructKind.FUNCTION,
                        name,
                        span,
                        lines,
                        isArrowFunction=value.type == "arrow_function",
                        isAsync=_has_token(value, "async"),
                        isConst=is_const,
                    )
                )
            elif self.include_plain_variables:
                constructs.append(
                    self._make(
                        ConstructKind.VARIABLE,
                        name,
                        span,
                        lines,
                        isConst=is_const,
                        initializer=value.type if value is not None else None,
                    )
                )
        return constructs

    def _export(self, node: Node, lines: List[str]) -> List[Construct]:
        is_default = _has_token(node, "default")
        declaration = node.child_by_field_name("declaration")
        value = node.child_by_field_name("value")

        if declaration is not None:
            inner = self._extract_node(declaration, lines)
        elif value is not None and value.type in FUNCTION_VALUE_TYPES:
            inner = [self._function(value, lines)]
        elif value is not None and value.type in CLASS_VALUE_TYPES:
            inner = self._class(value, lines)
        else:
            inner = []

        if inner:
            # Decorators belong to the export statement, not the declaration.
            head = inner[0]
            start = node.start_point[0] + 1
            if start < head.start_line:
                inner[0] = Construct(
                    kind=head.kind,
                    name=head.name,
                    start_line=start,
                    end_line=head.end_line,
                    content="\n".join(lines[start - 1 : head.end_line]),
                    metadata=head.metadata,
                )
            return [construct.tagged(isExported=True, isDefault=is_default) for construct in inner]

        if declaration is not None:
            return []

        names: List[str] = []
        for child in node.named_children:
            if child.type == "export_clause":
                for specifier in child.named_children:
                    if specifier.type == "export_specifier":
                        alias = specifier.child_by_field_name("alias")
                        if alias is None:
                            alias = specifier.child_by_field_name("name")
                        names.append(_text(alias) or "anonymous")
        re_export = _text(node.child_by_field_name("source"))
        if is_default:
            label = "default"
        elif names:
            label = ", ".join(names)
        else:
            label = "*"
        return [
            self._make(
                ConstructKind.EXPORT,
                label,
                node,
                lines,
                isExported=True,
                isDefault=is_default,
                names=names,
                reExportFrom=re_export.strip("'\"`") if re_export else None,
            )
        ]
