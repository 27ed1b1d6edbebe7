"""
SvelteKit support: route-aware pattern table and the component parser.

``.svelte`` files are cut into script, style and template chunks. Route
modules (``+page.ts``, ``+server.js``, hooks, ...) go through the generic
construct extractor.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from ..chunking import heuristics
from ..chunking.assembler import CONSTRUCT_SEPARATOR, batch_by_budget
from ..chunking.models import ChunkFactory, FileChunks, estimate_tokens
from ..chunking.styles import split_css_rules
from ..chunking.svelte_markup import MarkupSyntaxError, RawSection, SvelteDocument, parse_document
from ..chunking.template_splitter import TemplateSplitter
from ..chunking.typescript import dialect_for_path
from ..ingestion.dispatcher import PatternConfig, PatternSet
from ..logger import get_logger
from ..settings import ChunkingContext
from .typescript import ExtractorPool, chunk_module

log = get_logger(__name__)

SVELTEKIT_PATTERNS: Dict[str, Dict[str, Any]] = {
    "serverRoutes": {
        "pattern": "**/*+page.server.{js,ts}",
        "semantic": "page-endpoint",
        "type": "api",
        "description": "SvelteKit server-side page handler",
        "priority": 10,
        "metadata": {"runtime": "server", "type": "page-endpoint"},
    },
    "serverActions": {
        "pattern": "**/*+server.{js,ts}",
        "semantic": "api-endpoint",
        "type": "api",
        "description": "SvelteKit API endpoint",
        "priority": 10,
        "metadata": {"runtime": "server", "type": "rest-endpoint"},
    },
    "clientPages": {
        "pattern": "**/*+page.svelte",
        "semantic": "page",
        "type": "component",
        "description": "SvelteKit page component",
        "priority": 10,
        "metadata": {"runtime": "client", "type": "route-component"},
    },
    "layouts": {
        "pattern": "**/*+layout.svelte",
        "semantic": "component",
        "type": "component",
        "description": "SvelteKit layout wrapper",
        "priority": 10,
        "metadata": {"runtime": "client", "type": "layout-component"},
    },
    "pageScripts": {
        "pattern": "**/*+page.{js,ts}",
        "semantic": "util",
        "type": "script",
        "description": "SvelteKit page load function",
        "priority": 10,
        "metadata": {"runtime": "universal", "type": "data-loader"},
    },
    "layoutScripts": {
        "pattern": "**/*+layout.{js,ts}",
        "semantic": "util",
        "type": "script",
        "description": "SvelteKit layout load function",
        "priority": 9,
        "metadata": {"runtime": "universal", "type": "layout-loader"},
    },
    "layoutServerScripts": {
        "pattern": "**/*+layout.server.{js,ts}",
        "semantic": "api",
        "type": "api",
        "description": "SvelteKit layout server utilities",
        "priority": 9,
        "metadata": {"runtime": "server", "type": "layout-server"},
    },
    "errorPages": {
        "pattern": "**/*+error.svelte",
        "semantic": "error",
        "type": "component",
        "description": "SvelteKit error page",
        "priority": 8,
        "metadata": {"runtime": "client", "type": "error-component"},
    },
    "hooksServer": {
        "pattern": "**/*hooks.server.{js,ts}",
        "semantic": "api",
        "type": "api",
        "description": "SvelteKit server hooks",
        "priority": 8,
        "metadata": {"runtime": "server", "type": "hook"},
    },
    "hooksClient": {
        "pattern": "**/*hooks.client.{js,ts}",
        "semantic": "util",
        "type": "script",
        "description": "SvelteKit client hooks",
        "priority": 7,
        "metadata": {"runtime": "client", "type": "hook"},
    },
    "components": {
        "pattern": "**/*.svelte",
        "semantic": "component",
        "type": "component",
        "description": "Svelte component",
        "priority": 1,
        "metadata": {"runtime": "client", "type": "component"},
    },
}

SVELTEKIT_EXCLUDE = ("**/node_modules/**", "**/.svelte-kit/**")

TEMPLATE_GRANULARITY = {
    "template": "template",
    "element": "element",
    "component": "component",
    "block": "block",
    "text": "text",
    "other": "other",
}


def sveltekit_pattern_set() -> PatternSet:
    return PatternSet.from_mapping("sveltekit", SVELTEKIT_PATTERNS)


def _script_dialect(section: RawSection) -> str:
    return "typescript" if section.lang in ("ts", "typescript") else "javascript"


class SvelteKitParser:
    framework = "sveltekit"

    def __init__(self) -> None:
        self._pool = ExtractorPool()

    def parse_file(
        self,
        path: Path,
        relative_path: str,
        pattern: PatternConfig,
        context: ChunkingContext,
    ) -> FileChunks:
        text = path.read_text(encoding="utf-8")
        factory = ChunkFactory(relative_path, self.framework, pattern.semantic, pattern.chunk_metadata(relative_path))

        if path.suffix.lower() == ".svelte":
            return self.chunk_component(text, factory, context)

        dialect: Optional[str] = dialect_for_path(path)
        return chunk_module(text, dialect or "typescript", factory, context, self._pool.get(context))

    def chunk_component(self, text: str, factory: ChunkFactory, context: ChunkingContext) -> FileChunks:
        """Chunk a ``.svelte`` file into script, style and template chunks."""
        try:
            document = parse_document(text)
        except MarkupSyntaxError as exc:
            log.warning(
                "svelte_markup_fallback",
                source=factory.source,
                position=exc.position,
                error=str(exc),
            )
            return FileChunks(
                chunks=[factory.whole_file(text, reason="markup_error")],
                warnings=[f"{factory.source}: markup could not be read, kept whole ({exc})"],
            )

        outcome = FileChunks()
        for section in (document.module, document.instance):
            if section is not None and section.content.strip():
                outcome.extend(self._script(text, section, factory, context))
        if document.style is not None and document.style.content.strip():
            outcome.extend(self._style(text, document.style, factory, context))
        outcome.extend(self._template(text, document, factory, context))

        if not outcome.chunks and text.strip():
            outcome.chunks.append(factory.whole_file(text, reason="no_sections"))
        return outcome

    def _script(
        self,
        text: str,
        section: RawSection,
        factory: ChunkFactory,
        context: ChunkingContext,
    ) -> FileChunks:
        line_offset = text.count("\n", 0, section.content_start)
        script_context = "module" if section.is_module else "instance"
        hints = heuristics.summarise(section.content)

        if estimate_tokens(section.content) <= context.construct_budget:
            chunk = factory.build(
                section.content,
                "script",
                section="script",
                scriptContext=script_context,
                lang=section.lang,
                startLine=line_offset + 1,
                endLine=line_offset + section.content.count("\n") + 1,
                heuristics=hints,
            )
            return FileChunks(chunks=[chunk])

        return chunk_module(
            section.content,
            _script_dialect(section),
            factory,
            context,
            self._pool.get(context),
            line_offset=line_offset,
            section="script",
            scriptContext=script_context,
            lang=section.lang,
            heuristics=hints,
        )

    @staticmethod
    def _style(text: str, section: RawSection, factory: ChunkFactory, context: ChunkingContext) -> FileChunks:
        line_offset = text.count("\n", 0, section.content_start)
        lang = section.lang if "lang" in section.attributes else "css"
        content = section.content
        budget = context.construct_budget

        if estimate_tokens(content) <= budget:
            chunk = factory.build(
                content,
                "style",
                section="style",
                lang=lang,
                startLine=line_offset + 1,
                endLine=line_offset + content.count("\n") + 1,
                oversized=False,
            )
            return FileChunks(chunks=[chunk])

        outcome = FileChunks()
        rules = split_css_rules(content)
        separator_size = estimate_tokens(CONSTRUCT_SEPARATOR)
        for batch in batch_by_budget(rules, lambda rule: estimate_tokens(rule[1]), budget, separator_size):
            body = CONSTRUCT_SEPARATOR.join(rule for _, rule in batch)
            first_offset = batch[0][0]
            last_offset, last_rule = batch[-1]
            oversized = estimate_tokens(body) > budget
            if oversized:
                log.warning(
                    "style_chunk_oversized",
                    source=factory.source,
                    size=estimate_tokens(body),
                    budget=budget,
                )
                outcome.warnings.append(
                    f"{factory.source}: style rule exceeds budget ({estimate_tokens(body):.0f} > {budget:.0f})"
                )
            outcome.chunks.append(
                factory.build(
                    body,
                    "style",
                    section="style",
                    lang=lang,
                    startLine=line_offset + content.count("\n", 0, first_offset) + 1,
                    endLine=line_offset + content.count("\n", 0, last_offset + len(last_rule)) + 1,
                    oversized=oversized,
                )
            )
        return outcome

    @staticmethod
    def _template(
        text: str,
        document: SvelteDocument,
        factory: ChunkFactory,
        context: ChunkingContext,
    ) -> FileChunks:
        if not document.html.children:
            return FileChunks()

        splitter = TemplateSplitter(
            text,
            context.template_budget,
            min_text_tokens=context.min_text_tokens,
            label=factory.source,
        )
        outcome = FileChunks()
        for candidate in splitter.split(document.html):
            outcome.chunks.append(
                factory.build(
                    candidate.content,
                    TEMPLATE_GRANULARITY[candidate.kind],
                    section="template",
                    startLine=text.count("\n", 0, candidate.start) + 1,
                    endLine=text.count("\n", 0, candidate.end) + 1,
                    oversized=candidate.oversized,
                    **candidate.metadata,
                )
            )
        outcome.warnings.extend(splitter.warnings)
        return outcome
