from typing import get_args

import pytest

pytest.importorskip("tree_sitter_svelte")

from framechunk.chunking.svelte_markup import (  # noqa: E402
    CHILD_FIELDS,
    AwaitBlock,
    EachBlock,
    Element,
    IfBlock,
    InlineComponent,
    MarkupSyntaxError,
    MustacheTag,
    Node,
    Other,
    Text,
    parse_document,
    walk,
)

COMPONENT = """<script context="module">
  export const prerender = true;
</script>

<script lang="ts">
  export let items: string[] = [];
  export let loading = false;
</script>

<h1 class="title">Hello {name}!</h1>
{#if items.length}
  <ul>
    {#each items as item, i (item)}
      <li>{item}</li>
    {:else}
      <li>none</li>
    {/each}
  </ul>
{:else if loading}
  <Spinner size="sm" />
{:else}
  <p>Empty</p>
{/if}
{#await promise}
  <p>waiting</p>
{:then value}
  <p>{value}</p>
{:catch error}
  <p>{error.message}</p>
{/await}
{@html raw}

<style>
  h1 { color: red; }
</style>
"""


def _significant(nodes):
    return [node for node in nodes if not (isinstance(node, Text) and not node.data.strip())]


def test_child_fields_cover_every_variant() -> None:
    assert set(get_args(Node)) == set(CHILD_FIELDS)


def test_sections_are_separated_from_template() -> None:
    document = parse_document(COMPONENT)

    assert document.module is not None and document.module.is_module
    assert "prerender" in document.module.content
    assert document.instance is not None and document.instance.lang == "ts"
    assert not document.instance.is_module
    start = document.instance.content_start
    assert COMPONENT[start : start + len(document.instance.content)] == document.instance.content
    assert document.style is not None and "color: red" in document.style.content
    assert not any(isinstance(node, Element) and node.name in ("script", "style") for node in document.html.children)


def test_template_nodes_carry_exact_offsets() -> None:
    document = parse_document(COMPONENT)
    heading, if_block, await_block, html_tag = _significant(document.html.children)

    assert isinstance(heading, Element) and heading.name == "h1"
    assert COMPONENT[heading.start : heading.end] == '<h1 class="title">Hello {name}!</h1>'
    assert heading.attributes[0].name == "class" and heading.attributes[0].value == "title"
    assert any(isinstance(child, MustacheTag) and child.expression == "name" for child in heading.children)

    assert isinstance(if_block, IfBlock)
    assert COMPONENT[if_block.start : if_block.end].startswith("{#if items.length}")
    assert COMPONENT[if_block.start : if_block.end].endswith("{/if}")

    assert isinstance(await_block, AwaitBlock)
    assert COMPONENT[await_block.start : await_block.end].endswith("{/await}")

    assert isinstance(html_tag, Other)
    assert html_tag.kind == "html_tag"
    assert dict(html_tag.fields) == {"expression": "raw"}


def test_if_block_chains_else_if_branches() -> None:
    if_block = _significant(parse_document(COMPONENT).html.children)[1]

    assert if_block.expression == "items.length"
    nested = if_block.alternate[0]
    assert isinstance(nested, IfBlock) and nested.elseif
    assert nested.expression == "loading"
    spinner = _significant(nested.consequent)[0]
    assert isinstance(spinner, InlineComponent) and spinner.name == "Spinner"
    assert spinner.children == ()
    assert isinstance(_significant(nested.alternate)[0], Element)


def test_each_and_await_headers_are_read() -> None:
    document = parse_document(COMPONENT)
    each = next(node for node in walk(document.html) if isinstance(node, EachBlock))

    assert (each.expression, each.context, each.index, each.key) == ("items", "item", "i", "item")
    assert _significant(each.fallback)

    await_block = next(node for node in walk(document.html) if isinstance(node, AwaitBlock))
    assert await_block.expression == "promise"
    assert (await_block.value, await_block.error) == ("value", "error")
    assert _significant(await_block.pending)
    assert _significant(await_block.then)
    assert _significant(await_block.catch)


def test_await_shorthand() -> None:
    document = parse_document("{#await load() then data}<p>{data}</p>{/await}")
    block = document.html.children[0]

    assert isinstance(block, AwaitBlock)
    assert block.expression == "load()"
    assert block.value == "data"
    assert block.pending == ()
    assert len(block.then) == 1


def test_unknown_block_is_kept_as_other() -> None:
    source = "{#snippet row(item)}<td>{item}</td>{/snippet}"
    block = parse_document(source).html.children[0]

    assert isinstance(block, Other)
    assert block.kind == "snippet_block"
    assert dict(block.fields)["expression"] == "row(item)"
    assert isinstance(block.children[0], Element)
    assert (block.start, block.end) == (0, len(source))


def test_attributes_with_expressions_and_directives() -> None:
    element = parse_document("<input bind:value={query} on:input={handle} {...rest} disabled />").html.children[0]

    names = [attribute.name for attribute in element.attributes]
    assert names == ["bind:value", "on:input", "...rest", "disabled"]
    assert element.attributes[0].value == "{query}"
    assert element.attributes[3].value is True


def test_implicitly_closed_list_items() -> None:
    source = "<ul>\n  <li>one\n  <li>two\n</ul>\n"
    listing = parse_document(source).html.children[0]

    assert isinstance(listing, Element) and listing.name == "ul"
    items = [child for child in listing.children if isinstance(child, Element)]
    assert [item.name for item in items] == ["li", "li"]
    assert "one" in source[items[0].start : items[0].end]
    assert source[items[1].start : items[1].end].startswith("<li>two")


def test_offsets_are_characters_not_bytes() -> None:
    source = "<p>héllo wörld ✓</p>\n<span>{count}</span>"
    paragraph, span = parse_document(source).html.children

    assert source[paragraph.start : paragraph.end] == "<p>héllo wörld ✓</p>"
    assert source[span.start : span.end] == "<span>{count}</span>"


@pytest.mark.parametrize(
    "source",
    [
        "</div>",
        "{#if ready}<p>never closed</p>",
        "{#each items as item}<li>{item}</li>",
    ],
)
def test_malformed_markup_raises(source: str) -> None:
    with pytest.raises(MarkupSyntaxError):
        parse_document(source)
