from framechunk.chunking.heuristics import detect_svelte_reactivity, summarise

LEGACY = """
import { onMount, createEventDispatcher } from 'svelte';
import { page } from '$app/stores';
export let count = 0;
const dispatch = createEventDispatcher();
$: doubled = count * 2;
$: if (doubled > 10) dispatch('big');
onMount(() => console.log($page.url));
"""

RUNES = """
let { title } = $props();
let count = $state(0);
const doubled = $derived(count * 2);
$effect(() => console.log(doubled));
"""


def test_legacy_reactivity_is_detected() -> None:
    hints = detect_svelte_reactivity(LEGACY)

    assert hints["bestEffort"] is True
    assert hints["reactiveStatements"] == 2
    # string contents are scanned too, hence "app" from the import path
    assert hints["storeReferences"] == ["app", "page"]
    assert hints["dispatchesEvents"] is True
    assert hints["lifecycle"] == ["onMount"]
    assert hints["runes"] == []


def test_runes_are_not_mistaken_for_stores() -> None:
    hints = detect_svelte_reactivity(RUNES)

    assert hints["runes"] == ["props", "state", "derived", "effect"]
    assert hints["storeReferences"] == []


def test_summarise_drops_empty_findings() -> None:
    assert summarise("const a = 1;") == {"bestEffort": True}
    assert summarise(RUNES)["runes"]
