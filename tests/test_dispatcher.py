from pathlib import Path

from framechunk.chunking.models import FileChunks
from framechunk.frameworks import build_default_registry
from framechunk.ingestion.dispatcher import Dispatcher, PatternConfig, PatternRegistry, PatternSet
from framechunk.settings import ChunkingContext


class RecordingParser:
    def __init__(self) -> None:
        self.calls = []

    def parse_file(self, path: Path, relative_path: str, pattern: PatternConfig, context: ChunkingContext) -> FileChunks:
        self.calls.append(relative_path)
        return FileChunks()


def _set(framework: str, table: dict) -> PatternSet:
    return PatternSet.from_mapping(framework, table)


def test_higher_priority_pattern_wins_within_a_set() -> None:
    registry = PatternRegistry()
    registry.register(
        _set(
            "sveltekit",
            {
                "generic": {"pattern": "**/*.ts", "semantic": "module", "priority": 1},
                "page": {"pattern": "**/*+page.ts", "semantic": "page", "priority": 10},
            },
        ),
        RecordingParser(),
    )
    match = Dispatcher(registry).dispatch("src/routes/+page.ts")

    assert match is not None
    assert match.pattern.name == "page"
    assert match.pattern.semantic == "page"


def test_equal_priorities_keep_declaration_order() -> None:
    pattern_set = _set(
        "demo",
        {
            "first": {"pattern": "**/*.ts", "priority": 5},
            "second": {"pattern": "**/*.ts", "priority": 5},
        },
    )
    assert [pattern.name for pattern in pattern_set.ordered()] == ["first", "second"]


def test_exclude_skips_to_next_pattern() -> None:
    registry = PatternRegistry()
    registry.register(
        _set(
            "demo",
            {
                "tests": {"pattern": "**/*.ts", "priority": 9, "exclude": ["**/fixtures/**"]},
                "modules": {"pattern": "**/*.ts", "priority": 1},
            },
        ),
        RecordingParser(),
    )
    dispatcher = Dispatcher(registry)

    assert dispatcher.dispatch("test/fixtures/data.ts").pattern.name == "modules"
    assert dispatcher.dispatch("test/unit.ts").pattern.name == "tests"


def test_registration_exclude_applies_to_every_pattern() -> None:
    registry = PatternRegistry()
    registry.register(
        _set("demo", {"modules": {"pattern": "**/*.ts"}}),
        RecordingParser(),
        exclude=["**/*.d.ts"],
    )
    assert Dispatcher(registry).dispatch("src/app.d.ts") is None


def test_file_matched_by_two_sets_is_claimed_once() -> None:
    first, second = RecordingParser(), RecordingParser()
    registry = PatternRegistry()
    registry.register(_set("sveltekit", {"pages": {"pattern": "**/+page.ts"}}), first)
    registry.register(_set("typescript", {"modules": {"pattern": "**/*.ts"}}), second)
    dispatcher = Dispatcher(registry)

    match = dispatcher.dispatch("src/routes/+page.ts")

    assert match is not None and match.framework == "sveltekit"
    assert match.parser is first
    assert dispatcher.dispatch("src/routes/+page.ts") is None
    assert dispatcher.is_claimed("./src/routes/+page.ts")
    assert dispatcher.claimed == frozenset({"src/routes/+page.ts"})


def test_unmatched_file_is_not_an_error() -> None:
    registry = PatternRegistry()
    registry.register(_set("demo", {"modules": {"pattern": "**/*.ts"}}), RecordingParser())
    dispatcher = Dispatcher(registry)

    assert dispatcher.dispatch("README.md") is None
    assert not dispatcher.is_claimed("README.md")


def test_default_registry_routes_sveltekit_files_first() -> None:
    dispatcher = Dispatcher(build_default_registry())

    assert dispatcher.dispatch("src/routes/+page.server.ts").pattern.name == "serverRoutes"
    assert dispatcher.dispatch("src/routes/api/+server.ts").pattern.name == "serverActions"
    assert dispatcher.dispatch("src/routes/+layout.svelte").pattern.name == "layouts"
    assert dispatcher.dispatch("src/lib/Button.svelte").pattern.name == "components"
    match = dispatcher.dispatch("src/lib/format.ts")
    assert match.framework == "typescript"
    assert match.pattern.name == "libModules"
    assert dispatcher.dispatch("src/app.d.ts") is None
    assert dispatcher.dispatch("node_modules/x/index.js") is None


def test_describe_lists_patterns_in_dispatch_order() -> None:
    rows = build_default_registry().describe()

    assert rows[0]["framework"] == "sveltekit"
    assert rows[-1]["framework"] == "typescript"
    sveltekit_priorities = [row["priority"] for row in rows if row["framework"] == "sveltekit"]
    assert sveltekit_priorities == sorted(sveltekit_priorities, reverse=True)
