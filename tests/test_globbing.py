import pytest

from framechunk.ingestion.globbing import expand_braces, glob_match, matches_any


def test_expand_braces_handles_nesting() -> None:
    assert expand_braces("*.{js,ts}") == ["*.js", "*.ts"]
    assert expand_braces("a{b,{c,d}}e") == ["abe", "ace", "ade"]
    assert expand_braces("plain") == ["plain"]


@pytest.mark.parametrize(
    ("path", "pattern", "expected"),
    [
        ("src/routes/+page.server.ts", "**/*+page.server.{js,ts}", True),
        ("+page.server.js", "**/*+page.server.{js,ts}", True),
        ("src/routes/+page.svelte", "**/*+page.server.{js,ts}", False),
        ("src/routes/blog/+page.ts", "**/*+page.{js,ts}", True),
        ("src/lib/a/b/util.ts", "**/lib/**/*.{ts,js}", True),
        ("src/Button.svelte", "*.svelte", False),
        ("Button.svelte", "*.svelte", True),
        ("./src/app.d.ts", "**/*.d.ts", True),
        ("node_modules/pkg/index.js", "**/node_modules/**", True),
        ("src/a.ts", "src/?.ts", True),
        ("src/ab.ts", "src/?.ts", False),
        ("src/b.ts", "src/[ab].ts", True),
        ("src/c.ts", "src/[!ab].ts", True),
    ],
)
def test_glob_match(path: str, pattern: str, expected: bool) -> None:
    assert glob_match(path, pattern) is expected


def test_matches_any() -> None:
    assert matches_any("src/hooks.server.ts", ["**/*.svelte", "**/*hooks.server.{js,ts}"])
    assert not matches_any("src/hooks.server.ts", [])
