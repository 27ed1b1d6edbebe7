from pathlib import Path

import pytest
from typer.testing import CliRunner

pytest.importorskip("tree_sitter_typescript")
pytest.importorskip("tree_sitter_javascript")
pytest.importorskip("tree_sitter_svelte")

from framechunk.cli import app  # noqa: E402

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("FRAMECHUNK_CONFIG_PATH", raising=False)
    monkeypatch.setenv("FRAMECHUNK_UPSERT_PAUSE_SECONDS", "0")


def test_chunk_then_integrity(tmp_path: Path) -> None:
    project = tmp_path / "app" / "src" / "routes"
    project.mkdir(parents=True)
    (project / "+page.svelte").write_text("<script>\n  let count = 0;\n</script>\n\n<button>{count}</button>\n")
    out = tmp_path / "chunks"

    result = runner.invoke(app, ["chunk", str(tmp_path / "app"), "--out", str(out)])

    assert result.exit_code == 0, result.output
    assert "chunks=2" in result.output
    assert (out / "schema.json").exists()

    check = runner.invoke(app, ["integrity", str(out)])
    assert check.exit_code == 0, check.output
    assert "Valid chunks: 2" in check.output


def test_integrity_fails_on_missing_content(tmp_path: Path) -> None:
    out = tmp_path / "chunks"
    out.mkdir()
    (out / "schema.json").write_text('[{"id": "abc", "type": "page"}]')

    result = runner.invoke(app, ["integrity", str(out)])

    assert result.exit_code == 1
    assert "missing abc" in result.output


def test_missing_target_exits_with_error(tmp_path: Path) -> None:
    result = runner.invoke(app, ["chunk", str(tmp_path / "nope")])
    assert result.exit_code == 2


def test_patterns_lists_route_table() -> None:
    result = runner.invoke(app, ["patterns"])
    assert result.exit_code == 0
    assert "serverRoutes" in result.output
