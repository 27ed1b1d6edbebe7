import pytest

pytest.importorskip("tree_sitter_typescript")
pytest.importorskip("tree_sitter_javascript")

from framechunk.chunking.models import ConstructKind  # noqa: E402
from framechunk.chunking.typescript import TypeScriptExtractor  # noqa: E402

MODULE = """import { error } from '@sveltejs/kit';
import type { PageLoad } from './$types';

export async function load({ params }) {
  if (!params.slug) throw error(404);
  return { slug: params.slug };
}

const add = (a: number, b: number) => a + b;

export abstract class Repository<T> extends Base implements Store {
  static create() {
    return null;
  }

  async fetchAll(): Promise<T[]> {
    return [];
  }

  abstract save(item: T): void;
}

interface Props {
  name: string;
}

type Id = string | number;

export { add as plus };
"""


def test_arrow_function_constant_is_one_function_construct() -> None:
    source = "const add = (a, b) => a + b;"
    result = TypeScriptExtractor().extract(source, dialect="javascript")

    assert len(result.constructs) == 1
    construct = result.constructs[0]
    assert construct.kind is ConstructKind.FUNCTION
    assert construct.name == "add"
    assert construct.metadata["isArrowFunction"] is True
    assert construct.metadata["isConst"] is True
    assert construct.content == source
    assert (construct.start_line, construct.end_line) == (1, 1)


def test_module_constructs_in_source_order() -> None:
    result = TypeScriptExtractor().extract(MODULE, dialect="typescript")

    assert [construct.name for construct in result.constructs] == [
        "load",
        "add",
        "Repository",
        "Repository.create",
        "Repository.fetchAll",
        "Repository.save",
        "Props",
        "Id",
        "plus",
    ]
    assert result.imports == ["@sveltejs/kit", "./$types"]
    assert result.exports == ["load", "Repository", "plus"]
    assert not result.opaque


def test_construct_metadata_flags() -> None:
    constructs = {c.name: c for c in TypeScriptExtractor().extract(MODULE, dialect="typescript").constructs}

    assert constructs["load"].metadata["isAsync"] is True
    assert constructs["load"].metadata["isExported"] is True
    assert constructs["Repository"].kind is ConstructKind.CLASS
    assert constructs["Repository"].metadata["isAbstract"] is True
    assert constructs["Repository"].metadata["superClass"] == "Base"
    assert constructs["Repository.create"].metadata["isStatic"] is True
    assert constructs["Repository.fetchAll"].metadata["isAsync"] is True
    assert constructs["Repository.save"].metadata["isAbstract"] is True
    assert constructs["Props"].kind is ConstructKind.INTERFACE
    assert constructs["Id"].metadata["isTypeAlias"] is True
    assert constructs["plus"].kind is ConstructKind.EXPORT
    assert constructs["plus"].metadata["names"] == ["plus"]


def test_construct_content_is_the_exact_line_slice() -> None:
    lines = MODULE.split("\n")
    for construct in TypeScriptExtractor().extract(MODULE, dialect="typescript").constructs:
        assert construct.content == "\n".join(lines[construct.start_line - 1 : construct.end_line])


def test_extraction_is_idempotent() -> None:
    extractor = TypeScriptExtractor()
    assert extractor.extract(MODULE) == extractor.extract(MODULE)


def test_line_offset_shifts_line_numbers() -> None:
    result = TypeScriptExtractor().extract("function a() {}\n", dialect="javascript", line_offset=10)
    assert result.constructs[0].start_line == 11


def test_plain_variables_follow_policy() -> None:
    source = "const limit = 10;\nexport let count = 0;\n"

    assert TypeScriptExtractor().extract(source).constructs == []
    constructs = TypeScriptExtractor(include_plain_variables=True).extract(source).constructs
    assert [(c.kind, c.name) for c in constructs] == [
        (ConstructKind.VARIABLE, "limit"),
        (ConstructKind.VARIABLE, "count"),
    ]
    assert constructs[1].metadata["isExported"] is True


def test_export_default_anonymous_function() -> None:
    result = TypeScriptExtractor().extract("export default function () {\n  return 1;\n}\n")

    assert len(result.constructs) == 1
    assert result.constructs[0].name == "anonymous"
    assert result.constructs[0].metadata["isDefault"] is True


def test_reexport_records_source() -> None:
    result = TypeScriptExtractor().extract("export * from './utils';\n")

    assert result.constructs[0].kind is ConstructKind.EXPORT
    assert result.constructs[0].metadata["reExportFrom"] == "./utils"


def test_syntax_error_yields_opaque_whole_file_construct() -> None:
    source = "function broken( {\n  return ;\n"
    result = TypeScriptExtractor().extract(source, dialect="javascript", source="src/broken.js")

    assert result.opaque
    assert len(result.constructs) == 1
    assert result.constructs[0].kind is ConstructKind.OPAQUE
    assert result.constructs[0].content == source
    assert result.warnings and "src/broken.js" in result.warnings[0]


def test_unknown_dialect_is_rejected() -> None:
    with pytest.raises(ValueError):
        TypeScriptExtractor().extract("let a = 1;", dialect="coffeescript")
