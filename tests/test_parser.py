"""Tests for the Tree-sitter backed JavaScript parser."""

import pytest

from astdiff_cli.models import NodeKind
from astdiff_cli.parser import (
    JavaScriptParser,
    ParseError,
    ParseOptions,
    normalize_ecma_version,
    parse_source,
)


def test_parse_program_statements():
    """Top-level statements become named children of the program."""
    program = parse_source("let a = 1;\nfunction f() {}\nf();\n")

    assert program.kind is NodeKind.PROGRAM
    kinds = [ch.kind for ch in program.named_children]
    assert kinds == [
        NodeKind.VARIABLE_DECLARATION,
        NodeKind.FUNCTION_DECLARATION,
        NodeKind.EXPRESSION_STATEMENT,
    ]


def test_empty_source_has_no_statements():
    program = parse_source("")
    assert program.named_children == []


def test_comments_are_dropped():
    program = parse_source("// leading\nlet a = 1; /* trailing */\n")

    assert [ch.type for ch in program.named_children] == ["lexical_declaration"]
    assert all(n.type != "comment" for n in program.walk())


def test_punctuation_is_dropped():
    program = parse_source("f(a, b);")
    assert all(n.text not in {";", ",", "(", ")"} for n in program.walk())


def test_field_names_are_kept():
    program = parse_source("function greet(name) { return name; }")
    func = program.named_children[0]

    assert func.child("name").text == "greet"
    assert func.child("body").kind is NodeKind.STATEMENT_BLOCK


def test_offsets_are_characters_not_bytes():
    """Non-ASCII text before a statement must not shift its offsets."""
    source = 'let s = "héllo";\nlet t = 2;\n'
    program = parse_source(source)
    second = program.named_children[1]

    assert source[second.start:second.end] == "let t = 2;"
    assert second.loc.line == 2
    assert second.loc.column == 0


def test_locations_are_one_based_lines():
    program = parse_source("\n\n  let x = 1;")
    stmt = program.named_children[0]

    assert stmt.loc.line == 3
    assert stmt.loc.column == 2


class TestParseErrors:
    """Malformed input surfaces as a located ParseError."""

    def test_error_has_line(self):
        with pytest.raises(ParseError) as excinfo:
            parse_source("let a = 1;\nlet b = ;\n")

        assert excinfo.value.line == 2
        assert excinfo.value.message

    def test_error_string_includes_position(self):
        with pytest.raises(ParseError) as excinfo:
            parse_source("function (")

        err = excinfo.value
        assert f"({err.line}:{err.column})" in str(err)

    def test_import_rejected_in_script_mode(self):
        options = ParseOptions(source_type="script")

        with pytest.raises(ParseError) as excinfo:
            parse_source('import fs from "fs";\n', options)

        assert "sourceType: module" in excinfo.value.message
        assert excinfo.value.line == 1

    def test_import_allowed_in_module_mode(self):
        program = parse_source('import fs from "fs";\n', ParseOptions(source_type="module"))
        assert program.named_children[0].type == "import_statement"


class TestEcmaVersion:
    """Syntax newer than the configured edition is rejected."""

    def test_arrow_function_needs_es2015(self):
        with pytest.raises(ParseError) as excinfo:
            parse_source("var f = () => 1;", ParseOptions(ecma_version=5, source_type="script"))
        assert "2015" in excinfo.value.message

    def test_optional_chain_needs_es2020(self):
        source = "var x = a?.b;"
        with pytest.raises(ParseError):
            parse_source(source, ParseOptions(ecma_version=2019))
        assert parse_source(source, ParseOptions(ecma_version=2020)).named_children

    def test_latest_accepts_everything(self):
        program = parse_source("a ??= b;", ParseOptions(ecma_version="latest"))
        assert len(program.named_children) == 1

    @pytest.mark.parametrize(
        "value, expected",
        [(5, 5), (6, 2015), (11, 2020), (2022, 2022), ("2021", 2021), ("latest", None)],
    )
    def test_normalize(self, value, expected):
        assert normalize_ecma_version(value) == expected

    @pytest.mark.parametrize("value", [4, 1999, "es-next"])
    def test_normalize_rejects(self, value):
        with pytest.raises(ValueError):
            normalize_ecma_version(value)


def test_options_reject_unknown_source_type():
    with pytest.raises(ValueError):
        ParseOptions(source_type="commonjs")


def test_parser_default_options():
    parser = JavaScriptParser()
    assert parser.options == ParseOptions(ecma_version=2020, source_type="module")


def test_walk_is_preorder():
    program = parse_source("f(a);")
    types = [n.type for n in program.walk()]

    assert types == ["program", "expression_statement", "call_expression", "identifier", "arguments", "identifier"]


class TestDeepNesting:

    def test_long_operator_chain(self):
        program = parse_source("var s = " + " + ".join(["x"] * 3000) + ";")
        nodes = list(program.walk())

        assert sum(n.type == "binary_expression" for n in nodes) == 2999
        assert sum(n.text == "x" for n in nodes) == 3000

    def test_error_inside_deep_chain(self):
        source = "var s = " + " + ".join(["x"] * 3000) + " + ;"
        with pytest.raises(ParseError) as exc:
            parse_source(source)
        assert exc.value.line == 1

    def test_nested_functions_keep_offsets(self):
        source = "f(function () { " * 300 + "g();" + " });" * 300
        program = parse_source(source)
        deepest = [n for n in program.walk() if n.text == "g"]

        assert len(deepest) == 1
        assert source[deepest[0].start:deepest[0].end] == "g"
