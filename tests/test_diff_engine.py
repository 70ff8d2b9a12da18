"""Tests for alignment, reclassification and drill-down."""

import pytest

from astdiff_cli.diff_engine import (
    StructuralDiffEngine,
    align,
    categorize,
    diff_sources,
    drill_down,
    inner_statements,
    reclassify,
)
from astdiff_cli.models import ChangeType
from astdiff_cli.parser import ParseError, parse_source


def _types(report):
    return [item.type for item in report]


def _first(source: str):
    return parse_source(source).named_children[0]


class TestAlign:
    """Order-preserving LCS edit scripts."""

    def test_identical_sequences(self, entry_factory):
        seq = [entry_factory("a", index=0), entry_factory("b", index=1)]
        edits = align(seq, seq)

        assert [e.type for e in edits] == [ChangeType.UNCHANGED] * 2

    def test_empty_sequences(self, entry_factory):
        assert align([], []) == []
        only_b = align([], [entry_factory("x")])
        assert [e.type for e in only_b] == [ChangeType.ADDED]
        only_a = align([entry_factory("x")], [])
        assert [e.type for e in only_a] == [ChangeType.REMOVED]

    def test_tie_backtracks_added_first(self, entry_factory):
        edits = align([entry_factory("a")], [entry_factory("b")])
        assert [e.type for e in edits] == [ChangeType.REMOVED, ChangeType.ADDED]

    def test_script_reconstructs_both_sequences(self, entry_factory):
        seq_a = [entry_factory(h, index=i) for i, h in enumerate("abcde")]
        seq_b = [entry_factory(h, index=i) for i, h in enumerate("xbdey")]
        edits = align(seq_a, seq_b)

        rebuilt_a = [e.entry.fingerprint for e in edits if e.type is not ChangeType.ADDED]
        rebuilt_b = [e.entry.fingerprint for e in edits if e.type is not ChangeType.REMOVED]
        assert rebuilt_a == list("abcde")
        assert rebuilt_b == list("xbdey")
        assert sum(e.type is ChangeType.UNCHANGED for e in edits) == 3

    def test_moved_statement_is_removed_and_added(self, entry_factory):
        seq_a = [entry_factory("f1", "func:f1", 0), entry_factory("f2", "func:f2", 1)]
        seq_b = [entry_factory("f2", "func:f2", 0), entry_factory("f1", "func:f1", 1)]
        edits = align(seq_a, seq_b)

        assert [e.type for e in edits] == [
            ChangeType.REMOVED,
            ChangeType.UNCHANGED,
            ChangeType.ADDED,
        ]


class TestReclassify:
    """REMOVED/ADDED pairs with equal identity become MODIFIED."""

    def test_pairs_equal_identity(self, entry_factory):
        old = entry_factory("v1", "var:x", 0)
        new = entry_factory("v2", "var:x", 0)
        report = reclassify(align([old], [new]), "", "")

        assert _types(report) == [ChangeType.MODIFIED]
        assert report[0].entry is old
        assert report[0].match is new

    def test_null_identity_never_pairs(self, entry_factory):
        report = reclassify(align([entry_factory("a")], [entry_factory("b")]), "", "")
        assert _types(report) == [ChangeType.REMOVED, ChangeType.ADDED]

    def test_first_added_wins(self, entry_factory):
        old = entry_factory("v1", "var:x", 0)
        first = entry_factory("v2", "var:x", 0)
        second = entry_factory("v3", "var:x", 1)
        report = reclassify(align([old], [first, second]), "", "")

        assert _types(report) == [ChangeType.MODIFIED, ChangeType.ADDED]
        assert report[0].match is first
        assert report[1].entry is second

    def test_unmatched_added_go_last(self, entry_factory):
        seq_a = [entry_factory("k", index=0), entry_factory("r", "var:r", 1)]
        seq_b = [entry_factory("n", "var:n", 0), entry_factory("k", index=1)]
        report = reclassify(align(seq_a, seq_b), "", "")

        assert _types(report) == [ChangeType.UNCHANGED, ChangeType.REMOVED, ChangeType.ADDED]
        assert report[-1].entry.identity_key == "var:n"

    def test_every_edit_is_accounted_for(self, entry_factory):
        seq_a = [entry_factory(h, f"var:{h}" if h in "ab" else None, i) for i, h in enumerate("abcd")]
        seq_b = [entry_factory(h + "2", f"var:{h}" if h in "ab" else None, i) for i, h in enumerate("abxy")]
        edits = align(seq_a, seq_b)
        report = reclassify(edits, "", "")

        modified = sum(item.type is ChangeType.MODIFIED for item in report)
        assert len(report) + modified == len(edits)


class TestInnerStatements:

    def test_function_body(self):
        node = _first("function f() { a(); b(); }")
        assert [n.type for n in inner_statements(node)] == ["expression_statement"] * 2

    def test_callback_body(self):
        node = _first('app.get("/", function (req, res) { res.send(1); });')
        assert len(inner_statements(node)) == 1

    def test_arrow_callback_body(self):
        node = _first('app.get("/", (req, res) => { a(); b(); });')
        assert len(inner_statements(node)) == 2

    def test_arrow_expression_body_is_empty(self):
        node = _first('app.get("/", (req, res) => res.send(1));')
        assert inner_statements(node) == []

    def test_other_statements_are_empty(self):
        assert inner_statements(_first("let x = 1;")) == []


class TestDrillDown:

    def test_inner_changes_have_no_identity(self):
        old = "function f() { return 1; }"
        new = "function f() { return 2; }"
        sub = drill_down(_first(old), _first(new), old, new)

        assert _types(sub) == [ChangeType.REMOVED, ChangeType.ADDED]
        assert all(item.entry.identity_key is None for item in sub)
        assert all(item.key == "return_statement" for item in sub)

    def test_inner_entries_are_not_reclassified(self):
        old = "function f() { var a = 1; }"
        new = "function f() { var a = 2; }"
        sub = drill_down(_first(old), _first(new), old, new)

        assert ChangeType.MODIFIED not in _types(sub)


class TestScenarios:
    """End-to-end diffs through the engine facade."""

    def test_identical_sources(self):
        source = "let a = 1;\nfunction f() { return a; }\n"
        result = diff_sources(source, source)

        assert _types(result.report) == [ChangeType.UNCHANGED] * 2
        assert not result.has_changes
        assert result.highlights.is_empty
        assert len(result.registry) == 0

    def test_whitespace_and_comments_only(self):
        old = "let a = 1;\n"
        new = "// note\n\n\nlet   a   =   1 ;\n"
        assert not diff_sources(old, new).has_changes

    def test_added_statement(self):
        result = diff_sources("a();\n", "a();\nb();\n")

        assert _types(result.report) == [ChangeType.UNCHANGED, ChangeType.ADDED]
        assert result.report[1].key == "call:b(init)"
        assert len(result.highlights.added) == 1

    def test_modified_function_drills_down(self):
        old = "function helper(x) {\n  return x + 1;\n}\n"
        new = "function helper(x) {\n  return x + 2;\n}\n"
        result = diff_sources(old, new)

        assert _types(result.report) == [ChangeType.MODIFIED]
        item = result.report[0]
        assert item.key == "func:helper"
        assert _types(item.sub_report) == [ChangeType.REMOVED, ChangeType.ADDED]
        assert len(result.highlights.modified) == 1
        assert len(result.highlights.removed) == 1
        assert len(result.highlights.added) == 1

    def test_reordered_functions(self):
        old = "function f1() { return 1; }\nfunction f2() { return 2; }\n"
        new = "function f2() { return 2; }\nfunction f1() { return 1; }\n"
        result = diff_sources(old, new)

        assert _types(result.report) == [ChangeType.MODIFIED, ChangeType.UNCHANGED]
        assert result.report[0].key == "func:f1"
        assert result.report[0].sub_report and not any(
            item.type is not ChangeType.UNCHANGED for item in result.report[0].sub_report
        )

    def test_express_app(self, express_app_old, express_app_new):
        result = diff_sources(express_app_old, express_app_new)

        assert [(item.type, item.key) for item in result.report] == [
            (ChangeType.UNCHANGED, "var:express"),
            (ChangeType.UNCHANGED, "var:app"),
            (ChangeType.MODIFIED, "call:app.get(/)"),
            (ChangeType.MODIFIED, "func:helper"),
            (ChangeType.ADDED, "call:app.listen(3000)"),
        ]
        route = result.report[2]
        assert _types(route.sub_report) == [ChangeType.REMOVED, ChangeType.ADDED]

    def test_modified_entry_ranges(self):
        old = "let x = 1;"
        new = "\n\nlet x = 22;"
        item = diff_sources(old, new).report[0]

        assert item.type is ChangeType.MODIFIED
        assert old[item.entry.node.start:item.entry.node.end] == "let x = 1;"
        assert new[item.match.node.start:item.match.node.end] == "let x = 22;"

    def test_removed_declaration(self):
        result = diff_sources("let x = 1;", "")

        assert [(item.type, item.key) for item in result.report] == [(ChangeType.REMOVED, "var:x")]
        assert len(result.highlights.removed) == 1

    def test_different_routes_do_not_pair(self):
        result = diff_sources("app.get('/a', cb);", "app.get('/b', cb);")

        assert [(item.type, item.key) for item in result.report] == [
            (ChangeType.REMOVED, "call:app.get(/a)"),
            (ChangeType.ADDED, "call:app.get(/b)"),
        ]
        assert all(not item.sub_report for item in result.report)


def _concatenation(terms: int, last: str = "a") -> str:
    return "var s = " + " + ".join(['"a"'] * (terms - 1) + [f'"{last}"']) + ";\n"


def _nested_callbacks(depth: int, inner: str = "done();") -> str:
    return "f(function () { " * depth + inner + " });" * depth + "\n"


class TestDeepInput:
    """Inputs nested far deeper than the interpreter recursion limit."""

    def test_long_concatenation_is_unchanged(self):
        source = _concatenation(2000)
        result = diff_sources(source, source)

        assert [(item.type, item.key) for item in result.report] == [(ChangeType.UNCHANGED, "var:s")]

    def test_long_concatenation_change(self):
        result = diff_sources(_concatenation(2000), _concatenation(2000, last="b"))

        assert [(item.type, item.key) for item in result.report] == [(ChangeType.MODIFIED, "var:s")]

    def test_nested_callbacks(self):
        old = _nested_callbacks(200)
        new = _nested_callbacks(200, inner="done(1);")

        assert not diff_sources(old, old).has_changes
        result = diff_sources(old, new)
        assert _types(result.report) == [ChangeType.MODIFIED]
        assert result.report[0].key == "call:f(init)"


class TestParseFailures:

    def test_error_propagates(self):
        with pytest.raises(ParseError):
            diff_sources("let a = 1;", "let a = ;")

    def test_annotate_receives_side(self):
        seen = []
        engine = StructuralDiffEngine(annotate=lambda side, err: seen.append((side, err.line)))

        with pytest.raises(ParseError):
            engine.diff("ok();\n", "ok();\nlet b = ;\n")

        assert seen == [("b", 2)]

    def test_categorize_summaries(self):
        entries = categorize("function f() {\n  return 1;\n}\n")

        assert entries[0].summary == "function f() { return 1; }"
        assert entries[0].summary_id.startswith("sum_id_")
        assert entries[0].key == "func:f"
