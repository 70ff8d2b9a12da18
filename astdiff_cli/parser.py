"""JavaScript parsing built on Tree-sitter.

Wraps the ``tree-sitter-javascript`` grammar and converts its concrete syntax
tree into immutable :class:`~astdiff_cli.models.SyntaxNode` trees:

- byte offsets become character offsets with line/column locations
- comments and pure punctuation tokens are dropped
- error and missing nodes surface as a structured :class:`ParseError`
- syntax newer than the requested ECMAScript edition is rejected
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple, Union

import tree_sitter_javascript
from tree_sitter import Language, Parser as TSParser

from .models import SourceLocation, SyntaxNode

logger = logging.getLogger(__name__)

SOURCE_TYPES = ("module", "script")
LATEST = "latest"

# Tokens whose meaning is already carried by the shape of the tree.
PUNCTUATION = frozenset({";", ",", "(", ")", "{", "}", "[", "]", "."})
SKIPPED_TYPES = frozenset({"comment", "html_comment", "hash_bang_line"})

# Minimum ECMAScript edition for node types and operator/keyword tokens.
MIN_ECMA_VERSION: Dict[str, int] = {
    "arrow_function": 2015,
    "class_declaration": 2015,
    "class": 2015,
    "lexical_declaration": 2015,
    "template_string": 2015,
    "generator_function_declaration": 2015,
    "generator_function": 2015,
    "yield_expression": 2015,
    "spread_element": 2015,
    "rest_pattern": 2015,
    "object_pattern": 2015,
    "array_pattern": 2015,
    "import_statement": 2015,
    "export_statement": 2015,
    "**": 2016,
    "**=": 2016,
    "async": 2017,
    "await_expression": 2017,
    "optional_chain": 2020,
    "??": 2020,
    "&&=": 2021,
    "||=": 2021,
    "??=": 2021,
    "field_definition": 2022,
    "class_static_block": 2022,
    "private_property_identifier": 2022,
}

_MODULE_ONLY = frozenset({"import_statement", "export_statement"})


class ParseError(Exception):
    """Malformed source, located at a 1-based line and 0-based column."""

    def __init__(self, message: str, line: int, column: int) -> None:
        super().__init__(f"{message} ({line}:{column})")
        self.message = message
        self.line = line
        self.column = column


def normalize_ecma_version(value: Union[int, str]) -> Optional[int]:
    """Return the edition year for *value*, or ``None`` for ``"latest"``.

    Accepts years (``2020``), edition numbers (``11``) and numeric strings
    as read from the config file.
    """
    if isinstance(value, str):
        if value.strip().lower() == LATEST:
            return None
        try:
            value = int(value)
        except ValueError:
            raise ValueError(f"Invalid ecma_version: {value!r}") from None
    if value in (3, 5):
        return value
    if 6 <= value <= 99:
        return value + 2009
    if value >= 2015:
        return value
    raise ValueError(f"Invalid ecma_version: {value!r}")


@dataclass(frozen=True)
class ParseOptions:
    """ECMAScript edition and source type used for parsing."""

    ecma_version: Union[int, str] = 2020
    source_type: str = "module"

    def __post_init__(self) -> None:
        if self.source_type not in SOURCE_TYPES:
            raise ValueError(
                f"source_type must be one of {', '.join(SOURCE_TYPES)}; got {self.source_type!r}"
            )
        normalize_ecma_version(self.ecma_version)

    @property
    def edition(self) -> Optional[int]:
        return normalize_ecma_version(self.ecma_version)


class _OffsetIndex:
    """Maps tree-sitter byte offsets to character offsets and locations."""

    def __init__(self, source: str, data: bytes) -> None:
        self.source = source
        self._char_at: Optional[List[int]] = None
        if len(data) != len(source):
            char_at = [0] * (len(data) + 1)
            pos = 0
            for i, ch in enumerate(source):
                width = len(ch.encode("utf-8"))
                for k in range(width):
                    char_at[pos + k] = i
                pos += width
            char_at[pos] = len(source)
            self._char_at = char_at
        self._line_starts = [0]
        self._line_starts.extend(i + 1 for i, ch in enumerate(source) if ch == "\n")

    def char(self, byte_offset: int) -> int:
        if self._char_at is None:
            return byte_offset
        return self._char_at[byte_offset]

    def position(self, offset: int) -> Tuple[int, int]:
        row = bisect_right(self._line_starts, offset) - 1
        return row + 1, offset - self._line_starts[row]

    def location(self, start: int, end: int) -> SourceLocation:
        line, column = self.position(start)
        end_line, end_column = self.position(end)
        return SourceLocation(line=line, column=column, end_line=end_line, end_column=end_column)


class JavaScriptParser:
    """Error-strict JavaScript parser on top of the error-tolerant Tree-sitter.

    Tree-sitter recovers from syntax errors; this wrapper refuses any tree
    that needed recovery so callers never diff a partially parsed file.
    """

    def __init__(self, options: Optional[ParseOptions] = None) -> None:
        self.options = options or ParseOptions()
        ts_lang = Language(tree_sitter_javascript.language())
        self._parser = TSParser(ts_lang)
        logger.debug("Loaded tree-sitter parser for javascript")

    def parse(self, source: str) -> SyntaxNode:
        """Parse *source* into a ``program`` node.

        Raises:
            ParseError: on malformed input, syntax above the configured
                edition, or module syntax in script mode.
        """
        data = source.encode("utf-8")
        tree = self._parser.parse(data)
        index = _OffsetIndex(source, data)
        root = tree.root_node

        if root.has_error:
            bad = _first_error(root) or root
            raise self._error_at(bad, index, _describe_error(bad))

        if self.options.source_type == "script":
            for child in root.named_children:
                if child.type in _MODULE_ONLY:
                    raise self._error_at(
                        child, index,
                        "'import' and 'export' may appear only with 'sourceType: module'",
                    )

        program = self._convert(root, index, self.options.edition)
        logger.debug(
            "Parsed %d characters into %d top-level statements",
            len(source), len(program.named_children),
        )
        return program

    # ------------------------------------------------------------------
    # CST -> SyntaxNode
    # ------------------------------------------------------------------

    def _convert(self, root: Any, index: _OffsetIndex, edition: Optional[int]) -> SyntaxNode:
        """Build the SyntaxNode tree bottom-up with one cursor and a frame stack.

        ``frames`` holds the open ancestors of the cursor position; its length
        always equals the cursor depth.
        """
        self._check_edition(root, index, edition)
        frames: List[Tuple[Any, Optional[str], List[SyntaxNode]]] = [(root, None, [])]
        cursor = root.walk()
        moved = cursor.goto_first_child()
        while moved:
            ts_node = cursor.node
            field_name = cursor.field_name
            if not _skipped(ts_node):
                self._check_edition(ts_node, index, edition)
                if cursor.goto_first_child():
                    frames.append((ts_node, field_name, []))
                    continue
                frames[-1][2].append(self._build(ts_node, field_name, [], index))

            while not cursor.goto_next_sibling():
                if len(frames) == 1:
                    moved = False
                    break
                cursor.goto_parent()
                node, name, children = frames.pop()
                frames[-1][2].append(self._build(node, name, children, index))

        return self._build(root, None, frames[0][2], index)

    def _check_edition(self, ts_node: Any, index: _OffsetIndex, edition: Optional[int]) -> None:
        if edition is None:
            return
        required = MIN_ECMA_VERSION.get(ts_node.type)
        if required is not None and required > edition:
            raise self._error_at(
                ts_node, index,
                f"'{ts_node.type}' requires ecmaVersion {required} or later",
            )

    @staticmethod
    def _build(
        ts_node: Any,
        field_name: Optional[str],
        children: List[SyntaxNode],
        index: _OffsetIndex,
    ) -> SyntaxNode:
        start = index.char(ts_node.start_byte)
        end = index.char(ts_node.end_byte)
        text = index.source[start:end] if ts_node.child_count == 0 else None
        return SyntaxNode(
            type=ts_node.type,
            field=field_name,
            named=ts_node.is_named,
            text=text,
            children=tuple(children),
            start=start,
            end=end,
            loc=index.location(start, end),
        )

    @staticmethod
    def _error_at(ts_node: Any, index: _OffsetIndex, message: str) -> ParseError:
        line, column = index.position(index.char(ts_node.start_byte))
        return ParseError(message, line, column)


def _skipped(ts_node: Any) -> bool:
    if ts_node.type in SKIPPED_TYPES:
        return True
    return not ts_node.is_named and ts_node.type in PUNCTUATION


def _first_error(ts_node: Any) -> Optional[Any]:
    """Return the first ERROR or MISSING node in document order."""
    stack = [ts_node]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        stack.extend(
            child for child in reversed(node.children) if child.has_error or child.is_missing
        )
    return None


def _describe_error(ts_node: Any) -> str:
    if ts_node.is_missing:
        return f"Expected {ts_node.type}"
    return "Unexpected token"


@lru_cache(maxsize=8)
def _parser_for(options: ParseOptions) -> JavaScriptParser:
    return JavaScriptParser(options)


def parse_source(source: str, options: Optional[ParseOptions] = None) -> SyntaxNode:
    """Parse *source* with a cached parser for *options*."""
    return _parser_for(options or ParseOptions()).parse(source)
