"""Core data models shared by the parser, diff engine and presenters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple


class NodeKind(str, Enum):
    """Closed set of syntax node kinds the diff engine distinguishes."""

    PROGRAM = "program"
    FUNCTION_DECLARATION = "function_declaration"
    VARIABLE_DECLARATION = "variable_declaration"
    VARIABLE_DECLARATOR = "variable_declarator"
    EXPRESSION_STATEMENT = "expression_statement"
    CALL_EXPRESSION = "call_expression"
    ARGUMENTS = "arguments"
    MEMBER_EXPRESSION = "member_expression"
    IDENTIFIER = "identifier"
    FUNCTION_EXPRESSION = "function_expression"
    ARROW_FUNCTION = "arrow_function"
    STATEMENT_BLOCK = "statement_block"
    LITERAL = "literal"
    OTHER = "other"


# tree-sitter-javascript node type -> kind
KIND_BY_TYPE: Dict[str, NodeKind] = {
    "program": NodeKind.PROGRAM,
    "function_declaration": NodeKind.FUNCTION_DECLARATION,
    "generator_function_declaration": NodeKind.FUNCTION_DECLARATION,
    "variable_declaration": NodeKind.VARIABLE_DECLARATION,
    "lexical_declaration": NodeKind.VARIABLE_DECLARATION,
    "variable_declarator": NodeKind.VARIABLE_DECLARATOR,
    "expression_statement": NodeKind.EXPRESSION_STATEMENT,
    "call_expression": NodeKind.CALL_EXPRESSION,
    "arguments": NodeKind.ARGUMENTS,
    "member_expression": NodeKind.MEMBER_EXPRESSION,
    "identifier": NodeKind.IDENTIFIER,
    "property_identifier": NodeKind.IDENTIFIER,
    "private_property_identifier": NodeKind.IDENTIFIER,
    "undefined": NodeKind.IDENTIFIER,
    "function_expression": NodeKind.FUNCTION_EXPRESSION,
    # grammar releases before 0.21 call function expressions "function"
    "function": NodeKind.FUNCTION_EXPRESSION,
    "generator_function": NodeKind.FUNCTION_EXPRESSION,
    "arrow_function": NodeKind.ARROW_FUNCTION,
    "statement_block": NodeKind.STATEMENT_BLOCK,
    "string": NodeKind.LITERAL,
    "number": NodeKind.LITERAL,
    "true": NodeKind.LITERAL,
    "false": NodeKind.LITERAL,
    "null": NodeKind.LITERAL,
    "regex": NodeKind.LITERAL,
}


@dataclass(frozen=True)
class SourceLocation:
    """1-based lines, 0-based character columns."""
    line: int
    column: int
    end_line: int
    end_column: int


@dataclass(frozen=True, eq=False)
class SyntaxNode:
    """Immutable syntax tree node converted from a tree-sitter CST.

    Offsets are character offsets into the parsed source, not bytes.
    Nodes compare by identity; compare fingerprints for structural equality.
    """

    type: str
    field: Optional[str] = None
    named: bool = True
    text: Optional[str] = None
    children: Tuple["SyntaxNode", ...] = ()
    start: int = 0
    end: int = 0
    loc: Optional[SourceLocation] = None

    @property
    def kind(self) -> NodeKind:
        return KIND_BY_TYPE.get(self.type, NodeKind.OTHER)

    def child(self, field_name: str) -> Optional["SyntaxNode"]:
        """Return the first child stored under *field_name*."""
        for ch in self.children:
            if ch.field == field_name:
                return ch
        return None

    @property
    def named_children(self) -> List["SyntaxNode"]:
        return [ch for ch in self.children if ch.named]

    def walk(self) -> Iterator["SyntaxNode"]:
        """Pre-order traversal using an explicit stack."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


@dataclass(frozen=True)
class Entry:
    """One diffable statement with its fingerprint and display metadata."""

    identity_key: Optional[str]
    key: str
    fingerprint: str
    source_index: int
    node: SyntaxNode
    summary: str = ""
    summary_id: str = ""


class ChangeType(str, Enum):
    UNCHANGED = "UNCHANGED"
    ADDED = "ADDED"
    REMOVED = "REMOVED"
    MODIFIED = "MODIFIED"


@dataclass(frozen=True)
class EditOperation:
    """One step of an edit script produced by the aligner."""
    type: ChangeType
    entry: Entry


@dataclass
class ReportEntry:
    """A reclassified edit.

    ``match`` is only set for MODIFIED entries and always comes from the new
    sequence; ``entry`` then comes from the old one.
    """

    type: ChangeType
    entry: Entry
    match: Optional[Entry] = None
    sub_report: List["ReportEntry"] = field(default_factory=list)

    @classmethod
    def from_edit(cls, edit: EditOperation) -> "ReportEntry":
        return cls(type=edit.type, entry=edit.entry)

    @property
    def key(self) -> str:
        return self.entry.key


@dataclass(frozen=True)
class TextRange:
    start: int
    end: int

    @classmethod
    def of(cls, node: SyntaxNode) -> "TextRange":
        return cls(start=node.start, end=node.end)


@dataclass
class Highlights:
    """Character ranges to mark in the old (A) and new (B) buffers."""
    removed: List[TextRange] = field(default_factory=list)
    added: List[TextRange] = field(default_factory=list)
    modified: List[Tuple[TextRange, TextRange]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.removed or self.added or self.modified)


@dataclass(frozen=True)
class Navigation:
    """Where a summary line points to in either buffer."""
    type: ChangeType
    range_a: Optional[TextRange] = None
    range_b: Optional[TextRange] = None
