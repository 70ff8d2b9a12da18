"""Structural diff engine: statement alignment over syntax-tree fingerprints.

Pipeline for one request:

1. ``categorize`` parses each source and turns its top-level statements into
   :class:`Entry` objects (fingerprint, identity key, display summary).
2. ``align`` computes an LCS edit script over fingerprint equality.
3. ``reclassify`` pairs REMOVED/ADDED entries sharing an identity key into
   MODIFIED entries and drills into their bodies one level deep.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional, Sequence

from .fingerprint import fingerprint
from .identity import identity_of
from .models import (
    ChangeType,
    EditOperation,
    Entry,
    Highlights,
    NodeKind,
    ReportEntry,
    SyntaxNode,
)
from .parser import ParseError, ParseOptions, parse_source
from .report import ClickRegistry, highlights_for
from .summary import summarize

logger = logging.getLogger(__name__)

# Drill-down re-diffs the bodies of a modified pair once; inner pairs are
# never reclassified.
MAX_DRILL_DEPTH = 1

AnnotationSink = Callable[[str, ParseError], None]


# ===================================================================
# Entries
# ===================================================================

def build_entries(
    statements: Sequence[SyntaxNode],
    source: str,
    with_identity: bool = True,
) -> List[Entry]:
    """Fingerprint *statements* in source order.

    Top-level entries carry an identity key and fall back to the node type
    for display; inner entries (``with_identity=False``) only use the node
    type.
    """
    entries: List[Entry] = []
    for index, node in enumerate(statements):
        identity = identity_of(node) if with_identity else None
        summary, summary_id = summarize(node, source)
        entries.append(Entry(
            identity_key=identity,
            key=identity or node.type,
            fingerprint=fingerprint(node),
            source_index=index,
            node=node,
            summary=summary,
            summary_id=summary_id,
        ))
    return entries


def categorize(
    source: str,
    options: Optional[ParseOptions] = None,
    side: str = "a",
    annotate: Optional[AnnotationSink] = None,
) -> List[Entry]:
    """Parse *source* and build one entry per top-level statement.

    Args:
        source: JavaScript source text.
        options: Parser settings.
        side: ``"a"`` (old) or ``"b"`` (new), passed to *annotate*.
        annotate: Optional sink told about parse errors before they propagate.

    Raises:
        ParseError: if *source* does not parse.
    """
    try:
        program = parse_source(source, options)
    except ParseError as exc:
        logger.warning("Parse error in source %s: %s", side.upper(), exc)
        if annotate is not None:
            annotate(side, exc)
        raise
    entries = build_entries(program.named_children, source)
    logger.debug("Categorized %d statements for source %s", len(entries), side.upper())
    return entries


# ===================================================================
# Sequence alignment
# ===================================================================

def align(seq_a: Sequence[Entry], seq_b: Sequence[Entry]) -> List[EditOperation]:
    """Order-preserving edit script from *seq_a* to *seq_b*.

    Classic LCS over fingerprint equality. On backtrack a match is always
    taken; otherwise ADDED wins ties against REMOVED.
    """
    n, m = len(seq_a), len(seq_b)
    table = [[0] * (m + 1) for _ in range(n + 1)]

    for i in range(1, n + 1):
        hash_a = seq_a[i - 1].fingerprint
        row, prev = table[i], table[i - 1]
        for j in range(1, m + 1):
            if hash_a == seq_b[j - 1].fingerprint:
                row[j] = prev[j - 1] + 1
            else:
                row[j] = max(prev[j], row[j - 1])

    edits: Deque[EditOperation] = deque()
    i, j = n, m
    while i > 0 or j > 0:
        if i > 0 and j > 0 and seq_a[i - 1].fingerprint == seq_b[j - 1].fingerprint:
            edits.appendleft(EditOperation(ChangeType.UNCHANGED, seq_a[i - 1]))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or table[i][j - 1] >= table[i - 1][j]):
            edits.appendleft(EditOperation(ChangeType.ADDED, seq_b[j - 1]))
            j -= 1
        else:
            edits.appendleft(EditOperation(ChangeType.REMOVED, seq_a[i - 1]))
            i -= 1

    logger.debug("Aligned %d x %d entries, %d in common", n, m, table[n][m])
    return list(edits)


# ===================================================================
# Reclassification and drill-down
# ===================================================================

def reclassify(
    edits: Sequence[EditOperation],
    source_a: str,
    source_b: str,
    depth: int = 0,
) -> List[ReportEntry]:
    """Merge REMOVED/ADDED pairs with the same identity into MODIFIED.

    Each REMOVED entry takes the first still-unmatched ADDED entry with an
    equal, non-null identity, wherever it sits in the script. Unmatched
    ADDED entries are appended last in their original order.
    """
    report: List[ReportEntry] = []
    pool: List[EditOperation] = [e for e in edits if e.type is ChangeType.ADDED]

    for edit in edits:
        if edit.type is ChangeType.UNCHANGED:
            report.append(ReportEntry.from_edit(edit))
            continue
        if edit.type is not ChangeType.REMOVED:
            continue

        identity = edit.entry.identity_key
        match_index = -1
        if identity is not None:
            for k, candidate in enumerate(pool):
                if candidate.entry.identity_key == identity:
                    match_index = k
                    break

        if match_index == -1:
            report.append(ReportEntry.from_edit(edit))
            continue

        match = pool.pop(match_index).entry
        logger.debug("Pairing %s: #%d -> #%d", identity, edit.entry.source_index, match.source_index)
        sub_report: List[ReportEntry] = []
        if depth < MAX_DRILL_DEPTH:
            sub_report = drill_down(edit.entry.node, match.node, source_a, source_b)
        report.append(ReportEntry(
            type=ChangeType.MODIFIED,
            entry=edit.entry,
            match=match,
            sub_report=sub_report,
        ))

    report.extend(ReportEntry.from_edit(e) for e in pool)
    return report


def inner_statements(node: SyntaxNode) -> List[SyntaxNode]:
    """Body statements of a function declaration or of a call's callback.

    For an expression statement wrapping a call, the body of the first
    function or arrow-function argument is used. Anything else, including
    an arrow function with an expression body, has no inner statements.
    """
    if node.kind is NodeKind.FUNCTION_DECLARATION:
        return _block_statements(node.child("body"))

    if node.kind is NodeKind.EXPRESSION_STATEMENT:
        expressions = node.named_children
        if not expressions or expressions[0].kind is not NodeKind.CALL_EXPRESSION:
            return []
        args = expressions[0].child("arguments")
        if args is None:
            return []
        for arg in args.named_children:
            if arg.kind in (NodeKind.FUNCTION_EXPRESSION, NodeKind.ARROW_FUNCTION):
                return _block_statements(arg.child("body"))
    return []


def _block_statements(body: Optional[SyntaxNode]) -> List[SyntaxNode]:
    if body is None or body.kind is not NodeKind.STATEMENT_BLOCK:
        return []
    return body.named_children


def drill_down(
    old_node: SyntaxNode,
    new_node: SyntaxNode,
    source_a: str,
    source_b: str,
) -> List[ReportEntry]:
    """Align the inner statements of a modified pair."""
    old_entries = build_entries(inner_statements(old_node), source_a, with_identity=False)
    new_entries = build_entries(inner_statements(new_node), source_b, with_identity=False)
    return [ReportEntry.from_edit(e) for e in align(old_entries, new_entries)]


# ===================================================================
# Facade
# ===================================================================

@dataclass
class DiffResult:
    """Everything one diff request produces for its presenters."""
    report: List[ReportEntry]
    highlights: Highlights
    registry: ClickRegistry
    source_a: str = ""
    source_b: str = ""
    entries_a: List[Entry] = field(default_factory=list)
    entries_b: List[Entry] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return any(item.type is not ChangeType.UNCHANGED for item in self.report)


class StructuralDiffEngine:
    """Computes structural diffs between two versions of a JavaScript file."""

    def __init__(
        self,
        options: Optional[ParseOptions] = None,
        annotate: Optional[AnnotationSink] = None,
    ):
        """Initialize the engine.

        Args:
            options: Parser settings shared by both sources.
            annotate: Optional sink receiving ``(side, ParseError)`` when a
                source fails to parse, e.g. to place a gutter marker.
        """
        self.options = options or ParseOptions()
        self.annotate = annotate

    def report(self, source_a: str, source_b: str) -> List[ReportEntry]:
        """Return only the nested report for two sources."""
        return self.diff(source_a, source_b).report

    def diff(self, source_a: str, source_b: str) -> DiffResult:
        """Diff *source_a* (old) against *source_b* (new).

        Raises:
            ParseError: if either source fails to parse; no partial result
                is produced.
        """
        entries_a = categorize(source_a, self.options, "a", self.annotate)
        entries_b = categorize(source_b, self.options, "b", self.annotate)
        edits = align(entries_a, entries_b)
        report = reclassify(edits, source_a, source_b)
        return DiffResult(
            report=report,
            highlights=highlights_for(report),
            registry=ClickRegistry.from_report(report),
            source_a=source_a,
            source_b=source_b,
            entries_a=entries_a,
            entries_b=entries_b,
        )


def diff_sources(
    source_a: str,
    source_b: str,
    options: Optional[ParseOptions] = None,
) -> DiffResult:
    return StructuralDiffEngine(options).diff(source_a, source_b)
