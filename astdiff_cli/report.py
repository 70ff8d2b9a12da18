"""Walking diff reports: flattening, highlight ranges and click navigation."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from .models import (
    ChangeType,
    Highlights,
    Navigation,
    ReportEntry,
    SyntaxNode,
    TextRange,
)


@dataclass
class FlatReport:
    """Nodes touched by a report, collected across every nesting level."""
    removed: List[SyntaxNode] = field(default_factory=list)
    added: List[SyntaxNode] = field(default_factory=list)
    modified: List[Tuple[SyntaxNode, SyntaxNode]] = field(default_factory=list)


def flatten_report(report: List[ReportEntry], flat: Optional[FlatReport] = None) -> FlatReport:
    """Collect removed, added and modified nodes depth-first.

    A modified pair is recorded before the entries of its sub-report.
    """
    flat = flat if flat is not None else FlatReport()
    for item in report:
        if item.type is ChangeType.REMOVED:
            flat.removed.append(item.entry.node)
        elif item.type is ChangeType.ADDED:
            flat.added.append(item.entry.node)
        elif item.type is ChangeType.MODIFIED and item.match is not None:
            flat.modified.append((item.entry.node, item.match.node))
            if item.sub_report:
                flatten_report(item.sub_report, flat)
    return flat


def highlights_for(report: List[ReportEntry]) -> Highlights:
    flat = flatten_report(report)
    return Highlights(
        removed=[TextRange.of(n) for n in flat.removed],
        added=[TextRange.of(n) for n in flat.added],
        modified=[(TextRange.of(a), TextRange.of(b)) for a, b in flat.modified],
    )


def iter_report(report: List[ReportEntry], depth: int = 0) -> Iterator[Tuple[int, ReportEntry]]:
    """Yield ``(depth, entry)`` pairs in display order."""
    for item in report:
        yield depth, item
        if item.sub_report:
            yield from iter_report(item.sub_report, depth + 1)


def count_changes(report: List[ReportEntry]) -> Dict[str, int]:
    """Count top-level entries per change type."""
    counts = {t.value: 0 for t in ChangeType}
    for item in report:
        counts[item.type.value] += 1
    return counts


def index_to_position(source: str, offset: int) -> Tuple[int, int]:
    """Translate a character offset into a 0-based ``(row, column)``."""
    offset = max(0, min(offset, len(source)))
    line_starts = [0]
    line_starts.extend(i + 1 for i, ch in enumerate(source) if ch == "\n")
    row = bisect_right(line_starts, offset) - 1
    return row, offset - line_starts[row]


class ClickRegistry:
    """Maps summary ids back to the report entries they label.

    One registry belongs to one diff request; nothing is shared between
    requests.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, ReportEntry] = {}

    @classmethod
    def from_report(cls, report: List[ReportEntry]) -> "ClickRegistry":
        registry = cls()
        registry.register(report)
        return registry

    def register(self, report: List[ReportEntry]) -> None:
        for _, item in iter_report(report):
            if item.type is not ChangeType.UNCHANGED:
                self._entries[item.entry.summary_id] = item

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, summary_id: object) -> bool:
        return summary_id in self._entries

    def get(self, summary_id: str) -> Optional[ReportEntry]:
        return self._entries.get(summary_id)

    def resolve(self, summary_id: str) -> Optional[Navigation]:
        """Return the ranges to select for a clicked summary line.

        REMOVED points into the old buffer, ADDED into the new one and
        MODIFIED into both.
        """
        item = self._entries.get(summary_id)
        if item is None:
            return None
        node_range = TextRange.of(item.entry.node)
        if item.type is ChangeType.REMOVED:
            return Navigation(type=item.type, range_a=node_range)
        if item.type is ChangeType.ADDED:
            return Navigation(type=item.type, range_b=node_range)
        match_range = TextRange.of(item.match.node) if item.match is not None else None
        return Navigation(type=item.type, range_a=node_range, range_b=match_range)
