"""Report presenters: HTML summary, JSON payload and rich console tree."""

from __future__ import annotations

import html
import json
from typing import Any, Dict, List, Optional

from rich.text import Text
from rich.tree import Tree

from .diff_engine import DiffResult
from .models import ChangeType, ReportEntry, TextRange
from .report import count_changes

STATUS_STYLES: Dict[ChangeType, str] = {
    ChangeType.UNCHANGED: "dim",
    ChangeType.ADDED: "green",
    ChangeType.REMOVED: "red",
    ChangeType.MODIFIED: "yellow",
}


# ------------------------------------------------------------------
# HTML
# ------------------------------------------------------------------

def render_html(report: List[ReportEntry]) -> str:
    """Render the nested summary as HTML ``div`` elements.

    Unchanged entries are skipped; modified entries nest their sub-report.
    """
    if not report:
        return '<div class="diff-item status-unchanged">No changes detected.</div>'

    parts = ['<div class="diff-summary-container">']
    for item in report:
        if item.type is ChangeType.UNCHANGED:
            continue
        summary_id = html.escape(item.entry.summary_id, quote=True)
        parts.append(
            f'<div class="diff-item status-{item.type.value.lower()}" id="{summary_id}"'
            f' data-summary-id="{summary_id}">'
            f'<span class="diff-item-type">{item.type.value}</span>'
            f'<span class="identity-label">{html.escape(item.key)}</span>'
            f'<span class="summary-source">{html.escape(item.entry.summary)}</span>'
            "</div>"
        )
        if item.type is ChangeType.MODIFIED and item.sub_report:
            parts.append(f'<div class="sub-diff-container">{render_html(item.sub_report)}</div>')
    parts.append("</div>")
    return "".join(parts)


def render_page(result: DiffResult, title: str = "Structural Diff Summary") -> str:
    """Standalone HTML document around :func:`render_html`."""
    counts = count_changes(result.report)
    stats = " | ".join(f"{name.lower()}: {n}" for name, n in counts.items() if n)
    return f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>{html.escape(title)}</title>
  <style>
    body {{ font-family: ui-monospace, SFMono-Regular, Menlo, monospace; margin: 20px; background: #0f0f1a; color: #ddd; }}
    h3 {{ margin: 0; font-size: 1rem; color: #60a5fa; }}
    .header {{ padding: 10px; border-bottom: 1px solid #333; background: #1a1a2e; }}
    .diff-item {{ display: flex; gap: 12px; padding: 4px 10px; cursor: pointer; }}
    .diff-item-type {{ min-width: 80px; font-weight: bold; }}
    .identity-label {{ color: #a5b4fc; }}
    .summary-source {{ color: #999; white-space: pre; }}
    .status-added .diff-item-type {{ color: #4ade80; }}
    .status-removed .diff-item-type {{ color: #f87171; }}
    .status-modified .diff-item-type {{ color: #facc15; }}
    .sub-diff-container {{ margin-left: 24px; border-left: 1px dashed #444; }}
  </style>
</head>
<body>
  <div class="header">
    <h3>{html.escape(title)}</h3>
    <small>{html.escape(stats)}</small>
  </div>
  {render_html(result.report)}
</body>
</html>
"""


# ------------------------------------------------------------------
# JSON
# ------------------------------------------------------------------

def _range_dict(text_range: Optional[TextRange]) -> Optional[Dict[str, int]]:
    if text_range is None:
        return None
    return {"start": text_range.start, "end": text_range.end}


def report_to_dict(report: List[ReportEntry]) -> List[Dict[str, Any]]:
    payload = []
    for item in report:
        payload.append({
            "type": item.type.value,
            "key": item.key,
            "identity": item.entry.identity_key,
            "summary": item.entry.summary,
            "summary_id": item.entry.summary_id,
            "range": _range_dict(TextRange.of(item.entry.node)),
            "match_range": _range_dict(TextRange.of(item.match.node)) if item.match else None,
            "sub_report": report_to_dict(item.sub_report),
        })
    return payload


def report_to_json(result: DiffResult, indent: Optional[int] = 2) -> str:
    highlights = result.highlights
    return json.dumps(
        {
            "report": report_to_dict(result.report),
            "highlights": {
                "removed": [_range_dict(r) for r in highlights.removed],
                "added": [_range_dict(r) for r in highlights.added],
                "modified": [
                    {"a": _range_dict(a), "b": _range_dict(b)} for a, b in highlights.modified
                ],
            },
        },
        indent=indent,
        ensure_ascii=False,
    )


# ------------------------------------------------------------------
# Console
# ------------------------------------------------------------------

def _label(item: ReportEntry) -> Text:
    label = Text()
    label.append(f"[{item.type.value}]".ljust(12), style=STATUS_STYLES[item.type])
    label.append(f" {item.key}", style="bold")
    if item.entry.summary:
        label.append(f"  {item.entry.summary}", style="dim")
    label.append(f"  ({item.entry.summary_id})", style="dim cyan")
    return label


def build_tree(report: List[ReportEntry], show_unchanged: bool = False) -> Tree:
    """Rich tree of the report for terminal output."""
    tree = Tree(Text("Structural Diff Summary", style="bold blue"))
    _add_branch(tree, report, show_unchanged)
    if not tree.children:
        tree.add(Text("No changes detected.", style="dim"))
    return tree


def _add_branch(parent: Tree, report: List[ReportEntry], show_unchanged: bool) -> None:
    for item in report:
        if item.type is ChangeType.UNCHANGED and not show_unchanged:
            continue
        branch = parent.add(_label(item))
        if item.sub_report:
            _add_branch(branch, item.sub_report, show_unchanged)
