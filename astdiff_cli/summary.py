"""One-line source excerpts used to label diff entries."""

from __future__ import annotations

import itertools
import logging
import re
from typing import Optional, Tuple

from .models import SyntaxNode

logger = logging.getLogger(__name__)

MAX_SUMMARY = 60
EDGE_KEEP = 27
ELLIPSIS = "..."

_WHITESPACE = re.compile(r"\s+")
_summary_ids = itertools.count(1)


class SummaryExtractionError(ValueError):
    """A node's offsets do not describe a slice of its source."""


def next_summary_id() -> str:
    """Process-wide unique id, used as an opaque click target."""
    return f"sum_id_{next(_summary_ids)}"


def excerpt(node: SyntaxNode, source: str) -> str:
    """Collapse the node's source text onto one line and shorten it.

    Raises:
        SummaryExtractionError: if the node range falls outside *source*.
    """
    start, end = node.start, node.end
    if not (0 <= start <= end <= len(source)):
        raise SummaryExtractionError(
            f"range [{start}, {end}) outside source of length {len(source)}"
        )
    clean = _WHITESPACE.sub(" ", source[start:end]).strip()
    if len(clean) > MAX_SUMMARY:
        clean = clean[:EDGE_KEEP] + ELLIPSIS + clean[-EDGE_KEEP:]
    return clean


def summarize(node: Optional[SyntaxNode], source: str) -> Tuple[str, str]:
    """Return ``(summary, summary_id)`` for *node*.

    Never raises: a node whose range cannot be sliced is summarized by its
    type name.
    """
    if node is None or not source:
        return "", next_summary_id()
    try:
        text = excerpt(node, source)
    except SummaryExtractionError as exc:
        logger.warning("Falling back to node type for summary: %s", exc)
        text = node.type
    return text, next_summary_id()
