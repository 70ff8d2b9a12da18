"""Stateful diff view: the latest result for an old/new pair of buffers."""

from __future__ import annotations

import logging
from typing import List, Optional

from .diff_engine import AnnotationSink, DiffResult, StructuralDiffEngine
from .models import Highlights, Navigation, ReportEntry
from .parser import ParseError, ParseOptions

logger = logging.getLogger(__name__)


class DiffSession:
    """Holds the highlights, report and click targets of the last diff.

    A failed update clears everything before the error propagates, so a
    stale summary is never shown next to a comparison that did not parse.
    """

    def __init__(
        self,
        options: Optional[ParseOptions] = None,
        annotate: Optional[AnnotationSink] = None,
    ) -> None:
        self.engine = StructuralDiffEngine(options, annotate=annotate)
        self.result: Optional[DiffResult] = None
        self.error: Optional[ParseError] = None
        self.source_a = ""
        self.source_b = ""

    @property
    def report(self) -> List[ReportEntry]:
        return self.result.report if self.result is not None else []

    @property
    def highlights(self) -> Highlights:
        return self.result.highlights if self.result is not None else Highlights()

    def clear(self) -> None:
        if self.result is not None:
            self.result.registry.clear()
        self.result = None
        self.error = None

    def update(self, source_a: str, source_b: str) -> DiffResult:
        """Diff both buffers and replace the current state.

        Raises:
            ParseError: after clearing the current state.
        """
        self.source_a, self.source_b = source_a, source_b
        self.clear()
        try:
            self.result = self.engine.diff(source_a, source_b)
        except ParseError as exc:
            self.error = exc
            raise
        return self.result

    def update_b(self, source_b: str) -> DiffResult:
        """Re-diff after the new buffer was edited."""
        return self.update(self.source_a, source_b)

    def resolve(self, summary_id: str) -> Optional[Navigation]:
        if self.result is None:
            return None
        return self.result.registry.resolve(summary_id)
