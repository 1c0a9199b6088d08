"""Markup extraction for the summary and register views."""

from tracker.app.services.extractor.linking import RegisterLink, link_registers
from tracker.app.services.extractor.patterns import FIELD_PATTERNS, LineClassifier
from tracker.app.services.extractor.register import RegisterExtractor
from tracker.app.services.extractor.summary import SummaryExtractor

__all__ = [
    "FIELD_PATTERNS",
    "LineClassifier",
    "RegisterExtractor",
    "RegisterLink",
    "SummaryExtractor",
    "link_registers",
]
