"""Portal access: markup sources and retry handling."""

from tracker.app.portal.retry import RetryPolicy, is_network_error, with_retry
from tracker.app.portal.source import HttpMarkupSource, MarkupSource

__all__ = [
    "HttpMarkupSource",
    "MarkupSource",
    "RetryPolicy",
    "is_network_error",
    "with_retry",
]
