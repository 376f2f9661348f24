"""
Salon Change Feed — Public API
===============================
The store commits a snapshot; the feed tells whoever is watching.
"""

from core.events.errors import ChangeFeedError, DuplicateSubscriberError
from core.events.feed import ChangeFeed

__all__ = [
    "ChangeFeed",
    "ChangeFeedError",
    "DuplicateSubscriberError",
]
