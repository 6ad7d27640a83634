"""
Knowledge Application Layer
===========================

KB cache, matcher and suggested response rendering.
"""

from helpdesk.knowledge.application.services import (
    IKBArticleRepository,
    KBMatcher,
    KBMatches,
    KBSnapshot,
    KBStore,
    compose_suggested_response,
)

__all__ = [
    "IKBArticleRepository",
    "KBMatcher",
    "KBMatches",
    "KBSnapshot",
    "KBStore",
    "compose_suggested_response",
]
