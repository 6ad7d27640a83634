"""
Knowledge Bounded Context
=========================

Multilingual knowledge base: snapshot cache, article ranking and the
suggested responses built from matched articles.
"""

from helpdesk.knowledge.application import (
    IKBArticleRepository,
    KBMatcher,
    KBMatches,
    KBStore,
    compose_suggested_response,
)
from helpdesk.knowledge.domain import KBArticle, derive_keywords

__all__ = [
    "KBArticle",
    "derive_keywords",
    "IKBArticleRepository",
    "KBMatcher",
    "KBMatches",
    "KBStore",
    "compose_suggested_response",
]
