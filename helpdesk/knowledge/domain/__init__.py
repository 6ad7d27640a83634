"""
Knowledge Domain Layer
======================

KB articles and keyword extraction.
"""

from helpdesk.knowledge.domain.entities import KBArticle, normalize_keywords
from helpdesk.knowledge.domain.keywords import derive_keywords

__all__ = [
    "KBArticle",
    "derive_keywords",
    "normalize_keywords",
]
