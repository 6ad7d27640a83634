"""
Knowledge Infrastructure Layer
==============================

Persistence and bundled fixtures for KB articles.
"""

from helpdesk.knowledge.infrastructure.fixtures import article_id, seed_articles
from helpdesk.knowledge.infrastructure.models import KBArticleModel
from helpdesk.knowledge.infrastructure.repositories import (
    InMemoryKBArticleRepository,
    SQLAlchemyKBArticleRepository,
)

__all__ = [
    "KBArticleModel",
    "SQLAlchemyKBArticleRepository",
    "InMemoryKBArticleRepository",
    "article_id",
    "seed_articles",
]
