"""
Knowledge Infrastructure Repositories
=====================================

SQLAlchemy and in-memory implementations of IKBArticleRepository.
"""

import asyncio
import copy
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from helpdesk.config import SUPPORTED_LANGUAGES
from helpdesk.core import StorageFailure
from helpdesk.infrastructure.database import get_session_context
from helpdesk.knowledge.application import IKBArticleRepository
from helpdesk.knowledge.domain import KBArticle
from helpdesk.knowledge.infrastructure.models import KBArticleModel
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _to_domain(model: KBArticleModel) -> KBArticle:
    return KBArticle(
        id=str(model.id),
        category=model.category,
        titles={lang: getattr(model, f"title_{lang}") for lang in SUPPORTED_LANGUAGES},
        bodies={lang: getattr(model, f"content_{lang}") for lang in SUPPORTED_LANGUAGES},
        type=model.type,
        keywords=model.keywords or [],
        is_published=model.is_published,
        owner_id=str(model.owner_id) if model.owner_id else None,
        created_at=model.created_at,
    )


def _apply(model: KBArticleModel, article: KBArticle) -> None:
    for lang in SUPPORTED_LANGUAGES:
        setattr(model, f"title_{lang}", article.titles.get(lang))
        setattr(model, f"content_{lang}", article.bodies.get(lang))
    model.category = article.category
    model.type = article.type.value
    model.keywords = sorted(article.keywords)
    model.is_published = article.is_published
    model.owner_id = UUID(article.owner_id) if article.owner_id else None
    model.updated_at = datetime.now(timezone.utc)


class SQLAlchemyKBArticleRepository(IKBArticleRepository):
    """SQLAlchemy implementation for KB articles."""

    def __init__(self, session_factory: Callable = get_session_context):
        self._session_factory = session_factory

    async def list_published(self) -> List[KBArticle]:
        """Published articles; rows that do not form a valid article are skipped."""
        stmt = select(KBArticleModel).where(KBArticleModel.is_published.is_(True))
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                models = result.scalars().all()
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to load KB articles: {e}")

        articles = []
        for model in models:
            try:
                articles.append(_to_domain(model))
            except ValueError as e:
                logger.warning(
                    "Skipping malformed KB article",
                    extra={"article_id": str(model.id), "error": str(e)}
                )
        return articles

    async def get_by_id(self, article_id: str) -> Optional[KBArticle]:
        try:
            async with self._session_factory() as session:
                model = await session.get(KBArticleModel, UUID(article_id))
                return _to_domain(model) if model else None
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to load KB article {article_id}: {e}")

    async def upsert(self, article: KBArticle) -> KBArticle:
        try:
            async with self._session_factory() as session:
                model = await session.get(KBArticleModel, UUID(article.id))
                if model is None:
                    model = KBArticleModel(id=UUID(article.id), created_at=article.created_at)
                    session.add(model)
                _apply(model, article)
                await session.flush()
                return _to_domain(model)
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to save KB article {article.id}: {e}")

    async def count(self) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(func.count()).select_from(KBArticleModel))
                return result.scalar_one()
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to count KB articles: {e}")


class InMemoryKBArticleRepository(IKBArticleRepository):
    """Dictionary-backed KB article repository."""

    def __init__(self, articles: Optional[List[KBArticle]] = None):
        self._articles: Dict[str, KBArticle] = {}
        for article in articles or []:
            self._articles[article.id] = copy.deepcopy(article)

    async def list_published(self) -> List[KBArticle]:
        await asyncio.sleep(0)
        return [copy.deepcopy(a) for a in self._articles.values() if a.is_published]

    async def get_by_id(self, article_id: str) -> Optional[KBArticle]:
        await asyncio.sleep(0)
        article = self._articles.get(article_id)
        return copy.deepcopy(article) if article else None

    async def upsert(self, article: KBArticle) -> KBArticle:
        await asyncio.sleep(0)
        self._articles[article.id] = copy.deepcopy(article)
        return copy.deepcopy(article)

    async def count(self) -> int:
        return len(self._articles)
