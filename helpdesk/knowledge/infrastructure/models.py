"""
Knowledge Infrastructure Models
===============================

SQLAlchemy ORM model for KB articles, one title/content column pair per
supported language.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.config import ArticleType
from helpdesk.infrastructure.database import Base


class KBArticleModel(Base):
    """
    Database model for KBArticle entity.

    Maps to the 'kb_articles' table.
    """
    __tablename__ = "kb_articles"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Per-language content
    title_ru: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    content_ru: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    title_kz: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    content_kz: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    title_en: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    content_en: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=ArticleType.FAQ.value)
    keywords: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    owner_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
