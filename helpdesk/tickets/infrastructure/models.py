"""
Tickets Infrastructure Models
=============================

SQLAlchemy ORM models for tickets, thread messages and the triage
(ticket_nlp) record.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.config import TicketStatus
from helpdesk.infrastructure.database import Base


class TicketModel(Base):
    """
    Database model for Ticket entity.

    message_count is the thread length; appends bump it atomically and
    use the new value as the message seq.
    """
    __tablename__ = "tickets"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Channel key
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    source_id: Mapped[str] = mapped_column(String(255), nullable=False)

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )

    # Content
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    language: Mapped[str] = mapped_column(String(5), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TicketStatus.NEW.value,
        index=True
    )
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
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

    __table_args__ = (
        UniqueConstraint("source", "source_id", name="uq_tickets_source_source_id"),
    )


class TicketMessageModel(Base):
    """
    Database model for TicketMessage entity.

    Rows are never updated; (ticket_id, seq) is unique.
    """
    __tablename__ = "ticket_messages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    ticket_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    sender: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)
    sender_type: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint("ticket_id", "seq", name="uq_ticket_messages_ticket_id_seq"),
    )


class TicketNlpModel(Base):
    """
    Database model for the current TicketTriage of a ticket.

    One row per ticket (ticket_id is the primary key); reclassification
    overwrites it. `triage` holds the disposition.
    """
    __tablename__ = "ticket_nlp"

    ticket_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        primary_key=True
    )

    category: Mapped[str] = mapped_column(String(50), nullable=False)
    category_conf: Mapped[float] = mapped_column(Float, nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    priority_conf: Mapped[float] = mapped_column(Float, nullable=False)
    triage: Mapped[str] = mapped_column(String(30), nullable=False)
    triage_conf: Mapped[float] = mapped_column(Float, nullable=False)

    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    suggested_response: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    kb_refs: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    is_degraded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
