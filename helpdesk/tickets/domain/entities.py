"""
Tickets Domain Entities
=======================

Tickets, their append-only message threads, and the triage record
attached to them.

Contains pure Python business objects; persistence lives in the
infrastructure layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from helpdesk.config import (
    ALLOWED_TRANSITIONS,
    FALLBACK_CATEGORY,
    Disposition,
    Priority,
    SenderType,
    TicketStatus,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TicketTriage:
    """
    Current classification of a ticket.

    The three confidences are independent scores in [0, 1].
    `degraded` marks records produced without the scoring service.
    """
    category: str
    category_conf: float
    priority: Priority
    priority_conf: float
    disposition: Disposition
    disposition_conf: float
    summary: str = ""
    suggested_response: Optional[str] = None
    kb_article_ids: List[str] = field(default_factory=list)
    degraded: bool = False

    def __post_init__(self):
        """Validate confidences and coerce enum values."""
        self.priority = Priority(self.priority)
        self.disposition = Disposition(self.disposition)
        for name in ("category_conf", "priority_conf", "disposition_conf"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value}")

    @classmethod
    def degraded_default(cls, summary: str = "") -> "TicketTriage":
        """Triage used when the scoring service cannot be reached."""
        return cls(
            category=FALLBACK_CATEGORY,
            category_conf=0.0,
            priority=Priority.MEDIUM,
            priority_conf=0.0,
            disposition=Disposition.NEEDS_OPERATOR,
            disposition_conf=0.0,
            summary=summary,
            degraded=True,
        )


@dataclass
class TicketMessage:
    """One entry of a ticket thread. seq is 1-based arrival order."""
    id: str
    ticket_id: str
    seq: int
    sender: Optional[str]
    sender_type: SenderType
    content: str
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.sender_type = SenderType(self.sender_type)
        if self.seq < 1:
            raise ValueError("seq must be >= 1")

    def same_payload(self, sender: Optional[str], sender_type: SenderType, content: str) -> bool:
        """True if a new message with these fields would repeat this one."""
        return (
            self.sender == sender
            and self.sender_type == SenderType(sender_type)
            and self.content == content
        )


@dataclass
class Ticket:
    """
    Ticket entity.

    (source, source_id) identifies the ticket on its originating channel
    and is unique. message_count equals the thread length.
    """
    id: str
    source: str
    source_id: str
    user_id: str
    subject: str
    body: str
    language: str
    status: TicketStatus = TicketStatus.NEW
    message_count: int = 0
    triage: Optional[TicketTriage] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.status = TicketStatus(self.status)

    @classmethod
    def open(
        cls,
        source: str,
        source_id: str,
        user_id: str,
        subject: str,
        body: str,
        language: str,
    ) -> "Ticket":
        """New ticket in status new with an empty thread."""
        now = utcnow()
        return cls(
            id=str(uuid4()),
            source=source,
            source_id=source_id,
            user_id=user_id,
            subject=subject,
            body=body,
            language=language,
            created_at=now,
            updated_at=now,
        )

    @property
    def full_text(self) -> str:
        """Combined subject and body for classification."""
        if not self.subject:
            return self.body
        return f"{self.subject}\n\n{self.body}"

    @property
    def is_closed(self) -> bool:
        return self.status in (TicketStatus.RESOLVED, TicketStatus.CLOSED)

    def can_transition_to(self, new_status: TicketStatus) -> bool:
        """Check the state machine (without the triage precondition)."""
        return TicketStatus(new_status) in ALLOWED_TRANSITIONS[self.status]
