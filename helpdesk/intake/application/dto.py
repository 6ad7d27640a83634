"""
Intake Application DTOs
=======================

Data Transfer Objects exchanged with channel adapters.

Pydantic models for inbound message validation and the ticket state
relayed back to the channel.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from helpdesk.tickets.domain import Ticket


# ========== Type Aliases for Literals ==========
LanguageStr = Literal["ru", "kz", "en"]


# ========== Request DTOs ==========

class ExternalUser(BaseModel):
    """Sender as known to the channel."""
    id: str = Field(..., min_length=1, description="Channel-local user id, e.g. tg:123456")
    name: Optional[str] = Field(None, description="Display name")
    email: Optional[str] = Field(None, description="Email used for cross-channel merge")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        """Blank becomes None; anything else must look like an address."""
        if v is None or not v.strip():
            return None
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v.strip().lower()


class InboundMessage(BaseModel):
    """One message delivered by a channel adapter."""
    source: str = Field(..., min_length=1, max_length=50, description="Channel name")
    source_id: str = Field(..., min_length=1, max_length=255, description="Channel-local ticket key")
    user: ExternalUser
    subject: Optional[str] = Field(None, description="Subject; derived from body when missing")
    body: str = Field(..., min_length=1, description="Message text")
    language: Optional[LanguageStr] = Field(None, description="Detected when missing")

    @field_validator("source")
    @classmethod
    def normalize_source(cls, v: str) -> str:
        """Channel names are case-insensitive."""
        return v.strip().lower()

    @field_validator("body")
    @classmethod
    def validate_body_length(cls, v: str) -> str:
        """Ensure body is not too long for the classifier."""
        if not v.strip():
            raise ValueError("Body must not be blank")
        if len(v) > 10000:
            raise ValueError("Body too long (max 10000 characters)")
        return v


# ========== Response DTOs ==========

class TriageInfo(BaseModel):
    """Current triage of a ticket."""
    category: str
    category_conf: float = Field(..., ge=0.0, le=1.0)
    priority: str
    priority_conf: float = Field(..., ge=0.0, le=1.0)
    disposition: str
    disposition_conf: float = Field(..., ge=0.0, le=1.0)
    summary: str
    kb_article_ids: List[str] = Field(default_factory=list)
    degraded: bool = False


class IntakeResponse(BaseModel):
    """Ticket state returned to the channel adapter."""
    ticket_id: str
    status: str
    language: str
    thread_length: int
    triage: Optional[TriageInfo] = None
    suggested_response: Optional[str] = None
    updated_at: datetime

    @classmethod
    def from_domain(cls, ticket: Ticket) -> "IntakeResponse":
        """Create from domain entity."""
        triage = ticket.triage
        return cls(
            ticket_id=ticket.id,
            status=ticket.status.value,
            language=ticket.language,
            thread_length=ticket.message_count,
            triage=TriageInfo(
                category=triage.category,
                category_conf=triage.category_conf,
                priority=triage.priority.value,
                priority_conf=triage.priority_conf,
                disposition=triage.disposition.value,
                disposition_conf=triage.disposition_conf,
                summary=triage.summary,
                kb_article_ids=list(triage.kb_article_ids),
                degraded=triage.degraded,
            ) if triage else None,
            suggested_response=triage.suggested_response if triage else None,
            updated_at=ticket.updated_at,
        )
