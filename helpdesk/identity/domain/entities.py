"""
Identity Domain Entities
========================

Users and the channel identities that point at them.

A user is reached through any number of (source, external_id) pairs,
one per channel, plus an optional email used to merge channels.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from uuid import uuid4

from helpdesk.config import UserRole


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Lower-case and strip an email; blank becomes None."""
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


@dataclass(frozen=True)
class ChannelIdentity:
    """A user's identity on one channel, e.g. ("telegram", "tg:123456")."""
    source: str
    external_id: str

    def __post_init__(self):
        if not self.source or not self.external_id:
            raise ValueError("source and external_id are required")

    @property
    def key(self) -> Tuple[str, str]:
        return (self.source, self.external_id)


@dataclass
class User:
    """
    User entity.

    The id never changes. (source, external_id) is the first channel
    identity seen for the user; later channels are attached through
    the identity table.
    """
    id: str
    name: str
    role: UserRole = UserRole.USER
    email: Optional[str] = None
    source: Optional[str] = None
    external_id: Optional[str] = None
    is_active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        self.email = normalize_email(self.email)
        self.role = UserRole(self.role)
        if (self.source is None) != (self.external_id is None):
            raise ValueError("source and external_id must be set together")

    @classmethod
    def from_channel(
        cls,
        identity: ChannelIdentity,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> "User":
        """New end user first seen on a channel."""
        return cls(
            id=str(uuid4()),
            name=name or f"{identity.source} user",
            role=UserRole.USER,
            email=email,
            source=identity.source,
            external_id=identity.external_id,
        )

    @property
    def primary_identity(self) -> Optional[ChannelIdentity]:
        if self.source is None:
            return None
        return ChannelIdentity(self.source, self.external_id)

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.OPERATOR)
