"""
Identity Bounded Context
========================

Resolves channel identities (telegram, whatsapp, email, ...) to stable
users, merging channels that share an email.
"""

from helpdesk.identity.application import IdentityResolver, IUserRepository
from helpdesk.identity.domain import ChannelIdentity, User

__all__ = [
    "ChannelIdentity",
    "User",
    "IdentityResolver",
    "IUserRepository",
]
