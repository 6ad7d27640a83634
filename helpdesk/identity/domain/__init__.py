"""
Identity Domain Layer
=====================

Framework-agnostic user and channel identity objects.
"""

from helpdesk.identity.domain.entities import ChannelIdentity, User, normalize_email

__all__ = [
    "ChannelIdentity",
    "User",
    "normalize_email",
]
