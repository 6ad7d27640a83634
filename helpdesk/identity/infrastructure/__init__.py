"""
Identity Infrastructure Layer
=============================

Persistence for users and channel identities.
"""

from helpdesk.identity.infrastructure.models import UserIdentityModel, UserModel
from helpdesk.identity.infrastructure.repositories import (
    InMemoryUserRepository,
    SQLAlchemyUserRepository,
)

__all__ = [
    "UserModel",
    "UserIdentityModel",
    "SQLAlchemyUserRepository",
    "InMemoryUserRepository",
]
