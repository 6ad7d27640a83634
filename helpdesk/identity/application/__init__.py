"""
Identity Application Layer
==========================

Identity resolution and the user repository interface.
"""

from helpdesk.identity.application.services import IdentityResolver, IUserRepository

__all__ = [
    "IdentityResolver",
    "IUserRepository",
]
