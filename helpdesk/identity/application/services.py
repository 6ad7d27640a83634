"""
Identity Application Services
=============================

Maps channel identities to stable users.

Resolution for one (source, external_id) is serialized in-process by a
keyed lock; across processes the storage uniqueness constraint decides
the winner and the loser re-reads it.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import uuid4

from helpdesk.config import UserRole
from helpdesk.core import DuplicateIdentity, ResourceNotFoundException, StorageFailure
from helpdesk.identity.domain import ChannelIdentity, User, normalize_email
from helpdesk.shared.infrastructure.locks import KeyedLock
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class IUserRepository(ABC):
    """Interface for user data access."""

    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Get user by internal ID."""

    @abstractmethod
    async def get_by_identity(self, identity: ChannelIdentity) -> Optional[User]:
        """Get the user owning a channel identity."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by (normalized) email."""

    @abstractmethod
    async def create(self, user: User) -> User:
        """
        Insert a user together with its primary channel identity.

        Raises:
            DuplicateIdentity: identity or email already taken
        """

    @abstractmethod
    async def attach_identity(self, user_id: str, identity: ChannelIdentity) -> User:
        """
        Link another channel identity to an existing user.

        Raises:
            DuplicateIdentity: identity already owned by someone
        """

    @abstractmethod
    async def set_active(self, user_id: str, is_active: bool) -> User:
        """Activate or deactivate a user."""


# ========== Application Services ==========

class IdentityResolver:
    """
    Resolves (source, external_id) to a User, creating it on first contact.

    Lookup chain: channel identity, then email (cross-channel merge), then
    a new user with role=user.
    """

    MAX_ATTEMPTS = 3

    def __init__(self, user_repository: IUserRepository):
        self._users = user_repository
        self._locks = KeyedLock()

    async def resolve(
        self,
        source: str,
        external_id: str,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        """
        Return the user behind a channel identity.

        Args:
            source: Channel name, e.g. "telegram"
            external_id: Channel-local user id, e.g. "tg:123456"
            display_name: Name to use if a user has to be created
            email: Optional email used to merge with an existing user

        Returns:
            The existing, merged or newly created User
        """
        identity = ChannelIdentity(source, external_id)

        user = await self._users.get_by_identity(identity)
        if user is not None:
            return user

        async with self._locks.acquire(identity.key):
            for _ in range(self.MAX_ATTEMPTS):
                try:
                    return await self._resolve_once(identity, display_name, normalize_email(email))
                except DuplicateIdentity as e:
                    # Someone else committed first; loop re-reads their row
                    logger.info(
                        "Identity race lost, re-reading winner",
                        extra={"source": source, "external_id": external_id, "key": str(e.key)}
                    )

        user = await self._users.get_by_identity(identity)
        if user is None:
            raise StorageFailure(
                f"Could not resolve identity {source}:{external_id}",
                {"source": source, "external_id": external_id}
            )
        return user

    async def _resolve_once(
        self,
        identity: ChannelIdentity,
        display_name: Optional[str],
        email: Optional[str],
    ) -> User:
        user = await self._users.get_by_identity(identity)
        if user is not None:
            return user

        if email:
            owner = await self._users.get_by_email(email)
            if owner is not None:
                merged = await self._users.attach_identity(owner.id, identity)
                logger.info(
                    "Channel identity merged by email",
                    extra={"user_id": merged.id, "source": identity.source}
                )
                return merged

        created = await self._users.create(User.from_channel(identity, display_name, email))
        logger.info(
            "User created on first contact",
            extra={"user_id": created.id, "source": identity.source}
        )
        return created

    async def deactivate(self, user_id: str) -> User:
        """Users are never deleted, only deactivated."""
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise ResourceNotFoundException("User", user_id)
        return await self._users.set_active(user_id, False)

    async def provision(
        self,
        email: str,
        name: str,
        role: UserRole = UserRole.OPERATOR,
    ) -> User:
        """
        Idempotently provision a staff account keyed by email.

        Run at process start under explicit configuration; an existing
        account is returned as is.
        """
        normalized = normalize_email(email)
        if not normalized:
            raise ValueError("email is required to provision a user")

        async with self._locks.acquire(("email", normalized)):
            existing = await self._users.get_by_email(normalized)
            if existing is not None:
                return existing
            try:
                user = await self._users.create(
                    User(id=str(uuid4()), name=name, role=role, email=normalized)
                )
            except DuplicateIdentity:
                user = await self._users.get_by_email(normalized)
                if user is None:
                    raise
                return user

        logger.info("User provisioned", extra={"user_id": user.id, "role": user.role.value})
        return user
