"""
Identity Infrastructure Repositories
====================================

SQLAlchemy and in-memory implementations of the user repository.

Each SQLAlchemy call runs in its own transaction; uniqueness violations
surface as DuplicateIdentity, any other database error as StorageFailure.
"""

import asyncio
import copy
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from helpdesk.core import DuplicateIdentity, ResourceNotFoundException, StorageFailure
from helpdesk.identity.application import IUserRepository
from helpdesk.identity.domain import ChannelIdentity, User, normalize_email
from helpdesk.identity.infrastructure.models import UserIdentityModel, UserModel
from helpdesk.infrastructure.database import get_session_context


def _to_domain(model: UserModel) -> User:
    return User(
        id=str(model.id),
        name=model.name,
        role=model.role,
        email=model.email,
        source=model.source,
        external_id=model.external_id,
        is_active=model.is_active,
        created_at=model.created_at,
    )


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(value)
    except (ValueError, TypeError):
        return None


class SQLAlchemyUserRepository(IUserRepository):
    """SQLAlchemy implementation for users."""

    def __init__(self, session_factory: Callable = get_session_context):
        self._session_factory = session_factory

    async def get_by_id(self, user_id: str) -> Optional[User]:
        user_uuid = _parse_uuid(user_id)
        if user_uuid is None:
            return None
        try:
            async with self._session_factory() as session:
                model = await session.get(UserModel, user_uuid)
                return _to_domain(model) if model else None
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to load user {user_id}: {e}")

    async def get_by_identity(self, identity: ChannelIdentity) -> Optional[User]:
        stmt = (
            select(UserModel)
            .join(UserIdentityModel, UserIdentityModel.user_id == UserModel.id)
            .where(
                UserIdentityModel.source == identity.source,
                UserIdentityModel.external_id == identity.external_id,
            )
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                model = result.scalar_one_or_none()
                return _to_domain(model) if model else None
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to look up identity {identity.key}: {e}")

    async def get_by_email(self, email: str) -> Optional[User]:
        stmt = select(UserModel).where(UserModel.email == normalize_email(email))
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                model = result.scalar_one_or_none()
                return _to_domain(model) if model else None
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to look up user by email: {e}")

    async def create(self, user: User) -> User:
        model = UserModel(
            id=UUID(user.id),
            email=user.email,
            name=user.name,
            role=user.role.value,
            source=user.source,
            external_id=user.external_id,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.created_at,
        )
        try:
            async with self._session_factory() as session:
                session.add(model)
                await session.flush()
                if user.source is not None:
                    session.add(UserIdentityModel(
                        id=uuid4(),
                        user_id=model.id,
                        source=user.source,
                        external_id=user.external_id,
                    ))
                    await session.flush()
                created = _to_domain(model)
        except IntegrityError as e:
            raise DuplicateIdentity(
                (user.source, user.external_id) if user.source else user.email,
                {"error": str(e.orig)}
            )
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to create user: {e}")
        return created

    async def attach_identity(self, user_id: str, identity: ChannelIdentity) -> User:
        try:
            async with self._session_factory() as session:
                model = await session.get(UserModel, UUID(user_id))
                if model is None:
                    raise ResourceNotFoundException("User", user_id)
                session.add(UserIdentityModel(
                    id=uuid4(),
                    user_id=model.id,
                    source=identity.source,
                    external_id=identity.external_id,
                ))
                if model.source is None:
                    model.source = identity.source
                    model.external_id = identity.external_id
                model.updated_at = datetime.now(timezone.utc)
                await session.flush()
                attached = _to_domain(model)
        except IntegrityError as e:
            raise DuplicateIdentity(identity.key, {"error": str(e.orig)})
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to attach identity to user {user_id}: {e}")
        return attached

    async def set_active(self, user_id: str, is_active: bool) -> User:
        try:
            async with self._session_factory() as session:
                model = await session.get(UserModel, UUID(user_id))
                if model is None:
                    raise ResourceNotFoundException("User", user_id)
                model.is_active = is_active
                model.updated_at = datetime.now(timezone.utc)
                await session.flush()
                updated = _to_domain(model)
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to update user {user_id}: {e}")
        return updated


class InMemoryUserRepository(IUserRepository):
    """
    Dictionary-backed user repository.

    Enforces the same uniqueness rules as the SQL schema. Every call
    yields to the event loop once, the way a storage round-trip would.
    """

    def __init__(self, latency: float = 0.0):
        self._latency = latency
        self._users: Dict[str, User] = {}
        self._identities: Dict[Tuple[str, str], str] = {}
        self._emails: Dict[str, str] = {}

    async def _round_trip(self) -> None:
        await asyncio.sleep(self._latency)

    async def get_by_id(self, user_id: str) -> Optional[User]:
        await self._round_trip()
        user = self._users.get(user_id)
        return copy.deepcopy(user) if user else None

    async def get_by_identity(self, identity: ChannelIdentity) -> Optional[User]:
        await self._round_trip()
        user_id = self._identities.get(identity.key)
        return copy.deepcopy(self._users[user_id]) if user_id else None

    async def get_by_email(self, email: str) -> Optional[User]:
        await self._round_trip()
        user_id = self._emails.get(normalize_email(email))
        return copy.deepcopy(self._users[user_id]) if user_id else None

    async def create(self, user: User) -> User:
        await self._round_trip()
        if user.id in self._users:
            raise DuplicateIdentity(user.id)
        if user.source is not None and (user.source, user.external_id) in self._identities:
            raise DuplicateIdentity((user.source, user.external_id))
        if user.email and user.email in self._emails:
            raise DuplicateIdentity(user.email)

        stored = copy.deepcopy(user)
        self._users[stored.id] = stored
        if stored.source is not None:
            self._identities[(stored.source, stored.external_id)] = stored.id
        if stored.email:
            self._emails[stored.email] = stored.id
        return copy.deepcopy(stored)

    async def attach_identity(self, user_id: str, identity: ChannelIdentity) -> User:
        await self._round_trip()
        user = self._users.get(user_id)
        if user is None:
            raise ResourceNotFoundException("User", user_id)
        if identity.key in self._identities:
            raise DuplicateIdentity(identity.key)
        self._identities[identity.key] = user_id
        if user.source is None:
            user.source, user.external_id = identity.source, identity.external_id
        return copy.deepcopy(user)

    async def set_active(self, user_id: str, is_active: bool) -> User:
        await self._round_trip()
        user = self._users.get(user_id)
        if user is None:
            raise ResourceNotFoundException("User", user_id)
        user.is_active = is_active
        return copy.deepcopy(user)

    def __len__(self) -> int:
        return len(self._users)
