"""
Tickets Infrastructure Repositories
===================================

SQLAlchemy and in-memory implementations of ITicketRepository.
"""

import asyncio
import copy
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from helpdesk.config import SenderType, TicketStatus
from helpdesk.core import DuplicateIdentity, ResourceNotFoundException, StorageFailure
from helpdesk.infrastructure.database import get_session_context
from helpdesk.tickets.application import ITicketRepository
from helpdesk.tickets.domain import Ticket, TicketMessage, TicketTriage
from helpdesk.tickets.infrastructure.models import (
    TicketMessageModel,
    TicketModel,
    TicketNlpModel,
)


def _triage_to_domain(model: TicketNlpModel) -> TicketTriage:
    return TicketTriage(
        category=model.category,
        category_conf=model.category_conf,
        priority=model.priority,
        priority_conf=model.priority_conf,
        disposition=model.triage,
        disposition_conf=model.triage_conf,
        summary=model.summary,
        suggested_response=model.suggested_response,
        kb_article_ids=list(model.kb_refs or []),
        degraded=model.is_degraded,
    )


def _ticket_to_domain(model: TicketModel, nlp: Optional[TicketNlpModel]) -> Ticket:
    return Ticket(
        id=str(model.id),
        source=model.source,
        source_id=model.source_id,
        user_id=str(model.user_id),
        subject=model.subject,
        body=model.body,
        language=model.language,
        status=model.status,
        message_count=model.message_count,
        triage=_triage_to_domain(nlp) if nlp else None,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _message_to_domain(model: TicketMessageModel) -> TicketMessage:
    return TicketMessage(
        id=str(model.id),
        ticket_id=str(model.ticket_id),
        seq=model.seq,
        sender=str(model.sender) if model.sender else None,
        sender_type=model.sender_type,
        content=model.content,
        created_at=model.created_at,
    )


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation for tickets.

    Every method is its own transaction.
    """

    def __init__(self, session_factory: Callable = get_session_context):
        self._session_factory = session_factory

    async def _load(self, session, ticket_id: UUID) -> Optional[Ticket]:
        model = await session.get(TicketModel, ticket_id)
        if model is None:
            return None
        nlp = await session.get(TicketNlpModel, ticket_id)
        return _ticket_to_domain(model, nlp)

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        try:
            ticket_uuid = UUID(ticket_id)
        except ValueError:
            return None
        try:
            async with self._session_factory() as session:
                return await self._load(session, ticket_uuid)
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to load ticket {ticket_id}: {e}")

    async def get_by_source(self, source: str, source_id: str) -> Optional[Ticket]:
        stmt = select(TicketModel.id).where(
            TicketModel.source == source,
            TicketModel.source_id == source_id,
        )
        try:
            async with self._session_factory() as session:
                ticket_uuid = (await session.execute(stmt)).scalar_one_or_none()
                if ticket_uuid is None:
                    return None
                return await self._load(session, ticket_uuid)
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to look up ticket {source}:{source_id}: {e}")

    async def create(self, ticket: Ticket) -> Ticket:
        model = TicketModel(
            id=UUID(ticket.id),
            source=ticket.source,
            source_id=ticket.source_id,
            user_id=UUID(ticket.user_id),
            subject=ticket.subject,
            body=ticket.body,
            language=ticket.language,
            status=ticket.status.value,
            message_count=0,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )
        try:
            async with self._session_factory() as session:
                session.add(model)
                await session.flush()
                created = _ticket_to_domain(model, None)
        except IntegrityError as e:
            raise DuplicateIdentity((ticket.source, ticket.source_id), {"error": str(e.orig)})
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to create ticket: {e}")
        return created

    def _compare_and_set(
        self, ticket_uuid: UUID, status: TicketStatus, expected: TicketStatus, now: datetime
    ):
        """UPDATE that only applies while the ticket is still in the expected status."""
        return (
            update(TicketModel)
            .where(
                TicketModel.id == ticket_uuid,
                TicketModel.status == TicketStatus(expected).value,
            )
            .values(status=TicketStatus(status).value, updated_at=now)
            .returning(TicketModel.id)
            .execution_options(synchronize_session=False)
        )

    async def _status_conflict(self, session, ticket_uuid: UUID, ticket_id: str) -> None:
        if await session.get(TicketModel, ticket_uuid) is None:
            raise ResourceNotFoundException("Ticket", ticket_id)

    async def update_status(
        self,
        ticket_id: str,
        status: TicketStatus,
        expected: TicketStatus,
    ) -> Optional[Ticket]:
        ticket_uuid = UUID(ticket_id)
        stmt = self._compare_and_set(ticket_uuid, status, expected, datetime.now(timezone.utc))
        try:
            async with self._session_factory() as session:
                if (await session.execute(stmt)).scalar_one_or_none() is None:
                    await self._status_conflict(session, ticket_uuid, ticket_id)
                    return None
                return await self._load(session, ticket_uuid)
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to update ticket {ticket_id}: {e}")

    async def save_triage(
        self,
        ticket_id: str,
        triage: TicketTriage,
        status: TicketStatus,
        expected: TicketStatus,
    ) -> Optional[Ticket]:
        ticket_uuid = UUID(ticket_id)
        now = datetime.now(timezone.utc)
        stmt = self._compare_and_set(ticket_uuid, status, expected, now)
        try:
            async with self._session_factory() as session:
                if (await session.execute(stmt)).scalar_one_or_none() is None:
                    await self._status_conflict(session, ticket_uuid, ticket_id)
                    return None

                nlp = await session.get(TicketNlpModel, ticket_uuid)
                if nlp is None:
                    nlp = TicketNlpModel(ticket_id=ticket_uuid)
                    session.add(nlp)
                nlp.category = triage.category
                nlp.category_conf = triage.category_conf
                nlp.priority = triage.priority.value
                nlp.priority_conf = triage.priority_conf
                nlp.triage = triage.disposition.value
                nlp.triage_conf = triage.disposition_conf
                nlp.summary = triage.summary
                nlp.suggested_response = triage.suggested_response
                nlp.kb_refs = list(triage.kb_article_ids)
                nlp.is_degraded = triage.degraded
                nlp.updated_at = now
                await session.flush()
                return await self._load(session, ticket_uuid)
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to save triage for ticket {ticket_id}: {e}")

    async def append_message(
        self,
        ticket_id: str,
        sender: Optional[str],
        sender_type: SenderType,
        content: str,
    ) -> TicketMessage:
        ticket_uuid = UUID(ticket_id)
        bump = (
            update(TicketModel)
            .where(TicketModel.id == ticket_uuid)
            .values(
                message_count=TicketModel.message_count + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .returning(TicketModel.message_count)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as session:
                seq = (await session.execute(bump)).scalar_one_or_none()
                if seq is None:
                    raise ResourceNotFoundException("Ticket", ticket_id)
                model = TicketMessageModel(
                    id=uuid4(),
                    ticket_id=ticket_uuid,
                    seq=seq,
                    sender=UUID(sender) if sender else None,
                    sender_type=SenderType(sender_type).value,
                    content=content,
                    created_at=datetime.now(timezone.utc),
                )
                session.add(model)
                await session.flush()
                return _message_to_domain(model)
        except IntegrityError as e:
            raise StorageFailure(f"Sequence conflict on ticket {ticket_id}: {e.orig}")
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to append message to ticket {ticket_id}: {e}")

    async def last_message(self, ticket_id: str) -> Optional[TicketMessage]:
        stmt = (
            select(TicketMessageModel)
            .where(TicketMessageModel.ticket_id == UUID(ticket_id))
            .order_by(TicketMessageModel.seq.desc())
            .limit(1)
        )
        try:
            async with self._session_factory() as session:
                model = (await session.execute(stmt)).scalar_one_or_none()
                return _message_to_domain(model) if model else None
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to read thread of ticket {ticket_id}: {e}")

    async def list_messages(self, ticket_id: str) -> List[TicketMessage]:
        stmt = (
            select(TicketMessageModel)
            .where(TicketMessageModel.ticket_id == UUID(ticket_id))
            .order_by(TicketMessageModel.seq)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [_message_to_domain(m) for m in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to read thread of ticket {ticket_id}: {e}")


class InMemoryTicketRepository(ITicketRepository):
    """
    Dictionary-backed ticket repository.

    Same uniqueness rules as the SQL schema; yields to the event loop on
    every call.
    """

    def __init__(self, latency: float = 0.0):
        self._latency = latency
        self._tickets: Dict[str, Ticket] = {}
        self._by_source: Dict[Tuple[str, str], str] = {}
        self._threads: Dict[str, List[TicketMessage]] = {}

    async def _round_trip(self) -> None:
        await asyncio.sleep(self._latency)

    def _stored(self, ticket_id: str) -> Ticket:
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        await self._round_trip()
        ticket = self._tickets.get(ticket_id)
        return copy.deepcopy(ticket) if ticket else None

    async def get_by_source(self, source: str, source_id: str) -> Optional[Ticket]:
        await self._round_trip()
        ticket_id = self._by_source.get((source, source_id))
        return copy.deepcopy(self._tickets[ticket_id]) if ticket_id else None

    async def create(self, ticket: Ticket) -> Ticket:
        await self._round_trip()
        key = (ticket.source, ticket.source_id)
        if key in self._by_source or ticket.id in self._tickets:
            raise DuplicateIdentity(key)
        stored = copy.deepcopy(ticket)
        self._tickets[stored.id] = stored
        self._by_source[key] = stored.id
        self._threads[stored.id] = []
        return copy.deepcopy(stored)

    async def update_status(
        self,
        ticket_id: str,
        status: TicketStatus,
        expected: TicketStatus,
    ) -> Optional[Ticket]:
        await self._round_trip()
        ticket = self._stored(ticket_id)
        if ticket.status != expected:
            return None
        ticket.status = TicketStatus(status)
        ticket.updated_at = datetime.now(timezone.utc)
        return copy.deepcopy(ticket)

    async def save_triage(
        self,
        ticket_id: str,
        triage: TicketTriage,
        status: TicketStatus,
        expected: TicketStatus,
    ) -> Optional[Ticket]:
        await self._round_trip()
        ticket = self._stored(ticket_id)
        if ticket.status != expected:
            return None
        ticket.triage = copy.deepcopy(triage)
        ticket.status = TicketStatus(status)
        ticket.updated_at = datetime.now(timezone.utc)
        return copy.deepcopy(ticket)

    async def append_message(
        self,
        ticket_id: str,
        sender: Optional[str],
        sender_type: SenderType,
        content: str,
    ) -> TicketMessage:
        await self._round_trip()
        ticket = self._stored(ticket_id)
        ticket.message_count += 1
        ticket.updated_at = datetime.now(timezone.utc)
        message = TicketMessage(
            id=str(uuid4()),
            ticket_id=ticket_id,
            seq=ticket.message_count,
            sender=sender,
            sender_type=sender_type,
            content=content,
        )
        self._threads[ticket_id].append(message)
        return copy.deepcopy(message)

    async def last_message(self, ticket_id: str) -> Optional[TicketMessage]:
        await self._round_trip()
        thread = self._threads.get(ticket_id) or []
        return copy.deepcopy(thread[-1]) if thread else None

    async def list_messages(self, ticket_id: str) -> List[TicketMessage]:
        await self._round_trip()
        return copy.deepcopy(self._threads.get(ticket_id, []))

    def __len__(self) -> int:
        return len(self._tickets)
