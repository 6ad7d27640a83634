"""
Tickets Application Services
============================

Ticket lifecycle: idempotent upsert, append-only threads, the status
state machine and the current triage record.

All mutations of one ticket run under a ticket-scoped lock, so thread
order is the order in which appends reach the store. The locks are per
process; status writes are also conditional on the status they were
validated against, so several processes can share one store.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from helpdesk.config import SenderType, TicketStatus
from helpdesk.core import (
    DuplicateIdentity,
    InvalidTransition,
    ResourceNotFoundException,
    StorageFailure,
    TicketClosed,
)
from helpdesk.identity.domain import User
from helpdesk.shared.infrastructure.locks import KeyedLock
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.tickets.domain import Ticket, TicketMessage, TicketTriage

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class ITicketRepository(ABC):
    """Interface for ticket, thread and triage data access."""

    @abstractmethod
    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket (with its current triage) by ID."""

    @abstractmethod
    async def get_by_source(self, source: str, source_id: str) -> Optional[Ticket]:
        """Get ticket by its channel key."""

    @abstractmethod
    async def create(self, ticket: Ticket) -> Ticket:
        """
        Insert a new ticket.

        Raises:
            DuplicateIdentity: (source, source_id) already exists
        """

    @abstractmethod
    async def update_status(
        self,
        ticket_id: str,
        status: TicketStatus,
        expected: TicketStatus,
    ) -> Optional[Ticket]:
        """
        Persist a new status if the ticket is still in `expected`.

        Returns:
            Updated ticket, or None when the stored status differs

        Raises:
            ResourceNotFoundException: unknown ticket
        """

    @abstractmethod
    async def save_triage(
        self,
        ticket_id: str,
        triage: TicketTriage,
        status: TicketStatus,
        expected: TicketStatus,
    ) -> Optional[Ticket]:
        """Replace the triage and set the status in one write, if still in `expected`."""

    @abstractmethod
    async def append_message(
        self,
        ticket_id: str,
        sender: Optional[str],
        sender_type: SenderType,
        content: str,
    ) -> TicketMessage:
        """Append to the thread, allocating the next seq atomically."""

    @abstractmethod
    async def last_message(self, ticket_id: str) -> Optional[TicketMessage]:
        """Latest message of the thread, if any."""

    @abstractmethod
    async def list_messages(self, ticket_id: str) -> List[TicketMessage]:
        """Whole thread in seq order."""


# ========== Application Services ==========

class TicketStore:
    """
    Owns tickets and their threads.

    Upserts are serialized per (source, source_id); appends, transitions
    and triage updates per ticket id.
    """

    MAX_ATTEMPTS = 3

    def __init__(self, ticket_repository: ITicketRepository):
        self._tickets = ticket_repository
        self._source_locks = KeyedLock()
        self._ticket_locks = KeyedLock()

    async def upsert_ticket(
        self,
        source: str,
        source_id: str,
        user: User,
        subject: str,
        body: str,
        language: str,
    ) -> Tuple[Ticket, bool]:
        """
        Return the ticket for (source, source_id), creating it if needed.

        Re-delivery returns the stored ticket unchanged with is_new=False.

        Returns:
            (ticket, is_new)
        """
        existing = await self._tickets.get_by_source(source, source_id)
        if existing is not None:
            return existing, False

        async with self._source_locks.acquire((source, source_id)):
            for _ in range(self.MAX_ATTEMPTS):
                existing = await self._tickets.get_by_source(source, source_id)
                if existing is not None:
                    return existing, False
                try:
                    ticket = await self._tickets.create(
                        Ticket.open(source, source_id, user.id, subject, body, language)
                    )
                except DuplicateIdentity:
                    # Another process created it; the next pass reads it
                    logger.info(
                        "Ticket create race lost, re-reading winner",
                        extra={"source": source, "source_id": source_id}
                    )
                    continue

                logger.info(
                    "Ticket created",
                    extra={"ticket_id": ticket.id, "source": source, "user_id": user.id}
                )
                return ticket, True

        existing = await self._tickets.get_by_source(source, source_id)
        if existing is None:
            raise StorageFailure(
                f"Could not upsert ticket {source}:{source_id}",
                {"source": source, "source_id": source_id}
            )
        return existing, False

    async def append_message(
        self,
        ticket_id: str,
        sender: Optional[str],
        sender_type: SenderType,
        content: str,
        dedupe: bool = False,
    ) -> TicketMessage:
        """
        Append a message to the ticket thread.

        With dedupe=True a message identical (sender, sender_type, content)
        to the latest one is not stored again; the latest one is returned.
        """
        async with self._ticket_locks.acquire(ticket_id):
            if dedupe:
                last = await self._tickets.last_message(ticket_id)
                if last is not None and last.same_payload(sender, sender_type, content):
                    logger.info(
                        "Duplicate message suppressed",
                        extra={"ticket_id": ticket_id, "seq": last.seq}
                    )
                    return last
            return await self._tickets.append_message(ticket_id, sender, sender_type, content)

    async def transition(self, ticket_id: str, new_status: TicketStatus) -> Ticket:
        """
        Move a ticket to another status.

        The write only applies if the status read for validation is still
        the stored one; otherwise the move is re-validated against the
        newer status.

        Raises:
            InvalidTransition: target not reachable; ticket is unchanged
            ResourceNotFoundException: unknown ticket
        """
        new_status = TicketStatus(new_status)
        async with self._ticket_locks.acquire(ticket_id):
            for _ in range(self.MAX_ATTEMPTS):
                ticket = await self._require(ticket_id)
                if not ticket.can_transition_to(new_status):
                    raise InvalidTransition(ticket_id, ticket.status.value, new_status.value)
                if new_status == TicketStatus.TRIAGED and ticket.triage is None:
                    raise InvalidTransition(
                        ticket_id, ticket.status.value, new_status.value,
                        reason="ticket has no triage"
                    )

                updated = await self._tickets.update_status(ticket_id, new_status, expected=ticket.status)
                if updated is not None:
                    break
                self._log_conflict(ticket_id, ticket.status)
            else:
                raise InvalidTransition(
                    ticket_id, ticket.status.value, new_status.value,
                    reason="status kept changing"
                )

        logger.info(
            "Ticket status changed",
            extra={"ticket_id": ticket_id, "from": ticket.status.value, "to": new_status.value}
        )
        return updated

    async def set_triage(self, ticket_id: str, triage: TicketTriage) -> Ticket:
        """
        Replace the current triage; a new ticket becomes triaged.

        Raises:
            TicketClosed: ticket is resolved or closed, also when it got
                there between the read and the write
        """
        async with self._ticket_locks.acquire(ticket_id):
            for _ in range(self.MAX_ATTEMPTS):
                ticket = await self._require(ticket_id)
                if ticket.is_closed:
                    raise TicketClosed(ticket_id, ticket.status.value)

                status = TicketStatus.TRIAGED if ticket.status == TicketStatus.NEW else ticket.status
                updated = await self._tickets.save_triage(ticket_id, triage, status, expected=ticket.status)
                if updated is not None:
                    return updated
                self._log_conflict(ticket_id, ticket.status)

        raise StorageFailure(
            f"Could not store triage for ticket {ticket_id}: status kept changing",
            {"ticket_id": ticket_id}
        )

    def _log_conflict(self, ticket_id: str, expected: TicketStatus) -> None:
        logger.info(
            "Ticket status changed concurrently, re-reading",
            extra={"ticket_id": ticket_id, "expected": expected.value}
        )

    async def get(self, ticket_id: str) -> Ticket:
        return await self._require(ticket_id)

    async def list_messages(self, ticket_id: str) -> List[TicketMessage]:
        return await self._tickets.list_messages(ticket_id)

    async def _require(self, ticket_id: str) -> Ticket:
        ticket = await self._tickets.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket
