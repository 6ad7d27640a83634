"""Tests for ticket upsert, thread sequencing and the status state machine."""

import asyncio

import pytest

from helpdesk.config import Disposition, Priority, SenderType, TicketStatus
from helpdesk.core import InvalidTransition, ResourceNotFoundException, TicketClosed
from helpdesk.tickets.application import TicketStore
from helpdesk.tickets.domain import TicketTriage
from helpdesk.tickets.infrastructure import InMemoryTicketRepository


def make_triage(**overrides) -> TicketTriage:
    values = dict(
        category="access_vpn",
        category_conf=0.9,
        priority=Priority.MEDIUM,
        priority_conf=0.8,
        disposition=Disposition.NEEDS_OPERATOR,
        disposition_conf=0.7,
        summary="VPN",
    )
    values.update(overrides)
    return TicketTriage(**values)


class InterleavingRepository(InMemoryTicketRepository):
    """Lets another writer change the status right before the next conditional write."""

    def __init__(self):
        super().__init__()
        self.pending = None

    async def _interleave(self, ticket_id):
        if self.pending is not None:
            status, self.pending = self.pending, None
            stored = await self.get_by_id(ticket_id)
            await super().update_status(ticket_id, status, expected=stored.status)

    async def update_status(self, ticket_id, status, expected):
        await self._interleave(ticket_id)
        return await super().update_status(ticket_id, status, expected)

    async def save_triage(self, ticket_id, triage, status, expected):
        await self._interleave(ticket_id)
        return await super().save_triage(ticket_id, triage, status, expected)


@pytest.fixture
async def ticket(ticket_store, end_user):
    created, _ = await ticket_store.upsert_ticket(
        "telegram", "tg:msg:1", end_user, "Не работает VPN", "Ошибка 789", "ru"
    )
    return created


async def walk(store: TicketStore, ticket_id: str, *statuses: TicketStatus):
    for status in statuses:
        await store.transition(ticket_id, status)


async def test_upsert_creates_then_returns_existing(ticket_store, end_user):
    first, is_new = await ticket_store.upsert_ticket("telegram", "tg:1", end_user, "s", "b", "ru")
    again, again_new = await ticket_store.upsert_ticket("telegram", "tg:1", end_user, "other", "other", "en")

    assert is_new is True
    assert again_new is False
    assert again.id == first.id
    assert again.subject == "s"
    assert first.status == TicketStatus.NEW


async def test_parallel_upserts_create_one_ticket(ticket_store, ticket_repository, end_user):
    results = await asyncio.gather(*[
        ticket_store.upsert_ticket("portal", "web-1", end_user, "s", "b", "en") for _ in range(15)
    ])

    assert len({t.id for t, _ in results}) == 1
    assert sum(1 for _, is_new in results if is_new) == 1
    assert len(ticket_repository) == 1


async def test_upsert_race_across_stores(ticket_repository, end_user):
    stores = [TicketStore(ticket_repository), TicketStore(ticket_repository)]

    results = await asyncio.gather(*[
        stores[i % 2].upsert_ticket("email", "msg-1", end_user, "s", "b", "en") for i in range(8)
    ])

    assert len({t.id for t, _ in results}) == 1
    assert len(ticket_repository) == 1


async def test_appends_get_consecutive_seq(ticket_store, ticket, end_user):
    await asyncio.gather(*[
        ticket_store.append_message(ticket.id, end_user.id, SenderType.USER, f"m{i}") for i in range(10)
    ])

    thread = await ticket_store.list_messages(ticket.id)
    assert [m.seq for m in thread] == list(range(1, 11))
    assert (await ticket_store.get(ticket.id)).message_count == 10


async def test_append_always_appends_without_dedupe(ticket_store, ticket, end_user):
    await ticket_store.append_message(ticket.id, end_user.id, SenderType.USER, "same")
    await ticket_store.append_message(ticket.id, end_user.id, SenderType.USER, "same")

    assert len(await ticket_store.list_messages(ticket.id)) == 2


async def test_dedupe_suppresses_repeat_of_latest(ticket_store, ticket, end_user):
    first = await ticket_store.append_message(ticket.id, end_user.id, SenderType.USER, "same", dedupe=True)
    repeat = await ticket_store.append_message(ticket.id, end_user.id, SenderType.USER, "same", dedupe=True)

    assert repeat.id == first.id
    assert len(await ticket_store.list_messages(ticket.id)) == 1


async def test_dedupe_only_looks_at_latest(ticket_store, ticket, end_user):
    await ticket_store.append_message(ticket.id, end_user.id, SenderType.USER, "a", dedupe=True)
    await ticket_store.append_message(ticket.id, None, SenderType.SYSTEM, "auto-reply", dedupe=True)
    await ticket_store.append_message(ticket.id, end_user.id, SenderType.USER, "a", dedupe=True)

    thread = await ticket_store.list_messages(ticket.id)
    assert [m.content for m in thread] == ["a", "auto-reply", "a"]


async def test_append_to_unknown_ticket(ticket_store):
    with pytest.raises(ResourceNotFoundException):
        await ticket_store.append_message("missing", None, SenderType.SYSTEM, "x")


async def test_set_triage_advances_new_to_triaged(ticket_store, ticket):
    updated = await ticket_store.set_triage(ticket.id, make_triage())

    assert updated.status == TicketStatus.TRIAGED
    assert updated.triage.category == "access_vpn"


async def test_set_triage_replaces_current(ticket_store, ticket):
    await ticket_store.set_triage(ticket.id, make_triage())
    await walk(ticket_store, ticket.id, TicketStatus.IN_PROGRESS)

    updated = await ticket_store.set_triage(ticket.id, make_triage(category="network"))

    assert updated.triage.category == "network"
    assert updated.status == TicketStatus.IN_PROGRESS


@pytest.mark.parametrize("terminal", [TicketStatus.RESOLVED, TicketStatus.CLOSED])
async def test_set_triage_rejected_when_finished(ticket_store, ticket, terminal):
    await ticket_store.set_triage(ticket.id, make_triage())
    await walk(ticket_store, ticket.id, TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED)
    if terminal == TicketStatus.CLOSED:
        await walk(ticket_store, ticket.id, TicketStatus.CLOSED)

    with pytest.raises(TicketClosed):
        await ticket_store.set_triage(ticket.id, make_triage())


async def test_new_to_triaged_requires_triage(ticket_store, ticket):
    with pytest.raises(InvalidTransition):
        await ticket_store.transition(ticket.id, TicketStatus.TRIAGED)

    assert (await ticket_store.get(ticket.id)).status == TicketStatus.NEW


async def test_closed_is_terminal(ticket_store, ticket):
    await ticket_store.set_triage(ticket.id, make_triage())
    await walk(
        ticket_store, ticket.id,
        TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED, TicketStatus.CLOSED,
    )

    for target in TicketStatus:
        with pytest.raises(InvalidTransition):
            await ticket_store.transition(ticket.id, target)
    assert (await ticket_store.get(ticket.id)).status == TicketStatus.CLOSED


async def test_escalation_and_reclaim(ticket_store, ticket):
    escalated = await ticket_store.transition(ticket.id, TicketStatus.ESCALATED)
    assert escalated.status == TicketStatus.ESCALATED

    reclaimed = await ticket_store.transition(ticket.id, TicketStatus.IN_PROGRESS)
    assert reclaimed.status == TicketStatus.IN_PROGRESS


async def test_invalid_transition_leaves_state(ticket_store, ticket):
    with pytest.raises(InvalidTransition) as exc_info:
        await ticket_store.transition(ticket.id, TicketStatus.RESOLVED)

    assert exc_info.value.current == "new"
    assert exc_info.value.attempted == "resolved"
    assert (await ticket_store.get(ticket.id)).status == TicketStatus.NEW


@pytest.fixture
async def interleaved(end_user):
    repository = InterleavingRepository()
    store = TicketStore(repository)
    created, _ = await store.upsert_ticket("email", "msg-7@corp.kz", end_user, "VPN", "VPN", "ru")
    await store.set_triage(created.id, make_triage())
    await store.transition(created.id, TicketStatus.IN_PROGRESS)
    return store, repository, created.id


async def test_set_triage_rejected_when_resolved_meanwhile(interleaved):
    store, repository, ticket_id = interleaved
    repository.pending = TicketStatus.RESOLVED

    with pytest.raises(TicketClosed):
        await store.set_triage(ticket_id, make_triage(summary="reopened"))

    stored = await store.get(ticket_id)
    assert stored.status == TicketStatus.RESOLVED
    assert stored.triage.summary == "VPN"


async def test_transition_revalidated_after_concurrent_change(interleaved):
    store, repository, ticket_id = interleaved
    repository.pending = TicketStatus.RESOLVED

    with pytest.raises(InvalidTransition) as exc_info:
        await store.transition(ticket_id, TicketStatus.ESCALATED)

    assert exc_info.value.current == "resolved"
    assert (await store.get(ticket_id)).status == TicketStatus.RESOLVED


async def test_transition_applies_when_still_reachable(end_user):
    repository = InterleavingRepository()
    store = TicketStore(repository)
    created, _ = await store.upsert_ticket("email", "msg-8@corp.kz", end_user, "VPN", "VPN", "ru")
    await store.set_triage(created.id, make_triage())
    repository.pending = TicketStatus.IN_PROGRESS

    updated = await store.transition(created.id, TicketStatus.ESCALATED)

    assert updated.status == TicketStatus.ESCALATED


async def test_resolve_and_triage_across_stores(end_user):
    repository = InMemoryTicketRepository(latency=0.01)
    operator_store, intake_store = TicketStore(repository), TicketStore(repository)
    created, _ = await intake_store.upsert_ticket("telegram", "tg:msg:9", end_user, "VPN", "VPN", "ru")
    await intake_store.set_triage(created.id, make_triage())
    await operator_store.transition(created.id, TicketStatus.IN_PROGRESS)

    resolved, retriaged = await asyncio.gather(
        operator_store.transition(created.id, TicketStatus.RESOLVED),
        intake_store.set_triage(created.id, make_triage(summary="again")),
        return_exceptions=True,
    )

    assert resolved.status == TicketStatus.RESOLVED
    assert isinstance(retriaged, TicketClosed) or retriaged.status == TicketStatus.IN_PROGRESS
    assert (await repository.get_by_id(created.id)).status == TicketStatus.RESOLVED


def test_triage_confidence_bounds():
    with pytest.raises(ValueError):
        make_triage(category_conf=1.2)
