"""Tests for the intake coordinator: the full inbound message pipeline."""

import asyncio

import pytest
from pydantic import ValidationError

from helpdesk.config import Disposition, Priority, TicketStatus
from helpdesk.core import StorageFailure
from helpdesk.intake import ExternalUser, InboundMessage, IntakeCoordinator
from helpdesk.intake.application import services as intake_services
from helpdesk.intake.domain import derive_subject, detect_language
from helpdesk.knowledge.application import KBMatcher, KBStore
from helpdesk.knowledge.infrastructure import InMemoryKBArticleRepository, article_id
from helpdesk.tickets.application import TicketStore
from helpdesk.tickets.infrastructure import InMemoryTicketRepository
from helpdesk.triage.application import TriageAnnotator
from helpdesk.triage.infrastructure import KeywordClassificationService

from conftest import StubClassifier, make_output

TELEGRAM_USER = {"id": "tg:123456", "name": "Тестовый Пользователь"}
VPN_BODY = "Не могу подключиться к VPN, ошибка 789"


class BrokenThreadRepository(InMemoryTicketRepository):
    async def append_message(self, ticket_id, sender, sender_type, content):
        raise StorageFailure("disk full")


class UnreachableKBRepository(InMemoryKBArticleRepository):
    async def list_published(self):
        raise StorageFailure("connection refused")


class ExplodingKBMatcher(KBMatcher):
    def match(self, category, keywords, language, limit=3):
        raise RuntimeError("index corrupted")


async def test_telegram_vpn_request_end_to_end(make_coordinator, ticket_store):
    """Russian VPN complaint from Telegram gets triaged with a KB suggestion."""
    coordinator = make_coordinator(StubClassifier())

    ticket = await coordinator.ingest("telegram", "tg:msg:1001", TELEGRAM_USER, None, VPN_BODY)

    assert ticket.status == TicketStatus.TRIAGED
    assert ticket.language == "ru"
    assert ticket.subject == VPN_BODY
    assert ticket.message_count == 1
    assert ticket.triage.category == "access_vpn"
    assert ticket.triage.degraded is False
    assert ticket.triage.kb_article_ids == [
        article_id("vpn-error-789"),
        article_id("vpn-password-reset"),
    ]
    suggestion = ticket.triage.suggested_response
    assert "VPN" in suggestion
    assert "пароль" in suggestion

    thread = await ticket_store.list_messages(ticket.id)
    assert [(m.seq, m.content) for m in thread] == [(1, VPN_BODY)]


async def test_vpn_request_with_keyword_classifier(make_coordinator):
    """'VPN' and 'ошибка' hit access_vpn and software once each; access_vpn wins."""
    coordinator = make_coordinator(KeywordClassificationService())

    ticket = await coordinator.ingest("telegram", "tg:msg:1002", TELEGRAM_USER, None, VPN_BODY)

    assert ticket.status == TicketStatus.TRIAGED
    assert ticket.triage.category == "access_vpn"
    assert ticket.triage.disposition == Disposition.NEEDS_OPERATOR
    assert ticket.triage.kb_article_ids == [
        article_id("vpn-error-789"),
        article_id("vpn-password-reset"),
    ]


async def test_redelivery_is_idempotent(make_coordinator, ticket_repository):
    classifier = StubClassifier()
    coordinator = make_coordinator(classifier)

    first = await coordinator.ingest("telegram", "tg:msg:1", TELEGRAM_USER, None, VPN_BODY)
    second = await coordinator.ingest("telegram", "tg:msg:1", TELEGRAM_USER, None, VPN_BODY)

    assert second.id == first.id
    assert second.message_count == 1
    assert len(ticket_repository) == 1
    assert len(classifier.calls) == 1


async def test_redelivery_appends_when_dedupe_disabled(make_coordinator):
    coordinator = make_coordinator(StubClassifier(), suppress_duplicate_messages=False)

    await coordinator.ingest("telegram", "tg:msg:1", TELEGRAM_USER, None, VPN_BODY)
    ticket = await coordinator.ingest("telegram", "tg:msg:1", TELEGRAM_USER, None, VPN_BODY)

    assert ticket.message_count == 2


async def test_concurrent_redelivery_creates_one_ticket(make_coordinator, ticket_repository, user_repository):
    coordinator = make_coordinator(StubClassifier())

    tickets = await asyncio.gather(*[
        coordinator.ingest("telegram", "tg:msg:7", TELEGRAM_USER, None, VPN_BODY) for _ in range(10)
    ])

    assert len({t.id for t in tickets}) == 1
    assert len(ticket_repository) == 1
    assert len(user_repository) == 1
    final = tickets[-1]
    assert final.message_count == 1
    assert final.status == TicketStatus.TRIAGED


async def test_follow_up_message_is_not_reclassified(make_coordinator):
    classifier = StubClassifier()
    coordinator = make_coordinator(classifier)

    await coordinator.ingest("telegram", "tg:msg:1", TELEGRAM_USER, None, VPN_BODY)
    ticket = await coordinator.ingest("telegram", "tg:msg:1", TELEGRAM_USER, None, "Всё ещё не работает")

    assert ticket.message_count == 2
    assert len(classifier.calls) == 1


@pytest.mark.parametrize("failing", [
    StubClassifier(error=RuntimeError("scoring service down")),
    StubClassifier(delay=1.0),
])
async def test_classifier_failure_still_triages(make_coordinator, failing):
    coordinator = make_coordinator(failing, timeout=0.05)

    ticket = await coordinator.ingest("telegram", "tg:msg:2", TELEGRAM_USER, None, VPN_BODY)

    assert ticket.status == TicketStatus.TRIAGED
    assert ticket.triage.degraded is True
    assert ticket.triage.category == "other"
    assert ticket.triage.priority == Priority.MEDIUM
    assert ticket.triage.disposition == Disposition.NEEDS_OPERATOR


async def test_escalate_disposition_escalates_ticket(make_coordinator):
    classifier = StubClassifier(make_output(
        category="incident", priority=Priority.CRITICAL, disposition=Disposition.ESCALATE, disposition_conf=0.3,
    ))

    ticket = await make_coordinator(classifier).ingest(
        "email", "msg-1@corp.kz", {"id": "ivanov@corp.kz"}, "Авария", "Упал сервер 1С"
    )

    assert ticket.status == TicketStatus.ESCALATED
    assert ticket.triage.disposition == Disposition.ESCALATE


async def test_auto_resolvable_kept_with_articles(make_coordinator):
    classifier = StubClassifier(make_output(disposition=Disposition.AUTO_RESOLVABLE, disposition_conf=0.95))

    ticket = await make_coordinator(classifier).ingest("telegram", "tg:msg:3", TELEGRAM_USER, None, VPN_BODY)

    assert ticket.triage.disposition == Disposition.AUTO_RESOLVABLE
    assert ticket.triage.suggested_response is not None


async def test_auto_resolvable_without_articles_goes_to_operator(make_coordinator):
    classifier = StubClassifier(make_output(
        category="account", disposition=Disposition.AUTO_RESOLVABLE, disposition_conf=0.95,
    ))

    ticket = await make_coordinator(classifier).ingest(
        "portal", "web-9", {"id": "p:1"}, None, "Как поменять фото профиля"
    )

    assert ticket.triage.disposition == Disposition.NEEDS_OPERATOR
    assert ticket.triage.kb_article_ids == []
    assert ticket.triage.suggested_response is None


async def test_kb_outage_does_not_block_triage(identity_resolver, ticket_store, disabled_metrics):
    kb_store = KBStore(UnreachableKBRepository())
    coordinator = IntakeCoordinator(
        identity_resolver, ticket_store, TriageAnnotator(StubClassifier()),
        kb_store, KBMatcher(kb_store), metrics=disabled_metrics,
    )

    ticket = await coordinator.ingest("telegram", "tg:msg:4", TELEGRAM_USER, None, VPN_BODY)

    assert ticket.status == TicketStatus.TRIAGED
    assert ticket.triage.category == "access_vpn"
    assert ticket.triage.suggested_response is None


async def test_kb_match_failure_does_not_block_triage(
    identity_resolver, ticket_store, kb_store, disabled_metrics
):
    classifier = StubClassifier(make_output(disposition=Disposition.AUTO_RESOLVABLE, disposition_conf=0.95))
    coordinator = IntakeCoordinator(
        identity_resolver, ticket_store, TriageAnnotator(classifier),
        kb_store, ExplodingKBMatcher(kb_store), metrics=disabled_metrics,
    )

    ticket = await coordinator.ingest("telegram", "tg:msg:7", TELEGRAM_USER, None, VPN_BODY)

    assert ticket.status == TicketStatus.TRIAGED
    assert ticket.triage.category == "access_vpn"
    assert ticket.triage.kb_article_ids == []
    assert ticket.triage.suggested_response is None
    assert ticket.triage.disposition == Disposition.NEEDS_OPERATOR


async def test_suggestion_failure_does_not_block_triage(make_coordinator, monkeypatch):
    def broken_compose(articles, language):
        raise KeyError(language)

    monkeypatch.setattr(intake_services, "compose_suggested_response", broken_compose)

    ticket = await make_coordinator(StubClassifier()).ingest("telegram", "tg:msg:8", TELEGRAM_USER, None, VPN_BODY)

    assert ticket.status == TicketStatus.TRIAGED
    assert ticket.triage.kb_article_ids == []
    assert ticket.triage.suggested_response is None


async def test_storage_failure_aborts_intake(identity_resolver, kb_store, kb_matcher, disabled_metrics):
    coordinator = IntakeCoordinator(
        identity_resolver, TicketStore(BrokenThreadRepository()), TriageAnnotator(StubClassifier()),
        kb_store, kb_matcher, metrics=disabled_metrics,
    )

    with pytest.raises(StorageFailure):
        await coordinator.ingest("telegram", "tg:msg:5", TELEGRAM_USER, None, VPN_BODY)


async def test_cancelled_classification_keeps_message(make_coordinator, ticket_repository, ticket_store):
    classifier = StubClassifier(delay=5.0)
    coordinator = make_coordinator(classifier, timeout=10.0)

    task = asyncio.create_task(coordinator.ingest("telegram", "tg:msg:6", TELEGRAM_USER, None, VPN_BODY))
    for _ in range(100):
        if classifier.calls:
            break
        await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    ticket = await ticket_repository.get_by_source("telegram", "tg:msg:6")
    assert ticket.status == TicketStatus.NEW
    assert len(await ticket_store.list_messages(ticket.id)) == 1


async def test_channels_merge_by_email(make_coordinator, user_repository):
    coordinator = make_coordinator(StubClassifier())

    a = await coordinator.ingest(
        "telegram", "tg:msg:8", {"id": "tg:99", "name": "Dana", "email": "dana@corp.kz"}, None, VPN_BODY
    )
    b = await coordinator.ingest(
        "whatsapp", "wa:msg:8", {"id": "wa:77010000000", "email": "DANA@corp.kz"}, None, VPN_BODY
    )

    assert a.user_id == b.user_id
    assert len(user_repository) == 1


@pytest.mark.parametrize("body,language", [
    ("Принтер не печатает", "ru"),
    ("Принтер жұмыс істемейді", "kz"),
    ("Printer is jammed again", "en"),
    ("12345", "ru"),
])
async def test_language_detected_when_missing(make_coordinator, body, language):
    coordinator = make_coordinator(StubClassifier())

    ticket = await coordinator.ingest("portal", f"web-{language}-{len(body)}", {"id": "p:2"}, None, body)

    assert ticket.language == language


async def test_explicit_language_wins(make_coordinator):
    ticket = await make_coordinator(StubClassifier()).ingest(
        "portal", "web-10", {"id": "p:3"}, None, "Принтер не печатает", language="kk"
    )

    assert ticket.language == "kz"


async def test_classifier_sees_detected_language(make_coordinator):
    classifier = StubClassifier()

    await make_coordinator(classifier).ingest("portal", "web-11", {"id": "p:4"}, "Mail", "Outlook keeps crashing")

    assert classifier.calls == [("Mail\n\nOutlook keeps crashing", "en")]


async def test_ingest_message_returns_ticket_state(make_coordinator):
    message = InboundMessage(
        source=" Telegram ",
        source_id="tg:msg:12",
        user=ExternalUser(id="tg:123456", name="Тестовый Пользователь"),
        body=VPN_BODY,
        language="ru",
    )

    response = await make_coordinator(StubClassifier()).ingest_message(message)

    assert response.status == "triaged"
    assert response.language == "ru"
    assert response.thread_length == 1
    assert response.triage.category == "access_vpn"
    assert response.triage.kb_article_ids
    assert "VPN" in response.suggested_response


def test_subject_derived_from_first_line():
    body = "\n  " + "Очень длинное описание проблемы " * 10 + "\nвторая строка"

    subject = derive_subject(None, body)

    assert len(subject) <= 120
    assert subject.endswith("...")
    assert derive_subject("  Тема  ", body) == "Тема"
    assert derive_subject("", "короткая\nвторая") == "короткая"


def test_detect_language_default_for_letterless_text():
    assert detect_language("!!! 123", default="en") == "en"


@pytest.mark.parametrize("payload", [
    {"source": "telegram", "source_id": "1", "user": {"id": "u"}, "body": "   "},
    {"source": "telegram", "source_id": "1", "user": {"id": "u"}, "body": "x" * 10001},
    {"source": "telegram", "source_id": "1", "user": {"id": "u", "email": "not-an-email"}, "body": "hi"},
    {"source": "telegram", "source_id": "1", "user": {"id": "u"}, "body": "hi", "language": "de"},
    {"source": "telegram", "source_id": "", "user": {"id": "u"}, "body": "hi"},
])
def test_inbound_message_validation(payload):
    with pytest.raises(ValidationError):
        InboundMessage.model_validate(payload)
