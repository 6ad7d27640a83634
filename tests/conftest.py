"""Shared fixtures: in-memory pipeline, scripted classifier and SQLite database."""

import asyncio
import os

os.environ.setdefault("ENVIRONMENT", "test")

import pytest

from helpdesk.config import Disposition, Priority
from helpdesk.identity.application import IdentityResolver
from helpdesk.identity.domain import ChannelIdentity, User
from helpdesk.identity.infrastructure import InMemoryUserRepository
from helpdesk.infrastructure.database import close_database, create_tables, init_database
from helpdesk.intake.application import IntakeCoordinator
from helpdesk.knowledge.application import KBMatcher, KBStore
from helpdesk.knowledge.infrastructure import InMemoryKBArticleRepository, seed_articles
from helpdesk.shared.infrastructure.grafana import GrafanaOTLPExporter
from helpdesk.tickets.application import TicketStore
from helpdesk.tickets.infrastructure import InMemoryTicketRepository
from helpdesk.triage.application import IClassificationService, TriageAnnotator
from helpdesk.triage.domain import ClassificationOutput


def make_output(**overrides) -> ClassificationOutput:
    values = dict(
        category="access_vpn",
        category_conf=0.92,
        priority=Priority.MEDIUM,
        priority_conf=0.85,
        disposition=Disposition.NEEDS_OPERATOR,
        disposition_conf=0.9,
        summary="VPN error 789",
    )
    values.update(overrides)
    return ClassificationOutput(**values)


class StubClassifier(IClassificationService):
    """Scoring service double: returns `output`, raises `error` or sleeps `delay` first."""

    def __init__(self, output=None, error=None, delay=0.0):
        self.output = output or make_output()
        self.error = error
        self.delay = delay
        self.calls = []

    async def classify(self, text, language):
        self.calls.append((text, language))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.output


@pytest.fixture
def classifier():
    return StubClassifier()


@pytest.fixture
def user_repository():
    return InMemoryUserRepository()


@pytest.fixture
def ticket_repository():
    return InMemoryTicketRepository()


@pytest.fixture
def article_repository():
    return InMemoryKBArticleRepository(seed_articles())


@pytest.fixture
def identity_resolver(user_repository):
    return IdentityResolver(user_repository)


@pytest.fixture
def ticket_store(ticket_repository):
    return TicketStore(ticket_repository)


@pytest.fixture
async def kb_store(article_repository):
    store = KBStore(article_repository, ttl_seconds=60)
    await store.refresh()
    return store


@pytest.fixture
def kb_matcher(kb_store):
    return KBMatcher(kb_store)


@pytest.fixture
def disabled_metrics():
    return GrafanaOTLPExporter(host="", api_key="", instance_id="")


@pytest.fixture
def make_coordinator(identity_resolver, ticket_store, kb_store, kb_matcher, disabled_metrics):
    def factory(classifier, threshold=0.8, timeout=1.0, **kwargs):
        return IntakeCoordinator(
            identity_resolver,
            ticket_store,
            TriageAnnotator(classifier, auto_resolve_threshold=threshold, timeout_seconds=timeout),
            kb_store,
            kb_matcher,
            metrics=disabled_metrics,
            **kwargs,
        )
    return factory


@pytest.fixture
async def end_user(identity_resolver):
    return await identity_resolver.resolve("telegram", "tg:123456", "Тестовый Пользователь")


@pytest.fixture
async def sql_database(tmp_path):
    """Fresh SQLite database with all tables."""
    init_database(f"sqlite+aiosqlite:///{tmp_path / 'helpdesk.db'}")
    await create_tables()
    yield
    await close_database()


@pytest.fixture
def sample_user() -> User:
    return User.from_channel(ChannelIdentity("telegram", "tg:42"), "Айгерим")
