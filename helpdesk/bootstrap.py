"""
Application Bootstrap
=====================

Wires the pipeline from configuration.

STARTUP:
1. Setup structured logging
2. Initialize metrics exporter
3. Initialize database and create tables (sql backend)
4. Build repositories, classifier and services
5. Provision admin account and KB fixtures (when configured)
6. Load the KB snapshot

SHUTDOWN:
1. Close database connections
"""

from dataclasses import dataclass
from typing import Optional

from helpdesk.config import Settings, UserRole, get_settings
from helpdesk.core import ConfigurationException
from helpdesk.identity.application import IdentityResolver, IUserRepository
from helpdesk.identity.infrastructure import InMemoryUserRepository, SQLAlchemyUserRepository
from helpdesk.infrastructure.database import close_database, create_tables, init_database
from helpdesk.infrastructure.llm import create_llm_client
from helpdesk.intake.application import IntakeCoordinator
from helpdesk.knowledge.application import IKBArticleRepository, KBMatcher, KBStore
from helpdesk.knowledge.infrastructure import (
    InMemoryKBArticleRepository,
    SQLAlchemyKBArticleRepository,
    seed_articles,
)
from helpdesk.shared.infrastructure.grafana import init_grafana_exporter
from helpdesk.shared.infrastructure.logging import get_logger, setup_logging
from helpdesk.tickets.application import ITicketRepository, TicketStore
from helpdesk.tickets.infrastructure import InMemoryTicketRepository, SQLAlchemyTicketRepository
from helpdesk.triage.application import IClassificationService, TriageAnnotator
from helpdesk.triage.infrastructure import KeywordClassificationService, LLMClassificationService

logger = get_logger(__name__)


@dataclass
class Container:
    """Everything a channel adapter or script needs from the pipeline."""
    settings: Settings
    users: IUserRepository
    tickets: ITicketRepository
    articles: IKBArticleRepository
    identity: IdentityResolver
    ticket_store: TicketStore
    annotator: TriageAnnotator
    kb_store: KBStore
    kb_matcher: KBMatcher
    coordinator: IntakeCoordinator


def build_classifier(config: Settings) -> IClassificationService:
    """LLM classifier, or the keyword one when configured or when no LLM is usable."""
    if config.classifier_backend == "keywords":
        return KeywordClassificationService()
    try:
        llm_client = create_llm_client(config)
    except ConfigurationException as e:
        logger.warning(
            "LLM client unavailable, falling back to keyword classifier",
            extra={"error": e.message, "provider": config.llm_provider}
        )
        return KeywordClassificationService()
    return LLMClassificationService(
        llm_client,
        temperature=config.llm_temperature,
        max_tokens=config.llm_max_tokens,
    )


def build_container(
    config: Settings,
    classifier: Optional[IClassificationService] = None,
) -> Container:
    """Assemble repositories and services for the configured backend."""
    if config.storage_backend == "memory":
        users, tickets, articles = (
            InMemoryUserRepository(), InMemoryTicketRepository(), InMemoryKBArticleRepository()
        )
    else:
        users, tickets, articles = (
            SQLAlchemyUserRepository(), SQLAlchemyTicketRepository(), SQLAlchemyKBArticleRepository()
        )

    identity = IdentityResolver(users)
    ticket_store = TicketStore(tickets)
    annotator = TriageAnnotator(
        classifier or build_classifier(config),
        auto_resolve_threshold=config.auto_resolve_threshold,
        timeout_seconds=config.classification_timeout_seconds,
    )
    kb_store = KBStore(articles, ttl_seconds=config.kb_cache_ttl_seconds)
    kb_matcher = KBMatcher(kb_store)
    coordinator = IntakeCoordinator(
        identity,
        ticket_store,
        annotator,
        kb_store,
        kb_matcher,
        kb_match_limit=config.kb_match_limit,
        suppress_duplicate_messages=config.suppress_duplicate_messages,
        default_language=config.default_language,
    )
    return Container(
        settings=config,
        users=users,
        tickets=tickets,
        articles=articles,
        identity=identity,
        ticket_store=ticket_store,
        annotator=annotator,
        kb_store=kb_store,
        kb_matcher=kb_matcher,
        coordinator=coordinator,
    )


async def provision(container: Container) -> None:
    """
    Idempotent provisioning: admin account and bundled KB articles.

    Safe to run on every start.
    """
    config = container.settings
    owner_id = None

    if config.admin_email:
        admin = await container.identity.provision(config.admin_email, config.admin_name, UserRole.ADMIN)
        owner_id = admin.id

    if config.seed_knowledge_base:
        articles = seed_articles(owner_id)
        for article in articles:
            await container.articles.upsert(article)
        container.kb_store.invalidate()
        logger.info("KB fixtures seeded", extra={"articles": len(articles)})


async def startup(
    config: Optional[Settings] = None,
    classifier: Optional[IClassificationService] = None,
) -> Container:
    """
    Bring the pipeline up.

    Args:
        config: Settings to use (defaults to the cached environment settings)
        classifier: Scoring service override (tests, custom models)

    Returns:
        Container with the ready IntakeCoordinator
    """
    config = config or get_settings()

    setup_logging(config.log_level, config.environment)
    logger.info("Starting helpdesk intake", extra={
        "version": config.app_version,
        "environment": config.environment,
        "storage_backend": config.storage_backend,
    })

    init_grafana_exporter(config.grafana_host, config.grafana_api_key, config.grafana_instance_id)

    if config.storage_backend == "sql":
        init_database(config.database_url)
        if config.create_tables_on_startup:
            logger.info("Creating database tables")
            await create_tables()

    container = build_container(config, classifier)
    await provision(container)
    await container.kb_store.refresh(force=True)

    logger.info("Helpdesk intake ready")
    return container


async def shutdown(container: Container) -> None:
    """Release resources acquired by startup."""
    if container.settings.storage_backend == "sql":
        await close_database()
    logger.info("Helpdesk intake stopped")
