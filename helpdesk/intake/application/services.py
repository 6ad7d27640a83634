"""
Intake Application Services
===========================

The entry point channel adapters call for every inbound message.

Steps, in order:
1. resolve the sender to a user
2. upsert the ticket for (source, source_id)
3. append the message to the thread
4. classify, when the ticket has no triage yet
5. match KB articles and compose a suggested response
6. store the triage
7. escalate when the disposition says so

Steps 1-3 commit independently before the classifier is called, so a
cancelled or failed classification never loses the message. KB failures
only cost the suggestion. Only StorageFailure aborts intake.
"""

import time
from typing import Mapping, Optional, Union

from helpdesk.config import Disposition, SenderType, TicketStatus
from helpdesk.core import InvalidTransition, TicketClosed
from helpdesk.identity.application import IdentityResolver
from helpdesk.intake.application.dto import ExternalUser, InboundMessage, IntakeResponse
from helpdesk.intake.domain import derive_subject, normalize_language
from helpdesk.knowledge.application import KBMatcher, KBStore, compose_suggested_response
from helpdesk.knowledge.domain import derive_keywords
from helpdesk.shared.infrastructure.grafana import GrafanaOTLPExporter, get_grafana_exporter
from helpdesk.shared.infrastructure.logging import get_context_logger, log_latency
from helpdesk.tickets.application import TicketStore
from helpdesk.tickets.domain import Ticket, TicketTriage
from helpdesk.triage.application import TriageAnnotator


class IntakeCoordinator:
    """
    Drives one inbound message through identity, ticket, triage and KB.

    Stateless apart from its collaborators; safe to share between
    concurrent requests.
    """

    def __init__(
        self,
        identity_resolver: IdentityResolver,
        ticket_store: TicketStore,
        annotator: TriageAnnotator,
        kb_store: KBStore,
        kb_matcher: KBMatcher,
        kb_match_limit: int = 3,
        suppress_duplicate_messages: bool = True,
        default_language: str = "ru",
        metrics: Optional[GrafanaOTLPExporter] = None,
    ):
        self._identity = identity_resolver
        self._tickets = ticket_store
        self._annotator = annotator
        self._kb_store = kb_store
        self._kb_matcher = kb_matcher
        self._kb_match_limit = kb_match_limit
        self._suppress_duplicates = suppress_duplicate_messages
        self._default_language = default_language
        self._metrics = metrics or get_grafana_exporter()

    async def ingest(
        self,
        source: str,
        source_id: str,
        external_user: Union[ExternalUser, Mapping],
        subject: Optional[str],
        body: str,
        language: Optional[str] = None,
    ) -> Ticket:
        """
        Record an inbound message and return the resulting ticket.

        Args:
            source: Channel name, e.g. "telegram"
            source_id: Channel-local ticket key
            external_user: Sender {id, name, email?} as known to the channel
            subject: Subject line; derived from the body when empty
            body: Message text
            language: ru, kz or en; detected when missing

        Returns:
            Ticket with its current status, triage and thread length

        Raises:
            StorageFailure: the message could not be recorded durably
        """
        start_time = time.perf_counter()
        if not isinstance(external_user, ExternalUser):
            external_user = ExternalUser.model_validate(external_user)

        logger = get_context_logger(__name__, correlation_id=f"{source}:{source_id}")
        language = normalize_language(language, f"{subject or ''}\n{body}", self._default_language)
        subject = derive_subject(subject, body)

        user = await self._identity.resolve(
            source, external_user.id, external_user.name, external_user.email
        )
        ticket, is_new = await self._tickets.upsert_ticket(
            source, source_id, user, subject, body, language
        )
        message = await self._tickets.append_message(
            ticket.id, user.id, SenderType.USER, body, dedupe=self._suppress_duplicates
        )
        logger.info(
            "Inbound message recorded",
            extra={"ticket_id": ticket.id, "user_id": user.id, "is_new": is_new, "seq": message.seq}
        )

        if is_new or ticket.triage is None:
            await self._triage(ticket, logger)

        ticket = await self._tickets.get(ticket.id)
        await self._export_metrics(ticket, int((time.perf_counter() - start_time) * 1000))
        return ticket

    async def ingest_message(self, message: InboundMessage) -> IntakeResponse:
        """Validated-DTO entry point for channel adapters."""
        ticket = await self.ingest(
            message.source,
            message.source_id,
            message.user,
            message.subject,
            message.body,
            message.language,
        )
        return IntakeResponse.from_domain(ticket)

    async def _triage(self, ticket: Ticket, logger) -> None:
        triage = await self._annotator.annotate(ticket)
        await self._refresh_kb(logger)
        try:
            self._attach_suggestion(ticket, triage, logger)
        except Exception:
            logger.error(
                "KB suggestion failed, storing triage without one",
                extra={"ticket_id": ticket.id, "category": triage.category},
                exc_info=True,
            )
            triage.kb_article_ids = []
            triage.suggested_response = None

        if not triage.kb_article_ids and triage.disposition == Disposition.AUTO_RESOLVABLE:
            # Nothing to resolve with
            triage.disposition = Disposition.NEEDS_OPERATOR

        try:
            ticket = await self._tickets.set_triage(ticket.id, triage)
        except TicketClosed as e:
            logger.info("Triage skipped for closed ticket", extra={"ticket_id": ticket.id, "status": e.status})
            return

        if triage.disposition == Disposition.ESCALATE and ticket.can_transition_to(TicketStatus.ESCALATED):
            try:
                await self._tickets.transition(ticket.id, TicketStatus.ESCALATED)
            except InvalidTransition as e:
                # Status moved under us (operator action); keep theirs
                logger.info("Escalation skipped", extra={"ticket_id": ticket.id, "error": e.message})

    async def _refresh_kb(self, logger) -> None:
        try:
            await self._kb_store.refresh()
        except Exception:
            logger.warning("KB refresh failed, using previous snapshot", exc_info=True)

    def _attach_suggestion(self, ticket: Ticket, triage: TicketTriage, logger) -> None:
        """Fill suggested_response and kb_article_ids from the KB snapshot."""
        keywords = derive_keywords(ticket.full_text)
        with log_latency(logger, "kb_match", ticket_id=ticket.id, category=triage.category):
            articles = self._kb_matcher.match(
                triage.category, keywords, ticket.language, self._kb_match_limit
            ).take(self._kb_match_limit)

        triage.kb_article_ids = [a.id for a in articles]
        triage.suggested_response = compose_suggested_response(articles, ticket.language)
        logger.info(
            "KB articles matched",
            extra={"ticket_id": ticket.id, "category": triage.category, "articles": len(articles)}
        )

    async def _export_metrics(self, ticket: Ticket, latency_ms: int) -> None:
        if not self._metrics.is_enabled():
            return
        triage = ticket.triage
        await self._metrics.export_intake_metrics(
            source=ticket.source,
            status=ticket.status.value,
            category=triage.category if triage else "none",
            degraded=bool(triage and triage.degraded),
            latency_ms=latency_ms,
        )
