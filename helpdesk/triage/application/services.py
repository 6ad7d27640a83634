"""
Triage Application Services
============================

Turns scoring-service output into the triage record stored on a ticket.

The scoring call is slow and fallible: it is bounded by a timeout and
any failure yields a degraded triage instead of an error.
"""

import asyncio
import time
from abc import ABC, abstractmethod

from helpdesk.config import CATEGORIES_BY_CODE, FALLBACK_CATEGORY, Disposition
from helpdesk.core import ClassificationUnavailable
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.tickets.domain import Ticket, TicketTriage
from helpdesk.triage.domain import ClassificationOutput

logger = get_logger(__name__)


# ========== Service Interfaces ==========

class IClassificationService(ABC):
    """Interface for the external scoring service."""

    @abstractmethod
    async def classify(self, text: str, language: str) -> ClassificationOutput:
        """
        Score a request.

        Raises:
            ClassificationUnavailable: the service failed or answered garbage
        """


# ========== Application Services ==========

class TriageAnnotator:
    """
    Produces a TicketTriage for a ticket.

    auto_resolvable stands only when its confidence reaches the
    threshold; otherwise it is downgraded to needs_operator.
    """

    def __init__(
        self,
        classifier: IClassificationService,
        auto_resolve_threshold: float = 0.8,
        timeout_seconds: float = 10.0,
    ):
        self._classifier = classifier
        self._threshold = auto_resolve_threshold
        self._timeout = timeout_seconds

    async def annotate(self, ticket: Ticket) -> TicketTriage:
        """
        Classify a ticket, never raising for classifier failures.

        Args:
            ticket: Ticket whose subject and body are classified

        Returns:
            TicketTriage without suggested response; degraded=True when the
            classifier timed out or failed
        """
        start_time = time.perf_counter()
        context = {"ticket_id": ticket.id, "language": ticket.language}

        try:
            output = await asyncio.wait_for(
                self._classifier.classify(ticket.full_text, ticket.language),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Classification timed out, using degraded triage",
                extra={**context, "timeout_seconds": self._timeout}
            )
            return self.degraded(ticket)
        except ClassificationUnavailable as e:
            logger.warning(
                "Classification unavailable, using degraded triage",
                extra={**context, "error": e.message}
            )
            return self.degraded(ticket)
        except Exception as e:
            logger.warning(
                "Classification failed, using degraded triage",
                extra={**context, "error": str(e)},
                exc_info=True
            )
            return self.degraded(ticket)

        triage = self.apply_policy(output)
        logger.info(
            "Ticket classified",
            extra={
                **context,
                "category": triage.category,
                "priority": triage.priority.value,
                "disposition": triage.disposition.value,
                "latency_ms": int((time.perf_counter() - start_time) * 1000),
            }
        )
        return triage

    def apply_policy(self, output: ClassificationOutput) -> TicketTriage:
        """Map raw classifier output onto a storable triage."""
        category = output.category
        if category not in CATEGORIES_BY_CODE:
            logger.info("Unknown category mapped to fallback", extra={"category": category})
            category = FALLBACK_CATEGORY

        disposition = output.disposition
        if disposition == Disposition.AUTO_RESOLVABLE and output.disposition_conf < self._threshold:
            logger.info(
                "Auto-resolve below threshold, routing to operator",
                extra={"disposition_conf": output.disposition_conf, "threshold": self._threshold}
            )
            disposition = Disposition.NEEDS_OPERATOR

        return TicketTriage(
            category=category,
            category_conf=output.category_conf,
            priority=output.priority,
            priority_conf=output.priority_conf,
            disposition=disposition,
            disposition_conf=output.disposition_conf,
            summary=output.summary,
        )

    @staticmethod
    def degraded(ticket: Ticket) -> TicketTriage:
        return TicketTriage.degraded_default(summary=ticket.subject[:200])
