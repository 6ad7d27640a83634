"""
Tickets Infrastructure Layer
============================

Persistence for tickets, threads and triage records.
"""

from helpdesk.tickets.infrastructure.models import (
    TicketMessageModel,
    TicketModel,
    TicketNlpModel,
)
from helpdesk.tickets.infrastructure.repositories import (
    InMemoryTicketRepository,
    SQLAlchemyTicketRepository,
)

__all__ = [
    "TicketModel",
    "TicketMessageModel",
    "TicketNlpModel",
    "SQLAlchemyTicketRepository",
    "InMemoryTicketRepository",
]
