"""
Tickets Bounded Context
=======================

Tickets, their append-only threads and the current triage record,
guarded by the ticket status state machine.
"""

from helpdesk.tickets.application import ITicketRepository, TicketStore
from helpdesk.tickets.domain import Ticket, TicketMessage, TicketTriage

__all__ = [
    "Ticket",
    "TicketMessage",
    "TicketTriage",
    "ITicketRepository",
    "TicketStore",
]
