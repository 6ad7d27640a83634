"""
Tickets Domain Layer
====================

Ticket, thread message and triage record.
"""

from helpdesk.tickets.domain.entities import Ticket, TicketMessage, TicketTriage

__all__ = [
    "Ticket",
    "TicketMessage",
    "TicketTriage",
]
