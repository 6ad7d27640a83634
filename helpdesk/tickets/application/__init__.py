"""
Tickets Application Layer
=========================

Ticket store service and the ticket repository interface.
"""

from helpdesk.tickets.application.services import ITicketRepository, TicketStore

__all__ = [
    "ITicketRepository",
    "TicketStore",
]
