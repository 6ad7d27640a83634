"""
Helpdesk Intake & Triage
========================

Receives support requests from chat bots, the web portal and messaging
apps, resolves the requester, threads the message onto a ticket, classifies
it and proposes knowledge-base guidance to operators.

Bounded contexts:
- identity: channel identities -> users
- tickets: tickets, message threads, lifecycle
- knowledge: multilingual KB articles and matching
- triage: classification and confidence policy
- intake: the orchestrating entry point
"""

__version__ = "1.0.0"
