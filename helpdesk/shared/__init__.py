"""
Shared Kernel Module
====================

Generic infrastructure used by every bounded context (identity,
knowledge, tickets, triage, intake): structured logging, keyed locks
and metrics export.

DO NOT add business logic from a bounded context to the shared kernel.
"""
