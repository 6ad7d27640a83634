"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from helpdesk.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ResourceNotFoundException,
    ConfigurationException,
    StorageFailure,
    DuplicateIdentity,
    InvalidTransition,
    TicketClosed,
    ExternalServiceException,
    LLMException,
    ClassificationUnavailable,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "StorageFailure",
    "DuplicateIdentity",
    "InvalidTransition",
    "TicketClosed",
    "ExternalServiceException",
    "LLMException",
    "ClassificationUnavailable",
]
