"""
Core Framework for the Order Lifecycle Service.

This module provides the base classes and interfaces that each use case
builds on. The layered architecture ensures:

1. Domain Layer - Pure business rules, no I/O
2. Data Layer - Repository pattern for data access
3. Orchestration Layer - Services that wire rules to storage

Each use case follows this pattern for consistency and reusability.
"""

from .domain import (
    DomainService,
    PolicyDecision,
    PolicyEngine,
    PolicyResult,
    ValidationError,
    Validator,
)
from .data import Repository

__all__ = [
    # Domain
    "DomainService",
    "PolicyDecision",
    "PolicyEngine",
    "PolicyResult",
    "ValidationError",
    "Validator",
    # Data
    "Repository",
]
