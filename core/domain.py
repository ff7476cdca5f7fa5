"""
Domain Layer Base Classes.

The domain layer contains pure business logic with no external dependencies.
This makes business rules:
- Easy to test (no mocking needed)
- Reusable across different interfaces
- Clear and self-documenting

Time is never read from the system clock here. Every rule that depends on
elapsed time receives ``now`` from its caller.

Example Usage:
    class CancellationPolicy(PolicyEngine):
        def evaluate(self, order, now) -> PolicyDecision:
            # Pure business logic here
            ...
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from enum import Enum


class PolicyResult(Enum):
    """Result of a policy evaluation."""
    APPROVED = "approved"
    DENIED = "denied"


@dataclass
class PolicyDecision:
    """
    The outcome of a policy evaluation.

    Attributes:
        result: The policy decision result
        reason: Human-readable explanation (empty when simply approved)
        metadata: Additional context for the decision
    """
    result: PolicyResult
    reason: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_approved(self) -> bool:
        return self.result == PolicyResult.APPROVED

    @property
    def is_denied(self) -> bool:
        return self.result == PolicyResult.DENIED

    @property
    def allowed(self) -> bool:
        return self.is_approved

    @classmethod
    def approve(cls, reason: str = "", **metadata: Any) -> "PolicyDecision":
        return cls(result=PolicyResult.APPROVED, reason=reason, metadata=metadata)

    @classmethod
    def deny(cls, reason: str, **metadata: Any) -> "PolicyDecision":
        return cls(result=PolicyResult.DENIED, reason=reason, metadata=metadata)

    def to_dict(self) -> Dict[str, Any]:
        """Shape returned to API callers: ``{"allowed": bool, "reason": ...}``."""
        data: Dict[str, Any] = {"allowed": self.allowed}
        if self.reason:
            data["reason"] = self.reason
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data


class PolicyEngine(ABC):
    """
    Abstract base class for policy engines.

    A PolicyEngine encapsulates a set of business rules that can be
    evaluated against a subject at a given point in time to produce a
    decision. Denials are returned, never raised, so callers can show the
    reason to an end user.

    Example:
        class ReturnWindowPolicy(PolicyEngine):
            def evaluate(self, order, now) -> PolicyDecision:
                if days_since(order.delivered_at, now) > 30:
                    return PolicyDecision.deny("Return window has expired")
                return PolicyDecision.approve()
    """

    @abstractmethod
    def evaluate(self, subject: Any, now: datetime) -> PolicyDecision:
        """
        Evaluate the policy against the given subject.

        Args:
            subject: The domain object the rules apply to
            now: Current time supplied by the caller

        Returns:
            PolicyDecision with the result and explanation
        """
        pass


class DomainService(ABC):
    """
    Abstract base class for domain services.

    Domain services contain business logic that doesn't belong to a single entity.
    They orchestrate multiple policies and entities to perform complex operations.

    Key principles:
    - No I/O operations (database, network, file)
    - All dependencies passed as parameters
    - Return domain objects, not DTOs
    """

    @abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """
        Execute the domain service operation.

        Implementation should contain pure business logic only.
        """
        pass


@dataclass
class ValidationError:
    """A validation error with field and message."""
    field: str
    message: str
    code: str = "invalid"


class Validator(ABC):
    """
    Abstract base class for validators.

    Validators check that data meets business requirements before processing.
    """

    @abstractmethod
    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        """
        Validate the data and return any errors.

        Args:
            data: The data to validate

        Returns:
            List of ValidationError objects (empty if valid)
        """
        pass


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def ensure_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def hours_since(moment: datetime, now: datetime) -> float:
    """Fractional hours elapsed from ``moment`` to ``now``."""
    return (ensure_utc(now) - ensure_utc(moment)).total_seconds() / 3600


def days_since(moment: datetime, now: datetime) -> float:
    """Fractional days elapsed from ``moment`` to ``now``."""
    return hours_since(moment, now) / 24


def parse_date(date_string: Optional[str]) -> Optional[datetime]:
    """Parse an ISO format date string safely."""
    if not date_string:
        return None
    try:
        if "Z" in date_string:
            return datetime.fromisoformat(date_string.replace("Z", "+00:00"))
        return ensure_utc(datetime.fromisoformat(date_string))
    except (ValueError, TypeError):
        return None


def format_date(moment: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as ISO 8601 in UTC (``None`` passes through)."""
    if moment is None:
        return None
    return ensure_utc(moment).isoformat()
