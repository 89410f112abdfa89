"""Domain-specific exceptions"""

from dataclasses import dataclass
from typing import Iterable, Tuple


@dataclass(frozen=True)
class FieldViolation:
    """A single field-level validation failure"""

    field: str
    message: str


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """One or more fields failed validation (all violations are collected)"""

    def __init__(self, violations: Iterable[FieldViolation]):
        self.violations: Tuple[FieldViolation, ...] = tuple(violations)
        summary = "; ".join(f"{v.field}: {v.message}" for v in self.violations)
        super().__init__(f"Validation failed: {summary}")

    @property
    def fields(self) -> Tuple[str, ...]:
        return tuple(v.field for v in self.violations)


class InvalidTransition(DomainException):
    """Requested state change is not allowed from the current state"""

    def __init__(self, entity: str, current: str, requested: str):
        self.entity = entity
        self.current = current
        self.requested = requested
        super().__init__(f"{entity} cannot move from '{current}' to '{requested}'")


class NotFound(DomainException):
    """Referenced entity does not exist"""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class StaleEntityError(DomainException):
    """Persisted status changed since the entity was read (lost update prevented)"""

    def __init__(self, entity: str, entity_id: str, expected_status: str):
        self.entity = entity
        self.entity_id = entity_id
        self.expected_status = expected_status
        super().__init__(
            f"{entity} '{entity_id}' is no longer in status '{expected_status}'"
        )


class ClosedProspectError(DomainException):
    """Operation requires an open prospect but the lead is already closed"""

    pass


def raise_if_violations(violations: Iterable[FieldViolation]) -> None:
    """Raise a ValidationError carrying every collected violation, if any"""
    collected = tuple(violations)
    if collected:
        raise ValidationError(collected)
