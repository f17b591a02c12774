"""
Result type for staff actions with best-effort side effects.

A staff action has one authoritative write followed by secondary steps
(trust-state sync, audit entry, user notification). The authoritative write
either succeeds or raises; secondary failures are reported here instead.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.exceptions import DependencyException

T = TypeVar("T")

TRUST_STATE_PENDING = "trust_state_pending"
AUDIT_DELAYED = "audit_delayed"
NOTIFICATION_PENDING = "notification_pending"


@dataclass
class ActionOutcome(Generic[T]):
    """Primary result plus the status of each secondary effect."""

    result: T
    trust_synced: bool = True
    audit_logged: bool = True
    notified: bool = True
    extra_warnings: list[str] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        """Machine-readable list of secondary effects that did not complete."""
        warnings = []
        if not self.trust_synced:
            warnings.append(TRUST_STATE_PENDING)
        if not self.audit_logged:
            warnings.append(AUDIT_DELAYED)
        if not self.notified:
            warnings.append(NOTIFICATION_PENDING)
        return warnings + self.extra_warnings

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)


@contextmanager
def primary_write(db: Session, operation: str) -> Iterator[None]:
    """
    Wrap the authoritative write of a staff action.

    Store errors roll the session back and surface as DependencyException,
    so the caller knows nothing was persisted and may retry.
    """
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Primary write failed for '{operation}': {e!r}")
        raise DependencyException(operation) from e
