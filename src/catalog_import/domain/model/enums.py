"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ElementType(StrEnum):
    APPLICATION = "Application"


class FieldKind(StrEnum):
    """Value shape of a target field, used to pick the normalized variant."""

    TEXT = "text"
    CHOICE = "choice"
    NUMBER = "number"


class RecordStatus(StrEnum):
    VALID = "VALID"
    INVALID = "INVALID"


class DuplicateStrategy(StrEnum):
    """Operator decision for a row that matches an existing element."""

    UPDATE_EXISTING = "UPDATE_EXISTING"
    CREATE_NEW = "CREATE_NEW"
    SKIP = "SKIP"


class MatchedBy(StrEnum):
    APPLICATION_CODE = "applicationCode"
    NAME = "name"


class PlanAction(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"


class BatchStatus(StrEnum):
    """Lifecycle of an import batch; transitions only move forward."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (BatchStatus.COMPLETED, BatchStatus.FAILED)

    def can_move_to(self, target: BatchStatus) -> bool:
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[BatchStatus, frozenset[BatchStatus]] = {
    BatchStatus.PENDING: frozenset({BatchStatus.IN_PROGRESS, BatchStatus.FAILED}),
    BatchStatus.IN_PROGRESS: frozenset({BatchStatus.COMPLETED, BatchStatus.FAILED}),
    BatchStatus.COMPLETED: frozenset(),
    BatchStatus.FAILED: frozenset(),
}
