"""Error taxonomy and action results shared by the trust and moderation engines."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVARIANT_VIOLATION = "invariant_violation"
    UNAUTHORIZED = "unauthorized"
    RANGE_VIOLATION = "range_violation"
    PERSISTENCE_FAILURE = "persistence_failure"


class WandaError(Exception):
    """Base class for domain failures surfaced by the engines."""

    kind: ErrorKind = ErrorKind.INVARIANT_VIOLATION
    detail: str = "wanda_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.detail)
        self.message = message or self.detail


# --- Not found ---------------------------------------------------------------


class NotFoundError(WandaError):
    kind = ErrorKind.NOT_FOUND
    detail = "not_found"


class UserNotFound(NotFoundError):
    detail = "user_not_found"

    def __init__(self, user_id: object) -> None:
        super().__init__(f"User with ID {user_id} was not found.")
        self.user_id = user_id


class AuthorNotFound(NotFoundError):
    detail = "author_not_found"

    def __init__(self, author_id: object) -> None:
        super().__init__(f"Cannot create post: author with ID {author_id} was not found.")
        self.author_id = author_id


class PostNotFound(NotFoundError):
    detail = "post_not_found"

    def __init__(self, post_id: object) -> None:
        super().__init__(f"Post with ID {post_id} does not exist.")
        self.post_id = post_id


class ReportNotFound(NotFoundError):
    detail = "report_not_found"

    def __init__(self, report_id: object) -> None:
        super().__init__(f"Report {report_id} was not found.")
        self.report_id = report_id


# --- Invariant violations ------------------------------------------------------


class InvariantViolation(WandaError):
    kind = ErrorKind.INVARIANT_VIOLATION
    detail = "invariant_violation"


class SelfValidation(InvariantViolation):
    detail = "self_validation"

    def __init__(self) -> None:
        super().__init__("An author cannot validate their own post.")


class DoubleValidation(InvariantViolation):
    detail = "double_validation"

    def __init__(self, user_id: object, post_id: object) -> None:
        super().__init__(f"User {user_id} has already validated post {post_id}.")
        self.user_id = user_id
        self.post_id = post_id


class DuplicateReport(InvariantViolation):
    detail = "duplicate_report"

    def __init__(self, reporter_id: object, post_id: object) -> None:
        super().__init__(f"User {reporter_id} has already reported post {post_id}.")
        self.reporter_id = reporter_id
        self.post_id = post_id


class ReportAlreadyResolved(InvariantViolation):
    detail = "report_already_resolved"

    def __init__(self, report_id: object, status: object) -> None:
        super().__init__(f"Report {report_id} is already {status}.")
        self.report_id = report_id
        self.status = status


class UserAlreadyExists(InvariantViolation):
    detail = "user_already_exists"

    def __init__(self, matricule: str) -> None:
        super().__init__(f"An account with matricule {matricule} already exists.")
        self.matricule = matricule


# --- Authorization -----------------------------------------------------------


class UnauthorizedAdminAction(WandaError):
    kind = ErrorKind.UNAUTHORIZED
    detail = "unauthorized_admin_action"

    def __init__(self, actor_id: object) -> None:
        super().__init__(f"Action denied: user {actor_id} does not have administrative privileges.")
        self.actor_id = actor_id


# --- Range ---------------------------------------------------------------------


class InvalidTrustScore(WandaError, ValueError):
    kind = ErrorKind.RANGE_VIOLATION
    detail = "invalid_trust_score"

    def __init__(self, value: object) -> None:
        super().__init__(f"Trust score must be an integer between 0 and 100, got {value!r}.")
        self.value = value


# --- Persistence -----------------------------------------------------------------


class StoreError(Exception):
    """Raised by collaborator implementations when the backing store fails."""


class StaleWriteError(StoreError):
    """A versioned write found a newer revision than the one it was based on."""

    def __init__(self, entity_id: object, expected_version: int) -> None:
        super().__init__(f"stale write on {entity_id} (expected version {expected_version})")
        self.entity_id = entity_id
        self.expected_version = expected_version


class PersistenceFailure(WandaError):
    """Action-specific wrapper that keeps the original cause for diagnostics."""

    kind = ErrorKind.PERSISTENCE_FAILURE
    detail = "persistence_failure"

    def __init__(self, message: str | None = None, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class PostCreationError(PersistenceFailure):
    detail = "post_creation_failed"


class ValidationActionError(PersistenceFailure):
    detail = "validation_action_failed"


class ModerationActionError(PersistenceFailure):
    detail = "moderation_action_failed"


class TrustAdjustmentError(PersistenceFailure):
    detail = "trust_adjustment_failed"


class RegistrationError(PersistenceFailure):
    detail = "registration_failed"


class QueryError(PersistenceFailure):
    detail = "query_failed"


class InboundPersistenceError(PersistenceFailure):
    detail = "inbound_persistence_failed"


class ExternalIntegrationError(PersistenceFailure):
    detail = "external_integration_failed"


# --- Results ---------------------------------------------------------------------


@dataclass(frozen=True)
class ActionResult(Generic[T]):
    """Discriminated outcome of an engine operation.

    Exactly one of ``value`` and ``error`` is meaningful; ``ok`` tells which.
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[WandaError] = None

    @classmethod
    def success(cls, value: T) -> "ActionResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: WandaError) -> "ActionResult[T]":
        return cls(ok=False, error=error)

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        if not self.ok:
            assert self.error is not None
            raise self.error
        return self.value  # type: ignore[return-value]


__all__ = [
    "ActionResult",
    "AuthorNotFound",
    "DoubleValidation",
    "DuplicateReport",
    "ErrorKind",
    "ExternalIntegrationError",
    "InboundPersistenceError",
    "InvalidTrustScore",
    "InvariantViolation",
    "ModerationActionError",
    "NotFoundError",
    "PersistenceFailure",
    "PostCreationError",
    "PostNotFound",
    "QueryError",
    "RegistrationError",
    "ReportAlreadyResolved",
    "ReportNotFound",
    "SelfValidation",
    "StaleWriteError",
    "StoreError",
    "TrustAdjustmentError",
    "UnauthorizedAdminAction",
    "UserAlreadyExists",
    "UserNotFound",
    "ValidationActionError",
    "WandaError",
]
