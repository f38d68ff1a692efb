# common/exceptions.py

"""
DOMAIN ERROR TAXONOMY

Every service raises one of these. The API boundary maps them to HTTP
status codes (see backend/api_errors.py); webhook handlers never let them
escape and record them on the inbox row instead.
"""


class DomainError(Exception):
    """Base exception for all settlement-domain failures."""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str = "", *, code: str | None = None):
        super().__init__(message)
        if code:
            self.code = code


class ValidationError(DomainError):
    """Raised on bad input (non-positive amounts, unknown entry types, ...)."""

    code = "VALIDATION_ERROR"


class NotFoundError(DomainError):
    """Raised when a customer, order, receipt or stock row does not exist."""

    code = "NOT_FOUND"


class ConflictError(DomainError):
    """Raised on uniqueness conflicts (duplicate receipt hash, order-number exhaustion)."""

    code = "CONFLICT"


class StateError(DomainError):
    """Raised on an illegal state-machine transition."""

    code = "INVALID_STATE"


class DependencyError(DomainError):
    """Raised when a collaborator fails or times out. Never corrupts ledger state."""

    code = "DEPENDENCY_FAILURE"


class SideEffectError(DomainError):
    """
    Best-effort side effect failed (notification, messaging).

    Always logged, never propagated past the dispatcher.
    """

    code = "SIDE_EFFECT_FAILED"
