"""Error taxonomy shared by every bounded context.

Module-level ``exceptions.py`` files subclass these so the API layer can
translate any domain failure into an HTTP response by category alone.
"""

from __future__ import annotations


class DomainError(Exception):
    """Root of all domain failures."""

    code = "domain_error"


class DomainValidationError(DomainError):
    """Malformed or missing input, or a business rule rejected the request."""

    code = "validation_error"


class NotFoundError(DomainError):
    """A referenced record does not exist."""

    code = "not_found"


class ConcurrencyConflict(DomainError):
    """A conditional write lost the race against another writer.

    The caller may re-read and retry; the domain layer never retries.
    """

    code = "concurrency_conflict"


class ForbiddenError(DomainError):
    """The operation is not allowed for this input (e.g. exclusivity rules)."""

    code = "forbidden"


class ImmutableRecordError(DomainError):
    """An append-only record (audit entry, order line) was updated or deleted."""

    code = "immutable_record"
