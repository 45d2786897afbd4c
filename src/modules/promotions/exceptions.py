"""Promotion and promotional-code exceptions."""

from __future__ import annotations

from shared.domain.exceptions import DomainValidationError, ForbiddenError, NotFoundError


class PromotionNotFound(NotFoundError):
    """The requested promotion does not exist."""


class PromotionUsageLimitReached(DomainValidationError):
    """The promotion has no uses left."""


class CodeNotFound(NotFoundError):
    """No promotional code matches the given string."""


class CodeInactive(DomainValidationError):
    """The code exists but has been disabled."""


class CodeExpired(DomainValidationError):
    """The code is outside its validity window."""


class CodeUsageLimitReached(DomainValidationError):
    """The global or per-user redemption cap has been reached."""


class CodeNotAllowedForUser(ForbiddenError):
    """The code carries an allow-list that does not include the buyer."""


class CodeBlockedByPromotion(ForbiddenError):
    """A product in the cart is in liquidation or has an active promotion.

    ``context`` carries the blocking details so the API can show them.
    """

    def __init__(self, message: str, context: dict | None = None) -> None:
        super().__init__(message)
        self.context = context or {}
