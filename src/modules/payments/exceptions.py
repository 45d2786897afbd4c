"""Payment gateway exceptions."""

from __future__ import annotations

from shared.domain.exceptions import NotFoundError


class GatewayNotFound(NotFoundError):
    """The requested payment gateway does not exist."""
