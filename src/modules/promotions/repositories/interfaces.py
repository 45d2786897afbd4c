"""Promotion and promotional-code repository interfaces."""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.promotions.models import CodeRedemption, Promotion, PromotionalCode


class IPromotionRepository(IRepository["Promotion"]):
    """Repository contract for promotions."""

    @abstractmethod
    def first_active(self, ids: Iterable[str], moment: datetime) -> Optional["Promotion"]:
        """Oldest promotion among ``ids`` that is running at ``moment``."""

    @abstractmethod
    def increment_usage(self, id: str) -> bool:
        """Atomically add one use unless the global cap is reached."""

    @abstractmethod
    def count_user_usages(self, id: str, user_id: int) -> int:
        """How many times ``user_id`` has used the promotion."""

    @abstractmethod
    def record_usage(self, id: str, order_id: Optional[str], user_id: Optional[int]) -> None:
        """Persist one usage row."""

    @abstractmethod
    def has_usages(self, id: str) -> bool:
        """Whether any usage has been recorded."""

    @abstractmethod
    def disable(self, id: str) -> None:
        """Soft-disable the promotion."""

    @abstractmethod
    def delete(self, id: str) -> None:
        """Remove a promotion that was never used."""


class IPromotionalCodeRepository(IRepository["PromotionalCode"]):
    """Repository contract for promotional codes."""

    @abstractmethod
    def get_by_code(self, code: str) -> Optional["PromotionalCode"]:
        """Case-insensitive look-up."""

    @abstractmethod
    def is_user_allowed(self, code: "PromotionalCode", user_id: Optional[int]) -> bool:
        """``True`` when the code has no allow-list or ``user_id`` is on it."""

    @abstractmethod
    def increment_usage(self, id: str) -> bool:
        """Atomically add one use unless the global cap is reached."""

    @abstractmethod
    def count_user_redemptions(self, id: str, user_id: int) -> int:
        """How many times ``user_id`` has redeemed the code."""

    @abstractmethod
    def create_redemption(
        self,
        code: "PromotionalCode",
        user_id: Optional[int],
        order_id: Optional[str],
        discount_cents: int,
    ) -> "CodeRedemption":
        """Persist a redemption row."""
