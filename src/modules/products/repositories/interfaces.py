"""Product repository interface.

Look-ups needed by checkout pricing and coupon exclusivity, plus the
conditional stock writes made when an order is paid or refunded.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Dict, Iterable, List

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(IRepository["Product"]):
    """Repository contract for catalog products."""

    @abstractmethod
    def get_many(self, ids: Iterable[str]) -> Dict[str, "Product"]:
        """Return live products keyed by ``str(id)``; unknown IDs are omitted."""

    @abstractmethod
    def list_for_exclusivity(self, ids: Iterable[str]) -> List["Product"]:
        """Return live products with their promotion pre-loaded."""

    @abstractmethod
    def reserve_stock(self, id: str, quantity: int) -> bool:
        """Take ``quantity`` units only if that many are on hand.

        Returns ``False`` (and changes nothing) when stock is short.
        """

    @abstractmethod
    def restore_stock(self, id: str, quantity: int) -> None:
        """Put ``quantity`` units back on hand."""
