"""Django ORM implementation of the Product repository.

Follows the Null Object pattern: look-ups return ``None`` (or omit the
entry) for missing or malformed IDs and the service layer decides how to
report them.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db.models import F

from modules.products.models import Product
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        try:
            return Product.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_many(self, ids: Iterable[str]) -> Dict[str, Product]:
        try:
            products = Product.objects.alive().select_related("category").filter(
                id__in=list(ids)
            )
            return {str(product.id): product for product in products}
        except (ValueError, ValidationError):
            return {}

    def list_for_exclusivity(self, ids: Iterable[str]) -> List[Product]:
        try:
            return list(
                Product.objects.alive().select_related("promotion").filter(id__in=list(ids))
            )
        except (ValueError, ValidationError):
            return []

    def reserve_stock(self, id: str, quantity: int) -> bool:
        updated = Product.objects.filter(id=id, stock__gte=quantity).update(
            stock=F("stock") - quantity
        )
        if updated:
            logger.info("product.stock_reserved", product_id=str(id), quantity=quantity)
        else:
            logger.warning("product.stock_short", product_id=str(id), quantity=quantity)
        return bool(updated)

    def restore_stock(self, id: str, quantity: int) -> None:
        Product.objects.filter(id=id).update(stock=F("stock") + quantity)
        logger.info("product.stock_restored", product_id=str(id), quantity=quantity)

    def save(self, entity: Product) -> Product:
        entity.save()
        logger.info("product.saved", product_id=str(entity.id))
        return entity
