from __future__ import annotations

from typing import Dict, Tuple

from django.db import models


class DiscountType(models.TextChoices):
    PERCENTAGE = "PERCENTAGE", "Percentage"
    FIXED_AMOUNT = "FIXED_AMOUNT", "Fixed amount"
    BUNDLE = "BUNDLE", "Buy N pay M"


class CodeDiscountKind(models.TextChoices):
    PERCENTAGE = "PERCENTAGE", "Percentage"
    FIXED_AMOUNT = "FIXED_AMOUNT", "Fixed amount"


class BundleType(models.TextChoices):
    TWO_FOR_ONE = "2X1", "Take 2, pay 1"
    THREE_FOR_TWO = "3X2", "Take 3, pay 2"
    FOUR_FOR_THREE = "4X3", "Take 4, pay 3"
    FIVE_FOR_TWO = "5X2", "Take 5, pay 2"
    FIVE_FOR_THREE = "5X3", "Take 5, pay 3"


# (units taken, units paid)
BUNDLE_TERMS: Dict[str, Tuple[int, int]] = {
    BundleType.TWO_FOR_ONE: (2, 1),
    BundleType.THREE_FOR_TWO: (3, 2),
    BundleType.FOUR_FOR_THREE: (4, 3),
    BundleType.FIVE_FOR_TWO: (5, 2),
    BundleType.FIVE_FOR_THREE: (5, 3),
}


class BlockReason(models.TextChoices):
    LIQUIDATION = "LIQUIDATION", "Product in liquidation"
    ACTIVE_PROMOTION = "ACTIVE_PROMOTION", "Product with an active promotion"


class DiscountSource(models.TextChoices):
    NONE = "NONE", "No discount"
    LIQUIDATION = "LIQUIDATION", "Liquidation"
    PROMOTION = "PROMOTION", "Promotion"
