from django.db import models


class GatewayProvider(models.TextChoices):
    MERCADOPAGO = "MERCADOPAGO", "Mercado Pago"
    CARD = "CARD", "Credit / debit card"
    BANK_TRANSFER = "BANK_TRANSFER", "Bank transfer"


class RuleScope(models.TextChoices):
    GLOBAL = "GLOBAL", "Global"
    CATEGORY = "CATEGORY", "Category"
    PRODUCT = "PRODUCT", "Product"


class RuleAction(models.TextChoices):
    DISCOUNT = "DISCOUNT", "Discount"
    CHARGE = "CHARGE", "Charge"


# Lower value is applied first.
SCOPE_SPECIFICITY = {
    RuleScope.PRODUCT: 0,
    RuleScope.CATEGORY: 1,
    RuleScope.GLOBAL: 2,
}
