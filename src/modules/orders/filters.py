import django_filters

from modules.orders.constants import OrderStatus
from modules.orders.models import Order


class OrderSalesFilter(django_filters.FilterSet):
    """Sales listing filters; both date bounds are inclusive instants."""

    status = django_filters.MultipleChoiceFilter(
        field_name="status",
        choices=OrderStatus.choices,
    )
    date_from = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    date_to = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = Order
        fields = ["status", "date_from", "date_to"]
