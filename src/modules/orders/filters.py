import django_filters

from modules.orders.constants import OrderStatus
from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=OrderStatus.choices)
    customer = django_filters.CharFilter(field_name="customer_id")
    order_number = django_filters.CharFilter(
        field_name="order_number", lookup_expr="icontains"
    )
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    min_amount = django_filters.NumberFilter(
        field_name="amount_source", lookup_expr="gte"
    )
    max_amount = django_filters.NumberFilter(
        field_name="amount_source", lookup_expr="lte"
    )

    class Meta:
        model = Order
        fields = [
            "status",
            "customer",
            "order_number",
            "start_date",
            "end_date",
            "min_amount",
            "max_amount",
        ]
