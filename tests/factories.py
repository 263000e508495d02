"""Builders for domain objects used across tests."""

from decimal import Decimal

from lineform.domain.models import LineItem, Money, PriceComponent


def usd(amount: int, *components: PriceComponent) -> Money:
    """USD price; defaults to a single base price component."""
    if not components:
        components = (PriceComponent("base_price", amount, "USD"),)
    return Money(amount=amount, currency_code="USD", components=components)


def make_line_item(
    line_item_type: str = "shipping",
    label: str = "Widget",
    quantity: str = "1.00",
    unit_price: Money | None = None,
    product_sku: str | None = None,
    **kwargs,
) -> LineItem:
    unit_price = unit_price or usd(1000)
    kwargs.setdefault("id", "li-1")
    kwargs.setdefault("order_id", "order-1")
    return LineItem(
        label=label,
        quantity=Decimal(quantity),
        unit_price=unit_price,
        total=unit_price,
        line_item_type=line_item_type,
        product_sku=product_sku,
        **kwargs,
    )
