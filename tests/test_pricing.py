"""Unit tests for quantity validation and line item total recomputation.

Coverage:
- Quantity parsing (numeric, positive, whole number)
- Total and component scaling, rounding modes
- Label rules for product and non-product line items
- Unit price rebasing
- Currency minor unit helpers and display formatting
"""

from decimal import Decimal

import pytest

from lineform.domain.errors import (
    AmountTooLargeError,
    NotNumericError,
    NotPositiveError,
    NotWholeNumberError,
    QuantityError,
    QuantityTooLargeError,
)
from lineform.domain.models import CapabilityFlags, Money, PriceComponent
from lineform.domain.pricing import (
    MAX_MINOR_UNITS,
    MAX_QUANTITY,
    LineItemPricingRule,
    format_amount,
    format_quantity,
    from_minor_units,
    to_minor_units,
)

from .factories import make_line_item, usd


# =============================================================================
# validate_quantity
# =============================================================================


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("3", Decimal("3")),
        ("2.5", Decimal("2.5")),
        (" 4 ", Decimal("4")),
        ("+7", Decimal("7")),
        (".5", Decimal("0.5")),
        ("1e2", Decimal("100")),
        (3, Decimal("3")),
    ],
)
def test_validate_quantity_accepts_positive_numbers(rule, raw, expected):
    assert rule.validate_quantity(raw, require_integer=False) == expected


@pytest.mark.parametrize("raw", ["", "abc", "NaN", "Infinity", "1_000", "1,5", "--1", "3 items", None, True])
def test_validate_quantity_rejects_non_numeric(rule, raw):
    with pytest.raises(NotNumericError) as exc_info:
        rule.validate_quantity(raw, require_integer=False)

    assert exc_info.value.code == "not_numeric"
    assert exc_info.value.message == "You must specify a positive number for the quantity"


@pytest.mark.parametrize("raw", ["0", "0.00", "-1", "-0.5"])
def test_validate_quantity_rejects_zero_and_negative(rule, raw):
    with pytest.raises(NotPositiveError) as exc_info:
        rule.validate_quantity(raw, require_integer=False)

    assert exc_info.value.code == "not_positive"


def test_validate_quantity_rejects_fraction_when_integer_required(rule):
    with pytest.raises(NotWholeNumberError) as exc_info:
        rule.validate_quantity("2.5", require_integer=True)

    assert exc_info.value.message == "You must specify a whole number for the quantity."


@pytest.mark.parametrize("raw", ["3", "3.00", "1e1"])
def test_validate_quantity_accepts_whole_numbers_when_integer_required(rule, raw):
    assert rule.validate_quantity(raw, require_integer=True) == Decimal(raw)


def test_validate_quantity_checks_sign_before_wholeness(rule):
    """A negative fraction is reported as not positive."""
    with pytest.raises(NotPositiveError):
        rule.validate_quantity("-2.5", require_integer=True)


def test_quantity_errors_are_value_errors(rule):
    with pytest.raises(ValueError):
        rule.validate_quantity("abc")
    assert issubclass(QuantityError, ValueError)


@pytest.mark.parametrize("raw", ["1e30", "1e99", "10000000000", "9999999999.995"])
def test_validate_quantity_rejects_quantities_too_large_to_store(rule, raw):
    with pytest.raises(QuantityTooLargeError) as exc_info:
        rule.validate_quantity(raw, require_integer=False)

    assert exc_info.value.code == "too_large"


def test_validate_quantity_accepts_largest_storable_quantity(rule):
    assert rule.validate_quantity(str(MAX_QUANTITY)) == MAX_QUANTITY


@pytest.mark.parametrize("raw", ["0.004", "0.001", "1e-30"])
def test_validate_quantity_rejects_fractions_that_round_to_zero(rule, raw):
    with pytest.raises(NotPositiveError):
        rule.validate_quantity(raw, require_integer=False)


def test_validate_quantity_accepts_fraction_that_rounds_up_to_a_cent(rule):
    quantity = rule.validate_quantity("0.005")

    assert rule.recompute(make_line_item(), quantity, "Widget", is_product_type=False).quantity == Decimal("0.01")


# =============================================================================
# recompute
# =============================================================================


def test_recompute_multiplies_total_and_components(rule):
    item = make_line_item(unit_price=usd(1000))

    result = rule.recompute(item, Decimal("3"), "Widget", is_product_type=False)

    assert result.total.amount == 3000
    assert result.total.currency_code == "USD"
    assert [c.amount for c in result.total.components] == [3000]


def test_recompute_formats_quantity_with_two_decimals(rule):
    item = make_line_item()

    result = rule.recompute(item, Decimal("3"), "Widget", is_product_type=False)

    assert str(result.quantity) == "3.00"


def test_recompute_uses_formatted_quantity_for_totals(rule):
    """2.005 is stored as 2.01 and the total follows the stored quantity."""
    item = make_line_item(unit_price=usd(1000))

    result = rule.recompute(item, Decimal("2.005"), "Widget", is_product_type=False)

    assert result.quantity == Decimal("2.01")
    assert result.total.amount == 2010


def test_recompute_product_type_uses_sku_as_label(rule):
    item = make_line_item(line_item_type="product", product_sku="SKU-OLD")

    result = rule.recompute(
        item, Decimal("1"), "Ignored label", is_product_type=True, product_sku="SKU-1"
    )

    assert result.label == "SKU-1"
    assert result.product_sku == "SKU-1"


def test_recompute_product_type_falls_back_to_item_sku(rule):
    item = make_line_item(line_item_type="product", product_sku="SKU-9")

    result = rule.recompute(item, Decimal("1"), "", is_product_type=True)

    assert result.label == "SKU-9"


def test_recompute_product_type_without_sku_is_rejected(rule):
    item = make_line_item(line_item_type="product", product_sku=None)

    with pytest.raises(ValueError):
        rule.recompute(item, Decimal("1"), "Label", is_product_type=True)


def test_recompute_trims_label_for_other_types(rule):
    item = make_line_item(label="Old")

    result = rule.recompute(item, Decimal("1"), "  Widget  ", is_product_type=False)

    assert result.label == "Widget"


def test_recompute_is_idempotent(rule):
    item = make_line_item(unit_price=usd(999))

    first = rule.recompute(item, Decimal("1.5"), " Widget ", is_product_type=False)
    second = rule.recompute(item, Decimal("1.5"), " Widget ", is_product_type=False)

    assert first == second


def test_recompute_leaves_original_item_untouched(rule):
    item = make_line_item(quantity="1.00")

    rule.recompute(item, Decimal("4"), "Widget", is_product_type=False)

    assert item.quantity == Decimal("1.00")
    assert item.total.amount == 1000


def test_recompute_preserves_component_order_and_metadata(rule):
    base = PriceComponent("base_price", 800, "USD")
    tax = PriceComponent("tax|vat", 200, "USD", included=False, data={"rate": "0.25"})
    item = make_line_item(unit_price=usd(1000, base, tax))

    result = rule.recompute(item, Decimal("2"), "Widget", is_product_type=False)

    assert result.total.amount == 2000
    assert [c.name for c in result.total.components] == ["base_price", "tax|vat"]
    assert [c.amount for c in result.total.components] == [1600, 400]
    assert result.total.components[1].included is False
    assert result.total.components[1].data == {"rate": "0.25"}
    # Unit price keeps its own breakdown
    assert result.unit_price.components == (base, tax)


def test_recompute_rebases_stale_unit_price_components(rule):
    """An edited amount replaces the stale breakdown with a single base price."""
    stale = Money(1200, "USD", (PriceComponent("base_price", 1000, "USD"),))
    item = make_line_item(unit_price=stale)

    result = rule.recompute(item, Decimal("2"), "Widget", is_product_type=False)

    assert result.unit_price.components == (PriceComponent("base_price", 1200, "USD"),)
    assert result.total.amount == 2400
    assert [c.amount for c in result.total.components] == [2400]


def test_recompute_rebases_components_in_other_currency(rule):
    mixed = Money(1000, "EUR", (PriceComponent("base_price", 1000, "USD"),))
    item = make_line_item(unit_price=mixed)

    result = rule.recompute(item, Decimal("1"), "Widget", is_product_type=False)

    assert result.unit_price.components[0].currency_code == "EUR"
    assert result.total.currency_code == "EUR"


def test_recompute_rounds_half_up_by_default(rule):
    item = make_line_item(unit_price=usd(101))

    result = rule.recompute(item, Decimal("0.5"), "Widget", is_product_type=False)

    assert result.total.amount == 51
    assert [c.amount for c in result.total.components] == [51]


def test_recompute_rounds_half_even_when_configured():
    rule = LineItemPricingRule(rounding="half_even")
    item = make_line_item(unit_price=usd(101))

    result = rule.recompute(item, Decimal("0.5"), "Widget", is_product_type=False)

    assert result.total.amount == 50


def test_scale_rejects_totals_too_large_to_store(rule):
    with pytest.raises(AmountTooLargeError):
        rule.scale(usd(MAX_MINOR_UNITS), Decimal("2"))


def test_recompute_rejects_totals_too_large_to_store(rule):
    item = make_line_item(unit_price=usd(10**12))

    with pytest.raises(AmountTooLargeError):
        rule.recompute(item, MAX_QUANTITY, "Widget", is_product_type=False)


def test_unknown_rounding_mode_is_rejected():
    with pytest.raises(ValueError):
        LineItemPricingRule(rounding="truncate")


# =============================================================================
# Product line item types
# =============================================================================


def test_is_product_type_requires_product_reference_capability():
    enabled = LineItemPricingRule(CapabilityFlags(product_reference_enabled=True))
    disabled = LineItemPricingRule(CapabilityFlags(product_reference_enabled=False))

    assert enabled.is_product_type("product") is True
    assert enabled.is_product_type("shipping") is False
    assert disabled.is_product_type("product") is False


def test_is_product_type_uses_configured_types():
    rule = LineItemPricingRule(product_line_item_types=["product", "subscription"])

    assert rule.is_product_type("subscription") is True


# =============================================================================
# Currency helpers
# =============================================================================


@pytest.mark.parametrize(
    "amount, currency, expected",
    [
        (Decimal("10.50"), "USD", 1050),
        (Decimal("1500"), "JPY", 1500),
        (Decimal("1.234"), "BHD", 1234),
        (Decimal("0.005"), "USD", 1),
    ],
)
def test_to_minor_units(amount, currency, expected):
    assert to_minor_units(amount, currency) == expected


@pytest.mark.parametrize("amount", [Decimal("1e40"), Decimal("1e17")])
def test_to_minor_units_rejects_amounts_too_large_to_store(amount):
    with pytest.raises(AmountTooLargeError):
        to_minor_units(amount, "USD")


def test_from_minor_units_keeps_currency_places():
    assert str(from_minor_units(1050, "USD")) == "10.50"
    assert str(from_minor_units(1500, "JPY")) == "1500"


@pytest.mark.parametrize(
    "money, expected",
    [
        (Money(123456, "USD"), "$1,234.56"),
        (Money(300, "CHF"), "CHF 3.00"),
        (Money(-500, "EUR"), "-€5.00"),
        (Money(0, "USD"), "$0.00"),
    ],
)
def test_format_amount(money, expected):
    assert format_amount(money) == expected


def test_format_quantity_rounds_to_two_places():
    assert str(format_quantity(Decimal("1"))) == "1.00"
    assert str(format_quantity(Decimal("1.005"))) == "1.01"
