"""
Quantity validation and line item total recomputation.

This module contains the pricing rule applied when an embedded line item
form is validated and submitted. No side effects, no I/O: the caller
persists whatever ``recompute`` returns.

Design Decisions:
- Quantities are Decimal and always stored with two decimal places
- Amounts stay in integer minor units; every multiplication by a
  fractional quantity is rounded back to a whole minor unit
- The total and each component are rounded independently
- Capability flags are passed in at construction instead of being
  looked up at call time
"""

import logging
import re
from dataclasses import replace
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal, InvalidOperation

from .errors import (
    AmountTooLargeError,
    NotNumericError,
    NotPositiveError,
    NotWholeNumberError,
    QuantityTooLargeError,
)
from .models import CapabilityFlags, LineItem, Money, PriceComponent

logger = logging.getLogger(__name__)


# Plain decimal notation with optional sign and exponent. Rejects NaN,
# Infinity and digit separators that Decimal() would otherwise accept.
NUMERIC_PATTERN = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")

QUANTITY_PLACES = Decimal("0.01")

# Largest values the line item columns hold: Numeric(12, 2) quantities and
# BigInteger minor unit amounts
MAX_QUANTITY = Decimal("9999999999.99")
MAX_MINOR_UNITS = 2**63 - 1

ROUNDING_MODES = {
    "half_up": ROUND_HALF_UP,
    "half_even": ROUND_HALF_EVEN,
}

# ISO 4217 currencies whose minor unit is not 1/100
CURRENCY_FRACTION_DIGITS = {
    "BHD": 3,
    "CLP": 0,
    "ISK": 0,
    "JOD": 3,
    "JPY": 0,
    "KRW": 0,
    "KWD": 3,
    "OMR": 3,
    "TND": 3,
    "VND": 0,
}

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
}

BASE_PRICE_COMPONENT = "base_price"


def fraction_digits(currency_code: str) -> int:
    """Number of decimal places of a currency's major unit."""
    return CURRENCY_FRACTION_DIGITS.get(currency_code.upper(), 2)


def to_minor_units(
    amount: Decimal,
    currency_code: str,
    rounding: str = ROUND_HALF_UP,
) -> int:
    """
    Convert a major unit amount ("10.50") to integer minor units (1050).

    Raises:
        AmountTooLargeError: The amount does not fit in MAX_MINOR_UNITS
    """
    try:
        scaled = amount.scaleb(fraction_digits(currency_code))
        minor = int(scaled.quantize(Decimal(1), rounding=rounding))
    except InvalidOperation:
        raise AmountTooLargeError(str(amount)) from None
    if abs(minor) > MAX_MINOR_UNITS:
        raise AmountTooLargeError(str(amount))
    return minor


def from_minor_units(amount: int, currency_code: str) -> Decimal:
    """Convert integer minor units back to a major unit Decimal."""
    digits = fraction_digits(currency_code)
    return Decimal(amount).scaleb(-digits).quantize(Decimal(1).scaleb(-digits))


def format_amount(money: Money) -> str:
    """
    Render a price for display, e.g. "$10.50" or "CHF 3.00".

    Used by the ``commerce_price_formatted_amount`` column formatter.
    """
    value = from_minor_units(money.amount, money.currency_code)
    symbol = CURRENCY_SYMBOLS.get(money.currency_code.upper())
    sign = "-" if value < 0 else ""
    formatted = f"{abs(value):,}"
    if symbol:
        return f"{sign}{symbol}{formatted}"
    return f"{sign}{money.currency_code} {formatted}"


def format_quantity(quantity: Decimal) -> Decimal:
    """Fix a quantity to exactly two decimal places."""
    return quantity.quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def parse_number(raw_input: object) -> Decimal | None:
    """Parse user input as a finite Decimal, or None if it is not numeric."""
    if raw_input is None or isinstance(raw_input, bool):
        return None
    text = str(raw_input)
    if not NUMERIC_PATTERN.match(text):
        return None
    try:
        return Decimal(text.strip())
    except InvalidOperation:
        return None


class LineItemPricingRule:
    """
    Validates quantities and recomputes line item totals.

    The host calls ``validate_quantity`` while validating the form and,
    only when that succeeded, ``recompute`` while handling the submit.

    Example:
        rule = LineItemPricingRule(CapabilityFlags(product_reference_enabled=True))
        quantity = rule.validate_quantity("3", require_integer=True)
        updated = rule.recompute(item, quantity, "Widget", is_product_type=False)
    """

    def __init__(
        self,
        capabilities: CapabilityFlags | None = None,
        product_line_item_types: tuple[str, ...] | list[str] = ("product",),
        rounding: str = "half_up",
    ) -> None:
        """
        Initialize the rule.

        Args:
            capabilities: Optional host capabilities
            product_line_item_types: Line item types that reference a product
            rounding: "half_up" or "half_even", used when scaling amounts
        """
        if rounding not in ROUNDING_MODES:
            raise ValueError(f"Unknown rounding mode: {rounding}")
        self.capabilities = capabilities or CapabilityFlags()
        self.product_line_item_types = tuple(product_line_item_types)
        self.rounding = ROUNDING_MODES[rounding]

    def is_product_type(self, line_item_type: str) -> bool:
        """True if line items of this type take their label from a product."""
        if not self.capabilities.product_reference_enabled:
            return False
        return line_item_type in self.product_line_item_types

    def validate_quantity(self, raw_input: object, require_integer: bool = False) -> Decimal:
        """
        Validate a submitted quantity.

        Args:
            raw_input: Quantity as typed by the user
            require_integer: Reject fractional quantities

        Returns:
            The parsed quantity (not yet formatted or persisted)

        Raises:
            NotNumericError: Input is not a number
            NotPositiveError: Input is zero or negative, or rounds to 0.00
            NotWholeNumberError: Input is fractional and require_integer is set
            QuantityTooLargeError: Input exceeds MAX_QUANTITY
        """
        value = parse_number(raw_input)
        if value is None:
            raise NotNumericError(str(raw_input))
        if value <= 0:
            raise NotPositiveError(str(raw_input))
        if require_integer and value != value.to_integral_value():
            raise NotWholeNumberError(str(raw_input))
        if value > MAX_QUANTITY:
            raise QuantityTooLargeError(str(raw_input))
        if format_quantity(value) <= 0:
            raise NotPositiveError(str(raw_input))
        return value

    def recompute(
        self,
        item: LineItem,
        new_quantity: Decimal,
        new_label: str,
        is_product_type: bool,
        product_sku: str | None = None,
    ) -> LineItem:
        """
        Apply a new quantity and label and recompute the total.

        This is the only place a line item's quantity and total change.
        Assumes ``validate_quantity`` already accepted ``new_quantity``.

        Args:
            item: The line item being edited
            new_quantity: Validated quantity
            new_label: Label typed by the user (ignored for product types)
            is_product_type: Whether the label comes from the product SKU
            product_sku: SKU of the referenced product, defaults to the item's

        Returns:
            A new LineItem with quantity, label, unit price and total updated
        """
        quantity = format_quantity(new_quantity)

        sku = item.product_sku
        if is_product_type:
            sku = product_sku if product_sku is not None else item.product_sku
            if sku is None:
                raise ValueError(f"Product line item {item.id} has no product SKU")
            label = sku
        else:
            label = new_label.strip()

        unit_price = self.rebase_unit_price(item.unit_price)
        total = self.scale(unit_price, quantity)

        logger.debug(
            f"Recomputed line item {item.id}: {quantity} x {unit_price.amount} "
            f"= {total.amount} {total.currency_code}"
        )

        return replace(
            item,
            quantity=quantity,
            label=label,
            product_sku=sku,
            unit_price=unit_price,
            total=total,
        )

    def rebase_unit_price(self, unit_price: Money) -> Money:
        """
        Make the unit price components add up to the amount again.

        An amount edited by hand leaves the old breakdown stale; in that
        case the breakdown is replaced by a single base price component.
        """
        if unit_price.is_balanced:
            return unit_price

        logger.debug(
            f"Rebasing unit price {unit_price.amount} {unit_price.currency_code}: "
            f"components sum to {unit_price.component_total}"
        )
        base = PriceComponent(
            name=BASE_PRICE_COMPONENT,
            amount=unit_price.amount,
            currency_code=unit_price.currency_code,
        )
        return replace(unit_price, components=(base,))

    def scale(self, money: Money, quantity: Decimal) -> Money:
        """
        Multiply an amount and each of its components by a quantity.

        Raises:
            AmountTooLargeError: A result does not fit in MAX_MINOR_UNITS
        """
        components = tuple(
            replace(component, amount=self._round(component.amount * quantity))
            for component in money.components
        )
        return Money(
            amount=self._round(money.amount * quantity),
            currency_code=money.currency_code,
            components=components,
        )

    def _round(self, value: Decimal) -> int:
        try:
            rounded = int(Decimal(value).quantize(Decimal(1), rounding=self.rounding))
        except InvalidOperation:
            raise AmountTooLargeError(str(value)) from None
        if abs(rounded) > MAX_MINOR_UNITS:
            raise AmountTooLargeError(str(value))
        return rounded
