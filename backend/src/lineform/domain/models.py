"""
Domain models for orders and their embedded line items.

These models represent the entities edited through the inline line item
form, plus the value types used to describe that form to a host renderer.

Design Decisions:
- Frozen dataclasses so a recomputed line item is a new value, never a
  partially mutated one
- Integer minor units for all money amounts (1050 == $10.50)
- Decimal for quantities, serialized with exactly two decimal places
- Price components keep arbitrary metadata next to their amount so
  scaling never loses information
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any


class DisplayType(Enum):
    """How a summary table column is sourced from the line item."""
    PROPERTY = "property"
    FIELD = "field"


@dataclass(frozen=True)
class CapabilityFlags:
    """
    Optional host capabilities, fixed at construction time.

    Without product reference support no line item type is treated
    as a product line item.
    """
    product_reference_enabled: bool = True


@dataclass(frozen=True)
class PriceComponent:
    """
    One entry of a price breakdown (base price, tax, discount, ...).

    Everything except ``amount`` is metadata and survives scaling unchanged.
    """
    name: str
    amount: int
    currency_code: str
    included: bool = True
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Money:
    """
    A price in integer minor units with its component breakdown.

    Invariant (after rebasing): amount == sum(c.amount for c in components)
    """
    amount: int
    currency_code: str
    components: tuple[PriceComponent, ...] = ()

    @property
    def component_total(self) -> int:
        """Sum of all component amounts."""
        return sum(c.amount for c in self.components)

    @property
    def is_balanced(self) -> bool:
        """True if the components add up to the amount in the same currency."""
        return (
            self.component_total == self.amount
            and all(c.currency_code == self.currency_code for c in self.components)
        )


@dataclass(frozen=True)
class LineItem:
    """
    A single line of an order.

    Created by the order management side, edited only through the
    inline form's submit step, deleted together with its order.
    """
    label: str
    quantity: Decimal
    unit_price: Money
    total: Money
    line_item_type: str = "product"
    product_sku: str | None = None
    id: str | None = None
    order_id: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)  # Extra attached field values


@dataclass(frozen=True)
class Order:
    """An order owning a list of line items."""
    id: str
    status: str
    line_items: tuple[LineItem, ...] = ()


@dataclass(frozen=True)
class ColumnSpec:
    """Column metadata for the read-only line item summary table."""
    key: str
    display_type: DisplayType
    label: str
    weight: int
    formatter: str | None = None


@dataclass
class FormElement:
    """
    Description of a single form element handed to the host renderer.

    Mutable because adapters apply visibility tweaks after the base
    elements have been built.
    """
    name: str
    element_type: str  # "textfield", "fieldset", "price", "field"
    title: str = ""
    description: str = ""
    default_value: Any = None
    required: bool = False
    weight: int = 0
    fieldset: str | None = None
    access: bool = True
    disabled: bool = False
    maxlength: int | None = None
    size: int | None = None
    datatype: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    children: dict[str, "FormElement"] = field(default_factory=dict)


@dataclass
class EntityForm:
    """
    The sub-form for one embedded entity.

    ``parents`` is the path of the entity's values inside the submitted
    form values, e.g. ["line_items", "0"].
    """
    entity: LineItem
    parents: list[str]
    elements: dict[str, FormElement] = field(default_factory=dict)

    @property
    def parents_path(self) -> str:
        """Parents joined the way field error paths are addressed."""
        return "][".join(self.parents)


@dataclass(frozen=True)
class FieldError:
    """A validation error attached to a specific form input path."""
    path: str
    message: str
    code: str
