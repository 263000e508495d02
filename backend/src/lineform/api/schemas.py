"""
Pydantic schemas for API request/response validation.

These schemas define the contract between the order edit form and backend.
Money amounts are integer minor units; quantities are strings to keep
their two decimal places intact.
"""

from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from lineform.domain.models import (
    ColumnSpec,
    EntityForm,
    FieldError,
    FormElement,
    LineItem,
    Money,
    PriceComponent,
)
from lineform.domain.pricing import MAX_MINOR_UNITS, format_amount


class DisplayTypeEnum(str, Enum):
    """Summary column source for API responses."""
    PROPERTY = "property"
    FIELD = "field"


# =============================================================================
# Shared Schemas
# =============================================================================

class PriceComponentSchema(BaseModel):
    """One entry of a price breakdown."""
    name: str
    amount: int
    currency_code: str = Field(..., pattern=r"^[A-Z]{3}$")
    included: bool = True
    data: dict[str, Any] = {}

    def to_domain(self) -> PriceComponent:
        return PriceComponent(
            name=self.name,
            amount=self.amount,
            currency_code=self.currency_code,
            included=self.included,
            data=dict(self.data),
        )


class MoneySchema(BaseModel):
    """A price in minor units with its components."""
    amount: int = Field(
        ...,
        ge=-MAX_MINOR_UNITS,
        le=MAX_MINOR_UNITS,
        description="Amount in minor units (1050 == 10.50)",
    )
    currency_code: str = Field(..., pattern=r"^[A-Z]{3}$")
    components: list[PriceComponentSchema] = []
    formatted: str | None = Field(default=None, description="Display value, ignored on input")

    @classmethod
    def from_domain(cls, money: Money) -> "MoneySchema":
        return cls(
            amount=money.amount,
            currency_code=money.currency_code,
            components=[
                PriceComponentSchema(
                    name=c.name,
                    amount=c.amount,
                    currency_code=c.currency_code,
                    included=c.included,
                    data=c.data,
                )
                for c in money.components
            ],
            formatted=format_amount(money),
        )

    def to_domain(self) -> Money:
        return Money(
            amount=self.amount,
            currency_code=self.currency_code,
            components=tuple(c.to_domain() for c in self.components),
        )


# =============================================================================
# Request Schemas
# =============================================================================

class CreateOrderRequest(BaseModel):
    """Request to create an empty order."""
    status: str = Field(
        default="pending",
        description="Order status; cart statuses make unit prices read-only",
    )


class CreateLineItemRequest(BaseModel):
    """Request to add a line item to an order."""
    line_item_type: str = Field(default="product", max_length=64)
    label: str = Field(default="", max_length=128)
    quantity: Decimal = Field(..., gt=0)
    unit_price: MoneySchema
    product_sku: str | None = Field(default=None, max_length=64)
    fields: dict[str, Any] = {}


class SubmitFormRequest(BaseModel):
    """Submitted values of a line item sub-form."""
    parents: list[str] | None = Field(
        default=None,
        description="Path of the line item's values inside `values`",
    )
    values: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Response Schemas
# =============================================================================

class LineItemResponse(BaseModel):
    """A line item with its computed total."""
    id: str
    order_id: str
    line_item_type: str
    label: str
    quantity: str
    product_sku: str | None = None
    unit_price: MoneySchema
    total: MoneySchema
    fields: dict[str, Any] = {}

    @classmethod
    def from_domain(cls, item: LineItem) -> "LineItemResponse":
        return cls(
            id=item.id or "",
            order_id=item.order_id or "",
            line_item_type=item.line_item_type,
            label=item.label,
            quantity=str(item.quantity),
            product_sku=item.product_sku,
            unit_price=MoneySchema.from_domain(item.unit_price),
            total=MoneySchema.from_domain(item.total),
            fields=item.fields,
        )


class ColumnResponse(BaseModel):
    """Summary table column."""
    key: str
    display_type: DisplayTypeEnum
    label: str
    weight: int
    formatter: str | None = None

    @classmethod
    def from_domain(cls, column: ColumnSpec) -> "ColumnResponse":
        return cls(
            key=column.key,
            display_type=DisplayTypeEnum(column.display_type.value),
            label=column.label,
            weight=column.weight,
            formatter=column.formatter,
        )


class OrderResponse(BaseModel):
    """An order with its line items and summary table."""
    id: str
    status: str
    line_items: list[LineItemResponse] = []
    columns: list[ColumnResponse] = []
    rows: list[dict[str, str]] = []


class DeleteOrderResponse(BaseModel):
    """Result of deleting an order."""
    id: str
    deleted_line_items: int


class FormElementResponse(BaseModel):
    """A single form element description."""
    name: str
    element_type: str
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
    attributes: dict[str, Any] = {}
    children: dict[str, "FormElementResponse"] = {}

    @classmethod
    def from_domain(cls, element: FormElement) -> "FormElementResponse":
        return cls(
            name=element.name,
            element_type=element.element_type,
            title=element.title,
            description=element.description,
            default_value=element.default_value,
            required=element.required,
            weight=element.weight,
            fieldset=element.fieldset,
            access=element.access,
            disabled=element.disabled,
            maxlength=element.maxlength,
            size=element.size,
            datatype=element.datatype,
            attributes=element.attributes,
            children={name: cls.from_domain(child) for name, child in element.children.items()},
        )


FormElementResponse.model_rebuild()


class EntityFormResponse(BaseModel):
    """The sub-form of one line item."""
    entity_type: str
    line_item_id: str
    parents: list[str]
    elements: dict[str, FormElementResponse]

    @classmethod
    def from_domain(cls, entity_type: str, form: EntityForm) -> "EntityFormResponse":
        return cls(
            entity_type=entity_type,
            line_item_id=form.entity.id or "",
            parents=form.parents,
            elements={
                name: FormElementResponse.from_domain(element)
                for name, element in form.elements.items()
            },
        )


class FieldErrorResponse(BaseModel):
    """A validation error attached to an input path."""
    path: str
    message: str
    code: str

    @classmethod
    def from_domain(cls, error: FieldError) -> "FieldErrorResponse":
        return cls(path=error.path, message=error.message, code=error.code)


class FormErrorResponse(BaseModel):
    """Rejected form submission."""
    error: str = "Form validation failed"
    errors: list[FieldErrorResponse]


class InlineFormSettingsResponse(BaseModel):
    """Widget settings for embedding an entity type."""
    entity_type: str
    defaults: dict[str, Any]
    elements: dict[str, FormElementResponse]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    version: str
    database: str = "connected"


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: str | None = None
    code: str | None = None
