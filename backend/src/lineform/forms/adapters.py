"""
Inline entity form adapters.

An adapter describes how one entity type is embedded in another entity's
edit form: which summary columns to show, which inputs the sub-form has,
how those inputs are validated and how submitted values are applied.

Adapters are picked from a static registry keyed by entity type, so the
set of supported entity kinds is known when the application starts.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any

from lineform.config import Settings
from lineform.domain.errors import AmountTooLargeError, QuantityError
from lineform.domain.models import (
    ColumnSpec,
    DisplayType,
    EntityForm,
    FieldError,
    FormElement,
    LineItem,
    Order,
)
from lineform.domain.pricing import (
    LineItemPricingRule,
    format_amount,
    format_quantity,
    from_minor_units,
    parse_number,
    to_minor_units,
)

logger = logging.getLogger(__name__)


CURRENCY_CODE_PATTERN = re.compile(r"^[A-Z]{3}$")

PRICE_FORMATTER = "commerce_price_formatted_amount"

# Weight of the label extra field on the line item form
LABEL_WEIGHT = -10

DETAILS_FIELDSET = "line_item_details"


def get_nested_value(values: dict[str, Any], parents: list[str]) -> Any:
    """Walk ``parents`` down into nested submitted values, None if absent."""
    current: Any = values
    for key in parents:
        if isinstance(current, dict):
            current = current.get(key)
        elif isinstance(current, list) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        else:
            return None
    return current


def submitted_values(form: EntityForm, values: dict[str, Any]) -> dict[str, Any]:
    """The part of the submitted values belonging to one embedded form."""
    item_values = get_nested_value(values, form.parents)
    return item_values if isinstance(item_values, dict) else {}


def error_path(form: EntityForm, *names: str) -> str:
    """Address of an input inside the embedded form, e.g. "line_items][0][quantity"."""
    return "][".join([*form.parents, *names])


class EntityFormAdapter(ABC):
    """
    Generic inline form handling shared by all entity kinds.

    Subclasses describe their summary columns and sub-form, and
    implement validation and submission of that sub-form.
    """

    entity_type: str = ""

    @classmethod
    @abstractmethod
    def from_settings(cls, settings: Settings) -> "EntityFormAdapter":
        """Build the adapter from application settings."""

    def table_fields(self) -> list[ColumnSpec]:
        """Columns of the summary table, ordered by weight."""
        return [ColumnSpec("label", DisplayType.PROPERTY, "Label", weight=1)]

    def default_settings(self) -> dict[str, Any]:
        """Default widget settings for embedding this entity type."""
        return {
            "allow_existing": False,
            "match_operator": "CONTAINS",
            "delete_references": False,
            "override_labels": False,
            "label_singular": "",
            "label_plural": "",
        }

    def settings_form(self) -> dict[str, FormElement]:
        """Elements used to edit the widget settings."""
        defaults = self.default_settings()
        return {
            "allow_existing": FormElement(
                "allow_existing", "checkbox",
                title="Allow users to add existing entities.",
                default_value=defaults["allow_existing"],
            ),
            "match_operator": FormElement(
                "match_operator", "select",
                title="Autocomplete matching",
                default_value=defaults["match_operator"],
                attributes={"options": ["STARTS_WITH", "CONTAINS"]},
            ),
            "delete_references": FormElement(
                "delete_references", "checkbox",
                title="Delete referenced entities when the parent entity is deleted.",
                default_value=defaults["delete_references"],
            ),
            "override_labels": FormElement(
                "override_labels", "checkbox",
                title="Override labels",
                default_value=defaults["override_labels"],
            ),
            "label_singular": FormElement(
                "label_singular", "textfield",
                title="Singular label",
                default_value=defaults["label_singular"],
            ),
            "label_plural": FormElement(
                "label_plural", "textfield",
                title="Plural label",
                default_value=defaults["label_plural"],
            ),
        }

    @abstractmethod
    def table_rows(self, entities: list[Any]) -> list[dict[str, str]]:
        """Render the summary table rows for the given entities."""

    @abstractmethod
    def entity_form(self, entity: Any, parents: list[str], order: Order | None = None) -> EntityForm:
        """Build the sub-form for one embedded entity."""

    @abstractmethod
    def validate(self, form: EntityForm, values: dict[str, Any]) -> list[FieldError]:
        """Validate submitted values; an empty list means the form may be submitted."""

    @abstractmethod
    def submit(self, form: EntityForm, values: dict[str, Any], order: Order | None = None) -> Any:
        """Apply validated values and return the updated entity."""


class LineItemFormAdapter(EntityFormAdapter):
    """
    Inline form for commerce line items embedded in an order.

    Line items are always created through the order (never picked from
    existing ones) and are deleted together with it.

    Example:
        adapter = LineItemFormAdapter(LineItemPricingRule())
        form = adapter.entity_form(line_item, ["line_items", "0"], order)
        errors = adapter.validate(form, values)
        if not errors:
            updated = adapter.submit(form, values, order)
    """

    entity_type = "commerce_line_item"

    def __init__(
        self,
        rule: LineItemPricingRule,
        cart_order_statuses: tuple[str, ...] | list[str] = ("cart",),
        fractional_quantity_types: tuple[str, ...] | list[str] = (),
    ) -> None:
        """
        Initialize the adapter.

        Args:
            rule: Pricing rule used for validation and recomputation
            cart_order_statuses: Order statuses whose prices are still recalculated
            fractional_quantity_types: Line item types accepting non-integer quantities
        """
        self.rule = rule
        self.cart_order_statuses = tuple(cart_order_statuses)
        self.fractional_quantity_types = tuple(fractional_quantity_types)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LineItemFormAdapter":
        rule = LineItemPricingRule(
            capabilities=settings.capabilities,
            product_line_item_types=settings.product_line_item_types,
            rounding=settings.quantity_rounding,
        )
        return cls(
            rule,
            cart_order_statuses=settings.cart_order_statuses,
            fractional_quantity_types=settings.fractional_quantity_types,
        )

    def table_fields(self) -> list[ColumnSpec]:
        return [
            ColumnSpec("line_item_label", DisplayType.PROPERTY, "Label", weight=1),
            ColumnSpec(
                "commerce_unit_price", DisplayType.FIELD, "Unit price",
                weight=2, formatter=PRICE_FORMATTER,
            ),
            ColumnSpec("quantity", DisplayType.PROPERTY, "Quantity", weight=3),
            ColumnSpec(
                "commerce_total", DisplayType.FIELD, "Total",
                weight=4, formatter=PRICE_FORMATTER,
            ),
        ]

    def table_rows(self, entities: list[LineItem]) -> list[dict[str, str]]:
        columns = sorted(self.table_fields(), key=lambda c: c.weight)
        return [
            {column.key: self._column_value(item, column) for column in columns}
            for item in entities
        ]

    def default_settings(self) -> dict[str, Any]:
        defaults = super().default_settings()

        # Line items are never managed alone
        defaults["delete_references"] = True

        return defaults

    def settings_form(self) -> dict[str, FormElement]:
        elements = super().settings_form()

        # Adding existing line items is not supported
        elements["allow_existing"].access = False
        elements["match_operator"].access = False

        return elements

    def is_cart(self, order: Order | None) -> bool:
        """True if the order's prices are still being recalculated."""
        return order is not None and order.status in self.cart_order_statuses

    def entity_form(
        self,
        entity: LineItem,
        parents: list[str],
        order: Order | None = None,
    ) -> EntityForm:
        line_item = entity
        form = EntityForm(entity=line_item, parents=list(parents))
        elements = form.elements

        elements[DETAILS_FIELDSET] = FormElement(
            DETAILS_FIELDSET, "fieldset",
            title="Line item details",
            attributes={"class": ["ief-line_item-details", "ief-entity-fieldset"]},
        )
        elements["line_item_label"] = FormElement(
            "line_item_label", "textfield",
            title="Line item label",
            description="Supply the line item label to be used for this line item.",
            default_value=line_item.label,
            maxlength=128,
            required=True,
            weight=LABEL_WEIGHT,
            fieldset=DETAILS_FIELDSET,
        )
        elements["quantity"] = FormElement(
            "quantity", "textfield",
            datatype=self.quantity_datatype(line_item),
            title="Quantity",
            description="The quantity of line items.",
            default_value=int(line_item.quantity),
            size=4,
            maxlength=max(4, len(str(line_item.quantity))),
            required=True,
            weight=LABEL_WEIGHT,
            fieldset=DETAILS_FIELDSET,
        )
        attached = self._attach_fields(line_item, elements)

        # Cart prices are recalculated on every load, edits would not stick
        if self.is_cart(order):
            price = elements["commerce_unit_price"]
            price.children["amount"].disabled = True
            price.children["currency_code"].disabled = True

        if self.rule.is_product_type(line_item.line_item_type):
            elements["line_item_label"].access = False
            elements["commerce_display_path"].access = False
            elements["commerce_product"].weight = -100

        for name in attached:
            elements[name].fieldset = DETAILS_FIELDSET

        return form

    def validate(self, form: EntityForm, values: dict[str, Any]) -> list[FieldError]:
        item_values = submitted_values(form, values)
        errors: list[FieldError] = []

        label = form.elements["line_item_label"]
        if label.access and not str(item_values.get("line_item_label") or "").strip():
            errors.append(FieldError(
                path=error_path(form, "line_item_label"),
                message="Line item label field is required.",
                code="required",
            ))

        quantity = None
        try:
            quantity = self.rule.validate_quantity(
                item_values.get("quantity"),
                require_integer=form.elements["quantity"].datatype == "integer",
            )
        except QuantityError as e:
            errors.append(FieldError(
                path=error_path(form, "quantity"),
                message=e.message,
                code=e.code,
            ))

        attached_errors = self._validate_attached_fields(form, item_values)
        errors.extend(attached_errors)

        # The total must fit as well, checked once both inputs are valid
        if quantity is not None and not attached_errors:
            unit_price = self._apply_attached_fields(form, item_values).unit_price
            try:
                self.rule.scale(self.rule.rebase_unit_price(unit_price), format_quantity(quantity))
            except AmountTooLargeError as e:
                errors.append(FieldError(
                    path=error_path(form, "quantity"),
                    message="The line item total is too large.",
                    code=e.code,
                ))

        if errors:
            logger.info(f"Line item form {form.parents_path} failed validation: {len(errors)} error(s)")
        return errors

    def submit(
        self,
        form: EntityForm,
        values: dict[str, Any],
        order: Order | None = None,
    ) -> LineItem:
        item_values = submitted_values(form, values)
        quantity = self.rule.validate_quantity(
            item_values.get("quantity"),
            require_integer=form.elements["quantity"].datatype == "integer",
        )

        line_item = self._apply_attached_fields(form, item_values)

        return self.rule.recompute(
            line_item,
            quantity,
            str(item_values.get("line_item_label") or ""),
            is_product_type=self.rule.is_product_type(line_item.line_item_type),
            product_sku=line_item.product_sku,
        )

    def quantity_datatype(self, line_item: LineItem) -> str:
        """"decimal" for fractional quantity types, "integer" otherwise."""
        if line_item.line_item_type in self.fractional_quantity_types:
            return "decimal"
        return "integer"

    def _column_value(self, line_item: LineItem, column: ColumnSpec) -> str:
        if column.key == "line_item_label":
            return line_item.label
        if column.key == "quantity":
            return str(line_item.quantity)
        if column.key == "commerce_unit_price":
            return format_amount(line_item.unit_price)
        if column.key == "commerce_total":
            return format_amount(line_item.total)
        return str(line_item.fields.get(column.key, ""))

    def _attach_fields(self, line_item: LineItem, elements: dict[str, FormElement]) -> list[str]:
        """Add the widgets of the line item's attached fields, return their names."""
        unit_price = line_item.unit_price
        elements["commerce_unit_price"] = FormElement(
            "commerce_unit_price", "price",
            title="Unit price",
            required=True,
            children={
                "amount": FormElement(
                    "amount", "textfield",
                    title="Amount",
                    default_value=str(from_minor_units(unit_price.amount, unit_price.currency_code)),
                    size=10,
                ),
                "currency_code": FormElement(
                    "currency_code", "textfield",
                    title="Currency",
                    default_value=unit_price.currency_code,
                    maxlength=3,
                    size=3,
                ),
            },
        )
        attached = ["commerce_unit_price"]

        if self.rule.is_product_type(line_item.line_item_type):
            elements["commerce_product"] = FormElement(
                "commerce_product", "field",
                title="Product",
                default_value=line_item.product_sku,
                required=True,
            )
            elements["commerce_display_path"] = FormElement(
                "commerce_display_path", "field",
                title="Display path",
                default_value=line_item.fields.get("commerce_display_path"),
                weight=1,
            )
            attached.extend(["commerce_product", "commerce_display_path"])

        for name, value in line_item.fields.items():
            if name in elements:
                continue
            elements[name] = FormElement(name, "field", title=name, default_value=value)
            attached.append(name)

        return attached

    def _validate_attached_fields(self, form: EntityForm, item_values: dict[str, Any]) -> list[FieldError]:
        errors: list[FieldError] = []

        price = item_values.get("commerce_unit_price")
        widget = form.elements["commerce_unit_price"]
        if isinstance(price, dict) and not widget.children["amount"].disabled:
            currency_code = price.get("currency_code")
            if "amount" in price:
                amount = parse_number(price["amount"])
                if amount is None:
                    errors.append(FieldError(
                        path=error_path(form, "commerce_unit_price", "amount"),
                        message="Unit price amount must be a number.",
                        code="not_numeric",
                    ))
                else:
                    try:
                        to_minor_units(
                            amount,
                            str(currency_code or form.entity.unit_price.currency_code),
                        )
                    except AmountTooLargeError as e:
                        errors.append(FieldError(
                            path=error_path(form, "commerce_unit_price", "amount"),
                            message=e.message,
                            code=e.code,
                        ))
            if currency_code is not None and not CURRENCY_CODE_PATTERN.match(str(currency_code)):
                errors.append(FieldError(
                    path=error_path(form, "commerce_unit_price", "currency_code"),
                    message="Currency must be a three letter ISO 4217 code.",
                    code="invalid_currency",
                ))

        product = form.elements.get("commerce_product")
        if product is not None and product.access and "commerce_product" in item_values:
            if not str(item_values["commerce_product"] or "").strip():
                errors.append(FieldError(
                    path=error_path(form, "commerce_product"),
                    message="Product field is required.",
                    code="required",
                ))

        return errors

    def _apply_attached_fields(self, form: EntityForm, item_values: dict[str, Any]) -> LineItem:
        """Copy submitted attached field values onto the line item."""
        line_item: LineItem = form.entity

        price = item_values.get("commerce_unit_price")
        widget = form.elements["commerce_unit_price"]
        if isinstance(price, dict) and not widget.children["amount"].disabled:
            currency_code = str(price.get("currency_code") or line_item.unit_price.currency_code)
            amount = parse_number(price.get("amount"))
            minor = (
                to_minor_units(amount, currency_code)
                if amount is not None
                else line_item.unit_price.amount
            )
            line_item = replace(
                line_item,
                unit_price=replace(line_item.unit_price, amount=minor, currency_code=currency_code),
            )

        product = form.elements.get("commerce_product")
        if product is not None and product.access and item_values.get("commerce_product"):
            line_item = replace(line_item, product_sku=str(item_values["commerce_product"]).strip())

        fields = dict(line_item.fields)
        for name in line_item.fields:
            element = form.elements.get(name)
            if element is not None and element.access and name in item_values:
                fields[name] = item_values[name]

        return replace(line_item, fields=fields)


# Adapter class per embeddable entity type
FORM_ADAPTERS: dict[str, type[EntityFormAdapter]] = {
    LineItemFormAdapter.entity_type: LineItemFormAdapter,
}


def create_form_adapter(entity_type: str, settings: Settings) -> EntityFormAdapter:
    """
    Build the adapter registered for an entity type.

    Raises:
        LookupError: No adapter is registered for the entity type
    """
    try:
        adapter_cls = FORM_ADAPTERS[entity_type]
    except KeyError:
        raise LookupError(f"No inline form adapter for entity type '{entity_type}'") from None
    return adapter_cls.from_settings(settings)
