"""
Line item form service.

Runs the host side of the inline line item form:
1. Load the order and the line item being edited
2. Build the sub-form description
3. Validate submitted values (nothing is saved if any field fails)
4. Apply the values through the pricing rule
5. Persist the recomputed line item

Also covers the order-management operations the form depends on:
creating orders, adding line items and deleting orders together with
their line items.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from lineform.domain.errors import AmountTooLargeError
from lineform.domain.models import ColumnSpec, EntityForm, FieldError, LineItem, Money, Order
from lineform.domain.pricing import MAX_MINOR_UNITS
from lineform.forms.adapters import LineItemFormAdapter
from lineform.infrastructure.database import LineItemRecord, OrderRecord, get_session

logger = logging.getLogger(__name__)


class OrderNotFoundError(LookupError):
    """No order with the requested id."""


class LineItemNotFoundError(LookupError):
    """No line item with the requested id on the order."""


class FormValidationError(Exception):
    """
    Submitted form values were rejected.

    Carries every field error so they can all be shown at once.
    """

    def __init__(self, errors: list[FieldError]) -> None:
        super().__init__(f"{len(errors)} field error(s): " + "; ".join(e.message for e in errors))
        self.errors = errors


@dataclass
class NewLineItem:
    """Values for a line item added to an order."""
    line_item_type: str
    label: str
    quantity: Decimal
    unit_price: Money
    product_sku: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass
class OrderSummary:
    """An order with its rendered line item table."""
    order: Order
    columns: list[ColumnSpec]
    rows: list[dict[str, str]]


class LineItemFormService:
    """
    Orchestrates building, validating and submitting line item forms.

    Example:
        service = LineItemFormService(adapter=LineItemFormAdapter.from_settings(settings))

        order = await service.create_order(status="pending")
        item = await service.add_line_item(order.id, new_item)
        form = await service.build_form(order.id, item.id)
        updated = await service.submit_form(order.id, item.id, values)
    """

    def __init__(
        self,
        adapter: LineItemFormAdapter,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            adapter: Inline form adapter for line items
            session_factory: Session factory, defaults to the application's
        """
        self.adapter = adapter
        self._session_factory = session_factory

    async def create_order(self, status: str) -> Order:
        """Create an empty order."""
        async with get_session(self._session_factory) as session:
            record = OrderRecord(status=status, line_items=[])
            session.add(record)
            await session.commit()
            logger.info(f"Created order {record.id} with status {status}")
            return record.to_domain()

    async def get_order(self, order_id: str) -> Order:
        """Load an order with its line items."""
        async with get_session(self._session_factory) as session:
            record = await self._load_order(session, order_id)
            return record.to_domain()

    async def summarize_order(self, order_id: str) -> OrderSummary:
        """Load an order and render its line item summary table."""
        order = await self.get_order(order_id)
        columns = sorted(self.adapter.table_fields(), key=lambda c: c.weight)
        return OrderSummary(
            order=order,
            columns=columns,
            rows=self.adapter.table_rows(list(order.line_items)),
        )

    async def delete_order(self, order_id: str) -> int:
        """
        Delete an order together with its line items.

        Returns:
            Number of line items deleted with the order
        """
        async with get_session(self._session_factory) as session:
            record = await self._load_order(session, order_id)
            count = len(record.line_items)
            await session.delete(record)
            await session.commit()
            logger.info(f"Deleted order {order_id} and {count} line item(s)")
            return count

    async def add_line_item(self, order_id: str, new_item: NewLineItem) -> LineItem:
        """
        Add a line item to an order.

        The total is computed by the pricing rule so a new line item
        satisfies the same invariants as an edited one.
        """
        rule = self.adapter.rule
        draft = LineItem(
            label=new_item.label,
            quantity=new_item.quantity,
            unit_price=new_item.unit_price,
            total=Money(amount=0, currency_code=new_item.unit_price.currency_code),
            line_item_type=new_item.line_item_type,
            product_sku=new_item.product_sku,
            fields=dict(new_item.fields),
        )
        quantity = rule.validate_quantity(
            new_item.quantity,
            require_integer=self.adapter.quantity_datatype(draft) == "integer",
        )
        if abs(new_item.unit_price.amount) > MAX_MINOR_UNITS:
            raise AmountTooLargeError(str(new_item.unit_price.amount))
        line_item = rule.recompute(
            draft,
            quantity,
            new_item.label,
            is_product_type=rule.is_product_type(new_item.line_item_type),
            product_sku=new_item.product_sku,
        )

        async with get_session(self._session_factory) as session:
            order = await self._load_order(session, order_id)
            record = LineItemRecord(position=len(order.line_items))
            record.apply(line_item)
            order.line_items.append(record)
            await session.commit()
            logger.info(f"Added line item {record.id} ({line_item.line_item_type}) to order {order_id}")
            return record.to_domain()

    async def build_form(
        self,
        order_id: str,
        line_item_id: str,
        parents: list[str] | None = None,
    ) -> EntityForm:
        """Build the sub-form for a line item of an order."""
        async with get_session(self._session_factory) as session:
            order, record = await self._load_line_item(session, order_id, line_item_id)
            return self.adapter.entity_form(
                record.to_domain(),
                parents if parents is not None else self.default_parents(record),
                order.to_domain(),
            )

    async def submit_form(
        self,
        order_id: str,
        line_item_id: str,
        values: dict[str, Any],
        parents: list[str] | None = None,
    ) -> LineItem:
        """
        Validate and submit a line item form, then persist the result.

        Raises:
            FormValidationError: Any field was rejected; nothing is saved
            OrderNotFoundError: Unknown order
            LineItemNotFoundError: Unknown line item on that order
        """
        async with get_session(self._session_factory) as session:
            order_record, record = await self._load_line_item(session, order_id, line_item_id)
            order = order_record.to_domain()
            form = self.adapter.entity_form(
                record.to_domain(),
                parents if parents is not None else self.default_parents(record),
                order,
            )

            errors = self.adapter.validate(form, values)
            if errors:
                raise FormValidationError(errors)

            updated = self.adapter.submit(form, values, order)
            record.apply(updated)
            await session.commit()

            logger.info(
                f"Line item {line_item_id} updated: quantity {updated.quantity}, "
                f"total {updated.total.amount} {updated.total.currency_code}"
            )
            return record.to_domain()

    @staticmethod
    def default_parents(record: LineItemRecord) -> list[str]:
        """Where a line item's values sit in the order form by default."""
        return ["line_items", str(record.position)]

    async def _load_order(self, session: AsyncSession, order_id: str) -> OrderRecord:
        stmt = (
            select(OrderRecord)
            .options(selectinload(OrderRecord.line_items))
            .where(OrderRecord.id == order_id)
        )
        record = await session.scalar(stmt)
        if record is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return record

    async def _load_line_item(
        self,
        session: AsyncSession,
        order_id: str,
        line_item_id: str,
    ) -> tuple[OrderRecord, LineItemRecord]:
        order = await self._load_order(session, order_id)
        for record in order.line_items:
            if record.id == line_item_id:
                return order, record
        raise LineItemNotFoundError(f"Line item {line_item_id} not found on order {order_id}")
