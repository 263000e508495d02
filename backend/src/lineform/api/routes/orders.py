"""
Order endpoints.

Creates and deletes orders, adds line items, and returns the line item
summary table shown in the order edit form.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from lineform.api.schemas import (
    ColumnResponse,
    CreateLineItemRequest,
    CreateOrderRequest,
    DeleteOrderResponse,
    LineItemResponse,
    OrderResponse,
)
from lineform.config import get_settings
from lineform.forms.adapters import LineItemFormAdapter
from lineform.services.line_items import (
    LineItemFormService,
    NewLineItem,
    OrderNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


# Service instance (replaced through dependency overrides in tests)
_line_item_service: LineItemFormService | None = None


def get_line_item_service() -> LineItemFormService:
    """Get or create the line item form service instance."""
    global _line_item_service
    if _line_item_service is None:
        settings = get_settings()
        _line_item_service = LineItemFormService(
            adapter=LineItemFormAdapter.from_settings(settings),
        )
    return _line_item_service


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_order(
    request: CreateOrderRequest,
    service: LineItemFormService = Depends(get_line_item_service),
) -> OrderResponse:
    """Create an empty order."""
    order = await service.create_order(status=request.status)
    return OrderResponse(id=order.id, status=order.status)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    responses={404: {"description": "Order not found"}},
)
async def get_order(
    order_id: str,
    service: LineItemFormService = Depends(get_line_item_service),
) -> OrderResponse:
    """
    Get an order with its line items.

    Includes the summary table columns and the formatted rows shown
    above the inline line item form.
    """
    try:
        summary = await service.summarize_order(order_id)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return OrderResponse(
        id=summary.order.id,
        status=summary.order.status,
        line_items=[LineItemResponse.from_domain(item) for item in summary.order.line_items],
        columns=[ColumnResponse.from_domain(column) for column in summary.columns],
        rows=summary.rows,
    )


@router.delete(
    "/{order_id}",
    response_model=DeleteOrderResponse,
    responses={404: {"description": "Order not found"}},
)
async def delete_order(
    order_id: str,
    service: LineItemFormService = Depends(get_line_item_service),
) -> DeleteOrderResponse:
    """Delete an order; its line items are deleted with it."""
    try:
        count = await service.delete_order(order_id)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return DeleteOrderResponse(id=order_id, deleted_line_items=count)


@router.post(
    "/{order_id}/line-items",
    response_model=LineItemResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Order not found"},
        422: {"description": "Validation error"},
    },
)
async def add_line_item(
    order_id: str,
    request: CreateLineItemRequest,
    service: LineItemFormService = Depends(get_line_item_service),
) -> LineItemResponse:
    """Add a line item to an order; its total is computed from quantity and unit price."""
    new_item = NewLineItem(
        line_item_type=request.line_item_type,
        label=request.label,
        quantity=request.quantity,
        unit_price=request.unit_price.to_domain(),
        product_sku=request.product_sku,
        fields=request.fields,
    )

    try:
        line_item = await service.add_line_item(order_id, new_item)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return LineItemResponse.from_domain(line_item)
