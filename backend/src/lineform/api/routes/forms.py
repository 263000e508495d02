"""
Inline line item form endpoints.

Returns the sub-form description for a line item and handles its
submission: validation errors come back as 422 with one entry per
rejected input, otherwise the recomputed line item is returned.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from lineform.api.routes.orders import get_line_item_service
from lineform.api.schemas import (
    EntityFormResponse,
    FieldErrorResponse,
    FormElementResponse,
    FormErrorResponse,
    InlineFormSettingsResponse,
    LineItemResponse,
    SubmitFormRequest,
)
from lineform.services.line_items import (
    FormValidationError,
    LineItemFormService,
    LineItemNotFoundError,
    OrderNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["line item forms"])


@router.get(
    "/line-items/settings",
    response_model=InlineFormSettingsResponse,
)
async def get_form_settings(
    service: LineItemFormService = Depends(get_line_item_service),
) -> InlineFormSettingsResponse:
    """Widget settings used when embedding line items in an order form."""
    adapter = service.adapter
    return InlineFormSettingsResponse(
        entity_type=adapter.entity_type,
        defaults=adapter.default_settings(),
        elements={
            name: FormElementResponse.from_domain(element)
            for name, element in adapter.settings_form().items()
        },
    )


@router.get(
    "/orders/{order_id}/line-items/{line_item_id}/form",
    response_model=EntityFormResponse,
    responses={404: {"description": "Order or line item not found"}},
)
async def get_line_item_form(
    order_id: str,
    line_item_id: str,
    service: LineItemFormService = Depends(get_line_item_service),
) -> EntityFormResponse:
    """Describe the inline form for editing one line item."""
    try:
        form = await service.build_form(order_id, line_item_id)
    except (OrderNotFoundError, LineItemNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return EntityFormResponse.from_domain(service.adapter.entity_type, form)


@router.post(
    "/orders/{order_id}/line-items/{line_item_id}/form",
    response_model=LineItemResponse,
    responses={
        404: {"description": "Order or line item not found"},
        422: {"model": FormErrorResponse, "description": "Rejected form values"},
    },
)
async def submit_line_item_form(
    order_id: str,
    line_item_id: str,
    request: SubmitFormRequest,
    service: LineItemFormService = Depends(get_line_item_service),
):
    """
    Validate and submit the inline form of one line item.

    **Process:**
    1. Validate quantity, label and attached price fields
    2. Apply the values and recompute the total
    3. Save the line item
    """
    try:
        line_item = await service.submit_form(
            order_id,
            line_item_id,
            request.values,
            parents=request.parents,
        )
    except (OrderNotFoundError, LineItemNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except FormValidationError as e:
        response = FormErrorResponse(
            errors=[FieldErrorResponse.from_domain(error) for error in e.errors],
        )
        return JSONResponse(
            status_code=422,
            content=response.model_dump(),
        )

    return LineItemResponse.from_domain(line_item)
