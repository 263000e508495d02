"""
Services package - Business logic and persistence orchestration.

Includes the line item form service used by the HTTP API.
"""

from .line_items import (
    FormValidationError,
    LineItemFormService,
    LineItemNotFoundError,
    NewLineItem,
    OrderNotFoundError,
)

__all__ = [
    "FormValidationError",
    "LineItemFormService",
    "LineItemNotFoundError",
    "NewLineItem",
    "OrderNotFoundError",
]
