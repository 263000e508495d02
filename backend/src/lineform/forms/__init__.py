"""
Forms package - Inline entity form adapters.

Describes, validates and submits entity sub-forms embedded in a parent form.
"""

from .adapters import (
    FORM_ADAPTERS,
    EntityFormAdapter,
    LineItemFormAdapter,
    create_form_adapter,
)

__all__ = [
    "FORM_ADAPTERS",
    "EntityFormAdapter",
    "LineItemFormAdapter",
    "create_form_adapter",
]
