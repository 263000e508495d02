"""
Domain package - Core business logic with no external dependencies.

This package contains pure Python domain models and the pricing rule
applied to line items embedded in an order's edit form.
"""
