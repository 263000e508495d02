"""lineform - inline line item forms for commerce orders."""

__version__ = "0.1.0"
