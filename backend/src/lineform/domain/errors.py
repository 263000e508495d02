"""
Quantity validation errors.

All of these are user input errors: they are shown next to the quantity
input and block the pending submission until corrected.
"""


class QuantityError(ValueError):
    """Base class for rejected quantity input."""
    code = "invalid_quantity"
    message = "You must specify a positive number for the quantity"

    def __init__(self, raw_input: str) -> None:
        super().__init__(self.message)
        self.raw_input = raw_input


class NotNumericError(QuantityError):
    code = "not_numeric"


class NotPositiveError(QuantityError):
    code = "not_positive"


class NotWholeNumberError(QuantityError):
    code = "not_whole_number"
    message = "You must specify a whole number for the quantity."


class QuantityTooLargeError(QuantityError):
    code = "too_large"
    message = "The quantity is too large."


class AmountTooLargeError(ValueError):
    """An amount or line item total does not fit in the stored minor units."""
    code = "too_large"
    message = "The amount is too large."

    def __init__(self, amount: str) -> None:
        super().__init__(self.message)
        self.amount = amount
