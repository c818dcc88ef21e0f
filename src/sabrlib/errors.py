"""
Exceptions raised by sabrlib.

All errors derive from ValueError so callers that already guard pricing
calls with ``except ValueError`` keep working.
"""


class SabrLibError(ValueError):
    """Base class for sabrlib errors."""


class InvalidInputError(SabrLibError):
    """
    A single input field failed validation.

    Attributes:
        field: Name of the offending field, e.g. ``market_vols[2].strike``
        reason: Human readable constraint that was violated
    """

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class InsufficientDataError(SabrLibError):
    """Not enough observations to run the requested computation."""


__all__ = ["SabrLibError", "InvalidInputError", "InsufficientDataError"]
