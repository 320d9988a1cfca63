"""Filter compilation exception hierarchy."""

from typing import Iterable, Optional


class FilterError(Exception):
    """Base exception for all filter-related errors."""


class FilterValidationError(FilterError, ValueError):
    """Operator is not valid for the field's type (strict mode)."""

    def __init__(self, field: str, operator: str, field_type: Optional[str],
                 valid_operators: Iterable[str] = (), message: Optional[str] = None):
        self.field = field
        self.operator = operator
        self.field_type = field_type
        self.valid_operators = sorted(valid_operators)
        super().__init__(message or f"Invalid operator '{operator}' for field '{field}' ({field_type})")


class UnknownOperatorError(FilterValidationError):
    """Comparison operator is not recognised at all."""

    def __init__(self, operator: str, field: Optional[str] = None):
        super().__init__(
            field=field or "",
            operator=operator,
            field_type=None,
            message=f"Unknown filter operator '{operator}'",
        )
