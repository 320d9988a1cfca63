"""Filter compilation package.

Turns remote-API filter trees into cache query predicates:
- Date mode resolution and timezone-aware UTC conversion
- Operator / field-type validation with suggestions
- Comparison to typed condition conversion
- Flat or recursive (nested AND/OR) compilation
"""

from .dates import DateResolver, timezone_offset, add_months, is_date_only
from .exceptions import FilterError, FilterValidationError, UnknownOperatorError
from .validator import (
    FilterWarning,
    validate,
    is_valid,
    operators_for_field_type,
    suggest_operator,
)
from .conditions import convert_comparison, get_available_operators
from .compiler import CompiledFilter, FilterCompiler

__all__ = [
    # Dates
    "DateResolver",
    "timezone_offset",
    "add_months",
    "is_date_only",
    # Errors
    "FilterError",
    "FilterValidationError",
    "UnknownOperatorError",
    # Validation
    "FilterWarning",
    "validate",
    "is_valid",
    "operators_for_field_type",
    "suggest_operator",
    # Conversion & compilation
    "convert_comparison",
    "get_available_operators",
    "CompiledFilter",
    "FilterCompiler",
]
