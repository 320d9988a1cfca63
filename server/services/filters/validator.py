"""Operator / field-type compatibility checks.

Unknown and computed field types (formula, lookup, rollup, count) skip
validation: their valid operators depend on a return type we do not know.
"""

from dataclasses import dataclass
from typing import FrozenSet, List, Optional

from constants import (
    FIELD_TYPE_OPERATORS,
    LINKED_RECORD_FIELD_TYPES,
    MULTIPLE_SELECT_FIELD_TYPES,
    NUMERIC_FIELD_TYPES,
    SINGLE_SELECT_FIELD_TYPES,
    TEXT_FIELD_TYPES,
    USER_FIELD_TYPES,
)
from core.logging import get_logger
from .exceptions import FilterValidationError

logger = get_logger(__name__)


@dataclass(frozen=True)
class FilterWarning:
    """Non-fatal operator/type mismatch, returned to the caller with results."""
    field: str
    operator: str
    field_type: str
    message: str

    def to_dict(self):
        return {
            "field": self.field,
            "operator": self.operator,
            "field_type": self.field_type,
            "message": self.message,
        }


def operators_for_field_type(field_type: Optional[str]) -> Optional[FrozenSet[str]]:
    """Valid operators for a field type, or None when the type is not validated."""
    if not field_type:
        return None
    normalized = field_type.lower()
    for field_types, operators in FIELD_TYPE_OPERATORS.items():
        if normalized in field_types:
            return operators
    return None


def suggest_operator(operator: str, field_type: str) -> Optional[str]:
    """Suggest the right operator for a common mistake."""
    op = (operator or "").lower()
    ftype = (field_type or "").lower()

    if ftype in MULTIPLE_SELECT_FIELD_TYPES:
        if op in ("is", "is_any_of"):
            return "has_any_of"
    elif ftype in SINGLE_SELECT_FIELD_TYPES:
        if op == "has_any_of":
            return "is_any_of"
        if op == "contains":
            return "is"
    elif ftype in USER_FIELD_TYPES or ftype in LINKED_RECORD_FIELD_TYPES:
        if op == "is":
            return "has_any_of"
    elif ftype in TEXT_FIELD_TYPES:
        if op in ("is_equal_to", "is_greater_than", "is_less_than"):
            return "is"
    elif ftype in NUMERIC_FIELD_TYPES:
        if op == "contains":
            return "is_equal_to"
    return None


def build_error_message(field_slug: str, operator: str, field_type: str,
                        valid_operators: FrozenSet[str]) -> str:
    suggestion = suggest_operator(operator, field_type)
    suggestion_text = f" Did you mean '{suggestion}'?" if suggestion else ""
    return (
        f"Invalid operator '{operator}' for field '{field_slug}' ({field_type}). "
        f"Valid operators: {', '.join(sorted(valid_operators))}.{suggestion_text}"
    )


def is_valid(operator: str, field_type: Optional[str]) -> bool:
    """Non-raising, non-logging check."""
    valid_operators = operators_for_field_type(field_type)
    if valid_operators is None:
        return True
    return (operator or "").lower() in valid_operators


def validate(field_slug: str, operator: str, field_type: Optional[str],
             strict: bool = False,
             warnings: Optional[List[FilterWarning]] = None) -> bool:
    """Validate that an operator is valid for a field type.

    Args:
        field_slug: Field identifier (for messages)
        operator: Filter comparison operator
        field_type: Remote field type, None when unknown
        strict: Raise instead of warning
        warnings: Collection that receives a FilterWarning on mismatch

    Returns:
        True if valid (or not validated), False on a non-strict mismatch

    Raises:
        FilterValidationError: On mismatch in strict mode
    """
    valid_operators = operators_for_field_type(field_type)
    if valid_operators is None:
        return True

    normalized_op = (operator or "").lower()
    if normalized_op in valid_operators:
        return True

    normalized_type = field_type.lower()
    message = build_error_message(field_slug, normalized_op, normalized_type, valid_operators)

    if strict:
        raise FilterValidationError(field_slug, normalized_op, normalized_type,
                                    valid_operators, message=message)

    logger.warning("Invalid filter operator",
                   field=field_slug,
                   operator=normalized_op,
                   field_type=normalized_type,
                   suggestion=suggest_operator(normalized_op, normalized_type))
    if warnings is not None:
        warnings.append(FilterWarning(field_slug, normalized_op, normalized_type, message))
    return False
