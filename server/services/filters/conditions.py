"""Comparison operator to cache condition conversion.

Maps remote-API filter comparisons to typed conditions understood by the
cache clause builder.

Supported comparisons:
- is / is_equal_to: Equality (bare dates become a full UTC-day range)
- is_not / is_not_equal_to: Inequality (bare dates become a not-in-range)
- is_greater_than, is_less_than, is_equal_or_greater_than, is_equal_or_less_than
- contains, not_contains (alias does_not_contain)
- is_empty, is_not_empty
- has_any_of, has_all_of, is_exactly, has_none_of: Array membership
- is_any_of, is_none_of: Single value membership
- is_before, is_after, is_on_or_before, is_on_or_after: Date direction
- is_overdue, is_not_overdue: Due date status
- file_name_contains, file_type_is: File fields
"""

from typing import Any, Dict, List, Literal

from core.logging import get_logger
from models.filters import Condition, ConditionKind, DateDescriptor
from .dates import DateResolver
from .exceptions import UnknownOperatorError

logger = get_logger(__name__)

UnknownOperatorPolicy = Literal["equality", "error"]


# Comparisons that map 1:1 onto a kind, value unchanged
DIRECT_CONDITIONS: Dict[str, ConditionKind] = {
    "is_greater_than": ConditionKind.GREATER_THAN,
    "is_less_than": ConditionKind.LESS_THAN,
    "is_equal_or_greater_than": ConditionKind.GREATER_OR_EQUAL,
    "is_equal_or_less_than": ConditionKind.LESS_OR_EQUAL,
    "contains": ConditionKind.CONTAINS,
    "not_contains": ConditionKind.NOT_CONTAINS,
    "does_not_contain": ConditionKind.NOT_CONTAINS,
    "file_name_contains": ConditionKind.FILE_NAME_CONTAINS,
    "file_type_is": ConditionKind.FILE_TYPE_IS,
}

# Comparisons whose value is wrapped into a list
MEMBERSHIP_CONDITIONS: Dict[str, ConditionKind] = {
    "has_any_of": ConditionKind.HAS_ANY_OF,
    "has_all_of": ConditionKind.HAS_ALL_OF,
    "is_exactly": ConditionKind.IS_EXACTLY,
    "has_none_of": ConditionKind.HAS_NONE_OF,
    "is_any_of": ConditionKind.IS_ANY_OF,
    "is_none_of": ConditionKind.IS_NONE_OF,
}

# Comparisons whose value is a date converted to a UTC timestamp
DATE_DIRECTION_CONDITIONS: Dict[str, ConditionKind] = {
    "is_before": ConditionKind.IS_BEFORE,
    "is_after": ConditionKind.IS_AFTER,
    "is_on_or_before": ConditionKind.IS_ON_OR_BEFORE,
    "is_on_or_after": ConditionKind.IS_ON_OR_AFTER,
}

# Comparisons that ignore their value
VALUELESS_CONDITIONS: Dict[str, ConditionKind] = {
    "is_empty": ConditionKind.IS_NULL,
    "is_not_empty": ConditionKind.IS_NOT_NULL,
    "is_overdue": ConditionKind.IS_OVERDUE,
    "is_not_overdue": ConditionKind.IS_NOT_OVERDUE,
}

EQUALITY_COMPARISONS = frozenset(["is", "is_equal_to"])
INEQUALITY_COMPARISONS = frozenset(["is_not", "is_not_equal_to"])


def as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def convert_comparison(comparison: str, value: Any, resolver: DateResolver,
                       unknown_operator: UnknownOperatorPolicy = "equality") -> Condition:
    """Convert a filter comparison and value into a typed condition.

    Args:
        comparison: Remote comparison operator (e.g. "is", "has_any_of")
        value: Leaf value (scalar, list or DateDescriptor)
        resolver: Date resolver for date modes and UTC conversion
        unknown_operator: "equality" treats unknown comparisons as equality,
            "error" raises

    Returns:
        Condition

    Raises:
        UnknownOperatorError: Unknown comparison under the "error" policy
    """
    op = (comparison or "").lower()
    # Descriptors that are not ranges compare as the date string they resolve to
    literal = resolver.extract_date_value(value) if isinstance(value, DateDescriptor) else value

    if op in EQUALITY_COMPARISONS:
        date_range = resolver.convert_date_to_range(value)
        if date_range:
            return Condition(ConditionKind.BETWEEN, date_range["between"])
        return Condition(ConditionKind.EQUAL, literal)

    if op in INEQUALITY_COMPARISONS:
        date_not_range = resolver.convert_date_to_not_range(value)
        if date_not_range:
            return Condition(ConditionKind.NOT_BETWEEN, date_not_range["not_between"])
        return Condition(ConditionKind.NOT_EQUAL, literal)

    if op in DIRECT_CONDITIONS:
        return Condition(DIRECT_CONDITIONS[op], literal)

    if op in MEMBERSHIP_CONDITIONS:
        return Condition(MEMBERSHIP_CONDITIONS[op], as_list(literal))

    if op in DATE_DIRECTION_CONDITIONS:
        date_value = resolver.convert_to_utc_for_filter(resolver.extract_date_value(value))
        return Condition(DATE_DIRECTION_CONDITIONS[op], date_value)

    if op in VALUELESS_CONDITIONS:
        return Condition(VALUELESS_CONDITIONS[op])

    if unknown_operator == "error":
        raise UnknownOperatorError(comparison)

    logger.warning("Unknown filter operator, treating as equality", operator=comparison)
    return Condition(ConditionKind.EQUAL, literal)


def get_available_operators() -> Dict[str, str]:
    """Comparison operator -> condition kind, for API documentation."""
    operators = {op: ConditionKind.EQUAL.value for op in EQUALITY_COMPARISONS}
    operators.update({op: ConditionKind.NOT_EQUAL.value for op in INEQUALITY_COMPARISONS})
    for table in (DIRECT_CONDITIONS, MEMBERSHIP_CONDITIONS,
                  DATE_DIRECTION_CONDITIONS, VALUELESS_CONDITIONS):
        operators.update({op: kind.value for op, kind in table.items()})
    return dict(sorted(operators.items()))
