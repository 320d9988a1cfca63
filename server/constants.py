"""Centralized constants for remote field types and filter operators.

This module provides a single source of truth for field-type categories
and the operator sets each category accepts, shared by the validator,
the condition converter and the SQL clause builder.
"""

from typing import Dict, FrozenSet

# =============================================================================
# FIELD TYPE CATEGORIES
# =============================================================================

TEXT_FIELD_TYPES: FrozenSet[str] = frozenset([
    'textfield',
    'textareafield',
    'richtextareafield',
    'emailfield',
    'phonefield',
    'linkfield',
    'fullnamefield',
    'addressfield',
    'smartdocfield',
])

NUMERIC_FIELD_TYPES: FrozenSet[str] = frozenset([
    'numberfield',
    'currencyfield',
    'ratingfield',
    'percentfield',
    'durationfield',
    'votefield',
])

# Always populated, so empty checks make no sense
AUTONUMBER_FIELD_TYPES: FrozenSet[str] = frozenset([
    'autonumberfield',
])

DATE_FIELD_TYPES: FrozenSet[str] = frozenset([
    'datefield',
    'daterangefield',
    'firstcreatedfield',
    'lastupdatedfield',
])

DUE_DATE_FIELD_TYPES: FrozenSet[str] = frozenset([
    'duedatefield',
])

# Fields stored as {from_date: ..., to_date: ...}
DATE_RANGE_FIELD_TYPES: FrozenSet[str] = frozenset([
    'daterangefield',
    'duedatefield',
])

SINGLE_SELECT_FIELD_TYPES: FrozenSet[str] = frozenset([
    'singleselectfield',
    'statusfield',
])

MULTIPLE_SELECT_FIELD_TYPES: FrozenSet[str] = frozenset([
    'multipleselectfield',
    'tagsfield',
])

LINKED_RECORD_FIELD_TYPES: FrozenSet[str] = frozenset([
    'linkedrecordfield',
    'subitemsfield',
])

USER_FIELD_TYPES: FrozenSet[str] = frozenset([
    'userfield',
    'assignedtofield',
    'createdbyfield',
])

FILE_FIELD_TYPES: FrozenSet[str] = frozenset([
    'filefield',
    'imagefield',
    'signaturefield',
])

YESNO_FIELD_TYPES: FrozenSet[str] = frozenset([
    'yesnofield',
    'checkboxfield',
])

# Computed fields take whatever operator their source type takes
FORMULA_FIELD_TYPES: FrozenSet[str] = frozenset([
    'formulafield',
    'lookupfield',
    'rollupfield',
    'countfield',
])

# Stored as JSON arrays in the mirrored record document
ARRAY_FIELD_TYPES: FrozenSet[str] = (
    MULTIPLE_SELECT_FIELD_TYPES |
    LINKED_RECORD_FIELD_TYPES |
    USER_FIELD_TYPES |
    FILE_FIELD_TYPES
)

ALL_DATE_FIELD_TYPES: FrozenSet[str] = DATE_FIELD_TYPES | DUE_DATE_FIELD_TYPES

# =============================================================================
# OPERATOR SETS
# =============================================================================

TEXT_OPERATORS: FrozenSet[str] = frozenset([
    'is', 'is_not', 'is_empty', 'is_not_empty',
    'contains', 'not_contains', 'does_not_contain',
])

NUMERIC_OPERATORS_NO_EMPTY: FrozenSet[str] = frozenset([
    'is', 'is_not',
    'is_equal_to', 'is_not_equal_to',
    'is_greater_than', 'is_less_than',
    'is_equal_or_greater_than', 'is_equal_or_less_than',
])

NUMERIC_OPERATORS: FrozenSet[str] = NUMERIC_OPERATORS_NO_EMPTY | frozenset([
    'is_empty', 'is_not_empty',
])

DATE_OPERATORS: FrozenSet[str] = frozenset([
    'is', 'is_not',
    'is_before', 'is_after', 'is_on_or_before', 'is_on_or_after',
    'is_empty', 'is_not_empty',
])

DUE_DATE_OPERATORS: FrozenSet[str] = DATE_OPERATORS | frozenset([
    'is_overdue', 'is_not_overdue',
])

SINGLE_SELECT_OPERATORS: FrozenSet[str] = frozenset([
    'is', 'is_not', 'is_any_of', 'is_none_of', 'is_empty', 'is_not_empty',
])

MULTIPLE_SELECT_OPERATORS: FrozenSet[str] = frozenset([
    'has_any_of', 'has_all_of', 'is_exactly', 'has_none_of',
    'is_empty', 'is_not_empty',
])

LINKED_RECORD_OPERATORS: FrozenSet[str] = MULTIPLE_SELECT_OPERATORS | frozenset([
    'contains', 'not_contains',
])

USER_OPERATORS: FrozenSet[str] = MULTIPLE_SELECT_OPERATORS

FILE_OPERATORS: FrozenSet[str] = frozenset([
    'file_name_contains', 'file_type_is', 'is_empty', 'is_not_empty',
])

YESNO_OPERATORS: FrozenSet[str] = frozenset([
    'is',
])

# Ordered category table: first match wins
FIELD_TYPE_OPERATORS: Dict[FrozenSet[str], FrozenSet[str]] = {
    TEXT_FIELD_TYPES: TEXT_OPERATORS,
    NUMERIC_FIELD_TYPES: NUMERIC_OPERATORS,
    AUTONUMBER_FIELD_TYPES: NUMERIC_OPERATORS_NO_EMPTY,
    DATE_FIELD_TYPES: DATE_OPERATORS,
    DUE_DATE_FIELD_TYPES: DUE_DATE_OPERATORS,
    SINGLE_SELECT_FIELD_TYPES: SINGLE_SELECT_OPERATORS,
    MULTIPLE_SELECT_FIELD_TYPES: MULTIPLE_SELECT_OPERATORS,
    LINKED_RECORD_FIELD_TYPES: LINKED_RECORD_OPERATORS,
    USER_FIELD_TYPES: USER_OPERATORS,
    FILE_FIELD_TYPES: FILE_OPERATORS,
    YESNO_FIELD_TYPES: YESNO_OPERATORS,
}

# =============================================================================
# DATE MODES
# =============================================================================

DYNAMIC_DATE_MODES: FrozenSet[str] = frozenset([
    'today',
    'yesterday',
    'tomorrow',
    'one_week_ago',
    'one_week_from_now',
    'one_month_ago',
    'one_month_from_now',
    'start_of_week',
    'end_of_week',
    'start_of_month',
    'end_of_month',
])

# =============================================================================
# CACHE TTL PRESETS (seconds)
# =============================================================================

TTL_PRESETS: Dict[str, int] = {
    'high_mutation': 3600,          # 1 hour
    'medium_mutation': 43200,       # 12 hours
    'low_mutation': 604800,         # 7 days
    'very_low_mutation': 2592000,   # 30 days
}

DEFAULT_CACHE_TTL = TTL_PRESETS['medium_mutation']
