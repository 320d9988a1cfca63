"""SQL condition rendering over mirrored JSON record documents.

Each mirrored record is stored as one JSON document in ``cache_records.data``.
Conditions are rendered as SQLite JSON1 expressions with ``?`` placeholders;
values are always bound, field slugs are sanitized before being embedded in
JSON paths.

Field-type aware accessors:
    date fields     {"date": ...}, {"from_date": ..., "to_date": ...} or plain
                    strings, bare dates normalised to midnight UTC
    select fields   {"value": ...} or plain strings
    numeric fields  CAST(... AS REAL)
"""

import json
import re
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel

from constants import (
    ALL_DATE_FIELD_TYPES,
    ARRAY_FIELD_TYPES,
    AUTONUMBER_FIELD_TYPES,
    DATE_RANGE_FIELD_TYPES,
    NUMERIC_FIELD_TYPES,
    SINGLE_SELECT_FIELD_TYPES,
    TEXT_FIELD_TYPES,
)
from models.filters import Condition, ConditionKind, TableSchema, base_slug

SqlFragment = Tuple[str, List[Any]]

UNSAFE_FIELD_CHARS = re.compile(r"[^a-zA-Z0-9_]")

COMPARISON_SQL = {
    ConditionKind.GREATER_THAN: ">",
    ConditionKind.GREATER_OR_EQUAL: ">=",
    ConditionKind.LESS_THAN: "<",
    ConditionKind.LESS_OR_EQUAL: "<=",
    ConditionKind.IS_BEFORE: "<",
    ConditionKind.IS_AFTER: ">",
    ConditionKind.IS_ON_OR_BEFORE: "<=",
    ConditionKind.IS_ON_OR_AFTER: ">=",
}

DATE_DIRECTION_KINDS = frozenset([
    ConditionKind.IS_BEFORE,
    ConditionKind.IS_AFTER,
    ConditionKind.IS_ON_OR_BEFORE,
    ConditionKind.IS_ON_OR_AFTER,
])

NUMERIC_TYPES = NUMERIC_FIELD_TYPES | AUTONUMBER_FIELD_TYPES

MATCH_NOTHING = "0"
MATCH_EVERYTHING = "1"


def sanitize_field_name(name: Any) -> str:
    return UNSAFE_FIELD_CHARS.sub("", str(name))


def escape_like(value: Any) -> str:
    text = "" if value is None else str(value)
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def json_path(field: str, *keys: str) -> str:
    path = f'$."{field}"'
    for key in keys:
        path += f".{key}"
    return path


def _json_text(value: Any) -> Any:
    # json_extract returns minified JSON text for objects and arrays
    if isinstance(value, BaseModel):
        value = value.model_dump(exclude_none=True)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"), sort_keys=False)
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ClauseBuilder:
    """Render conditions for one table's schema snapshot.

    Unknown fields (no schema entry) fall back to a generic accessor and
    type-agnostic SQL.
    """

    def __init__(self, schema: Optional[TableSchema] = None):
        self.schema = schema

    def field_type(self, field_slug: str) -> Optional[str]:
        if self.schema is None:
            return None
        return self.schema.field_type(field_slug)

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def _extract(self, field: str, *keys: str) -> str:
        return f"json_extract(data, '{json_path(field, *keys)}')"

    def _text_at(self, field: str, *keys: str) -> str:
        path = json_path(field, *keys)
        return f"CASE WHEN json_type(data, '{path}') = 'text' THEN json_extract(data, '{path}') END"

    def generic_accessor(self, field: str) -> str:
        return self._extract(field)

    def select_accessor(self, field: str) -> str:
        return f"COALESCE({self._extract(field, 'value')}, {self._extract(field)})"

    def date_accessor(self, field_slug: str) -> str:
        """Date value of a field, NULL when the record has no usable date."""
        field = sanitize_field_name(base_slug(field_slug))
        field_type = self.field_type(field_slug)

        if field_slug.endswith(".from_date"):
            candidates = [("from_date", "date"), ("from_date",)]
        elif field_slug.endswith(".to_date") or field_type in DATE_RANGE_FIELD_TYPES:
            candidates = [("to_date", "date"), ("to_date",)]
        else:
            candidates = [("date",), ("on",)]
        candidates.append(())

        raw = "COALESCE(" + ", ".join(self._text_at(field, *keys) for keys in candidates) + ")"
        return f"(CASE WHEN length({raw}) = 10 THEN {raw} || 'T00:00:00Z' ELSE {raw} END)"

    def value_accessor(self, field_slug: str) -> str:
        field_type = self.field_type(field_slug)
        if field_type in ALL_DATE_FIELD_TYPES or field_slug.endswith((".from_date", ".to_date")):
            return self.date_accessor(field_slug)
        field = sanitize_field_name(field_slug)
        if field_type in SINGLE_SELECT_FIELD_TYPES:
            return self.select_accessor(field)
        return self.generic_accessor(field)

    def sort_accessor(self, field_slug: str) -> str:
        accessor = self.value_accessor(field_slug)
        if self.field_type(field_slug) in NUMERIC_TYPES:
            return f"CAST({accessor} AS REAL)"
        return accessor

    # =========================================================================
    # CONDITIONS
    # =========================================================================

    def build_condition_sql(self, field_slug: str, condition: Condition) -> SqlFragment:
        """Render one condition.

        Args:
            field_slug: Field slug, optionally with .from_date / .to_date
            condition: Compiled condition

        Returns:
            (sql_fragment, params) with params in placeholder order
        """
        kind = condition.kind
        value = condition.value
        field_type = self.field_type(field_slug)
        field = sanitize_field_name(base_slug(field_slug))
        accessor = self.value_accessor(field_slug)

        if kind in (ConditionKind.EQUAL, ConditionKind.NOT_EQUAL):
            op = "=" if kind == ConditionKind.EQUAL else "!="
            if value is None:
                return (f"{accessor} IS NULL" if op == "=" else f"{accessor} IS NOT NULL"), []
            if field_type in NUMERIC_TYPES or _is_number(value):
                return f"CAST({accessor} AS REAL) {op} ?", [value]
            return f"{accessor} {op} ?", [_json_text(value)]

        if kind in DATE_DIRECTION_KINDS:
            date_accessor = self.date_accessor(field_slug)
            return f"{date_accessor} {COMPARISON_SQL[kind]} ?", [value]

        if kind in COMPARISON_SQL:
            if field_type in NUMERIC_TYPES or _is_number(value):
                return f"CAST({accessor} AS REAL) {COMPARISON_SQL[kind]} ?", [value]
            return f"{accessor} {COMPARISON_SQL[kind]} ?", [value]

        if kind == ConditionKind.CONTAINS:
            return f"{accessor} LIKE ? ESCAPE '\\'", [f"%{escape_like(value)}%"]

        if kind == ConditionKind.NOT_CONTAINS:
            return f"{accessor} NOT LIKE ? ESCAPE '\\'", [f"%{escape_like(value)}%"]

        if kind == ConditionKind.BETWEEN:
            return f"{accessor} BETWEEN ? AND ?", [value["min"], value["max"]]

        if kind == ConditionKind.NOT_BETWEEN:
            return f"({accessor} < ? OR {accessor} > ?)", [value["min"], value["max"]]

        if kind in (ConditionKind.IS_NULL, ConditionKind.IS_NOT_NULL):
            empty_sql = self._empty_sql(accessor, field_type)
            if kind == ConditionKind.IS_NULL:
                return empty_sql, []
            return f"NOT {empty_sql}", []

        if kind in (ConditionKind.IS_ANY_OF, ConditionKind.IS_NONE_OF):
            values = [_json_text(v) for v in value or []]
            if not values:
                return self._empty_list_fallback(kind), []
            placeholders = ", ".join("?" for _ in values)
            op = "IN" if kind == ConditionKind.IS_ANY_OF else "NOT IN"
            return f"{accessor} {op} ({placeholders})", values

        if kind in (ConditionKind.HAS_ANY_OF, ConditionKind.HAS_ALL_OF,
                    ConditionKind.HAS_NONE_OF, ConditionKind.IS_EXACTLY):
            return self._array_membership_sql(field, kind, list(value or []))

        if kind == ConditionKind.IS_OVERDUE:
            return f"{self._extract(field, 'is_overdue')} = 1", []

        if kind == ConditionKind.IS_NOT_OVERDUE:
            return f"COALESCE({self._extract(field, 'is_overdue')}, 0) = 0", []

        if kind == ConditionKind.FILE_NAME_CONTAINS:
            return (
                f"EXISTS (SELECT 1 FROM json_each(data, '{json_path(field)}') AS je "
                f"WHERE json_extract(je.value, '$.name') LIKE ? ESCAPE '\\')",
                [f"%{escape_like(value)}%"],
            )

        if kind == ConditionKind.FILE_TYPE_IS:
            return (
                f"EXISTS (SELECT 1 FROM json_each(data, '{json_path(field)}') AS je "
                f"WHERE json_extract(je.value, '$.type') = ?)",
                [value],
            )

        # Unreachable for converter output; keeps hand-built conditions literal
        return f"{accessor} = ?", [_json_text(value)]

    def _empty_sql(self, accessor: str, field_type: Optional[str]) -> str:
        if field_type in ARRAY_FIELD_TYPES:
            return f"({accessor} IS NULL OR {accessor} = '[]')"
        if field_type in TEXT_FIELD_TYPES:
            return f"({accessor} IS NULL OR {accessor} = '')"
        if field_type:
            return f"({accessor} IS NULL)"
        return f"({accessor} IS NULL OR {accessor} = '' OR {accessor} = '[]')"

    def _empty_list_fallback(self, kind: ConditionKind) -> str:
        if kind in (ConditionKind.HAS_ANY_OF, ConditionKind.IS_ANY_OF):
            return MATCH_NOTHING
        return MATCH_EVERYTHING

    def _array_membership_sql(self, field: str, kind: ConditionKind,
                              values: List[Any]) -> SqlFragment:
        if not values:
            return self._empty_list_fallback(kind), []

        path = json_path(field)
        placeholders = ", ".join("?" for _ in values)
        members = f"SELECT 1 FROM json_each(data, '{path}') AS je WHERE je.value IN ({placeholders})"
        distinct_matches = (
            f"(SELECT COUNT(DISTINCT je.value) FROM json_each(data, '{path}') AS je "
            f"WHERE je.value IN ({placeholders}))"
        )
        distinct_count = len(set(str(v) for v in values))

        if kind == ConditionKind.HAS_ANY_OF:
            return f"EXISTS ({members})", list(values)
        if kind == ConditionKind.HAS_NONE_OF:
            return f"NOT EXISTS ({members})", list(values)
        if kind == ConditionKind.HAS_ALL_OF:
            return f"{distinct_matches} = ?", list(values) + [distinct_count]

        # IS_EXACTLY: same size and every value present
        return (
            f"(json_array_length(data, '{path}') = ? AND {distinct_matches} = ?)",
            [len(values)] + list(values) + [distinct_count],
        )
