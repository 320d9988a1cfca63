"""Filter tree and table schema models.

Filter input format (remote API compatible):
    {
        "operator": "and",
        "fields": [
            {"field": "status", "comparison": "is", "value": "active"},
            {"operator": "or", "fields": [...]}
        ]
    }

A child object carrying "fields" is a group, anything else is a leaf.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator

DATE_DESCRIPTOR_KEYS = frozenset(["date_mode", "date", "date_mode_value"])
DATE_SUBFIELD_SUFFIXES = (".from_date", ".to_date")


class ConditionKind(str, Enum):
    """Typed predicate kinds produced by the comparison converter."""
    EQUAL = "equal"
    NOT_EQUAL = "not_equal"
    GREATER_THAN = "greater_than"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS_THAN = "less_than"
    LESS_OR_EQUAL = "less_or_equal"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    HAS_ANY_OF = "has_any_of"
    HAS_ALL_OF = "has_all_of"
    IS_EXACTLY = "is_exactly"
    HAS_NONE_OF = "has_none_of"
    IS_ANY_OF = "is_any_of"
    IS_NONE_OF = "is_none_of"
    BETWEEN = "between"
    NOT_BETWEEN = "not_between"
    IS_BEFORE = "is_before"
    IS_AFTER = "is_after"
    IS_ON_OR_BEFORE = "is_on_or_before"
    IS_ON_OR_AFTER = "is_on_or_after"
    IS_OVERDUE = "is_overdue"
    IS_NOT_OVERDUE = "is_not_overdue"
    FILE_NAME_CONTAINS = "file_name_contains"
    FILE_TYPE_IS = "file_type_is"


@dataclass(frozen=True)
class Condition:
    """Compiled condition: a kind plus its (already normalised) value.

    Value shapes:
        BETWEEN / NOT_BETWEEN   {"min": str, "max": str}
        membership kinds        list
        null / overdue kinds    None
        everything else         scalar as given
    """
    kind: ConditionKind
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "value": self.value}


class DateDescriptor(BaseModel):
    """Date value as sent by the remote API filter format.

    Resolution priority: date_mode_value > date > resolved date_mode.
    """
    model_config = ConfigDict(frozen=True)

    date_mode: Optional[str] = None
    date: Optional[str] = None
    date_mode_value: Optional[str] = None

    @field_validator("date_mode", "date", "date_mode_value", mode="before")
    @classmethod
    def _stringify(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)


class FilterLeaf(BaseModel):
    """Single field comparison."""
    model_config = ConfigDict(extra="ignore")

    field: Optional[str] = None
    comparison: Optional[str] = None
    value: Any = None

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_date_descriptor(cls, v):
        if isinstance(v, dict) and DATE_DESCRIPTOR_KEYS & v.keys():
            return DateDescriptor(**{k: v.get(k) for k in DATE_DESCRIPTOR_KEYS})
        return v


def _node_kind(v: Any) -> str:
    if isinstance(v, dict):
        return "group" if "fields" in v else "leaf"
    return "group" if isinstance(v, FilterGroup) else "leaf"


class FilterGroup(BaseModel):
    """AND/OR group of leaves and nested groups."""
    model_config = ConfigDict(extra="ignore")

    operator: str = "and"
    fields: List["FilterNode"] = Field(default_factory=list)

    @field_validator("operator", mode="before")
    @classmethod
    def _normalize_operator(cls, v):
        # Missing or unrecognised connectors mean AND
        if isinstance(v, str) and v.strip().lower() == "or":
            return "or"
        return "and"

    @field_validator("fields", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return [] if v is None else v

    @property
    def is_empty(self) -> bool:
        return not self.fields


FilterNode = Annotated[
    Union[
        Annotated[FilterGroup, Tag("group")],
        Annotated[FilterLeaf, Tag("leaf")],
    ],
    Discriminator(_node_kind),
]

FilterGroup.model_rebuild()


def parse_filter(raw: Union[Dict[str, Any], FilterGroup, None]) -> Optional[FilterGroup]:
    """Parse a raw filter dict into a FilterGroup. Empty input yields None."""
    if raw is None:
        return None
    if isinstance(raw, FilterGroup):
        return raw
    if not raw:
        return None
    return FilterGroup.model_validate(raw)


# ============================================================================
# Table schema
# ============================================================================

class FieldSchema(BaseModel):
    """One field of a remote table structure."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    slug: str
    field_type: str
    label: Optional[str] = None

    @field_validator("field_type", mode="before")
    @classmethod
    def _lower(cls, v):
        return v.lower() if isinstance(v, str) else v


class TableSchema(BaseModel):
    """Snapshot of a table's field structure."""
    model_config = ConfigDict(frozen=True)

    table_id: str
    fields: List[FieldSchema] = Field(default_factory=list)

    @classmethod
    def from_structure(cls, table_id: str, structure: List[Dict[str, Any]]) -> "TableSchema":
        """Build from the remote "structure" list (slug, field_type, label)."""
        return cls(
            table_id=table_id,
            fields=[FieldSchema.model_validate(item) for item in structure or []
                    if item.get("slug") and item.get("field_type")],
        )

    def get(self, slug: str) -> Optional[FieldSchema]:
        base = base_slug(slug)
        for field in self.fields:
            if field.slug == base:
                return field
        return None

    def field_type(self, slug: str) -> Optional[str]:
        """Field type for a slug, sub-field suffixes resolve to their base field."""
        field = self.get(slug)
        return field.field_type if field else None


def base_slug(slug: str) -> str:
    """Strip .from_date / .to_date sub-field suffixes."""
    for suffix in DATE_SUBFIELD_SUFFIXES:
        if slug.endswith(suffix):
            return slug[: -len(suffix)]
    return slug
