"""Filter tree compilation.

Two compilation paths:
- Flat: root is AND and has no nested groups. Each leaf becomes a
  (field, Condition) pair applied by chaining CacheQuery.where().
- Recursive: root is OR or contains a nested group. The whole tree becomes
  one parameterised SQL clause; groups are parenthesised and empty groups
  dropped.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from core.logging import get_logger
from models.filters import Condition, FilterGroup, FilterLeaf, TableSchema, parse_filter
from services.cache.clauses import ClauseBuilder
from .conditions import UnknownOperatorPolicy, convert_comparison
from .dates import DateResolver
from .validator import FilterWarning, validate

logger = get_logger(__name__)


@dataclass
class CompiledFilter:
    """Result of compiling a filter tree.

    Exactly one of ``conditions`` / ``clause`` is populated, neither when the
    filter matches everything.
    """
    conditions: List[Tuple[str, Condition]] = field(default_factory=list)
    clause: Optional[str] = None
    params: List[Any] = field(default_factory=list)
    warnings: List[FilterWarning] = field(default_factory=list)

    @property
    def matches_all(self) -> bool:
        return not self.conditions and not self.clause

    @property
    def is_flat(self) -> bool:
        return self.clause is None


class FilterCompiler:
    """Compiles remote-API filter trees against a table schema snapshot."""

    def __init__(self, resolver: DateResolver, strict: bool = False,
                 unknown_operator: UnknownOperatorPolicy = "equality"):
        self.resolver = resolver
        self.strict = strict
        self.unknown_operator = unknown_operator

    def compile(self, filter_tree: Union[Dict[str, Any], FilterGroup, None],
                schema: Optional[TableSchema] = None) -> CompiledFilter:
        """Compile a filter tree.

        Args:
            filter_tree: Raw filter dict or parsed FilterGroup, None for no filter
            schema: Field schema used for validation and type-aware SQL

        Returns:
            CompiledFilter

        Raises:
            FilterValidationError: Operator/type mismatch in strict mode
            UnknownOperatorError: Unknown comparison under the "error" policy
        """
        root = parse_filter(filter_tree)
        warnings: List[FilterWarning] = []

        if root is None or root.is_empty:
            return CompiledFilter()

        has_nested = any(isinstance(child, FilterGroup) for child in root.fields)

        if not has_nested and root.operator == "and":
            conditions = []
            for leaf in root.fields:
                compiled = self._compile_leaf(leaf, schema, warnings)
                if compiled is not None:
                    conditions.append(compiled)
            return CompiledFilter(conditions=conditions, warnings=warnings)

        builder = ClauseBuilder(schema)
        clause, params = self._compile_group(root, schema, builder, warnings)
        return CompiledFilter(clause=clause, params=params, warnings=warnings)

    def _compile_leaf(self, leaf: FilterLeaf, schema: Optional[TableSchema],
                      warnings: List[FilterWarning]) -> Optional[Tuple[str, Condition]]:
        if not leaf.field:
            message = "Filter condition without a field was skipped"
            logger.warning(message, comparison=leaf.comparison)
            warnings.append(FilterWarning("", leaf.comparison or "", "", message))
            return None

        field_type = schema.field_type(leaf.field) if schema else None
        validate(leaf.field, leaf.comparison or "", field_type,
                 strict=self.strict, warnings=warnings)

        condition = convert_comparison(leaf.comparison, leaf.value, self.resolver,
                                       unknown_operator=self.unknown_operator)
        return leaf.field, condition

    def _compile_group(self, group: FilterGroup, schema: Optional[TableSchema],
                       builder: ClauseBuilder,
                       warnings: List[FilterWarning]) -> Tuple[Optional[str], List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []

        for child in group.fields:
            if isinstance(child, FilterGroup):
                nested_clause, nested_params = self._compile_group(child, schema, builder, warnings)
                if nested_clause:
                    clauses.append(f"({nested_clause})")
                    params.extend(nested_params)
                continue

            compiled = self._compile_leaf(child, schema, warnings)
            if compiled is None:
                continue
            clause, leaf_params = builder.build_condition_sql(*compiled)
            clauses.append(clause)
            params.extend(leaf_params)

        if not clauses:
            return None, []

        return f" {group.operator.upper()} ".join(clauses), params
