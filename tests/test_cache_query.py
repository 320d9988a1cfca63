"""Compiled filters executed against the mirrored task table."""

import pytest

from models.filters import Condition, ConditionKind, DateDescriptor

from conftest import TABLE_ID, TASK_RECORDS, ids


async def run(store, compiler, schema, tree, **options):
    compiled = compiler.compile(tree, schema)
    query = store.query(TABLE_ID).apply(compiled)
    for field, direction in options.get("sort", []):
        query.order(field, direction)
    return await query.limit(options.get("limit")).offset(options.get("offset")).execute(
        fields=options.get("fields"))


def leaf(field, comparison, value=None):
    return {"operator": "and", "fields": [{"field": field, "comparison": comparison, "value": value}]}


async def test_empty_filter_returns_records_unmodified(cached_tasks, compiler, schema):
    records = await run(cached_tasks, compiler, schema, None)
    assert records == TASK_RECORDS


@pytest.mark.parametrize("tree,expected", [
    (leaf("status", "is", "Active"), ["rec_1", "rec_2"]),
    (leaf("status", "is_not", "Active"), ["rec_3", "rec_4"]),
    (leaf("priority", "is_greater_than", 3), ["rec_1", "rec_3"]),
    (leaf("priority", "is_equal_or_less_than", 2), ["rec_2", "rec_4"]),
    (leaf("priority", "is", 4), ["rec_3"]),
    (leaf("title", "contains", "re"), ["rec_1", "rec_2"]),
    (leaf("title", "not_contains", "re"), ["rec_3", "rec_4"]),
    (leaf("title", "contains", "%"), []),
    (leaf("category", "is_any_of", ["ops"]), ["rec_1", "rec_3"]),
    (leaf("category", "is_none_of", ["ops"]), ["rec_2"]),
    (leaf("done", "is", True), ["rec_1"]),
    (leaf("nonexistent", "is", "x"), []),
])
async def test_scalar_conditions(cached_tasks, compiler, schema, tree, expected):
    assert ids(await run(cached_tasks, compiler, schema, tree)) == expected


async def test_status_and_priority_scenario(cached_tasks, compiler, schema):
    tree = {
        "operator": "and",
        "fields": [
            {"field": "status", "comparison": "is", "value": "Active"},
            {"field": "priority", "comparison": "is_greater_than", "value": 3},
        ],
    }
    assert ids(await run(cached_tasks, compiler, schema, tree)) == ["rec_1"]


@pytest.mark.parametrize("comparison,value,expected", [
    ("has_any_of", ["q2"], ["rec_1", "rec_2"]),
    ("has_all_of", ["urgent", "q2"], ["rec_1"]),
    ("has_all_of", ["q2", "q2"], ["rec_1", "rec_2"]),
    ("has_none_of", ["q2"], ["rec_3", "rec_4"]),
    ("is_exactly", ["q2"], ["rec_2"]),
    ("is_exactly", ["q2", "urgent"], ["rec_1"]),
    ("has_any_of", [], []),
    ("has_none_of", [], ["rec_1", "rec_2", "rec_3", "rec_4"]),
    ("is_empty", None, ["rec_3"]),
    ("is_not_empty", None, ["rec_1", "rec_2", "rec_4"]),
])
async def test_multi_select_conditions(cached_tasks, compiler, schema, comparison, value, expected):
    assert ids(await run(cached_tasks, compiler, schema, leaf("tags", comparison, value))) == expected


async def test_empty_checks_by_field_type(cached_tasks, compiler, schema):
    assert ids(await run(cached_tasks, compiler, schema, leaf("assigned_to", "is_empty"))) == ["rec_4"]
    assert ids(await run(cached_tasks, compiler, schema, leaf("notes", "is_empty"))) == ["rec_1", "rec_3", "rec_4"]
    assert ids(await run(cached_tasks, compiler, schema, leaf("notes", "is_not_empty"))) == ["rec_2"]
    assert ids(await run(cached_tasks, compiler, schema, leaf("category", "is_empty"))) == ["rec_4"]


async def test_overdue(cached_tasks, compiler, schema):
    assert ids(await run(cached_tasks, compiler, schema, leaf("due_date", "is_overdue"))) == ["rec_2"]
    assert ids(await run(cached_tasks, compiler, schema, leaf("due_date", "is_not_overdue"))) == [
        "rec_1", "rec_3", "rec_4"]


@pytest.mark.parametrize("comparison,value,expected", [
    ("is", "2026-06-15", ["rec_1", "rec_4"]),
    ("is", {"date_mode": "today"}, ["rec_1", "rec_4"]),
    ("is", {"date_mode": "yesterday"}, ["rec_2"]),
    ("is_not", "2026-06-15", ["rec_2", "rec_3"]),
    ("is_before", "2026-06-15", ["rec_2"]),
    ("is_after", "2026-06-15T23:00:00Z", ["rec_3", "rec_4"]),
    ("is_on_or_after", {"date_mode": "tomorrow"}, ["rec_3"]),
    ("is", {"date_mode": "exact_date", "date_mode_value": "2026-06-15T09:30:00Z"}, ["rec_1"]),
    ("is_not", {"date_mode": "exact_date", "date_mode_value": "2026-06-15T09:30:00Z"}, ["rec_2", "rec_3", "rec_4"]),
    ("is", {"date_mode": "someday"}, []),
    ("is_not", {"date_mode": "someday"}, ["rec_1", "rec_2", "rec_3", "rec_4"]),
    ("is_any_of", {"date": "2026-06-14T23:00:00Z"}, ["rec_2"]),
])
async def test_date_conditions(cached_tasks, compiler, schema, comparison, value, expected):
    assert ids(await run(cached_tasks, compiler, schema, leaf("created", comparison, value))) == expected


async def test_date_range_fields(cached_tasks, compiler, schema):
    on_or_after = leaf("due_date", "is_on_or_after", "2026-06-15")
    starts_before = leaf("due_date.from_date", "is_before", "2026-06-01")

    assert ids(await run(cached_tasks, compiler, schema, on_or_after)) == ["rec_1", "rec_4"]
    assert ids(await run(cached_tasks, compiler, schema, starts_before)) == ["rec_2"]


async def test_file_conditions(cached_tasks, compiler, schema):
    assert ids(await run(cached_tasks, compiler, schema, leaf("files", "file_type_is", "pdf"))) == ["rec_1"]
    assert ids(await run(cached_tasks, compiler, schema, leaf("files", "file_name_contains", "agenda"))) == ["rec_3"]


async def test_nested_groups(cached_tasks, compiler, schema):
    and_or = {
        "operator": "and",
        "fields": [
            {"field": "status", "comparison": "is", "value": "Active"},
            {"operator": "or", "fields": [
                {"field": "category", "comparison": "is", "value": "ops"},
                {"field": "priority", "comparison": "is_less_than", "value": 3},
            ]},
        ],
    }
    either = {
        "operator": "or",
        "fields": [
            {"field": "priority", "comparison": "is", "value": 1},
            {"field": "tags", "comparison": "has_any_of", "value": ["urgent"]},
        ],
    }

    assert ids(await run(cached_tasks, compiler, schema, and_or)) == ["rec_1", "rec_2"]
    assert ids(await run(cached_tasks, compiler, schema, either)) == ["rec_1", "rec_4"]


async def test_sort_and_pagination(cached_tasks, compiler, schema):
    by_priority = [("priority", "desc")]

    assert ids(await run(cached_tasks, compiler, schema, None, sort=by_priority)) == [
        "rec_1", "rec_3", "rec_2", "rec_4"]
    assert ids(await run(cached_tasks, compiler, schema, None, sort=by_priority, limit=2, offset=1)) == [
        "rec_3", "rec_2"]
    assert ids(await run(cached_tasks, compiler, schema, None, offset=3)) == ["rec_4"]
    assert ids(await run(cached_tasks, compiler, schema, None, limit=0)) == []


async def test_count_ignores_pagination(cached_tasks, compiler, schema):
    compiled = compiler.compile(leaf("status", "is", "Active"), schema)
    query = cached_tasks.query(TABLE_ID).apply(compiled).limit(1).offset(1)
    assert await query.count() == 2
    assert ids(await query.execute()) == ["rec_2"]


async def test_projection_keeps_id(cached_tasks, compiler, schema):
    records = await run(cached_tasks, compiler, schema, None, fields=["title"])
    assert all(set(r) == {"id", "title"} for r in records)
    assert records[0] == {"id": "rec_1", "title": "Write report"}


async def test_direct_where(cached_tasks):
    query = (cached_tasks.query(TABLE_ID)
             .where("priority", Condition(ConditionKind.GREATER_OR_EQUAL, 4))
             .where("category", Condition(ConditionKind.EQUAL, "ops")))
    assert ids(await query.execute()) == ["rec_1", "rec_3"]


async def test_to_sql_binds_values(cached_tasks):
    sql, params = (cached_tasks.query(TABLE_ID)
                   .where("title", Condition(ConditionKind.CONTAINS, "'; DROP TABLE cache_records; --"))
                   .offset(5)
                   .to_sql())
    assert "DROP TABLE" not in sql
    assert sql.endswith("LIMIT ? OFFSET ?")
    assert params == [TABLE_ID, "%'; DROP TABLE cache\\_records; --%", -1, 5]


async def test_field_slugs_are_sanitized(cached_tasks):
    sql, _ = cached_tasks.query(TABLE_ID).where(
        "title') OR 1=1 --", Condition(ConditionKind.EQUAL, "x")).to_sql()
    assert "OR 1=1" not in sql
    assert "$.\"titleOR11\"" in sql


async def test_model_values_bind_as_json_text(cached_tasks):
    descriptor = DateDescriptor(date="2026-06-15")
    _, params = cached_tasks.query(TABLE_ID).where(
        "title", Condition(ConditionKind.EQUAL, descriptor)).to_sql()
    assert params == [TABLE_ID, '{"date":"2026-06-15"}']


async def test_page_and_total_come_from_one_statement(cached_tasks, compiler, schema, monkeypatch):
    async def no_second_statement():
        raise AssertionError("total must come from the page statement")

    query = cached_tasks.query(TABLE_ID).apply(compiler.compile(leaf("status", "is", "Active"), schema))
    monkeypatch.setattr(query, "count", no_second_statement)

    records, total = await query.order("priority", "desc").limit(1).offset(1).execute_page(fields=["title"])
    assert records == [{"id": "rec_2", "title": "Review budget"}]
    assert total == 2


async def test_page_past_the_end(cached_tasks):
    records, total = await cached_tasks.query(TABLE_ID).offset(10).execute_page()
    assert records == []
    assert total == 4
