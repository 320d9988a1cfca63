"""Shared fixtures: settings on a temporary SQLite file, a controllable clock,
a fake remote API and a small task table."""

import copy
from datetime import date

import pytest

from core.config import Settings
from core.database import Database
from models.filters import TableSchema
from services.cache import CacheStore
from services.filters import DateResolver, FilterCompiler

TABLE_ID = "tbl_tasks"

# Monday
TODAY = date(2026, 6, 15)

T0 = 1_780_000_000.0

TASK_STRUCTURE = [
    {"slug": "title", "field_type": "textfield", "label": "Title"},
    {"slug": "status", "field_type": "statusfield", "label": "Status"},
    {"slug": "priority", "field_type": "numberfield", "label": "Priority"},
    {"slug": "category", "field_type": "singleselectfield", "label": "Category"},
    {"slug": "tags", "field_type": "multipleselectfield", "label": "Tags"},
    {"slug": "assigned_to", "field_type": "userfield", "label": "Assigned To"},
    {"slug": "due_date", "field_type": "duedatefield", "label": "Due Date"},
    {"slug": "created", "field_type": "datefield", "label": "Created"},
    {"slug": "files", "field_type": "filefield", "label": "Files"},
    {"slug": "notes", "field_type": "textareafield", "label": "Notes"},
    {"slug": "done", "field_type": "yesnofield", "label": "Done"},
    {"slug": "score", "field_type": "formulafield", "label": "Score"},
]

TASK_RECORDS = [
    {
        "id": "rec_1",
        "title": "Write report",
        "status": {"value": "Active", "updated_on": "2026-06-01T10:00:00Z"},
        "priority": 5,
        "category": "ops",
        "tags": ["urgent", "q2"],
        "assigned_to": ["usr_a"],
        "due_date": {
            "from_date": {"date": "2026-06-10T00:00:00Z", "include_time": False},
            "to_date": {"date": "2026-06-15T00:00:00Z", "include_time": False},
            "is_overdue": False,
        },
        "created": {"date": "2026-06-15T09:30:00Z", "include_time": True},
        "files": [{"name": "report.pdf", "type": "pdf"}],
        "notes": "",
        "done": True,
    },
    {
        "id": "rec_2",
        "title": "Review budget",
        "status": {"value": "Active"},
        "priority": 2,
        "category": "finance",
        "tags": ["q2"],
        "assigned_to": ["usr_b"],
        "due_date": {
            "from_date": {"date": "2026-05-20T00:00:00Z", "include_time": False},
            "to_date": {"date": "2026-06-01T00:00:00Z", "include_time": False},
            "is_overdue": True,
        },
        "created": {"date": "2026-06-14T23:00:00Z", "include_time": True},
        "files": [],
        "notes": "check totals",
        "done": False,
    },
    {
        "id": "rec_3",
        "title": "Plan offsite",
        "status": {"value": "Complete"},
        "priority": 4,
        "category": "ops",
        "tags": [],
        "assigned_to": ["usr_a", "usr_b"],
        "due_date": None,
        "created": "2026-06-16",
        "files": [{"name": "agenda.docx", "type": "word"}],
        "notes": None,
        "done": False,
    },
    {
        "id": "rec_4",
        "title": "Archive old files",
        "status": "Backlog",
        "priority": 1,
        "category": None,
        "tags": ["q1"],
        "assigned_to": [],
        "due_date": {"to_date": "2026-06-20", "is_overdue": False},
        "created": {"date": "2026-06-15T23:59:59Z", "include_time": True},
        "files": None,
        "notes": "",
        "done": False,
    },
]


class FakeClock:
    """Manually advanced unix-time clock."""

    def __init__(self, start: float = T0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRefillProvider:
    """In-memory stand-in for the remote table API."""

    def __init__(self, structure=None, records=None):
        self.structure = TASK_STRUCTURE if structure is None else structure
        self.records = TASK_RECORDS if records is None else records
        self.schema_calls = 0
        self.record_calls = 0

    async def fetch_schema(self, table_id):
        self.schema_calls += 1
        return TableSchema.from_structure(table_id, self.structure)

    async def fetch_records(self, table_id):
        self.record_calls += 1
        return copy.deepcopy(self.records)


def ids(records):
    return [r["id"] for r in records]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}",
        timezone="utc",
        log_format="console",
        cache_ttl=3600,
    )


@pytest.fixture
async def database(settings):
    db = Database(settings)
    await db.startup()
    yield db
    await db.shutdown()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(database, settings, clock):
    return CacheStore(database, settings, clock=clock)


@pytest.fixture
def schema():
    return TableSchema.from_structure(TABLE_ID, TASK_STRUCTURE)


@pytest.fixture
def resolver():
    return DateResolver("utc", today=lambda: TODAY)


@pytest.fixture
def compiler(resolver):
    return FilterCompiler(resolver)


@pytest.fixture
def refill_provider():
    return FakeRefillProvider()


@pytest.fixture
async def cached_tasks(store, schema):
    """Task table mirrored and fresh."""
    await store.refresh(TABLE_ID, copy.deepcopy(TASK_RECORDS), ttl_seconds=3600, schema=schema)
    return store
