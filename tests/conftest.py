"""Shared fixtures: in-memory SQLite schema, a sample organisation, a clean event bus."""

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from salescrm.events import bus
from salescrm.org import ManagerTeamMember, Role, UserProfile

ENTITY_ID = "ent-1"
TEAM_ID = "team-1"
OTHER_TEAM_ID = "team-2"

SCHEMA = [
    """
    CREATE TABLE user_profiles (
        id TEXT PRIMARY KEY, user_id TEXT, full_name TEXT, email TEXT, role TEXT,
        entity_id TEXT, division_id TEXT, manager_id TEXT, is_active INTEGER DEFAULT 1
    )
    """,
    "CREATE TABLE entities (id TEXT PRIMARY KEY, name TEXT, code TEXT, is_active INTEGER DEFAULT 1)",
    "CREATE TABLE divisions (id TEXT PRIMARY KEY, name TEXT, entity_id TEXT)",
    "CREATE TABLE manager_team_members (manager_id TEXT, account_manager_id TEXT)",
    """
    CREATE TABLE opportunities (
        id TEXT PRIMARY KEY, name TEXT, owner_id TEXT, amount REAL, stage TEXT, status TEXT,
        is_won INTEGER DEFAULT 0, is_closed INTEGER DEFAULT 0, expected_close_date TEXT,
        created_at TEXT, customer_name TEXT
    )
    """,
    "CREATE TABLE projects (opportunity_id TEXT, po_amount REAL, created_at TEXT)",
    """
    CREATE TABLE pipeline_items (
        opportunity_id TEXT, cost_of_goods REAL, service_costs REAL, other_expenses REAL, status TEXT
    )
    """,
    """
    CREATE TABLE sales_targets (
        id TEXT PRIMARY KEY, assigned_to TEXT, measure TEXT, amount REAL,
        period_start TEXT, period_end TEXT, created_by TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE sales_activity (
        id TEXT PRIMARY KEY, activity_type TEXT, customer_name TEXT, notes TEXT,
        user_id TEXT, activity_time TEXT, created_at TEXT
    )
    """,
    """
    CREATE TABLE app_users (
        id TEXT PRIMARY KEY, email TEXT, full_name TEXT, password_hash TEXT,
        password_salt TEXT, is_active INTEGER DEFAULT 1, last_login TEXT
    )
    """,
]

ACTIVITY_V2 = """
    CREATE TABLE sales_activity_v2 (
        id TEXT PRIMARY KEY, activity_type TEXT, customer_name TEXT, notes TEXT, mom_text TEXT,
        created_by TEXT, scheduled_at TEXT, created_at TEXT
    )
"""


def _make_engine(with_activity_v2: bool = True):
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    with engine.begin() as conn:
        for ddl in SCHEMA:
            conn.execute(text(ddl))
        if with_activity_v2:
            conn.execute(text(ACTIVITY_V2))
    return engine


def insert_row(engine, table: str, **values):
    columns = ", ".join(values)
    placeholders = ", ".join(f":{key}" for key in values)
    with engine.begin() as conn:
        conn.execute(text(f"INSERT INTO {table} ({columns}) VALUES ({placeholders})"), values)


def make_profile(pid: str, role, entity_id=ENTITY_ID, division_id=TEAM_ID, manager_id=None,
                 is_active=True, name=None) -> UserProfile:
    return UserProfile(
        id=pid,
        user_id=f"u-{pid}",
        full_name=name or pid.upper(),
        email=f"{pid}@example.com",
        role=Role.parse(role),
        entity_id=entity_id,
        division_id=division_id,
        manager_id=manager_id,
        is_active=is_active,
    )


@pytest.fixture
def engine():
    engine = _make_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def legacy_engine():
    """Schema without sales_activity_v2."""
    engine = _make_engine(with_activity_v2=False)
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def clean_bus():
    bus.clear()
    yield
    bus.clear()


@pytest.fixture
def org():
    """
    One entity, two teams.

    team-1: head, manager m1, am a1 (reports to m1), am a2 (no manager),
            inactive am a4 (reports to m1)
    team-2: manager m2, am a3 (reports to m2, also mapped to m1)
    """
    profiles = {
        'admin': make_profile('admin', 'admin', entity_id=None, division_id=None),
        'head': make_profile('head', 'head'),
        'm1': make_profile('m1', 'manager'),
        'a1': make_profile('a1', 'account_manager', manager_id='m1'),
        'a2': make_profile('a2', 'account_manager'),
        'a4': make_profile('a4', 'account_manager', manager_id='m1', is_active=False),
        'm2': make_profile('m2', 'manager', division_id=OTHER_TEAM_ID),
        'a3': make_profile('a3', 'account_manager', division_id=OTHER_TEAM_ID, manager_id='m2'),
    }
    mappings = [ManagerTeamMember(manager_id='m1', account_manager_id='a3')]
    return profiles, mappings


@pytest.fixture
def seeded_engine(engine, org):
    """engine with the org fixture written to user_profiles / mappings."""
    profiles, mappings = org
    for p in profiles.values():
        insert_row(
            engine, 'user_profiles',
            id=p.id, user_id=p.user_id, full_name=p.full_name, email=p.email,
            role=p.role.value if p.role else None, entity_id=p.entity_id,
            division_id=p.division_id, manager_id=p.manager_id, is_active=int(p.is_active),
        )
    for m in mappings:
        insert_row(engine, 'manager_team_members', manager_id=m.manager_id, account_manager_id=m.account_manager_id)
    return engine
