"""Shared fixtures."""

import pytest
from sqlalchemy.pool import StaticPool

from segment_studio.db.database import create_db_engine, create_session_factory, init_db
from segment_studio.core.rules.editor import IdAllocator
from segment_studio.core.rules.models import Combinator, Rule, RuleGroup
from segment_studio.core.rules.registry import default_registry


@pytest.fixture
def registry():
    """Fresh field registry per test."""
    return default_registry()


@pytest.fixture
def allocator():
    return IdAllocator()


@pytest.fixture
def spend_and_visits_tree():
    """root AND[ totalSpend > 10000, visits < 3 ]."""
    return RuleGroup(
        id="root",
        combinator=Combinator.AND,
        children=[
            Rule(id="r1", field="totalSpend", operator="greaterThan", value="10000"),
            Rule(id="r2", field="visits", operator="lessThan", value="3"),
        ],
    )


@pytest.fixture
def db():
    """In-memory SQLite session with all tables created."""
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    TestSession = create_session_factory(engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
