"""
pytest configuration and fixtures for lead distribution tests.
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.models.agent import Agent
from app.models.lead import Lead


@pytest.fixture
def now():
    """A fixed point in time; services take it explicitly so tests control the clock."""
    return datetime(2025, 9, 22, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_agent(db, now):
    """Create agents with strictly increasing created_at so round-robin order is predictable."""
    created = []

    def _make(name=None, status=Agent.STATUS_ACTIVE):
        index = len(created)
        agent = Agent.objects.create(
            name=name or f"Agent {index + 1}",
            email=f"agent{index + 1}@example.com",
            status=status,
        )
        Agent.objects.filter(id=agent.id).update(created_at=now - timedelta(days=30) + timedelta(seconds=index))
        agent.refresh_from_db()
        created.append(agent)
        return agent

    return _make


@pytest.fixture
def make_lead(db):
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        fields.setdefault("name", f"Lead {counter['n']}")
        fields.setdefault("phone", f"+1-555-01{counter['n']:02d}")
        return Lead.objects.create(**fields)

    return _make
