"""
Shared pytest fixtures.

Uses a file SQLite database so no Postgres is required for tests, and a
scripted generator so no Anthropic call is ever made.
"""
import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from weekly_coach.db.base import Base, get_db
from weekly_coach.main import app
from weekly_coach.models.daily_checkin import DailyCheckin
from weekly_coach.models.weekly_summary import WeeklySummary
from weekly_coach.routers.coaching import get_text_generator

SQLITE_URL = "sqlite:///./test_weekly_coach.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Passes language enforcement, validation and (for the progression limiter)
# topic drift. Cites 72, the momentum used by the plateau fixtures and seeds.
VALID_COACHING = {
    "pattern": (
        "You checked in every day and held momentum at 72%. "
        "Sleep and hydration stayed Solid for most of the week."
    ),
    "tension": (
        "Your evenings run on whatever is in the fridge. "
        "Dinner is decided at the last minute most nights."
    ),
    "whyThisMatters": (
        "Your body is ready for a small step up. "
        "One planned dinner gives you a steady base for the next phase. "
        "Each week you repeat it, the habit gets easier to keep."
    ),
    "progression": {
        "text": "Plan and prep three dinners before Monday evening.",
        "type": "advance",
    },
}


class FakeGenerator:
    """
    Scripted stand-in for the Anthropic generator.

    Each call consumes the next scripted item; the last item repeats once the
    script runs out. An Exception instance in the script is raised instead of
    returned.
    """

    def __init__(self, outputs):
        self.outputs = list(outputs)
        self.calls = []

    def generate(self, system_prompt, user_message, config):
        self.calls.append({"system": system_prompt, "user": user_message, "config": config})
        index = min(len(self.calls), len(self.outputs)) - 1
        item = self.outputs[index]
        if isinstance(item, Exception):
            raise item
        return item


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def clean_tables(db):
    """Empty both tables; for tests that look at every stored user."""
    db.query(WeeklySummary).delete()
    db.query(DailyCheckin).delete()
    db.commit()
    yield


@pytest.fixture()
def valid_coaching():
    return json.loads(json.dumps(VALID_COACHING))


@pytest.fixture()
def make_generator():
    def _make(*outputs):
        return FakeGenerator(outputs or [json.dumps(VALID_COACHING)])
    return _make


@pytest.fixture()
def generator(make_generator):
    return make_generator()


@pytest.fixture()
def client(db, generator):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_text_generator] = lambda: generator
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
