"""Shared fixtures for journal tests."""

import pytest
from datetime import datetime
from types import SimpleNamespace

import mongomock
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from schemas import Goal


class FixedClock:
    """Clock that returns a settable instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def base_time():
    return datetime(2024, 1, 15, 9, 30, 0)


@pytest.fixture
def clock(base_time):
    return FixedClock(base_time)


@pytest.fixture
def db():
    return mongomock.MongoClient()["tradejournal_test"]


@pytest.fixture
def app(db, clock):
    settings = Settings(jwt_secret="test-secret", cors_origins=["http://localhost:3000"])
    return create_app(settings, db=db, clock=clock)


@pytest.fixture
def client(app):
    return TestClient(app)


def signup(client, email="trader@example.com", password="s3cret-pass"):
    resp = client.post("/auth/signup", json={"email": email, "password": password, "name": "Trader"})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def auth_headers(client):
    return signup(client)


@pytest.fixture
def other_headers(client):
    return signup(client, email="someone.else@example.com")


def make_pnl(profit_loss: float):
    return SimpleNamespace(profit_loss=profit_loss)


def make_goal(
    target_value: float = 1000.0,
    current_value: float = 0.0,
    status: str = "active",
    goal_type: str = "profit",
    unit: str = "dollar",
) -> Goal:
    return Goal(
        user_id="user_1",
        title="Monthly profit",
        type=goal_type,
        target_value=target_value,
        current_value=current_value,
        unit=unit,
        status=status,
    )


TRADE_PAYLOAD = {
    "symbol": "aapl",
    "direction": "long",
    "entry_price": 100.0,
    "exit_price": 110.0,
    "shares": 10,
}
