import pytest
from fastapi.testclient import TestClient

import main
from schemas import PreorderSchedule, Restaurant


@pytest.fixture
def schedule():
    return PreorderSchedule(
        restrictions_enabled=True,
        dates=[{"date": "2025-01-01", "start_time": "11:00", "end_time": "14:00"}],
    )


@pytest.fixture
def client(monkeypatch, schedule):
    """API client with the schedule and restaurant lookups stubbed out."""
    monkeypatch.setattr(main, "get_preorder_schedule", lambda: schedule)
    monkeypatch.setattr(main, "get_restaurant", lambda: Restaurant(platform_fee=10, platform_fee_enabled=True))
    monkeypatch.setattr(main, "get_delivery_fees", lambda: [])
    return TestClient(main.app)
