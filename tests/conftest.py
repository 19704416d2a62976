import pytest
from fastapi.testclient import TestClient

from app.db.supabase import get_supabase
from app.main import app
from app.modules.realtime.hub import RoomHub, get_hub
from tests.fakes import FakeGateway, FakeSupabase


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def hub():
    return RoomHub()


@pytest.fixture
def client(supabase, hub):
    app.dependency_overrides[get_supabase] = lambda: supabase
    app.dependency_overrides[get_hub] = lambda: hub
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def legacy_scheme():
    return {
        "name": "Essay",
        "items": [
            {"id": "thesis", "title": "Thesis", "maxPoints": 8, "criteria": ["great", "ok", "meh", "bad"]},
            {"id": "style", "title": "Style", "maxPoints": 4},
        ],
    }


@pytest.fixture
def canonical_scheme():
    return {
        "id": "scheme-1",
        "name": "Lab report",
        "criteria": [
            {
                "id": "c1",
                "title": "Method",
                "levels": [
                    {"id": "excellent", "name": "Excellent", "points": 4},
                    {"id": "good", "name": "Good", "points": 3},
                ],
            },
        ],
    }
