import pytest
from fastapi.testclient import TestClient

from rentsplit.core.config import Settings
from rentsplit.main import create_app


def make_client(**overrides) -> TestClient:
    settings = Settings(_env_file=None, **{"llm_api_keys": "test-key", "llm_model_name": "test/model", **overrides})
    return TestClient(create_app(settings))


@pytest.fixture
def client_factory():
    return make_client


@pytest.fixture
def client():
    return make_client()


@pytest.fixture
def calculation_payload():
    # Shaped the way the browser client sends it
    return {
        "totalRent": 2000,
        "utilities": 300,
        "customExpenses": [{"id": "exp1", "name": "Internet", "amount": 50}],
        "roommates": [
            {"id": "r1", "name": "Alice", "income": 60000, "roomSize": 100},
            {"id": "r2", "name": "Bob", "income": 80000, "roomSize": 200},
        ],
        "currency": "usd",
    }
