"""
Test configuration and fixtures
"""

import mongomock
import pytest
from fastapi.testclient import TestClient

import services
from database import Database
from main import create_app


@pytest.fixture(scope="function")
def store():
    """Fresh in-memory MongoDB for each test"""
    db = Database(mongomock.MongoClient(), "condominium_test")
    db.ensure_indexes()
    yield db
    db.close()


@pytest.fixture(scope="function")
def client(store):
    """Test client whose app uses the in-memory store"""
    app = create_app(store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def graphql(client):
    """Run a GraphQL document and return the decoded response body"""

    def execute(query, variables=None):
        response = client.post("/graphql", json={"query": query, "variables": variables or {}})
        assert response.status_code == 200
        return response.json()

    return execute


@pytest.fixture
def sample_building_data():
    return {"name": "Sunset Towers", "address": "123 Sunset Blvd", "total_floors": 15}


@pytest.fixture
def building(store, sample_building_data):
    return services.create_building(store, sample_building_data)


@pytest.fixture
def owner(store, building):
    return services.create_apartment_owner(
        store,
        {
            "name": "John Doe",
            "email": "John.Doe@Example.com",
            "apartment_number": "A101",
            "building_id": str(building["_id"]),
            "phone_number": "+1234567890",
        },
    )
