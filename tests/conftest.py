import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app

SECRET = "test-secret-0123456789-abcdefghijklmnop"


@pytest.fixture
def settings():
    return Settings(jwt_secret=SECRET, database_url="mongodb://localhost:27017", database_name="problemtracker_test")


@pytest.fixture
def mongo():
    return mongomock.MongoClient()


@pytest.fixture
def db(mongo, settings):
    return mongo[settings.database_name]


@pytest.fixture
def app(settings, mongo):
    return create_app(settings, client=mongo)


@pytest.fixture
def client(app):
    """Create a FastAPI test client with the lifespan running."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def register(client):
    def _register(username="alice", password="s3cret"):
        return client.post("/register", json={"username": username, "password": password})
    return _register


@pytest.fixture
def login(client, register):
    def _login(username="alice", password="s3cret"):
        register(username, password)
        resp = client.post("/login", json={"username": username, "password": password})
        assert resp.status_code == 200
        return resp.json()["token"]
    return _login


@pytest.fixture
def auth_headers(login):
    return {"Authorization": f"Bearer {login()}"}


@pytest.fixture
def sample_problem():
    """A valid problem payload."""
    return {
        "name": "Two Sum",
        "rating": 800,
        "link": "https://codeforces.com/problemset/problem/1/A",
        "submissionLink": "https://codeforces.com/contest/1/submission/123",
        "tags": ["math", "greedy"],
    }
