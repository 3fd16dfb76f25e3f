import os
import sys

import fakeredis
import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ENV", "dev")
# no seeding and no background consumers; tests drive the pipeline explicitly
os.environ.setdefault("SEED_ENABLED", "false")
os.environ.setdefault("LEAD_IMPORT_WORKERS_ENABLED", "false")

import travelcrm.models  # noqa: E402,F401
from travelcrm.core.redis import get_redis  # noqa: E402
from travelcrm.db.base import Base  # noqa: E402
from travelcrm.db.session import SessionLocal, engine  # noqa: E402
from travelcrm.models.agency import Agency  # noqa: E402

from main import app  # noqa: E402


@pytest.fixture()
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def redis_client():
    # a private server per test; FakeRedis() instances otherwise share state
    client = fakeredis.FakeRedis(server=fakeredis.FakeServer())
    yield client
    client.close()


@pytest.fixture()
def agency(tables) -> Agency:
    # every test session is closed right away: the in-memory engine shares one connection
    db = SessionLocal()
    try:
        agency = Agency(name="Acme Travels", code="ACME", domain="acme.example.com", is_active=True)
        db.add(agency)
        db.commit()
        db.refresh(agency)
        return agency
    finally:
        db.close()


@pytest.fixture()
def client(tables, redis_client):
    app.dependency_overrides[get_redis] = lambda: redis_client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
