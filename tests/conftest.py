import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.db import Database
from app.main import create_app


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite://", submit_delay=0)


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings=settings)) as client:
        yield client


@pytest.fixture
def database():
    database = Database("sqlite://")
    yield database
    database.dispose()


@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()
