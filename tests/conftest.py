import pytest
from fastapi.testclient import TestClient

from app import create_app
from database import Base, create_db_engine, create_session_factory


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'users.db'}"


@pytest.fixture
def client(database_url):
    with TestClient(create_app(database_url)) as test_client:
        yield test_client


@pytest.fixture
def db_session(database_url):
    engine = create_db_engine(database_url)
    Base.metadata.create_all(bind=engine)
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def ana():
    return {
        "name": "Ana",
        "email": "a@x.com",
        "secret": "hunter2",
        "phone": "111",
    }
