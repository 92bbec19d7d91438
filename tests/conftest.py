from biblioteca.endpoints import app
from biblioteca.database import Base, get_db

from datetime import date, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient


SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """
    Override function for the database dependency.

    This replaces the normal get_db() with one that uses the test database.
    FastAPI's dependency injection will call this instead during tests.
    """
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_database():
    """
    Create all tables before each test and drop them afterwards, so every
    test starts from an empty database.
    """
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db_session():
    """Session on the test database for calling services directly."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def today():
    return date.today()


@pytest.fixture
def create_user(client):
    def _create_user(name="Ana", last_name="Gomez", document="30111222"):
        response = client.post(
            "/usuarios/crear",
            json={"name": name, "last_name": last_name, "document": document},
        )
        assert response.status_code == 201
        return response.json()

    return _create_user


@pytest.fixture
def create_book(client):
    def _create_book(title="Rayuela", publisher="Sudamericana"):
        response = client.post(
            "/libros/crear", json={"title": title, "publisher": publisher}
        )
        assert response.status_code == 201
        return response.json()

    return _create_book


@pytest.fixture
def loan_payload(today):
    def _loan_payload(user_id, book_ids, start=None, due=None):
        return {
            "start_date": (start or today).isoformat(),
            "due_date": (due or today + timedelta(days=7)).isoformat(),
            "user_id": user_id,
            "book_ids": book_ids,
        }

    return _loan_payload
