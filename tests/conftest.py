"""
Shared fixtures for the API tests.

Each test gets its own SQLite database and upload directory under tmp_path,
so tests never see each other's books or files.
"""
import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app

BOOKS_URL = "/api/v1/books"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}",
        upload_dir=str(tmp_path / "uploads"),
    )


@pytest.fixture
def client(settings):
    """TestClient with startup/shutdown events (database connect/disconnect)."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def book_form():
    """A valid create payload, as multipart form fields."""
    return {
        "title": "The Hobbit",
        "author": "J.R.R. Tolkien",
        "isbn": "9780547928227",
        "publicationDate": "1937-09-21",
        "genre": ["Fantasy", "Fiction"],
        "description": "A hobbit goes on an unexpected journey.",
        "publisher": "George Allen & Unwin",
        "pages": "310",
    }


@pytest.fixture
def create_book(client):
    """Create a book through the API and return its JSON representation."""
    def _create(**fields):
        response = client.post(BOOKS_URL, data=fields)
        assert response.status_code == 201, response.json()
        return response.json()["data"]
    return _create
