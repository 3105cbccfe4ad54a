"""
End-to-end tests for /api/v1/books through FastAPI's TestClient.

Pattern: Arrange-Act-Assert, one behaviour per test.
"""
from datetime import datetime, timezone
from uuid import uuid4

import pytest

BOOKS_URL = "/api/v1/books"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def count_books(client):
    return client.get(BOOKS_URL).json()["count"]


# ============================================================================
# CREATE
# ============================================================================

class TestCreate:

    def test_returns_submitted_fields_and_defaults(self, client, book_form):
        started = datetime.now(timezone.utc).replace(microsecond=0, tzinfo=None)

        response = client.post(BOOKS_URL, data=book_form)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        book = body["data"]
        assert book["title"] == "The Hobbit"
        assert book["author"] == "J.R.R. Tolkien"
        assert book["isbn"] == "9780547928227"
        assert book["publicationDate"] == "1937-09-21"
        assert book["genre"] == ["Fantasy", "Fiction"]
        assert book["pages"] == 310
        assert book["coverImage"] == "https://via.placeholder.com/150"
        assert book["language"] == "English"
        created_at = datetime.fromisoformat(book["createdAt"]).replace(tzinfo=None)
        assert created_at >= started

    def test_accepts_json_body(self, client, book_form):
        response = client.post(BOOKS_URL, json={**book_form, "pages": 310, "language": "Spanish"})

        assert response.status_code == 201
        assert response.json()["data"]["language"] == "Spanish"

    def test_comma_separated_genre(self, client, book_form):
        book_form["genre"] = "Fantasy,Fiction"

        response = client.post(BOOKS_URL, data=book_form)

        assert response.json()["data"]["genre"] == ["Fantasy", "Fiction"]

    @pytest.mark.parametrize("field, value", [("isbn", "9780547928227"), ("title", "The Hobbit")])
    def test_duplicate_unique_field(self, client, book_form, create_book, field, value):
        create_book(**book_form)
        other = {**book_form, "title": "Another", "isbn": "0441013597", field: value}

        response = client.post(BOOKS_URL, data=other)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": f"Duplicate field value: {field} already exists.",
        }

    def test_validation_errors_are_collected(self, client):
        response = client.post(BOOKS_URL, data={"title": "Only a title", "genre": "Cooking"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation Error"
        assert len(body["errors"]) >= 4

    def test_invalid_genre_is_rejected(self, client, book_form):
        book_form["genre"] = ["Fantasy", "Cooking"]

        response = client.post(BOOKS_URL, data=book_form)

        assert response.status_code == 400
        assert count_books(client) == 0


# ============================================================================
# UPLOADS
# ============================================================================

class TestCoverUpload:

    def test_image_path_becomes_cover_image(self, client, book_form, settings):
        response = client.post(
            BOOKS_URL,
            data=book_form,
            files={"coverImage": ("cover.png", PNG_BYTES, "image/png")},
        )

        assert response.status_code == 201
        cover = response.json()["data"]["coverImage"]
        assert cover.startswith("/uploads/coverImage-")
        assert cover.endswith(".png")
        assert client.get(cover).content == PNG_BYTES

    def test_too_large_image_is_rejected(self, client, book_form):
        big = b"\x00" * (6 * 1024 * 1024)

        response = client.post(
            BOOKS_URL,
            data=book_form,
            files={"coverImage": ("big.jpg", big, "image/jpeg")},
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "File too large"}
        assert count_books(client) == 0

    def test_text_file_is_rejected_before_field_validation(self, client, settings):
        response = client.post(
            BOOKS_URL,
            data={"title": "no other fields"},
            files={"coverImage": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Error: Images only!"}
        assert count_books(client) == 0

    def test_rejected_request_writes_no_file(self, client, book_form, settings, tmp_path):
        book_form["genre"] = ["Cooking"]

        client.post(
            BOOKS_URL,
            data=book_form,
            files={"coverImage": ("cover.png", PNG_BYTES, "image/png")},
        )

        assert list((tmp_path / "uploads").iterdir()) == []


# ============================================================================
# READ
# ============================================================================

class TestRead:

    def test_get_one(self, client, book_form, create_book):
        book = create_book(**book_form)

        response = client.get(f"{BOOKS_URL}/{book['id']}")

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": book}

    def test_missing_book(self, client):
        response = client.get(f"{BOOKS_URL}/{uuid4()}")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Book not found"}

    def test_malformed_id(self, client):
        response = client.get(f"{BOOKS_URL}/not-an-id")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Resource not found with id of not-an-id"}


@pytest.fixture
def catalog(create_book):
    """Four books with distinct page counts."""
    return [
        create_book(title="The Hobbit", author="J.R.R. Tolkien", isbn="9780547928227",
                    publicationDate="1937-09-21", genre=["Fantasy"], pages="310"),
        create_book(title="The Silmarillion", author="J.R.R. Tolkien", isbn="9780618391110",
                    publicationDate="1977-09-15", genre=["Fantasy"], pages="365"),
        create_book(title="Dune", author="Frank Herbert", isbn="0441013597",
                    publicationDate="1965-08-01", genre=["Science Fiction"], pages="412"),
        create_book(title="Gone Girl", author="Gillian Flynn", isbn="9780307588371",
                    publicationDate="2012-06-05", genre=["Thriller", "Mystery"], pages="419"),
    ]


class TestList:

    def test_lists_all_books(self, client, catalog):
        body = client.get(BOOKS_URL).json()

        assert body["success"] is True
        assert body["count"] == 4
        assert len(body["data"]) == 4

    def test_empty_catalog(self, client):
        assert client.get(BOOKS_URL).json() == {"success": True, "count": 0, "data": []}

    def test_sort_and_paginate(self, client, catalog):
        body = client.get(BOOKS_URL, params={"sort": "-pages", "limit": 2, "page": 1}).json()

        assert body["count"] == 2
        assert [book["pages"] for book in body["data"]] == [419, 412]

    def test_second_page(self, client, catalog):
        body = client.get(BOOKS_URL, params={"sort": "-pages", "limit": 2, "page": 2}).json()

        assert [book["pages"] for book in body["data"]] == [365, 310]

    def test_search_is_case_insensitive(self, client, catalog):
        body = client.get(BOOKS_URL, params={"search": "tolkien"}).json()

        assert body["count"] == 2
        assert {book["author"] for book in body["data"]} == {"J.R.R. Tolkien"}

    def test_search_matches_genre(self, client, catalog):
        body = client.get(BOOKS_URL, params={"search": "thriller"}).json()

        assert [book["title"] for book in body["data"]] == ["Gone Girl"]

    def test_search_without_matches(self, client, catalog):
        response = client.get(BOOKS_URL, params={"search": "pratchett"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "count": 0, "data": []}

    def test_empty_search_is_ignored(self, client, catalog):
        assert client.get(BOOKS_URL, params={"search": ""}).json()["count"] == 4

    @pytest.mark.parametrize("term", ["%", "_", "[", "\"", "%tolkien"])
    def test_search_treats_wildcards_literally(self, client, catalog, term):
        response = client.get(BOOKS_URL, params={"search": term})

        assert response.status_code == 200
        assert response.json()["count"] == 0

    def test_search_matches_literal_percent(self, client, create_book, book_form):
        create_book(**{**book_form, "title": "100% Hobbit"})

        assert client.get(BOOKS_URL, params={"search": "100%"}).json()["count"] == 1
        assert client.get(BOOKS_URL, params={"search": "10_%"}).json()["count"] == 0

    def test_comparison_filter(self, client, catalog):
        body = client.get(f"{BOOKS_URL}?pages[gt]=365&sort=pages").json()

        assert [book["pages"] for book in body["data"]] == [412, 419]

    def test_range_filter(self, client, catalog):
        body = client.get(f"{BOOKS_URL}?pages[gte]=365&pages[lte]=412&sort=pages").json()

        assert [book["pages"] for book in body["data"]] == [365, 412]

    def test_equality_filter(self, client, catalog):
        body = client.get(BOOKS_URL, params={"author": "Frank Herbert"}).json()

        assert [book["title"] for book in body["data"]] == ["Dune"]

    def test_genre_filter_matches_membership(self, client, catalog):
        body = client.get(BOOKS_URL, params={"genre": "Mystery"}).json()

        assert [book["title"] for book in body["data"]] == ["Gone Girl"]

    def test_genre_filter_wildcard_matches_nothing(self, client, catalog):
        assert client.get(BOOKS_URL, params={"genre": "%"}).json()["count"] == 0

    def test_date_filter(self, client, catalog):
        body = client.get(f"{BOOKS_URL}?publicationDate[lt]=1970-01-01&sort=publicationDate").json()

        assert [book["title"] for book in body["data"]] == ["The Hobbit", "Dune"]

    def test_unknown_filter_matches_nothing(self, client, catalog):
        response = client.get(BOOKS_URL, params={"colour": "red"})

        assert response.status_code == 200
        assert response.json()["count"] == 0

    def test_field_selection(self, client, catalog):
        body = client.get(BOOKS_URL, params={"fields": "title,pages", "sort": "title", "limit": 1}).json()

        assert body["data"] == [{"id": catalog[2]["id"], "title": "Dune", "pages": 412}]

    def test_page_beyond_integer_range_is_empty(self, client, catalog):
        response = client.get(BOOKS_URL, params={"page": str(10 ** 20)})

        assert response.status_code == 200
        assert response.json() == {"success": True, "count": 0, "data": []}


# ============================================================================
# UPDATE
# ============================================================================

class TestUpdate:

    def test_partial_update_changes_only_sent_field(self, client, book_form, create_book):
        book = create_book(**book_form)

        response = client.put(f"{BOOKS_URL}/{book['id']}", data={"description": "new"})

        assert response.status_code == 200
        updated = response.json()["data"]
        assert updated == {**book, "description": "new"}

    def test_invalid_genre_is_rejected(self, client, book_form, create_book):
        book = create_book(**book_form)

        response = client.put(f"{BOOKS_URL}/{book['id']}", data={"genre": "Cooking"})

        assert response.status_code == 400
        assert client.get(f"{BOOKS_URL}/{book['id']}").json()["data"]["genre"] == ["Fantasy", "Fiction"]

    def test_replacement_cover(self, client, book_form, create_book):
        book = create_book(**book_form)

        response = client.put(
            f"{BOOKS_URL}/{book['id']}",
            files={"coverImage": ("new.gif", b"GIF89a", "image/gif")},
        )

        assert response.status_code == 200
        assert response.json()["data"]["coverImage"].endswith(".gif")

    def test_duplicate_on_update(self, client, book_form, create_book):
        create_book(**book_form)
        other = create_book(**{**book_form, "title": "Dune", "isbn": "0441013597"})

        response = client.put(f"{BOOKS_URL}/{other['id']}", json={"isbn": "9780547928227"})

        assert response.status_code == 400
        assert response.json()["error"] == "Duplicate field value: isbn already exists."

    def test_null_required_field_is_rejected(self, client, book_form, create_book):
        book = create_book(**book_form)

        response = client.put(f"{BOOKS_URL}/{book['id']}", json={"title": None})

        assert response.status_code == 400
        assert response.json()["message"] == "Validation Error"

    def test_missing_book(self, client):
        response = client.put(f"{BOOKS_URL}/{uuid4()}", data={"description": "new"})

        assert response.status_code == 404
        assert response.json()["error"] == "Book not found"


# ============================================================================
# DELETE
# ============================================================================

class TestDelete:

    def test_delete_then_get_is_404(self, client, book_form, create_book):
        book = create_book(**book_form)

        response = client.delete(f"{BOOKS_URL}/{book['id']}")

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": {}}
        assert client.get(f"{BOOKS_URL}/{book['id']}").status_code == 404

    def test_delete_missing_book(self, client):
        book_id = uuid4()

        response = client.delete(f"{BOOKS_URL}/{book_id}")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Book not found"}
        assert client.get(f"{BOOKS_URL}/{book_id}").status_code == 404


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/v1/authors")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Not Found"}
