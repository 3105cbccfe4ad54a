import re
from datetime import date, datetime
from enum import Enum
from typing import Annotated, List, Optional
from uuid import UUID

from pydantic import AfterValidator, AnyUrl, BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from app.models.book import DEFAULT_COVER_IMAGE, DEFAULT_LANGUAGE


class Genre(str, Enum):
    FICTION = "Fiction"
    NON_FICTION = "Non-Fiction"
    SCIENCE_FICTION = "Science Fiction"
    FANTASY = "Fantasy"
    MYSTERY = "Mystery"
    THRILLER = "Thriller"
    ROMANCE = "Romance"
    HORROR = "Horror"
    BIOGRAPHY = "Biography"
    HISTORY = "History"
    SELF_HELP = "Self-Help"
    CHILDRENS = "Childrens"
    TECHNOLOGY = "Technology"
    SCIENCE = "Science"
    ART = "Art"
    TRAVEL = "Travel"
    POETRY = "Poetry"
    BUSINESS = "Business"


# ISBN-10 (9 цифр + цифра или X) или ISBN-13 (978/979; с дефисами тоже ровно 13 цифр), с необязательным префиксом
ISBN_PATTERN = re.compile(
    r"^(?:ISBN(?:-1[03])?:? ?)?"
    r"(?:[0-9]{9}[0-9X]|97[89][0-9]{10}|(?=(?:[0-9]-?){13}$)97[89]-[0-9]{1,5}-[0-9]{1,7}-[0-9]{1,7}-[0-9])$"
)

_url_adapter = TypeAdapter(AnyUrl)


def _check_isbn(value: str) -> str:
    if not ISBN_PATTERN.match(value):
        raise ValueError("ISBN must be a valid 10 or 13 digit ISBN.")
    return value


def _parse_publication_date(value):
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).date()
        except ValueError:
            raise ValueError("Publication date must be in ISO format (e.g., YYYY-MM-DD).") from None
    return value


def _check_uri(value: str) -> str:
    try:
        _url_adapter.validate_python(value)
    except ValidationError:
        raise ValueError("coverImage must be a valid uri") from None
    return value


Isbn = Annotated[str, AfterValidator(_check_isbn)]
PublicationDate = Annotated[date, BeforeValidator(_parse_publication_date)]
CoverImageUri = Annotated[str, AfterValidator(_check_uri)]
ShortText = Annotated[str, Field(min_length=1, max_length=255)]
Description = Annotated[str, Field(max_length=1000)]
Pages = Annotated[int, Field(ge=1)]
Genres = Annotated[List[Genre], Field(min_length=1)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        use_enum_values=True,
    )


class BookBase(CamelModel):
    title: ShortText
    author: ShortText
    isbn: Isbn
    publication_date: PublicationDate
    genre: Genres
    description: Optional[Description] = None
    publisher: Optional[str] = None
    pages: Optional[Pages] = None
    language: str = DEFAULT_LANGUAGE


class BookCreate(BookBase):
    """Тело запроса на создание книги."""

    cover_image: Optional[CoverImageUri] = None


class BookUpdate(CamelModel):
    """Тело запроса на частичное обновление: все поля необязательны."""

    title: Optional[ShortText] = None
    author: Optional[ShortText] = None
    isbn: Optional[Isbn] = None
    publication_date: Optional[PublicationDate] = None
    genre: Optional[Genres] = None
    cover_image: Optional[CoverImageUri] = None
    description: Optional[Description] = None
    publisher: Optional[str] = None
    pages: Optional[Pages] = None
    language: Optional[str] = None


class BookRecord(BookBase):
    """
    Полная запись книги в том виде, в каком она хранится в БД.

    Используется для повторной проверки объединенного документа при обновлении.
    Здесь coverImage может быть и относительным путем загруженного файла.
    """

    genre: Genres = Field(default_factory=lambda: [Genre.FICTION.value])
    cover_image: str = DEFAULT_COVER_IMAGE


class Book(BookRecord):
    id: UUID
    created_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "6f1c2d4e-8a9b-4c3d-9e2f-1a2b3c4d5e6f",
                "title": "The Hobbit",
                "author": "J.R.R. Tolkien",
                "isbn": "9780547928227",
                "publicationDate": "1937-09-21",
                "genre": ["Fantasy", "Fiction"],
                "coverImage": "/uploads/coverImage-1700000000000.jpg",
                "description": "A hobbit goes on an unexpected journey.",
                "publisher": "George Allen & Unwin",
                "pages": 310,
                "language": "English",
                "createdAt": "2024-01-01T12:00:00+00:00"
            }
        },
    )
