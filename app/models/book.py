import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base

DEFAULT_COVER_IMAGE = "https://via.placeholder.com/150"
DEFAULT_GENRE = ["Fiction"]
DEFAULT_LANGUAGE = "English"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Book(Base):
    __tablename__ = "books"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    author: Mapped[str] = mapped_column(String(255), index=True)
    isbn: Mapped[str] = mapped_column(String(32), unique=True)
    publication_date: Mapped[date] = mapped_column(index=True)
    genre: Mapped[List[str]] = mapped_column(JSON, default=lambda: list(DEFAULT_GENRE))

    cover_image: Mapped[str] = mapped_column(Text, default=DEFAULT_COVER_IMAGE)
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    publisher: Mapped[Optional[str]] = mapped_column(nullable=True)
    pages: Mapped[Optional[int]] = mapped_column(nullable=True)
    language: Mapped[str] = mapped_column(default=DEFAULT_LANGUAGE)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
