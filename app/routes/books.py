import json
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from app.crud.book import book_db_crud
from app.crud.query import build_query_spec, project
from app.database import get_db
from app.exceptions import BookNotFoundError, BookValidationError, MalformedIdError
from app.interface.book import BaseBookRouter
from app.models.book import Book as BookModel
from app.schemas import book as schema
from app.tools.logger import setup_logger
from app.uploads import UPLOAD_FIELD, CoverImageStorage
from app.validation import ValidationPipeline, split_genre, validate_book_payload

logger = setup_logger(__name__)


def parse_book_id(book_id: str) -> UUID:
    try:
        return UUID(book_id)
    except ValueError:
        logger.warning(f"Некорректный ID книги: {book_id}")
        raise MalformedIdError(book_id) from None


def serialize(book: BookModel) -> Dict[str, Any]:
    return schema.Book.model_validate(book).model_dump(mode="json", by_alias=True)


async def read_payload(request: Request) -> Tuple[Dict[str, Any], Optional[UploadFile]]:
    """
    Читает тело запроса: JSON, multipart или urlencoded форму.

    Returns:
        Tuple: Поля книги и загруженный файл обложки (если есть)

    Raises:
        BookValidationError: Если JSON некорректен
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except json.JSONDecodeError:
            raise BookValidationError(["body: Invalid JSON"]) from None
        if not isinstance(body, dict):
            raise BookValidationError(["body: Input should be an object"])
        return body, None

    form = await request.form()
    payload: Dict[str, Any] = {}
    upload: Optional[UploadFile] = None
    for key in form.keys():
        values = form.getlist(key)
        if key == UPLOAD_FIELD and isinstance(values[-1], UploadFile):
            upload = values[-1]
        elif key == "genre":
            payload[key] = split_genre([value for value in values if isinstance(value, str)])
        elif isinstance(values[-1], str):
            payload[key] = values[-1]
    return payload, upload


def get_storage(request: Request) -> CoverImageStorage:
    return request.app.state.storage


class DatabaseBookRouter(BaseBookRouter):
    def __init__(self) -> None:
        super().__init__()
        logger.info("Инициализация DatabaseBookRouter")

    def _setup_routes(self) -> None:
        self.router.add_api_route("", self.read_books, methods=["GET"])
        self.router.add_api_route("", self.create_book, methods=["POST"], status_code=201)
        self.router.add_api_route("/{book_id}", self.read_book, methods=["GET"])
        self.router.add_api_route("/{book_id}", self.update_book, methods=["PUT"])
        self.router.add_api_route("/{book_id}", self.delete_book, methods=["DELETE"])
        logger.debug("Пути базы данных определены")

    async def _get_or_404(self, db: AsyncSession, book_id: str) -> BookModel:
        book = await book_db_crud.get(db, id=parse_book_id(book_id))
        if not book:
            logger.warning(f"Книга не найдена по ID: {book_id}")
            raise BookNotFoundError()
        return book

    async def read_books(self, request: Request, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
        spec = build_query_spec(request.query_params)
        books = await book_db_crud.get_multi(db, spec)
        logger.info(f"Извлечено {len(books)} книг")
        return {
            "success": True,
            "count": len(books),
            "data": [project(serialize(book), spec) for book in books],
        }

    async def read_book(self, book_id: str, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
        logger.info(f"Извлечение книги по ID: {book_id}")
        book = await self._get_or_404(db, book_id)
        return {"success": True, "data": serialize(book)}

    async def create_book(self, request: Request, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
        storage = get_storage(request)
        payload, upload = await read_payload(request)

        checked = await (
            ValidationPipeline()
            .add("upload", lambda: storage.check(upload))
            .add("book", lambda: validate_book_payload(payload, "create"))
            .run()
        )
        book_in: schema.BookCreate = checked["book"]
        if checked["upload"] is not None:
            cover_path = await storage.save(checked["upload"])
            book_in = book_in.model_copy(update={"cover_image": cover_path})

        logger.info(f"Создание книги: {book_in.title}")
        created_book = await book_db_crud.create(db, obj_in=book_in)
        return {"success": True, "data": serialize(created_book)}

    async def update_book(self, book_id: str, request: Request,
                          db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
        logger.info(f"Обновление книги по ID: {book_id}")
        book = await self._get_or_404(db, book_id)
        storage = get_storage(request)
        payload, upload = await read_payload(request)

        checked = await (
            ValidationPipeline()
            .add("upload", lambda: storage.check(upload))
            .add("book", lambda: validate_book_payload(payload, "update"))
            .run()
        )
        changes = checked["book"].model_dump(exclude_unset=True)
        if checked["upload"] is not None:
            changes["cover_image"] = await storage.save(checked["upload"])

        updated_book = await book_db_crud.update(db, db_obj=book, changes=changes)
        return {"success": True, "data": serialize(updated_book)}

    async def delete_book(self, book_id: str, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
        logger.info(f"Удаление книги по ID: {book_id}")
        book = await self._get_or_404(db, book_id)
        await book_db_crud.delete(db, db_obj=book)
        return {"success": True, "data": {}}


db_router = DatabaseBookRouter()
