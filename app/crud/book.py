from typing import Any, Dict, List, Optional, Type
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.crud.query import QuerySpec, to_statement
from app.exceptions import DuplicateFieldError
from app.interface.book import BaseBookRepository
from app.models.book import Book as BookModel
from app.schemas.book import Book, BookCreate
from app.tools.logger import setup_logger
from app.validation import validate_record

# Настройка логирования
logger = setup_logger(__name__)

UNIQUE_FIELDS = ("isbn", "title")


def duplicate_field(error: IntegrityError) -> Optional[str]:
    """
    Определяет, какое уникальное поле нарушено.

    Разбирает текст ошибки драйвера: SQLite пишет "UNIQUE constraint failed: books.title",
    PostgreSQL - 'duplicate key value violates unique constraint "books_title_key"'.

    Returns:
        Optional[str]: Имя поля или None, если это не нарушение уникальности
    """
    message = str(error.orig)
    lowered = message.lower()
    if "unique" not in lowered and "duplicate" not in lowered:
        return None
    for field in UNIQUE_FIELDS:
        if f"books.{field}" in message or f"books_{field}" in message or f"({field})" in message:
            return field
    return None


class BookRepository(BaseBookRepository[BookModel, BookCreate, QuerySpec]):
    """Репозиторий для работы с книгами в базе данных."""

    def __init__(self, model: Type[BookModel]) -> None:
        """
        Инициализация репозитория.

        Args:
            model: SQLAlchemy модель книги
        """
        self.model: Type[BookModel] = model
        logger.info(f"Инициализация BookRepository для модели: {model.__name__}")

    async def get(self, db: AsyncSession, id: UUID) -> Optional[BookModel]:
        """
        Получить книгу по ID.

        Args:
            db: Асинхронная сессия БД
            id: Идентификатор книги

        Returns:
            Optional[BookModel]: Найденная книга или None

        Raises:
            SQLAlchemyError: В случае ошибки БД
        """
        try:
            logger.debug(f"Извлечение книги с ID: {id}")
            result = await db.execute(select(self.model).filter(self.model.id == id))
            book = result.scalars().first()
            if not book:
                logger.debug(f"Книга не найдена с ID: {id}")
            return book
        except SQLAlchemyError as e:
            logger.error(f"Ошибка извлечения книги {id}: {str(e)}", exc_info=True)
            raise

    async def get_multi(self, db: AsyncSession, spec: QuerySpec) -> List[BookModel]:
        """
        Выполнить спецификацию запроса одним SELECT.

        Args:
            db: Асинхронная сессия БД
            spec: Спецификация поиска, фильтров, сортировки и пагинации

        Returns:
            List[BookModel]: Список книг

        Raises:
            SQLAlchemyError: В случае ошибки БД
        """
        try:
            logger.debug(f"Извлечение книг, пропуск: {spec.skip}, ограничение: {spec.limit}")
            result = await db.execute(to_statement(spec))
            books = list(result.scalars().all())
            logger.debug(f"Найдено {len(books)} книг")
            return books
        except SQLAlchemyError as e:
            logger.error(f"Ошибка извлечения книг: {str(e)}", exc_info=True)
            raise

    async def _commit(self, db: AsyncSession, action: str) -> None:
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            field = duplicate_field(e)
            if field is None:
                logger.error(f"Ошибка целостности при {action}: {str(e)}", exc_info=True)
                raise
            logger.warning(f"Дубликат поля {field} при {action}")
            raise DuplicateFieldError(field) from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Ошибка БД при {action}: {str(e)}", exc_info=True)
            raise

    async def create(self, db: AsyncSession, *, obj_in: BookCreate) -> BookModel:
        """
        Создать новую книгу.

        Необязательные поля, не переданные клиентом, получают значения по умолчанию модели.

        Args:
            db: Асинхронная сессия БД
            obj_in: Проверенные данные книги

        Returns:
            BookModel: Созданная книга

        Raises:
            DuplicateFieldError: Если title или isbn уже существуют
            SQLAlchemyError: В случае ошибки БД
        """
        logger.info(f"Создание новой книги: {obj_in.title}")
        db_obj = self.model(**obj_in.model_dump(exclude_none=True))
        db.add(db_obj)
        await self._commit(db, "создании книги")
        await db.refresh(db_obj)
        logger.info(f"Создана книга с ID: {db_obj.id}")
        return db_obj

    async def update(self, db: AsyncSession, *, db_obj: BookModel, changes: Dict[str, Any]) -> BookModel:
        """
        Обновить существующую книгу.

        Изменения накладываются на сохраненную запись, и объединенная запись
        проверяется заново по тем же правилам, что и при создании.

        Args:
            db: Асинхронная сессия БД
            db_obj: Книга из БД
            changes: Изменяемые поля (имена атрибутов модели)

        Returns:
            BookModel: Обновленная книга

        Raises:
            BookValidationError: Если объединенная запись невалидна
            DuplicateFieldError: Если title или isbn уже существуют
            SQLAlchemyError: В случае ошибки БД
        """
        logger.info(f"Обновление книги с ID: {db_obj.id}, поля: {list(changes)}")
        current = Book.model_validate(db_obj).model_dump(exclude={"id", "created_at"})
        record = validate_record({**current, **changes})

        for field, value in record.model_dump().items():
            setattr(db_obj, field, value)

        await self._commit(db, "обновлении книги")
        await db.refresh(db_obj)
        logger.info(f"Данные книги с ID {db_obj.id} обновлены")
        return db_obj

    async def delete(self, db: AsyncSession, *, db_obj: BookModel) -> None:
        """
        Удалить книгу.

        Args:
            db: Асинхронная сессия БД
            db_obj: Книга из БД

        Raises:
            SQLAlchemyError: В случае ошибки БД
        """
        logger.info(f"Удаление книги с идентификатором: {db_obj.id}")
        await db.delete(db_obj)
        await self._commit(db, "удалении книги")
        logger.info(f"Книга с ID: {db_obj.id} удалена")


book_db_crud = BookRepository(model=BookModel)
