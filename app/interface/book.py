from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, TypeVar

from fastapi import APIRouter, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.tools.logger import setup_logger

# Настройка логирования
logger = setup_logger(__name__)

# Аннотации типов
ModelType = TypeVar('ModelType')  # Тип SQLAlchemy модели
CreateSchemaType = TypeVar('CreateSchemaType', bound=BaseModel)
QuerySpecType = TypeVar('QuerySpecType')


class BaseBookRouter(ABC):
    """Абстрактный базовый класс для книжных роутеров"""

    def __init__(self) -> None:
        """Инициализация роутера с настройкой маршрутов"""
        self.router: APIRouter = APIRouter()
        logger.info(f"Инициализация {self.__class__.__name__}")
        self._setup_routes()
        logger.debug("Настройка маршрутов завершена")

    @abstractmethod
    def _setup_routes(self) -> None:
        """Настройка маршрутов API"""

    @abstractmethod
    async def read_books(self, request: Request, db: AsyncSession) -> Dict[str, Any]:
        """
        Получить список книг с поиском, фильтрами, сортировкой и пагинацией

        Returns:
            Dict[str, Any]: {"success", "count", "data"}
        """

    @abstractmethod
    async def read_book(self, book_id: str, db: AsyncSession) -> Dict[str, Any]:
        """
        Получить книгу по ID

        Raises:
            MalformedIdError: Если ID некорректен
            BookNotFoundError: Если книга не найдена
        """

    @abstractmethod
    async def create_book(self, request: Request, db: AsyncSession) -> Dict[str, Any]:
        """
        Создать книгу (поля формы + необязательная обложка)

        Raises:
            UploadRejectedError: Если файл не прошел проверку
            BookValidationError: Если данные невалидны
            DuplicateFieldError: Если title или isbn уже заняты
        """

    @abstractmethod
    async def update_book(self, book_id: str, request: Request, db: AsyncSession) -> Dict[str, Any]:
        """
        Частично обновить книгу

        Raises:
            BookNotFoundError: Если книга не найдена
            UploadRejectedError: Если файл не прошел проверку
            BookValidationError: Если данные невалидны
            DuplicateFieldError: Если title или isbn уже заняты
        """

    @abstractmethod
    async def delete_book(self, book_id: str, db: AsyncSession) -> Dict[str, Any]:
        """
        Удалить книгу

        Raises:
            BookNotFoundError: Если книга не найдена
        """


class BaseBookRepository(Generic[ModelType, CreateSchemaType, QuerySpecType], ABC):
    """Абстрактный базовый класс для репозитория книг"""

    @abstractmethod
    async def get(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        """
        Получить книгу по ID

        Returns:
            Optional[ModelType]: Найденная книга или None
        """

    @abstractmethod
    async def get_multi(self, db: AsyncSession, spec: QuerySpecType) -> List[ModelType]:
        """
        Выполнить собранную спецификацию запроса

        Returns:
            List[ModelType]: Список книг
        """

    @abstractmethod
    async def create(self, db: AsyncSession, *, obj_in: CreateSchemaType) -> ModelType:
        """
        Создать новую книгу

        Raises:
            DuplicateFieldError: Нарушена уникальность поля
        """

    @abstractmethod
    async def update(self, db: AsyncSession, *, db_obj: ModelType, changes: Dict[str, Any]) -> ModelType:
        """
        Применить изменения к книге с повторной проверкой полей

        Raises:
            BookValidationError: Объединенная запись невалидна
            DuplicateFieldError: Нарушена уникальность поля
        """

    @abstractmethod
    async def delete(self, db: AsyncSession, *, db_obj: ModelType) -> None:
        """Удалить книгу"""
