from typing import Any, AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.tools.logger import setup_logger

# Настройка логирования
logger = setup_logger(__name__)

Base: Any = declarative_base()


class Database:
    """
    Дескриптор подключения к БД с явным жизненным циклом.

    Создается при старте приложения (connect) и закрывается при остановке
    (disconnect). Сессии выдаются обработчикам через get_db.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("База данных не подключена. Вызовите connect()")
        return self._engine

    async def connect(self) -> None:
        """
        Создает движок, проверяет соединение и создает таблицы.

        Raises:
            SQLAlchemyError: Если БД недоступна
        """
        kwargs: dict[str, Any] = {"echo": False}
        if not self.url.startswith("sqlite"):
            kwargs.update(pool_pre_ping=True, pool_recycle=3600)

        self._engine = create_async_engine(self.url, **kwargs)
        self._sessionmaker = async_sessionmaker(bind=self._engine, class_=AsyncSession, expire_on_commit=False)
        try:
            async with self._engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            logger.critical(f"Не удалось подключиться к базе данных: {str(e)}")
            await self._engine.dispose()
            self._engine = None
            self._sessionmaker = None
            raise
        logger.info("Подключение к базе данных установлено, таблицы созданы")

    async def disconnect(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Соединение с базой данных закрыто")
        self._engine = None
        self._sessionmaker = None

    def session(self) -> AsyncSession:
        if self._sessionmaker is None:
            raise RuntimeError("База данных не подключена. Вызовите connect()")
        return self._sessionmaker()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Асинхронный генератор сессий БД.

    Yields:
        AsyncSession: Асинхронная сессия для работы с БД
    """
    database: Database = request.app.state.database
    session = database.session()
    logger.debug("Сеанс базы данных создан")
    try:
        yield session
    except SQLAlchemyError as e:
        logger.error(f"Ошибка базы данных: {str(e)}")
        await session.rollback()
        raise
    finally:
        await session.close()
        logger.debug("Сеанс базы данных закрыт")
