import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException

from app.config import Settings
from app.database import Database
from app.exceptions import BookAPIError, BookValidationError
from app.routes import books
from app.tools.logger import setup_logger
from app.uploads import UPLOAD_URL_PREFIX, CoverImageStorage

logger = setup_logger(__name__)

API_PREFIX = "/api/v1"


async def book_api_exception_handler(request: Request, exc: BookAPIError) -> JSONResponse:
    """
    Обработчик ошибок API каталога.

    Args:
        request: Запрос, вызвавший исключение
        exc: Типизированная ошибка (не найдено, дубликат, загрузка файла)

    Returns:
        JSONResponse: {"success": false, "error": ...}
    """
    log = logger.warning if exc.status_code < 500 else logger.error
    log(f"{exc.__class__.__name__}: {exc.message} (status_code={exc.status_code})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
    )


async def book_validation_exception_handler(request: Request, exc: BookValidationError) -> JSONResponse:
    """
    Обработчик ошибок валидации полей книги.

    Returns:
        JSONResponse: Все нарушения сразу, по одному сообщению на правило
    """
    logger.error(f"Ошибка валидации: {exc.errors}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": exc.message, "errors": exc.errors},
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Ошибки разбора запроса самим FastAPI приводятся к тому же виду, что и ошибки полей."""
    errors = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    logger.error(f"Ошибка валидации запроса: {errors}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation Error", "errors": errors},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    logger.warning(f"HTTPException: {exc.detail} (status_code={exc.status_code})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Обработчик всех неожиданных исключений.

    Args:
        request: Запрос, вызвавший исключение
        exc: Перехваченное исключение

    Returns:
        JSONResponse: 500 с общим сообщением об ошибке
    """
    logger.error(f"Неожиданная ошибка: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Server Error"},
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Собирает приложение: БД, хранилище обложек, обработчики ошибок, маршруты.

    Args:
        settings: Настройки (по умолчанию читаются из окружения)

    Returns:
        FastAPI: Готовое приложение
    """
    settings = settings or Settings.from_env()
    database = Database(settings.database_url)
    storage = CoverImageStorage(settings.upload_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """
        Жизненный цикл приложения: подключение к БД при старте, закрытие при остановке.
        Без БД процесс не запускается.
        """
        try:
            await database.connect()
        except Exception as e:
            logger.critical(f"Ошибка запуска приложения: {str(e)}")
            raise
        yield
        await database.disconnect()

    app = FastAPI(title="Book Catalog API", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.storage = storage

    app.add_exception_handler(BookValidationError, book_validation_exception_handler)
    app.add_exception_handler(BookAPIError, book_api_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} {response.status_code} {elapsed:.1f} ms")
        return response

    app.include_router(books.db_router.router, prefix=f"{API_PREFIX}/books", tags=["books"])
    app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=settings.upload_dir), name="uploads")
    return app


if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run("app.main:create_app", factory=True, host=settings.host, port=settings.port)
