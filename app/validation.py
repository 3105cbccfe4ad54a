import inspect
from typing import Any, Awaitable, Callable, Dict, List, Literal, Mapping, Sequence, Type, Union

from pydantic import BaseModel, ValidationError

from app.exceptions import BookValidationError
from app.schemas.book import BookCreate, BookRecord, BookUpdate
from app.tools.logger import setup_logger

logger = setup_logger(__name__)

Mode = Literal["create", "update"]

_SCHEMAS: Dict[str, Type[BaseModel]] = {
    "create": BookCreate,
    "update": BookUpdate,
}


def format_errors(exc: ValidationError) -> List[str]:
    """
    Превращает ошибки pydantic в список сообщений вида "<поле>: <сообщение>".

    Args:
        exc: Исключение валидации pydantic

    Returns:
        List[str]: По одному сообщению на каждое нарушенное правило
    """
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "body"
        message = error["msg"].removeprefix("Value error, ")
        messages.append(f"{field}: {message}")
    return messages


def validate_book_payload(payload: Mapping[str, Any], mode: Mode) -> Union[BookCreate, BookUpdate]:
    """
    Проверяет тело запроса по правилам полей книги.

    Проверка не останавливается на первой ошибке: собираются все нарушения.

    Args:
        payload: Данные книги из запроса
        mode: "create" (обязательные поля обязательны) или "update" (все поля необязательны)

    Returns:
        BookCreate | BookUpdate: Типизированное тело запроса

    Raises:
        BookValidationError: Если нарушено хотя бы одно правило
    """
    schema = _SCHEMAS[mode]
    try:
        return schema.model_validate(dict(payload))
    except ValidationError as e:
        errors = format_errors(e)
        logger.warning(f"Ошибка валидации ({mode}): {errors}")
        raise BookValidationError(errors) from e


def validate_record(document: Mapping[str, Any]) -> BookRecord:
    """Повторная проверка объединенного документа перед сохранением."""
    try:
        return BookRecord.model_validate(dict(document))
    except ValidationError as e:
        errors = format_errors(e)
        logger.warning(f"Ошибка валидации объединенной записи: {errors}")
        raise BookValidationError(errors) from e


def split_genre(values: Sequence[str]) -> List[str]:
    """Жанры из формы: повторяющееся поле или одно значение через запятую."""
    genres: List[str] = []
    for value in values:
        genres.extend(part.strip() for part in value.split(",") if part.strip())
    return genres


Step = Callable[[], Union[Any, Awaitable[Any]]]


class ValidationPipeline:
    """
    Упорядоченная цепочка проверок, выполняемых до основной логики обработчика.

    Каждый шаг либо возвращает результат, либо бросает типизированное
    исключение, и следующие шаги уже не выполняются.
    """

    def __init__(self) -> None:
        self._steps: List[tuple[str, Step]] = []

    def add(self, name: str, step: Step) -> "ValidationPipeline":
        self._steps.append((name, step))
        return self

    async def run(self) -> Dict[str, Any]:
        results: Dict[str, Any] = {}
        for name, step in self._steps:
            logger.debug(f"Шаг проверки: {name}")
            result = step()
            if inspect.isawaitable(result):
                result = await result
            results[name] = result
        return results
