from typing import List


class BookAPIError(Exception):
    """Базовая ошибка API каталога. Переводится в JSON-ответ в app.main."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BookNotFoundError(BookAPIError):
    status_code = 404

    def __init__(self) -> None:
        super().__init__("Book not found")


class MalformedIdError(BookAPIError):
    """Идентификатор в пути не является корректным UUID."""

    status_code = 404

    def __init__(self, value: str) -> None:
        super().__init__(f"Resource not found with id of {value}")
        self.value = value


class DuplicateFieldError(BookAPIError):
    status_code = 400

    def __init__(self, field: str) -> None:
        super().__init__(f"Duplicate field value: {field} already exists.")
        self.field = field


class UploadRejectedError(BookAPIError):
    status_code = 400


class BookValidationError(BookAPIError):
    """Нарушения правил валидации, по одному сообщению на правило."""

    status_code = 400

    def __init__(self, errors: List[str]) -> None:
        super().__init__("Validation Error")
        self.errors = errors
