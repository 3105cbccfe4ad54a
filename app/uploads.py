import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from app.exceptions import UploadRejectedError
from app.tools.logger import setup_logger

logger = setup_logger(__name__)

UPLOAD_FIELD = "coverImage"
UPLOAD_URL_PREFIX = "/uploads"
MAX_UPLOAD_SIZE = 5 * 1024 * 1024  # 5 MB
ALLOWED_TYPES = re.compile(r"jpeg|jpg|png|gif")


@dataclass(frozen=True)
class CheckedUpload:
    """Загруженный файл, прошедший проверку, но еще не сохраненный."""

    filename: str
    content_type: str
    content: bytes

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()


class CoverImageStorage:
    """Проверка и сохранение обложек книг на диск."""

    def __init__(self, upload_dir: str, max_size: int = MAX_UPLOAD_SIZE) -> None:
        self.upload_dir = Path(upload_dir)
        self.max_size = max_size
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Инициализация CoverImageStorage в {self.upload_dir}")

    async def check(self, upload: Optional[UploadFile]) -> Optional[CheckedUpload]:
        """
        Проверяет тип и размер загруженного файла, ничего не записывая.

        Args:
            upload: Файл из поля coverImage (или None)

        Returns:
            Optional[CheckedUpload]: Проверенный файл или None, если файла нет

        Raises:
            UploadRejectedError: Неверный тип файла или превышен размер
        """
        if upload is None or not upload.filename:
            return None

        content_type = upload.content_type or ""
        extension = Path(upload.filename).suffix.lower()
        if not (ALLOWED_TYPES.search(content_type) and ALLOWED_TYPES.search(extension)):
            logger.warning(f"Отклонен файл {upload.filename} ({content_type})")
            raise UploadRejectedError("Error: Images only!")

        content = await upload.read(self.max_size + 1)
        if len(content) > self.max_size:
            logger.warning(f"Отклонен файл {upload.filename}: превышен размер {self.max_size} байт")
            raise UploadRejectedError("File too large")

        return CheckedUpload(filename=upload.filename, content_type=content_type, content=content)

    async def save(self, upload: CheckedUpload) -> str:
        """
        Сохраняет файл как coverImage-<время в мс><расширение>.

        Returns:
            str: Относительный URL файла, который пишется в поле coverImage
        """
        name = f"{UPLOAD_FIELD}-{int(time.time() * 1000)}{upload.extension}"
        path = self.upload_dir / name
        await run_in_threadpool(path.write_bytes, upload.content)
        logger.info(f"Обложка сохранена: {path}")
        return f"{UPLOAD_URL_PREFIX}/{name}"
