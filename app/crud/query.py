"""
Построение запроса списка книг из параметров строки запроса.

Спецификация запроса (QuerySpec) неизменяема: каждый из пяти шагов
(поиск, фильтр, сортировка, выбор полей, пагинация) возвращает новую
спецификацию. В SQL она превращается один раз, в to_statement.
"""
import re
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import Select, String, and_, cast, false, or_, select

from app.models.book import Book as BookModel
from app.tools.logger import setup_logger

logger = setup_logger(__name__)

RESERVED_PARAMS = frozenset({"search", "sort", "fields", "page", "limit"})
OPERATORS = ("gt", "gte", "lt", "lte")
DEFAULT_SORT: Tuple[Tuple[str, bool], ...] = (("createdAt", True),)
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 25
# Наибольшее значение OFFSET/LIMIT, которое принимают драйверы (BIGINT)
MAX_ROWS = 2 ** 63 - 1

# Публичное имя поля -> атрибут модели
FIELDS: Dict[str, str] = {
    "id": "id",
    "title": "title",
    "author": "author",
    "isbn": "isbn",
    "publicationDate": "publication_date",
    "genre": "genre",
    "coverImage": "cover_image",
    "description": "description",
    "publisher": "publisher",
    "pages": "pages",
    "language": "language",
    "createdAt": "created_at",
}
SEARCH_FIELDS = ("title", "author", "genre")
# Служебные символы JSON-текста списка жанров; в названиях жанров их нет
JSON_MARKUP = frozenset('[]",')
UNSORTABLE = frozenset({"genre"})

_BRACKET = re.compile(r"^(?P<field>[^\[\]]+)\[(?P<op>[^\[\]]+)\]$")


@dataclass(frozen=True)
class Filter:
    field: str
    op: str  # "eq", "gt", "gte", "lt", "lte" или неизвестный оператор
    value: str


@dataclass(frozen=True)
class QuerySpec:
    search_terms: Tuple[str, ...] = ()
    filters: Tuple[Filter, ...] = ()
    sort: Tuple[Tuple[str, bool], ...] = DEFAULT_SORT
    fields: Optional[Tuple[str, ...]] = None
    exclude: Tuple[str, ...] = ()
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return min((self.page - 1) * self.limit, MAX_ROWS)


def apply_search(spec: QuerySpec, params: Mapping[str, str]) -> QuerySpec:
    term = (params.get("search") or "").strip()
    if not term:
        return spec
    return replace(spec, search_terms=tuple(term.split()))


def apply_filter(spec: QuerySpec, params: Mapping[str, str]) -> QuerySpec:
    filters: Dict[Tuple[str, str], Filter] = {}
    for key, value in params.items():
        if key in RESERVED_PARAMS:
            continue
        match = _BRACKET.match(key)
        if match:
            item = Filter(match.group("field"), match.group("op"), value)
        else:
            item = Filter(key, "eq", value)
        filters[(item.field, item.op)] = item
    if not filters:
        return spec
    return replace(spec, filters=spec.filters + tuple(filters.values()))


def apply_sort(spec: QuerySpec, params: Mapping[str, str]) -> QuerySpec:
    raw = params.get("sort")
    if not raw:
        return spec
    sort: List[Tuple[str, bool]] = []
    for part in raw.split(","):
        part = part.strip()
        descending = part.startswith("-")
        name = part.lstrip("-")
        if name in FIELDS and name not in UNSORTABLE:
            sort.append((name, descending))
    return replace(spec, sort=tuple(sort) or DEFAULT_SORT)


def apply_fields(spec: QuerySpec, params: Mapping[str, str]) -> QuerySpec:
    raw = params.get("fields")
    if not raw:
        return spec
    names = [part.strip() for part in raw.split(",") if part.strip()]
    excluded = tuple(name[1:] for name in names if name.startswith("-"))
    included = tuple(name for name in names if not name.startswith("-"))
    if included:
        return replace(spec, fields=included)
    return replace(spec, exclude=excluded)


def _positive_int(value: Optional[str], default: int) -> int:
    try:
        number = int(value) if value is not None else default
    except ValueError:
        return default
    if number < 1:
        return default
    return min(number, MAX_ROWS)


def apply_paginate(spec: QuerySpec, params: Mapping[str, str]) -> QuerySpec:
    return replace(
        spec,
        page=_positive_int(params.get("page"), DEFAULT_PAGE),
        limit=_positive_int(params.get("limit"), DEFAULT_LIMIT),
    )


PIPELINE = (apply_search, apply_filter, apply_sort, apply_fields, apply_paginate)


def build_query_spec(params: Mapping[str, str], spec: Optional[QuerySpec] = None) -> QuerySpec:
    """
    Собирает спецификацию запроса из параметров строки запроса.

    Args:
        params: Параметры запроса (для повторяющихся ключей берется последнее значение)
        spec: Начальная спецификация (по умолчанию "все книги")

    Returns:
        QuerySpec: Итоговая спецификация
    """
    spec = spec or QuerySpec()
    for step in PIPELINE:
        spec = step(spec, params)
    logger.debug(f"Спецификация запроса: {spec}")
    return spec


def _column(name: str):
    return getattr(BookModel, FIELDS[name])


def _genre_text():
    return cast(BookModel.genre, String)


def _coerce(name: str, value: str) -> Any:
    python_type = _column(name).type.python_type
    return TypeAdapter(python_type).validate_python(value)


def _filter_clause(item: Filter):
    if item.field not in FIELDS or item.op not in ("eq",) + OPERATORS:
        # Неизвестные поля и операторы не отклоняются: просто ничего не находят
        return false()

    if item.field == "genre":
        if item.op != "eq":
            return false()
        return _genre_text().contains(f'"{item.value}"', autoescape=True)

    try:
        value = _coerce(item.field, item.value)
    except (ValidationError, NotImplementedError):
        return false()

    column = _column(item.field)
    match item.op:
        case "gt":
            return column > value
        case "gte":
            return column >= value
        case "lt":
            return column < value
        case "lte":
            return column <= value
        case _:
            return column == value


def _term_clauses(term: str):
    for name in SEARCH_FIELDS:
        if name == "genre":
            # Жанры ищутся по JSON-тексту: разметка списка не должна совпадать
            if JSON_MARKUP.isdisjoint(term):
                yield _genre_text().icontains(term, autoescape=True)
        else:
            yield _column(name).icontains(term, autoescape=True)


def _search_clause(terms: Iterable[str]):
    return or_(*(clause for term in terms for clause in _term_clauses(term)))


def to_statement(spec: QuerySpec) -> Select:
    """Превращает спецификацию в один SELECT по таблице книг."""
    statement = select(BookModel)
    if spec.search_terms:
        statement = statement.where(_search_clause(spec.search_terms))
    if spec.filters:
        statement = statement.where(and_(*(_filter_clause(item) for item in spec.filters)))
    for name, descending in spec.sort:
        column = _column(name)
        statement = statement.order_by(column.desc() if descending else column.asc())
    return statement.offset(spec.skip).limit(spec.limit)


def project(document: Dict[str, Any], spec: QuerySpec) -> Dict[str, Any]:
    """Оставляет в документе только выбранные поля (id возвращается всегда)."""
    if spec.fields is not None:
        return {key: value for key, value in document.items() if key == "id" or key in spec.fields}
    if spec.exclude:
        return {key: value for key, value in document.items() if key == "id" or key not in spec.exclude}
    return document
