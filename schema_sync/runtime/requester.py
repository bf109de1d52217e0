"""
Контракт транспорта, через который работают сгенерированные функции.

Requester - любой объект с одним coroutine методом request(options),
который возвращает Response. Ошибочный ответ помечается is_error=True,
а не выбрасывается исключением.
"""

import logging
from enum import Enum
from functools import lru_cache
from typing import (
    Any,
    Dict,
    Iterable,
    Mapping,
    Optional,
    Protocol,
    TypedDict,
    runtime_checkable,
)

from pydantic import BaseModel, ConfigDict, TypeAdapter

logger = logging.getLogger(__name__)


class CallOptions(TypedDict, total=False):
    """Настройки одного вызова, переопределяющие RequestOptions"""

    headers: Dict[str, str]
    timeout: float
    context: Dict[str, Any]


class RequestOptions(BaseModel):
    """Нормализованное описание запроса"""

    model_config = ConfigDict(extra="allow", arbitrary_types_allowed=True)

    method: str
    url: str
    data: Any = None
    params: Any = None
    auth_required: bool = False
    headers: Dict[str, str] = {}
    context: Optional[Dict[str, Any]] = None

    def merge(
        self, overrides: Optional[Mapping[str, Any]] = None, locked: Iterable[str] = ()
    ) -> "RequestOptions":
        """
        Наложение настроек вызова. Ключи из locked (метод, URL, тело и т.п.,
        заданные сгенерированной функцией) не переопределяются; заголовки
        объединяются.
        """
        if not overrides:
            return self

        locked = set(locked)
        values = dict(self)
        for key, value in overrides.items():
            if key in locked:
                logger.debug(f"Call option {key!r} is set by the generated function, ignoring")
                continue
            if key == "headers" and value:
                values["headers"] = {**values.get("headers", {}), **value}
            else:
                values[key] = value

        return RequestOptions(**values)


class Response(BaseModel):
    """Нормализованный ответ транспорта"""

    model_config = ConfigDict(extra="allow", arbitrary_types_allowed=True)

    data: Any = None
    status: int = 0
    status_text: str = ""
    headers: Dict[str, str] = {}
    is_error: bool = False
    config: Optional[RequestOptions] = None


@runtime_checkable
class Requester(Protocol):
    async def request(self, options: RequestOptions) -> Response: ...


class ResponseError(Exception):
    """Транспорт вернул ответ с is_error=True"""

    def __init__(self, response: Response):
        self.response = response
        self.status_code = response.status
        self.response_data = response.data

        config = response.config
        route = f"{config.method.upper()} {config.url}" if config else "request"
        self.message = response.status_text or "Request failed"
        super().__init__(f"[{response.status}] {route}: {self.message}")


@lru_cache(maxsize=None)
def _adapter(type_: Any) -> TypeAdapter:
    return TypeAdapter(type_)


def parse_response(type_: Any, data: Any) -> Any:
    """Валидация данных ответа в объявленный тип (pydantic модели, List[...] и т.п.)"""
    if data is None:
        return None
    return _adapter(type_).validate_python(data)


def to_jsonable(value: Any, exclude_none: bool = False) -> Any:
    """
    pydantic модели и Enum -> JSON-совместимые структуры (по alias, без незаданных полей).
    exclude_none=True дополнительно убирает None из моделей и словарей.
    """
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True, exclude_unset=True)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {
            key: to_jsonable(item, exclude_none)
            for key, item in value.items()
            if not (exclude_none and item is None)
        }
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item, exclude_none) for item in value]
    return value
