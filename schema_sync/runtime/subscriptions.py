"""
Подписки поверх сгенерированных функций-запросов.

QuerySubscription адресуется ключом кэша (тег, эндпоинт, path значения,
query параметры) и разделяет результаты через общий QueryCache.
MutationSubscription запускается явно с одним аргументом variables.
Ошибки запроса сохраняются в подписке и пробрасываются вызывающему.
"""

import asyncio
import inspect
import json
import logging
import time
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from simple_singleton import Singleton

from .requester import to_jsonable

logger = logging.getLogger(__name__)

TData = TypeVar("TData")
TVariables = TypeVar("TVariables")

IDLE = "idle"
LOADING = "loading"
SUCCESS = "success"
ERROR = "error"


async def _notify(callback: Optional[Callable], *args):
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


@dataclass
class _CacheEntry:
    key: List[Any]
    data: Any
    updated_at: float


class QueryCache(metaclass=Singleton):
    """Общий на процесс кэш результатов QuerySubscription"""

    def __init__(self):
        self._entries: Dict[str, _CacheEntry] = {}
        self._in_flight: Dict[str, asyncio.Future] = {}

    @staticmethod
    def normalize_key(key: Sequence[Any]) -> List[Any]:
        # None в параметрах не уходит в запрос и не влияет на ключ
        return to_jsonable(list(key), exclude_none=True)

    @classmethod
    def hash_key(cls, key: Sequence[Any]) -> str:
        """Детерминированный хэш ключа: одинаковые значения -> одинаковая строка"""
        return json.dumps(
            cls.normalize_key(key), sort_keys=True, separators=(",", ":"), default=str
        )

    def __contains__(self, key: Sequence[Any]) -> bool:
        return self.hash_key(key) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: Sequence[Any], default: Any = None) -> Any:
        entry = self._entries.get(self.hash_key(key))
        return entry.data if entry else default

    def set(self, key: Sequence[Any], data: Any):
        self._entries[self.hash_key(key)] = _CacheEntry(
            key=self.normalize_key(key), data=data, updated_at=time.monotonic()
        )

    async def fetch(
        self,
        key: Sequence[Any],
        query_fn: Callable[[], Awaitable[Any]],
        stale_time: float = 0.0,
    ) -> Any:
        """
        Данные по ключу: свежие из кэша, иначе через query_fn.
        Одновременные запросы с одинаковым ключом выполняются один раз.
        """
        hashed = self.hash_key(key)

        entry = self._entries.get(hashed)
        if entry and stale_time and time.monotonic() - entry.updated_at < stale_time:
            return entry.data

        task = self._in_flight.get(hashed)
        if task is None:
            task = asyncio.ensure_future(query_fn())
            self._in_flight[hashed] = task
            task.add_done_callback(lambda _: self._in_flight.pop(hashed, None))

        data = await asyncio.shield(task)
        self.set(key, data)
        return data

    def invalidate(self, key_prefix: Sequence[Any] = ()) -> int:
        """Удаление записей, чей ключ начинается с key_prefix; пустой префикс - все"""
        prefix = self.normalize_key(key_prefix)
        stale = [
            hashed
            for hashed, entry in self._entries.items()
            if entry.key[: len(prefix)] == prefix
        ]
        for hashed in stale:
            del self._entries[hashed]
        return len(stale)

    def clear(self):
        self._entries.clear()
        self._in_flight.clear()


class QuerySubscription(Generic[TData]):
    """Подписка чтения, адресуемая ключом кэша"""

    def __init__(
        self,
        query_key: Sequence[Any],
        query_fn: Callable[[], Awaitable[TData]],
        query_options: Optional[Dict[str, Any]] = None,
    ):
        options = dict(query_options or {})
        self.query_key: Tuple[Any, ...] = tuple(query_key)
        self.query_fn = query_fn
        self.enabled: bool = options.pop("enabled", True)
        self.stale_time: float = options.pop("stale_time", 0.0)
        self.cache: QueryCache = options.pop("cache", None) or QueryCache()
        self.options = options

        self.status = IDLE
        self.data: Optional[TData] = self.cache.get(self.query_key)
        self.error: Optional[BaseException] = None

    @property
    def is_loading(self) -> bool:
        return self.status == LOADING

    @property
    def is_success(self) -> bool:
        return self.status == SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status == ERROR

    async def fetch(self) -> Optional[TData]:
        """Загрузка данных (через кэш); у выключенной подписки - текущие данные"""
        if not self.enabled:
            return self.data

        self.status = LOADING
        try:
            data = await self.cache.fetch(self.query_key, self.query_fn, self.stale_time)
        except Exception as exc:
            self.status = ERROR
            self.error = exc
            logger.debug(f"Query {self.query_key!r} failed: {exc!r}")
            raise

        self.status = SUCCESS
        self.data = data
        self.error = None
        return data

    async def refetch(self) -> Optional[TData]:
        """Принудительная загрузка в обход свежести кэша"""
        self.invalidate()
        return await self.fetch()

    def invalidate(self):
        self.cache.invalidate(self.query_key)

    def __repr__(self) -> str:
        return f"QuerySubscription(key={self.query_key!r}, status={self.status!r})"


class MutationSubscription(Generic[TVariables, TData]):
    """Подписка записи: запускается через trigger(variables)"""

    def __init__(
        self,
        mutation_fn: Callable[[TVariables], Awaitable[TData]],
        mutation_options: Optional[Dict[str, Any]] = None,
    ):
        options = dict(mutation_options or {})
        self.mutation_fn = mutation_fn
        self.on_success: Optional[Callable] = options.pop("on_success", None)
        self.on_error: Optional[Callable] = options.pop("on_error", None)
        self.on_settled: Optional[Callable] = options.pop("on_settled", None)
        # Ключи (префиксы) запросов, которые устаревают после успешной мутации
        self.invalidates: List[Sequence[Any]] = list(options.pop("invalidates", []))
        self.cache: QueryCache = options.pop("cache", None) or QueryCache()
        self.options = options

        self.status = IDLE
        self.data: Optional[TData] = None
        self.error: Optional[BaseException] = None
        self.variables: Optional[TVariables] = None

    @property
    def is_loading(self) -> bool:
        return self.status == LOADING

    @property
    def is_success(self) -> bool:
        return self.status == SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status == ERROR

    async def trigger(self, variables: TVariables = None) -> TData:
        self.status = LOADING
        self.variables = variables

        try:
            data = await self.mutation_fn(variables)
        except Exception as exc:
            self.status = ERROR
            self.error = exc
            logger.debug(f"Mutation failed: {exc!r}")
            await _notify(self.on_error, exc, variables)
            await _notify(self.on_settled, None, exc, variables)
            raise

        self.status = SUCCESS
        self.data = data
        self.error = None

        for key_prefix in self.invalidates:
            self.cache.invalidate(key_prefix)

        await _notify(self.on_success, data, variables)
        await _notify(self.on_settled, data, None, variables)
        return data

    def reset(self):
        self.status = IDLE
        self.data = None
        self.error = None
        self.variables = None

    def __repr__(self) -> str:
        return f"MutationSubscription(status={self.status!r})"
