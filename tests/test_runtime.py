"""
Тесты поддержки времени выполнения: контракт requester, кэш и подписки
"""

import asyncio
from contextlib import asynccontextmanager
from enum import Enum
from typing import List, Optional

import pytest
from aiohttp import test_utils, web
from pydantic import BaseModel, ConfigDict, Field

from schema_sync.runtime import (
    BASE_URL_ENV,
    DefaultRequester,
    MutationSubscription,
    QueryCache,
    QuerySubscription,
    RequestOptions,
    Requester,
    Response,
    ResponseError,
    create_default_requester,
    parse_response,
    to_jsonable,
)


class Color(str, Enum):
    RED = "red"


class Pet(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pet_id: str = Field(..., alias="pet-id")
    color: Optional[Color] = None
    name: Optional[str] = None


class TestRequestContract:
    """Тесты RequestOptions, Response и вспомогательных функций"""

    def test_merge_respects_locked_keys(self):
        """Заблокированные ключи не переопределяются, заголовки объединяются"""
        options = RequestOptions(method="GET", url="/pets/1", headers={"A": "1"})
        merged = options.merge(
            {"url": "/other", "headers": {"B": "2"}, "timeout": 5},
            locked=("method", "url", "auth_required"),
        )

        assert merged.url == "/pets/1"
        assert merged.headers == {"A": "1", "B": "2"}
        assert merged.timeout == 5
        assert options.headers == {"A": "1"}

    def test_merge_without_overrides(self):
        """Без настроек вызова возвращается тот же объект"""
        options = RequestOptions(method="GET", url="/pets")

        assert options.merge(None) is options

    def test_parse_response(self):
        """Валидация ответа в объявленный тип"""
        pets = parse_response(List[Pet], [{"pet-id": "1", "color": "red"}])

        assert pets[0].pet_id == "1"
        assert pets[0].color is Color.RED
        assert parse_response(Pet, None) is None

    def test_to_jsonable(self):
        """Модели сериализуются по alias без незаданных полей"""
        value = {"pets": [Pet(pet_id="1", color=Color.RED)], "color": Color.RED}

        assert to_jsonable(value) == {
            "pets": [{"pet-id": "1", "color": "red"}],
            "color": "red",
        }

    def test_response_error(self):
        """Тест исключения ошибочного ответа"""
        response = Response(
            data={"detail": "nope"},
            status=404,
            status_text="Not Found",
            is_error=True,
            config=RequestOptions(method="get", url="/pets/1"),
        )
        error = ResponseError(response)

        assert error.status_code == 404
        assert error.response_data == {"detail": "nope"}
        assert str(error) == "[404] GET /pets/1: Not Found"

    def test_default_requester_satisfies_protocol(self):
        """DefaultRequester реализует контракт Requester"""
        assert isinstance(create_default_requester(), Requester)


class TestQueryCache:
    """Тесты общего кэша запросов"""

    def test_singleton(self):
        """Кэш один на процесс"""
        assert QueryCache() is QueryCache()

    def test_hash_key_is_deterministic(self):
        """Одинаковые значения дают одинаковый хэш независимо от порядка ключей"""
        cache = QueryCache()

        assert cache.hash_key(["pets", {"a": 1, "b": 2}]) == cache.hash_key(
            ("pets", {"b": 2, "a": 1})
        )
        assert cache.hash_key(["pets", Pet(pet_id="1")]) == cache.hash_key(
            ["pets", {"pet-id": "1"}]
        )
        assert cache.hash_key(["pets", 1]) != cache.hash_key(["pets", "1"])

    def test_hash_key_ignores_none(self):
        """Явно переданный None не меняет ключ запроса"""
        cache = QueryCache()

        assert cache.hash_key(["pets", Pet(pet_id="1")]) == cache.hash_key(
            ["pets", Pet(pet_id="1", name=None)]
        )
        assert cache.hash_key(["pets", {"limit": 10}]) == cache.hash_key(
            ["pets", {"limit": 10, "offset": None}]
        )
        assert to_jsonable(Pet(pet_id="1", name=None)) == {"pet-id": "1", "name": None}

    def test_invalidate_by_prefix(self):
        """Инвалидация по префиксу ключа"""
        cache = QueryCache()
        cache.set(["pets", "PetsById", "1"], 1)
        cache.set(["pets", "ListPets"], 2)
        cache.set(["owners", "GetOwner"], 3)

        assert cache.invalidate(["pets"]) == 2
        assert ["owners", "GetOwner"] in cache
        assert len(cache) == 1
        assert cache.invalidate() == 1

    @pytest.mark.asyncio
    async def test_concurrent_fetch_deduplicated(self):
        """Одновременные запросы с одним ключом выполняются один раз"""
        cache = QueryCache()
        calls = []

        async def query_fn():
            calls.append(1)
            await asyncio.sleep(0.01)
            return len(calls)

        results = await asyncio.gather(
            cache.fetch(["pets"], query_fn), cache.fetch(["pets"], query_fn)
        )

        assert results == [1, 1]
        assert len(calls) == 1
        assert cache.get(["pets"]) == 1

    @pytest.mark.asyncio
    async def test_stale_time(self):
        """Свежие данные берутся из кэша"""
        cache = QueryCache()
        calls = []

        async def query_fn():
            calls.append(1)
            return len(calls)

        assert await cache.fetch(["pets"], query_fn, stale_time=60) == 1
        assert await cache.fetch(["pets"], query_fn, stale_time=60) == 1
        assert await cache.fetch(["pets"], query_fn) == 2


class TestSubscriptions:
    """Тесты QuerySubscription и MutationSubscription"""

    @pytest.mark.asyncio
    async def test_query_success(self):
        """Успешная загрузка"""

        async def query_fn():
            return {"id": "1"}

        subscription = QuerySubscription(("pets", "PetsById", "1"), query_fn)
        assert subscription.status == "idle"

        data = await subscription.fetch()

        assert data == {"id": "1"}
        assert subscription.is_success
        assert subscription.data == {"id": "1"}
        # Новая подписка с тем же ключом видит данные из кэша
        assert QuerySubscription(("pets", "PetsById", "1"), query_fn).data == {"id": "1"}

    @pytest.mark.asyncio
    async def test_query_error(self):
        """Ошибка сохраняется и пробрасывается"""

        async def query_fn():
            raise ValueError("boom")

        subscription = QuerySubscription(("pets",), query_fn)

        with pytest.raises(ValueError):
            await subscription.fetch()

        assert subscription.is_error
        assert isinstance(subscription.error, ValueError)

    @pytest.mark.asyncio
    async def test_query_disabled(self):
        """Выключенная подписка не выполняет запрос"""
        calls = []

        async def query_fn():
            calls.append(1)

        subscription = QuerySubscription(("pets",), query_fn, {"enabled": False})

        assert await subscription.fetch() is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_refetch_bypasses_stale_time(self):
        """refetch игнорирует свежесть кэша"""
        calls = []

        async def query_fn():
            calls.append(1)
            return len(calls)

        subscription = QuerySubscription(("pets",), query_fn, {"stale_time": 60})

        assert await subscription.fetch() == 1
        assert await subscription.fetch() == 1
        assert await subscription.refetch() == 2

    @pytest.mark.asyncio
    async def test_mutation_callbacks_and_invalidation(self):
        """Колбэки мутации и инвалидация связанных запросов"""
        QueryCache().set(["pets", "ListPets"], [])
        events = []

        async def mutation_fn(variables):
            return {"created": variables}

        async def on_success(data, variables):
            events.append(("success", data, variables))

        def on_settled(data, error, variables):
            events.append(("settled", data, error))

        mutation = MutationSubscription(
            mutation_fn,
            {"on_success": on_success, "on_settled": on_settled, "invalidates": [["pets"]]},
        )
        result = await mutation.trigger("Rex")

        assert result == {"created": "Rex"}
        assert mutation.is_success
        assert mutation.variables == "Rex"
        assert events == [
            ("success", {"created": "Rex"}, "Rex"),
            ("settled", {"created": "Rex"}, None),
        ]
        assert ["pets", "ListPets"] not in QueryCache()

    @pytest.mark.asyncio
    async def test_mutation_error(self):
        """Ошибка мутации: колбэк on_error, статус error и проброс исключения"""
        errors = []

        async def mutation_fn(variables):
            raise RuntimeError("failed")

        mutation = MutationSubscription(
            mutation_fn, {"on_error": lambda error, variables: errors.append(error)}
        )

        with pytest.raises(RuntimeError):
            await mutation.trigger()

        assert mutation.is_error
        assert len(errors) == 1

        mutation.reset()
        assert mutation.status == "idle"
        assert mutation.error is None


async def pet_handler(request):
    return web.json_response(
        {
            "id": request.match_info["id"],
            "auth": request.headers.get("Authorization"),
            "limit": request.query.get("limit"),
            "flag": request.query.get("flag"),
            "tags": request.query.getall("tags", []),
            "skip": request.query.get("skip"),
        }
    )


async def create_handler(request):
    return web.json_response(await request.json(), status=201)


async def missing_handler(request):
    return web.json_response({"detail": "not found"}, status=404)


async def text_handler(request):
    return web.Response(text="plain")


@asynccontextmanager
async def api_server():
    app = web.Application()
    app.router.add_get("/pets/{id}", pet_handler)
    app.router.add_post("/pets", create_handler)
    app.router.add_get("/missing", missing_handler)
    app.router.add_get("/text", text_handler)

    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url("/"))
    finally:
        await server.close()


class TestDefaultRequester:
    """Тесты requester по умолчанию на aiohttp"""

    def test_build_url(self, monkeypatch):
        """Базовый URL из конфигурации или переменной окружения"""
        monkeypatch.delenv(BASE_URL_ENV, raising=False)

        assert DefaultRequester("https://api.example.com/").build_url("/pets") == (
            "https://api.example.com/pets"
        )
        assert DefaultRequester().build_url("/pets") == "/pets"
        assert DefaultRequester("https://a.com").build_url("https://b.com/x") == "https://b.com/x"

        monkeypatch.setenv(BASE_URL_ENV, "https://env.example.com")
        assert DefaultRequester().build_url("/pets") == "https://env.example.com/pets"

    @pytest.mark.asyncio
    async def test_bearer_token(self):
        """Токен добавляется только для операций с авторизацией"""

        async def get_token():
            return "secret"

        async with api_server() as base_url:
            requester = create_default_requester(base_url, get_token)

            secured = await requester.request(
                RequestOptions(method="get", url="/pets/1", auth_required=True)
            )
            public = await requester.request(RequestOptions(method="get", url="/pets/1"))

        assert secured.status == 200
        assert not secured.is_error
        assert secured.data["id"] == "1"
        assert secured.data["auth"] == "Bearer secret"
        assert public.data["auth"] is None

    @pytest.mark.asyncio
    async def test_sync_token_getter(self):
        """Синхронная функция получения токена тоже поддерживается"""
        async with api_server() as base_url:
            requester = create_default_requester(base_url, lambda: "sync")
            response = await requester.request(
                RequestOptions(method="GET", url="/pets/1", auth_required=True)
            )

        assert response.data["auth"] == "Bearer sync"

    @pytest.mark.asyncio
    async def test_query_parameters(self):
        """None пропускается, bool в нижнем регистре, списки повторяют ключ"""
        async with api_server() as base_url:
            response = await create_default_requester(base_url).request(
                RequestOptions(
                    method="GET",
                    url="/pets/1",
                    params={"limit": 10, "flag": True, "tags": ["a", "b"], "skip": None},
                )
            )

        assert response.data["limit"] == "10"
        assert response.data["flag"] == "true"
        assert response.data["tags"] == ["a", "b"]
        assert response.data["skip"] is None

    @pytest.mark.asyncio
    async def test_json_body(self):
        """Тело запроса из pydantic модели сериализуется по alias"""
        async with api_server() as base_url:
            response = await create_default_requester(base_url).request(
                RequestOptions(method="POST", url="/pets", data=Pet(pet_id="7", name="Rex"))
            )

        assert response.status == 201
        assert response.data == {"pet-id": "7", "name": "Rex"}

    @pytest.mark.asyncio
    async def test_http_error(self):
        """HTTP ошибка возвращается как Response с is_error"""
        async with api_server() as base_url:
            response = await create_default_requester(base_url).request(
                RequestOptions(method="GET", url="/missing")
            )

        assert response.is_error
        assert response.status == 404
        assert response.data == {"detail": "not found"}
        assert response.config.url == "/missing"

    @pytest.mark.asyncio
    async def test_text_response(self):
        """Не-JSON ответ возвращается строкой"""
        async with api_server() as base_url:
            response = await create_default_requester(base_url).request(
                RequestOptions(method="GET", url="/text")
            )

        assert response.data == "plain"

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Сбой транспорта не выбрасывается, а возвращается со статусом 0"""
        async with api_server() as base_url:
            pass

        response = await create_default_requester(base_url).request(
            RequestOptions(method="GET", url="/pets/1")
        )

        assert response.is_error
        assert response.status == 0
        assert response.status_text

    @pytest.mark.asyncio
    async def test_token_error(self):
        """Ошибка получения токена возвращается как ошибочный ответ"""

        def get_token():
            raise RuntimeError("no session")

        response = await create_default_requester("http://localhost", get_token).request(
            RequestOptions(method="GET", url="/pets/1", auth_required=True)
        )

        assert response.is_error
        assert response.status == 0
        assert "Failed to get token" in response.status_text
