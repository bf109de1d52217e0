import asyncio
import inspect
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import aiohttp
from aiohttp import ClientError, ClientSession, ClientTimeout

from .requester import RequestOptions, Response, to_jsonable

logger = logging.getLogger(__name__)

BASE_URL_ENV = "SCHEMA_SYNC_BASE_URL"

TokenGetter = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]


class DefaultRequester:
    """
    Эталонный requester на aiohttp.

    Никогда не выбрасывает исключения наружу: HTTP ошибки (>= 400) и сбои
    транспорта возвращаются как Response с is_error=True.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        get_token: Optional[TokenGetter] = None,
        timeout: int = 30,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[ClientSession] = None,
    ):
        self.base_url = base_url
        self.get_token = get_token
        self._timeout = int(timeout) if timeout else 30
        self._headers = dict(headers) if headers else {}
        self._session = session

    @property
    def effective_base_url(self) -> str:
        """URL из конфигурации, иначе из переменной окружения SCHEMA_SYNC_BASE_URL"""
        return (self.base_url or os.environ.get(BASE_URL_ENV) or "").rstrip("/")

    def build_url(self, url: str) -> str:
        # Абсолютные URL не трогаем
        if url.startswith(("http://", "https://")):
            return url

        base_url = self.effective_base_url
        if not base_url:
            return url
        return f"{base_url}/{url.lstrip('/')}"

    @asynccontextmanager
    async def _session_context(self):
        """Внешняя сессия, если передана, иначе новая на время запроса"""
        if self._session is not None:
            yield self._session
            return

        async with ClientSession(
            timeout=ClientTimeout(total=self._timeout),
            headers=self._headers.copy(),
            trust_env=True,  # Использовать системные прокси
        ) as session:
            yield session

    async def _token(self) -> Optional[str]:
        if not self.get_token:
            return None

        token = self.get_token()
        if inspect.isawaitable(token):
            token = await token
        return token

    @staticmethod
    def _query(params: Any) -> Optional[List[Tuple[str, str]]]:
        """Query параметры для aiohttp: None пропускается, списки повторяют ключ"""
        if params is None:
            return None

        values = to_jsonable(params)
        if not isinstance(values, dict):
            raise ValueError(f"Query parameters must be an object, got {type(values).__name__}")

        def _format(value: Any) -> str:
            if isinstance(value, bool):
                return "true" if value else "false"
            if isinstance(value, (dict, list)):
                return json.dumps(value, separators=(",", ":"))
            return str(value)

        query = []
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, list):
                query.extend((key, _format(item)) for item in value if item is not None)
            else:
                query.append((key, _format(value)))
        return query

    @staticmethod
    async def _read(response: aiohttp.ClientResponse) -> Any:
        content = await response.read()
        if not content:
            return None

        if "json" in (response.content_type or ""):
            try:
                return json.loads(content)
            except ValueError:
                logger.debug(f"Response declared as JSON but could not be decoded: {response.url}")
        return content.decode(response.charset or "utf-8", errors="replace")

    def _error(self, options: RequestOptions, message: str, status: int = 0) -> Response:
        return Response(
            data=None,
            status=status,
            status_text=message,
            headers={},
            is_error=True,
            config=options,
        )

    async def request(self, options: RequestOptions) -> Response:
        method = options.method.upper()
        url = self.build_url(options.url)
        headers = {"Accept": "application/json", **options.headers}

        if options.auth_required:
            try:
                token = await self._token()
            except Exception as exc:
                logger.error(f"Error getting token for {method} {options.url}: {exc}")
                return self._error(options, f"Failed to get token: {exc}")

            if token:
                headers["Authorization"] = f"Bearer {token}"
            else:
                logger.warning(
                    f"Auth required for {method} {options.url}, but no token was returned by get_token"
                )

        try:
            query = self._query(options.params)
        except ValueError as exc:
            return self._error(options, str(exc))

        request_kwargs: Dict[str, Any] = {
            "method": method,
            "url": url,
            "params": query,
            "headers": headers,
        }
        if options.data is not None:
            request_kwargs["json"] = to_jsonable(options.data)

        timeout = getattr(options, "timeout", None)
        if timeout:
            request_kwargs["timeout"] = ClientTimeout(total=timeout)

        try:
            logger.debug(f"Making {method} request to {url}")
            async with self._session_context() as session:
                async with session.request(**request_kwargs) as response:
                    logger.debug(f"Response status: {response.status}")
                    data = await self._read(response)

                    return Response(
                        data=data,
                        status=response.status,
                        status_text=response.reason or "",
                        headers=dict(response.headers),
                        is_error=response.status >= 400,
                        config=options,
                    )
        except (ClientError, asyncio.TimeoutError) as exc:
            logger.error(f"{method} {url} failed: {exc!r}")
            return self._error(options, str(exc) or type(exc).__name__)


def create_default_requester(
    base_url: Optional[str] = None,
    get_token: Optional[TokenGetter] = None,
    **kwargs,
) -> DefaultRequester:
    """Requester по умолчанию: base URL + bearer токен из get_token"""
    return DefaultRequester(base_url=base_url, get_token=get_token, **kwargs)
