"""
Поддержка времени выполнения для сгенерированных клиентов
"""

from .default_requester import BASE_URL_ENV, DefaultRequester, create_default_requester
from .requester import (
    CallOptions,
    RequestOptions,
    Requester,
    Response,
    ResponseError,
    parse_response,
    to_jsonable,
)
from .subscriptions import MutationSubscription, QueryCache, QuerySubscription

__all__ = [
    "BASE_URL_ENV",
    "CallOptions",
    "DefaultRequester",
    "MutationSubscription",
    "QueryCache",
    "QuerySubscription",
    "RequestOptions",
    "Requester",
    "Response",
    "ResponseError",
    "create_default_requester",
    "parse_response",
    "to_jsonable",
]
