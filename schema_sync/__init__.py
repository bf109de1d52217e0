"""
schema-sync: генератор Python-клиентов (модели, фабрики запросов, подписки)
из OpenAPI v3 спецификаций
"""

from .config import SchemaSyncConfig
from .generator import SchemaSyncGenerator, generate_client

__version__ = "0.3.0"

__all__ = ["SchemaSyncConfig", "SchemaSyncGenerator", "generate_client"]
