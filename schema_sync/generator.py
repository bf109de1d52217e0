"""
Главный модуль генератора - чистый интерфейс
"""

import asyncio
from typing import Any, Dict, Optional

from .config import SchemaSyncConfig
from .exceptions import SpecLoadError
from .internal.generator.tag_generator import TagGenerator
from .internal.parser.loader import dereference
from .internal.types.models import Project
from .internal.types.name_registry import NameRegistry


class SchemaSyncGenerator:
    """Чистый интерфейс для генерации клиентских бандлов"""

    def __init__(
        self,
        openapi_spec: Dict[str, Any],
        config: Optional[SchemaSyncConfig] = None,
        dereferenced: bool = False,
    ):
        self.openapi_spec = openapi_spec if dereferenced else dereference(openapi_spec)
        if not isinstance(self.openapi_spec.get("paths"), dict):
            raise SpecLoadError("Invalid OpenAPI document: missing paths object")
        self.config = config or SchemaSyncConfig()

    async def generate(self) -> Project:
        """Генерация проекта; реестр имен новый на каждый запуск"""
        generator = TagGenerator(self.openapi_spec, self.config, registry=NameRegistry())
        return await generator.generate()


def generate_client(
    openapi_spec: Dict[str, Any], config: Optional[SchemaSyncConfig] = None
) -> Project:
    """Синхронная обертка: генерация бандлов из OpenAPI спецификации"""
    return asyncio.run(SchemaSyncGenerator(openapi_spec, config).generate())
