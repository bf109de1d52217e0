"""
Загрузка и разыменование OpenAPI спецификации
"""

import copy
import json
import logging
import os
from typing import Any, Dict

import httpx
import jsonref

from ...exceptions import SpecLoadError

logger = logging.getLogger(__name__)


def fetch_spec(source: str, timeout: float = 30.0) -> Dict[str, Any]:
    """Чтение спецификации из локального JSON файла или по URL"""
    if not source:
        raise SpecLoadError("Не указан источник спецификации (input)")

    if source.startswith(("http://", "https://")):
        try:
            response = httpx.get(source, timeout=timeout, follow_redirects=True)
            response.raise_for_status()
            spec = response.json()
        except httpx.HTTPError as e:
            raise SpecLoadError(f"Не удалось загрузить спецификацию из {source}: {e}")
        except ValueError as e:
            raise SpecLoadError(f"Ответ {source} не является JSON: {e}")
    elif os.path.exists(source):
        try:
            with open(source, "r", encoding="utf-8") as f:
                spec = json.load(f)
        except (OSError, ValueError) as e:
            raise SpecLoadError(f"Не удалось прочитать спецификацию {source}: {e}")
    else:
        raise SpecLoadError(
            f"Не удалось загрузить спецификацию из {source}. Проверьте URL или путь к файлу."
        )

    if not isinstance(spec, dict):
        raise SpecLoadError(f"Спецификация {source} должна быть JSON объектом")
    return spec


def inject_component_titles(spec: Dict[str, Any]) -> Dict[str, Any]:
    """
    Копия спецификации, где у каждой схемы из components.schemas есть title.

    После разыменования $ref пропадает, и имя вспомогательной декларации
    берется из title - без него схема стала бы безымянной.
    """
    result = copy.deepcopy(spec)
    schemas = (result.get("components") or {}).get("schemas") or {}

    for key, schema in schemas.items():
        if isinstance(schema, dict) and not schema.get("title"):
            schema["title"] = key

    return result


def _local_refs_only(uri: str):
    raise SpecLoadError(f"External reference {uri} is not supported")


def dereference(spec: Dict[str, Any]) -> Dict[str, Any]:
    """
    Разыменование всех $ref. При ошибке возвращается исходная спецификация:
    затронутые схемы потом деградируют до Any при компиляции.
    """
    titled = inject_component_titles(spec)

    try:
        resolved = jsonref.replace_refs(
            titled, loader=_local_refs_only, proxies=False, lazy_load=False
        )
    except (jsonref.JsonRefError, SpecLoadError, RecursionError, KeyError, ValueError) as e:
        logger.warning(
            f"Failed to dereference OpenAPI spec: {e}. "
            f"Proceeding with the original spec, $ref schemas may fail to generate"
        )
        return titled

    return dict(resolved)


def load_spec(source: str) -> Dict[str, Any]:
    """Загрузка, проверка и разыменование спецификации"""
    spec = fetch_spec(source)
    resolved = dereference(spec)

    if not isinstance(resolved.get("paths"), dict):
        raise SpecLoadError("Invalid OpenAPI document: missing paths object")
    return resolved
