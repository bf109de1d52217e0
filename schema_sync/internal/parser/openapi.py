import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from ..types.models import (
    HTTP_METHODS,
    OperationDescriptor,
    ParameterDescriptor,
    ResponseDescriptor,
    TagGroup,
)
from ..utils.naming import package_name, sanitize_tag_name

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


class OpenApiParser:
    """Разбор OpenAPI спецификации в описания операций, сгруппированные по тегам"""

    def __init__(self, openapi_dict: Dict[str, Any]):
        self.openapi_dict = openapi_dict

    @property
    def components(self) -> Dict[str, Any]:
        return self.openapi_dict.get("components") or {}

    def parse(self) -> List[TagGroup]:
        """Операции по первому тегу; операции без тегов пропускаются"""
        groups: Dict[str, TagGroup] = {}
        used_packages: Dict[str, str] = {}

        for operation in self.operations():
            if not operation.tags:
                logger.warning(
                    f"Operation {operation.method.upper()} {operation.path} has no tags, skipping"
                )
                continue

            tag = operation.tags[0]
            if tag not in groups:
                sanitized = sanitize_tag_name(tag)
                package = package_name(sanitized)

                # Разные теги могут дать одинаковое имя пакета
                candidate, counter = package, 2
                while candidate in used_packages:
                    candidate = f"{package}_{counter}"
                    counter += 1
                if candidate != package:
                    logger.warning(
                        f"Tag {tag!r} collides with tag {used_packages[package]!r} "
                        f"on package name {package!r}, using {candidate!r}"
                    )
                used_packages[candidate] = tag

                groups[tag] = TagGroup(
                    tag_name=tag, sanitized_name=sanitized, package=candidate
                )

            groups[tag].operations.append(operation)

        logger.info(f"Found operations grouped by tags: {', '.join(groups) or '-'}")
        return list(groups.values())

    def operations(self) -> List[OperationDescriptor]:
        """Все операции спецификации в порядке объявления"""
        paths = self.openapi_dict.get("paths") or {}
        global_security = self.openapi_dict.get("security")
        result = []

        for path, path_item in paths.items():
            if not isinstance(path_item, dict):
                continue

            for method, operation in path_item.items():
                if method.lower() not in HTTP_METHODS or not isinstance(operation, dict):
                    continue
                result.append(
                    self._parse_operation(path, method.lower(), path_item, operation, global_security)
                )

        return result

    def _parse_operation(
        self,
        path: str,
        method: str,
        path_item: Dict[str, Any],
        operation: Dict[str, Any],
        global_security: Optional[List[Any]],
    ) -> OperationDescriptor:
        path_parameters, query_parameters = self._parse_parameters(
            path, path_item.get("parameters") or [], operation.get("parameters") or []
        )

        request_body = operation.get("requestBody")
        has_request_body = isinstance(request_body, dict)
        request_body_schema = self._json_schema(request_body) if has_request_body else None

        responses = {}
        for status, response in (operation.get("responses") or {}).items():
            if not isinstance(response, dict):
                continue
            content = response.get("content") or {}
            responses[str(status)] = ResponseDescriptor(
                has_content=bool(content),
                schema=self._json_schema(response),
                description=response.get("description"),
            )

        security = operation.get("security")
        if security is None:
            security = global_security
        security_required = bool(security) and any(bool(item) for item in security)

        tags = tuple(tag for tag in operation.get("tags") or [] if isinstance(tag, str))

        return OperationDescriptor(
            path=path,
            method=method,
            path_parameters=tuple(path_parameters),
            query_parameters=tuple(query_parameters),
            has_request_body=has_request_body,
            request_body_schema=request_body_schema,
            responses=responses,
            tags=tags,
            security_required=security_required,
            operation_id=operation.get("operationId") or None,
            summary=operation.get("summary"),
            description=operation.get("description"),
            deprecated=bool(operation.get("deprecated", False)),
        )

    @staticmethod
    def _parse_parameters(
        path: str, path_level: List[Any], operation_level: List[Any]
    ) -> Tuple[List[ParameterDescriptor], List[ParameterDescriptor]]:
        """Слияние параметров пути и операции (операция важнее по (name, in))"""
        merged: Dict[Tuple[str, str], Dict[str, Any]] = {}
        for parameter in list(path_level) + list(operation_level):
            if not isinstance(parameter, dict) or "name" not in parameter:
                continue
            merged[(parameter["name"], parameter.get("in", "query"))] = parameter

        path_parameters = []
        query_parameters = []
        for (name, location), parameter in merged.items():
            schema = parameter.get("schema")
            descriptor = ParameterDescriptor(
                name=name,
                required=bool(parameter.get("required", location == "path")),
                schema=schema if isinstance(schema, dict) else None,
                description=parameter.get("description"),
            )
            if location == "path":
                path_parameters.append(descriptor)
            elif location == "query":
                query_parameters.append(descriptor)

        # Плейсхолдеры пути без объявленного параметра
        declared = {parameter.name for parameter in path_parameters}
        for name in re.findall(r"\{([^{}]+)\}", path):
            if name not in declared:
                declared.add(name)
                path_parameters.append(ParameterDescriptor(name=name, required=True))

        return path_parameters, query_parameters

    @staticmethod
    def _json_schema(container: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Схема application/json из requestBody/response; другие типы не поддерживаются"""
        content = container.get("content") or {}
        media = content.get(JSON_CONTENT_TYPE)
        if not isinstance(media, dict):
            return None

        schema = media.get("schema")
        return schema if isinstance(schema, dict) else None
