import logging
from typing import Any, Dict, List, Optional

from ...exceptions import SchemaCompileError
from ..types.models import ANY, VOID, OperationDescriptor, OperationTypeSet
from ..types.name_registry import NameRegistry
from ..utils.naming import pascal_case
from .declaration_compiler import DeclarationCompiler

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_PREFIX = "SSGEN_"


def operation_stem(type_base_name: str, operation_prefix: str = "") -> str:
    """Основа имен типов операции: [PascalCase(prefix)_]TypeBaseName"""
    if operation_prefix:
        return f"{pascal_case(operation_prefix)}_{type_base_name}"
    return type_base_name


def fallback_declaration(name: str, reason: str) -> str:
    """Предупреждение + безопасный алиас на Any вместо несобранного типа"""
    reason = " ".join(reason.split())
    return f"# ⚠️ Failed to generate type {name}: {reason}\n{name} = {ANY}"


class OperationTypeResolver:
    """
    Сборка типов одной операции: тело запроса, успешные ответы и
    синтезированный объект query параметров.

    Ошибки компиляции не прерывают генерацию: вместо типа выпускается
    комментарий и алиас на Any, а в OperationTypeSet поднимается флаг,
    по которому фабрики откатывают обобщенные типы к Any.
    """

    def __init__(
        self,
        registry: NameRegistry,
        compiler: Optional[DeclarationCompiler] = None,
        components: Optional[Dict[str, Any]] = None,
        operation_prefix: str = "",
        schema_prefix: str = DEFAULT_SCHEMA_PREFIX,
    ):
        self.registry = registry
        self.compiler = compiler or DeclarationCompiler()
        self.components = components or {}
        self.operation_prefix = operation_prefix
        self.schema_prefix = schema_prefix

    async def resolve(
        self, operation: OperationDescriptor, type_base_name: str, owner: str = ""
    ) -> OperationTypeSet:
        stem = operation_stem(type_base_name, self.operation_prefix)
        sources: List[str] = []

        # Тело запроса
        request_body_name = None
        request_body_failed = False
        if operation.has_request_body:
            name = f"{stem}_Request"
            if operation.request_body_schema is None:
                request_body_failed = True
                sources.append(
                    fallback_declaration(name, "request body has no application/json schema")
                )
            elif await self._compile(operation.request_body_schema, name, owner, sources):
                request_body_name = name
            else:
                request_body_failed = True

        # Успешные ответы
        primary_status = operation.primary_status_code
        primary_response_name = None
        primary_response_generated = False
        response_failed = False

        for status, response in operation.success_responses():
            if status == primary_status:
                name = f"{stem}_Response"
                if not response.has_content:
                    primary_response_name = VOID
                elif response.schema is None:
                    response_failed = True
                    logger.warning(
                        f"{operation.method.upper()} {operation.path}: response {status} "
                        f"has no application/json schema"
                    )
                    sources.append(
                        fallback_declaration(
                            name, f"response {status} has no application/json schema"
                        )
                    )
                elif await self._compile(response.schema, name, owner, sources):
                    primary_response_name = name
                    primary_response_generated = True
                else:
                    response_failed = True
            elif response.schema is not None:
                # Ошибка на неосновном коде не влияет на флаги операции
                await self._compile(
                    response.schema, f"{stem}_Response_{status}", owner, sources
                )

        # Query параметры
        parameters_name = None
        parameters_failed = False
        if operation.has_query_parameters:
            name = f"{stem}_Parameters"
            schema = self.query_parameters_schema(operation)
            if await self._compile(
                schema, name, owner, sources, additional_properties=False
            ):
                parameters_name = name
            else:
                parameters_failed = True

        return OperationTypeSet(
            request_body_name=request_body_name,
            parameters_name=parameters_name,
            primary_response_name=primary_response_name,
            request_body_failed=request_body_failed,
            parameters_failed=parameters_failed,
            response_failed=response_failed,
            primary_response_generated=primary_response_generated,
            types_source="\n\n\n".join(sources),
        )

    @staticmethod
    def query_parameters_schema(operation: OperationDescriptor) -> Dict[str, Any]:
        """Объектная схема из query параметров; нетипизированные параметры - строки"""
        properties: Dict[str, Any] = {}
        required: List[str] = []

        for parameter in operation.query_parameters:
            schema = parameter.schema if parameter.schema else {"type": "string"}
            if parameter.description and isinstance(schema, dict) and "description" not in schema:
                schema = dict(schema, description=parameter.description)
            properties[parameter.name] = schema
            if parameter.required:
                required.append(parameter.name)

        result: Dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            result["required"] = required
        return result

    async def _compile(
        self,
        schema: Any,
        name: str,
        owner: str,
        sources: List[str],
        additional_properties: bool = True,
    ) -> bool:
        """Компиляция одного фрагмента. True - тип доступен (новый или уже выпущенный)"""
        if name in self.registry:
            logger.debug(f"Type {name} already generated, reusing")
            return True

        try:
            source = await self.compiler.compile(
                schema, name, self.components, additional_properties
            )
        except SchemaCompileError as e:
            logger.warning(f"Failed to generate type {name}: {e.message}")
            sources.append(fallback_declaration(name, e.message))
            return False

        source = self.registry.filter_and_prefix(source, name, self.schema_prefix, owner)
        self.registry.reserve(name, owner)
        sources.append(source)
        return True
