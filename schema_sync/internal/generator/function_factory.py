"""
Генерация фабрик функций-запросов.

Фабрика получает объект requester и возвращает async функцию операции.
Сначала строится структурное описание (AccessorFactory), по которому удобно
проверять сигнатуру и обобщенные типы, а уже потом оно рендерится в текст.
"""

import re
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

from ..types.models import (
    ANY,
    NEVER,
    VOID,
    OperationDescriptor,
    OperationTypeSet,
    Parameter,
)
from ..utils.naming import create_route_banner, to_identifier

# Локальные имена сгенерированного кода, с которыми не должны совпадать path параметры
RESERVED_LOCALS = {
    "requester",
    "options",
    "response",
    "data",
    "params",
    "query_params",
    "variables",
    "call_options",
    "custom_flags",
    "query_options",
    "mutation_options",
    "mutation_fn",
}

LOCKED_OPTIONS = ("method", "url", "auth_required")


def path_parameter_names(operation: OperationDescriptor) -> List[Tuple[str, str]]:
    """Пары (имя в пути, имя аргумента) для path параметров в порядке объявления"""
    result = []
    used = set()

    for parameter in operation.path_parameters:
        argument = to_identifier(parameter.name)
        if argument in RESERVED_LOCALS:
            argument = f"{argument}_"
        while argument in used:
            argument = f"{argument}_"
        used.add(argument)
        result.append((parameter.name, argument))

    return result


def strip_prefix(path: str, prefix: Optional[str]) -> str:
    """Отрезание префикса пути по границе сегмента (только для URL времени выполнения)"""
    if not prefix:
        return path

    prefix = prefix.rstrip("/")
    if path == prefix:
        return "/"
    if not prefix or not path.startswith(f"{prefix}/"):
        return path

    return path[len(prefix):]


def url_template(path: str, arguments: List[Tuple[str, str]]) -> str:
    """Путь с подстановкой аргументов: /pets/{id} -> f"/pets/{id}" """
    mapping = dict(arguments)
    escaped = path.replace("\\", "\\\\").replace('"', '\\"')

    def _replace(match):
        name = match.group(1)
        if name in mapping:
            return "{" + mapping[name] + "}"
        return "{{" + name + "}}"

    escaped = re.sub(r"(?<!\{)\{([^{}]+)\}(?!\})", _replace, escaped)
    if "{" in escaped:
        return f'f"{escaped}"'
    return f'"{escaped}"'


def qualify(type_name: str, types_alias: str) -> str:
    """Имя декларации через алиас модуля типов; маркеры остаются как есть"""
    if type_name in (ANY, NEVER, VOID):
        return type_name
    return f"{types_alias}.{type_name}"


def resolve_generics(
    operation: OperationDescriptor, type_set: OperationTypeSet
) -> Tuple[Dict[str, str], List[str]]:
    """
    Значения по умолчанию обобщенных типов TResponse/TRequestBody/TQueryParams.

    Имя декларации, если она собрана; Any, если форма есть, но тип не собрался;
    Never, если формы нет вовсе; None для ответа без тела.
    """
    warnings: List[str] = []
    route = f"{operation.method.upper()} {operation.path}"

    if type_set.primary_response_name == VOID:
        response = VOID
    elif type_set.primary_response_name:
        response = type_set.primary_response_name
    elif type_set.response_failed:
        response = ANY
        warnings.append(
            f"Response type for {route} could not be generated, falling back to Any"
        )
    else:
        response = ANY
        warnings.append(
            f"No {operation.primary_status_code} response declared for {route}, "
            f"response type falls back to Any"
        )

    if not operation.has_request_body:
        request_body = NEVER
    elif type_set.request_body_name:
        request_body = type_set.request_body_name
    else:
        request_body = ANY
        warnings.append(
            f"Request body type for {route} could not be generated, falling back to Any"
        )

    if not operation.has_query_parameters:
        query_params = NEVER
    elif type_set.parameters_name:
        query_params = type_set.parameters_name
    else:
        query_params = ANY
        warnings.append(
            f"Query parameters type for {route} could not be generated, falling back to Any"
        )

    generics = {
        "TResponse": response,
        "TRequestBody": request_body,
        "TQueryParams": query_params,
    }
    return generics, warnings


class AccessorFactory(BaseModel):
    """Структурное описание фабрики функции-запроса"""

    factory_name: str
    function_name: str
    method: str
    path: str
    url: str
    types_alias: str
    auth_required: bool = False
    summary: Optional[str] = None
    deprecated: bool = False

    generics: Dict[str, str]
    path_arguments: List[str] = []
    parameters: List[Parameter] = []
    warnings: List[str] = []

    @property
    def has_data(self) -> bool:
        return self.generics["TRequestBody"] != NEVER

    @property
    def has_params(self) -> bool:
        return self.generics["TQueryParams"] != NEVER

    @property
    def response_annotation(self) -> str:
        return qualify(self.generics["TResponse"], self.types_alias)

    @property
    def banner(self) -> str:
        return create_route_banner(self.method, self.path)

    def __str__(self):
        lines = [f"# ⚠️ {warning}" for warning in self.warnings]
        lines.append(self.banner)
        lines.append(f"def {self.factory_name}(requester: Requester):")
        lines.append(f"    async def {self.function_name}(")
        lines.extend(f"        {parameter}," for parameter in self.parameters)
        lines.append(f"    ) -> {self.response_annotation}:")

        docstring = self._docstring()
        if docstring:
            lines.append(docstring)

        lines.append("        options = RequestOptions(")
        lines.append(f'            method="{self.method.upper()}",')
        lines.append(f"            url={self.url},")
        lines.append(f"            auth_required={self.auth_required},")
        if self.has_data:
            lines.append("            data=data,")
        if self.has_params:
            lines.append("            params=params,")
        lines.append("            context=custom_flags,")
        lines.append("        )")

        locked = list(LOCKED_OPTIONS)
        if self.has_data:
            locked.append("data")
        if self.has_params:
            locked.append("params")
        locked_tuple = ", ".join(f'"{name}"' for name in locked)

        lines.append("        response = await requester.request(")
        lines.append(f"            options.merge(call_options, locked=({locked_tuple}))")
        lines.append("        )")
        lines.append("        if response.is_error:")
        lines.append("            raise ResponseError(response)")

        response_type = self.generics["TResponse"]
        if response_type == VOID:
            lines.append("        return None")
        elif response_type == ANY:
            lines.append("        return response.data")
        else:
            lines.append(
                f"        return parse_response({self.response_annotation}, response.data)"
            )

        lines.append("")
        lines.append(f"    return {self.function_name}")
        return "\n".join(lines)

    def _docstring(self) -> str:
        text = (self.summary or "").strip()
        if self.deprecated:
            text = f"{text}\n\nDeprecated." if text else "Deprecated."
        if not text:
            return ""

        text = text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
        text_lines = text.split("\n")
        if len(text_lines) == 1:
            return f'        """{text_lines[0]}"""'
        body = "\n".join(f"        {line}".rstrip() for line in text_lines)
        return f'        """\n{body}\n        """'


def build_accessor_factory(
    operation: OperationDescriptor,
    type_set: OperationTypeSet,
    function_name: str,
    types_alias: str,
    strip_path_prefix: Optional[str] = None,
) -> AccessorFactory:
    """Описание фабрики для одной операции"""
    generics, warnings = resolve_generics(operation, type_set)
    arguments = path_parameter_names(operation)

    parameters = [
        Parameter(name=argument, var_type="str", order=index)
        for index, (_, argument) in enumerate(arguments)
    ]
    order = len(parameters)

    if generics["TRequestBody"] != NEVER:
        parameters.append(
            Parameter(
                name="data",
                var_type=qualify(generics["TRequestBody"], types_alias),
                order=order,
            )
        )
        order += 1

    if generics["TQueryParams"] != NEVER:
        params_type = qualify(generics["TQueryParams"], types_alias)
        required = any(parameter.required for parameter in operation.query_parameters)
        if required:
            parameters.append(Parameter(name="params", var_type=params_type, order=order))
        else:
            parameters.append(
                Parameter(
                    name="params",
                    var_type=f"Optional[{params_type}]",
                    default="None",
                    order=order,
                )
            )
        order += 1

    parameters.append(
        Parameter(
            name="call_options",
            var_type="Optional[CallOptions]",
            default="None",
            order=order,
        )
    )
    parameters.append(
        Parameter(
            name="custom_flags",
            var_type="Optional[Dict[str, Any]]",
            default="None",
            order=order + 1,
        )
    )

    return AccessorFactory(
        factory_name=f"create_{function_name}_function",
        function_name=function_name,
        method=operation.method.lower(),
        path=operation.path,
        url=url_template(strip_prefix(operation.path, strip_path_prefix), arguments),
        types_alias=types_alias,
        auth_required=operation.security_required,
        summary=operation.summary,
        deprecated=operation.deprecated,
        generics=generics,
        path_arguments=[argument for _, argument in arguments],
        parameters=parameters,
        warnings=warnings,
    )
