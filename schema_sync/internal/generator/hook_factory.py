"""
Генерация фабрик подписок поверх фабрик функций-запросов.

Безопасные методы (GET/HEAD/OPTIONS/TRACE) получают QuerySubscription с
детерминированным ключом кэша, изменяющие - MutationSubscription,
которая запускается с одним аргументом variables.
"""

from typing import List, Optional

from pydantic import BaseModel

from ..types.models import NEVER, VOID, OperationDescriptor, Parameter
from ..utils.naming import create_route_banner
from .function_factory import AccessorFactory, qualify

QUERY = "query"
MUTATION = "mutation"


class SubscriptionFactory(BaseModel):
    """Структурное описание фабрики подписки"""

    factory_name: str
    hook_name: str
    shape: str
    method: str
    path: str
    types_alias: str
    accessor_factory_name: str
    accessor_name: str
    summary: Optional[str] = None

    response_type: str
    # Только для query: выражения элементов ключа кэша
    query_key: List[str] = []
    # Только для mutation: тип variables и куда они передаются в функцию-запрос
    variables_type: str = VOID
    variables_argument: Optional[str] = None
    separate_query_params: bool = False

    path_arguments: List[str] = []
    parameters: List[Parameter] = []

    @property
    def banner(self) -> str:
        return create_route_banner(self.method, self.path)

    @property
    def is_query(self) -> bool:
        return self.shape == QUERY

    def __str__(self):
        response = qualify(self.response_type, self.types_alias)
        if self.is_query:
            annotation = f"QuerySubscription[{response}]"
        else:
            variables = qualify(self.variables_type, self.types_alias)
            annotation = f"MutationSubscription[{variables}, {response}]"

        lines = [self.banner]
        lines.append(f"def {self.factory_name}(requester: Requester):")
        lines.append(f"    {self.accessor_name} = {self.accessor_factory_name}(requester)")
        lines.append("")
        lines.append(f"    def {self.hook_name}(")
        lines.extend(f"        {parameter}," for parameter in self.parameters)
        lines.append(f"    ) -> {annotation}:")

        if self.summary and self.summary.strip():
            summary = self.summary.strip().replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
            summary_lines = summary.split("\n")
            if len(summary_lines) == 1:
                lines.append(f'        """{summary}"""')
            else:
                lines.append('        """')
                lines.extend(f"        {line}".rstrip() for line in summary_lines)
                lines.append('        """')

        if self.is_query:
            lines.extend(self._query_body())
        else:
            lines.extend(self._mutation_body())

        lines.append("")
        lines.append(f"    return {self.hook_name}")
        return "\n".join(lines)

    def _call_arguments(self, extra: List[str]) -> str:
        arguments = list(self.path_arguments) + extra
        arguments.append("call_options=call_options")
        arguments.append("custom_flags=custom_flags")
        return ", ".join(arguments)

    def _query_body(self) -> List[str]:
        extra = ["params=params"] if "params" in [p.name for p in self.parameters] else []
        key = ", ".join(self.query_key)
        if len(self.query_key) == 1:
            key += ","

        return [
            "        return QuerySubscription(",
            f"            query_key=({key}),",
            f"            query_fn=lambda: {self.accessor_name}({self._call_arguments(extra)}),",
            "            query_options=query_options,",
            "        )",
        ]

    def _mutation_body(self) -> List[str]:
        extra = []
        if self.variables_argument:
            extra.append(f"{self.variables_argument}=variables")
        if self.separate_query_params:
            extra.append("params=query_params")

        variables = qualify(self.variables_type, self.types_alias)
        response = qualify(self.response_type, self.types_alias)
        signature = (
            f"variables: {variables} = None"
            if self.variables_type == VOID
            else f"variables: {variables}"
        )

        return [
            f"        async def mutation_fn({signature}) -> {response}:",
            f"            return await {self.accessor_name}({self._call_arguments(extra)})",
            "",
            "        return MutationSubscription(",
            "            mutation_fn=mutation_fn,",
            "            mutation_options=mutation_options,",
            "        )",
        ]


def build_subscription_factory(
    operation: OperationDescriptor,
    accessor: AccessorFactory,
    hook_name: str,
    tag_key: str,
    endpoint_base_name: str,
) -> SubscriptionFactory:
    """Описание фабрики подписки для одной операции"""
    shape = MUTATION if operation.is_mutation else QUERY
    generics = accessor.generics

    parameters = [
        Parameter(name=argument, var_type="str", order=index)
        for index, argument in enumerate(accessor.path_arguments)
    ]
    order = len(parameters)

    query_key: List[str] = []
    variables_type = VOID
    variables_argument = None
    separate_query_params = False

    has_body = generics["TRequestBody"] != NEVER
    has_params = generics["TQueryParams"] != NEVER

    if shape == QUERY:
        query_key = [repr(tag_key), repr(endpoint_base_name)] + list(accessor.path_arguments)
        if has_params:
            params_parameter = next(p for p in accessor.parameters if p.name == "params")
            parameters.append(params_parameter.model_copy(update={"order": order}))
            query_key.append("params")
            order += 1
    elif has_body and has_params:
        # Тело запроса становится variables, query параметры передаются фабрике отдельно
        variables_type = generics["TRequestBody"]
        variables_argument = "data"
        separate_query_params = True
        params_parameter = next(p for p in accessor.parameters if p.name == "params")
        parameters.append(
            params_parameter.model_copy(update={"name": "query_params", "order": order})
        )
        order += 1
    elif has_body:
        variables_type = generics["TRequestBody"]
        variables_argument = "data"
    elif has_params:
        variables_type = generics["TQueryParams"]
        variables_argument = "params"

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
    options_name = "query_options" if shape == QUERY else "mutation_options"
    parameters.append(
        Parameter(
            name=options_name,
            var_type="Optional[Dict[str, Any]]",
            default="None",
            order=order + 2,
        )
    )

    return SubscriptionFactory(
        factory_name=f"create_{hook_name}_hook",
        hook_name=hook_name,
        shape=shape,
        method=operation.method.lower(),
        path=operation.path,
        types_alias=accessor.types_alias,
        accessor_factory_name=accessor.factory_name,
        accessor_name=accessor.function_name,
        summary=operation.summary,
        response_type=generics["TResponse"],
        query_key=query_key,
        variables_type=variables_type,
        variables_argument=variables_argument,
        separate_query_params=separate_query_params,
        path_arguments=accessor.path_arguments,
        parameters=parameters,
    )
