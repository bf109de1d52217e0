"""
Тесты фабрик функций-запросов и подписок
"""

from schema_sync.internal.generator.function_factory import (
    build_accessor_factory,
    path_parameter_names,
    resolve_generics,
    strip_prefix,
    url_template,
)
from schema_sync.internal.generator.hook_factory import (
    MUTATION,
    QUERY,
    build_subscription_factory,
)
from schema_sync.internal.types.models import (
    OperationDescriptor,
    OperationTypeSet,
    ParameterDescriptor,
    ResponseDescriptor,
)

GET_PET = OperationDescriptor(
    path="/pets/{pet-id}",
    method="get",
    path_parameters=(ParameterDescriptor(name="pet-id", required=True),),
    responses={"200": ResponseDescriptor(has_content=True, schema={"type": "object"})},
    summary="Get a pet",
)
GET_PET_TYPES = OperationTypeSet(
    primary_response_name="GetPet_Response", primary_response_generated=True
)

CREATE_PET = OperationDescriptor(
    path="/pets",
    method="post",
    query_parameters=(ParameterDescriptor(name="dry_run"),),
    has_request_body=True,
    request_body_schema={"type": "object"},
    responses={"201": ResponseDescriptor(has_content=True, schema={"type": "object"})},
    security_required=True,
    operation_id="createPet",
)
CREATE_PET_TYPES = OperationTypeSet(
    request_body_name="CreatePet_Request",
    parameters_name="CreatePet_Parameters",
    primary_response_name="CreatePet_Response",
    primary_response_generated=True,
)


class TestHelpers:
    """Тесты вспомогательных функций"""

    def test_url_template(self):
        """Path параметры подставляются в f-строку"""
        assert url_template("/pets/{id}", [("id", "id")]) == 'f"/pets/{id}"'
        assert url_template("/pets/{pet-id}", [("pet-id", "pet_id")]) == 'f"/pets/{pet_id}"'
        assert url_template("/pets", []) == '"/pets"'

    def test_strip_prefix(self):
        """Тест отрезания префикса пути"""
        assert strip_prefix("/api/v1/pets", "/api/v1") == "/pets"
        assert strip_prefix("/pets", "/api") == "/pets"
        assert strip_prefix("/api", "/api") == "/"
        assert strip_prefix("/pets", None) == "/pets"
        assert strip_prefix("/api/v1/pets", "/api/v1/") == "/pets"
        # Только по границе сегмента
        assert strip_prefix("/apiary/items", "/api") == "/apiary/items"
        assert strip_prefix("/api", "/") == "/api"

    def test_path_parameter_names(self):
        """Имена аргументов не пересекаются с локальными именами"""
        operation = OperationDescriptor(
            path="/x/{data}/{pet-id}",
            method="get",
            path_parameters=(
                ParameterDescriptor(name="data", required=True),
                ParameterDescriptor(name="pet-id", required=True),
            ),
        )

        assert path_parameter_names(operation) == [("data", "data_"), ("pet-id", "pet_id")]


class TestGenerics:
    """Тесты обобщенных типов по умолчанию"""

    def test_declared_types(self):
        """Собранные типы попадают в обобщенные параметры"""
        generics, warnings = resolve_generics(CREATE_PET, CREATE_PET_TYPES)

        assert generics == {
            "TResponse": "CreatePet_Response",
            "TRequestBody": "CreatePet_Request",
            "TQueryParams": "CreatePet_Parameters",
        }
        assert warnings == []

    def test_missing_shapes(self):
        """Отсутствующие формы - Never"""
        generics, _ = resolve_generics(GET_PET, GET_PET_TYPES)

        assert generics["TRequestBody"] == "Never"
        assert generics["TQueryParams"] == "Never"

    def test_failed_types_fall_back_to_any(self):
        """Несобранные типы - Any с предупреждением"""
        type_set = OperationTypeSet(
            request_body_failed=True, parameters_failed=True, response_failed=True
        )
        generics, warnings = resolve_generics(CREATE_PET, type_set)

        assert generics == {"TResponse": "Any", "TRequestBody": "Any", "TQueryParams": "Any"}
        assert len(warnings) == 3
        assert "Response type for POST /pets could not be generated, falling back to Any" in warnings

    def test_undeclared_response(self):
        """Нет ответа с основным кодом"""
        operation = OperationDescriptor(path="/pets", method="get")
        generics, warnings = resolve_generics(operation, OperationTypeSet())

        assert generics["TResponse"] == "Any"
        assert warnings == [
            "No 200 response declared for GET /pets, response type falls back to Any"
        ]

    def test_void_response(self):
        """Ответ без тела - None"""
        generics, warnings = resolve_generics(
            GET_PET, OperationTypeSet(primary_response_name="None")
        )

        assert generics["TResponse"] == "None"
        assert warnings == []


class TestAccessorFactory:
    """Тесты фабрики функции-запроса"""

    def test_get_with_path_parameter(self):
        """GET с path параметром"""
        accessor = build_accessor_factory(GET_PET, GET_PET_TYPES, "get_pet", "PetsTypes")
        source = str(accessor)

        assert accessor.factory_name == "create_get_pet_function"
        assert accessor.path_arguments == ["pet_id"]
        assert not accessor.has_data
        assert not accessor.has_params
        assert "# ---" in source.split("\n")[0]
        assert "def create_get_pet_function(requester: Requester):" in source
        assert "    async def get_pet(\n        pet_id: str,\n" in source
        assert ") -> PetsTypes.GetPet_Response:" in source
        assert '        """Get a pet"""' in source
        assert 'url=f"/pets/{pet_id}",' in source
        assert "auth_required=False," in source
        assert "data=data" not in source
        assert 'locked=("method", "url", "auth_required")' in source
        assert "return parse_response(PetsTypes.GetPet_Response, response.data)" in source
        assert source.endswith("    return get_pet")

    def test_post_with_body_and_parameters(self):
        """POST с телом, query параметрами и авторизацией"""
        accessor = build_accessor_factory(
            CREATE_PET, CREATE_PET_TYPES, "create_pet", "PetsTypes", strip_path_prefix="/api"
        )
        source = str(accessor)

        assert [p.name for p in accessor.parameters] == [
            "data",
            "params",
            "call_options",
            "custom_flags",
        ]
        assert "        data: PetsTypes.CreatePet_Request," in source
        assert "        params: Optional[PetsTypes.CreatePet_Parameters] = None," in source
        assert 'method="POST",' in source
        assert "auth_required=True," in source
        assert "            data=data,\n            params=params,\n" in source
        assert '"auth_required", "data", "params"' in source

    def test_required_query_parameters(self):
        """Обязательный query параметр делает params обязательным"""
        operation = OperationDescriptor(
            path="/search",
            method="get",
            query_parameters=(ParameterDescriptor(name="q", required=True),),
        )
        type_set = OperationTypeSet(parameters_name="Search_Parameters")
        accessor = build_accessor_factory(operation, type_set, "search", "SearchTypes")

        assert "        params: SearchTypes.Search_Parameters,\n" in str(accessor)

    def test_strip_path_prefix(self):
        """Префикс отрезается только в URL, баннер содержит исходный путь"""
        operation = OperationDescriptor(path="/api/v1/pets", method="get")
        accessor = build_accessor_factory(
            operation, OperationTypeSet(primary_response_name="None"), "list", "T",
            strip_path_prefix="/api/v1",
        )

        assert accessor.url == '"/pets"'
        assert "GET /api/v1/pets" in accessor.banner

    def test_warnings_and_any_response(self):
        """Предупреждения выводятся комментариями, Any-ответ возвращается как есть"""
        accessor = build_accessor_factory(
            GET_PET, OperationTypeSet(response_failed=True), "get_pet", "PetsTypes"
        )
        source = str(accessor)

        assert source.startswith("# ⚠️ Response type for GET /pets/{pet-id}")
        assert ") -> Any:" in source
        assert "        return response.data" in source

    def test_void_response(self):
        """Функция без тела ответа возвращает None"""
        accessor = build_accessor_factory(
            GET_PET, OperationTypeSet(primary_response_name="None"), "get_pet", "PetsTypes"
        )
        source = str(accessor)

        assert ") -> None:" in source
        assert "        return None" in source

    def test_deprecated_docstring(self):
        """Устаревшая операция помечается в docstring"""
        operation = OperationDescriptor(path="/old", method="get", deprecated=True)
        accessor = build_accessor_factory(
            operation, OperationTypeSet(primary_response_name="None"), "old", "T"
        )

        assert '"""Deprecated."""' in str(accessor)


class TestSubscriptionFactory:
    """Тесты фабрик подписок"""

    def test_query_subscription(self):
        """GET превращается в QuerySubscription с детерминированным ключом"""
        accessor = build_accessor_factory(GET_PET, GET_PET_TYPES, "get_pet", "PetsTypes")
        subscription = build_subscription_factory(
            GET_PET, accessor, "use_get_pet", "pets", "PetsByPetId"
        )
        source = str(subscription)

        assert subscription.shape == QUERY
        assert subscription.factory_name == "create_use_get_pet_hook"
        assert subscription.query_key == ["'pets'", "'PetsByPetId'", "pet_id"]
        assert "    get_pet = create_get_pet_function(requester)" in source
        assert ") -> QuerySubscription[PetsTypes.GetPet_Response]:" in source
        assert "query_key=('pets', 'PetsByPetId', pet_id)," in source
        assert (
            "query_fn=lambda: get_pet(pet_id, call_options=call_options, "
            "custom_flags=custom_flags)," in source
        )
        assert "        query_options: Optional[Dict[str, Any]] = None," in source
        assert source.endswith("    return use_get_pet")

    def test_query_key_includes_parameters(self):
        """Query параметры входят в ключ кэша"""
        operation = OperationDescriptor(
            path="/pets", method="get", query_parameters=(ParameterDescriptor(name="limit"),)
        )
        type_set = OperationTypeSet(
            parameters_name="ListPets_Parameters", primary_response_name="None"
        )
        accessor = build_accessor_factory(operation, type_set, "list_pets", "PetsTypes")
        subscription = build_subscription_factory(
            operation, accessor, "use_list_pets", "pets", "ListPets"
        )
        source = str(subscription)

        assert "query_key=('pets', 'ListPets', params)," in source
        assert "list_pets(params=params, call_options=call_options" in source

    def test_mutation_with_body_and_parameters(self):
        """Тело - variables, query параметры передаются фабрике отдельно"""
        accessor = build_accessor_factory(CREATE_PET, CREATE_PET_TYPES, "create_pet", "PetsTypes")
        subscription = build_subscription_factory(
            CREATE_PET, accessor, "use_create_pet", "pets", "CreatePet"
        )
        source = str(subscription)

        assert subscription.shape == MUTATION
        assert subscription.variables_type == "CreatePet_Request"
        assert subscription.separate_query_params
        assert [p.name for p in subscription.parameters] == [
            "query_params",
            "call_options",
            "custom_flags",
            "mutation_options",
        ]
        assert (
            ") -> MutationSubscription[PetsTypes.CreatePet_Request, PetsTypes.CreatePet_Response]:"
            in source
        )
        assert (
            "async def mutation_fn(variables: PetsTypes.CreatePet_Request) "
            "-> PetsTypes.CreatePet_Response:" in source
        )
        assert "create_pet(data=variables, params=query_params," in source

    def test_mutation_with_parameters_only(self):
        """Без тела variables - query параметры"""
        operation = OperationDescriptor(
            path="/pets/sync", method="post", query_parameters=(ParameterDescriptor(name="force"),)
        )
        type_set = OperationTypeSet(
            parameters_name="Sync_Parameters", primary_response_name="None"
        )
        accessor = build_accessor_factory(operation, type_set, "sync", "PetsTypes")
        subscription = build_subscription_factory(operation, accessor, "use_sync", "pets", "Sync")

        assert subscription.variables_type == "Sync_Parameters"
        assert "sync(params=variables," in str(subscription)

    def test_mutation_without_variables(self):
        """Мутация без тела и query параметров"""
        operation = OperationDescriptor(
            path="/pets/{id}",
            method="delete",
            path_parameters=(ParameterDescriptor(name="id", required=True),),
        )
        accessor = build_accessor_factory(
            operation, OperationTypeSet(primary_response_name="None"), "delete_pet", "PetsTypes"
        )
        subscription = build_subscription_factory(
            operation, accessor, "use_delete_pet", "pets", "DeletePet"
        )
        source = str(subscription)

        assert ") -> MutationSubscription[None, None]:" in source
        assert "async def mutation_fn(variables: None = None) -> None:" in source
        assert "return await delete_pet(id, call_options=call_options" in source
