"""
Тесты утилит именования
"""

from schema_sync.internal.utils.naming import (
    BANNER_WIDTH,
    create_banner,
    create_route_banner,
    package_name,
    pascal_case,
    path_based_base_name,
    render_name_template,
    sanitize_tag_name,
    snake_case,
    to_identifier,
)


class TestIdentifiers:
    """Тесты преобразования строк в идентификаторы"""

    def test_to_identifier(self):
        """Тест очистки произвольных имен"""
        assert to_identifier("pet-id") == "pet_id"
        assert to_identifier("2fa") == "param_2fa"
        assert to_identifier("class") == "class_"
        assert to_identifier("None") == "None_"
        assert to_identifier("petId") == "petId"

    def test_pascal_case(self):
        """Тест PascalCase без потери регистра"""
        assert pascal_case("getPetById") == "GetPetById"
        assert pascal_case("find pets/by-status") == "FindPetsByStatus"
        assert pascal_case("") == "Type"
        assert pascal_case("2fa") == "_2fa"

    def test_snake_case(self):
        """Тест snake_case с аббревиатурами"""
        assert snake_case("GetPetsById") == "get_pets_by_id"
        assert snake_case("HTTPValidationError") == "http_validation_error"
        assert snake_case("list-pets") == "list_pets"


class TestPathNames:
    """Тесты имен по пути и тегу"""

    def test_path_based_base_name(self):
        """Тест базового имени эндпоинта"""
        assert path_based_base_name("/pets/{id}") == "PetsById"
        assert path_based_base_name("/api/users/{user_id}/orders") == "UsersByUserIdOrders"
        assert path_based_base_name("/v2/items") == "Items"
        assert path_based_base_name("/") == "RootOperation"
        assert path_based_base_name("") == "RootOperation"

    def test_sanitize_tag_name(self):
        """Тест очистки имени тега"""
        assert sanitize_tag_name("Pets") == "pets"
        assert sanitize_tag_name("Pet Store/Admin") == "pet-store-admin"

    def test_package_name(self):
        """Тест имени Python-пакета для тега"""
        assert package_name("pet-store-admin") == "pet_store_admin"
        assert package_name("2fa") == "tag_2fa"
        assert package_name("import") == "import_"
        assert package_name("---") == "default"


class TestTemplates:
    """Тесты шаблонов имен и баннеров"""

    def test_render_name_template(self):
        """Тест подстановки плейсхолдеров"""
        assert render_name_template("{name}", "GetPetById") == "get_pet_by_id"
        assert render_name_template("use_{name}", "GetPetById") == "use_get_pet_by_id"
        assert render_name_template("{Tag}Types", "Pets", "Pets") == "PetsTypes"
        assert render_name_template("{tag}_{name}", "ListPets", "Pet Store") == "pet_store_list_pets"

    def test_create_banner(self):
        """Тест баннера фиксированной ширины"""
        banner = create_banner("Pets request functions")
        lines = banner.split("\n")

        assert len(lines) == 3
        assert lines[0] == "# " + "-" * BANNER_WIDTH
        assert "Pets request functions" in lines[1]

    def test_create_route_banner(self):
        """Тест однострочного баннера маршрута"""
        banner = create_route_banner("get", "/pets/{id}")

        assert banner.startswith("# -")
        assert " GET /pets/{id} " in banner
        assert "\n" not in banner
