"""Утилиты для работы с именами деклараций, функций и пакетов"""

import keyword
import re
from typing import Dict

BANNER_WIDTH = 74

NAME_TEMPLATE_FIELDS = ("name", "Name", "tag", "Tag")


def to_identifier(name: str) -> str:
    """
    Превращает произвольную строку в допустимый идентификатор Python,
    сохраняя регистр исходного имени.

    Examples:
        >>> to_identifier("pet-id")
        'pet_id'
        >>> to_identifier("2fa")
        'param_2fa'
        >>> to_identifier("class")
        'class_'
    """
    if not name:
        return "_"

    cleaned = re.sub(r"[^a-zA-Z0-9_]+", "_", name)
    cleaned = re.sub(r"_+", "_", cleaned).strip("_")

    if not cleaned:
        return "_"
    # Если имя начинается с цифры, добавляем префикс
    if cleaned[0].isdigit():
        cleaned = f"param_{cleaned}"
    if keyword.iskeyword(cleaned) or cleaned in ("None", "True", "False"):
        cleaned = f"{cleaned}_"
    return cleaned


def pascal_case(name: str) -> str:
    """
    PascalCase без потери регистра внутри слов: getPetById -> GetPetById

    Examples:
        >>> pascal_case("find pets/by-status")
        'FindPetsByStatus'
    """
    if not name:
        return "Type"

    parts = [part for part in re.split(r"[^a-zA-Z0-9]", name) if part]
    result = "".join(part[0].upper() + part[1:] for part in parts)

    if not result:
        return "Type"
    if result[0].isdigit():
        result = f"_{result}"
    return result


def snake_case(name: str) -> str:
    """
    snake_case с корректной обработкой аббревиатур:
    HTTPValidationError -> http_validation_error
    """
    name = re.sub(r"[^a-zA-Z0-9]+", "_", name)

    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    s2 = re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1)
    s3 = re.sub("([A-Z]+)([A-Z][a-z])", r"\1_\2", s2)
    s4 = re.sub("_+", "_", s3).strip("_").lower()

    return to_identifier(s4)


def path_based_base_name(path: str) -> str:
    """
    Базовое имя эндпоинта по пути. Префиксы /api/ и /vN/ отбрасываются,
    path параметры превращаются в By<Param>.

    Examples:
        >>> path_based_base_name("/pets/{id}")
        'PetsById'
        >>> path_based_base_name("/api/users/{user_id}/orders")
        'UsersByUserIdOrders'
        >>> path_based_base_name("/")
        'RootOperation'
    """
    cleaned = re.sub(r"^/(api|v\d+)/|^/", "", path)
    parts = []

    for segment in cleaned.split("/"):
        if not segment:
            continue
        if segment.startswith("{") and segment.endswith("}"):
            parts.append("By" + pascal_case(segment[1:-1]))
        else:
            parts.append(pascal_case(segment))

    if not parts:
        return "RootOperation"
    return "".join(parts)


def sanitize_tag_name(tag: str) -> str:
    """Имя тега для ключей кэша и директорий: нижний регистр, пробелы и / -> -"""
    return re.sub(r"\s+|/", "-", tag.lower())


def package_name(sanitized_tag: str) -> str:
    """Имя Python-пакета для тега (дефисы недопустимы в импортах)"""
    name = re.sub(r"[^a-z0-9_]+", "_", sanitized_tag.lower())
    name = re.sub(r"_+", "_", name).strip("_")

    if not name:
        return "default"
    if name[0].isdigit():
        name = f"tag_{name}"
    if keyword.iskeyword(name):
        name = f"{name}_"
    return name


def render_name_template(template: str, stem: str, tag: str = "") -> str:
    """
    Подстановка в шаблон имени. Поддерживаются {name} (snake_case основа),
    {Name} (PascalCase основа), {tag} и {Tag}.
    """
    values: Dict[str, str] = {
        "name": snake_case(stem),
        "Name": pascal_case(stem),
        "tag": package_name(sanitize_tag_name(tag)) if tag else "",
        "Tag": pascal_case(tag) if tag else "",
    }
    return to_identifier(template.format(**values))


def create_banner(text: str, char: str = "-") -> str:
    """Баннер-комментарий фиксированной ширины"""
    padding_total = BANNER_WIDTH - len(text) - 2
    line = "# " + char * BANNER_WIDTH

    if padding_total < 0:
        return f"{line}\n# {text}\n{line}"

    padding_left = padding_total // 2
    padding_right = padding_total - padding_left
    padded = f"{char * padding_left} {text} {char * padding_right}"
    return f"{line}\n# {padded}\n{line}"


def create_route_banner(method: str, path: str, char: str = "-") -> str:
    """Однострочный баннер маршрута: # ---- GET /pets ----"""
    route = f"{method.upper()} {path}"
    side_width = (BANNER_WIDTH - len(route) - 2) // 2
    dashes = char * (side_width if side_width > 0 else 1)
    return f"# {dashes} {route} {dashes}"
