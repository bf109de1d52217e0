"""Утилиты для генератора"""

from .naming import (
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

__all__ = [
    "create_banner",
    "create_route_banner",
    "package_name",
    "pascal_case",
    "path_based_base_name",
    "render_name_template",
    "sanitize_tag_name",
    "snake_case",
    "to_identifier",
]
