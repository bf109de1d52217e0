"""
Конфигурация генератора schema-sync
"""

import os
import re
import string
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

import toml

from .exceptions import ConfigurationError
from .internal.utils.naming import NAME_TEMPLATE_FIELDS

CONFIG_FILE_NAME = "schema-sync.toml"

_MODULE_PATH_RE = re.compile(r"^[A-Za-z_]\w*(\.[A-Za-z_]\w*)*$")
_PREFIX_RE = re.compile(r"^([A-Za-z_]\w*)?$")


@dataclass
class SchemaSyncConfig:
    """Конфигурация генератора (schema-sync.toml + аргументы командной строки)"""

    input: Optional[str] = None
    output_dir: str = "api_client"
    base_url: Optional[str] = None

    generate_functions: bool = True
    generate_hooks: bool = True
    function_name_template: str = "{name}"
    hook_name_template: str = "use_{name}"
    types_alias_template: str = "{Tag}Types"

    use_default_requester: bool = False
    client_module_suffix: str = "_client"
    get_token_module: Optional[str] = None
    get_token_export: str = "get_token"
    custom_requester_adapter_path: str = "schema_sync_client_setup.py"
    scaffold_requester_adapter: bool = True

    strip_path_prefix: Optional[str] = None
    operation_type_prefix: str = ""
    schema_type_prefix: str = "SSGEN_"

    format_with_black: bool = True
    verbose: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchemaSyncConfig":
        known = {field.name for field in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    @classmethod
    def from_file(
        cls, config_path: str = CONFIG_FILE_NAME, search_dir: str = None
    ) -> Optional["SchemaSyncConfig"]:
        """Загрузка конфигурации из файла"""
        # Если указана директория для поиска, ищем конфиг там
        if search_dir and os.path.isdir(search_dir):
            config_in_dir = os.path.join(search_dir, CONFIG_FILE_NAME)
            if os.path.exists(config_in_dir):
                config_path = config_in_dir

        if not os.path.exists(config_path):
            return None

        try:
            config_data = toml.load(config_path)
        except (OSError, toml.TomlDecodeError) as e:
            raise ConfigurationError(f"Не удалось прочитать {config_path}: {e}")

        # Допускаем как плоский файл, так и секцию [schema-sync]
        section = config_data.get("schema-sync", config_data)
        return cls.from_dict(section)

    def save_to_file(self, config_path: str = CONFIG_FILE_NAME) -> None:
        """Сохранение конфигурации в файл"""
        # toml не умеет None - такие ключи просто не пишем
        config_data = {key: value for key, value in asdict(self).items() if value is not None}

        with open(config_path, "w") as f:
            toml.dump(config_data, f)

    def merge_with_args(self, args) -> "SchemaSyncConfig":
        """Объединение с аргументами командной строки (аргументы важнее файла)"""
        merged = SchemaSyncConfig(**asdict(self))

        if getattr(args, "input", None):
            merged.input = args.input
        if getattr(args, "output", None):
            merged.output_dir = args.output
        if getattr(args, "base_url", None):
            merged.base_url = args.base_url
        if getattr(args, "black", None) is not None:
            merged.format_with_black = args.black
        if getattr(args, "adapter_path", None):
            merged.custom_requester_adapter_path = args.adapter_path
        if getattr(args, "scaffold_adapter", None) is not None:
            merged.scaffold_requester_adapter = args.scaffold_adapter
        if getattr(args, "strip_path_prefix", None) is not None:
            # Пустая строка отключает отрезание префикса
            merged.strip_path_prefix = args.strip_path_prefix or None
        if getattr(args, "default_requester", False):
            merged.use_default_requester = True
        if getattr(args, "token_module", None):
            merged.get_token_module = args.token_module
        if getattr(args, "no_hooks", False):
            merged.generate_hooks = False
        if getattr(args, "verbose", False):
            merged.verbose = True

        return merged

    def validate(self) -> "SchemaSyncConfig":
        """Проверка конфигурации до начала генерации; ConfigurationError при ошибке"""
        if self.use_default_requester and not self.get_token_module:
            raise ConfigurationError(
                "get_token_module is required when use_default_requester is enabled"
            )
        if self.get_token_module and not _MODULE_PATH_RE.match(self.get_token_module):
            raise ConfigurationError(
                f"get_token_module must be a dotted module path, got {self.get_token_module!r}"
            )
        if not self.get_token_export.isidentifier():
            raise ConfigurationError(
                f"get_token_export must be an identifier, got {self.get_token_export!r}"
            )

        for option in (
            "function_name_template",
            "hook_name_template",
            "types_alias_template",
        ):
            template = getattr(self, option)
            try:
                placeholders = [
                    name for _, name, _, _ in string.Formatter().parse(template) if name
                ]
            except ValueError as e:
                raise ConfigurationError(f"Invalid {option} {template!r}: {e}")

            unknown = [name for name in placeholders if name not in NAME_TEMPLATE_FIELDS]
            if unknown:
                raise ConfigurationError(
                    f"Unknown placeholder {{{unknown[0]}}} in {option} {template!r}; "
                    f"allowed: {', '.join('{' + name + '}' for name in NAME_TEMPLATE_FIELDS)}"
                )

        for option in ("operation_type_prefix", "schema_type_prefix"):
            if not _PREFIX_RE.match(getattr(self, option)):
                raise ConfigurationError(
                    f"{option} must be empty or a valid identifier prefix, "
                    f"got {getattr(self, option)!r}"
                )

        if not re.match(r"^\w*$", self.client_module_suffix):
            raise ConfigurationError(
                f"client_module_suffix must contain only letters, digits and underscores, "
                f"got {self.client_module_suffix!r}"
            )

        return self
