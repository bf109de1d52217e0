import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

import black

from schema_sync.config import CONFIG_FILE_NAME, SchemaSyncConfig
from schema_sync.exceptions import SchemaSyncError
from schema_sync.generator import SchemaSyncGenerator
from schema_sync.internal.parser.loader import load_spec
from schema_sync.internal.types.models import CodeFile, Project

logger = logging.getLogger("schema_sync")


def configure_logging(verbose: bool = False):
    """Логи движка: WARNING по умолчанию, DEBUG с --verbose"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def format_source(code_file: CodeFile, use_black: bool) -> str:
    """Текст файла, при необходимости отформатированный black"""
    source = str(code_file)
    if not use_black or not code_file.file_name.endswith(".py"):
        return source

    try:
        return black.format_str(source, mode=black.Mode())
    except black.InvalidInput as e:
        logger.warning(f"black could not format {code_file.file_name}: {e}")
        return source


def _generate_project(config: SchemaSyncConfig) -> Project:
    """Ядро генерации - только генерация без сохранения"""
    config.validate()

    print(f"🚀 Генерация клиента из {config.input}")
    print("📥 Загрузка OpenAPI спецификации...")
    openapi_spec = load_spec(config.input)

    print("⚙️ Генерация кода...")
    generator = SchemaSyncGenerator(openapi_spec, config, dereferenced=True)
    return asyncio.run(generator.generate())


def save_project_files(
    project: Project, target_path: str, use_black: bool = False
) -> List[str]:
    """
    Сохранение файлов проекта. Сгенерированные файлы перезаписываются всегда,
    заготовки (scaffold) - только если их еще нет.
    """
    written = []
    print(f"💾 Сохранение {len(project.files)} файлов...")

    for code_model in project.files:
        path = os.path.join(target_path, code_model.file_name)
        os.makedirs(os.path.dirname(path), exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            f.write(format_source(code_model, use_black))
        written.append(path)

    for scaffold in project.scaffolds:
        path = os.path.join(target_path, scaffold.file_name)
        if os.path.exists(path):
            print(f"📌 {scaffold.file_name} уже существует, не перезаписываем")
            continue

        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(format_source(scaffold, use_black))
        written.append(path)
        print(f"🧩 Создана заготовка {scaffold.file_name}")

    return written


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schema-sync",
        description="Генерация Python клиента (модели, функции, подписки) из OpenAPI",
    )
    parser.add_argument("-i", "--input", type=str, help="Путь или URL OpenAPI спецификации (JSON)")
    parser.add_argument("-o", "--output", type=str, help="Директория для генерации клиента")
    parser.add_argument(
        "--config", type=str, default=CONFIG_FILE_NAME, help="Путь к конфигу schema-sync.toml"
    )
    parser.add_argument(
        "--init-config", action="store_true", help="Создать конфиг файл schema-sync.toml"
    )
    parser.add_argument("--base-url", type=str, help="Базовый URL API для requester")
    parser.add_argument(
        "--black",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Форматировать сгенерированные файлы black",
    )
    parser.add_argument(
        "--adapter-path",
        type=str,
        help="Путь к модулю requester (относительно директории клиента)",
    )
    parser.add_argument(
        "--scaffold-adapter",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Создавать заготовку модуля requester, если ее нет",
    )
    parser.add_argument(
        "--strip-path-prefix",
        type=str,
        default=None,
        help='Префикс, отрезаемый от путей в URL ("" - не отрезать)',
    )
    parser.add_argument(
        "--default-requester",
        action="store_true",
        help="Использовать встроенный requester вместо своего модуля",
    )
    parser.add_argument(
        "--token-module",
        type=str,
        help="Модуль с функцией get_token для встроенного requester",
    )
    parser.add_argument("--no-hooks", action="store_true", help="Не генерировать подписки")
    parser.add_argument("--verbose", action="store_true", help="Подробные логи")
    return parser


def main(argv: Optional[List[str]] = None):
    """Универсальная команда генерации клиента"""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    # Инициализация конфига
    if args.init_config:
        config = SchemaSyncConfig().merge_with_args(args)
        config.save_to_file(args.config)
        print(f"✅ Создан конфиг файл {args.config}")
        return

    try:
        file_config = SchemaSyncConfig.from_file(args.config)
        if file_config:
            print(f"📋 Используется конфиг из {args.config}")

        final_config = (file_config or SchemaSyncConfig()).merge_with_args(args)
        if final_config.verbose and not args.verbose:
            configure_logging(True)

        # Проверка обязательных параметров
        if not final_config.input:
            print("❌ Ошибка: Укажите --input или создайте конфиг с --init-config")
            sys.exit(1)

        project = _generate_project(final_config)
        save_project_files(project, final_config.output_dir, final_config.format_with_black)

    except SchemaSyncError as e:
        print(f"❌ Ошибка генерации: {e.message}")
        sys.exit(e.exit_code)

    print("✅ Генерация завершена успешно!")
    print(f"📦 Клиент создан в: {os.path.abspath(final_config.output_dir)}")


if __name__ == "__main__":
    main()
