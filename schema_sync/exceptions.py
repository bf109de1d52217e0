"""
Иерархия исключений генератора

Ошибки данных (битые $ref, несобираемые схемы) не выходят за пределы движка:
они превращаются в комментарии в сгенерированных файлах. Наружу пробрасываются
только ошибки конфигурации и нарушения инвариантов оркестрации.
"""


class SchemaSyncError(Exception):
    """Базовое исключение schema-sync"""

    exit_code: int = 1

    def __init__(self, message: str, exit_code: int = None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(SchemaSyncError):
    """Некорректная конфигурация - генерация не начинается"""


class OrchestrationError(SchemaSyncError):
    """Нарушен инвариант сборки бандлов (ошибка вызывающего кода или конфига)"""


class SpecLoadError(SchemaSyncError):
    """Спецификацию не удалось загрузить или разобрать"""


class SchemaCompileError(SchemaSyncError):
    """Фрагмент схемы не удалось превратить в декларацию"""

    def __init__(self, message: str, pointer: str = ""):
        self.pointer = pointer
        super().__init__(f"{message} (at {pointer})" if pointer else message)
