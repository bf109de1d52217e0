from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel

# Маркеры обобщенных типов по умолчанию
ANY = "Any"
NEVER = "Never"
VOID = "None"

SAFE_METHODS = ("get", "head", "options", "trace")
HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")


class Parameter(BaseModel):
    name: str

    var_type: Optional[str] = None
    default: Optional[str] = None

    order: int = 0

    def __str__(self):
        return (
            self.name
            + (f": {self.var_type}" if self.var_type else "")
            + (f" = {self.default}" if self.default else "")
        )


class CodeBlock(BaseModel):
    order: int = 0
    code: str = "pass"

    def __str__(self):
        return self.code.replace("\t", "    ")


class CodeFile(BaseModel):
    """Сгенерированный файл - перезаписывается при каждом запуске"""

    file_name: str

    imports: list[str] = []
    code_blocks: list[CodeBlock] = []

    def __str__(self):
        return (
            "\n\n".join(
                filter(
                    bool,
                    [
                        ("\n".join(self.imports) if self.imports else ""),
                        (
                            "\n\n\n".join(
                                map(
                                    str,
                                    sorted(
                                        self.code_blocks,
                                        key=lambda x: x.order,
                                        reverse=True,
                                    ),
                                )
                            )
                        ),
                    ],
                )
            ).replace("\t", "    ")
            + "\n"
        )

    def add_code_block(
        self, code_block: Union[CodeBlock, str], **kwargs
    ) -> "CodeFile":
        if isinstance(code_block, str):
            code_block = CodeBlock(code=code_block, **kwargs)

        self.code_blocks.append(code_block)
        return self


class ScaffoldFile(CodeFile):
    """Файл-заготовка для пользователя - пишется только если его еще нет"""


class Project(BaseModel):
    name: str
    files: list[CodeFile] = []
    scaffolds: list[ScaffoldFile] = []

    def add_file(self, file_name: Union[CodeFile, str], **kwargs) -> CodeFile:
        code_file = (
            CodeFile(file_name=file_name, **kwargs)
            if isinstance(file_name, str)
            else file_name
        )
        self.files.append(code_file)
        return code_file

    def add_scaffold(self, file_name: str, **kwargs) -> ScaffoldFile:
        scaffold = ScaffoldFile(file_name=file_name, **kwargs)
        self.scaffolds.append(scaffold)
        return scaffold

    def get_file(self, file_name: str) -> Optional[CodeFile]:
        for code_file in self.files + self.scaffolds:
            if code_file.file_name == file_name:
                return code_file
        return None


@dataclass(frozen=True)
class ParameterDescriptor:
    """Path или query параметр операции"""

    name: str
    required: bool = False
    schema: Optional[Dict[str, Any]] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class ResponseDescriptor:
    """Ответ операции: есть ли тело и есть ли у него JSON-схема"""

    has_content: bool = False
    schema: Optional[Dict[str, Any]] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class OperationDescriptor:
    """Нормализованная операция OpenAPI (метод + путь)"""

    path: str
    method: str
    path_parameters: Tuple[ParameterDescriptor, ...] = ()
    query_parameters: Tuple[ParameterDescriptor, ...] = ()
    has_request_body: bool = False
    request_body_schema: Optional[Dict[str, Any]] = None
    responses: Dict[str, ResponseDescriptor] = field(default_factory=dict)
    tags: Tuple[str, ...] = ()
    security_required: bool = False
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    deprecated: bool = False

    @property
    def is_mutation(self) -> bool:
        return self.method.lower() not in SAFE_METHODS

    @property
    def primary_status_code(self) -> str:
        # Фиксированная эвристика: 201 для POST, 200 для остальных
        return "201" if self.method.lower() == "post" else "200"

    @property
    def has_query_parameters(self) -> bool:
        return bool(self.query_parameters)

    def success_responses(self) -> List[Tuple[str, ResponseDescriptor]]:
        return [
            (status, response)
            for status, response in self.responses.items()
            if status.startswith("2")
        ]


@dataclass(frozen=True)
class OperationTypeSet:
    """Результат компиляции типов одной операции"""

    request_body_name: Optional[str] = None
    parameters_name: Optional[str] = None
    primary_response_name: Optional[str] = None
    request_body_failed: bool = False
    parameters_failed: bool = False
    response_failed: bool = False
    primary_response_generated: bool = False
    types_source: str = ""

    @property
    def failure_count(self) -> int:
        return sum(
            [self.request_body_failed, self.parameters_failed, self.response_failed]
        )

    @property
    def declared_names(self) -> List[str]:
        return [
            name
            for name in (
                self.request_body_name,
                self.parameters_name,
                self.primary_response_name,
            )
            if name and name != VOID
        ]


@dataclass
class TagGroup:
    """Операции одного тега и накопленные результаты генерации"""

    tag_name: str
    sanitized_name: str
    package: str
    operations: List[OperationDescriptor] = field(default_factory=list)
    declaration_names: List[str] = field(default_factory=list)
    function_factory_names: List[str] = field(default_factory=list)
    hook_factory_names: List[str] = field(default_factory=list)
    types_source: str = ""
    failures: int = 0
