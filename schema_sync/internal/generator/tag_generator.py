import logging
import posixpath
from collections import defaultdict
from typing import Any, Dict, List, Optional

from ...config import SchemaSyncConfig
from ...exceptions import OrchestrationError
from ..parser.openapi import OpenApiParser
from ..types.models import CodeBlock, OperationDescriptor, Project, TagGroup
from ..types.name_registry import NameRegistry, declaration_names
from ..utils.naming import (
    create_banner,
    pascal_case,
    path_based_base_name,
    render_name_template,
    to_identifier,
)
from .declaration_compiler import DeclarationCompiler
from .function_factory import AccessorFactory, build_accessor_factory
from .hook_factory import SubscriptionFactory, build_subscription_factory
from .operation_types import OperationTypeResolver
from .templates import templates

logger = logging.getLogger(__name__)


def type_base_name(operation: OperationDescriptor) -> str:
    """Основа имен типов: operationId или метод + путь"""
    if operation.operation_id:
        return pascal_case(operation.operation_id)
    return pascal_case(operation.method) + path_based_base_name(operation.path)


def endpoint_base_name(operation: OperationDescriptor) -> str:
    """Имя эндпоинта для ключа кэша: operationId или путь"""
    if operation.operation_id:
        return pascal_case(operation.operation_id)
    return path_based_base_name(operation.path)


def adapter_module_path(adapter_path: str) -> str:
    """schema_sync_client_setup.py -> schema_sync_client_setup (относительно корня вывода)"""
    if not adapter_path or posixpath.isabs(adapter_path.replace("\\", "/")):
        raise OrchestrationError(
            f"Custom requester adapter path {adapter_path!r} must be relative to the output directory"
        )

    normalized = posixpath.normpath(adapter_path.replace("\\", "/"))
    if normalized.endswith(".py"):
        normalized = normalized[: -len(".py")]

    parts = normalized.split("/")
    if any(not part.isidentifier() for part in parts):
        raise OrchestrationError(
            f"Custom requester adapter path {adapter_path!r} cannot be resolved to a module"
        )
    return ".".join(parts)


class TagGenerator:
    """
    Генерация бандлов по тегам.

    Группы обрабатываются строго последовательно: реестр имен общий на весь
    запуск, и дедупликация вспомогательных деклараций зависит от порядка
    (первый выпустивший тег становится владельцем).
    """

    def __init__(
        self,
        openapi_dict: Dict[str, Any],
        config: SchemaSyncConfig,
        registry: Optional[NameRegistry] = None,
        compiler: Optional[DeclarationCompiler] = None,
    ):
        self.openapi_dict = openapi_dict
        self.config = config
        self.registry = registry if registry is not None else NameRegistry()
        self.compiler = compiler or DeclarationCompiler()
        self.parser = OpenApiParser(openapi_dict)
        self.project = Project(name=posixpath.basename(config.output_dir.rstrip("/")) or "api")

    async def generate(self) -> Project:
        """Основная генерация"""
        self.config.validate()
        adapter_module = None
        if not self.config.use_default_requester:
            adapter_module = adapter_module_path(self.config.custom_requester_adapter_path)

        groups = self.parser.parse()
        for group in groups:
            await self._generate_group(group, adapter_module)

        self._create_root_init(groups)
        if adapter_module and self.config.scaffold_requester_adapter:
            self._create_adapter_scaffold()

        return self.project

    async def _generate_group(self, group: TagGroup, adapter_module: Optional[str]):
        """Генерация всех бандлов одного тега"""
        logger.info(f"Generating files for tag: {group.tag_name} (package: {group.package})")

        resolver = OperationTypeResolver(
            self.registry,
            self.compiler,
            components=self.parser.components,
            operation_prefix=self.config.operation_type_prefix,
            schema_prefix=self.config.schema_type_prefix,
        )
        types_alias = render_name_template(
            self.config.types_alias_template, group.tag_name, group.tag_name
        )

        type_sources: List[str] = []
        accessors: List[AccessorFactory] = []
        subscriptions: List[SubscriptionFactory] = []

        for operation in group.operations:
            base_name = type_base_name(operation)
            type_set = await resolver.resolve(operation, base_name, owner=group.package)
            if type_set.types_source:
                type_sources.append(type_set.types_source)
            group.failures += type_set.failure_count

            function_name = render_name_template(
                self.config.function_name_template, base_name, group.tag_name
            )
            accessor = build_accessor_factory(
                operation,
                type_set,
                function_name,
                types_alias,
                strip_path_prefix=self.config.strip_path_prefix,
            )
            accessors.append(accessor)
            group.function_factory_names.append(accessor.factory_name)

            if self.config.generate_hooks:
                hook_name = render_name_template(
                    self.config.hook_name_template, base_name, group.tag_name
                )
                subscription = build_subscription_factory(
                    operation,
                    accessor,
                    hook_name,
                    group.sanitized_name,
                    endpoint_base_name(operation),
                )
                subscriptions.append(subscription)
                group.hook_factory_names.append(subscription.factory_name)

        group.types_source = "\n\n\n".join(type_sources)
        group.declaration_names = declaration_names(group.types_source)

        functions_text = "\n\n\n".join(str(accessor) for accessor in accessors)
        subscriptions_text = "\n\n\n".join(str(subscription) for subscription in subscriptions)

        self._create_types_file(group, functions_text + "\n" + subscriptions_text)
        self._create_functions_file(group, types_alias, accessors)
        if subscriptions_text.strip():
            self._create_subscriptions_file(group, types_alias, subscriptions)
        client_module = self._create_orchestrator_file(
            group, accessors, subscriptions, adapter_module
        )
        self._create_barrel_file(group, client_module)

        if group.failures:
            logger.warning(
                f"Tag {group.tag_name}: {group.failures} type(s) could not be generated, "
                f"see warning comments in {group.package}/types.py"
            )

    def _foreign_imports(self, group: TagGroup, text: str) -> List[str]:
        """Импорты деклараций, которые уже выпустил другой тег"""
        local = set(group.declaration_names)
        by_owner: Dict[str, List[str]] = defaultdict(list)

        for name in self.registry.referenced_names(text):
            owner = self.registry.owner_of(name)
            if name in local or not owner or owner == group.package:
                continue
            by_owner[owner].append(name)

        return [
            f"from ..{owner}.types import {', '.join(sorted(names))}"
            for owner, names in sorted(by_owner.items())
        ]

    def _create_types_file(self, group: TagGroup, factories_text: str):
        types_file = self.project.add_file(f"{group.package}/types.py")
        types_file.imports.append(templates.generated_notice)
        types_file.imports.extend(templates.types_imports)

        foreign = self._foreign_imports(group, group.types_source + "\n" + factories_text)
        if foreign:
            types_file.imports.append("")
            types_file.imports.extend(foreign)

        if group.types_source:
            types_file.add_code_block(CodeBlock(code=group.types_source, order=1))
        types_file.add_code_block(
            CodeBlock(code=f"__all__ = {group.declaration_names!r}", order=0)
        )

    def _create_functions_file(
        self, group: TagGroup, types_alias: str, accessors: List[AccessorFactory]
    ):
        functions_file = self.project.add_file(f"{group.package}/functions.py")
        functions_file.imports.append(templates.generated_notice)
        functions_file.imports.extend(
            line.format(types_alias=types_alias) for line in templates.functions_imports
        )

        functions_file.add_code_block(
            CodeBlock(code=create_banner(f"{group.tag_name} request functions"), order=len(accessors) + 1)
        )
        for index, accessor in enumerate(accessors):
            functions_file.add_code_block(CodeBlock(code=str(accessor), order=len(accessors) - index))

    def _create_subscriptions_file(
        self,
        group: TagGroup,
        types_alias: str,
        subscriptions: List[SubscriptionFactory],
    ):
        subscriptions_file = self.project.add_file(f"{group.package}/subscriptions.py")
        subscriptions_file.imports.append(templates.generated_notice)
        subscriptions_file.imports.extend(
            line.format(types_alias=types_alias) for line in templates.subscriptions_imports
        )

        accessor_factories = sorted({s.accessor_factory_name for s in subscriptions})
        subscriptions_file.imports.append("from .functions import (")
        subscriptions_file.imports.extend(f"    {name}," for name in accessor_factories)
        subscriptions_file.imports.append(")")

        subscriptions_file.add_code_block(
            CodeBlock(
                code=create_banner(f"{group.tag_name} subscriptions"),
                order=len(subscriptions) + 1,
            )
        )
        for index, subscription in enumerate(subscriptions):
            subscriptions_file.add_code_block(
                CodeBlock(code=str(subscription), order=len(subscriptions) - index)
            )

    def _create_orchestrator_file(
        self,
        group: TagGroup,
        accessors: List[AccessorFactory],
        subscriptions: List[SubscriptionFactory],
        adapter_module: Optional[str],
    ) -> str:
        """Модуль, который связывает фабрики с конкретным requester"""
        client_module = to_identifier(f"{group.package}{self.config.client_module_suffix}")
        if client_module in ("types", "functions", "subscriptions"):
            raise OrchestrationError(
                f"Client module name {client_module!r} collides with a generated module"
            )

        orchestrator = self.project.add_file(f"{group.package}/{client_module}.py")
        orchestrator.imports.append(templates.generated_notice)

        if self.config.use_default_requester:
            if not self.config.get_token_module:
                raise OrchestrationError("Default requester selected without a token module")
            orchestrator.imports.append("from schema_sync.runtime import create_default_requester")
            orchestrator.imports.append("")
            orchestrator.imports.append(
                f"from {self.config.get_token_module} import {self.config.get_token_export}"
            )
        else:
            if not adapter_module:
                raise OrchestrationError(
                    "Custom requester mode requires a resolved adapter module"
                )
            orchestrator.imports.append("")
            orchestrator.imports.append(f"from ..{adapter_module} import requester")

        exports: List[str] = []
        instances: List[str] = []

        if self.config.generate_functions and accessors:
            orchestrator.imports.append("from .functions import (")
            orchestrator.imports.extend(f"    {a.factory_name}," for a in accessors)
            orchestrator.imports.append(")")
            for accessor in accessors:
                instances.append(f"{accessor.function_name} = {accessor.factory_name}(requester)")
                exports.append(accessor.function_name)

        if subscriptions:
            orchestrator.imports.append("from .subscriptions import (")
            orchestrator.imports.extend(f"    {s.factory_name}," for s in subscriptions)
            orchestrator.imports.append(")")
            for subscription in subscriptions:
                instances.append(
                    f"{subscription.hook_name} = {subscription.factory_name}(requester)"
                )
                exports.append(subscription.hook_name)

        if self.config.use_default_requester:
            orchestrator.add_code_block(
                CodeBlock(
                    code=templates.default_requester.format(
                        base_url=repr(self.config.base_url) if self.config.base_url else None,
                        get_token=self.config.get_token_export,
                    ),
                    order=3,
                )
            )
        if instances:
            orchestrator.add_code_block(CodeBlock(code="\n".join(instances), order=2))
        orchestrator.add_code_block(
            CodeBlock(code=f"__all__ = {(['requester'] + exports)!r}", order=1)
        )

        return client_module

    def _create_barrel_file(self, group: TagGroup, client_module: str):
        barrel = self.project.add_file(f"{group.package}/__init__.py")
        barrel.imports.append(templates.generated_notice)
        barrel.imports.append("from .types import *  # noqa: F401,F403")
        barrel.imports.append(f"from .{client_module} import *  # noqa: F401,F403")

    def _create_root_init(self, groups: List[TagGroup]):
        root = self.project.add_file("__init__.py")
        root.imports.append(templates.generated_notice)
        root.imports.extend(f"from . import {group.package}" for group in groups)
        root.add_code_block(
            CodeBlock(code=f"__all__ = {[group.package for group in groups]!r}")
        )

    def _create_adapter_scaffold(self):
        file_name = posixpath.normpath(
            self.config.custom_requester_adapter_path.replace("\\", "/")
        )
        if not file_name.endswith(".py"):
            file_name = f"{file_name}.py"

        scaffold = self.project.add_scaffold(file_name)
        scaffold.add_code_block(
            CodeBlock(
                code=templates.scaffold_adapter.format(
                    file_name=file_name,
                    base_url=repr(self.config.base_url) if self.config.base_url else None,
                ).rstrip("\n")
            )
        )
