"""
Компилятор деклараций: JSON Schema фрагмент -> исходник pydantic моделей

Компилятор работает с одним фрагментом за раз и ничего не знает о префиксах
и глобальном реестре имен - этим занимается NameRegistry. На выходе корневая
декларация с заданным именем плюс вспомогательные декларации (вложенные
объекты, enum'ы, $ref на components), упорядоченные так, что зависимости
идут раньше зависимых.
"""

import keyword
import re
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel

from ...exceptions import SchemaCompileError
from ..utils.naming import pascal_case, to_identifier

# Имена, занятые заголовком модуля деклараций
RESERVED_NAMES = {
    "Any",
    "BaseModel",
    "ConfigDict",
    "Dict",
    "Enum",
    "Field",
    "List",
    "Literal",
    "Never",
    "Optional",
    "Union",
    "date",
    "datetime",
}

_BASEMODEL_ATTRIBUTES = set(dir(BaseModel))

_LITERAL_VALUE_RE = re.compile(r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\"")

_PRIMITIVE_TYPES = {
    "string": "str",
    "integer": "int",
    "number": "float",
    "boolean": "bool",
}

_FORMAT_TYPES = {
    "date-time": "datetime",
    "date": "date",
    "binary": "bytes",
    "byte": "bytes",
}


def _docstring(text: str, indent: str = "    ") -> List[str]:
    text = text.strip().replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    lines = text.split("\n")
    if len(lines) == 1:
        return [f'{indent}"""{lines[0]}"""']
    return [f'{indent}"""'] + [f"{indent}{line}".rstrip() for line in lines] + [f'{indent}"""']


def _literal_value(value: Any) -> str:
    if isinstance(value, str):
        return repr(value)
    if value is None or isinstance(value, (bool, int, float)):
        return repr(value)
    raise SchemaCompileError(f"Unsupported literal value {value!r}")


def _is_json_primitive(value: Any) -> bool:
    return value is None or isinstance(value, (str, bool, int, float))


class _Compilation:
    """Состояние компиляции одного фрагмента"""

    def __init__(
        self,
        root_name: str,
        components: Dict[str, Any],
        additional_properties: bool,
    ):
        self.root_name = root_name
        self.components = components or {}
        self.additional_properties = additional_properties

        self.declarations: List[Tuple[str, str]] = []
        self.known: Set[str] = set()
        self._stack: List[int] = []

    # ------------------------------------------------------------------ #
    # Корень
    # ------------------------------------------------------------------ #

    def compile_root(self, schema: Any):
        if not isinstance(schema, dict):
            raise SchemaCompileError(
                f"Schema for {self.root_name} must be an object, got {type(schema).__name__}",
                "#",
            )

        if "$ref" in schema or self._is_named(schema):
            target = self.annotation(schema, self.root_name, "#")
            self._alias(self.root_name, target)
        elif self._is_model(schema):
            self._declare(self.root_name, schema, "#")
        elif self._is_string_enum(schema):
            self._alias(self.root_name, self._literal(schema["enum"]))
        else:
            self._alias(self.root_name, self.annotation(schema, self.root_name, "#"))

    def render(self) -> str:
        return "\n\n\n".join(source for _, source in self.declarations)

    # ------------------------------------------------------------------ #
    # Аннотации типов
    # ------------------------------------------------------------------ #

    def annotation(self, schema: Any, context: str, pointer: str) -> str:
        """Аннотация типа для схемы; по пути выпускает вспомогательные декларации"""
        if schema is True or schema == {}:
            return "Any"
        if not isinstance(schema, dict):
            raise SchemaCompileError(
                f"Invalid schema fragment of type {type(schema).__name__}", pointer
            )

        if id(schema) in self._stack and not self._is_named(schema):
            raise SchemaCompileError("Circular schema without a title", pointer)

        self._stack.append(id(schema))
        try:
            result = self._annotation(schema, context, pointer)
        finally:
            self._stack.pop()

        if self._is_nullable(schema) and not result.startswith("Optional["):
            result = "Any" if result == "Any" else f"Optional[{result}]"
        return result

    def _annotation(self, schema: Dict[str, Any], context: str, pointer: str) -> str:
        if "$ref" in schema:
            name, target = self._resolve_ref(schema["$ref"], pointer)
            if name in self.known:
                return name
            return self._declare(name, target, schema["$ref"])

        if self._is_named(schema):
            name = self._aux_name(schema["title"])
            if name in self.known:
                return name
            return self._declare(name, schema, pointer)

        if "enum" in schema:
            return self._literal(schema["enum"])

        if "const" in schema:
            return self._literal([schema["const"]])

        for key in ("oneOf", "anyOf"):
            if key in schema:
                return self._union(schema[key], context, f"{pointer}/{key}")

        if "allOf" in schema:
            parts = schema["allOf"]
            if not isinstance(parts, list) or not parts:
                raise SchemaCompileError("allOf must be a non-empty list", pointer)
            if len(parts) == 1 and not schema.get("properties"):
                return self.annotation(parts[0], context, f"{pointer}/allOf/0")
            name = self._aux_name(context)
            if name in self.known:
                return name
            return self._declare(name, schema, pointer)

        schema_type = schema.get("type")

        if isinstance(schema_type, list):
            variants = [t for t in schema_type if t != "null"]
            if not variants:
                return "None"
            if len(variants) == 1:
                narrowed = dict(schema, type=variants[0])
                return self._annotation(narrowed, context, pointer)
            return self._union(
                [dict(schema, type=t) for t in variants], context, pointer
            )

        if schema_type is None:
            if "properties" in schema:
                schema_type = "object"
            elif "items" in schema:
                schema_type = "array"
            else:
                return "Any"

        if schema_type == "object":
            if schema.get("properties"):
                name = self._aux_name(context)
                if name in self.known:
                    return name
                return self._declare(name, schema, pointer)

            additional = schema.get("additionalProperties")
            if isinstance(additional, dict) and additional:
                value = self.annotation(
                    additional, f"{context}Value", f"{pointer}/additionalProperties"
                )
                return f"Dict[str, {value}]"
            return "Dict[str, Any]"

        if schema_type == "array":
            items = schema.get("items")
            if items is None:
                return "List[Any]"
            return f"List[{self.annotation(items, f'{context}Item', f'{pointer}/items')}]"

        if schema_type == "null":
            return "None"

        if schema_type in _PRIMITIVE_TYPES:
            if schema_type == "string" and schema.get("format") in _FORMAT_TYPES:
                return _FORMAT_TYPES[schema["format"]]
            return _PRIMITIVE_TYPES[schema_type]

        raise SchemaCompileError(f"Unsupported schema type {schema_type!r}", pointer)

    def _union(self, variants: Any, context: str, pointer: str) -> str:
        if not isinstance(variants, list) or not variants:
            raise SchemaCompileError("Union variants must be a non-empty list", pointer)

        members: List[str] = []
        nullable = False
        for index, variant in enumerate(variants):
            member = self.annotation(variant, f"{context}{index + 1}", f"{pointer}/{index}")
            if member == "None":
                nullable = True
            elif member not in members:
                members.append(member)

        if "Any" in members:
            return "Any"
        if not members:
            return "None"

        result = members[0] if len(members) == 1 else f"Union[{', '.join(members)}]"
        return f"Optional[{result}]" if nullable else result

    def _literal(self, values: Any) -> str:
        if not isinstance(values, list) or not values:
            raise SchemaCompileError("enum must be a non-empty list")

        rendered = [_literal_value(value) for value in values if value is not None]
        if not rendered:
            return "None"

        literal = f"Literal[{', '.join(rendered)}]"
        return f"Optional[{literal}]" if None in values else literal

    # ------------------------------------------------------------------ #
    # Декларации
    # ------------------------------------------------------------------ #

    def _declare(self, name: str, schema: Dict[str, Any], pointer: str) -> str:
        """Выпуск именованной декларации; зависимости выпускаются раньше"""
        self.known.add(name)

        if self._is_string_enum(schema) and name != self.root_name:
            source = self._enum_source(name, schema)
        elif self._is_model(schema):
            source = self._model_source(name, schema, pointer)
        else:
            unnamed = {k: v for k, v in schema.items() if k != "title"}
            target = self.annotation(unnamed, name, pointer)
            source = self._alias_source(name, target, pointer)

        self.declarations.append((name, source))
        return name

    def _alias(self, name: str, target: str):
        self.known.add(name)
        self.declarations.append((name, self._alias_source(name, target, "#")))

    def _alias_source(self, name: str, target: str, pointer: str) -> str:
        if re.search(rf"\b{re.escape(name)}\b", target):
            raise SchemaCompileError(f"Recursive alias {name}", pointer)
        return f"{name} = {target}"

    def _enum_source(self, name: str, schema: Dict[str, Any]) -> str:
        lines = [f"class {name}(str, Enum):"]
        if schema.get("description"):
            lines.extend(_docstring(schema["description"]))
            lines.append("")

        used: Set[str] = set()
        for value in schema["enum"]:
            member = to_identifier(str(value)).upper().rstrip("_") or "VALUE"
            if member[0].isdigit() or keyword.iskeyword(member.lower()):
                member = f"VALUE_{member}"
            candidate, counter = member, 2
            while candidate in used:
                candidate = f"{member}_{counter}"
                counter += 1
            used.add(candidate)
            lines.append(f"    {candidate} = {value!r}")

        return "\n".join(lines)

    def _model_source(self, name: str, schema: Dict[str, Any], pointer: str) -> str:
        properties, required = self._collect_properties(schema, pointer)

        body: List[str] = []
        has_alias = False
        used: Set[str] = set()

        for prop_name, prop_schema in properties.items():
            annotation = self.annotation(
                prop_schema,
                f"{name}{pascal_case(prop_name)}",
                f"{pointer}/properties/{prop_name}",
            )

            field_name = self._field_name(prop_name, used, annotation)
            used.add(field_name)

            is_required = prop_name in required
            default = None
            if isinstance(prop_schema, dict) and _is_json_primitive(
                prop_schema.get("default", ...)
            ):
                default = repr(prop_schema["default"])

            if not is_required and not annotation.startswith("Optional[") and annotation != "Any":
                annotation = f"Optional[{annotation}]"

            field_args: List[str] = []
            if field_name != prop_name:
                field_args.append(f"alias={prop_name!r}")
                has_alias = True
            description = (
                prop_schema.get("description") if isinstance(prop_schema, dict) else None
            )
            if description:
                field_args.append(f"description={description.strip()!r}")

            if is_required and default is None:
                default_expr = "..." if field_args else None
            else:
                default_expr = default if default is not None else "None"

            if field_args:
                value = f"Field({', '.join([default_expr] + field_args)})"
            else:
                value = default_expr

            body.append(
                f"    {field_name}: {annotation}" + (f" = {value}" if value else "")
            )

        config_args = []
        additional = schema.get("additionalProperties")
        if additional is False:
            config_args.append('extra="forbid"')
        elif self.additional_properties:
            config_args.append('extra="allow"')
        if has_alias:
            config_args.append("populate_by_name=True")

        lines = [f"class {name}(BaseModel):"]
        if schema.get("description"):
            lines.extend(_docstring(schema["description"]))
            lines.append("")
        if config_args:
            lines.append(f"    model_config = ConfigDict({', '.join(config_args)})")
            if body:
                lines.append("")
        lines.extend(body)

        if len(lines) == 1:
            lines.append("    pass")
        return "\n".join(lines)

    def _collect_properties(
        self, schema: Dict[str, Any], pointer: str
    ) -> Tuple[Dict[str, Any], Set[str]]:
        """Свойства объекта с учетом allOf (слияние всех частей)"""
        properties: Dict[str, Any] = {}
        required: Set[str] = set()

        for index, part in enumerate(schema.get("allOf", [])):
            if not isinstance(part, dict):
                raise SchemaCompileError("Invalid allOf member", f"{pointer}/allOf/{index}")
            if "$ref" in part:
                _, part = self._resolve_ref(part["$ref"], f"{pointer}/allOf/{index}")
            part_properties, part_required = self._collect_properties(
                part, f"{pointer}/allOf/{index}"
            )
            properties.update(part_properties)
            required.update(part_required)

        own = schema.get("properties") or {}
        if not isinstance(own, dict):
            raise SchemaCompileError("properties must be an object", pointer)
        properties.update(own)

        own_required = schema.get("required") or []
        if isinstance(own_required, list):
            required.update(own_required)

        return properties, required

    @staticmethod
    def _field_name(prop_name: str, used: Set[str], annotation: str = "") -> str:
        name = to_identifier(prop_name)
        # Поле не должно затенять имена типов из заголовка модуля и собственной аннотации
        annotation = _LITERAL_VALUE_RE.sub("", annotation)
        if name in RESERVED_NAMES or re.search(rf"\b{re.escape(name)}\b", annotation):
            name = f"{name}_"
        elif name in _BASEMODEL_ATTRIBUTES or name.startswith("model_"):
            name = f"{name}_" if not name.startswith("model_") else f"f_{name}"

        candidate, counter = name, 2
        while candidate in used:
            candidate = f"{name}_{counter}"
            counter += 1
        return candidate

    # ------------------------------------------------------------------ #
    # Ссылки и имена
    # ------------------------------------------------------------------ #

    def _resolve_ref(self, ref: Any, pointer: str) -> Tuple[str, Dict[str, Any]]:
        if not isinstance(ref, str) or not ref.startswith("#/"):
            raise SchemaCompileError(f"Unsupported reference {ref!r}", pointer)

        document = {"components": self.components}
        target: Any = document
        for segment in ref[2:].split("/"):
            segment = segment.replace("~1", "/").replace("~0", "~")
            if not isinstance(target, dict) or segment not in target:
                raise SchemaCompileError(f"Unresolved reference {ref}", pointer)
            target = target[segment]

        if not isinstance(target, dict):
            raise SchemaCompileError(f"Reference {ref} does not point to a schema", pointer)

        title = target.get("title")
        raw_name = title if isinstance(title, str) and title else ref.rsplit("/", 1)[-1]
        return self._aux_name(raw_name), target

    def _aux_name(self, raw_name: str) -> str:
        name = pascal_case(raw_name)
        if name in RESERVED_NAMES or keyword.iskeyword(name):
            name = f"{name}Model"
        if name == self.root_name:
            name = f"{name}Schema"
        return name

    # ------------------------------------------------------------------ #
    # Классификация схем
    # ------------------------------------------------------------------ #

    @staticmethod
    def _is_nullable(schema: Dict[str, Any]) -> bool:
        schema_type = schema.get("type")
        return bool(schema.get("nullable")) or (
            isinstance(schema_type, list) and "null" in schema_type and len(schema_type) > 1
        )

    @staticmethod
    def _is_string_enum(schema: Dict[str, Any]) -> bool:
        values = schema.get("enum")
        return (
            isinstance(values, list)
            and bool(values)
            and all(isinstance(value, str) for value in values)
        )

    @staticmethod
    def _is_model(schema: Dict[str, Any]) -> bool:
        parts = schema.get("allOf")
        if isinstance(parts, list) and (len(parts) > 1 or schema.get("properties")):
            return True
        return schema.get("type", "object") == "object" and bool(schema.get("properties"))

    def _is_named(self, schema: Dict[str, Any]) -> bool:
        title = schema.get("title")
        if not isinstance(title, str) or not title.strip():
            return False
        return self._is_model(schema) or self._is_string_enum(schema)


class DeclarationCompiler:
    """
    Компилятор одного фрагмента схемы в исходник деклараций.

    Черный ящик для остального генератора: получает схему, имя корневой
    декларации и components для разрешения оставшихся $ref.
    """

    async def compile(
        self,
        schema: Any,
        name: str,
        components: Optional[Dict[str, Any]] = None,
        additional_properties: bool = True,
    ) -> str:
        """Компиляция; SchemaCompileError если фрагмент собрать нельзя"""
        compilation = _Compilation(name, components or {}, additional_properties)
        compilation.compile_root(schema)
        return compilation.render()
