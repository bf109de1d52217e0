import re
from typing import Dict, List, Optional, Pattern, Tuple

# Строковые литералы не переписываются: значения Literal/Enum и docstring остаются как есть
_STRING_PATTERN = (
    r'"""[\s\S]*?"""'
    r"|'''[\s\S]*?'''"
    r'|"(?:[^"\\\n]|\\.)*"'
    r"|'(?:[^'\\\n]|\\.)*'"
)
# Имена полей и членов enum в теле класса: это ключи JSON, а не ссылки на типы
_MEMBER_PATTERN = r"^[ \t]+[A-Za-z_]\w*(?=[ \t]*[:=])"
_DECLARATION_RE = re.compile(r"^(?:class\s+([A-Za-z_]\w*)\s*[(:]|([A-Za-z_]\w*)\s*=)")
_IDENTIFIER_RE = re.compile(
    rf"(?P<string>{_STRING_PATTERN})|(?P<member>{_MEMBER_PATTERN})|\b(?P<name>[A-Za-z_]\w*)\b",
    re.MULTILINE,
)


class NameRegistry:
    """
    Реестр имен деклараций на один запуск генерации.

    Хранит все уже выпущенные имена (общие для всех тегов), владельца каждой
    декларации и карту переименований raw -> prefixed для вспомогательных
    схем. Переименование текстовое (по целым словам), потому что компилятор
    деклараций ничего не знает о схеме префиксов.
    """

    def __init__(self):
        self._owners: Dict[str, str] = {}
        self._renames: Dict[str, str] = {}
        self._rename_pattern: Optional[Pattern] = None

    def __contains__(self, name: str) -> bool:
        return name in self._owners

    def __len__(self) -> int:
        return len(self._owners)

    @property
    def names(self) -> List[str]:
        return list(self._owners)

    @property
    def renames(self) -> Dict[str, str]:
        return dict(self._renames)

    def reserve(self, name: str, owner: str = "") -> bool:
        """Резервирование имени. False - имя уже занято, повторно выпускать нельзя"""
        if name in self._owners:
            return False

        self._owners[name] = owner
        return True

    def owner_of(self, name: str) -> Optional[str]:
        """Тег-владелец декларации (первый, кто ее выпустил)"""
        return self._owners.get(name)

    def prefixed(self, raw_name: str, prefix: str) -> str:
        """Имя с префиксом; сопоставление raw -> prefixed запоминается для rewrite()"""
        if not prefix or raw_name.startswith(prefix):
            return raw_name

        prefixed_name = f"{prefix}{raw_name}"
        if self._renames.get(raw_name) != prefixed_name:
            self._renames[raw_name] = prefixed_name
            self._rename_pattern = None
        return prefixed_name

    def rewrite(self, text: str) -> str:
        """
        Замена всех известных raw имен на префиксные по целым словам.
        Строковые литералы, имена полей и членов enum не трогаются.
        """
        if not self._renames:
            return text

        if self._rename_pattern is None:
            names = sorted(self._renames, key=len, reverse=True)
            alternatives = "|".join(re.escape(name) for name in names)
            self._rename_pattern = re.compile(
                rf"(?P<string>{_STRING_PATTERN})"
                rf"|(?P<member>{_MEMBER_PATTERN})"
                rf"|\b(?P<name>{alternatives})\b",
                re.MULTILINE,
            )

        def _replace(match):
            name = match.group("name")
            if name is None:
                return match.group(0)
            return self._renames[name]

        return self._rename_pattern.sub(_replace, text)

    def referenced_names(self, text: str) -> List[str]:
        """Зарегистрированные имена, которые встречаются в тексте (вне строк)"""
        found = []
        seen = set()

        for match in _IDENTIFIER_RE.finditer(text):
            name = match.group("name")
            if name and name in self._owners and name not in seen:
                seen.add(name)
                found.append(name)

        return found

    def filter_and_prefix(
        self, source: str, root_name: str, prefix: str, owner: str = ""
    ) -> str:
        """
        Постобработка результата компилятора:
        - вспомогательные декларации получают префикс схем (корневая - нет);
        - все ссылки на них переписываются на префиксное имя;
        - декларации, уже выпущенные ранее, отбрасываются (первый писатель побеждает);
        - новые вспомогательные декларации резервируются за owner.

        Корневое имя резервирует вызывающий код после успешной компиляции.
        """
        blocks = self._split_declarations(source)

        # Сначала регистрируем все переименования, затем переписываем весь текст
        for name, _ in blocks:
            if name and name != root_name:
                self.prefixed(name, prefix)

        result = []
        for name, lines in blocks:
            text = self.rewrite("\n".join(lines)).strip("\n")
            if not text.strip():
                continue

            if name is None or name == root_name:
                result.append(text)
                continue

            if self.reserve(self.prefixed(name, prefix), owner):
                result.append(text)

        return "\n\n\n".join(result)

    @staticmethod
    def _split_declarations(source: str) -> List[Tuple[Optional[str], List[str]]]:
        """Разбиение исходника на верхнеуровневые декларации"""
        blocks: List[Tuple[Optional[str], List[str]]] = []
        current_name: Optional[str] = None
        buffer: List[str] = []

        for line in source.split("\n"):
            match = _DECLARATION_RE.match(line)
            if match:
                if buffer:
                    blocks.append((current_name, buffer))
                current_name = match.group(1) or match.group(2)
                buffer = [line]
            else:
                buffer.append(line)

        if buffer:
            blocks.append((current_name, buffer))

        return blocks


def declaration_names(source: str) -> List[str]:
    """Имена верхнеуровневых деклараций исходника в порядке объявления"""
    names = []
    for name, _ in NameRegistry._split_declarations(source):
        if name and name not in names:
            names.append(name)
    return names
