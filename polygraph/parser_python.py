"""Python extraction.

Python blocks are delimited by indentation, so every declaration's end is
found with :func:`find_python_block_end`. Top-level functions are the ``def``
statements at column zero; indented ``def`` statements belong to the
enclosing class (or are nested helpers that stay part of their parent body).
"""

from __future__ import annotations

import bisect
import inspect
import re
from typing import List, Optional, Sequence, Tuple

from .models import (
    AttributeInfo,
    ClassInfo,
    ExportInfo,
    FunctionInfo,
    ImportInfo,
    Language,
    ParameterInfo,
    VariableInfo,
    Visibility,
)
from .parser import (
    COMBINED_KEYWORDS,
    LanguageParser,
    LineIndex,
    collect_decorators,
    count_references,
    find_python_block_end,
    find_usages,
    indent_nesting_depth,
    sanitize_value,
    scan_balanced,
    split_parameters,
)

_FROM_IMPORT = re.compile(r"^[ \t]*from[ \t]+([\w.]+)[ \t]+import[ \t]+(\([^)]*\)|[^#\n]+)", re.M)
_IMPORT = re.compile(r"^[ \t]*import[ \t]+([\w.]+(?:[ \t]+as[ \t]+\w+)?(?:[ \t]*,[ \t]*[\w.]+(?:[ \t]+as[ \t]+\w+)?)*)", re.M)
_ALL = re.compile(r"^__all__[ \t]*(?::[^=\n]*)?=[ \t]*[\[(]([^\])]*)[\])]", re.M)
_CLASS = re.compile(r"^([ \t]*)class[ \t]+(\w+)[ \t]*(?:\(([^)]*)\))?[ \t]*:", re.M)
_DEF = re.compile(r"^([ \t]*)(async[ \t]+)?def[ \t]+(\w+)[ \t]*\(", re.M)
_DEF_TAIL = re.compile(r"[ \t]*(?:->[ \t]*(.+?))?[ \t]*:")
_DECORATOR = re.compile(r"@([\w.]+)")
_DOCSTRING = re.compile(r"\s*[rRuU]?(\"\"\"|''')(.*?)\1", re.S)
_SELF_ATTR = re.compile(r"\bself\.(\w+)[ \t]*(?::[ \t]*([^=\n]+?))?[ \t]*=(?!=)[ \t]*([^\n]*)")
_MODULE_ASSIGN = re.compile(r"^([A-Za-z_]\w*)[ \t]*(?::[ \t]*([^=\n]+?))?[ \t]*=(?!=)[ \t]*([^\n]*)$", re.M)
_PARAMETER = re.compile(r"^(\*{0,2})(\w+)\s*(?::\s*(.+?))?\s*(?:=\s*(.+))?$", re.S)
_TRIPLE_QUOTED = re.compile(r"(\"\"\"|''')[\s\S]*?\1")
_YIELD = re.compile(r"\byield\b")

_COMPLEXITY_EXTRAS = tuple(
    re.compile(p) for p in (r"\belif\b", r"\bexcept\b", r"\band\b", r"\bor\b")
)

_STATEMENT_WORDS = frozenset({
    "return", "pass", "break", "continue", "raise", "yield", "else", "try",
    "finally", "if", "elif", "for", "while", "with", "def", "class", "import",
    "from", "global", "nonlocal", "assert", "del", "print",
})


def _visibility(name: str, member: bool = False) -> Visibility:
    if name.startswith("__") and name.endswith("__"):
        return Visibility.PUBLIC
    if name.startswith("__"):
        return Visibility.PRIVATE
    if name.startswith("_"):
        return Visibility.PROTECTED if member else Visibility.PRIVATE
    return Visibility.PUBLIC


def _indent_of(text: str) -> str:
    return text[:len(text) - len(text.lstrip())]


class _StringSpans:
    """Spans of triple-quoted strings, where declarations must be ignored."""

    def __init__(self, content: str):
        self._starts: List[int] = []
        self._ends: List[int] = []
        for match in _TRIPLE_QUOTED.finditer(content):
            self._starts.append(match.start())
            self._ends.append(match.end())

    def contains(self, offset: int) -> bool:
        idx = bisect.bisect_right(self._starts, offset) - 1
        return idx >= 0 and offset < self._ends[idx]


class PythonParser(LanguageParser):
    """Regex and indentation based extractor for Python sources."""

    languages = (Language.PYTHON,)
    call_keywords = frozenset({"super", "print"})
    raise_pattern = re.compile(r"\braise[ \t]+(?:\w+\.)*([A-Z]\w*)")
    complexity_extras = _COMPLEXITY_EXTRAS
    string_quotes = "\"'"

    # ------------------------------------------------------------------
    # Imports / exports
    # ------------------------------------------------------------------

    def extract_imports(self, content: str) -> List[ImportInfo]:
        lines = LineIndex(content)
        strings = _StringSpans(content)
        found: List[Tuple[int, ImportInfo]] = []

        for match in _FROM_IMPORT.finditer(content):
            if strings.contains(match.start()):
                continue
            module = match.group(1)
            raw = match.group(2).strip().strip("()").replace("\\", " ")
            items: List[str] = []
            local_names: List[Tuple[str, str]] = []
            wildcard = False
            for part in raw.split(","):
                part = part.strip()
                if not part:
                    continue
                if part == "*":
                    wildcard = True
                    continue
                pieces = part.split(" as ")
                name = pieces[0].strip()
                local = pieces[-1].strip()
                items.append(name)
                local_names.append((name, local))
            span = (match.start(), match.end())
            unused = [] if module == "__future__" else [
                name for name, local in local_names
                if count_references(content, local, skip=span) == 0
            ]
            found.append((match.start(), ImportInfo(
                module=module,
                items=items,
                line=lines.line_of(match.start(1)),
                is_wildcard=wildcard,
                unused_items=unused,
            )))

        for match in _IMPORT.finditer(content):
            if strings.contains(match.start()):
                continue
            span = (match.start(), match.end())
            for part in match.group(1).split(","):
                pieces = part.strip().split(" as ")
                module = pieces[0].strip()
                if not module:
                    continue
                local = pieces[1].strip() if len(pieces) > 1 else module.split(".")[0]
                unused = [module] if count_references(content, local, skip=span) == 0 else []
                found.append((match.start(), ImportInfo(
                    module=module,
                    items=[],
                    line=lines.line_of(match.start(1)),
                    unused_items=unused,
                )))

        found.sort(key=lambda pair: pair[0])
        return [info for _, info in found]

    def extract_exports(self, content: str) -> List[ExportInfo]:
        """Names listed in ``__all__``; without it, every public top-level name."""
        match = _ALL.search(content)
        if not match:
            return self._public_names(content)
        line = content.count("\n", 0, match.start()) + 1
        exports = []
        for name in re.findall(r"['\"](\w+)['\"]", match.group(1)):
            if re.search(r"^(?:async[ \t]+)?def[ \t]+" + name + r"\b", content, re.M):
                kind = "function"
            elif re.search(r"^class[ \t]+" + name + r"\b", content, re.M):
                kind = "class"
            else:
                kind = "variable"
            exports.append(ExportInfo(name=name, type=kind, line=line))
        return exports

    @staticmethod
    def _public_names(content: str) -> List[ExportInfo]:
        lines = LineIndex(content)
        strings = _StringSpans(content)
        found: List[Tuple[int, ExportInfo]] = []
        seen = set()
        for pattern, kind in ((_DEF, "function"), (_CLASS, "class"), (_MODULE_ASSIGN, "variable")):
            for match in pattern.finditer(content):
                if kind == "variable":
                    name = match.group(1)
                else:
                    if match.group(1):
                        continue
                    name = match.group(3) if kind == "function" else match.group(2)
                if name.startswith("_") or name in seen or name in COMBINED_KEYWORDS:
                    continue
                if strings.contains(match.start()):
                    continue
                seen.add(name)
                found.append((match.start(), ExportInfo(name=name, type=kind, line=lines.line_of(match.start()))))
        found.sort(key=lambda pair: pair[0])
        return [info for _, info in found]

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    def extract_classes(self, content: str) -> List[ClassInfo]:
        lines = LineIndex(content)
        text_lines = content.split("\n")
        strings = _StringSpans(content)
        classes: List[ClassInfo] = []

        for match in _CLASS.finditer(content):
            if strings.contains(match.start()):
                continue
            name = match.group(2)
            indent = match.group(1)
            end_line = find_python_block_end(content, match.start(), match.end(), text_lines)
            body_end = lines.line_end(end_line)

            bases = [b.strip() for b in split_parameters(match.group(3) or "")]
            bases = [b for b in bases if b and "=" not in b and b != "object"]
            extends = bases[0] if bases else None
            implements = bases[1:]

            member_indent = self._member_indent(text_lines, lines.line_of(match.end()), end_line, indent)
            methods: List[FunctionInfo] = []
            if member_indent is not None:
                for def_match in _DEF.finditer(content, match.end(), body_end):
                    if def_match.group(1) != member_indent or strings.contains(def_match.start()):
                        continue
                    method = self._build_function(content, lines, text_lines, def_match, parent_class=name)
                    if method is not None:
                        methods.append(method)

            classes.append(ClassInfo(
                name=name,
                type="class",
                line=lines.line_of(match.start(2)),
                end_line=end_line,
                visibility=_visibility(name),
                extends=extends,
                implements=implements,
                decorators=collect_decorators(content, match.start(), _DECORATOR),
                attributes=self._extract_attributes(content, lines, match.end(), body_end, member_indent),
                methods=methods,
                documentation=self._docstring(content, match.end()),
            ))
        return classes

    @staticmethod
    def _member_indent(text_lines: Sequence[str], header_line: int, end_line: int, indent: str) -> Optional[str]:
        for idx in range(header_line, min(end_line, len(text_lines))):
            text = text_lines[idx]
            stripped = text.strip()
            if not stripped or stripped.startswith("#"):
                continue
            member = _indent_of(text)
            return member if len(member) > len(indent) else None
        return None

    def _extract_attributes(
        self,
        content: str,
        lines: LineIndex,
        start: int,
        end: int,
        member_indent: Optional[str],
    ) -> List[AttributeInfo]:
        attributes: dict = {}

        if member_indent is not None:
            class_level = re.compile(
                r"^" + re.escape(member_indent)
                + r"(\w+)[ \t]*(?::[ \t]*([^=\n]+?))?[ \t]*(?:=(?!=)[ \t]*([^\n]*))?[ \t]*$",
                re.M,
            )
            for match in class_level.finditer(content, start, end):
                name, data_type, value = match.group(1), match.group(2), match.group(3)
                if name in _STATEMENT_WORDS or name in COMBINED_KEYWORDS:
                    continue
                if data_type is None and value is None:
                    continue
                if name not in attributes:
                    attributes[name] = AttributeInfo(
                        name=name,
                        line=lines.line_of(match.start(1)),
                        type=data_type.strip() if data_type else None,
                        visibility=_visibility(name, member=True),
                        is_static=True,
                        default_value=sanitize_value(value, name) if value else None,
                    )

        for match in _SELF_ATTR.finditer(content, start, end):
            name = match.group(1)
            if name in attributes:
                continue
            value = match.group(3).strip()
            attributes[name] = AttributeInfo(
                name=name,
                line=lines.line_of(match.start()),
                type=match.group(2).strip() if match.group(2) else None,
                visibility=_visibility(name, member=True),
                default_value=sanitize_value(value, name) if value else None,
            )

        return sorted(attributes.values(), key=lambda attr: attr.line)

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def extract_functions(self, content: str) -> List[FunctionInfo]:
        lines = LineIndex(content)
        text_lines = content.split("\n")
        strings = _StringSpans(content)
        functions: List[FunctionInfo] = []
        for match in _DEF.finditer(content):
            if match.group(1) or strings.contains(match.start()):
                continue
            function = self._build_function(content, lines, text_lines, match)
            if function is not None:
                functions.append(function)
        return functions

    def _build_function(
        self,
        content: str,
        lines: LineIndex,
        text_lines: Sequence[str],
        match: "re.Match[str]",
        parent_class: Optional[str] = None,
    ) -> Optional[FunctionInfo]:
        name = match.group(3)
        open_index = match.end() - 1
        close = scan_balanced(content, open_index, quotes=self.string_quotes)
        if close == -1:
            return None
        tail = _DEF_TAIL.match(content, close + 1)
        if tail is None:
            return None

        header_end = tail.end()
        end_line = find_python_block_end(content, match.start(), header_end, text_lines)
        body_end = max(lines.line_end(end_line), header_end)
        facts = self.analyze_body(content, header_end, body_end, lines)
        decorators = collect_decorators(content, match.start(), _DECORATOR)

        if parent_class is None:
            kind = "function"
        elif name == "__init__":
            kind = "constructor"
        else:
            kind = "method"

        header_line = lines.line_of(header_end)
        return FunctionInfo(
            name=name,
            type=kind,
            line=lines.line_of(match.start(3)),
            end_line=end_line,
            visibility=_visibility(name, member=parent_class is not None),
            is_async=bool(match.group(2)),
            is_static=any(d in ("staticmethod", "classmethod") for d in decorators),
            is_generator=bool(_YIELD.search(content, header_end, body_end)),
            parameters=self._parse_parameters(content[open_index + 1:close]),
            return_type=tail.group(1).strip() if tail.group(1) else None,
            decorators=decorators,
            documentation=self._docstring(content, header_end),
            calls=facts.calls,
            variable_usages=facts.usages,
            member_accesses=facts.member_accesses,
            raises=facts.raises,
            complexity=facts.complexity,
            nesting_depth=indent_nesting_depth(text_lines, header_line, end_line, len(match.group(1))),
            parent_class=parent_class,
        )

    @staticmethod
    def _parse_parameters(text: str) -> List[ParameterInfo]:
        parameters: List[ParameterInfo] = []
        for part in split_parameters(text):
            if part in ("self", "cls", "/", "*"):
                continue
            match = _PARAMETER.match(part)
            if not match:
                continue
            stars, name, annotation, default = match.groups()
            if name in ("self", "cls"):
                continue
            parameters.append(ParameterInfo(
                name=name,
                type=" ".join(annotation.split()) if annotation else None,
                default_value=sanitize_value(default, name) if default else None,
                is_optional=default is not None or bool(stars),
                is_rest=bool(stars),
            ))
        return parameters

    @staticmethod
    def _docstring(content: str, header_end: int) -> Optional[str]:
        match = _DOCSTRING.match(content, header_end)
        if not match:
            return None
        return inspect.cleandoc(match.group(2)) or None

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def extract_variables(self, content: str) -> List[VariableInfo]:
        lines = LineIndex(content)
        strings = _StringSpans(content)
        variables: List[VariableInfo] = []
        seen = set()
        for match in _MODULE_ASSIGN.finditer(content):
            name = match.group(1)
            if name in seen or name in COMBINED_KEYWORDS or strings.contains(match.start()):
                continue
            seen.add(name)
            is_constant = name.upper() == name and any(c.isalpha() for c in name)
            value = match.group(3).strip()
            variables.append(VariableInfo(
                name=name,
                type="constant" if is_constant else "variable",
                line=lines.line_of(match.start()),
                data_type=match.group(2).strip() if match.group(2) else None,
                visibility=_visibility(name),
                is_const=is_constant,
                is_mutable=not is_constant,
                scope="module",
                initial_value=sanitize_value(value, name) if value else None,
                usages=find_usages(content, name, lines, skip=(match.start(), match.start() + len(name))),
            ))
        return variables
