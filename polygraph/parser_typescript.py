"""TypeScript and JavaScript extraction.

Declarations are located with regular expressions and bounded with brace
counting. Module-level constructs must sit at brace depth zero and class
members at exactly one level below their class brace, which keeps nested
helpers and local variables out of the results.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

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
    BraceDepthIndex,
    LanguageParser,
    LineIndex,
    brace_nesting_depth,
    collect_decorators,
    count_references,
    extract_jsdoc,
    find_arrow_end,
    find_block_end,
    find_usages,
    sanitize_value,
    scan_balanced,
    split_parameters,
)

_IDENT = r"[A-Za-z_$][\w$]*"

# Imports
_ES_IMPORT = re.compile(
    r"^[ \t]*import[ \t]+(?:type[ \t]+)?"
    r"(?:(" + _IDENT + r")[ \t]*,?[ \t]*)?"
    r"(?:\{([^}]*)\}|\*[ \t]*as[ \t]+(" + _IDENT + r"))?"
    r"[ \t]*(?:from[ \t]*)?['\"]([^'\"\n]+)['\"]",
    re.M,
)
_REQUIRE = re.compile(
    r"\b(?:const|let|var)[ \t]+(?:(" + _IDENT + r")|\{([^}]*)\})[ \t]*=[ \t]*"
    r"require\([ \t]*['\"]([^'\"\n]+)['\"][ \t]*\)"
)
_BARE_REQUIRE = re.compile(r"^[ \t]*require\([ \t]*['\"]([^'\"\n]+)['\"][ \t]*\)", re.M)
_DYNAMIC_IMPORT = re.compile(r"(?<![\w$.])import\([ \t]*['\"]([^'\"\n]+)['\"][ \t]*\)")
_REEXPORT = re.compile(
    r"^[ \t]*export[ \t]+(?:type[ \t]+)?(?:\*(?:[ \t]+as[ \t]+(" + _IDENT + r"))?|\{([^}]*)\})"
    r"[ \t]*from[ \t]*['\"]([^'\"\n]+)['\"]",
    re.M,
)

# Exports
_EXPORT_DECL = re.compile(
    r"^[ \t]*export[ \t]+(default[ \t]+)?(?:declare[ \t]+)?(?:async[ \t]+)?(?:abstract[ \t]+)?"
    r"(?:const[ \t]+(?=enum\b))?(const|let|var|function|class|interface|type|enum)\b"
    r"[ \t]*\*?[ \t]*(" + _IDENT + r")?",
    re.M,
)
_EXPORT_DEFAULT_EXPR = re.compile(
    r"^[ \t]*export[ \t]+default[ \t]+(?!(?:async[ \t]+)?(?:function|class|abstract|interface)\b)(" + _IDENT + r")",
    re.M,
)
_EXPORT_LIST = re.compile(r"^[ \t]*export[ \t]+(?:type[ \t]+)?\{([^}]*)\}([ \t]*from\b)?", re.M)
_EXPORT_STAR = re.compile(r"^[ \t]*export[ \t]+\*[ \t]*(?:as[ \t]+(" + _IDENT + r")[ \t]+)?from\b", re.M)
_MODULE_EXPORTS_OBJECT = re.compile(r"\bmodule\.exports[ \t]*=[ \t]*\{([^}]*)\}")
_MODULE_EXPORTS_NAME = re.compile(r"\bmodule\.exports[ \t]*=[ \t]*(" + _IDENT + r")[ \t]*;?[ \t]*$", re.M)
_EXPORTS_MEMBER = re.compile(r"(?<![\w$.])(?:module\.)?exports\.(" + _IDENT + r")[ \t]*=(?!=)")

_EXPORT_KINDS = {
    "const": "variable", "let": "variable", "var": "variable", "function": "function",
    "class": "class", "interface": "interface", "type": "type", "enum": "enum",
}

# Types
_CLASS = re.compile(
    r"^[ \t]*(export[ \t]+)?(?:default[ \t]+)?(?:declare[ \t]+)?(abstract[ \t]+)?class[ \t]+(" + _IDENT + r")"
    r"(?:[ \t]*<.*?>)?"
    r"(?:[ \t]+extends[ \t]+([\w$.]+)(?:[ \t]*<.*?>)?)?"
    r"(?:[ \t]+implements[ \t]+([^{]+?))?[ \t]*\{",
    re.M,
)
_INTERFACE = re.compile(
    r"^[ \t]*(export[ \t]+)?(?:default[ \t]+)?(?:declare[ \t]+)?interface[ \t]+(" + _IDENT + r")"
    r"(?:[ \t]*<.*?>)?(?:[ \t]+extends[ \t]+([^{]+?))?[ \t]*\{",
    re.M,
)
_TYPE_ALIAS = re.compile(
    r"^[ \t]*(export[ \t]+)?(?:declare[ \t]+)?type[ \t]+(" + _IDENT + r")(?:[ \t]*<.*?>)?[ \t]*=",
    re.M,
)
_ENUM = re.compile(
    r"^[ \t]*(export[ \t]+)?(?:declare[ \t]+)?(?:const[ \t]+)?enum[ \t]+(" + _IDENT + r")[ \t]*\{",
    re.M,
)

# Members
_METHOD = re.compile(
    r"^[ \t]*(?:@[\w$.]+(?:\([^)\n]*\))?[ \t]+)*"
    r"((?:(?:public|private|protected|static|readonly|async|override|abstract|get|set)[ \t]+)*)"
    r"(\*?)[ \t]*(#?" + _IDENT + r")[ \t]*(?:<.*?>)?[ \t]*\(",
    re.M,
)
_FIELD = re.compile(
    r"^[ \t]*((?:(?:public|private|protected|static|readonly|declare|override|abstract|accessor)[ \t]+)*)"
    r"(#?" + _IDENT + r")([?!])?[ \t]*"
    r"(?::[ \t]*((?:=>|[^=;\n])+?))?[ \t]*"
    r"(?:=(?!>)[ \t]*([^;\n]*?))?[ \t]*;?[ \t]*(?://[^\n]*)?$",
    re.M,
)
_ENUM_MEMBER = re.compile(
    r"^[ \t]*(" + _IDENT + r"|['\"][^'\"\n]+['\"])[ \t]*(?:=[ \t]*([^,\n]+?))?[ \t]*,?[ \t]*(?://[^\n]*)?$",
    re.M,
)
_PARAM_PREFIX = re.compile(
    r"^(?:@[\w$.]+(?:\([^)]*\))?\s+)*((?:(?:public|private|protected|readonly|override)\s+)*)"
)

# Functions
_FUNCTION = re.compile(
    r"^[ \t]*(export[ \t]+)?(default[ \t]+)?(?:declare[ \t]+)?(async[ \t]+)?function[ \t]*(\*?)[ \t]*"
    r"(" + _IDENT + r")[ \t]*(?:<.*?>)?[ \t]*\(",
    re.M,
)
_BODY_TAIL = re.compile(r"\s*(?::\s*([^{;=]+?))?\s*\{")
_BINDING = re.compile(
    r"^[ \t]*(export[ \t]+)?(?:declare[ \t]+)?(const|let|var)[ \t]+(" + _IDENT + r")[ \t]*"
    r"(?::[ \t]*((?:=>|[^=;\n])+?))?[ \t]*=(?![=>])[ \t]*",
    re.M,
)
_ASYNC = re.compile(r"async\b\s*")
_GENERIC = re.compile(r"<[^>()]*>\s*")
_ARROW_TAIL = re.compile(r"\s*(?::\s*([^=\n{]+?))?\s*=>")
_ARROW_SINGLE = re.compile(r"(" + _IDENT + r")\s*=>")
_FUNCTION_EXPRESSION = re.compile(r"function\s*(\*?)\s*[\w$]*\s*(?:<[^>()]*>)?\s*\(")

_DECORATOR = re.compile(r"@([\w$.]+)")
_COMMENT_PREFIXES = ("//", "*", "/*")
_STATEMENT_TOKENS = re.compile(r"[()\[\]{};\n]")
_CONTINUATION = re.compile(r"[ \t]*(?:\n[ \t]*)*[|&]")

_NOT_MEMBERS = frozenset({
    "if", "for", "while", "switch", "catch", "return", "function", "super",
    "new", "with", "do", "else", "try", "throw", "typeof", "await",
})


def _top_level_index(text: str, target: str) -> int:
    depth = 0
    for i, ch in enumerate(text):
        if ch in "([{<":
            depth += 1
        elif ch in ")]}" or (ch == ">" and text[i - 1:i] not in ("-", "=")):
            depth = max(0, depth - 1)
        elif depth == 0 and ch == target:
            if target == "=" and text[i + 1:i + 2] in (">", "="):
                continue
            return i
    return -1


def _member_visibility(modifiers: List[str], name: str) -> Visibility:
    if "private" in modifiers or name.startswith("#"):
        return Visibility.PRIVATE
    if "protected" in modifiers:
        return Visibility.PROTECTED
    return Visibility.PUBLIC


def _top_level_visibility(exported: bool) -> Visibility:
    return Visibility.PUBLIC if exported else Visibility.INTERNAL


def _type_names(text: Optional[str]) -> List[str]:
    names = []
    for part in split_parameters(text or ""):
        match = re.match(r"[\w$.]+", part.strip())
        if match:
            names.append(match.group(0))
    return names


class _FunctionShape:
    """Parameters and body bounds of a function value found after ``=``."""

    __slots__ = ("params", "return_type", "body_start", "end_line", "kind", "is_generator")

    def __init__(self, params: str, return_type: Optional[str], body_start: int,
                 end_line: int, kind: str, is_generator: bool = False):
        self.params = params
        self.return_type = return_type
        self.body_start = body_start
        self.end_line = end_line
        self.kind = kind
        self.is_generator = is_generator


class TypeScriptParser(LanguageParser):
    """Extractor for TypeScript, TSX, JavaScript and JSX sources."""

    languages = (Language.TYPESCRIPT, Language.JAVASCRIPT)
    call_keywords = frozenset({"require", "super", "import"})
    raise_pattern = re.compile(r"\bthrow[ \t]+new[ \t]+(?:[\w$]+\.)*(" + _IDENT + r")")

    # ------------------------------------------------------------------
    # Imports / exports
    # ------------------------------------------------------------------

    def extract_imports(self, content: str) -> List[ImportInfo]:
        lines = LineIndex(content)
        found: List[Tuple[int, ImportInfo]] = []

        for match in _ES_IMPORT.finditer(content):
            default, braced, namespace, module = match.groups()
            names: List[Tuple[str, str]] = []
            if default:
                names.append((default, default))
            if braced:
                names.extend(self._named_items(braced, " as "))
            if namespace:
                names.append((namespace, namespace))
            found.append((match.start(), ImportInfo(
                module=module,
                items=[name for name, _ in names],
                line=lines.line_of(match.start()),
                is_default=bool(default) and not braced,
                is_wildcard=bool(namespace),
                unused_items=self._unused(content, names, (match.start(), match.end())),
            )))

        for match in _REQUIRE.finditer(content):
            single, braced, module = match.groups()
            names = [(single, single)] if single else self._named_items(braced or "", ":")
            found.append((match.start(), ImportInfo(
                module=module,
                items=[name for name, _ in names],
                line=lines.line_of(match.start()),
                is_default=bool(single),
                unused_items=self._unused(content, names, (match.start(), match.end())),
            )))

        for pattern in (_BARE_REQUIRE, _DYNAMIC_IMPORT):
            for match in pattern.finditer(content):
                found.append((match.start(), ImportInfo(
                    module=match.group(1), items=[], line=lines.line_of(match.start()),
                )))

        for match in _REEXPORT.finditer(content):
            alias, braced, module = match.groups()
            if braced is not None:
                items = [name for name, _ in self._named_items(braced, " as ")]
            else:
                items = [alias] if alias else []
            found.append((match.start(), ImportInfo(
                module=module,
                items=items,
                line=lines.line_of(match.start()),
                is_wildcard=braced is None,
            )))

        found.sort(key=lambda pair: pair[0])
        return [info for _, info in found]

    @staticmethod
    def _named_items(text: str, alias_separator: str) -> List[Tuple[str, str]]:
        names = []
        for part in text.split(","):
            part = " ".join(part.split())
            if part.startswith("type "):
                part = part[5:]
            if not part:
                continue
            pieces = [p.strip() for p in part.split(alias_separator)]
            if not re.match(_IDENT + "$", pieces[0]):
                continue
            names.append((pieces[0], pieces[-1] or pieces[0]))
        return names

    @staticmethod
    def _unused(content: str, names: List[Tuple[str, str]], span: Tuple[int, int]) -> List[str]:
        return [
            name for name, local in names
            if count_references(content, local, skip=span) == 0
        ]

    def extract_exports(self, content: str) -> List[ExportInfo]:
        lines = LineIndex(content)
        found: List[Tuple[int, ExportInfo]] = []

        def add(offset: int, name: str, kind: str) -> None:
            found.append((offset, ExportInfo(name=name, type=kind, line=lines.line_of(offset))))

        for match in _EXPORT_DECL.finditer(content):
            default, keyword, name = match.groups()
            if name is None:
                if not default:
                    continue
                name = "default"
            add(match.start(), name, _EXPORT_KINDS[keyword])

        for match in _EXPORT_DEFAULT_EXPR.finditer(content):
            add(match.start(), match.group(1), "default")

        for match in _EXPORT_LIST.finditer(content):
            reexport = bool(match.group(2))
            for name, alias in self._named_items(match.group(1), " as "):
                add(match.start(), alias if reexport else name, "reexport" if reexport else "variable")

        for match in _EXPORT_STAR.finditer(content):
            add(match.start(), match.group(1) or "*", "reexport")

        for match in _MODULE_EXPORTS_OBJECT.finditer(content):
            for part in split_parameters(match.group(1)):
                name = re.match(r"\s*(" + _IDENT + r")", part)
                if name:
                    add(match.start(), name.group(1), "variable")
        for match in _MODULE_EXPORTS_NAME.finditer(content):
            add(match.start(), match.group(1), "default")
        for match in _EXPORTS_MEMBER.finditer(content):
            add(match.start(), match.group(1), "variable")

        found.sort(key=lambda pair: pair[0])
        exports: List[ExportInfo] = []
        seen = set()
        for _, info in found:
            if (info.name, info.type) in seen:
                continue
            seen.add((info.name, info.type))
            exports.append(info)
        return exports

    # ------------------------------------------------------------------
    # Classes, interfaces, type aliases and enums
    # ------------------------------------------------------------------

    def extract_classes(self, content: str) -> List[ClassInfo]:
        lines = LineIndex(content)
        depths = BraceDepthIndex(content)
        found: List[Tuple[int, ClassInfo]] = []

        for match in _CLASS.finditer(content):
            found.append((match.start(), self._build_class(content, lines, depths, match)))

        for match in _INTERFACE.finditer(content):
            brace = match.end() - 1
            end_line = find_block_end(content, brace)
            bases = _type_names(match.group(3))
            found.append((match.start(), ClassInfo(
                name=match.group(2),
                type="interface",
                line=lines.line_of(match.start(2)),
                end_line=end_line,
                visibility=_top_level_visibility(bool(match.group(1))),
                extends=bases[0] if bases else None,
                implements=bases[1:],
                attributes=self._fields(content, lines, depths, brace, end_line),
                documentation=extract_jsdoc(content, match.start()),
            )))

        for match in _TYPE_ALIAS.finditer(content):
            found.append((match.start(), ClassInfo(
                name=match.group(2),
                type="type",
                line=lines.line_of(match.start(2)),
                end_line=self._statement_end(content, match.end(), lines),
                visibility=_top_level_visibility(bool(match.group(1))),
                documentation=extract_jsdoc(content, match.start()),
            )))

        for match in _ENUM.finditer(content):
            brace = match.end() - 1
            end_line = find_block_end(content, brace)
            found.append((match.start(), ClassInfo(
                name=match.group(2),
                type="enum",
                line=lines.line_of(match.start(2)),
                end_line=end_line,
                visibility=_top_level_visibility(bool(match.group(1))),
                attributes=self._enum_members(content, lines, depths, brace, end_line),
                documentation=extract_jsdoc(content, match.start()),
            )))

        found.sort(key=lambda pair: pair[0])
        return [info for _, info in found]

    def _build_class(self, content: str, lines: LineIndex, depths: BraceDepthIndex,
                     match: "re.Match[str]") -> ClassInfo:
        name = match.group(3)
        brace = match.end() - 1
        end_line = find_block_end(content, brace)
        body_end = lines.line_end(end_line)
        member_depth = depths.depth_at(brace) + 1

        methods: List[FunctionInfo] = []
        attributes: Dict[str, AttributeInfo] = {}
        for member in _METHOD.finditer(content, brace + 1, body_end):
            if depths.depth_at(member.start()) != member_depth:
                continue
            method = self._build_method(content, lines, member, name)
            if method is None:
                continue
            methods.append(method)
            if method.type == "constructor":
                open_index = member.end() - 1
                close = scan_balanced(content, open_index, quotes=self.string_quotes)
                for attribute in self._parameter_properties(content[open_index + 1:close], method.line):
                    attributes.setdefault(attribute.name, attribute)

        for attribute in self._fields(content, lines, depths, brace, end_line):
            attributes.setdefault(attribute.name, attribute)

        modifiers = ["abstract"] if match.group(2) else []
        return ClassInfo(
            name=name,
            type="abstract_class" if modifiers else "class",
            line=lines.line_of(match.start(3)),
            end_line=end_line,
            visibility=_top_level_visibility(bool(match.group(1))),
            extends=match.group(4),
            implements=_type_names(match.group(5)),
            decorators=collect_decorators(content, match.start(), _DECORATOR, _COMMENT_PREFIXES),
            attributes=sorted(attributes.values(), key=lambda attr: attr.line),
            methods=methods,
            documentation=extract_jsdoc(content, match.start()),
        )

    def _build_method(self, content: str, lines: LineIndex, member: "re.Match[str]",
                      class_name: str) -> Optional[FunctionInfo]:
        name = member.group(3)
        if name in _NOT_MEMBERS:
            return None
        open_index = member.end() - 1
        close = scan_balanced(content, open_index, quotes=self.string_quotes)
        if close == -1:
            return None
        tail = _BODY_TAIL.match(content, close + 1)
        if tail is None:
            return None

        brace = tail.end() - 1
        end_line = find_block_end(content, brace)
        body_end = max(lines.line_end(end_line), brace + 1)
        facts = self.analyze_body(content, brace + 1, body_end, lines)
        modifiers = member.group(1).split()
        inline = re.findall(r"@([\w$.]+)", content[member.start():member.start(1)])
        return FunctionInfo(
            name=name,
            type="constructor" if name == "constructor" else "method",
            line=lines.line_of(member.start(3)),
            end_line=end_line,
            visibility=_member_visibility(modifiers, name),
            is_async="async" in modifiers,
            is_static="static" in modifiers,
            is_generator=bool(member.group(2)),
            parameters=self._parse_parameters(content[open_index + 1:close]),
            return_type=" ".join(tail.group(1).split()) if tail.group(1) else None,
            decorators=collect_decorators(content, member.start(), _DECORATOR, _COMMENT_PREFIXES) + inline,
            documentation=extract_jsdoc(content, member.start()),
            calls=facts.calls,
            variable_usages=facts.usages,
            member_accesses=facts.member_accesses,
            raises=facts.raises,
            complexity=facts.complexity,
            nesting_depth=brace_nesting_depth(content, brace, body_end),
            parent_class=class_name,
        )

    def _fields(self, content: str, lines: LineIndex, depths: BraceDepthIndex,
                brace: int, end_line: int) -> List[AttributeInfo]:
        member_depth = depths.depth_at(brace) + 1
        attributes: List[AttributeInfo] = []
        seen = set()
        for match in _FIELD.finditer(content, brace + 1, lines.line_end(end_line)):
            modifiers, name, _, data_type, value = match.groups()
            if data_type is None and value is None:
                continue
            if name in _NOT_MEMBERS or name in seen:
                continue
            if depths.depth_at(match.start()) != member_depth:
                continue
            seen.add(name)
            modifiers = modifiers.split()
            attributes.append(AttributeInfo(
                name=name,
                line=lines.line_of(match.start(2)),
                type=" ".join(data_type.split()) if data_type else None,
                visibility=_member_visibility(modifiers, name),
                is_static="static" in modifiers,
                is_readonly="readonly" in modifiers,
                default_value=sanitize_value(value, name) if value else None,
            ))
        return attributes

    @staticmethod
    def _enum_members(content: str, lines: LineIndex, depths: BraceDepthIndex,
                      brace: int, end_line: int) -> List[AttributeInfo]:
        member_depth = depths.depth_at(brace) + 1
        members = []
        for match in _ENUM_MEMBER.finditer(content, brace + 1, lines.line_end(end_line)):
            if depths.depth_at(match.start()) != member_depth:
                continue
            name = match.group(1).strip("'\"")
            members.append(AttributeInfo(
                name=name,
                line=lines.line_of(match.start(1)),
                visibility=Visibility.PUBLIC,
                is_static=True,
                is_readonly=True,
                default_value=sanitize_value(match.group(2), name) if match.group(2) else None,
            ))
        return members

    def _parameter_properties(self, text: str, line: int) -> List[AttributeInfo]:
        attributes = []
        for part in split_parameters(text):
            prefix = _PARAM_PREFIX.match(part)
            modifiers = prefix.group(1).split()
            if not modifiers:
                continue
            parameter = self._parse_parameter(part)
            if parameter is None:
                continue
            attributes.append(AttributeInfo(
                name=parameter.name,
                line=line,
                type=parameter.type,
                visibility=_member_visibility(modifiers, parameter.name),
                is_readonly="readonly" in modifiers,
                default_value=parameter.default_value,
            ))
        return attributes

    @staticmethod
    def _statement_end(content: str, start: int, lines: LineIndex) -> int:
        """End line of a ``type X = ...`` statement: ``;`` or a line break at depth 0."""
        depth = 0
        segment_start = start
        for match in _STATEMENT_TOKENS.finditer(content, start):
            token = match.group(0)
            if token in "([{":
                depth += 1
            elif token in ")]}":
                depth = max(0, depth - 1)
            elif depth == 0 and token == ";":
                return lines.line_of(match.start())
            elif depth == 0 and token == "\n":
                pending = not content[segment_start:match.start()].strip()
                segment_start = match.end()
                if pending or _CONTINUATION.match(content, match.end()):
                    continue
                return lines.line_of(match.start())
        return lines.line_count

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def extract_functions(self, content: str) -> List[FunctionInfo]:
        lines = LineIndex(content)
        depths = BraceDepthIndex(content)
        found: List[Tuple[int, FunctionInfo]] = []

        for match in _FUNCTION.finditer(content):
            if depths.depth_at(match.start()) != 0:
                continue
            open_index = match.end() - 1
            close = scan_balanced(content, open_index, quotes=self.string_quotes)
            if close == -1:
                continue
            tail = _BODY_TAIL.match(content, close + 1)
            if tail is None:
                continue
            brace = tail.end() - 1
            shape = _FunctionShape(
                content[open_index + 1:close], tail.group(1), brace,
                find_block_end(content, brace), "function", bool(match.group(4)),
            )
            found.append((match.start(), self._build_function(
                content, lines, match, 5, shape, bool(match.group(3)),
            )))

        for match in _BINDING.finditer(content):
            if depths.depth_at(match.start()) != 0:
                continue
            position = match.end()
            is_async = _ASYNC.match(content, position)
            if is_async:
                position = is_async.end()
            shape = self._function_value(content, position)
            if shape is None:
                continue
            found.append((match.start(), self._build_function(
                content, lines, match, 3, shape, bool(is_async),
            )))

        found.sort(key=lambda pair: pair[0])
        return [info for _, info in found]

    def _function_value(self, content: str, position: int) -> Optional[_FunctionShape]:
        """Recognize an arrow function or function expression at ``position``."""
        generic = _GENERIC.match(content, position)
        if generic:
            position = generic.end()

        if content.startswith("(", position):
            close = scan_balanced(content, position, quotes=self.string_quotes)
            if close == -1:
                return None
            tail = _ARROW_TAIL.match(content, close + 1)
            if tail is None:
                return None
            arrow = tail.end() - 2
            return _FunctionShape(
                content[position + 1:close], tail.group(1), arrow + 2,
                find_arrow_end(content, arrow), "arrow",
            )

        single = _ARROW_SINGLE.match(content, position)
        if single:
            arrow = single.end() - 2
            return _FunctionShape(single.group(1), None, arrow + 2, find_arrow_end(content, arrow), "arrow")

        expression = _FUNCTION_EXPRESSION.match(content, position)
        if expression:
            open_index = expression.end() - 1
            close = scan_balanced(content, open_index, quotes=self.string_quotes)
            if close == -1:
                return None
            tail = _BODY_TAIL.match(content, close + 1)
            if tail is None:
                return None
            brace = tail.end() - 1
            return _FunctionShape(
                content[open_index + 1:close], tail.group(1), brace,
                find_block_end(content, brace), "function", bool(expression.group(1)),
            )
        return None

    def _build_function(self, content: str, lines: LineIndex, match: "re.Match[str]",
                        name_group: int, shape: _FunctionShape, is_async: bool) -> FunctionInfo:
        body_end = max(lines.line_end(shape.end_line), shape.body_start)
        facts = self.analyze_body(content, shape.body_start, body_end, lines)
        exported = bool(match.group(1))
        return FunctionInfo(
            name=match.group(name_group),
            type=shape.kind,
            line=lines.line_of(match.start(name_group)),
            end_line=shape.end_line,
            visibility=_top_level_visibility(exported),
            is_async=is_async,
            is_generator=shape.is_generator,
            parameters=self._parse_parameters(shape.params),
            return_type=" ".join(shape.return_type.split()) if shape.return_type else None,
            decorators=collect_decorators(content, match.start(), _DECORATOR, _COMMENT_PREFIXES),
            documentation=extract_jsdoc(content, match.start()),
            calls=facts.calls,
            variable_usages=facts.usages,
            member_accesses=facts.member_accesses,
            raises=facts.raises,
            complexity=facts.complexity,
            nesting_depth=brace_nesting_depth(content, shape.body_start, body_end),
        )

    def _parse_parameters(self, text: str) -> List[ParameterInfo]:
        parameters = []
        for part in split_parameters(text):
            parameter = self._parse_parameter(part)
            if parameter is not None:
                parameters.append(parameter)
        return parameters

    @staticmethod
    def _parse_parameter(part: str) -> Optional[ParameterInfo]:
        body = part[_PARAM_PREFIX.match(part).end():].strip()
        is_rest = body.startswith("...")
        if is_rest:
            body = body[3:]

        default = None
        equals = _top_level_index(body, "=")
        if equals != -1:
            default = body[equals + 1:].strip()
            body = body[:equals].strip()

        data_type = None
        colon = _top_level_index(body, ":")
        if colon != -1:
            data_type = " ".join(body[colon + 1:].split()) or None
            body = body[:colon].strip()

        optional = body.endswith("?")
        name = " ".join(body.rstrip("?").split())
        if not name or name == "this":
            return None
        return ParameterInfo(
            name=name,
            type=data_type,
            default_value=sanitize_value(default, name) if default else None,
            is_optional=optional or default is not None or is_rest,
            is_rest=is_rest,
        )

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def extract_variables(self, content: str) -> List[VariableInfo]:
        lines = LineIndex(content)
        depths = BraceDepthIndex(content)
        variables: List[VariableInfo] = []
        seen = set()
        for match in _BINDING.finditer(content):
            exported, kind, name, data_type = match.groups()
            if name in seen or depths.depth_at(match.start()) != 0:
                continue
            position = match.end()
            is_async = _ASYNC.match(content, position)
            if self._function_value(content, is_async.end() if is_async else position) is not None:
                continue
            value_end = content.find("\n", position)
            value = content[position:value_end if value_end != -1 else len(content)].strip().rstrip(";").strip()
            if value.startswith("require("):
                continue
            seen.add(name)
            variables.append(VariableInfo(
                name=name,
                type="constant" if kind == "const" else "variable",
                line=lines.line_of(match.start(3)),
                data_type=" ".join(data_type.split()) if data_type else None,
                visibility=_top_level_visibility(bool(exported)),
                is_const=kind == "const",
                is_mutable=kind != "const",
                scope="module",
                initial_value=sanitize_value(value, name) if value else None,
                usages=find_usages(content, name, lines, skip=(match.start(3), match.end(3))),
            ))
        return variables
