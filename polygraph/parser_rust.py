"""Rust extraction.

Items are recognized by their keywords and bounded with brace counting.
An item only counts when it sits at module depth, or directly inside an
inline ``mod name { ... }`` block. Functions directly inside ``impl`` or
``trait`` blocks become methods of the implementing type.
"""

from __future__ import annotations

import re
from typing import List, NamedTuple, Optional, Tuple

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
    extract_line_docs,
    find_block_end,
    find_usages,
    sanitize_value,
    scan_balanced,
    split_parameters,
)

_VIS = r"(pub(?:[ \t]*\([^)\n]*\))?[ \t]+)?"

_USE = re.compile(r"^[ \t]*" + _VIS + r"use[ \t]+([^;]+);", re.M)
_MOD_DECL = re.compile(r"^[ \t]*" + _VIS + r"mod[ \t]+(\w+)[ \t]*;", re.M)
_EXTERN_CRATE = re.compile(r"^[ \t]*extern[ \t]+crate[ \t]+(\w+)(?:[ \t]+as[ \t]+(\w+))?[ \t]*;", re.M)

_PUB_ITEM = re.compile(
    r"^[ \t]*pub(?:[ \t]*\([^)\n]*\))?[ \t]+(?:const[ \t]+(?=(?:async[ \t]+|unsafe[ \t]+)*fn\b))?"
    r"(?:async[ \t]+)?(?:unsafe[ \t]+)?(?:extern[ \t]+\"[^\"\n]*\"[ \t]+)?"
    r"(fn|struct|enum|trait|type|const|static|mod|union)[ \t]+(?:mut[ \t]+)?(\w+)",
    re.M,
)

_TYPE_ITEM = re.compile(r"^[ \t]*" + _VIS + r"(?:unsafe[ \t]+)?(struct|enum|trait|union)[ \t]+(\w+)", re.M)
_TYPE_ALIAS = re.compile(r"^[ \t]*" + _VIS + r"type[ \t]+(\w+)(?:<[^>\n]*>)?[ \t]*=[^;]*;", re.M)
_IMPL = re.compile(
    r"^[ \t]*(?:unsafe[ \t]+)?impl(?:[ \t]*<.*?>)?[ \t]+"
    r"(?:(!?[\w:]+)(?:<.*?>)?[ \t]+for[ \t]+)?&?(?:'\w+[ \t]+)?(?:mut[ \t]+)?([\w:]+)(?:<.*?>)?[^{;]*\{",
    re.M,
)
_TRAIT_BLOCK = re.compile(r"^[ \t]*" + _VIS + r"(?:unsafe[ \t]+)?trait[ \t]+(\w+)[^{;]*\{", re.M)
_MOD_BLOCK = re.compile(r"^[ \t]*" + _VIS + r"mod[ \t]+(\w+)[ \t]*\{", re.M)

_FN = re.compile(
    r"^[ \t]*" + _VIS + r"(?:default[ \t]+)?(const[ \t]+)?(async[ \t]+)?(unsafe[ \t]+)?"
    r"(?:extern[ \t]+\"[^\"\n]*\"[ \t]+)?fn[ \t]+(\w+)[ \t]*(?:<.*?>)?[ \t]*\(",
    re.M,
)
_FN_TAIL = re.compile(r"\s*(?:->\s*([^{;]+?))?\s*(?:where\b[^{;]*)?([{;])")
_SELF_PARAM = re.compile(r"^(?:&\s*(?:'\w+\s+)?)?(?:mut\s+)?self\b")

_STRUCT_FIELD = re.compile(
    r"^[ \t]*" + _VIS + r"(\w+)[ \t]*:[ \t]*([^\n]+?)[ \t]*,?[ \t]*(?://[^\n]*)?$",
    re.M,
)
_VARIANT = re.compile(r"^[ \t]*([A-Z]\w*)[ \t]*(?:[({][^\n]*|=[ \t]*([^,\n]+?))?[ \t]*,?[ \t]*(?://[^\n]*)?$", re.M)
_CONST = re.compile(
    r"^[ \t]*" + _VIS + r"(const|static)[ \t]+(mut[ \t]+)?(\w+)[ \t]*:[ \t]*([^=;]+?)[ \t]*=[ \t]*([^;]+);",
    re.M,
)

_ATTRIBUTE = re.compile(r"#!?\[(.+)\]$")
_COMMENT_PREFIXES = ("//",)


class _Block(NamedTuple):
    kind: str
    name: str
    brace: int
    end: int
    depth: int


def _visibility(modifier: Optional[str]) -> Visibility:
    if not modifier:
        return Visibility.PRIVATE
    if "(" in modifier:
        return Visibility.INTERNAL
    return Visibility.PUBLIC


def _last_segment(path: str) -> str:
    return path.split("::")[-1]


class RustParser(LanguageParser):
    """Extractor for Rust sources."""

    languages = (Language.RUST,)
    call_pattern = re.compile(
        r"(?<![\w$])(?P<target>[A-Za-z_]\w*(?:(?:::|\.)[A-Za-z_]\w*)*)\s*(?:::<[^>()]*>\s*)?\("
    )
    call_keywords = frozenset({"Some", "Ok", "Err", "Box", "Vec", "String"})
    raise_pattern = re.compile(r"\bErr\(\s*([A-Z]\w*)")
    string_quotes = "\""

    def _is_await(self, content: str, match: "re.Match[str]", close: int) -> bool:
        return close != -1 and re.match(r"\s*\.await\b", content[close + 1:close + 40]) is not None

    # ------------------------------------------------------------------
    # Block structure
    # ------------------------------------------------------------------

    @staticmethod
    def _blocks(content: str, lines: LineIndex, depths: BraceDepthIndex) -> List[_Block]:
        blocks: List[_Block] = []
        for kind, pattern, group in (("impl", _IMPL, 2), ("trait", _TRAIT_BLOCK, 2), ("mod", _MOD_BLOCK, 2)):
            for match in pattern.finditer(content):
                brace = match.end() - 1
                end = lines.line_end(find_block_end(content, brace))
                name = _last_segment(match.group(group))
                block_kind = "trait_impl" if kind == "impl" and match.group(1) else kind
                blocks.append(_Block(block_kind, name, brace, end, depths.depth_at(brace)))
        blocks.sort(key=lambda block: block.brace)
        return blocks

    @staticmethod
    def _container(blocks: List[_Block], offset: int, depth: int) -> Optional[_Block]:
        """The block that directly encloses an item at ``offset`` and brace ``depth``."""
        for block in reversed(blocks):
            if block.brace < offset <= block.end and block.depth == depth - 1:
                return block
        return None

    def _at_item_level(self, blocks: List[_Block], depths: BraceDepthIndex, offset: int) -> bool:
        depth = depths.depth_at(offset)
        if depth == 0:
            return True
        container = self._container(blocks, offset, depth)
        return container is not None and container.kind == "mod"

    # ------------------------------------------------------------------
    # Imports / exports
    # ------------------------------------------------------------------

    def extract_imports(self, content: str) -> List[ImportInfo]:
        lines = LineIndex(content)
        found: List[Tuple[int, ImportInfo]] = []

        for match in _USE.finditer(content):
            tree = re.sub(r"\s*(::|[{},])\s*", r"\1", " ".join(match.group(2).split()))
            found.append((match.start(), self._use_tree(tree, lines.line_of(match.start()))))

        for match in _MOD_DECL.finditer(content):
            found.append((match.start(), ImportInfo(
                module="self::" + match.group(2), items=[], line=lines.line_of(match.start()),
            )))

        for match in _EXTERN_CRATE.finditer(content):
            found.append((match.start(), ImportInfo(
                module=match.group(1), items=[], line=lines.line_of(match.start()),
            )))

        found.sort(key=lambda pair: pair[0])
        return [info for _, info in found]

    @staticmethod
    def _use_tree(tree: str, line: int) -> ImportInfo:
        """Split ``a::b::{C, D as E}`` / ``a::b::*`` / ``a::b::C`` into module and items.

        Trait imports are used implicitly through method calls, so ``use``
        items are never reported as unused.
        """
        brace = tree.find("{")
        if brace != -1:
            module = tree[:brace].rstrip(":")
            inner = tree[brace + 1:tree.rfind("}")] if "}" in tree else tree[brace + 1:]
            items = [item.split(" as ")[0] for item in split_parameters(inner)]
            wildcard = "*" in items
            return ImportInfo(
                module=module,
                items=[item for item in items if item != "*"],
                line=line,
                is_wildcard=wildcard,
            )
        if tree.endswith("::*"):
            return ImportInfo(module=tree[:-3], items=[], line=line, is_wildcard=True)
        path = tree.split(" as ")[0].strip()
        if "::" not in path:
            return ImportInfo(module=path, items=[], line=line)
        module, _, item = path.rpartition("::")
        return ImportInfo(module=module, items=[item], line=line)

    def extract_exports(self, content: str) -> List[ExportInfo]:
        lines = LineIndex(content)
        depths = BraceDepthIndex(content)
        exports = []
        for match in _PUB_ITEM.finditer(content):
            if depths.depth_at(match.start()) != 0:
                continue
            exports.append(ExportInfo(name=match.group(2), type=match.group(1), line=lines.line_of(match.start())))
        return exports

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------

    def extract_classes(self, content: str) -> List[ClassInfo]:
        lines = LineIndex(content)
        depths = BraceDepthIndex(content)
        blocks = self._blocks(content, lines, depths)
        found: List[Tuple[int, ClassInfo]] = []

        for match in _TYPE_ITEM.finditer(content):
            if not self._at_item_level(blocks, depths, match.start()):
                continue
            kind, name = match.group(2), match.group(3)
            end_line = find_block_end(content, match.end(), stop_at_semicolon=kind in ("struct", "union"))
            attributes: List[AttributeInfo] = []
            body = re.compile(r"[{;]").search(content, match.end())
            if body is not None and body.group(0) == "{" and kind != "trait":
                attributes = self._members(content, lines, depths, body.start(), end_line, kind)
            found.append((match.start(), ClassInfo(
                name=name,
                type=kind,
                line=lines.line_of(match.start(3)),
                end_line=end_line,
                visibility=_visibility(match.group(1)),
                decorators=collect_decorators(content, match.start(), _ATTRIBUTE, _COMMENT_PREFIXES),
                attributes=attributes,
                documentation=extract_line_docs(content, match.start()),
            )))

        for match in _TYPE_ALIAS.finditer(content):
            if not self._at_item_level(blocks, depths, match.start()):
                continue
            found.append((match.start(), ClassInfo(
                name=match.group(2),
                type="type",
                line=lines.line_of(match.start(2)),
                end_line=lines.line_of(match.end() - 1),
                visibility=_visibility(match.group(1)),
                documentation=extract_line_docs(content, match.start()),
            )))

        found.sort(key=lambda pair: pair[0])
        classes = [info for _, info in found]

        by_name = {info.name: info for info in classes}
        for match in _IMPL.finditer(content):
            trait = match.group(1)
            target = by_name.get(_last_segment(match.group(2)))
            if trait and target is not None and not trait.startswith("!"):
                trait_name = _last_segment(trait)
                if trait_name not in target.implements:
                    target.implements.append(trait_name)
        return classes

    @staticmethod
    def _members(content: str, lines: LineIndex, depths: BraceDepthIndex,
                 brace: int, end_line: int, kind: str) -> List[AttributeInfo]:
        member_depth = depths.depth_at(brace) + 1
        end = lines.line_end(end_line)
        members: List[AttributeInfo] = []
        if kind == "enum":
            for match in _VARIANT.finditer(content, brace + 1, end):
                if depths.depth_at(match.start()) != member_depth:
                    continue
                members.append(AttributeInfo(
                    name=match.group(1),
                    line=lines.line_of(match.start(1)),
                    visibility=Visibility.PUBLIC,
                    is_static=True,
                    is_readonly=True,
                    default_value=match.group(2),
                ))
            return members

        for match in _STRUCT_FIELD.finditer(content, brace + 1, end):
            if depths.depth_at(match.start()) != member_depth:
                continue
            members.append(AttributeInfo(
                name=match.group(2),
                line=lines.line_of(match.start(2)),
                type=match.group(3).rstrip(","),
                visibility=_visibility(match.group(1)),
            ))
        return members

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def extract_functions(self, content: str) -> List[FunctionInfo]:
        lines = LineIndex(content)
        depths = BraceDepthIndex(content)
        blocks = self._blocks(content, lines, depths)
        functions: List[FunctionInfo] = []

        for match in _FN.finditer(content):
            depth = depths.depth_at(match.start())
            parent: Optional[str] = None
            trait_member = False
            if depth > 0:
                container = self._container(blocks, match.start(), depth)
                if container is None:
                    continue
                if container.kind in ("impl", "trait_impl", "trait"):
                    parent = container.name
                    trait_member = container.kind != "impl"
            function = self._build_function(content, lines, match, parent, trait_member)
            if function is not None:
                functions.append(function)
        return functions

    def _build_function(self, content: str, lines: LineIndex, match: "re.Match[str]",
                        parent: Optional[str], trait_member: bool = False) -> Optional[FunctionInfo]:
        name = match.group(5)
        open_index = match.end() - 1
        close = scan_balanced(content, open_index, quotes=self.string_quotes)
        if close == -1:
            return None
        tail = _FN_TAIL.match(content, close + 1)
        if tail is None or tail.group(2) == ";":
            return None

        brace = tail.end() - 1
        end_line = find_block_end(content, brace)
        body_end = max(lines.line_end(end_line), brace + 1)
        facts = self.analyze_body(content, brace + 1, body_end, lines)
        parameters, has_self = self._parse_parameters(content[open_index + 1:close])

        if parent is None:
            kind = "function"
        elif name == "new":
            kind = "constructor"
        else:
            kind = "method"

        return FunctionInfo(
            name=name,
            type=kind,
            line=lines.line_of(match.start(5)),
            end_line=end_line,
            visibility=Visibility.PUBLIC if trait_member else _visibility(match.group(1)),
            is_async=bool(match.group(3)),
            is_static=parent is not None and not has_self,
            parameters=parameters,
            return_type=" ".join(tail.group(1).split()) if tail.group(1) else None,
            decorators=collect_decorators(content, match.start(), _ATTRIBUTE, _COMMENT_PREFIXES),
            documentation=extract_line_docs(content, match.start()),
            calls=facts.calls,
            variable_usages=facts.usages,
            member_accesses=facts.member_accesses,
            raises=facts.raises,
            complexity=facts.complexity,
            nesting_depth=brace_nesting_depth(content, brace, body_end),
            parent_class=parent,
        )

    @staticmethod
    def _parse_parameters(text: str) -> Tuple[List[ParameterInfo], bool]:
        parameters: List[ParameterInfo] = []
        has_self = False
        for part in split_parameters(text):
            part = " ".join(part.split())
            if _SELF_PARAM.match(part):
                has_self = True
                continue
            pattern, _, data_type = part.partition(":")
            name = pattern.strip()
            if name.startswith("mut "):
                name = name[4:]
            if not name:
                continue
            parameters.append(ParameterInfo(name=name, type=data_type.strip() or None))
        return parameters, has_self

    # ------------------------------------------------------------------
    # Constants and statics
    # ------------------------------------------------------------------

    def extract_variables(self, content: str) -> List[VariableInfo]:
        lines = LineIndex(content)
        depths = BraceDepthIndex(content)
        blocks = self._blocks(content, lines, depths)
        variables: List[VariableInfo] = []
        for match in _CONST.finditer(content):
            if not self._at_item_level(blocks, depths, match.start()):
                continue
            visibility, kind, mutable, name, data_type, value = match.groups()
            value = " ".join(value.split())
            variables.append(VariableInfo(
                name=name,
                type="constant" if kind == "const" else "variable",
                line=lines.line_of(match.start(4)),
                data_type=" ".join(data_type.split()),
                visibility=_visibility(visibility),
                is_const=kind == "const",
                is_mutable=bool(mutable),
                scope="module",
                initial_value=sanitize_value(value, name),
                usages=find_usages(content, name, lines, skip=(match.start(4), match.end(4))),
            ))
        return variables
