"""Build the multi-level code graph from per-file facts.

The pipeline is fixed: every node is created first, then every edge, then
metrics are computed from the finished node and edge lists. Files are
processed in path order so identical input always yields identical ids.
"""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .config import AnalyzerConfig
from .models import (
    CONTAINMENT_RELATIONS,
    ClassInfo,
    CodeEdge,
    CodeNode,
    FileInfo,
    FunctionInfo,
    GranularityLevel,
    ImportInfo,
    Language,
    NodeMetrics,
    NodeType,
    RelationType,
    SourceLocation,
    TYPE_NODE_TYPES,
    VariableInfo,
)

logger = logging.getLogger(__name__)

L = GranularityLevel

CLASS_NODE_TYPES: Dict[str, NodeType] = {
    "class": NodeType.CLASS,
    "abstract_class": NodeType.CLASS,
    "struct": NodeType.STRUCT,
    "union": NodeType.STRUCT,
    "interface": NodeType.INTERFACE,
    "trait": NodeType.TRAIT,
    "enum": NodeType.ENUM,
    "type": NodeType.TYPE_ALIAS,
}

FUNCTION_NODE_KINDS: Dict[str, NodeType] = {
    "function": NodeType.FUNCTION,
    "arrow": NodeType.FUNCTION,
    "method": NodeType.METHOD,
    "constructor": NodeType.CONSTRUCTOR,
    "closure": NodeType.CLOSURE,
}

_JS_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts")
_RUST_EXTERNAL_ROOTS = frozenset({"std", "core", "alloc"})
_TYPE_WORD = re.compile(r"[A-Za-z_]\w*")


def separator_for(language: Optional[Language]) -> str:
    return "::" if language == Language.RUST else "."


def module_path(path: str, language: Optional[Language]) -> str:
    """Dotted (or ``::``) module path of a file: ``src/app/main.py`` -> ``src.app.main``."""
    parts = list(PurePosixPath(path).with_suffix("").parts)
    if language == Language.PYTHON and parts and parts[-1] == "__init__":
        parts.pop()
    return separator_for(language).join(parts)


def _join(separator: str, *parts: str) -> str:
    return separator.join(p for p in parts if p)


@dataclass
class CodeGraph:
    """Nodes, edges and the fact indexes later passes need."""

    nodes: List[CodeNode] = field(default_factory=list)
    edges: List[CodeEdge] = field(default_factory=list)
    files: List[FileInfo] = field(default_factory=list)
    node_index: Dict[str, CodeNode] = field(default_factory=dict)
    file_nodes: Dict[str, str] = field(default_factory=dict)
    function_facts: Dict[str, Tuple[FileInfo, FunctionInfo]] = field(default_factory=dict)
    class_facts: Dict[str, Tuple[FileInfo, ClassInfo]] = field(default_factory=dict)
    variable_facts: Dict[str, Tuple[FileInfo, VariableInfo]] = field(default_factory=dict)
    # importing file path -> resolved target file paths, in import order
    file_imports: Dict[str, List[str]] = field(default_factory=dict)
    # importing file path -> imported name -> target file paths
    imported_names: Dict[str, Dict[str, List[str]]] = field(default_factory=dict)

    def node(self, node_id: str) -> Optional[CodeNode]:
        return self.node_index.get(node_id)

    def edges_of_type(self, *types: RelationType) -> List[CodeEdge]:
        wanted = set(types)
        return [e for e in self.edges if e.type in wanted]

    def owner_type(self, node_id: str) -> Optional[CodeNode]:
        """The type node directly containing ``node_id``, if any."""
        node = self.node_index.get(node_id)
        if node is None or node.parent is None:
            return None
        parent = self.node_index.get(node.parent)
        if parent is not None and parent.type in TYPE_NODE_TYPES:
            return parent
        return None


def compute_metrics(
    nodes: Sequence[CodeNode],
    edges: Sequence[CodeEdge],
    complexity: Dict[str, int],
) -> Dict[str, NodeMetrics]:
    """Derive per-node metrics from a finished graph without mutating it.

    ``loc`` is ``end_line - line + 1`` for ranged nodes, the line count for
    files, the sum of contained files for modules and the system, and 1 for
    leaves. Containment edges are not counted as dependencies.
    """
    outgoing: Dict[str, int] = {}
    incoming: Dict[str, int] = {}
    for edge in edges:
        if edge.type in CONTAINMENT_RELATIONS:
            continue
        outgoing[edge.source] = outgoing.get(edge.source, 0) + 1
        incoming[edge.target] = incoming.get(edge.target, 0) + 1

    loc: Dict[str, int] = {}
    for node in nodes:
        if node.level in (L.L1_SYSTEM, L.L2_MODULE):
            continue
        end_line = node.location.end_line
        if node.level == L.L7_VARIABLE or end_line is None:
            loc[node.id] = 1
        else:
            loc[node.id] = max(1, end_line - node.location.line + 1)

    file_total = 0
    for node in nodes:
        if node.level == L.L2_MODULE:
            loc[node.id] = sum(
                loc.get(child, 0) for child in node.children
                if child.startswith(L.L3_FILE.value + ":")
            )
        elif node.level == L.L3_FILE:
            file_total += loc[node.id]
    for node in nodes:
        if node.level == L.L1_SYSTEM:
            loc[node.id] = file_total

    return {
        node.id: NodeMetrics(
            loc=loc.get(node.id, 1),
            complexity=complexity.get(node.id),
            dependencies=outgoing.get(node.id, 0),
            dependents=incoming.get(node.id, 0),
        )
        for node in nodes
    }


class GraphBuilder:
    """Turns a set of :class:`FileInfo` into a :class:`CodeGraph`."""

    def __init__(
        self,
        project_name: str,
        root_path: str = "",
        config: Optional[AnalyzerConfig] = None,
    ) -> None:
        self.project_name = project_name
        self.root_path = root_path
        self.config = config or AnalyzerConfig()

    def build(self, files: Iterable[FileInfo]) -> CodeGraph:
        self._graph = CodeGraph(files=sorted(files, key=lambda f: f.path))
        self._edge_keys: Dict[Tuple[str, str, RelationType], CodeEdge] = {}
        self._create_nodes()
        self._create_edges()

        complexity = {
            node_id: fn.complexity for node_id, (_, fn) in self._graph.function_facts.items()
        }
        metrics = compute_metrics(self._graph.nodes, self._graph.edges, complexity)
        for node in self._graph.nodes:
            node.metrics = metrics[node.id]

        logger.debug(
            "Built graph for %s: %d nodes, %d edges",
            self.project_name, len(self._graph.nodes), len(self._graph.edges),
        )
        return self._graph

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def _add_node(
        self,
        level: GranularityLevel,
        node_type: NodeType,
        name: str,
        full_path: str,
        location: SourceLocation,
        parent: Optional[str],
        file_info: Optional[FileInfo] = None,
        **attrs,
    ) -> CodeNode:
        if level in (L.L1_SYSTEM, L.L2_MODULE):
            base_id = f"{level.value}:{name}"
        else:
            base_id = f"{level.value}:{location.file}:{location.line}:{full_path}"
        node_id = base_id
        suffix = 2
        while node_id in self._graph.node_index:
            node_id = f"{base_id}#{suffix}"
            suffix += 1

        node = CodeNode(
            id=node_id,
            level=level,
            type=node_type,
            name=name,
            full_path=full_path,
            location=location,
            parent=parent,
            layer=file_info.layer if file_info else None,
            language=file_info.language if file_info else None,
            **attrs,
        )
        self._graph.nodes.append(node)
        self._graph.node_index[node_id] = node
        if parent is not None:
            self._graph.node_index[parent].children.append(node_id)
        return node

    def _create_nodes(self) -> None:
        system = self._add_node(
            L.L1_SYSTEM, NodeType.SYSTEM, self.project_name, self.project_name,
            SourceLocation(file=self.root_path, line=1), None,
        )

        modules: Dict[str, str] = {}
        for info in self._graph.files:
            parts = PurePosixPath(info.path).parts
            if len(parts) > 1 and parts[0] not in modules:
                module = self._add_node(
                    L.L2_MODULE, NodeType.MODULE, parts[0], parts[0],
                    SourceLocation(file=parts[0], line=1), system.id,
                )
                modules[parts[0]] = module.id

        deferred: List[Tuple[FileInfo, FunctionInfo, str, str]] = []
        classes_by_name: Dict[str, List[str]] = {}

        for info in self._graph.files:
            parts = PurePosixPath(info.path).parts
            parent = modules.get(parts[0]) if len(parts) > 1 else system.id
            sep = separator_for(info.language)
            file_path = module_path(info.path, info.language) or info.path
            file_node = self._add_node(
                L.L3_FILE, NodeType.FILE, info.name, file_path,
                SourceLocation(file=info.path, line=1, end_line=max(info.line_count, 1)),
                parent, info,
            )
            self._graph.file_nodes[info.path] = file_node.id

            local_classes: Dict[str, CodeNode] = {}
            for cls in info.classes:
                class_node = self._add_class(info, cls, file_node, sep)
                local_classes.setdefault(cls.name, class_node)
                classes_by_name.setdefault(cls.name, []).append(class_node.id)

            for fn in info.functions:
                owner = local_classes.get(fn.parent_class) if fn.parent_class else None
                if fn.parent_class and owner is None:
                    deferred.append((info, fn, file_node.id, sep))
                    continue
                if owner is not None:
                    self._add_function(info, fn, owner.id, _join(sep, owner.full_path, fn.name), sep)
                else:
                    self._add_function(info, fn, file_node.id, _join(sep, file_path, fn.name), sep)

            for var in info.variables:
                var_node = self._add_node(
                    L.L7_VARIABLE,
                    NodeType.CONSTANT if var.type == "constant" else NodeType.VARIABLE,
                    var.name,
                    _join(sep, file_path, var.name),
                    SourceLocation(file=info.path, line=var.line, end_line=var.line),
                    file_node.id,
                    info,
                    visibility=var.visibility,
                    modifiers=_variable_modifiers(var),
                    data_type=var.data_type,
                    initial_value=var.initial_value,
                )
                self._graph.variable_facts[var_node.id] = (info, var)

        # Methods whose type lives in another file (Rust ``impl`` blocks)
        for info, fn, file_id, sep in deferred:
            owners = classes_by_name.get(fn.parent_class or "", [])
            if owners:
                owner = self._graph.node_index[owners[0]]
                self._add_function(info, fn, owner.id, _join(sep, owner.full_path, fn.name), sep)
            else:
                file_path = self._graph.node_index[file_id].full_path
                self._add_function(
                    info, fn, file_id, _join(sep, file_path, fn.parent_class or "", fn.name), sep,
                )

    def _add_class(self, info: FileInfo, cls: ClassInfo, file_node: CodeNode, sep: str) -> CodeNode:
        full_path = _join(sep, file_node.full_path, cls.name)
        modifiers = ["abstract"] if cls.type == "abstract_class" else []
        class_node = self._add_node(
            L.L4_TYPE,
            CLASS_NODE_TYPES.get(cls.type, NodeType.CLASS),
            cls.name,
            full_path,
            SourceLocation(file=info.path, line=cls.line, end_line=cls.end_line),
            file_node.id,
            info,
            visibility=cls.visibility,
            modifiers=modifiers,
            documentation=cls.documentation,
        )
        self._graph.class_facts[class_node.id] = (info, cls)

        for attr in cls.attributes:
            modifiers = [m for m, on in (("static", attr.is_static), ("readonly", attr.is_readonly)) if on]
            self._add_node(
                L.L7_VARIABLE,
                NodeType.ATTRIBUTE,
                attr.name,
                _join(sep, full_path, attr.name),
                SourceLocation(file=info.path, line=attr.line, end_line=attr.line),
                class_node.id,
                info,
                visibility=attr.visibility,
                modifiers=modifiers,
                data_type=attr.type,
                initial_value=attr.default_value,
            )

        for method in cls.methods:
            self._add_function(info, method, class_node.id, _join(sep, full_path, method.name), sep)
        return class_node

    def _add_function(self, info: FileInfo, fn: FunctionInfo, parent: str, full_path: str, sep: str) -> CodeNode:
        fn_node = self._add_node(
            L.L5_FUNCTION,
            FUNCTION_NODE_KINDS.get(fn.type, NodeType.FUNCTION),
            fn.name,
            full_path,
            SourceLocation(file=info.path, line=fn.line, end_line=fn.end_line),
            parent,
            info,
            visibility=fn.visibility,
            modifiers=_function_modifiers(fn),
            signature=_signature(fn),
            data_type=fn.return_type,
            documentation=fn.documentation,
        )
        self._graph.function_facts[fn_node.id] = (info, fn)

        for param in fn.parameters:
            self._add_node(
                L.L7_VARIABLE,
                NodeType.PARAMETER,
                param.name,
                _join(sep, full_path, param.name),
                SourceLocation(file=info.path, line=fn.line, end_line=fn.line),
                fn_node.id,
                info,
                modifiers=["optional"] if param.is_optional else [],
                data_type=param.type,
                initial_value=param.default_value,
            )
        return fn_node

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def _add_edge(
        self,
        source: str,
        target: str,
        relation: RelationType,
        location: Optional[SourceLocation] = None,
        label: Optional[str] = None,
        call_site: Optional[int] = None,
    ) -> CodeEdge:
        key = (source, target, relation)
        edge = self._edge_keys.get(key)
        if edge is None:
            edge = CodeEdge(
                id=f"edge-{len(self._graph.edges) + 1}",
                source=source,
                target=target,
                type=relation,
                location=location,
                label=label,
            )
            self._graph.edges.append(edge)
            self._edge_keys[key] = edge
        if call_site is not None and call_site not in edge.call_sites:
            edge.call_sites.append(call_site)
        return edge

    def _create_edges(self) -> None:
        graph = self._graph
        for node in graph.nodes:
            if node.parent is not None:
                self._add_edge(node.parent, node.id, RelationType.CONTAINS)
                self._add_edge(node.id, node.parent, RelationType.CONTAINED_BY)

        self._functions_by_name: Dict[str, List[str]] = {}
        for node_id, (_, fn) in graph.function_facts.items():
            self._functions_by_name.setdefault(fn.name, []).append(node_id)
        self._types_by_name: Dict[str, List[str]] = {}
        for node_id, (_, cls) in graph.class_facts.items():
            self._types_by_name.setdefault(cls.name, []).append(node_id)

        self._import_edges()
        self._call_edges()
        self._inheritance_edges()
        self._throw_edges()
        self._decorator_edges()
        self._variable_edges()
        self._type_edges()

    def _prefer(self, candidates: List[str], file_path: str) -> Optional[str]:
        """Same-file candidate first, otherwise the first declared."""
        if not candidates:
            return None
        for candidate in candidates:
            if self._graph.node_index[candidate].location.file == file_path:
                return candidate
        return candidates[0]

    # -- imports --------------------------------------------------------

    def _import_edges(self) -> None:
        graph = self._graph
        resolver = ImportResolver([f.path for f in graph.files])
        for info in graph.files:
            targets: List[str] = []
            names: Dict[str, List[str]] = {}
            for imp in info.imports:
                resolved = resolver.resolve(info, imp)
                for target in resolved:
                    if target == info.path:
                        continue
                    self._add_edge(
                        graph.file_nodes[info.path],
                        graph.file_nodes[target],
                        RelationType.IMPORTS,
                        SourceLocation(file=info.path, line=imp.line),
                        label=imp.module,
                    )
                    if target not in targets:
                        targets.append(target)
                    for item in imp.items:
                        names.setdefault(item, [])
                        if target not in names[item]:
                            names[item].append(target)
            graph.file_imports[info.path] = targets
            graph.imported_names[info.path] = names

    # -- calls ------------------------------------------------------------

    def _call_edges(self) -> None:
        graph = self._graph
        for node_id, (info, fn) in list(graph.function_facts.items()):
            owner = graph.owner_type(node_id)
            for call in fn.calls:
                location = SourceLocation(file=info.path, line=call.line)
                name = call.name
                receiver = call.receiver

                type_targets = self._types_by_name.get(name)
                if type_targets and name not in self._functions_by_name:
                    target = self._prefer(type_targets, info.path)
                    self._add_edge(node_id, target, RelationType.INSTANTIATES, location, name, call.line)
                    continue

                target = self._resolve_call(name, receiver, owner, info.path)
                if target is None:
                    continue
                relation = RelationType.AWAITS if call.is_await else RelationType.CALLS
                self._add_edge(node_id, target, relation, location, call.target, call.line)

    def _resolve_call(
        self,
        name: str,
        receiver: Optional[str],
        owner: Optional[CodeNode],
        file_path: str,
    ) -> Optional[str]:
        candidates = self._functions_by_name.get(name)
        if not candidates:
            return None
        graph = self._graph

        if receiver in ("self", "this", "Self", "cls") and owner is not None:
            for candidate in candidates:
                if graph.node_index[candidate].parent == owner.id:
                    return candidate
        if receiver and receiver in self._types_by_name:
            type_ids = set(self._types_by_name[receiver])
            for candidate in candidates:
                if graph.node_index[candidate].parent in type_ids:
                    return candidate
        return self._prefer(candidates, file_path)

    # -- types ------------------------------------------------------------

    def _resolve_type(self, name: Optional[str], file_path: str) -> Optional[str]:
        if not name:
            return None
        name = re.split(r"[<(\[]", name, 1)[0].replace("::", ".").rsplit(".", 1)[-1].strip()
        return self._prefer(self._types_by_name.get(name, []), file_path)

    def _inheritance_edges(self) -> None:
        for node_id, (info, cls) in self._graph.class_facts.items():
            location = SourceLocation(file=info.path, line=cls.line)
            target = self._resolve_type(cls.extends, info.path)
            if target is not None and target != node_id:
                self._add_edge(node_id, target, RelationType.EXTENDS, location, cls.extends)
            for base in cls.implements:
                target = self._resolve_type(base, info.path)
                if target is not None and target != node_id:
                    self._add_edge(node_id, target, RelationType.IMPLEMENTS, location, base)

    def _throw_edges(self) -> None:
        for node_id, (info, fn) in self._graph.function_facts.items():
            for raised in fn.raises:
                target = self._resolve_type(raised, info.path)
                if target is not None:
                    self._add_edge(
                        node_id, target, RelationType.THROWS,
                        SourceLocation(file=info.path, line=fn.line), raised,
                    )

    def _decorator_edges(self) -> None:
        graph = self._graph
        decorated: List[Tuple[str, FileInfo, int, List[str]]] = [
            (node_id, info, fn.line, fn.decorators) for node_id, (info, fn) in graph.function_facts.items()
        ]
        decorated.extend(
            (node_id, info, cls.line, cls.decorators) for node_id, (info, cls) in graph.class_facts.items()
        )
        for node_id, info, line, decorators in decorated:
            for decorator in decorators:
                name = decorator.split("(", 1)[0].rsplit(".", 1)[-1]
                target = self._prefer(self._functions_by_name.get(name, []), info.path)
                if target is None or target == node_id:
                    continue
                location = SourceLocation(file=info.path, line=line)
                self._add_edge(node_id, target, RelationType.DECORATED_BY, location, decorator)
                self._add_edge(target, node_id, RelationType.DECORATES, location, decorator)

    def _variable_edges(self) -> None:
        graph = self._graph
        by_file_name: Dict[Tuple[str, str], str] = {}
        for node_id, (info, var) in graph.variable_facts.items():
            by_file_name.setdefault((info.path, var.name), node_id)

        for node_id, (info, fn) in graph.function_facts.items():
            imported = graph.imported_names.get(info.path, {})
            for usage in fn.variable_usages:
                target = by_file_name.get((info.path, usage.name))
                if target is None:
                    for path in imported.get(usage.name, []):
                        target = by_file_name.get((path, usage.name))
                        if target is not None:
                            break
                if target is None:
                    continue
                relation = RelationType.WRITES if usage.operation == "write" else RelationType.READS
                self._add_edge(
                    node_id, target, relation,
                    SourceLocation(file=info.path, line=usage.line), usage.name, usage.line,
                )

    def _type_edges(self) -> None:
        for node_id, (info, fn) in self._graph.function_facts.items():
            location = SourceLocation(file=info.path, line=fn.line)
            for param in fn.parameters:
                for target in self._named_types(param.type, info.path):
                    self._add_edge(node_id, target, RelationType.PARAM_TYPE, location, param.name)
            for target in self._named_types(fn.return_type, info.path):
                self._add_edge(node_id, target, RelationType.RETURNS_TYPE, location, fn.return_type)

    def _named_types(self, type_text: Optional[str], file_path: str) -> List[str]:
        if not type_text:
            return []
        targets: List[str] = []
        for word in _TYPE_WORD.findall(type_text):
            target = self._prefer(self._types_by_name.get(word, []), file_path)
            if target is not None and target not in targets:
                targets.append(target)
        return targets


class ImportResolver:
    """Maps an import statement to project files by path probing."""

    def __init__(self, paths: Iterable[str]) -> None:
        self.paths: Set[str] = set(paths)
        self._by_stem: Dict[str, List[str]] = {}
        for path in sorted(self.paths):
            stem = str(PurePosixPath(path).with_suffix(""))
            self._by_stem.setdefault(stem, []).append(path)

    def resolve(self, info: FileInfo, imp: ImportInfo) -> List[str]:
        if info.language in (Language.TYPESCRIPT, Language.JAVASCRIPT):
            target = self._resolve_script(info.path, imp.module)
            return [target] if target else []
        if info.language == Language.PYTHON:
            return self._resolve_python(info.path, imp)
        if info.language == Language.RUST:
            return self._resolve_rust(info.path, imp)
        return []

    def _lookup(self, stem: str, extensions: Sequence[str], index_names: Sequence[str] = ()) -> Optional[str]:
        stem = posixpath.normpath(stem)
        if stem in self.paths:
            return stem
        for ext in extensions:
            if stem + ext in self.paths:
                return stem + ext
        for index in index_names:
            candidate = posixpath.join(stem, index)
            if candidate in self.paths:
                return candidate
        return None

    def _suffix_match(self, stem: str, extensions: Sequence[str], index_names: Sequence[str] = ()) -> Optional[str]:
        wanted = [stem + ext for ext in extensions] + [posixpath.join(stem, i) for i in index_names]
        for path in sorted(self.paths):
            for candidate in wanted:
                if path == candidate or path.endswith("/" + candidate):
                    return path
        return None

    # -- TypeScript / JavaScript -----------------------------------------

    def _resolve_script(self, importer: str, module: str) -> Optional[str]:
        indexes = tuple("index" + ext for ext in _JS_EXTENSIONS)
        base = posixpath.dirname(importer)
        if module.startswith("."):
            stem = posixpath.join(base, module)
            found = self._lookup(stem, _JS_EXTENSIONS, indexes)
            if found is None and PurePosixPath(stem).suffix in _JS_EXTENSIONS:
                found = self._lookup(str(PurePosixPath(stem).with_suffix("")), _JS_EXTENSIONS, indexes)
            return found
        if module.startswith(("@/", "~/")):
            rest = module[2:]
            return (
                self._lookup(posixpath.join("src", rest), _JS_EXTENSIONS, indexes)
                or self._lookup(rest, _JS_EXTENSIONS, indexes)
                or self._suffix_match(rest, _JS_EXTENSIONS, indexes)
            )
        if "/" in module and not module.startswith("@"):
            return self._lookup(module, _JS_EXTENSIONS, indexes) or self._suffix_match(module, _JS_EXTENSIONS, indexes)
        return None

    # -- Python -----------------------------------------------------------

    def _resolve_python(self, importer: str, imp: ImportInfo) -> List[str]:
        module = imp.module
        dots = len(module) - len(module.lstrip("."))
        rest = [p for p in module.lstrip(".").split(".") if p]
        extensions = (".py", ".pyw")
        packages = ("__init__.py",)

        if dots:
            base = posixpath.dirname(importer)
            for _ in range(dots - 1):
                base = posixpath.dirname(base)
            stem = posixpath.join(base, *rest) if rest else base
            found = self._lookup(stem, extensions, packages) if rest else self._lookup(
                posixpath.join(stem, "__init__"), extensions,
            )
        else:
            stem = "/".join(rest)
            found = self._lookup(stem, extensions, packages) or self._suffix_match(stem, extensions, packages)

        targets = [found] if found else []
        # ``from pkg import submodule``
        for item in imp.items:
            sub_stem = posixpath.join(stem, item) if stem else item
            sub = self._lookup(sub_stem, extensions, packages)
            if sub is None and not dots:
                sub = self._suffix_match(sub_stem, extensions, packages)
            if sub is not None and sub not in targets:
                targets.append(sub)
        return targets

    # -- Rust -------------------------------------------------------------

    def _crate_root(self, importer: str) -> str:
        parts = PurePosixPath(importer).parts[:-1]
        for i in range(len(parts), -1, -1):
            directory = "/".join(parts[:i])
            for root_file in ("lib.rs", "main.rs"):
                if posixpath.join(directory, root_file) in self.paths:
                    return directory
        if "src" in parts:
            return "/".join(parts[:parts.index("src") + 1])
        return "/".join(parts)

    @staticmethod
    def _module_dir(importer: str) -> str:
        """Directory holding the child modules of the module defined by ``importer``."""
        path = PurePosixPath(importer)
        if path.stem in ("lib", "main", "mod"):
            return str(path.parent) if str(path.parent) != "." else ""
        parent = str(path.parent) if str(path.parent) != "." else ""
        return posixpath.join(parent, path.stem) if parent else path.stem

    def _resolve_rust(self, importer: str, imp: ImportInfo) -> List[str]:
        segments = [s for s in imp.module.split("::") if s]
        if not segments or segments[0] in _RUST_EXTERNAL_ROOTS:
            return []

        if segments[0] == "crate":
            base = self._crate_root(importer)
            segments = segments[1:]
        elif segments[0] == "self":
            base = self._module_dir(importer)
            segments = segments[1:]
        elif segments[0] == "super":
            base = self._module_dir(importer)
            while segments and segments[0] == "super":
                base = posixpath.dirname(base)
                segments = segments[1:]
        else:
            base = self._crate_root(importer)

        targets: List[str] = []
        found = self._rust_module(base, segments)
        if found:
            targets.append(found)
        for item in imp.items:
            if not re.match(r"^\w+$", item) or item == "self":
                continue
            sub = self._rust_module(base, segments + [item], exact=True)
            if sub and sub not in targets:
                targets.append(sub)
        return targets

    def _rust_module(self, base: str, segments: List[str], exact: bool = False) -> Optional[str]:
        """Longest prefix of ``segments`` that names a module file under ``base``."""
        lengths = [len(segments)] if exact else range(len(segments), 0, -1)
        for length in lengths:
            if length == 0:
                continue
            stem = posixpath.join(base, *segments[:length]) if base else "/".join(segments[:length])
            found = self._lookup(stem, (".rs",), ("mod.rs",))
            if found:
                return found
        return None


def _function_modifiers(fn: FunctionInfo) -> List[str]:
    flags = (
        ("async", fn.is_async),
        ("static", fn.is_static),
        ("generator", fn.is_generator),
        ("arrow", fn.type == "arrow"),
    )
    return [name for name, on in flags if on]


def _variable_modifiers(var: VariableInfo) -> List[str]:
    modifiers = ["const"] if var.is_const else []
    if var.is_mutable and not var.is_const:
        modifiers.append("mutable")
    return modifiers


def _signature(fn: FunctionInfo) -> str:
    params = []
    for param in fn.parameters:
        text = ("..." if param.is_rest else "") + param.name
        if param.type:
            text += f": {param.type}"
        params.append(text)
    signature = f"{fn.name}({', '.join(params)})"
    if fn.return_type:
        signature += f" -> {fn.return_type}"
    return signature
