"""Derived analyses over a finished :class:`CodeGraph`.

Three passes, none of which mutate the graph: the call graph, module
variable data flow, and code-quality issue detection.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .config import AnalyzerConfig
from .graph_builder import CodeGraph
from .models import (
    FUNCTION_NODE_TYPES,
    TYPE_NODE_TYPES,
    CallGraph,
    CallGraphEdge,
    CallGraphNode,
    CodeIssue,
    CodeNode,
    DataFlow,
    DataFlowTarget,
    DataFlowTransform,
    FileInfo,
    GranularityLevel,
    IssueSeverity,
    IssueType,
    NodeType,
    RelationType,
    SourceLocation,
    VariableUsageInfo,
    Visibility,
)

logger = logging.getLogger(__name__)

ISSUE_SEVERITY: Dict[IssueType, IssueSeverity] = {
    IssueType.CIRCULAR_DEPENDENCY: IssueSeverity.ERROR,
    IssueType.DEAD_CODE: IssueSeverity.WARNING,
    IssueType.UNUSED_FUNCTION: IssueSeverity.WARNING,
    IssueType.UNUSED_VARIABLE: IssueSeverity.WARNING,
    IssueType.GOD_CLASS: IssueSeverity.WARNING,
    IssueType.LONG_METHOD: IssueSeverity.WARNING,
    IssueType.HIGH_COMPLEXITY: IssueSeverity.WARNING,
    IssueType.DEEP_NESTING: IssueSeverity.WARNING,
    IssueType.UNUSED_IMPORT: IssueSeverity.INFO,
    IssueType.FEATURE_ENVY: IssueSeverity.INFO,
}

# Incoming edges that count as "someone uses this type"
TYPE_REFERENCE_RELATIONS = frozenset({
    RelationType.INSTANTIATES, RelationType.EXTENDS, RelationType.IMPLEMENTS,
    RelationType.PARAM_TYPE, RelationType.RETURNS_TYPE, RelationType.THROWS,
    RelationType.USES_TYPE, RelationType.DECORATED_BY,
})

FUNCTION_REFERENCE_RELATIONS = frozenset({
    RelationType.CALLS, RelationType.AWAITS, RelationType.DECORATED_BY,
})

_SELF_RECEIVERS = frozenset({"self", "this", "cls", "Self", "super"})
_ALWAYS_USED = frozenset({"main", "__init__", "__main__", "constructor", "new", "default", "drop", "fmt"})
_ARGUMENT_WORD = re.compile(r"[A-Za-z_$][\w$]*")


class GraphAnalyzer:
    """Call graph, data flow and issue detection for one analysis run."""

    def __init__(self, graph: CodeGraph, config: Optional[AnalyzerConfig] = None) -> None:
        self.graph = graph
        self.config = config or AnalyzerConfig()
        self._files: Dict[str, FileInfo] = {f.path: f for f in graph.files}

        self._incoming: Dict[str, Set[RelationType]] = {}
        self._outgoing: Dict[str, Set[RelationType]] = {}
        for edge in graph.edges:
            self._incoming.setdefault(edge.target, set()).add(edge.type)
            self._outgoing.setdefault(edge.source, set()).add(edge.type)

        self._call_graph: Optional[CallGraph] = None

    # ------------------------------------------------------------------
    # Shared predicates
    # ------------------------------------------------------------------

    def _function_nodes(self) -> List[CodeNode]:
        return [n for n in self.graph.nodes if n.type in FUNCTION_NODE_TYPES]

    def is_exported(self, node: CodeNode) -> bool:
        """Top-level names the file exports, and public members of exported types."""
        info = self._files.get(node.location.file)
        if info is None or node.parent is None:
            return False
        parent = self.graph.node(node.parent)
        if parent is None:
            return False
        if parent.level == GranularityLevel.L3_FILE:
            return node.name in info.export_names
        if parent.type in TYPE_NODE_TYPES:
            return node.visibility in (Visibility.PUBLIC, Visibility.UNKNOWN) and self.is_exported(parent)
        return False

    def _has_incoming(self, node_id: str, relations: Iterable[RelationType]) -> bool:
        return bool(self._incoming.get(node_id, set()) & set(relations))

    # ------------------------------------------------------------------
    # Call graph
    # ------------------------------------------------------------------

    def build_call_graph(self) -> CallGraph:
        """Function-level call graph with entry points, terminals and BFS depth.

        Entry points are never called but call something or are exported.
        Depth is the shortest distance from any entry point; nodes no entry
        point reaches keep ``depth=None``.
        """
        functions = self._function_nodes()
        ids = {n.id for n in functions}

        edges: List[CallGraphEdge] = []
        adjacency: Dict[str, List[str]] = {}
        for edge in self.graph.edges_of_type(RelationType.CALLS, RelationType.AWAITS):
            if edge.source not in ids or edge.target not in ids:
                continue
            edges.append(CallGraphEdge(
                source=edge.source,
                target=edge.target,
                call_sites=list(edge.call_sites),
                is_async=edge.type == RelationType.AWAITS,
            ))
            adjacency.setdefault(edge.source, []).append(edge.target)

        targets = {e.target for e in edges}
        nodes = [
            CallGraphNode(
                id=n.id,
                name=n.name,
                file=n.location.file,
                line=n.location.line,
                is_entry_point=n.id not in targets and (n.id in adjacency or self.is_exported(n)),
                is_terminal=n.id not in adjacency,
            )
            for n in functions
        ]

        by_id = {n.id: n for n in nodes}
        queue = deque()
        for node in nodes:
            if node.is_entry_point:
                node.depth = 0
                queue.append(node.id)
        while queue:
            current = queue.popleft()
            depth = by_id[current].depth
            for target in adjacency.get(current, []):
                if by_id[target].depth is None:
                    by_id[target].depth = depth + 1
                    queue.append(target)

        self._call_graph = CallGraph(nodes=nodes, edges=edges)
        return self._call_graph

    # ------------------------------------------------------------------
    # Data flow
    # ------------------------------------------------------------------

    def analyze_data_flow(self) -> List[DataFlow]:
        """Where each module-level variable is used, and which functions pass it on."""
        flows: List[DataFlow] = []
        importers = self._importers_by_name()

        for node_id, (info, var) in self.graph.variable_facts.items():
            flow = DataFlow(
                variable=var.name,
                defined=SourceLocation(file=info.path, line=var.line),
            )
            for usage in var.usages:
                flow.flows_to.append(self._flow_target(info.path, usage))

            readers = [info.path] + importers.get((info.path, var.name), [])
            for path in readers[1:]:
                for fn in self._files[path].functions:
                    for usage in fn.variable_usages:
                        if usage.name == var.name:
                            flow.flows_to.append(self._flow_target(path, usage))

            word = re.compile(r"(?<![\w$.])" + re.escape(var.name) + r"(?![\w$])")
            for fn_id, (fn_file, fn) in self.graph.function_facts.items():
                if fn_file.path not in readers:
                    continue
                for call in fn.calls:
                    if any(word.search(arg) for arg in call.arguments):
                        flow.transformed_by.append(DataFlowTransform(
                            function=self.graph.node_index[fn_id].full_path,
                            file=fn_file.path,
                            line=call.line,
                        ))
                        break

            flows.append(flow)
        return flows

    def _importers_by_name(self) -> Dict[Tuple[str, str], List[str]]:
        importers: Dict[Tuple[str, str], List[str]] = {}
        for path, names in self.graph.imported_names.items():
            for name, targets in names.items():
                for target in targets:
                    importers.setdefault((target, name), []).append(path)
        return importers

    @staticmethod
    def _flow_target(path: str, usage: VariableUsageInfo) -> DataFlowTarget:
        context = usage.context or ""
        name = re.escape(usage.name)
        if usage.operation == "write":
            kind = "reassignment"
        elif re.match(r"\s*return\b", context):
            kind = "return"
        elif re.search(r"(?:\w+\.\w+\s*=[^=].*\b" + name + r"\b)|(?:\b" + name + r"\s*\.\s*\w)", context):
            kind = "attribute"
        else:
            kind = "parameter"
        return DataFlowTarget(file=path, line=usage.line, usage=kind, context=context or None)

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def detect_issues(self) -> List[CodeIssue]:
        """Run every rule in a fixed order; ids follow detection order."""
        self._issues: List[CodeIssue] = []
        call_graph = self._call_graph or self.build_call_graph()
        self._entry_points = {n.id for n in call_graph.nodes if n.is_entry_point}
        self._argument_words = self._call_argument_words()

        self._detect_dead_code()
        self._detect_unused_functions()
        self._detect_unused_variables()
        self._detect_unused_imports()
        self._detect_circular_dependencies()
        self._detect_god_classes()
        self._detect_function_size()
        self._detect_feature_envy()
        return self._issues

    def _issue(
        self,
        issue_type: IssueType,
        location: SourceLocation,
        message: str,
        suggestion: Optional[str],
        related: Sequence[str],
    ) -> None:
        self._issues.append(CodeIssue(
            id=f"issue-{len(self._issues) + 1}",
            type=issue_type,
            severity=ISSUE_SEVERITY[issue_type],
            location=SourceLocation(file=location.file, line=location.line, end_line=location.end_line),
            message=message,
            suggestion=suggestion,
            related_nodes=list(related),
        ))

    def _call_argument_words(self) -> Set[str]:
        """Identifiers passed as call arguments anywhere (callbacks, handlers)."""
        words: Set[str] = set()
        for _, fn in self.graph.function_facts.values():
            for call in fn.calls:
                for argument in call.arguments:
                    words.update(_ARGUMENT_WORD.findall(argument))
        return words

    def _detect_dead_code(self) -> None:
        graph = self.graph
        for node in graph.nodes:
            if node.type not in TYPE_NODE_TYPES:
                continue
            if self._has_incoming(node.id, TYPE_REFERENCE_RELATIONS) or self.is_exported(node):
                continue
            if node.name in self._argument_words:
                continue
            if self._members_used_outside(node):
                continue
            self._issue(
                IssueType.DEAD_CODE,
                node.location,
                f"{node.type.value.replace('_', ' ').capitalize()} '{node.name}' is never referenced",
                "Remove it, or export it if it is part of the public API",
                [node.id],
            )

    def _members_used_outside(self, type_node: CodeNode) -> bool:
        members = set(type_node.children)
        for edge in self.graph.edges:
            if edge.target in members and edge.source not in members and edge.type in FUNCTION_REFERENCE_RELATIONS:
                return True
        return False

    def _detect_unused_functions(self) -> None:
        for node in self._function_nodes():
            if node.type == NodeType.CONSTRUCTOR or node.name in _ALWAYS_USED:
                continue
            if node.name.startswith("__") and node.name.endswith("__"):
                continue
            _, fn = self.graph.function_facts[node.id]
            if fn.decorators or node.id in self._entry_points:
                continue
            if self._has_incoming(node.id, FUNCTION_REFERENCE_RELATIONS) or self.is_exported(node):
                continue
            if node.name in self._argument_words:
                continue
            self._issue(
                IssueType.UNUSED_FUNCTION,
                node.location,
                f"Function '{node.name}' is never called",
                "Consider removing this function or making it public if intended for external use",
                [node.id],
            )

    def _detect_unused_variables(self) -> None:
        imported = {
            name for names in self.graph.imported_names.values() for name in names
        }
        for node_id, (info, var) in self.graph.variable_facts.items():
            if var.usages or var.name in imported or var.name in info.export_names:
                continue
            if var.name.startswith("__") and var.name.endswith("__"):
                continue
            if self._has_incoming(node_id, (RelationType.READS, RelationType.WRITES)):
                continue
            node = self.graph.node_index[node_id]
            self._issue(
                IssueType.UNUSED_VARIABLE,
                node.location,
                f"Variable '{var.name}' is assigned but never used",
                "Remove the variable or use it",
                [node_id],
            )

    def _detect_unused_imports(self) -> None:
        for info in self.graph.files:
            file_id = self.graph.file_nodes.get(info.path)
            for imp in info.imports:
                for item in imp.unused_items:
                    label = item if item == imp.module else f"{item}' from '{imp.module}"
                    self._issue(
                        IssueType.UNUSED_IMPORT,
                        SourceLocation(file=info.path, line=imp.line),
                        f"Imported '{label}' is never used",
                        "Remove the unused import",
                        [file_id] if file_id else [],
                    )

    def _detect_circular_dependencies(self) -> None:
        adjacency: Dict[str, List[str]] = {}
        locations: Dict[Tuple[str, str], SourceLocation] = {}
        for edge in self.graph.edges_of_type(RelationType.IMPORTS):
            adjacency.setdefault(edge.source, [])
            if edge.target not in adjacency[edge.source]:
                adjacency[edge.source].append(edge.target)
            if edge.location is not None:
                locations.setdefault((edge.source, edge.target), edge.location)
        for targets in adjacency.values():
            targets.sort()

        for cycle in find_cycles(adjacency):
            names = [self.graph.node_index[node_id].location.file for node_id in cycle]
            first = self.graph.node_index[cycle[0]]
            location = locations.get((cycle[0], cycle[1 % len(cycle)]), SourceLocation(file=first.location.file, line=1))
            self._issue(
                IssueType.CIRCULAR_DEPENDENCY,
                location,
                "Circular dependency detected: " + " -> ".join(names + [names[0]]),
                "Consider refactoring to break the circular dependency",
                list(cycle),
            )

    def _detect_god_classes(self) -> None:
        thresholds = self.config.thresholds
        for node in self.graph.nodes:
            if node.type not in TYPE_NODE_TYPES:
                continue
            methods = [
                child for child in node.children
                if self.graph.node_index[child].type in FUNCTION_NODE_TYPES
            ]
            loc = node.metrics.loc
            if loc <= thresholds.god_class_loc and len(methods) <= thresholds.god_class_methods:
                continue
            self._issue(
                IssueType.GOD_CLASS,
                node.location,
                f"Class '{node.name}' has {len(methods)} methods and {loc} lines",
                "Consider splitting this class into smaller, more focused classes",
                [node.id],
            )

    def _detect_function_size(self) -> None:
        """Long methods, then high complexity, then deep nesting."""
        thresholds = self.config.thresholds
        functions = [(n, self.graph.function_facts[n.id][1]) for n in self._function_nodes()]

        for node, _ in functions:
            if node.metrics.loc > thresholds.long_method_loc:
                self._issue(
                    IssueType.LONG_METHOD,
                    node.location,
                    f"Function '{node.name}' is {node.metrics.loc} lines long",
                    "Consider refactoring into smaller functions",
                    [node.id],
                )
        for node, fn in functions:
            if fn.complexity > thresholds.high_complexity:
                self._issue(
                    IssueType.HIGH_COMPLEXITY,
                    node.location,
                    f"Function '{node.name}' has high cyclomatic complexity ({fn.complexity})",
                    "Consider breaking this function into smaller, more focused functions",
                    [node.id],
                )
        for node, fn in functions:
            if fn.nesting_depth > thresholds.deep_nesting:
                self._issue(
                    IssueType.DEEP_NESTING,
                    node.location,
                    f"Function '{node.name}' nests {fn.nesting_depth} levels deep",
                    "Use early returns or extract the inner blocks into helpers",
                    [node.id],
                )

    def _detect_feature_envy(self) -> None:
        thresholds = self.config.thresholds
        for node in self._function_nodes():
            owner = self.graph.owner_type(node.id)
            if owner is None:
                continue
            info, fn = self.graph.function_facts[node.id]
            excluded = _import_names(info)
            own = sum(fn.member_accesses.get(name, 0) for name in _SELF_RECEIVERS)
            envied = [
                (count, receiver) for receiver, count in fn.member_accesses.items()
                if receiver not in _SELF_RECEIVERS and receiver not in excluded
                and count >= thresholds.feature_envy_min_accesses
                and count > thresholds.feature_envy_ratio * own
            ]
            if not envied:
                continue
            count, receiver = max(envied, key=lambda pair: (pair[0], pair[1]))
            self._issue(
                IssueType.FEATURE_ENVY,
                node.location,
                f"Method '{node.name}' uses '{receiver}' {count} times but its own class {own} times",
                f"Consider moving this logic closer to '{receiver}'",
                [node.id, owner.id],
            )


def _import_names(info: FileInfo) -> Set[str]:
    names: Set[str] = set()
    for imp in info.imports:
        names.update(imp.items)
        names.add(imp.module.split(".")[0].split("::")[0])
    return names


def _canonical(cycle: Sequence[str]) -> Tuple[str, ...]:
    start = cycle.index(min(cycle))
    return tuple(cycle[start:]) + tuple(cycle[:start])


def find_cycles(adjacency: Dict[str, List[str]]) -> List[Tuple[str, ...]]:
    """Cycles found by depth-first search with recursion-stack coloring.

    Every back edge yields one cycle, rotated to start at its smallest id.
    Start nodes and neighbours are visited in sorted order and the result is
    deduplicated and sorted, so the outcome never depends on input order.
    """
    white, gray, black = 0, 1, 2
    color: Dict[str, int] = {}
    found: Set[Tuple[str, ...]] = set()

    for start in sorted(adjacency):
        if color.get(start, white) != white:
            continue
        path = [start]
        color[start] = gray
        stack = [iter(sorted(adjacency.get(start, [])))]
        while stack:
            advanced = False
            for neighbor in stack[-1]:
                state = color.get(neighbor, white)
                if state == gray:
                    found.add(_canonical(path[path.index(neighbor):]))
                elif state == white:
                    color[neighbor] = gray
                    path.append(neighbor)
                    stack.append(iter(sorted(adjacency.get(neighbor, []))))
                    advanced = True
                    break
            if not advanced:
                color[path.pop()] = black
                stack.pop()
    return sorted(found)
