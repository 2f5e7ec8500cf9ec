"""Data models for the polygraph analysis engine.

Families of string-discriminated values are ``str`` enums so they compare
and serialize as their plain values. Everything else is a dataclass that is
created fresh on every analysis run.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional


# ===================================================================
# Enumerations
# ===================================================================

class Language(str, Enum):
    TYPESCRIPT = "typescript"
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    RUST = "rust"
    YAML = "yaml"
    JSON = "json"
    HTML = "html"
    CSS = "css"
    TOML = "toml"
    UNKNOWN = "unknown"


class GranularityLevel(str, Enum):
    """Seven-tier decomposition from the whole system down to variables."""

    L1_SYSTEM = "L1"
    L2_MODULE = "L2"
    L3_FILE = "L3"
    L4_TYPE = "L4"
    L5_FUNCTION = "L5"
    L6_BLOCK = "L6"
    L7_VARIABLE = "L7"


class NodeType(str, Enum):
    SYSTEM = "system"
    MODULE = "module"
    FILE = "file"
    CLASS = "class"
    STRUCT = "struct"
    INTERFACE = "interface"
    TRAIT = "trait"
    ENUM = "enum"
    TYPE_ALIAS = "type_alias"
    FUNCTION = "function"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    CLOSURE = "closure"
    HANDLER = "handler"
    BLOCK = "block"
    CONDITIONAL = "conditional"
    LOOP = "loop"
    TRY_CATCH = "try_catch"
    MATCH_ARM = "match_arm"
    VARIABLE = "variable"
    CONSTANT = "constant"
    PARAMETER = "parameter"
    ATTRIBUTE = "attribute"
    PROPERTY = "property"


TYPE_NODE_TYPES = frozenset({
    NodeType.CLASS, NodeType.STRUCT, NodeType.INTERFACE,
    NodeType.TRAIT, NodeType.ENUM, NodeType.TYPE_ALIAS,
})

FUNCTION_NODE_TYPES = frozenset({
    NodeType.FUNCTION, NodeType.METHOD, NodeType.CONSTRUCTOR,
    NodeType.CLOSURE, NodeType.HANDLER,
})


class RelationType(str, Enum):
    IMPORTS = "imports"
    EXPORTS = "exports"
    REEXPORTS = "reexports"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"
    USES_TRAIT = "uses_trait"
    CONTAINS = "contains"
    CONTAINED_BY = "contained_by"
    CALLS = "calls"
    CALLED_BY = "called_by"
    INSTANTIATES = "instantiates"
    INSTANTIATED_BY = "instantiated_by"
    READS = "reads"
    WRITES = "writes"
    READ_BY = "read_by"
    WRITTEN_BY = "written_by"
    USES_TYPE = "uses_type"
    RETURNS_TYPE = "returns_type"
    PARAM_TYPE = "param_type"
    THROWS = "throws"
    CATCHES = "catches"
    AWAITS = "awaits"
    YIELDS = "yields"
    DECORATES = "decorates"
    DECORATED_BY = "decorated_by"
    HTTP = "http"
    IPC = "ipc"
    EVENT = "event"
    DATA_FLOW = "data_flow"


RELATION_CATEGORIES: Dict[str, List[RelationType]] = {
    "imports": [RelationType.IMPORTS, RelationType.EXPORTS, RelationType.REEXPORTS],
    "hierarchy": [
        RelationType.EXTENDS, RelationType.IMPLEMENTS, RelationType.USES_TRAIT,
        RelationType.CONTAINS, RelationType.CONTAINED_BY,
    ],
    "calls": [
        RelationType.CALLS, RelationType.CALLED_BY,
        RelationType.INSTANTIATES, RelationType.INSTANTIATED_BY,
    ],
    "variables": [
        RelationType.READS, RelationType.WRITES,
        RelationType.READ_BY, RelationType.WRITTEN_BY,
    ],
    "types": [RelationType.USES_TYPE, RelationType.RETURNS_TYPE, RelationType.PARAM_TYPE],
    "exceptions": [RelationType.THROWS, RelationType.CATCHES],
    "async": [RelationType.AWAITS, RelationType.YIELDS],
    "decorators": [RelationType.DECORATES, RelationType.DECORATED_BY],
    "communication": [
        RelationType.HTTP, RelationType.IPC, RelationType.EVENT, RelationType.DATA_FLOW,
    ],
}

CALL_RELATIONS = frozenset({RelationType.CALLS, RelationType.AWAITS})
CONTAINMENT_RELATIONS = frozenset({RelationType.CONTAINS, RelationType.CONTAINED_BY})


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    PROTECTED = "protected"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


class Layer(str, Enum):
    FRONTEND = "frontend"
    BACKEND = "backend"
    SIDECAR = "sidecar"
    DATA = "data"
    EXTERNAL = "external"


class IssueType(str, Enum):
    DEAD_CODE = "dead_code"
    UNUSED_FUNCTION = "unused_function"
    UNUSED_VARIABLE = "unused_variable"
    UNUSED_IMPORT = "unused_import"
    CIRCULAR_DEPENDENCY = "circular_dependency"
    GOD_CLASS = "god_class"
    LONG_METHOD = "long_method"
    HIGH_COMPLEXITY = "high_complexity"
    DEEP_NESTING = "deep_nesting"
    FEATURE_ENVY = "feature_envy"


class IssueSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Severity(str, Enum):
    """Security finding severity, most severe first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def downgrade(self) -> "Severity":
        """Return the next lower severity, flooring at ``INFO``."""
        return _SEVERITY_ORDER[min(self.rank + 1, len(_SEVERITY_ORDER) - 1)]


_SEVERITY_ORDER = [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW, Severity.INFO]


# ===================================================================
# Graph entities
# ===================================================================

@dataclass
class SourceLocation:
    file: str
    line: int
    end_line: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass
class NodeMetrics:
    loc: int = 0
    complexity: Optional[int] = None
    dependencies: int = 0
    dependents: int = 0


@dataclass
class CodeNode:
    """A single element of the code graph, at any granularity level."""

    id: str
    level: GranularityLevel
    type: NodeType
    name: str
    full_path: str
    location: SourceLocation
    visibility: Visibility = Visibility.PUBLIC
    modifiers: List[str] = field(default_factory=list)
    signature: Optional[str] = None
    data_type: Optional[str] = None
    initial_value: Optional[str] = None
    documentation: Optional[str] = None
    layer: Optional[Layer] = None
    language: Optional[Language] = None
    metrics: NodeMetrics = field(default_factory=NodeMetrics)
    children: List[str] = field(default_factory=list)
    parent: Optional[str] = None


@dataclass
class CodeEdge:
    id: str
    source: str
    target: str
    type: RelationType
    location: Optional[SourceLocation] = None
    label: Optional[str] = None
    call_sites: List[int] = field(default_factory=list)


# ===================================================================
# Per-file structural facts
# ===================================================================

@dataclass
class ImportInfo:
    module: str
    items: List[str]
    line: int
    is_default: bool = False
    is_wildcard: bool = False
    unused_items: List[str] = field(default_factory=list)


@dataclass
class ExportInfo:
    name: str
    type: str
    line: int


@dataclass
class ParameterInfo:
    name: str
    type: Optional[str] = None
    default_value: Optional[str] = None
    is_optional: bool = False
    is_rest: bool = False


@dataclass
class AttributeInfo:
    name: str
    line: int
    type: Optional[str] = None
    visibility: Visibility = Visibility.PUBLIC
    is_static: bool = False
    is_readonly: bool = False
    default_value: Optional[str] = None


@dataclass
class CallInfo:
    target: str
    line: int
    arguments: List[str] = field(default_factory=list)
    is_await: bool = False
    is_chained: bool = False

    @property
    def name(self) -> str:
        """Last segment of the call target (``self.repo.save`` -> ``save``)."""
        return self.target.replace("::", ".").rsplit(".", 1)[-1]

    @property
    def receiver(self) -> Optional[str]:
        parts = self.target.replace("::", ".").split(".")
        return parts[0] if len(parts) > 1 else None


@dataclass
class VariableUsageInfo:
    name: str
    line: int
    operation: str  # "read" | "write"
    scope: str = "local"
    context: Optional[str] = None


@dataclass
class FunctionInfo:
    name: str
    type: str  # function | method | constructor | closure | arrow
    line: int
    end_line: int
    visibility: Visibility = Visibility.PUBLIC
    is_async: bool = False
    is_static: bool = False
    is_generator: bool = False
    parameters: List[ParameterInfo] = field(default_factory=list)
    return_type: Optional[str] = None
    decorators: List[str] = field(default_factory=list)
    documentation: Optional[str] = None
    calls: List[CallInfo] = field(default_factory=list)
    variable_usages: List[VariableUsageInfo] = field(default_factory=list)
    member_accesses: Dict[str, int] = field(default_factory=dict)
    raises: List[str] = field(default_factory=list)
    complexity: int = 1
    nesting_depth: int = 0
    parent_class: Optional[str] = None


@dataclass
class ClassInfo:
    name: str
    type: str  # class | abstract_class | struct | union | interface | trait | enum | type
    line: int
    end_line: int
    visibility: Visibility = Visibility.PUBLIC
    extends: Optional[str] = None
    implements: List[str] = field(default_factory=list)
    decorators: List[str] = field(default_factory=list)
    attributes: List[AttributeInfo] = field(default_factory=list)
    methods: List[FunctionInfo] = field(default_factory=list)
    documentation: Optional[str] = None


@dataclass
class VariableInfo:
    name: str
    type: str  # variable | constant
    line: int
    data_type: Optional[str] = None
    visibility: Visibility = Visibility.PUBLIC
    is_const: bool = False
    is_mutable: bool = True
    scope: str = "module"
    initial_value: Optional[str] = None
    usages: List[VariableUsageInfo] = field(default_factory=list)


@dataclass
class FileInfo:
    path: str
    language: Language
    size: int = 0
    line_count: int = 0
    layer: Layer = Layer.DATA
    imports: List[ImportInfo] = field(default_factory=list)
    exports: List[ExportInfo] = field(default_factory=list)
    classes: List[ClassInfo] = field(default_factory=list)
    functions: List[FunctionInfo] = field(default_factory=list)
    variables: List[VariableInfo] = field(default_factory=list)

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix

    @property
    def export_names(self) -> List[str]:
        return [e.name for e in self.exports]


# ===================================================================
# Derived artifacts
# ===================================================================

@dataclass
class CallGraphNode:
    id: str
    name: str
    file: str
    line: int
    is_entry_point: bool = False
    is_terminal: bool = False
    depth: Optional[int] = None


@dataclass
class CallGraphEdge:
    source: str
    target: str
    call_sites: List[int] = field(default_factory=list)
    is_async: bool = False


@dataclass
class CallGraph:
    nodes: List[CallGraphNode] = field(default_factory=list)
    edges: List[CallGraphEdge] = field(default_factory=list)

    @property
    def entry_points(self) -> List[CallGraphNode]:
        return [n for n in self.nodes if n.is_entry_point]


@dataclass
class DataFlowTarget:
    file: str
    line: int
    usage: str  # parameter | attribute | return | reassignment
    context: Optional[str] = None


@dataclass
class DataFlowTransform:
    function: str
    file: str
    line: int


@dataclass
class DataFlow:
    variable: str
    defined: SourceLocation
    flows_to: List[DataFlowTarget] = field(default_factory=list)
    transformed_by: List[DataFlowTransform] = field(default_factory=list)


@dataclass
class CodeIssue:
    id: str
    type: IssueType
    severity: IssueSeverity
    location: SourceLocation
    message: str
    suggestion: Optional[str] = None
    related_nodes: List[str] = field(default_factory=list)


@dataclass
class SecurityVulnerability:
    id: str
    severity: Severity
    category: str
    title: str
    description: str
    location: SourceLocation
    cwe: Optional[str] = None
    owasp: Optional[str] = None
    snippet: Optional[str] = None
    recommendation: Optional[str] = None


@dataclass
class SecurityReport:
    vulnerabilities: List[SecurityVulnerability] = field(default_factory=list)
    summary: Dict[str, int] = field(default_factory=dict)
    complete: bool = True


@dataclass
class LayerInfo:
    id: Layer
    name: str
    description: str
    color: str = "#607D8B"
    file_count: int = 0


@dataclass
class ArchitectureViolation:
    type: str  # dependency
    severity: IssueSeverity
    source_file: str
    source_layer: str
    message: str
    target_file: Optional[str] = None
    target_layer: Optional[str] = None


@dataclass
class ArchitectureMatch:
    """How well the project fits one known architecture pattern."""

    pattern: str
    description: str
    confidence: int  # 0-100
    matched_indicators: List[str] = field(default_factory=list)
    layer_distribution: Dict[str, int] = field(default_factory=dict)
    violations: List[ArchitectureViolation] = field(default_factory=list)


@dataclass
class ProjectStats:
    total_files: int = 0
    total_lines: int = 0
    total_classes: int = 0
    total_functions: int = 0
    total_variables: int = 0
    total_nodes: int = 0
    total_edges: int = 0
    by_language: Dict[str, int] = field(default_factory=dict)
    by_layer: Dict[str, int] = field(default_factory=dict)
    by_level: Dict[str, int] = field(default_factory=dict)
    avg_complexity: float = 0.0
    max_complexity: int = 0


@dataclass
class AnalysisMeta:
    project_name: str
    analyzed_at: str
    version: str
    root_path: str = ""
    complete: bool = True


@dataclass
class AnalysisResult:
    meta: AnalysisMeta
    stats: ProjectStats
    nodes: List[CodeNode] = field(default_factory=list)
    edges: List[CodeEdge] = field(default_factory=list)
    files: List[FileInfo] = field(default_factory=list)
    layers: List[LayerInfo] = field(default_factory=list)
    call_graph: CallGraph = field(default_factory=CallGraph)
    data_flows: List[DataFlow] = field(default_factory=list)
    issues: List[CodeIssue] = field(default_factory=list)
    architecture: List[ArchitectureMatch] = field(default_factory=list)


def to_dict(obj: Any) -> Any:
    """Convert models (recursively) into JSON-ready builtins."""
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_dict(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {str(to_dict(k)): to_dict(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_dict(v) for v in obj]
    return obj
