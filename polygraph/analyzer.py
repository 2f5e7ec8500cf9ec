"""End-to-end analysis: parse files, build the graph, run derived analyses.

Per-file work (parsing and security scanning) fans out over a thread pool;
everything that needs the whole project runs sequentially afterwards on
path-sorted input so results are identical from run to run.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple, TypeVar

from . import __version__
from .architecture import ArchitectureDetector
from .config import AnalyzerConfig
from .graph_analyzer import GraphAnalyzer
from .graph_builder import CodeGraph, GraphBuilder
from .models import (
    AnalysisMeta,
    AnalysisResult,
    FileInfo,
    GranularityLevel,
    Language,
    Layer,
    LayerInfo,
    NodeType,
    ProjectStats,
    SecurityReport,
    SecurityVulnerability,
)
from .parser import ParserRegistry, detect_language, parse_source
from .security_scanner import SecurityScanner, build_report

logger = logging.getLogger(__name__)

T = TypeVar("T")

LAYER_DEFINITIONS = {
    Layer.FRONTEND: ("Frontend", "User interface code", "#2196F3"),
    Layer.BACKEND: ("Backend", "Application and service code", "#FF9800"),
    Layer.SIDECAR: ("Sidecar", "Helper processes running next to the backend", "#4CAF50"),
    Layer.DATA: ("Data", "Data, configuration and shared code", "#9C27B0"),
    Layer.EXTERNAL: ("External", "Third-party and external dependencies", "#607D8B"),
}

_SKIPPED = object()


@dataclass
class SourceFile:
    """One input file: project-relative path and its text."""

    path: str
    content: str
    language: Optional[Language] = None


def collect_sources(root: Path, skip_dirs: Optional[Set[str]] = None) -> List[SourceFile]:
    """Read every file under ``root`` with a known extension, sorted by path.

    Directories in ``skip_dirs`` and hidden directories are not descended into.
    """
    if skip_dirs is None:
        skip_dirs = AnalyzerConfig().skip_dirs
    root = root.resolve()
    sources: List[SourceFile] = []
    for file_path in sorted(root.rglob("*")):
        if not file_path.is_file():
            continue
        relative = file_path.relative_to(root)
        directories = relative.parts[:-1]
        if any(part in skip_dirs or part.startswith(".") for part in directories):
            continue
        language = detect_language(relative.as_posix())
        if language == Language.UNKNOWN:
            continue
        try:
            content = file_path.read_text(encoding="utf-8", errors="ignore")
        except OSError as exc:
            logger.warning("Could not read %s: %s", file_path, exc)
            continue
        sources.append(SourceFile(path=relative.as_posix(), content=content, language=language))
    return sources


def layer_definitions(files: Sequence[FileInfo]) -> List[LayerInfo]:
    """Every architectural layer with the number of files assigned to it."""
    counts = {layer: 0 for layer in Layer}
    for info in files:
        counts[info.layer] += 1
    return [
        LayerInfo(id=layer, name=name, description=description, color=color, file_count=counts[layer])
        for layer, (name, description, color) in LAYER_DEFINITIONS.items()
    ]


def compute_stats(graph: CodeGraph) -> ProjectStats:
    stats = ProjectStats(
        total_files=len(graph.files),
        total_lines=sum(info.line_count for info in graph.files),
        total_nodes=len(graph.nodes),
        total_edges=len(graph.edges),
    )
    for info in graph.files:
        stats.by_language[info.language.value] = stats.by_language.get(info.language.value, 0) + 1
        stats.by_layer[info.layer.value] = stats.by_layer.get(info.layer.value, 0) + 1
    for node in graph.nodes:
        stats.by_level[node.level.value] = stats.by_level.get(node.level.value, 0) + 1
        if node.level == GranularityLevel.L4_TYPE:
            stats.total_classes += 1
        elif node.level == GranularityLevel.L5_FUNCTION:
            stats.total_functions += 1
        elif node.type in (NodeType.VARIABLE, NodeType.CONSTANT):
            stats.total_variables += 1

    complexities = [fn.complexity for _, fn in graph.function_facts.values()]
    if complexities:
        stats.avg_complexity = round(sum(complexities) / len(complexities), 2)
        stats.max_complexity = max(complexities)
    return stats


class CodebaseAnalyzer:
    """Run the full pipeline over a set of source files."""

    def __init__(
        self,
        project_name: str,
        root_path: str = "",
        config: Optional[AnalyzerConfig] = None,
        registry: Optional[ParserRegistry] = None,
    ):
        self.project_name = project_name
        self.root_path = root_path
        self.config = config or AnalyzerConfig()
        self.registry = registry or ParserRegistry.default()
        self.scanner = SecurityScanner(self.config)

    # ------------------------------------------------------------------
    # Per-file fan-out
    # ------------------------------------------------------------------

    def _run_per_file(
        self,
        task: Callable[[SourceFile], T],
        sources: Iterable[SourceFile],
        action: str,
        cancel_event: Optional[threading.Event],
    ) -> Tuple[List[T], bool]:
        """Apply ``task`` to each source in path order.

        Returns the successful results and whether every file was processed.
        Cancellation is checked before each file starts; files already in
        flight finish normally.
        """
        ordered = sorted(sources, key=lambda s: s.path)

        def guarded(source: SourceFile):
            if cancel_event is not None and cancel_event.is_set():
                return _SKIPPED
            try:
                return task(source)
            except Exception as exc:
                logger.warning("Failed to %s %s: %s", action, source.path, exc)
                return None

        if self.config.max_workers == 1:
            results = []
            for source in ordered:
                result = guarded(source)
                results.append(result)
                if result is _SKIPPED:
                    break
        else:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                results = list(executor.map(guarded, ordered))

        done = [r for r in results if r is not _SKIPPED]
        complete = len(done) == len(ordered)
        if not complete:
            logger.info("Cancelled %s after %d of %d files", action, len(done), len(ordered))
        return [r for r in done if r is not None], complete

    def parse_sources(
        self,
        sources: Iterable[SourceFile],
        cancel_event: Optional[threading.Event] = None,
    ) -> Tuple[List[FileInfo], bool]:
        def parse(source: SourceFile) -> FileInfo:
            return parse_source(
                source.path,
                source.content,
                registry=self.registry,
                layer=self.config.detect_layer(source.path),
                language=source.language,
            )

        return self._run_per_file(parse, sources, "parse", cancel_event)

    def scan_security(
        self,
        sources: Iterable[SourceFile],
        cancel_event: Optional[threading.Event] = None,
    ) -> SecurityReport:
        def scan(source: SourceFile) -> List[SecurityVulnerability]:
            return self.scanner.scan_file(source.path, source.content, source.language)

        per_file, complete = self._run_per_file(scan, sources, "scan", cancel_event)
        return build_report((v for findings in per_file for v in findings), complete)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def analyze(
        self,
        sources: Sequence[SourceFile],
        cancel_event: Optional[threading.Event] = None,
    ) -> AnalysisResult:
        """Parse, build the graph and run the call graph, data flow, issue and
        architecture passes.
        """
        files, complete = self.parse_sources(sources, cancel_event)
        logger.info("Parsed %d of %d files for %s", len(files), len(sources), self.project_name)

        graph = GraphBuilder(self.project_name, self.root_path, self.config).build(files)
        analyzer = GraphAnalyzer(graph, self.config)
        call_graph = analyzer.build_call_graph()
        data_flows = analyzer.analyze_data_flow()
        issues = analyzer.detect_issues()
        architecture = []
        if self.config.architecture_enabled:
            detector = ArchitectureDetector(self.config.architecture_min_confidence)
            architecture = detector.detect([info.path for info in graph.files], graph.file_imports)

        return AnalysisResult(
            meta=AnalysisMeta(
                project_name=self.project_name,
                analyzed_at=datetime.now(timezone.utc).isoformat(),
                version=__version__,
                root_path=self.root_path,
                complete=complete,
            ),
            stats=compute_stats(graph),
            nodes=graph.nodes,
            edges=graph.edges,
            files=graph.files,
            layers=layer_definitions(graph.files),
            call_graph=call_graph,
            data_flows=data_flows,
            issues=issues,
            architecture=architecture,
        )

