"""Tests for JSON and DOT export."""

import json

from polygraph.analyzer import CodebaseAnalyzer, SourceFile
from polygraph.graph_export import _focused_subgraph, export_dot, export_json, export_report_json
from polygraph.models import CodeEdge, CodeNode, GranularityLevel, NodeType, RelationType, SourceLocation
from polygraph.security_scanner import build_report


def _node(node_id, name, full_path=None):
    return CodeNode(
        id=node_id,
        name=name,
        full_path=full_path or name,
        level=GranularityLevel.L5_FUNCTION,
        type=NodeType.FUNCTION,
        location=SourceLocation(file="a.ts", line=1),
    )


def _edge(edge_id, source, target, relation=RelationType.CALLS):
    return CodeEdge(id=edge_id, source=source, target=target, type=relation)


NODES = [_node("n1", "main"), _node("n2", "step"), _node("n3", 'say"hi"'), _node("n4", "other")]
EDGES = [
    _edge("edge-1", "n1", "n2"),
    _edge("edge-2", "n2", "n1", RelationType.CONTAINED_BY),
    _edge("edge-3", "n3", "n4"),
]


class TestDotExport:

    def test_full_graph(self, temp_dir):
        output = temp_dir / "graph.dot"
        export_dot(NODES, EDGES, output)
        text = output.read_text(encoding="utf-8")

        assert text.startswith("digraph CodeGraph {\n  rankdir=LR;\n")
        assert text.rstrip().endswith("}")
        assert '"n1" -> "n2" [label="calls"];' in text
        assert "contained_by" not in text
        assert 'label="function\\nsay\\"hi\\""' in text

    def test_focus_keeps_neighbours(self, temp_dir):
        output = temp_dir / "focus.dot"
        export_dot(NODES, EDGES, output, focus="step")
        text = output.read_text(encoding="utf-8")

        assert '"n1"' in text and '"n2"' in text
        assert '"n4"' not in text

    def test_unmatched_focus_exports_everything(self):
        by_id = {n.id: n for n in NODES}
        selected = _focused_subgraph(by_id, EDGES, "missing")
        assert selected["nodes"] == ["n1", "n2", "n3", "n4"]


class TestJsonExport:

    def test_analysis_with_security(self, temp_dir):
        sources = [SourceFile("src/app.ts", "export function run() {\n  return 1;\n}\n")]
        analyzer = CodebaseAnalyzer("demo")
        result = analyzer.analyze(sources)
        report = analyzer.scan_security(sources)

        output = temp_dir / "out" / "result.json"
        export_json(result, output, report)
        payload = json.loads(output.read_text(encoding="utf-8"))

        assert set(payload) == {"analysis", "security"}
        analysis = payload["analysis"]
        assert analysis["meta"]["project_name"] == "demo"
        assert analysis["stats"]["total_files"] == 1
        assert {n["level"] for n in analysis["nodes"]} >= {"L1", "L3", "L5"}
        assert payload["security"]["summary"]["total"] == 0

    def test_analysis_only(self, temp_dir):
        result = CodebaseAnalyzer("demo").analyze([])
        output = temp_dir / "result.json"
        export_json(result, output)
        assert set(json.loads(output.read_text(encoding="utf-8"))) == {"analysis"}

    def test_report(self, temp_dir):
        output = temp_dir / "report.json"
        export_report_json(build_report([]), output)
        payload = json.loads(output.read_text(encoding="utf-8"))
        assert payload["vulnerabilities"] == []
        assert payload["complete"] is True
