"""Tests for the end-to-end analysis pipeline."""

import threading

from polygraph import parser as parser_module
from polygraph.analyzer import CodebaseAnalyzer, SourceFile, collect_sources, layer_definitions
from polygraph.config import AnalyzerConfig
from polygraph.models import IssueType, Language, Layer, Severity


def _analyze_sample(sample_project_path, **config):
    sources = collect_sources(sample_project_path)
    analyzer = CodebaseAnalyzer("sample", str(sample_project_path), AnalyzerConfig(**config))
    return analyzer, sources, analyzer.analyze(sources)


class TestCollectSources:

    def test_skips_vendor_hidden_and_unknown_files(self, write_project):
        root = write_project({
            "src/app.ts": "export const a = 1;\n",
            "b.py": "x = 1\n",
            "node_modules/lib/index.js": "module.exports = 1;\n",
            ".cache/tmp.py": "y = 2\n",
            "README.md": "# readme\n",
        })
        sources = collect_sources(root)
        assert [s.path for s in sources] == ["b.py", "src/app.ts"]
        assert sources[1].language == Language.TYPESCRIPT

    def test_custom_skip_dirs(self, write_project):
        root = write_project({"gen/out.ts": "export const a = 1;\n", "main.py": "pass\n"})
        assert [s.path for s in collect_sources(root, {"gen"})] == ["main.py"]


class TestSampleProject:
    """The multi-language fixture project end to end."""

    def test_stats(self, sample_project_path):
        _, _, result = _analyze_sample(sample_project_path)
        stats = result.stats

        assert stats.total_files == 5
        assert stats.by_language == {"python": 1, "rust": 2, "typescript": 2}
        assert stats.by_layer == {"sidecar": 1, "backend": 2, "frontend": 2}
        assert stats.total_nodes == len(result.nodes)
        assert stats.total_edges == len(result.edges)
        assert stats.max_complexity >= 2
        assert result.meta.complete
        assert result.meta.project_name == "sample"

    def test_layers_and_modules(self, sample_project_path):
        _, _, result = _analyze_sample(sample_project_path)
        counts = {layer.id: layer.file_count for layer in result.layers}
        assert counts == {
            Layer.FRONTEND: 2,
            Layer.BACKEND: 2,
            Layer.SIDECAR: 1,
            Layer.DATA: 0,
            Layer.EXTERNAL: 0,
        }
        modules = {n.id for n in result.nodes if n.level.value == "L2"}
        assert modules == {"L2:src", "L2:sidecar", "L2:src-tauri"}

    def test_issues(self, sample_project_path):
        _, _, result = _analyze_sample(sample_project_path)
        found = {(i.type, i.message) for i in result.issues}
        assert (IssueType.UNUSED_FUNCTION, "Function '_helper' is never called") in found
        assert (IssueType.UNUSED_IMPORT, "Imported 'os' is never used") in found
        assert [i.id for i in result.issues] == [f"issue-{n}" for n in range(1, len(result.issues) + 1)]

    def test_call_graph_spans_languages(self, sample_project_path):
        _, _, result = _analyze_sample(sample_project_path)
        names = {n.id: n.name for n in result.call_graph.nodes}
        calls = {(names[e.source], names[e.target]) for e in result.call_graph.edges}
        assert ("main", "new") in calls
        assert ("main", "connect") in calls
        assert ("fetchUser", "formatName") in calls

    def test_sequential_and_parallel_runs_match(self, sample_project_path):
        """Worker count never changes the result."""
        _, _, serial = _analyze_sample(sample_project_path, max_workers=1)
        _, _, parallel = _analyze_sample(sample_project_path, max_workers=4)

        assert [n.id for n in serial.nodes] == [n.id for n in parallel.nodes]
        assert [(e.id, e.source, e.target, e.type) for e in serial.edges] == [
            (e.id, e.source, e.target, e.type) for e in parallel.edges
        ]
        assert [i.message for i in serial.issues] == [i.message for i in parallel.issues]


class TestCancellationAndFailures:

    def test_cancel_before_start(self, sample_project_path):
        cancel = threading.Event()
        cancel.set()
        analyzer = CodebaseAnalyzer("sample", config=AnalyzerConfig(max_workers=1))
        result = analyzer.analyze(collect_sources(sample_project_path), cancel_event=cancel)

        assert result.meta.complete is False
        assert result.files == []

    def test_cancelled_scan_is_partial(self, sample_project_path):
        cancel = threading.Event()
        cancel.set()
        report = CodebaseAnalyzer("sample").scan_security(collect_sources(sample_project_path), cancel)
        assert report.complete is False
        assert report.summary["total"] == 0

    def test_failing_file_is_skipped(self, monkeypatch, caplog):
        """One file failing to parse is logged and the rest are analyzed."""
        real_parse = parser_module.parse_source

        def flaky_parse(path, content, **kwargs):
            if path == "broken.py":
                raise RuntimeError("boom")
            return real_parse(path, content, **kwargs)

        monkeypatch.setattr("polygraph.analyzer.parse_source", flaky_parse)
        sources = [
            SourceFile("broken.py", "x = 1\n", Language.PYTHON),
            SourceFile("ok.py", "def run():\n    pass\n", Language.PYTHON),
        ]
        result = CodebaseAnalyzer("demo").analyze(sources)

        assert [f.path for f in result.files] == ["ok.py"]
        assert result.meta.complete
        assert "Failed to parse broken.py: boom" in caplog.text


def test_scan_security_over_sources():
    sources = [
        SourceFile("src/db.ts", 'query("SELECT * FROM t WHERE id=" + req.params.id);\n'),
        SourceFile("src/ok.ts", "export const ok = 1;\n"),
    ]
    report = CodebaseAnalyzer("demo", config=AnalyzerConfig(max_workers=2)).scan_security(sources)
    assert [(v.id, v.severity, v.location.file) for v in report.vulnerabilities] == [
        ("vuln-1", Severity.CRITICAL, "src/db.ts"),
    ]
    assert report.complete


def test_layer_definitions_cover_every_layer():
    assert [layer.id for layer in layer_definitions([])] == [
        Layer.FRONTEND, Layer.BACKEND, Layer.SIDECAR, Layer.DATA, Layer.EXTERNAL,
    ]
