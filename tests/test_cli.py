"""Integration tests for CLI commands."""

import json
from pathlib import Path

from typer.testing import CliRunner

from polygraph.cli import app


runner = CliRunner()

VULNERABLE_TS = 'query("SELECT * FROM users WHERE id=" + req.params.id);\n'


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "polygraph v0.1.0" in result.stdout


class TestAnalyzeCommand:
    """Tests for 'polygraph analyze'."""

    def test_analyze_sample_project(self, sample_project_path: Path):
        result = runner.invoke(app, ["analyze", str(sample_project_path)])

        assert result.exit_code == 0
        assert "Analysis Summary" in result.stdout
        assert "Code Issues" in result.stdout
        assert "Security findings:" in result.stdout

    def test_analyze_writes_json(self, sample_project_path: Path, temp_dir: Path):
        output = temp_dir / "result.json"
        result = runner.invoke(app, ["analyze", str(sample_project_path), "-o", str(output), "-w", "1"])

        assert result.exit_code == 0
        payload = json.loads(output.read_text(encoding="utf-8"))
        assert set(payload) == {"analysis", "security"}
        assert payload["analysis"]["stats"]["total_files"] == 5

    def test_analyze_without_security(self, sample_project_path: Path, temp_dir: Path):
        output = temp_dir / "result.json"
        result = runner.invoke(app, ["analyze", str(sample_project_path), "--no-security", "-o", str(output)])

        assert result.exit_code == 0
        assert "Security findings:" not in result.stdout
        assert set(json.loads(output.read_text(encoding="utf-8"))) == {"analysis"}

    def test_analyze_nonexistent_path(self):
        result = runner.invoke(app, ["analyze", "/nonexistent/path"])
        assert result.exit_code != 0

    def test_summary_names_architecture(self, write_project):
        root = write_project({
            "src/controllers/user.controller.ts": 'import { User } from "../models/user.model";\n',
            "src/models/user.model.ts": "export class User {}\n",
        })
        result = runner.invoke(app, ["analyze", str(root), "--no-security"])

        assert result.exit_code == 0
        assert "Architecture: MVC" in result.stdout

    def test_invalid_project_config(self, write_project):
        root = write_project({
            "src/app.ts": "export const a = 1;\n",
            "polygraph.toml": "[thresholds]\nlong_method_loc = 0\n",
        })
        result = runner.invoke(app, ["analyze", str(root)])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout


class TestScanCommand:
    """Tests for 'polygraph scan'."""

    def test_scan_reports_findings(self, write_project, temp_dir: Path):
        root = write_project({"src/db.ts": VULNERABLE_TS})
        output = temp_dir / "findings.json"
        result = runner.invoke(app, ["scan", str(root), "-o", str(output)])

        assert result.exit_code == 0
        assert "Security Findings" in result.stdout
        payload = json.loads(output.read_text(encoding="utf-8"))
        assert payload["summary"]["critical"] == 1
        assert payload["vulnerabilities"][0]["cwe"] == "CWE-89"

    def test_scan_clean_project(self, write_project):
        root = write_project({"src/app.ts": "export const a = 1;\n"})
        result = runner.invoke(app, ["scan", str(root)])

        assert result.exit_code == 0
        assert "Security findings: 0" in result.stdout


class TestExportCommand:
    """Tests for 'polygraph export'."""

    def test_export_dot(self, sample_project_path: Path, temp_dir: Path):
        output = temp_dir / "graph.dot"
        result = runner.invoke(app, ["export", str(sample_project_path), "-f", "dot", "-o", str(output)])

        assert result.exit_code == 0
        assert "Exported graph" in result.stdout
        assert output.read_text(encoding="utf-8").startswith("digraph CodeGraph {")

    def test_export_json(self, sample_project_path: Path, temp_dir: Path):
        output = temp_dir / "graph.json"
        result = runner.invoke(app, ["export", str(sample_project_path), "-o", str(output)])

        assert result.exit_code == 0
        assert "analysis" in json.loads(output.read_text(encoding="utf-8"))

    def test_export_rejects_unknown_format(self, sample_project_path: Path, temp_dir: Path):
        output = temp_dir / "graph.svg"
        result = runner.invoke(app, ["export", str(sample_project_path), "-f", "svg", "-o", str(output)])

        assert result.exit_code != 0
        assert not output.exists()


class TestConfigCommands:
    """Tests for 'polygraph config'."""

    def test_init_then_show(self, temp_dir: Path):
        path = temp_dir / "config.toml"
        result = runner.invoke(app, ["config", "init", "--path", str(path)])
        assert result.exit_code == 0
        assert path.exists()

        result = runner.invoke(app, ["config", "show", "--path", str(path)])
        assert result.exit_code == 0
        assert "[thresholds]" in result.stdout
        assert "long_method_loc = 50" in result.stdout

    def test_init_refuses_existing_file(self, temp_dir: Path):
        path = temp_dir / "config.toml"
        runner.invoke(app, ["config", "init", "--path", str(path)])

        result = runner.invoke(app, ["config", "init", "--path", str(path)])
        assert result.exit_code == 1
        assert "--force" in result.stdout

        result = runner.invoke(app, ["config", "init", "--path", str(path), "--force"])
        assert result.exit_code == 0

    def test_show_defaults_when_missing(self, temp_dir: Path):
        result = runner.invoke(app, ["config", "show", "--path", str(temp_dir / "missing.toml")])
        assert result.exit_code == 0
        assert "[security]" in result.stdout
