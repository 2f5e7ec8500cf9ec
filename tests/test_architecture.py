"""Tests for architecture pattern detection."""

import pytest

from polygraph.analyzer import CodebaseAnalyzer, SourceFile
from polygraph.architecture import ArchitectureDetector, extract_folders, layer_distribution
from polygraph.architecture_patterns import ALL_PATTERNS, MVC, get_pattern
from polygraph.config import AnalyzerConfig
from polygraph.models import IssueSeverity

CONTROLLER = "src/controllers/user.controller.ts"
MODEL = "src/models/user.model.ts"
VIEW = "src/views/user.view.ts"
MVC_IMPORTS = {CONTROLLER: [MODEL], MODEL: [VIEW]}


class TestScoring:

    def test_mvc_project(self):
        matches = ArchitectureDetector().detect([CONTROLLER, MODEL, VIEW], MVC_IMPORTS)

        assert [(m.pattern, m.confidence) for m in matches] == [("MVC", 95)]
        mvc = matches[0]
        assert mvc.layer_distribution == {"view": 1, "controller": 1, "model": 1, "service": 0}
        assert len(mvc.matched_indicators) == 5

    def test_missing_required_indicator_cuts_confidence(self):
        """Without a controllers folder MVC keeps only 30% of its score."""
        detector = ArchitectureDetector(min_confidence=0, patterns=[MVC])
        matches = detector.detect([MODEL])
        assert [(m.pattern, m.confidence) for m in matches] == [("MVC", 10)]

    def test_below_threshold_is_dropped(self):
        assert ArchitectureDetector().detect([MODEL]) == []

    def test_no_files(self):
        assert ArchitectureDetector().detect([]) == []


class TestViolations:

    def test_flexible_pattern_reports_warnings(self):
        mvc = ArchitectureDetector().detect([CONTROLLER, MODEL, VIEW], MVC_IMPORTS)[0]

        assert [(v.source_file, v.target_file) for v in mvc.violations] == [(MODEL, VIEW)]
        violation = mvc.violations[0]
        assert violation.type == "dependency"
        assert violation.severity == IssueSeverity.WARNING
        assert (violation.source_layer, violation.target_layer) == ("model", "view")
        assert violation.message == "Layer 'model' should not depend on layer 'view'"

    def test_strict_pattern_reports_errors(self):
        paths = ["src/domain/user.ts", "src/application/register.ts", "src/infrastructure/db.ts"]
        imports = {
            "src/application/register.ts": ["src/domain/user.ts"],
            "src/domain/user.ts": ["src/infrastructure/db.ts"],
        }
        matches = ArchitectureDetector().detect(paths, imports)

        assert [(m.pattern, m.confidence) for m in matches] == [("Clean Architecture", 58)]
        assert [(v.source_layer, v.target_layer, v.severity) for v in matches[0].violations] == [
            ("domain", "infrastructure", IssueSeverity.ERROR),
        ]

    def test_no_violations_at_exact_threshold(self):
        """A pattern equal to the threshold is reported but not checked."""
        matches = ArchitectureDetector(min_confidence=95).detect([CONTROLLER, MODEL, VIEW], MVC_IMPORTS)
        assert [(m.pattern, m.violations) for m in matches] == [("MVC", [])]

    def test_violation_checks_can_be_disabled(self):
        detector = ArchitectureDetector(detect_violations=False)
        assert detector.detect([CONTROLLER, MODEL, VIEW], MVC_IMPORTS)[0].violations == []


class TestHelpers:

    def test_extract_folders(self):
        assert extract_folders(["src/a/b.ts", "main.py", "src\\x\\y.ts"]) == ["src/", "src/a/", "src/x/"]

    def test_file_counts_for_first_matching_layer(self):
        """A view file under controllers/ belongs to the view layer, declared first."""
        distribution = layer_distribution(MVC, ["src/controllers/list.view.ts"])
        assert distribution["view"] == 1
        assert distribution["controller"] == 0

    @pytest.mark.parametrize("path", ["app/Views/home.ts", "lib\\views\\home.ts"])
    def test_layer_aliases_ignore_case_and_separators(self, path):
        assert MVC.layer_of(path).name == "view"

    def test_get_pattern(self):
        assert get_pattern("mvc") is MVC
        assert get_pattern("unknown") is None
        assert len(ALL_PATTERNS) == 8


class TestPipeline:

    SOURCES = [
        SourceFile(CONTROLLER, 'import { User } from "../models/user.model";\nexport class UserController {}\n'),
        SourceFile(MODEL, 'import { render } from "../views/user.view";\nexport class User {}\n'),
        SourceFile(VIEW, "export function render() {}\n"),
    ]

    def test_analysis_reports_architecture(self):
        result = CodebaseAnalyzer("demo").analyze(self.SOURCES)

        assert result.architecture[0].pattern == "MVC"
        assert result.architecture[0].confidence == 95
        assert [(v.source_file, v.target_file) for v in result.architecture[0].violations] == [(MODEL, VIEW)]

    def test_detection_can_be_disabled(self):
        result = CodebaseAnalyzer("demo", config=AnalyzerConfig(architecture_enabled=False)).analyze(self.SOURCES)
        assert result.architecture == []
