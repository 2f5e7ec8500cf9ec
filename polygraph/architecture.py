"""Heuristic detection of the project's architecture pattern.

Every known pattern is scored from the project's folder and file names:
weighted indicators give up to 80 points and the share of the pattern's
layers that hold at least one file gives up to 20. Missing a required
indicator cuts the score to 30%. Patterns that clear the threshold are
also checked for imports that cross layers in a disallowed direction.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .architecture_patterns import ALL_PATTERNS, ArchitecturePattern, Indicator
from .config import DEFAULT_ARCHITECTURE_MIN_CONFIDENCE
from .models import ArchitectureMatch, ArchitectureViolation, IssueSeverity

logger = logging.getLogger(__name__)


def extract_folders(paths: Iterable[str]) -> List[str]:
    """Every directory containing a path, with a trailing ``/``, sorted."""
    folders = set()
    for path in paths:
        parts = path.replace("\\", "/").split("/")[:-1]
        for depth in range(1, len(parts) + 1):
            folders.add("/".join(parts[:depth]) + "/")
    return sorted(folders)


def _indicator_matches(indicator: Indicator, paths: Sequence[str], folders: Sequence[str]) -> bool:
    candidates = folders if indicator.kind == "folder" else paths
    return any(indicator.pattern.search(candidate) for candidate in candidates)


def layer_distribution(pattern: ArchitecturePattern, paths: Iterable[str]) -> Dict[str, int]:
    """Files per layer of ``pattern``; a file counts for its first matching layer only."""
    distribution = {layer.name: 0 for layer in pattern.layers}
    for path in paths:
        layer = pattern.layer_of(path)
        if layer is not None:
            distribution[layer.name] += 1
    return distribution


class ArchitectureDetector:
    """Score every known pattern against a project's file layout."""

    def __init__(
        self,
        min_confidence: int = DEFAULT_ARCHITECTURE_MIN_CONFIDENCE,
        detect_violations: bool = True,
        patterns: Optional[Sequence[ArchitecturePattern]] = None,
    ):
        self.min_confidence = min_confidence
        self.detect_violations = detect_violations
        self.patterns = list(ALL_PATTERNS if patterns is None else patterns)

    def detect(
        self,
        paths: Iterable[str],
        file_imports: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> List[ArchitectureMatch]:
        """Patterns scoring at least ``min_confidence``, best first.

        ``file_imports`` maps each file to the project files it imports and is
        only used for violation checks.
        """
        ordered = sorted(paths)
        folders = extract_folders(ordered)
        imports = file_imports or {}

        matches = []
        for pattern in self.patterns:
            match = self.score(pattern, ordered, folders, imports)
            if match.confidence >= self.min_confidence:
                matches.append(match)
        matches.sort(key=lambda m: -m.confidence)

        if matches:
            logger.info("Detected architecture %s (%d%%)", matches[0].pattern, matches[0].confidence)
        return matches

    def score(
        self,
        pattern: ArchitecturePattern,
        paths: Sequence[str],
        folders: Sequence[str],
        file_imports: Mapping[str, Sequence[str]],
    ) -> ArchitectureMatch:
        matched = [i for i in pattern.indicators if _indicator_matches(i, paths, folders)]
        total_weight = sum(i.weight for i in pattern.indicators)
        matched_weight = sum(i.weight for i in matched)
        required_met = all(i in matched for i in pattern.indicators if i.required)

        distribution = layer_distribution(pattern, paths)
        present = sum(1 for count in distribution.values() if count > 0)
        confidence = matched_weight / max(total_weight, 1) * 80 + present / len(pattern.layers) * 20
        if not required_met:
            confidence *= 0.3
        confidence = min(100, math.floor(confidence + 0.5))

        violations: List[ArchitectureViolation] = []
        if self.detect_violations and confidence > self.min_confidence:
            violations = find_violations(pattern, paths, file_imports)

        return ArchitectureMatch(
            pattern=pattern.name,
            description=pattern.description,
            confidence=confidence,
            matched_indicators=[i.pattern.pattern for i in matched],
            layer_distribution=distribution,
            violations=violations,
        )


def find_violations(
    pattern: ArchitecturePattern,
    paths: Sequence[str],
    file_imports: Mapping[str, Sequence[str]],
) -> List[ArchitectureViolation]:
    """Imports from one layer into another layer it may not depend on."""
    severity = IssueSeverity.ERROR if pattern.strict else IssueSeverity.WARNING
    violations = []
    for path in paths:
        source = pattern.layer_of(path)
        if source is None:
            continue
        for target_path in file_imports.get(path, ()):
            target = pattern.layer_of(target_path)
            if target is None or target.name == source.name:
                continue
            if target.name in source.allowed_dependencies:
                continue
            violations.append(ArchitectureViolation(
                type="dependency",
                severity=severity,
                source_file=path,
                source_layer=source.name,
                target_file=target_path,
                target_layer=target.name,
                message=f"Layer '{source.name}' should not depend on layer '{target.name}'",
            ))
    return violations
