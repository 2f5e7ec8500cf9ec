"""Pattern based security scanner over raw source text.

The scanner does not look at the code graph. Each file is scanned on its
own in four passes: named secrets, high-entropy literals, vulnerability
regex groups and a line-local taint check from known sources to known sinks.
"""

from __future__ import annotations

import logging
import math
import re
import threading
from bisect import bisect_right
from collections import Counter
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Set, Tuple

from .config import AnalyzerConfig
from .models import Language, SecurityReport, SecurityVulnerability, Severity, SourceLocation
from .parser import LineIndex, detect_language
from .security_patterns import (
    DANGEROUS_SINKS,
    ENTROPY_MIN_LENGTH,
    ENV_REFERENCE_PATTERN,
    PLACEHOLDER_PATTERN,
    RECOMMENDATIONS,
    SANITIZATION_METHODS,
    SECRET_CATEGORY,
    SECRET_CWE,
    SECRET_OWASP,
    SECRET_PATTERNS,
    SINK_SANITIZER_CLASS,
    STRING_LITERAL_PATTERN,
    TAINT_FINDINGS,
    TAINT_SOURCES,
    VULNERABILITY_PATTERNS,
    SecretPattern,
    VulnerabilityPattern,
    is_low_risk_file,
)

logger = logging.getLogger(__name__)

_C_STYLE = frozenset({Language.TYPESCRIPT, Language.JAVASCRIPT, Language.RUST})
_PROPERTY_SINKS = frozenset({"innerHTML", "outerHTML", "dangerouslySetInnerHTML"})
_MAX_STATEMENT_LINES = 5
_MAX_SNIPPET = 200


class PatternEngineError(Exception):
    """A single detection pattern failed on a single file."""

    def __init__(self, pattern: str, path: str, cause: BaseException):
        self.pattern = pattern
        self.path = path
        self.cause = cause
        super().__init__(f"Pattern {pattern!r} failed on {path}: {cause}")


# ===================================================================
# Text helpers
# ===================================================================

def shannon_entropy(value: str) -> float:
    if not value:
        return 0.0
    total = len(value)
    return -sum((n / total) * math.log2(n / total) for n in Counter(value).values())


def looks_like_secret(value: str) -> bool:
    """Entropy heuristic for literals that match no named secret pattern."""
    if len(value) < ENTROPY_MIN_LENGTH:
        return False
    entropy = shannon_entropy(value)
    mixed_case = any(c.islower() for c in value) and any(c.isupper() for c in value)
    has_digits = any(c.isdigit() for c in value)
    if entropy > 5.0:
        return True
    if entropy > 4.5 and (mixed_case or has_digits):
        return True
    return entropy > 4.0 and mixed_case and has_digits


def _string_end(content: str, start: int, quote: str) -> int:
    """Offset just past the string literal opened at ``start``."""
    i = start + 1
    while i < len(content):
        ch = content[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote or (ch == "\n" and quote != "`"):
            return i + 1
        i += 1
    return len(content)


def comment_spans(content: str, language: Language) -> List[Tuple[int, int]]:
    """``(start, end)`` offsets of every comment, and of Python docstrings.

    A single forward pass tracks string literals, so comment markers inside
    quotes (``"src/**/*.ts"``, ``"http://..."``) never open a comment.
    """
    if language in _C_STYLE:
        quotes = "\"" if language == Language.RUST else "\"'`"
        line_marker, block_comments = "//", True
    elif language == Language.PYTHON:
        quotes = "\"'"
        line_marker, block_comments = "#", False
    else:
        return []

    spans: List[Tuple[int, int]] = []
    i = 0
    size = len(content)
    while i < size:
        ch = content[i]
        if content.startswith(line_marker, i):
            end = content.find("\n", i)
            end = size if end == -1 else end
        elif block_comments and content.startswith("/*", i):
            end = content.find("*/", i + 2)
            end = size if end == -1 else end + 2
        elif ch in quotes and language == Language.PYTHON and content.startswith(ch * 3, i):
            end = content.find(ch * 3, i + 3)
            end = size if end == -1 else end + 3
        elif ch in quotes:
            i = _string_end(content, i, ch)
            continue
        else:
            i += 1
            continue
        spans.append((i, end))
        i = end
    return spans


def _within(spans: List[Tuple[int, int]], position: int) -> bool:
    index = bisect_right(spans, (position, float("inf"))) - 1
    return index >= 0 and spans[index][0] <= position < spans[index][1]


def in_comment(content: str, position: int, language: Language) -> bool:
    """Whether ``position`` sits in a line comment, block comment or docstring."""
    return _within(comment_spans(content, language), position)


def redact(text: str, secret: str) -> str:
    """Mask the secret value in ``text``, keeping its first four characters."""
    quoted = re.search(r"['\"`]([^'\"`]+)['\"`]", secret)
    value = quoted.group(1) if quoted else secret
    return text.replace(value, value[:4] + "****")


def _snippet(text: str) -> str:
    text = text.strip()
    return text if len(text) <= _MAX_SNIPPET else text[:_MAX_SNIPPET] + "..."


def _word(name: str, tail: str = "") -> str:
    return r"(?<![\w$.])" + re.escape(name) + tail


_SOURCE_REGEXES: List[Tuple[str, Pattern[str]]] = [
    (source, re.compile(_word(source)))
    for source in sorted(TAINT_SOURCES, key=lambda s: (-len(s), s))
]

_SINK_REGEXES: List[Tuple[str, str, Pattern[str]]] = [
    (
        sink,
        kind,
        re.compile(
            r"(?<![\w$])" + re.escape(sink)
            + (r"\s*=(?!=)" if sink in _PROPERTY_SINKS else r"\s*[(`]")
        ),
    )
    for sink, kind in sorted(DANGEROUS_SINKS.items(), key=lambda item: (-len(item[0]), item[0]))
]

_SANITIZER_REGEXES: List[Tuple[str, Pattern[str]]] = [
    (cls, re.compile(r"(?<![\w$])" + re.escape(name) + r"\s*\("))
    for name, cls in SANITIZATION_METHODS.items()
]


# ===================================================================
# Scanner
# ===================================================================

class _ScanContext:
    def __init__(self, path: str, content: str, language: Language):
        self.path = path
        self.content = content
        self.language = language
        self.index = LineIndex(content)
        self.lines = content.split("\n")
        self.comments = comment_spans(content, language)

    def in_comment(self, position: int) -> bool:
        return _within(self.comments, position)

    def line_text(self, line: int) -> str:
        return self.lines[line - 1] if 0 < line <= len(self.lines) else ""


class SecurityScanner:
    """Scan source text for secrets, vulnerable patterns and tainted sinks."""

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        vulnerability_patterns: Optional[Sequence[VulnerabilityPattern]] = None,
        secret_patterns: Optional[Sequence[SecretPattern]] = None,
    ):
        self.config = config or AnalyzerConfig()
        self.vulnerability_patterns = list(
            VULNERABILITY_PATTERNS if vulnerability_patterns is None else vulnerability_patterns
        )
        self.secret_patterns = list(SECRET_PATTERNS if secret_patterns is None else secret_patterns)
        self._compiled: Dict[str, Pattern[str]] = {}
        self._lock = threading.Lock()

    # -- pattern isolation ------------------------------------------------

    def _matches(self, pattern: str, text: str, path: str) -> List["re.Match[str]"]:
        """All matches of one pattern, or none when the pattern fails."""
        try:
            compiled = self._compiled.get(pattern)
            if compiled is None:
                compiled = re.compile(pattern)
                with self._lock:
                    self._compiled[pattern] = compiled
            return list(compiled.finditer(text))
        except (re.error, RecursionError, OverflowError) as exc:
            logger.warning("%s", PatternEngineError(pattern, path, exc))
            return []

    # -- public API ---------------------------------------------------------

    def scan_file(self, path: str, content: str, language: Optional[Language] = None) -> List[SecurityVulnerability]:
        """Findings for one file, deduplicated per (line, category), without ids."""
        size = len(content.encode("utf-8", errors="replace"))
        if size > self.config.max_file_bytes:
            logger.warning(
                "Skipping security scan of %s: %d bytes exceeds limit of %d",
                path, size, self.config.max_file_bytes,
            )
            return []

        ctx = _ScanContext(path, content, language or detect_language(path))
        secret_lines: Set[int] = set()
        findings: List[SecurityVulnerability] = []
        findings.extend(self._scan_secrets(ctx, secret_lines))
        findings.extend(self._scan_entropy(ctx, secret_lines))
        findings.extend(self._scan_vulnerabilities(ctx))
        findings.extend(self._scan_taint(ctx))

        if is_low_risk_file(path):
            for finding in findings:
                finding.severity = finding.severity.downgrade()
        return _dedupe(findings)

    def scan_sources(
        self,
        sources: Iterable[Tuple[str, str]],
        cancel_event: Optional[threading.Event] = None,
    ) -> SecurityReport:
        """Scan ``(path, content)`` pairs sequentially into a report."""
        findings: List[SecurityVulnerability] = []
        complete = True
        for path, content in sources:
            if cancel_event is not None and cancel_event.is_set():
                complete = False
                break
            findings.extend(self.scan_file(path, content))
        return build_report(findings, complete)

    # -- passes ---------------------------------------------------------------

    def _finding(
        self,
        ctx: _ScanContext,
        line: int,
        severity: Severity,
        category: str,
        title: str,
        description: str,
        cwe: Optional[str],
        owasp: Optional[str],
        snippet: str,
    ) -> SecurityVulnerability:
        return SecurityVulnerability(
            id="",
            severity=severity,
            category=category,
            title=title,
            description=description,
            location=SourceLocation(file=ctx.path, line=line),
            cwe=cwe,
            owasp=owasp,
            snippet=_snippet(snippet),
            recommendation=RECOMMENDATIONS.get(category),
        )

    def _scan_secrets(self, ctx: _ScanContext, secret_lines: Set[int]) -> List[SecurityVulnerability]:
        findings = []
        for secret in self.secret_patterns:
            for match in self._matches(secret.pattern, ctx.content, ctx.path):
                if ctx.in_comment(match.start()):
                    continue
                value = match.group(0)
                line = ctx.index.line_of(match.start())
                text = ctx.line_text(line)
                if PLACEHOLDER_PATTERN.search(value) or ENV_REFERENCE_PATTERN.search(text):
                    continue
                secret_lines.add(line)
                findings.append(self._finding(
                    ctx, line, secret.severity, SECRET_CATEGORY, secret.name,
                    f"Possible {secret.name} embedded in source",
                    SECRET_CWE, SECRET_OWASP, redact(text, value),
                ))
        return findings

    def _scan_entropy(self, ctx: _ScanContext, secret_lines: Set[int]) -> List[SecurityVulnerability]:
        findings = []
        for match in STRING_LITERAL_PATTERN.finditer(ctx.content):
            if ctx.in_comment(match.start()):
                continue
            value = next(group for group in match.groups() if group is not None)
            line = ctx.index.line_of(match.start())
            if line in secret_lines or any(ch.isspace() for ch in value):
                continue
            text = ctx.line_text(line)
            if PLACEHOLDER_PATTERN.search(value) or ENV_REFERENCE_PATTERN.search(text):
                continue
            if not looks_like_secret(value):
                continue
            secret_lines.add(line)
            findings.append(self._finding(
                ctx, line, Severity.MEDIUM, SECRET_CATEGORY, "High-Entropy String",
                f"String literal with entropy {shannon_entropy(value):.2f} may be a secret",
                SECRET_CWE, SECRET_OWASP, redact(text, value),
            ))
        return findings

    def _scan_vulnerabilities(self, ctx: _ScanContext) -> List[SecurityVulnerability]:
        findings = []
        for group in self.vulnerability_patterns:
            is_secret = group.category == SECRET_CATEGORY
            for pattern in group.patterns:
                for match in self._matches(pattern, ctx.content, ctx.path):
                    if ctx.in_comment(match.start()):
                        continue
                    line = ctx.index.line_of(match.start())
                    text = ctx.line_text(line)
                    if is_secret and (PLACEHOLDER_PATTERN.search(match.group(0)) or ENV_REFERENCE_PATTERN.search(text)):
                        continue
                    findings.append(self._finding(
                        ctx, line, group.severity, group.category, group.name,
                        group.description or group.name,
                        group.cwe, group.owasp,
                        redact(text, match.group(0)) if is_secret else text,
                    ))
        return findings

    def _scan_taint(self, ctx: _ScanContext) -> List[SecurityVulnerability]:
        findings = []
        for number, text in enumerate(ctx.lines, start=1):
            for sink, kind, regex in _SINK_REGEXES:
                match = regex.search(text)
                if match is None:
                    continue
                if ctx.in_comment(ctx.index.line_start(number) + match.start()):
                    continue
                statement = self._statement(ctx, number, match.start())
                source = _unsanitized_source(statement, match.start(), kind)
                if source is None:
                    continue
                category, title, cwe, owasp, severity = TAINT_FINDINGS[kind]
                findings.append(self._finding(
                    ctx, number, severity, category, title,
                    f"Untrusted input from '{source}' ({TAINT_SOURCES[source]}) reaches '{sink}'",
                    cwe, owasp, text,
                ))
                break
        return findings

    @staticmethod
    def _statement(ctx: _ScanContext, line: int, column: int) -> str:
        """The sink line plus continuation lines until its parentheses close."""
        parts = [ctx.line_text(line)]
        depth = parts[0][column:].count("(") - parts[0][column:].count(")")
        current = line
        while depth > 0 and current - line < _MAX_STATEMENT_LINES - 1 and current < len(ctx.lines):
            current += 1
            text = ctx.line_text(current)
            parts.append(text)
            depth += text.count("(") - text.count(")")
        return "\n".join(parts)


def _sanitized(statement: str, sink_kind: str, start: int, end: int) -> bool:
    """Whether a sanitizer for ``sink_kind`` is called within ``statement[start:end]``."""
    wanted = {SINK_SANITIZER_CLASS.get(sink_kind), "general"}
    return any(
        cls in wanted and regex.search(statement, start, end)
        for cls, regex in _SANITIZER_REGEXES
    )


def _unsanitized_source(statement: str, sink_start: int, sink_kind: str) -> Optional[str]:
    """The first taint source in ``statement`` with no sanitizer between it and the sink."""
    for source, source_re in _SOURCE_REGEXES:
        for found in source_re.finditer(statement):
            start, end = sorted((sink_start, found.start()))
            if not _sanitized(statement, sink_kind, start, end):
                return source
    return None


def _dedupe(findings: List[SecurityVulnerability]) -> List[SecurityVulnerability]:
    """One finding per (line, category); the more severe wins, ties keep the first."""
    kept: Dict[Tuple[int, str], SecurityVulnerability] = {}
    for finding in findings:
        key = (finding.location.line, finding.category)
        current = kept.get(key)
        if current is None or finding.severity.rank < current.severity.rank:
            kept[key] = finding
    return list(kept.values())


def build_report(findings: Iterable[SecurityVulnerability], complete: bool = True) -> SecurityReport:
    """Sort by severity, path and line, then number the findings ``vuln-N``."""
    ordered = sorted(findings, key=lambda v: (v.severity.rank, v.location.file, v.location.line))
    for number, finding in enumerate(ordered, start=1):
        finding.id = f"vuln-{number}"

    summary = {severity.value: 0 for severity in Severity}
    for finding in ordered:
        summary[finding.severity.value] += 1
    summary["total"] = len(ordered)
    return SecurityReport(vulnerabilities=ordered, summary=summary, complete=complete)
