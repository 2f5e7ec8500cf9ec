"""Language detection, parser registry and shared extraction heuristics.

Extraction works on raw text only: regular expressions find declarations and
brace or indentation counting finds where they end. Every helper here must
terminate on any input and fall back to end-of-file instead of raising.
"""

from __future__ import annotations

import bisect
import logging
import re
from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, NamedTuple, Optional, Pattern, Sequence, Tuple

from .models import (
    CallInfo,
    ClassInfo,
    ExportInfo,
    FileInfo,
    FunctionInfo,
    ImportInfo,
    Language,
    Layer,
    VariableInfo,
    VariableUsageInfo,
)

logger = logging.getLogger(__name__)


# ===================================================================
# Language detection
# ===================================================================

LANGUAGE_MAP: Dict[str, Language] = {
    ".ts": Language.TYPESCRIPT,
    ".tsx": Language.TYPESCRIPT,
    ".mts": Language.TYPESCRIPT,
    ".cts": Language.TYPESCRIPT,
    ".js": Language.JAVASCRIPT,
    ".jsx": Language.JAVASCRIPT,
    ".mjs": Language.JAVASCRIPT,
    ".cjs": Language.JAVASCRIPT,
    ".py": Language.PYTHON,
    ".pyw": Language.PYTHON,
    ".rs": Language.RUST,
    ".yaml": Language.YAML,
    ".yml": Language.YAML,
    ".json": Language.JSON,
    ".html": Language.HTML,
    ".css": Language.CSS,
    ".toml": Language.TOML,
}

SOURCE_LANGUAGES = frozenset({
    Language.TYPESCRIPT, Language.JAVASCRIPT, Language.PYTHON, Language.RUST,
})


def detect_language(path: str) -> Language:
    """Infer the language from the file extension."""
    return LANGUAGE_MAP.get(PurePosixPath(path).suffix.lower(), Language.UNKNOWN)


# Keywords of all supported languages. Excluded from usage scanning so one
# language's keyword is never reported as another language's identifier.
COMBINED_KEYWORDS = frozenset({
    # JavaScript / TypeScript
    "const", "let", "var", "function", "class", "return", "if", "else", "while",
    "for", "break", "continue", "switch", "case", "default", "try", "catch",
    "finally", "throw", "new", "this", "super", "import", "export", "from",
    "async", "await", "yield", "typeof", "instanceof", "in", "of", "true",
    "false", "null", "undefined", "void", "delete", "interface", "type",
    # Rust
    "fn", "pub", "mod", "use", "struct", "enum", "impl", "trait", "match",
    "loop", "mut", "ref", "move", "self", "Self", "dyn", "where", "crate",
    # Python
    "def", "and", "or", "not", "is", "None", "True", "False", "pass", "with",
    "as", "assert", "lambda", "global", "nonlocal", "raise", "except", "elif",
    "del", "cls",
})


def count_lines(content: str) -> int:
    if not content:
        return 0
    newlines = content.count("\n")
    return newlines if content.endswith("\n") else newlines + 1


# ===================================================================
# Offset bookkeeping
# ===================================================================

class LineIndex:
    """Maps character offsets to 1-based line numbers and back."""

    def __init__(self, content: str):
        self._length = len(content)
        self._starts = [0]
        self._starts.extend(m.end() for m in re.finditer("\n", content))

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def line_of(self, offset: int) -> int:
        return bisect.bisect_right(self._starts, offset)

    def line_start(self, line: int) -> int:
        line = min(max(line, 1), len(self._starts))
        return self._starts[line - 1]

    def line_end(self, line: int) -> int:
        """Offset just past the last character of ``line`` (before its newline)."""
        line = max(line, 1)
        if line < len(self._starts):
            return self._starts[line] - 1
        return self._length


class BraceDepthIndex:
    """Answers "how many braces are open at this offset" in O(log n)."""

    def __init__(self, content: str):
        self._opens = [m.start() for m in re.finditer(r"\{", content)]
        self._closes = [m.start() for m in re.finditer(r"\}", content)]

    def depth_at(self, offset: int) -> int:
        opened = bisect.bisect_left(self._opens, offset)
        closed = bisect.bisect_left(self._closes, offset)
        return max(0, opened - closed)


# ===================================================================
# Block boundaries
# ===================================================================

_BLOCK_TOKENS = re.compile(r"[{};\n]")


def find_block_end(content: str, start: int, stop_at_semicolon: bool = False) -> int:
    """Return the 1-based line where the first brace block after ``start`` closes.

    Without an opening brace (or with one that never closes) the end of the
    file is the boundary. With ``stop_at_semicolon`` a ``;`` met before any
    brace ends the construct on that line.
    """
    line = content.count("\n", 0, start) + 1
    depth = 0
    started = False
    for match in _BLOCK_TOKENS.finditer(content, start):
        token = match.group(0)
        if token == "\n":
            line += 1
        elif token == "{":
            depth += 1
            started = True
        elif token == "}":
            if started:
                depth -= 1
                if depth == 0:
                    return line
        elif stop_at_semicolon and not started:
            return line
    return max(line if not content.endswith("\n") else line - 1, content.count("\n", 0, start) + 1)


def find_arrow_end(content: str, arrow_index: int) -> int:
    """Return the end line of an arrow function whose ``=>`` sits at ``arrow_index``."""
    i = arrow_index + 2
    n = len(content)
    while i < n and content[i] in " \t\r\n":
        i += 1
    if i < n and content[i] == "{":
        return find_block_end(content, i)

    line = content.count("\n", 0, i) + 1
    depth = 0
    for j in range(i, n):
        ch = content[j]
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            if depth == 0:
                return line
            depth -= 1
        elif ch == "\n":
            if depth == 0:
                return line
            line += 1
        elif depth == 0 and ch in ";,":
            return line
    return line


def find_python_block_end(
    content: str,
    start: int,
    header_end: Optional[int] = None,
    lines: Optional[Sequence[str]] = None,
) -> int:
    """Return the last line (1-based) of the indented block opened at ``start``.

    Scanning begins after the header (which may span several lines). Blank and
    comment-only lines never end the block. The first line indented at or left
    of the header ends it; the block's last body line is returned.
    """
    if lines is None:
        lines = content.split("\n")
    start_idx = content.count("\n", 0, start)
    header_idx = content.count("\n", 0, header_end) if header_end is not None else start_idx
    header_text = lines[start_idx] if start_idx < len(lines) else ""
    base_indent = len(header_text) - len(header_text.lstrip())

    last = header_idx
    for idx in range(header_idx + 1, len(lines)):
        text = lines[idx]
        stripped = text.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if len(text) - len(text.lstrip()) <= base_indent:
            break
        last = idx
    return last + 1


def brace_nesting_depth(content: str, start: int, end: int) -> int:
    """Deepest brace nesting inside a block, not counting the block's own braces."""
    depth = deepest = 0
    for match in re.finditer(r"[{}]", content[start:end]):
        if match.group(0) == "{":
            depth += 1
            deepest = max(deepest, depth)
        else:
            depth = max(0, depth - 1)
    return max(0, deepest - 1)


def indent_nesting_depth(lines: Sequence[str], first: int, last: int, base_indent: int) -> int:
    """Nesting of an indented block: distinct indentation widths below the body level."""
    widths = set()
    for idx in range(first, min(last, len(lines))):
        text = lines[idx]
        stripped = text.strip()
        if not stripped or stripped.startswith("#"):
            continue
        indent = len(text) - len(text.lstrip())
        if indent > base_indent:
            widths.add(indent)
    return max(0, len(widths) - 1)


# ===================================================================
# Bracket scanning and text helpers
# ===================================================================

def _skip_string(content: str, index: int, limit: int) -> int:
    """Index of the quote closing the literal opened at ``index``.

    An unterminated single-line literal returns ``index`` itself so the quote
    is treated as plain text.
    """
    quote = content[index]
    j = index + 1
    while j < limit:
        ch = content[j]
        if ch == "\\":
            j += 2
            continue
        if ch == quote:
            return j
        if ch == "\n" and quote != "`":
            return index
        j += 1
    return index


def scan_balanced(content: str, open_index: int, limit: Optional[int] = None, quotes: str = "\"'`") -> int:
    """Return the index of the bracket closing the one at ``open_index``, or -1."""
    n = len(content) if limit is None else min(len(content), limit)
    depth = 0
    i = open_index
    while i < n:
        ch = content[i]
        if ch in quotes:
            i = _skip_string(content, i, n) + 1
            continue
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def split_parameters(text: str) -> List[str]:
    """Split a parameter or argument list on top-level commas."""
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    prev = ""
    for ch in text:
        if ch in "([{<":
            depth += 1
        elif ch in ")]}" or (ch == ">" and prev not in ("-", "=")):
            depth = max(0, depth - 1)
        prev = ch
        if ch == "," and depth == 0:
            part = "".join(current).strip()
            if part:
                parts.append(part)
            current = []
            continue
        current.append(ch)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


_SENSITIVE = re.compile(r"api[_-]?key|secret|passw(?:or)?d|token|credential|private[_-]?key", re.IGNORECASE)


def sanitize_value(value: str, name: str = "") -> str:
    """Make an initial value safe to show: redact credentials, cap the length."""
    value = " ".join(value.split())
    if _SENSITIVE.search(name) or _SENSITIVE.search(value):
        return "[REDACTED]"
    if len(value) > 100:
        return value[:97] + "..."
    return value


def count_references(content: str, name: str, skip: Tuple[int, int] = (0, 0)) -> int:
    """Count whole-word occurrences of ``name`` outside the ``skip`` span."""
    pattern = re.compile(r"(?<![\w$])" + re.escape(name) + r"(?![\w$])")
    return sum(1 for m in pattern.finditer(content) if not skip[0] <= m.start() < skip[1])


_ASSIGN_AFTER = re.compile(r"[ \t]*=(?![=>])")


def find_usages(
    content: str,
    name: str,
    lines: "LineIndex",
    skip: Tuple[int, int] = (0, 0),
) -> List[VariableUsageInfo]:
    """Every occurrence of ``name`` in the file outside ``skip``, excluding ``obj.name``."""
    pattern = re.compile(r"(?<![\w$.])" + re.escape(name) + r"(?![\w$])")
    usages: List[VariableUsageInfo] = []
    for match in pattern.finditer(content):
        if skip[0] <= match.start() < skip[1]:
            continue
        is_write = _ASSIGN_AFTER.match(content, match.end()) is not None
        line = lines.line_of(match.start())
        usages.append(
            VariableUsageInfo(
                name=name,
                line=line,
                operation="write" if is_write else "read",
                scope="module",
                context=content[lines.line_start(line):lines.line_end(line)].strip()[:120],
            )
        )
    return usages


# ===================================================================
# Declarations: decorators and documentation
# ===================================================================

def collect_decorators(
    content: str,
    position: int,
    pattern: Pattern[str],
    comment_prefixes: Tuple[str, ...] = ("#",),
) -> List[str]:
    """Walk backward from the declaration line collecting decorator lines.

    Blank and comment lines are stepped over; the first other line that does
    not match ``pattern`` stops the walk.
    """
    decorators: List[str] = []
    end = content.rfind("\n", 0, position)
    while end >= 0:
        begin = content.rfind("\n", 0, end) + 1
        text = content[begin:end].strip()
        end = begin - 1
        if not text or text.startswith(comment_prefixes):
            continue
        match = pattern.match(text)
        if not match:
            break
        decorators.append(match.group(1))
    decorators.reverse()
    return decorators


_JSDOC = re.compile(r"/\*\*((?:[^*]|\*(?!/))*)\*/\s*$")


def extract_jsdoc(content: str, position: int) -> Optional[str]:
    line_start = content.rfind("\n", 0, position) + 1
    before = content[max(0, line_start - 2000):line_start]
    match = _JSDOC.search(before)
    if not match:
        return None
    text = "\n".join(
        line.strip().lstrip("*").strip() for line in match.group(1).splitlines()
    ).strip()
    return text or None


def extract_line_docs(
    content: str,
    position: int,
    prefix: str = "///",
    skip_prefixes: Tuple[str, ...] = ("#[",),
) -> Optional[str]:
    """Collect consecutive ``prefix`` comment lines above a declaration."""
    docs: List[str] = []
    end = content.rfind("\n", 0, position)
    while end >= 0:
        begin = content.rfind("\n", 0, end) + 1
        text = content[begin:end].strip()
        end = begin - 1
        if text.startswith(skip_prefixes):
            continue
        if not text.startswith(prefix):
            break
        docs.append(text[len(prefix):].strip())
    if not docs:
        return None
    docs.reverse()
    return "\n".join(docs)


# ===================================================================
# Function bodies
# ===================================================================

_COMPLEXITY_PATTERNS = [
    re.compile(p)
    for p in (
        r"\bif\b",
        r"\belse\s+if\b",
        r"\bwhile\b",
        r"\bfor\b",
        r"\bcase\b",
        r"\bcatch\b",
        r"\?\?",
        r"\|\|",
        r"&&",
        r"(?<!\?)\?(?![?.:])",
    )
]


def calculate_complexity(body: str, extra_patterns: Iterable[Pattern[str]] = ()) -> int:
    """Cyclomatic complexity proxy: one plus every decision keyword or operator."""
    complexity = 1
    for pattern in _COMPLEXITY_PATTERNS:
        complexity += len(pattern.findall(body))
    for pattern in extra_patterns:
        complexity += len(pattern.findall(body))
    return complexity


_IDENTIFIER = re.compile(r"\b[A-Za-z_]\w*\b")


def extract_variable_usages(
    content: str,
    start: int,
    end: int,
    lines: LineIndex,
    keywords: frozenset = COMBINED_KEYWORDS,
) -> List[VariableUsageInfo]:
    """Classify every identifier occurrence in ``content[start:end]`` as read or write."""
    usages: List[VariableUsageInfo] = []
    for match in _IDENTIFIER.finditer(content, start, end):
        name = match.group(0)
        if name in keywords:
            continue
        if match.start() > 0 and content[match.start() - 1] == ".":
            continue
        j = match.end()
        while j < end and content[j] in " \t":
            j += 1
        is_write = j < end and content[j] == "=" and content[j + 1:j + 2] not in ("=", ">")
        line = lines.line_of(match.start())
        context = content[lines.line_start(line):lines.line_end(line)].strip()[:120]
        usages.append(
            VariableUsageInfo(
                name=name,
                line=line,
                operation="write" if is_write else "read",
                scope="local",
                context=context,
            )
        )
    return usages


_MEMBER_ACCESS = re.compile(r"(?<![\w$.])([A-Za-z_$][\w$]*)\s*\.\s*[A-Za-z_$#]")


def count_member_accesses(content: str, start: int, end: int) -> Dict[str, int]:
    """Count ``receiver.member`` accesses per receiver name."""
    counts: Dict[str, int] = {}
    for match in _MEMBER_ACCESS.finditer(content, start, end):
        receiver = match.group(1)
        counts[receiver] = counts.get(receiver, 0) + 1
    return counts


class BodyFacts(NamedTuple):
    calls: List[CallInfo]
    usages: List[VariableUsageInfo]
    member_accesses: Dict[str, int]
    raises: List[str]
    complexity: int


# ===================================================================
# Parser contract and registry
# ===================================================================

class LanguageParser(ABC):
    """Best-effort structural extractor for one language family.

    Subclasses implement the five ``extract_*`` operations. None of them may
    raise: unmatched or malformed input simply omits the construct.
    """

    languages: Tuple[Language, ...] = ()
    call_pattern: Pattern[str] = re.compile(
        r"(?P<await>\bawait\s+)?(?<![\w$])(?P<target>[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*)\s*\("
    )
    call_keywords: frozenset = frozenset()
    raise_pattern: Optional[Pattern[str]] = None
    complexity_extras: Tuple[Pattern[str], ...] = ()
    string_quotes: str = "\"'`"

    @abstractmethod
    def extract_imports(self, content: str) -> List[ImportInfo]:
        ...

    @abstractmethod
    def extract_exports(self, content: str) -> List[ExportInfo]:
        ...

    @abstractmethod
    def extract_classes(self, content: str) -> List[ClassInfo]:
        ...

    @abstractmethod
    def extract_functions(self, content: str) -> List[FunctionInfo]:
        ...

    @abstractmethod
    def extract_variables(self, content: str) -> List[VariableInfo]:
        ...

    def supports_language(self, language: Language) -> bool:
        return language in self.languages

    # ------------------------------------------------------------------
    # Shared body analysis
    # ------------------------------------------------------------------

    def _is_await(self, content: str, match: "re.Match[str]", close: int) -> bool:
        return bool(match.group("await"))

    def collect_calls(self, content: str, start: int, end: int, lines: LineIndex) -> List[CallInfo]:
        calls: List[CallInfo] = []
        for match in self.call_pattern.finditer(content, start, end):
            target = match.group("target")
            name = target.replace("::", ".").rsplit(".", 1)[-1]
            if name in self.call_keywords or name in COMBINED_KEYWORDS:
                continue
            open_index = content.index("(", match.end("target"))
            close = scan_balanced(content, open_index, limit=min(end, open_index + 4000), quotes=self.string_quotes)
            arguments: List[str] = []
            if close != -1:
                arguments = [
                    arg if len(arg) <= 100 else arg[:97] + "..."
                    for arg in split_parameters(content[open_index + 1:close])
                ]
            before = content[max(0, match.start("target") - 2):match.start("target")]
            calls.append(
                CallInfo(
                    target=target,
                    line=lines.line_of(match.start("target")),
                    arguments=arguments,
                    is_await=self._is_await(content, match, close),
                    is_chained="." in target or "::" in target or before.rstrip().endswith("."),
                )
            )
        return calls

    def analyze_body(self, content: str, start: int, end: int, lines: LineIndex) -> BodyFacts:
        """Calls, usages, member accesses, raised types and complexity of one body."""
        raises: List[str] = []
        if self.raise_pattern is not None:
            for match in self.raise_pattern.finditer(content, start, end):
                if match.group(1) not in raises:
                    raises.append(match.group(1))
        return BodyFacts(
            calls=self.collect_calls(content, start, end, lines),
            usages=extract_variable_usages(content, start, end, lines),
            member_accesses=count_member_accesses(content, start, end),
            raises=raises,
            complexity=calculate_complexity(content[start:end], self.complexity_extras),
        )


class ParserRegistry:
    """Maps a language to the parser instance that handles it."""

    def __init__(self) -> None:
        self._parsers: Dict[Language, LanguageParser] = {}

    def register(self, parser: LanguageParser) -> None:
        for language in parser.languages:
            self._parsers[language] = parser

    def get(self, language: Language) -> Optional[LanguageParser]:
        return self._parsers.get(language)

    def languages(self) -> List[Language]:
        return sorted(self._parsers, key=lambda lang: lang.value)

    @classmethod
    def default(cls) -> "ParserRegistry":
        """Registry with the Python, TypeScript/JavaScript and Rust parsers."""
        from .parser_python import PythonParser
        from .parser_rust import RustParser
        from .parser_typescript import TypeScriptParser

        registry = cls()
        registry.register(TypeScriptParser())
        registry.register(RustParser())
        registry.register(PythonParser())
        return registry


_EXTRACTIONS = ("imports", "exports", "classes", "functions", "variables")


def parse_source(
    path: str,
    content: str,
    registry: Optional[ParserRegistry] = None,
    layer: Layer = Layer.DATA,
    language: Optional[Language] = None,
) -> FileInfo:
    """Extract the full fact set of one file.

    Unknown or unsupported languages give a ``FileInfo`` with empty facts.
    """
    registry = registry or ParserRegistry.default()
    language = language or detect_language(path)
    info = FileInfo(
        path=path,
        language=language,
        size=len(content.encode("utf-8", errors="replace")),
        line_count=count_lines(content),
        layer=layer,
    )

    parser = registry.get(language)
    if parser is None:
        logger.debug("No parser for %s (%s)", path, language.value)
        return info

    for kind in _EXTRACTIONS:
        operation = getattr(parser, f"extract_{kind}")
        try:
            setattr(info, kind, operation(content))
        except Exception as exc:
            logger.warning("Failed to extract %s from %s: %s", kind, path, exc)
    return info
