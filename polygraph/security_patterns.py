"""Fixed detection tables for the security scanner.

Everything here is data: taint sources, dangerous sinks, sanitizers, named
secret patterns and vulnerability regex groups. Patterns are kept as strings
and compiled by the scanner so a broken entry only disables itself.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .models import Severity

# ===================================================================
# Taint sources: expression -> source kind
# ===================================================================

TAINT_SOURCES: Dict[str, str] = {
    # Express / Koa / Fastify
    "req.body": "request.body",
    "req.query": "request.query",
    "req.params": "request.params",
    "req.headers": "request.headers",
    "request.body": "request.body",
    "request.query": "request.query",
    "request.params": "request.params",
    "request.headers": "request.headers",
    "ctx.request.body": "request.body",
    "ctx.query": "request.query",
    "ctx.params": "request.params",
    # Process
    "process.argv": "process.argv",
    "process.env": "env",
    "Bun.argv": "process.argv",
    "Bun.env": "env",
    "Deno.args": "process.argv",
    "Deno.env": "env",
    # Flask / Django
    "request.args": "request.query",
    "request.form": "request.body",
    "request.json": "request.body",
    "request.data": "request.body",
    "request.files": "request.body",
    "request.GET": "request.query",
    "request.POST": "request.body",
    "sys.argv": "process.argv",
    "os.environ": "env",
    "input()": "stdin",
    "sys.stdin": "stdin",
    # Rust
    "std::env::args": "process.argv",
    "env::args": "process.argv",
    "std::env::var": "env",
    "std::io::stdin": "stdin",
    "io::stdin": "stdin",
}

# ===================================================================
# Dangerous sinks: call or property -> sink kind
# ===================================================================

DANGEROUS_SINKS: Dict[str, str] = {
    # SQL
    "execute": "sql_query",
    "query": "sql_query",
    "raw": "sql_query",
    "rawQuery": "sql_query",
    "sequelize.query": "sql_query",
    "knex.raw": "sql_query",
    "prisma.$queryRaw": "sql_query",
    "prisma.$executeRaw": "sql_query",
    "cursor.execute": "sql_query",
    "sqlx::query": "sql_query",
    # Commands
    "exec": "command_exec",
    "execSync": "command_exec",
    "spawn": "command_exec",
    "spawnSync": "command_exec",
    "subprocess.run": "command_exec",
    "subprocess.Popen": "command_exec",
    "subprocess.call": "command_exec",
    "os.system": "command_exec",
    "os.popen": "command_exec",
    "Command::new": "command_exec",
    # Files
    "readFile": "file_operation",
    "writeFile": "file_operation",
    "readFileSync": "file_operation",
    "writeFileSync": "file_operation",
    "open": "file_operation",
    "fs.unlink": "file_operation",
    "fs.rmdir": "file_operation",
    "os.remove": "file_operation",
    "shutil.rmtree": "file_operation",
    "File::open": "file_operation",
    # HTML
    "innerHTML": "html_injection",
    "outerHTML": "html_injection",
    "document.write": "html_injection",
    "dangerouslySetInnerHTML": "html_injection",
    "render_template_string": "html_injection",
    "Markup": "html_injection",
    # Outbound requests
    "fetch": "url_fetch",
    "axios": "url_fetch",
    "http.request": "url_fetch",
    "https.request": "url_fetch",
    "urllib.request.urlopen": "url_fetch",
    "requests.get": "url_fetch",
    "requests.post": "url_fetch",
    "httpx.get": "url_fetch",
    "reqwest::get": "url_fetch",
    # Code evaluation
    "eval": "eval",
    "Function": "eval",
    "setTimeout": "eval",
    "setInterval": "eval",
    "compile": "eval",
    # Deserialization
    "pickle.loads": "deserialization",
    "yaml.load": "deserialization",
    "yaml.unsafe_load": "deserialization",
    "unserialize": "deserialization",
}

# Sink kind -> sanitizer class that neutralizes it ("general" always applies)
SINK_SANITIZER_CLASS: Dict[str, Optional[str]] = {
    "sql_query": "sql",
    "command_exec": "command",
    "file_operation": "path",
    "html_injection": "html",
    "url_fetch": "url",
    "eval": None,
    "deserialization": None,
}

SANITIZATION_METHODS: Dict[str, str] = {
    # SQL
    "escape": "sql",
    "escapeId": "sql",
    "prepare": "sql",
    "parameterize": "sql",
    "quote": "sql",
    "sanitize_sql": "sql",
    # HTML
    "escapeHtml": "html",
    "sanitize": "html",
    "DOMPurify.sanitize": "html",
    "xss": "html",
    "encode": "html",
    "htmlEscape": "html",
    "bleach.clean": "html",
    "html_escape": "html",
    "html.escape": "html",
    # URL
    "encodeURIComponent": "url",
    "encodeURI": "url",
    "url_encode": "url",
    "quote_plus": "url",
    # Path
    "path.normalize": "path",
    "path.resolve": "path",
    "path.basename": "path",
    "os.path.basename": "path",
    "realpath": "path",
    "basename": "path",
    "secure_filename": "path",
    # Command
    "shellescape": "command",
    "shlex.quote": "command",
    # General
    "validate": "general",
    "parseInt": "general",
    "parseFloat": "general",
    "Number": "general",
    "int": "general",
}

# Sink kind -> (category, title, cwe, owasp, severity)
TAINT_FINDINGS: Dict[str, Tuple[str, str, str, str, Severity]] = {
    "sql_query": ("injection", "SQL Injection", "CWE-89", "A03:2021", Severity.CRITICAL),
    "command_exec": ("command_injection", "Command Injection", "CWE-78", "A03:2021", Severity.CRITICAL),
    "file_operation": ("path_traversal", "Path Traversal", "CWE-22", "A01:2021", Severity.HIGH),
    "html_injection": ("xss", "XSS", "CWE-79", "A03:2021", Severity.HIGH),
    "url_fetch": ("ssrf", "Server-Side Request Forgery", "CWE-918", "A10:2021", Severity.HIGH),
    "eval": ("code_injection", "Code Injection", "CWE-95", "A03:2021", Severity.CRITICAL),
    "deserialization": ("deserialization", "Insecure Deserialization", "CWE-502", "A08:2021", Severity.HIGH),
}

# ===================================================================
# Secrets
# ===================================================================


@dataclass(frozen=True)
class SecretPattern:
    name: str
    pattern: str
    severity: Severity


SECRET_PATTERNS: List[SecretPattern] = [
    # Cloud and platform keys
    SecretPattern("AWS Access Key", r"(?:AKIA|ABIA|ACCA)[A-Z0-9]{16}", Severity.CRITICAL),
    SecretPattern(
        "AWS Secret Key",
        r"(?i)aws[_-]?secret[_-]?access[_-]?key\s*[=:]\s*['\"][A-Za-z0-9/+=]{40}['\"]",
        Severity.CRITICAL,
    ),
    SecretPattern("Google API Key", r"AIza[0-9A-Za-z_-]{35}", Severity.HIGH),
    SecretPattern("GitHub Token", r"gh[pousr]_[A-Za-z0-9_]{36,}", Severity.CRITICAL),
    SecretPattern("GitLab Token", r"glpat-[A-Za-z0-9_-]{20,}", Severity.CRITICAL),
    SecretPattern("Slack Token", r"xox[baprs]-[0-9A-Za-z-]{24,}", Severity.HIGH),
    SecretPattern("Stripe Key", r"sk_live_[0-9a-zA-Z]{24,}", Severity.CRITICAL),
    SecretPattern("Stripe Publishable Key", r"pk_live_[0-9a-zA-Z]{24,}", Severity.MEDIUM),
    SecretPattern("Anthropic API Key", r"sk-ant-[a-zA-Z0-9_-]{40,}", Severity.CRITICAL),
    SecretPattern("OpenAI API Key", r"sk-[a-zA-Z0-9]{48}", Severity.CRITICAL),
    # Generic assignments
    SecretPattern("Generic API Key", r"(?i)api[_-]?key\s*[=:]\s*['\"][A-Za-z0-9_-]{20,}['\"]", Severity.HIGH),
    SecretPattern("Generic Secret", r"(?i)secret[_-]?key?\s*[=:]\s*['\"][A-Za-z0-9_-]{20,}['\"]", Severity.HIGH),
    SecretPattern("Generic Token", r"(?i)token\s*[=:]\s*['\"][A-Za-z0-9_.-]{20,}['\"]", Severity.HIGH),
    SecretPattern("Password in Code", r"(?i)password\s*[=:]\s*['\"][^'\"]{8,}['\"]", Severity.HIGH),
    SecretPattern(
        "Private Key",
        r"-----BEGIN\s+(?:RSA\s+|DSA\s+|EC\s+|OPENSSH\s+)?PRIVATE\s+KEY-----",
        Severity.CRITICAL,
    ),
    SecretPattern("JWT Token", r"eyJ[A-Za-z0-9_-]*\.eyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*", Severity.HIGH),
    # Connection strings with embedded credentials
    SecretPattern("MongoDB URI", r"mongodb(?:\+srv)?://[^:\s'\"]+:[^@\s'\"]+@[^\s'\"]+", Severity.CRITICAL),
    SecretPattern("PostgreSQL URI", r"postgres(?:ql)?://[^:\s'\"]+:[^@\s'\"]+@[^\s'\"]+", Severity.CRITICAL),
    SecretPattern("MySQL URI", r"mysql://[^:\s'\"]+:[^@\s'\"]+@[^\s'\"]+", Severity.CRITICAL),
    SecretPattern("Redis URI", r"redis://[^:\s'\"]*:[^@\s'\"]+@[^\s'\"]+", Severity.HIGH),
]

# Values that are obviously not real credentials
PLACEHOLDER_PATTERN = re.compile(
    r"(?i)(?:your[_-]|example|placeholder|changeme|change[_-]me|dummy|sample|xxxx|\*{3,}"
    r"|<[^>]*>|\$\{[^}]*\}|\{\{[^}]*\}\})"
)

# Lines that read a secret from the environment instead of embedding it
ENV_REFERENCE_PATTERN = re.compile(
    r"process\.env|os\.environ|os\.getenv|getenv\(|env::var|import\.meta\.env|Deno\.env|Bun\.env"
)

ENTROPY_MIN_LENGTH = 16
STRING_LITERAL_PATTERN = re.compile(r"\"([^\"\\\n]{16,})\"|'([^'\\\n]{16,})'|`([^`\\$\n]{16,})`")

SECRET_CATEGORY = "secrets"
SECRET_CWE = "CWE-798"
SECRET_OWASP = "A07:2021"

# ===================================================================
# Vulnerability groups
# ===================================================================


@dataclass(frozen=True)
class VulnerabilityPattern:
    name: str
    category: str
    severity: Severity
    patterns: List[str] = field(default_factory=list)
    cwe: Optional[str] = None
    owasp: Optional[str] = None
    description: str = ""


VULNERABILITY_PATTERNS: List[VulnerabilityPattern] = [
    VulnerabilityPattern(
        name="SQL Injection",
        category="injection",
        severity=Severity.CRITICAL,
        patterns=[
            r"(?i)query\s*\(\s*`[^`]*\$\{",
            r"(?i)query\s*\(\s*['\"][^'\"]*['\"]\s*\+",
            r"(?i)execute\s*\(\s*['\"].*['\"]\s*(?:\+|%)",
            r"(?i)execute\s*\(\s*f['\"]",
            r"(?i)\.raw\s*\(\s*`[^`]*\$\{",
            r"(?i)execute\s*\(\s*['\"][^'\"]*['\"]\s*\.\s*format\s*\(",
        ],
        cwe="CWE-89",
        owasp="A03:2021",
        description="SQL text is built from dynamic values instead of bound parameters",
    ),
    VulnerabilityPattern(
        name="Command Injection",
        category="command_injection",
        severity=Severity.CRITICAL,
        patterns=[
            r"(?i)exec(?:Sync)?\s*\(\s*`[^`]*\$\{",
            r"(?i)exec(?:Sync)?\s*\(\s*['\"][^'\"]*['\"]\s*\+",
            r"(?i)spawn\s*\(\s*[^,]+,\s*\[.*\$\{",
            r"(?i)os\.system\s*\(\s*f?['\"][^'\"]*(?:\{|['\"]\s*\+)",
            r"(?i)subprocess\.\w+\s*\(.*shell\s*=\s*True",
        ],
        cwe="CWE-78",
        owasp="A03:2021",
        description="A shell command is assembled from dynamic values",
    ),
    VulnerabilityPattern(
        name="XSS",
        category="xss",
        severity=Severity.HIGH,
        patterns=[
            r"(?i)innerHTML\s*=\s*[^;]*\$\{",
            r"(?i)innerHTML\s*=\s*[^;=]*\+",
            r"dangerouslySetInnerHTML\s*=\s*\{\s*\{",
            r"v-html\s*=\s*['\"]",
            r"(?i)document\.write\s*\([^)]*\+",
        ],
        cwe="CWE-79",
        owasp="A03:2021",
        description="Markup is written into the page without escaping",
    ),
    VulnerabilityPattern(
        name="Path Traversal",
        category="path_traversal",
        severity=Severity.HIGH,
        patterns=[
            r"readFile(?:Sync)?\s*\([^)]*\$\{",
            r"readFile(?:Sync)?\s*\([^)]*\+",
            r"path\.join\s*\([^)]*req\.",
            r"\bopen\s*\(\s*f['\"][^'\"]*\{",
        ],
        cwe="CWE-22",
        owasp="A01:2021",
        description="A file path is built from dynamic values",
    ),
    VulnerabilityPattern(
        name="Insecure Deserialization",
        category="deserialization",
        severity=Severity.HIGH,
        patterns=[
            r"pickle\.loads?\s*\(",
            r"yaml\.load\s*\((?![^)]*Loader\s*=\s*(?:yaml\.)?SafeLoader)[^)]*\)",
            r"yaml\.unsafe_load",
            r"unserialize\s*\(\s*\$",
        ],
        cwe="CWE-502",
        owasp="A08:2021",
        description="Untrusted data may be deserialized into live objects",
    ),
    VulnerabilityPattern(
        name="Hardcoded Credentials",
        category=SECRET_CATEGORY,
        severity=Severity.HIGH,
        patterns=[
            r"(?i)password\s*[=:]\s*['\"][^'\"]{4,}['\"]",
            r"(?i)secret\s*[=:]\s*['\"][^'\"]{8,}['\"]",
            r"(?i)api[_-]?key\s*[=:]\s*['\"][^'\"]{16,}['\"]",
        ],
        cwe=SECRET_CWE,
        owasp=SECRET_OWASP,
        description="A credential is embedded in source code",
    ),
    VulnerabilityPattern(
        name="Weak Cryptography",
        category="crypto",
        severity=Severity.MEDIUM,
        patterns=[
            r"(?i)createHash\s*\(\s*['\"]md5['\"]\s*\)",
            r"(?i)createHash\s*\(\s*['\"]sha1['\"]\s*\)",
            r"\b(?:DES|3DES|TripleDES|RC4|RC2)\b",
            r"(?i)hashlib\.(?:md5|sha1)\b",
            r"(?i)\bMd5::new\b|\bSha1::new\b",
        ],
        cwe="CWE-327",
        owasp="A02:2021",
        description="A broken or weak cryptographic algorithm is used",
    ),
]

RECOMMENDATIONS: Dict[str, str] = {
    "injection": "Use parameterized queries with placeholders instead of string building",
    "command_injection": "Pass arguments as a list and never enable shell interpretation of user input",
    "xss": "Escape output or use a sanitizer such as DOMPurify before inserting markup",
    "path_traversal": "Normalize the path and verify it stays inside the allowed base directory",
    "deserialization": "Use safe loaders (yaml.safe_load, JSON) for untrusted input",
    "secrets": "Move the credential to an environment variable or a secret manager and rotate it",
    "crypto": "Use SHA-256 or stronger hashes and modern ciphers such as AES-GCM",
    "ssrf": "Validate outbound URLs against an allow-list",
    "code_injection": "Never evaluate strings built from external input",
}

# ===================================================================
# File classification
# ===================================================================

TEST_FILE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"(?:^|[/\\])tests?[/\\]",
        r"(?:^|[/\\])__tests__[/\\]",
        r"(?:^|[/\\])specs?[/\\]",
        r"(?:^|[/\\])testing[/\\]",
        r"(?:^|[/\\])mocks?[/\\]",
        r"(?:^|[/\\])fixtures?[/\\]",
        r"\.test\.[jt]sx?$",
        r"\.spec\.[jt]sx?$",
        r"_test\.[jt]sx?$",
        r"_spec\.[jt]sx?$",
        r"(?:^|[/\\])test_[^/\\]+\.py$",
        r"_test\.py$",
        r"_test\.rs$",
    )
]

EXAMPLE_FILE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"(?:^|[/\\])examples?[/\\]",
        r"(?:^|[/\\])samples?[/\\]",
        r"(?:^|[/\\])demos?[/\\]",
        r"(?:^|[/\\])docs?[/\\]",
        r"\.example\.",
        r"\.sample\.",
    )
]

GENERATED_FILE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"(?:^|[/\\])node_modules[/\\]",
        r"(?:^|[/\\])dist[/\\]",
        r"(?:^|[/\\])build[/\\]",
        r"(?:^|[/\\])target[/\\]",
        r"(?:^|[/\\])vendor[/\\]",
        r"(?:^|[/\\])\.next[/\\]",
        r"\.min\.(?:js|css)$",
        r"\.bundle\.",
        r"\.generated\.",
        r"\.g\.[jt]s$",
        r"\.pb\.[jt]s$",
        r"_pb2\.py$",
    )
]


def is_test_file(path: str) -> bool:
    return any(p.search(path) for p in TEST_FILE_PATTERNS)


def is_example_file(path: str) -> bool:
    return any(p.search(path) for p in EXAMPLE_FILE_PATTERNS)


def is_generated_file(path: str) -> bool:
    return any(p.search(path) for p in GENERATED_FILE_PATTERNS)


def is_low_risk_file(path: str) -> bool:
    """Test, example and generated files get findings one level lower."""
    return is_test_file(path) or is_example_file(path) or is_generated_file(path)
