"""Typer-based CLI for polygraph static analysis."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional

import toml
import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .analyzer import CodebaseAnalyzer, SourceFile, collect_sources
from .config import CONFIG_FILE, AnalyzerConfig, load_settings
from .config_manager import default_config, init_config, load_full_config
from .graph_export import export_dot, export_json, export_report_json
from .models import AnalysisResult, CodeIssue, IssueSeverity, SecurityReport, Severity

console = Console()

app = typer.Typer(
    help="polygraph: multi-language code graph, quality issues and security scan.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Show or create the user configuration.")
app.add_typer(config_app, name="config")

_ISSUE_COLORS = {
    IssueSeverity.ERROR: "red",
    IssueSeverity.WARNING: "yellow",
    IssueSeverity.INFO: "cyan",
}

_SEVERITY_COLORS = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "cyan",
    Severity.INFO: "dim",
}

_MAX_ROWS = 20


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"polygraph v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    )
):
    """polygraph: analyze TypeScript, JavaScript, Python and Rust projects."""
    pass


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            stream=sys.stderr,
        )


def _load_config(project_path: Path, config_file: Optional[Path], workers: Optional[int] = None) -> AnalyzerConfig:
    try:
        settings = load_settings(project_root=project_path, config_path=config_file)
    except ValueError as exc:
        console.print(f"[red]✗[/red] Invalid configuration: {exc}")
        raise typer.Exit(code=1)
    if workers is not None:
        settings.max_workers = workers
    return settings


def _project_name_from_path(project_path: Path) -> str:
    return project_path.resolve().name.replace(" ", "_")


def _collect(project_path: Path, settings: AnalyzerConfig) -> List[SourceFile]:
    sources = collect_sources(project_path, settings.skip_dirs)
    if not sources:
        console.print(f"[yellow]No supported source files found in {project_path}[/yellow]")
    return sources


# ===================================================================
# Rendering
# ===================================================================

def _print_summary(result: AnalysisResult) -> None:
    stats = result.stats
    table = Table(title="Analysis Summary", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Files", str(stats.total_files))
    table.add_row("Lines", str(stats.total_lines))
    table.add_row("Nodes", str(stats.total_nodes))
    table.add_row("Edges", str(stats.total_edges))
    table.add_row("Types", str(stats.total_classes))
    table.add_row("Functions", str(stats.total_functions))
    table.add_row("Variables", str(stats.total_variables))
    table.add_row("Avg complexity", f"{stats.avg_complexity:.2f}")
    table.add_row("Max complexity", str(stats.max_complexity))
    table.add_row("Issues", str(len(result.issues)))
    console.print(table)

    if stats.by_language:
        languages = ", ".join(f"{lang}: {count}" for lang, count in sorted(stats.by_language.items()))
        console.print(f"Languages: {languages}")
    if result.architecture:
        best = result.architecture[0]
        console.print(
            f"Architecture: {best.pattern} ({best.confidence}%), "
            f"{len(best.violations)} layer violations"
        )
    if not result.meta.complete:
        console.print("[yellow]Analysis was cancelled; results are partial.[/yellow]")


def _print_issues(issues: List[CodeIssue]) -> None:
    if not issues:
        console.print("[green]✓[/green] No code issues found")
        return
    table = Table(title="Code Issues", show_header=True)
    table.add_column("Severity")
    table.add_column("Type", style="cyan")
    table.add_column("Location")
    table.add_column("Message")
    for issue in issues[:_MAX_ROWS]:
        color = _ISSUE_COLORS[issue.severity]
        table.add_row(
            f"[{color}]{issue.severity.value}[/{color}]",
            issue.type.value,
            f"{issue.location.file}:{issue.location.line}",
            issue.message,
        )
    console.print(table)
    if len(issues) > _MAX_ROWS:
        console.print(f"... and {len(issues) - _MAX_ROWS} more issues")


def _print_security(report: SecurityReport) -> None:
    summary = report.summary
    counts = ", ".join(f"{sev.value}: {summary.get(sev.value, 0)}" for sev in Severity)
    console.print(f"Security findings: {summary.get('total', 0)} ({counts})")
    if not report.vulnerabilities:
        return
    table = Table(title="Security Findings", show_header=True)
    table.add_column("Severity")
    table.add_column("Title", style="cyan")
    table.add_column("Location")
    table.add_column("CWE")
    for vuln in report.vulnerabilities[:_MAX_ROWS]:
        color = _SEVERITY_COLORS[vuln.severity]
        table.add_row(
            f"[{color}]{vuln.severity.value}[/{color}]",
            vuln.title,
            f"{vuln.location.file}:{vuln.location.line}",
            vuln.cwe or "",
        )
    console.print(table)
    if len(report.vulnerabilities) > _MAX_ROWS:
        console.print(f"... and {len(report.vulnerabilities) - _MAX_ROWS} more findings")


# ===================================================================
# Commands
# ===================================================================

@app.command("analyze")
def analyze(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the full result as JSON."),
    security: bool = typer.Option(True, "--security/--no-security", help="Also run the security scanner."),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Worker threads for per-file work."),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Use this config file only."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """Build the code graph and report quality issues."""
    _configure_logging(verbose)
    settings = _load_config(project_path, config_file, workers)
    sources = _collect(project_path, settings)

    analyzer = CodebaseAnalyzer(_project_name_from_path(project_path), str(project_path.resolve()), settings)
    result = analyzer.analyze(sources)
    report = analyzer.scan_security(sources) if security and settings.security_enabled else None

    _print_summary(result)
    _print_issues(result.issues)
    if report is not None:
        _print_security(report)

    if output is not None:
        export_json(result, output, report)
        console.print(f"Results written to {output}")


@app.command("scan")
def scan(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write findings as JSON."),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Use this config file only."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """Scan source files for secrets and injection patterns."""
    _configure_logging(verbose)
    settings = _load_config(project_path, config_file)
    sources = _collect(project_path, settings)

    analyzer = CodebaseAnalyzer(_project_name_from_path(project_path), str(project_path.resolve()), settings)
    report = analyzer.scan_security(sources)
    _print_security(report)

    if output is not None:
        export_report_json(report, output)
        console.print(f"Findings written to {output}")


@app.command("export")
def export(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    fmt: str = typer.Option("json", "--format", "-f", help="Export format: json or dot."),
    output: Path = typer.Option(..., "--output", "-o", help="Output file path."),
    focus: str = typer.Option("", "--focus", help="Only export nodes matching this name and their neighbours."),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Use this config file only."),
):
    """Export the code graph as JSON or Graphviz DOT."""
    fmt = fmt.lower()
    if fmt not in {"json", "dot"}:
        raise typer.BadParameter("Format must be one of: json, dot")

    settings = _load_config(project_path, config_file)
    sources = _collect(project_path, settings)
    analyzer = CodebaseAnalyzer(_project_name_from_path(project_path), str(project_path.resolve()), settings)
    result = analyzer.analyze(sources)

    if fmt == "json":
        export_json(result, output)
    else:
        export_dot(result.nodes, result.edges, output, focus=focus)
    typer.echo(f"Exported graph to {output}")


@config_app.command("show")
def config_show(
    path: Optional[Path] = typer.Option(None, "--path", help="Config file to show (default: user config)."),
):
    """Print the configuration, falling back to built-in defaults."""
    path = path or CONFIG_FILE
    data = load_full_config(path)
    if not data:
        console.print(f"[dim]No config at {path}; showing defaults[/dim]")
        data = default_config()
    typer.echo(toml.dumps(data))


@config_app.command("init")
def config_init(
    path: Optional[Path] = typer.Option(None, "--path", help="Where to write the config (default: user config)."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
):
    """Write a config file with the built-in defaults."""
    try:
        written = init_config(path, overwrite=force)
    except FileExistsError as exc:
        console.print(f"[red]✗[/red] {exc}. Use --force to overwrite.")
        raise typer.Exit(code=1)
    typer.echo(f"Wrote default config to {written}")


if __name__ == "__main__":
    app()
