"""Graph export helpers for JSON and Graphviz DOT outputs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .models import AnalysisResult, CodeEdge, CodeNode, RelationType, SecurityReport, to_dict


def export_json(result: AnalysisResult, output_file: Path, report: Optional[SecurityReport] = None) -> None:
    """Write the analysis result, and the security report if given, as one JSON document."""
    payload = {"analysis": to_dict(result)}
    if report is not None:
        payload["security"] = to_dict(report)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def export_report_json(report: SecurityReport, output_file: Path) -> None:
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(json.dumps(to_dict(report), indent=2), encoding="utf-8")


def export_dot(
    nodes: Sequence[CodeNode],
    edges: Sequence[CodeEdge],
    output_file: Path,
    focus: str = "",
) -> None:
    by_id = {node.id: node for node in nodes}
    # ``contained_by`` only mirrors ``contains``
    visible = [e for e in edges if e.type != RelationType.CONTAINED_BY]

    selected = _focused_subgraph(by_id, visible, focus)

    lines = ["digraph CodeGraph {"]
    lines.append("  rankdir=LR;")

    for node_id in selected["nodes"]:
        node = by_id[node_id]
        label = f"{_esc(node.type.value)}\\n{_esc(node.full_path)}"
        lines.append(f'  "{_esc(node_id)}" [label="{label}"];')

    for edge in selected["edges"]:
        if edge.source not in by_id or edge.target not in by_id:
            continue
        lines.append(
            f'  "{_esc(edge.source)}" -> "{_esc(edge.target)}" [label="{_esc(edge.type.value)}"];'
        )

    lines.append("}")
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _focused_subgraph(nodes: Dict[str, CodeNode], edges: List[CodeEdge], focus: str) -> Dict[str, List]:
    """Nodes matching ``focus`` plus their direct neighbours; everything when nothing matches."""
    if not focus:
        return {"nodes": list(nodes), "edges": edges}

    focus_ids = {
        node_id
        for node_id, node in nodes.items()
        if focus in node_id or focus == node.name or focus in node.full_path
    }

    if not focus_ids:
        return {"nodes": list(nodes), "edges": edges}

    edge_subset = [e for e in edges if e.source in focus_ids or e.target in focus_ids]
    node_subset = set(focus_ids)
    for e in edge_subset:
        if e.source in nodes:
            node_subset.add(e.source)
        if e.target in nodes:
            node_subset.add(e.target)
    return {"nodes": sorted(node_subset), "edges": edge_subset}


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
