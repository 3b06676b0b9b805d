"""Export a visualization document as JSON or CSV."""

import csv
import io
import json
from typing import Any, Dict, Iterable, List

from api.utils.debug import print__pipeline_debug
from viz_agent.utils.document import VisualizationDocument, VisualizationKind
from viz_agent.utils.errors import InputValidationError
from viz_agent.utils.schemas import iter_tree

EXPORT_FORMATS = ("json", "csv")
FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")

CSV_COLUMNS = {
    VisualizationKind.NETWORK_GRAPH: ["id", "label", "category", "description"],
    VisualizationKind.MIND_MAP: ["id", "parent_id", "depth", "content"],
    VisualizationKind.TREE_DIAGRAM: ["id", "parent_id", "depth", "content"],
    VisualizationKind.TIMELINE: ["id", "content", "start", "end", "group", "type"],
    VisualizationKind.GANTT_CHART: ["id", "name", "start", "end", "progress", "dependencies"],
}


def sanitize_cell(value: Any) -> str:
    """Stringify a cell and neutralise spreadsheet formulas."""
    if value is None:
        return ""
    text = str(value)
    if text.startswith(FORMULA_PREFIXES):
        return "'" + text
    return text


def _rows(kind: VisualizationKind, payload: Dict[str, Any]) -> Iterable[List[Any]]:
    if kind == VisualizationKind.NETWORK_GRAPH:
        for node in payload["nodes"]:
            yield [node["id"], node["label"], node.get("category"), node.get("description")]
    elif kind in (VisualizationKind.MIND_MAP, VisualizationKind.TREE_DIAGRAM):
        for node, depth, parent_id in iter_tree(payload["root"]):
            yield [node["id"], parent_id, depth, node["content"]]
    elif kind == VisualizationKind.TIMELINE:
        for item in payload["items"]:
            yield [
                item["id"],
                item["content"],
                item["start"],
                item.get("end"),
                item.get("group"),
                item["type"],
            ]
    else:
        for task in payload["tasks"]:
            yield [
                task["id"],
                task["name"],
                task["start"],
                task["end"],
                task["progress"],
                ";".join(task.get("dependencies", [])),
            ]


def export_as_json(document: VisualizationDocument, include_metadata: bool = False) -> str:
    data: Dict[str, Any] = {"kind": document.kind.value, "payload": document.payload}
    if include_metadata:
        data["metadata"] = document.metadata.model_dump(mode="json")
    return json.dumps(data, indent=2, ensure_ascii=False)


def export_as_csv(document: VisualizationDocument) -> str:
    kind = document.kind
    if kind not in CSV_COLUMNS:
        raise InputValidationError(f"CSV export is not supported for {kind}")
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS[kind])
    for row in _rows(kind, document.payload):
        writer.writerow([sanitize_cell(cell) for cell in row])
    return buffer.getvalue()


def export_document(
    document: VisualizationDocument, export_format: str, include_metadata: bool = False
) -> Dict[str, str]:
    """Return ``{format, content, mime_type, filename}`` for the requested format."""
    export_format = (export_format or "").lower()
    if export_format not in EXPORT_FORMATS:
        raise InputValidationError(f"unsupported export format '{export_format}'")

    if export_format == "json":
        content, mime_type = export_as_json(document, include_metadata), "application/json"
    else:
        content, mime_type = export_as_csv(document), "text/csv"

    stem = document.id or "visualization"
    print__pipeline_debug(f"📤 EXPORT: {document.kind.value} as {export_format}")
    return {
        "format": export_format,
        "content": content,
        "mime_type": mime_type,
        "filename": f"{stem}.{export_format}",
    }
