"""
JSON and CSV export of visualization documents.
"""

import os
import sys

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

try:
    from pathlib import Path

    BASE_DIR = Path(__file__).resolve().parents[1]
except NameError:
    BASE_DIR = Path(os.getcwd()).parents[0]

sys.path.insert(0, str(BASE_DIR))

import csv
import io
import json

import pytest

from tests.helpers import gantt_payload, mind_map_payload, network_payload, timeline_payload
from viz_agent.export import CSV_COLUMNS, export_document, sanitize_cell
from viz_agent.utils.document import DocumentMetadata, VisualizationDocument, VisualizationKind
from viz_agent.utils.errors import InputValidationError


def _document(kind, payload, **fields):
    return VisualizationDocument(owner_id="user-1", kind=kind, payload=payload, **fields)


def _csv_rows(content: str):
    return list(csv.reader(io.StringIO(content)))


def test_json_export_without_metadata():
    document = _document(VisualizationKind.NETWORK_GRAPH, network_payload(), id="doc1")

    exported = export_document(document, "json")

    data = json.loads(exported["content"])
    assert data == {"kind": "network_graph", "payload": network_payload()}
    assert exported["mime_type"] == "application/json"
    assert exported["filename"] == "doc1.json"


def test_json_export_with_metadata():
    document = _document(
        VisualizationKind.TIMELINE,
        timeline_payload(),
        metadata=DocumentMetadata(original_input="Project history", model="gpt-4o-mini"),
    )

    data = json.loads(export_document(document, "JSON", include_metadata=True)["content"])

    assert data["metadata"]["original_input"] == "Project history"
    assert data["metadata"]["model"] == "gpt-4o-mini"


def test_csv_export_of_tree_lists_parents_and_depths():
    document = _document(VisualizationKind.MIND_MAP, mind_map_payload())

    rows = _csv_rows(export_document(document, "csv")["content"])

    assert rows[0] == CSV_COLUMNS[VisualizationKind.MIND_MAP]
    by_id = {row[0]: row for row in rows[1:]}
    assert by_id["root"][1:3] == ["", "1"]
    assert by_id["water"][1:3] == ["inputs", "3"]
    assert len(by_id) == 6


@pytest.mark.parametrize(
    "kind,factory,count",
    [
        (VisualizationKind.NETWORK_GRAPH, network_payload, 5),
        (VisualizationKind.TIMELINE, timeline_payload, 2),
        (VisualizationKind.GANTT_CHART, gantt_payload, 2),
    ],
)
def test_csv_export_has_one_row_per_item(kind, factory, count):
    rows = _csv_rows(export_document(_document(kind, factory()), "csv")["content"])

    assert rows[0] == CSV_COLUMNS[kind]
    assert len(rows) == count + 1


def test_csv_export_joins_gantt_dependencies():
    rows = _csv_rows(
        export_document(_document(VisualizationKind.GANTT_CHART, gantt_payload()), "csv")["content"]
    )

    assert rows[2][0] == "t2"
    assert rows[2][-1] == "t1"


def test_csv_cells_that_look_like_formulas_are_neutralised():
    payload = network_payload()
    payload["nodes"][0]["label"] = "=HYPERLINK(\"http://evil\")"

    rows = _csv_rows(
        export_document(_document(VisualizationKind.NETWORK_GRAPH, payload), "csv")["content"]
    )

    assert rows[1][1].startswith("'=")


def test_csv_cells_starting_with_tab_or_carriage_return_are_neutralised():
    payload = gantt_payload()
    payload["tasks"][0]["name"] = "\t=cmd|' /C calc'!A0"
    payload["tasks"][1]["name"] = "\r=1+1"

    rows = _csv_rows(
        export_document(_document(VisualizationKind.GANTT_CHART, payload), "csv")["content"]
    )

    assert rows[1][1] == "'\t=cmd|' /C calc'!A0"
    assert rows[2][1] == "'\r=1+1"


@pytest.mark.parametrize("value", ["=1+1", "+cmd", "-2", "@SUM(A1)", "\t=1+1", "\r=1+1"])
def test_sanitize_cell_prefixes_formula_starts(value):
    assert sanitize_cell(value) == "'" + value


def test_sanitize_cell_plain_values():
    assert sanitize_cell(None) == ""
    assert sanitize_cell(42) == "42"
    assert sanitize_cell("Sales") == "Sales"


def test_unknown_format_is_rejected():
    with pytest.raises(InputValidationError):
        export_document(_document(VisualizationKind.TIMELINE, timeline_payload()), "pdf")
