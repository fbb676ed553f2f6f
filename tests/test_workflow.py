import io
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook

sys.path.append(str(Path(__file__).resolve().parents[1]))

from backend.application import get_session_service, reset_session_state
from backend.core.settings import Settings


@pytest.fixture(autouse=True)
def reset_state():
    reset_session_state()
    yield
    reset_session_state()


@pytest.fixture()
def client():
    from backend.app import create_app

    app = create_app(Settings(max_upload_bytes=64 * 1024))
    with TestClient(app) as test_client:
        yield test_client


def _workbook_bytes(rows: list[list[object]]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


CATALOG_ROWS = [
    ["OAID", "Long Description", "Region", "REG Alias"],
    ["OA-100", "AC SPLIT 1 PK", "JAKARTA", "JKT"],
    ["OA-101", "AC SPLIT 2 PK", "JAKARTA", "JKT"],
    ["OA-103", "Cable Tray 3m", "JAKARTA", "JKT"],
    ["OA-200", "AC SPLIT 1 PK", "SURABAYA", "SBY"],
    [None, "orphan row", "JAKARTA", None],
]


def _matched_session(client: TestClient) -> str:
    session_id = client.post("/api/sessions").json()["session_id"]
    response = client.post(f"/api/sessions/{session_id}/sites", json={"text": "S1\nS2\n\nS3\nS4\n"})
    assert response.status_code == 200
    response = client.post(
        f"/api/sessions/{session_id}/caids",
        json={"text": "S1,C1\nS2,C2\nS3,C3\nS1,C9\n"},
    )
    assert response.status_code == 200
    return session_id


def _load_catalog(client: TestClient, session_id: str) -> None:
    response = client.post(
        f"/api/sessions/{session_id}/upload/catalog",
        files={
            "file": (
                "catalog.xlsx",
                _workbook_bytes(CATALOG_ROWS),
                "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            )
        },
    )
    assert response.status_code == 200
    assert response.json()["records"] == 4
    response = client.put(f"/api/sessions/{session_id}/regions", json={"regions": ["JAKARTA"]})
    assert response.status_code == 200


def test_root_and_unknown_session(client):
    assert client.get("/").json()["health"] == "/api/sessions"

    response = client.get("/api/sessions/session-99999")
    assert response.status_code == 404
    assert response.json()["error_code"] == "SESSION_NOT_FOUND"


def test_matching_and_duplication_flow(client):
    session_id = _matched_session(client)

    matches = client.get(f"/api/sessions/{session_id}/matches").json()
    assert [(item["site_id"], item["caid"], item["order"]) for item in matches["items"]] == [
        ("S1", "C1", 1),
        ("S2", "C2", 2),
        ("S3", "C3", 3),
    ]
    assert matches["summary"]["unmatched_site_ids"] == ["S4"]

    response = client.post(f"/api/sessions/{session_id}/pattern/duplicate", json={"count": 2})
    assert response.status_code == 200

    results = client.get(f"/api/sessions/{session_id}/results").json()
    assert len(results["items"]) == 6

    export = client.get(f"/api/sessions/{session_id}/export/csv")
    assert export.status_code == 200
    assert export.text.splitlines()[:3] == ["Order,SITE_ID,CAID", "1,S1,C1", "1,S1,C1"]
    assert "caid-site-matching-results.csv" in export.headers["content-disposition"]

    progress = client.get(f"/api/sessions/{session_id}/progress").json()
    assert [step["status"] for step in progress["steps"]] == ["completed"] * 5
    assert progress["overall"] == 1.0


def test_results_require_a_pattern(client):
    session_id = _matched_session(client)

    response = client.get(f"/api/sessions/{session_id}/results")
    assert response.status_code == 400
    assert response.json()["error_code"] == "INPUT_INCOMPLETE"

    progress = client.get(f"/api/sessions/{session_id}/progress").json()
    assert progress["next_step"] == "define_pattern"
    assert progress["steps"][4]["status"] == "blocked"


def test_direct_pattern_flow_and_exports(client):
    session_id = _matched_session(client)

    response = client.post(
        f"/api/sessions/{session_id}/pattern/direct",
        json={"items": [{"oaid": "O1", "quantity": 2}, {"oaid": ""}, {"oaid": "O2", "quantity": 1}], "reference_caid": "C1"},
    )
    assert response.status_code == 200
    assert response.json()["pattern"]["kind"] == "direct"

    results = client.get(f"/api/sessions/{session_id}/results").json()
    assert results["summary"]["rows"] == 6
    assert results["items"][1]["oaid"] == "O2"

    text = client.get(f"/api/sessions/{session_id}/export/clipboard").text
    assert text.splitlines()[0] == "S1\tC1\tO1\t2"

    xlsx = client.get(f"/api/sessions/{session_id}/export/xlsx")
    assert xlsx.headers["content-type"].startswith("application/vnd.openxmlformats")

    assert client.get(f"/api/sessions/{session_id}/export/pdf").status_code == 404

    empty = client.post(f"/api/sessions/{session_id}/pattern/direct", json={"items": [{"oaid": " "}]})
    assert empty.status_code == 400
    assert empty.json()["detail"] == "no pattern defined"


def test_referenced_pattern_flow(client):
    session_id = _matched_session(client)
    _load_catalog(client, session_id)

    regions = client.get(f"/api/sessions/{session_id}/catalog/regions").json()
    assert regions == {"available": ["JAKARTA", "SURABAYA"], "selected": ["JAKARTA"]}

    search = client.get(f"/api/sessions/{session_id}/catalog/search", params={"q": "ac split"}).json()
    assert [item["oaid"] for item in search["items"]] == ["OA-100", "OA-101"]

    slot = client.post(f"/api/sessions/{session_id}/pattern/referenced/search", json={"long_description": "cable"}).json()
    assert slot["status"] == "selected"
    assert slot["selected_oaid"] == "OA-103"

    ambiguous = client.post(
        f"/api/sessions/{session_id}/pattern/referenced",
        json={"reference_caid": "C1", "slots": [{"long_description": "ac split"}]},
    )
    assert ambiguous.status_code == 409
    assert ambiguous.json()["error_code"] == "AMBIGUOUS_MATCH"

    mixed = client.post(
        f"/api/sessions/{session_id}/pattern/referenced",
        json={"reference_caid": "C1", "slots": [{"long_description": "cable"}, {"long_description": "ac split"}]},
    )
    assert mixed.status_code == 200
    assert [item["oaid"] for item in mixed.json()["pattern"]["items"]] == ["OA-103"]

    response = client.post(
        f"/api/sessions/{session_id}/pattern/referenced",
        json={
            "reference_caid": "C1",
            "slots": [
                {"long_description": "ac split", "selected_oaid": "OA-101", "quantity": 3},
                {"long_description": "cable"},
            ],
        },
    )
    assert response.status_code == 200

    rows = client.get(f"/api/sessions/{session_id}/results").json()["items"]
    assert [(row["caid"], row["oaid"], row["quantity"]) for row in rows[:2]] == [("C1", "OA-101", 3), ("C1", "OA-103", 1)]
    assert len(rows) == 6

    missing_reference = client.post(
        f"/api/sessions/{session_id}/pattern/referenced",
        json={"reference_caid": "C42", "slots": [{"long_description": "cable"}]},
    )
    assert missing_reference.status_code == 404


def test_template_block_flow(client):
    session_id = _matched_session(client)
    _load_catalog(client, session_id)

    rack = client.post(
        f"/api/sessions/{session_id}/templates", json={"oaid": "O1", "long_description": "Rack", "quantity": 2}
    ).json()
    cable = client.post(f"/api/sessions/{session_id}/templates", json={"oaid": "O2", "long_description": "Cable"}).json()

    selection = client.post(f"/api/sessions/{session_id}/blocks/range", json={"start": "C2", "end": "C1"}).json()
    assert selection["selected"] == ["C1", "C2"]

    missing = client.post(f"/api/sessions/{session_id}/blocks/range", json={"start": "C1", "end": "C7"})
    assert missing.status_code == 404

    block = client.post(
        f"/api/sessions/{session_id}/blocks",
        json={"name": "North", "caids": selection["selected"], "template_ids": [cable["id"], rack["id"]]},
    )
    assert block.status_code == 200
    assert block.json()["id"] == "block-00001"

    conflict = client.post(
        f"/api/sessions/{session_id}/blocks",
        json={"name": "Again", "caids": ["C2"], "template_ids": [rack["id"]]},
    )
    assert conflict.status_code == 409
    assert conflict.json()["error_code"] == "CAID_ALREADY_ASSIGNED"

    assert client.get(f"/api/sessions/{session_id}/blocks/available").json()["items"] == ["C3"]

    finished = client.post(f"/api/sessions/{session_id}/pattern/blocks").json()
    assert finished["unassigned"] == 1

    client.put(
        f"/api/sessions/{session_id}/templates/{rack['id']}",
        json={"oaid": "O1B", "long_description": "Rack 42U", "quantity": 1},
    )
    results = client.get(f"/api/sessions/{session_id}/results").json()
    assert [(row["caid"], row["oaid"]) for row in results["items"]] == [
        ("C1", "O2"),
        ("C1", "O1B"),
        ("C2", "O2"),
        ("C2", "O1B"),
    ]
    assert results["summary"]["unassigned"] == 1
    assert results["summary"]["per_block"] == {"block-00001": 2}

    catalog_block = client.post(
        f"/api/sessions/{session_id}/blocks",
        json={"name": "South", "caids": ["C3"], "catalog_items": [{"oaid": "OA-103", "quantity": 5}]},
    ).json()
    assert catalog_block["oaid_pattern"][0]["long_description"] == "Cable Tray 3m"

    assert client.delete(f"/api/sessions/{session_id}/blocks/{catalog_block['id']}").status_code == 200
    assert client.delete(f"/api/sessions/{session_id}/templates/{cable['id']}").status_code == 200
    assert [item["id"] for item in client.get(f"/api/sessions/{session_id}/templates").json()["items"]] == [rack["id"]]


def test_caid_upload_from_workbook(client):
    session_id = client.post("/api/sessions").json()["session_id"]
    client.post(f"/api/sessions/{session_id}/sites", json={"text": "S1\nS2"})

    response = client.post(
        f"/api/sessions/{session_id}/upload/caids",
        files={"file": ("caids.xlsx", _workbook_bytes([["SITE_ID", "CAID"], ["S2", "C2"], ["S1", "C1"]]), "application/octet-stream")},
    )
    assert response.status_code == 200
    assert response.json()["records"] == 2

    matches = client.get(f"/api/sessions/{session_id}/matches").json()
    assert [item["caid"] for item in matches["items"]] == ["C1", "C2"]


def test_site_upload_from_text_file(client):
    session_id = client.post("/api/sessions").json()["session_id"]

    response = client.post(
        f"/api/sessions/{session_id}/upload/sites",
        files={"file": ("sites.txt", b"\xef\xbb\xbfS1\r\nS2\r\n", "text/plain")},
    )
    assert response.status_code == 200
    overview = client.get(f"/api/sessions/{session_id}").json()
    assert overview["sites"] == 2
    assert overview["uploads"][0]["status"] == "completed"


def test_upload_parse_failure_leaves_state_untouched(client):
    session_id = _matched_session(client)
    _load_catalog(client, session_id)
    service = get_session_service()

    broken = client.post(
        f"/api/sessions/{session_id}/upload/catalog",
        files={"file": ("catalog.csv", b"Name,Price\nfoo,1\n", "text/csv")},
    )
    assert broken.status_code == 422
    assert broken.json()["error_code"] == "PARSE_FAILURE"

    garbled = client.post(
        f"/api/sessions/{session_id}/upload/sites",
        files={"file": ("sites.txt", b"\xff\xfe\x00bad", "text/plain")},
    )
    assert garbled.status_code == 422

    unsupported = client.post(
        f"/api/sessions/{session_id}/upload/catalog",
        files={"file": ("catalog.pdf", b"%PDF", "application/pdf")},
    )
    assert unsupported.status_code == 422

    overview = service.get_overview(session_id)
    assert overview["catalog"] == 4
    assert overview["sites"] == 4
    assert overview["matched"] == 3
    statuses = [upload["status"] for upload in overview["uploads"]]
    assert statuses.count("failed") == 2


def test_upload_size_limit(client):
    session_id = client.post("/api/sessions").json()["session_id"]

    response = client.post(
        f"/api/sessions/{session_id}/upload/sites",
        files={"file": ("sites.txt", b"S1\n" * 40000, "text/plain")},
    )
    assert response.status_code == 413


def test_reupload_clears_blocks_and_pattern(client):
    session_id = _matched_session(client)
    client.post(f"/api/sessions/{session_id}/pattern/duplicate", json={"count": 1})
    template = client.post(f"/api/sessions/{session_id}/templates", json={"oaid": "O1", "long_description": "Rack"}).json()
    client.post(f"/api/sessions/{session_id}/blocks", json={"name": "A", "caids": ["C1"], "template_ids": [template["id"]]})

    client.post(f"/api/sessions/{session_id}/caids", json={"text": "S2,C2"})

    overview = client.get(f"/api/sessions/{session_id}").json()
    assert overview["blocks"] == 0
    assert overview["pattern"] is None
    assert overview["templates"] == 1
    assert overview["matched"] == 1


def test_catalog_and_workbook_keep_na_like_values(client):
    session_id = client.post("/api/sessions").json()["session_id"]

    catalog = client.post(
        f"/api/sessions/{session_id}/upload/catalog",
        files={
            "file": (
                "catalog.tsv",
                b"OAID\tLong Description\tRegion\nOA-1\tAC SPLIT 1 PK\tNA\nNULL\tCable\tJAKARTA\n\t\t\n",
                "text/tab-separated-values",
            )
        },
    )
    assert catalog.status_code == 200
    assert catalog.json()["records"] == 2
    assert client.get(f"/api/sessions/{session_id}/catalog/regions").json()["available"] == ["NA", "JAKARTA"]

    client.put(f"/api/sessions/{session_id}/regions", json={"regions": ["JAKARTA"]})
    search = client.get(f"/api/sessions/{session_id}/catalog/search", params={"q": "cable"}).json()
    assert [item["oaid"] for item in search["items"]] == ["NULL"]

    client.post(f"/api/sessions/{session_id}/sites", json={"text": "NA\nS2"})
    pairs = client.post(
        f"/api/sessions/{session_id}/upload/caids",
        files={"file": ("caids.xlsx", _workbook_bytes([["NA", "N/A"], ["S2", "None"]]), "application/octet-stream")},
    )
    assert pairs.status_code == 200
    matches = client.get(f"/api/sessions/{session_id}/matches").json()
    assert [(item["site_id"], item["caid"]) for item in matches["items"]] == [("NA", "N/A"), ("S2", "None")]


def test_changing_blocks_after_finishing_clears_the_pattern(client):
    session_id = _matched_session(client)
    template = client.post(f"/api/sessions/{session_id}/templates", json={"oaid": "O1", "long_description": "Rack"}).json()
    block = client.post(
        f"/api/sessions/{session_id}/blocks",
        json={"name": "North", "caids": ["C1"], "template_ids": [template["id"]]},
    ).json()
    client.post(f"/api/sessions/{session_id}/pattern/blocks")
    assert client.get(f"/api/sessions/{session_id}").json()["pattern"] == "blocks"

    assert client.delete(f"/api/sessions/{session_id}/blocks/{block['id']}").status_code == 200

    assert client.get(f"/api/sessions/{session_id}").json()["pattern"] is None
    progress = client.get(f"/api/sessions/{session_id}/progress").json()
    assert progress["next_step"] == "define_pattern"
    assert client.get(f"/api/sessions/{session_id}/results").status_code == 400
