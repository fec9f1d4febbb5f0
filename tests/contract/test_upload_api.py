from __future__ import annotations

import json
from pathlib import Path

from fastapi.testclient import TestClient

from sheetstore.api.router import create_app
from sheetstore.utils.config import UploadConfig
from tests.fixtures.sheet_sources.factory import XLSX_MIME, csv_bytes, workbook_bytes


def _create_project(client: TestClient, name: str = "Alpha") -> int:
    return client.post("/projects", json={"project_name": name}).json()["project"]["id"]


def test_upload_workbook_succeeds(client: TestClient, upload_config: UploadConfig) -> None:
    project_id = _create_project(client)

    response = client.post(
        f"/upload/{project_id}",
        files={"file": ("team.xlsx", workbook_bytes(), XLSX_MIME)},
    )

    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["message"] == "File uploaded and data inserted successfully"
    assert payload["file_name"] == "team.xlsx"
    assert [sheet["inserted_rows"] for sheet in payload["sheets"]] == [3, 2]
    assert (upload_config.storage_root / "team.xlsx").exists()
    assert client.get("/projects").json()[0]["file_name"] == "team.xlsx"


def test_upload_csv(client: TestClient) -> None:
    project_id = _create_project(client)

    response = client.post(
        f"/upload/{project_id}",
        files={"file": ("budget.csv", csv_bytes(), "text/csv")},
    )

    assert response.status_code == 200, response.text
    assert [sheet["sheet_name"] for sheet in response.json()["sheets"]] == ["Sheet1"]


def test_upload_without_file_is_bad_request(client: TestClient) -> None:
    project_id = _create_project(client)

    response = client.post(f"/upload/{project_id}")

    assert response.status_code == 400
    assert response.json()["detail"] == "No file uploaded"


def test_upload_without_project_is_bad_request(client: TestClient) -> None:
    response = client.post("/upload", files={"file": ("team.xlsx", workbook_bytes(), XLSX_MIME)})

    assert response.status_code == 400
    assert response.json()["detail"] == "Project ID is required"


def test_upload_to_unknown_project_is_bad_request(client: TestClient) -> None:
    response = client.post("/upload/999", files={"file": ("team.xlsx", workbook_bytes(), XLSX_MIME)})

    assert response.status_code == 400
    assert client.get("/sheets").json() == []


def test_upload_unsupported_type_is_bad_request(client: TestClient) -> None:
    project_id = _create_project(client)

    response = client.post(
        f"/upload/{project_id}",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )

    assert response.status_code == 400
    assert "Unsupported file type" in response.json()["detail"]


def test_upload_over_size_limit_is_rejected(tmp_path: Path, temp_data_root: Path, database_url: str) -> None:
    small = UploadConfig(storage_root=tmp_path / "small", max_bytes=64, allowed_types=("xlsx",))
    client = TestClient(create_app(database_url=database_url, upload_config=small))
    project_id = _create_project(client)

    response = client.post(
        f"/upload/{project_id}",
        files={"file": ("team.xlsx", workbook_bytes(), XLSX_MIME)},
    )

    assert response.status_code == 413
    assert response.json()["detail"].startswith("File too large")
    assert not (small.storage_root / "team.xlsx").exists()


def test_malformed_workbook_is_internal_error(client: TestClient) -> None:
    project_id = _create_project(client)

    response = client.post(
        f"/upload/{project_id}",
        files={"file": ("broken.xlsx", b"this is not a workbook", XLSX_MIME)},
    )

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal Server Error"}
    assert client.get("/sheets").json() == []


def test_upload_outcomes_are_audited(client: TestClient, temp_data_root: Path) -> None:
    project_id = _create_project(client)
    client.post(f"/upload/{project_id}", files={"file": ("team.xlsx", workbook_bytes(), XLSX_MIME)})
    client.post("/upload/999", files={"file": ("team.xlsx", workbook_bytes(), XLSX_MIME)})

    lines = (temp_data_root / "logs" / "audit.log").read_text(encoding="utf-8").splitlines()
    entries = [json.loads(line) for line in lines]
    uploads = [entry for entry in entries if entry["action"] == "workbook.upload"]

    assert [entry["outcome"] for entry in uploads] == ["success", "failure"]
    assert uploads[0]["file"] == "team.xlsx"
    assert any(entry["action"] == "project.create" for entry in entries)
