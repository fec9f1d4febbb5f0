from __future__ import annotations

from fastapi.testclient import TestClient

from tests.fixtures.sheet_sources.factory import XLSX_MIME, workbook_bytes


def test_download_returns_stored_workbook(client: TestClient) -> None:
    project_id = client.post("/projects", json={"project_name": "Alpha"}).json()["project"]["id"]
    content = workbook_bytes()
    client.post(f"/upload/{project_id}", files={"file": ("team.xlsx", content, XLSX_MIME)})

    response = client.get("/excel/team.xlsx")

    assert response.status_code == 200
    assert response.content == content
    assert response.headers["content-type"] == XLSX_MIME
    assert response.headers["content-disposition"].startswith("attachment")
    assert "team.xlsx" in response.headers["content-disposition"]
    assert response.headers["access-control-expose-headers"] == "Content-Disposition"


def test_download_missing_file_is_not_found(client: TestClient) -> None:
    response = client.get("/excel/missing.xlsx")

    assert response.status_code == 404
    assert response.json()["detail"] == "File not found"
