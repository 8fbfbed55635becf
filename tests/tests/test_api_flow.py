"""
Test API Flow
Tests the Face: Integration via FastAPI endpoints.
"""
from unittest.mock import patch

import pytest

from attempt_engine import main
from attempt_engine.errors import CatalogUnavailable
from attempt_engine.main import app, get_catalog, get_writing_evaluator
from attempt_engine.services.catalog import InMemoryCatalog

from conftest import OTHER_USER_ID


def _start(client, headers, template_id="tpl-full"):
    return client.post("/api/attempts", json={"testTemplateId": template_id}, headers=headers)


def test_health_endpoint(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_root_endpoint(client):
    """Test that root endpoint serves JSON info."""
    response = client.get("/")
    assert response.status_code == 200
    assert "application/json" in response.headers.get("content-type", "")
    assert "message" in response.json()


def test_identity_header_required(client):
    response = client.post("/api/attempts", json={"testTemplateId": "tpl-full"})
    assert response.status_code == 401


def test_start_then_resume(client, auth_headers):
    first = _start(client, auth_headers)
    assert first.status_code == 201
    body = first.json()
    assert body["status"] == "in_progress"
    assert body["testTemplate"] == "tpl-full"
    assert body["overallStats"]["totalQuestions"] == 8
    assert [s["name"] for s in body["sections"]] == ["Quantitative Reasoning", "Verbal Reasoning", "Data Insights"]

    second = _start(client, auth_headers)
    assert second.status_code == 200
    assert second.json()["id"] == body["id"]


def test_start_unknown_template(client, auth_headers):
    response = _start(client, auth_headers, "tpl-nope")
    assert response.status_code == 404
    assert response.json()["detail"] == "Test not found or inactive"


def test_start_requires_template_id(client, auth_headers):
    response = client.post("/api/attempts", json={"testTemplateId": ""}, headers=auth_headers)
    assert response.status_code == 422


def test_catalog_outage_is_503(client, auth_headers):
    class DownCatalog(InMemoryCatalog):
        def get_template(self, template_id):
            raise CatalogUnavailable("Catalog unavailable: timed out")

    app.dependency_overrides[get_catalog] = lambda: DownCatalog()
    response = _start(client, auth_headers)
    assert response.status_code == 503


def test_module_order(client, auth_headers):
    attempt_id = _start(client, auth_headers).json()["id"]

    bad = client.post(f"/api/attempts/{attempt_id}/module-order", json={"moduleOrder": [0, 0, 1]}, headers=auth_headers)
    assert bad.status_code == 400
    assert client.get(f"/api/attempts/{attempt_id}", headers=auth_headers).json()["attempt"]["gmatMeta"] is None

    good = client.post(f"/api/attempts/{attempt_id}/module-order", json={"moduleOrder": [2, 0, 1]}, headers=auth_headers)
    assert good.status_code == 200
    body = good.json()
    assert body["gmatMeta"]["orderChosen"] is True
    assert body["gmatMeta"]["moduleOrder"] == [2, 0, 1]
    assert body["gmatMeta"]["phase"] == "section_instructions"
    assert [s["name"] for s in body["sections"]] == ["Data Insights", "Quantitative Reasoning", "Verbal Reasoning"]


@pytest.mark.parametrize("payload", [
    {}, {"moduleOrder": []}, {"moduleOrder": ["a", 1, 2]}, {"moduleOrder": [0, 1, 7]},
    {"moduleOrder": "0,1,2"}, {"moduleOrder": {}}, {"moduleOrder": 2},
])
def test_module_order_invalid_payloads(client, auth_headers, payload):
    attempt_id = _start(client, auth_headers).json()["id"]
    response = client.post(f"/api/attempts/{attempt_id}/module-order", json=payload, headers=auth_headers)
    assert response.status_code == 400
    assert "moduleOrder" in response.json()["detail"]


def test_get_attempt_is_sanitized_until_completed(client, auth_headers):
    attempt_id = _start(client, auth_headers).json()["id"]

    view = client.get(f"/api/attempts/{attempt_id}", headers=auth_headers).json()
    assert [q["id"] for q in view["sanitizedQuestions"]] == ["q-ps-1", "q-ps-2", "q-text", "q-mcq-multi", "q-ms", "q-tp", "q-ta", "q-gi"]
    assert "isCorrect" not in view["sanitizedQuestions"][0]["options"][0]
    assert "correctAnswerText" not in view["sanitizedQuestions"][2]

    client.post(f"/api/attempts/{attempt_id}/submit", headers=auth_headers)
    view = client.get(f"/api/attempts/{attempt_id}", headers=auth_headers).json()
    assert view["sanitizedQuestions"][0]["options"][1]["isCorrect"] is True


def test_progress_ack_and_persistence(client, auth_headers):
    attempt_id = _start(client, auth_headers).json()["id"]

    response = client.patch(f"/api/attempts/{attempt_id}/progress", json={
        "updates": [
            {"sectionIndex": 2, "questionIndex": 0, "selections": {"s1": "yes"}},
            {"sectionIndex": 2, "questionIndex": 3, "dropdownSelections": {"d1": 2}, "markedForReview": True},
        ],
        "totalTimeUsedSeconds": 300,
        "gmatPhase": "in_section",
        "currentSectionIndex": 2,
    }, headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"status": "success", "message": "Progress saved"}

    attempt = client.get(f"/api/attempts/{attempt_id}", headers=auth_headers).json()["attempt"]
    di = attempt["sections"][2]
    assert di["status"] == "in_progress"
    assert di["questions"][0]["selections"] == {"s1": "yes"}
    assert di["questions"][3]["dropdownSelections"] == {"d1": 2}
    assert di["questions"][3]["markedForReview"] is True
    assert attempt["totalTimeUsedSeconds"] == 300
    assert attempt["gmatMeta"]["phase"] == "in_section"


def test_progress_requires_updates(client, auth_headers):
    attempt_id = _start(client, auth_headers).json()["id"]
    response = client.patch(f"/api/attempts/{attempt_id}/progress", json={"updates": []}, headers=auth_headers)
    assert response.status_code == 400


def test_submit_then_mutations_conflict(client, auth_headers):
    attempt_id = _start(client, auth_headers).json()["id"]

    submitted = client.post(f"/api/attempts/{attempt_id}/submit", headers=auth_headers)
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "completed"
    assert submitted.json()["overallStats"]["totalSkipped"] == 8

    assert client.post(f"/api/attempts/{attempt_id}/submit", headers=auth_headers).status_code == 409
    progress = client.patch(f"/api/attempts/{attempt_id}/progress", json={
        "updates": [{"sectionIndex": 0, "questionIndex": 0, "answerOptionIndexes": [1]}],
    }, headers=auth_headers)
    assert progress.status_code == 409
    order = client.post(f"/api/attempts/{attempt_id}/module-order", json={"moduleOrder": [0, 1, 2]}, headers=auth_headers)
    assert order.status_code == 409


def test_other_users_attempt_is_not_found(client, auth_headers):
    attempt_id = _start(client, auth_headers).json()["id"]
    other = {"X-User-Id": OTHER_USER_ID}

    assert client.get(f"/api/attempts/{attempt_id}", headers=other).status_code == 404
    assert client.post(f"/api/attempts/{attempt_id}/submit", headers=other).status_code == 404
    assert client.get(f"/api/attempts/{attempt_id}/report", headers=other).status_code == 404


def test_report_before_submit_conflicts(client, auth_headers, tmp_path, monkeypatch):
    monkeypatch.setattr(main, "get_runtime_output_dir", lambda: tmp_path)
    attempt_id = _start(client, auth_headers).json()["id"]
    assert client.get(f"/api/attempts/{attempt_id}/report", headers=auth_headers).status_code == 409
    assert list(tmp_path.iterdir()) == []


def test_report_downloads_use_private_files(client, auth_headers, tmp_path, monkeypatch):
    monkeypatch.setattr(main, "get_runtime_output_dir", lambda: tmp_path)
    attempt_id = _start(client, auth_headers).json()["id"]
    client.post(f"/api/attempts/{attempt_id}/submit", headers=auth_headers)

    first = client.get(f"/api/attempts/{attempt_id}/report", headers=auth_headers)
    second = client.get(f"/api/attempts/{attempt_id}/report", headers=auth_headers)

    for response in (first, second):
        assert response.status_code == 200
        assert f"report_{attempt_id}.docx" in response.headers["content-disposition"]
        assert response.content[:2] == b"PK"
    assert list(tmp_path.iterdir()) == []


def test_evaluate_writing_without_api_key(client, auth_headers):
    app.dependency_overrides.pop(get_writing_evaluator, None)
    attempt_id = _start(client, auth_headers, "tpl-awa").json()["id"]
    client.post(f"/api/attempts/{attempt_id}/submit", headers=auth_headers)

    with patch("attempt_engine.services.essay_grader.get_api_key", side_effect=ValueError("GEMINI_API_KEY not found.")):
        response = client.post(f"/api/attempts/{attempt_id}/evaluate-writing", headers=auth_headers)

    assert response.status_code == 500
    assert "Configuration error" in response.json()["detail"]
