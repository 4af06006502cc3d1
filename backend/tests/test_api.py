"""
API tests: relay endpoint, generate/export endpoints, health.

Providers are swapped out through app.dependency_overrides, so nothing here
talks to an LLM.
"""
import base64
import json
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from fastapi.testclient import TestClient

from app.core.deps import get_relay_generator, get_study_plan_generator, get_study_session
from app.core.errors import FatalProviderError, MalformedResponseError
from app.main import app
from app.services.providers import StudyPlanProvider
from app.services.retry import RetryPolicy
from app.services.session import StudySession
from app.services.study_plan import StudyPlanGenerator

client = TestClient(app)

PLAN = {
    "subject": "Physics",
    "summary": "Kinematics dominates.",
    "extractedQuestions": [{"text": "Define velocity.", "difficulty": "Easy", "marks": 2}],
    "modules": [
        {
            "topicName": "Kinematics",
            "priority": "High",
            "description": "Every year.",
            "questions": [{"text": "Define velocity.", "difficulty": "Easy"}],
        }
    ],
}

PDF_B64 = base64.b64encode(b"%PDF-1.4 paper").decode()


class _StubProvider(StudyPlanProvider):
    name = "stub"

    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = 0

    async def send(self, request, prompt):
        self.calls += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


async def _no_sleep(delay):
    return None


def _generator(provider):
    return StudyPlanGenerator(provider, retry_policy=RetryPolicy(sleep=_no_sleep))


@pytest.fixture
def session():
    session = StudySession()
    app.dependency_overrides[get_study_session] = lambda: session
    yield session
    app.dependency_overrides.clear()


@pytest.fixture
def provider():
    """Stub provider wired into both the relay and the generate endpoint."""
    stub = _StubProvider(json.dumps(PLAN))
    app.dependency_overrides[get_relay_generator] = lambda: _generator(stub)
    app.dependency_overrides[get_study_plan_generator] = lambda: _generator(stub)
    yield stub
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# POST /api/analyze (relay)
# ---------------------------------------------------------------------------

class TestAnalyzeRelay:
    def test_success_returns_plan(self, provider):
        response = client.post("/api/analyze", json={
            "syllabus": "Unit 1: Kinematics",
            "files": [{"name": "p.pdf", "type": "application/pdf", "data": PDF_B64}],
        })
        assert response.status_code == 200
        body = response.json()
        assert body["modules"][0]["topicName"] == "Kinematics"
        assert body["extractedQuestions"][0]["text"] == "Define velocity."
        assert provider.calls == 1

    def test_accepts_data_urls(self, provider):
        response = client.post("/api/analyze", json={
            "syllabus": "Unit 1",
            "files": [{"name": "p.pdf", "type": "application/pdf",
                       "data": f"data:application/pdf;base64,{PDF_B64}"}],
        })
        assert response.status_code == 200

    @pytest.mark.parametrize("payload", [
        {},
        {"syllabus": "Unit 1"},
        {"syllabus": "Unit 1", "files": []},
        {"syllabus": "", "files": [{"name": "p.pdf", "type": "application/pdf", "data": PDF_B64}]},
        {"files": [{"name": "p.pdf", "type": "application/pdf", "data": PDF_B64}]},
    ])
    def test_missing_syllabus_or_files_is_400(self, provider, payload):
        response = client.post("/api/analyze", json=payload)
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing syllabus or files"
        assert provider.calls == 0

    def test_invalid_base64_is_400(self, provider):
        response = client.post("/api/analyze", json={
            "syllabus": "Unit 1",
            "files": [{"name": "p.pdf", "type": "application/pdf", "data": "%%%not-base64%%%"}],
        })
        assert response.status_code == 400
        assert provider.calls == 0

    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    def test_other_methods_are_405(self, provider, method):
        response = getattr(client, method)("/api/analyze")
        assert response.status_code == 405

    def test_provider_failure_is_500(self, provider):
        provider.outcome = FatalProviderError("401 invalid key")
        response = client.post("/api/analyze", json={
            "syllabus": "Unit 1",
            "files": [{"name": "p.pdf", "type": "application/pdf", "data": PDF_B64}],
        })
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to analyze documents"

    def test_malformed_output_is_500(self, provider):
        provider.outcome = "not json"
        response = client.post("/api/analyze", json={
            "syllabus": "Unit 1",
            "files": [{"name": "p.pdf", "type": "application/pdf", "data": PDF_B64}],
        })
        assert response.status_code == 500


# ---------------------------------------------------------------------------
# /api/study-plan
# ---------------------------------------------------------------------------

def _upload(name="paper.pdf", content=b"%PDF-1.4 paper", mime="application/pdf"):
    return ("files", (name, content, mime))


class TestGenerateEndpoint:
    def test_success_updates_session(self, provider, session):
        response = client.post(
            "/api/study-plan/generate",
            data={"syllabus": "Unit 1: Kinematics"},
            files=[_upload(), _upload("scan.png", b"\x89PNG", "image/png")],
        )
        assert response.status_code == 200
        assert response.json()["subject"] == "Physics"

        current = client.get("/api/study-plan").json()
        assert current["state"] == "success"
        assert current["plan"]["summary"] == "Kinematics dominates."

    def test_blank_syllabus_is_400(self, provider, session):
        response = client.post(
            "/api/study-plan/generate", data={"syllabus": "  "}, files=[_upload()]
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Please enter the syllabus."
        assert provider.calls == 0

    def test_no_files_is_400(self, provider, session):
        response = client.post("/api/study-plan/generate", data={"syllabus": "Unit 1"})
        assert response.status_code == 400
        assert provider.calls == 0

    def test_form_without_chosen_file_is_400(self, provider, session):
        # browsers send one empty part with no filename when nothing is picked
        response = client.post(
            "/api/study-plan/generate",
            data={"syllabus": "Unit 1"},
            files=[("files", ("", b"", "application/octet-stream"))],
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Please upload at least one previous year question paper."
        assert provider.calls == 0

        current = client.get("/api/study-plan").json()
        assert current["state"] == "error"
        assert current["error"] == response.json()["detail"]

    def test_unsupported_file_is_400(self, provider, session):
        response = client.post(
            "/api/study-plan/generate",
            data={"syllabus": "Unit 1"},
            files=[_upload("notes.txt", b"hello", "text/plain")],
        )
        assert response.status_code == 400
        assert "notes.txt" in response.json()["detail"]

    def test_provider_failure_is_502_with_generic_message(self, provider, session):
        provider.outcome = MalformedResponseError("bad output")
        response = client.post(
            "/api/study-plan/generate", data={"syllabus": "Unit 1"}, files=[_upload()]
        )
        assert response.status_code == 502
        assert response.json()["detail"].startswith("Failed to analyze documents")

        current = client.get("/api/study-plan").json()
        assert current["state"] == "error"
        assert current["error"] == response.json()["detail"]

    def test_dismiss_and_reset(self, provider, session):
        provider.outcome = FatalProviderError("403")
        client.post("/api/study-plan/generate", data={"syllabus": "Unit 1"}, files=[_upload()])

        assert client.post("/api/study-plan/dismiss-error").json()["state"] == "idle"

        provider.outcome = json.dumps(PLAN)
        client.post("/api/study-plan/generate", data={"syllabus": "Unit 1"}, files=[_upload()])
        cleared = client.delete("/api/study-plan").json()
        assert cleared["state"] == "idle"
        assert cleared["plan"] is None


class TestExportPdf:
    def test_export_posted_plan(self, session):
        response = client.post("/api/study-plan/export-pdf", json=PLAN)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert 'filename="QuestionBank_StudyPlan.pdf"' in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

    def test_export_current_plan(self, provider, session):
        client.post("/api/study-plan/generate", data={"syllabus": "Unit 1"}, files=[_upload()])
        response = client.post("/api/study-plan/export-pdf")
        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")

    def test_nothing_to_export_is_404(self, session):
        response = client.post("/api/study-plan/export-pdf")
        assert response.status_code == 404

    def test_invalid_plan_is_422(self, session):
        response = client.post("/api/study-plan/export-pdf", json={"summary": "no modules"})
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Misc
# ---------------------------------------------------------------------------

def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_root():
    assert client.get("/").json()["health"] == "/health"
