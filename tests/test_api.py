import time

import pytest
from fastapi.testclient import TestClient

from conftest import alignment_payload, interview_payload, no_sleep, shortlist_payload
from recruitflow.core.errors import GenerationError, GenerationErrorKind
from recruitflow.main import create_app
from recruitflow.services.generation.client import GenerationClient
from recruitflow.services.sessions import SessionRegistry


@pytest.fixture
def api(store, backend):
    registry = SessionRegistry(store, client_factory=lambda d: GenerationClient(backend, d, sleep=no_sleep))
    with TestClient(create_app(store=store, registry=registry)) as client:
        yield client


@pytest.fixture
def project_id(api):
    res = api.post("/projects", json={"owner": "u1", "companyName": "Acme", "roleName": "COO"})
    assert res.status_code == 201
    return res.json()["id"]


def test_health(api):
    assert api.get("/health").json() == {"status": "ok"}


def test_project_crud(api, project_id):
    assert api.get(f"/projects/{project_id}").json()["companyName"] == "Acme"
    assert [p["id"] for p in api.get("/projects", params={"owner": "u1"}).json()] == [project_id]

    res = api.put(f"/projects/{project_id}/status", json={"status": "paused"})
    assert res.json()["status"] == "paused"
    res = api.put(f"/projects/{project_id}/funnel", json={"mapped": 12, "approached": 4})
    assert res.json()["funnelMappedCount"] == 12
    assert api.put(f"/projects/{project_id}/funnel", json={"mapped": -1}).status_code == 422
    res = api.patch(f"/projects/{project_id}", json={"roleName": "CEO"})
    assert res.json()["roleName"] == "CEO"

    assert api.delete(f"/projects/{project_id}").status_code == 204
    assert api.get(f"/projects/{project_id}").status_code == 404


def test_unknown_project_is_404(api):
    assert api.get("/projects/missing/phases/alignment").status_code == 404


def test_phase_cycle_over_http(api, project_id, backend):
    backend.push(alignment_payload(), interview_payload("Someone Else"))
    base = f"/projects/{project_id}/phases"

    res = api.post(f"{base}/alignment/generate", json={"transcript": "Kick-off transcript"})
    assert res.status_code == 200
    body = res.json()
    assert body["accepted"] is True
    assert body["view"]["state"] == "drafted"
    assert body["view"]["draft"]["companyName"] == "Acme"

    res = api.post(f"{base}/alignment/edit")
    assert res.json()["state"] == "editing"
    res = api.patch(f"{base}/alignment/working", json={"location": "Remote"})
    assert res.json()["working"]["location"] == "Remote"
    assert api.patch(f"{base}/alignment/working", json={"bogus": 1}).status_code == 422

    res = api.post(f"{base}/alignment/approve")
    assert res.json()["state"] == "approved"
    assert res.json()["canonical"]["location"] == "Remote"

    # Shortlist needs at least one evaluated candidate
    res = api.post(f"{base}/shortlist/generate", json={})
    assert res.status_code == 409

    res = api.post(f"{base}/interview/generate", json={"candidateName": "Maria Silva", "cvText": "CV"})
    assert res.json()["view"]["draft"]["candidateName"] == "Maria Silva"
    api.post(f"{base}/interview/approve")

    state = api.get(f"/projects/{project_id}/state").json()
    assert state["phase1Data"]["location"] == "Remote"
    assert [c["name"] for c in state["candidates"]] == ["Maria Silva"]

    assert api.post(f"{base}/decision/approve").status_code == 409


def test_generation_errors_map_to_status_codes(api, project_id, backend):
    backend.push(
        *[GenerationError(GenerationErrorKind.RATE_LIMITED, "429") for _ in range(4)],
        GenerationError(GenerationErrorKind.INVALID_OUTPUT, "bad json"),
    )
    base = f"/projects/{project_id}/phases"

    res = api.post(f"{base}/alignment/generate", json={"transcript": "t"})
    assert res.status_code == 429
    assert res.json()["kind"] == "rate_limited"

    res = api.post(f"{base}/alignment/generate", json={"transcript": "t"})
    assert res.status_code == 502
    assert api.get(f"{base}/alignment").json()["state"] == "empty"


def test_batch_upload_and_drain(api, project_id, backend):
    def evaluate(schema_name, user_prompt):
        name = user_prompt.split("\n", 1)[0].replace("CANDIDATE: ", "")
        return interview_payload(name)

    backend.push(evaluate, evaluate, shortlist_payload("Maria Silva", "Joao Pereira"))
    files = [
        ("files", ("maria_silva_cv.txt", b"Maria CV", "text/plain")),
        ("files", ("maria_silva_transcricao.txt", b"Maria transcript", "text/plain")),
        ("files", ("joao_pereira_cv.txt", b"Joao CV", "text/plain")),
    ]

    res = api.post(f"/projects/{project_id}/batch/files", files=files)
    assert res.status_code == 201
    items = res.json()
    assert [(i["candidate_name"], len(i["file_names"])) for i in items] == [("Maria Silva", 2), ("Joao Pereira", 1)]

    report = api.post(f"/projects/{project_id}/batch/drain").json()
    assert len(report["succeeded"]) == 2

    queue = api.get(f"/projects/{project_id}/batch").json()
    assert (queue["done"], queue["total"], queue["draining"]) == (2, 2, False)

    res = api.post(f"/projects/{project_id}/phases/shortlist/generate", json={})
    assert res.status_code == 200
    assert len(res.json()["view"]["draft"]["shortlist"]) == 2

    assert api.delete(f"/projects/{project_id}/batch/items/missing").status_code == 404
    assert api.delete(f"/projects/{project_id}/batch").status_code == 204
    assert api.get(f"/projects/{project_id}/batch").json()["total"] == 0


def test_smart_upload(api, project_id, backend):
    backend.push(interview_payload("Maria Silva"))
    api.post(f"/projects/{project_id}/phases/interview/generate", json={"candidateName": "Maria Silva", "cvText": "CV"})
    api.post(f"/projects/{project_id}/phases/interview/approve")

    files = [
        ("files", ("Maria_Silva_Lens.txt", b"Lens profile", "text/plain")),
        ("files", ("misc.txt", b"whatever", "text/plain")),
    ]
    report = api.post(f"/projects/{project_id}/phase4/documents", files=files).json()

    assert report["matched"] == 1
    assert report["assignments"]["Maria_Silva_Lens.txt"] == {"candidate_name": "Maria Silva", "doc_type": "lensMini"}
    assert report["unmatched"] == ["misc.txt"]


def test_chat_and_usage(api, project_id, backend):
    backend.push({"reply": "No candidates yet."}, GenerationError(GenerationErrorKind.SERVICE, "down"))

    res = api.post(f"/projects/{project_id}/chat", json={"message": "How many candidates?"})
    assert res.json() == {"reply": "No candidates yet."}
    res = api.post(f"/projects/{project_id}/chat", json={"message": "And now?"})
    assert res.status_code == 200
    assert res.json()["reply"].startswith("Sorry")

    state = api.get(f"/projects/{project_id}/state").json()
    assert [m["role"] for m in state["chatHistory"]] == ["user", "model", "user"]

    records = []
    for _ in range(50):
        body = api.get("/usage", params={"projectId": project_id}).json()
        records = body["records"]
        if records:
            break
        time.sleep(0.02)
    assert len(records) == 1
    assert records[0]["context"]["phase"] == "Chat Assistant"
    assert body["summary"]["total"]["calls"] == 1
