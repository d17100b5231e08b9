"""
HTTP-level tests: the FastAPI app with its infrastructure dependencies
replaced by the in-memory doubles from conftest.
"""

from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from backend.app.api.deps import (
    get_db,
    get_lock_client,
    get_storage_service,
    get_text_provider,
)
from backend.app.domains.generation.provider import MockTextProvider
from backend.app.infrastructure.redis import letter_lock_name
from backend.app.infrastructure.template_seeding import (
    ACADEMIC_TEMPLATE_ID,
    SystemTemplateSeeder,
)
from backend.app.main import app

REVIEWER_CONTEXT = {
    "relationship": "Thesis advisor",
    "duration": "3 years",
    "strengths": "Rigorous, creative, collaborative",
    "specific_examples": "Led the consensus protocol project",
}


def headers_for(caller) -> dict[str, str]:
    headers = {"X-User-Id": str(caller.user_id), "X-User-Role": caller.role.value}
    if caller.email:
        headers["X-User-Email"] = caller.email
    return headers


@pytest.fixture
def api_provider() -> MockTextProvider:
    return MockTextProvider(responses=["First draft.", "Second draft.", "Third draft."])


@pytest_asyncio.fixture
async def client(session_maker, mock_redis, mock_storage, api_provider):
    async with session_maker() as session:
        await SystemTemplateSeeder(session).seed_all()

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_lock_client] = lambda: mock_redis
    app.dependency_overrides[get_storage_service] = lambda: mock_storage
    app.dependency_overrides[get_text_provider] = lambda: api_provider

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_request(client, applicant, referee) -> dict:
    response = await client.post(
        "/api/v1/letters/request",
        headers=headers_for(applicant),
        json={
            "applicant_data": {
                "first_name": "Jane",
                "last_name": "Doe",
                "program": "MIT PhD in Computer Science",
                "goal": "Research in distributed systems",
                "achievements": ["Dean's list", "Published at SOSP"],
            },
            "referee_id": str(referee.user_id),
            "preferences": {"tone": "formal", "deadline": "2026-12-01"},
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
class TestRecommendationWorkflow:
    async def test_request_to_download(self, client, applicant, referee, api_provider):
        letter = await create_request(client, applicant, referee)
        letter_id = letter["id"]
        assert letter["status"] == "requested"
        assert letter["applicant_data"]["email"] == "jane.doe@mail.com"

        pending = await client.get("/api/v1/letters/pending", headers=headers_for(referee))
        assert [p["id"] for p in pending.json()] == [letter_id]
        assert pending.json()[0]["deadline"] == "2026-12-01"

        accepted = await client.post(
            f"/api/v1/letters/{letter_id}/accept", headers=headers_for(referee)
        )
        assert accepted.json()["status"] == "in_progress"

        generated = await client.post(
            f"/api/v1/letters/{letter_id}/generate-draft",
            headers=headers_for(referee),
            json={
                "template_id": str(ACADEMIC_TEMPLATE_ID),
                "selected_model": "mistral-7b",
                "extra_context": REVIEWER_CONTEXT,
                "referee": {"name": "Dr. Ada Smith", "title": "Professor", "institution": "MIT"},
            },
        )
        assert generated.status_code == 200, generated.text
        body = generated.json()
        assert body["status"] == "draft"
        assert body["content"] == "First draft."
        assert body["snapshot_version"] == 1
        assert body["current_version"] == 2
        assert "Jane Doe" in api_provider.invocations[0].prompt

        hidden = await client.get(f"/api/v1/letters/{letter_id}", headers=headers_for(applicant))
        assert hidden.json()["current_content"] is None

        regenerated = await client.post(
            f"/api/v1/letters/{letter_id}/regenerate",
            headers=headers_for(referee),
            json={"type": "new_model", "selected_model": "claude-3-haiku"},
        )
        assert regenerated.json()["content"] == "Second draft."
        assert regenerated.json()["trigger"] == "new_model"
        assert api_provider.invocations[1].model_id == "anthropic/claude-3-haiku"

        history = await client.get(
            f"/api/v1/letters/{letter_id}/history", headers=headers_for(referee)
        )
        assert [v["content"] for v in history.json()["history"]] == [
            "First draft.",
            "Second draft.",
        ]

        restored = await client.post(
            f"/api/v1/letters/{letter_id}/restore/1", headers=headers_for(referee)
        )
        assert restored.json()["content"] == "First draft."
        assert restored.json()["current_version"] == 4

        edited = await client.put(
            f"/api/v1/letters/{letter_id}/edit",
            headers=headers_for(referee),
            json={"letter_content": "First draft, polished.", "status": "in_review"},
        )
        assert edited.json()["status"] == "in_review"

        approved = await client.post(
            f"/api/v1/letters/{letter_id}/approve", headers=headers_for(referee)
        )
        assert approved.json()["status"] == "completed"

        visible = await client.get(f"/api/v1/letters/{letter_id}", headers=headers_for(applicant))
        assert visible.json()["current_content"] == "First draft, polished."

        rendered = await client.post(
            f"/api/v1/letters/{letter_id}/render",
            headers=headers_for(applicant),
            json={"format": "txt", "referee": {"name": "Prof. Nobel", "institution": "Harvard"}},
        )
        assert rendered.status_code == 201, rendered.text
        assert rendered.json()["version"] == 4

        download = await client.get(
            f"/api/v1/letters/{letter_id}/download",
            headers=headers_for(applicant),
            params={"format": "txt"},
        )
        assert download.status_code == 200
        assert f"letter_{letter_id}.txt" in download.headers["content-disposition"]
        assert "First draft, polished." in download.text
        assert download.text.startswith("MIT\nDr. Ada Smith\nProfessor\n")
        assert "Harvard" not in download.text

        frozen = await client.put(
            f"/api/v1/letters/{letter_id}/edit",
            headers=headers_for(referee),
            json={"letter_content": "Too late"},
        )
        assert frozen.status_code == 409
        assert frozen.json()["error"]["category"] == "STATE"

    async def test_approving_a_restored_draft(self, client, applicant, referee, api_provider):
        requested = await client.post(
            "/api/v1/letters/request",
            headers=headers_for(applicant),
            json={
                "applicant_data": {"name": "Jane Doe", "program": "MSc CS"},
                "referee_id": str(referee.user_id),
            },
        )
        assert requested.status_code == 201, requested.text
        letter_id = requested.json()["id"]
        assert requested.json()["applicant_name"] == "Jane Doe"

        await client.post(f"/api/v1/letters/{letter_id}/accept", headers=headers_for(referee))
        first = await client.post(
            f"/api/v1/letters/{letter_id}/generate-draft",
            headers=headers_for(referee),
            json={"template_id": str(ACADEMIC_TEMPLATE_ID), "extra_context": REVIEWER_CONTEXT},
        )
        assert first.status_code == 200, first.text
        assert first.json()["snapshot_version"] == 1
        prompt = api_provider.invocations[0].prompt
        assert "Jane Doe" in prompt
        assert "MSc CS" in prompt

        second = await client.post(
            f"/api/v1/letters/{letter_id}/regenerate",
            headers=headers_for(referee),
            json={"type": "new_model", "selected_model": "gpt-3.5-turbo"},
        )
        assert second.json()["snapshot_version"] == 2
        assert second.json()["content"] == "Second draft."

        restored = await client.post(
            f"/api/v1/letters/{letter_id}/restore/1", headers=headers_for(referee)
        )
        assert restored.status_code == 200, restored.text

        history = await client.get(
            f"/api/v1/letters/{letter_id}/history", headers=headers_for(referee)
        )
        entries = history.json()["history"]
        assert [e["version_number"] for e in entries] == [1, 2, 3]
        assert entries[2]["kind"] == "RESTORATION"
        assert entries[2]["restored_from_version"] == 1
        assert entries[2]["content"] == "First draft."

        approved = await client.post(
            f"/api/v1/letters/{letter_id}/approve", headers=headers_for(referee)
        )
        assert approved.status_code == 200, approved.text
        assert approved.json()["status"] == "completed"
        assert approved.json()["current_content"] == "First draft."

        for attempt in (
            client.put(
                f"/api/v1/letters/{letter_id}/edit",
                headers=headers_for(referee),
                json={"letter_content": "Late change"},
            ),
            client.post(
                f"/api/v1/letters/{letter_id}/regenerate",
                headers=headers_for(referee),
                json={"type": "same_settings"},
            ),
            client.post(f"/api/v1/letters/{letter_id}/restore/2", headers=headers_for(referee)),
        ):
            refused = await attempt
            assert refused.status_code == 409
            assert refused.json()["error"]["category"] == "STATE"

    async def test_rejection(self, client, applicant, referee):
        letter = await create_request(client, applicant, referee)

        response = await client.post(
            f"/api/v1/letters/{letter['id']}/reject",
            headers=headers_for(referee),
            json={"reason": "Not enough context on the applicant"},
        )

        assert response.json()["status"] == "rejected"
        assert response.json()["rejection_reason"] == "Not enough context on the applicant"

    async def test_cancel_without_body(self, client, applicant, referee):
        letter = await create_request(client, applicant, referee)
        response = await client.post(
            f"/api/v1/letters/{letter['id']}/cancel", headers=headers_for(applicant)
        )
        assert response.status_code == 200
        assert response.json()["status"] == "canceled"

    async def test_listing_with_status_filter(self, client, applicant, referee):
        await create_request(client, applicant, referee)
        await create_request(client, applicant, referee)

        listed = await client.get(
            "/api/v1/letters",
            headers=headers_for(applicant),
            params={"status": "requested", "limit": 1},
        )
        assert listed.json()["pagination"]["total"] == 2
        assert listed.json()["pagination"]["total_pages"] == 2

        bad = await client.get(
            "/api/v1/letters", headers=headers_for(applicant), params={"status": "archived"}
        )
        assert bad.status_code == 422
        assert bad.json()["error"]["category"] == "VALIDATION"


@pytest.mark.asyncio
class TestErrorResponses:
    async def test_missing_identity_headers(self, client):
        response = await client.get("/api/v1/letters")
        assert response.status_code == 401

    async def test_bad_role_header(self, client):
        response = await client.get(
            "/api/v1/letters", headers={"X-User-Id": str(uuid4()), "X-User-Role": "admin"}
        )
        assert response.status_code == 401

    async def test_not_found_shape(self, client, referee):
        response = await client.get(f"/api/v1/letters/{uuid4()}", headers=headers_for(referee))

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "NOT_FOUND_LETTER"
        assert error["correlation_id"] == response.headers["x-correlation-id"]

    async def test_correlation_id_echoed(self, client, referee):
        response = await client.get(
            f"/api/v1/letters/{uuid4()}",
            headers={**headers_for(referee), "X-Correlation-Id": "corr-fixed"},
        )
        assert response.headers["x-correlation-id"] == "corr-fixed"
        assert response.json()["error"]["correlation_id"] == "corr-fixed"

    async def test_permission_denied(self, client, applicant, referee, other_referee):
        letter = await create_request(client, applicant, referee)
        response = await client.post(
            f"/api/v1/letters/{letter['id']}/accept", headers=headers_for(other_referee)
        )
        assert response.status_code == 403
        assert response.json()["error"]["category"] == "PERMISSION"

    async def test_binding_error_names_missing_keys(self, client, applicant, referee):
        letter = await create_request(client, applicant, referee)
        await client.post(f"/api/v1/letters/{letter['id']}/accept", headers=headers_for(referee))

        response = await client.post(
            f"/api/v1/letters/{letter['id']}/generate-draft",
            headers=headers_for(referee),
            json={"template_id": str(ACADEMIC_TEMPLATE_ID), "extra_context": {}},
        )

        assert response.status_code == 422
        details = response.json()["error"]["details"]
        assert details["missing_keys"] == ["relationship", "duration"]

    async def test_lock_conflict(self, client, applicant, referee, mock_redis):
        letter = await create_request(client, applicant, referee)
        await client.post(f"/api/v1/letters/{letter['id']}/accept", headers=headers_for(referee))
        mock_redis.acquire_lock(letter_lock_name(letter["id"]))

        response = await client.post(
            f"/api/v1/letters/{letter['id']}/generate-draft",
            headers=headers_for(referee),
            json={"template_id": str(ACADEMIC_TEMPLATE_ID), "extra_context": REVIEWER_CONTEXT},
        )
        assert response.status_code == 409
        assert response.json()["error"]["category"] == "CONFLICT"


@pytest.mark.asyncio
class TestCatalogAndTemplates:
    async def test_available_models(self, client):
        response = await client.get("/api/v1/letters/available-models")
        assert {m["id"] for m in response.json()} == {
            "gpt-3.5-turbo",
            "mistral-7b",
            "claude-3-haiku",
        }

    async def test_template_listing_and_creation(self, client, referee, applicant):
        listed = await client.get("/api/v1/templates", headers=headers_for(referee))
        assert len(listed.json()) == 4

        created = await client.post(
            "/api/v1/templates",
            headers=headers_for(referee),
            json={
                "name": "Short reference",
                "category": "general",
                "prompt_template": "Recommend {applicantName} ({relationship}).",
            },
        )
        assert created.status_code == 201
        assert created.json()["placeholders"] == ["applicantName", "relationship"]

        mine = await client.get("/api/v1/templates", headers=headers_for(referee))
        assert len(mine.json()) == 5
        theirs = await client.get("/api/v1/templates", headers=headers_for(applicant))
        assert len(theirs.json()) == 4

    async def test_template_update_and_delete(self, client, referee, other_referee):
        created = await client.post(
            "/api/v1/templates",
            headers=headers_for(referee),
            json={"name": "Short reference", "prompt_template": "Recommend {applicantName}."},
        )
        template_id = created.json()["id"]

        updated = await client.put(
            f"/api/v1/templates/{template_id}",
            headers=headers_for(referee),
            json={"name": "Shorter reference", "category": "job"},
        )
        assert updated.status_code == 200, updated.text
        assert updated.json()["name"] == "Shorter reference"
        assert updated.json()["category"] == "job"

        forbidden = await client.put(
            f"/api/v1/templates/{template_id}",
            headers=headers_for(other_referee),
            json={"name": "Taken over"},
        )
        assert forbidden.status_code == 403

        system = await client.delete(
            f"/api/v1/templates/{ACADEMIC_TEMPLATE_ID}", headers=headers_for(referee)
        )
        assert system.status_code == 403

        deleted = await client.delete(
            f"/api/v1/templates/{template_id}", headers=headers_for(referee)
        )
        assert deleted.status_code == 200
        assert deleted.json()["is_active"] is False

        listed = await client.get("/api/v1/templates", headers=headers_for(referee))
        assert template_id not in {t["id"] for t in listed.json()}

    async def test_applicant_audit_is_scoped(self, client, applicant, referee):
        letter = await create_request(client, applicant, referee)
        await client.post(f"/api/v1/letters/{letter['id']}/accept", headers=headers_for(referee))

        own = await client.get("/api/v1/audit", headers=headers_for(applicant))
        assert [entry["action"] for entry in own.json()] == ["REQUEST_CREATED"]

        everything = await client.get(
            "/api/v1/audit",
            headers=headers_for(referee),
            params={"entity_id": letter["id"]},
        )
        assert {entry["action"] for entry in everything.json()} == {
            "REQUEST_CREATED",
            "REQUEST_ACCEPTED",
        }
