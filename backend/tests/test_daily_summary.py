"""Daily summary email: context gathering, AI drafting, preview and send."""
import asyncio
from decimal import Decimal
from types import SimpleNamespace

import httpx
import openai
import pytest

from app.config import Settings
from app.models import Deliverable, ProjectMember, SprintPackage, SprintPackageDeliverable
from app.services import ai_service


@pytest.fixture
def sprint(client, seed, customer, admin):
    """Purchased sprint with one daily update and one extra project member."""
    deliverable = seed(Deliverable(name="Wordmark Logo", category="Branding", default_estimate_points=Decimal(3)))
    package = SprintPackage(name="Brand Sprint", slug="brand-sprint")
    package.items = [SprintPackageDeliverable(deliverable_id=deliverable.id)]
    seed(package)
    _, owner_headers = customer
    body = client.post("/api/sprint-packages/brand-sprint/purchase", headers=owner_headers).json()
    seed(ProjectMember(project_id=body["projectId"], email="designer@acme.test"))
    return body["sprintDraftId"]


@pytest.fixture
def with_update(client, sprint, admin):
    _, headers = admin
    resp = client.post(
        f"/api/sprint-drafts/{sprint}/daily-updates",
        json={"sprintDay": 3, "frame": "Concepts", "body": "Three logo routes presented."},
        headers=headers,
    )
    assert resp.status_code == 201
    return sprint


@pytest.fixture
def drafted(monkeypatch):
    """Replace the AI call; records the context block it was given."""
    calls = []

    async def fake_draft(context_block, fallback_subject):
        calls.append({"context": context_block, "fallback": fallback_subject})
        return ai_service.DraftedEmail(
            subject="Brand Sprint · Day 3",
            body="Hi team.\n- Logo routes shared\nWhat's Next\n- Pick a direction",
        )

    monkeypatch.setattr(ai_service, "draft_daily_summary", fake_draft)
    return calls


def _raise(exc):
    async def fake_draft(context_block, fallback_subject):
        raise exc

    return fake_draft


class TestDailySummaryRoute:
    def test_requires_admin(self, client, with_update, customer):
        _, headers = customer
        resp = client.post(f"/api/sprint-drafts/{with_update}/daily-summary", json={"mode": "preview"}, headers=headers)
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}

    def test_unknown_sprint(self, client, admin):
        _, headers = admin
        resp = client.post("/api/sprint-drafts/missing/daily-summary", json={"mode": "preview"}, headers=headers)
        assert resp.status_code == 404
        assert resp.json() == {"error": "Sprint not found"}

    def test_no_updates(self, client, sprint, admin, drafted):
        _, headers = admin
        resp = client.post(f"/api/sprint-drafts/{sprint}/daily-summary", json={"mode": "preview"}, headers=headers)
        assert resp.status_code == 400
        assert drafted == []

    def test_preview(self, client, with_update, admin, drafted):
        _, headers = admin
        resp = client.post(f"/api/sprint-drafts/{with_update}/daily-summary", json={"mode": "preview"}, headers=headers)
        assert resp.status_code == 200
        preview = resp.json()
        assert preview["subject"] == "Brand Sprint · Day 3"
        assert preview["sprintDay"] == 3
        assert preview["totalDays"] == 10
        assert preview["recipients"] == ["designer@acme.test", "client@acme.test"]
        assert "<ul" in preview["html"]
        assert f"/sprints/{with_update}" in preview["html"]
        assert "30% complete" in preview["html"]

        context = drafted[0]["context"]
        assert "SPRINT TITLE: Brand Sprint" in context
        assert "PROGRESS: Day 3 of 10 (30%)" in context
        assert "- Wordmark Logo (Branding)" in context
        assert "Frame: Concepts" in context and "by Studio Admin" in context
        assert drafted[0]["fallback"] == "Brand Sprint · Day 3 Update"

    @pytest.mark.parametrize("payload", [{"mode": "draft"}, {}])
    def test_unrecognised_mode_previews(self, client, with_update, admin, drafted, sent_emails, payload):
        _, headers = admin
        resp = client.post(f"/api/sprint-drafts/{with_update}/daily-summary", json=payload, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["subject"] == "Brand Sprint · Day 3"
        assert sent_emails == []

    def test_send(self, client, with_update, admin, drafted, sent_emails):
        _, headers = admin
        resp = client.post(f"/api/sprint-drafts/{with_update}/daily-summary", json={"mode": "send"}, headers=headers)
        assert resp.status_code == 200
        result = resp.json()
        assert result["sent"] == 2
        assert result["recipientCount"] == 2
        assert [m["to"] for m in sent_emails] == ["designer@acme.test", "client@acme.test"]
        assert sent_emails[0]["text"].startswith("Hi team.")

    @pytest.mark.parametrize(
        "exc, code",
        [
            (ai_service.AITimeoutError("slow"), 504),
            (ai_service.AIUpstreamError(503), 502),
            (ai_service.AINotConfiguredError("OpenAI API key not configured"), 500),
        ],
    )
    def test_ai_failures(self, client, with_update, admin, monkeypatch, exc, code):
        monkeypatch.setattr(ai_service, "draft_daily_summary", _raise(exc))
        _, headers = admin
        resp = client.post(f"/api/sprint-drafts/{with_update}/daily-summary", json={"mode": "preview"}, headers=headers)
        assert resp.status_code == code
        assert "error" in resp.json()


def test_send_without_recipients(client, seed, admin, drafted, sent_emails):
    _, headers = admin
    created = client.post("/api/sprint-drafts", json={"title": "Internal"}, headers=headers).json()
    draft_id = created["sprintDraftId"]
    client.post(f"/api/sprint-drafts/{draft_id}/daily-updates", json={"sprintDay": 1, "body": "Started"}, headers=headers)
    resp = client.post(f"/api/sprint-drafts/{draft_id}/daily-summary", json={"mode": "send"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json() == {"error": "No recipients found. Add project members first."}
    assert sent_emails == []


class TestParseDraftedEmail:
    def test_json_in_code_fence(self):
        content = '```json\n{"subject": "Day 2", "body": "Hello\\nWorld"}\n```'
        email = ai_service.parse_drafted_email(content, "Fallback")
        assert email.subject == "Day 2"
        assert email.body == "Hello\nWorld"

    def test_plain_text_falls_back(self):
        email = ai_service.parse_drafted_email("Just a note for today.", "Fallback")
        assert email.subject == "Fallback"
        assert email.body == "Just a note for today."

    def test_missing_keys_fall_back(self):
        email = ai_service.parse_drafted_email('{"subject": "Only subject"}', "Fallback")
        assert email.subject == "Fallback"


def _fake_client(exc):
    async def create(**kwargs):
        raise exc

    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


class TestDraftErrors:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")

    def test_timeout(self, monkeypatch):
        monkeypatch.setattr(ai_service, "_client", lambda: _fake_client(openai.APITimeoutError(request=self.request)))
        with pytest.raises(ai_service.AITimeoutError):
            asyncio.run(ai_service.draft_daily_summary("ctx", "subject"))

    def test_upstream_status(self, monkeypatch):
        response = httpx.Response(503, request=self.request)
        exc = openai.APIStatusError("unavailable", response=response, body=None)
        monkeypatch.setattr(ai_service, "_client", lambda: _fake_client(exc))
        with pytest.raises(ai_service.AIUpstreamError) as info:
            asyncio.run(ai_service.draft_daily_summary("ctx", "subject"))
        assert info.value.status_code == 503

    def test_not_configured(self, monkeypatch):
        monkeypatch.setattr(ai_service, "get_settings", lambda: Settings(openai_api_key=""))
        with pytest.raises(ai_service.AINotConfiguredError):
            asyncio.run(ai_service.draft_daily_summary("ctx", "subject"))
