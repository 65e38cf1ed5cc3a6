"""End-to-end tests: ConversationSession → HttpFormApi → development server.

The FastAPI app runs in-process behind ``httpx.ASGITransport``; the store
is passed to ``create_app`` so no lifespan is needed.  Walks the bundled
contact and feedback forms exactly as a respondent would and then checks
what the server recorded.
"""

import httpx
import pytest

from formflow_client.config import ClientSettings
from formflow_client.http import HttpFormApi
from formflow_runtime.constants import CTA_SESSION_PARAM
from formflow_runtime.conversation import ConversationSession
from formflow_runtime.models.payload import FileHandle
from formflow_runtime.models.state import ConversationState
from formflow_server.app import create_app
from formflow_server.config import ServerSettings, load_settings
from formflow_server.errors import classify_value_error

from helpers.fakes import RecordingNavigator

BASE = "http://testserver"


@pytest.fixture
def app(store):
    return create_app(ServerSettings(), store=store)


@pytest.fixture
def transport(app):
    return httpx.ASGITransport(app=app)


def _api(transport):
    return HttpFormApi(ClientSettings(base_url=BASE, upload_chunk_size=4), transport=transport)


async def _summary(transport, form_id, token):
    async with httpx.AsyncClient(transport=transport, base_url=BASE) as client:
        resp = await client.get(f"/api/v1/forms/{form_id}/sessions/{token}")
        resp.raise_for_status()
        return resp.json()


# =====================================================================
# Contact form walkthrough
# =====================================================================


class TestContactForm:
    """Group gating, checkbox answers, file upload and the skip goto."""

    async def _answer_until_screenshot(self, conv):
        assert conv.current == "intro"
        await conv.next()
        conv.record_scalar_answer("name_input", "Ada")
        await conv.next()
        conv.record_scalar_answer("topic_support", "Support")
        await conv.next()
        assert conv.current == "product", "Support group should be revealed"
        conv.record_multi_answer("product_app", "App")
        conv.record_multi_answer("product_api", "API")
        await conv.next()
        assert conv.current == "has_screenshot"

    @pytest.mark.asyncio
    async def test_support_path_with_file(self, transport):
        async with _api(transport) as api:
            conv = ConversationSession(api)
            await conv.init_form("contact", {"utm_source": "mail"})
            await self._answer_until_screenshot(conv)

            conv.record_scalar_answer("screenshot_yes", "Yes")
            await conv.next()
            assert conv.current == "screenshot"
            conv.record_scalar_answer("screenshot_file", [
                FileHandle(name="crash.png", content=b"0123456789", content_type="image/png"),
            ])
            await conv.next()
            assert conv.is_last_block
            conv.record_scalar_answer("email_input", "ada@example.com")
            assert await conv.next() is True

        assert conv.state == ConversationState.SUBMITTED
        assert conv.upload_progress == 100
        assert conv.call_to_action_url == (
            f"https://example.com/thanks?{CTA_SESSION_PARAM}={conv.session.token}&utm_source=mail"
        )

        summary = await _summary(transport, "contact", conv.session.token)
        assert summary["is_completed"] is True
        assert summary["params"] == {"utm_source": "mail"}
        assert summary["responses"]["product"] == {"product_app": "App", "product_api": "API"}
        assert summary["responses"]["screenshot"] == {"screenshot_file": "crash.png"}
        assert summary["responses"]["email"] == {"email_input": "ada@example.com"}
        assert "intro" not in summary["responses"], "Messages are never answered"

        stored = summary["files"]["screenshot_file[0]"]
        assert stored["filename"] == "crash.png"
        assert stored["size"] == 10
        assert stored["content_type"] == "image/png"

    @pytest.mark.asyncio
    async def test_skip_screenshot(self, transport):
        async with _api(transport) as api:
            conv = ConversationSession(api)
            await conv.init_form("contact")
            await self._answer_until_screenshot(conv)

            conv.record_scalar_answer("screenshot_no", "No")
            await conv.next()
            assert conv.current == "email", "goto should skip the upload"
            conv.record_scalar_answer("email_input", "ada@example.com")
            assert await conv.next() is True

        assert conv.upload_progress is None
        summary = await _summary(transport, "contact", conv.session.token)
        assert summary["is_completed"] is True
        assert summary["files"] == {}

    @pytest.mark.asyncio
    async def test_sales_path_hides_group(self, transport):
        async with _api(transport) as api:
            conv = ConversationSession(api)
            await conv.init_form("contact")
            await conv.next()
            conv.record_scalar_answer("name_input", "Ada")
            await conv.next()
            conv.record_scalar_answer("topic_sales", "Sales")
            await conv.next()
            assert conv.current == "email"
            assert [b.id for b in conv.visible_queue] == ["intro", "name", "topic", "email"]


# =====================================================================
# Feedback form walkthrough
# =====================================================================


class TestFeedbackForm:
    """Goto on low rating, show/hide follow-ups and the redirect."""

    @pytest.mark.asyncio
    async def test_low_rating_redirects(self, transport):
        nav = RecordingNavigator()
        async with _api(transport) as api:
            conv = ConversationSession(api, nav)
            await conv.init_form("feedback")
            conv.record_scalar_answer("rating_input", 1)
            await conv.next()
            assert conv.current == "what_went_wrong"
            assert "praise" not in [b.id for b in conv.visible_queue]
            conv.record_scalar_answer("wrong_input", "Too slow")
            await conv.next()
            conv.record_scalar_answer("consent_input", True)
            assert await conv.next() is True

        token = conv.session.token
        assert nav.urls == [f"https://example.com/feedback/done?{CTA_SESSION_PARAM}={token}"]
        assert conv.state == ConversationState.REDIRECTED

        summary = await _summary(transport, "feedback", token)
        assert summary["responses"]["rating"] == {"rating_input": 1}
        assert summary["responses"]["consent"] == {"consent_input": True}

    @pytest.mark.asyncio
    async def test_high_rating_asks_for_praise(self, transport):
        async with _api(transport) as api:
            conv = ConversationSession(api, RecordingNavigator())
            await conv.init_form("feedback")
            conv.record_scalar_answer("rating_input", 5)
            await conv.next()
            assert conv.current == "praise"
            await conv.next()
            assert conv.current == "consent", "what_went_wrong stays hidden"


# =====================================================================
# Raw API behaviour
# =====================================================================


class TestApiErrors:
    """Registry errors surface as HTTP status codes."""

    @pytest.mark.asyncio
    async def test_health(self, transport):
        async with httpx.AsyncClient(transport=transport, base_url=BASE) as client:
            resp = await client.get("/health")
        assert resp.json() == {"status": "ok", "forms": 2}

    @pytest.mark.asyncio
    async def test_unknown_form_is_404(self, transport):
        async with httpx.AsyncClient(transport=transport, base_url=BASE) as client:
            assert (await client.get("/api/v1/forms/nope")).status_code == 404
            resp = await client.post("/api/v1/forms/nope/sessions", json={"params": {}})
            assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_submission_errors(self, transport):
        async with httpx.AsyncClient(transport=transport, base_url=BASE) as client:
            resp = await client.post("/api/v1/forms/contact/sessions", json={})
            assert resp.status_code == 201
            token = resp.json()["token"]
            submit = f"/api/v1/forms/contact/sessions/{token}/submit"

            bad_block = {"payload": {"ghost": {"actionId": "x", "payload": 1}}}
            assert (await client.post(submit, json=bad_block)).status_code == 404

            bad_action = {"payload": {"name": {"actionId": "nope", "payload": 1}}}
            assert (await client.post(submit, json=bad_action)).status_code == 404

            malformed = {"payload": {"name": "Ada"}}
            resp = await client.post(submit, json=malformed)
            assert resp.status_code == 422
            assert resp.json() == {"detail": "Malformed answer"}

            good = {"payload": {"name": {"actionId": "name_input", "payload": "Ada"}}}
            resp = await client.post(submit, json=good)
            assert resp.json() == {"ok": True, "is_completed": True}

            assert (await client.post(submit, json=good)).status_code == 409, \
                "A completed session rejects further answers"

            unknown = "/api/v1/forms/contact/sessions/nope/submit"
            assert (await client.post(unknown, json=good)).status_code == 404

    @pytest.mark.asyncio
    async def test_upload_to_non_file_block_is_422(self, transport):
        async with httpx.AsyncClient(transport=transport, base_url=BASE) as client:
            token = (await client.post("/api/v1/forms/contact/sessions", json={})).json()["token"]
            resp = await client.post(
                f"/api/v1/forms/contact/sessions/{token}/uploads/name",
                params={"action_id": "name_input", "index": 0},
                content=b"data",
            )
        assert resp.status_code == 422
        assert resp.json() == {"detail": "Block does not accept files"}

    @pytest.mark.asyncio
    async def test_storyboard_excludes_queue_bookkeeping(self, transport):
        async with httpx.AsyncClient(transport=transport, base_url=BASE) as client:
            blocks = (await client.get("/api/v1/forms/contact/storyboard")).json()["blocks"]
        assert all("ancestors" not in b for b in blocks)
        assert [b["id"] for b in blocks][:2] == ["intro", "name"]


class TestServerSettings:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("SERVER_PORT", "9000")
        monkeypatch.setenv("SERVER_CORS_ORIGINS", "http://a.test, http://b.test")
        monkeypatch.setenv("SERVER_LOG_LEVEL", "debug")
        s = load_settings()
        assert s.port == 9000
        assert s.cors_origins == ["http://a.test", "http://b.test"]
        assert s.log_level == "DEBUG"


class TestErrorClassification:
    """Registry messages map to fixed status codes and client details."""

    @pytest.mark.parametrize("message, expected", [
        ("Session abc is already completed", (409, "Session already completed")),
        ("Session not found: form=f token=t", (404, "Session not found")),
        ("Block not found: form=f block=b", (404, "Block not found")),
        ("Interaction not found: block=b interaction=i", (404, "Interaction not found")),
        ("Block name does not accept files", (422, "Block does not accept files")),
        ("Malformed answer for block name", (422, "Malformed answer")),
        ("something else entirely", (400, "Invalid request")),
    ])
    def test_classify(self, message, expected):
        assert classify_value_error(message) == expected


class TestFinishedSession:
    @pytest.mark.asyncio
    async def test_extra_next_after_submit_is_harmless(self, transport):
        """A finished conversation never resubmits, so the server never answers 409."""
        async with _api(transport) as api:
            conv = ConversationSession(api, RecordingNavigator())
            await conv.init_form("feedback")
            conv.record_scalar_answer("rating_input", 5)
            await conv.next()
            await conv.next()
            assert await conv.next() is True
            assert await conv.next() is True, "Finished conversation stays finished"
        assert conv.state == ConversationState.REDIRECTED
