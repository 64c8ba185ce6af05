"""
Authentication Unit Tests

Owner resolution in both modes: trusted gateway header and session
verification against the identity service (httpx.MockTransport).
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from mindnotes.core.auth import get_current_owner, verify_session
from mindnotes.core.config import settings

VERIFY_URL = "http://auth.test/api/auth/verify"


@pytest.fixture
def whoami() -> TestClient:
    app = FastAPI()

    @app.get("/whoami")
    async def whoami_route(owner_id: str = Depends(get_current_owner)):
        return {"owner_id": owner_id}

    return TestClient(app)


# ---------------------------------------------------------------------------
# verify_session
# ---------------------------------------------------------------------------


class TestVerifySession:
    @pytest.mark.asyncio
    async def test_valid_session(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["cookie"] = request.headers.get("cookie")
            return httpx.Response(200, json={"authenticated": True, "uid": "u1"})

        owner = await verify_session("tok", VERIFY_URL, transport=httpx.MockTransport(handler))

        assert owner == "u1"
        assert seen["cookie"] == "session=tok"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(401, json={"authenticated": False}),
            httpx.Response(200, json={"authenticated": False, "uid": "u1"}),
            httpx.Response(200, json={"authenticated": True}),
            httpx.Response(200, text="not json"),
        ],
    )
    async def test_invalid_session(self, response):
        transport = httpx.MockTransport(lambda request: response)

        assert await verify_session("tok", VERIFY_URL, transport=transport) is None

    @pytest.mark.asyncio
    async def test_unreachable_service_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(httpx.HTTPError):
            await verify_session("tok", VERIFY_URL, transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# get_current_owner
# ---------------------------------------------------------------------------


class TestGatewayMode:
    @pytest.fixture(autouse=True)
    def _gateway(self, monkeypatch):
        monkeypatch.setattr(settings, "AUTH_VERIFY_URL", None)

    def test_header_identity(self, whoami):
        res = whoami.get("/whoami", headers={"X-User-Id": " u1 "})

        assert res.status_code == 200
        assert res.json() == {"owner_id": "u1"}

    def test_missing_header(self, whoami):
        assert whoami.get("/whoami").status_code == 401


class TestSessionMode:
    @pytest.fixture(autouse=True)
    def _session_mode(self, monkeypatch):
        monkeypatch.setattr(settings, "AUTH_VERIFY_URL", VERIFY_URL)

    def test_cookie_session(self, whoami):
        with patch("mindnotes.core.auth.verify_session", AsyncMock(return_value="u1")) as verify:
            whoami.cookies.set("session", "tok")
            res = whoami.get("/whoami")

        assert res.json() == {"owner_id": "u1"}
        verify.assert_awaited_once_with("tok", VERIFY_URL)

    def test_bearer_token(self, whoami):
        with patch("mindnotes.core.auth.verify_session", AsyncMock(return_value="u1")) as verify:
            res = whoami.get("/whoami", headers={"Authorization": "Bearer tok"})

        assert res.status_code == 200
        verify.assert_awaited_once_with("tok", VERIFY_URL)

    def test_header_ignored_in_session_mode(self, whoami):
        res = whoami.get("/whoami", headers={"X-User-Id": "u1"})

        assert res.status_code == 401

    def test_invalid_session(self, whoami):
        with patch("mindnotes.core.auth.verify_session", AsyncMock(return_value=None)):
            res = whoami.get("/whoami", headers={"Authorization": "Bearer bad"})

        assert res.status_code == 401

    def test_identity_service_down(self, whoami):
        error = httpx.ConnectError("refused")
        with patch("mindnotes.core.auth.verify_session", AsyncMock(side_effect=error)):
            res = whoami.get("/whoami", headers={"Authorization": "Bearer tok"})

        assert res.status_code == 503
