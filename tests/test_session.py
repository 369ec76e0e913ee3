# tests/test_session.py
"""Tests for the session gate middleware."""

from types import SimpleNamespace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from vidshelf.session import ACCESS_COOKIE, REFRESH_COOKIE, RouteKind, SessionGate


class FakeAuth:
    """Stand-in for the Supabase auth client."""

    def __init__(self, valid_tokens=(), refreshable=()):
        self.valid_tokens = set(valid_tokens)
        self.refreshable = set(refreshable)
        self.refresh_calls = []

    def get_user(self, jwt):
        if jwt not in self.valid_tokens:
            raise RuntimeError("invalid JWT")
        return SimpleNamespace(user=SimpleNamespace(id="u1", email="ada@example.com"))

    def refresh_session(self, refresh_token):
        self.refresh_calls.append(refresh_token)
        if refresh_token not in self.refreshable:
            raise RuntimeError("Invalid Refresh Token")
        return SimpleNamespace(
            user=SimpleNamespace(id="u1", email="ada@example.com"),
            session=SimpleNamespace(access_token="new-access", refresh_token="new-refresh", expires_in=3600),
        )


def _client(auth) -> TestClient:
    app = FastAPI()
    app.middleware("http")(SessionGate(auth))

    @app.get("/dashboard")
    async def dashboard():
        return {"ok": True}

    @app.get("/dashboard/videos")
    async def dashboard_videos():
        return {"ok": True}

    @app.get("/auth/login")
    async def login():
        return {"page": "login"}

    @app.get("/auth/new-password")
    async def new_password():
        return {"page": "new-password"}

    @app.get("/")
    async def home():
        return {"page": "home"}

    return TestClient(app, follow_redirects=False)


class TestClassification:
    @pytest.mark.parametrize("path,kind", [
        ("/dashboard", RouteKind.PROTECTED),
        ("/dashboard/settings", RouteKind.PROTECTED),
        ("/auth/login", RouteKind.AUTH_ONLY),
        ("/auth/signup", RouteKind.AUTH_ONLY),
        ("/auth/reset-password", RouteKind.AUTH_ONLY),
        ("/auth/new-password", RouteKind.OTHER),
        ("/", RouteKind.OTHER),
        ("/api/videos", RouteKind.OTHER),
    ])
    def test_classify_path(self, path, kind):
        assert SessionGate.classify_path(path) == kind

    def test_redirect_targets(self):
        assert SessionGate.redirect_target("/dashboard", authenticated=False) == "/auth/login"
        assert SessionGate.redirect_target("/dashboard", authenticated=True) is None
        assert SessionGate.redirect_target("/auth/login", authenticated=True) == "/dashboard"
        assert SessionGate.redirect_target("/auth/login", authenticated=False) is None
        assert SessionGate.redirect_target("/auth/new-password", authenticated=True) is None


class TestMiddleware:
    def test_anonymous_redirected_from_dashboard(self):
        response = _client(FakeAuth()).get("/dashboard/videos")
        assert response.status_code == 307
        assert response.headers["location"] == "/auth/login"

    def test_no_auth_configured_is_anonymous(self):
        response = _client(None).get("/dashboard")
        assert response.status_code == 307

    def test_authenticated_passes(self):
        client = _client(FakeAuth(valid_tokens={"good"}))
        client.cookies.set(ACCESS_COOKIE, "good")
        response = client.get("/dashboard")
        assert response.status_code == 200

    def test_authenticated_sent_away_from_login(self):
        client = _client(FakeAuth(valid_tokens={"good"}))
        client.cookies.set(ACCESS_COOKIE, "good")
        response = client.get("/auth/login")
        assert response.status_code == 307
        assert response.headers["location"] == "/dashboard"

    def test_new_password_page_never_redirected(self):
        client = _client(FakeAuth(valid_tokens={"good"}))
        client.cookies.set(ACCESS_COOKIE, "good")
        assert client.get("/auth/new-password").status_code == 200

    def test_expired_session_refreshed(self):
        auth = FakeAuth(refreshable={"r1"})
        client = _client(auth)
        client.cookies.set(ACCESS_COOKIE, "expired")
        client.cookies.set(REFRESH_COOKIE, "r1")
        response = client.get("/dashboard")
        assert response.status_code == 200
        assert auth.refresh_calls == ["r1"]
        assert response.cookies.get(ACCESS_COOKIE) == "new-access"
        assert response.cookies.get(REFRESH_COOKIE) == "new-refresh"

    def test_failed_refresh_is_anonymous(self):
        client = _client(FakeAuth())
        client.cookies.set(REFRESH_COOKIE, "revoked")
        response = client.get("/dashboard")
        assert response.status_code == 307

    def test_public_pages_pass(self):
        assert _client(FakeAuth()).get("/").json() == {"page": "home"}
