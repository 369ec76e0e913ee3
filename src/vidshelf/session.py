"""Session gate: refresh the Supabase auth session and redirect by route class."""

import logging
import re
from enum import Enum
from typing import Any

from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse

from vidshelf.config import settings

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "sb-access-token"
REFRESH_COOKIE = "sb-refresh-token"

LOGIN_PATH = "/auth/login"
DASHBOARD_PATH = "/dashboard"


class RouteKind(str, Enum):
    PROTECTED = "protected"
    AUTH_ONLY = "auth_only"
    OTHER = "other"


class SessionGate:
    """HTTP middleware gating the dashboard behind an authenticated session.

    On each request the access-token cookie is validated; an expired one is
    replaced from the refresh-token cookie and the new cookies are written
    back on the response. Then:

    - no user on a protected route -> redirect to the login page
    - a user on an auth-only page -> redirect to the dashboard
    - anything else passes through
    """

    PROTECTED_PREFIXES = (DASHBOARD_PATH,)
    AUTH_ROUTES = ("/auth/login", "/auth/signup", "/auth/reset-password")
    NEW_PASSWORD_ROUTE = "/auth/new-password"

    _BYPASS = re.compile(r"^/(?:static/|favicon\.ico$)|\.(?:svg|png|jpg|jpeg|gif|webp)$")

    def __init__(self, auth: Any | None = None, secure_cookies: bool | None = None) -> None:
        """Initialize the gate.

        Args:
            auth: Supabase auth client (``client.auth``). None means nobody
                  can authenticate.
            secure_cookies: Secure flag for refreshed cookies. Defaults to
                            settings.cookie_secure.
        """
        self._auth = auth
        self._secure = settings.cookie_secure if secure_cookies is None else secure_cookies

    @classmethod
    def classify_path(cls, path: str) -> RouteKind:
        if any(path.startswith(prefix) for prefix in cls.PROTECTED_PREFIXES):
            return RouteKind.PROTECTED
        if path in cls.AUTH_ROUTES:
            return RouteKind.AUTH_ONLY
        return RouteKind.OTHER

    @classmethod
    def redirect_target(cls, path: str, authenticated: bool) -> str | None:
        """Where to send the request, or None to let it through."""
        if path == cls.NEW_PASSWORD_ROUTE:
            return None
        kind = cls.classify_path(path)
        if kind == RouteKind.PROTECTED and not authenticated:
            return LOGIN_PATH
        if kind == RouteKind.AUTH_ONLY and authenticated:
            return DASHBOARD_PATH
        return None

    def resolve_session(self, access_token: str | None, refresh_token: str | None):
        """Return (user, refreshed_session). Auth failures count as anonymous."""
        if self._auth is None:
            return None, None

        if access_token:
            try:
                response = self._auth.get_user(access_token)
                user = getattr(response, "user", None)
                if user is not None:
                    return user, None
            except Exception as e:
                logger.debug("Access token rejected: %s", e)

        if refresh_token:
            try:
                response = self._auth.refresh_session(refresh_token)
            except Exception as e:
                logger.info("Session refresh failed: %s", e)
                return None, None
            session = getattr(response, "session", None)
            user = getattr(response, "user", None)
            if session is not None and user is not None:
                return user, session
        return None, None

    async def __call__(self, request: Request, call_next):
        path = request.url.path
        if self._BYPASS.search(path):
            return await call_next(request)

        user, session = await run_in_threadpool(
            self.resolve_session,
            request.cookies.get(ACCESS_COOKIE),
            request.cookies.get(REFRESH_COOKIE),
        )
        request.state.user = user

        target = self.redirect_target(path, user is not None)
        if target is not None:
            response = RedirectResponse(url=target, status_code=307)
        else:
            response = await call_next(request)

        if session is not None:
            self._write_cookies(response, session)
        return response

    def _write_cookies(self, response, session) -> None:
        options = {"httponly": True, "samesite": "lax", "secure": self._secure, "path": "/"}
        response.set_cookie(
            ACCESS_COOKIE,
            session.access_token,
            max_age=getattr(session, "expires_in", None),
            **options,
        )
        response.set_cookie(REFRESH_COOKIE, session.refresh_token, **options)
