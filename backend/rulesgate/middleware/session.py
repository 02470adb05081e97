"""Session middleware: resolves the form session from a cookie on every request.

Flow:
  1. Read the session cookie
  2. Validate it; a missing or malformed cookie gets a fresh session id
  3. Set the ContextVar so downstream code (gate dependencies) can read it
  4. Issue the cookie on the response when the id is new
  5. After the response, clear the ContextVar

The cookie has no Max-Age, so it dies with the browser session; the
server-side flags expire on their own TTL.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from rulesgate.config import settings
from rulesgate.session import (
    clear_session_context,
    new_session_id,
    set_current_session_id,
    validate_session_id,
)


class SessionMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, cookie_name: str | None = None, secure: bool | None = None):
        super().__init__(app)
        self.cookie_name = cookie_name or settings.session_cookie_name
        self.secure = settings.environment == "production" if secure is None else secure

    async def dispatch(self, request: Request, call_next) -> Response:
        session_id = request.cookies.get(self.cookie_name)
        issued = False

        if session_id:
            try:
                validate_session_id(session_id)
            except ValueError:
                session_id = None
        if not session_id:
            session_id = new_session_id()
            issued = True

        set_current_session_id(session_id)
        try:
            response = await call_next(request)
        finally:
            clear_session_context()

        if issued:
            response.set_cookie(
                self.cookie_name,
                session_id,
                httponly=True,
                samesite="lax",
                secure=self.secure,
            )
        return response
