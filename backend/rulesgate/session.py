"""Form sessions: one progress gate per browser session.

Key components:
  - _session_ctx            ContextVar holding the session id for the current request
  - set / get / clear helpers for the ContextVar
  - new_session_id() / validate_session_id()
"""

import re
import uuid
from contextvars import ContextVar

from fastapi import HTTPException, status

# ── Request-scoped session context ──────────────────────────

_session_ctx: ContextVar[str | None] = ContextVar("_session_ctx", default=None)


def set_current_session_id(session_id: str) -> None:
    _session_ctx.set(session_id)


def get_current_session_id() -> str:
    """Return the current session id or raise if unset."""
    session_id = _session_ctx.get()
    if session_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No session context",
        )
    return session_id


def clear_session_context() -> None:
    _session_ctx.set(None)


# ── Ids ─────────────────────────────────────────────────────

_SESSION_RE = re.compile(r"^[0-9a-f]{32}$")


def new_session_id() -> str:
    return uuid.uuid4().hex


def validate_session_id(session_id: str) -> str:
    """Session ids end up in store keys; only accept our own format."""
    if not _SESSION_RE.match(session_id):
        raise ValueError(f"Invalid session id: {session_id!r}")
    return session_id
