"""Privacy-friendly integrity fields attached to each agreement.

We never store the client's address, only a salted SHA-256 of it, which
is enough to spot the same origin signing repeatedly.
"""

import hashlib

from fastapi import Request


def hash_origin(ip: str | None, salt: str) -> str | None:
    if not ip:
        return None
    return hashlib.sha256(f"{ip}{salt}".encode("utf-8")).hexdigest()


def client_ip(request: Request) -> str | None:
    # First hop of X-Forwarded-For when running behind a proxy
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


def client_signature(request: Request) -> str | None:
    return request.headers.get("user-agent")
