"""
Bearer-token guard for the care plan API.

When CARE_PLAN_JWT_SECRET is set, every /api/* route except the health check
requires `Authorization: Bearer <token>` with an HS256 token signed by that
secret. With no secret configured the API is open, which is how the local
single-user setup runs.
"""

from __future__ import annotations

import time

import jwt
from fastapi import Request
from fastapi.responses import JSONResponse

PUBLIC_API_PATHS: frozenset[str] = frozenset({"/api/health"})


def decode_token(token: str, secret: str) -> dict:
    """Raises jwt.InvalidTokenError (or a subclass) on failure."""
    if not secret:
        raise jwt.InvalidTokenError("No signing secret configured.")
    return jwt.decode(token, secret, algorithms=["HS256"], options={"verify_aud": False})


def issue_token(subject: str, secret: str, expires_in: int = 3600) -> str:
    now = int(time.time())
    return jwt.encode({"sub": subject, "iat": now, "exp": now + expires_in}, secret, algorithm="HS256")


def requires_token(request: Request, secret: str) -> bool:
    path = request.url.path
    return bool(secret) and path.startswith("/api/") and path not in PUBLIC_API_PATHS and request.method != "OPTIONS"


def check_request(request: Request, secret: str) -> JSONResponse | None:
    """Return a 401 response for a bad or missing token, ``None`` when the request may proceed."""
    if not requires_token(request, secret):
        return None

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return JSONResponse(
            status_code=401,
            content={"detail": "Missing or invalid Authorization header."},
        )

    token = auth_header.split(" ", 1)[1]
    try:
        decode_token(token, secret)
    except jwt.ExpiredSignatureError:
        return JSONResponse(
            status_code=401,
            content={"detail": "Token has expired."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as exc:
        return JSONResponse(
            status_code=401,
            content={"detail": f"Invalid token: {exc}"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return None
