"""Bearer-token guard for the matchengine API.

The token comes from the application's EngineConfig (``config.api.api_token``,
defaulted from MATCHENGINE_API_TOKEN when the app is created). With no token
configured the API is open (development mode).
"""

from __future__ import annotations

import secrets

from fastapi import Depends, Header, HTTPException, Request

from matchengine.config.settings import APIConfig


def _bearer_token(authorization: str = Header(default="")) -> str:
    scheme, _, token = authorization.partition(" ")
    return token.strip() if scheme.lower() == "bearer" else ""


def _api_config(request: Request) -> APIConfig:
    config = getattr(request.app.state, "config", None)
    return config.api if config is not None else APIConfig()


async def require_api_auth(request: Request, token: str = Depends(_bearer_token)) -> str:
    expected = _api_config(request).api_token
    if not expected:
        return ""
    if not token or not secrets.compare_digest(token, expected):
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing API token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token
