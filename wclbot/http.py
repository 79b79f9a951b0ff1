from __future__ import annotations

from typing import Any, Dict

import aiohttp

from .config import Config, logger
from .errors import AuthenticationError, ServiceError
from .models import Credentials


def build_headers(access_token: str | None = None) -> Dict[str, str]:
    h = {
        "accept": "application/json",
        "user-agent": "wclbot/1.0",
        "cache-control": "no-cache",
    }
    if access_token:
        h["authorization"] = f"Bearer {access_token}"
    return h


def make_session() -> aiohttp.ClientSession:
    timeout = aiohttp.ClientTimeout(total=Config.HTTP_TIMEOUT)
    return aiohttp.ClientSession(
        timeout=timeout,
        headers=build_headers(),
        trust_env=True,
    )


async def fetch_token(session: aiohttp.ClientSession, url: str, creds: Credentials) -> Dict[str, Any]:
    """Exchange client credentials for an access token (OAuth2 client-credentials grant)."""
    logger.debug(f"Token request: {url}")
    auth = aiohttp.BasicAuth(creds.client_id, creds.client_secret)
    async with session.post(url, data={"grant_type": "client_credentials"}, auth=auth) as r:
        if r.status in (400, 401, 403):
            txt = await r.text()
            logger.warning(f"Token request rejected: {r.status}")
            raise AuthenticationError(f"Credentials rejected ({r.status}). Body: {txt[:180]}")
        if r.status != 200:
            txt = await r.text()
            logger.error(f"Token endpoint error: {r.status}")
            raise ServiceError(f"HTTP {r.status} for {url} :: {txt[:300]}")
        return await r.json()


async def post_graphql(
    session: aiohttp.ClientSession,
    url: str,
    query: str,
    variables: Dict[str, Any] | None = None,
    access_token: str | None = None,
) -> Dict[str, Any]:
    logger.debug(f"GraphQL request: {url}")
    payload = {"query": query, "variables": variables or {}}
    async with session.post(url, json=payload, headers=build_headers(access_token)) as r:
        if r.status in (401, 403):
            txt = await r.text()
            logger.warning(f"API auth failure for {url}: {r.status}")
            raise AuthenticationError(f"Auth failed ({r.status}). Update credentials with /register. Body: {txt[:180]}")
        if r.status != 200:
            txt = await r.text()
            logger.error(f"API error for {url}: {r.status}")
            raise ServiceError(f"HTTP {r.status} for {url} :: {txt[:300]}")
        body = await r.json()

    errors = body.get("errors")
    if errors:
        message = "; ".join(str(e.get("message", e)) for e in errors)
        logger.error(f"GraphQL error for {url}: {message}")
        raise ServiceError(f"GraphQL error: {message}")
    logger.debug(f"API success: {url}")
    return body.get("data") or {}
