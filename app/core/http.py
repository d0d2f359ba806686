"""Outbound HTTP helpers shared by the provider pass-through modules."""
import logging
from typing import Any, Iterator, Optional

import httpx
from fastapi import HTTPException

from app.config.settings import settings

logger = logging.getLogger(__name__)


def get_http_client() -> Iterator[httpx.Client]:
    """Per-request client, closed once the response is sent"""
    client = httpx.Client(timeout=httpx.Timeout(settings.http_timeout_seconds, connect=10.0))
    try:
        yield client
    finally:
        client.close()


def require_key(value: Optional[str], name: str) -> str:
    if not value:
        raise HTTPException(status_code=500, detail=f"{name} not configured")
    return value


def send(client: httpx.Client, provider: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
    """Issue a request to a third-party API and map failures onto handler errors."""
    try:
        response = client.request(method, url, **kwargs)
    except httpx.TimeoutException as exc:
        raise HTTPException(status_code=504, detail=f"{provider} request timed out") from exc
    except httpx.HTTPError as exc:
        raise HTTPException(status_code=502, detail=f"{provider} is unavailable") from exc

    if response.is_success:
        return response

    body = response.text[:500]
    logger.error("%s API error %s: %s", provider, response.status_code, body)
    if response.status_code == 429:
        raise HTTPException(status_code=429, detail="Rate limit exceeded, please try again later")
    if response.status_code == 402:
        raise HTTPException(status_code=402, detail="Payment required, please add credits")
    raise HTTPException(status_code=502, detail=f"{provider} API error: {response.status_code} - {body}")
