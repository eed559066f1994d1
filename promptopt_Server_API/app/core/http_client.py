from __future__ import annotations

"""
Centralized HTTP client factory with safe defaults.

Features:
- trust_env=False (ignore system proxies by default)
- Explicit timeouts; ``None`` disables the timeout entirely
- Optional transport injection so tests can swap in ``httpx.MockTransport``
"""

from typing import Optional, Dict, Any

import httpx


DEFAULT_TIMEOUT_SEC = 10.0


def create_async_client(
    timeout: Optional[float] = DEFAULT_TIMEOUT_SEC,
    *,
    base_url: str = "",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    to = httpx.Timeout(timeout)
    # trust_env=False avoids proxy capture unless explicitly desired
    return httpx.AsyncClient(base_url=base_url, timeout=to, trust_env=False, transport=transport)


async def post_json_async(
    client: httpx.AsyncClient,
    url: str,
    payload: Dict[str, Any],
) -> httpx.Response:
    return await client.post(url, json=payload, headers={"Content-Type": "application/json"})


__all__ = [
    "DEFAULT_TIMEOUT_SEC",
    "create_async_client",
    "post_json_async",
]
