# dealsync/core/http.py

from typing import Optional

import httpx

from dealsync.core.config import get_settings

USER_AGENT = "dealsync/1.0 (+https://github.com/dealsync)"


def get_client(
    timeout: Optional[float] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """
    Returns a configured HTTP client for marketplace API calls.
    Every request made through it is bounded by the search timeout.
    """
    settings = get_settings()
    return httpx.Client(
        headers={
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        },
        timeout=timeout if timeout is not None else settings.search_timeout_seconds,
        follow_redirects=True,
        verify=True,
        transport=transport,
    )
