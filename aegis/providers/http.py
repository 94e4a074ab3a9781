"""Shared JSON-over-HTTP helper for provider clients."""
from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ..errors import DataUnavailableError

logger = logging.getLogger(__name__)


async def request_json(
    method: str,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    json: Any = None,
    headers: dict[str, str] | None = None,
    timeout: float = 30,
) -> Any:
    """Perform one HTTP call and return the decoded JSON body.

    Credentials belong in ``params`` or ``headers`` so they never reach the
    logs, which only ever see ``url``.

    Raises:
        DataUnavailableError: Transport failure, timeout, non-200 status or
            a body that is not JSON.
    """
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context)

    try:
        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                if response.status != 200:
                    body = await response.text()
                    logger.error("HTTP %s from %s %s", response.status, method, url)
                    raise DataUnavailableError(
                        f"HTTP {response.status} from {url}: {body[:200]}"
                    )
                return await response.json(content_type=None)
    except DataUnavailableError:
        raise
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        logger.error("Request %s %s failed: %s", method, url, e)
        raise DataUnavailableError(f"Request to {url} failed: {e}") from e
