"""Background download over HTTP.

Only this module talks to the network on the render path; everything it
cannot fetch becomes a :class:`~imaging.errors.FetchError`.
"""

import httpx

from imaging.config import FETCH_TIMEOUT
from imaging.errors import FetchError

USER_AGENT = "template-renderer/1.0"


async def fetch_image(
    url: str,
    client: httpx.AsyncClient | None = None,
    timeout: float = FETCH_TIMEOUT,
) -> bytes:
    """
    Download the bytes behind ``url``.

    A caller-owned ``client`` is reused when given; otherwise a short-lived
    one is opened for this request. Any transport failure, timeout or
    non-2xx status raises FetchError naming the URL.
    """
    try:
        if client is None:
            async with httpx.AsyncClient(headers={"User-Agent": USER_AGENT}) as own_client:
                resp = await own_client.get(url, timeout=timeout, follow_redirects=True)
        else:
            resp = await client.get(url, timeout=timeout, follow_redirects=True)
    except httpx.TimeoutException as exc:
        raise FetchError(f"Unable to load image: {url} (timed out after {timeout}s)") from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(f"Unable to load image: {url} ({exc})") from exc

    if not resp.is_success:
        raise FetchError(f"Unable to load image: {url} (HTTP {resp.status_code})")
    return resp.content
