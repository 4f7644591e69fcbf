import ipaddress
import socket
from urllib.parse import urljoin, urlparse

import httpx

MAX_CONTENT_SIZE = 10 * 1024 * 1024  # 10 MB
TIMEOUT = 10  # seconds
MAX_REDIRECTS = 10
ALLOWED_SCHEMES = {"http", "https"}

USER_AGENT = "llm-txt-gen/0.1 (+https://github.com/remete618/llm-txt-gen)"
_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


def _is_private_address(hostname: str) -> bool:
    """Return True if *hostname* resolves to a private, loopback, or link-local address."""
    try:
        infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror:
        return False

    for info in infos:
        # Strip IPv6 zone IDs (e.g. "::1%eth0" → "::1")
        raw_ip = info[4][0].split("%")[0]
        try:
            addr = ipaddress.ip_address(raw_ip)
        except ValueError:
            continue
        if addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved:
            return True
    return False


def validate_url(url: str) -> None:
    """Raise ValueError if *url* fails SSRF / scheme validation."""
    try:
        httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ValueError(f"Invalid URL: {exc}") from exc

    parsed = urlparse(url)

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"Scheme '{parsed.scheme}' is not allowed. Use http or https.")

    hostname = parsed.hostname
    if not hostname:
        raise ValueError("URL must have a valid hostname.")

    if _is_private_address(hostname):
        raise ValueError("Requests to private/internal addresses are not allowed.")


async def fetch_url(url: str, timeout: float = TIMEOUT) -> str:
    """Fetch *url* and return the response body as a string.

    Redirects are followed manually so that every redirect destination is
    validated against the SSRF rules before the next request is made.

    Raises:
        ValueError: if the URL fails SSRF / scheme validation.
        httpx.HTTPStatusError: on a non-2xx response (status on ``exc.response``).
        httpx.HTTPError: on other network errors, including timeouts.
        RuntimeError: if the response body exceeds MAX_CONTENT_SIZE.
    """
    validate_url(url)

    current_url = url
    async with httpx.AsyncClient(
        follow_redirects=False, timeout=timeout, headers=_HEADERS
    ) as client:
        for _ in range(MAX_REDIRECTS + 1):
            async with client.stream("GET", current_url) as response:
                if response.is_redirect:
                    location = response.headers.get("location", "")
                    next_url = urljoin(current_url, location)
                    validate_url(next_url)
                    current_url = next_url
                    continue

                response.raise_for_status()
                return await _read_capped(response)

    raise RuntimeError("Too many redirects.")


async def _read_capped(response: httpx.Response) -> str:
    """Read a streamed body, refusing anything larger than MAX_CONTENT_SIZE."""
    declared = response.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > MAX_CONTENT_SIZE:
        raise RuntimeError("Response body exceeds the maximum allowed size.")

    body = bytearray()
    async for chunk in response.aiter_bytes():
        body.extend(chunk)
        if len(body) > MAX_CONTENT_SIZE:
            raise RuntimeError("Response body exceeds the maximum allowed size.")

    return bytes(body).decode(response.encoding or "utf-8", errors="replace")
