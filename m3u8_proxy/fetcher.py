#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import urlparse

import aiohttp

fetch_logger = logging.getLogger("fetch")

PLAYLIST_CONTENT_TYPES = ("mpegurl",)
PLAYLIST_EXTENSIONS = (".m3u8", ".m3u")
UTF8_BOM = b"\xef\xbb\xbf"


class FetchError(Exception):
    """Raised when an upstream resource could not be retrieved."""

    def __init__(self, url, reason, status=None, description="upstream resource"):
        self.url = url
        self.reason = reason
        self.status = status
        super().__init__(f"Failed to fetch {description}: {reason}")


@dataclass(frozen=True)
class FetchedResource:
    url: str
    body: bytes
    content_type: str = ""

    def text(self):
        # utf-8-sig drops a leading byte order mark
        return self.body.decode("utf-8-sig", errors="replace")

    def is_playlist(self):
        if any(marker in self.content_type.lower() for marker in PLAYLIST_CONTENT_TYPES):
            return True
        path = (urlparse(self.url).path or "").lower()
        if path.endswith(PLAYLIST_EXTENSIONS):
            return True
        body = self.body
        if body.startswith(UTF8_BOM):
            body = body[len(UTF8_BOM):]
        return body.lstrip().startswith(b"#EXTM3U")


def _request_kwargs(headers, verify_tls, timeout):
    kwargs = {
        "headers": headers or {},
        "timeout": aiohttp.ClientTimeout(total=timeout),
    }
    if not verify_tls:
        # Accept self-signed and otherwise invalid certificates for this request only
        kwargs["ssl"] = False
    return kwargs


async def _get(session, url, headers, verify_tls, timeout, description):
    try:
        async with session.get(url, **_request_kwargs(headers, verify_tls, timeout)) as resp:
            if resp.status < 200 or resp.status >= 300:
                fetch_logger.error("Upstream returned %s for '%s'", resp.status, url)
                raise FetchError(
                    url,
                    resp.reason or str(resp.status),
                    status=resp.status,
                    description=description,
                )
            body = await resp.read()
            content_type = resp.headers.get("Content-Type") or ""
            return FetchedResource(url=str(resp.url), body=body, content_type=content_type)
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        fetch_logger.error("Failed to fetch '%s': %s", url, exc)
        raise FetchError(url, str(exc) or exc.__class__.__name__, description=description) from exc


async def _fetch(url, headers, verify_tls, timeout, session, description):
    fetch_logger.debug("Fetching '%s' (verify_tls=%s)", url, verify_tls)
    if session is not None:
        return await _get(session, url, headers, verify_tls, timeout, description)
    async with aiohttp.ClientSession() as own_session:
        return await _get(own_session, url, headers, verify_tls, timeout, description)


async def fetch_resource(url, headers=None, verify_tls=False, timeout=30.0, session=None):
    """
    Fetch an upstream resource.

    The final URL after redirects is returned alongside the body so that
    relative playlist references resolve against where the playlist really
    lives. Raises FetchError on transport failures and non-2xx responses.
    """
    return await _fetch(url, headers, verify_tls, timeout, session, "upstream resource")


async def fetch_m3u8_content(url, headers=None, verify_tls=False, timeout=30.0, session=None):
    resource = await _fetch(url, headers, verify_tls, timeout, session, "M3U8 content")
    return resource.text()
