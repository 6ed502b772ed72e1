#!/usr/bin/env python3
"""
Manual check against a running proxy.

For every manifest listed in tests/test-urls.json ({"urls": [...]}) the script
fetches the manifest twice, directly and through <M3U8_PROXY_BASE_URL>/proxy,
and checks that every rewritten reference and URI attribute decodes to the
reference resolved against the upstream manifest.
"""
import asyncio
import json
import os
import sys
from urllib.parse import parse_qs, urlparse

from m3u8_proxy.fetcher import fetch_m3u8_content, fetch_resource
from m3u8_proxy.m3u8_handler import (
    URI_ATTRIBUTE_PATTERN,
    build_proxy_url,
    compute_base_path,
    is_absolute_http_url,
    resolve_reference,
)

PROXY_BASE_URL = os.environ.get("M3U8_PROXY_BASE_URL", "http://localhost:9987").rstrip("/")
URL_PARAM = os.environ.get("M3U8_PROXY_URL_PARAM", "url")
TEST_URLS_FILE = os.environ.get("M3U8_PROXY_TEST_URLS_FILE", os.path.join("tests", "test-urls.json"))


class RewriteMismatch(AssertionError):
    pass


def _load_manifest_urls():
    with open(TEST_URLS_FILE, "r", encoding="utf-8") as handle:
        urls = json.load(handle).get("urls") or []
    if not urls:
        raise ValueError(f"{TEST_URLS_FILE} lists no manifest URLs")
    return urls


def _expected_targets(manifest_text, manifest_url):
    base_path = compute_base_path(manifest_url)
    scheme = urlparse(manifest_url).scheme
    for line in manifest_text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith("#"):
            match = URI_ATTRIBUTE_PATTERN.search(line)
            if match and match.group(1):
                uri = match.group(1)
                yield uri if is_absolute_http_url(uri) else resolve_reference(uri, base_path, scheme)
            continue
        yield resolve_reference(stripped, base_path, scheme)


def _proxied_targets(rewritten_text):
    for line in rewritten_text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith("#"):
            match = URI_ATTRIBUTE_PATTERN.search(line)
            if match and match.group(1):
                yield match.group(1)
            continue
        yield stripped


def _decode(proxied_url):
    if not proxied_url.startswith(f"{PROXY_BASE_URL}/proxy"):
        raise RewriteMismatch(f"Not routed through the proxy: {proxied_url}")
    return parse_qs(urlparse(proxied_url).query)[URL_PARAM][0]


async def check_manifest(manifest_url):
    upstream = await fetch_resource(manifest_url)
    rewritten = await fetch_m3u8_content(build_proxy_url(f"{PROXY_BASE_URL}/proxy", manifest_url, URL_PARAM))

    if not rewritten.lstrip().startswith("#EXTM3U"):
        raise RewriteMismatch("Rewritten playlist lost its #EXTM3U header")

    expected = list(_expected_targets(upstream.text(), upstream.url))
    actual = [_decode(proxied) for proxied in _proxied_targets(rewritten)]
    if len(expected) != len(actual):
        raise RewriteMismatch(f"Expected {len(expected)} references, proxy returned {len(actual)}")
    for want, got in zip(expected, actual):
        if want != got:
            raise RewriteMismatch(f"Expected '{want}', proxy carried '{got}'")
    return len(actual)


async def run():
    failures = 0
    for manifest_url in _load_manifest_urls():
        try:
            count = await check_manifest(manifest_url)
        except Exception as exc:
            failures += 1
            print(f"[FAIL] {manifest_url}: {exc}")
        else:
            print(f"[ OK ] {manifest_url} ({count} references)")
    return failures


if __name__ == "__main__":
    sys.exit(1 if asyncio.run(run()) else 0)
