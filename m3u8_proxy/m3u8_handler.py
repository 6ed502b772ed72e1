#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import logging
import re
from dataclasses import dataclass
from urllib.parse import quote, urljoin, urlparse

proxy_logger = logging.getLogger("proxy")

"""
M3U8 Rewriter

Every reference line and every URI="..." directive attribute in a playlist is
resolved to an absolute URL and replaced with a link back through the proxy:

    <proxy_base_url>?<url_param_name>=<percent-encoded absolute URL>

Nothing here performs I/O. Fetching the playlist is the job of
m3u8_proxy.fetcher; the routes glue the two together.
"""

URI_ATTRIBUTE_PATTERN = re.compile(r'URI="([^"]*)"')
LINE_SPLIT_PATTERN = re.compile(r"\r?\n")
BYTE_ORDER_MARK = "\ufeff"

# Marks left unescaped in a URI component, on top of alphanumerics and "-_.~"
_URI_COMPONENT_SAFE = "!*'()"


@dataclass(frozen=True)
class RewriteConfiguration:
    proxy_base_url: str
    target_url: str
    url_param_name: str = "url"
    # Accepted for compatibility with existing callers. Not consulted when rewriting.
    preserve_query_params: bool = False


def is_absolute_http_url(value):
    return value.startswith("http://") or value.startswith("https://")


def compute_base_path(target_url):
    """
    Directory-equivalent prefix used to resolve relative references.

    'https://cdn/a/show.m3u8' -> 'https://cdn/a/'
    'https://cdn/a/live'      -> 'https://cdn/a/live/'
    """
    if target_url.endswith(".m3u8"):
        return target_url[:target_url.rfind("/") + 1]
    if not target_url.endswith("/"):
        return target_url + "/"
    return target_url


def _manifest_scheme(target_url):
    """
    Scheme of the manifest URL, which must carry both a scheme and a host.

    This is stricter than a WHATWG URL parser: host-less forms such as
    'file:///x/show.m3u8' or 'http:/host/show.m3u8' are rejected here, so
    playlists fetched from them are returned without rewriting.
    """
    parsed = urlparse(target_url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Manifest URL is not absolute: '{target_url}'")
    return parsed.scheme


def build_proxy_url(proxy_base_url, target_url, param_name="url"):
    """Build a link that fetches target_url through the proxy at proxy_base_url."""
    encoded_target = quote(target_url, safe=_URI_COMPONENT_SAFE)
    if "?" not in proxy_base_url:
        separator = "?"
    elif proxy_base_url.endswith(("?", "&")):
        separator = ""
    else:
        separator = "&"
    return f"{proxy_base_url}{separator}{param_name}={encoded_target}"


def resolve_reference(reference, base_path, scheme):
    if is_absolute_http_url(reference):
        return reference
    if reference.startswith("//"):
        return f"{scheme}:{reference}"
    return urljoin(base_path, reference)


def _rewrite_directive(line, config, base_path):
    if 'URI="' not in line:
        return line
    match = URI_ATTRIBUTE_PATTERN.search(line)
    if not match or not match.group(1):
        return line

    original_uri = match.group(1)
    if is_absolute_http_url(original_uri):
        absolute_uri = original_uri
    else:
        absolute_uri = urljoin(base_path, original_uri)

    proxy_url = build_proxy_url(config.proxy_base_url, absolute_uri, config.url_param_name)
    return f'{line[:match.start()]}URI="{proxy_url}"{line[match.end():]}'


def _trim(line):
    # str.strip() leaves a byte order mark in place
    return line.strip().strip(BYTE_ORDER_MARK).strip()


def rewrite_playlist_line(line, config, base_path, scheme):
    stripped_line = _trim(line)
    if not stripped_line:
        return line

    if stripped_line.startswith("#"):
        return _rewrite_directive(line, config, base_path)

    # Already routed through this proxy
    if stripped_line.startswith(config.proxy_base_url):
        return line

    absolute_url = resolve_reference(stripped_line, base_path, scheme)
    return build_proxy_url(config.proxy_base_url, absolute_url, config.url_param_name)


def rewrite_playlist(content, config):
    """
    Rewrite all segment, sub-playlist and URI attribute references in an M3U8
    playlist so that they point back through the proxy.

    Returns the original content untouched if the playlist cannot be rewritten.
    """
    try:
        scheme = _manifest_scheme(config.target_url)
        base_path = compute_base_path(config.target_url)

        playlist = content
        if playlist.startswith(BYTE_ORDER_MARK):
            playlist = playlist[len(BYTE_ORDER_MARK):]

        proxy_logger.debug(f"Original Playlist Content:\n{content}")
        updated_lines = [
            rewrite_playlist_line(line, config, base_path, scheme)
            for line in LINE_SPLIT_PATTERN.split(playlist)
        ]
        modified_playlist = "\n".join(updated_lines)
        proxy_logger.debug(f"Modified Playlist Content:\n{modified_playlist}")
        return modified_playlist
    except Exception as exc:
        proxy_logger.error("Error processing M3U8 content from '%s': %s", config.target_url, exc)
        return content
