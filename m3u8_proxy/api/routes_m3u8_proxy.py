#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import logging
from urllib.parse import urlparse

from quart import current_app, Response, jsonify, request, url_for

from m3u8_proxy.api import blueprint
from m3u8_proxy.fetcher import FetchError, fetch_resource
from m3u8_proxy.m3u8_handler import RewriteConfiguration, build_proxy_url, rewrite_playlist

proxy_logger = logging.getLogger("proxy")

PLAYLIST_CONTENT_TYPE = "application/vnd.apple.mpegurl"
FORWARDED_HEADERS = ("User-Agent", "Referer", "Origin", "Accept", "Accept-Language")


def _settings():
    return current_app.config["M3U8_PROXY"]


def _cors_headers():
    return {"Access-Control-Allow-Origin": "*"}


def _build_upstream_headers():
    headers = {}
    for name in FORWARDED_HEADERS:
        value = request.headers.get(name)
        if value:
            headers[name] = value
    return headers


def _proxy_endpoint_url():
    settings = _settings()
    path = url_for("api.proxy_resource")
    if settings.public_url:
        return f"{settings.public_url}{path}"
    return f"{request.host_url.rstrip('/')}{path}"


def _requested_target():
    """Return (target_url, None), or (None, error Response) when the query is unusable."""
    settings = _settings()
    target_url = request.args.get(settings.url_param_name)
    if not target_url:
        return None, Response(f"Missing {settings.url_param_name} parameter", status=400)
    if urlparse(target_url).scheme not in ("http", "https"):
        return None, Response("Only http and https URLs can be proxied", status=400)
    return target_url, None


@blueprint.route("/proxy", methods=["GET"])
async def proxy_resource():
    target_url, error = _requested_target()
    if error is not None:
        return error

    settings = _settings()
    try:
        resource = await fetch_resource(
            target_url,
            headers=_build_upstream_headers(),
            verify_tls=settings.verify_tls,
            timeout=settings.timeout,
        )
    except FetchError as exc:
        proxy_logger.error("Failed to fetch upstream resource '%s': %s", target_url, exc)
        return Response(str(exc), status=502, headers=_cors_headers())

    if not resource.is_playlist():
        proxy_logger.info("Relaying '%s' (%s bytes)", resource.url, len(resource.body))
        return Response(
            resource.body,
            content_type=resource.content_type or "application/octet-stream",
            headers=_cors_headers(),
        )

    config = RewriteConfiguration(
        proxy_base_url=_proxy_endpoint_url(),
        target_url=resource.url,
        url_param_name=settings.url_param_name,
        preserve_query_params=settings.preserve_query_params,
    )
    proxy_logger.info("Serving rewritten playlist for '%s'", resource.url)
    return Response(
        rewrite_playlist(resource.text(), config),
        content_type=PLAYLIST_CONTENT_TYPE,
        headers=_cors_headers(),
    )


@blueprint.route("/link", methods=["GET"])
async def proxy_link():
    target_url, error = _requested_target()
    if error is not None:
        return error
    proxy_url = build_proxy_url(_proxy_endpoint_url(), target_url, _settings().url_param_name)
    return jsonify({"proxy_url": proxy_url})


@blueprint.route("/healthz", methods=["GET"])
async def healthz():
    return jsonify({"status": "ok"})
