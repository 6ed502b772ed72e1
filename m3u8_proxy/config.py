#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import os
from dataclasses import dataclass
from typing import Optional

TRUE_VALUES = ("true", "1", "yes", "on")


@dataclass(frozen=True)
class Settings:
    route_prefix: str = ""
    public_url: Optional[str] = None
    url_param_name: str = "url"
    preserve_query_params: bool = False
    verify_tls: bool = False
    timeout: float = 30.0
    port: int = 9987
    enable_debugging: bool = False


def _env_bool(environ, name, default=False):
    value = environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in TRUE_VALUES


def _env_number(environ, name, default, cast):
    value = environ.get(name)
    if not value:
        return default
    try:
        return cast(value)
    except (ValueError, TypeError):
        return default


def normalize_prefix(prefix):
    if not prefix or prefix == "/":
        return ""
    return "/" + prefix.strip("/")


def load_settings(environ=None) -> Settings:
    if environ is None:
        environ = os.environ
    return Settings(
        route_prefix=normalize_prefix(environ.get("M3U8_PROXY_ROUTE_PREFIX", "")),
        public_url=(environ.get("M3U8_PROXY_PUBLIC_URL") or "").rstrip("/") or None,
        url_param_name=environ.get("M3U8_PROXY_URL_PARAM") or "url",
        preserve_query_params=_env_bool(environ, "M3U8_PROXY_PRESERVE_QUERY_PARAMS"),
        verify_tls=_env_bool(environ, "M3U8_PROXY_VERIFY_TLS"),
        timeout=_env_number(environ, "M3U8_PROXY_TIMEOUT", 30.0, float),
        port=_env_number(environ, "M3U8_PROXY_PORT", 9987, int),
        enable_debugging=_env_bool(environ, "ENABLE_DEBUGGING"),
    )
