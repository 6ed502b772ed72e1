#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import logging
from logging.config import dictConfig
from importlib import import_module

from quart import Quart

from m3u8_proxy.config import load_settings

dictConfig({
    'version':    1,
    'disable_existing_loggers': False,
    'formatters': {
        'default': {
            'format': '%(asctime)s:%(levelname)s:%(name)s: %(message)s',
        }
    },
    'handlers':   {
        'wsgi': {
            'class':     'logging.StreamHandler',
            'stream':    'ext://sys.stderr',
            'formatter': 'default'
        }
    },
    'root':       {
        'level':    'INFO',
        'handlers': ['wsgi']
    }
})


def create_app(settings=None):
    if settings is None:
        settings = load_settings()

    # Create app
    app = Quart(__name__, instance_relative_config=True)
    app.config["M3U8_PROXY"] = settings

    # Register the route blueprints
    module = import_module('m3u8_proxy.api.routes_m3u8_proxy')
    app.register_blueprint(module.blueprint, url_prefix=settings.route_prefix or None)

    level = logging.DEBUG if settings.enable_debugging else logging.INFO
    app.logger.setLevel(level)
    for name in ('proxy', 'fetch'):
        logging.getLogger(name).setLevel(level)

    return app
