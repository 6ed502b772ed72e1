#!/usr/bin/env python3
# -*- coding:utf-8 -*-
from m3u8_proxy import create_app
from m3u8_proxy.config import load_settings

settings = load_settings()

# Create app
app = create_app(settings)
if settings.enable_debugging:
    app.logger.info(' DEBUGGING   = ' + str(settings.enable_debugging))

if __name__ == "__main__":
    # Start Quart server
    app.logger.info("Starting Quart server...")
    app.run(debug=settings.enable_debugging, host='0.0.0.0', port=settings.port)
    app.logger.info("Quart server completed.")
