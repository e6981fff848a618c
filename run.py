#!/usr/bin/env python3
"""
Pomofy Runner - Starts the timer service and its HTTP shell
"""

import atexit
import os

from waitress import serve

from pomofy.app import create_app
from pomofy.config import load_app_config
from pomofy.services.service_manager import ServiceManager
from pomofy.utils.logger import log_startup, setup_logger

if __name__ == "__main__":
    logger = setup_logger("runner")
    log_startup("runner")

    config = load_app_config()
    service_manager = ServiceManager(config)
    atexit.register(service_manager.shutdown)

    app = create_app(config, service_manager=service_manager, start_background=True)

    print(f"🚀 Starting Pomofy on {config.host}:{config.port}")
    print(f"🌍 Environment: {config.environment}")
    print(f"🔧 Debug mode: {config.debug}")

    if config.debug:
        # The reloader would start a second set of background threads
        app.run(host=config.host, port=config.port, debug=True, use_reloader=False)
    else:
        threads = int(os.environ.get("POMOFY_WAITRESS_THREADS", "4"))
        print(f"🍽️ Using Waitress WSGI server (threads={threads})")
        serve(app, host=config.host, port=config.port, threads=threads)
