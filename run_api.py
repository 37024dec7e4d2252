#!/usr/bin/env python
"""
Serve the Portcullis auth routes with uvicorn.

The app is built through the ``api.app:create_app`` factory so that
``--reload`` workers construct a fresh service container on each restart.
The factory starts with no identity providers; applications that need
sign-in register them with ``create_app(providers=[...])`` in their own
entry module, or at startup through ``get_container().providers.register``.

Host, port and reload default to the HOST, PORT and RELOAD settings.

Usage:
    python run_api.py
    python run_api.py --reload              # restart on code changes
    python run_api.py --host 127.0.0.1 --port 9000
"""

import argparse
import uvicorn

from shared.config import get_settings


def main():
    parser = argparse.ArgumentParser(description="Run Portcullis API server")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--host", type=str, help="Host to bind to")
    parser.add_argument("--port", type=int, help="Port to bind to")
    args = parser.parse_args()

    settings = get_settings()

    uvicorn.run(
        "api.app:create_app",
        factory=True,
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload or settings.reload,
    )


if __name__ == "__main__":
    main()
