#!/usr/bin/env python3
"""
Local development server for the Shopify Store Analytics API.

Run from backend/:  python start_api.py
Host and port can be overridden with API_HOST / API_PORT.
"""

import os
import sys
from pathlib import Path

import uvicorn

REQUIRED_VARS = ("DATABASE_URL", "TOKEN_ENCRYPTION_KEY", "SHOPIFY_API_KEY", "SHOPIFY_API_SECRET", "APP_URL")


def main():
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))

    print(f"🚀 Shopify Store Analytics API on http://{host}:{port}")
    print(f"📖 Swagger UI: http://localhost:{port}/docs")

    if not Path(".env").exists():
        missing = [name for name in REQUIRED_VARS if not os.getenv(name)]
        if missing:
            print(f"⚠️  No .env file and missing variables: {', '.join(missing)}")

    try:
        uvicorn.run("app.main:app", host=host, port=port, reload=True, reload_dirs=["app"], log_level="info")
    except KeyboardInterrupt:
        print("\n👋 Server stopped")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
