#!/usr/bin/env python
"""
Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py
    Seed catalog: python run_server.py --seed

    Or with Gunicorn:
    gunicorn order_engine.main:app -c gunicorn.conf.py
"""

import argparse
import asyncio
import os
import subprocess


def run_dev_server():
    """Run development server with auto-reload."""
    import uvicorn

    uvicorn.run(
        "order_engine.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=True,
        reload_dirs=["order_engine"],
        log_level="debug",
        access_log=True,
    )


def run_prod_server():
    """Run production server with Uvicorn directly."""
    import uvicorn

    uvicorn.run(
        "order_engine.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        workers=int(os.getenv("WORKERS", 4)),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        access_log=True,
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
        date_header=True,
    )


def run_gunicorn():
    """Run with Gunicorn (recommended for production)."""
    subprocess.run(["gunicorn", "order_engine.main:app", "-c", "gunicorn.conf.py"])


async def seed():
    """Create tables and load the demo catalog."""
    from order_engine.config import get_settings
    from order_engine.config.logging import configure_logging
    from order_engine.database.connection import Database
    from order_engine.database.seed import seed_catalog

    settings = get_settings()
    configure_logging(settings=settings)

    database = Database(settings.database)
    await database.connect()
    try:
        await database.create_all()
        counts = await seed_catalog(database)
    finally:
        await database.close()
    print(f"Seeded {counts['products']} products and {counts['discount_codes']} discount codes")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Order Engine API Server")
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Run in development mode with auto-reload"
    )
    parser.add_argument(
        "--gunicorn",
        action="store_true",
        help="Run with Gunicorn (production)"
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Create tables, load the demo catalog and exit"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run on (default: 8000)"
    )

    args = parser.parse_args()
    os.environ["PORT"] = str(args.port)

    if args.seed:
        asyncio.run(seed())
    elif args.dev:
        print("Starting development server...")
        run_dev_server()
    elif args.gunicorn:
        print("Starting production server with Gunicorn...")
        run_gunicorn()
    else:
        print("Starting production server with Uvicorn...")
        run_prod_server()
