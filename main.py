#!/usr/bin/env python3
"""
PocketLegal - Main Entry Point

Runs the Flask web shell around the encounter core.

Usage:
    python main.py [--host HOST] [--port PORT] [--debug]
"""

import argparse
import logging


def main():
    parser = argparse.ArgumentParser(description="PocketLegal")

    parser.add_argument("--host", default="0.0.0.0", help="Web app host")
    parser.add_argument("--port", type=int, default=5000, help="Web app port")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger = logging.getLogger("pocketlegal")

    from webapp.app import create_app
    app = create_app()
    session = app.config['USER_SESSION']
    logger.info(f"Starting PocketLegal for {session.user_id} at http://{args.host}:{args.port}")
    logger.info(f"Debug mode: {'ON' if args.debug else 'OFF'}")
    try:
        app.run(host=args.host, port=args.port, debug=args.debug)
    finally:
        session.shutdown()


if __name__ == "__main__":
    main()
