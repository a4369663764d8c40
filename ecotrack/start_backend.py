#!/usr/bin/env python3
"""
Backend startup wrapper.

    python -m ecotrack.start_backend --port 8000
"""
import argparse
import logging
import sys

import uvicorn


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the EcoTrack API server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args(argv)

    logging.getLogger("ecotrack").info("Starting EcoTrack on http://%s:%s", args.host, args.port)
    try:
        uvicorn.run(
            "ecotrack.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level="info",
            access_log=True,
        )
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())
