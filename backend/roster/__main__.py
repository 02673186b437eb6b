"""Serve the roster API with uvicorn.

Usage: python -m roster [--host HOST] [--port PORT]
"""
import argparse

import uvicorn

from .config import settings
from .main import create_app


def main(argv=None):
    parser = argparse.ArgumentParser(prog="roster", description="Run the student roster API")
    parser.add_argument('--host', default=settings.HOST, help='Interface to bind')
    parser.add_argument('--port', type=int, default=settings.PORT, help='Port to listen on')
    args = parser.parse_args(argv)
    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_level=settings.LOG_LEVEL.lower())


if __name__ == '__main__':
    main()
