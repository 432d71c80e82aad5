"""
Run the arena server.

Usage:
    tycoon-server --host 0.0.0.0 --port 8000
    python -m tycoon.server --reload
"""

import argparse

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Tycoon Arena HTTP/WebSocket server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])
    args = parser.parse_args()

    uvicorn.run(
        "tycoon.server.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
