import argparse
import logging
import os
import sys


def main():
    parser = argparse.ArgumentParser(description='SoundStats API Server')
    parser.add_argument('--host', default='127.0.0.1', help='Host to bind to')
    parser.add_argument('--port', type=int, default=8000, help='Port to bind to')
    parser.add_argument('--reload', action='store_true', help='Enable auto-reload')
    parser.add_argument('--log-level', default='info', help='Uvicorn log level')
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not os.environ.get("SOUNDSTATS_DATABASE_URL"):
        print("SOUNDSTATS_DATABASE_URL is not set.", file=sys.stderr)
        return 1

    import uvicorn

    uvicorn.run(
        "soundstats.api.app:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        reload=args.reload,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
