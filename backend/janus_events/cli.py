"""Command line entry point: ``janus-event-sink``."""

import argparse

import uvicorn

from janus_events.config import settings


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description=settings.app_name)
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args(argv)

    uvicorn.run(
        "janus_events.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
