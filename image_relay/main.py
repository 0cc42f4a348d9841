"""FastAPI entrypoint for the image relay service."""

import argparse
import logging

import uvicorn

from .api import ServiceConfig, create_app
from .compress_service import ImageCompressionProcessor
from .config import settings
from .generate_service import ImageGenerationProcessor

logger = logging.getLogger(__name__)

config = ServiceConfig(
    name="image-relay",
    description="Text-to-image relay and image compression.",
    cors_origins=settings.cors_origins,
)

app = create_app(
    [ImageGenerationProcessor(settings), ImageCompressionProcessor(settings)],
    config,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the image relay service.")
    parser.add_argument("--host", default=settings.host, help="Bind address (default: %(default)s).")
    parser.add_argument("--port", type=int, default=settings.port, help="Bind port (default: %(default)s).")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development).")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    logger.info("Server running on http://%s:%s", args.host, args.port)
    logger.info("Health check: http://%s:%s/api/health", args.host, args.port)
    logger.info("API Key loaded: %s", "Yes" if settings.bytez_api_key else "No")

    uvicorn.run(
        "image_relay.main:app" if args.reload else app,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
