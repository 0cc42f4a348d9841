"""Stateless text-to-image relay and image compression service."""

from .processor import BaseProcessor, StatelessAction
from .api import create_app, ServiceConfig
from .config import Settings, settings
from .direct import run_blocking, to_data_url
from .generation import BytezClient, ModelRun, extract_image_url
from .compression import CompressedImage, CompressionOptions, InvalidImageError, compress_image, resolve_options

__version__ = "1.0.0"


__all__ = [
    "BaseProcessor",
    "StatelessAction",
    "create_app",
    "ServiceConfig",
    "Settings",
    "settings",
    "run_blocking",
    "to_data_url",
    "BytezClient",
    "ModelRun",
    "extract_image_url",
    "CompressedImage",
    "CompressionOptions",
    "InvalidImageError",
    "compress_image",
    "resolve_options",
]
