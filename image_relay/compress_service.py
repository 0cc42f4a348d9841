"""Stateless image compression processor."""

import logging
from typing import List

from fastapi import HTTPException
from pydantic import Field, field_validator
from starlette.datastructures import UploadFile

from .compression import compress_image, resolve_options
from .config import Settings, settings as default_settings
from .direct import run_blocking
from .models import CamelModel
from .processor import BaseProcessor, StatelessAction

logger = logging.getLogger(__name__)


class CompressImageForm(CamelModel):
    """Form fields accompanying an uploaded image."""

    format: str | None = Field(None, description="Output format: webp, jpeg or png")
    quality: int | None = Field(None, description="Encoder quality, clamped to 1-100")
    max_width: int | None = Field(None, description="Maximum output width in pixels")
    max_height: int | None = Field(None, description="Maximum output height in pixels")

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CompressImageResponse(CamelModel):
    """Compressed image returned inline as a data URL."""

    success: bool = True
    data_url: str
    format: str
    mime_type: str
    width: int
    height: int
    original_width: int
    original_height: int
    original_size: int
    compressed_size: int
    savings: float = Field(..., description="Size reduction in percent")


class ImageCompressionProcessor(BaseProcessor):
    """Processor exposing upload-and-compress."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or default_settings

    @property
    def name(self) -> str:
        return "image-compression"

    def get_stateless_actions(self) -> List[StatelessAction]:
        return [
            StatelessAction(
                name="compress_image",
                path="/api/compress-image",
                request_model=CompressImageForm,
                response_model=CompressImageResponse,
                handler=self.handle_compress_image,
                upload_field="image",
                summary="Compress an uploaded image",
                description=(
                    "Re-encodes the uploaded image as WebP, JPEG or PNG, shrinking it to fit "
                    "the requested bounds, and returns the result as a base64 data URL."
                ),
                tags=("images",),
            ),
        ]

    async def handle_compress_image(
        self, form: CompressImageForm, upload: UploadFile | None
    ) -> CompressImageResponse:
        """Compress an uploaded image."""

        if upload is None:
            raise HTTPException(status_code=400, detail="Image file is required")

        limit = self.settings.max_upload_bytes
        too_large = HTTPException(
            status_code=413,
            detail=f"Image exceeds the maximum upload size of {limit} bytes",
        )
        if upload.size is not None and upload.size > limit:
            raise too_large

        # Read at most one byte past the limit so oversized uploads never load fully
        raw_bytes = await upload.read(limit + 1)
        if not raw_bytes:
            raise HTTPException(status_code=400, detail="Image file is required")
        if len(raw_bytes) > limit:
            raise too_large

        try:
            options = resolve_options(
                form.format,
                form.quality,
                form.max_width,
                form.max_height,
                default_format=self.settings.default_format,
                default_quality=self.settings.default_quality,
                default_max_width=self.settings.default_max_width,
                default_max_height=self.settings.default_max_height,
                max_dimension=self.settings.max_dimension,
            )
            result = await run_blocking(compress_image, raw_bytes, options)
        except ValueError as exc:
            logger.error("Failed to compress %s: %s", upload.filename, exc)
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        original_size = len(raw_bytes)
        savings = round((1 - result.size / original_size) * 100, 1)

        return CompressImageResponse(
            data_url=result.data_url,
            format=result.format,
            mime_type=result.mime_type,
            width=result.width,
            height=result.height,
            original_width=result.original_width,
            original_height=result.original_height,
            original_size=original_size,
            compressed_size=result.size,
            savings=savings,
        )
