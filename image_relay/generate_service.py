"""Stateless text-to-image processor."""

import logging
from typing import Any, List

from fastapi import HTTPException
from pydantic import BaseModel, Field

from .config import Settings, settings as default_settings
from .generation import BytezClient, extract_image_url
from .models import CamelModel
from .processor import BaseProcessor, StatelessAction

logger = logging.getLogger(__name__)


class GenerateImageRequest(BaseModel):
    """Request payload for text-to-image generation."""

    # Left loose so an absent or non-string prompt maps to "Prompt is required"
    prompt: Any = Field(None, description="Text prompt describing the image")


class GenerateImageResponse(CamelModel):
    """Response carrying the generated image URL."""

    success: bool = True
    image_url: str = Field(..., description="URL of the generated image")


class ImageGenerationProcessor(BaseProcessor):
    """Processor relaying prompts to the Bytez text-to-image API."""

    def __init__(self, settings: Settings | None = None, client: BytezClient | None = None):
        self.settings = settings or default_settings
        self._client = client

    @property
    def name(self) -> str:
        return "image-generation"

    def get_stateless_actions(self) -> List[StatelessAction]:
        return [
            StatelessAction(
                name="generate_image",
                path="/api/generate-image",
                request_model=GenerateImageRequest,
                response_model=GenerateImageResponse,
                handler=self.handle_generate_image,
                summary="Generate an image from a text prompt",
                description=(
                    "Forwards the trimmed prompt to the configured Bytez text-to-image "
                    "model and returns the URL of the generated image."
                ),
                tags=("images",),
            ),
        ]

    def _get_client(self) -> BytezClient:
        if self._client is None:
            self._client = BytezClient(
                api_key=self.settings.bytez_api_key,
                base_url=self.settings.bytez_api_url,
                timeout=self.settings.bytez_timeout,
            )
        return self._client

    async def handle_generate_image(self, payload: GenerateImageRequest) -> GenerateImageResponse:
        """Generate an image and relay its URL."""

        prompt = payload.prompt.strip() if isinstance(payload.prompt, str) else ""
        if not prompt:
            raise HTTPException(status_code=400, detail="Prompt is required")
        if len(prompt) > self.settings.max_prompt_length:
            raise HTTPException(status_code=400, detail="Prompt is too long")

        if not self.settings.bytez_api_key:
            raise HTTPException(status_code=500, detail="Bytez API key is not configured")

        run = await self._get_client().run(self.settings.bytez_model, prompt)

        if run.error:
            logger.error("Image generation error: %s", run.error)
            raise HTTPException(status_code=500, detail=run.error_message or "Failed to generate image")

        if run.output is None or run.output == "":
            raise HTTPException(status_code=500, detail="No output received from the API")

        image_url = extract_image_url(run.output)
        if not image_url:
            raise HTTPException(status_code=500, detail="Could not extract image URL from response")

        return GenerateImageResponse(image_url=image_url)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
