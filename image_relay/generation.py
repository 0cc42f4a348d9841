"""
Client for the Bytez text-to-image API.

The service forwards prompts to a hosted model and relays back the URL of
the generated image.
"""

import logging
from typing import Any

import httpx
from fastapi import HTTPException
from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "stabilityai/stable-diffusion-xl-base-1.0"
DEFAULT_API_URL = "https://api.bytez.com/models/v2"

# Keys inspected, in order, when a model returns a mapping instead of a URL
IMAGE_URL_KEYS = ("url", "image", "data")


class ModelRun(BaseModel):
    """Outcome of a single model invocation."""

    error: Any = None
    output: Any = None

    @property
    def error_message(self) -> str | None:
        """Human readable provider error, if any."""
        if not self.error:
            return None
        if isinstance(self.error, str):
            return self.error
        if isinstance(self.error, dict):
            message = self.error.get("message")
            return str(message) if message else None
        return str(self.error)


def extract_image_url(output: Any) -> str | None:
    """
    Pull the image URL out of a model output.

    Lists yield their first element, strings are returned as-is and mappings
    are searched for ``url``, ``image`` then ``data``.
    """
    if isinstance(output, (list, tuple)):
        candidate = output[0] if output else None
    elif isinstance(output, str):
        candidate = output
    elif isinstance(output, dict):
        candidate = next((output[key] for key in IMAGE_URL_KEYS if output.get(key)), None)
    else:
        candidate = None

    if isinstance(candidate, str) and candidate:
        return candidate
    return None


class BytezClient:
    """
    Thin async client for running Bytez models.

    Usage:
        client = BytezClient(api_key="...")
        run = await client.run("stabilityai/stable-diffusion-xl-base-1.0", "a red fox")
        if run.error_message is None:
            print(extract_image_url(run.output))
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the Bytez client.

        Args:
            api_key: Bytez API key
            base_url: Model endpoint prefix; the model id is appended to it
            timeout: Timeout for a single generation request in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Key {api_key}"},
        )

    async def run(self, model_id: str, prompt: str) -> ModelRun:
        """
        Run a text-to-image model on a prompt.

        Args:
            model_id: Bytez model identifier (e.g. "stabilityai/stable-diffusion-xl-base-1.0")
            prompt: Text prompt

        Returns:
            ModelRun with either an error or the model output

        Raises:
            HTTPException: If the provider is unreachable or times out
        """
        url = f"{self.base_url}/{model_id}"
        try:
            response = await self._client.post(url, json={"text": prompt})
        except httpx.TimeoutException:
            logger.error("Bytez request to %s timed out", model_id)
            raise HTTPException(status_code=504, detail="Image generation provider timed out")
        except httpx.RequestError as e:
            logger.error(f"Bytez connection error: {e}")
            raise HTTPException(status_code=503, detail="Image generation provider unavailable")

        try:
            data = response.json()
        except ValueError:
            data = None

        if not isinstance(data, dict):
            logger.error(f"Bytez returned {response.status_code}: {response.text[:200]}")
            return ModelRun(error=f"Bytez API returned {response.status_code}")

        run = ModelRun(error=data.get("error"), output=data.get("output"))
        if response.is_error and not run.error:
            run.error = f"Bytez API returned {response.status_code}"
        return run

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()
