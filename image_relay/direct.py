"""Helpers shared by the stateless image actions."""

import asyncio
import base64
from typing import Any, Callable


async def run_blocking(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """
    Run a blocking function in a thread pool to avoid blocking the event loop.
    """

    return await asyncio.to_thread(func, *args, **kwargs)


def to_data_url(payload: bytes | bytearray | memoryview, media_type: str) -> str:
    """Encode bytes as a base64 ``data:`` URL."""

    encoded = base64.b64encode(bytes(payload)).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


__all__ = ["run_blocking", "to_data_url"]
