"""Shared fixtures for the image relay tests."""

import io

import pytest
from PIL import Image

from image_relay import Settings


def make_image_bytes(size=(64, 48), mode="RGB", format="PNG", color=(200, 30, 30), **save_kwargs) -> bytes:
    """Render a solid-colour image in memory."""
    if mode in ("L", "P", "1"):
        color = 128
    elif mode in ("RGBA",) and len(color) == 3:
        color = (*color, 128)
    img = Image.new(mode, size, color)
    buffer = io.BytesIO()
    img.save(buffer, format=format, **save_kwargs)
    return buffer.getvalue()


@pytest.fixture
def make_image():
    return make_image_bytes


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        bytez_api_key="test-key",
        bytez_api_url="https://bytez.test/models/v2",
    )


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes()
