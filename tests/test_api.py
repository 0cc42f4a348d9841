"""End-to-end tests for the image generation and compression endpoints."""

import asyncio
import base64
import io
import json

import httpx
import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from PIL import Image
from starlette.datastructures import UploadFile

from image_relay import Settings, create_app
from image_relay.compress_service import CompressImageForm, ImageCompressionProcessor
from image_relay.generate_service import ImageGenerationProcessor
from image_relay.generation import BytezClient


def _bytez_client(settings, handler) -> BytezClient:
    return BytezClient(
        api_key=settings.bytez_api_key,
        base_url=settings.bytez_api_url,
        transport=httpx.MockTransport(handler),
    )


def _app_client(settings, handler=None) -> TestClient:
    bytez = _bytez_client(settings, handler) if handler else None
    app = create_app(
        [ImageGenerationProcessor(settings, client=bytez), ImageCompressionProcessor(settings)]
    )
    return TestClient(app)


def _reply(payload, status_code=200):
    def handler(request):
        return httpx.Response(status_code, json=payload)

    return handler


class TestGenerateImage:
    def test_success(self, test_settings):
        prompts = []

        def handler(request):
            prompts.append(json.loads(request.content)["text"])
            return httpx.Response(200, json={"error": None, "output": ["https://cdn.test/out.png"]})

        client = _app_client(test_settings, handler)
        response = client.post("/api/generate-image", json={"prompt": "  a lighthouse at dusk  "})

        assert response.status_code == 200
        assert response.json() == {"success": True, "imageUrl": "https://cdn.test/out.png"}
        assert prompts == ["a lighthouse at dusk"]

    @pytest.mark.parametrize("body", [{}, {"prompt": ""}, {"prompt": "   "}, {"prompt": None}, {"prompt": 12}])
    def test_prompt_required(self, test_settings, body):
        client = _app_client(test_settings, _reply({"output": "unused"}))
        response = client.post("/api/generate-image", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Prompt is required"}

    def test_prompt_too_long(self, test_settings):
        test_settings.max_prompt_length = 10
        client = _app_client(test_settings, _reply({"output": "unused"}))
        response = client.post("/api/generate-image", json={"prompt": "x" * 11})

        assert response.status_code == 400
        assert response.json() == {"error": "Prompt is too long"}

    def test_missing_api_key(self):
        settings = Settings(_env_file=None, bytez_api_key=None)
        client = _app_client(settings)
        response = client.post("/api/generate-image", json={"prompt": "a cat"})

        assert response.status_code == 500
        assert response.json() == {"error": "Bytez API key is not configured"}

    def test_provider_error_message(self, test_settings):
        client = _app_client(test_settings, _reply({"error": {"message": "Model overloaded"}, "output": None}))
        response = client.post("/api/generate-image", json={"prompt": "a cat"})

        assert response.status_code == 500
        assert response.json() == {"error": "Model overloaded"}

    def test_provider_error_without_message(self, test_settings):
        client = _app_client(test_settings, _reply({"error": {"code": 3}, "output": None}))
        response = client.post("/api/generate-image", json={"prompt": "a cat"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate image"}

    def test_no_output(self, test_settings):
        client = _app_client(test_settings, _reply({"error": None, "output": None}))
        response = client.post("/api/generate-image", json={"prompt": "a cat"})

        assert response.status_code == 500
        assert response.json() == {"error": "No output received from the API"}

    def test_unextractable_output(self, test_settings):
        client = _app_client(test_settings, _reply({"error": None, "output": {"tensor": [1, 2, 3]}}))
        response = client.post("/api/generate-image", json={"prompt": "a cat"})

        assert response.status_code == 500
        assert response.json() == {"error": "Could not extract image URL from response"}

    @pytest.mark.parametrize("output", [[], {}])
    def test_empty_container_output_is_unextractable(self, test_settings, output):
        client = _app_client(test_settings, _reply({"error": None, "output": output}))
        response = client.post("/api/generate-image", json={"prompt": "a cat"})

        assert response.status_code == 500
        assert response.json() == {"error": "Could not extract image URL from response"}

    def test_empty_string_output(self, test_settings):
        client = _app_client(test_settings, _reply({"error": None, "output": ""}))
        response = client.post("/api/generate-image", json={"prompt": "a cat"})

        assert response.status_code == 500
        assert response.json() == {"error": "No output received from the API"}

    def test_provider_unreachable(self, test_settings):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = _app_client(test_settings, handler)
        response = client.post("/api/generate-image", json={"prompt": "a cat"})

        assert response.status_code == 503
        assert response.json() == {"error": "Image generation provider unavailable"}


def _decode_data_url(data_url: str) -> Image.Image:
    header, payload = data_url.split(",", 1)
    assert header.endswith(";base64")
    img = Image.open(io.BytesIO(base64.b64decode(payload)))
    img.load()
    return img


class TestCompressImage:
    def test_default_webp(self, test_settings, make_image):
        raw = make_image(size=(300, 200))
        client = _app_client(test_settings)
        response = client.post(
            "/api/compress-image",
            files={"image": ("photo.png", raw, "image/png")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["format"] == "webp"
        assert data["mimeType"] == "image/webp"
        assert data["dataUrl"].startswith("data:image/webp;base64,")
        assert (data["width"], data["height"]) == (300, 200)
        assert (data["originalWidth"], data["originalHeight"]) == (300, 200)
        assert data["originalSize"] == len(raw)
        assert data["compressedSize"] == len(base64.b64decode(data["dataUrl"].split(",", 1)[1]))
        expected_savings = round((1 - data["compressedSize"] / data["originalSize"]) * 100, 1)
        assert data["savings"] == expected_savings
        assert _decode_data_url(data["dataUrl"]).format == "WEBP"

    def test_jpeg_with_bounds(self, test_settings, make_image):
        client = _app_client(test_settings)
        response = client.post(
            "/api/compress-image",
            data={"format": "JPG", "quality": "40", "maxWidth": "100", "maxHeight": "100"},
            files={"image": ("photo.png", make_image(size=(400, 100)), "image/png")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["format"] == "jpeg"
        assert (data["width"], data["height"]) == (100, 25)
        img = _decode_data_url(data["dataUrl"])
        assert img.format == "JPEG"
        assert img.size == (100, 25)

    def test_snake_case_fields_and_blank_values(self, test_settings, make_image):
        client = _app_client(test_settings)
        response = client.post(
            "/api/compress-image",
            data={"format": "png", "quality": "", "max_width": "50"},
            files={"image": ("photo.png", make_image(size=(200, 200)), "image/png")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["format"] == "png"
        assert (data["width"], data["height"]) == (50, 50)

    def test_out_of_range_parameters_are_clamped(self, test_settings, make_image):
        client = _app_client(test_settings)
        response = client.post(
            "/api/compress-image",
            data={"format": "jpeg", "quality": "500", "maxWidth": "0"},
            files={"image": ("photo.png", make_image(size=(40, 40)), "image/png")},
        )

        assert response.status_code == 200
        assert response.json()["width"] == 1

    def test_missing_file(self, test_settings):
        client = _app_client(test_settings)
        response = client.post("/api/compress-image", data={"format": "webp"})

        assert response.status_code == 400
        assert response.json() == {"error": "Image file is required"}

    def test_empty_file(self, test_settings):
        client = _app_client(test_settings)
        response = client.post(
            "/api/compress-image",
            files={"image": ("empty.png", b"", "image/png")},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Image file is required"}

    def test_oversized_upload_is_not_read_in_full(self, monkeypatch):
        reads = []
        original_read = UploadFile.read

        async def recording_read(self, size=-1):
            data = await original_read(self, size)
            reads.append((size, len(data)))
            return data

        monkeypatch.setattr(UploadFile, "read", recording_read)
        client = _app_client(Settings(_env_file=None, max_upload_bytes=100))
        response = client.post(
            "/api/compress-image",
            files={"image": ("big.bin", b"\0" * 1_000_000, "application/octet-stream")},
        )

        assert response.status_code == 413
        assert all(size != -1 and length <= 101 for size, length in reads)

    def test_oversized_upload_without_declared_size(self):
        processor = ImageCompressionProcessor(Settings(_env_file=None, max_upload_bytes=100))
        upload = UploadFile(io.BytesIO(b"\0" * 5000), filename="big.bin")

        with pytest.raises(HTTPException) as excinfo:
            asyncio.run(processor.handle_compress_image(CompressImageForm(), upload))

        assert excinfo.value.status_code == 413
        assert upload.file.tell() == 101

    def test_file_too_large(self, make_image):
        settings = Settings(_env_file=None, max_upload_bytes=100)
        client = _app_client(settings)
        raw = make_image(size=(200, 200), format="BMP")
        response = client.post(
            "/api/compress-image",
            files={"image": ("big.bmp", raw, "image/bmp")},
        )

        assert response.status_code == 413
        assert "maximum upload size" in response.json()["error"]

    def test_invalid_image(self, test_settings):
        client = _app_client(test_settings)
        response = client.post(
            "/api/compress-image",
            files={"image": ("notes.txt", b"hello world", "text/plain")},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid image file"}

    def test_unsupported_format(self, test_settings, make_image):
        client = _app_client(test_settings)
        response = client.post(
            "/api/compress-image",
            data={"format": "gif"},
            files={"image": ("photo.png", make_image(), "image/png")},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Unsupported format 'gif'"}

    def test_non_numeric_quality(self, test_settings, make_image):
        client = _app_client(test_settings)
        response = client.post(
            "/api/compress-image",
            data={"quality": "high"},
            files={"image": ("photo.png", make_image(), "image/png")},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"


def test_openapi_documents_upload_form(test_settings):
    client = _app_client(test_settings)
    schema = client.get("/openapi.json").json()

    body = schema["paths"]["/api/compress-image"]["post"]["requestBody"]
    properties = body["content"]["multipart/form-data"]["schema"]["properties"]
    assert properties["image"] == {"type": "string", "format": "binary"}
    assert {"format", "quality", "maxWidth", "maxHeight"} <= set(properties)
