"""Command-line client for exercising a running image relay service."""

import argparse
import base64
import binascii
import sys
from pathlib import Path

import httpx


def decode_data_url(data_url: str) -> tuple[str, bytes]:
    """Split a base64 ``data:`` URL into its MIME type and decoded bytes."""
    header, sep, payload = data_url.partition(",")
    if not header.startswith("data:") or not header.endswith(";base64") or not sep:
        raise ValueError("Not a base64 data URL")
    mime_type = header[len("data:"):-len(";base64")]
    try:
        return mime_type, base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 payload: {exc}") from exc


def request_generation(client: httpx.Client, prompt: str) -> httpx.Response:
    return client.post("/api/generate-image", json={"prompt": prompt})


def request_compression(
    client: httpx.Client,
    path: Path,
    fields: dict[str, str],
) -> httpx.Response:
    files = {"image": (path.name, path.read_bytes(), "application/octet-stream")}
    return client.post("/api/compress-image", data=fields, files=files)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Send requests to the image relay service."
    )
    parser.add_argument(
        "--url",
        default="http://localhost:3001",
        help="Base URL of the running service (default: %(default)s).",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)

    generate = subcommands.add_parser("generate", help="Generate an image from a prompt.")
    generate.add_argument("prompt", help="Text prompt.")

    compress = subcommands.add_parser("compress", help="Compress a local image.")
    compress.add_argument("input_image", type=Path, help="Path to the image to compress.")
    compress.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Where to write the result (default: <input>.compressed.<format>).",
    )
    compress.add_argument("--format", choices=("webp", "jpeg", "png"), default="webp")
    compress.add_argument("--quality", type=int, default=None)
    compress.add_argument("--max-width", type=int, default=None)
    compress.add_argument("--max-height", type=int, default=None)
    return parser


def _error_text(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and "error" in data:
        return str(data["error"])
    return response.text


def main(argv: list[str] | None = None, transport: httpx.BaseTransport | None = None) -> int:
    args = _build_parser().parse_args(argv)

    with httpx.Client(base_url=args.url, timeout=180.0, transport=transport) as client:
        try:
            if args.command == "generate":
                response = request_generation(client, args.prompt)
            else:
                fields = {"format": args.format}
                for key, value in (
                    ("quality", args.quality),
                    ("maxWidth", args.max_width),
                    ("maxHeight", args.max_height),
                ):
                    if value is not None:
                        fields[key] = str(value)
                response = request_compression(client, args.input_image, fields)
        except httpx.HTTPError as exc:
            sys.stderr.write(f"Request failed: {exc}\n")
            return 1

    if response.is_error:
        sys.stderr.write(f"Request failed ({response.status_code}): {_error_text(response)}\n")
        return 1

    data = response.json()
    if args.command == "generate":
        print(data["imageUrl"])
        return 0

    _, image_bytes = decode_data_url(data["dataUrl"])
    output = args.output or args.input_image.with_suffix(f".compressed.{data['format']}")
    output.write_bytes(image_bytes)
    print(
        f"Saved {data['width']}x{data['height']} {data['format']} to {output} "
        f"({data['originalSize']} -> {data['compressedSize']} bytes, {data['savings']}% smaller)"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
