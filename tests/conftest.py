"""Shared fixtures: small rendered images and a Pillow-only encoder."""

from io import BytesIO

import pytest
from PIL import Image

from webp_loader.host import LoaderContext, MemoryEmitter


def _pattern(mode: str, size: int = 48) -> Image.Image:
    img = Image.new(mode, (size, size))
    pixels = []
    for y in range(size):
        for x in range(size):
            rgb = ((x * 7) % 256, (y * 13) % 256, (x * y) % 256)
            pixels.append(rgb + ((x * 5) % 256,) if mode == "RGBA" else rgb)
    img.putdata(pixels)
    return img


def _encode(img: Image.Image, fmt: str) -> bytes:
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def pillow_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep encoding on Pillow even where a cwebp binary is installed."""
    monkeypatch.setenv("WEBP_LOADER_CWEBP", "")


@pytest.fixture
def png_bytes() -> bytes:
    return _encode(_pattern("RGB"), "PNG")


@pytest.fixture
def rgba_png_bytes() -> bytes:
    return _encode(_pattern("RGBA"), "PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return _encode(_pattern("RGB"), "JPEG")


@pytest.fixture
def gif_bytes() -> bytes:
    return _encode(_pattern("RGB").convert("P"), "GIF")


@pytest.fixture
def emitter() -> MemoryEmitter:
    return MemoryEmitter()


@pytest.fixture
def make_context(emitter: MemoryEmitter):
    def factory(resource_path: str = "src/images/logo.png", **kwargs) -> LoaderContext:
        kwargs.setdefault("emit_file", emitter)
        return LoaderContext(resource_path=resource_path, **kwargs)

    return factory
