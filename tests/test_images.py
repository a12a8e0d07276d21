"""Tests for the compression chain and its debug bypass."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from webp_loader import images
from webp_loader.config import CompressionOptions
from webp_loader.errors import CompressionError
from webp_loader.images import (
    ImageCompressor,
    JpegtranPlugin,
    PngquantPlugin,
    WebpPlugin,
    build_cwebp_args,
    build_plugins,
    compress,
    detect_image_format,
    find_cwebp,
)


def _is_webp(data: bytes) -> bool:
    return data[:4] == b"RIFF" and data[8:12] == b"WEBP"


def test_detect_image_format(png_bytes: bytes, jpeg_bytes: bytes, gif_bytes: bytes) -> None:
    assert detect_image_format(png_bytes) == "png"
    assert detect_image_format(jpeg_bytes) == "jpg"
    assert detect_image_format(gif_bytes) == "gif"
    assert detect_image_format(b"not an image") is None


def test_plugin_chain_order_and_quality_range() -> None:
    plugins = build_plugins(CompressionOptions())
    assert [type(p) for p in plugins] == [WebpPlugin, JpegtranPlugin, PngquantPlugin]
    assert plugins[2].quality == (0.6, 0.8)


def test_build_cwebp_args_maps_every_option() -> None:
    options = CompressionOptions(
        preset="photo",
        quality=70,
        alpha_quality=90,
        method=4,
        sns=50,
        auto_filter=True,
        sharpness=3,
        lossless=True,
        size=4096,
        filter=30,
    )
    args = build_cwebp_args(options)
    assert args[:2] == ["-preset", "photo"]
    assert args == [
        "-preset", "photo", "-q", "70", "-alpha_q", "90", "-m", "4",
        "-sns", "50", "-sharpness", "3", "-size", "4096", "-f", "30",
        "-af", "-lossless",
    ]


def test_build_cwebp_args_defaults_omit_optional_flags() -> None:
    args = build_cwebp_args(CompressionOptions())
    assert "-size" not in args
    assert "-f" not in args
    assert "-af" not in args
    assert "-lossless" not in args


class _RecordingOptions(CompressionOptions):
    def to_encoder_params(self):
        self.calls = getattr(self, "calls", 0) + 1
        params = super().to_encoder_params()
        params["quality"] = 33
        return params


def test_cwebp_args_come_from_encoder_params() -> None:
    options = _RecordingOptions()
    args = build_cwebp_args(options)
    assert args[args.index("-q") + 1] == "33"
    assert options.calls == 1


def test_pillow_encoder_reads_encoder_params(png_bytes: bytes) -> None:
    options = _RecordingOptions()
    output = WebpPlugin(options)(png_bytes)
    assert _is_webp(output)
    assert options.calls == 1


def test_find_cwebp_respects_empty_override() -> None:
    assert find_cwebp() is None


def test_find_cwebp_override_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    binary = tmp_path / "cwebp"
    binary.write_text("")
    monkeypatch.setenv("WEBP_LOADER_CWEBP", str(binary))
    assert find_cwebp() == str(binary)


@pytest.mark.asyncio
async def test_png_becomes_webp(png_bytes: bytes) -> None:
    output = await compress(png_bytes, CompressionOptions())
    assert _is_webp(output)


@pytest.mark.asyncio
async def test_jpeg_becomes_webp(jpeg_bytes: bytes) -> None:
    output = await compress(jpeg_bytes, CompressionOptions())
    assert _is_webp(output)


@pytest.mark.asyncio
async def test_transparent_png_keeps_alpha(rgba_png_bytes: bytes) -> None:
    output = await compress(rgba_png_bytes, CompressionOptions(lossless=True))
    with Image.open(BytesIO(output)) as img:
        assert img.mode == "RGBA"


@pytest.mark.asyncio
async def test_unreadable_format_passes_through(gif_bytes: bytes) -> None:
    assert await compress(gif_bytes, CompressionOptions()) == gif_bytes


@pytest.mark.asyncio
async def test_corrupt_png_raises_compression_error(png_bytes: bytes) -> None:
    corrupt = png_bytes[:16] + b"\x00" * 64
    with pytest.raises(CompressionError):
        await compress(corrupt, CompressionOptions())


@pytest.mark.asyncio
async def test_debug_bypass_skips_codecs(monkeypatch: pytest.MonkeyPatch, png_bytes: bytes) -> None:
    def explode(*args, **kwargs):
        raise AssertionError("compressor should not run")

    monkeypatch.setattr(images, "build_plugins", explode)
    options = CompressionOptions(bypass_on_debug=True)
    assert await compress(png_bytes, options, debug=True) is None


@pytest.mark.asyncio
async def test_bypass_needs_debug_flag(png_bytes: bytes) -> None:
    options = CompressionOptions(bypass_on_debug=True)
    assert _is_webp(await compress(png_bytes, options, debug=False))


def test_compressor_only_runs_matching_plugins(png_bytes: bytes) -> None:
    calls = []

    class Recorder:
        def __init__(self, name, formats, result=None):
            self.name = name
            self.formats = frozenset(formats)
            self.result = result

        def __call__(self, data):
            calls.append(self.name)
            return self.result or data

    compressor = ImageCompressor(
        [
            Recorder("jpeg-only", {"jpg"}),
            Recorder("png", {"png"}, result=b"not an image anymore"),
            Recorder("png-again", {"png"}),
        ]
    )
    assert compressor.run(png_bytes) == b"not an image anymore"
    assert calls == ["png"]


def test_jpegtran_keeps_jpeg(jpeg_bytes: bytes) -> None:
    output = JpegtranPlugin()(jpeg_bytes)
    assert detect_image_format(output) == "jpg"
    assert len(output) <= len(jpeg_bytes)


def test_pngquant_palette_size_and_output(png_bytes: bytes) -> None:
    plugin = PngquantPlugin()
    assert plugin.colors == 205
    output = plugin(png_bytes)
    assert detect_image_format(output) == "png"
    assert len(output) <= len(png_bytes)


def test_cwebp_failure_raises(png_bytes: bytes, tmp_path: Path) -> None:
    plugin = WebpPlugin(CompressionOptions(), cwebp_path=str(tmp_path / "missing-cwebp"))
    with pytest.raises(CompressionError):
        plugin(png_bytes)
