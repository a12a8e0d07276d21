"""Image format sniffing and the WebP/JPEG/PNG compression chain."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import subprocess
import tempfile
from io import BytesIO
from pathlib import Path
from typing import FrozenSet, List, Optional, Sequence, Tuple

from filetype import guess
from PIL import Image

from .config import PNGQUANT_QUALITY, CompressionOptions
from .errors import CompressionError

logger = logging.getLogger("webp_loader")

CWEBP_ENV_VAR = "WEBP_LOADER_CWEBP"
_PILLOW_UNSUPPORTED = ("preset", "sns", "autoFilter", "sharpness", "size", "filter")
_CWEBP_VALUE_FLAGS = (
    ("quality", "-q"),
    ("alphaQuality", "-alpha_q"),
    ("method", "-m"),
    ("sns", "-sns"),
    ("sharpness", "-sharpness"),
    ("size", "-size"),
    ("filter", "-f"),
)


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        if ext == "tiff":
            return "tif"
        return ext
    return None


def find_cwebp() -> Optional[str]:
    """Locate a ``cwebp`` binary; an empty override disables it."""
    override = os.getenv(CWEBP_ENV_VAR)
    if override is None:
        return shutil.which("cwebp")
    if not override:
        return None
    override_path = Path(override).expanduser()
    if override_path.exists():
        return str(override_path)
    logger.warning(
        "%s is set to %s but the path does not exist; falling back to Pillow",
        CWEBP_ENV_VAR,
        override_path,
    )
    return None


def build_cwebp_args(options: CompressionOptions) -> List[str]:
    """Translate the encoder option bag into ``cwebp`` flags."""
    params = options.to_encoder_params()
    # -preset has to come first, it resets the settings that follow it.
    args = ["-preset", params["preset"]]
    for key, flag in _CWEBP_VALUE_FLAGS:
        if key in params:
            args += [flag, str(params[key])]
    if params["autoFilter"]:
        args.append("-af")
    if params["lossless"]:
        args.append("-lossless")
    return args


class WebpPlugin:
    """Encode PNG, JPEG, TIFF and WebP input as WebP."""

    formats: FrozenSet[str] = frozenset({"png", "jpg", "tif", "webp"})

    def __init__(self, options: CompressionOptions, cwebp_path: Optional[str] = None) -> None:
        self.options = options
        self.cwebp_path = cwebp_path

    def __call__(self, data: bytes) -> bytes:
        if self.cwebp_path:
            return self._encode_with_cwebp(data)
        return self._encode_with_pillow(data)

    def _encode_with_cwebp(self, data: bytes) -> bytes:
        with tempfile.TemporaryDirectory(prefix="webp-loader-") as tmp_dir:
            source = Path(tmp_dir) / "input"
            target = Path(tmp_dir) / "output.webp"
            source.write_bytes(data)
            command = [
                self.cwebp_path,
                *build_cwebp_args(self.options),
                "-quiet",
                str(source),
                "-o",
                str(target),
            ]
            logger.debug("Running %s", " ".join(command))
            try:
                subprocess.run(command, check=True, capture_output=True)
            except subprocess.CalledProcessError as exc:
                stderr = exc.stderr.decode("utf-8", "replace").strip()
                raise CompressionError(
                    f"cwebp exited with status {exc.returncode}: {stderr}"
                ) from exc
            except OSError as exc:
                raise CompressionError(f"Could not run cwebp: {exc}") from exc
            return target.read_bytes()

    def _encode_with_pillow(self, data: bytes) -> bytes:
        params = self.options.to_encoder_params()
        defaults = CompressionOptions().to_encoder_params()
        ignored = [
            key
            for key in _PILLOW_UNSUPPORTED
            if params.get(key) != defaults.get(key)
        ]
        if ignored:
            logger.debug(
                "Pillow WebP encoder does not support %s; install cwebp to apply them",
                ", ".join(ignored),
            )
        buffer = BytesIO()
        try:
            with Image.open(BytesIO(data)) as img:
                frame = img
                if img.mode not in ("RGB", "RGBA"):
                    has_alpha = img.mode in ("LA", "PA", "RGBa") or "transparency" in img.info
                    frame = img.convert("RGBA" if has_alpha else "RGB")
                frame.save(
                    buffer,
                    format="WEBP",
                    quality=params["quality"],
                    alpha_quality=params["alphaQuality"],
                    method=params["method"],
                    lossless=params["lossless"],
                )
        except (OSError, ValueError, KeyError) as exc:
            raise CompressionError(f"Could not encode WebP: {exc}") from exc
        return buffer.getvalue()


class JpegtranPlugin:
    """Re-encode JPEG input with its own quantisation tables and optimised Huffman codes."""

    formats: FrozenSet[str] = frozenset({"jpg"})

    def __call__(self, data: bytes) -> bytes:
        buffer = BytesIO()
        try:
            with Image.open(BytesIO(data)) as img:
                params = {"quality": "keep", "optimize": True}
                for key in ("icc_profile", "exif"):
                    if img.info.get(key):
                        params[key] = img.info[key]
                img.save(buffer, format="JPEG", **params)
        except (OSError, ValueError) as exc:
            raise CompressionError(f"Could not re-encode JPEG: {exc}") from exc
        output = buffer.getvalue()
        return output if len(output) < len(data) else data


class PngquantPlugin:
    """Palette-quantise PNG input; the palette size follows the upper quality bound."""

    formats: FrozenSet[str] = frozenset({"png"})

    def __init__(self, quality: Tuple[float, float] = PNGQUANT_QUALITY) -> None:
        self.quality = quality

    @property
    def colors(self) -> int:
        return max(2, min(256, round(256 * self.quality[1])))

    def __call__(self, data: bytes) -> bytes:
        buffer = BytesIO()
        try:
            with Image.open(BytesIO(data)) as img:
                if img.mode == "P":
                    return data
                has_alpha = img.mode in ("RGBA", "LA") or "transparency" in img.info
                source = img.convert("RGBA" if has_alpha else "RGB")
                method = Image.Quantize.FASTOCTREE if has_alpha else Image.Quantize.MEDIANCUT
                quantized = source.quantize(colors=self.colors, method=method)
                quantized.save(buffer, format="PNG", optimize=True)
        except (OSError, ValueError) as exc:
            raise CompressionError(f"Could not quantise PNG: {exc}") from exc
        output = buffer.getvalue()
        return output if len(output) < len(data) else data


class ImageCompressor:
    """Run a buffer through plugins in order, each acting only on formats it reads."""

    def __init__(self, plugins: Sequence) -> None:
        self.plugins = list(plugins)

    def run(self, data: bytes) -> bytes:
        for plugin in self.plugins:
            image_format = detect_image_format(data)
            if image_format not in plugin.formats:
                logger.debug(
                    "%s skipped input of type %s",
                    type(plugin).__name__,
                    image_format or "unknown",
                )
                continue
            data = plugin(data)
        return data


def build_plugins(
    options: CompressionOptions, cwebp_path: Optional[str] = None
) -> List:
    """Return the fixed WebP, JPEG, PNG plugin chain."""
    return [
        WebpPlugin(options, cwebp_path=cwebp_path),
        JpegtranPlugin(),
        PngquantPlugin(quality=PNGQUANT_QUALITY),
    ]


async def compress(
    content: bytes,
    options: CompressionOptions,
    debug: bool = False,
) -> Optional[bytes]:
    """Produce the WebP derivative, or None when debug bypass is active."""
    if debug and options.bypass_on_debug:
        logger.debug("Debug build with bypassOnDebug set; skipping compression")
        return None
    cwebp_path = find_cwebp()
    logger.debug("Encoding WebP with %s", cwebp_path or "Pillow")
    compressor = ImageCompressor(build_plugins(options, cwebp_path=cwebp_path))
    return await asyncio.to_thread(compressor.run, content)
