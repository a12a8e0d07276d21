"""Configuration objects, defaults, and option parsing for the loader."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Pattern, Tuple, Union
from urllib.parse import unquote

from .errors import OptionsError

DEFAULT_NAME_TEMPLATE = "[hash].[ext]"
DEFAULT_LIMIT = 10 * 1024
DERIVATIVE_EXTENSION = ".webp"
DEFAULT_PUBLIC_PATH = "__webpack_public_path__"
PNGQUANT_QUALITY: Tuple[float, float] = (0.6, 0.8)
PRESETS = ("default", "photo", "picture", "drawing", "icon", "text")

RawOptions = Union[Mapping[str, Any], str, None]

_MISSING = object()
_SPECIAL_VALUES = {"null": None, "true": True, "false": False}


@dataclass
class CompressionOptions:
    """Settings handed to the WebP encoder, every field already defaulted."""

    preset: str = "default"
    quality: int = 80
    alpha_quality: int = 100
    method: int = 1
    sns: int = 80
    auto_filter: bool = False
    sharpness: int = 0
    lossless: bool = False
    bypass_on_debug: bool = False
    size: Optional[int] = None
    filter: Optional[int] = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "CompressionOptions":
        options = cls()
        preset = _pick(raw, "preset")
        if preset is not _MISSING:
            if preset not in PRESETS:
                raise OptionsError(
                    f"preset must be one of {', '.join(PRESETS)} (got {preset!r})"
                )
            options.preset = preset
        for attr, keys, low, high in (
            ("quality", ("quality",), 0, 100),
            ("alpha_quality", ("alphaQuality", "alpha_quality"), 0, 100),
            ("method", ("method",), 0, 6),
            ("sns", ("sns",), 0, 100),
            ("sharpness", ("sharpness",), 0, 7),
        ):
            value = _pick(raw, *keys)
            if value is not _MISSING:
                setattr(options, attr, _as_int(keys[0], value, low, high))
        for attr, keys in (
            ("auto_filter", ("autoFilter", "auto_filter")),
            ("lossless", ("lossless",)),
            ("bypass_on_debug", ("bypassOnDebug", "bypass_on_debug")),
        ):
            value = _pick(raw, *keys)
            if value is not _MISSING:
                setattr(options, attr, _as_bool(keys[0], value))
        size = _pick(raw, "size")
        if size is not _MISSING:
            options.size = _as_int("size", size, 0, None)
        strength = _pick(raw, "filter")
        if strength is not _MISSING:
            options.filter = _as_int("filter", strength, 0, 100)
        return options

    def to_encoder_params(self) -> Dict[str, Any]:
        """Return the option bag in the encoder's camelCase vocabulary."""
        params: Dict[str, Any] = {
            "preset": self.preset,
            "quality": self.quality,
            "alphaQuality": self.alpha_quality,
            "method": self.method,
            "sns": self.sns,
            "autoFilter": self.auto_filter,
            "sharpness": self.sharpness,
            "lossless": self.lossless,
            "bypassOnDebug": self.bypass_on_debug,
        }
        if self.size is not None:
            params["size"] = self.size
        if self.filter is not None:
            params["filter"] = self.filter
        return params


@dataclass
class LoaderOptions:
    """Top-level settings that control naming, inlining and compression."""

    name: str = DEFAULT_NAME_TEMPLATE
    reg_exp: Optional[Pattern[str]] = None
    limit: int = DEFAULT_LIMIT
    mimetype: Optional[str] = None
    context: Optional[str] = None
    compression: CompressionOptions = field(default_factory=CompressionOptions)

    @classmethod
    def from_raw(cls, raw: RawOptions) -> "LoaderOptions":
        """Build options from a mapping or a loader query string."""
        if raw is None:
            return cls()
        if isinstance(raw, str):
            raw = parse_query(raw)
        options = cls(compression=CompressionOptions.from_mapping(raw))
        name = _pick(raw, "name")
        if name is not _MISSING:
            options.name = str(name)
        reg_exp = _pick(raw, "regExp", "reg_exp")
        if reg_exp is not _MISSING:
            options.reg_exp = re.compile(reg_exp)
        limit = _pick(raw, "limit")
        if limit is not _MISSING:
            options.limit = _as_int("limit", limit, None, None)
        mimetype = _pick(raw, "mimetype", "minetype")
        if mimetype is not _MISSING:
            options.mimetype = str(mimetype)
        context = _pick(raw, "context")
        if context is not _MISSING:
            options.context = str(context)
        return options


def parse_query(query: str) -> Dict[str, Any]:
    """Parse a loader query such as ``?limit=8192&lossless`` or ``?{"limit": 0}``."""
    if not query.startswith("?"):
        raise OptionsError(
            f"A loader query string must begin with '?' (got {query!r})"
        )
    query = query[1:]
    if not query:
        return {}
    if query.startswith("{") and query.endswith("}"):
        try:
            parsed = json.loads(query)
        except json.JSONDecodeError as exc:
            raise OptionsError(f"Invalid JSON loader query: {exc}") from exc
        if not isinstance(parsed, dict):
            raise OptionsError("A JSON loader query must decode to an object")
        return parsed

    result: Dict[str, Any] = {}
    for arg in re.split(r"[,&]", query):
        if not arg:
            continue
        key, sep, raw_value = arg.partition("=")
        if not sep:
            if arg.startswith("-"):
                result[unquote(arg[1:])] = False
            elif arg.startswith("+"):
                result[unquote(arg[1:])] = True
            else:
                result[unquote(arg)] = True
            continue
        value: Any = unquote(raw_value)
        if value in _SPECIAL_VALUES:
            value = _SPECIAL_VALUES[value]
        if key.endswith("[]"):
            bucket = result.setdefault(unquote(key[:-2]), [])
            if not isinstance(bucket, list):
                bucket = result[unquote(key[:-2])] = []
            bucket.append(value)
        else:
            result[unquote(key)] = value
    return result


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return _MISSING


def _as_int(name: str, value: Any, low: Optional[int], high: Optional[int]) -> int:
    if isinstance(value, bool):
        raise OptionsError(f"{name} must be an integer (got {value!r})")
    try:
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(value)
            number = int(value)
        else:
            number = int(str(value).strip(), 10)
    except ValueError as exc:
        raise OptionsError(f"{name} must be an integer (got {value!r})") from exc
    if (low is not None and number < low) or (high is not None and number > high):
        bounds = f"{low if low is not None else '-inf'}..{high if high is not None else 'inf'}"
        raise OptionsError(f"{name} must be within {bounds} (got {number})")
    return number


def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    raise OptionsError(f"{name} must be a boolean (got {value!r})")
