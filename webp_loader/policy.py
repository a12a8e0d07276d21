"""Size-threshold policy and data URI construction for small assets."""

from __future__ import annotations

import base64
import mimetypes
from typing import Optional

from .models import Decision

# Module-owned table, so the process-wide mimetypes registry is left untouched.
_MIME_TYPES = mimetypes.MimeTypes()
# Image types the platform table has historically missed.
for _type, _suffix in (
    ("image/webp", ".webp"),
    ("image/avif", ".avif"),
    ("image/svg+xml", ".svg"),
    ("image/x-icon", ".ico"),
):
    _MIME_TYPES.add_type(_type, _suffix)


def infer_mimetype(resource_path: str, explicit: Optional[str] = None) -> Optional[str]:
    """Return the explicit media type, else the one implied by the file extension."""
    if explicit:
        return explicit
    if not resource_path:
        return None
    guessed, _ = _MIME_TYPES.guess_type(resource_path, strict=False)
    return guessed


def build_data_uri(content: bytes, mimetype: Optional[str]) -> str:
    prefix = f"{mimetype};" if mimetype else ""
    payload = base64.b64encode(content).decode("ascii")
    return f"data:{prefix}base64,{payload}"


def decide(
    content: bytes,
    limit: int,
    resource_path: str,
    mimetype: Optional[str] = None,
) -> Decision:
    """Inline ``content`` when it is under ``limit`` bytes or the limit is disabled."""
    if limit <= 0 or len(content) < limit:
        resolved = infer_mimetype(resource_path, mimetype)
        return Decision(inline=True, data_uri=build_data_uri(content, resolved))
    return Decision(inline=False)
