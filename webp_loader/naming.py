"""Deterministic output names derived from asset content and a template."""

from __future__ import annotations

import base64
import hashlib
import posixpath
import re
from typing import Optional, Pattern

from .config import DERIVATIVE_EXTENSION
from .models import OutputIdentity
from .utils import BASE_ALPHABETS, encode_base

DEFAULT_HASH_TYPE = "md5"
DEFAULT_DIGEST_TYPE = "hex"

HASH_TOKEN_PATTERN = re.compile(
    r"\[(?:([^:\]]+):)?(?:hash|contenthash)(?::([a-z]+\d*))?(?::(\d+))?\]",
    re.IGNORECASE,
)
_PARENT_SEGMENT = re.compile(r"\.\.(/)?")


def hash_digest(
    content: bytes,
    hash_type: Optional[str] = None,
    digest_type: Optional[str] = None,
    max_length: Optional[int] = None,
) -> str:
    """Hash ``content`` and render the digest as text, optionally truncated."""
    hasher = hashlib.new(hash_type or DEFAULT_HASH_TYPE)
    hasher.update(content)
    digest_type = (digest_type or DEFAULT_DIGEST_TYPE).lower()
    if digest_type == "hex":
        text = hasher.hexdigest()
    elif digest_type == "base64":
        text = base64.b64encode(hasher.digest()).decode("ascii")
    elif digest_type.startswith("base") and digest_type[4:].isdigit():
        base = int(digest_type[4:])
        if base not in BASE_ALPHABETS:
            raise ValueError(f"Unsupported digest type: {digest_type}")
        text = encode_base(hasher.digest(), base)
    else:
        raise ValueError(f"Unsupported digest type: {digest_type}")
    return text if max_length is None else text[:max_length]


def interpolate_name(
    template: str,
    content: bytes,
    resource_path: str = "",
    reg_exp: Optional[Pattern[str]] = None,
    context: Optional[str] = None,
    resource_query: str = "",
) -> str:
    """Fill the ``[token]`` placeholders of ``template`` for one resource."""
    ext = "bin"
    basename = "file"
    directory = ""
    folder = ""
    normalized = resource_path.replace("\\", "/")

    if normalized:
        head, _, tail = normalized.rpartition("/")
        stem, suffix = posixpath.splitext(tail)
        if suffix:
            ext = suffix[1:]
        basename = stem
        if head:
            resource_dir = head + "/"
            if context is not None:
                base = context.replace("\\", "/")
                directory = posixpath.relpath(resource_dir + "_", base)
                directory = _PARENT_SEGMENT.sub(r"_\1", directory)[:-1]
            else:
                directory = _PARENT_SEGMENT.sub(r"_\1", resource_dir)
        if len(directory) == 1:
            directory = ""
        elif directory:
            folder = directory.rstrip("/").rsplit("/", 1)[-1]

    query = resource_query.split("#", 1)[0] if len(resource_query) > 1 else ""

    url = HASH_TOKEN_PATTERN.sub(
        lambda m: hash_digest(
            content,
            m.group(1),
            m.group(2),
            int(m.group(3)) if m.group(3) else None,
        ),
        template,
    )
    for token, value in (
        ("ext", ext),
        ("name", basename),
        ("path", directory),
        ("folder", folder),
        ("query", query),
    ):
        url = re.sub(rf"\[{token}\]", lambda _m, v=value: v, url, flags=re.IGNORECASE)

    if reg_exp is not None and resource_path:
        match = reg_exp.search(resource_path)
        if match:
            groups = (match.group(0),) + match.groups()
            for index, matched in enumerate(groups):
                url = url.replace(f"[{index}]", matched or "")
    return url


def derivative_name(url: str) -> str:
    """Swap the final extension of ``url`` for the derivative extension."""
    head, sep, tail = url.rpartition("/")
    dot = tail.rfind(".")
    stem = tail[:dot] if dot >= 0 else tail
    return head + sep + stem + DERIVATIVE_EXTENSION


def resolve_identity(
    content: bytes,
    template: str,
    resource_path: str = "",
    reg_exp: Optional[Pattern[str]] = None,
    context: Optional[str] = None,
    resource_query: str = "",
) -> OutputIdentity:
    """Resolve the primary and derivative output names for ``content``."""
    url = interpolate_name(
        template,
        content,
        resource_path,
        reg_exp=reg_exp,
        context=context,
        resource_query=resource_query,
    )
    return OutputIdentity(url=url, derivative_url=derivative_name(url))
