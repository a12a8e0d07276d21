"""Loader entry point: name, inline or compress, then emit one image asset."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Tuple, Union

from .config import LoaderOptions
from .emitter import emit
from .errors import HostCapabilityMissing
from .host import LoaderContext
from .images import compress
from .models import EmissionOutcome, Emitted, Inlined
from .naming import resolve_identity
from .policy import decide

logger = logging.getLogger("webp_loader")


async def transform(
    context: LoaderContext,
    content: bytes,
    options: LoaderOptions,
) -> EmissionOutcome:
    """Decide how ``content`` ships and run the compressor when it is emitted."""
    identity = resolve_identity(
        content,
        options.name,
        context.resource_path,
        reg_exp=options.reg_exp,
        context=options.context or context.root_context,
        resource_query=context.resource_query,
    )
    decision = decide(content, options.limit, context.resource_path, options.mimetype)
    if decision.inline:
        logger.debug(
            "Inlining %s (%d bytes, limit %d)",
            context.resource_path,
            len(content),
            options.limit,
        )
        return Inlined(data_uri=decision.data_uri)

    derivative = await compress(content, options.compression, debug=context.debug)
    return Emitted(identity=identity, derivative=derivative)


async def load(context: LoaderContext, content: bytes) -> str:
    """Process one raw image and return the generated module body.

    Raises ``HostCapabilityMissing`` before any work when the host cannot
    emit files, and lets ``CompressionError`` propagate with nothing emitted.
    """
    if not callable(context.emit_file):
        raise HostCapabilityMissing("emit_file is required from the host build system")
    context.cacheable = True
    options = LoaderOptions.from_raw(context.options)
    outcome = await transform(context, content, options)
    return emit(context, outcome, content)


async def load_many(
    jobs: Iterable[Tuple[LoaderContext, bytes]],
) -> List[Union[str, BaseException]]:
    """Run independent loads concurrently; failures are returned in place."""
    return await asyncio.gather(
        *(load(context, content) for context, content in jobs),
        return_exceptions=True,
    )
