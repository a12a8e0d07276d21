"""Register output files with the host and render the generated module body."""

from __future__ import annotations

import logging

from .host import LoaderContext
from .models import EmissionOutcome, Inlined
from .utils import js_string

logger = logging.getLogger("webp_loader")


def inline_module(data_uri: str) -> str:
    return "module.exports = " + js_string(data_uri)


def public_path_module(url: str, public_path: str) -> str:
    return f"module.exports = {public_path} + {js_string(url)};"


def emit(context: LoaderContext, outcome: EmissionOutcome, original: bytes) -> str:
    """Emit the files an outcome calls for and return the module body.

    A file-backed outcome registers the original and its derivative under
    their resolved names. In debug-bypass mode the derivative is None and
    nothing is registered, yet the body still points at the primary name.

    If the host fails on the derivative, the original is withdrawn through
    ``context.discard_file`` and the error propagates. A host that supplies
    no ``discard_file`` keeps the original registered.
    """
    if isinstance(outcome, Inlined):
        return inline_module(outcome.data_uri)

    identity = outcome.identity
    if outcome.derivative is not None:
        context.emit_file(identity.url, original)
        try:
            context.emit_file(identity.derivative_url, outcome.derivative)
        except Exception:
            if context.discard_file is not None:
                logger.warning("Withdrawing %s after its derivative failed", identity.url)
                context.discard_file(identity.url)
            raise
        logger.info("Emitted %s and %s", identity.url, identity.derivative_url)
    else:
        logger.debug("Compression bypassed; %s was not emitted", identity.url)
    return public_path_module(identity.url, context.public_path)
