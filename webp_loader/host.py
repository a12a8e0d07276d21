"""Host context handed to the loader, plus file emitters for it."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional

from .config import DEFAULT_PUBLIC_PATH, RawOptions

logger = logging.getLogger("webp_loader")

EmitFile = Callable[[str, bytes], None]
DiscardFile = Callable[[str], None]


@dataclass
class LoaderContext:
    """Capabilities and settings the build host supplies for one asset."""

    resource_path: str
    emit_file: Optional[EmitFile] = None
    discard_file: Optional[DiscardFile] = None
    options: RawOptions = None
    debug: bool = False
    public_path: str = DEFAULT_PUBLIC_PATH
    root_context: Optional[str] = None
    resource_query: str = ""
    cacheable: bool = False


@dataclass
class MemoryEmitter:
    """Collect emitted files in memory, keyed by output name."""

    files: Dict[str, bytes] = field(default_factory=dict)

    def __call__(self, name: str, content: bytes) -> None:
        self.files[name] = content

    def discard(self, name: str) -> None:
        self.files.pop(name, None)


class DirectoryEmitter:
    """Write emitted files below an output directory.

    Each file is written to a temporary sibling and renamed into place, so a
    failed write never leaves a truncated file under its final name.
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir.resolve()

    def __call__(self, name: str, content: bytes) -> None:
        destination = (self.output_dir / name).resolve()
        if not destination.is_relative_to(self.output_dir):
            raise ValueError(f"Refusing to write {name!r} outside {self.output_dir}")
        destination.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=destination.parent, prefix=f".{destination.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(content)
            os.replace(tmp_name, destination)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info("Saved %s", destination)

    def discard(self, name: str) -> None:
        destination = (self.output_dir / name).resolve()
        if destination.is_relative_to(self.output_dir):
            destination.unlink(missing_ok=True)
            logger.info("Removed %s", destination)
