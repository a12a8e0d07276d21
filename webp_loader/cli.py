"""Command-line entry point for running the loader over image files."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Sequence

from .config import DEFAULT_LIMIT, DEFAULT_NAME_TEMPLATE, DEFAULT_PUBLIC_PATH, PRESETS
from .host import DirectoryEmitter, LoaderContext
from .loader import load_many

logger = logging.getLogger("webp_loader.cli")


def _add_naming_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--name",
        default=DEFAULT_NAME_TEMPLATE,
        help="Output file name template (default: %(default)s)",
    )
    parser.add_argument(
        "--reg-exp",
        default=None,
        help="Pattern matched against the source path for [0], [1], ... tokens",
    )
    parser.add_argument(
        "--context",
        type=Path,
        default=None,
        help="Directory [path] tokens are made relative to",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_LIMIT,
        help="Inline files smaller than this many bytes; 0 or less inlines everything",
    )
    parser.add_argument(
        "--mimetype",
        default=None,
        help="Media type for data URIs instead of guessing from the extension",
    )


def _add_compression_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--preset", choices=PRESETS, default=None)
    parser.add_argument("--quality", type=int, default=None, help="0-100")
    parser.add_argument("--alpha-quality", type=int, default=None, help="0-100")
    parser.add_argument(
        "--method",
        type=int,
        default=None,
        help="0 (fastest) to 6 (slowest, smallest)",
    )
    parser.add_argument(
        "--sns", type=int, default=None, help="Spatial noise shaping, 0-100"
    )
    parser.add_argument(
        "--auto-filter",
        action="store_true",
        default=None,
        help="Pick the deblocking filter strength automatically",
    )
    parser.add_argument(
        "--sharpness", type=int, default=None, help="0 (sharpest) to 7"
    )
    parser.add_argument("--lossless", action="store_true", default=None)
    parser.add_argument(
        "--size", type=int, default=None, help="Target size of the WebP in bytes"
    )
    parser.add_argument(
        "--filter", type=int, default=None, help="Deblocking filter strength, 0-100"
    )
    parser.add_argument(
        "--bypass-on-debug",
        action="store_true",
        default=None,
        help="Skip compression when --debug is set",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Inline small images as data URIs or emit them with a WebP companion file."
        ),
    )
    parser.add_argument("paths", nargs="+", type=Path, help="Image files to process")
    parser.add_argument(
        "--output",
        default="output",
        type=Path,
        help="Directory where emitted files should be written",
    )
    _add_naming_arguments(parser)
    _add_compression_arguments(parser)
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Treat the run as a development build",
    )
    parser.add_argument(
        "--public-path",
        default=DEFAULT_PUBLIC_PATH,
        help="Expression prefixed to emitted file names (default: %(default)s)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(list(sys.argv[1:] if argv is None else argv))


def build_options(args: argparse.Namespace) -> Dict[str, Any]:
    """Collect the loader options the user actually passed."""
    options: Dict[str, Any] = {
        "name": args.name,
        "limit": args.limit,
        "regExp": args.reg_exp,
        "mimetype": args.mimetype,
        "context": str(args.context) if args.context else None,
        "preset": args.preset,
        "quality": args.quality,
        "alphaQuality": args.alpha_quality,
        "method": args.method,
        "sns": args.sns,
        "autoFilter": args.auto_filter,
        "sharpness": args.sharpness,
        "lossless": args.lossless,
        "size": args.size,
        "filter": args.filter,
        "bypassOnDebug": args.bypass_on_debug,
    }
    return {key: value for key, value in options.items() if value is not None}


async def _run(args: argparse.Namespace) -> int:
    emitter = DirectoryEmitter(Path(args.output))
    options = build_options(args)
    jobs = []
    for path in args.paths:
        context = LoaderContext(
            resource_path=str(path),
            emit_file=emitter,
            discard_file=emitter.discard,
            options=options,
            debug=args.debug,
            public_path=args.public_path,
        )
        jobs.append((context, path.read_bytes()))

    results = await load_many(jobs)
    failures: List[Path] = []
    for path, result in zip(args.paths, results):
        if isinstance(result, BaseException):
            logger.error("Failed to process %s: %s", path, result)
            failures.append(path)
            continue
        sys.stdout.write(result + "\n")
    sys.stdout.flush()
    return len(failures)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    missing = [path for path in args.paths if not path.is_file()]
    if missing:
        for path in missing:
            logger.error("No such file: %s", path)
        return 2

    overall_start = time.perf_counter()
    failures = asyncio.run(_run(args))
    total_elapsed = time.perf_counter() - overall_start

    total = len(args.paths)
    logger.info(
        "Finished in %.2fs (%d/%d succeeded, %d failed)",
        total_elapsed,
        total - failures,
        total,
        failures,
    )
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
