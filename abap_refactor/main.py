"""Entry point: collects source files, runs the conversion pipeline, writes outputs."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from abap_refactor.config import get_config
from abap_refactor.results import OrchestratorResult
from abap_refactor.runner import ConversionRunner
from abap_refactor.transport import LLMTransport
from abap_refactor.utils.formatter import write_outputs

logger = logging.getLogger(__name__)


def read_source(path: Path) -> str:
    """Read a source file as UTF-8; undecodable bytes become U+FFFD instead of failing."""
    raw = path.read_bytes()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("%s is not valid UTF-8; undecodable bytes replaced.", path.name)
        return raw.decode("utf-8", errors="replace")


def collect_sources(
    source_dir: Path, extensions: list[str], unreadable: dict[str, str] | None = None
) -> dict[str, str]:
    """Read every file in ``source_dir`` whose extension is in ``extensions``, by file name.

    Files that cannot be read are skipped; their errors go into ``unreadable``
    when a dict is passed.
    """
    wanted = {ext.lower() for ext in extensions}
    sources = {}
    for path in sorted(source_dir.iterdir()):
        if not (path.is_file() and path.suffix.lower() in wanted):
            continue
        try:
            sources[path.name] = read_source(path)
        except OSError as exc:
            logger.error("Cannot read %s: %s", path, exc)
            if unreadable is not None:
                unreadable[path.name] = str(exc)
    return sources


async def convert_folder(
    sources: dict[str, str],
    requirements: str,
    max_iterations: int | None,
    concurrency: int | None,
) -> dict[str, OrchestratorResult]:
    async with LLMTransport.from_config() as transport:
        runner = ConversionRunner(
            transport, max_iterations=max_iterations, max_concurrency=concurrency
        )
        return await runner.convert_many(sources, requirements)


def run(
    source_dir: Path,
    output_dir: Path | None = None,
    requirements: str = "",
    max_iterations: int | None = None,
    concurrency: int | None = None,
) -> int:
    """Convert every matching file in ``source_dir``. Returns the number of failed files."""
    config = get_config()
    if not source_dir.is_dir():
        raise ValueError(f"Source path is not a directory: {source_dir}")

    output_dir = output_dir or source_dir / "s4_converted_code"
    extensions = config.get("source_extensions", [".abap"])
    unreadable: dict[str, str] = {}
    sources = collect_sources(source_dir, extensions, unreadable)
    for name, error in unreadable.items():
        print(f"[ABAP] Failed to read {name}: {error}", file=sys.stderr)
    if not sources:
        if not unreadable:
            print(f"[ABAP] No source files found in {source_dir} (looking for {', '.join(extensions)}).")
        return len(unreadable)

    print(f"[ABAP] Found {len(sources)} file(s) for conversion.")
    results = asyncio.run(convert_folder(sources, requirements, max_iterations, concurrency))

    failed = len(unreadable)
    converted = 0
    for name, result in results.items():
        if not result.ok:
            failed += 1
            print(f"[ABAP] Failed to convert {name}: {result.error}", file=sys.stderr)
            continue
        try:
            paths = write_outputs(output_dir, name, sources[name], result, requirements)
        except OSError as exc:
            failed += 1
            print(f"[ABAP] Failed to write outputs for {name}: {exc}", file=sys.stderr)
            continue
        converted += 1
        print(f"[ABAP] Converted {name} -> {paths['code']} (report: {paths['report'].name})")
        if result.warning:
            print(f"[ABAP]   Warning for {name}: {result.warning}", file=sys.stderr)

    print(f"[ABAP] Done: {converted} converted, {failed} failed. Output: {output_dir}")
    return failed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="abap-refactor",
        description="Convert legacy ABAP source files with an LLM specify/convert/review pipeline.",
    )
    parser.add_argument("source_dir", type=Path, help="Folder containing the source files.")
    parser.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Output folder (default: <source_dir>/s4_converted_code).",
    )
    parser.add_argument(
        "-r", "--requirements", default="",
        help="Additional requirements applied to every conversion.",
    )
    parser.add_argument(
        "--max-iterations", type=int, default=None,
        help="Correction passes before giving up with a warning (default from config).",
    )
    parser.add_argument(
        "--concurrency", type=int, default=None,
        help="Files converted in parallel (default from config).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log each phase.")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="[ABAP] %(levelname)s %(name)s: %(message)s",
    )
    try:
        failed = run(
            args.source_dir.resolve(),
            args.output.resolve() if args.output else None,
            args.requirements.strip(),
            args.max_iterations,
            args.concurrency,
        )
    except ValueError as exc:
        print(f"[ABAP] Error: {exc}", file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        print("[ABAP] Bye!")
        sys.exit(130)
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
