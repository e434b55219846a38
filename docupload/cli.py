"""Command line interface for docupload package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import BatchUploadProgress, render_configuration_summary, render_dropped
from .manager import validate_endpoint
from .models import UploadConfig, UploadOutcome
from .orchestrator import UploadOrchestrator


DEFAULT_TIMEOUT = 60.0

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Route docupload logs through rich, or switch logging off.

    Nothing is logged unless --debug or --log-level is given; --silent
    wins over both. Returns the effective level name, or "silent".
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    logging.disable(logging.NOTSET)

    if silent or not (debug or log_level):
        logging.disable(logging.CRITICAL)
        return "silent"

    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)
    handler = RichHandler(rich_tracebacks=True, markup=False, show_time=False, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path) -> None:
    """Export KEY=VALUE lines from path. Variables already set are kept."""
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for line in content.splitlines():
        line = line.strip()
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        os.environ.setdefault(key, _strip_optional_quotes(value.strip()))


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _parse_timeout(value: Optional[str]) -> Optional[float]:
    """Seconds as float; "0", "none" or "off" disable the timeout."""
    if value is None or value == "":
        return DEFAULT_TIMEOUT
    if value.strip().lower() in {"0", "none", "off"}:
        return None
    try:
        timeout = float(value)
    except ValueError as exc:
        raise CLIError(f"invalid timeout: {value!r}") from exc
    if timeout < 0:
        raise CLIError(f"invalid timeout: {value!r}")
    return timeout or None


def _build_config(
    endpoint: Optional[str],
    authorization: Optional[str],
    timeout: Optional[str],
) -> UploadConfig:
    endpoint = endpoint or os.getenv("DOCUPLOAD_ENDPOINT")
    if not endpoint:
        raise CLIError("no endpoint: pass --endpoint or set DOCUPLOAD_ENDPOINT")
    error = validate_endpoint(endpoint)
    if error:
        raise CLIError(error)

    return UploadConfig(
        endpoint=endpoint,
        authorization=authorization or os.getenv("DOCUPLOAD_AUTHORIZATION") or None,
        timeout=_parse_timeout(timeout if timeout is not None else os.getenv("DOCUPLOAD_TIMEOUT")),
    )


def _total_size(paths: Sequence[Path]) -> int:
    total = 0
    for path in paths:
        try:
            total += path.stat().st_size
        except OSError:
            pass
    return total


def _exit_code(outcome: UploadOutcome) -> int:
    if outcome.success:
        return EXIT_OK
    if outcome.cancelled:
        return EXIT_CANCELLED
    return EXIT_FAILED


async def _run_upload(paths: List[Path], config: UploadConfig) -> int:
    display = BatchUploadProgress(len(paths), _total_size(paths))

    async with UploadOrchestrator(config) as orchestrator:
        orchestrator.add(paths)
        orchestrator.on_partial_failure(render_dropped)
        orchestrator.on_progress(display.update)
        orchestrator.on_complete(display.complete)
        outcome = await orchestrator.upload_files_async()

    return _exit_code(outcome)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docupload",
        description="Upload documents to a server as one multipart/form-data batch.",
    )
    parser.add_argument("files", nargs="*", type=Path, help="Files to upload")
    parser.add_argument(
        "-e",
        "--endpoint",
        default=None,
        help="Upload URL (default from DOCUPLOAD_ENDPOINT)",
    )
    parser.add_argument(
        "-a",
        "--authorization",
        default=None,
        help="Authorization header value, e.g. 'Bearer TOKEN' (default from DOCUPLOAD_AUTHORIZATION)",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        default=None,
        help=f"Timeout in seconds, 0 disables (default from DOCUPLOAD_TIMEOUT or {DEFAULT_TIMEOUT:g})",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Disable all logging output")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="docupload",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return EXIT_FAILED

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if not args.files:
        parser.print_help()
        return EXIT_OK

    try:
        config = _build_config(args.endpoint, args.authorization, args.timeout)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_FAILED

    paths = [Path(f).expanduser() for f in args.files]
    render_configuration_summary(
        {
            "Files": len(paths),
            "Endpoint": config.endpoint,
            "Authorization": "set" if config.authorization else "-",
            "Timeout": f"{config.timeout:g}s" if config.timeout else "none",
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(_run_upload(paths, config))
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return EXIT_CANCELLED


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
