"""CLI entry point for weebdex.

Handles argument parsing and dispatches to the get or test command.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable

from weebdex.client import WeebDex
from weebdex.config_loader import ConfigError, load_runtime_config
from weebdex.credentials import (
    ConfigCredentialsProvider,
    HardCodedCredentialsProvider,
    LayeredCredentialsProvider,
)
from weebdex.errors import WeebDexResponseError
from weebdex.events import LoggingEventHandler
from weebdex.models import ApiConfig, AuthConfig, WeebDexResponse

logger = logging.getLogger(__name__)


@dataclass
class CommonArgs:
    config: Path | None = None
    client_id: str | None = None
    client_secret: str | None = None
    cookie: str | None = None
    verbose: bool = False


@dataclass
class GetArgs(CommonArgs):
    path: str = ""
    auth: bool = False


@dataclass
class SmokeArgs(CommonArgs):
    methods: list[str] = field(default_factory=list)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (YAML)",
    )
    parser.add_argument(
        "--client-id",
        type=str,
        default=None,
        help="API client ID (overrides the config file)",
    )
    parser.add_argument(
        "--client-secret",
        type=str,
        default=None,
        help="API client secret (overrides the config file)",
    )
    parser.add_argument(
        "--cookie",
        type=str,
        default=None,
        help="Session cookie (overrides the config file, wins over an API key)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log debug output to stderr",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with get and test subcommands."""
    parser = argparse.ArgumentParser(
        prog="weebdex",
        description="Command-line client for the WeebDex API.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command")

    # Get subcommand
    get_parser = subparsers.add_parser(
        "get",
        help="Fetch a raw API path and print the response",
    )
    get_parser.add_argument(
        "path",
        type=str,
        help="Path relative to the API root (e.g. /manga/2mkslp3v5e) or an absolute URL",
    )
    get_parser.add_argument(
        "--auth",
        action="store_true",
        help="Send credentials with the request",
    )
    _add_common_arguments(get_parser)

    # Test subcommand
    test_parser = subparsers.add_parser(
        "test",
        help="Run smoke checks against the live API",
    )
    test_parser.add_argument(
        "methods",
        nargs="*",
        metavar="METHOD",
        help=f"Checks to run: {', '.join(SMOKE_METHODS)} or all. Lists them when omitted.",
    )
    _add_common_arguments(test_parser)

    return parser


def _common_kwargs(namespace: argparse.Namespace) -> dict:
    return {
        "config": namespace.config,
        "client_id": namespace.client_id,
        "client_secret": namespace.client_secret,
        "cookie": namespace.cookie,
        "verbose": namespace.verbose,
    }


def parse_get_args(namespace: argparse.Namespace) -> GetArgs:
    """Convert parsed namespace to GetArgs dataclass."""
    return GetArgs(path=namespace.path, auth=namespace.auth, **_common_kwargs(namespace))


def parse_smoke_args(namespace: argparse.Namespace) -> SmokeArgs:
    """Convert parsed namespace to SmokeArgs dataclass."""
    return SmokeArgs(methods=list(namespace.methods or []), **_common_kwargs(namespace))


def parse_args(args: list[str] | None = None) -> GetArgs | SmokeArgs:
    """Parse command-line arguments and return typed args dataclass.

    Args:
        args: Command-line arguments to parse. If None, uses sys.argv[1:].

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    namespace = parser.parse_args(args)

    if namespace.command == "get":
        return parse_get_args(namespace)
    elif namespace.command == "test":
        return parse_smoke_args(namespace)
    else:
        # Should not happen with required=True on subparsers
        parser.error(f"Unknown command: {namespace.command}")


def build_client(args: CommonArgs) -> WeebDex:
    """Build a client from the config file (if any) and command-line credentials.

    Command-line credentials win over the config file, field by field.

    Raises:
        ConfigError: If the config file cannot be loaded.
    """
    api = ApiConfig()
    auth: AuthConfig | None = None
    if args.config is not None:
        runtime = load_runtime_config(args.config)
        api = runtime.api
        auth = runtime.auth

    credentials = LayeredCredentialsProvider(
        HardCodedCredentialsProvider(
            client_id=args.client_id,
            client_secret=args.client_secret,
            cookie=args.cookie,
        ),
        ConfigCredentialsProvider(auth),
    )
    return WeebDex(config=api, credentials=credentials, handlers=[LoggingEventHandler()])


def format_response(response: WeebDexResponse) -> str:
    """Render an envelope and a summary of its metadata as JSON."""
    meta = response.metadata
    error = meta.response.exception
    summary = {
        "succeeded": response.succeeded,
        "method": meta.request.method,
        "url": meta.request.uri,
        "status_code": meta.response.status_code,
        "elapsed_ms": round(meta.elapsed_ms, 1),
        "error": f"{type(error).__name__}: {error}" if error is not None else None,
        "rate_limits": meta.rate_limits.model_dump(mode="json") if meta.rate_limits else None,
        "body": response.model_dump(mode="json"),
    }
    return json.dumps(summary, indent=2, ensure_ascii=False)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        parsed = parse_args(argv)
        _configure_logging(parsed.verbose)

        if isinstance(parsed, GetArgs):
            return asyncio.run(run_get(parsed))
        else:
            return asyncio.run(run_test(parsed))

    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


async def run_get(args: GetArgs) -> int:
    """Run get mode: fetch one path and print the envelope."""
    async with build_client(args) as wd:
        try:
            response = await wd.api.get(args.path, WeebDexResponse, auth_required=args.auth)
        except WeebDexResponseError as e:
            # Raised instead of returned when the config sets throw_on_error
            response = e.response

    print(format_response(response))
    return 0 if response.succeeded else 1


# =============================================================================
# Smoke checks
# =============================================================================

SAMPLE_AUTHOR_ID = "uy8g7c4oh1"
SAMPLE_CHAPTER_AUTHOR_ID = "dzzri33r3v"
SAMPLE_CHAPTER_ID = "9v6c0zerlu"
SAMPLE_MANGA_ID = "2mkslp3v5e"
SAMPLE_STATS_CHAPTER_ID = "l3nm5fbler"
SAMPLE_STATS_GROUP_ID = "blebj9twem"
SAMPLE_STATS_USER_ID = "qlo3v9w4ek"

SmokeCall = Callable[[WeebDex], Awaitable[WeebDexResponse]]


def _report(label: str, response: WeebDexResponse) -> bool:
    meta = response.metadata
    status = meta.response.status_code if meta.response.status_code is not None else "-"
    outcome = "ok" if response.succeeded else "FAILED"
    line = f"  {label}: {outcome} (status {status}, {meta.elapsed_ms:.0f}ms)"
    if meta.response.exception is not None:
        line += f" {meta.response.exception}"
    print(line)
    return response.succeeded


SMOKE_METHODS: dict[str, list[tuple[str, SmokeCall]]] = {
    "authors": [
        ("authors.list", lambda wd: wd.authors.list(limit=5)),
        ("authors.get", lambda wd: wd.authors.get(SAMPLE_AUTHOR_ID)),
    ],
    "chapters": [
        (
            "chapters.search",
            lambda wd: wd.chapters.search({"authors": [SAMPLE_CHAPTER_AUTHOR_ID], "limit": 5}),
        ),
        ("chapters.get", lambda wd: wd.chapters.get(SAMPLE_CHAPTER_ID)),
        ("chapters.updates", lambda wd: wd.chapters.updates({"limit": 5})),
    ],
    "manga": [
        ("manga.search", lambda wd: wd.manga.search({"limit": 5})),
        ("manga.get", lambda wd: wd.manga.get(SAMPLE_MANGA_ID)),
        ("manga.top", lambda wd: wd.manga.top(limit=5)),
        ("manga.aggregate", lambda wd: wd.manga.aggregate(SAMPLE_MANGA_ID)),
    ],
    "stats": [
        ("statistics.chapter", lambda wd: wd.statistics.chapter(SAMPLE_STATS_CHAPTER_ID)),
        ("statistics.group", lambda wd: wd.statistics.group(SAMPLE_STATS_GROUP_ID)),
        ("statistics.manga", lambda wd: wd.statistics.manga(SAMPLE_MANGA_ID)),
        ("statistics.user", lambda wd: wd.statistics.user(SAMPLE_STATS_USER_ID)),
    ],
}


def resolve_methods(names: list[str]) -> list[str]:
    """Expand "all" and validate names. Order follows SMOKE_METHODS.

    Raises:
        ValueError: If a name is not a known check.
    """
    unknown = [n for n in names if n != "all" and n not in SMOKE_METHODS]
    if unknown:
        raise ValueError(f"Unknown test method(s): {', '.join(unknown)}")
    if "all" in names:
        return list(SMOKE_METHODS)
    return [n for n in SMOKE_METHODS if n in names]


async def run_test(args: SmokeArgs) -> int:
    """Run test mode: execute the named smoke checks, or list them."""
    if not args.methods:
        print("Available test methods:")
        for name, calls in SMOKE_METHODS.items():
            print(f"  {name}: {', '.join(label for label, _ in calls)}")
        print("  all: every method above")
        return 0

    try:
        names = resolve_methods(args.methods)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    failures = 0
    async with build_client(args) as wd:
        for name in names:
            print(f"{name}:")
            for label, call in SMOKE_METHODS[name]:
                try:
                    response = await call(wd)
                except WeebDexResponseError as e:
                    logger.error("Error running %s: %s", label, e)
                    response = e.response
                if not _report(label, response):
                    failures += 1

    print(f"Done: {failures} failed" if failures else "Done: all passed")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
