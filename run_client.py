#!/usr/bin/env python3
"""
CLI interface for the Graphiti client.

Commands:
  canonicalize  - Print the canonical form of a URL
  address       - Print the content address (SHA-256 hex) of a URL
  tag           - Print the 10-character privacy tag of a URL
  auth          - Sign in through the relay
  signout       - Forget the stored session
  publish       - Publish a link post about a URL
  search        - Show posts about a URL
  bookmark      - Get/set/remove a local bookmark
  config        - Show or update persisted settings

Examples:
  python run_client.py canonicalize "https://Example.com:443/?b=2&a=1#top"
  python run_client.py auth
  python run_client.py publish https://example.com --tags python,web --note "good read"
  python run_client.py search https://example.com --json
  python run_client.py bookmark set https://example.com --tags later
  python run_client.py config set following=pk1,pk2 debug=true
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from dotenv import load_dotenv

from services.client import GraphitiClient
from services.config_loader import ClientConfig
from utils.canonical_url import canonicalize
from utils.content_address import content_address, privacy_tag
from utils.errors import GraphitiError
from utils.retry_strategy import RetryConfig, with_retry


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(verbose: bool = False):
    """Configure logging for the client"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Reduce noise from some modules
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _print_approval_url(url: str) -> None:
    print(f"\nOpen this URL in Pubky Ring to approve sign-in:\n  {url}\n")


def _parse_assignments(pairs: List[str]) -> Dict[str, str]:
    updates = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        key, value = pair.split("=", 1)
        updates[key.strip()] = value
    return updates


# =============================================================================
# COMMAND HANDLERS
# =============================================================================

def cmd_canonicalize(args) -> int:
    print(canonicalize(args.url))
    return 0


def cmd_address(args) -> int:
    print(content_address(args.url))
    return 0


def cmd_tag(args) -> int:
    print(privacy_tag(canonicalize(args.url)))
    return 0


async def cmd_auth(args, client: GraphitiClient) -> int:
    await client.start_authorization()
    session = await client.get_session()
    print(f"Signed in as {session.identity}" if session else "Not signed in")
    return 0


async def cmd_signout(args, client: GraphitiClient) -> int:
    await client.sign_out()
    print("Signed out")
    return 0


async def cmd_publish(args, client: GraphitiClient) -> int:
    tags = args.tags.split(",") if args.tags else []
    config = RetryConfig(max_retries=args.retries)
    path = await with_retry(
        lambda: client.publish(args.url, tags=tags, note=args.note),
        config,
    )
    print(f"Published: {path}")
    return 0


async def cmd_search(args, client: GraphitiClient) -> int:
    result = await client.search_detailed(args.url)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    print(f"\n{'='*60}")
    print(f"Posts about {result.canonical_url}")
    print(f"{'='*60}")
    print(f"Source: {result.source.value}")
    if result.degraded:
        print("Warning: index or some peers unreachable; results may be incomplete")
    for record in result.items:
        tags = ", ".join(record.tags)
        print(f"- [{record.created_at}] {record.author or 'unknown'}: {record.note} ({tags})")
    if not result.items:
        print("No posts found")
    return 0


async def cmd_bookmark(args, client: GraphitiClient) -> int:
    if args.action == "get":
        bookmark = await client.get_bookmark(args.url)
        print(json.dumps(bookmark.to_json() if bookmark else None, indent=2))
    elif args.action == "set":
        tags = args.tags.split(",") if args.tags else []
        await client.set_bookmark(args.url, tags=tags, note=args.note)
        print("Bookmarked")
    else:
        await client.remove_bookmark(args.url)
        print("Bookmark removed")
    return 0


async def cmd_config(args, client: GraphitiClient) -> int:
    if args.action == "set":
        config = await client.set_config(_parse_assignments(args.assignments))
    else:
        config = await client.get_config()
    print(json.dumps(config, indent=2))
    return 0


OFFLINE_COMMANDS = {
    "canonicalize": cmd_canonicalize,
    "address": cmd_address,
    "tag": cmd_tag,
}

CLIENT_COMMANDS = {
    "auth": cmd_auth,
    "signout": cmd_signout,
    "publish": cmd_publish,
    "search": cmd_search,
    "bookmark": cmd_bookmark,
    "config": cmd_config,
}


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Graphiti client CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1] if __doc__ else None,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--db-path", type=str, help="Override GRAPHITI_DB_PATH")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    for name, help_text in (
        ("canonicalize", "Print canonical URL"),
        ("address", "Print content address"),
        ("tag", "Print privacy tag"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("url")

    subparsers.add_parser("auth", help="Sign in through the relay")

    subparsers.add_parser("signout", help="Forget the stored session")

    publish_parser = subparsers.add_parser("publish", help="Publish a link post")
    publish_parser.add_argument("url")
    publish_parser.add_argument("--tags", type=str, default="", help="Comma-separated tags")
    publish_parser.add_argument("--note", type=str, default="", help="Free-text note")
    publish_parser.add_argument("--retries", type=int, default=0, help="Retry transient write failures")

    search_parser = subparsers.add_parser("search", help="Show posts about a URL")
    search_parser.add_argument("url")
    search_parser.add_argument("--json", action="store_true", help="Output full JSON result")

    bookmark_parser = subparsers.add_parser("bookmark", help="Local bookmarks")
    bookmark_parser.add_argument("action", choices=["get", "set", "remove"])
    bookmark_parser.add_argument("url")
    bookmark_parser.add_argument("--tags", type=str, default="")
    bookmark_parser.add_argument("--note", type=str, default="")

    config_parser = subparsers.add_parser("config", help="Show or update settings")
    config_parser.add_argument("action", choices=["get", "set"])
    config_parser.add_argument("assignments", nargs="*", metavar="KEY=VALUE")

    return parser


async def run_command(args, config: ClientConfig) -> int:
    """Dispatch a parsed command. Returns the process exit code."""
    try:
        if args.command in OFFLINE_COMMANDS:
            return OFFLINE_COMMANDS[args.command](args)

        async with GraphitiClient(config, on_approval_url=_print_approval_url) as client:
            return await CLIENT_COMMANDS[args.command](args, client)

    except GraphitiError as e:
        print(f"Error [{e.code}]: {e.message}")
        return 1
    except ValueError as e:
        print(f"Error: {e}")
        return 1


async def main():
    """Main entry point"""
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = ClientConfig.from_env()
    if args.db_path:
        config.db_path = args.db_path
    setup_logging(verbose=args.verbose or config.debug)

    try:
        exit_code = await run_command(args, config)
        if exit_code != 0:
            sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)


def cli():
    """Console script entry point"""
    asyncio.run(main())


if __name__ == "__main__":
    cli()
