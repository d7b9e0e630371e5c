"""CLI entry point for namereveal."""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path

from .ceremony import PasscodeError, reveal_progress, verify_admin, verify_guest
from .config import Config, load_config
from .state import RevealConfig, SharedState, now_ms
from .sync import (
    CredentialMissing,
    LocalCache,
    RateLimiter,
    RemoteUnavailable,
    SyncClient,
    create_store,
)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        try:
            return json.dumps(log_data)
        except (TypeError, ValueError):
            log_data["message"] = str(log_data["message"])
            return json.dumps(log_data)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level_map = {
            "warning": logging.WARNING,
            "info": logging.INFO,
            "debug": logging.DEBUG,
        }
        level = level_map.get(log_level, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.WARNING

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
    )


def _ceremony_config(config: Config) -> RevealConfig:
    return RevealConfig(
        reveal_name=config.ceremony.reveal_name,
        required_reveals=config.ceremony.required_reveals,
        admin_passcode=config.ceremony.admin_passcode,
    )


def build_client(config: Config) -> SyncClient:
    """Wire cache, rate limiter, and store into a SyncClient."""
    limiter = RateLimiter(max_backoff=config.poll.max_backoff_seconds)
    store = create_store(config.store, limiter)
    cache = LocalCache(config.cache.db_path)
    cache.connect()
    return SyncClient(store, cache, limiter=limiter, default_config=_ceremony_config(config))


def _print_state(state: SharedState, config: Config) -> None:
    progress = reveal_progress(state, config.ceremony.guests)
    updated = datetime.fromtimestamp(state.last_updated / 1000).isoformat(timespec="seconds")
    print(f"Last updated: {updated}")
    print(f"Checked in: {progress.checked_in}/{progress.required}")
    for guest in config.ceremony.guests:
        mark = "x" if guest.id in state.authenticated_guests else " "
        print(f"  [{mark}] {guest.name} ({guest.id})")
    if state.is_name_revealed and state.config.reveal_name:
        print(f"Name: {state.config.reveal_name}")
    print(progress.describe())


async def cmd_status(args: argparse.Namespace) -> int:
    """Show the current shared state."""
    config = load_config(args.config)
    client = build_client(config)

    try:
        result = await client.fetch()
    finally:
        await client.close()
        client.cache.close()

    if args.json:
        print(json.dumps({
            "source": result.source.value,
            "error": result.error,
            "rate_limit": {
                "remaining": client.limiter.status.remaining,
                "reset_at": client.limiter.status.reset_at,
            },
            "state": result.state.to_dict(),
        }, indent=2))
    else:
        print(f"Source: {result.source.value}")
        if result.error:
            print(f"Remote error: {result.error}")
        _print_state(result.state, config)

    return 0


async def cmd_checkin(args: argparse.Namespace) -> int:
    """Check a guest in."""
    config = load_config(args.config)

    if config.ceremony.guests:
        try:
            guest = verify_guest(config.ceremony.guests, args.guest_id, args.passcode or "")
        except KeyError as e:
            print(f"Error: {e.args[0]}", file=sys.stderr)
            return 1
        except PasscodeError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        name = guest.name
    else:
        name = args.guest_id

    client = build_client(config)
    try:
        state = await client.add_authenticated_guest(args.guest_id)
    except (RemoteUnavailable, CredentialMissing) as e:
        print(f"Checked in locally, but the change may not be visible to others yet: {e}",
              file=sys.stderr)
        return 1
    finally:
        await client.close()
        client.cache.close()

    print(f"{name} checked in")
    print(reveal_progress(state, config.ceremony.guests).describe())
    return 0


async def cmd_reveal(args: argparse.Namespace) -> int:
    """Reveal the name once enough guests have checked in."""
    config = load_config(args.config)
    client = build_client(config)

    try:
        current = await client.load()
        gate = current.config if current.config.admin_passcode else _ceremony_config(config)

        try:
            verify_admin(gate, args.passcode)
        except PasscodeError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        progress = reveal_progress(current, config.ceremony.guests)
        if progress.revealed:
            print(progress.describe())
            return 0
        if not progress.can_reveal:
            print(progress.describe(), file=sys.stderr)
            return 1

        try:
            state = await client.set_name_revealed()
        except (RemoteUnavailable, CredentialMissing) as e:
            print(f"Revealed locally, but the change may not be visible to others yet: {e}",
                  file=sys.stderr)
            return 1
    finally:
        await client.close()
        client.cache.close()

    print(f"The name is: {state.config.reveal_name or '(not provisioned)'}")
    return 0


async def cmd_watch(args: argparse.Namespace) -> int:
    """Print the state whenever another session changes it."""
    config = load_config(args.config)
    client = build_client(config)
    interval = args.interval or config.poll.interval_seconds

    def on_change(state: SharedState) -> None:
        print()
        _print_state(state, config)

    _print_state(await client.load(), config)
    unsubscribe = client.subscribe(on_change, interval=interval)

    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("\nStopping...")
    finally:
        unsubscribe()
        await client.close()
        client.cache.close()

    return 0


async def cmd_init(args: argparse.Namespace) -> int:
    """Provision the shared document from the ceremony config."""
    config = load_config(args.config)
    client = build_client(config)

    try:
        if not args.force:
            try:
                existing = await client.store.fetch_document()
            except RemoteUnavailable as e:
                # Only a missing document may be provisioned; any other
                # failure leaves the existing guest list untouched.
                if e.status_code != 404:
                    print(f"Error: cannot check for an existing document: {e}", file=sys.stderr)
                    return 1
                existing = None
            if existing is not None:
                print("Document already exists; use --force to overwrite", file=sys.stderr)
                return 1

        state = SharedState(config=_ceremony_config(config), last_updated=now_ms())
        try:
            await client.store.put_document(state)
        except (RemoteUnavailable, CredentialMissing) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        client.cache.put(state)
    finally:
        await client.close()
        client.cache.close()

    print("Shared state provisioned")
    return 0


async def cmd_proxy(args: argparse.Namespace) -> int:
    """Run the credential-holding proxy."""
    config = load_config(args.config)

    try:
        from .proxy import create_app

        import uvicorn
    except ImportError as e:
        print(f"Proxy dependencies not installed: {e}", file=sys.stderr)
        print("Install with: pip install namereveal[proxy]", file=sys.stderr)
        return 1

    host = args.host or config.proxy.host
    port = args.port or config.proxy.port

    print("Starting namereveal proxy")
    print(f"URL: http://{host}:{port}/state")

    app = create_app(config)

    verbose = getattr(args, "verbose", False)
    config_uvicorn = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info" if verbose else "warning",
    )
    server = uvicorn.Server(config_uvicorn)
    await server.serve()

    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="namereveal",
        description="Shared check-in and reveal state for a naming ceremony",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file (default: built-in defaults)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Status command
    status_parser = subparsers.add_parser("status", help="Show the shared state")
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Output status as JSON",
    )
    status_parser.set_defaults(func=cmd_status)

    # Checkin command
    checkin_parser = subparsers.add_parser("checkin", help="Check a guest in")
    checkin_parser.add_argument("guest_id", help="Guest id from the roster")
    checkin_parser.add_argument(
        "-p", "--passcode",
        default=None,
        help="Guest passcode (required when a roster is configured)",
    )
    checkin_parser.set_defaults(func=cmd_checkin)

    # Reveal command
    reveal_parser = subparsers.add_parser("reveal", help="Reveal the name")
    reveal_parser.add_argument(
        "-p", "--passcode",
        required=True,
        help="Admin passcode",
    )
    reveal_parser.set_defaults(func=cmd_reveal)

    # Watch command
    watch_parser = subparsers.add_parser("watch", help="Follow state changes")
    watch_parser.add_argument(
        "-i", "--interval",
        type=float,
        default=None,
        help="Polling interval in seconds (default: from config)",
    )
    watch_parser.set_defaults(func=cmd_watch)

    # Init command
    init_parser = subparsers.add_parser("init", help="Provision the shared document")
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing document",
    )
    init_parser.set_defaults(func=cmd_init)

    # Proxy command
    proxy_parser = subparsers.add_parser("proxy", help="Run the credential-holding proxy")
    proxy_parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help="Port to listen on (default: from config, 8787)",
    )
    proxy_parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind to (default: from config)",
    )
    proxy_parser.set_defaults(func=cmd_proxy)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        return 0
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
