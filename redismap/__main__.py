#!/usr/bin/env python3
"""
redismap CLI Entrypoint

Operator commands against the Redis described by REDIS_* / REDISMAP_*:
    redismap create                    Create a map and print its identifier
    redismap get KEY FIELD             Print one value
    redismap put KEY FIELD VALUE       Store one value, print the previous one
    redismap dump KEY                  Print every entry as JSON

A map only lives while some handle renews it: one created here expires
one TTL after the command exits unless another process attaches to it.

Usage:
    python -m redismap create
    REDIS_HOST=cache.internal python -m redismap dump redis-map:42
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import List, Optional, TextIO

import redis.asyncio as aioredis

from redismap.core.config import RedisMapConfig
from redismap.core.errors import RedisMapError
from redismap.core.types import MISSING
from redismap.map import RedisMap
from redismap.observability.logging import LogLevel, setup_logging
from redismap.storage.connection import close_client, create_client


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="redismap",
        description="Shared, self-expiring associative maps on Redis",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )
    parser.add_argument(
        "--log-level",
        choices=[level.name for level in LogLevel],
        default="WARNING",
        help="Minimum log level (default: WARNING)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("create", help="Create an empty map and print its identifier")

    get_parser = subparsers.add_parser("get", help="Print the value stored under FIELD")
    get_parser.add_argument("key", help="Map identifier, e.g. redis-map:42")
    get_parser.add_argument("field")

    put_parser = subparsers.add_parser("put", help="Store VALUE under FIELD")
    put_parser.add_argument("key", help="Map identifier, e.g. redis-map:42")
    put_parser.add_argument("field")
    put_parser.add_argument("value")

    dump_parser = subparsers.add_parser("dump", help="Print every entry as JSON")
    dump_parser.add_argument("key", help="Map identifier, e.g. redis-map:42")

    return parser


async def run_command(
    args: argparse.Namespace,
    client: aioredis.Redis,
    config: RedisMapConfig,
    out: TextIO,
) -> int:
    """Execute one parsed command. Returns the process exit code."""
    if args.command == "create":
        m = await RedisMap.create(client, config)
        print(m.identifier, file=out)
        return 0

    m = await RedisMap.attach_by_key(args.key, client, config)

    if args.command == "get":
        value = await m.lookup(args.field)
        if value is MISSING:
            print(f"{args.field}: not found", file=sys.stderr)
            return 1
        print(json.dumps(value), file=out)
    elif args.command == "put":
        previous = await m.put(args.field, args.value)
        print(json.dumps(None if previous is MISSING else previous), file=out)
    elif args.command == "dump":
        entries = await m.to_dict()
        # JSON objects cannot carry a null key
        printable = {("null" if k is None else k): v for k, v in entries.items()}
        print(json.dumps(printable, indent=2, sort_keys=True), file=out)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    setup_logging(LogLevel[args.log_level], json_output=args.json_logs)

    config_result = RedisMapConfig.from_env()
    if config_result.is_err():
        print(config_result.error, file=sys.stderr)
        return 2
    config = config_result.unwrap()

    async def _main() -> int:
        client = create_client(config.redis)
        try:
            return await run_command(args, client, config, sys.stdout)
        finally:
            await close_client(client)

    try:
        return asyncio.run(_main())
    except RedisMapError as e:
        print(str(e), file=sys.stderr)
        return 2


def _get_version() -> str:
    """Get package version."""
    from redismap import __version__
    return __version__


if __name__ == "__main__":
    sys.exit(main())
