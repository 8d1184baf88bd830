"""Entrypoints for plugincache

This module contains the command-line-interface of `plugincache`. It exposes
the cache and lock operations to shell scripts and to plugins that do not link
against the python module. The `plugincache_cli()` entrypoint can be safely
used from tests to run the cli.
"""


import argparse
import logging
import os
import sys
import typing
from typing import List

import plugincache
from plugincache.config import CacheConfig, load_config
from plugincache.exceptions import (ConfigError, InvalidNameError,
                                    LockCancelledError, LockTimeoutError)
from plugincache.util.parsing import parse_duration


@typing.no_type_check  # see https://github.com/python/typeshed/issues/3107
def parse_arguments(sys_argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="plugincache",
                                     description="Access the shared plugin cache")

    parser.add_argument("--root", metavar="DIRECTORY", type=os.path.abspath, default=None,
                        help="cache root directory (default: /var/cache)")
    parser.add_argument("--config", metavar="FILE", default=None,
                        help="json file with the cache configuration")
    parser.add_argument("--version", action="version",
                        help="return the version of plugincache",
                        version="%(prog)s " + plugincache.__version__)

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    p = sub.add_parser("lock", help="acquire a lock and leave it held")
    p.add_argument("name", metavar="NAME")
    p.add_argument("--timeout", metavar="DURATION", type=parse_duration, default=None,
                   help="give up after waiting this long (e.g. '500ms', '2s')")
    p.add_argument("--interval", metavar="DURATION", type=parse_duration, default=None,
                   help="pause between two polls of a contended lock")

    p = sub.add_parser("unlock", help="release a lock")
    p.add_argument("name", metavar="NAME")
    p.add_argument("--delay", metavar="DURATION", type=parse_duration, default=None,
                   help="keep the lock held for this long before releasing it")

    p = sub.add_parser("exists", help="check whether a cache entry exists")
    p.add_argument("name", metavar="NAME")

    p = sub.add_parser("read", help="write the content of a cache entry to stdout")
    p.add_argument("name", metavar="NAME")

    p = sub.add_parser("write", help="replace the content of a cache entry with stdin")
    p.add_argument("name", metavar="NAME")

    p = sub.add_parser("rm", help="remove a cache entry")
    p.add_argument("name", metavar="NAME")

    return parser.parse_args(sys_argv[1:])


def make_config(args: argparse.Namespace) -> CacheConfig:
    config = CacheConfig()
    if args.config:
        config = load_config(args.config)
    if args.root:
        config = config._replace(root=args.root)
    if getattr(args, "interval", None) is not None:
        config = config._replace(interval=args.interval)
    if getattr(args, "timeout", None) is not None:
        config = config._replace(timeout=args.timeout)
    return config


def run(args: argparse.Namespace, config: CacheConfig) -> int:
    cache = config.cache()
    locks = config.lock_manager()

    if args.command == "lock":
        locks.acquire(args.name)
    elif args.command == "unlock":
        locks.release(args.name, delay=args.delay)
    elif args.command == "exists":
        if not cache.exists(args.name):
            return 1
    elif args.command == "read":
        if not cache.exists(args.name):
            print(f"{args.name}: no such cache entry", file=sys.stderr)
            return 1
        sys.stdout.buffer.write(cache.load(args.name))
        sys.stdout.flush()
    elif args.command == "write":
        cache.store(args.name, sys.stdin.buffer.read())
    elif args.command == "rm":
        cache.remove(args.name)
    else:
        raise AssertionError(f"unknown command {args.command}")

    return 0


def plugincache_cli() -> int:
    logging.basicConfig(level=logging.getLevelName(os.environ.get("PLUGINCACHE_LOGLEVEL", "WARNING")))

    args = parse_arguments(sys.argv)

    try:
        config = make_config(args)
        return run(args, config)
    except (ConfigError, InvalidNameError, LockTimeoutError, LockCancelledError) as e:
        print(e, file=sys.stderr)
        return 2
    except OSError as e:
        print(f"{args.command}: {e}", file=sys.stderr)
        return 1
