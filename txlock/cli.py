"""txlock CLI entrypoints."""

from __future__ import annotations

import argparse
import sys

from .config_loader import LockConfig, load_lock_config, lock_config_from_env, validate_lock_config
from .errors import TxLockError
from .lock import FileLock


def _add_lock_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("path", help="Lock file path")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a lock config file (key: value lines)",
    )
    parser.add_argument(
        "--stale-after",
        type=float,
        default=None,
        help="Seconds after which a lock is considered stale (overrides config)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="txlock")
    sub = parser.add_subparsers(dest="command", required=True)

    p_status = sub.add_parser("status", help="Show who holds a lock file")
    _add_lock_args(p_status)

    p_clean = sub.add_parser("clean", help="Remove a lock file if it is stale")
    _add_lock_args(p_clean)

    return parser


def _resolve_config(args: argparse.Namespace) -> LockConfig:
    config = load_lock_config(args.config) if args.config else LockConfig()
    config = lock_config_from_env(base=config)
    if args.stale_after is not None:
        config = validate_lock_config({"stale_after_seconds": args.stale_after}, base=config)
    return config


def cmd_status(lock: FileLock) -> int:
    record = lock.read_record()
    state = lock.state()
    print(f"path: {lock.path}")
    print(f"state: {state.value}")
    if record is None:
        return 0
    age = lock.age_seconds()
    print(f"owner: {record.owner_id or 'unknown'}")
    print(f"owner_running: {'yes' if lock.owner_running(record) else 'no'}")
    print(f"age_seconds: {int(age) if age is not None else 'unknown'}")
    print(f"token: {record.token or 'missing'}")
    return 0


def cmd_clean(lock: FileLock) -> int:
    lock.remove_stale()
    print(f"removed: {lock.path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        lock = FileLock(args.path, _resolve_config(args))
        if args.command == "status":
            return cmd_status(lock)
        if args.command == "clean":
            return cmd_clean(lock)
        parser.error(f"Unknown command: {args.command}")
        return 2
    except TxLockError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
