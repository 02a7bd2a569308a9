"""Lock configuration loading for txlock."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from .errors import LockConfigError

DEFAULT_TIMEOUT_SECONDS = 0.0
DEFAULT_STALE_AFTER_SECONDS = 60.0
DEFAULT_RETRY_DELAY_SECONDS = 0.1

ENV_TIMEOUT = "TXLOCK_TIMEOUT"
ENV_STALE_AFTER = "TXLOCK_STALE_AFTER"
ENV_RETRY_DELAY = "TXLOCK_RETRY_DELAY"

KNOWN_KEYS = {
    "timeout_seconds",
    "stale_after_seconds",
    "stale_lock_timeout_seconds",
    "retry_delay_seconds",
}


@dataclass(frozen=True)
class LockConfig:
    """Per-handle timing settings, immutable after construction."""

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    stale_after_seconds: float = DEFAULT_STALE_AFTER_SECONDS
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS

    def as_dict(self) -> dict[str, float]:
        return {
            "timeout_seconds": self.timeout_seconds,
            "stale_after_seconds": self.stale_after_seconds,
            "retry_delay_seconds": self.retry_delay_seconds,
        }


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _strip_inline_comment(value: str) -> str:
    in_single = False
    in_double = False
    result: list[str] = []
    for char in value:
        if char == "'" and not in_double:
            in_single = not in_single
        elif char == '"' and not in_single:
            in_double = not in_double
        elif char == "#" and not in_single and not in_double:
            break
        result.append(char)
    return "".join(result).rstrip()


def _parse_scalar(value: str) -> Any:
    raw = _strip_quotes(value.strip())
    if raw == "":
        return ""
    if re.fullmatch(r"-?\d+", raw):
        return int(raw)
    if re.fullmatch(r"-?(\d+\.\d*|\.\d+)", raw):
        return float(raw)
    return raw


def _parse_key_values(path: Path) -> dict[str, Any]:
    """Parse flat ``key: value`` lines from a config file."""
    values: dict[str, Any] = {}
    for line_no, raw_line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        cleaned = _strip_inline_comment(raw_line).strip()
        if not cleaned:
            continue
        if ":" not in cleaned:
            raise LockConfigError(
                f"Invalid config line in {path} at line {line_no}: expected 'key: value'."
            )
        key, remainder = cleaned.split(":", 1)
        key = key.strip()
        if not key:
            raise LockConfigError(f"Invalid empty key in {path} at line {line_no}.")
        values[key] = _parse_scalar(remainder)
    return values


def _as_seconds(raw: Any, key: str, *, default: float) -> float:
    if raw is None:
        return default
    if isinstance(raw, bool):
        raise LockConfigError(f"Config key '{key}' must be a number.")
    if isinstance(raw, str):
        try:
            raw = float(raw.strip())
        except ValueError as exc:
            raise LockConfigError(f"Config key '{key}' must be a number.") from exc
    if not isinstance(raw, (int, float)):
        raise LockConfigError(f"Config key '{key}' must be a number.")
    value = float(raw)
    if value != value or value < 0:
        raise LockConfigError(f"Config key '{key}' must be >= 0.")
    return value


def validate_lock_config(raw: Mapping[str, Any], *, base: LockConfig | None = None) -> LockConfig:
    """Build a LockConfig from raw values layered over base."""
    defaults = base or LockConfig()
    unknown = sorted(set(raw) - KNOWN_KEYS)
    if unknown:
        raise LockConfigError(f"Unknown config key(s): {', '.join(unknown)}")

    stale_raw = raw.get("stale_after_seconds")
    stale_key = "stale_after_seconds"
    if stale_raw is None and raw.get("stale_lock_timeout_seconds") is not None:
        stale_raw = raw.get("stale_lock_timeout_seconds")
        stale_key = "stale_lock_timeout_seconds"

    timeout_seconds = _as_seconds(
        raw.get("timeout_seconds"), "timeout_seconds", default=defaults.timeout_seconds
    )
    stale_after_seconds = _as_seconds(stale_raw, stale_key, default=defaults.stale_after_seconds)
    retry_delay_seconds = _as_seconds(
        raw.get("retry_delay_seconds"), "retry_delay_seconds", default=defaults.retry_delay_seconds
    )
    if timeout_seconds > 0 and retry_delay_seconds <= 0:
        raise LockConfigError("Config key 'retry_delay_seconds' must be > 0 when timeout_seconds > 0.")

    return LockConfig(
        timeout_seconds=timeout_seconds,
        stale_after_seconds=stale_after_seconds,
        retry_delay_seconds=retry_delay_seconds,
    )


def load_lock_config(config_path_str: str, *, base: LockConfig | None = None) -> LockConfig:
    """Load and validate a lock config file."""
    config_path = Path(config_path_str).expanduser().resolve()
    if not config_path.exists():
        raise LockConfigError(f"Config file not found: {config_path}")
    if not config_path.is_file():
        raise LockConfigError(f"Config path is not a file: {config_path}")
    return validate_lock_config(_parse_key_values(config_path), base=base)


def lock_config_from_env(
    environ: Mapping[str, str] | None = None, *, base: LockConfig | None = None
) -> LockConfig:
    """Apply TXLOCK_* environment overrides to base."""
    env = os.environ if environ is None else environ
    raw: dict[str, Any] = {}
    for env_key, config_key in (
        (ENV_TIMEOUT, "timeout_seconds"),
        (ENV_STALE_AFTER, "stale_after_seconds"),
        (ENV_RETRY_DELAY, "retry_delay_seconds"),
    ):
        value = env.get(env_key)
        if value is not None and value.strip():
            raw[config_key] = value
    return validate_lock_config(raw, base=base)
