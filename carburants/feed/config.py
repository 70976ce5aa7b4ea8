"""Configuration for the feed refresh pipeline."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple
from zoneinfo import ZoneInfo

from ..utils.env import get_bool_env, get_float_env, get_int_env, get_list_env

LOG_TIMEZONE = ZoneInfo("Europe/Paris")

DEFAULT_FEED_URLS: Tuple[str, ...] = (
    "https://donnees.roulez-eco.fr/opendata/jour",
    "https://donnees.roulez-eco.fr/opendata/instantane",
)
DEFAULT_RELAYS: Tuple[str, ...] = (
    "direct",
    "codetabs",
    "allorigins",
    "corsproxy",
    "htmldriven",
    "cors-anywhere",
)
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_BYTES = 50 * 1024 * 1024
DEFAULT_MAX_ENTRY_BYTES = 300 * 1024 * 1024
DEFAULT_FALLBACK_MAX_ITERATIONS = 10000
DEFAULT_CACHE_PATH = Path("cache") / "stations.json"
DEFAULT_LOG_DIR = Path("log")
DEFAULT_LOG_MAX_BYTES = 1_000_000
DEFAULT_LOG_BACKUP_COUNT = 5

log = logging.getLogger("carburants")


def resolve_env_path(env_name: str, default: str | Path) -> Path:
    """Return the path configured in ``env_name`` or ``default``."""

    raw = (os.getenv(env_name) or "").strip()
    if not raw:
        return Path(default)
    return Path(raw).expanduser()


@dataclass(frozen=True)
class FeedSettings:
    """Settings derived from environment variables."""

    feed_urls: Tuple[str, ...] = DEFAULT_FEED_URLS
    relays: Tuple[str, ...] = DEFAULT_RELAYS
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = DEFAULT_TIMEOUT
    max_bytes: int = DEFAULT_MAX_BYTES
    max_entry_bytes: int = DEFAULT_MAX_ENTRY_BYTES
    fallback_max_iterations: int = DEFAULT_FALLBACK_MAX_ITERATIONS
    cache_path: Path = DEFAULT_CACHE_PATH
    cache_pretty: bool = False
    log_dir: Path = DEFAULT_LOG_DIR
    log_level: str = "INFO"
    log_format: str = "text"
    log_max_bytes: int = DEFAULT_LOG_MAX_BYTES
    log_backup_count: int = DEFAULT_LOG_BACKUP_COUNT

    @classmethod
    def from_env(cls) -> "FeedSettings":
        # Imported lazily: the fetch module depends on this one for defaults.
        from ..ingest.fetch import RELAY_STRATEGIES

        relays = []
        for name in get_list_env("CARBURANTS_RELAYS", DEFAULT_RELAYS):
            key = name.casefold()
            if key not in RELAY_STRATEGIES:
                log.warning("Unknown relay %r in CARBURANTS_RELAYS, ignoring it", name)
                continue
            if key not in relays:
                relays.append(key)

        log_format = (os.getenv("LOG_FORMAT") or "text").strip().lower()
        if log_format not in {"text", "json"}:
            log.warning("Invalid LOG_FORMAT=%r, using 'text'", log_format)
            log_format = "text"

        return cls(
            feed_urls=tuple(get_list_env("CARBURANTS_FEED_URLS", DEFAULT_FEED_URLS)),
            relays=tuple(relays) or DEFAULT_RELAYS,
            user_agent=(os.getenv("CARBURANTS_USER_AGENT") or "").strip() or DEFAULT_USER_AGENT,
            timeout=get_float_env("CARBURANTS_TIMEOUT", DEFAULT_TIMEOUT),
            max_bytes=get_int_env("CARBURANTS_MAX_BYTES", DEFAULT_MAX_BYTES, minimum=1),
            max_entry_bytes=get_int_env(
                "CARBURANTS_MAX_ENTRY_BYTES", DEFAULT_MAX_ENTRY_BYTES, minimum=1
            ),
            fallback_max_iterations=get_int_env(
                "CARBURANTS_FALLBACK_MAX_ITERATIONS",
                DEFAULT_FALLBACK_MAX_ITERATIONS,
                minimum=1,
            ),
            cache_path=resolve_env_path("CARBURANTS_CACHE_PATH", DEFAULT_CACHE_PATH),
            cache_pretty=get_bool_env("CARBURANTS_CACHE_PRETTY", False),
            log_dir=resolve_env_path("LOG_DIR", DEFAULT_LOG_DIR),
            log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper() or "INFO",
            log_format=log_format,
            log_max_bytes=get_int_env("LOG_MAX_BYTES", DEFAULT_LOG_MAX_BYTES, minimum=1),
            log_backup_count=get_int_env("LOG_BACKUP_COUNT", DEFAULT_LOG_BACKUP_COUNT, minimum=0),
        )
