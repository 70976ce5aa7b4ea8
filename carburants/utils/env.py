"""Helpers for reading environment variables in a safe way.

The module also provides lightweight helpers to populate environment
variables from ``.env`` style files.  Local setups can keep alternative feed
mirrors or relay selections next to the repository without committing them.
Consumers call :func:`load_default_env_files` before building
:class:`carburants.feed.config.FeedSettings`.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, MutableMapping, Sequence

__all__ = [
    "get_bool_env",
    "get_float_env",
    "get_int_env",
    "get_list_env",
    "load_default_env_files",
    "load_env_file",
]

_TRUE_VALUES = {"1", "true", "t", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "f", "no", "n", "off"}

log = logging.getLogger("carburants")


def get_bool_env(name: str, default: bool) -> bool:
    """Read boolean environment variables safely.

    Supported truthy values are ``1``, ``true``, ``t``, ``yes``, ``y`` and
    ``on`` (case-insensitive).  Falsy values are ``0``, ``false``, ``f``,
    ``no``, ``n`` and ``off``.  Unset variables or values consisting solely of
    whitespace result in the provided default.  All other values trigger a
    warning and also fall back to the default.
    """

    raw = os.getenv(name)
    if raw is None:
        return default

    stripped = raw.strip()
    if not stripped:
        return default

    lowered = stripped.casefold()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False

    log.warning(
        "Invalid boolean value for %s=%r, using default %s "
        "(allowed: 1/0, true/false, yes/no, on/off)",
        name,
        raw,
        default,
    )
    return default


def get_int_env(name: str, default: int, *, minimum: int | None = None) -> int:
    """Read integer environment variables safely.

    Returns the provided default if the variable is unset, cannot be
    converted to ``int`` or lies below ``minimum``.
    """

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except (ValueError, TypeError) as e:
        log.warning(
            "Invalid value for %s=%r, using default %d (%s: %s)",
            name,
            raw,
            default,
            type(e).__name__,
            e,
        )
        return default
    if minimum is not None and value < minimum:
        log.warning(
            "Value for %s=%d is below the minimum %d, using default %d",
            name,
            value,
            minimum,
            default,
        )
        return default
    return value


def get_float_env(name: str, default: float) -> float:
    """Read a positive float from the environment, falling back to ``default``."""

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip().replace(",", "."))
    except ValueError:
        log.warning("Invalid value for %s=%r, using default %s", name, raw, default)
        return default
    if value <= 0:
        log.warning("Value for %s must be positive, using default %s", name, default)
        return default
    return value


def get_list_env(name: str, default: Sequence[str]) -> List[str]:
    """Return a comma separated environment variable as a list of items."""

    raw = os.getenv(name)
    if raw is None:
        return list(default)
    items = [part.strip() for part in raw.split(",")]
    items = [item for item in items if item]
    return items or list(default)


ENV_ASSIGNMENT_RE = re.compile(
    r"^(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$"
)


def _strip_quotes(value: str) -> str:
    """Return ``value`` without surrounding single or double quotes."""

    if len(value) >= 2 and ((value[0] == value[-1]) and value[0] in {'"', "'"}):
        return value[1:-1]
    return value


def _strip_inline_comment(value: str) -> str:
    """Remove inline ``#`` comments from unquoted values."""

    if not value:
        return value

    if value[0] in {'"', "'"}:
        return value

    for idx, char in enumerate(value):
        if char == "#" and (idx == 0 or value[idx - 1].isspace()):
            return value[:idx].rstrip()

    return value


def _parse_env_file(content: str) -> Dict[str, str]:
    parsed: Dict[str, str] = {}
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        match = ENV_ASSIGNMENT_RE.match(line)
        if not match:
            continue

        key, value = match.groups()
        cleaned = _strip_inline_comment(value.strip())
        parsed[key] = _strip_quotes(cleaned.strip())

    return parsed


def load_env_file(
    path: Path,
    *,
    override: bool = False,
    environ: MutableMapping[str, str] | None = None,
) -> Dict[str, str]:
    """Load environment variables from ``path`` into ``environ``.

    Returns a mapping containing the parsed assignments. Existing variables are
    left untouched unless ``override`` is set to ``True``.
    """

    env: MutableMapping[str, str]
    env = environ if environ is not None else os.environ

    if not path.exists() or not path.is_file():
        return {}

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        log.warning(
            "Cannot read env file %s, skipping it (%s: %s)",
            path,
            type(exc).__name__,
            exc,
        )
        return {}
    parsed = _parse_env_file(content)

    for key, value in parsed.items():
        if override or key not in env:
            env[key] = value

    return parsed


def _default_env_file_candidates(base_dir: Path) -> Iterable[Path]:
    candidates = [
        base_dir / ".env",
        base_dir / "data" / "secrets.env",
        base_dir / "config" / "secrets.env",
    ]

    extra = os.getenv("CARBURANTS_ENV_FILES")
    if extra:
        for part in extra.split(os.pathsep):
            item = part.strip()
            if not item:
                continue
            candidate = Path(item).expanduser()
            if not candidate.is_absolute():
                candidate = base_dir / candidate
            candidates.append(candidate)

    return candidates


def load_default_env_files(
    *,
    override: bool = False,
    environ: MutableMapping[str, str] | None = None,
    base_dir: Path | None = None,
) -> Mapping[Path, Dict[str, str]]:
    """Load standard env files relative to the project root."""

    root = base_dir if base_dir is not None else Path(__file__).resolve().parents[2]

    loaded: Dict[Path, Dict[str, str]] = {}
    for candidate in _default_env_file_candidates(root):
        parsed = load_env_file(candidate, override=override, environ=environ)
        if parsed:
            loaded[candidate] = parsed

    return loaded
