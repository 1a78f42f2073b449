"""Process logging for the library CLI: console output plus a size-capped log file.

Settings come from ``CAST_STUDIO_LOG_*`` variables; out-of-range or unparseable
numbers fall back to defaults instead of failing startup.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path

DEFAULT_LOG_PATH = Path("work/logs/cast_studio.log")
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

_CONFIGURED = False


def _bounded_int(raw: str, default: int, *, minimum: int, maximum: int) -> int:
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


def _level(raw: str, default: int) -> int:
    value = logging.getLevelName(raw.strip().upper()) if raw.strip() else default
    return value if isinstance(value, int) else default


@dataclass(frozen=True)
class LogSettings:
    level: int = logging.INFO
    path: Path = DEFAULT_LOG_PATH
    max_bytes: int = 2 * 1024 * 1024
    backup_count: int = 5
    # HTTP client chatter is only useful when debugging the generation proxy.
    library_levels: Mapping[str, int] = field(
        default_factory=lambda: {"httpx": logging.WARNING, "httpcore": logging.WARNING}
    )

    @classmethod
    def from_env(
        cls, env: Mapping[str, str] | None = None, *, level: str | None = None
    ) -> LogSettings:
        """Read ``CAST_STUDIO_LOG_*``; an explicit ``level`` wins over the environment."""
        source = os.environ if env is None else env
        defaults = cls()
        http_level = _level(source.get("CAST_STUDIO_HTTP_LOG_LEVEL", ""), logging.WARNING)
        path = source.get("CAST_STUDIO_LOG_PATH", "").strip()
        return cls(
            level=_level(level or source.get("CAST_STUDIO_LOG_LEVEL", ""), defaults.level),
            path=Path(path) if path else defaults.path,
            max_bytes=_bounded_int(
                source.get("CAST_STUDIO_LOG_MAX_BYTES", ""),
                defaults.max_bytes,
                minimum=64 * 1024,
                maximum=50 * 1024 * 1024,
            ),
            backup_count=_bounded_int(
                source.get("CAST_STUDIO_LOG_BACKUP_COUNT", ""),
                defaults.backup_count,
                minimum=1,
                maximum=50,
            ),
            library_levels={"httpx": http_level, "httpcore": http_level},
        )


def build_handlers(settings: LogSettings) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    settings.path.parent.mkdir(parents=True, exist_ok=True)
    handlers: list[logging.Handler] = [
        logging.StreamHandler(),
        RotatingFileHandler(
            filename=settings.path,
            maxBytes=settings.max_bytes,
            backupCount=settings.backup_count,
            encoding="utf-8",
        ),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_runtime_logging(settings: LogSettings | None = None) -> LogSettings | None:
    """Install handlers on the root logger once; later calls are no-ops returning None."""
    global _CONFIGURED
    if _CONFIGURED:
        return None
    resolved = settings or LogSettings.from_env()
    root = logging.getLogger()
    root.setLevel(resolved.level)
    root.handlers.clear()
    for handler in build_handlers(resolved):
        root.addHandler(handler)
    for name, level in resolved.library_levels.items():
        logging.getLogger(name).setLevel(level)
    _CONFIGURED = True
    return resolved
