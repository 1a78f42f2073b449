from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from cast_studio.adapters import observability
from cast_studio.adapters.observability import DEFAULT_LOG_PATH, LogSettings


def test_log_settings_from_env_bounds_numbers_and_levels(tmp_path: Path) -> None:
    settings = LogSettings.from_env(
        {
            "CAST_STUDIO_LOG_LEVEL": "debug",
            "CAST_STUDIO_LOG_PATH": str(tmp_path / "cast.log"),
            "CAST_STUDIO_LOG_MAX_BYTES": "1",
            "CAST_STUDIO_LOG_BACKUP_COUNT": "not-a-number",
            "CAST_STUDIO_HTTP_LOG_LEVEL": "error",
        }
    )
    assert settings.level == logging.DEBUG
    assert settings.path == tmp_path / "cast.log"
    assert settings.max_bytes == 64 * 1024
    assert settings.backup_count == 5
    assert settings.library_levels == {"httpx": logging.ERROR, "httpcore": logging.ERROR}


def test_log_settings_defaults_and_explicit_level_override() -> None:
    defaults = LogSettings.from_env({"CAST_STUDIO_LOG_LEVEL": "LOUD"})
    assert defaults.level == logging.INFO
    assert defaults.path == DEFAULT_LOG_PATH
    assert defaults.library_levels["httpx"] == logging.WARNING
    override = LogSettings.from_env({"CAST_STUDIO_LOG_LEVEL": "ERROR"}, level="debug")
    assert override.level == logging.DEBUG


def test_configure_runtime_logging_installs_handlers_once(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(observability, "_CONFIGURED", False)
    settings = LogSettings(
        level=logging.WARNING,
        path=tmp_path / "logs" / "cast.log",
        backup_count=2,
        library_levels={"httpx": logging.ERROR},
    )
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    try:
        assert observability.configure_runtime_logging(settings) == settings
        file_handlers = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
        assert root.level == logging.WARNING
        assert len(file_handlers) == 1
        assert file_handlers[0].backupCount == 2
        assert logging.getLogger("httpx").level == logging.ERROR
        assert (tmp_path / "logs").is_dir()

        assert observability.configure_runtime_logging(settings) is None
        assert len([h for h in root.handlers if isinstance(h, RotatingFileHandler)]) == 1
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        logging.getLogger("httpx").setLevel(logging.NOTSET)
