from __future__ import annotations

import pytest

from timebank.config import Settings, get_settings, reset_settings
from timebank.db import engine_options


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("", True),
        ("   ", True),
        ("true", True),
        ("YES", True),
        ("1", True),
        ("on", True),
        ("no", False),
        ("0", False),
        ("false", False),
        ("disabled", False),
    ],
)
def test_scheduler_flag_parsing(monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
    monkeypatch.setenv("OVERTIME_RECONCILIATION_ENABLED", raw)
    assert Settings().overtime_reconciliation_enabled is expected


def test_scheduler_enabled_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OVERTIME_RECONCILIATION_ENABLED", raising=False)
    assert Settings().overtime_reconciliation_enabled is True


def test_settings_are_cached_until_reset(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_settings()
    assert get_settings() is first

    monkeypatch.setenv("DEFAULT_TIMEZONE", "America/New_York")
    assert get_settings().default_timezone == first.default_timezone
    reset_settings()
    assert get_settings().default_timezone == "America/New_York"


def test_engine_options_size_the_pool_for_postgres() -> None:
    options = engine_options(Settings(database_url="postgresql+asyncpg://u:p@db/timebank", database_pool_size=3))
    assert options["pool_size"] == 3
    assert options["max_overflow"] == 10
    assert options["pool_pre_ping"] is True


def test_engine_options_skip_pool_sizing_for_sqlite() -> None:
    options = engine_options(Settings(database_url="sqlite+aiosqlite:///:memory:", debug=True))
    assert "pool_size" not in options
    assert options["echo"] is True
