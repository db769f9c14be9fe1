from __future__ import annotations

from sqlmodel import Field

from timebank.models.base import UpdatedAtMixin

GLOBAL_SETTINGS_ID = "global"


class GlobalSchedulerSettings(UpdatedAtMixin, table=True):
    """Singleton row holding the platform-wide scheduler defaults."""

    __tablename__ = "global_scheduler_settings"

    id: str = Field(default=GLOBAL_SETTINGS_ID, primary_key=True, max_length=32)
    reconciliation_weekday: int = 1
    reconciliation_hour: int = 4
    reconciliation_window_minutes: int = 20
    dispatch_interval_minutes: int = 10
    daily_sweep_hour: int = 4
    daily_sweep_window_minutes: int = 20
    sweep_lookback_days: int = 2
    authorization_expiry_days: int = 7
