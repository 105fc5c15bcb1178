from datetime import datetime, timedelta, timezone

from couponbook import config
from couponbook.utils.timestamps import (
    EPOCH,
    from_epoch_ms,
    optional_from_epoch_ms,
    optional_to_epoch_ms,
    to_epoch_ms,
)

JULY_4_2034_MS = 2035629000000


def test_get_settings_defaults(monkeypatch):
    for name in ("DATABASE_PATH", "APP_ENV", "LOG_LEVEL", "LOG_JSON", "COUPON_DEFAULT_EXPIRATION_DAYS"):
        monkeypatch.delenv(name, raising=False)
    settings = config.Settings(_env_file=None)
    assert settings.database_path == "./data/couponbook.db"
    assert settings.app_env == "development"
    assert settings.log_level == "INFO"
    assert settings.log_json is False
    assert settings.coupon_default_expiration_days == 30


def test_get_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", "/tmp/other.db")
    monkeypatch.setenv("COUPON_DEFAULT_EXPIRATION_DAYS", "7")
    settings = config.get_settings()
    assert settings.database_path == "/tmp/other.db"
    assert settings.coupon_default_expiration_days == 7
    assert config.get_settings() is settings


def test_epoch_ms_round_trip_is_exact():
    moment = datetime(2034, 7, 4, 12, 30, 0, 123000, tzinfo=timezone.utc)
    assert from_epoch_ms(to_epoch_ms(moment)) == moment
    assert to_epoch_ms(datetime(2034, 7, 4, 12, 30, tzinfo=timezone.utc)) == JULY_4_2034_MS


def test_epoch_ms_truncates_microseconds():
    moment = datetime(2034, 7, 4, 12, 30, 0, 123999, tzinfo=timezone.utc)
    assert to_epoch_ms(moment) == JULY_4_2034_MS + 123


def test_naive_datetimes_are_local_time():
    naive = datetime(2034, 7, 4, 12, 30)
    assert to_epoch_ms(naive) == to_epoch_ms(naive.astimezone())


def test_from_epoch_ms_is_aware_utc():
    assert from_epoch_ms(0) == EPOCH
    assert from_epoch_ms(1500).tzinfo == timezone.utc
    assert from_epoch_ms(1500) - EPOCH == timedelta(milliseconds=1500)


def test_optional_helpers_pass_none_through():
    assert optional_from_epoch_ms(None) is None
    assert optional_to_epoch_ms(None) is None
    assert optional_to_epoch_ms(EPOCH) == 0
