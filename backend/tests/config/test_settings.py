import pytest

from matricare.core.settings import Settings, validate_settings

STRONG_SECRET = "config-secret-0123456789abcdef0123456789"


def test_jwt_secret_env_is_not_a_fallback(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    monkeypatch.setenv("JWT_SECRET", STRONG_SECRET)
    config = Settings(_env_file=None)

    validate_settings(config)

    assert config.secret_key == "change-me"


def test_weak_secret_fails_in_production():
    config = Settings(_env_file=None, app_env="production", secret_key="change-me")
    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        validate_settings(config)


def test_consent_limits_must_be_positive():
    config = Settings(_env_file=None, secret_key=STRONG_SECRET, consent_scan_limit=0)
    with pytest.raises(RuntimeError, match="CONSENT_SCAN_LIMIT"):
        validate_settings(config)


def test_consent_defaults_read_from_environment(monkeypatch):
    monkeypatch.setenv("CONSENT_DEFAULT_DAYS", "14")
    monkeypatch.setenv("CONSENT_SCAN_LIMIT", "")
    config = Settings(_env_file=None)

    assert config.consent_default_days == 14
    assert config.consent_scan_limit == 100
