from __future__ import annotations

import pytest

from app.core.config import ConfigError, load_settings

# ---- valid values ----


def test_load_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "APP_ENV",
        "LOG_LEVEL",
        "OAUTH_USE_PKCE",
        "REFRESH_MARGIN_SEC",
        "PROVIDER_TIMEOUT_SEC",
        "SESSION_SINGLE_PER_USER",
        "COOKIE_SECURE",
        "OAUTH_REVOKE_ON_LOGOUT",
    ):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.use_pkce is True
    assert settings.refresh_margin_sec == 60
    assert settings.provider_timeout_sec == 10.0
    assert settings.session_single_per_user is False
    assert settings.revoke_on_logout is False
    # Plain-http local development
    assert settings.cookie_secure is False


def test_cookie_secure_defaults_on_outside_dev(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.delenv("COOKIE_SECURE", raising=False)
    assert load_settings().cookie_secure is True


def test_load_settings_reads_oauth_registration(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("OAUTH_SCOPES", "openid, email  profile")
    settings = load_settings()
    assert settings.client_id == "test-client"
    assert settings.token_url == "https://idp.example.com/token"
    assert settings.scopes == ("openid", "email", "profile")
    assert settings.state_ttl_sec == 300


def test_load_settings_normalizes_case(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "PROD")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "debug"


def test_load_settings_strips_whitespace(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "  test  ")
    monkeypatch.setenv("SESSION_IDLE_TTL_SEC", " 900 ")
    settings = load_settings()
    assert settings.app_env == "test"
    assert settings.session_idle_ttl_sec == 900


# ---- missing / invalid values ----


def test_missing_required_values_are_all_reported(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("OAUTH_CLIENT_SECRET", raising=False)
    monkeypatch.setenv("STATE_TTL_SEC", "")
    with pytest.raises(ConfigError) as exc_info:
        load_settings()
    message = str(exc_info.value)
    assert "OAUTH_CLIENT_SECRET" in message
    assert "STATE_TTL_SEC" in message


def test_config_error_is_a_value_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OAUTH_TOKEN_URL", raising=False)
    with pytest.raises(ValueError, match="missing required configuration"):
        load_settings()


def test_load_settings_rejects_invalid_app_env(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("APP_ENV", "staging")
    with pytest.raises(ConfigError, match="APP_ENV must be dev|test|prod"):
        load_settings()


def test_load_settings_rejects_invalid_log_level(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    with pytest.raises(ConfigError, match="LOG_LEVEL must be debug|info|warning|error"):
        load_settings()


def test_short_signing_key_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SESSION_SIGNING_KEY", "too-short")
    with pytest.raises(ConfigError, match="SESSION_SIGNING_KEY"):
        load_settings()


def test_non_integer_ttl_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STATE_TTL_SEC", "ten minutes")
    with pytest.raises(ConfigError, match="STATE_TTL_SEC must be an integer"):
        load_settings()


def test_idle_ttl_may_not_exceed_max(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SESSION_IDLE_TTL_SEC", "7200")
    monkeypatch.setenv("SESSION_MAX_TTL_SEC", "3600")
    with pytest.raises(ConfigError, match="must not exceed"):
        load_settings()


def test_invalid_boolean_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OAUTH_USE_PKCE", "sometimes")
    with pytest.raises(ConfigError, match="OAUTH_USE_PKCE must be a boolean"):
        load_settings()


def test_non_positive_timeout_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROVIDER_TIMEOUT_SEC", "0")
    with pytest.raises(ConfigError, match="PROVIDER_TIMEOUT_SEC"):
        load_settings()


# ---- Settings properties ----


@pytest.mark.parametrize("env", ["dev", "test", "prod"])
def test_settings_is_dev_property(monkeypatch: pytest.MonkeyPatch, env: str) -> None:
    monkeypatch.setenv("APP_ENV", env)
    s = load_settings()
    assert s.is_dev is (env == "dev")


def test_settings_is_frozen() -> None:
    s = load_settings()
    with pytest.raises(AttributeError):
        s.app_env = "prod"  # type: ignore[misc]
