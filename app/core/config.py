from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")

MIN_SIGNING_KEY_LEN = 32


class ConfigError(ValueError):
    """Startup configuration is missing or invalid."""


def _getenv(name: str, default: str = "") -> str:
    # Every lookup strips whitespace so padded values behave like clean ones
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name).lower()
    if not raw:
        return default
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean (got {raw!r})")


def _getint(name: str, raw: str, *, minimum: int = 0) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum} (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None

    # --- OAuth client registration ---
    provider_name: str
    client_id: str
    client_secret: str
    redirect_uri: str
    authorize_url: str
    token_url: str
    userinfo_url: str | None
    revocation_url: str | None
    scopes: tuple[str, ...]
    use_pkce: bool
    revoke_on_logout: bool

    # --- Session and state lifetimes ---
    session_signing_key: str
    session_idle_ttl_sec: int
    session_max_ttl_sec: int
    session_single_per_user: bool
    state_ttl_sec: int
    refresh_margin_sec: int
    provider_timeout_sec: float
    cookie_secure: bool
    sweep_interval_sec: int

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"


_REQUIRED = (
    "OAUTH_CLIENT_ID",
    "OAUTH_CLIENT_SECRET",
    "OAUTH_REDIRECT_URI",
    "OAUTH_AUTHORIZE_URL",
    "OAUTH_TOKEN_URL",
    "OAUTH_SCOPES",
    "SESSION_SIGNING_KEY",
    "SESSION_IDLE_TTL_SEC",
    "SESSION_MAX_TTL_SEC",
    "STATE_TTL_SEC",
)


def load_settings() -> Settings:
    """Build Settings from the environment.

    Every required OAuth/session variable must be present; all missing
    names are reported together so a broken deployment fails once, loudly.
    """
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ConfigError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ConfigError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _getint("PORT", port_raw, minimum=1)

    missing = [name for name in _REQUIRED if not _getenv(name)]
    if missing:
        raise ConfigError(f"missing required configuration: {', '.join(missing)}")

    signing_key = _getenv("SESSION_SIGNING_KEY")
    if len(signing_key) < MIN_SIGNING_KEY_LEN:
        raise ConfigError(
            f"SESSION_SIGNING_KEY must be at least {MIN_SIGNING_KEY_LEN} characters"
        )

    scopes = tuple(_getenv("OAUTH_SCOPES").replace(",", " ").split())
    if not scopes:
        raise ConfigError("OAUTH_SCOPES must name at least one scope")

    idle_ttl = _getint(
        "SESSION_IDLE_TTL_SEC", _getenv("SESSION_IDLE_TTL_SEC"), minimum=1
    )
    max_ttl = _getint("SESSION_MAX_TTL_SEC", _getenv("SESSION_MAX_TTL_SEC"), minimum=1)
    if idle_ttl > max_ttl:
        raise ConfigError("SESSION_IDLE_TTL_SEC must not exceed SESSION_MAX_TTL_SEC")

    timeout_raw = _getenv("PROVIDER_TIMEOUT_SEC", "10")
    try:
        provider_timeout = float(timeout_raw)
    except ValueError:
        raise ConfigError(
            f"PROVIDER_TIMEOUT_SEC must be a number (got {timeout_raw!r})"
        ) from None
    if provider_timeout <= 0:
        raise ConfigError("PROVIDER_TIMEOUT_SEC must be positive")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", False),
        port=port,
        database_url=_getenv("DATABASE_URL") or None,
        redis_url=_getenv("REDIS_URL") or None,
        provider_name=_getenv("OAUTH_PROVIDER_NAME", "oauth"),
        client_id=_getenv("OAUTH_CLIENT_ID"),
        client_secret=_getenv("OAUTH_CLIENT_SECRET"),
        redirect_uri=_getenv("OAUTH_REDIRECT_URI"),
        authorize_url=_getenv("OAUTH_AUTHORIZE_URL"),
        token_url=_getenv("OAUTH_TOKEN_URL"),
        userinfo_url=_getenv("OAUTH_USERINFO_URL") or None,
        revocation_url=_getenv("OAUTH_REVOCATION_URL") or None,
        scopes=scopes,
        use_pkce=_getbool("OAUTH_USE_PKCE", True),
        revoke_on_logout=_getbool("OAUTH_REVOKE_ON_LOGOUT", False),
        session_signing_key=signing_key,
        session_idle_ttl_sec=idle_ttl,
        session_max_ttl_sec=max_ttl,
        session_single_per_user=_getbool("SESSION_SINGLE_PER_USER", False),
        state_ttl_sec=_getint("STATE_TTL_SEC", _getenv("STATE_TTL_SEC"), minimum=1),
        refresh_margin_sec=_getint(
            "REFRESH_MARGIN_SEC", _getenv("REFRESH_MARGIN_SEC", "60")
        ),
        provider_timeout_sec=provider_timeout,
        # Secure cookies everywhere except plain-http local development.
        cookie_secure=_getbool("COOKIE_SECURE", app_env_raw != "dev"),
        sweep_interval_sec=_getint(
            "SWEEP_INTERVAL_SEC", _getenv("SWEEP_INTERVAL_SEC", "300"), minimum=1
        ),
    )


# Module-level singleton: a bad environment fails at import, not mid-request
SETTINGS = load_settings()
