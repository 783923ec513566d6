# backend/shopoms/config.py
from __future__ import annotations
import os
from decimal import Decimal, InvalidOperation


class ConfigurationError(RuntimeError):
    """Fatal startup problem: missing secret, bad setting, unreachable store."""


PRICING_MODES = {"server", "client"}

_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off", ""}


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in _TRUE_WORDS


def _split_list(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _env_list(name: str, default: str) -> tuple[str, ...]:
    return _split_list(os.environ.get(name, default))


class Config:
    # Both required; create_app refuses to start without them
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL")
    JWT_SECRET = os.environ.get("JWT_SECRET")

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Parsed by validate_config so a bad value fails create_app, not import
    STORE_TIMEOUT_SECONDS = os.environ.get("STORE_TIMEOUT_SECONDS", "5")
    STORE_READ_RETRIES = os.environ.get("STORE_READ_RETRIES", "3")
    STORE_PROBE_ON_START = _env_bool("STORE_PROBE_ON_START", "true")

    # "server" recomputes totals from catalog prices, "client" trusts the payload
    ORDER_PRICING_MODE = os.environ.get("ORDER_PRICING_MODE", "server")
    ORDER_TAX_RATE = os.environ.get("ORDER_TAX_RATE", "0")
    ORDER_PRICE_TOLERANCE = os.environ.get("ORDER_PRICE_TOLERANCE", "0.01")

    # GET /api/orders and /api/reports/* gate
    READS_REQUIRE_AUTH = _env_bool("READS_REQUIRE_AUTH", "true")
    READ_ROLES = _env_list("READ_ROLES", "admin,cashier")

    CORS_ORIGINS = _env_list("CORS_ORIGINS", "")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def _decimal_setting(config, key: str) -> Decimal:
    try:
        value = Decimal(str(config[key]))
    except (InvalidOperation, KeyError):
        raise ConfigurationError(f"{key} must be a decimal number")
    if not value.is_finite() or value < 0:
        raise ConfigurationError(f"{key} must be a non-negative decimal number")
    return value


def _number_setting(config, key: str, cast, default):
    raw = config.get(key, default)
    if isinstance(raw, bool):
        raise ConfigurationError(f"{key} must be a number")
    try:
        return cast(str(raw).strip())
    except ValueError:
        raise ConfigurationError(f"{key} must be a number")


def _bool_setting(config, key: str, default: bool) -> bool:
    raw = config.get(key, default)
    if isinstance(raw, bool):
        return raw
    word = str(raw).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ConfigurationError(f"{key} must be true or false")


def _list_setting(config, key: str) -> tuple[str, ...]:
    raw = config.get(key) or ()
    if isinstance(raw, str):
        return _split_list(raw)
    return tuple(str(part).strip() for part in raw if str(part).strip())


def validate_config(config) -> None:
    """
    Startup-time checks. Anything wrong here is fatal to the process,
    so request handlers can assume a usable secret and store URL.

    Settings may arrive as env strings or as overrides of any shape; they
    leave here as the types the rest of the app reads.
    """
    if not config.get("SQLALCHEMY_DATABASE_URI"):
        raise ConfigurationError("DATABASE_URL is not set")
    if not config.get("JWT_SECRET"):
        raise ConfigurationError("JWT_SECRET is not set")

    if config.get("ORDER_PRICING_MODE") not in PRICING_MODES:
        raise ConfigurationError(
            f"ORDER_PRICING_MODE must be one of: {', '.join(sorted(PRICING_MODES))}"
        )

    # Normalize decimals once so services never re-parse strings
    config["ORDER_TAX_RATE"] = _decimal_setting(config, "ORDER_TAX_RATE")
    config["ORDER_PRICE_TOLERANCE"] = _decimal_setting(config, "ORDER_PRICE_TOLERANCE")

    config["STORE_TIMEOUT_SECONDS"] = _number_setting(config, "STORE_TIMEOUT_SECONDS", float, "5")
    config["STORE_READ_RETRIES"] = _number_setting(config, "STORE_READ_RETRIES", int, "3")
    if not config["STORE_TIMEOUT_SECONDS"] > 0:
        raise ConfigurationError("STORE_TIMEOUT_SECONDS must be > 0")
    if config["STORE_READ_RETRIES"] < 1:
        raise ConfigurationError("STORE_READ_RETRIES must be >= 1")

    config["STORE_PROBE_ON_START"] = _bool_setting(config, "STORE_PROBE_ON_START", True)
    config["READS_REQUIRE_AUTH"] = _bool_setting(config, "READS_REQUIRE_AUTH", True)
    config["READ_ROLES"] = _list_setting(config, "READ_ROLES")
    config["CORS_ORIGINS"] = _list_setting(config, "CORS_ORIGINS")


def store_engine_options(uri: str, timeout: float) -> dict:
    """
    Engine options that bound every store access by `timeout` seconds.

    SQLite only supports a busy timeout on the connection; server databases
    also get a connect timeout and a pool checkout timeout.
    """
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout}}

    options: dict = {"pool_timeout": timeout, "pool_pre_ping": True}
    if uri.startswith("postgresql"):
        options["connect_args"] = {
            "connect_timeout": max(1, int(timeout)),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    elif uri.startswith("mysql"):
        options["connect_args"] = {
            "connect_timeout": max(1, int(timeout)),
            "read_timeout": max(1, int(timeout)),
            "write_timeout": max(1, int(timeout)),
        }
    return options
