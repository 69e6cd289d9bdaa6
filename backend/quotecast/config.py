"""Process configuration loaded from environment variables."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date

from .market.registry import DEFAULT_SYMBOLS


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    """Everything the service reads from its environment, parsed once at boot."""

    symbols: list[dict] = field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    alpaca_key_id: str = ""
    alpaca_secret_key: str = ""
    stock_feed: str = "iex"
    token: str = ""
    environment: str = "development"
    allowed_origins_prod: tuple[str, ...] = ()
    allowed_origins_dev: tuple[str, ...] = ("http://localhost:3000",)
    newsdata_api_key: str = ""
    price_broadcast_seconds: float = 60.0
    news_broadcast_seconds: float = 600.0
    http_timeout_seconds: float = 10.0
    boot_timeout_seconds: float = 30.0
    extra_holidays: tuple[date, ...] = ()
    host: str = "0.0.0.0"
    port: int = 5001
    log_level: str = "INFO"

    @property
    def use_alpaca(self) -> bool:
        """Real upstream data when both credentials are set, else simulator mode."""
        return bool(self.alpaca_key_id and self.alpaca_secret_key)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def allowed_origins(self) -> tuple[str, ...]:
        return self.allowed_origins_prod if self.is_production else self.allowed_origins_dev


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the environment. Raises ValueError on invalid values."""
    env = os.environ if environ is None else environ

    raw_symbols = env.get("SYMBOLS", "").strip()
    if raw_symbols:
        try:
            symbols = json.loads(raw_symbols)
        except ValueError as e:
            raise ValueError(f"SYMBOLS is not valid JSON: {e}") from e
        if not isinstance(symbols, list):
            raise ValueError("SYMBOLS must be a JSON list of {symbol, type} objects")
    else:
        symbols = list(DEFAULT_SYMBOLS)

    try:
        holidays = tuple(date.fromisoformat(d) for d in _split_csv(env.get("MARKET_HOLIDAYS", "")))
    except ValueError as e:
        raise ValueError(f"MARKET_HOLIDAYS must be comma-separated ISO dates: {e}") from e

    raw_port = env.get("PORT", "").strip() or "5001"
    try:
        port = int(raw_port)
    except ValueError as e:
        raise ValueError(f"PORT must be an integer, got {raw_port!r}") from e

    dev_origins = env.get("ALLOWED_ORIGINS_DEV")
    return Settings(
        symbols=symbols,
        alpaca_key_id=env.get("ALPACA_KEY_ID", "").strip(),
        alpaca_secret_key=env.get("ALPACA_SECRET_KEY", "").strip(),
        stock_feed=env.get("ALPACA_STOCK_FEED", "").strip() or "iex",
        token=env.get("TOKEN", "").strip(),
        environment=env.get("ENVIRONMENT", "").strip() or "development",
        allowed_origins_prod=_split_csv(env.get("ALLOWED_ORIGINS_PROD", "")),
        allowed_origins_dev=(
            _split_csv(dev_origins) if dev_origins is not None else ("http://localhost:3000",)
        ),
        newsdata_api_key=env.get("NEWSDATA_API_KEY", "").strip(),
        price_broadcast_seconds=_float(env, "PRICE_BROADCAST_SECONDS", 60.0),
        news_broadcast_seconds=_float(env, "NEWS_BROADCAST_SECONDS", 600.0),
        http_timeout_seconds=_float(env, "HTTP_TIMEOUT_SECONDS", 10.0),
        boot_timeout_seconds=_float(env, "BOOT_TIMEOUT_SECONDS", 30.0),
        extra_holidays=holidays,
        host=env.get("HOST", "").strip() or "0.0.0.0",
        port=port,
        log_level=(env.get("LOG_LEVEL", "").strip() or "INFO").upper(),
    )
