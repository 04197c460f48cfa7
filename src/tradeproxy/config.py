"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from tradeproxy.exceptions import ConfigurationError


class ExchangeSettings(BaseSettings):
    """KuCoin REST connection settings.

    Secrets come from the process environment (or .env) only.
    """

    model_config = SettingsConfigDict(env_prefix="KUCOIN_")

    api_key: SecretStr = SecretStr("")
    api_secret: SecretStr = SecretStr("")
    api_passphrase: SecretStr = SecretStr("")
    api_key_version: str = "2"  # 1|2|3; >= 2 re-hashes the passphrase
    spot_base_url: str = "https://api.kucoin.com"
    futures_base_url: str = "https://api-futures.kucoin.com"
    request_timeout: float = 10.0  # seconds, applied to every outbound call

    def require_credentials(self) -> None:
        """Raise ConfigurationError unless key, secret and passphrase are all set."""
        missing = [
            name
            for name, value in (
                ("KUCOIN_API_KEY", self.api_key),
                ("KUCOIN_API_SECRET", self.api_secret),
                ("KUCOIN_API_PASSPHRASE", self.api_passphrase),
            )
            if not value.get_secret_value()
        ]
        if missing:
            raise ConfigurationError(
                f"KuCoin API keys not configured (missing: {', '.join(missing)})"
            )


class MarketDataSettings(BaseSettings):
    """Public market data source (ccxt exchange ids)."""

    model_config = SettingsConfigDict(env_prefix="MARKET_DATA_")

    exchange_id: str = "kucoin"  # "mexc" also works for spot candles
    futures_exchange_id: str = "kucoinfutures"
    kline_limit: int = 100
    default_interval: str = "1h"


class SignalSettings(BaseSettings):
    """Signal generator parameters.

    Confidence values are fixed heuristic weights, not model outputs.
    """

    model_config = SettingsConfigDict(env_prefix="SIGNAL_")

    sma_fast_period: int = 20
    sma_slow_period: int = 50
    rsi_period: int = 14
    rsi_overbought: Decimal = Decimal("70")
    rsi_oversold: Decimal = Decimal("30")
    rsi_midline: Decimal = Decimal("50")
    stop_loss_pct: Decimal = Decimal("0.02")  # 2% against direction
    take_profit_pct: Decimal = Decimal("0.06")  # 6% with direction (1:3 R:R)
    strategy_name: str = "SMC + SMA + RSI"


class SizingSettings(BaseSettings):
    """Order sizing policy selection and fallbacks."""

    model_config = SettingsConfigDict(env_prefix="SIZING_")

    policy: Literal["clamp", "reject"] = "clamp"
    fallback_min_size: Decimal = Decimal("1")  # used when constraints lookup fails
    max_leverage: int = 100  # used when the exchange reports no maximum


class AccountSettings(BaseSettings):
    """Per-account trading limits for batch signal execution."""

    model_config = SettingsConfigDict(env_prefix="ACCOUNT_")

    max_daily_trades: int = 5
    order_delay_seconds: float = 1.0  # pause between orders in a batch
    default_top_n: int = 5
    default_order_size: Decimal | None = None  # None: exchange minimum


class StorageSettings(BaseSettings):
    """SQLite persistence location."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    db_path: str = "data/tradeproxy.db"


class ServerSettings(BaseSettings):
    """HTTP proxy server configuration."""

    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = ["*"]


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    exchange: ExchangeSettings = ExchangeSettings()
    market_data: MarketDataSettings = MarketDataSettings()
    signal: SignalSettings = SignalSettings()
    sizing: SizingSettings = SizingSettings()
    account: AccountSettings = AccountSettings()
    storage: StorageSettings = StorageSettings()
    server: ServerSettings = ServerSettings()
