"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./papertrade.db"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Sync scheduling
    sync_enabled: bool = True
    sync_interval: str = "1m"

    # Price oracle
    price_providers: list[str] = ["binance", "coingecko", "hyperliquid"]
    price_timeout: float = 5.0  # seconds per provider attempt
    price_cache_ttl: float = 60.0  # seconds a last-known price stays usable
    binance_symbol: str = "ETHUSDT"
    coingecko_id: str = "ethereum"
    hyperliquid_coin: str = "ETH"

    # Paper accounting
    default_position_size: float = 1000.0
    default_strategy_balance: float = 1000.0

    # Cancel pending trades whose stop-loss trades before the entry does
    invalidate_on_pre_entry_sl_hit: bool = False

    model_config = {"env_prefix": "PT_", "env_file": ".env"}


settings = Settings()
