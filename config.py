from __future__ import annotations

from pathlib import Path
from typing import Dict

import yaml
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    api_base_url: str = "https://api.everrest.educata.dev"
    request_timeout: float = 10.0
    db_path: str = "storefront.db"
    page_size: int = 100
    log_level: str = "INFO"
    version: str = "v1.0"
    shipping_config: str = str(Path(__file__).parent / "config" / "shipping.yaml")

    class Config:
        env_prefix = "STOREFRONT_"
        env_file = "config/.env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields from .env file


def load_settings() -> Settings:
    """Provide a reusable settings singleton."""

    return Settings()


def load_shipping_rates(path: str | Path | None = None) -> Dict[str, float]:
    """Load shipping method prices from YAML.

    The file holds a ``rates`` mapping of method name to price. Without a
    path, ``settings.shipping_config`` is read.
    """

    cfg_path = Path(path or settings.shipping_config)
    if not cfg_path.exists():
        raise FileNotFoundError(f"Shipping config not found at {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    rates = data.get("rates")
    if not isinstance(rates, dict) or not rates:
        raise ValueError("shipping.yaml must contain a non-empty 'rates' mapping.")

    for method, price in rates.items():
        if not isinstance(price, (int, float)) or price < 0:
            raise ValueError(f"Shipping method '{method}' must have a non-negative price.")

    return {str(method): float(price) for method, price in rates.items()}


settings = load_settings()
