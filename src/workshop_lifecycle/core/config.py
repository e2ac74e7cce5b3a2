"""Configuration management.

Loads from TOML config files + environment variables.
Uses pydantic-settings for validation and env var overriding.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class BudgetConfig(BaseModel):
    default_validity_days: int = 7
    auto_generated_notes: str = (
        "Budget automatically generated when the order was received"
    )


class StockConfig(BaseModel):
    sku_pattern: str = r"^[A-Z0-9-]{3,20}$"
    movement_max_age_days: int = 365
    movement_max_future_hours: int = 24
    max_reason_length: int = 200
    max_notes_length: int = 500
    max_description_length: int = 500
    name_min_length: int = 2
    name_max_length: int = 100


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "json"  # "json" or "console"
    metrics_enabled: bool = False
    metrics_port: int = 9090


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Top-level application settings.

    Loaded from TOML config files, overridden by environment variables.
    """

    shop_name: str = "workshop"

    # Sub-configs
    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    stock: StockConfig = Field(default_factory=StockConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = {"env_prefix": "WORKSHOP_", "env_nested_delimiter": "__"}

    def validate_settings(self) -> None:
        """Reject settings the domain rules cannot run with."""
        from .errors import ConfigError

        if self.budget.default_validity_days <= 0:
            raise ConfigError(
                "budget.default_validity_days must be positive, got "
                f"{self.budget.default_validity_days}"
            )
        try:
            re.compile(self.stock.sku_pattern)
        except re.error as exc:
            raise ConfigError(
                f"stock.sku_pattern is not a valid regex: {exc}"
            ) from exc
        if self.stock.movement_max_age_days < 0 or self.stock.movement_max_future_hours < 0:
            raise ConfigError("Stock movement date window must be non-negative.")


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from TOML file + env vars.

    Args:
        config_path: Path to TOML config file (optional).
        overrides: Dict of overrides to apply on top; nested dicts are
            merged into the matching TOML section.
    """
    data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            import tomli

            with open(path, "rb") as f:
                data = tomli.load(f)

    for key, value in (overrides or {}).items():
        # Section overrides (e.g. only observability.log_level) keep the
        # file's other keys in that section.
        if isinstance(value, dict) and isinstance(data.get(key), dict):
            data[key] = {**data[key], **value}
        else:
            data[key] = value

    return Settings(**data)
