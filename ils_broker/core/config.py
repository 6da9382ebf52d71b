"""
Configuration Settings.

This module defines the connection-level configuration models and the
application settings. ``Settings`` loads everything from ``ILS_BROKER_*``
environment variables and the ``.env`` file via pydantic-settings; the grouped
models (``IlsConfig``, ``HoldSettings``) are what the library code consumes.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HOLDINGS_TEXT_FIELDS = ["holdings_notes", "summary", "supplements", "indexes"]

# =====================================================================
# Connection Configuration Models
# =====================================================================


class HoldsMode(str, Enum):
    """
    How hold links are offered on holdings.

    Attributes:
        disabled: No hold links at all.
        none: Holds are switched off, but driver hold links may still be used.
        all: Offer a hold link on every copy.
        holds: Only on available copies.
        recalls: Only on checked-out copies.
        availability: Only on checked-out copies when no copy is available.
        driver: Let the driver decide per copy.
    """

    disabled = "disabled"
    none = "none"
    all = "all"
    holds = "holds"
    recalls = "recalls"
    availability = "availability"
    driver = "driver"


class CircuitBreakerConfig(BaseModel):
    """Circuit breaker thresholds for the active ILS driver."""

    failure_threshold: int = Field(
        default=1, ge=1, description="Consecutive runtime failures that open the breaker"
    )
    reset_timeout: float = Field(
        default=60.0, ge=0.0, description="Seconds an open breaker waits before allowing a trial call"
    )


class HoldSettings(BaseModel):
    """Holds behaviour shared by the connection and the holds logic."""

    holds_mode: HoldsMode = Field(default=HoldsMode.disabled, description="Item-level holds mode")
    title_holds_mode: str = Field(default="disabled", description="Title-level holds mode")


class IlsConfig(BaseModel):
    """
    Connection configuration for a single ILS.

    This is the equivalent of the ``[Catalog]`` section of a discovery layer
    configuration: which driver to load, whether to fall back to NoILS and
    which patron functions are switched on.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    driver: Optional[str] = Field(default=None, description="Registry name of the ILS driver")
    load_noils_on_failure: bool = Field(
        default=False, description="Fail over to the NoILS driver on runtime errors"
    )
    health_check_id: str = Field(default="1", description="Record id used for offline health checks")
    cancel_holds_enabled: bool = False
    renewals_enabled: bool = False
    cancel_storage_retrieval_requests_enabled: bool = False
    cancel_ill_requests_enabled: bool = False
    holdings_text_fields: List[str] = Field(default_factory=lambda: list(DEFAULT_HOLDINGS_TEXT_FIELDS))
    holdings_grouping: str = Field(default="holdings_id,location", description="Comma separated grouping keys")
    hide_holdings: List[str] = Field(default_factory=list, description="Locations never shown in holdings")
    allow_holds_override: bool = Field(default=False, description="Honour per-copy hold_override values")
    cache_life_time: Dict[str, int] = Field(
        default_factory=lambda: {"*": 60}, description="Cache life time in seconds per method ('*' = default)"
    )
    breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    # =====================================================================
    # Pydantic Configuration
    # =====================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Server Configuration
    # =====================================================================
    server_host: str = Field(
        default="0.0.0.0",
        description="ils_broker server host address to bind to",
        alias="ILS_BROKER_SERVER_HOST",
    )
    server_port: int = Field(
        default=8000,
        description="ils_broker server port number",
        alias="ILS_BROKER_SERVER_PORT",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="ILS_BROKER_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed",
        description="Log format (simple, detailed, json)",
        alias="ILS_BROKER_LOG_FORMAT",
    )
    enable_file_logging: bool = Field(
        default=False,
        description="Also write logs to a file under log_file_dir",
        alias="ILS_BROKER_ENABLE_FILE_LOGGING",
    )
    log_file_dir: str = Field(default="logs", alias="ILS_BROKER_LOG_FILE_DIR")

    # =====================================================================
    # ILS Configuration
    # =====================================================================
    driver: str = Field(
        default="Demo",
        description="Registry name of the ILS driver to load",
        alias="ILS_BROKER_DRIVER",
    )
    driver_config_dir: str = Field(
        default="config/drivers",
        description="Directory holding <DriverName>.json driver configuration files",
        alias="ILS_BROKER_DRIVER_CONFIG_DIR",
    )
    load_noils_on_failure: bool = Field(default=False, alias="ILS_BROKER_LOAD_NOILS_ON_FAILURE")
    health_check_id: str = Field(default="1", alias="ILS_BROKER_HEALTH_CHECK_ID")
    cancel_holds_enabled: bool = Field(default=False, alias="ILS_BROKER_CANCEL_HOLDS_ENABLED")
    renewals_enabled: bool = Field(default=False, alias="ILS_BROKER_RENEWALS_ENABLED")
    cancel_storage_retrieval_requests_enabled: bool = Field(
        default=False, alias="ILS_BROKER_CANCEL_STORAGE_RETRIEVAL_REQUESTS_ENABLED"
    )
    cancel_ill_requests_enabled: bool = Field(default=False, alias="ILS_BROKER_CANCEL_ILL_REQUESTS_ENABLED")
    holds_mode: HoldsMode = Field(default=HoldsMode.disabled, alias="ILS_BROKER_HOLDS_MODE")
    title_holds_mode: str = Field(default="disabled", alias="ILS_BROKER_TITLE_HOLDS_MODE")
    breaker_failure_threshold: int = Field(default=1, ge=1, alias="ILS_BROKER_BREAKER_FAILURE_THRESHOLD")
    breaker_reset_timeout: float = Field(default=60.0, ge=0.0, alias="ILS_BROKER_BREAKER_RESET_TIMEOUT")
    hmac_key: str = Field(
        default="change-me",
        description="Secret used to sign hold/request links",
        alias="ILS_BROKER_HMAC_KEY",
    )
    locale: str = Field(default="en", description="Locale used to pick help texts", alias="ILS_BROKER_LOCALE")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def ils(self) -> IlsConfig:
        """Build the connection configuration from the flat settings."""
        return IlsConfig(
            driver=self.driver,
            load_noils_on_failure=self.load_noils_on_failure,
            health_check_id=self.health_check_id,
            cancel_holds_enabled=self.cancel_holds_enabled,
            renewals_enabled=self.renewals_enabled,
            cancel_storage_retrieval_requests_enabled=self.cancel_storage_retrieval_requests_enabled,
            cancel_ill_requests_enabled=self.cancel_ill_requests_enabled,
            breaker=CircuitBreakerConfig(
                failure_threshold=self.breaker_failure_threshold,
                reset_timeout=self.breaker_reset_timeout,
            ),
        )

    @property
    def holds(self) -> HoldSettings:
        """Build the holds settings from the flat settings."""
        return HoldSettings(holds_mode=self.holds_mode, title_holds_mode=self.title_holds_mode)


settings = Settings()
