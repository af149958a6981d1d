import os
from datetime import timedelta

from pydantic_settings import BaseSettings, SettingsConfigDict

from changekeeper.core.exceptions import ConfigurationError
from changekeeper.migrations.lock import LockPolicy


class Settings(BaseSettings):
    """
    Configuration class for environment variables and runner settings.
    """

    # Service settings
    service_name: str = os.getenv("SERVICE_NAME", "changekeeper")
    environment: str = os.getenv("ENVIRONMENT", "development")
    debug: bool = os.getenv("DEBUG", "False").lower() == "true"

    # Logging settings
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    json_logs: bool = os.getenv("JSON_LOGS", "False").lower() == "true"

    # MongoDB settings
    mongodb: str = os.getenv("MONGODB", "mongodb://localhost:27017")
    mongodb_database: str = os.getenv("MONGODB_DATABASE", "changekeeper")
    mongo_server_selection_timeout_ms: int = int(
        os.getenv("MONGO_SERVER_SELECTION_TIMEOUT_MS", "5000")
    )

    # Ledger settings
    ledger_table_name: str = os.getenv("LEDGER_TABLE_NAME", "changekeeper_changelog")
    changelogs_dir: str = os.getenv("CHANGELOGS_DIR", "changelogs")
    active_profiles: str = os.getenv("ACTIVE_PROFILES", "default")

    # Lock settings
    wait_for_lock: bool = os.getenv("WAIT_FOR_LOCK", "False").lower() == "true"
    lock_wait_timeout_minutes: float = float(os.getenv("LOCK_WAIT_TIMEOUT_MINUTES", "5"))
    lock_poll_interval_seconds: float = float(os.getenv("LOCK_POLL_INTERVAL_SECONDS", "10"))
    throw_if_lock_unobtainable: bool = (
        os.getenv("THROW_IF_LOCK_UNOBTAINABLE", "False").lower() == "true"
    )

    @property
    def profiles(self) -> list[str]:
        """
        Returns the active profiles.
        Format: ACTIVE_PROFILES=default,staging
        """
        return [p.strip() for p in self.active_profiles.split(",") if p.strip()]

    @property
    def lock_policy(self) -> LockPolicy:
        """
        Returns the lock wait policy built from the lock settings.
        """
        if self.lock_wait_timeout_minutes < 0:
            raise ConfigurationError(
                f"LOCK_WAIT_TIMEOUT_MINUTES must not be negative, got {self.lock_wait_timeout_minutes}"
            )
        if self.lock_poll_interval_seconds < 0:
            raise ConfigurationError(
                f"LOCK_POLL_INTERVAL_SECONDS must not be negative, got {self.lock_poll_interval_seconds}"
            )
        return LockPolicy(
            wait_for_lock=self.wait_for_lock,
            max_wait=timedelta(minutes=self.lock_wait_timeout_minutes),
            poll_interval=timedelta(seconds=self.lock_poll_interval_seconds),
            fail_if_unobtainable=self.throw_if_lock_unobtainable,
        )

    # Environment-specific logging configuration
    @property
    def logging_config(self) -> dict:
        """
        Returns logging configuration based on environment.
        """
        base_config = {
            "app_name": self.service_name,
            "log_level": self.log_level,
            "json_logs": self.json_logs,
        }

        if self.environment == "development":
            base_config.update({"json_logs": False, "log_level": "DEBUG" if self.debug else "INFO"})

        return base_config

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
