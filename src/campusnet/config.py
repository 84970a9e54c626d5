"""Bridge configuration loaded from environment variables.

Credentials, portal location, fetch window and serving options for the
CampusNet calendar bridge.
"""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings


class CampusNetConfig(BaseSettings):
    """Bridge configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # TUCaN / CampusNet portal (HTML forms only, no API exists)
    tucan_url: str = Field(
        default="https://www.tucan.tu-darmstadt.de",
        description="Portal base URL, used to resolve relative links",
    )
    tucan_script_path: str = Field(
        default="/scripts/mgrqispi.dll",
        description="Path of the portal's single entry script",
    )
    tucan_username: str = Field(
        default="",
        description="Portal username",
    )
    tucan_password: SecretStr = Field(
        default=SecretStr(""),
        description="Portal password",
    )
    user_agent: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64)",
        description="User-Agent header sent with every portal request",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout applied to every portal request",
    )

    # Fetch window, relative to the current month
    months_before: int = Field(
        default=3,
        ge=0,
        description="Number of past months to export",
    )
    months_after: int = Field(
        default=7,
        ge=0,
        description="Number of future months to export",
    )
    fetch_workers: int = Field(
        default=4,
        ge=1,
        description="Concurrent month exports per pass",
    )

    # Updater
    update_interval_minutes: float = Field(
        default=60.0,
        gt=0,
        description="Minutes between two fetch passes",
    )
    auth_retry_attempts: int = Field(
        default=2,
        ge=1,
        description="Pass attempts when login fails transiently",
    )
    auth_retry_wait_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Wait between two pass attempts after a transient login failure",
    )

    # Output
    ical_file: str = Field(
        default="tucan.ics",
        description="Path the merged calendar is written to",
    )
    host: str = Field(
        default="0.0.0.0",
        description="HTTP bind address",
    )
    port: int = Field(
        default=8080,
        description="HTTP port",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def script_url(self) -> str:
        """Absolute URL of the entry script all forms are posted to."""
        return f"{self.tucan_url.rstrip('/')}{self.tucan_script_path}"


# Singleton pattern
_config: CampusNetConfig | None = None


def get_config() -> CampusNetConfig:
    """Get the bridge configuration singleton.

    Returns:
        CampusNetConfig: Bridge configuration instance
    """
    global _config
    if _config is None:
        _config = CampusNetConfig()
    return _config
