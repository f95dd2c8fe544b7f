"""
Configuration management using Pydantic models loaded from YAML.
"""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

CLIENT_SECRET_ENV = "SLOTBOOKER_CLIENT_SECRET"


class DefaultsConfig(BaseModel):
    """Default settings for booking windows and the availability view."""
    slot_duration: int = 20
    break_duration: int = 5
    lookahead_days: int = 7

    @field_validator("slot_duration", "lookahead_days")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure the value is positive."""
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value

    @field_validator("break_duration")
    @classmethod
    def validate_break(cls, value: int) -> int:
        """Breaks may be zero but never negative."""
        if value < 0:
            raise ValueError(f"break_duration must not be negative, got {value}")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    client_id: str
    tenant_id: str
    client_secret: str = ""
    booking_subject: str = "Project Manager 1:1 Slot"
    timezone: str = "Asia/Kolkata"
    database_url: str = "sqlite:///slotbooker.db"
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)

    @field_validator("booking_subject")
    @classmethod
    def validate_subject(cls, value: str) -> str:
        """Placeholder events are matched by subject, so it must not be blank."""
        if not value.strip():
            raise ValueError("booking_subject must not be empty")
        return value.strip()

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"

    def get_client_secret(self) -> str:
        """
        Get the client secret, preferring the environment variable.

        Raises:
            ValueError: If no secret is configured anywhere
        """
        secret = os.environ.get(CLIENT_SECRET_ENV) or self.client_secret
        if not secret:
            raise ValueError(
                f"No client secret configured. Set {CLIENT_SECRET_ENV} "
                f"or client_secret in the config file."
            )
        return secret

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of slotbooker/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
