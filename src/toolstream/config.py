from __future__ import annotations

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from toolstream.errors import ConfigError
from toolstream.provider import DEFAULT_OPEN_WEBUI_URL


class Settings(BaseSettings):
    """Runtime configuration for the terminal client.

    Values come from ``OPEN_WEBUI_*`` and ``TOOLSTREAM_*`` environment
    variables, then from a ``.env`` file in the working directory.
    """

    base_url: str = Field(DEFAULT_OPEN_WEBUI_URL, validation_alias="OPEN_WEBUI_BASE_URL")
    api_key: str = Field(..., validation_alias="OPEN_WEBUI_API_KEY")
    model: str = "gpt-3.5-turbo"
    max_rounds: int = Field(default=25, ge=1)
    system_prompt: str | None = None
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="TOOLSTREAM_",
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    @classmethod
    def from_env(cls, env_file: str | None = ".env", **overrides) -> Settings:
        """Build settings, letting keyword overrides that are not ``None`` win.

        Raises:
            ConfigError: If ``OPEN_WEBUI_API_KEY`` is unset or a value is invalid.
        """
        values = {
            cls.model_fields[k].validation_alias or k: v
            for k, v in overrides.items() if v is not None
        }
        try:
            return cls(_env_file=env_file, **values)
        except ValidationError as e:
            missing = [str(err["loc"][0]) for err in e.errors() if err["type"] == "missing"]
            if missing:
                raise ConfigError(
                    f"{', '.join(missing)} environment variable is not set."
                ) from e
            raise ConfigError(f"Invalid configuration: {e}") from e
