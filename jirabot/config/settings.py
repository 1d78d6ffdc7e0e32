"""
Application Settings - Pydantic-based configuration management.

Loads settings from environment variables, an optional .env file and an
optional JSON config file, with validation and type coercion. The resulting
Settings object is immutable and is handed to each component at construction.
"""

import os
import re
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

DEFAULT_CONFIG_FILE = "jirabot.json"
CONFIG_FILE_ENV = "JIRABOT_CONFIG_FILE"


class ResponseFormat(BaseModel):
    """Named bundle of rendering options for an issue attachment.

    Accepts both snake_case and the camelCase keys used by older configs
    (hideFooter, respondInThread).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    description: bool = False
    pretext: Optional[str] = None
    title: Optional[str] = None
    hide_footer: bool = Field(
        default=False,
        validation_alias=AliasChoices("hide_footer", "hideFooter"),
    )
    respond_in_thread: bool = Field(
        default=False,
        validation_alias=AliasChoices("respond_in_thread", "respondInThread"),
    )
    fields: tuple[str, ...] = ()


def _default_response_formats() -> dict[str, ResponseFormat]:
    return {
        "micro": ResponseFormat(
            title="${issue.key}: ${issue.fields.summary}",
            description=False,
            hide_footer=True,
            respond_in_thread=True,
        ),
        "minimal": ResponseFormat(
            description=True,
            pretext="Here is some information on ${issue.key}",
        ),
        "full": ResponseFormat(
            description=True,
            pretext="Here is some information on ${issue.key}",
            fields=(
                "Created",
                "Updated",
                "Status",
                "Priority",
                "Reporter",
                "Assignee",
                "Sprint",
            ),
        ),
    }


class Settings(BaseSettings):
    """
    Application settings.

    All settings can be overridden via environment variables. Mapping-valued
    settings (USERMAP, CHANNEL_FORMATS, RESPONSE_FORMATS, JIRA_CUSTOM_FIELDS)
    take JSON when given through the environment.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # -------------------------------------------------------------------------
    # Jira
    # -------------------------------------------------------------------------
    jira_protocol: str = Field(default="https", description="Jira protocol (http/https)")
    jira_host: str = Field(default="jira.yourhost.domain", description="Jira host name")
    jira_port: int = Field(default=443, ge=1, le=65535, description="Jira port")
    jira_base: str = Field(default="", description="Jira context path, e.g. 'jira'")
    jira_user: str = Field(default="", description="Jira user (basic auth)")
    jira_api_token: str = Field(default="", description="Jira API token or password (basic auth)")
    jira_api_version: str = Field(default="latest", description="Jira REST API version")
    jira_strict_ssl: bool = Field(default=False, description="Verify Jira TLS certificates")
    jira_timeout: float = Field(default=10.0, gt=0, description="Jira request timeout in seconds")
    jira_max_retries: int = Field(default=2, ge=0, le=10, description="Retries on transient Jira errors")
    jira_regex: str = Field(
        default=r"([A-Z][A-Z0-9]+-[0-9]+)",
        description="Pattern used to find issue keys in messages",
    )
    jira_sprint_field: str = Field(default="", description="Custom field holding sprint data")
    jira_custom_fields: dict[str, str] = Field(
        default_factory=dict,
        description="Display field name -> Jira field key",
    )
    jira_at_response_format: str = Field(default="full", description="Profile for direct mentions")
    jira_response_format: str = Field(default="micro", description="Default profile")

    # -------------------------------------------------------------------------
    # Slack
    # -------------------------------------------------------------------------
    slack_bot_token: str = Field(default="", description="Slack bot token (xoxb-)")
    slack_app_token: str = Field(default="", description="Slack app token (xapp-)")
    slack_auto_reconnect: bool = Field(default=True, description="Reconnect Socket Mode on close")

    # -------------------------------------------------------------------------
    # Response formatting
    # -------------------------------------------------------------------------
    usermap: dict[str, str] = Field(default_factory=dict, description="Jira username -> Slack username")
    channel_formats: dict[str, str] = Field(
        default_factory=dict,
        description="Slack channel id -> profile name",
    )
    response_formats: dict[str, ResponseFormat] = Field(default_factory=_default_response_formats)

    # -------------------------------------------------------------------------
    # Dedup
    # -------------------------------------------------------------------------
    dedup_window_seconds: float = Field(
        default=300.0,
        ge=0,
        description="Suppress repeat notifications for the same issue in a channel",
    )
    dedup_sweep_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="How often expired dedup entries are evicted",
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: str = Field(default="INFO", description="Root log level")
    log_json: bool = Field(default=True, description="Render logs as JSON")

    @field_validator("jira_regex")
    @classmethod
    def _check_regex(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"Invalid jira_regex {value!r}: {e}") from e
        return value

    @field_validator("jira_base")
    @classmethod
    def _strip_base(cls, value: str) -> str:
        # Strip preceding and trailing slashes
        return value.strip("/")

    @model_validator(mode="after")
    def _check_profiles(self) -> "Settings":
        referenced = {
            "jira_at_response_format": self.jira_at_response_format,
            "jira_response_format": self.jira_response_format,
        }
        for channel, name in self.channel_formats.items():
            referenced[f"channel_formats[{channel}]"] = name

        unknown = {
            setting: name
            for setting, name in referenced.items()
            if name not in self.response_formats
        }
        if unknown:
            raise ValueError(f"Unknown response format(s): {unknown}")
        return self

    @property
    def jira_base_url(self) -> str:
        """Jira root URL including the optional context path."""
        url = f"{self.jira_protocol}://{self.jira_host}:{self.jira_port}"
        if self.jira_base:
            url = f"{url}/{self.jira_base}"
        return url

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment beats .env, which beats the JSON config file
        json_file = os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls, json_file=json_file),
            file_secret_settings,
        )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Singleton Settings instance.
    """
    return Settings()
