"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "Approval Desk"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    api_prefix: str = "/api"

    # Record store
    record_store_backend: Literal["notion", "memory"] = Field(
        default="notion", alias="RECORD_STORE_BACKEND"
    )
    notion_api_key: str | None = Field(default=None, alias="NOTION_API_KEY")
    notion_version: str = Field(default="2022-06-28", alias="NOTION_VERSION")
    notion_proposal_database_id: str | None = Field(
        default=None, alias="NOTION_PROPOSAL_DATABASE_ID"
    )
    notion_member_database_id: str | None = Field(
        default=None, alias="NOTION_MEMBER_DATABASE_ID"
    )
    notion_approval_database_id: str | None = Field(
        default=None, alias="NOTION_APPROVAL_DATABASE_ID"
    )

    @property
    def notion_enabled(self) -> bool:
        """Check if the Notion record store is configured."""
        return bool(
            self.notion_api_key
            and self.notion_proposal_database_id
            and self.notion_member_database_id
            and self.notion_approval_database_id
        )

    # LINE Messaging API
    line_channel_access_token: str | None = Field(
        default=None, alias="LINE_CHANNEL_ACCESS_TOKEN"
    )
    approval_form_base_url: str = Field(
        default="https://approval.garagetsuno.org/approval",
        alias="APPROVAL_FORM_BASE_URL",
    )

    @property
    def line_enabled(self) -> bool:
        """Check if LINE push delivery is configured."""
        return bool(self.line_channel_access_token)

    # Numbering
    uncategorized_bucket_policy: Literal["shared", "audience_only"] = Field(
        default="shared",
        alias="UNCATEGORIZED_BUCKET_POLICY",
        description=(
            "How proposals without a category are numbered: 'shared' gives them "
            "their own bucket, 'audience_only' numbers them against every "
            "proposal of the same month and audience."
        ),
    )

    # Outbound HTTP
    http_timeout_seconds: float = Field(default=10.0, gt=0, alias="HTTP_TIMEOUT_SECONDS")

    # Scheduled dispatch
    cron_secret: str | None = Field(default=None, alias="CRON_SECRET")
    dispatch_batch_size: int = Field(default=50, ge=1, le=500, alias="DISPATCH_BATCH_SIZE")
    alert_webhook_url: str | None = Field(default=None, alias="ALERT_WEBHOOK_URL")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
