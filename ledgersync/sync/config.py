"""
Sync engine configuration.

Defines the cooldown policy, cursor strategy and bank client settings.
"""

from datetime import timedelta
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ledgersync.core.config import Settings, get_settings


class SyncConfig(BaseModel):
    """Main sync engine configuration."""

    # Scheduling
    cooldown_minutes: int = Field(
        default=60, ge=0, description="Minutes between automatic syncs"
    )

    # Cursor strategy
    exclude_boundary_id: bool = Field(
        default=False,
        description="Drop the previous watermark transaction from incremental fetches",
    )

    # Bank client settings
    client_type: Literal["qonto", "mock"] = Field(
        default="qonto", description="Bank client implementation"
    )
    api_base_url: Optional[str] = Field(default=None, description="Bank API base URL")
    api_timeout: float = Field(
        default=30.0, gt=0, description="Bank API request timeout in seconds"
    )
    page_size: int = Field(
        default=100, ge=1, le=100, description="Transactions per API page"
    )

    # Metrics
    metrics_history_size: int = Field(
        default=100, ge=1, description="Sync runs kept in memory for metrics"
    )

    def get_cooldown(self) -> timedelta:
        """Get the cooldown period as timedelta."""
        return timedelta(minutes=self.cooldown_minutes)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SyncConfig":
        return cls(
            cooldown_minutes=settings.SYNC_COOLDOWN_MINUTES,
            exclude_boundary_id=settings.SYNC_EXCLUDE_BOUNDARY_ID,
            client_type=settings.BANK_CLIENT_TYPE,
            api_base_url=settings.BANK_API_BASE_URL,
            api_timeout=settings.BANK_API_TIMEOUT,
            page_size=settings.BANK_API_PAGE_SIZE,
        )


def get_sync_config() -> SyncConfig:
    """Build the sync configuration from application settings."""
    return SyncConfig.from_settings(get_settings())
