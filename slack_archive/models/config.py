"""Configuration models for the Slack archiver.

This module defines the configuration structure for synchronization, rate
limiting and rendering, and a loader for YAML configuration files.
"""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field


class ArchiveConfig(BaseModel):
    """Main configuration for the archiver."""

    data_dir: str = Field(default="slack-archive/data", description="Directory of the persisted store")
    out_dir: str = Field(default="slack-archive", description="Directory of the rendered HTML archive")
    page_size: int = Field(default=1000, gt=0, description="Messages per rendered page")
    channel_types: List[str] = Field(
        default_factory=lambda: ["public_channel", "private_channel", "im", "mpim"],
        description="List of conversation types to archive",
    )
    exclude_archived: bool = Field(default=False, description="Skip archived channels when listing")
    channel_ids: Optional[List[str]] = Field(default=None, description="Only archive these channel ids")
    page_limit: int = Field(default=200, gt=0, le=1000, description="Max items per Slack API call")
    tier2_rpm: float = Field(default=18.0, description="Target RPM for Tier 2 methods")
    tier2_cap: float = Field(default=24.0, description="Max RPM for Tier 2 methods")
    tier3_rpm: float = Field(default=45.0, description="Target RPM for Tier 3 methods")
    tier3_cap: float = Field(default=60.0, description="Max RPM for Tier 3 methods")
    tier4_rpm: float = Field(default=90.0, description="Target RPM for Tier 4 methods")
    tier4_cap: float = Field(default=120.0, description="Max RPM for Tier 4 methods")
    api_retries: int = Field(default=3, ge=0, description="Number of retries for unexpected API errors")
    download_media: bool = Field(default=True, description="Download message files and avatars next to the pages")
    media_timeout: float = Field(default=30.0, gt=0, description="Timeout in seconds of one file or avatar download")


class ConfigLoader:
    """Utility class for loading configuration from YAML files."""

    @staticmethod
    def load(path: str) -> ArchiveConfig:
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML configuration file.

        Returns:
            ArchiveConfig: Loaded configuration object, defaults if the file is missing.
        """
        p = Path(path)
        if not p.exists():
            return ArchiveConfig()

        with open(p, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f) or {}

        # Tolerate a top-level "archive:" section
        if isinstance(raw_data, dict) and "archive" in raw_data:
            raw_data = raw_data["archive"] or {}

        return ArchiveConfig(**raw_data)


def resolve_token(token: Optional[str] = None) -> Optional[str]:
    """Return the Slack token from the argument or the environment."""
    return token or os.getenv("SLACK_TOKEN") or os.getenv("SLACK_BOT_TOKEN")
