import json
import re
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

PROFILE_URL_RE = re.compile(r"github\.com/([^/]+)")


class ConfigError(Exception):
    """Raised when the process configuration cannot be used."""


class Profile(BaseModel):
    """A GitHub account whose repositories are monitored"""

    url: str
    owner: str
    chat_id: Optional[str] = None
    include: List[str] = ["*"]
    exclude: List[str] = []

    model_config = ConfigDict(frozen=True)


class ProfileFileEntry(BaseModel):
    url: str
    chat_id: Optional[str] = Field(None, alias="chatId")
    include: Optional[List[str]] = None
    exclude: Optional[List[str]] = None

    model_config = ConfigDict(populate_by_name=True)


class ProfileFile(BaseModel):
    profiles: List[ProfileFileEntry]


class Settings(BaseSettings):
    # Secrets
    github_webhook_secret: str = Field(..., min_length=1, alias="GITHUB_WEBHOOK_SECRET")
    github_api_token: str = Field("", alias="GITHUB_API_TOKEN")
    telegram_bot_token: str = Field(..., min_length=1, alias="TELEGRAM_BOT_TOKEN")
    telegram_chat_id: str = Field(..., min_length=1, alias="TELEGRAM_CHAT_ID")

    # Profiles
    monitored_profiles: str = Field("", alias="MONITORED_PROFILES")
    config_file: str = Field("", alias="CONFIG_FILE")
    github_repo_owner: str = Field("", alias="GITHUB_REPO_OWNER")
    github_repo_name: str = Field("", alias="GITHUB_REPO_NAME")

    # Server
    port: int = Field(3000, alias="PORT")
    webhook_base_url_override: str = Field("", alias="WEBHOOK_BASE_URL")

    # Filters (comma separated globs)
    repo_allowlist: str = Field("", alias="REPO_ALLOWLIST")
    repo_blocklist: str = Field("", alias="REPO_BLOCKLIST")
    include_archived: bool = Field(False, alias="INCLUDE_ARCHIVED")
    include_forks: bool = Field(False, alias="INCLUDE_FORKS")

    # Polling
    enable_polling: bool = Field(True, alias="ENABLE_POLLING")
    poll_interval_minutes: int = Field(15, gt=0, alias="POLL_INTERVAL_MINUTES")

    # Messages
    max_changelog_length: int = Field(2500, gt=0, alias="MAX_CHANGELOG_LENGTH")

    # Storage
    db_path: str = Field("data/releases.db", alias="DB_PATH")
    database_url_override: str = Field("", alias="DATABASE_URL")
    ledger_retention: int = Field(1000, gt=0, alias="LEDGER_RETENTION")

    log_level: str = Field("info", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def webhook_base_url(self) -> str:
        return (self.webhook_base_url_override or f"http://localhost:{self.port}").rstrip("/")

    @property
    def webhook_url(self) -> str:
        """Callback URL registered on GitHub for release events."""
        return f"{self.webhook_base_url}/webhook/github/releases"

    @property
    def database_url(self) -> str:
        return self.database_url_override or f"sqlite+aiosqlite:///{self.db_path}"

    @property
    def allowlist(self) -> List[str]:
        return parse_filter_list(self.repo_allowlist)

    @property
    def blocklist(self) -> List[str]:
        return parse_filter_list(self.repo_blocklist)


def parse_filter_list(value: str) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def owner_from_url(url: str) -> str:
    match = PROFILE_URL_RE.search(url)
    if not match:
        raise ConfigError(f"Invalid GitHub profile URL: {url}")
    return match.group(1)


def _profiles_from_file(path: str) -> List[Profile]:
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        parsed = ProfileFile.model_validate(json.loads(config_path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as e:
        raise ConfigError(f"Failed to parse config file: {e}") from e

    return [
        Profile(
            url=entry.url,
            owner=owner_from_url(entry.url),
            chat_id=entry.chat_id,
            include=entry.include if entry.include is not None else ["*"],
            exclude=entry.exclude or [],
        )
        for entry in parsed.profiles
    ]


def load_profiles(settings: Settings) -> List[Profile]:
    """
    Resolve the monitored profiles.

    The JSON config file wins over MONITORED_PROFILES, which wins over the
    legacy GITHUB_REPO_OWNER / GITHUB_REPO_NAME pair.
    """
    if settings.config_file:
        profiles = _profiles_from_file(settings.config_file)
        if profiles:
            return profiles

    urls = parse_filter_list(settings.monitored_profiles)
    if urls:
        return [Profile(url=url, owner=owner_from_url(url)) for url in urls]

    if settings.github_repo_owner and settings.github_repo_name:
        return [
            Profile(
                url=f"https://github.com/{settings.github_repo_owner}",
                owner=settings.github_repo_owner,
                include=[settings.github_repo_name],
            )
        ]

    raise ConfigError("No profiles configured. Set MONITORED_PROFILES or CONFIG_FILE")


@lru_cache
def get_settings() -> Settings:
    return Settings()
