"""Configuration management with pydantic-settings for issue-notion-sync.

Loads (in order of precedence):
1. Environment variables
2. .env file in the working directory
3. Default values

Credentials are SecretStr so they never show up in reprs or logs.
Required values are checked by validate_required() at sync time, not at
load time, so --help and tests can load the config without credentials.
"""

from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "SyncConfig",
    "get_config",
    "reset_config",
]

DEFAULT_BATCH_SIZE = 10


class SyncConfig(BaseSettings):
    """Configuration for a GitHub -> Notion issue sync.

    Attributes:
        github_key: GitHub token (PAT or fine-grained)
        github_repo_owner: Owner (user or org) of the synced repositories
        github_repo_name: Comma-separated repository names
        github_api_url: GitHub REST API base URL
        notion_key: Notion integration token
        notion_database_id: Target Notion database id
        notion_api_url: Notion REST API base URL
        operation_batch_size: Writes issued concurrently per batch
        block_page_size: Page size used when listing page blocks
        request_timeout: Per-call network timeout in seconds
        notion_max_retries: Retries on Notion 429/5xx responses
        include_pull_requests: Sync pull requests alongside issues
        sync_interval: Seconds between cycles in service mode
        sync_on_start: Run a cycle immediately when the service starts
        metrics_push_enabled: Push run metrics to a Prometheus pushgateway
        pushgateway_url: Pushgateway host:port
        log_level: Logging level
        log_format: json (production) or text (development)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        validate_default=True,
        frozen=True,
        extra="ignore",
    )

    # GitHub (tracker)
    github_key: SecretStr = Field(
        default=SecretStr(""),
        description="GitHub token used to list issues",
    )

    github_repo_owner: str = Field(
        default="",
        description="Owner of the repositories to sync (user or organization)",
    )

    github_repo_name: str = Field(
        default="",
        description="Comma-separated repository names (e.g., 'api,web,docs')",
    )

    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL (GitHub Enterprise: https://host/api/v3)",
    )

    # Notion (destination store)
    notion_key: SecretStr = Field(
        default=SecretStr(""),
        description="Notion integration token",
    )

    notion_database_id: str = Field(
        default="",
        description="Id of the Notion database holding one page per issue",
    )

    notion_api_url: str = Field(
        default="https://api.notion.com/v1",
        description="Notion REST API base URL",
    )

    # Engine
    operation_batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        ge=1,
        le=100,
        description="Number of create/update calls issued concurrently per batch",
    )

    block_page_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Page size when listing a page's blocks (Notion maximum is 100)",
    )

    request_timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Network timeout per remote call in seconds",
    )

    notion_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for rate-limited (429) or 5xx Notion responses",
    )

    include_pull_requests: bool = Field(
        default=True,
        description="Sync pull requests returned by the issues API as records",
    )

    # Service mode
    sync_interval: int = Field(
        default=1800,
        ge=60,
        description="Seconds between sync cycles in service mode",
    )

    sync_on_start: bool = Field(
        default=True,
        description="Run a sync cycle immediately when the service starts",
    )

    # Metrics
    metrics_push_enabled: bool = Field(
        default=False,
        description="Push run metrics to a Prometheus pushgateway",
    )

    pushgateway_url: str = Field(
        default="localhost:9091",
        description="Pushgateway address (host:port)",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )

    log_format: str = Field(
        default="json",
        pattern="^(json|text)$",
        description="Log format: json (production), text (development)",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept lowercase level names (LOG_LEVEL=debug)."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("github_api_url", "notion_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def get_repositories(self) -> list[str]:
        """Parse GITHUB_REPO_NAME into a list of repository names.

        Blank entries are dropped and duplicates removed, keeping first
        occurrence order so a repository is never processed twice per run.

        Returns:
            Repository names in configured order.
        """
        names: list[str] = []
        for part in self.github_repo_name.split(","):
            name = part.strip()
            if name and name not in names:
                names.append(name)
        return names

    def validate_required(self, require_repositories: bool = True) -> None:
        """Check that everything needed for a sync run is configured.

        Args:
            require_repositories: False when repository names are passed
                explicitly (e.g. --repo) instead of GITHUB_REPO_NAME.

        Raises:
            ValueError: Naming every missing environment variable.
        """
        missing = []
        if not self.github_key.get_secret_value():
            missing.append("GITHUB_KEY")
        if not self.github_repo_owner:
            missing.append("GITHUB_REPO_OWNER")
        if require_repositories and not self.get_repositories():
            missing.append("GITHUB_REPO_NAME")
        if not self.notion_key.get_secret_value():
            missing.append("NOTION_KEY")
        if not self.notion_database_id:
            missing.append("NOTION_DATABASE_ID")
        if missing:
            raise ValueError(f"Missing required configuration: {', '.join(missing)}")


@lru_cache(maxsize=1)
def get_config() -> SyncConfig:
    """Get the global configuration singleton.

    First call loads from environment + .env file, later calls return the
    cached instance.

    Raises:
        ValidationError: If configuration values are invalid.
    """
    return SyncConfig()


def reset_config() -> None:
    """Clear the cached configuration. Only meant for tests."""
    get_config.cache_clear()
