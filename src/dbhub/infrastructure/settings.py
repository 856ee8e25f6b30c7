"""Application settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for a single-host deployment. Production deployments should set the
database password and root identity explicitly.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Connection settings for the administrative PostgreSQL session.

    Environment variables:
        DBHUB_DB_HOST: Database host (default: localhost)
        DBHUB_DB_PORT: Database port (default: 5432)
        DBHUB_DB_DATABASE: Administrative database (default: postgres)
        DBHUB_DB_USERNAME: Superuser name (default: postgres)
        DBHUB_DB_PASSWORD: Superuser password
        DBHUB_DB_CONNECT_TIMEOUT_SECONDS: libpq connect timeout (default: 10)
        DBHUB_DB_POOL_MIN_CONNECTIONS: Minimum connections in pool (default: 1)
        DBHUB_DB_POOL_MAX_CONNECTIONS: Maximum connections in pool (default: 4)
        DBHUB_DB_POOL_ENABLED: Enable connection pooling (default: true)
    """

    model_config = SettingsConfigDict(
        env_prefix="DBHUB_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="postgres", description="Administrative database")
    username: str = Field(default="postgres", description="Superuser name")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Superuser password",
    )
    connect_timeout_seconds: int = Field(
        default=10,
        description="libpq connect timeout",
        ge=1,
        le=300,
    )
    pool_min_connections: int = Field(
        default=1,
        description="Minimum connections in pool",
        ge=1,
        le=50,
    )
    pool_max_connections: int = Field(
        default=4,
        description="Maximum connections in pool",
        ge=1,
        le=50,
    )
    pool_enabled: bool = Field(
        default=True,
        description="Enable connection pooling",
    )

    @model_validator(mode="after")
    def validate_pool_settings(self) -> "DatabaseSettings":
        """Validate pool max >= min."""
        if self.pool_max_connections < self.pool_min_connections:
            raise ValueError(
                f"pool_max_connections ({self.pool_max_connections}) must be >= "
                f"pool_min_connections ({self.pool_min_connections})"
            )
        return self

    @property
    def connection_string(self) -> str:
        """Generate a connection string (without password for logging)."""
        return f"postgresql://{self.username}@{self.host}:{self.port}/{self.database}"


class TenancySettings(BaseSettings):
    """Settings for the tenancy engine.

    Environment variables:
        DBHUB_REGISTRY_PATH: Hostname map file (default: /etc/dbhub/pg_hostname_map.conf)
        DBHUB_METADATA_PATH: Tenant metadata document (default: next to the map file)
        DBHUB_CACHE_PATH: Pooler credential cache (default: /etc/pgbouncer/userlist.txt)
        DBHUB_BACKUP_DIR: Where SyncBackups are written (default: /var/backups/dbhub)
        DBHUB_LOCK_DIR: Per-tenant lock files (default: /run/dbhub/locks)
        DBHUB_ROOT_IDENTITY: Shared root hostname of the platform (default: dbhub.cc)
        DBHUB_RETRY_LIMIT: Maximum attempts per external call (default: 3)
        DBHUB_RETRY_BACKOFF_SECONDS: Initial backoff between attempts (default: 0.5)
        DBHUB_LOCK_TIMEOUT_SECONDS: Maximum wait for a lock (default: 30)
        DBHUB_ADMIN_ROLE: Role that receives reassigned objects (default: postgres)
        DBHUB_OWNER_ROLE_PREFIX: Owner role name prefix (default: admin_)
        DBHUB_ADMIN_DATABASES: Databases exempt from the Access Gate
        DBHUB_POOLER_SERVICE: Service unit of the pooler (default: pgbouncer)
        DBHUB_POOLER_COMMAND_TIMEOUT_SECONDS: Timeout for reload/restart (default: 30)
        DBHUB_CACHE_FILE_MODE: Permissions of the cache file (default: 0o640)
    """

    model_config = SettingsConfigDict(
        env_prefix="DBHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    registry_path: Path = Field(
        default=Path("/etc/dbhub/pg_hostname_map.conf"),
        description="Hostname map file",
    )
    metadata_path: Path | None = Field(
        default=None,
        description="Tenant metadata document (defaults next to the map file)",
    )
    cache_path: Path = Field(
        default=Path("/etc/pgbouncer/userlist.txt"),
        description="Pooler credential cache",
    )
    backup_dir: Path = Field(
        default=Path("/var/backups/dbhub"),
        description="Directory for SyncBackups",
    )
    lock_dir: Path = Field(
        default=Path("/run/dbhub/locks"),
        description="Directory for per-tenant lock files",
    )
    root_identity: str = Field(
        default="dbhub.cc",
        description="Shared root network identity of the platform",
    )
    retry_limit: int = Field(
        default=3,
        description="Maximum attempts per external call",
        ge=1,
        le=20,
    )
    retry_backoff_seconds: float = Field(
        default=0.5,
        description="Initial backoff between attempts (doubles each retry)",
        ge=0,
        le=60,
    )
    lock_timeout_seconds: float = Field(
        default=30.0,
        description="Maximum wait for a lock",
        gt=0,
        le=3600,
    )
    admin_role: str = Field(
        default="postgres",
        description="Platform administrator role receiving reassigned objects",
    )
    owner_role_prefix: str = Field(
        default="admin_",
        description="Prefix of tenant owner role names",
    )
    admin_databases: frozenset[str] = Field(
        default=frozenset({"postgres", "template0", "template1"}),
        description="Template/administrative databases exempt from the Access Gate",
    )
    pooler_service: str = Field(
        default="pgbouncer",
        description="Service unit of the connection pooler",
    )
    pooler_command_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for pooler reload/restart commands",
        gt=0,
    )
    cache_file_mode: int = Field(
        default=0o640,
        description="Permission bits of the credential cache",
        ge=0,
        le=0o777,
    )

    @field_validator("root_identity")
    @classmethod
    def normalize_root_identity(cls, value: str) -> str:
        """Root identity is compared as a lowercase hostname."""
        value = value.strip().lower().rstrip(".")
        if not value:
            raise ValueError("root_identity must not be empty")
        return value

    @property
    def resolved_metadata_path(self) -> Path:
        """Metadata document path, defaulting next to the map file."""
        if self.metadata_path is not None:
            return self.metadata_path
        return self.registry_path.with_name(self.registry_path.stem + ".tenants.json")


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return DatabaseSettings()


@lru_cache
def get_tenancy_settings() -> TenancySettings:
    """Get cached tenancy settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return TenancySettings()
