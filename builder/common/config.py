"""Build configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

# Unzipped size limit for a Lambda layer (250 MB)
DEFAULT_MAX_LAYER_SIZE_BYTES = 262_144_000


class Settings(BaseSettings):
    """Layer build settings loaded from environment variables.

    List and mapping values are given as JSON, e.g.
    CLIENT_GENERATE_COMMAND='["npx", "prisma", "generate"]'.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Prisma Layer Bundler"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # Source and output locations
    layer_source_dir: str = "src/layers/prisma"
    layer_output_dir: str = "build/layers/prisma"

    # Source layout
    layer_manifest_file: str = "package.json"
    layer_lockfile: str = "package-lock.json"
    layer_client_files: list[str] = ["client.js"]
    layer_schema_dirs: list[str] = ["prisma"]
    layer_dependency_dir: str = "node_modules"

    # Globs (relative to the dependency dir) removed before platform pruning
    layer_cache_globs: list[str] = [".cache"]
    layer_prune_globs: list[str] = ["@prisma/engines/node_modules"]

    # Target platform, e.g. linux-x64 or linux-arm64
    layer_target_platform: str = "linux-x64"
    layer_max_size_bytes: int = DEFAULT_MAX_LAYER_SIZE_BYTES

    # Client generation (runs inside the output directory after pruning)
    # An empty command disables generation.
    client_generate_command: list[str] = ["npx", "prisma", "generate"]
    client_generate_timeout_seconds: int = 300
    client_generate_env: dict[str, str] = {}

    @property
    def resolved_target_platform(self):
        """Get the target platform tag.

        Raises:
            ValueError: If not configured or not a known platform.
        """
        from bundler.platforms import Platform

        if not self.layer_target_platform:
            raise ValueError("LAYER_TARGET_PLATFORM must be set")
        return Platform.parse(self.layer_target_platform)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
