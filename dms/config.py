from pathlib import Path
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dms.paths import DEFAULT_FOLDER_SIZE, storage_folder


class StorageConfig(BaseModel):
    """
    Where document files live and how a document id maps to its folder.

    Changing ``shard_fn`` after files were stored invalidates their paths.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    root: Path
    shard_fn: Callable[[int], str] = storage_folder


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = "sqlite:///./dms.db"
    storage_root: Path = Path("storage/dms")
    folder_size: int = Field(DEFAULT_FOLDER_SIZE, gt=0)
    base_url: str = "/"

    # Serve FORBIDDEN as the same 404 as NOT_FOUND
    hide_forbidden: bool = True
    # Deny documents that are not linked to any page
    deny_unlinked: bool = False
    # Detach a shared tag before a single-value overwrite instead of mutating it for everyone
    tags_copy_on_write: bool = False

    chunk_size: int = Field(64 * 1024, gt=0)

    log_level: str = "INFO"
    log_json: bool = True


_cached_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Returns the settings singleton, creating it on first use so that
    importing the package never fails on a bad environment.
    """
    global _cached_settings
    if _cached_settings is None:
        _cached_settings = Settings()
    return _cached_settings


def storage_config_from_settings(settings: Settings) -> StorageConfig:
    folder_size = settings.folder_size

    def shard(document_id: int) -> str:
        return storage_folder(document_id, folder_size)

    return StorageConfig(root=settings.storage_root, shard_fn=shard)


def get_storage_config() -> StorageConfig:
    """FastAPI dependency; override it to point the service at another root."""
    return storage_config_from_settings(get_settings())
