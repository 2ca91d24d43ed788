import os
from pydantic import BaseModel

# Default cap on a single upload (100 MiB), shared with the upload client.
DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    app_env: str = os.getenv("APP_ENV", "local")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./gallery.db")
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    # Blob storage: "local" | "memory" | "azure"
    blob_backend: str = os.getenv("BLOB_BACKEND", "local")
    public_base_url: str = os.getenv("PUBLIC_BASE_URL", "")
    local_media_dir: str = os.getenv("LOCAL_MEDIA_DIR", "./media")

    azure_storage_account: str = os.getenv("AZURE_STORAGE_ACCOUNT", "")
    azure_storage_account_key: str = os.getenv("AZURE_STORAGE_ACCOUNT_KEY", "")
    photos_container: str = os.getenv("AZURE_STORAGE_CONTAINER_PHOTOS", "photos")

    # Shared credential for destructive routes; empty disables them
    admin_token: str = os.getenv("ADMIN_TOKEN", "")

    max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES)))
    cleanup_orphaned_blobs: bool = _env_bool("CLEANUP_ORPHANED_BLOBS", "true")

    def resolved_public_base_url(self) -> str:
        """Base URL that storage keys are appended to when building a photo's public URL."""
        if self.public_base_url:
            return self.public_base_url.rstrip("/")
        if self.blob_backend.strip().lower() == "azure":
            return f"https://{self.azure_storage_account}.blob.core.windows.net/{self.photos_container}"
        return "http://localhost:8000/media"


settings = Settings()
