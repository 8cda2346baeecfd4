# Configuration management

from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic_settings import BaseSettings  # type: ignore


class Settings(BaseSettings):
    # Storage
    storage_backend: str = "local"  # local, memory, minio, s3, oss, cos, obs, bos, qiniu
    storage_path: str = "./storage"
    storage_domain: str = "http://localhost:8000/storage"
    storage_is_dev: bool = False

    # Object storage
    storage_endpoint: str = ""
    storage_bucket: str = ""
    storage_access_key: str = ""
    storage_secret_key: str = ""
    storage_region: Optional[str] = None
    storage_secure: bool = False
    storage_expire: int = 0  # default signed URL lifetime, 0 = public URLs

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Observability
    metrics_enabled: bool = True

    class Config:
        env_prefix = "FILESTORE_"
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    def adapter_config(self) -> Dict[str, Any]:
        """Build the configuration mapping for the selected backend."""
        backend = self.storage_backend.lower()
        if backend == "local":
            return {
                "path": self.storage_path,
                "domain": self.storage_domain,
                "is_dev": self.storage_is_dev,
            }
        if backend == "memory":
            return {"domain": self.storage_domain}

        config: Dict[str, Any] = {
            "access_key": self.storage_access_key,
            "secret_key": self.storage_secret_key,
            "endpoint": self.storage_endpoint,
            "bucket": self.storage_bucket,
            "expire": self.storage_expire,
            "region": self.storage_region,
        }
        # Object stores derive a domain from the endpoint when none is set.
        if "storage_domain" in self.model_fields_set:
            config["domain"] = self.storage_domain
        if backend == "minio":
            config["secure"] = self.storage_secure
        return config


@lru_cache()
def get_settings() -> Settings:
    return Settings()
