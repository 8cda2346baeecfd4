"""Configuration models for the built-in storage adapters."""

from typing import Any, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from filestore.storage.errors import StorageConfigError

ModelT = TypeVar("ModelT", bound=BaseModel)


class LocalConfig(BaseModel, frozen=True):
    """Local filesystem adapter configuration."""

    path: str = Field(min_length=1)
    domain: str = Field(min_length=1)
    is_dev: bool = False


class MemoryConfig(BaseModel, frozen=True):
    """In-memory adapter configuration."""

    domain: str = "memory://"


class MinioConfig(BaseModel, frozen=True):
    """MinIO connection configuration."""

    access_key: str = Field(min_length=1)
    secret_key: str = Field(min_length=1)
    endpoint: str = Field(min_length=1)
    bucket: str = Field(min_length=1)
    domain: str = ""
    expire: int = 0
    secure: bool = False
    region: Optional[str] = None


class S3Config(BaseModel, frozen=True):
    """S3 (and S3-compatible) connection configuration."""

    access_key: str = Field(min_length=1)
    secret_key: str = Field(min_length=1)
    bucket: str = Field(min_length=1)
    endpoint: str = ""
    region: Optional[str] = None
    domain: str = ""
    expire: int = 0
    addressing_style: Literal["auto", "path", "virtual"] = "auto"


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "config"
    return f"{location}: {first.get('msg', 'invalid value')}"


def load_adapter_config(model: Type[ModelT], adapter_type: str, config: Any) -> ModelT:
    """
    Decode and validate an opaque adapter configuration.

    Args:
        model: Pydantic model describing the adapter's configuration
        adapter_type: Adapter type name, used in error messages
        config: Mapping or model instance

    Returns:
        Validated model instance

    Raises:
        StorageConfigError: If required fields are missing or malformed
    """
    if isinstance(config, model):
        return config
    if isinstance(config, BaseModel):
        config = config.model_dump()
    try:
        return model.model_validate(config)
    except ValidationError as e:
        raise StorageConfigError(adapter_type, _describe(e)) from e
