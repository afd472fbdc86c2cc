"""Configuration loading and Pydantic models for bucketfs."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

# 5 MiB is the smallest part size S3 accepts for multipart uploads.
MIN_PART_SIZE = 5 * 1024 * 1024


class S3Config(BaseModel):
    """Object store connection configuration."""

    bucket: str = ""
    endpoint: str = ""
    region: str = "us-east-1"
    access_key_id: str = ""
    secret_access_key: str = ""
    use_path_style: bool = False
    timeout_ms: int = Field(default=3000, gt=0)
    signed_url_expires: int = Field(default=900, gt=0)
    part_size: int = Field(default=MIN_PART_SIZE, ge=MIN_PART_SIZE)


class LoggingConfig(BaseModel):
    """Log level and output format."""

    level: str = "INFO"
    format: str = "text"


class ObservabilityConfig(BaseModel):
    """Metrics configuration."""

    metrics: bool = False


class BucketFSConfig(BaseModel):
    """Top-level bucketfs configuration."""

    s3: S3Config = Field(default_factory=S3Config)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def _parse_s3(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the filesystem section from YAML data.

    Handles nested structure: filesystem.s3.bucket -> bucket, etc.
    Keys that are absent keep the model defaults.
    """
    if data is None:
        return {}
    s3_section = data.get("s3")
    if not isinstance(s3_section, dict):
        return {}
    keys = (
        "bucket",
        "endpoint",
        "region",
        "access_key_id",
        "secret_access_key",
        "use_path_style",
        "timeout_ms",
        "signed_url_expires",
        "part_size",
    )
    return {key: s3_section[key] for key in keys if s3_section.get(key) is not None}


def _parse_logging(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the logging section from YAML data."""
    if data is None:
        return {}
    return {
        "level": data.get("level", "INFO"),
        "format": data.get("format", "text"),
    }


def _parse_observability(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the observability section from YAML data."""
    if data is None:
        return {}
    return {"metrics": data.get("metrics", False)}


def load_config(path: Path) -> BucketFSConfig:
    """Load a BucketFSConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated BucketFSConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return BucketFSConfig(
        s3=S3Config(**_parse_s3(raw.get("filesystem"))),
        logging=LoggingConfig(**_parse_logging(raw.get("logging"))),
        observability=ObservabilityConfig(**_parse_observability(raw.get("observability"))),
    )
