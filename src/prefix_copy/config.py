# src/prefix_copy/config.py
"""
Configuration for the prefix-copy tool.

This module centralizes all configuration, loading credentials from
environment variables and providing typed dataclasses for use throughout
the application.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from prefix_copy.exceptions import ConfigError

HTTP_PORT: int = 80
HTTPS_PORT: int = 443


def _get_env_var(name: str, default: Optional[str] = None) -> Optional[str]:
    """
    Retrieves an optional environment variable.

    Empty values are treated as unset so that a blank line in a `.env` file
    does not override the botocore credential chain.

    Args:
        name (str): The name of the environment variable.
        default (str, optional): The default value if the variable is not set.

    Returns:
        Optional[str]: The value of the environment variable, or the default.
    """
    value: Optional[str] = os.environ.get(name)
    return value if value else default


@dataclass(frozen=True)
class BucketLocation:
    """
    A bucket name and key prefix, as given on the command line.

    Attributes:
        bucket (str): The bucket name.
        prefix (str): The key prefix, possibly empty.
    """

    bucket: str
    prefix: str = ""

    @classmethod
    def parse(cls, value: str) -> "BucketLocation":
        """
        Parses a `bucket:prefix` string. Only the first ':' is a separator.

        Args:
            value (str): The location string.

        Returns:
            BucketLocation: The parsed location.
        """
        bucket, _, prefix = value.partition(":")
        if not bucket:
            raise ConfigError(f"Missing bucket name in '{value}'.")
        return cls(bucket=bucket, prefix=prefix)

    def __str__(self) -> str:
        return f"{self.bucket}:{self.prefix}"


@dataclass(frozen=True)
class S3Config:
    """
    Represents the connection settings shared by the source and destination.

    Attributes:
        endpoint_host (str, optional): Host of an S3-compatible endpoint.
            When unset, the default AWS endpoint is used.
        use_https (bool): Whether to talk TLS on port 443 instead of port 80.
        access_key_id (str, optional): The access key ID.
        secret_access_key (str, optional): The secret access key.
        region (str): The AWS region.
    """

    endpoint_host: Optional[str] = field(
        default_factory=lambda: _get_env_var("PREFIX_COPY_ENDPOINT")
    )
    use_https: bool = False
    access_key_id: Optional[str] = field(
        default_factory=lambda: _get_env_var("PREFIX_COPY_ACCESS_KEY_ID")
    )
    secret_access_key: Optional[str] = field(
        default_factory=lambda: _get_env_var("PREFIX_COPY_SECRET_ACCESS_KEY")
    )
    region: str = field(
        default_factory=lambda: _get_env_var("PREFIX_COPY_REGION", "us-east-1")
    )

    @property
    def port(self) -> int:
        return HTTPS_PORT if self.use_https else HTTP_PORT

    @property
    def endpoint_url(self) -> Optional[str]:
        """
        The full endpoint URL, or None to let botocore pick the AWS endpoint.

        Returns:
            Optional[str]: The endpoint URL.
        """
        if not self.endpoint_host:
            return None
        scheme: str = "https" if self.use_https else "http"
        return f"{scheme}://{self.endpoint_host}:{self.port}"

    def as_boto_dict(self) -> Dict[str, object]:
        """
        Returns the configuration as a dictionary suitable for boto3 clients.

        Credentials are only included when both halves are set, so that
        the botocore credential chain applies otherwise.

        Returns:
            Dict[str, object]: A dictionary of client parameters.
        """
        params: Dict[str, object] = {
            "region_name": self.region,
            "use_ssl": self.use_https,
        }
        if self.endpoint_url:
            params["endpoint_url"] = self.endpoint_url
        if bool(self.access_key_id) != bool(self.secret_access_key):
            raise ConfigError(
                "PREFIX_COPY_ACCESS_KEY_ID and PREFIX_COPY_SECRET_ACCESS_KEY "
                "must be set together."
            )
        if self.access_key_id:
            params["aws_access_key_id"] = self.access_key_id
            params["aws_secret_access_key"] = self.secret_access_key
        return params


@dataclass(frozen=True)
class AppConfig:
    """
    Defines the application's operational parameters.

    Attributes:
        threads (int): Number of worker threads per listing page.
        page_size (int): Number of keys requested per listing page.
        progress (bool): Whether the progress indicator was requested.
        max_attempts (int): Copy attempts per key; 0 retries forever.
        retry_backoff_s (float): Base delay before a key is retried.
        retry_backoff_max_s (float): Upper bound for the retry delay.
    """

    threads: int = 1
    page_size: int = 1000
    progress: bool = False
    max_attempts: int = 10
    retry_backoff_s: float = 0.2
    retry_backoff_max_s: float = 10.0

    def __post_init__(self) -> None:
        if self.threads < 1:
            raise ConfigError("Thread count must be at least 1.")
        if not 1 <= self.page_size <= 1000:
            raise ConfigError("Page size must be between 1 and 1000.")
        if self.max_attempts < 0:
            raise ConfigError("Max attempts cannot be negative.")
        if self.retry_backoff_s < 0 or self.retry_backoff_max_s < 0:
            raise ConfigError("Retry backoff cannot be negative.")


@dataclass(frozen=True)
class Config:
    """
    Top-level configuration container for the entire application.

    Attributes:
        source (BucketLocation): Where objects are copied from.
        destination (BucketLocation): Where objects are copied to.
        s3 (S3Config): Connection settings for the storage endpoint.
        app (AppConfig): General application settings.
    """

    source: BucketLocation
    destination: BucketLocation
    s3: S3Config = field(default_factory=S3Config)
    app: AppConfig = field(default_factory=AppConfig)
