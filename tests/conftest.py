# tests/conftest.py
"""
Pytest configuration and fixtures for the prefix-copy test suite.

This module provides:
- A fake S3 client holding a source bucket owned by the caller and a
  destination bucket owned by another account.
- Factories for run configurations and copy jobs.
"""

from typing import Any, Callable, Dict

import pytest
from fakes import DEST_BUCKET, DEST_OWNER_ID, ME_ID, SOURCE_BUCKET, FakeS3Client

from prefix_copy.acl import Owner
from prefix_copy.buckets import BucketHandle
from prefix_copy.config import AppConfig, BucketLocation, Config, S3Config
from prefix_copy.progress import NullProgressReporter, RequestCounter
from prefix_copy.worker import CopyJob


# --- Fixtures ---
@pytest.fixture(scope="function")
def s3_client() -> FakeS3Client:
    """
    Provide a fake client with a source bucket owned by the caller and a
    destination bucket owned by another account.

    Returns:
        FakeS3Client: The fake client.
    """
    client: FakeS3Client = FakeS3Client()
    client.add_bucket(SOURCE_BUCKET)
    client.add_bucket(DEST_BUCKET, owner_id=DEST_OWNER_ID)
    return client


@pytest.fixture(scope="function")
def config_factory() -> Callable[..., Config]:
    """
    Provide a factory for run configurations with no retry delay.

    Returns:
        Callable[..., Config]: Builds a `Config` from location strings and
            `AppConfig` overrides.
    """

    def _creator(
        source: str = f"{SOURCE_BUCKET}:logs/2020/",
        destination: str = f"{DEST_BUCKET}:archive/",
        **app_overrides: Any,
    ) -> Config:
        app_settings: Dict[str, Any] = {"retry_backoff_s": 0.0}
        app_settings.update(app_overrides)
        return Config(
            source=BucketLocation.parse(source),
            destination=BucketLocation.parse(destination),
            s3=S3Config(endpoint_host="localhost"),
            app=AppConfig(**app_settings),
        )

    return _creator


@pytest.fixture(scope="function")
def copy_job_factory(s3_client: FakeS3Client) -> Callable[..., CopyJob]:
    """
    Provide a factory for copy jobs bound to the fake client.

    Returns:
        Callable[..., CopyJob]: Builds a `CopyJob` with keyword overrides.
    """

    def _creator(**overrides: Any) -> CopyJob:
        settings: Dict[str, Any] = {
            "source": BucketHandle(SOURCE_BUCKET, s3_client),
            "source_prefix": "logs/2020/",
            "destination": BucketHandle(DEST_BUCKET, s3_client),
            "destination_prefix": "archive/",
            "destination_owner": Owner(DEST_OWNER_ID),
            "me": Owner(ME_ID, "me"),
            "counter": RequestCounter(),
            "reporter": NullProgressReporter(),
        }
        settings.update(overrides)
        return CopyJob(**settings)

    return _creator
