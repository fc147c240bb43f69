# src/prefix_copy/session.py
"""
Storage client construction and request instrumentation.

A single boto3 client is shared by every worker thread. boto3 clients are
safe for concurrent use, unlike sessions, so the session only lives long
enough to build the client.
"""

import logging
from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config as BotoConfig

from prefix_copy.config import S3Config
from prefix_copy.progress import RequestCounter

if TYPE_CHECKING:
    from types_boto3_s3.client import S3Client

logger: logging.Logger = logging.getLogger(__name__)

_REQUEST_EVENT = "before-send.s3"


def build_client(s3_config: S3Config, threads: int) -> "S3Client":
    """
    Creates the S3 client shared by all workers.

    Botocore's own retries are disabled: transient failures of a key are
    retried by requeueing the key in its worker.

    Args:
        s3_config (S3Config): Connection settings.
        threads (int): Number of worker threads that will share the client.

    Returns:
        S3Client: A configured boto3 S3 client.
    """
    boto_config: BotoConfig = BotoConfig(
        signature_version="s3v4",
        max_pool_connections=threads + 10,
        retries={"max_attempts": 1, "mode": "standard"},
    )
    session: boto3.session.Session = boto3.session.Session()
    client: "S3Client" = session.client(
        "s3", **s3_config.as_boto_dict(), config=boto_config
    )
    logger.debug(
        f"S3 client created for {s3_config.endpoint_url or 'AWS'} "
        f"(port {s3_config.port}, {threads} thread(s))."
    )
    return client


def instrument_client(client: "S3Client", counter: RequestCounter) -> str:
    """
    Counts every HTTP request the client sends, retries included.

    Args:
        client (S3Client): The client to instrument.
        counter (RequestCounter): The counter to increment.

    Returns:
        str: The handler id to pass to `uninstrument_client`.
    """

    def _count_request(**_: Any) -> None:
        counter.increment()

    unique_id: str = f"prefix-copy-counter-{id(counter)}"
    client.meta.events.register(
        _REQUEST_EVENT, _count_request, unique_id=unique_id
    )
    return unique_id


def uninstrument_client(client: "S3Client", unique_id: str) -> None:
    """Removes a counting handler registered by `instrument_client`."""
    client.meta.events.unregister(_REQUEST_EVENT, unique_id=unique_id)
