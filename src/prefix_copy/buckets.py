# src/prefix_copy/buckets.py
"""
Resolution of bucket handles, bucket owners and the caller identity.

Any failure here is fatal for the run: a missing source or destination
bucket invalidates the whole copy, so nothing is retried.
"""

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from prefix_copy.acl import Owner
from prefix_copy.exceptions import BucketAccessError, TransferError

if TYPE_CHECKING:
    from types_boto3_s3.client import S3Client

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BucketHandle:
    """
    A bucket name bound to the shared storage client.

    Attributes:
        name (str): The bucket name.
        client (S3Client): The client used for every call on this bucket.
    """

    name: str
    client: "S3Client"


class BucketResolver:
    """Resolves buckets and owners, caching the caller's bucket listing."""

    def __init__(self, client: "S3Client") -> None:
        self._client: "S3Client" = client
        self._lock: threading.Lock = threading.Lock()
        self._listing: Optional[Dict[str, Any]] = None

    def _list_buckets(self) -> Dict[str, Any]:
        with self._lock:
            if self._listing is None:
                try:
                    self._listing = self._client.list_buckets()
                except (ClientError, BotoCoreError) as e:
                    raise BucketAccessError(
                        f"Could not list buckets for the current credentials: {e}"
                    ) from e
            return self._listing

    def caller_identity(self) -> Owner:
        """
        Returns the identity of the credentials in use ("me").

        Returns:
            Owner: The owner reported by the caller's bucket listing.
        """
        listing: Dict[str, Any] = self._list_buckets()
        try:
            return Owner.from_boto(listing.get("Owner", {}))
        except TransferError as e:
            raise BucketAccessError(
                f"Could not determine the caller identity: {e}"
            ) from e

    def resolve(self, name: str) -> Tuple[BucketHandle, Owner]:
        """
        Checks access to a bucket and resolves its owner.

        The owner comes from the caller's bucket listing when the caller
        owns the bucket, otherwise from the bucket ACL.

        Args:
            name (str): The bucket name.

        Returns:
            Tuple[BucketHandle, Owner]: The handle and the bucket owner.
        """
        try:
            self._client.head_bucket(Bucket=name)
        except (ClientError, BotoCoreError) as e:
            raise BucketAccessError(f"Bucket '{name}' is not accessible: {e}") from e

        handle: BucketHandle = BucketHandle(name=name, client=self._client)
        listing: Dict[str, Any] = self._list_buckets()
        owned: bool = any(b.get("Name") == name for b in listing.get("Buckets", []))

        try:
            if owned:
                owner: Owner = Owner.from_boto(listing.get("Owner", {}))
            else:
                acl: Dict[str, Any] = self._client.get_bucket_acl(Bucket=name)
                owner = Owner.from_boto(acl.get("Owner", {}))
        except (ClientError, BotoCoreError, TransferError) as e:
            raise BucketAccessError(
                f"Could not resolve the owner of bucket '{name}': {e}"
            ) from e

        logger.debug(f"Bucket '{name}' is owned by {owner.id}.")
        return handle, owner
