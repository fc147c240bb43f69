# src/prefix_copy/listing.py
"""Paginated enumeration of source keys and their split across workers."""

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, List, Sequence

from prefix_copy.acl import Grantee

if TYPE_CHECKING:
    from types_boto3_s3.client import S3Client
    from types_boto3_s3.paginator import ListObjectsV2Paginator

logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class KeyDescriptor:
    """
    A listed source object and the state a worker attaches to it.

    Attributes:
        key (str): The source object key.
        etag (str): The source ETag, used as content fingerprint.
        grantees (List[Grantee]): The source ACL, filled in by the worker.
        attempts (int): Failed copy attempts so far.
        not_before (float): `time.monotonic()` value before which the key
            is not retried.
    """

    key: str
    etag: str
    grantees: List[Grantee] = field(default_factory=list)
    attempts: int = 0
    not_before: float = 0.0


def list_pages(
    client: "S3Client", bucket: str, prefix: str, page_size: int = 1000
) -> Iterator[List[KeyDescriptor]]:
    """
    Lazily lists every key under `prefix`, one page at a time.

    The next page is only requested once the caller asks for it, so a page
    can be processed completely before more keys are fetched. Pages without
    any keys are not yielded.

    Args:
        client (S3Client): The storage client.
        bucket (str): The bucket to list.
        prefix (str): The key prefix to list under.
        page_size (int): Maximum number of keys per page.

    Yields:
        List[KeyDescriptor]: The keys of one listing page, in listing order.
    """
    paginator: "ListObjectsV2Paginator" = client.get_paginator("list_objects_v2")
    page_number: int = 0
    for result in paginator.paginate(
        Bucket=bucket, Prefix=prefix, PaginationConfig={"PageSize": page_size}
    ):
        contents = result.get("Contents", [])
        if not contents:
            continue
        page_number += 1
        logger.debug(
            f"Listed page {page_number} of 's3://{bucket}/{prefix}': "
            f"{len(contents)} keys."
        )
        yield [KeyDescriptor(key=obj["Key"], etag=obj["ETag"]) for obj in contents]


def partition(page: Sequence[KeyDescriptor], n: int) -> List[List[KeyDescriptor]]:
    """
    Splits a page into at most `n` contiguous slices of near-equal size.

    Args:
        page (Sequence[KeyDescriptor]): The keys to split.
        n (int): The desired number of slices, clamped to at least 1.

    Returns:
        List[List[KeyDescriptor]]: The slices; empty for an empty page.
    """
    if not page:
        return []
    size: int = math.ceil(len(page) / max(1, n))
    return [list(page[i : i + size]) for i in range(0, len(page), size)]
